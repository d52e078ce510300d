"""
Resolved objects: attribute-mapped views over backend-native data.

A ResolvedObject wraps whatever a controller returned (a dict, an SDK
object, ...). Attributes are read and written by their process-side names;
the object type's declaration translates them to backend paths and values.
"""

from __future__ import annotations

import collections.abc as _collections_abc
import typing as _typing

import stratum.controllers.base as controller_base
import stratum.errors as errors
import stratum.model.declaration as declaration


class _PlainAccess:
    """Attribute access for objects resolved without a controller."""

    get_attr = staticmethod(controller_base.get_attr)
    set_attr = staticmethod(controller_base.set_attr)


_PLAIN_ACCESS = _PlainAccess()


class ResolvedObject:
    """
    A tagged, mapped view of one backend-native object.

    Reading obj["course"] looks up the declared mapping for "course" (e.g. the
    backend path ("training",) and any value equivalences) and reads the
    payload through the controller. Undeclared names are read verbatim;
    undefined attributes read as None. A payload that does not have the
    expected shape also reads as None.

    Writing obj["course"] = value applies the same translation in reverse and
    mutates the payload in place.
    """

    def __init__(
        self,
        type_name: str,
        payload: _typing.Any,
        declaration_: declaration.ObjectTypeDeclaration | None = None,
        controller: _typing.Any = None,
    ) -> None:
        self.type_name = type_name
        self._payload = payload
        self._declaration = declaration_
        self._access = controller if controller is not None else _PLAIN_ACCESS
        self._attrs: dict[str, _typing.Any] | None = None
        self.registered = False

    @property
    def payload(self) -> _typing.Any:
        """The backend-native object."""
        return self._payload

    @property
    def is_empty(self) -> bool:
        return self._payload is None

    @property
    def declaration(self) -> declaration.ObjectTypeDeclaration | None:
        return self._declaration

    def _mapping(self, name: str) -> declaration.AttributeMapping | None:
        if self._declaration is None:
            return None
        return self._declaration.attribute(name)

    @property
    def attrs(self) -> dict[str, _typing.Any]:
        """Every defined attribute, by process-side name. Computed on first use."""
        if self._attrs is None:
            names = (
                [attr.name for attr in self._declaration.defined_attributes()]
                if self._declaration is not None
                else list(self._payload) if isinstance(self._payload, _collections_abc.Mapping)
                else []
            )
            self._attrs = {name: self[name] for name in names}
        return dict(self._attrs)

    def refresh_attrs(self) -> None:
        """Drop the cached attrs view after the payload changed outside this object."""
        self._attrs = None

    def backend_path(self, name: str) -> tuple[str, ...] | None:
        """Backend path of an attribute; None when the attribute is undefined."""
        mapping = self._mapping(name)
        if mapping is None:
            return (name,)
        return mapping.backend_path

    def __getitem__(self, name: str) -> _typing.Any:
        if self._payload is None:
            return None
        mapping = self._mapping(name)
        path = self.backend_path(name)
        if path is None:
            return None
        try:
            raw = self._access.get_attr(self._payload, path)
        except (KeyError, TypeError, AttributeError):
            return None
        return mapping.from_backend(raw) if mapping is not None else raw

    def get(self, name: str, default: _typing.Any = None) -> _typing.Any:
        value = self[name]
        return default if value is None else value

    def __setitem__(self, name: str, value: _typing.Any) -> None:
        """
        Write an attribute through its backend mapping.

        Raises:
            AttributeMappingError: If the attribute is undefined, has no
                backend equivalent for value, or the payload cannot hold it.
        """
        if self._payload is None:
            raise errors.AttributeMappingError(
                name, "cannot set an attribute on an empty object", type_name=self.type_name
            )
        path = self.backend_path(name)
        if path is None:
            raise errors.AttributeMappingError(
                name, f"attribute '{name}' is undefined", type_name=self.type_name
            )
        mapping = self._mapping(name)
        try:
            backend_value = mapping.to_backend(value) if mapping is not None else value
        except KeyError:
            raise errors.AttributeMappingError(
                name, f"no backend value for {name}={value!r}", type_name=self.type_name
            ) from None
        try:
            self._access.set_attr(self._payload, path, backend_value)
        except (KeyError, TypeError, AttributeError) as e:
            raise errors.AttributeMappingError(
                name, f"payload cannot hold '{'/'.join(path)}': {e}", type_name=self.type_name
            ) from e
        self._attrs = None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self[name] is not None

    def to_dict(self) -> dict[str, _typing.Any]:
        return self.attrs

    def __repr__(self) -> str:
        state = "empty" if self.is_empty else repr(self.attrs)
        return f"<ResolvedObject {self.type_name} {state}>"


class ResolvedList(_collections_abc.Sequence):  # type: ignore[type-arg]
    """An ordered collection of ResolvedObjects returned by a query."""

    def __init__(
        self,
        type_name: str,
        items: _typing.Iterable[ResolvedObject] = (),
        query: _typing.Mapping[str, _typing.Any] | None = None,
    ) -> None:
        self.type_name = type_name
        self._items = list(items)
        self.query = dict(query or {})

    @_typing.overload
    def __getitem__(self, index: int) -> ResolvedObject: ...

    @_typing.overload
    def __getitem__(self, index: slice) -> list[ResolvedObject]: ...

    def __getitem__(self, index: int | slice) -> ResolvedObject | list[ResolvedObject]:
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def remove(self, item: ResolvedObject) -> None:
        self._items.remove(item)

    def to_list(self) -> list[dict[str, _typing.Any]]:
        return [item.attrs for item in self._items]

    def __repr__(self) -> str:
        return f"<ResolvedList {self.type_name} x{len(self._items)} query={self.query!r}>"
