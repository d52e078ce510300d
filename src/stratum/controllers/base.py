"""
Abstract base class for backend controllers.

A controller implements the raw CRUD primitives for the object types it
supports, plus attribute access on its native objects. Primitives that a
controller does not override raise UnboundOperationError, so a missing
binding is reported as a configuration error instead of a silent no-op.
"""

from __future__ import annotations

import abc as _abc
import collections.abc as _collections_abc
import logging as _logging
import re as _re
import typing as _typing

import stratum.errors as errors
import stratum.utils.recursive_map as rmap

_logger = _logging.getLogger(__name__)

if _typing.TYPE_CHECKING:
    import stratum.core.context as context

QueryKey = _typing.Union[str, tuple[str, ...]]


def query_path(key: QueryKey) -> tuple[str, ...]:
    """Backend path of a query key: a single name or a tuple path."""
    return rmap.normalize(key)


def get_attr(obj: _typing.Any, path: rmap.KeysLike) -> _typing.Any:
    """
    Read a value from a native object.

    Walks mappings by key and other objects by attribute.

    Raises:
        KeyError: If the path does not exist in the object.
    """
    current = obj
    for key in rmap.normalize(path):
        if isinstance(current, _collections_abc.Mapping):
            if key not in current:
                raise KeyError(key)
            current = current[key]
        elif current is not None and hasattr(current, key):
            current = getattr(current, key)
        else:
            raise KeyError(key)
    return current


def set_attr(obj: _typing.Any, path: rmap.KeysLike, value: _typing.Any) -> None:
    """
    Write a value into a native object, creating intermediate dicts.

    Raises:
        KeyError: If an intermediate level is neither a dict nor an object
            holding the attribute.
    """
    keys = rmap.normalize(path)
    current = obj
    for key in keys[:-1]:
        if isinstance(current, dict):
            child = current.get(key)
            if child is None:
                child = current[key] = {}
            current = child
        elif current is not None and hasattr(current, key):
            current = getattr(current, key)
        else:
            raise KeyError(key)
    if isinstance(current, _collections_abc.MutableMapping):
        current[keys[-1]] = value
    elif current is None:
        raise KeyError(keys[-1])
    else:
        setattr(current, keys[-1], value)


def match_value(actual: _typing.Any, expected: _typing.Any) -> bool:
    """Query match: regex search for compiled patterns, equality otherwise."""
    if isinstance(expected, _re.Pattern):
        return isinstance(actual, str) and expected.search(actual) is not None
    return bool(actual == expected)


class Controller(_abc.ABC):
    """
    Abstract base for backend controllers.

    Primitives receive the call context in backend mode: ``params.hdata`` is
    the payload translated to backend names and ``params[type]`` returns the
    native object of a resolved dependency.
    """

    @property
    @_abc.abstractmethod
    def name(self) -> str:
        """Controller name (e.g., 'mock', 'openstack')."""
        ...

    def _unbound(self, operation: str, type_name: str) -> errors.UnboundOperationError:
        return errors.UnboundOperationError(
            f"controller '{self.name}' does not implement {operation}",
            type_name=type_name,
            operation=operation,
        )

    # =========================================================================
    # Primitives
    # =========================================================================

    def create(self, type_name: str, params: context.CallContext) -> _typing.Any:
        """Create a native object. Returns it."""
        raise self._unbound("create", type_name)

    def query(
        self,
        type_name: str,
        query: dict[QueryKey, _typing.Any],
        params: context.CallContext,
    ) -> _typing.Iterable[_typing.Any]:
        """Return every native object matching query (backend names and values)."""
        raise self._unbound("query", type_name)

    def get(
        self,
        type_name: str,
        identifier: _typing.Any,
        params: context.CallContext,
    ) -> _typing.Any:
        """Return one native object by identifier, or None."""
        raise self._unbound("get", type_name)

    def update(
        self,
        type_name: str,
        obj: _typing.Any,
        params: context.CallContext,
    ) -> _typing.Any:
        """Push a modified native object. Returns it, or a success flag."""
        raise self._unbound("update", type_name)

    def delete(self, type_name: str, params: context.CallContext) -> bool:
        """Delete the native object found at params[type_name]. Returns success."""
        raise self._unbound("delete", type_name)

    def refresh(self, type_name: str, obj: _typing.Any) -> bool:
        """Re-read a native object in place. Returns True if it changed."""
        raise self._unbound("refresh", type_name)

    # =========================================================================
    # Attribute access
    # =========================================================================

    def get_attr(self, obj: _typing.Any, path: rmap.KeysLike) -> _typing.Any:
        """Read a value from a native object. See get_attr()."""
        return get_attr(obj, path)

    def set_attr(self, obj: _typing.Any, path: rmap.KeysLike, value: _typing.Any) -> None:
        """Write a value into a native object. See set_attr()."""
        set_attr(obj, path, value)

    # =========================================================================
    # Helpers for implementations
    # =========================================================================

    def required(self, params: context.CallContext, *keys: str) -> None:
        """
        Check that params hold every key.

        Raises:
            MissingRequiredDependencyError: For the first missing key.
        """
        for key in keys:
            if params.get(key) is None:
                raise errors.MissingRequiredDependencyError(
                    key,
                    "data",
                    type_name=params.type_name,
                    operation=params.operation.value,
                    message=f"controller '{self.name}' requires '{key}'",
                )

    def query_each(
        self,
        objects: _typing.Iterable[_typing.Any],
        query: _typing.Mapping[QueryKey, _typing.Any],
        extract: _typing.Callable[[_typing.Any, tuple[str, ...]], _typing.Any] | None = None,
    ) -> list[_typing.Any]:
        """
        Filter native objects on every query key.

        A compiled regular expression matches string values with search();
        any other query value must be equal.

        Args:
            objects: Native objects to filter.
            query: Backend path -> expected value.
            extract: Reads a value from an object. Defaults to get_attr().
        """
        reader = extract or self.get_attr
        matched = []
        for obj in objects:
            if all(
                self._match(reader, obj, query_path(key), expected)
                for key, expected in query.items()
            ):
                matched.append(obj)
        return matched

    @staticmethod
    def _match(
        reader: _typing.Callable[[_typing.Any, tuple[str, ...]], _typing.Any],
        obj: _typing.Any,
        path: tuple[str, ...],
        expected: _typing.Any,
    ) -> bool:
        try:
            actual = reader(obj, path)
        except KeyError:
            return False
        return match_value(actual, expected)

    def controller_error(self, message: str, *args: _typing.Any) -> _typing.NoReturn:
        """Raise a BackendFailureError with a formatted message."""
        text = f"{self.name}: {message % args if args else message}"
        _logger.debug("Controller error: %s", text)
        raise errors.BackendFailureError(text)
