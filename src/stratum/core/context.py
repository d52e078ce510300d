"""
Per-call parameter context and the per-session working set.
"""

from __future__ import annotations

import typing as _typing

import stratum.core.resolved as resolved
import stratum.model.declaration as declaration

ContextKey = _typing.Union[str, tuple[str, ...]]


class CallContext:
    """
    Parameters assembled for one operation.

    Lookups by name return a data value or, for object dependencies, the
    ResolvedObject. A (type, attribute) tuple drills into a dependency's
    mapped attribute. In backend mode (the view controllers receive) object
    lookups return the native payload instead.
    """

    def __init__(
        self,
        type_name: str,
        operation: declaration.Operation,
        values: dict[str, _typing.Any] | None = None,
        objects: dict[str, resolved.ResolvedObject] | None = None,
        hdata: dict[str, _typing.Any] | None = None,
        *,
        query: dict[str, _typing.Any] | None = None,
        identifier: _typing.Any = None,
        backend: bool = False,
    ) -> None:
        self.type_name = type_name
        self.operation = operation
        self.values = values if values is not None else {}
        self.objects = objects if objects is not None else {}
        self.hdata = hdata if hdata is not None else {}
        self.query = query if query is not None else {}
        self.identifier = identifier
        self.backend = backend

    def for_backend(self) -> CallContext:
        """The same context, returning native payloads for object lookups."""
        return CallContext(
            self.type_name,
            self.operation,
            self.values,
            self.objects,
            self.hdata,
            query=self.query,
            identifier=self.identifier,
            backend=True,
        )

    def __getitem__(self, key: ContextKey) -> _typing.Any:
        if isinstance(key, tuple):
            if not key:
                raise KeyError(key)
            obj = self.objects.get(key[0])
            if obj is None:
                raise KeyError(key)
            if len(key) == 1:
                return obj.payload if self.backend else obj
            if len(key) > 2:
                raise KeyError(key)
            return obj[key[1]]
        if key in self.objects:
            obj = self.objects[key]
            return obj.payload if self.backend else obj
        if key in self.values:
            return self.values[key]
        raise KeyError(key)

    def get(self, key: ContextKey, default: _typing.Any = None) -> _typing.Any:
        try:
            value = self[key]
        except KeyError:
            return default
        return default if value is None else value

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (str, tuple)):
            return False
        try:
            self[key]
        except KeyError:
            return False
        return True

    def to_dict(self) -> dict[str, _typing.Any]:
        """Flat view: data values plus objects as their mapped attrs."""
        result = dict(self.values)
        for type_name, obj in self.objects.items():
            result[type_name] = obj.attrs
        return result

    def __repr__(self) -> str:
        return (
            f"<CallContext {self.operation.value} {self.type_name} "
            f"values={sorted(self.values)} objects={sorted(self.objects)}>"
        )


class WorkingSet:
    """The latest ResolvedObject per object type within one dispatcher session."""

    def __init__(self) -> None:
        self._objects: dict[str, resolved.ResolvedObject] = {}

    def add(self, obj: resolved.ResolvedObject) -> None:
        self._objects[obj.type_name] = obj
        obj.registered = True

    def get(self, type_name: str) -> resolved.ResolvedObject | None:
        return self._objects.get(type_name)

    def remove(self, type_name: str) -> resolved.ResolvedObject | None:
        obj = self._objects.pop(type_name, None)
        if obj is not None:
            obj.registered = False
        return obj

    def clear(self) -> None:
        for obj in self._objects.values():
            obj.registered = False
        self._objects.clear()

    def types(self) -> list[str]:
        return list(self._objects)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._objects

    def __len__(self) -> int:
        return len(self._objects)
