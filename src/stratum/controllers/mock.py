"""
In-memory controller for tests and demos.

Records live in a per-instance dict keyed by object type and id. Every
primitive call is appended to ``calls`` so tests can assert on backend
traffic.
"""

from __future__ import annotations

import copy as _copy
import itertools as _itertools
import logging as _logging
import typing as _typing

import stratum.controllers.base as base
import stratum.utils.recursive_map as rmap

_logger = _logging.getLogger(__name__)

if _typing.TYPE_CHECKING:
    import stratum.core.context as context


class MockController(base.Controller):
    """
    Controller backed by plain dicts.

    Args:
        seed: Initial records, {type_name: [record, ...]}. Records without an
            "id" get one assigned.
    """

    def __init__(
        self,
        seed: _typing.Mapping[str, _typing.Iterable[dict[str, _typing.Any]]] | None = None,
    ) -> None:
        self.data: dict[str, dict[int, dict[str, _typing.Any]]] = {}
        self.calls: list[tuple[str, str]] = []
        self._ids = _itertools.count(1)
        for type_name, records in (seed or {}).items():
            for record in records:
                self.store(type_name, record)

    @property
    def name(self) -> str:
        return "mock"

    def store(self, type_name: str, record: dict[str, _typing.Any]) -> dict[str, _typing.Any]:
        """Insert a record directly, assigning an id if it has none."""
        record = _copy.deepcopy(record)
        if record.get("id") is None:
            record["id"] = next(self._ids)
        self.data.setdefault(type_name, {})[record["id"]] = record
        return record

    def records(self, type_name: str) -> list[dict[str, _typing.Any]]:
        return list(self.data.get(type_name, {}).values())

    def count(self, operation: str, type_name: str | None = None) -> int:
        """How many times a primitive was called, optionally for one type."""
        return sum(
            1
            for op, name in self.calls
            if op == operation and (type_name is None or name == type_name)
        )

    # =========================================================================
    # Primitives
    # =========================================================================

    def create(self, type_name: str, params: context.CallContext) -> dict[str, _typing.Any]:
        self.calls.append(("create", type_name))
        record = self.store(type_name, rmap.deep_merge({}, params.hdata))
        _logger.debug("mock: created %s %s", type_name, record["id"])
        return _copy.deepcopy(record)

    def query(
        self,
        type_name: str,
        query: dict[base.QueryKey, _typing.Any],
        params: context.CallContext,
    ) -> list[dict[str, _typing.Any]]:
        self.calls.append(("query", type_name))
        return [_copy.deepcopy(r) for r in self.query_each(self.records(type_name), query)]

    def get(
        self,
        type_name: str,
        identifier: _typing.Any,
        params: context.CallContext,
    ) -> dict[str, _typing.Any] | None:
        self.calls.append(("get", type_name))
        record = self.data.get(type_name, {}).get(identifier)
        if record is None and isinstance(identifier, str) and identifier.isdigit():
            record = self.data.get(type_name, {}).get(int(identifier))
        return _copy.deepcopy(record) if record is not None else None

    def update(
        self,
        type_name: str,
        obj: _typing.Any,
        params: context.CallContext,
    ) -> bool:
        self.calls.append(("update", type_name))
        records = self.data.get(type_name, {})
        if obj.get("id") not in records:
            return False
        records[obj["id"]] = _copy.deepcopy(dict(obj))
        return True

    def delete(self, type_name: str, params: context.CallContext) -> bool:
        self.calls.append(("delete", type_name))
        native = params.get(type_name)
        if native is None:
            self.controller_error("no %s given to delete", type_name)
        return self.data.get(type_name, {}).pop(native.get("id"), None) is not None

    def refresh(self, type_name: str, obj: _typing.Any) -> bool:
        self.calls.append(("refresh", type_name))
        current = self.data.get(type_name, {}).get(obj.get("id"))
        if current is None or current == obj:
            return False
        obj.clear()
        obj.update(_copy.deepcopy(current))
        return True
