"""
Facade handed to process handlers.

Handlers receive a ProcessContext as their first argument. It exposes the
dispatcher's operations (so a handler can resolve sub-objects), the raw
controller primitives (to bypass its own handler), and the configuration.

Example "query then create" handler:

    def create_student(process, type_name, ctx):
        found = process.query_single(type_name, {"name": ctx["student_name"]},
                                     ctx["student_name"])
        if found:
            return process.register(found[0])
        return process.controller_create(type_name)
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import stratum.core.resolved as resolved
import stratum.errors as errors

if _typing.TYPE_CHECKING:
    import stratum.core.dispatcher as dispatcher_mod

_logger = _logging.getLogger(__name__)

_DEFAULT_INFO = {
    "notfound": "No %s '%s' found",
    "found": "%s '%s' found",
    "more": "Found several %s named '%s'",
}


class ProcessContext:
    """Dispatcher operations, controller primitives and config for handlers."""

    def __init__(self, dispatcher: dispatcher_mod.Dispatcher) -> None:
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> dispatcher_mod.Dispatcher:
        return self._dispatcher

    @property
    def config(self) -> _typing.Any:
        return self._dispatcher.config

    # =========================================================================
    # Dispatcher operations
    # =========================================================================

    def create(self, type_name: str, params: _typing.Any = None) -> resolved.ResolvedObject:
        return self._dispatcher.create(type_name, params)

    def query(
        self,
        type_name: str,
        query: _typing.Mapping[str, _typing.Any] | None = None,
        params: _typing.Any = None,
    ) -> resolved.ResolvedList:
        return self._dispatcher.query(type_name, query, params)

    def get(
        self,
        type_name: str,
        identifier: _typing.Any,
        params: _typing.Any = None,
    ) -> resolved.ResolvedObject:
        return self._dispatcher.get(type_name, identifier, params)

    def update(self, type_name: str, params: _typing.Any = None) -> resolved.ResolvedObject:
        return self._dispatcher.update(type_name, params)

    def delete(self, type_name: str, params: _typing.Any = None) -> bool:
        return self._dispatcher.delete(type_name, params)

    # =========================================================================
    # Controller primitives
    # =========================================================================

    def controller_create(
        self, type_name: str, params: _typing.Any = None
    ) -> resolved.ResolvedObject:
        return self._dispatcher.controller_create(type_name, params)

    def controller_query(
        self,
        type_name: str,
        query: _typing.Mapping[str, _typing.Any] | None = None,
        params: _typing.Any = None,
    ) -> resolved.ResolvedList:
        return self._dispatcher.controller_query(type_name, query, params)

    def controller_get(
        self,
        type_name: str,
        identifier: _typing.Any,
        params: _typing.Any = None,
    ) -> resolved.ResolvedObject:
        return self._dispatcher.controller_get(type_name, identifier, params)

    def controller_update(
        self, type_name: str, params: _typing.Any = None
    ) -> resolved.ResolvedObject:
        return self._dispatcher.controller_update(type_name, params)

    def controller_delete(self, type_name: str, params: _typing.Any = None) -> bool:
        return self._dispatcher.controller_delete(type_name, params)

    def controller_refresh(self, type_name: str) -> bool:
        return self._dispatcher.controller_refresh(type_name)

    def register(self, obj: resolved.ResolvedObject) -> resolved.ResolvedObject:
        return self._dispatcher.register(obj)

    # =========================================================================
    # Helpers
    # =========================================================================

    def query_single(
        self,
        type_name: str,
        query: _typing.Mapping[str, _typing.Any],
        name: str,
        info: _typing.Mapping[str, str] | None = None,
    ) -> resolved.ResolvedList:
        """
        Query and keep only exact matches.

        Backends may match loosely (prefixes, case folding). This re-checks
        every query value for equality on the mapped attributes and logs the
        outcome.

        Args:
            type_name: Object type to query.
            query: Attribute filter.
            name: Display name of the object looked for, used in messages.
            info: Overrides for the "notfound", "found" and "more" messages.
                Each is formatted with (type_name, name).

        Returns:
            The exact matches, in backend order.
        """
        messages = {**_DEFAULT_INFO, **(info or {})}
        results = self.query(type_name, query)
        exact = [
            item
            for item in results
            if all(item[key] == value for key, value in query.items())
        ]
        if not exact:
            _logger.info(messages["notfound"], type_name, name)
        elif len(exact) == 1:
            _logger.info(messages["found"], type_name, name)
        else:
            _logger.warning(messages["more"], type_name, name)
        return resolved.ResolvedList(type_name, exact, query)

    def process_error(self, message: str, *args: _typing.Any) -> _typing.NoReturn:
        """Raise a BackendFailureError from a handler."""
        raise errors.BackendFailureError(message % args if args else message)
