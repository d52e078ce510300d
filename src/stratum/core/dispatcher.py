"""
Dependency resolution and handler dispatch.

A request names an object type and an operation. The dispatcher:

1. pushes the explicit parameters as a read-only overlay on the config stack
   (nested requests see them too),
2. checks every required data dependency, including those of object
   dependencies that would have to be created, before touching a backend,
3. resolves object dependencies depth-first, reusing objects already in
   the session's working set,
4. builds a CallContext and its backend payload (hdata),
5. calls the bound process handler, or the controller primitive when the
   operation has no handler or is bound to USE_CONTROLLER,
6. wraps raw results into ResolvedObjects and updates the working set.

The dispatcher never retries; see stratum.core.retry.
"""

from __future__ import annotations

import logging as _logging
import re as _re
import typing as _typing

import stratum.constants as _constants
import stratum.controllers.base as controller_base
import stratum.core.context as context
import stratum.core.resolved as resolved
import stratum.errors as errors
import stratum.model.declaration as declaration
import stratum.model.registry as registry_mod
import stratum.process.base as process_base
import stratum.utils.recursive_map as rmap

_logger = _logging.getLogger(__name__)

Params = _typing.Optional[_typing.Mapping[str, _typing.Any]]

_DATA = declaration.DependencyKind.DATA
_OBJECT = declaration.DependencyKind.OBJECT


class Dispatcher:
    """
    Runs object operations against one controller and one config stack.

    The working set holds the latest object of each type for the lifetime of
    the dispatcher (one orchestration session); reset() clears it.

    Args:
        registry: Declared object types. Frozen on construction.
        config: Layer stack supplying data values (a Config or any LayerStack).
        controller: Backend adapter.
        process_factory: Builds the facade handed to process handlers.
            Defaults to ProcessContext.
    """

    def __init__(
        self,
        registry: registry_mod.SchemaRegistry,
        config: _typing.Any,
        controller: controller_base.Controller,
        *,
        process_factory: _typing.Callable[[Dispatcher], process_base.ProcessContext] | None = None,
    ) -> None:
        self.registry = registry
        self.config = config
        self.controller = controller
        self.working_set = context.WorkingSet()
        self._chain: list[str] = []
        registry.freeze()
        self.process = (process_factory or process_base.ProcessContext)(self)

    # =========================================================================
    # Operations (handler first, controller otherwise)
    # =========================================================================

    def create(self, type_name: str, params: Params = None) -> resolved.ResolvedObject:
        """Create an object, resolving its dependencies first."""
        return self._run(type_name, declaration.Operation.CREATE, params)

    def query(
        self,
        type_name: str,
        query: _typing.Mapping[str, _typing.Any] | None = None,
        params: Params = None,
    ) -> resolved.ResolvedList:
        """Return every object whose mapped attributes match query."""
        return self._run(type_name, declaration.Operation.QUERY, params, query=dict(query or {}))

    def get(
        self,
        type_name: str,
        identifier: _typing.Any,
        params: Params = None,
    ) -> resolved.ResolvedObject:
        """Get one object by identifier. Returns an empty object if not found."""
        return self._run(type_name, declaration.Operation.GET, params, identifier=identifier)

    def update(self, type_name: str, params: Params = None) -> resolved.ResolvedObject:
        """Push attribute changes given in params to the working-set object."""
        return self._run(type_name, declaration.Operation.UPDATE, params)

    def delete(self, type_name: str, params: Params = None) -> bool:
        """Delete the working-set object (or params[type_name]). Returns success."""
        return self._run(type_name, declaration.Operation.DELETE, params)

    # =========================================================================
    # Controller primitives (no handler)
    # =========================================================================

    def controller_create(self, type_name: str, params: Params = None) -> resolved.ResolvedObject:
        return self._run(type_name, declaration.Operation.CREATE, params, use_handler=False)

    def controller_query(
        self,
        type_name: str,
        query: _typing.Mapping[str, _typing.Any] | None = None,
        params: Params = None,
    ) -> resolved.ResolvedList:
        return self._run(
            type_name,
            declaration.Operation.QUERY,
            params,
            query=dict(query or {}),
            use_handler=False,
        )

    def controller_get(
        self,
        type_name: str,
        identifier: _typing.Any,
        params: Params = None,
    ) -> resolved.ResolvedObject:
        return self._run(
            type_name,
            declaration.Operation.GET,
            params,
            identifier=identifier,
            use_handler=False,
        )

    def controller_update(self, type_name: str, params: Params = None) -> resolved.ResolvedObject:
        return self._run(type_name, declaration.Operation.UPDATE, params, use_handler=False)

    def controller_delete(self, type_name: str, params: Params = None) -> bool:
        return self._run(type_name, declaration.Operation.DELETE, params, use_handler=False)

    def controller_refresh(self, type_name: str) -> bool:
        """
        Re-read the working-set object of type_name from the backend.

        Returns:
            True if the controller reports a change.

        Raises:
            MissingRequiredDependencyError: If no object of that type is known.
        """
        obj = self.working_set.get(type_name)
        if obj is None or obj.is_empty:
            raise errors.MissingRequiredDependencyError(
                type_name,
                "object",
                type_name=type_name,
                operation="refresh",
                message=f"no {type_name} object to refresh",
            )
        changed = self._call_backend(
            type_name, "refresh", self.controller.refresh, type_name, obj.payload
        )
        obj.refresh_attrs()
        return bool(changed)

    refresh = controller_refresh

    # =========================================================================
    # Working set
    # =========================================================================

    def register(self, obj: resolved.ResolvedObject) -> resolved.ResolvedObject:
        """Make obj the current object of its type for later dependencies."""
        if not obj.is_empty:
            self.working_set.add(obj)
            _logger.debug("Registered %s", obj.type_name)
        return obj

    def forget(self, type_name: str) -> None:
        self.working_set.remove(type_name)

    def reset(self) -> None:
        """Drop every working-set object."""
        self.working_set.clear()

    # =========================================================================
    # Request pipeline
    # =========================================================================

    def _run(
        self,
        type_name: str,
        operation: declaration.Operation,
        params: Params,
        *,
        query: dict[str, _typing.Any] | None = None,
        identifier: _typing.Any = None,
        use_handler: bool = True,
    ) -> _typing.Any:
        try:
            decl = self.registry.get_or_raise(type_name)
        except errors.UnknownObjectTypeError as e:
            raise errors.UnknownObjectTypeError(
                e.message, type_name=type_name, operation=operation.value
            ) from None

        params = dict(params or {})
        _logger.debug("Request %s %s", operation.value, type_name)
        with self.config.overlay(params):
            self._check_data(decl, operation, {type_name})
            ctx = self._prepare(decl, operation, params, query=query, identifier=identifier)
            binding = decl.handler(operation) if use_handler else None
            if binding is None or binding is declaration.USE_CONTROLLER:
                return self._primitive(decl, ctx)
            return self._handle(decl, binding, ctx)

    def _lookup(self, dep: declaration.DependencyDeclaration) -> _typing.Any:
        value = self.config.get(dep.name)
        if value is None and dep.has_default:
            value = dep.default_value
        return value

    def _check_data(
        self,
        decl: declaration.ObjectTypeDeclaration,
        operation: declaration.Operation,
        seen: set[str],
    ) -> None:
        """Fail on missing required data before any object is resolved."""
        for dep in decl.dependencies_for(operation, _DATA):
            if dep.required and dep.extract_from is None and self._lookup(dep) is None:
                raise errors.MissingRequiredDependencyError(
                    dep.name, "data", type_name=decl.type_name, operation=operation.value
                )
        for dep in decl.dependencies_for(operation, _OBJECT):
            if not dep.required or dep.name in seen or dep.name in self.working_set:
                continue
            if self.config.get(dep.name) is not None:
                continue
            seen.add(dep.name)
            sub = self.registry.get(dep.name)
            if sub is not None:
                self._check_data(sub, declaration.Operation.CREATE, seen)

    def _prepare(
        self,
        decl: declaration.ObjectTypeDeclaration,
        operation: declaration.Operation,
        params: dict[str, _typing.Any],
        *,
        query: dict[str, _typing.Any] | None,
        identifier: _typing.Any,
    ) -> context.CallContext:
        objects = self._resolve_objects(decl, operation)

        if operation in (declaration.Operation.UPDATE, declaration.Operation.DELETE):
            target = params.get(decl.type_name)
            if not isinstance(target, resolved.ResolvedObject):
                target = self.working_set.get(decl.type_name)
            if target is not None and not target.is_empty:
                objects[decl.type_name] = target

        values: dict[str, _typing.Any] = {}
        for dep in decl.dependencies_for(operation, _DATA):
            value = self._data_value(dep, objects)
            if value is None:
                if dep.required:
                    raise errors.MissingRequiredDependencyError(
                        dep.name, "data", type_name=decl.type_name, operation=operation.value
                    )
                continue
            values[dep.name] = value

        for key, value in params.items():
            if isinstance(value, resolved.ResolvedObject):
                objects.setdefault(key, value)
            elif key not in objects:
                values[key] = value

        return context.CallContext(
            decl.type_name,
            operation,
            values,
            objects,
            self._build_hdata(decl, operation, values),
            query=query,
            identifier=identifier,
        )

    def _explicit(self, name: str) -> _typing.Any:
        """Value of name in the call-parameter overlays, or None."""
        overlays = [
            layer_name
            for layer_name in self.config.layer_names()
            if layer_name.startswith(_constants.OVERLAY_PREFIX)
        ]
        if not overlays:
            return None
        return self.config.get(name, names=overlays)

    def _data_value(
        self,
        dep: declaration.DependencyDeclaration,
        objects: dict[str, resolved.ResolvedObject],
    ) -> _typing.Any:
        if dep.extract_from is None:
            return self._lookup(dep)
        # Call parameters > source object > config and default
        value = self._explicit(dep.name)
        if value is not None:
            return value
        source_type, *path = dep.extract_from
        source = objects.get(source_type) or self.working_set.get(source_type)
        if source is not None and not source.is_empty and path:
            value = self._extract(source, path)
        if value is None:
            value = self._lookup(dep)
        return value

    def _extract(self, source: resolved.ResolvedObject, path: list[str]) -> _typing.Any:
        if len(path) == 1:
            return source[path[0]]
        try:
            return self.controller.get_attr(source.payload, path)
        except (KeyError, TypeError, AttributeError):
            return None

    def _resolve_objects(
        self,
        decl: declaration.ObjectTypeDeclaration,
        operation: declaration.Operation,
    ) -> dict[str, resolved.ResolvedObject]:
        objects: dict[str, resolved.ResolvedObject] = {}
        self._chain.append(decl.type_name)
        try:
            for dep in decl.dependencies_for(operation, _OBJECT):
                obj = self._resolve_object(decl, operation, dep)
                if obj is not None:
                    objects[dep.name] = obj
        finally:
            self._chain.pop()
        return objects

    def _resolve_object(
        self,
        decl: declaration.ObjectTypeDeclaration,
        operation: declaration.Operation,
        dep: declaration.DependencyDeclaration,
    ) -> resolved.ResolvedObject | None:
        given = self.config.get(dep.name)
        if isinstance(given, resolved.ResolvedObject):
            return given
        existing = self.working_set.get(dep.name)
        if existing is not None and existing.is_empty:
            existing = None
        # An identifier naming another object wins over the working set
        if existing is not None and (given is None or existing["id"] == given):
            _logger.debug("%s: reusing %s from working set", decl.type_name, dep.name)
            return existing
        if given is None and not dep.required:
            return None

        if dep.name in self._chain:
            raise errors.DependencyCycleError(
                [*self._chain, dep.name], type_name=decl.type_name, operation=operation.value
            )
        if given is not None:
            _logger.debug("%s: getting %s '%s'", decl.type_name, dep.name, given)
            obj = self.get(dep.name, given)
        else:
            _logger.debug("%s: creating required %s", decl.type_name, dep.name)
            obj = self.create(dep.name)

        if obj.is_empty:
            if dep.required:
                raise errors.MissingRequiredDependencyError(
                    dep.name,
                    "object",
                    type_name=decl.type_name,
                    operation=operation.value,
                    message=f"required object '{dep.name}' could not be resolved",
                )
            return None
        return obj

    def _build_hdata(
        self,
        decl: declaration.ObjectTypeDeclaration,
        operation: declaration.Operation,
        values: dict[str, _typing.Any],
    ) -> dict[str, _typing.Any]:
        hdata: dict[str, _typing.Any] = {}
        for dep in decl.dependencies_for(operation, _DATA):
            if dep.name not in values:
                continue
            attr = decl.attribute(dep.name)
            path = dep.mapping
            if path is None and attr is not None and attr.defined:
                path = attr.backend_path
            if path is None:
                continue
            value = values[dep.name]
            if attr is not None and attr.has_value_map:
                try:
                    value = attr.to_backend(value)
                except KeyError:
                    raise errors.AttributeMappingError(
                        dep.name,
                        f"no backend value for {dep.name}={value!r}",
                        type_name=decl.type_name,
                        operation=operation.value,
                    ) from None
            rmap.set_path(hdata, path, value)
        return hdata

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _call_backend(
        self,
        type_name: str,
        operation: str,
        fn: _typing.Callable[..., _typing.Any],
        *args: _typing.Any,
    ) -> _typing.Any:
        """Call a handler or primitive, wrapping foreign exceptions."""
        try:
            return fn(*args)
        except errors.StratumError:
            raise
        except Exception as e:
            raise errors.BackendFailureError(
                str(e) or e.__class__.__name__, type_name=type_name, operation=operation
            ) from e

    def _wrap(
        self,
        decl: declaration.ObjectTypeDeclaration,
        payload: _typing.Any,
    ) -> resolved.ResolvedObject:
        return resolved.ResolvedObject(decl.type_name, payload, decl, self.controller)

    def _handle(
        self,
        decl: declaration.ObjectTypeDeclaration,
        handler: declaration.Handler,
        ctx: context.CallContext,
    ) -> _typing.Any:
        operation = ctx.operation
        _logger.debug("Calling %s handler for %s", operation.value, decl.type_name)
        result = self._call_backend(
            decl.type_name, operation.value, handler, self.process, decl.type_name, ctx
        )

        if operation == declaration.Operation.DELETE:
            if result:
                self._forget_target(ctx)
            return bool(result)

        if result is None:
            _logger.warning(
                "%s handler for '%s' returned nothing", operation.value, decl.type_name
            )
            if operation == declaration.Operation.QUERY:
                return resolved.ResolvedList(decl.type_name, (), ctx.query)
            return self._wrap(decl, None)

        if operation == declaration.Operation.QUERY:
            if isinstance(result, resolved.ResolvedList):
                return result
            return resolved.ResolvedList(
                decl.type_name,
                (
                    item if isinstance(item, resolved.ResolvedObject) else self._wrap(decl, item)
                    for item in result
                ),
                ctx.query,
            )

        obj = result if isinstance(result, resolved.ResolvedObject) else self._wrap(decl, result)
        if obj.type_name == decl.type_name:
            self.register(obj)
        return obj

    def _primitive(
        self,
        decl: declaration.ObjectTypeDeclaration,
        ctx: context.CallContext,
    ) -> _typing.Any:
        operation = ctx.operation
        backend_ctx = ctx.for_backend()
        type_name = decl.type_name
        _logger.debug("Controller %s: %s %s", self.controller.name, operation.value, type_name)

        if operation == declaration.Operation.CREATE:
            native = self._call_backend(
                type_name, operation.value, self.controller.create, type_name, backend_ctx
            )
            return self.register(self._wrap(decl, native))

        if operation == declaration.Operation.GET:
            native = self._call_backend(
                type_name,
                operation.value,
                self.controller.get,
                type_name,
                ctx.identifier,
                backend_ctx,
            )
            obj = self._wrap(decl, native)
            if obj.is_empty:
                _logger.debug("%s '%s' not found", type_name, ctx.identifier)
                return obj
            return self.register(obj)

        if operation == declaration.Operation.QUERY:
            return self._query(decl, ctx, backend_ctx)

        if operation == declaration.Operation.UPDATE:
            return self._update(decl, ctx, backend_ctx)

        target = self._require_target(decl, ctx)
        success = self._call_backend(
            type_name, operation.value, self.controller.delete, type_name, backend_ctx
        )
        if success:
            _logger.debug("Deleted %s", type_name)
            if self.working_set.get(type_name) is target:
                self.working_set.remove(type_name)
        return bool(success)

    def _require_target(
        self,
        decl: declaration.ObjectTypeDeclaration,
        ctx: context.CallContext,
    ) -> resolved.ResolvedObject:
        target = ctx.objects.get(decl.type_name)
        if target is None:
            raise errors.MissingRequiredDependencyError(
                decl.type_name,
                "object",
                type_name=decl.type_name,
                operation=ctx.operation.value,
                message=f"no {decl.type_name} object to {ctx.operation.value}",
            )
        return target

    def _forget_target(self, ctx: context.CallContext) -> None:
        target = ctx.objects.get(ctx.type_name)
        if target is not None and self.working_set.get(ctx.type_name) is target:
            self.working_set.remove(ctx.type_name)

    def _backend_query(
        self,
        decl: declaration.ObjectTypeDeclaration,
        ctx: context.CallContext,
    ) -> dict[controller_base.QueryKey, _typing.Any]:
        backend: dict[controller_base.QueryKey, _typing.Any] = {}
        for name, value in ctx.query.items():
            attr = decl.attribute(name)
            if attr is None or not attr.defined or not attr.queryable:
                raise errors.AttributeMappingError(
                    name,
                    f"'{name}' is not a queryable attribute",
                    type_name=decl.type_name,
                    operation=ctx.operation.value,
                )
            path = _typing.cast(tuple[str, ...], attr.backend_path)
            if attr.has_value_map and not isinstance(value, _re.Pattern):
                try:
                    value = attr.to_backend(value)
                except KeyError:
                    raise errors.AttributeMappingError(
                        name,
                        f"no backend value for {name}={value!r}",
                        type_name=decl.type_name,
                        operation=ctx.operation.value,
                    ) from None
            backend[path[0] if len(path) == 1 else path] = value
        return backend

    def _query(
        self,
        decl: declaration.ObjectTypeDeclaration,
        ctx: context.CallContext,
        backend_ctx: context.CallContext,
    ) -> resolved.ResolvedList:
        backend_query = self._backend_query(decl, ctx)
        natives = self._call_backend(
            decl.type_name,
            ctx.operation.value,
            self.controller.query,
            decl.type_name,
            backend_query,
            backend_ctx,
        )
        soft = decl.soft_delete
        check_status = soft is not None and soft.attribute not in ctx.query
        items = []
        for native in natives or ():
            obj = self._wrap(decl, native)
            if not all(
                controller_base.match_value(obj[name], expected)
                for name, expected in ctx.query.items()
            ):
                continue
            if check_status:
                status = obj[soft.attribute]  # type: ignore[union-attr]
                if status is not None and status != soft.active:  # type: ignore[union-attr]
                    continue
            items.append(obj)
        _logger.debug("Query %s %r: %d result(s)", decl.type_name, ctx.query, len(items))
        return resolved.ResolvedList(decl.type_name, items, ctx.query)

    def _update(
        self,
        decl: declaration.ObjectTypeDeclaration,
        ctx: context.CallContext,
        backend_ctx: context.CallContext,
    ) -> resolved.ResolvedObject:
        obj = self._require_target(decl, ctx)
        changed = False
        for attr in decl.defined_attributes():
            if attr.name not in ctx.values or attr.name == "id":
                continue
            wanted = ctx.values[attr.name]
            if obj[attr.name] == wanted:
                continue
            obj[attr.name] = wanted
            changed = True
        if not changed:
            _logger.debug("%s: nothing to update", decl.type_name)
            return obj

        result = self._call_backend(
            decl.type_name,
            ctx.operation.value,
            self.controller.update,
            decl.type_name,
            obj.payload,
            backend_ctx,
        )
        if result is False:
            raise errors.BackendFailureError(
                f"controller '{self.controller.name}' reported a failed update",
                type_name=decl.type_name,
                operation=ctx.operation.value,
            )
        if result is True or result is None or result is obj.payload:
            obj.refresh_attrs()
            return self.register(obj)
        return self.register(self._wrap(decl, result))
