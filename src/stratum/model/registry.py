"""
Schema registry for object type declarations.

Declarations are assembled with a builder at load time and committed to the
registry as immutable records:

    registry = SchemaRegistry()
    with registry.define("student") as student:
        student.handle("create", create_student)
        student.handle("query")                 # generic controller query
        student.needs_data("student_name")
        student.optional().needs_data("course")
        student.attr_mapping("course", "training")

Defining an existing type again starts from its committed declaration and
replaces it on commit, so several modules can contribute to one type.
After freeze() no further declarations are accepted.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import logging as _logging
import types as _types
import typing as _typing

import stratum.errors as errors
import stratum.model.declaration as declaration
import stratum.utils.recursive_map as rmap

_logger = _logging.getLogger(__name__)

Operations = _typing.Union[str, declaration.Operation, _typing.Iterable[_typing.Any], None]


def _operations(value: Operations) -> frozenset[declaration.Operation]:
    if value is None:
        return frozenset()
    if isinstance(value, (str, declaration.Operation)):
        return frozenset({declaration.Operation.parse(value)})
    return frozenset(declaration.Operation.parse(op) for op in value)


class ObjectTypeBuilder:
    """
    Accumulates one object type's declaration.

    Use as a context manager (commits on a clean exit) or call commit().
    Builder methods return the builder so calls can be chained.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        type_name: str,
        base: declaration.ObjectTypeDeclaration | None = None,
    ) -> None:
        if not type_name:
            raise errors.DeclarationError("Object type name must not be empty")
        self._registry = registry
        self.type_name = type_name
        self._handlers: dict[declaration.Operation, declaration.HandlerBinding] = (
            dict(base.handlers) if base else {}
        )
        self._dependencies: dict[str, declaration.DependencyDeclaration] = (
            {dep.name: dep for dep in base.dependencies} if base else {}
        )
        self._attributes: dict[str, declaration.AttributeMapping] = (
            dict(base.attributes) if base else declaration.default_attributes()
        )
        self._soft_delete = base.soft_delete if base else None
        self._required_default = True

    def __enter__(self) -> ObjectTypeBuilder:
        return self

    def __exit__(self, exc_type: _typing.Any, exc: _typing.Any, tb: _typing.Any) -> None:
        if exc_type is None:
            self.commit()

    # =========================================================================
    # Handlers
    # =========================================================================

    def handle(
        self,
        operation: declaration.Operation | str,
        handler: declaration.HandlerBinding = declaration.USE_CONTROLLER,
    ) -> ObjectTypeBuilder:
        """Bind a handler (or the generic controller primitive) to an operation."""
        if handler is not declaration.USE_CONTROLLER and not callable(handler):
            raise errors.DeclarationError(
                f"{self.type_name}: handler for {operation!r} is not callable"
            )
        self._handlers[declaration.Operation.parse(operation)] = handler
        return self

    def handle_all(self, **handlers: declaration.HandlerBinding) -> ObjectTypeBuilder:
        """Bind several operations at once: handle_all(create=fn, query=USE_CONTROLLER)."""
        for operation, handler in handlers.items():
            self.handle(operation, handler)
        return self

    # =========================================================================
    # Dependencies
    # =========================================================================

    def required(self) -> ObjectTypeBuilder:
        """Make later needs_* calls required by default."""
        self._required_default = True
        return self

    def optional(self) -> ObjectTypeBuilder:
        """Make later needs_* calls optional by default."""
        self._required_default = False
        return self

    def _add_dependency(self, dep: declaration.DependencyDeclaration) -> None:
        existing = self._dependencies.get(dep.name)
        if existing is not None and existing.kind != dep.kind:
            raise errors.DeclarationError(
                f"{self.type_name}: '{dep.name}' already declared as {existing.kind.value}"
            )
        self._dependencies[dep.name] = dep

    def needs_data(
        self,
        name: str,
        *,
        required: bool | None = None,
        operations: Operations = None,
        default_value: _typing.Any = declaration.NO_DEFAULT,
        mapping: rmap.KeysLike | None = None,
        extract_from: rmap.KeysLike | None = None,
    ) -> ObjectTypeBuilder:
        """
        Declare a data value needed before the operations run.

        Args:
            name: Configuration key (or explicit parameter) name.
            required: Fail dispatch when the value is absent. Defaults to the
                builder's current required/optional mode.
            operations: Operations the value applies to. Default: all.
            default_value: Used when neither parameters nor config hold the key.
            mapping: Backend path the value is copied to in the backend payload.
            extract_from: (object type, attribute...) to take the value from.
        """
        self._add_dependency(
            declaration.DependencyDeclaration(
                name=name,
                kind=declaration.DependencyKind.DATA,
                required=self._required_default if required is None else required,
                operations=_operations(operations),
                default_value=default_value,
                mapping=declaration.to_path(mapping) if mapping is not None else None,
                extract_from=(
                    declaration.to_path(extract_from) if extract_from is not None else None
                ),
            )
        )
        return self

    def needs_object(
        self,
        name: str,
        *,
        required: bool | None = None,
        operations: Operations = None,
    ) -> ObjectTypeBuilder:
        """Declare another object type that must be resolved before the operations run."""
        if name == self.type_name:
            raise errors.DeclarationError(f"{self.type_name}: an object cannot depend on itself")
        self._add_dependency(
            declaration.DependencyDeclaration(
                name=name,
                kind=declaration.DependencyKind.OBJECT,
                required=self._required_default if required is None else required,
                operations=_operations(operations),
            )
        )
        return self

    def hdata(self, name: str, backend_path: rmap.KeysLike) -> ObjectTypeBuilder:
        """
        Copy a data value into the backend payload at backend_path.

        Declares name as an optional data dependency if it is not declared yet.
        """
        path = declaration.to_path(backend_path)
        existing = self._dependencies.get(name)
        if existing is None:
            self.needs_data(name, required=False, mapping=path)
        elif existing.kind != declaration.DependencyKind.DATA:
            raise errors.DeclarationError(f"{self.type_name}: '{name}' is not a data dependency")
        else:
            self._dependencies[name] = _dataclasses.replace(existing, mapping=path)
        return self

    # =========================================================================
    # Attributes
    # =========================================================================

    def _replace_attribute(self, name: str, **changes: _typing.Any) -> None:
        current = self._attributes.get(name) or declaration.AttributeMapping(
            name=name, backend_path=(name,)
        )
        self._attributes[name] = _dataclasses.replace(current, **changes)

    def attribute(
        self,
        name: str,
        backend_path: rmap.KeysLike | None = None,
        *,
        queryable: bool = False,
    ) -> ObjectTypeBuilder:
        """Declare an attribute. The backend path defaults to the attribute name."""
        path = declaration.to_path(backend_path) if backend_path is not None else (name,)
        self._replace_attribute(name, backend_path=path, queryable=queryable)
        return self

    def query_attribute(self, name: str) -> ObjectTypeBuilder:
        """Declare a queryable attribute stored under its own name."""
        return self.attribute(name, queryable=True)

    def attr_mapping(
        self,
        name: str,
        backend_path: rmap.KeysLike,
        *,
        queryable: bool = True,
    ) -> ObjectTypeBuilder:
        """Map an attribute to a (possibly nested) backend path."""
        return self.attribute(name, backend_path, queryable=queryable)

    def attr_value_mapping(
        self,
        name: str,
        value_map: _typing.Mapping[_typing.Any, _typing.Any],
    ) -> ObjectTypeBuilder:
        """Declare process value -> backend value equivalences for an attribute."""
        self._replace_attribute(name, value_map=tuple(value_map.items()))
        return self

    def undefine_attribute(self, name: str) -> ObjectTypeBuilder:
        """Hide an attribute from callers even when the backend exposes it."""
        self._attributes[name] = declaration.AttributeMapping(name=name, backend_path=None)
        return self

    def soft_delete(
        self,
        attribute: str = "status",
        active: _typing.Any = "active",
    ) -> ObjectTypeBuilder:
        """Hide records whose attribute is not the active value from queries."""
        self._soft_delete = declaration.SoftDelete(attribute=attribute, active=active)
        if attribute not in self._attributes:
            self._replace_attribute(attribute, queryable=True)
        return self

    # =========================================================================
    # Build
    # =========================================================================

    def build(self) -> declaration.ObjectTypeDeclaration:
        return declaration.ObjectTypeDeclaration(
            type_name=self.type_name,
            handlers=_types.MappingProxyType(dict(self._handlers)),
            dependencies=tuple(self._dependencies.values()),
            attributes=_types.MappingProxyType(dict(self._attributes)),
            soft_delete=self._soft_delete,
        )

    def commit(self) -> declaration.ObjectTypeDeclaration:
        """Build the declaration and store it in the registry."""
        decl = self.build()
        self._registry.register(decl)
        return decl


class SchemaRegistry:
    """
    Registry of object type declarations.

    Types are looked up by name at dispatch time.
    """

    def __init__(self) -> None:
        self._types: dict[str, declaration.ObjectTypeDeclaration] = {}
        self._frozen = False

    def define(self, type_name: str) -> ObjectTypeBuilder:
        """Start (or extend) the declaration of an object type."""
        if self._frozen:
            raise errors.DeclarationError(f"Registry is frozen; cannot define {type_name!r}")
        return ObjectTypeBuilder(self, type_name, self._types.get(type_name))

    def register(self, decl: declaration.ObjectTypeDeclaration) -> None:
        """
        Store a declaration, replacing any previous one for the same type.

        Raises:
            DeclarationError: If the registry is frozen.
        """
        if self._frozen:
            raise errors.DeclarationError(
                f"Registry is frozen; cannot register {decl.type_name!r}"
            )
        action = "Extended" if decl.type_name in self._types else "Declared"
        self._types[decl.type_name] = decl
        _logger.debug("%s object type '%s'", action, decl.type_name)

    def freeze(self) -> None:
        """Reject further declarations."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, type_name: str) -> declaration.ObjectTypeDeclaration | None:
        return self._types.get(type_name)

    def get_or_raise(self, type_name: str) -> declaration.ObjectTypeDeclaration:
        """
        Get a declaration by type name.

        Raises:
            UnknownObjectTypeError: If the type is not declared.
        """
        decl = self._types.get(type_name)
        if decl is None:
            available = ", ".join(sorted(self._types)) or "(none)"
            raise errors.UnknownObjectTypeError(
                f"'{type_name}' is not a known object type. Available: {available}",
                type_name=type_name,
            )
        return decl

    def list_names(self) -> list[str]:
        return sorted(self._types)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> _typing.Iterator[declaration.ObjectTypeDeclaration]:
        return iter(self._types.values())
