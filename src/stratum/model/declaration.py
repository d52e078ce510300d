"""
Object type declarations.

An ObjectTypeDeclaration describes one abstract resource type: which
operations have business-rule handlers, which data values and objects it
needs before each operation runs, and how its attribute names map to the
backend's names. Declarations are immutable; SchemaRegistry builds them.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import types as _types
import typing as _typing

import stratum.errors as errors
import stratum.utils.recursive_map as rmap

if _typing.TYPE_CHECKING:
    import stratum.core.context as context
    import stratum.process.base as process_base


class Operation(str, _enum.Enum):
    """Operations the dispatcher can run on an object type."""

    CREATE = "create"
    QUERY = "query"
    GET = "get"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: Operation | str) -> Operation:
        """
        Convert a name to an Operation.

        Raises:
            DeclarationError: If the name is not an operation.
        """
        if isinstance(value, Operation):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            known = ", ".join(op.value for op in cls)
            raise errors.DeclarationError(f"Unknown operation {value!r}. Known: {known}") from None


class DependencyKind(str, _enum.Enum):
    """What a dependency resolves to."""

    DATA = "data"
    OBJECT = "object"


class _UseController:
    """Sentinel binding: run the generic controller primitive."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "USE_CONTROLLER"


USE_CONTROLLER = _UseController()


class _NoDefault:
    __slots__ = ()

    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT: _typing.Any = _NoDefault()

Handler = _typing.Callable[
    ["process_base.ProcessContext", str, "context.CallContext"],
    _typing.Any,
]
"""Business-rule function: handler(process, type_name, context)."""

HandlerBinding = _typing.Union[Handler, _UseController]


def to_path(value: rmap.KeysLike) -> tuple[str, ...]:
    """Backend path from "a/b" text, a single key, or a sequence of keys."""
    if isinstance(value, str):
        return rmap.KeyPath.parse(value).tree
    return rmap.normalize(value)


@_dataclasses.dataclass(frozen=True)
class DependencyDeclaration:
    """A data value or object an operation needs before it runs."""

    name: str
    kind: DependencyKind
    required: bool = True
    operations: frozenset[Operation] = frozenset()
    """Operations the dependency applies to. Empty means all."""

    default_value: _typing.Any = NO_DEFAULT
    mapping: tuple[str, ...] | None = None
    """Backend path of this value in the backend payload (data only)."""

    extract_from: tuple[str, ...] | None = None
    """Take the value from an attribute of a resolved object: (type, attr...)."""

    def applies_to(self, operation: Operation) -> bool:
        return not self.operations or operation in self.operations

    @property
    def has_default(self) -> bool:
        return self.default_value is not NO_DEFAULT


@_dataclasses.dataclass(frozen=True)
class AttributeMapping:
    """
    Translation of one process-side attribute to the backend.

    backend_path None marks an undefined attribute: invisible to callers
    even if the backend exposes it.
    """

    name: str
    backend_path: tuple[str, ...] | None
    queryable: bool = False
    value_map: tuple[tuple[_typing.Any, _typing.Any], ...] = ()
    """(process value, backend value) pairs."""

    @property
    def defined(self) -> bool:
        return self.backend_path is not None

    @property
    def has_value_map(self) -> bool:
        return bool(self.value_map)

    def to_backend(self, value: _typing.Any) -> _typing.Any:
        """
        Translate a process value to its backend equivalent.

        Raises:
            KeyError: If a value map exists and has no entry for value.
        """
        if not self.value_map:
            return value
        for process_value, backend_value in self.value_map:
            if process_value == value:
                return backend_value
        raise KeyError(value)

    def from_backend(self, value: _typing.Any) -> _typing.Any:
        """Translate a backend value back; unknown values pass through."""
        for process_value, backend_value in self.value_map:
            if backend_value == value:
                return process_value
        return value


@_dataclasses.dataclass(frozen=True)
class SoftDelete:
    """Records whose status attribute is not the active value are hidden from queries."""

    attribute: str = "status"
    active: _typing.Any = "active"


DEFAULT_ATTRIBUTES = ("id", "name")


def default_attributes() -> dict[str, AttributeMapping]:
    return {
        name: AttributeMapping(name=name, backend_path=(name,), queryable=True)
        for name in DEFAULT_ATTRIBUTES
    }


@_dataclasses.dataclass(frozen=True)
class ObjectTypeDeclaration:
    """Immutable description of one object type."""

    type_name: str
    handlers: _typing.Mapping[Operation, HandlerBinding] = _dataclasses.field(
        default_factory=lambda: _types.MappingProxyType({})
    )
    dependencies: tuple[DependencyDeclaration, ...] = ()
    attributes: _typing.Mapping[str, AttributeMapping] = _dataclasses.field(
        default_factory=lambda: _types.MappingProxyType(default_attributes())
    )
    soft_delete: SoftDelete | None = None

    def handler(self, operation: Operation) -> HandlerBinding | None:
        """The bound handler, USE_CONTROLLER, or None when nothing is bound."""
        return self.handlers.get(operation)

    def dependencies_for(
        self,
        operation: Operation,
        kind: DependencyKind | None = None,
    ) -> list[DependencyDeclaration]:
        return [
            dep
            for dep in self.dependencies
            if dep.applies_to(operation) and (kind is None or dep.kind == kind)
        ]

    def dependency(self, name: str) -> DependencyDeclaration | None:
        for dep in self.dependencies:
            if dep.name == name:
                return dep
        return None

    @property
    def hdata_mapping(self) -> dict[str, tuple[str, ...]]:
        """Data dependency name -> backend payload path."""
        return {dep.name: dep.mapping for dep in self.dependencies if dep.mapping is not None}

    def attribute(self, name: str) -> AttributeMapping | None:
        return self.attributes.get(name)

    def defined_attributes(self) -> list[AttributeMapping]:
        return [attr for attr in self.attributes.values() if attr.defined]
