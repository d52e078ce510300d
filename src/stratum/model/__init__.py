"""
Object model: immutable object type declarations and the registry that builds them.
"""

from stratum.model.declaration import (
    NO_DEFAULT,
    USE_CONTROLLER,
    AttributeMapping,
    DependencyDeclaration,
    DependencyKind,
    Handler,
    ObjectTypeDeclaration,
    Operation,
    SoftDelete,
)
from stratum.model.registry import ObjectTypeBuilder, SchemaRegistry

__all__ = [
    "NO_DEFAULT",
    "USE_CONTROLLER",
    "AttributeMapping",
    "DependencyDeclaration",
    "DependencyKind",
    "Handler",
    "ObjectTypeBuilder",
    "ObjectTypeDeclaration",
    "Operation",
    "SchemaRegistry",
    "SoftDelete",
]
