"""
Schema types for the docquery SDK.

This module provides the document schema declaration:
- FieldKind: Supported field types
- FieldDef: Individual field definition
- DocumentSchema: Definition of a document model

A DocumentSchema answers the schema-introspection questions the
classifier asks (does a dotted path exist, is it a reference, which
schema does a reference point at). Embedded sub-documents are declared
with nested fields so dotted paths can be resolved through them.

Invariants:
    - Field names are unique within a schema or sub-document
    - A reference field names its target schema
    - Schemas are immutable once declared

Example:
    >>> User = DocumentSchema(
    ...     name="User",
    ...     fields=(
    ...         field("email", "str", required=True),
    ...         field("name", "str"),
    ...     ),
    ... )
    >>> Post = DocumentSchema(
    ...     name="Post",
    ...     fields=(
    ...         field("title", "str"),
    ...         field("author", "ref", ref="User"),
    ...     ),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import SchemaError
from .paths import FieldPath

if TYPE_CHECKING:
    from .registry import SchemaRegistry

# Implicit fields every stored document carries
ID_FIELD = "_id"
VERSION_FIELD = "__v"


class FieldKind(Enum):
    """Supported field types."""

    STRING = "str"
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "bool"
    TIMESTAMP = "timestamp"
    JSON = "json"
    OBJECT = "object"
    REFERENCE = "ref"
    LIST_STRING = "list_str"
    LIST_INT = "list_int"
    LIST_REF = "list_ref"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string to FieldKind."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValueError(f"Invalid field kind: {value}")

    @property
    def is_reference(self) -> bool:
        return self in (FieldKind.REFERENCE, FieldKind.LIST_REF)


@dataclass(frozen=True)
class FieldDef:
    """Field definition within a document schema.

    Attributes:
        name: Field name (one path segment)
        kind: Data type
        required: Whether field is required
        default: Default value
        ref: Target schema name for reference fields
        fields: Child fields for embedded objects
        description: Documentation
    """

    name: str
    kind: FieldKind
    required: bool = False
    default: Any = None
    ref: str | None = None
    fields: tuple[FieldDef, ...] = dataclass_field(default_factory=tuple)
    description: str = ""

    def __post_init__(self) -> None:
        """Validate field definition."""
        if not self.name or "." in self.name:
            raise ValueError(f"Invalid field name: {self.name!r}")
        if self.kind.is_reference and not self.ref:
            raise ValueError(f"ref required for reference field '{self.name}'")
        if self.fields and self.kind != FieldKind.OBJECT:
            raise ValueError(f"Only object fields can declare child fields ('{self.name}')")
        _check_unique(self.fields, self.name)

    @property
    def is_reference(self) -> bool:
        return self.kind.is_reference

    def get_child(self, name: str) -> FieldDef | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {"name": self.name, "kind": self.kind.value}
        if self.required:
            result["required"] = True
        if self.default is not None:
            result["default"] = self.default
        if self.ref:
            result["ref"] = self.ref
        if self.fields:
            result["fields"] = [f.to_dict() for f in self.fields]
        if self.description:
            result["description"] = self.description
        return result


def field(
    name: str,
    kind: str | FieldKind,
    *,
    required: bool = False,
    default: Any = None,
    ref: str | None = None,
    fields: tuple[FieldDef, ...] = (),
    description: str = "",
) -> FieldDef:
    """Convenience function to create a FieldDef.

    Example:
        >>> title = field("title", "str", required=True)
        >>> author = field("author", "ref", ref="User")
        >>> address = field("address", "object", fields=(field("city", "str"),))
    """
    if isinstance(kind, str):
        kind = FieldKind.from_str(kind)
    return FieldDef(
        name=name,
        kind=kind,
        required=required,
        default=default,
        ref=ref,
        fields=tuple(fields),
        description=description,
    )


@dataclass(frozen=True)
class DocumentSchema:
    """Definition of a document model.

    The schema resolves dotted paths through embedded objects. References
    are resolved through the registry the schema is bound to, which lets
    the classifier chain populate instructions across models.

    Attributes:
        name: Model name
        fields: Top-level field definitions
        description: Documentation
    """

    name: str
    fields: tuple[FieldDef, ...] = dataclass_field(default_factory=tuple)
    description: str = ""
    registry: SchemaRegistry | None = dataclass_field(
        default=None, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        """Validate document schema."""
        if not self.name:
            raise ValueError("Document schema name cannot be empty")
        _check_unique(self.fields, self.name)

    def resolve(self, path: str) -> FieldDef | None:
        """Resolve a dotted path to its field definition."""
        if path in _IMPLICIT_FIELDS:
            return _IMPLICIT_FIELDS[path]

        parsed = FieldPath.parse(path)
        if parsed is None:
            return None

        current: FieldDef | None = self.get_field(parsed.head)
        for segment in parsed.segments[1:]:
            if current is None or current.kind != FieldKind.OBJECT:
                return None
            current = current.get_child(segment)
        return current

    def get_field(self, name: str) -> FieldDef | None:
        """Get top-level field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def field_names(self, path: str | None = None) -> list[str]:
        """Get top-level field names, or the children of an object field."""
        if path is None:
            return [f.name for f in self.fields]
        resolved = self.resolve(path)
        if resolved is None or resolved.kind != FieldKind.OBJECT:
            return []
        return [f.name for f in resolved.fields]

    def field_exists(self, path: str) -> bool:
        return self.resolve(path) is not None

    def is_reference(self, path: str) -> bool:
        resolved = self.resolve(path)
        return resolved is not None and resolved.is_reference

    def referenced_schema(self, path: str) -> DocumentSchema | None:
        """Schema a reference path points at, if the registry knows it."""
        resolved = self.resolve(path)
        if resolved is None or not resolved.is_reference or self.registry is None:
            return None
        return self.registry.get_schema(resolved.ref)

    def bind(self, registry: SchemaRegistry) -> DocumentSchema:
        """Return a copy bound to ``registry`` for reference resolution."""
        return DocumentSchema(
            name=self.name,
            fields=self.fields,
            description=self.description,
            registry=registry,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "fields": [f.to_dict() for f in self.fields],
            "description": self.description,
        }

    def __hash__(self) -> int:
        return hash(self.name)


def _check_unique(fields: tuple[FieldDef, ...], owner: str) -> None:
    names = [f.name for f in fields]
    if len(names) != len(set(names)):
        raise SchemaError(f"Duplicate field name in '{owner}'", schema_name=owner)


_IMPLICIT_FIELDS = {
    ID_FIELD: FieldDef(name=ID_FIELD, kind=FieldKind.STRING),
    VERSION_FIELD: FieldDef(name=VERSION_FIELD, kind=FieldKind.INTEGER),
}
