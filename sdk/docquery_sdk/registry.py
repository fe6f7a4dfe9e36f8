"""
Schema registry for the docquery SDK.

This module provides a local schema registry for:
- Registering document schemas
- Schema lookup by name (used to chain populate instructions across
  reference fields)
- Schema fingerprinting

The registry is frozen at startup to prevent runtime modifications.

Example:
    >>> from docquery_sdk import get_registry, DocumentSchema, field
    >>>
    >>> User = DocumentSchema(name="User", fields=(field("email", "str"),))
    >>> registry = get_registry()
    >>> User = registry.register_schema(User)
"""

from __future__ import annotations

import hashlib
import json
import threading
from collections.abc import Iterator

from .errors import SchemaError
from .schema import DocumentSchema, FieldDef

# Global registry
_global_registry: SchemaRegistry | None = None
_registry_lock = threading.Lock()


class RegistryFrozenError(Exception):
    """Registry is frozen and cannot be modified."""

    pass


class DuplicateRegistrationError(Exception):
    """Schema with this name is already registered."""

    pass


class SchemaRegistry:
    """Local schema registry.

    Registered schemas are bound to the registry, so a reference field
    declared as ``ref="User"`` resolves to the registered ``User`` schema
    when the classifier walks past it.

    Example:
        >>> registry = SchemaRegistry()
        >>> User = registry.register_schema(User)
        >>> Post = registry.register_schema(Post)
        >>> registry.freeze()
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._schemas: dict[str, DocumentSchema] = {}
        self._frozen = False
        self._fingerprint: str | None = None
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        """Whether registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> str | None:
        """Schema fingerprint (available after freeze)."""
        return self._fingerprint

    def register_schema(self, schema: DocumentSchema) -> DocumentSchema:
        """Register a document schema.

        Args:
            schema: DocumentSchema to register

        Returns:
            The schema bound to this registry

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If the name is already registered
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Cannot register: registry is frozen")

            if schema.name in self._schemas:
                raise DuplicateRegistrationError(
                    f"name '{schema.name}' already registered"
                )

            bound = schema.bind(self)
            self._schemas[schema.name] = bound
            return bound

    def get_schema(self, name: str | None) -> DocumentSchema | None:
        """Get schema by name."""
        if name is None:
            return None
        return self._schemas.get(name)

    def schemas(self) -> Iterator[DocumentSchema]:
        """Iterate over all schemas."""
        yield from self._schemas.values()

    def freeze(self) -> str:
        """Check references, freeze registry and compute fingerprint.

        Returns:
            Schema fingerprint

        Raises:
            RegistryFrozenError: If already frozen
            SchemaError: If a reference points at an unregistered schema
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")

            for schema in self._schemas.values():
                self._check_references(schema.name, schema.fields)

            self._fingerprint = self._compute_fingerprint()
            self._frozen = True
            return self._fingerprint

    def _check_references(self, owner: str, fields: tuple[FieldDef, ...]) -> None:
        for f in fields:
            if f.is_reference and f.ref not in self._schemas:
                raise SchemaError(
                    f"Field '{f.name}' of '{owner}' references unknown schema '{f.ref}'",
                    schema_name=owner,
                )
            self._check_references(owner, f.fields)

    def _compute_fingerprint(self) -> str:
        """Compute SHA-256 fingerprint."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        hash_bytes = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return f"sha256:{hash_bytes}"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "schemas": [self._schemas[name].to_dict() for name in sorted(self._schemas)],
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)


def get_registry() -> SchemaRegistry:
    """Get the global schema registry."""
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            _global_registry = SchemaRegistry()
        return _global_registry


def register_schema(schema: DocumentSchema) -> DocumentSchema:
    """Register a schema in the global registry."""
    return get_registry().register_schema(schema)


def reset_registry() -> None:
    """Reset the global registry (for testing only)."""
    global _global_registry
    with _registry_lock:
        _global_registry = None
