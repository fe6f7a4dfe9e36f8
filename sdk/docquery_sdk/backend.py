"""
Collaborator protocols for the storage backend.

This module defines the interfaces a host application implements to
plug its document store into a DocumentModel:
- SchemaIntrospector: answers field-path questions about a model
- Queryable: a chainable, lazily executed read
- CacheableQueryable: optional caching extension of Queryable
- Collection: entry point for reads and writes of one model

Durability contract:
    - insert(), save() and remove() return only after the write is
      durably applied; cache invalidation runs after they return

Error contract:
    - Backend exceptions are propagated to the caller unchanged

How to change safely:
    - Protocol changes require updating every backend
    - Add new capabilities as separate optional protocols, the way
      CacheableQueryable extends Queryable
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Optional, Protocol, runtime_checkable

Document = dict[str, Any]


@runtime_checkable
class SchemaIntrospector(Protocol):
    """Field-path introspection for one model."""

    @abstractmethod
    def field_exists(self, path: str) -> bool:
        """Whether the dotted path exists in the schema."""
        ...

    @abstractmethod
    def is_reference(self, path: str) -> bool:
        """Whether the dotted path is a reference to another model."""
        ...

    @abstractmethod
    def referenced_schema(self, path: str) -> Optional[SchemaIntrospector]:
        """Introspector for the model a reference path points at, if known."""
        ...

    @abstractmethod
    def field_names(self, path: Optional[str] = None) -> list[str]:
        """Top-level field names, or child names of the object at ``path``."""
        ...


@runtime_checkable
class Queryable(Protocol):
    """A read operation built by chaining and run by exec().

    Every chaining method returns the queryable itself.

    Example:
        >>> docs = await collection.find({}).select({"name": 1}).limit(10).lean().exec()
    """

    @abstractmethod
    def select(self, projection: dict[str, Any]) -> Queryable:
        """Restrict the returned fields."""
        ...

    @abstractmethod
    def limit(self, count: int) -> Queryable:
        """Cap the number of returned documents."""
        ...

    @abstractmethod
    def sort(self, spec: dict[str, Any]) -> Queryable:
        """Order results. Values are 1, -1 or a ``$meta`` directive."""
        ...

    @abstractmethod
    def populate(self, node: Any) -> Queryable:
        """Expand a reference field (receives a PopulateNode)."""
        ...

    @abstractmethod
    def lean(self) -> Queryable:
        """Return plain detached snapshots instead of live documents."""
        ...

    @abstractmethod
    async def exec(self) -> Any:
        """Run the read and return its result.

        Raises:
            Any backend error, unchanged
        """
        ...


@runtime_checkable
class CacheableQueryable(Queryable, Protocol):
    """Queryable that can cache its result under a key for a TTL."""

    @abstractmethod
    def cache(self, ttl: float, key: str) -> CacheableQueryable:
        """Cache the result of exec() under ``key`` for ``ttl`` seconds."""
        ...


@runtime_checkable
class Collection(Protocol):
    """Storage collaborator for one model."""

    @property
    @abstractmethod
    def schema(self) -> SchemaIntrospector:
        """Introspector for this collection's documents."""
        ...

    @abstractmethod
    def find(self, query: dict[str, Any]) -> Queryable:
        """Read many documents matching ``query``."""
        ...

    @abstractmethod
    def find_one(self, query: dict[str, Any]) -> Queryable:
        """Read the first document matching ``query`` (or None)."""
        ...

    @abstractmethod
    def count(self, query: dict[str, Any]) -> Queryable:
        """Count documents matching ``query``."""
        ...

    @abstractmethod
    async def insert(self, document: Document) -> Document:
        """Persist a new document and return it with its ``_id``."""
        ...

    @abstractmethod
    async def save(self, document: Document) -> Document:
        """Persist ``document`` over the stored one with the same ``_id``.

        Fields absent from a projected document keep their stored value.
        """
        ...

    @abstractmethod
    async def remove(self, identifier: Any) -> bool:
        """Delete a document by ``_id``. Returns whether it existed."""
        ...
