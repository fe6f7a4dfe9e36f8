"""
In-memory storage and cache stand-ins for tests.

These implement the Collection / Queryable / CacheableQueryable
protocols closely enough to exercise DocumentModel end to end:
- equality matching plus ``$in`` and ``$text``
- inclusion / exclusion projections and ``$meta`` text scores
- multi-key sort, limit, lean snapshots
- populate of reference fields across linked collections
- TTL cache with glob-pattern clearing
"""

from __future__ import annotations

import copy
import fnmatch
import itertools
import time
from typing import Any, Optional

from docquery_sdk.schema import DocumentSchema

_MISS = object()


class LiveDocument(dict):
    """Stands in for a live, backend-bound document."""


class InMemoryCache:
    """TTL cache keyed by string, cleared by glob pattern."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[float, Any]] = {}
        self.cleared: list[str] = []
        self.hits = 0

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISS
        expires_at, value = entry
        if expires_at < time.monotonic():
            del self._entries[key]
            return _MISS
        self.hits += 1
        return copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl: float) -> None:
        self._entries[key] = (time.monotonic() + ttl, copy.deepcopy(value))

    def clear(self, pattern: str) -> None:
        self.cleared.append(pattern)
        for key in [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]:
            del self._entries[key]

    def keys(self) -> list[str]:
        return list(self._entries)


class InMemoryQuery:
    """Chainable read without caching support."""

    def __init__(self, collection: InMemoryCollection, mode: str, query: dict[str, Any]) -> None:
        self._collection = collection
        self._mode = mode
        self._query = query
        self.projection: Optional[dict[str, Any]] = None
        self.applied_limit: Optional[int] = None
        self.applied_sort: Optional[dict[str, Any]] = None
        self.populated: list[Any] = []
        self.is_lean = False

    def select(self, projection: dict[str, Any]) -> InMemoryQuery:
        self.projection = projection
        return self

    def limit(self, count: int) -> InMemoryQuery:
        self.applied_limit = count
        return self

    def sort(self, spec: dict[str, Any]) -> InMemoryQuery:
        self.applied_sort = spec
        return self

    def populate(self, node: Any) -> InMemoryQuery:
        self.populated.append(node)
        return self

    def lean(self) -> InMemoryQuery:
        self.is_lean = True
        return self

    async def exec(self) -> Any:
        self._collection.queries.append(self)
        if self._collection.read_error is not None:
            raise self._collection.read_error
        return self._run()

    def _run(self) -> Any:
        matched = [d for d in self._collection.documents.values() if self._matches(d)]
        if self._mode == "count":
            return len(matched)

        scored = [(self._score(d), d) for d in matched]
        scored = self._sorted(scored)
        if self._mode == "one":
            scored = scored[:1]
        elif self.applied_limit is not None:
            scored = scored[: self.applied_limit]

        results = [self._shape(doc, score) for score, doc in scored]
        if self._mode == "one":
            return results[0] if results else None
        return results

    def _matches(self, doc: dict[str, Any]) -> bool:
        for key, expected in self._query.items():
            if key == "$text":
                if self._score(doc) <= 0:
                    return False
            elif isinstance(expected, dict) and "$in" in expected:
                if doc.get(key) not in expected["$in"]:
                    return False
            elif doc.get(key) != expected:
                return False
        return True

    def _score(self, doc: dict[str, Any]) -> float:
        text = self._query.get("$text")
        if not text:
            return 0
        terms = str(text.get("$search", "")).lower().split()
        words = " ".join(str(v) for v in doc.values() if isinstance(v, str)).lower().split()
        return float(sum(words.count(term) for term in terms))

    def _sorted(self, scored: list[tuple[float, dict[str, Any]]]) -> list[tuple[float, dict[str, Any]]]:
        if not self.applied_sort:
            return scored
        for key, direction in reversed(list(self.applied_sort.items())):
            if isinstance(direction, dict):
                scored = sorted(scored, key=lambda item: item[0], reverse=True)
            else:
                scored = sorted(
                    scored,
                    key=lambda item: (item[1].get(key) is None, item[1].get(key)),
                    reverse=direction == -1,
                )
        return scored

    def _shape(self, doc: dict[str, Any], score: float) -> dict[str, Any]:
        result = _project(doc, self.projection)
        if self.projection and any(isinstance(v, dict) for v in self.projection.values()):
            for name, value in self.projection.items():
                if isinstance(value, dict) and value.get("$meta") == "textScore":
                    result[name] = score
        for node in self.populated:
            self._collection.populate_into(result, node)
        if not self.is_lean:
            return LiveDocument(result)
        return result


class CachingQuery(InMemoryQuery):
    """Chainable read that can cache its result."""

    def __init__(self, collection: InMemoryCollection, mode: str, query: dict[str, Any]) -> None:
        super().__init__(collection, mode, query)
        self.cache_key: Optional[str] = None
        self.cache_ttl: Optional[float] = None

    def cache(self, ttl: float, key: str) -> CachingQuery:
        self.cache_ttl = ttl
        self.cache_key = key
        return self

    async def exec(self) -> Any:
        store = self._collection.cache
        if self.cache_key is not None and store is not None:
            cached = store.get(self.cache_key)
            if cached is not _MISS:
                return cached
        result = await super().exec()
        if self.cache_key is not None and store is not None:
            store.set(self.cache_key, result, self.cache_ttl or 0)
        return copy.deepcopy(result)


class InMemoryCollection:
    """Dictionary-backed collection for one schema."""

    def __init__(self, schema: DocumentSchema, cache: Optional[InMemoryCache] = None) -> None:
        self._schema = schema
        self.cache = cache
        self.documents: dict[Any, dict[str, Any]] = {}
        self.peers: dict[str, InMemoryCollection] = {}
        self.queries: list[InMemoryQuery] = []
        self.read_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self._ids = itertools.count(1)

    @property
    def schema(self) -> DocumentSchema:
        return self._schema

    def link(self, *others: InMemoryCollection) -> None:
        """Make ``others`` resolvable as populate targets."""
        for other in others:
            self.peers[other.schema.name] = other

    def find(self, query: dict[str, Any]) -> InMemoryQuery:
        return self._query("many", query)

    def find_one(self, query: dict[str, Any]) -> InMemoryQuery:
        return self._query("one", query)

    def count(self, query: dict[str, Any]) -> InMemoryQuery:
        return self._query("count", query)

    async def insert(self, document: dict[str, Any]) -> dict[str, Any]:
        if self.write_error is not None:
            raise self.write_error
        doc = copy.deepcopy(document)
        if "_id" not in doc:
            doc["_id"] = next(i for i in self._ids if i not in self.documents)
        doc.setdefault("__v", 0)
        self.documents[doc["_id"]] = doc
        return copy.deepcopy(doc)

    async def save(self, document: dict[str, Any]) -> dict[str, Any]:
        if self.write_error is not None:
            raise self.write_error
        if document.get("_id") not in self.documents:
            raise KeyError(document.get("_id"))
        # Fields missing from a projected document keep their stored value
        doc = {**self.documents[document["_id"]], **copy.deepcopy(document)}
        doc["__v"] = doc.get("__v", 0) + 1
        self.documents[doc["_id"]] = doc
        return copy.deepcopy(doc)

    async def remove(self, identifier: Any) -> bool:
        if self.write_error is not None:
            raise self.write_error
        return self.documents.pop(identifier, None) is not None

    def populate_into(self, doc: dict[str, Any], node: Any) -> None:
        """Replace the reference at ``node.path`` with the referenced document."""
        definition = self._schema.resolve(node.path)
        target = self.peers.get(definition.ref) if definition is not None else None
        if target is None or node.path not in doc:
            return
        ref_id = doc[node.path]
        referenced = target.documents.get(ref_id)
        if referenced is None:
            doc[node.path] = None
            return
        projection = dict(node.select) or None
        expanded = _project(referenced, projection)
        for child in node.children.values():
            target.populate_into(expanded, child)
        doc[node.path] = expanded

    def _query(self, mode: str, query: dict[str, Any]) -> InMemoryQuery:
        if self.cache is not None:
            return CachingQuery(self, mode, query)
        return InMemoryQuery(self, mode, query)


def _project(doc: dict[str, Any], projection: Optional[dict[str, Any]]) -> dict[str, Any]:
    plain = {k: v for k, v in (projection or {}).items() if not isinstance(v, dict)}
    if not plain:
        return copy.deepcopy(doc)
    if any(v == 1 for v in plain.values()):
        result = {"_id": copy.deepcopy(doc["_id"])} if "_id" in doc else {}
        for name, v in plain.items():
            if v == 1:
                _copy_path(doc, result, name.split("."))
        return result
    result = copy.deepcopy(doc)
    for name in plain:
        _drop_path(result, name.split("."))
    return result


def _copy_path(source: dict[str, Any], target: dict[str, Any], segments: list[str]) -> None:
    head, rest = segments[0], segments[1:]
    if head not in source:
        return
    if not rest:
        target[head] = copy.deepcopy(source[head])
    elif isinstance(source[head], dict):
        _copy_path(source[head], target.setdefault(head, {}), rest)


def _drop_path(doc: dict[str, Any], segments: list[str]) -> None:
    head, rest = segments[0], segments[1:]
    if not rest:
        doc.pop(head, None)
    elif isinstance(doc.get(head), dict):
        _drop_path(doc[head], rest)
