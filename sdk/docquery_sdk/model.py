"""
Query helpers for a registered document model.

This module provides the main interface:
- DocumentModel: list/get/number_of reads and patch/create/remove writes
- register_model: validate options and bind a collection

Example:
    >>> Items = register_model(collection, model_name="Item", common_fields=["name"])
    >>> items = await Items.list({"price": {"$lt": 10}}, ["price", "seller.name"], limit=20)
    >>> item = await Items.get(items[0]["_id"])
    >>> item = await Items.patch(item, {"price": 12})

Invariants:
    - Every read projects the common fields and never a secret field
    - list() never returns more than the policy limit
    - Live (non-lean) results are never cached
    - Cache invalidation runs once after every successful write, never
      before it, and never raises
    - Backend errors reach the caller unchanged
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any, Optional

from .backend import CacheableQueryable, Collection, Document, Queryable
from .cache import CacheOperation, resolve_cache
from .classifier import FieldClassifier, FieldSelection
from .errors import ConfigurationError
from .invalidation import InvalidationDispatcher
from .policy import FieldPolicy, build_policy
from .schema import ID_FIELD

logger = logging.getLogger(__name__)

MAX_SAFE_INTEGER = 2**53 - 1

TEXT_SEARCH_OPERATOR = "$text"
SCORE_FIELD = "score"
TEXT_SCORE = {"$meta": "textScore"}


def to_safe_int(value: Any) -> Optional[int]:
    """Coerce ``value`` to an integer within the safe integer range.

    Returns None for values that are not numbers or numeric strings.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, int):
            number = value
        elif isinstance(value, float):
            number = int(value)
        elif isinstance(value, str):
            number = int(float(value.strip()))
        else:
            return None
    except (ValueError, OverflowError):
        return None
    return max(-MAX_SAFE_INTEGER, min(number, MAX_SAFE_INTEGER))


def clamp_limit(requested: Any, maximum: int) -> int:
    """Limit to apply for a list() call.

    Non-positive or invalid values fall back to ``maximum``; anything
    larger than ``maximum`` is clamped to it.
    """
    number = to_safe_int(requested)
    if number is None or number <= 0:
        return maximum
    return min(number, maximum)


def normalize_sort(sort: Any) -> Optional[dict[str, Any]]:
    """Normalize sort directions to 1 (positive) or -1.

    ``$meta`` directives such as a text score pass through unchanged.
    """
    if not sort:
        return None
    items = sort.items() if isinstance(sort, Mapping) else sort
    normalized: dict[str, Any] = {}
    for key, direction in items:
        if isinstance(direction, Mapping):
            normalized[key] = dict(direction)
        else:
            normalized[key] = 1 if _is_positive(direction) else -1
    return normalized


def _is_positive(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value > 0
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return False
        return not math.isnan(number) and number > 0
    return False


def is_text_search(query: Mapping[str, Any]) -> bool:
    """Whether the query carries a free-text search predicate."""
    return TEXT_SEARCH_OPERATOR in query


class DocumentModel:
    """Query helpers bound to one collection and its field policy.

    The policy is immutable, so a single DocumentModel serves any number
    of concurrent operations.

    Attributes:
        collection: Storage collaborator
        policy: Field policy and read defaults
    """

    def __init__(self, collection: Collection, policy: FieldPolicy) -> None:
        """Initialize the model.

        Args:
            collection: Storage collaborator for this model
            policy: Validated field policy
        """
        self.collection = collection
        self.policy = policy
        self._classifier = FieldClassifier(collection.schema, policy)
        self._invalidator = InvalidationDispatcher(policy.model_name, policy.clear_cache)

    @property
    def model_name(self) -> str:
        return self.policy.model_name

    @property
    def invalidator(self) -> InvalidationDispatcher:
        return self._invalidator

    def select_fields(self, extras: Any = None) -> FieldSelection:
        """Classify requested extras without running a query."""
        return self._classifier.classify(extras)

    async def list(
        self,
        query: Optional[Mapping[str, Any]] = None,
        extras: Any = None,
        *,
        limit: Any = None,
        sort: Any = None,
        lean: Optional[bool] = None,
        cache: Optional[float] = None,
    ) -> list[Any]:
        """List documents matching ``query``.

        Args:
            query: Backend query (``$text`` enables relevance sorting)
            extras: Extra field path(s) to include
            limit: Requested limit, clamped to the policy limit
            sort: Field -> direction mapping
            lean: Return plain snapshots (defaults to the policy)
            cache: Cache TTL in seconds (defaults to the policy)

        Returns:
            Matching documents

        Raises:
            UnknownFieldError: Unknown extra, only with strict_fields
            Any backend error, unchanged
        """
        query = dict(query or {})
        selection = self._classifier.classify(extras)
        applied_limit = clamp_limit(limit, self.policy.limit)
        applied_sort = normalize_sort(sort)
        projection = selection.projection()

        if is_text_search(query):
            projection[SCORE_FIELD] = dict(TEXT_SCORE)
            if applied_sort is None:
                applied_sort = {SCORE_FIELD: dict(TEXT_SCORE)}

        use_lean = self.policy.lean if lean is None else bool(lean)

        find = self.collection.find(query).select(projection).limit(applied_limit)
        if applied_sort:
            find = find.sort(applied_sort)
        find = self._prepare(find, selection, use_lean)

        shape = {
            "query": query,
            "selection": selection.shape(),
            "limit": applied_limit,
            "sort": applied_sort,
        }
        find = self._apply_cache(find, CacheOperation.LIST, shape, cache, use_lean)

        logger.debug(
            "list %s limit=%d sort=%s fields=%s",
            self.model_name,
            applied_limit,
            applied_sort,
            selection.fields,
        )
        return await find.exec()

    async def get(
        self,
        identifier_or_query: Any,
        extras: Any = None,
        *,
        lean: Optional[bool] = None,
        cache: Optional[float] = None,
    ) -> Optional[Any]:
        """Get one document by identifier or query.

        Args:
            identifier_or_query: Document ``_id`` or a backend query
            extras: Extra field path(s) to include
            lean: Return a plain snapshot (defaults to the policy)
            cache: Cache TTL in seconds (defaults to the policy)

        Returns:
            The document, or None if nothing matches
        """
        query, identifier = self._scope(identifier_or_query)
        selection = self._classifier.classify(extras)
        use_lean = self.policy.lean if lean is None else bool(lean)

        find = self.collection.find_one(query).select(selection.projection())
        find = self._prepare(find, selection, use_lean)

        shape = {"query": query, "selection": selection.shape()}
        find = self._apply_cache(
            find, CacheOperation.GET, shape, cache, use_lean, identifier=identifier
        )
        return await find.exec()

    async def number_of(
        self,
        query: Optional[Mapping[str, Any]] = None,
        *,
        cache: Optional[float] = None,
    ) -> int:
        """Count documents matching ``query``."""
        query = dict(query or {})
        counter = self.collection.count(query)
        counter = self._apply_cache(counter, CacheOperation.COUNT, {"query": query}, cache, True)
        return int(await counter.exec())

    async def patch(self, document: Mapping[str, Any], changes: Mapping[str, Any]) -> Document:
        """Apply ``changes`` to ``document`` and persist the result.

        Read-only fields and the document identifier are never
        overwritten. The given document is not modified.

        Args:
            document: Current document
            changes: Field -> new value

        Returns:
            The persisted document

        Raises:
            Any backend error, unchanged (no invalidation happens)
        """
        protected = {ID_FIELD, *self.policy.read_only_fields}
        delta = {key: value for key, value in changes.items() if key not in protected}
        updated = {**dict(document), **delta}

        saved = await self.collection.save(updated)
        self._invalidator.on_mutation(_identifier_of(saved, updated))
        return saved

    async def create(self, data: Mapping[str, Any]) -> Document:
        """Persist a new document."""
        saved = await self.collection.insert(dict(data))
        self._invalidator.on_mutation(_identifier_of(saved, data))
        return saved

    async def remove(self, identifier_or_document: Any) -> bool:
        """Delete a document by identifier (or the document itself)."""
        if isinstance(identifier_or_document, Mapping):
            identifier = identifier_or_document.get(ID_FIELD)
        else:
            identifier = identifier_or_document

        removed = await self.collection.remove(identifier)
        if removed:
            self._invalidator.on_mutation(identifier)
        return removed

    def pick_common_fields(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """Only the common fields of ``document``."""
        return {
            name: document[name]
            for name in self.policy.visible_common_fields
            if name in document
        }

    def omit_secret_fields(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """``document`` without its secret fields."""
        return {
            name: value
            for name, value in document.items()
            if name not in self.policy.secret_fields
        }

    def clear_cache_get(self, identifier: Any = None) -> None:
        self._invalidator.clear_get(identifier)

    def clear_cache_list(self) -> None:
        self._invalidator.clear_list()

    def _prepare(self, find: Queryable, selection: FieldSelection, use_lean: bool) -> Queryable:
        for node in selection.populate.values():
            find = find.populate(node)
        if use_lean:
            find = find.lean()
        return find

    def _apply_cache(
        self,
        queryable: Queryable,
        operation: CacheOperation,
        shape: dict[str, Any],
        requested_ttl: Optional[float],
        lean: bool,
        identifier: Any = None,
    ) -> Queryable:
        if not isinstance(queryable, CacheableQueryable):
            return queryable

        descriptor = resolve_cache(
            self.policy,
            operation,
            shape,
            requested_ttl=requested_ttl,
            lean=lean,
            identifier=identifier,
        )
        if not descriptor.enabled:
            return queryable
        return queryable.cache(descriptor.ttl, descriptor.key)

    def _scope(self, identifier_or_query: Any) -> tuple[dict[str, Any], Any]:
        """Split a get() argument into a query and an optional identifier."""
        if identifier_or_query is None:
            return {}, None
        if isinstance(identifier_or_query, Mapping):
            query = dict(identifier_or_query)
            identifier = query.get(ID_FIELD) if set(query) == {ID_FIELD} else None
            if isinstance(identifier, (Mapping, list, tuple, set)):
                identifier = None
            return query, identifier
        return {ID_FIELD: identifier_or_query}, identifier_or_query


def _identifier_of(saved: Any, fallback: Mapping[str, Any]) -> Any:
    if isinstance(saved, Mapping) and ID_FIELD in saved:
        return saved[ID_FIELD]
    identifier = getattr(saved, ID_FIELD, None)
    if identifier is None:
        return fallback.get(ID_FIELD)
    return identifier


def register_model(
    collection: Collection,
    options: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> DocumentModel:
    """Validate registration options and bind them to ``collection``.

    Args:
        collection: Storage collaborator for the model
        options: Registration options (see FieldPolicy)
        **kwargs: Registration options (alternative to options)

    Returns:
        DocumentModel

    Raises:
        ConfigurationError: If options are missing or mistyped, or the
            collection does not implement the Collection protocol
    """
    if not isinstance(collection, Collection):
        raise ConfigurationError(
            "Expect collection to implement the Collection protocol",
            option="collection",
        )
    policy = build_policy(options, **kwargs)
    logger.info(
        "Registered model %s (limit=%d, cache=%s, lean=%s)",
        policy.model_name,
        policy.limit,
        policy.cache,
        policy.lean,
    )
    return DocumentModel(collection, policy)
