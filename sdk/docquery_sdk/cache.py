"""
Cache keys and cache descriptors for reads.

Every cached read is stored under ``<prefix><digest>`` where the prefix
namespaces the model and the operation, and the digest is a SHA-256 of
the canonical JSON of the query shape:

    Item:list:<digest>
    Item:count:<digest>
    Item:get:42:<digest>        (get by identifier)
    Item:get:query:<digest>     (get by arbitrary query)

Scoping get-by-identifier keys by id lets a write to one document clear
only that document's get caches.

Invariants:
    - Keys are deterministic: mapping key order never changes a digest
    - ttl == 0 means the read is not cached
    - Live (non-lean) list/get results are never cached
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .policy import FieldPolicy

logger = logging.getLogger(__name__)

KEY_SEPARATOR = ":"
QUERY_SCOPE = "query"


class CacheOperation(Enum):
    """Read operations that can be cached."""

    LIST = "list"
    GET = "get"
    COUNT = "count"


@dataclass(frozen=True)
class CacheDescriptor:
    """Caching instruction for one read.

    Attributes:
        prefix: Namespace prefix, e.g. ``Item:get:42:``
        key: Full cache key (prefix plus shape digest)
        ttl: Time-to-live in seconds, 0 disables caching
    """

    prefix: str
    key: str
    ttl: float = 0

    @property
    def enabled(self) -> bool:
        return self.ttl > 0


def build_key(
    model_name: str,
    operation: CacheOperation | str,
    identifier: Any = None,
) -> str:
    """Build the namespaced key prefix for a read.

    Args:
        model_name: Model name from the policy
        operation: list, get or count
        identifier: Document id for get-by-id reads

    Returns:
        Prefix ending with the separator

    Example:
        >>> build_key("Item", "get", 42)
        'Item:get:42:'
        >>> build_key("Item", "list")
        'Item:list:'
    """
    operation = CacheOperation(operation)
    parts = [model_name, operation.value]
    if operation == CacheOperation.GET:
        parts.append(QUERY_SCOPE if identifier is None else str(identifier))
    return KEY_SEPARATOR.join(parts) + KEY_SEPARATOR


def build_cache_key(prefix: str, shape: Any) -> str:
    """Append the digest of a query shape to ``prefix``."""
    canonical = json.dumps(shape, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{prefix}{digest}"


def resolve_ttl(requested: Any, default: Optional[float]) -> float:
    """Pick the TTL: caller value, else policy default, else 0.

    Non-numeric or negative values resolve to 0.
    """
    ttl = requested if requested is not None else default
    if ttl is None or isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
        return 0
    return ttl if ttl > 0 else 0


def resolve_cache(
    policy: FieldPolicy,
    operation: CacheOperation | str,
    shape: Any,
    *,
    requested_ttl: Any = None,
    lean: bool = True,
    identifier: Any = None,
) -> CacheDescriptor:
    """Build the cache descriptor for one read.

    Args:
        policy: Model policy (name and default TTL)
        operation: list, get or count
        shape: Query shape hashed into the key
        requested_ttl: Caller-supplied TTL, overrides the policy default
        lean: Whether the read returns plain snapshots
        identifier: Document id for get-by-id reads

    Returns:
        CacheDescriptor (ttl 0 when caching must not happen)
    """
    operation = CacheOperation(operation)
    prefix = build_key(policy.model_name, operation, identifier)
    key = build_cache_key(prefix, shape)
    ttl = resolve_ttl(requested_ttl, policy.cache)

    if ttl and operation != CacheOperation.COUNT and not lean:
        logger.debug("Not caching live %s read of %s", operation.value, policy.model_name)
        ttl = 0

    return CacheDescriptor(prefix=prefix, key=key, ttl=ttl)
