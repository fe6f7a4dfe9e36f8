"""
Field visibility and read policy for a registered model.

A FieldPolicy is built once per model registration, validated eagerly,
and is immutable afterwards, so concurrent queries read it without
locking.

Invariants:
    - model_name is a non-empty string
    - Field lists are lists/tuples of strings
    - limit is a positive integer, cache a non-negative TTL or None
    - A field that is both common and secret is treated as secret
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError
from pydantic import field_validator

from .config import get_settings
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ClearCache = Callable[[str], Any]


class FieldPolicy(BaseModel):
    """Per-model field policy and read defaults.

    Attributes:
        model_name: Name used to namespace cache keys
        common_fields: Fields included in every read projection
        secret_fields: Fields excluded from every read projection
        read_only_fields: Fields patch() never overwrites
        limit: Maximum (and default) number of documents per list()
        cache: Default cache TTL in seconds, None disables caching
        lean: Return plain snapshots by default
        clear_cache: Optional callable invoked with a key pattern on writes
        strict_fields: Raise UnknownFieldError instead of dropping paths
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
        protected_namespaces=(),
    )

    model_name: StrictStr = Field(min_length=1)
    common_fields: tuple[StrictStr, ...] = ()
    secret_fields: tuple[StrictStr, ...] = ("__v",)
    read_only_fields: tuple[StrictStr, ...] = ()
    limit: StrictInt = Field(default=100, gt=0)
    cache: Optional[float] = Field(default=None, ge=0)
    lean: StrictBool = True
    clear_cache: Optional[ClearCache] = None
    strict_fields: StrictBool = False

    @field_validator("common_fields", "secret_fields", "read_only_fields", mode="before")
    @classmethod
    def _require_sequence(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            raise ValueError("expected a list of field names")
        return value

    @field_validator("cache", mode="before")
    @classmethod
    def _require_number(cls, value: Any) -> Any:
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            raise ValueError("expected a TTL in seconds")
        return value

    @field_validator("clear_cache", mode="before")
    @classmethod
    def _require_callable(cls, value: Any) -> Any:
        if value is not None and not callable(value):
            raise ValueError("expected a callable")
        return value

    @property
    def visible_common_fields(self) -> tuple[str, ...]:
        """Common fields minus any that are also secret."""
        return tuple(f for f in self.common_fields if f not in self.secret_fields)

    def is_secret(self, path: str) -> bool:
        """Whether ``path`` is a secret field or lies beneath one."""
        for secret in self.secret_fields:
            if path == secret or path.startswith(secret + "."):
                return True
        return False


def build_policy(options: Mapping[str, Any] | None = None, **kwargs: Any) -> FieldPolicy:
    """Build a FieldPolicy from registration options.

    Explicit options override the environment defaults from Settings.

    Args:
        options: Registration options
        **kwargs: Registration options (alternative to options)

    Returns:
        Validated, immutable FieldPolicy

    Raises:
        ConfigurationError: If a required option is missing or mistyped
    """
    settings = get_settings()
    merged: dict[str, Any] = {
        "secret_fields": list(settings.default_secret_fields),
        "limit": settings.default_limit,
        "cache": settings.default_cache_ttl,
        "lean": settings.default_lean,
        "strict_fields": settings.strict_fields,
    }
    merged.update(options or {})
    merged.update(kwargs)

    try:
        policy = FieldPolicy(**merged)
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        first = e.errors()[0]["loc"] if e.errors() else ()
        raise ConfigurationError(
            f"Invalid model options: {'; '.join(errors)}",
            option=str(first[0]) if first else None,
            errors=errors,
        ) from e

    overlap = set(policy.common_fields) & set(policy.secret_fields)
    if overlap:
        logger.debug(
            "Fields %s of %s are both common and secret; treating as secret",
            sorted(overlap),
            policy.model_name,
        )
    return policy
