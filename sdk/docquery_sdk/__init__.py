"""
docquery SDK - Query helpers for document models.

This SDK augments a document model with:
- Reusable reads (list, get, number_of) and patch writes
- Field visibility control (common, secret and read-only fields)
- Automatic reference expansion for dotted field paths
- Namespaced cache keys and cache invalidation on writes

Example:
    >>> from docquery_sdk import DocumentSchema, field, register_model
    >>>
    >>> Item = DocumentSchema(
    ...     name="Item",
    ...     fields=(
    ...         field("name", "str"),
    ...         field("price", "float"),
    ...         field("seller", "ref", ref="User"),
    ...     ),
    ... )
    >>>
    >>> Items = register_model(collection, model_name="Item", common_fields=["name"])
    >>> await Items.list({}, ["price", "seller.name"], limit=50)

Invariants:
    - Secret fields never appear in a projection
    - Unknown field paths are dropped unless strict_fields is set
    - Writes invalidate cached reads after they are applied

Version: 1.0.0
"""

__version__ = "1.0.0"

from .backend import CacheableQueryable, Collection, Queryable, SchemaIntrospector
from .cache import (
    CacheDescriptor,
    CacheOperation,
    build_cache_key,
    build_key,
    resolve_cache,
)
from .classifier import FieldClassifier, FieldSelection, PopulateNode, classify_fields
from .config import Settings, get_settings
from .errors import (
    ConfigurationError,
    DocQueryError,
    SchemaError,
    UnknownFieldError,
)
from .invalidation import InvalidationDispatcher
from .model import DocumentModel, register_model
from .paths import FieldPath, walk_path
from .policy import FieldPolicy, build_policy
from .registry import (
    SchemaRegistry,
    get_registry,
    register_schema,
)
from .schema import (
    DocumentSchema,
    FieldDef,
    FieldKind,
    field,
)

__all__ = [
    # Version
    "__version__",
    # Schema types
    "DocumentSchema",
    "FieldDef",
    "FieldKind",
    "field",
    # Registry
    "SchemaRegistry",
    "get_registry",
    "register_schema",
    # Paths and classification
    "FieldPath",
    "walk_path",
    "FieldClassifier",
    "FieldSelection",
    "PopulateNode",
    "classify_fields",
    # Caching
    "CacheDescriptor",
    "CacheOperation",
    "build_key",
    "build_cache_key",
    "resolve_cache",
    "InvalidationDispatcher",
    # Configuration
    "Settings",
    "get_settings",
    "FieldPolicy",
    "build_policy",
    # Models
    "DocumentModel",
    "register_model",
    # Protocols
    "SchemaIntrospector",
    "Queryable",
    "CacheableQueryable",
    "Collection",
    # Errors
    "DocQueryError",
    "ConfigurationError",
    "SchemaError",
    "UnknownFieldError",
]
