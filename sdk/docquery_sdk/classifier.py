"""
Field classification for reads.

Turns the caller's requested extra fields into:
- the set of top-level fields to project (the selection)
- one populate instruction per reference boundary found

Algorithm:
    1. Normalize extras to a list and prepend the policy's common fields.
    2. Drop every path that is a secret field or lies beneath one.
    3. Walk each path's prefixes against the schema. An unknown prefix
       drops the whole path; the first reference prefix stops the walk.
    4. The path's top-level segment joins the selection.
    5. Segments after a reference boundary become child selections of
       that boundary's PopulateNode. A further reference inside the
       remainder chains a nested node, one level per boundary. A bare
       reference requests the whole document, which later child paths
       do not narrow.
    6. A selected field with a secret field beneath it is projected as
       its visible children instead; a whole populated document
       excludes the secret fields beneath its reference.

Invariants:
    - The selection never contains a secret field
    - No projection or populate selection exposes a secret sub-path
    - The selection is deduplicated and keeps first-seen order
    - A PopulateNode exists only for reference fields
    - Every classify() call builds its own tree; nodes are never shared
      between calls or between paths
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from difflib import get_close_matches
from typing import Any, Optional

from .backend import SchemaIntrospector
from .errors import UnknownFieldError
from .paths import FieldPath
from .policy import FieldPolicy

logger = logging.getLogger(__name__)


@dataclass
class PopulateNode:
    """Reference expansion instruction.

    Attributes:
        path: Reference field path, relative to the owning document
        select: Child field path -> 1 for fields to keep on the referenced
            document, or -> 0 for secret fields to drop from a whole one
        children: Nested expansions keyed by child reference path
        whole: The whole referenced document was requested

    Example:
        >>> node = PopulateNode("author", select={"name": 1})
        >>> node.to_dict()
        {'path': 'author', 'select': {'name': 1}}
    """

    path: str
    select: dict[str, int] = field(default_factory=dict)
    children: dict[str, PopulateNode] = field(default_factory=dict)
    whole: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (children ordered by path)."""
        result: dict[str, Any] = {"path": self.path}
        if self.select:
            result["select"] = dict(self.select)
        if self.whole:
            result["whole"] = True
        if self.children:
            result["populate"] = [
                self.children[name].to_dict() for name in sorted(self.children)
            ]
        return result


@dataclass(frozen=True)
class FieldSelection:
    """Result of classifying requested fields.

    Attributes:
        fields: Top-level fields selected, in first-seen order
        populate: Populate instructions keyed by reference path
        hidden: Secret fields that must stay out of the result
        paths: Paths to project. A selected field with secret fields
            beneath it is replaced by its visible children. None means
            the same as fields.
    """

    fields: tuple[str, ...] = ()
    populate: dict[str, PopulateNode] = field(default_factory=dict)
    hidden: tuple[str, ...] = ()
    paths: Optional[tuple[str, ...]] = None

    def projection(self) -> dict[str, Any]:
        """Projection for the storage backend.

        An inclusion projection when any path is projectable, otherwise
        an exclusion projection of the hidden fields.
        """
        included = self.fields if self.paths is None else self.paths
        if included:
            return {name: 1 for name in included}
        return {name: 0 for name in self.hidden}

    def shape(self) -> dict[str, Any]:
        """Order-independent description used in cache keys."""
        return {
            "fields": sorted(self.fields),
            "populate": [self.populate[path].to_dict() for path in sorted(self.populate)],
            "hidden": sorted(self.hidden),
        }


def normalize_extras(extras: Any) -> list[Any]:
    """Normalize requested extras to a list.

    None yields an empty list, a single string a one-item list.
    """
    if extras is None:
        return []
    if isinstance(extras, str):
        return [extras]
    if isinstance(extras, Iterable):
        return list(extras)
    return [extras]


class FieldClassifier:
    """Classifies requested field paths for one model.

    Example:
        >>> classifier = FieldClassifier(Post, policy)
        >>> selection = classifier.classify(["title", "author.name"])
        >>> selection.fields
        ('title', 'author')
        >>> selection.populate["author"].select
        {'name': 1}
    """

    def __init__(self, schema: SchemaIntrospector, policy: FieldPolicy) -> None:
        self._schema = schema
        self._policy = policy

    def classify(self, extras: Any = None) -> FieldSelection:
        """Classify requested extras plus the policy's common fields.

        Args:
            extras: A field path, a list of paths, or None

        Returns:
            FieldSelection

        Raises:
            UnknownFieldError: Unknown path, only with strict_fields
        """
        requested = [*self._policy.visible_common_fields, *normalize_extras(extras)]

        selected: dict[str, None] = {}
        populate: dict[str, PopulateNode] = {}

        for raw in requested:
            path = FieldPath.parse(raw)
            if path is None:
                logger.debug("Dropping malformed field path %r", raw)
                continue
            if self._policy.is_secret(str(path)):
                continue

            boundary = self._find_boundary(self._schema, path)
            if boundary is None:
                self._unknown(self._schema, path)
                continue

            selected.setdefault(path.head, None)

            if boundary:
                ref_path = ".".join(path.segments[:boundary])
                populate[ref_path] = self._build_node(
                    ref_path,
                    ref_path,
                    self._schema.referenced_schema(ref_path),
                    path.tail(boundary),
                    populate.get(ref_path),
                )

        paths = [p for head in selected for p in self._visible_paths(self._schema, head)]
        return FieldSelection(
            fields=tuple(selected),
            populate={ref: self._seal(node, ref) for ref, node in populate.items()},
            hidden=tuple(self._policy.secret_fields),
            paths=tuple(paths),
        )

    def _find_boundary(self, schema: SchemaIntrospector, path: FieldPath) -> Optional[int]:
        """Depth of the first reference prefix of ``path``.

        Returns 0 when the path crosses no reference and None when a
        prefix does not exist.
        """
        for depth, prefix in enumerate(path.prefixes(), start=1):
            if not schema.field_exists(prefix):
                return None
            if schema.is_reference(prefix):
                return depth
        return 0

    def _visible_paths(
        self,
        schema: Optional[SchemaIntrospector],
        path: str,
        prefix: str = "",
    ) -> list[str]:
        """``path``, or its non-secret children when a secret lies beneath it.

        ``prefix`` is the owning reference path for paths inside a
        populated document. References are kept as is; their secret
        fields are dropped when they are populated.
        """
        beneath = f"{prefix}{path}."
        if not any(secret.startswith(beneath) for secret in self._policy.secret_fields):
            return [path]
        if schema is None or schema.is_reference(path):
            return [path]

        children = schema.field_names(path)
        if not children:
            logger.debug(
                "Dropping %s%s: secret fields beneath it cannot be excluded", prefix, path
            )
            return []

        visible: list[str] = []
        for child in children:
            child_path = f"{path}.{child}"
            if self._policy.is_secret(f"{prefix}{child_path}"):
                continue
            visible.extend(self._visible_paths(schema, child_path, prefix))
        return visible

    def _hidden_beneath(self, ref_path: str) -> dict[str, int]:
        """Exclusions of the secret fields inside the document at ``ref_path``."""
        beneath = f"{ref_path}."
        return {
            secret[len(beneath):]: 0
            for secret in self._policy.secret_fields
            if secret.startswith(beneath)
        }

    def _build_node(
        self,
        ref_path: str,
        absolute: str,
        schema: Optional[SchemaIntrospector],
        remainder: Optional[FieldPath],
        existing: Optional[PopulateNode],
    ) -> PopulateNode:
        """Build a new node merging ``existing`` with one more request.

        ``absolute`` is the node's path from the root document. Once the
        whole document is requested, child paths no longer narrow it.
        """
        node = PopulateNode(
            path=ref_path,
            select=dict(existing.select) if existing else {},
            children=dict(existing.children) if existing else {},
            whole=existing.whole if existing else False,
        )
        if remainder is None:
            node.whole = True
            node.select = {}
            return node

        if schema is None:
            # Referenced model unknown; keep the requested child path as is
            if not node.whole:
                node.select[str(remainder)] = 1
            return node

        boundary = self._find_boundary(schema, remainder)
        if boundary is None:
            logger.debug("Dropping unknown child path %r of %s", str(remainder), ref_path)
            return node

        if boundary == 0 or boundary == len(remainder):
            # No further hop requested past this reference
            if not node.whole:
                for path in self._visible_paths(schema, str(remainder), f"{absolute}."):
                    node.select[path] = 1
            return node

        child_path = ".".join(remainder.segments[:boundary])
        if not node.whole:
            node.select[child_path] = 1
        node.children[child_path] = self._build_node(
            child_path,
            f"{absolute}.{child_path}",
            schema.referenced_schema(child_path),
            remainder.tail(boundary),
            node.children.get(child_path),
        )
        return node

    def _seal(self, node: PopulateNode, absolute: str) -> PopulateNode:
        """Final copy of ``node`` with secret fields excluded from whole documents."""
        whole = node.whole or not node.select
        return PopulateNode(
            path=node.path,
            select=self._hidden_beneath(absolute) if whole else dict(node.select),
            children={
                name: self._seal(child, f"{absolute}.{name}")
                for name, child in node.children.items()
            },
            whole=whole,
        )

    def _unknown(self, schema: SchemaIntrospector, path: FieldPath) -> None:
        if not self._policy.strict_fields:
            logger.debug("Dropping unknown field path %r of %s", str(path), self._policy.model_name)
            return
        suggestions = get_close_matches(path.head, schema.field_names(), n=3)
        raise UnknownFieldError(str(path), self._policy.model_name, suggestions)


def classify_fields(
    schema: SchemaIntrospector,
    policy: FieldPolicy,
    extras: Any = None,
) -> FieldSelection:
    """Classify requested extras for ``schema`` under ``policy``."""
    return FieldClassifier(schema, policy).classify(extras)
