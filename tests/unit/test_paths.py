"""
Unit tests for dotted field paths.

Tests cover:
- Prefix walking
- Malformed input
- Restartable iteration
"""

import pytest

from docquery_sdk.paths import FieldPath, walk_path


class TestWalkPath:
    """Tests for walk_path."""

    def test_three_segments(self):
        """Yields each prefix in order."""
        assert list(walk_path("a.b.c")) == ["a", "a.b", "a.b.c"]

    def test_single_segment(self):
        """Single segment yields itself."""
        assert list(walk_path("name")) == ["name"]

    @pytest.mark.parametrize(
        "path",
        ["author.name", "a.b.c.d.e", "x", "meta.owner.profile.bio"],
    )
    def test_prefix_chain_shape(self, path):
        """One prefix per segment, each extending the previous by one, last is the path."""
        prefixes = list(walk_path(path))
        segments = path.split(".")

        assert len(prefixes) == len(segments)
        for previous, current in zip(prefixes, prefixes[1:]):
            assert current.startswith(previous + ".")
            assert current.count(".") == previous.count(".") + 1
        assert prefixes[-1] == path

    @pytest.mark.parametrize("value", ["", None, 42, ["a"], "a..b", ".a", "a."])
    def test_invalid_input_yields_nothing(self, value):
        """Empty, non-string and malformed input yields an empty sequence."""
        assert list(walk_path(value)) == []

    def test_restartable(self):
        """Iterating twice yields the same prefixes."""
        walk = walk_path("a.b")
        assert list(walk) == ["a", "a.b"]
        assert list(walk) == ["a", "a.b"]

    def test_lazy(self):
        """Prefixes are produced on demand."""
        it = iter(walk_path("a.b.c"))
        assert next(it) == "a"
        assert next(it) == "a.b"


class TestFieldPath:
    """Tests for FieldPath."""

    def test_parse(self):
        """Parses segments."""
        path = FieldPath.parse("author.profile.bio")
        assert path.segments == ("author", "profile", "bio")
        assert path.head == "author"
        assert len(path) == 3
        assert str(path) == "author.profile.bio"

    def test_tail(self):
        """Tail drops leading segments."""
        path = FieldPath.parse("author.profile.bio")
        assert str(path.tail(1)) == "profile.bio"
        assert path.tail(3) is None

    def test_empty_segments_rejected(self):
        """Direct construction enforces non-empty segments."""
        with pytest.raises(ValueError):
            FieldPath(())
        with pytest.raises(ValueError):
            FieldPath(("a", ""))
