"""Tests for keys.py.

Tests for dotted-key splitting, camelCase conversion and tree lookup.
"""

import pytest

from layerconf.errors import EmptyKeyPathError
from layerconf.keys import MISSING, has_kebab_segment, lookup, split_key, to_camel_case


class TestSplitKey:
    """Tests for split_key."""

    def test_splits_on_dots(self):
        """Splits a dotted key into segments."""
        assert split_key("a.b.c") == ["a", "b", "c"]

    def test_single_segment(self):
        """A key without dots is one segment."""
        assert split_key("hello-world") == ["hello-world"]

    def test_empty_key_raises(self):
        """An empty key is a programmer error."""
        with pytest.raises(EmptyKeyPathError):
            split_key("")

    def test_empty_segment_raises(self):
        """A key with an empty segment is rejected."""
        with pytest.raises(EmptyKeyPathError):
            split_key("a..b")

    def test_empty_key_error_is_value_error(self):
        """EmptyKeyPathError is also a ValueError."""
        with pytest.raises(ValueError):
            split_key("")


class TestToCamelCase:
    """Tests for to_camel_case."""

    @pytest.mark.parametrize(
        "key,expected",
        [
            ("hello-world", "helloWorld"),
            ("test-1", "test1"),
            ("hello-world-goodbye-universe", "helloWorldGoodbyeUniverse"),
            ("nested-key-2", "nestedKey2"),
            ("already", "already"),
            ("camelCase", "camelCase"),
            ("trailing-", "trailing-"),
        ],
    )
    def test_conversion(self, key, expected):
        """Converts each hyphen-alphanumeric pair."""
        assert to_camel_case(key) == expected

    def test_has_kebab_segment(self):
        """Detects keys that have a camelCase alias."""
        assert has_kebab_segment("hello-world")
        assert not has_kebab_segment("helloWorld")
        assert not has_kebab_segment("trailing-")


class TestLookup:
    """Tests for lookup."""

    def test_nested_lookup(self):
        """Walks nested mappings."""
        assert lookup({"a": {"b": {"c": 1}}}, ["a", "b", "c"]) == 1

    def test_missing_returns_sentinel(self):
        """Absent keys yield MISSING."""
        assert lookup({"a": {}}, ["a", "b"]) is MISSING

    def test_stored_none_is_not_missing(self):
        """A stored None is a value."""
        assert lookup({"a": None}, ["a"]) is None

    def test_through_scalar_is_missing(self):
        """Descending into a scalar yields MISSING."""
        assert lookup({"a": "text"}, ["a", "b"]) is MISSING

    def test_prefers_camel_case_form(self):
        """The camelCase form of a segment is tried first."""
        tree = {"helloWorld": "camel", "hello-world": "kebab"}
        assert lookup(tree, ["hello-world"]) == "camel"

    def test_falls_back_to_raw_segment(self):
        """The raw segment is used when the camelCase form is absent."""
        assert lookup({"hello-world": "kebab"}, ["hello-world"]) == "kebab"

    def test_strict_does_not_match_kebab_from_camel(self):
        """Without loose matching, a camelCase key does not find a kebab key."""
        assert lookup({"hello-world": "kebab"}, ["helloWorld"]) is MISSING

    def test_loose_matches_kebab_from_camel(self):
        """Loose matching compares camelCase forms of both sides."""
        assert lookup({"hello-world": "kebab"}, ["helloWorld"], loose=True) == "kebab"

    def test_numeric_segment_indexes_sequence(self):
        """Numeric segments index into sequences."""
        tree = {"arr": [{"name": "a"}, {"name": "b"}]}
        assert lookup(tree, ["arr", "1", "name"]) == "b"

    def test_index_out_of_range_is_missing(self):
        """Indexes past the end yield MISSING."""
        assert lookup({"arr": [1]}, ["arr", "3"]) is MISSING

    def test_non_ascii_digit_is_missing(self):
        """Unicode digits such as superscripts do not index sequences."""
        assert lookup({"arr": [1, 2]}, ["arr", "²"]) is MISSING
        assert lookup({"arr": [1, 2]}, ["arr", "١"]) is MISSING

    def test_empty_parts_raise(self):
        """Looking up zero segments is a programmer error."""
        with pytest.raises(EmptyKeyPathError):
            lookup({"a": 1}, [])

    def test_missing_is_falsy(self):
        """MISSING is falsy and reprs clearly."""
        assert not MISSING
        assert repr(MISSING) == "MISSING"
