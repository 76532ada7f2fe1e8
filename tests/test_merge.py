"""Tests for merge.py.

Tests for left-to-right deep merging of configuration layers.
"""

from layerconf.merge import merge, merge_two


class TestMergeTwo:
    """Tests for merge_two."""

    def test_nested_mappings_merge(self):
        """Nested mappings are merged key by key."""
        result = merge_two({"db": {"host": "a", "port": 1}}, {"db": {"port": 2}})
        assert result == {"db": {"host": "a", "port": 2}}

    def test_scalar_replaces_mapping(self):
        """A scalar on the right replaces a mapping on the left."""
        assert merge_two({"a": {"b": 1}}, {"a": 5}) == {"a": 5}

    def test_mapping_replaces_scalar(self):
        """A mapping on the right replaces a scalar on the left."""
        assert merge_two({"a": 5}, {"a": {"b": 1}}) == {"a": {"b": 1}}

    def test_does_not_mutate_inputs(self):
        """Neither input is modified."""
        base = {"a": {"b": [1, 2]}}
        override = {"a": {"c": 3}}
        merge_two(base, override)
        assert base == {"a": {"b": [1, 2]}}
        assert override == {"a": {"c": 3}}

    def test_result_does_not_share_containers(self):
        """Mutating the result leaves the inputs untouched."""
        base = {"a": {"b": [1, 2]}}
        result = merge_two(base, {})
        result["a"]["b"].append(3)
        assert base["a"]["b"] == [1, 2]


class TestMerge:
    """Tests for merge."""

    def test_arrays_are_replaced(self):
        """Sequences are never merged element-wise."""
        assert merge({"a": [1, 2]}, {"a": [3]}) == {"a": [3]}

    def test_array_replaced_by_longer_array(self):
        """A longer right-hand sequence replaces the left one verbatim."""
        assert merge({"a": [1]}, {"a": [3, 4, 5]}) == {"a": [3, 4, 5]}

    def test_array_of_mappings_replaced(self):
        """Sequences of mappings are replaced, not merged by position."""
        result = merge({"a": [{"x": 1, "y": 2}]}, {"a": [{"x": 3}]})
        assert result == {"a": [{"x": 3}]}

    def test_later_layer_wins(self):
        """Later layers take precedence per leaf."""
        result = merge({"a": 1, "b": 1}, {"b": 2, "c": 2}, {"c": 3})
        assert result == {"a": 1, "b": 2, "c": 3}

    def test_documented_example(self):
        """Mappings merge while sequences replace."""
        result = merge({"a": [1, 2], "b": {"c": 1}}, {"a": [3], "b": {"d": 2}})
        assert result == {"a": [3], "b": {"c": 1, "d": 2}}

    def test_merge_with_itself_is_identity(self):
        """Merging a layer with itself yields the layer."""
        layer = {"a": {"b": [1, {"c": 2}]}, "d": None, "e": "x"}
        assert merge(layer, layer) == layer

    def test_left_to_right_associative(self):
        """Merging in one call equals merging pairwise from the left."""
        l1 = {"a": {"b": 1, "c": [1]}}
        l2 = {"a": {"c": [2], "d": 2}}
        l3 = {"a": {"b": 3}, "e": 4}
        assert merge(l1, l2, l3) == merge(merge(l1, l2), l3)
        assert merge(l1, l2, l3) == merge(l1, merge(l2, l3))

    def test_ignores_non_mapping_layers(self):
        """Layers that are not mappings contribute nothing."""
        assert merge({"a": 1}, [], None, "x", {"b": 2}) == {"a": 1, "b": 2}

    def test_no_layers(self):
        """No layers yields an empty mapping."""
        assert merge() == {}
