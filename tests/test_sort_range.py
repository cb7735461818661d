"""
Tests for patchstore/query/sort.py and patchstore/query/range.py.
"""

import pytest

from patchstore.errors import ArgumentError, SerializationUnsupportedError
from patchstore.patch.pointer import ABSENT, pointer
from patchstore.query.base import QueryKind, apply_queries
from patchstore.query.filter import Filter
from patchstore.query.range import Range
from patchstore.query.sort import Sort, compare_values


class TestCompareValues:
    """Test the field comparator."""

    def test_relational(self):
        assert compare_values(1, 2) == -1
        assert compare_values(2, 1) == 1
        assert compare_values("a", "a") == 0

    def test_missing_values_sort_first(self):
        assert compare_values(None, 0) == -1
        assert compare_values(0, ABSENT) == 1
        assert compare_values(None, ABSENT) == 0


class TestSort:
    """Test Sort queries."""

    def test_by_field(self, simple_list):
        assert [item["id"] for item in Sort("key").apply(simple_list)] == ["3", "1", "2"]

    def test_descending(self, simple_list):
        assert [item["id"] for item in Sort("key", descending=True).apply(simple_list)] == ["2", "1", "3"]

    def test_by_nested_pointer(self, nested_list):
        result = Sort(pointer("key", "key2")).apply(nested_list)
        assert [item["id"] for item in result] == ["3", "1", "2"]

    def test_by_comparator(self, simple_list):
        result = Sort(lambda a, b: b["key"] - a["key"]).apply(simple_list)
        assert [item["id"] for item in result] == ["2", "1", "3"]

    def test_comparator_descending_negates(self, simple_list):
        result = Sort(lambda a, b: a["key"] - b["key"], descending=True).apply(simple_list)
        assert [item["id"] for item in result] == ["2", "1", "3"]

    def test_missing_fields_first(self):
        items = [{"id": "a", "n": 2}, {"id": "b"}, {"id": "c", "n": None}, {"id": "d", "n": 1}]
        assert [item["id"] for item in Sort("n").apply(items)] == ["b", "c", "d", "a"]

    def test_stable_in_both_directions(self):
        items = [{"id": str(i), "group": i % 2} for i in range(6)]
        ascending = [item["id"] for item in Sort("group").apply(items)]
        descending = [item["id"] for item in Sort("group", descending=True).apply(items)]
        assert ascending == ["0", "2", "4", "1", "3", "5"]
        assert descending == ["1", "3", "5", "0", "2", "4"]

    def test_does_not_reorder_source(self, simple_list):
        before = list(simple_list)
        Sort("key").apply(simple_list)
        assert simple_list == before

    def test_requires_argument(self):
        with pytest.raises(ArgumentError):
            Sort(None)

    def test_to_string(self):
        assert Sort("key").to_string() == "Sort(/key, +)"
        assert str(Sort(pointer("meta", "stars"), descending=True)) == "Sort(/meta/stars, -)"

    def test_comparator_cannot_serialize(self):
        with pytest.raises(SerializationUnsupportedError):
            Sort(lambda a, b: 0).to_string()

    def test_serializer_override(self):
        assert Sort(lambda a, b: 0, serializer=lambda sort: "custom").to_string() == "custom"

    def test_equality(self):
        assert Sort("key") == Sort(pointer("key"))
        assert Sort("key") != Sort("key", descending=True)

    def test_kind(self):
        assert Sort("key").kind is QueryKind.SORT


class TestRange:
    """Test Range queries."""

    def test_slice(self, simple_list):
        assert Range(1, 1).apply(simple_list) == [simple_list[1]]

    def test_clamped_at_end(self, simple_list):
        assert Range(2, 10).apply(simple_list) == [simple_list[2]]

    def test_past_end_is_empty(self, simple_list):
        assert Range(5, 2).apply(simple_list) == []

    def test_zero_count(self, simple_list):
        assert Range(0, 0).apply(simple_list) == []

    @pytest.mark.parametrize("start,count", [(-1, 1), (0, -1), (1.5, 1), ("0", 1), (True, 1)])
    def test_invalid_bounds(self, start, count):
        with pytest.raises(ArgumentError):
            Range(start, count)

    def test_to_string(self):
        assert Range(0, 10).to_string() == "range(0, 10)"

    def test_equality(self):
        assert Range(0, 10) == Range(0, 10)
        assert Range(0, 10) != Range(1, 10)

    def test_kind(self):
        assert Range(0, 1).kind is QueryKind.RANGE


class TestApplyQueries:
    """Test folding a pipeline."""

    def test_left_to_right(self, simple_list):
        queries = [Filter().greater_than(4, "key"), Sort("key", descending=True), Range(0, 1)]
        assert apply_queries(queries, simple_list) == [{"key": 7, "id": "2"}]

    def test_order_matters(self, simple_list):
        sorted_then_sliced = apply_queries([Sort("key"), Range(0, 1)], simple_list)
        sliced_then_sorted = apply_queries([Range(0, 1), Sort("key")], simple_list)
        assert sorted_then_sliced == [simple_list[2]]
        assert sliced_then_sorted == [simple_list[0]]

    def test_empty_pipeline_copies(self, simple_list):
        result = apply_queries([], simple_list)
        assert result == simple_list
        assert result is not simple_list
