"""
Tests for patchstore/query/filter.py.

Tests cover:
- Leaf comparators with string paths, pointers and no path
- Implicit and explicit AND / OR chaining with AND-over-OR precedence
- Composition of complete filters and immutability of the chain
- Query-string serialization
"""

import re

import pytest

from patchstore.errors import ArgumentError, SerializationUnsupportedError
from patchstore.patch.pointer import pointer
from patchstore.query.base import QueryKind
from patchstore.query.filter import BoolOp, Comparator, Filter, FilterOp


class TestLeafWithStringPath:
    """Test comparators addressed by a field name."""

    def test_less_than(self, simple_list):
        assert Filter().less_than(5, "key").apply(simple_list) == [{"key": 4, "id": "3"}]

    def test_less_than_or_equal_to_preserves_order(self, simple_list):
        assert Filter().less_than_or_equal_to(5, "key").apply(simple_list) == [
            {"key": 5, "id": "1"},
            {"key": 4, "id": "3"},
        ]

    def test_greater_than(self, simple_list):
        assert Filter().greater_than(5, "key").apply(simple_list) == [{"key": 7, "id": "2"}]

    def test_greater_than_or_equal_to(self, simple_list):
        assert Filter().greater_than_or_equal_to(5, "key").apply(simple_list) == simple_list[:2]

    def test_matches(self, simple_list):
        assert Filter().matches(re.compile("[12]"), "id").apply(simple_list) == simple_list[:2]

    def test_matches_accepts_string_pattern(self, simple_list):
        assert Filter().matches("^3$", "id").apply(simple_list) == [simple_list[2]]

    def test_in_truthy_key_lookup(self, nested_list):
        assert Filter().in_("key2", "key").apply(nested_list) == nested_list
        assert Filter().in_("key1", "key").apply(nested_list) == []

    def test_in_list_membership(self, list_with_lists):
        assert Filter().in_(4, "list").apply(list_with_lists) == list_with_lists[1:]

    def test_contains_matches_in(self, list_with_lists):
        assert Filter().contains(3, "list").apply(list_with_lists) == list_with_lists[:2]

    def test_equal_to(self, simple_list):
        assert Filter().equal_to(5, "key").apply(simple_list) == [simple_list[0]]

    def test_not_equal_to(self, simple_list):
        assert Filter().not_equal_to(5, "key").apply(simple_list) == simple_list[1:]

    def test_deep_equal_to(self, nested_list):
        assert Filter().deep_equal_to({"key2": 5}, "key").apply(nested_list) == [nested_list[0]]

    def test_not_deep_equal_to(self, nested_list):
        assert Filter().not_deep_equal_to({"key2": 5}, "key").apply(nested_list) == nested_list[1:]


class TestLeafWithPointer:
    """Test comparators addressed by a nested pointer."""

    def test_less_than(self, nested_list):
        assert Filter().less_than(5, pointer("key", "key2")).apply(nested_list) == [nested_list[2]]

    def test_less_than_or_equal_to(self, nested_list):
        result = Filter().less_than_or_equal_to(5, pointer("key", "key2")).apply(nested_list)
        assert result == [nested_list[0], nested_list[2]]

    def test_greater_than(self, nested_list):
        assert Filter().greater_than(5, pointer("key", "key2")).apply(nested_list) == [nested_list[1]]

    def test_greater_than_or_equal_to(self, nested_list):
        assert Filter().greater_than_or_equal_to(5, "/key/key2").apply(nested_list) == nested_list[:2]

    def test_matches(self, nested_list):
        assert Filter().matches("[12]", pointer("id")).apply(nested_list) == nested_list[:2]

    def test_in(self, nested_list):
        assert Filter().in_("key2", pointer("key")).apply(nested_list) == nested_list
        assert Filter().in_("key1", pointer("key")).apply(nested_list) == []

    def test_equal_to(self, nested_list):
        assert Filter().equal_to(5, pointer("key", "key2")).apply(nested_list) == [nested_list[0]]

    def test_not_equal_to(self, nested_list):
        assert Filter().not_equal_to(5, pointer("key", "key2")).apply(nested_list) == nested_list[1:]

    def test_deep_equal_to(self, nested_list):
        assert Filter().deep_equal_to(5, pointer("key", "key2")).apply(nested_list) == [nested_list[0]]

    def test_not_deep_equal_to(self, nested_list):
        assert Filter().not_deep_equal_to(5, pointer("key", "key2")).apply(nested_list) == nested_list[1:]


class TestLeafWithoutPath:
    """Test comparators receiving the whole item."""

    def test_in(self, nested_list):
        assert Filter().in_("key").apply(nested_list) == nested_list
        assert Filter().in_("notAKey").apply(nested_list) == []

    def test_equal_to_is_identity(self, simple_list):
        assert Filter().equal_to({"key": 5, "id": "1"}).apply(simple_list) == []
        assert Filter().equal_to(simple_list[0]).apply(simple_list) == [simple_list[0]]

    def test_not_equal_to(self, nested_list):
        assert Filter().not_equal_to(nested_list[0]).apply(nested_list) == nested_list[1:]

    def test_deep_equal_to(self, simple_list):
        assert Filter().deep_equal_to({"key": 5, "id": "1"}).apply(simple_list) == [simple_list[0]]

    def test_not_deep_equal_to(self, simple_list):
        assert Filter().not_deep_equal_to({"key": 5, "id": "1"}).apply(simple_list) == simple_list[1:]

    def test_custom(self, simple_list):
        assert Filter().custom(lambda item: item["key"] % 2 == 1).apply(simple_list) == simple_list[:2]

    def test_custom_requires_callable(self):
        with pytest.raises(ArgumentError):
            Filter().custom("not callable")


class TestLeafEdgeCases:
    """Test missing and mistyped values."""

    def test_missing_field_fails_relational(self):
        items = [{"id": "1"}, {"id": "2", "key": 1}]
        assert Filter().less_than(5, "key").apply(items) == [items[1]]
        assert Filter().greater_than(0, "key").apply(items) == [items[1]]

    def test_none_fails_relational(self):
        assert Filter().less_than(5, "key").apply([{"key": None}]) == []

    def test_incomparable_types_fail(self):
        assert Filter().less_than(5, "key").apply([{"key": "text"}]) == []

    def test_equal_to_keeps_bool_apart(self):
        items = [{"flag": True}, {"flag": 1}]
        assert Filter().equal_to(1, "flag").apply(items) == [items[1]]

    def test_membership_on_primitive_is_false(self):
        assert Filter().in_("a", "key").apply([{"key": "abc"}]) == []

    def test_matches_missing_field(self):
        assert Filter().matches(".*", "missing").apply([{"id": "1"}]) == []

    def test_empty_filter_passes_everything(self, simple_list):
        assert Filter().apply(simple_list) == simple_list

    def test_apply_returns_new_list(self, simple_list):
        result = Filter().apply(simple_list)
        assert result == simple_list
        assert result is not simple_list


class TestChaining:
    """Test AND / OR precedence."""

    def test_automatic_and(self, simple_list):
        f = Filter().less_than_or_equal_to(5, "key").equal_to("1", "id")
        assert f.apply(simple_list) == [simple_list[0]]

    def test_explicit_and(self, simple_list):
        f = Filter().less_than_or_equal_to(5, "key").and_().equal_to("1", "id")
        assert f.apply(simple_list) == [simple_list[0]]

    def test_explicit_or(self, simple_list):
        f = Filter().less_than(5, "key").or_().greater_than(5, "key")
        assert f.apply(simple_list) == simple_list[1:]

    def test_and_binds_tighter_than_or(self, simple_list):
        f = (
            Filter()
            .equal_to(7, "key")
            .and_()
            .equal_to("2", "id")
            .or_()
            .equal_to(4, "key")
            .equal_to("3", "id")
        )
        assert f.apply(simple_list) == simple_list[1:]

    def test_precedence_each_disjunct_exclusively(self):
        items = [
            {"a": True, "b": True, "c": False, "d": False},
            {"a": False, "b": False, "c": True, "d": True},
            {"a": True, "b": False, "c": True, "d": False},
            {"a": False, "b": True, "c": False, "d": True},
        ]
        f = (
            Filter()
            .equal_to(True, "a")
            .and_()
            .equal_to(True, "b")
            .or_()
            .equal_to(True, "c")
            .equal_to(True, "d")
        )
        assert f.apply(items) == items[:2]

    def test_dangling_operators_are_ignored(self, simple_list):
        f = Filter().or_().less_than(5, "key").or_()
        assert f.apply(simple_list) == [simple_list[2]]

    def test_test_single_item(self, simple_list):
        f = Filter().less_than(5, "key")
        assert f.test(simple_list[2]) is True
        assert f.test(simple_list[0]) is False


class TestComposition:
    """Test combining complete filters."""

    @pytest.fixture
    def filters(self):
        pick_first = (
            Filter()
            .less_than_or_equal_to(5, pointer("key", "key2"))
            .and_()
            .equal_to("1", "id")
            .or_()
            .greater_than_or_equal_to(5, pointer("key", "key2"))
            .equal_to("1", "id")
            .or_()
            .greater_than(5, pointer("key", "key2"))
            .equal_to("1", "id")
        )
        return {
            "first": pick_first,
            "all": Filter().less_than(100, pointer("key", "key2")),
            "none": Filter().greater_than(100, pointer("key", "key2")),
            "last": Filter().equal_to("3", "id"),
        }

    def test_base_filters(self, filters, nested_list):
        assert filters["first"].apply(nested_list) == [nested_list[0]]
        assert filters["all"].apply(nested_list) == nested_list
        assert filters["none"].apply(nested_list) == []
        assert filters["last"].apply(nested_list) == [nested_list[2]]

    def test_and_of_filters(self, filters, nested_list):
        assert filters["first"].and_(filters["last"]).apply(nested_list) == []

    def test_or_of_filters(self, filters, nested_list):
        result = filters["first"].or_(filters["last"]).apply(nested_list)
        assert result == [nested_list[0], nested_list[2]]

    def test_nested_groups(self, filters, nested_list):
        f = filters["first"].or_(filters["all"].and_(filters["none"])).or_(filters["last"])
        assert f.apply(nested_list) == [nested_list[0], nested_list[2]]

    def test_python_operators(self, filters, nested_list):
        assert (filters["first"] | filters["last"]) == filters["first"].or_(filters["last"])
        assert (filters["first"] & filters["last"]).apply(nested_list) == []

    def test_combine_rejects_non_filter(self):
        with pytest.raises(ArgumentError):
            Filter().and_("lt(key,5)")

    def test_extension_does_not_mutate_receiver(self, simple_list):
        base = Filter().less_than_or_equal_to(5, "key")
        narrowed = base.equal_to("1", "id")
        widened = base.or_().greater_than(6, "key")

        assert base.apply(simple_list) == [simple_list[0], simple_list[2]]
        assert narrowed.apply(simple_list) == [simple_list[0]]
        assert widened.apply(simple_list) == simple_list
        assert len(base.chain) == 1

    def test_kind(self):
        assert Filter().kind is QueryKind.FILTER

    def test_chain_members(self):
        f = Filter().less_than(5, "key").or_()
        assert f.chain == (Comparator(FilterOp.LESS_THAN, 5, pointer("key")), BoolOp.OR)


class TestSerialization:
    """Test to_string()."""

    def test_single_leaf(self):
        assert Filter().less_than(5, "key").to_string() == "lt(key,5)"

    def test_implicit_and(self):
        assert Filter().less_than(5, "key").equal_to("1", "id").to_string() == 'lt(key,5)&eq(id,"1")'

    def test_explicit_or(self):
        f = Filter().less_than_or_equal_to(5, "key").or_().greater_than(6, "key")
        assert str(f) == "lte(key,5)|gt(key,6)"

    def test_all_tokens(self):
        f = (
            Filter()
            .greater_than_or_equal_to(1, "a")
            .not_equal_to(None, "b")
            .deep_equal_to([1], "c")
            .not_deep_equal_to({"x": 1}, "d")
            .in_("python", "tags")
            .contains("k", "m")
            .matches("^py", "title")
        )
        assert f.to_string() == (
            'gte(a,1)&ne(b,null)&deq(c,[1])&dne(d,{"x": 1})'
            '&in(tags,"python")&contains(m,"k")&match(title,"^py")'
        )

    def test_nested_pointer(self):
        assert Filter().greater_than(3, pointer("meta", "stars")).to_string() == "gt(meta/stars,3)"

    def test_escaped_segment(self):
        assert Filter().equal_to(1, pointer("a/b")).to_string() == "eq(a~1b,1)"

    def test_path_with_grammar_characters_is_quoted(self):
        assert Filter().equal_to(1, pointer("a,b")).to_string() == 'eq("/a,b",1)'
        assert Filter().in_("x", pointer("meta", "f(x)")).to_string() == 'in("/meta/f(x)","x")'

    def test_no_path(self):
        assert Filter().in_("key").to_string() == 'in("key")'

    def test_nested_filters_are_parenthesized(self):
        either = Filter().less_than(5, "key").or_().equal_to("2", "id")
        f = either.and_(Filter().greater_than(0, "key"))
        assert f.to_string() == '(lt(key,5)|eq(id,"2"))&gt(key,0)'

    def test_empty_filter(self):
        assert Filter().to_string() == ""

    def test_custom_cannot_serialize(self):
        with pytest.raises(SerializationUnsupportedError, match="Cannot serialize custom filter"):
            Filter().custom(lambda item: True).to_string()

    def test_custom_inside_chain_cannot_serialize(self):
        f = Filter().less_than(5, "key").and_(Filter().custom(lambda item: True))
        with pytest.raises(SerializationUnsupportedError):
            f.to_string()

    def test_serializer_override_is_carried(self):
        f = Filter(serializer=lambda flt: f"{flt.leaf_count} leaves").less_than(5, "key").equal_to("1", "id")
        assert f.to_string() == "2 leaves"

    def test_serializer_handles_custom(self):
        f = Filter(serializer=lambda flt: "opaque").custom(lambda item: True)
        assert f.to_string() == "opaque"
