"""Tests for value conversion between host Python and Lua."""

import json
from enum import Enum

import pytest
from lupa import LuaRuntime

from sandpit.errors import MarshalError
from sandpit.eval.marshal import MAX_DEPTH, collapse_returns, from_host, from_lua, host_key, to_lua


class Color(str, Enum):
    RED = "red"


class Level(Enum):
    HIGH = 3


@pytest.fixture
def lua():
    return LuaRuntime()


class TestFromLua:

    def test_scalars(self, lua):
        assert from_lua(lua.eval("42")) == 42
        assert from_lua(lua.eval("2.5")) == 2.5
        assert from_lua(lua.eval("'text'")) == "text"
        assert from_lua(lua.eval("true")) is True
        assert from_lua(lua.eval("nil")) is None

    def test_sequence_becomes_list(self, lua):
        assert from_lua(lua.eval("{10, 20, 30}")) == [10, 20, 30]

    def test_empty_table_is_a_list(self, lua):
        assert from_lua(lua.eval("{}")) == []

    def test_record_becomes_dict(self, lua):
        assert from_lua(lua.eval("{name = 'box', size = 3}")) == {"name": "box", "size": 3}

    def test_mixed_and_sparse_tables_become_dicts(self, lua):
        assert from_lua(lua.eval("{1, 2, x = 3}")) == {"1": 1, "2": 2, "x": 3}
        assert from_lua(lua.eval("{[1] = 'a', [3] = 'c'}")) == {"1": "a", "3": "c"}

    def test_nested_value_is_json_lossless(self, lua):
        value = from_lua(lua.eval("{user = {name = 'ada', roles = {'admin', 'dev'}}, [true] = 1}"))
        assert value == {"user": {"name": "ada", "roles": ["admin", "dev"]}, "true": 1}
        assert json.loads(json.dumps(value)) == value

    def test_function_rejected(self, lua):
        with pytest.raises(MarshalError, match="function"):
            from_lua(lua.eval("function() end"))

    def test_function_inside_table_rejected(self, lua):
        with pytest.raises(MarshalError):
            from_lua(lua.eval("{callback = print}"))

    def test_python_object_rejected(self):
        with pytest.raises(MarshalError):
            from_lua(object())

    def test_depth_limited(self, lua):
        deep = lua.execute(
            f"local root = {{}} local t = root "
            f"for i = 1, {MAX_DEPTH + 5} do t.next = {{}} t = t.next end return root"
        )
        with pytest.raises(MarshalError, match="deeper"):
            from_lua(deep)


class TestFromHost:

    def test_enum_keys_become_text(self):
        assert from_host({Color.RED: 1, Level.HIGH: 2}) == {"red": 1, "HIGH": 2}

    def test_enum_values(self):
        assert from_host([Color.RED, Level.HIGH]) == ["red", 3]

    def test_number_and_bytes_keys(self):
        assert from_host({1: "a", 2.5: "b", b"k": "c"}) == {"1": "a", "2.5": "b", "k": "c"}
        assert from_host({True: "yes"}) == {"true": "yes"}

    def test_tuples_and_sets_become_lists(self):
        assert from_host((1, 2)) == [1, 2]
        assert from_host({"b", "a"}) == ["a", "b"]

    def test_bytes_decoded(self):
        assert from_host(b"caf\xc3\xa9") == "café"

    def test_unsupported_type(self):
        with pytest.raises(MarshalError, match="object"):
            from_host({"x": object()})

    def test_unsupported_key(self):
        with pytest.raises(MarshalError):
            host_key((1, 2))


class TestToLua:

    def test_mapping_keyed_by_text(self, lua):
        table = to_lua(lua, from_host({Color.RED: {"nested": [1, 2]}}))
        read = lua.eval("function(t) return t.red.nested[2] end")
        assert read(table) == 2

    def test_sequence_is_one_indexed(self, lua):
        table = to_lua(lua, ["a", "b"])
        assert lua.eval("function(t) return t[1] .. t[2] .. #t end")(table) == "ab2"

    def test_scalars_pass_through(self, lua):
        assert to_lua(lua, "x") == "x"
        assert to_lua(lua, None) is None


class TestCollapseReturns:

    def test_policy(self):
        assert collapse_returns([]) is None
        assert collapse_returns([7]) == 7
        assert collapse_returns([1, None, "x"]) == [1, None, "x"]
