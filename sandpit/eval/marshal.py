"""
Value conversion between host Python values and Lua values.

Lua -> host (from_lua):
    nil, booleans, numbers and strings pass through. A table whose keys are
    exactly 1..n becomes a list, any other table a dict with string keys.
    The result is always JSON-serializable.

Host -> Lua (from_host, then to_lua):
    from_host() canonicalizes a host value in the parent process: mapping
    keys become text whether they were str, Enum members, bytes or numbers,
    and tuples/sets become lists. to_lua() turns that canonical value into
    Lua tables inside the interpreter process.
"""

from enum import Enum
from typing import Any, List, Mapping

from lupa import lua_type

from ..errors import MarshalError

MAX_DEPTH = 64


def _number_text(number: float) -> str:
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


# ---------------------------------------------------------------------------
# Lua -> host
# ---------------------------------------------------------------------------

def _lua_key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if isinstance(key, (int, float)):
        return _number_text(key)
    if isinstance(key, bytes):
        return key.decode("utf-8", errors="replace")
    raise MarshalError(f"cannot use a Lua {lua_type(key) or type(key).__name__} as a mapping key")


def _sequence_index(key: Any):
    if isinstance(key, bool):
        return None
    if isinstance(key, int):
        return key
    if isinstance(key, float) and key.is_integer():
        return int(key)
    return None


def _is_sequence(keys: List[Any]) -> bool:
    indices = []
    for key in keys:
        index = _sequence_index(key)
        if index is None:
            return False
        indices.append(index)
    return sorted(indices) == list(range(1, len(indices) + 1))


def from_lua(value: Any, _depth: int = 0) -> Any:
    """Convert a value returned by the Lua interpreter into plain Python."""
    kind = lua_type(value)

    if kind is None:
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        raise MarshalError(f"cannot marshal a Python {type(value).__name__} out of Lua")

    if kind != "table":
        raise MarshalError(f"cannot marshal a Lua {kind}")
    if _depth >= MAX_DEPTH:
        raise MarshalError(f"table nesting deeper than {MAX_DEPTH} levels")

    items = list(value.items())
    if _is_sequence([key for key, _ in items]):
        items.sort(key=lambda item: _sequence_index(item[0]))
        return [from_lua(item, _depth + 1) for _, item in items]
    return {_lua_key(key): from_lua(item, _depth + 1) for key, item in items}


# ---------------------------------------------------------------------------
# Host -> Lua
# ---------------------------------------------------------------------------

def host_key(key: Any) -> str:
    """Text form of a host mapping key. Enum members count as symbolic keys."""
    if isinstance(key, Enum):
        return key.value if isinstance(key.value, str) else key.name
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if isinstance(key, (int, float)):
        return _number_text(key)
    if isinstance(key, bytes):
        return key.decode("utf-8", errors="replace")
    raise MarshalError(f"cannot use a {type(key).__name__} as a mapping key")


def from_host(value: Any, _depth: int = 0) -> Any:
    """Canonicalize a host value so it can be shipped to the interpreter."""
    if isinstance(value, Enum):
        return from_host(value.value, _depth)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")

    if _depth >= MAX_DEPTH:
        raise MarshalError(f"value nesting deeper than {MAX_DEPTH} levels")
    if isinstance(value, Mapping):
        return {host_key(k): from_host(v, _depth + 1) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [from_host(v, _depth + 1) for v in value]
    if isinstance(value, (set, frozenset)):
        return [from_host(v, _depth + 1) for v in sorted(value, key=repr)]
    raise MarshalError(f"cannot marshal a {type(value).__name__} into Lua")


def to_lua(lua: Any, value: Any) -> Any:
    """Build Lua tables for a value already canonicalized by from_host()."""
    if isinstance(value, dict):
        return lua.table_from({k: to_lua(lua, v) for k, v in value.items()})
    if isinstance(value, list):
        return lua.table_from([to_lua(lua, v) for v in value])
    return value


def collapse_returns(values: List[Any]) -> Any:
    """No values -> None, one value -> itself, several -> list in return order."""
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return list(values)
