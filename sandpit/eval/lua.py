"""
Lua evaluation in a locked-down interpreter.

Each evaluate() call starts a new process and a new lupa LuaRuntime in it,
so no globals survive between calls. Before the script runs, the standard
library is cut down:

- `io` and `package` are replaced by tables that raise on any access
- `debug` keeps only traceback, which lupa uses to report errors
- `os` keeps only clock, time, date and difftime
- `load`, `loadfile`, `loadstring`, `dofile`, `require`, `collectgarbage` and
  `string.dump` raise when called
- lupa's `python` bridge is removed and Python attribute access is blocked

Touching any of them fails with "restricted capability '<name>' is disabled
in this sandbox", reported as RestrictedCapabilityError(capability=<name>).
The lock records each hit on the host side, so a script that raises the same
message itself still gets a plain runtime error.

Host callbacks are the only way out. They run in the host process: the
worker forwards each call over the supervisor pipe and waits for the reply.

Usage:
    result = evaluate("return double(21)", callbacks={"double": lambda x: x * 2})
    result.value  # 42
"""

import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from .marshal import collapse_returns, from_host, from_lua, to_lua
from .result import EvalResult
from .supervisor import DeadlineSupervisor
from ..errors import (
    CallbackError,
    ErrorKind,
    EvalError,
    RestrictedCapabilityError,
    ScriptMemoryError,
    ScriptRuntimeError,
)
from ..logging import bind, get_logger

logger = get_logger("eval.lua")

DEFAULT_TIMEOUT_MS = 5_000

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_PRELUDE = r"""
local note = ...
local error, ipairs, setmetatable, tostring = error, ipairs, setmetatable, tostring

local function restricted(name)
  note(name)
  error("restricted capability '" .. name .. "' is disabled in this sandbox", 3)
end

local function deny(name)
  return function() restricted(name) end
end

local function lock(modname, keep)
  local original = _G[modname] or {}
  local safe = {}
  for _, key in ipairs(keep) do safe[key] = original[key] end
  return setmetatable(safe, {
    __index = function(_, key) restricted(modname .. "." .. tostring(key)) end,
    __newindex = function(_, key) restricted(modname .. "." .. tostring(key)) end,
    __metatable = false,
  })
end

os = lock("os", {"clock", "time", "date", "difftime"})
io = lock("io", {})
package = lock("package", {})
debug = lock("debug", {"traceback"})

for _, name in ipairs({"load", "loadfile", "loadstring", "dofile", "require", "collectgarbage"}) do
  _G[name] = deny(name)
end
if string then string.dump = deny("string.dump") end
python = nil
"""

# Collects every return value, nils included, with an explicit count
_PACK = r"""
local select = select
return function(chunk)
  local function pack(...) return {n = select("#", ...), ...} end
  return pack(chunk())
end
"""


def _deny_attributes(obj, attr_name, is_setting):
    raise AttributeError(f"access to Python attribute '{attr_name}' is not allowed")


def _new_runtime(max_memory: Optional[int]):
    """Return the locked runtime and the list the prelude appends restricted names to."""
    from lupa import LuaRuntime

    kwargs = {
        "register_eval": False,
        "register_builtins": False,
        "attribute_filter": _deny_attributes,
    }
    if max_memory:
        kwargs["max_memory"] = max_memory
    lua = LuaRuntime(**kwargs)
    hits: List[str] = []
    lua.execute(_PRELUDE, hits.append)
    return lua, hits


def _callback_proxy(lua, conn, name: str) -> Callable[..., Any]:
    def call(*args):
        conn.send(("call", name, [from_lua(arg) for arg in args]))
        status, payload = conn.recv()
        if status == "error":
            raise CallbackError(payload)
        return to_lua(lua, payload)

    call.__name__ = name
    return call


def _error_message(error: EvalError) -> tuple:
    return ("error", error.kind.value, str(error), getattr(error, "capability", None))


def _restricted_hit(hits: List[str], message: str) -> Optional[str]:
    # pcall can swallow a hit, so the error must name one that was recorded
    for name in reversed(hits):
        if f"restricted capability '{name}'" in message:
            return name
    return None


def _run_script(conn, script: str, callback_names, max_memory: Optional[int]) -> tuple:
    from lupa import LuaError, LuaMemoryError

    lua, hits = _new_runtime(max_memory)
    pack = lua.execute(_PACK)
    env = lua.globals()
    for name in callback_names:
        env[name] = _callback_proxy(lua, conn, name)

    try:
        packed = pack(lua.compile(script))
        values = [from_lua(packed[i]) for i in range(1, packed["n"] + 1)]
    except LuaMemoryError as e:
        return _error_message(ScriptMemoryError(str(e)))
    except LuaError as e:
        message = str(e)
        capability = _restricted_hit(hits, message)
        if capability:
            return _error_message(RestrictedCapabilityError(capability, message))
        return _error_message(ScriptRuntimeError(message))
    except EvalError as e:
        return _error_message(e)
    return ("ok", collapse_returns(values))


def _lua_worker(conn, script: str, callback_names, max_memory: Optional[int]) -> None:
    """Child process entry point."""
    try:
        message = _run_script(conn, script, callback_names, max_memory)
    except Exception as e:
        message = ("error", ErrorKind.RUNTIME.value, f"{type(e).__name__}: {e}", None)
    try:
        conn.send(message)
    finally:
        conn.close()


def _error_from(kind: str, message: str, capability: Optional[str]) -> EvalError:
    if kind == ErrorKind.RESTRICTED.value:
        return RestrictedCapabilityError(capability or "unknown", message)
    if kind == ErrorKind.MEMORY.value:
        return ScriptMemoryError(message)
    return ScriptRuntimeError(message)


def _serve_callback(callbacks: Mapping[str, Callable[..., Any]], name: str, args: list) -> tuple:
    func = callbacks.get(name)
    if func is None:
        return ("error", f"unknown callback '{name}'")
    try:
        return ("ok", from_host(func(*args)))
    except Exception as e:
        logger.warning(f"Callback '{name}' raised {type(e).__name__}: {e}", extra={"engine": "lua"})
        return ("error", f"callback '{name}' failed: {type(e).__name__}: {e}")


@dataclass
class _EvalContext:
    """Per-call bookkeeping, passed explicitly so concurrent calls never share it."""
    timeout_ms: int
    started: float = field(default_factory=time.monotonic)
    log: Any = field(default_factory=lambda: bind(logger, engine="lua"))

    def finish(self, value: Any = None, error: Optional[EvalError] = None) -> EvalResult:
        duration_ms = round((time.monotonic() - self.started) * 1000, 3)
        extra = {"duration": round(duration_ms / 1000, 4)}
        if error is None:
            self.log.debug("Lua script finished", extra=extra)
        elif error.kind == ErrorKind.RESTRICTED:
            self.log.warning(
                f"Lua script touched a restricted capability: {error}",
                extra={**extra, "capability": getattr(error, "capability", None)},
            )
        elif error.kind == ErrorKind.TIMEOUT:
            self.log.warning(f"Lua script killed after {self.timeout_ms}ms", extra=extra)
        else:
            self.log.info(f"Lua script failed: {error}", extra=extra)
        return EvalResult(value=value, error=error, duration_ms=duration_ms)


def _check_callbacks(callbacks: Optional[Mapping[str, Callable[..., Any]]]) -> Dict[str, Callable[..., Any]]:
    checked = {}
    for name, func in (callbacks or {}).items():
        if not isinstance(name, str) or not _IDENTIFIER.match(name):
            raise ValueError(f"Callback name must be a Lua identifier, got {name!r}")
        if not callable(func):
            raise TypeError(f"Callback '{name}' is not callable")
        checked[name] = func
    return checked


def evaluate(
    script: str,
    timeout_ms: Optional[int] = DEFAULT_TIMEOUT_MS,
    callbacks: Optional[Mapping[str, Callable[..., Any]]] = None,
    max_memory: Optional[int] = None,
) -> EvalResult:
    """
    Run a Lua script and return its marshalled result.

    Args:
        script: Lua source; use `return` to hand values back
        timeout_ms: wall-clock budget, the worker is killed when it runs out;
            None means DEFAULT_TIMEOUT_MS
        callbacks: host functions callable from the script by name
        max_memory: optional cap on Lua heap size in bytes

    Returns:
        EvalResult; script failures are carried in `error`, never raised
    """
    if timeout_ms is None:
        timeout_ms = DEFAULT_TIMEOUT_MS
    if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
        raise ValueError(f"timeout_ms must be a positive integer, got {timeout_ms!r}")
    checked = _check_callbacks(callbacks)

    ctx = _EvalContext(timeout_ms)
    supervisor = DeadlineSupervisor(timeout_ms)
    try:
        message = supervisor.run(
            _lua_worker,
            (script, sorted(checked), max_memory),
            on_call=lambda name, args: _serve_callback(checked, name, args),
        )
    except EvalError as e:
        return ctx.finish(error=e)

    if message[0] == "ok":
        return ctx.finish(value=message[1])
    _, kind, text, capability = message
    return ctx.finish(error=_error_from(kind, text, capability))


def evaluate_or_raise(script: str, **kwargs: Any) -> Any:
    """Like evaluate() but returns the value directly and raises EvalError on failure."""
    return evaluate(script, **kwargs).unwrap()
