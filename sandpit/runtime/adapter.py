"""
The adapter contract every sandbox provider implements.

Adapters are independent classes, not subclasses of a shared base. Each one
implements the four required operations of the Adapter protocol and declares
which optional operations it supports through a `capabilities` attribute:

    class MyAdapter:
        name = "my-provider"
        capabilities = frozenset({Capability.READ_FILE, Capability.WRITE_FILE})

        def create(self, config): ...                     # -> (sandbox_id, metadata)
        def execute(self, sandbox_id, command, opts): ... # -> ExecResult
        def terminate(self, sandbox_id, opts): ...        # -> None
        def status(self, sandbox_id, opts): ...           # -> SandboxState

        def read_file(self, sandbox_id, path, opts): ...
        def write_file(self, sandbox_id, path, content, opts): ...

Optional operation signatures:

    get_url(sandbox_id, port, opts) -> str
    read_file(sandbox_id, path, opts) -> bytes | str
    write_file(sandbox_id, path, content, opts) -> None
    write_files(sandbox_id, files, opts) -> None        # files: [(path, content)]
    await_ready(sandbox_id, metadata, opts) -> dict
    update(sandbox_id, config, opts) -> dict
    stop(sandbox_id, opts) -> dict
    start(sandbox_id, opts) -> dict
    create_checkpoint(sandbox_id, opts) -> str
    restore_checkpoint(sandbox_id, checkpoint_id, opts) -> None
    list_checkpoints(sandbox_id, opts) -> list[dict]

Standard config fields adapters should understand where they apply:
`image`, `memory_mb`, `env` (mapping or [(name, value)]), `ports`, `mounts`,
`proxy` (see sandpit.network).

Adapters raise ProviderError (or a subclass) when the provider fails. A
command that runs and exits non-zero is not an error; it is an ExecResult.
"""

import threading
import weakref
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Protocol, Tuple, runtime_checkable

from .result import ExecResult


class SandboxState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    TERMINATED = "terminated"
    UNKNOWN = "unknown"  # provider could not answer, not the same as TERMINATED


class Capability(str, Enum):
    GET_URL = "get_url"
    READ_FILE = "read_file"
    WRITE_FILE = "write_file"
    WRITE_FILES = "write_files"
    AWAIT_READY = "await_ready"
    UPDATE = "update"
    STOP = "stop"
    START = "start"
    # Checkpoint extension, offered by some providers only
    CREATE_CHECKPOINT = "create_checkpoint"
    RESTORE_CHECKPOINT = "restore_checkpoint"
    LIST_CHECKPOINTS = "list_checkpoints"


REQUIRED_OPERATIONS = ("create", "execute", "terminate", "status")


@runtime_checkable
class Adapter(Protocol):
    """Required operations of a sandbox provider adapter."""

    def create(self, config: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]: ...

    def execute(self, sandbox_id: str, command: str, opts: Dict[str, Any]) -> ExecResult: ...

    def terminate(self, sandbox_id: str, opts: Dict[str, Any]) -> None: ...

    def status(self, sandbox_id: str, opts: Dict[str, Any]) -> SandboxState: ...


def adapter_name(adapter: Any) -> str:
    return getattr(adapter, "name", None) or type(adapter).__name__


_resolved: "weakref.WeakKeyDictionary[Any, FrozenSet[Capability]]" = weakref.WeakKeyDictionary()
_resolved_lock = threading.Lock()


def resolve_capabilities(adapter: Any) -> FrozenSet[Capability]:
    """
    Read and validate an adapter's declared optional capabilities.

    The result is cached per adapter object for as long as the adapter
    lives. Adapters that cannot be hashed or weakly referenced (a plain
    @dataclass, a class with __slots__) are validated on every call.
    Raises TypeError when a required operation is missing or a declared
    capability has no matching method.
    """
    try:
        with _resolved_lock:
            cached = _resolved.get(adapter)
    except TypeError:
        return _validate(adapter)
    if cached is None:
        cached = _validate(adapter)
        with _resolved_lock:
            _resolved[adapter] = cached
    return cached


def _validate(adapter: Any) -> FrozenSet[Capability]:
    name = adapter_name(adapter)
    missing = [op for op in REQUIRED_OPERATIONS if not callable(getattr(adapter, op, None))]
    if missing:
        raise TypeError(f"Adapter '{name}' is missing required operations: {', '.join(missing)}")

    declared = frozenset(Capability(c) for c in getattr(adapter, "capabilities", ()))
    for capability in declared:
        if not callable(getattr(adapter, capability.value, None)):
            raise TypeError(
                f"Adapter '{name}' declares '{capability.value}' but does not implement it"
            )
    return declared


def merge_opts(config: Mapping[str, Any], opts: Mapping[str, Any]) -> Dict[str, Any]:
    """Sandbox config overlaid with per-call options (options win)."""
    merged = dict(config)
    merged.update({k: v for k, v in opts.items() if v is not None})
    return merged
