"""
Runtime facade: the entry point agents use to drive sandboxes.

Stateless dispatcher: every function takes a SandboxHandle, looks at the
adapter bound to it and forwards the call. Optional operations are checked
against the adapter's declared capabilities first, and raise
UnsupportedOperationError without contacting the provider when missing.
Errors raised by adapters propagate unchanged and nothing is retried.

Usage:
    from sandpit import runtime

    handle = runtime.create("docker", {"image": "node:22-slim"})
    result = runtime.execute(handle, "node --version", timeout=10)
    print(result.output)
    runtime.terminate(handle)
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from .adapter import (
    Capability,
    SandboxState,
    adapter_name,
    merge_opts,
    resolve_capabilities,
)
from .adapters.docker import DockerAdapter
from .adapters.local import LocalAdapter
from .adapters.memory import MemoryAdapter
from .handle import ConfigInput, SandboxHandle, new_handle, normalize_config
from .result import ExecResult
from .template import Template
from ..config import AdapterType, SandpitConfig
from ..errors import UnsupportedOperationError
from ..logging import get_logger

logger = get_logger("runtime")

_BUILTIN_ADAPTERS: Dict[str, Callable[[SandpitConfig], Any]] = {
    AdapterType.MEMORY.value: lambda config: MemoryAdapter(),
    AdapterType.LOCAL.value: lambda config: LocalAdapter(config.local.workspace_root),
    AdapterType.DOCKER.value: lambda config: DockerAdapter(config.docker),
}

_registry: Dict[str, Any] = {}
_registry_lock = threading.Lock()


def register_adapter(name: str, adapter: Any) -> None:
    """Make `adapter` available to create()/from_id() under `name`."""
    resolve_capabilities(adapter)
    with _registry_lock:
        _registry[name] = adapter


def resolve_adapter(selector: Any) -> Any:
    """
    Turn a selector into an adapter object.

    Strings are looked up in the registry; built-in names ("memory",
    "local", "docker") are instantiated on first use from
    SandpitConfig.from_env(). Anything else is taken to be an adapter.
    """
    if isinstance(selector, AdapterType):
        selector = selector.value
    if not isinstance(selector, str):
        return selector

    with _registry_lock:
        adapter = _registry.get(selector)
        if adapter is None:
            factory = _BUILTIN_ADAPTERS.get(selector)
            if factory is None:
                raise ValueError(f"Unknown sandbox adapter: {selector!r}")
            adapter = _registry[selector] = factory(SandpitConfig.from_env())
    return adapter


def capabilities(adapter: Any) -> FrozenSet[Capability]:
    """Optional operations the adapter (or the adapter behind a handle) supports."""
    if isinstance(adapter, SandboxHandle):
        adapter = adapter.adapter
    return resolve_capabilities(resolve_adapter(adapter))


def supports(adapter: Any, operation: Union[str, Capability]) -> bool:
    return Capability(operation) in capabilities(adapter)


@dataclass
class _CallContext:
    """Bookkeeping for one facade call, passed explicitly through dispatch."""
    operation: str
    adapter: str
    sandbox: Optional[str] = None
    started: float = field(default_factory=time.monotonic)

    def extra(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "adapter": self.adapter,
            "sandbox": self.sandbox,
            "duration": round(time.monotonic() - self.started, 4),
        }


def _dispatch(ctx: _CallContext, fn: Callable[..., Any], *args: Any) -> Any:
    try:
        result = fn(*args)
    except Exception as e:
        logger.debug(f"{ctx.operation} failed: {e}", extra=ctx.extra())
        raise
    logger.debug(f"{ctx.operation} done", extra=ctx.extra())
    return result


def _call_optional(handle: SandboxHandle, capability: Capability, *args: Any) -> Any:
    adapter = handle.adapter
    name = adapter_name(adapter)
    if capability not in resolve_capabilities(adapter):
        raise UnsupportedOperationError(capability.value, name)
    ctx = _CallContext(capability.value, name, handle.id)
    return _dispatch(ctx, getattr(adapter, capability.value), handle.id, *args)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

def create(selector: Any, config: ConfigInput = None) -> SandboxHandle:
    """
    Create a sandbox.

    Args:
        selector: adapter name, adapter object, or Template
        config: mapping or (key, value) pairs; with a Template these are
            overrides merged on top of the template config

    Returns:
        SandboxHandle for the new sandbox
    """
    if isinstance(selector, Template):
        config_map = selector.merge(config)
        selector = selector.adapter
    else:
        config_map = normalize_config(config)

    adapter = resolve_adapter(selector)
    resolve_capabilities(adapter)
    ctx = _CallContext("create", adapter_name(adapter))
    sandbox_id, metadata = _dispatch(ctx, adapter.create, dict(config_map))

    ctx.sandbox = sandbox_id
    logger.info("Sandbox created", extra=ctx.extra())
    return new_handle(sandbox_id, adapter, config_map, metadata)


def from_id(
    adapter: Any,
    sandbox_id: str,
    config: ConfigInput = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> SandboxHandle:
    """Rebuild a handle for a sandbox that already exists. Performs no I/O."""
    return new_handle(sandbox_id, resolve_adapter(adapter), config, metadata)


def execute(handle: SandboxHandle, command: str, **opts: Any) -> ExecResult:
    """
    Run a shell command in the sandbox. May block for as long as the command runs.

    Options (honoured where the adapter supports them):
        workdir: working directory for the command
        env: environment variables, mapping or [(name, value)]
        timeout: seconds before the command is abandoned
        stderr_to_stdout: merge stderr into stdout
    """
    ctx = _CallContext("execute", handle.adapter_name, handle.id)
    return _dispatch(ctx, handle.adapter.execute, handle.id, command, merge_opts(handle.config, opts))


def terminate(handle: SandboxHandle, **opts: Any) -> None:
    ctx = _CallContext("terminate", handle.adapter_name, handle.id)
    _dispatch(ctx, handle.adapter.terminate, handle.id, merge_opts(handle.config, opts))
    logger.info("Sandbox terminated", extra=ctx.extra())


def status(handle: SandboxHandle, **opts: Any) -> SandboxState:
    """Ask the provider for the sandbox state. Never served from a cache."""
    ctx = _CallContext("status", handle.adapter_name, handle.id)
    return SandboxState(_dispatch(ctx, handle.adapter.status, handle.id, merge_opts(handle.config, opts)))


# ---------------------------------------------------------------------------
# Optional operations
# ---------------------------------------------------------------------------

def get_url(handle: SandboxHandle, port: int, **opts: Any) -> str:
    """URL for an exposed port. Ports remapped by the provider are resolved via metadata."""
    resolved = (handle.metadata.get("port_map") or {}).get(port, port)
    return _call_optional(handle, Capability.GET_URL, resolved, merge_opts(handle.config, opts))


def read_file(handle: SandboxHandle, path: str, **opts: Any) -> Any:
    return _call_optional(handle, Capability.READ_FILE, path, merge_opts(handle.config, opts))


def write_file(handle: SandboxHandle, path: str, content: Union[str, bytes], **opts: Any) -> None:
    _call_optional(handle, Capability.WRITE_FILE, path, content, merge_opts(handle.config, opts))


def write_files(
    handle: SandboxHandle,
    files: Union[Mapping[str, Any], Iterable[Tuple[str, Any]]],
    **opts: Any,
) -> None:
    """Write several files at once; `files` is a mapping or [(path, content)]."""
    items = list(files.items()) if isinstance(files, Mapping) else list(files)
    _call_optional(handle, Capability.WRITE_FILES, items, merge_opts(handle.config, opts))


def await_ready(handle: SandboxHandle, **opts: Any) -> Dict[str, Any]:
    return _call_optional(
        handle, Capability.AWAIT_READY, dict(handle.metadata), merge_opts(handle.config, opts)
    )


def update(handle: SandboxHandle, config: ConfigInput, **opts: Any) -> Dict[str, Any]:
    """Change a sandbox's config in place, keeping its state."""
    return _call_optional(
        handle, Capability.UPDATE, normalize_config(config), merge_opts(handle.config, opts)
    )


def stop(handle: SandboxHandle, **opts: Any) -> Dict[str, Any]:
    """Pause the sandbox without destroying it; resume with start()."""
    return _call_optional(handle, Capability.STOP, merge_opts(handle.config, opts))


def start(handle: SandboxHandle, **opts: Any) -> Dict[str, Any]:
    return _call_optional(handle, Capability.START, merge_opts(handle.config, opts))


# ---------------------------------------------------------------------------
# Checkpoint extension
# ---------------------------------------------------------------------------

def create_checkpoint(handle: SandboxHandle, **opts: Any) -> str:
    """Snapshot the sandbox. Pass comment="..." to label it. Returns the checkpoint id."""
    return _call_optional(handle, Capability.CREATE_CHECKPOINT, merge_opts(handle.config, opts))


def restore_checkpoint(handle: SandboxHandle, checkpoint_id: str, **opts: Any) -> None:
    _call_optional(
        handle, Capability.RESTORE_CHECKPOINT, checkpoint_id, merge_opts(handle.config, opts)
    )


def list_checkpoints(handle: SandboxHandle, **opts: Any) -> List[Dict[str, Any]]:
    return _call_optional(handle, Capability.LIST_CHECKPOINTS, merge_opts(handle.config, opts))
