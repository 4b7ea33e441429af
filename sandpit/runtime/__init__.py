"""
Provider-backed sandboxes.

Create a sandbox through an adapter, drive it through the facade functions
re-exported here, and tear it down when done:

    from sandpit import runtime

    handle = runtime.create("memory", {"image": "python:3.12"})
    result = runtime.execute(handle, "python --version")
    runtime.terminate(handle)
"""

from .adapter import Adapter, Capability, SandboxState
from .adapters import DockerAdapter, LocalAdapter, MemoryAdapter
from .facade import (
    await_ready,
    capabilities,
    create,
    create_checkpoint,
    execute,
    from_id,
    get_url,
    list_checkpoints,
    read_file,
    register_adapter,
    resolve_adapter,
    restore_checkpoint,
    start,
    status,
    stop,
    supports,
    terminate,
    update,
    write_file,
    write_files,
)
from .handle import SandboxHandle, normalize_config
from .result import ExecResult
from .template import Template

__all__ = [
    # Data model
    "Adapter",
    "Capability",
    "SandboxState",
    "SandboxHandle",
    "ExecResult",
    "Template",
    "normalize_config",
    # Adapters
    "MemoryAdapter",
    "LocalAdapter",
    "DockerAdapter",
    "register_adapter",
    "resolve_adapter",
    "capabilities",
    "supports",
    # Lifecycle
    "create",
    "from_id",
    "execute",
    "terminate",
    "status",
    # Optional operations
    "get_url",
    "read_file",
    "write_file",
    "write_files",
    "await_ready",
    "update",
    "stop",
    "start",
    # Checkpoints
    "create_checkpoint",
    "restore_checkpoint",
    "list_checkpoints",
]
