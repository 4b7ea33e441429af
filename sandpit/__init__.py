"""
sandpit: sandboxes for agents and a locked-down script evaluator.

Two independent halves:

- `sandpit.runtime` drives provider-backed sandboxes (in-memory, local
  subprocess, Docker/Podman) through one adapter-neutral facade.
- `sandpit.eval` runs short Lua scripts in a fresh interpreter under a hard
  deadline, with only the host callbacks you pass in.

Quick start:
    from sandpit import runtime

    handle = runtime.create("local")
    print(runtime.execute(handle, "echo hello").stdout)
    runtime.terminate(handle)

Script evaluation:
    from sandpit import evaluate_or_raise

    evaluate_or_raise("return 1 + 2")                     # 3
    evaluate_or_raise("return double(5)", callbacks={"double": lambda x: x * 2})  # 10
"""

from . import eval, runtime
from .config import AdapterType, DockerConfig, LocalConfig, SandpitConfig
from .errors import (
    ErrorKind,
    EvalError,
    EvalTimeoutError,
    MarshalError,
    ProviderError,
    RestrictedCapabilityError,
    SandboxNotFoundError,
    SandpitError,
    ScriptMemoryError,
    ScriptRuntimeError,
    UnknownEngineError,
    UnsupportedOperationError,
)
from .eval import EvalResult, evaluate, evaluate_async, evaluate_or_raise
from .logging import get_logger, setup_logging
from .runtime import ExecResult, SandboxHandle, SandboxState, Template

__version__ = "0.1.0"

__all__ = [
    # Subpackages
    "runtime",
    "eval",
    # Runtime
    "SandboxHandle",
    "SandboxState",
    "ExecResult",
    "Template",
    # Evaluator
    "evaluate",
    "evaluate_or_raise",
    "evaluate_async",
    "EvalResult",
    # Config
    "SandpitConfig",
    "AdapterType",
    "DockerConfig",
    "LocalConfig",
    # Errors
    "SandpitError",
    "UnsupportedOperationError",
    "ProviderError",
    "SandboxNotFoundError",
    "ErrorKind",
    "EvalError",
    "EvalTimeoutError",
    "RestrictedCapabilityError",
    "ScriptRuntimeError",
    "ScriptMemoryError",
    "UnknownEngineError",
    "MarshalError",
    # Logging
    "get_logger",
    "setup_logging",
]
