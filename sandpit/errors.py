"""
Exception types for sandpit.

Runtime (adapter) failures and evaluator failures share one base class so
callers can catch everything sandpit raises with a single except clause,
while still branching on "unsupported" vs "provider failed".
"""

from enum import Enum
from typing import Any, Optional


class SandpitError(Exception):
    """Base class for every error raised by sandpit."""


class UnsupportedOperationError(SandpitError):
    """The adapter behind a handle does not implement an optional operation.

    Raised before any provider call is attempted. Deliberately not a
    ProviderError: nothing was sent to the provider.
    """

    def __init__(self, operation: str, adapter: str):
        super().__init__(f"Operation '{operation}' is not supported by adapter '{adapter}'")
        self.operation = operation
        self.adapter = adapter


class ProviderError(SandpitError):
    """The provider rejected or failed an operation."""

    def __init__(self, message: str, detail: Any = None):
        super().__init__(message)
        self.detail = detail


class SandboxNotFoundError(ProviderError):
    pass


class ErrorKind(str, Enum):
    TIMEOUT = "timeout"
    RESTRICTED = "restricted"
    RUNTIME = "runtime"
    MEMORY = "memory"
    UNKNOWN_ENGINE = "unknown_engine"


class EvalError(SandpitError):
    """A script evaluation failed."""

    kind = ErrorKind.RUNTIME


class EvalTimeoutError(EvalError):
    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout_ms: int):
        super().__init__(f"Script exceeded its deadline of {timeout_ms}ms and was killed")
        self.timeout_ms = timeout_ms


class RestrictedCapabilityError(EvalError):
    """The script touched a disabled standard library capability."""

    kind = ErrorKind.RESTRICTED

    def __init__(self, capability: str, message: Optional[str] = None):
        super().__init__(message or f"restricted capability '{capability}' is disabled in this sandbox")
        self.capability = capability


class ScriptRuntimeError(EvalError):
    kind = ErrorKind.RUNTIME


class ScriptMemoryError(EvalError):
    kind = ErrorKind.MEMORY


class UnknownEngineError(EvalError):
    kind = ErrorKind.UNKNOWN_ENGINE

    def __init__(self, engine: str):
        super().__init__(f"Unknown eval engine: {engine!r}")
        self.engine = engine


class MarshalError(ScriptRuntimeError):
    """A value could not cross the host/interpreter boundary."""


class CallbackError(ScriptRuntimeError):
    """A host callback raised; surfaces inside the script as a Lua error."""
