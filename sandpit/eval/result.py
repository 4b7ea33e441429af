"""Outcome of one script evaluation."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..errors import ErrorKind, EvalError


@dataclass(frozen=True)
class EvalResult:
    """
    Either a marshalled value or the error that stopped the script.

    `value` is plain JSON-compatible data. `error` is one of the EvalError
    subclasses (timeout, restricted capability, runtime, memory).
    """
    value: Any = None
    error: Optional[EvalError] = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> Any:
        """Return the value, or raise the evaluation error."""
        if self.error is not None:
            raise self.error
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "value": self.value,
            "error": str(self.error) if self.error is not None else None,
            "kind": self.kind.value if self.kind is not None else None,
            "duration_ms": self.duration_ms,
        }
