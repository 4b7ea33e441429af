"""Result of executing one command in a sandbox."""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class ExecResult:
    """
    Output of one command.

    Fields:
        stdout: standard output of the command
        stderr: standard error (empty when the adapter merged it into stdout)
        exit_code: process exit status, 0 means success
    """
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    def __post_init__(self):
        if self.exit_code < 0:
            raise ValueError(f"exit_code must be non-negative, got {self.exit_code}")

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """stdout if the command wrote any, otherwise stderr."""
        return self.stdout if self.stdout else self.stderr

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
        }
