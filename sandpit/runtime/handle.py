"""
Sandbox handles.

A handle is a plain value naming one sandbox: its provider-side id, the
adapter that owns it, and the config it was created with. It holds no
connection, so it can be rebuilt at any time with runtime.from_id().
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

ConfigInput = Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None]


def normalize_config(config: ConfigInput) -> Dict[str, Any]:
    """
    Turn a config mapping or a sequence of (key, value) pairs into a dict.

    Later pairs win when a key repeats, matching dict() semantics.
    """
    if config is None:
        return {}
    if isinstance(config, Mapping):
        return dict(config)
    if isinstance(config, (str, bytes)):
        raise TypeError("config must be a mapping or a sequence of (key, value) pairs")
    try:
        return dict(config)
    except (TypeError, ValueError) as e:
        raise TypeError(
            "config must be a mapping or a sequence of (key, value) pairs"
        ) from e


@dataclass(frozen=True, eq=False)
class SandboxHandle:
    """Identifies one sandbox instance behind an adapter."""
    id: str
    adapter: Any
    config: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: int = field(default_factory=time.monotonic_ns)  # diagnostics only

    @property
    def adapter_name(self) -> str:
        return getattr(self.adapter, "name", type(self.adapter).__name__)

    def __repr__(self) -> str:
        return f"SandboxHandle(id={self.id!r}, adapter={self.adapter_name!r})"


def new_handle(
    sandbox_id: str,
    adapter: Any,
    config: ConfigInput = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> SandboxHandle:
    return SandboxHandle(
        id=sandbox_id,
        adapter=adapter,
        config=normalize_config(config),
        metadata=dict(metadata or {}),
    )
