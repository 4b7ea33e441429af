"""Reusable sandbox recipes: an adapter plus a base config."""

from dataclasses import dataclass, field
from typing import Any, Dict

from .handle import ConfigInput, normalize_config


@dataclass(frozen=True)
class Template:
    """
    A sandbox recipe.

    Usage:
        python_box = Template("docker", {"image": "python:3.12", "memory_mb": 512})
        handle = runtime.create(python_box, {"memory_mb": 1024})
    """
    adapter: Any
    config: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "config", normalize_config(self.config))

    def merge(self, overrides: ConfigInput = None) -> Dict[str, Any]:
        """Template config with overrides applied on top."""
        return {**self.config, **normalize_config(overrides)}
