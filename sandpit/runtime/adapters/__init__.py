from .memory import MemoryAdapter
from .local import LocalAdapter
from .docker import DockerAdapter

__all__ = ["MemoryAdapter", "LocalAdapter", "DockerAdapter"]
