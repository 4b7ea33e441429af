"""
Configuration dataclasses for sandpit.

All settings have sensible defaults. Override via SandpitConfig() or the
SANDPIT_* environment variables (see SandpitConfig.from_env).
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional


class AdapterType(str, Enum):
    MEMORY = "memory"
    LOCAL = "local"
    DOCKER = "docker"


@dataclass
class DockerConfig:
    """Docker adapter defaults, used when a sandbox config leaves them out."""
    image: str = "python:3.12-slim"
    memory_limit: str = "1g"
    cpu_limit: str = "1.0"
    network: Optional[str] = None  # None = default bridge
    runtime: Optional[str] = None  # None = detect docker, then podman


@dataclass
class LocalConfig:
    """Local adapter settings."""
    workspace_root: Optional[Path] = None  # None = <tmpdir>/sandpit


@dataclass
class SandpitConfig:
    """Top-level configuration for sandpit."""
    default_adapter: AdapterType = AdapterType.MEMORY
    eval_timeout_ms: int = 5_000
    eval_max_memory: Optional[int] = None  # bytes, None = unlimited heap
    log_level: str = "INFO"
    log_file: Optional[Path] = None  # JSON lines file
    docker: DockerConfig = field(default_factory=DockerConfig)
    local: LocalConfig = field(default_factory=LocalConfig)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SandpitConfig":
        """
        Build a config from SANDPIT_* environment variables.

        Unset variables keep their defaults. Call dotenv.load_dotenv() first
        if the values live in a .env file.
        """
        env = os.environ if environ is None else environ
        config = cls()

        if env.get("SANDPIT_DEFAULT_ADAPTER"):
            config.default_adapter = AdapterType(env["SANDPIT_DEFAULT_ADAPTER"])
        if env.get("SANDPIT_EVAL_TIMEOUT_MS"):
            config.eval_timeout_ms = int(env["SANDPIT_EVAL_TIMEOUT_MS"])
        if env.get("SANDPIT_EVAL_MAX_MEMORY"):
            config.eval_max_memory = int(env["SANDPIT_EVAL_MAX_MEMORY"])
        if env.get("SANDPIT_LOG_LEVEL"):
            config.log_level = env["SANDPIT_LOG_LEVEL"]
        if env.get("SANDPIT_LOG_FILE"):
            config.log_file = Path(env["SANDPIT_LOG_FILE"])
        if env.get("SANDPIT_DOCKER_IMAGE"):
            config.docker.image = env["SANDPIT_DOCKER_IMAGE"]
        if env.get("SANDPIT_DOCKER_MEMORY"):
            config.docker.memory_limit = env["SANDPIT_DOCKER_MEMORY"]
        if env.get("SANDPIT_DOCKER_RUNTIME"):
            config.docker.runtime = env["SANDPIT_DOCKER_RUNTIME"]
        if env.get("SANDPIT_WORKSPACE_ROOT"):
            config.local.workspace_root = Path(env["SANDPIT_WORKSPACE_ROOT"])

        return config
