"""
Local adapter: runs commands directly on the host.

No isolation. Fast. Good for development and trusted workloads.

Each sandbox is a workspace directory `<workspace_root>/<sandbox_id>`; the
adapter keeps no state of its own, so a handle rebuilt with from_id() works as
long as the directory exists. Concurrent execute() calls are independent
subprocesses and may interleave.
"""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union
from uuid import uuid4

from ..adapter import Capability, SandboxState
from ..result import ExecResult
from ...errors import ProviderError, SandboxNotFoundError
from ...logging import get_logger
from ...security import resolve_inside, validate_workspace

logger = get_logger("adapters.local")

DEFAULT_TIMEOUT = 30  # seconds
TIMEOUT_EXIT_CODE = 124  # same convention as coreutils `timeout`


def exit_status(returncode: int) -> int:
    """Map a subprocess return code to a shell exit status (signal N -> 128 + N)."""
    return 128 - returncode if returncode < 0 else returncode


def env_pairs(env: Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None]) -> Dict[str, str]:
    """Normalize an env option (mapping or [(name, value)]) to str -> str."""
    if not env:
        return {}
    items = env.items() if isinstance(env, Mapping) else env
    return {str(k): str(v) for k, v in items}


class LocalAdapter:
    """Executes commands in per-sandbox directories on the host machine."""

    name = "local"
    capabilities = frozenset({
        Capability.READ_FILE,
        Capability.WRITE_FILE,
        Capability.WRITE_FILES,
    })

    def __init__(self, workspace_root: Optional[Path] = None):
        self.workspace_root = workspace_root

    def _root(self, opts: Mapping[str, Any]) -> Path:
        root = opts.get("workspace_root") or self.workspace_root
        return Path(root) if root else Path(tempfile.gettempdir()) / "sandpit"

    def _workspace(self, sandbox_id: str, opts: Mapping[str, Any]) -> Path:
        workspace = self._root(opts) / sandbox_id
        if not workspace.is_dir():
            raise SandboxNotFoundError(f"No such sandbox: {sandbox_id}", detail=str(workspace))
        return workspace

    def create(self, config: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        root = self._root(config)
        if not validate_workspace(root):
            raise ProviderError(f"Unsafe workspace root: {root}", detail=str(root))

        sandbox_id = config.get("name") or f"local-{uuid4().hex[:12]}"
        workspace = root / sandbox_id
        try:
            workspace.mkdir(parents=True, exist_ok=False)
        except FileExistsError:
            raise ProviderError(f"Sandbox already exists: {sandbox_id}", detail=str(workspace)) from None
        except OSError as e:
            raise ProviderError(f"Failed to create workspace {workspace}: {e}", detail=str(e)) from e

        logger.info(f"Local sandbox started: {workspace}", extra={"sandbox": sandbox_id})
        return sandbox_id, {"workspace": str(workspace)}

    def execute(self, sandbox_id: str, command: str, opts: Dict[str, Any]) -> ExecResult:
        workspace = self._workspace(sandbox_id, opts)
        cwd = resolve_inside(workspace, opts["workdir"]) if opts.get("workdir") else workspace
        env = {**os.environ, **env_pairs(opts.get("env"))}
        timeout = opts.get("timeout", DEFAULT_TIMEOUT)
        merge_stderr = bool(opts.get("stderr_to_stdout"))

        try:
            completed = subprocess.run(
                command,
                shell=True,
                cwd=str(cwd),
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Command timed out after {timeout}s", extra={"sandbox": sandbox_id})
            return ExecResult(stdout="", stderr="Timed out", exit_code=TIMEOUT_EXIT_CODE)
        except OSError as e:
            raise ProviderError(f"Failed to run command: {e}", detail=str(e)) from e

        return ExecResult(
            stdout=completed.stdout.decode(errors="replace"),
            stderr=(completed.stderr or b"").decode(errors="replace"),
            exit_code=exit_status(completed.returncode),
        )

    def terminate(self, sandbox_id: str, opts: Dict[str, Any]) -> None:
        workspace = self._workspace(sandbox_id, opts)
        shutil.rmtree(workspace)
        logger.info("Local sandbox stopped", extra={"sandbox": sandbox_id})

    def status(self, sandbox_id: str, opts: Dict[str, Any]) -> SandboxState:
        if (self._root(opts) / sandbox_id).is_dir():
            return SandboxState.RUNNING
        return SandboxState.TERMINATED

    def read_file(self, sandbox_id: str, path: str, opts: Dict[str, Any]) -> bytes:
        target = resolve_inside(self._workspace(sandbox_id, opts), path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise ProviderError(f"Failed to read {path}: {e}", detail=path) from e

    def write_file(self, sandbox_id: str, path: str, content: Union[str, bytes], opts: Dict[str, Any]) -> None:
        target = resolve_inside(self._workspace(sandbox_id, opts), path)
        data = content.encode() if isinstance(content, str) else content
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise ProviderError(f"Failed to write {path}: {e}", detail=path) from e

    def write_files(self, sandbox_id: str, files, opts: Dict[str, Any]) -> None:
        items = files.items() if isinstance(files, Mapping) else files
        for path, content in items:
            self.write_file(sandbox_id, path, content, opts)
