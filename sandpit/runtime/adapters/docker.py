"""
Docker adapter: persistent container per sandbox.

The container is created by create() and removed by terminate(). It stays
alive between calls (kept running with `tail -f /dev/null`) and commands run
through `docker exec`. Podman works as a drop-in replacement.

Concurrency: each execute() is its own `docker exec` process, so concurrent
calls against one container run interleaved, exactly as two shells would.
"""

import shlex
import subprocess
import time
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from ..adapter import Capability, SandboxState
from ..result import ExecResult
from .local import DEFAULT_TIMEOUT, TIMEOUT_EXIT_CODE, env_pairs, exit_status
from ...config import DockerConfig
from ...errors import ProviderError, SandboxNotFoundError
from ...logging import get_logger
from ...network import build_network_env
from ...security import validate_workspace

logger = get_logger("adapters.docker")

_NOT_FOUND_MARKERS = ("no such container", "no such object", "no container with name")

_STATE_MAP = {
    "running": SandboxState.RUNNING,
    "created": SandboxState.STOPPED,
    "paused": SandboxState.STOPPED,
    "exited": SandboxState.STOPPED,
    "stopped": SandboxState.STOPPED,
    "restarting": SandboxState.RUNNING,
    "removing": SandboxState.TERMINATED,
    "dead": SandboxState.TERMINATED,
}


def detect_runtime() -> str:
    """Detect docker or podman."""
    for runtime in ("docker", "podman"):
        try:
            result = subprocess.run(
                [runtime, "--version"],
                capture_output=True, text=True, timeout=5,
            )
            if result.returncode == 0:
                return runtime
        except (FileNotFoundError, subprocess.TimeoutExpired):
            continue
    raise ProviderError("No container runtime found. Install Docker or Podman.")


def _is_not_found(stderr: str) -> bool:
    lowered = stderr.lower()
    return any(marker in lowered for marker in _NOT_FOUND_MARKERS)


def _port_args(ports: Iterable[Any]) -> List[str]:
    args = []
    for port in ports:
        if isinstance(port, (tuple, list)):
            host, container = port
            args.extend(["-p", f"{host}:{container}"])
        else:
            args.extend(["-p", str(port)])
    return args


def _mount_args(mounts: Iterable[Any]) -> List[str]:
    args = []
    for mount in mounts:
        if isinstance(mount, str):
            parts = mount.split(":")
        elif isinstance(mount, Mapping):
            parts = [mount["source"], mount["target"]]
            if mount.get("read_only"):
                parts.append("ro")
        else:
            parts = [str(p) for p in mount]
        if len(parts) < 2:
            raise ValueError(f"Mount needs a host and a container path: {mount!r}")

        host = Path(parts[0]).absolute()
        if not validate_workspace(host):
            raise ProviderError(f"Refusing to mount unsafe host path: {host}", detail=str(host))
        args.extend(["-v", ":".join([str(host), *parts[1:]])])
    return args


class DockerAdapter:
    """Runs each sandbox as a long-lived Docker (or Podman) container."""

    name = "docker"
    capabilities = frozenset({
        Capability.GET_URL,
        Capability.READ_FILE,
        Capability.WRITE_FILE,
        Capability.WRITE_FILES,
        Capability.AWAIT_READY,
        Capability.STOP,
        Capability.START,
    })

    def __init__(self, config: Optional[DockerConfig] = None):
        self.config = config or DockerConfig()
        self._runtime: Optional[str] = self.config.runtime

    @property
    def runtime(self) -> str:
        if self._runtime is None:
            self._runtime = detect_runtime()
        return self._runtime

    def _run(
        self,
        args: Sequence[str],
        input: Optional[bytes] = None,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                [self.runtime, *args],
                input=input,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise ProviderError(f"Container runtime not found: {self.runtime}", detail=str(e)) from e

    def _check(self, sandbox_id: str, completed: subprocess.CompletedProcess, action: str) -> str:
        stderr = completed.stderr.decode(errors="replace").strip()
        if completed.returncode == 0:
            return completed.stdout.decode(errors="replace")
        if _is_not_found(stderr):
            raise SandboxNotFoundError(f"No such sandbox: {sandbox_id}", detail=stderr)
        raise ProviderError(f"Failed to {action} {sandbox_id}: {stderr}", detail=stderr)

    def build_run_command(self, sandbox_id: str, config: Mapping[str, Any]) -> List[str]:
        """Arguments for `<runtime> run` that create the sandbox container."""
        memory = f"{config['memory_mb']}m" if config.get("memory_mb") else self.config.memory_limit
        cmd = [
            "run", "-d",
            "--name", sandbox_id,
            "--memory", memory,
            "--cpus", str(config.get("cpus") or self.config.cpu_limit),
            "--security-opt", "no-new-privileges",
        ]

        network = config.get("network") or self.config.network
        if network:
            cmd.extend(["--network", network])
        if config.get("workdir"):
            cmd.extend(["-w", config["workdir"]])

        env = {**env_pairs(config.get("env")), **build_network_env(config.get("proxy"))}
        for key, value in env.items():
            cmd.extend(["-e", f"{key}={value}"])

        cmd.extend(_port_args(config.get("ports") or ()))
        cmd.extend(_mount_args(config.get("mounts") or ()))

        # Keep the container alive; commands arrive via exec
        cmd.extend([config.get("image") or self.config.image, "tail", "-f", "/dev/null"])
        return cmd

    # -- required operations ----------------------------------------------

    def create(self, config: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        sandbox_id = config.get("name") or f"sandpit-{uuid4().hex[:12]}"
        completed = self._run(self.build_run_command(sandbox_id, config))
        if completed.returncode != 0:
            error = completed.stderr.decode(errors="replace").strip()
            raise ProviderError(f"Failed to start container: {error}", detail=error)

        image = config.get("image") or self.config.image
        logger.info(
            f"Docker sandbox started: {sandbox_id} (image={image})",
            extra={"sandbox": sandbox_id, "adapter": self.name},
        )
        return sandbox_id, {
            "runtime": self.runtime,
            "image": image,
            "container_id": completed.stdout.decode().strip(),
        }

    def execute(self, sandbox_id: str, command: str, opts: Dict[str, Any]) -> ExecResult:
        args = ["exec"]
        if opts.get("workdir"):
            args.extend(["-w", opts["workdir"]])
        for key, value in env_pairs(opts.get("env")).items():
            args.extend(["-e", f"{key}={value}"])
        shell_cmd = f"({command}) 2>&1" if opts.get("stderr_to_stdout") else command
        args.extend([sandbox_id, "sh", "-c", shell_cmd])

        timeout = opts.get("timeout", DEFAULT_TIMEOUT)
        try:
            completed = self._run(args, timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Command timed out after {timeout}s", extra={"sandbox": sandbox_id})
            return ExecResult(stdout="", stderr="Timed out", exit_code=TIMEOUT_EXIT_CODE)

        stderr = completed.stderr.decode(errors="replace")
        if completed.returncode != 0 and _is_not_found(stderr):
            raise SandboxNotFoundError(f"No such sandbox: {sandbox_id}", detail=stderr.strip())

        return ExecResult(
            stdout=completed.stdout.decode(errors="replace"),
            stderr=stderr,
            exit_code=exit_status(completed.returncode),
        )

    def terminate(self, sandbox_id: str, opts: Dict[str, Any]) -> None:
        self._check(sandbox_id, self._run(["rm", "-f", sandbox_id]), "remove")
        logger.info(f"Docker sandbox stopped: {sandbox_id}", extra={"sandbox": sandbox_id})

    def status(self, sandbox_id: str, opts: Dict[str, Any]) -> SandboxState:
        try:
            completed = self._run(["inspect", "-f", "{{.State.Status}}", sandbox_id], timeout=10)
        except (ProviderError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Status query failed: {e}", extra={"sandbox": sandbox_id})
            return SandboxState.UNKNOWN

        if completed.returncode != 0:
            if _is_not_found(completed.stderr.decode(errors="replace")):
                return SandboxState.TERMINATED
            return SandboxState.UNKNOWN
        return _STATE_MAP.get(completed.stdout.decode().strip(), SandboxState.UNKNOWN)

    # -- optional operations ----------------------------------------------

    def get_url(self, sandbox_id: str, port: int, opts: Dict[str, Any]) -> str:
        out = self._check(sandbox_id, self._run(["port", sandbox_id, str(port)]), "look up port on")
        first = out.strip().splitlines()[0] if out.strip() else ""
        if not first:
            raise ProviderError(f"Port {port} is not published by {sandbox_id}", detail=port)
        host_port = first.rsplit(":", 1)[-1]
        return f"http://localhost:{host_port}"

    def read_file(self, sandbox_id: str, path: str, opts: Dict[str, Any]) -> bytes:
        completed = self._run(["exec", sandbox_id, "cat", path])
        if completed.returncode != 0:
            self._check(sandbox_id, completed, f"read {path} from")
        return completed.stdout

    def write_file(self, sandbox_id: str, path: str, content, opts: Dict[str, Any]) -> None:
        data = content.encode() if isinstance(content, str) else content
        parent = str(PurePosixPath(path).parent)
        script = f"mkdir -p {shlex.quote(parent)} && cat > {shlex.quote(path)}"
        completed = self._run(["exec", "-i", sandbox_id, "sh", "-c", script], input=data)
        self._check(sandbox_id, completed, f"write {path} to")

    def write_files(self, sandbox_id: str, files, opts: Dict[str, Any]) -> None:
        items = files.items() if isinstance(files, Mapping) else files
        for path, content in items:
            self.write_file(sandbox_id, path, content, opts)

    def await_ready(self, sandbox_id: str, metadata: Dict[str, Any], opts: Dict[str, Any]) -> Dict[str, Any]:
        """Poll until the container accepts exec. ready_timeout and interval are seconds."""
        deadline = time.monotonic() + opts.get("ready_timeout", 60)
        interval = opts.get("interval", 1.0)
        while True:
            completed = self._run(["exec", sandbox_id, "true"], timeout=10)
            if completed.returncode == 0:
                return {"status": "ready"}
            if _is_not_found(completed.stderr.decode(errors="replace")):
                raise SandboxNotFoundError(f"No such sandbox: {sandbox_id}")
            if time.monotonic() >= deadline:
                raise ProviderError(f"Sandbox {sandbox_id} did not become ready", detail="timeout")
            time.sleep(interval)

    def stop(self, sandbox_id: str, opts: Dict[str, Any]) -> Dict[str, Any]:
        self._check(sandbox_id, self._run(["stop", sandbox_id]), "stop")
        return {"status": SandboxState.STOPPED.value}

    def start(self, sandbox_id: str, opts: Dict[str, Any]) -> Dict[str, Any]:
        self._check(sandbox_id, self._run(["start", sandbox_id]), "start")
        return {"status": SandboxState.RUNNING.value}
