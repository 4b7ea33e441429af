"""
In-memory adapter: no provider, no network.

The default adapter for tests and local development, and the reference for
how a real adapter should behave. Commands are not run: execute() echoes the
command back as "mock: <command>" unless a response was registered for that
(sandbox_id, command) pair with set_exec_response().

Concurrency: every call works on plain dicts without locking, so concurrent
execute() calls against one sandbox are independent and unordered. Register
responses before the execute() that should see them.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from uuid import uuid4

from ..adapter import Capability, SandboxState
from ..result import ExecResult
from ...errors import ProviderError, SandboxNotFoundError
from ...logging import get_logger

logger = get_logger("adapters.memory")

ExecResponse = Union[ExecResult, Exception]


@dataclass
class _Checkpoint:
    id: str
    files: Dict[str, Any]
    comment: Optional[str]
    created_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "comment": self.comment, "created_at": self.created_at}


@dataclass
class _MemorySandbox:
    config: Dict[str, Any]
    state: SandboxState = SandboxState.RUNNING
    files: Dict[str, Any] = field(default_factory=dict)
    checkpoints: List[_Checkpoint] = field(default_factory=list)


class MemoryAdapter:
    """Process-local sandbox adapter implementing every optional operation."""

    name = "memory"
    capabilities = frozenset(Capability)

    def __init__(self):
        self._sandboxes: Dict[str, _MemorySandbox] = {}
        self._responses: Dict[Tuple[str, str], ExecResponse] = {}

    # -- test seam ---------------------------------------------------------

    def set_exec_response(self, sandbox_id: str, command: str, response: ExecResponse) -> None:
        """
        Make execute(sandbox_id, command) return `response`.

        An exception instance is raised instead of returned, to simulate a
        provider failure.
        """
        self._responses[(sandbox_id, command)] = response

    def clear_exec_responses(self) -> None:
        self._responses.clear()

    # -- required operations ----------------------------------------------

    def create(self, config: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        sandbox_id = config.get("name") or f"memory-{uuid4().hex[:12]}"
        existing = self._sandboxes.get(sandbox_id)
        if existing is not None and existing.state != SandboxState.TERMINATED:
            raise ProviderError(f"Sandbox already exists: {sandbox_id}", detail=sandbox_id)

        self._sandboxes[sandbox_id] = _MemorySandbox(config=dict(config))
        logger.debug("Memory sandbox created", extra={"sandbox": sandbox_id})
        return sandbox_id, {"provider": self.name, "port_map": dict(config.get("port_map") or {})}

    def execute(self, sandbox_id: str, command: str, opts: Dict[str, Any]) -> ExecResult:
        response = self._responses.get((sandbox_id, command))
        if response is None:
            self._require_running(sandbox_id)
            return ExecResult(stdout=f"mock: {command}", stderr="", exit_code=0)
        if isinstance(response, Exception):
            raise response
        return response

    def terminate(self, sandbox_id: str, opts: Dict[str, Any]) -> None:
        sandbox = self._get(sandbox_id)
        sandbox.state = SandboxState.TERMINATED
        sandbox.files.clear()
        sandbox.checkpoints.clear()
        logger.debug("Memory sandbox terminated", extra={"sandbox": sandbox_id})

    def status(self, sandbox_id: str, opts: Dict[str, Any]) -> SandboxState:
        sandbox = self._sandboxes.get(sandbox_id)
        if sandbox is None:
            return SandboxState.UNKNOWN
        return sandbox.state

    # -- optional operations ----------------------------------------------

    def get_url(self, sandbox_id: str, port: int, opts: Dict[str, Any]) -> str:
        return f"http://{sandbox_id}:{port}"

    def read_file(self, sandbox_id: str, path: str, opts: Dict[str, Any]) -> Any:
        sandbox = self._require_running(sandbox_id)
        try:
            return sandbox.files[path]
        except KeyError:
            raise ProviderError(f"No such file: {path}", detail=path) from None

    def write_file(self, sandbox_id: str, path: str, content: Any, opts: Dict[str, Any]) -> None:
        self._require_running(sandbox_id).files[path] = content

    def write_files(
        self,
        sandbox_id: str,
        files: Union[Mapping[str, Any], Iterable[Tuple[str, Any]]],
        opts: Dict[str, Any],
    ) -> None:
        sandbox = self._require_running(sandbox_id)
        items = files.items() if isinstance(files, Mapping) else files
        sandbox.files.update(dict(items))

    def await_ready(self, sandbox_id: str, metadata: Dict[str, Any], opts: Dict[str, Any]) -> Dict[str, Any]:
        self._require_running(sandbox_id)
        return {"status": "ready"}

    def update(self, sandbox_id: str, config: Dict[str, Any], opts: Dict[str, Any]) -> Dict[str, Any]:
        sandbox = self._get(sandbox_id)
        sandbox.config.update(config)
        return dict(sandbox.config)

    def stop(self, sandbox_id: str, opts: Dict[str, Any]) -> Dict[str, Any]:
        sandbox = self._require_running(sandbox_id)
        sandbox.state = SandboxState.STOPPED
        return {"status": sandbox.state.value}

    def start(self, sandbox_id: str, opts: Dict[str, Any]) -> Dict[str, Any]:
        sandbox = self._get(sandbox_id)
        if sandbox.state == SandboxState.TERMINATED:
            raise ProviderError(f"Sandbox is terminated: {sandbox_id}", detail=sandbox_id)
        sandbox.state = SandboxState.RUNNING
        return {"status": sandbox.state.value}

    def create_checkpoint(self, sandbox_id: str, opts: Dict[str, Any]) -> str:
        sandbox = self._require_running(sandbox_id)
        checkpoint = _Checkpoint(
            id=f"cp-{len(sandbox.checkpoints) + 1}",
            files=dict(sandbox.files),
            comment=opts.get("comment"),
            created_at=time.time(),
        )
        sandbox.checkpoints.append(checkpoint)
        return checkpoint.id

    def restore_checkpoint(self, sandbox_id: str, checkpoint_id: str, opts: Dict[str, Any]) -> None:
        sandbox = self._require_running(sandbox_id)
        for checkpoint in sandbox.checkpoints:
            if checkpoint.id == checkpoint_id:
                sandbox.files = dict(checkpoint.files)
                return
        raise ProviderError(f"No such checkpoint: {checkpoint_id}", detail=checkpoint_id)

    def list_checkpoints(self, sandbox_id: str, opts: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [cp.to_dict() for cp in self._get(sandbox_id).checkpoints]

    # -- helpers -----------------------------------------------------------

    def _get(self, sandbox_id: str) -> _MemorySandbox:
        try:
            return self._sandboxes[sandbox_id]
        except KeyError:
            raise SandboxNotFoundError(f"No such sandbox: {sandbox_id}", detail=sandbox_id) from None

    def _require_running(self, sandbox_id: str) -> _MemorySandbox:
        sandbox = self._get(sandbox_id)
        if sandbox.state != SandboxState.RUNNING:
            raise ProviderError(
                f"Sandbox {sandbox_id} is {sandbox.state.value}", detail=sandbox.state.value
            )
        return sandbox
