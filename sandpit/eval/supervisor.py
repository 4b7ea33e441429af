"""
Deadline supervision for untrusted scripts.

The script runs in a child process created for a single evaluation. The
parent waits on a pipe until the child reports a result, dies, or the
deadline passes; in the last case the child is killed outright. Nothing
depends on the script cooperating, so a tight `while true do end` loop is
stopped the same way as a slow one.

Wire protocol on the pipe (tuples, pickled by multiprocessing):

    child -> parent   ("call", name, args)        host callback request
    parent -> child   ("ok", value) | ("error", message)
    child -> parent   ("ok", value)               final result
                      ("error", kind, message, capability)
"""

import multiprocessing
import threading
import time
from typing import Any, Callable, Optional, Sequence, Tuple

from ..errors import EvalTimeoutError, ScriptRuntimeError
from ..logging import get_logger

logger = get_logger("eval.supervisor")

CallHandler = Callable[[str, list], Tuple[str, Any]]

# How long a child that already reported its result gets to exit on its own
EXIT_GRACE = 0.5  # seconds


class DeadlineSupervisor:
    """
    Runs one target function in a child process under a wall-clock deadline.

    Usage:
        supervisor = DeadlineSupervisor(timeout_ms=100)
        message = supervisor.run(worker, (script,), on_call=handler)

    run() raises EvalTimeoutError when the deadline passes and
    ScriptRuntimeError when the child dies without reporting. The child
    process and both pipe ends are released on every path. Host callbacks
    count against the same deadline as the script.
    """

    def __init__(self, timeout_ms: int, context: Optional[Any] = None):
        if timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {timeout_ms}")
        self.timeout_ms = timeout_ms
        self._mp = context or multiprocessing.get_context()

    def run(self, target: Callable[..., None], args: Sequence[Any], on_call: CallHandler) -> tuple:
        """Start `target(conn, *args)` in a child and return its final message."""
        parent_conn, child_conn = self._mp.Pipe(duplex=True)
        process = self._mp.Process(
            target=target,
            args=(child_conn, *args),
            name="sandpit-eval",
            daemon=True,
        )
        deadline = time.monotonic() + self.timeout_ms / 1000
        finished = False

        process.start()
        # Drop our copy so a dead child shows up as EOF on parent_conn
        child_conn.close()

        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0 or not parent_conn.poll(remaining):
                    raise EvalTimeoutError(self.timeout_ms)

                try:
                    message = parent_conn.recv()
                except EOFError:
                    process.join(EXIT_GRACE)
                    raise ScriptRuntimeError(
                        f"evaluation process exited without a result (exit code {process.exitcode})"
                    ) from None

                if message[0] != "call":
                    finished = True
                    return message

                _, name, call_args = message
                reply = self._answer(on_call, name, call_args, deadline)
                try:
                    parent_conn.send(reply)
                except (BrokenPipeError, OSError) as e:
                    raise ScriptRuntimeError(
                        f"evaluation process went away during callback '{name}'"
                    ) from e
        finally:
            self._reap(process, EXIT_GRACE if finished else 0)
            parent_conn.close()

    def _answer(self, on_call: CallHandler, name: str, call_args: list, deadline: float) -> Tuple[str, Any]:
        """
        Run one host callback on a helper thread, bounded by the deadline.

        A thread cannot be killed, so a callback that overruns is left to
        finish in the background while the child is killed and run() raises
        EvalTimeoutError. Its reply is discarded.
        """
        outcome: dict = {}
        done = threading.Event()

        def call() -> None:
            try:
                outcome["reply"] = on_call(name, call_args)
            except Exception as e:
                outcome["error"] = e
            finally:
                done.set()

        threading.Thread(target=call, name=f"sandpit-callback-{name}", daemon=True).start()
        if not done.wait(max(deadline - time.monotonic(), 0)):
            logger.warning(f"Callback '{name}' still running at the deadline")
            raise EvalTimeoutError(self.timeout_ms)
        if "error" in outcome:
            raise outcome["error"]
        return outcome["reply"]

    @staticmethod
    def _reap(process, grace: float) -> None:
        if grace:
            process.join(grace)
        if process.is_alive():
            process.kill()
            logger.debug(f"Killed evaluation process {process.pid}")
        process.join()
        process.close()
