"""
Embedded script evaluation.

Usage:
    from sandpit.eval import evaluate, evaluate_or_raise

    evaluate("return 1 + 2").value              # 3
    evaluate_or_raise("return double(5)", callbacks={"double": lambda x: x * 2})  # 10

Every call runs in a fresh interpreter inside a fresh process and is killed
when `timeout_ms` runs out. `evaluate` reports failures in EvalResult.error;
`evaluate_or_raise` raises them.
"""

import asyncio
from typing import Any, Callable, List, Mapping, Optional

from . import lua
from .result import EvalResult
from ..config import SandpitConfig
from ..errors import UnknownEngineError
from ..logging import get_logger

logger = get_logger("eval")

_ENGINES = {"lua": lua.evaluate}


def engines() -> List[str]:
    """Names of the available script engines."""
    return sorted(_ENGINES)


def engine_available(name: str) -> bool:
    return name in _ENGINES


def evaluate(
    script: str,
    *,
    timeout_ms: Optional[int] = None,
    callbacks: Optional[Mapping[str, Callable[..., Any]]] = None,
    max_memory: Optional[int] = None,
    engine: str = "lua",
    config: Optional[SandpitConfig] = None,
) -> EvalResult:
    """
    Evaluate `script` with the chosen engine.

    timeout_ms and max_memory fall back to `config` (default SandpitConfig())
    when left as None. An unknown engine is reported as an UnknownEngineError
    result rather than raised.
    """
    run = _ENGINES.get(engine)
    if run is None:
        logger.warning(f"Unknown eval engine requested: {engine!r}", extra={"engine": engine})
        return EvalResult(error=UnknownEngineError(engine))

    config = config or SandpitConfig()
    return run(
        script,
        timeout_ms=config.eval_timeout_ms if timeout_ms is None else timeout_ms,
        callbacks=callbacks,
        max_memory=config.eval_max_memory if max_memory is None else max_memory,
    )


def evaluate_or_raise(script: str, **kwargs: Any) -> Any:
    """Evaluate and return the value; raise the EvalError on failure."""
    return evaluate(script, **kwargs).unwrap()


async def evaluate_async(script: str, **kwargs: Any) -> EvalResult:
    """Run evaluate() in a worker thread so the event loop keeps running."""
    return await asyncio.to_thread(evaluate, script, **kwargs)


__all__ = [
    "EvalResult",
    "engine_available",
    "engines",
    "evaluate",
    "evaluate_async",
    "evaluate_or_raise",
]
