"""
Parallel execution: several sandboxes and scripts driven at the same time.

Facade calls block, so asyncio callers push them onto worker threads.

Setup:
    pip install -e ..

Run:
    python parallel.py
"""

import asyncio
import tempfile

from dotenv import load_dotenv

from sandpit import evaluate_async, runtime
from sandpit.runtime import LocalAdapter, Template

load_dotenv()


async def run_in_sandbox(template: Template, name: str, command: str) -> str:
    handle = await asyncio.to_thread(runtime.create, template, {"name": name})
    try:
        result = await asyncio.to_thread(runtime.execute, handle, command, timeout=10)
        return f"[{name}] exit={result.exit_code}: {result.output.strip()}"
    finally:
        await asyncio.to_thread(runtime.terminate, handle)


async def main():
    with tempfile.TemporaryDirectory() as td:
        template = Template(LocalAdapter(workspace_root=td), {"env": {"LANG": "C"}})
        lines = await asyncio.gather(
            run_in_sandbox(template, "geo", "echo Paris"),
            run_in_sandbox(template, "math", "echo $((10 * 7))"),
        )
    for line in lines:
        print(line)

    results = await asyncio.gather(
        evaluate_async("return 2 ^ 10"),
        evaluate_async("local s = 0 for i = 1, 100 do s = s + i end return s"),
        evaluate_async("while true do end", timeout_ms=100),
    )
    for r in results:
        print(r.to_dict())


if __name__ == "__main__":
    asyncio.run(main())
