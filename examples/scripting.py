"""
Script evaluation: run an untrusted Lua snippet with a couple of host callbacks.

Setup:
    pip install -e ..

Run:
    python scripting.py
"""

from dotenv import load_dotenv

from sandpit import SandpitConfig, evaluate, setup_logging

load_dotenv()

INVENTORY = {"apples": 12, "pears": 3, "plums": 0}

SCRIPT = """
local low = {}
for _, item in ipairs(items()) do
  if stock(item) < 5 then table.insert(low, item) end
end
table.sort(low)
return low, #low
"""


def main():
    config = SandpitConfig.from_env()
    setup_logging(config.log_level, config.log_file)

    result = evaluate(
        SCRIPT,
        callbacks={
            "items": lambda: sorted(INVENTORY),
            "stock": lambda name: INVENTORY.get(name, 0),
        },
        config=config,
    )
    print(f"ok={result.ok} value={result.value} ({result.duration_ms:.0f}ms)")

    # The standard library is locked down: this fails and names the capability
    blocked = evaluate("return io.open('/etc/passwd'):read('a')", config=config)
    print(f"kind={blocked.kind.value} capability={blocked.error.capability}")

    runaway = evaluate("while true do end", timeout_ms=200)
    print(f"kind={runaway.kind.value} after {runaway.duration_ms:.0f}ms")


if __name__ == "__main__":
    main()
