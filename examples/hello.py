"""
Simplest possible sandpit example: one sandbox, one command.

Setup:
    cp .env.example .env    # optional, see SANDPIT_* variables
    pip install -e ..

Run:
    python hello.py
"""

from dotenv import load_dotenv

from sandpit import SandpitConfig, runtime, setup_logging

load_dotenv()


def main():
    config = SandpitConfig.from_env()
    setup_logging(config.log_level, config.log_file)

    handle = runtime.create(config.default_adapter, {"name": "hello"})
    try:
        if runtime.supports(handle, "write_file"):
            runtime.write_file(handle, "greeting.txt", "hello from sandpit\n")
        result = runtime.execute(handle, "cat greeting.txt || echo no files here")
        print(f"Adapter: {handle.adapter_name}")
        print(f"Exit code: {result.exit_code}")
        print(f"Output: {result.output.strip()}")
    finally:
        runtime.terminate(handle)


if __name__ == "__main__":
    main()
