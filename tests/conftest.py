"""
Shared pytest configuration.

Docker tests (marked @pytest.mark.docker) are automatically skipped when no
working docker runtime is found.

To run them:
    pytest tests/test_docker_adapter.py -v -s
"""

import subprocess

import pytest

from sandpit.runtime import MemoryAdapter


def _check_docker() -> bool:
    try:
        result = subprocess.run(
            ["docker", "version"], capture_output=True, timeout=5
        )
        return result.returncode == 0
    except (OSError, subprocess.TimeoutExpired):
        return False


def pytest_collection_modifyitems(config, items):
    """Skip docker tests when the runtime is missing."""
    skip_docker = pytest.mark.skip(reason="Docker not available")
    has_docker = _check_docker()

    for item in items:
        if "docker" in item.keywords and not has_docker:
            item.add_marker(skip_docker)


@pytest.fixture
def memory_adapter():
    """A fresh in-memory adapter per test, so sandboxes never leak between tests."""
    return MemoryAdapter()
