"""Tests for ExecResult."""

import pytest

from sandpit.runtime import ExecResult


class TestExecResult:

    def test_defaults(self):
        result = ExecResult()
        assert result.stdout == ""
        assert result.stderr == ""
        assert result.exit_code == 0
        assert result.success

    def test_failure(self):
        result = ExecResult(stderr="boom", exit_code=2)
        assert not result.success
        assert result.output == "boom"

    def test_output_prefers_stdout(self):
        assert ExecResult(stdout="out", stderr="err").output == "out"

    def test_negative_exit_code_rejected(self):
        with pytest.raises(ValueError):
            ExecResult(exit_code=-1)

    def test_immutable(self):
        result = ExecResult(stdout="x")
        with pytest.raises(AttributeError):
            result.stdout = "y"

    def test_to_dict(self):
        assert ExecResult("a", "b", 3).to_dict() == {"stdout": "a", "stderr": "b", "exit_code": 3}
