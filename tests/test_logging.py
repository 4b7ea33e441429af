"""Tests for log formatting."""

import json
import logging

from sandpit.logging import HumanFormatter, JsonFormatter, bind, get_logger


def _record(**extra):
    record = logging.LogRecord("sandpit.runtime", logging.INFO, __file__, 1, "Sandbox created", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogging:

    def test_get_logger_namespaces(self):
        assert get_logger("runtime").name == "sandpit.runtime"
        assert get_logger("sandpit.eval").name == "sandpit.eval"
        assert get_logger("sandpit").name == "sandpit"

    def test_human_format(self):
        line = HumanFormatter().format(_record(sandbox="box", duration=0.25))
        assert "runtime: Sandbox created" in line
        assert "sandbox=box" in line
        assert "duration=0.250s" in line

    def test_json_format(self):
        data = json.loads(JsonFormatter().format(_record(adapter="docker", ignored="x")))
        assert data["msg"] == "Sandbox created"
        assert data["logger"] == "sandpit.runtime"
        assert data["adapter"] == "docker"
        assert "ignored" not in data

    def test_bind_adds_fields(self, caplog):
        log = bind(get_logger("eval.lua"), engine="lua", sandbox=None)
        with caplog.at_level(logging.INFO, logger="sandpit"):
            log.info("Script finished", extra={"duration": 0.01})
        record = caplog.records[-1]
        assert record.engine == "lua"
        assert record.duration == 0.01
        assert not hasattr(record, "sandbox")
