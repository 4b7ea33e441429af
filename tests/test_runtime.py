"""Tests for the runtime facade."""

import gc
import logging
import weakref
from dataclasses import dataclass, field
from unittest import mock

import pytest

from sandpit import runtime
from sandpit.errors import ProviderError, SandpitError, UnsupportedOperationError
from sandpit.runtime import Capability, ExecResult, SandboxState, Template


class MinimalAdapter:
    """Implements the required operations and nothing else."""

    name = "minimal"
    capabilities = frozenset()

    def __init__(self):
        self.calls = []

    def create(self, config):
        self.calls.append(("create", config))
        return "min-1", {}

    def execute(self, sandbox_id, command, opts):
        self.calls.append(("execute", sandbox_id, command, opts))
        return ExecResult(stdout="ran")

    def terminate(self, sandbox_id, opts):
        self.calls.append(("terminate", sandbox_id))

    def status(self, sandbox_id, opts):
        self.calls.append(("status", sandbox_id))
        return "running"

    def read_file(self, sandbox_id, path, opts):
        self.calls.append(("read_file", sandbox_id, path))
        return b"never reached"


@dataclass
class RecordAdapter:
    """A dataclass adapter; eq=True leaves it unhashable."""

    name: str = "record"
    capabilities: frozenset = frozenset({Capability.READ_FILE})
    files: dict = field(default_factory=dict)

    def create(self, config):
        return "rec-1", {}

    def execute(self, sandbox_id, command, opts):
        return ExecResult(stdout=command)

    def terminate(self, sandbox_id, opts):
        pass

    def status(self, sandbox_id, opts):
        return "running"

    def read_file(self, sandbox_id, path, opts):
        return self.files.get(path, b"")

class TestLifecycle:

    def test_create_status_terminate(self, memory_adapter):
        handle = runtime.create(memory_adapter, {"image": "alpine"})
        assert handle.adapter is memory_adapter
        assert handle.config == {"image": "alpine"}
        assert runtime.status(handle) == SandboxState.RUNNING

        runtime.terminate(handle)
        assert runtime.status(handle) == SandboxState.TERMINATED

    def test_create_accepts_pairs(self, memory_adapter):
        handle = runtime.create(memory_adapter, [("image", "alpine"), ("memory_mb", 128)])
        assert handle.config == {"image": "alpine", "memory_mb": 128}

    def test_execute(self, memory_adapter):
        handle = runtime.create(memory_adapter)
        result = runtime.execute(handle, "echo hi")
        assert result == ExecResult(stdout="mock: echo hi", stderr="", exit_code=0)

    def test_execute_passes_merged_options(self):
        adapter = MinimalAdapter()
        handle = runtime.create(adapter, {"workdir": "/app", "image": "alpine"})
        runtime.execute(handle, "ls", workdir="/tmp", timeout=5, env=None)

        _, _, _, opts = adapter.calls[-1]
        assert opts == {"workdir": "/tmp", "image": "alpine", "timeout": 5}

    def test_status_is_normalized_to_enum(self):
        handle = runtime.create(MinimalAdapter())
        assert runtime.status(handle) is SandboxState.RUNNING

    def test_status_is_not_cached(self, memory_adapter):
        handle = runtime.create(memory_adapter)
        assert runtime.status(handle) == SandboxState.RUNNING
        memory_adapter.terminate(handle.id, {})
        assert runtime.status(handle) == SandboxState.TERMINATED

    def test_from_id_performs_no_io(self):
        adapter = mock.Mock()
        handle = runtime.from_id(adapter, "existing-42", {"image": "alpine"})
        assert handle.id == "existing-42"
        assert handle.adapter is adapter
        assert handle.config == {"image": "alpine"}
        assert adapter.method_calls == []

    def test_from_id_handle_drives_existing_sandbox(self, memory_adapter):
        original = runtime.create(memory_adapter)
        rebuilt = runtime.from_id(memory_adapter, original.id)
        assert runtime.execute(rebuilt, "pwd").stdout == "mock: pwd"

    def test_create_logs(self, memory_adapter, caplog):
        with caplog.at_level(logging.INFO, logger="sandpit"):
            handle = runtime.create(memory_adapter)
        record = next(r for r in caplog.records if r.getMessage() == "Sandbox created")
        assert record.sandbox == handle.id
        assert record.adapter == "memory"


class TestErrors:

    def test_provider_error_passes_through_unchanged(self, memory_adapter):
        handle = runtime.create(memory_adapter)
        error = ProviderError("provider is down", detail={"code": 503})
        memory_adapter.set_exec_response(handle.id, "make", error)

        with pytest.raises(ProviderError) as exc_info:
            runtime.execute(handle, "make")
        assert exc_info.value is error
        assert exc_info.value.detail == {"code": 503}

    def test_nonzero_exit_is_a_result_not_an_error(self, memory_adapter):
        handle = runtime.create(memory_adapter)
        memory_adapter.set_exec_response(handle.id, "false", ExecResult(exit_code=1))
        assert runtime.execute(handle, "false").exit_code == 1

    def test_unsupported_operation_never_reaches_provider(self):
        adapter = MinimalAdapter()
        handle = runtime.create(adapter)
        adapter.calls.clear()

        with pytest.raises(UnsupportedOperationError) as exc_info:
            runtime.read_file(handle, "/etc/hostname")
        assert exc_info.value.operation == "read_file"
        assert exc_info.value.adapter == "minimal"
        assert adapter.calls == []

    def test_unsupported_is_not_a_provider_error(self):
        handle = runtime.create(MinimalAdapter())
        with pytest.raises(SandpitError) as exc_info:
            runtime.create_checkpoint(handle)
        assert not isinstance(exc_info.value, ProviderError)

    @pytest.mark.parametrize("call", [
        lambda h: runtime.get_url(h, 80),
        lambda h: runtime.write_file(h, "a.txt", "x"),
        lambda h: runtime.write_files(h, {"a.txt": "x"}),
        lambda h: runtime.await_ready(h),
        lambda h: runtime.update(h, {"memory_mb": 1}),
        lambda h: runtime.stop(h),
        lambda h: runtime.start(h),
        lambda h: runtime.restore_checkpoint(h, "cp-1"),
        lambda h: runtime.list_checkpoints(h),
    ])
    def test_every_optional_operation_is_guarded(self, call):
        with pytest.raises(UnsupportedOperationError):
            call(runtime.create(MinimalAdapter()))

    def test_missing_required_operation_rejected(self):
        class NoStatus:
            def create(self, config): ...
            def execute(self, sandbox_id, command, opts): ...
            def terminate(self, sandbox_id, opts): ...

        with pytest.raises(TypeError, match="status"):
            runtime.create(NoStatus())

    def test_declared_but_unimplemented_capability_rejected(self):
        class Liar(MinimalAdapter):
            capabilities = frozenset({Capability.GET_URL})

        with pytest.raises(TypeError, match="get_url"):
            runtime.register_adapter("liar", Liar())

    def test_unknown_adapter_name(self):
        with pytest.raises(ValueError, match="Unknown sandbox adapter"):
            runtime.create("no-such-provider")


class TestCapabilities:

    def test_memory_supports_everything(self, memory_adapter):
        assert runtime.capabilities(memory_adapter) == frozenset(Capability)

    def test_supports_accepts_names(self):
        adapter = MinimalAdapter()
        assert not runtime.supports(adapter, "read_file")
        assert not runtime.supports(adapter, Capability.STOP)

    def test_capabilities_of_handle(self, memory_adapter):
        handle = runtime.create(memory_adapter)
        assert runtime.supports(handle, "create_checkpoint")

    def test_registered_adapter_by_name(self):
        adapter = MinimalAdapter()
        runtime.register_adapter("minimal-registered", adapter)
        handle = runtime.create("minimal-registered")
        assert handle.adapter is adapter
        assert runtime.resolve_adapter("minimal-registered") is adapter

    def test_builtin_names_resolve(self):
        assert runtime.resolve_adapter("memory").name == "memory"

    def test_unhashable_dataclass_adapter(self):
        adapter = RecordAdapter(files={"/a.txt": b"hello"})
        handle = runtime.create(adapter, {"image": "alpine"})
        assert runtime.execute(handle, "echo hi").stdout == "echo hi"
        assert runtime.read_file(handle, "/a.txt") == b"hello"
        assert runtime.supports(handle, "read_file")
        assert not runtime.supports(handle, "write_file")

    def test_resolved_adapter_is_not_kept_alive(self):
        adapter = MinimalAdapter()
        runtime.capabilities(adapter)
        ref = weakref.ref(adapter)
        del adapter
        gc.collect()
        assert ref() is None


class TestOptionalOperations:

    def test_files(self, memory_adapter):
        handle = runtime.create(memory_adapter)
        runtime.write_file(handle, "/app/a.txt", "alpha")
        runtime.write_files(handle, [("/app/b.txt", "beta"), ("/app/c.txt", b"gamma")])
        assert runtime.read_file(handle, "/app/a.txt") == "alpha"
        assert runtime.read_file(handle, "/app/c.txt") == b"gamma"

    def test_write_files_accepts_mapping(self, memory_adapter):
        handle = runtime.create(memory_adapter)
        runtime.write_files(handle, {"x": "1", "y": "2"})
        assert runtime.read_file(handle, "y") == "2"

    def test_get_url_uses_port_map(self, memory_adapter):
        handle = runtime.create(memory_adapter, {"port_map": {3000: 49153}})
        assert runtime.get_url(handle, 3000) == f"http://{handle.id}:49153"
        assert runtime.get_url(handle, 8080) == f"http://{handle.id}:8080"

    def test_stop_and_start(self, memory_adapter):
        handle = runtime.create(memory_adapter)
        assert runtime.stop(handle) == {"status": "stopped"}
        assert runtime.status(handle) == SandboxState.STOPPED
        with pytest.raises(ProviderError):
            runtime.execute(handle, "ls")
        assert runtime.start(handle) == {"status": "running"}
        assert runtime.execute(handle, "ls").success

    def test_update_keeps_state(self, memory_adapter):
        handle = runtime.create(memory_adapter, {"memory_mb": 256})
        runtime.write_file(handle, "keep.txt", "still here")
        assert runtime.update(handle, [("memory_mb", 512)])["memory_mb"] == 512
        assert runtime.read_file(handle, "keep.txt") == "still here"

    def test_await_ready(self, memory_adapter):
        handle = runtime.create(memory_adapter)
        assert runtime.await_ready(handle) == {"status": "ready"}

    def test_checkpoints(self, memory_adapter):
        handle = runtime.create(memory_adapter)
        runtime.write_file(handle, "state.txt", "v1")
        checkpoint = runtime.create_checkpoint(handle, comment="before upgrade")
        runtime.write_file(handle, "state.txt", "v2")

        runtime.restore_checkpoint(handle, checkpoint)
        assert runtime.read_file(handle, "state.txt") == "v1"

        listed = runtime.list_checkpoints(handle)
        assert [cp["id"] for cp in listed] == [checkpoint]
        assert listed[0]["comment"] == "before upgrade"


class TestTemplates:

    def test_create_from_template(self, memory_adapter):
        template = Template(memory_adapter, {"image": "python:3.12", "memory_mb": 512})
        handle = runtime.create(template, {"memory_mb": 1024})
        assert handle.config == {"image": "python:3.12", "memory_mb": 1024}
        assert handle.adapter is memory_adapter

    def test_template_reused(self, memory_adapter):
        template = Template(memory_adapter, {"image": "alpine"})
        first = runtime.create(template)
        second = runtime.create(template)
        assert first.id != second.id
