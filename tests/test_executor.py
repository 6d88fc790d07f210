"""
Executor tests. These spawn a real bash process and are skipped without one.
"""
import asyncio
import shutil

import pytest

from motolang.ast import Task
from motolang.config import MotoConfig
from motolang.errors import ExecutionError, InterpolationCycleError, RuntimeNotFoundError, TaskNotFoundError
from motolang.executor import TaskExecutor, body_lines

needs_bash = pytest.mark.skipif(shutil.which("bash") is None, reason="bash not available")

SCRIPT = """
let target = "release";

runtime echoer {
    let prefix = "ran";
    task run {
        echo "[:prefix]: [:code]"
    }:shell
}:moto

runtime hollow {
    let x = 1;
}:moto

runtime nested {
    task run { [:code] }:echoer
}:moto

task greet {
    echo "hello [:name=world]"
    echo done
}:shell

task build { make [:target] }:echoer
task fail { exit 3 }:shell
task complain { echo oops 1>&2 }:shell
task where { pwd }:shell
task loop { [:x] }:shell
task orphan { x }:nowhere
task empty { }:hollow
task deep { x }:nested
"""


class Collector:
    def __init__(self):
        self.lines = []

    def __call__(self, stream, line):
        self.lines.append((stream, line))

    def stdout(self):
        return [line for stream, line in self.lines if stream == "stdout"]


@pytest.fixture
def executor_env(make_registry, tmp_path):
    registry = make_registry(SCRIPT)
    config = MotoConfig(workspace=tmp_path / "ws")
    sink = Collector()
    return registry, TaskExecutor(registry, config, sink), sink


def test_body_lines_skip_blanks():
    task = Task("t", "a\n\n   \nb", "shell")
    assert body_lines(task) == ["a", "b"]


@needs_bash
class TestShellTasks:
    def test_lines_run_in_order(self, executor_env):
        _, executor, sink = executor_env
        assert asyncio.run(executor.run("greet")) == 0
        assert sink.stdout() == ["hello world", "done"]

    def test_injected_variables(self, executor_env):
        registry, executor, sink = executor_env
        asyncio.run(registry.set_variable("name", "moto"))
        asyncio.run(executor.run("greet"))
        assert sink.stdout()[0] == "hello moto"

    def test_exit_code_is_returned(self, executor_env):
        _, executor, _ = executor_env
        assert asyncio.run(executor.run("fail")) == 3

    def test_stderr_is_captured(self, executor_env):
        _, executor, sink = executor_env
        asyncio.run(executor.run("complain"))
        assert ("stderr", "oops") in sink.lines

    def test_runs_in_workspace(self, executor_env, tmp_path):
        _, executor, sink = executor_env
        asyncio.run(executor.run("where"))
        assert (tmp_path / "ws").is_dir()
        assert sink.stdout() == [str((tmp_path / "ws").resolve())]

    def test_custom_runtime_receives_code(self, executor_env):
        _, executor, sink = executor_env
        assert asyncio.run(executor.run("build")) == 0
        assert sink.stdout() == ["ran: make release"]

    def test_lines_longer_than_the_read_buffer(self, make_registry, tmp_path):
        registry = make_registry(r"task big { head -c 200000 /dev/zero | tr '\0' a; echo; echo tail }:shell")
        sink = Collector()
        executor = TaskExecutor(registry, MotoConfig(workspace=tmp_path), sink)
        assert asyncio.run(executor.run("big")) == 0
        assert sink.stdout() == ["a" * 200000, "tail"]

    def test_output_without_trailing_newline(self, make_registry, tmp_path):
        registry = make_registry("task partial { printf 'no newline' }:shell")
        sink = Collector()
        asyncio.run(TaskExecutor(registry, MotoConfig(workspace=tmp_path), sink).run("partial"))
        assert sink.stdout() == ["no newline"]

    def test_reader_failure_stops_the_child(self, make_registry, tmp_path):
        registry = make_registry("task slow {\n echo first\n exec sleep 30\n}:shell")

        def failing_sink(stream, line):
            raise RuntimeError(f"sink rejected {line}")

        executor = TaskExecutor(registry, MotoConfig(workspace=tmp_path), failing_sink)
        with pytest.raises(RuntimeError, match="sink rejected first"):
            asyncio.run(asyncio.wait_for(executor.run("slow"), timeout=10))


class TestErrors:
    def test_unknown_task(self, executor_env):
        _, executor, _ = executor_env
        with pytest.raises(TaskNotFoundError):
            asyncio.run(executor.run("nope"))

    def test_unknown_runtime(self, executor_env):
        _, executor, _ = executor_env
        with pytest.raises(RuntimeNotFoundError):
            asyncio.run(executor.run("orphan"))

    def test_runtime_without_run_task(self, executor_env):
        _, executor, _ = executor_env
        with pytest.raises(TaskNotFoundError):
            asyncio.run(executor.run("empty"))

    def test_inner_runtime_must_be_a_shell(self, executor_env):
        _, executor, _ = executor_env
        with pytest.raises(ExecutionError):
            asyncio.run(executor.run("deep"))

    def test_spawn_failure(self, make_registry, tmp_path):
        registry = make_registry(SCRIPT)
        config = MotoConfig(workspace=tmp_path, shells={"shell": ["/nonexistent/moto-shell"]})
        with pytest.raises(ExecutionError):
            asyncio.run(TaskExecutor(registry, config, Collector()).run("greet"))

    def test_read_failure_is_an_execution_error(self, executor_env):
        class BrokenStream:
            async def read(self, n):
                raise ConnectionResetError("pipe gone")

        _, executor, _ = executor_env
        with pytest.raises(ExecutionError, match="failed to read stdout"):
            asyncio.run(executor._drain(BrokenStream(), "stdout"))

    @needs_bash
    def test_interpolation_cycle_propagates(self, make_registry, tmp_path):
        registry = make_registry(SCRIPT, max_iterations=4)
        asyncio.run(registry.set_variable("x", "[:x]"))
        executor = TaskExecutor(registry, MotoConfig(workspace=tmp_path), Collector())
        with pytest.raises(InterpolationCycleError):
            asyncio.run(executor.run("loop"))
