from __future__ import annotations
import asyncio
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from loguru import logger

from .ast import Task
from .config import MotoConfig
from .context import Container, Registry, TaskRef
from .errors import ExecutionError, RuntimeNotFoundError, TaskNotFoundError

Sink = Callable[[str, str], None]

CHUNK_SIZE = 64 * 1024


def _log_sink(stream: str, line: str) -> None:
    if stream == "stderr":
        logger.warning("| {}", line)
    else:
        logger.info("| {}", line)


def body_lines(task: Task) -> List[str]:
    return [line for line in task.code.splitlines() if line.strip()]


class TaskExecutor:
    """Runs tasks by piping their interpolated lines into a shell process."""

    def __init__(self, registry: Registry, config: Optional[MotoConfig] = None, sink: Optional[Sink] = None):
        self.registry = registry
        self.config = config or MotoConfig()
        self.sink = sink or _log_sink

    async def run(self, name: str) -> int:
        ref = await self.registry.find_task_ref(name)
        if ref is None:
            raise TaskNotFoundError(f"task {name} not found")
        started = time.monotonic()
        logger.info("running {} ({})", ref.qualified_name, ref.task.runtime)
        if self.config.is_shell(ref.task.runtime.name):
            code = await self._run_shell(ref.task.runtime.name, ref.task, ref.scope)
        else:
            code = await self._run_custom(ref)
        logger.info("{} finished with exit code {} in {:.2f}s", ref.qualified_name, code, time.monotonic() - started)
        return code

    async def _run_custom(self, ref: TaskRef) -> int:
        runtime_name = ref.task.runtime.name
        found = await self.registry.find_runtime_ref(runtime_name)
        if found is None:
            raise RuntimeNotFoundError(f"runtime {runtime_name} not found")
        runtime, parents = found
        inner = runtime.get_task(self.config.runtime_task)
        if inner is None:
            raise TaskNotFoundError(f"task {self.config.runtime_task} not found in runtime {runtime.name}")
        if not self.config.is_shell(inner.runtime.name):
            raise ExecutionError(f"unsupported runtime {inner.runtime} for {runtime.name}.{inner.name}")

        code = await self.registry.resolve(ref.task.body, ref.scope)
        return await self._run_shell(inner.runtime.name, inner, parents + (runtime,),
                                     extra={"code": code, "block": code})

    async def _run_shell(self, shell: str, task: Task, scope: Sequence[Container], extra=None) -> int:
        argv = self.config.shells[shell]
        workspace = Path(self.config.workspace)
        workspace.mkdir(parents=True, exist_ok=True)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(workspace),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExecutionError(f"failed to start {argv[0]}: {e}") from e

        jobs = [
            asyncio.ensure_future(self._feed(proc, task, scope, extra)),
            asyncio.ensure_future(self._drain(proc.stdout, "stdout")),
            asyncio.ensure_future(self._drain(proc.stderr, "stderr")),
        ]
        try:
            await asyncio.gather(*jobs)
        except BaseException:
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
            await asyncio.gather(*jobs, return_exceptions=True)
            await proc.wait()
            raise
        return await proc.wait()

    async def _feed(self, proc, task: Task, scope: Sequence[Container], extra) -> None:
        try:
            for line in body_lines(task):
                logger.debug("> {}", line.strip())
                text = await self.registry.resolve(line, scope, extra)
                proc.stdin.write(text.encode("utf-8") + b"\n")
                await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise ExecutionError(f"failed to write to {task.runtime}: {e}") from e
        finally:
            proc.stdin.close()

    async def _drain(self, stream, name: str) -> None:
        # chunked reads; StreamReader.readline() fails on lines over its buffer limit
        pending = b""
        try:
            while True:
                chunk = await stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                *lines, pending = (pending + chunk).split(b"\n")
                for raw in lines:
                    self._emit(name, raw)
        except (OSError, ValueError) as e:
            raise ExecutionError(f"failed to read {name}: {e}") from e
        if pending:
            self._emit(name, pending)

    def _emit(self, name: str, raw: bytes) -> None:
        self.sink(name, raw.decode("utf-8", errors="replace").rstrip("\r"))
