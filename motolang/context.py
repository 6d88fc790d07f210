"""Registry of loaded cells and injected variables.

The registry is shared by the loader, the interpolation step and the task
executor. All access goes through an ``asyncio.Lock``; interpolation runs on
a snapshot taken under the lock so the engine itself stays synchronous.
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from loguru import logger

from .ast import Assignment, Block, Cell, Package, Runtime, Task
from .errors import InterpolationCycleError
from .interpolation import DEFAULT_MAX_ITERATIONS, FunctionCall, InterpolatedString, Interpolator
from .types import Atom, to_atom

Container = Union[Runtime, Package]


def normalize(name: str) -> str:
    return name.strip().lower()


@dataclass(frozen=True)
class TaskRef:
    """A task together with the containers it was found in, outermost first."""

    task: Task
    parents: Tuple[Container, ...] = ()

    @property
    def qualified_name(self) -> str:
        packages = [p.name for p in self.parents if isinstance(p, Package)]
        return ".".join(packages + [self.task.name])

    @property
    def scope(self) -> Tuple[Container, ...]:
        return self.parents


@dataclass
class _Snapshot:
    """Immutable view of the registry used for one resolve call."""

    variables: Dict[str, Atom]
    extra: Dict[str, Atom]
    scoped: List[Dict[str, Atom]]
    globals: Dict[str, Atom]
    blocks: Dict[str, Block]
    max_iterations: int
    depth: int = 0
    bound: Dict[str, Atom] = field(default_factory=dict)

    def lookup(self, name: str) -> Optional[Atom]:
        key = normalize(name)
        for table in (self.bound, self.variables, self.extra, *self.scoped, self.globals):
            if key in table:
                return table[key]
        return None

    def call(self, fn: FunctionCall) -> str:
        block = self.blocks.get(normalize(fn.key))
        if block is None:
            logger.debug("no block for function call {}", fn.raw)
            return ""
        if self.depth >= self.max_iterations:
            raise InterpolationCycleError(fn.raw, self.max_iterations)
        bound: Dict[str, Atom] = dict(self.bound)
        for i, arg in enumerate(fn.positional_arguments(), start=1):
            bound[f"arg{i}"] = arg
        for key, value in fn.keyword_arguments():
            bound[normalize(key)] = value
        child = _Snapshot(self.variables, self.extra, self.scoped, self.globals, self.blocks,
                          self.max_iterations, self.depth + 1, bound)
        return child.interpolator().resolve(block.body)

    def interpolator(self) -> Interpolator:
        return Interpolator(self.lookup, self.call, self.max_iterations)


def _assignments(cells: Sequence[Cell]) -> Dict[str, Atom]:
    return {normalize(c.name): c.value for c in cells if isinstance(c, Assignment)}


class Registry:
    def __init__(self, max_iterations: int = DEFAULT_MAX_ITERATIONS):
        self.max_iterations = max_iterations
        self._cells: List[Cell] = []
        self._variables: Dict[str, Atom] = {}
        self._lock = asyncio.Lock()

    # ---------- cells ----------
    async def insert(self, cell: Cell) -> None:
        async with self._lock:
            self._cells.append(cell)

    async def extend(self, cells: Sequence[Cell]) -> None:
        async with self._lock:
            self._cells.extend(cells)

    async def cells(self) -> List[Cell]:
        async with self._lock:
            return list(self._cells)

    async def find_task(self, name: str) -> Optional[Task]:
        ref = await self.find_task_ref(name)
        return ref.task if ref else None

    async def find_task_ref(self, name: str) -> Optional[TaskRef]:
        async with self._lock:
            cells = list(self._cells)
        if "." in name:
            *path, task_name = name.split(".")
            return _find_qualified(cells, path, task_name)
        for cell in cells:
            if isinstance(cell, Task) and cell.identifier.matches(name):
                return TaskRef(cell)
        for ref in _package_tasks(cells, ()):
            if ref.task.identifier.matches(name):
                return ref
        return None

    async def tasks(self) -> List[TaskRef]:
        async with self._lock:
            cells = list(self._cells)
        refs = [TaskRef(c) for c in cells if isinstance(c, Task)]
        refs.extend(_package_tasks(cells, ()))
        return refs

    async def find_runtime(self, name: str) -> Optional[Runtime]:
        found = await self._find(Runtime, name)
        return found[0] if found else None

    async def find_runtime_ref(self, name: str) -> Optional[Tuple[Runtime, Tuple[Container, ...]]]:
        return await self._find(Runtime, name)

    async def find_block(self, name: str) -> Optional[Block]:
        found = await self._find(Block, name)
        return found[0] if found else None

    async def _find(self, cls, name: str):
        async with self._lock:
            cells = list(self._cells)
        for cell in cells:
            if isinstance(cell, cls) and cell.identifier.matches(name):
                return cell, ()
        for cell, parents in _package_members(cells, ()):
            if isinstance(cell, cls) and cell.identifier.matches(name):
                return cell, parents
        return None

    # ---------- variables ----------
    async def get_variable(self, name: str) -> Optional[Atom]:
        async with self._lock:
            return self._variables.get(normalize(name))

    async def set_variable(self, name: str, value: Any) -> None:
        async with self._lock:
            self._variables[normalize(name)] = to_atom(value)

    async def variables(self) -> Dict[str, Atom]:
        async with self._lock:
            return dict(self._variables)

    # ---------- interpolation ----------
    async def snapshot(self, scope: Sequence[Container] = (), extra: Optional[Mapping[str, Any]] = None) -> _Snapshot:
        async with self._lock:
            cells = list(self._cells)
            variables = dict(self._variables)
        blocks: Dict[str, Block] = {}
        for cell in cells:
            if isinstance(cell, Block):
                blocks.setdefault(normalize(cell.name), cell)
        for cell, _ in _package_members(cells, ()):
            if isinstance(cell, Block):
                blocks.setdefault(normalize(cell.name), cell)
        return _Snapshot(
            variables=variables,
            extra={normalize(k): to_atom(v) for k, v in (extra or {}).items()},
            # innermost container first
            scoped=[_assignments(c.children) for c in reversed(tuple(scope))],
            globals=_assignments(cells),
            blocks=blocks,
            max_iterations=self.max_iterations,
        )

    async def resolve(self, body: Union[str, InterpolatedString], scope: Sequence[Container] = (),
                      extra: Optional[Mapping[str, Any]] = None) -> str:
        """Fully interpolate ``body`` against the current registry state."""
        snap = await self.snapshot(scope, extra)
        return snap.interpolator().resolve(body)


def _package_members(cells: Sequence[Cell], parents: Tuple[Container, ...]):
    for cell in cells:
        if isinstance(cell, Package):
            chain = parents + (cell,)
            for child in cell.children:
                yield child, chain
            yield from _package_members(cell.children, chain)


def _package_tasks(cells: Sequence[Cell], parents: Tuple[Container, ...]):
    for cell, chain in _package_members(cells, parents):
        if isinstance(cell, Task):
            yield TaskRef(cell, chain)


def _find_qualified(cells: Sequence[Cell], path: List[str], task_name: str) -> Optional[TaskRef]:
    current: Sequence[Cell] = cells
    chain: Tuple[Container, ...] = ()
    for part in path:
        pkg = next((c for c in current if isinstance(c, Package) and c.identifier.matches(part)), None)
        if pkg is None:
            return None
        chain = chain + (pkg,)
        current = pkg.children
    task = next((c for c in current if isinstance(c, Task) and c.identifier.matches(task_name)), None)
    return TaskRef(task, chain) if task else None
