# Cell tree produced by the parser and stored in the registry
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple, Union

from .types import Atom, Identifier
from .interpolation import InterpolatedString

PACKAGE_RUNTIME = Identifier("moto")


def _ident(value: Union[str, Identifier]) -> Identifier:
    return value if isinstance(value, Identifier) else Identifier(value)


def _body(value: Union[str, InterpolatedString]) -> InterpolatedString:
    if isinstance(value, InterpolatedString):
        return value
    return InterpolatedString.of(value).decompose()


@dataclass(frozen=True)
class Assignment:
    identifier: Identifier
    value: Atom
    kind = "assignment"

    def __post_init__(self):
        object.__setattr__(self, "identifier", _ident(self.identifier))

    @property
    def name(self) -> str:
        return self.identifier.name


@dataclass(frozen=True)
class Task:
    identifier: Identifier
    body: InterpolatedString
    runtime: Identifier
    kind = "task"

    def __post_init__(self):
        object.__setattr__(self, "identifier", _ident(self.identifier))
        object.__setattr__(self, "body", _body(self.body))
        object.__setattr__(self, "runtime", _ident(self.runtime))

    @property
    def name(self) -> str:
        return self.identifier.name

    @property
    def code(self) -> str:
        return str(self.body)


@dataclass(frozen=True)
class Block:
    identifier: Identifier
    body: InterpolatedString
    runtime: Identifier
    kind = "block"

    def __post_init__(self):
        object.__setattr__(self, "identifier", _ident(self.identifier))
        object.__setattr__(self, "body", _body(self.body))
        object.__setattr__(self, "runtime", _ident(self.runtime))

    @property
    def name(self) -> str:
        return self.identifier.name

    @property
    def code(self) -> str:
        return str(self.body)


@dataclass(frozen=True)
class Import:
    path: str
    alias: Identifier
    kind = "import"

    def __post_init__(self):
        object.__setattr__(self, "alias", _ident(self.alias))

    @property
    def name(self) -> str:
        return self.alias.name


class _Container:
    """Lookups shared by cells that own child cells."""

    children: Tuple["Cell", ...]

    def _of(self, cls) -> list:
        return [c for c in self.children if isinstance(c, cls)]

    def tasks(self) -> list:
        return self._of(Task)

    def assignments(self) -> list:
        return self._of(Assignment)

    def get_task(self, name: str) -> Optional[Task]:
        for task in self.tasks():
            if task.identifier.matches(name):
                return task
        return None


@dataclass(frozen=True)
class Runtime(_Container):
    identifier: Identifier
    children: Tuple["Cell", ...]
    runtime: Identifier
    kind = "runtime"

    def __post_init__(self):
        object.__setattr__(self, "identifier", _ident(self.identifier))
        object.__setattr__(self, "children", tuple(self.children))
        object.__setattr__(self, "runtime", _ident(self.runtime))

    @property
    def name(self) -> str:
        return self.identifier.name


@dataclass(frozen=True)
class Package(_Container):
    identifier: Identifier
    children: Tuple["Cell", ...] = ()
    runtime: Identifier = field(default=PACKAGE_RUNTIME)
    kind = "package"

    def __post_init__(self):
        object.__setattr__(self, "identifier", _ident(self.identifier))
        object.__setattr__(self, "children", tuple(self.children))
        object.__setattr__(self, "runtime", _ident(self.runtime))

    @property
    def name(self) -> str:
        return self.identifier.name

    def runtimes(self) -> list:
        return self._of(Runtime)

    def blocks(self) -> list:
        return self._of(Block)

    def imports(self) -> list:
        return self._of(Import)

    def packages(self) -> list:
        return self._of(Package)


Cell = Union[Assignment, Task, Runtime, Block, Import, Package]


def describe(cell: Cell) -> str:
    match cell:
        case Assignment(identifier=ident, value=value):
            return f"let {ident} = {value.text()}"
        case Task(identifier=ident, runtime=runtime):
            return f"task {ident} with runtime {runtime}"
        case Runtime(identifier=ident, runtime=runtime):
            return f"runtime {ident} with runtime {runtime}"
        case Block(identifier=ident, runtime=runtime):
            return f"block {ident} with runtime {runtime}"
        case Import(path=path, alias=alias):
            return f"import {path} as {alias}"
        case Package(identifier=ident):
            return f"package {ident}"
    raise TypeError(f"not a cell: {cell!r}")


def cell_runtime(cell: Cell) -> Optional[Identifier]:
    match cell:
        case Task() | Runtime() | Block():
            return cell.runtime
        case _:
            return None


def cell_body(cell: Cell) -> Optional[InterpolatedString]:
    match cell:
        case Task() | Block():
            return cell.body
        case _:
            return None


def walk(cells) -> Iterator[Cell]:
    """Depth-first iteration over cells and all their descendants."""
    for cell in cells:
        yield cell
        if isinstance(cell, (Runtime, Package)):
            yield from walk(cell.children)
