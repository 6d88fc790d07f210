"""Value model shared by the parser, the cell tree and the interpolation engine."""

from __future__ import annotations
import re
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Tuple

IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

OPERATORS = ("+", "-", "*", "/", "==", "!=", ">", "<", ">=", "<=", "&&", "||")


class AtomKind(str, Enum):
    Number = "Number"
    String = "String"
    Boolean = "Boolean"
    Array = "Array"
    Object = "Object"
    BinaryOperation = "BinaryOperation"
    Function = "Function"
    Null = "Null"


@dataclass(frozen=True)
class Identifier:
    name: str

    def __post_init__(self):
        if not isinstance(self.name, str) or not IDENTIFIER_RE.fullmatch(self.name):
            raise ValueError(f"invalid identifier: {self.name!r}")

    def matches(self, name: Any) -> bool:
        if isinstance(name, Identifier):
            name = name.name
        return self.name == name

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Operator:
    symbol: str

    def __post_init__(self):
        if self.symbol not in OPERATORS:
            raise ValueError(f"unknown operator: {self.symbol!r}")

    def __str__(self) -> str:
        return self.symbol


class Atom:
    """Base of all typed literal values."""

    kind: AtomKind

    def text(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.text()


@dataclass(frozen=True)
class Number(Atom):
    value: float
    kind = AtomKind.Number

    def __post_init__(self):
        object.__setattr__(self, "value", float(self.value))

    def text(self) -> str:
        if self.value.is_integer():
            return str(int(self.value))
        return repr(self.value)


@dataclass(frozen=True)
class String(Atom):
    value: str
    kind = AtomKind.String

    def text(self) -> str:
        return self.value


@dataclass(frozen=True)
class Boolean(Atom):
    value: bool
    kind = AtomKind.Boolean

    def text(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class Array(Atom):
    items: Tuple[Atom, ...] = ()
    kind = AtomKind.Array

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index: int) -> Atom:
        return self.items[index]

    def text(self) -> str:
        return "[" + ", ".join(item.text() for item in self.items) + "]"


@dataclass(frozen=True)
class Object(Atom):
    # ordered (key, value) pairs; duplicate keys are kept
    entries: Tuple[Tuple[str, Atom], ...] = ()
    kind = AtomKind.Object

    def __post_init__(self):
        object.__setattr__(self, "entries", tuple((str(k), v) for k, v in self.entries))

    def keys(self) -> Tuple[str, ...]:
        return tuple(k for k, _ in self.entries)

    def get(self, key: str, default: Any = None) -> Any:
        # last write wins for duplicate keys
        for k, v in reversed(self.entries):
            if k == key:
                return v
        return default

    def text(self) -> str:
        return "{" + ", ".join(f"{k}:{v.text()}" for k, v in self.entries) + "}"


@dataclass(frozen=True)
class BinaryOperation(Atom):
    left: Atom
    operator: Operator
    right: Atom
    kind = AtomKind.BinaryOperation

    def text(self) -> str:
        return f"{self.left.text()} {self.operator} {self.right.text()}"


@dataclass(frozen=True)
class Function(Atom):
    identifier: Identifier
    arguments: Tuple[Atom, ...] = field(default_factory=tuple)
    kind = AtomKind.Function

    def __post_init__(self):
        object.__setattr__(self, "arguments", tuple(self.arguments))

    def text(self) -> str:
        return f"{self.identifier}(" + ", ".join(a.text() for a in self.arguments) + ")"


@dataclass(frozen=True)
class Null(Atom):
    kind = AtomKind.Null

    def text(self) -> str:
        return "null"


NULL = Null()


def to_atom(value: Any) -> Atom:
    """Convert a plain Python value to an Atom.

    Strings stay strings even when they look numeric; numbers only come
    from explicit numeric values or from the grammar's number literal.
    """
    if isinstance(value, Atom):
        return value
    if value is None:
        return NULL
    if isinstance(value, bool):
        return Boolean(value)
    if isinstance(value, (int, float)):
        return Number(value)
    if isinstance(value, str):
        return String(value)
    if isinstance(value, dict):
        return Object(tuple((str(k), to_atom(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return Array(tuple(to_atom(v) for v in value))
    raise TypeError(f"cannot convert {type(value).__name__} to an atom")
