"""Placeholder interpolation for task and block bodies.

A body is modelled as an :class:`InterpolatedString`, an ordered tuple of
parts. Each part is literal :class:`Text`, a :class:`Variable` reference
(``[:name]`` or ``[:name=fallback]``) or a :class:`FunctionCall`
(``[:name(a, b)]``).

Resolution is a fixpoint of two steps:

* ``decompose`` scans literal text for ``[:`` and the first ``]`` after it
  and replaces each such span by a Variable or FunctionCall part;
* ``compute`` replaces every Variable/FunctionCall part by text, taken from
  the lookup callback, or from the placeholder fallback on a miss.

Values and fallbacks may contain further placeholders, so the two steps are
repeated by :class:`Interpolator` until nothing computable remains, bounded
by ``max_iterations``.

Scanning is not bracket aware: ``[:f([:g()])]`` closes at the first ``]``.
An ``[:`` that is never closed stays literal text and is not computable.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple, Union

from .errors import InterpolationCycleError
from .types import NULL, Atom, Null, Object, String, to_atom

OPEN = "[:"
CLOSE = "]"

DEFAULT_MAX_ITERATIONS = 64

Lookup = Callable[[str], Optional[Atom]]


@dataclass(frozen=True)
class Text:
    text: str

    @property
    def raw(self) -> str:
        return self.text


@dataclass(frozen=True)
class Variable:
    name: str
    fallback: Atom = NULL
    raw: str = field(default="", compare=False)

    def __post_init__(self):
        if not self.raw:
            inner = self.name if isinstance(self.fallback, Null) else f"{self.name}={self.fallback.text()}"
            object.__setattr__(self, "raw", OPEN + inner + CLOSE)

    @property
    def key(self) -> str:
        return self.name.strip()

    def fallback_text(self) -> str:
        if isinstance(self.fallback, Null):
            return ""
        return self.fallback.text()


@dataclass(frozen=True)
class FunctionCall:
    name: str
    arguments: Tuple[Atom, ...] = ()
    raw: str = field(default="", compare=False)

    def __post_init__(self):
        object.__setattr__(self, "arguments", tuple(self.arguments))
        if not self.raw:
            args = ", ".join(_argument_source(a) for a in self.arguments)
            object.__setattr__(self, "raw", f"{OPEN}{self.name}({args}){CLOSE}")

    @property
    def key(self) -> str:
        return self.name.strip()

    def keyword_arguments(self) -> List[Tuple[str, Atom]]:
        return [pair for a in self.arguments if isinstance(a, Object) for pair in a.entries]

    def positional_arguments(self) -> List[Atom]:
        return [a for a in self.arguments if not isinstance(a, Object)]


Part = Union[Text, Variable, FunctionCall]
Call = Callable[[FunctionCall], str]


def _argument_source(atom: Atom) -> str:
    if isinstance(atom, Object):
        return ", ".join(f"{k}={v.text()}" for k, v in atom.entries)
    return atom.text()


def find_placeholder(text: str, start: int = 0) -> Optional[Tuple[int, int]]:
    """Return (open, close) offsets of the next complete placeholder, or None.

    ``close`` is the offset of the terminating ``]``.
    """
    begin = text.find(OPEN, start)
    if begin < 0:
        return None
    end = text.find(CLOSE, begin + len(OPEN))
    if end < 0:
        return None
    return begin, end


def parse_arguments(text: str) -> Tuple[Atom, ...]:
    args: List[Atom] = []
    if not text.strip():
        return ()
    for piece in text.split(","):
        piece = piece.strip()
        if "=" in piece:
            key, _, value = piece.partition("=")
            args.append(Object(((key.strip(), String(value.strip())),)))
        else:
            args.append(String(piece))
    return tuple(args)


def classify(segment: str, raw: str) -> Part:
    """Turn the text between ``[:`` and ``]`` into a part."""
    if "(" in segment:
        name, _, rest = segment.partition("(")
        close = rest.rfind(")")
        inner = rest[:close] if close >= 0 else rest
        return FunctionCall(name, parse_arguments(inner), raw=raw)
    if "=" in segment:
        name, _, fallback = segment.partition("=")
        return Variable(name, String(fallback), raw=raw)
    return Variable(segment, NULL, raw=raw)


def split_text(text: str) -> List[Part]:
    parts: List[Part] = []
    pos = 0
    while True:
        span = find_placeholder(text, pos)
        if span is None:
            break
        begin, end = span
        if begin > pos:
            parts.append(Text(text[pos:begin]))
        parts.append(classify(text[begin + len(OPEN):end], text[begin:end + 1]))
        pos = end + 1
    if pos < len(text):
        parts.append(Text(text[pos:]))
    return parts


def _merge(parts: Iterable[Part]) -> Tuple[Part, ...]:
    merged: List[Part] = []
    for part in parts:
        if isinstance(part, Text):
            if not part.text:
                continue
            if merged and isinstance(merged[-1], Text):
                merged[-1] = Text(merged[-1].text + part.text)
                continue
        merged.append(part)
    return tuple(merged)


def _no_call(fn: FunctionCall) -> str:
    return ""


@dataclass(frozen=True)
class InterpolatedString:
    parts: Tuple[Part, ...] = ()

    @classmethod
    def of(cls, value: Union[str, "InterpolatedString", Iterable[Part]]) -> "InterpolatedString":
        if isinstance(value, InterpolatedString):
            return value
        if isinstance(value, str):
            return cls(_merge([Text(value)]))
        return cls(_merge(value))

    def decompose(self) -> "InterpolatedString":
        out: List[Part] = []
        for part in self.parts:
            if isinstance(part, Text):
                out.extend(split_text(part.text))
            else:
                out.append(part)
        return InterpolatedString(_merge(out))

    def compute(self, lookup: Lookup, call: Optional[Call] = None) -> "InterpolatedString":
        call = call or _no_call
        out: List[Part] = []
        for part in self.parts:
            if isinstance(part, Variable):
                value = lookup(part.key)
                out.append(Text(part.fallback_text() if value is None else value.text()))
            elif isinstance(part, FunctionCall):
                out.append(Text(call(part)))
            else:
                out.append(part)
        return InterpolatedString(_merge(out))

    def is_computable(self) -> bool:
        for part in self.parts:
            if not isinstance(part, Text):
                return True
            if find_placeholder(part.text) is not None:
                return True
        return False

    def placeholders(self) -> List[Part]:
        return [p for p in self.parts if not isinstance(p, Text)]

    def lines(self) -> List["InterpolatedString"]:
        return [InterpolatedString.of(line).decompose() for line in str(self).splitlines()]

    def __str__(self) -> str:
        return "".join(part.raw for part in self.parts)


class Interpolator:
    """Runs decompose/compute until the text is stable."""

    def __init__(self, lookup: Lookup, call: Optional[Call] = None, max_iterations: int = DEFAULT_MAX_ITERATIONS):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.lookup = lookup
        self.call = call
        self.max_iterations = max_iterations

    def resolve(self, body: Union[str, InterpolatedString]) -> str:
        current = InterpolatedString.of(body)
        for _ in range(self.max_iterations):
            if not current.is_computable():
                return str(current)
            current = current.decompose().compute(self.lookup, self.call)
        if current.is_computable():
            raise InterpolationCycleError(str(current), self.max_iterations)
        return str(current)


def resolve(body: Union[str, InterpolatedString], variables: Optional[dict] = None,
            max_iterations: int = DEFAULT_MAX_ITERATIONS) -> str:
    """Resolve against a plain mapping of names to atoms (names matched case-insensitively)."""
    table = {k.strip().lower(): to_atom(v) for k, v in (variables or {}).items()}

    def lookup(name: str) -> Optional[Atom]:
        return table.get(name.strip().lower())

    return Interpolator(lookup, max_iterations=max_iterations).resolve(body)
