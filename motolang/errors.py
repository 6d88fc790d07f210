from __future__ import annotations
from typing import Optional, Sequence


class MotoError(Exception):
    pass


class ParseError(MotoError):
    """Raised when script text does not match the grammar.

    Carries the 1-based line/column and 0-based offset of the first point
    of failure, plus the tokens the parser would have accepted there.
    """

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
        position: Optional[int] = None,
        expected: Sequence[str] = (),
        context: str = "",
        path: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column
        self.position = position
        self.expected = tuple(expected)
        self.context = context
        self.path = path

    def with_path(self, path: str) -> "ParseError":
        return ParseError(
            self.message,
            line=self.line,
            column=self.column,
            position=self.position,
            expected=self.expected,
            context=self.context,
            path=path,
        )

    def __str__(self) -> str:
        where = self.path or "<script>"
        if self.line is not None:
            where += f":{self.line}:{self.column}"
        text = f"{where}: {self.message}"
        if self.expected:
            text += f" (expected one of: {', '.join(self.expected)})"
        return text


class InterpolationCycleError(MotoError):
    """Raised when placeholder expansion does not settle within the iteration cap."""

    def __init__(self, text: str, iterations: int):
        super().__init__(f"placeholders still unresolved after {iterations} rounds: {text[:80]!r}")
        self.text = text
        self.iterations = iterations


class RuntimeTaskError(MotoError):
    pass


class TaskNotFoundError(RuntimeTaskError):
    pass


class RuntimeNotFoundError(RuntimeTaskError):
    pass


class ExecutionError(RuntimeTaskError):
    """Subprocess could not be spawned or fed."""
    pass
