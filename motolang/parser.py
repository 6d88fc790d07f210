from __future__ import annotations
from pathlib import Path
from typing import List, Optional

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import LarkError, UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from .ast import Assignment, Block, Cell, Import, Package, Runtime, Task
from .errors import ParseError
from .interpolation import InterpolatedString
from .types import Array, Atom, BinaryOperation, Boolean, Function, Identifier, Number, Object, Operator, String

GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")

_parser: Optional[Lark] = None


def _load_parser() -> Lark:
    global _parser
    if _parser is None:
        grammar = GRAMMAR_PATH.read_text(encoding="utf-8")
        _parser = Lark(grammar, start=["start", "value"], parser="lalr", lexer="contextual",
                       propagate_positions=True)
    return _parser


def _unquote(token: Token) -> str:
    return str(token)[1:-1]


def _raw_body(token: Optional[Token]) -> InterpolatedString:
    text = str(token).strip() if token is not None else ""
    return InterpolatedString.of(text).decompose()


def _split_body_rule(children) -> tuple:
    # task/block children: IDENT [BODY] IDENT
    if len(children) == 3:
        return children[0], children[1], children[2]
    return children[0], None, children[1]


class CellBuilder(Transformer):
    """Turns the lark parse tree into cells and atoms."""

    def start(self, children) -> List[Cell]:
        return list(children)

    @v_args(inline=True)
    def assignment(self, name, value):
        return Assignment(Identifier(str(name)), value)

    def task(self, children):
        name, body, runtime = _split_body_rule(children)
        return Task(Identifier(str(name)), _raw_body(body), Identifier(str(runtime)))

    def block(self, children):
        name, body, runtime = _split_body_rule(children)
        return Block(Identifier(str(name)), _raw_body(body), Identifier(str(runtime)))

    def runtime(self, children):
        return Runtime(Identifier(str(children[0])), tuple(children[1:-1]), Identifier(str(children[-1])))

    def package(self, children):
        return Package(Identifier(str(children[0])), tuple(children[1:-1]), Identifier(str(children[-1])))

    @v_args(inline=True)
    def import_(self, path, alias):
        return Import(_unquote(path), Identifier(str(alias)))

    # atoms

    @v_args(inline=True)
    def number(self, token):
        return Number(float(str(token)))

    @v_args(inline=True)
    def string(self, token):
        return String(_unquote(token))

    @v_args(inline=True)
    def boolean(self, token):
        return Boolean(token.type == "TRUE")

    def array(self, children):
        return Array(tuple(children))

    def object(self, children):
        return Object(tuple(children))

    @v_args(inline=True)
    def pair(self, key, value):
        name = _unquote(key) if key.type == "STRING" else str(key)
        return (name, value)

    @v_args(inline=True)
    def binary(self, left, op, right):
        return BinaryOperation(left, Operator(str(op)), right)

    def function(self, children):
        return Function(Identifier(str(children[0])), tuple(children[1:]))


_builder = CellBuilder()


def _describe_terminal(parser: Lark, name: str) -> str:
    try:
        term = parser.get_terminal(name)
    except KeyError:
        return name
    if term.pattern.type == "str":
        return repr(term.pattern.value)
    return name


def _line_col(text: str, pos: int) -> tuple:
    line = text.count("\n", 0, pos) + 1
    column = pos - (text.rfind("\n", 0, pos) + 1) + 1
    return line, column


def _context(text: str, pos: int, span: int = 30) -> str:
    start = max(0, pos - span)
    end = min(len(text), pos + span)
    before = text[start:pos].rsplit("\n", 1)[-1]
    after = text[pos:end].split("\n", 1)[0]
    return before + after + "\n" + " " * len(before) + "^"


def _token_text(token: Token, limit: int = 20) -> str:
    # the fallback lexer may hand back a whole raw body
    text = str(token).strip().split("\n", 1)[0]
    return text if len(text) <= limit else text[:limit] + "..."


def _to_parse_error(err: UnexpectedInput, text: str, parser: Lark) -> ParseError:
    at_end = isinstance(err, UnexpectedToken) and err.token.type == "$END"
    if at_end or isinstance(err, UnexpectedEOF) or getattr(err, "pos_in_stream", None) in (None, -1):
        pos = len(text)
        line, column = _line_col(text, pos)
        expected = sorted(_describe_terminal(parser, n) for n in getattr(err, "expected", ()) or ())
        return ParseError("unexpected end of input", line, column, pos, expected, _context(text, pos))

    pos = err.pos_in_stream
    if isinstance(err, UnexpectedToken):
        message = f"unexpected token {_token_text(err.token)!r}"
        expected = sorted(_describe_terminal(parser, n) for n in err.expected)
    elif isinstance(err, UnexpectedCharacters):
        message = f"unexpected character {text[pos]!r}" if pos < len(text) else "unexpected end of input"
        expected = sorted(_describe_terminal(parser, n) for n in (err.allowed or ()))
    else:
        message = str(err)
        expected = []
    return ParseError(message, err.line, err.column, pos, expected, _context(text, pos))


def _parse(text: str, start: str):
    parser = _load_parser()
    try:
        tree = parser.parse(text, start=start)
    except UnexpectedInput as e:
        raise _to_parse_error(e, text, parser) from e
    except LarkError as e:
        raise ParseError(str(e)) from e
    return _builder.transform(tree)


def parse(source: str) -> List[Cell]:
    """Parse a whole script into its top-level cells."""
    return _parse(source, "start")


def parse_atom(source: str) -> Atom:
    return _parse(source, "value")


def parse_file(path: str | Path) -> List[Cell]:
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        return parse(text)
    except ParseError as e:
        raise e.with_path(str(path)) from e
