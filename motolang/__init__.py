from .ast import Assignment, Block, Cell, Import, Package, Runtime, Task, describe
from .config import MotoConfig
from .context import Registry, TaskRef
from .errors import (
    ExecutionError,
    InterpolationCycleError,
    MotoError,
    ParseError,
    RuntimeNotFoundError,
    RuntimeTaskError,
    TaskNotFoundError,
)
from .executor import TaskExecutor
from .interpolation import FunctionCall, InterpolatedString, Interpolator, Text, Variable, resolve
from .loader import LoadReport, ScriptLoader, load_directory
from .parser import parse, parse_atom, parse_file
from .types import (
    Array,
    Atom,
    BinaryOperation,
    Boolean,
    Function,
    Identifier,
    NULL,
    Null,
    Number,
    Object,
    Operator,
    String,
    to_atom,
)

__version__ = "0.1.0"
