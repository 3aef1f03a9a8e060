from __future__ import annotations

from collections.abc import Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, auto
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from typing_extensions import Protocol, TypeAlias, TypeGuard

from .tree import Node, node_position

# ---------- Value Model ----------

@dataclass(frozen=True)
class PlcNil:
    def __repr__(self) -> str:
        return "NIL"

@dataclass(frozen=True)
class PlcBool:
    value: bool
    def __repr__(self) -> str:
        return "TRUE" if self.value else "FALSE"

@dataclass(frozen=True)
class PlcInteger:
    value: int
    def __repr__(self) -> str:
        return str(self.value)

@dataclass(frozen=True)
class PlcDecimal:
    value: Decimal
    def __repr__(self) -> str:
        return str(self.value)

    # scale is part of the value: 1.0 and 1.00 differ
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PlcDecimal):
            return NotImplemented
        return self.value == other.value and self.value.as_tuple().exponent == other.value.as_tuple().exponent

    def __hash__(self) -> int:
        return hash((self.value, self.value.as_tuple().exponent))

@dataclass(frozen=True)
class PlcCharacter:
    value: str
    def __repr__(self) -> str:
        return f"'{self.value}'"

@dataclass(frozen=True)
class PlcString:
    value: str
    def __repr__(self) -> str:
        return f'"{self.value}"'

class IntegerRange(Sequence[PlcInteger]):
    """Half-open run of integers; items are built on access, not up front."""

    __slots__ = ('bounds',)

    def __init__(self, start: int, stop: int) -> None:
        self.bounds = range(start, stop)

    def __len__(self) -> int:
        return len(self.bounds)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return tuple(PlcInteger(i) for i in self.bounds[index])
        return PlcInteger(self.bounds[index])

    def __iter__(self) -> Iterator[PlcInteger]:
        return (PlcInteger(i) for i in self.bounds)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IntegerRange):
            return NotImplemented
        return self.bounds == other.bounds

    def __hash__(self) -> int:
        return hash(self.bounds)

    def __repr__(self) -> str:
        return f"IntegerRange({self.bounds.start}, {self.bounds.stop})"

@dataclass(frozen=True)
class PlcIterable:
    items: Sequence['PlcValue']
    def __repr__(self) -> str:
        return "[" + ", ".join(repr(x) for x in self.items) + "]"

@dataclass(frozen=True)
class PlcFunction:
    name: str
    arity: int
    fn: Callable[[List['PlcValue']], 'PlcValue'] = field(compare=False)

    def invoke(self, args: List['PlcValue']) -> 'PlcValue':
        return self.fn(args)

@dataclass(frozen=True)
class ObjectKind:
    """Runtime side of a composite type: its name and method table."""
    name: str
    methods: Dict[Tuple[str, int], PlcFunction] = field(default_factory=dict, compare=False, hash=False)

@dataclass
class PlcObject:
    kind: ObjectKind
    fields: Dict[str, 'PlcValue']
    def __repr__(self) -> str:
        pairs = []

        for k, v in self.fields.items():
            pairs.append(f"{k}: {repr(v)}")

        return self.kind.name + " { " + ", ".join(pairs) + " }"

PlcValue: TypeAlias = (
    PlcNil
    | PlcBool
    | PlcInteger
    | PlcDecimal
    | PlcCharacter
    | PlcString
    | PlcIterable
    | PlcObject
)

_PLC_VALUE_TYPES: Tuple[type, ...] = (
    PlcNil,
    PlcBool,
    PlcInteger,
    PlcDecimal,
    PlcCharacter,
    PlcString,
    PlcIterable,
    PlcObject,
)

def is_plc_value(value: object) -> TypeGuard[PlcValue]:
    return isinstance(value, _PLC_VALUE_TYPES)

# ---------- Statement outcomes ----------

@dataclass(frozen=True)
class Completed:
    """The statement ran to its end."""

@dataclass(frozen=True)
class Returned:
    """A RETURN ran; the enclosing method call yields `value`."""
    value: PlcValue

Outcome: TypeAlias = Completed | Returned

COMPLETED = Completed()

# ---------- Type descriptors ----------

class Rep(Enum):
    """Native representation tag of a type descriptor."""
    NIL = auto()
    BOOLEAN = auto()
    INTEGER = auto()
    DECIMAL = auto()
    CHARACTER = auto()
    STRING = auto()
    INTEGER_ITERABLE = auto()
    ANY = auto()
    COMPARABLE = auto()
    OBJECT = auto()

@dataclass(frozen=True)
class PlcType:
    name: str
    tag: Rep
    # field variables and method signatures of an OBJECT type
    members: Optional['Scope'] = field(default=None, compare=False, hash=False, repr=False)

    def __str__(self) -> str:
        return self.name

TYPE_NIL = PlcType("Nil", Rep.NIL)
TYPE_BOOLEAN = PlcType("Boolean", Rep.BOOLEAN)
TYPE_INTEGER = PlcType("Integer", Rep.INTEGER)
TYPE_DECIMAL = PlcType("Decimal", Rep.DECIMAL)
TYPE_CHARACTER = PlcType("Character", Rep.CHARACTER)
TYPE_STRING = PlcType("String", Rep.STRING)
TYPE_INTEGER_ITERABLE = PlcType("IntegerIterable", Rep.INTEGER_ITERABLE)
TYPE_ANY = PlcType("Any", Rep.ANY)
TYPE_COMPARABLE = PlcType("Comparable", Rep.COMPARABLE)

BUILTIN_TYPES: Dict[str, PlcType] = {
    t.name: t
    for t in (
        TYPE_NIL,
        TYPE_BOOLEAN,
        TYPE_INTEGER,
        TYPE_DECIMAL,
        TYPE_CHARACTER,
        TYPE_STRING,
        TYPE_INTEGER_ITERABLE,
        TYPE_ANY,
        TYPE_COMPARABLE,
    )
}

# ---------- Static bindings ----------

@dataclass(frozen=True)
class Variable:
    name: str
    type: PlcType

@dataclass(eq=False)
class Signature:
    name: str
    param_types: Tuple[PlcType, ...]
    # replaced once when an unannotated method's return type is inferred
    return_type: PlcType
    # set by the analyzer while the method's body is still unchecked
    pending: Optional[Any] = field(default=None, repr=False)

    @property
    def arity(self) -> int:
        return len(self.param_types)

# ---------- Scopes ----------

class ScopeObserver(Protocol):
    def __call__(self, event: str, label: str, depth: int) -> None: ...

class Scope:
    """One lexical environment.

    The analyzer fills it with `Variable`/`Signature` bindings and the
    interpreter with runtime values and `PlcFunction`s; the nesting rules are
    the same for both.
    """

    def __init__(self, parent: Optional['Scope']=None, label: str="global", observer: Optional[ScopeObserver]=None):
        self.parent = parent
        self.label = label
        self.variables: Dict[str, Any] = {}
        self.functions: Dict[Tuple[str, int], Any] = {}
        self.types: Dict[str, PlcType] = {}
        self.depth: int = parent.depth + 1 if parent is not None else 0
        self.released = False

        if observer is None and parent is not None:
            observer = parent.observer
        self.observer = observer

    def declares(self, name: str) -> bool:
        return name in self.variables

    def define_variable(self, name: str, binding: Any) -> None:
        self.variables[name] = binding

    def lookup_variable(self, name: str) -> Optional[Any]:
        scope: Optional[Scope] = self

        while scope is not None:
            if name in scope.variables:
                return scope.variables[name]
            scope = scope.parent

        return None

    def assign_variable(self, name: str, value: Any) -> bool:
        scope: Optional[Scope] = self

        while scope is not None:
            if name in scope.variables:
                scope.variables[name] = value
                return True
            scope = scope.parent

        return False

    def define_function(self, name: str, arity: int, binding: Any) -> None:
        self.functions[(name, arity)] = binding

    def lookup_function(self, name: str, arity: int) -> Optional[Any]:
        key = (name, arity)
        scope: Optional[Scope] = self

        while scope is not None:
            if key in scope.functions:
                return scope.functions[key]
            scope = scope.parent

        return None

    def define_type(self, typ: PlcType) -> None:
        self.types[typ.name] = typ

    def lookup_type(self, name: str) -> Optional[PlcType]:
        scope: Optional[Scope] = self

        while scope is not None:
            if name in scope.types:
                return scope.types[name]
            scope = scope.parent

        return BUILTIN_TYPES.get(name)

    def notify(self, event: str) -> None:
        if self.observer is not None:
            self.observer(event, self.label, self.depth)

    def release(self) -> None:
        self.released = True
        self.notify("exit")

    def __repr__(self) -> str:
        return f"<Scope {self.label} depth={self.depth} vars={sorted(self.variables)}>"

@contextmanager
def child_scope(parent: Scope, label: str) -> Iterator[Scope]:
    """Open a child scope that is released however the block is left."""
    scope = Scope(parent, label)
    scope.notify("enter")

    try:
        yield scope
    finally:
        scope.release()

# ---------- Exceptions ----------

class ErrorKind(Enum):
    UNDEFINED_VARIABLE = "UndefinedVariable"
    UNDEFINED_FUNCTION = "UndefinedFunction"
    UNDEFINED_FIELD = "UndefinedField"
    UNDEFINED_TYPE = "UndefinedType"
    TYPE_MISMATCH = "TypeMismatch"
    DIVISION_BY_ZERO = "DivisionByZero"
    INVALID_MAIN_SIGNATURE = "InvalidMainSignature"
    EMPTY_LOOP_BODY = "EmptyLoopBody"
    REDEFINITION = "Redefinition"
    INVALID_ASSIGNMENT = "InvalidAssignment"
    RETURN_OUTSIDE_METHOD = "ReturnOutsideMethod"

class PlcError(Exception):
    position: Optional[int]

    def __init__(self, message: str, position: Optional[int]=None):
        super().__init__(message)
        self.message = message
        self.position = position

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        if self.position is None:
            return self.message

        return f"{self.message} (at offset {self.position})"

class LexError(PlcError):
    pass

class ParseError(PlcError):
    def __init__(self, message: str, position: Optional[int], expected: str):
        super().__init__(message, position)
        self.expected = expected

class AnalysisError(PlcError):
    def __init__(self, kind: ErrorKind, message: str, node: Optional[Node]=None):
        super().__init__(f"{kind.value}: {message}", node_position(node))
        self.kind = kind
        self.node = node

class PlcRuntimeError(PlcError):
    def __init__(self, kind: ErrorKind, message: str, node: Optional[Node]=None):
        super().__init__(f"{kind.value}: {message}", node_position(node))
        self.kind = kind
        self.node = node

    def attach(self, node: Node) -> None:
        """Record `node` unless a more specific located node is already known."""
        if self.position is not None:
            return

        position = node_position(node)

        if self.node is None or position is not None:
            self.node = node
            self.position = position
