from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .types import (
    TYPE_NIL,
    ObjectKind,
    PlcFunction,
    PlcObject,
    PlcType,
    PlcValue,
    Rep,
    Scope,
    ScopeObserver,
    Signature,
    Variable,
)

BuiltinFn = Callable[[List[PlcValue]], PlcValue]
MethodFn = Callable[[PlcValue, List[PlcValue]], PlcValue]

@dataclass(frozen=True)
class BuiltinFunction:
    name: str
    param_types: Tuple[PlcType, ...]
    return_type: PlcType
    fn: BuiltinFn = field(compare=False)

    @property
    def arity(self) -> int:
        return len(self.param_types)

@dataclass(frozen=True)
class ObjectMethod:
    """A host-implemented method of a composite type; `fn(receiver, args)`."""
    name: str
    param_types: Tuple[PlcType, ...]
    return_type: PlcType
    fn: MethodFn = field(compare=False)

class Builtins:
    functions: Dict[Tuple[str, int], BuiltinFunction] = {}

_STDLIB_INITIALIZED = False

def init_stdlib() -> None:
    """Load stdlib modules (idempotent) so register_builtin hooks run."""
    global _STDLIB_INITIALIZED

    if _STDLIB_INITIALIZED:
        return

    importlib.import_module("plc_ref.stdlib")
    _STDLIB_INITIALIZED = True

def register_builtin(name: str, params: Sequence[PlcType]=(), returns: PlcType=TYPE_NIL):
    """Register `fn(args)` as a global function visible to both scope trees."""
    def dec(fn: BuiltinFn):
        entry = BuiltinFunction(name, tuple(params), returns, fn)
        Builtins.functions[(name, entry.arity)] = entry
        return fn

    return dec

# ---------------- Root scopes ----------------

def static_globals() -> Scope:
    """Root scope for the analyzer: builtin signatures and types."""
    init_stdlib()
    scope = Scope(label="global")

    for entry in Builtins.functions.values():
        scope.define_function(entry.name, entry.arity, Signature(entry.name, entry.param_types, entry.return_type))

    return scope

def runtime_globals(observer: Optional[ScopeObserver]=None) -> Scope:
    """Root scope for the evaluator: builtin implementations."""
    init_stdlib()
    scope = Scope(label="global", observer=observer)

    for entry in Builtins.functions.values():
        scope.define_function(entry.name, entry.arity, PlcFunction(entry.name, entry.arity, entry.fn))

    return scope

# ---------------- Composite types ----------------

def define_object_type(
    name: str,
    fields: Dict[str, PlcType],
    methods: Iterable[ObjectMethod]=(),
    static_scope: Optional[Scope]=None,
) -> Tuple[PlcType, ObjectKind]:
    """Build the static and runtime halves of a host composite type.

    The static half (a `PlcType` whose `members` scope holds field variables
    and method signatures) is registered in `static_scope` when given, so
    annotations can name it. Method keys never count the receiver.
    """
    members = Scope(label=name)
    kind = ObjectKind(name)

    for field_name, field_type in fields.items():
        members.define_variable(field_name, Variable(field_name, field_type))

    for method in methods:
        arity = len(method.param_types)
        members.define_function(method.name, arity, Signature(method.name, method.param_types, method.return_type))
        kind.methods[(method.name, arity)] = PlcFunction(method.name, arity, _receiver_first(method.fn))

    typ = PlcType(name, Rep.OBJECT, members)

    if static_scope is not None:
        static_scope.define_type(typ)

    return typ, kind

def _receiver_first(fn: MethodFn) -> BuiltinFn:
    def invoke(args: List[PlcValue]) -> PlcValue:
        return fn(args[0], args[1:])

    return invoke

def new_object(kind: ObjectKind, **fields: PlcValue) -> PlcObject:
    return PlcObject(kind, dict(fields))

def declare_global(static_scope: Scope, runtime_scope: Scope, name: str, typ: PlcType, value: PlcValue) -> None:
    """Bind a host-provided global in both scope trees."""
    static_scope.define_variable(name, Variable(name, typ))
    runtime_scope.define_variable(name, value)
