"""Static checking for PLC trees.

Walks a parsed tree once against a static `Scope` whose bindings are
`Variable`s and `Signature`s. Every expression node gets a resolved type,
every access/call/declaration its binding. The first violation raises
`AnalysisError`; annotations already written are not trusted afterwards.

Scopes are opened for the same constructs as the evaluator opens them
(`source`, `method`, `then`, `else`, `for`, `while`), so both trees nest the
same way. Unlike the evaluator, both branches of an IF and one iteration of
each loop body are always checked.

Every method signature is declared before any body is checked. A call to an
unannotated method whose body has not been checked yet checks that body
first, so callers see the inferred return type whatever the method order.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from lark import Token, Tree

from .tree import (
    annotate,
    is_expression,
    is_statement,
    source_fields,
    source_methods,
    tree_label,
)
from .types import (
    TYPE_ANY,
    TYPE_BOOLEAN,
    TYPE_CHARACTER,
    TYPE_COMPARABLE,
    TYPE_DECIMAL,
    TYPE_INTEGER,
    TYPE_INTEGER_ITERABLE,
    TYPE_NIL,
    TYPE_STRING,
    AnalysisError,
    ErrorKind,
    PlcType,
    Rep,
    Scope,
    Signature,
    Variable,
    child_scope,
)

log = logging.getLogger(__name__)

COMPARABLE_SOURCES = (TYPE_INTEGER, TYPE_DECIMAL, TYPE_CHARACTER, TYPE_STRING)
NUMERIC_TYPES = (TYPE_INTEGER, TYPE_DECIMAL)
ADDABLE_TYPES = (TYPE_STRING, TYPE_INTEGER, TYPE_DECIMAL)

LITERAL_TYPES: Dict[str, PlcType] = {
    'NIL': TYPE_NIL,
    'BOOLEAN': TYPE_BOOLEAN,
    'INTEGER': TYPE_INTEGER,
    'DECIMAL': TYPE_DECIMAL,
    'CHARACTER': TYPE_CHARACTER,
    'STRING': TYPE_STRING,
}

@dataclass
class MethodContext:
    """The method whose body is being checked, and the return types seen so far."""
    signature: Signature
    declared_return: Optional[PlcType]
    returns: List[PlcType] = field(default_factory=list)
    # recursive calls typed before the return type was inferred
    provisional: List[Tuple[Tree, PlcType]] = field(default_factory=list)

@dataclass
class PendingBody:
    """A declared method whose body has not been checked yet."""
    node: Tree
    declared: Optional[PlcType]
    scope: Scope
    ctx: Optional[MethodContext] = None

# ---------------- Assignability ----------------

def require_assignable(target: PlcType, source: PlcType, node: Optional[Tree | Token]=None) -> None:
    """Succeed if a `source` value may be stored where `target` is expected."""
    if target == source:
        return

    if target == TYPE_ANY:
        return

    if target == TYPE_COMPARABLE and source in COMPARABLE_SOURCES:
        return

    raise AnalysisError(ErrorKind.TYPE_MISMATCH, f"Expected {target}, received {source}.", node)

def _require_one_of(allowed: Tuple[PlcType, ...], actual: PlcType, node: Tree, op: str) -> None:
    if actual in allowed:
        return

    names = ", ".join(str(t) for t in allowed)
    raise AnalysisError(ErrorKind.TYPE_MISMATCH, f"Operator {op} expects one of {names}, received {actual}.", node)

# ---------------- Public API ----------------

def analyze(node: Tree, scope: Scope) -> Tree:
    """Check and annotate `node` in place.

    A `source` tree is checked as a whole program (its fields and methods go
    into a child scope of `scope`, and `main/0` must return Integer). A
    statement or expression is checked directly against `scope`.
    """
    label = tree_label(node)

    if label == 'source':
        _analyze_source(node, scope)
    elif is_statement(node):
        analyze_statement(node, scope, None)
    elif is_expression(node):
        analyze_expression(node, scope)
    else:
        raise TypeError(f"Cannot analyze node {label!r}")

    return node

def analyze_method(node: Tree, scope: Scope) -> Signature:
    """Declare one method in `scope` and check its body."""
    sig = _declare_method(node, scope)
    _check_method_body(sig)
    return sig

# ---------------- Program ----------------

def _analyze_source(node: Tree, scope: Scope) -> None:
    with child_scope(scope, 'source') as src:
        for f in source_fields(node):
            name, type_name, value = f.children
            _require_undeclared(src, name, f)
            var = Variable(str(name), _binding_type(type_name, value, src))
            src.define_variable(var.name, var)
            annotate(f, binding=var)

        methods = source_methods(node)
        # all signatures first so bodies may call methods defined later
        signatures = [_declare_method(m, src) for m in methods]

        # bodies already checked on demand by an earlier caller are skipped
        for sig in signatures:
            _check_method_body(sig)

        _check_main(node, src, methods)

    log.debug("analyzed %d fields and %d methods", len(source_fields(node)), len(methods))

def _declare_method(node: Tree, scope: Scope) -> Signature:
    name, params, return_name, _ = node.children
    param_types = tuple(
        _resolve_type(type_name, scope) if type_name is not None else TYPE_ANY
        for _, type_name in (p.children for p in params.children)
    )

    if (str(name), len(param_types)) in scope.functions:
        raise AnalysisError(ErrorKind.REDEFINITION, f"Method {name}/{len(param_types)} is already defined", node)

    declared = _resolve_type(return_name, scope) if return_name is not None else None
    sig = Signature(str(name), param_types, declared or TYPE_ANY)
    sig.pending = PendingBody(node, declared, scope)
    scope.define_function(sig.name, sig.arity, sig)
    annotate(node, binding=sig)
    return sig

def _check_method_body(sig: Signature) -> None:
    """Check a declared method's body once, then settle its return type."""
    pending = sig.pending
    if pending is None or pending.ctx is not None:
        return

    _, params, _, block = pending.node.children
    ctx = pending.ctx = MethodContext(sig, pending.declared)

    with child_scope(pending.scope, 'method') as body:
        for param, typ in zip(params.children, sig.param_types):
            pname = param.children[0]
            _require_undeclared(body, pname, param)
            var = Variable(str(pname), typ)
            body.define_variable(var.name, var)
            annotate(param, binding=var)

        analyze_statements(block.children, body, ctx)

    if pending.declared is None:
        sig.return_type = _infer_return_type(ctx.returns)
        log.debug("inferred %s/%d -> %s", sig.name, sig.arity, sig.return_type)

        for call, typ in ctx.provisional:
            if typ != sig.return_type:
                raise AnalysisError(
                    ErrorKind.TYPE_MISMATCH,
                    f"Recursive call was checked as returning {typ}, but {sig.name}/{sig.arity} returns "
                    f"{sig.return_type}; annotate its return type",
                    call,
                )

    sig.pending = None

def _call_return_type(sig: Signature, node: Tree) -> PlcType:
    pending = sig.pending
    if pending is None or pending.declared is not None:
        return sig.return_type

    if pending.ctx is None:
        # callee not checked yet: check it now so its return type is known
        _check_method_body(sig)
        return sig.return_type

    # recursive call: the returns seen so far stand in until inference ends
    if not pending.ctx.returns:
        return TYPE_ANY

    typ = pending.ctx.returns[0]
    pending.ctx.provisional.append((node, typ))
    return typ

def _infer_return_type(returns: List[PlcType]) -> PlcType:
    if not returns:
        return TYPE_NIL

    first = returns[0]
    if all(t == first for t in returns):
        return first

    return TYPE_ANY

def _check_main(node: Tree, scope: Scope, methods: List[Tree]) -> None:
    main = scope.functions.get(('main', 0))

    if main is None:
        raise AnalysisError(ErrorKind.INVALID_MAIN_SIGNATURE, "A main/0 method is required", node)

    if main.return_type != TYPE_INTEGER:
        where = next((m for m in methods if str(m.children[0]) == 'main' and not m.children[1].children), node)
        raise AnalysisError(
            ErrorKind.INVALID_MAIN_SIGNATURE,
            f"main/0 must return Integer, not {main.return_type}",
            where,
        )

# ---------------- Statements ----------------

def analyze_statements(statements: List[Tree], scope: Scope, ctx: Optional[MethodContext]) -> None:
    for stmt in statements:
        analyze_statement(stmt, scope, ctx)

def analyze_statement(node: Tree, scope: Scope, ctx: Optional[MethodContext]) -> None:
    handler = _STATEMENT_RULES.get(node.data)

    if handler is None:
        raise TypeError(f"Unknown statement node: {node.data}")

    handler(node, scope, ctx)

def _analyze_expr_stmt(node: Tree, scope: Scope, ctx: Optional[MethodContext]) -> None:
    analyze_expression(node.children[0], scope)

def _analyze_declaration(node: Tree, scope: Scope, ctx: Optional[MethodContext]) -> None:
    name, type_name, value = node.children
    _require_undeclared(scope, name, node)
    var = Variable(str(name), _binding_type(type_name, value, scope))
    scope.define_variable(var.name, var)
    annotate(node, binding=var)

def _analyze_assignment(node: Tree, scope: Scope, ctx: Optional[MethodContext]) -> None:
    target, value = node.children

    if tree_label(target) != 'access':
        raise AnalysisError(ErrorKind.INVALID_ASSIGNMENT, "Assignment target must be a variable or field", target)

    target_type = analyze_expression(target, scope)
    value_type = analyze_expression(value, scope)
    require_assignable(target_type, value_type, value)

def _analyze_if(node: Tree, scope: Scope, ctx: Optional[MethodContext]) -> None:
    condition, then, otherwise = node.children
    require_assignable(TYPE_BOOLEAN, analyze_expression(condition, scope), condition)

    with child_scope(scope, 'then') as inner:
        analyze_statements(then.children, inner, ctx)

    with child_scope(scope, 'else') as inner:
        analyze_statements(otherwise.children, inner, ctx)

def _analyze_for(node: Tree, scope: Scope, ctx: Optional[MethodContext]) -> None:
    name, iterable, body = node.children
    require_assignable(TYPE_INTEGER_ITERABLE, analyze_expression(iterable, scope), iterable)

    if not body.children:
        raise AnalysisError(ErrorKind.EMPTY_LOOP_BODY, "FOR loop body must contain at least one statement", node)

    with child_scope(scope, 'for') as inner:
        var = Variable(str(name), TYPE_INTEGER)
        inner.define_variable(var.name, var)
        annotate(node, binding=var)
        analyze_statements(body.children, inner, ctx)

def _analyze_while(node: Tree, scope: Scope, ctx: Optional[MethodContext]) -> None:
    condition, body = node.children
    require_assignable(TYPE_BOOLEAN, analyze_expression(condition, scope), condition)

    with child_scope(scope, 'while') as inner:
        analyze_statements(body.children, inner, ctx)

def _analyze_return(node: Tree, scope: Scope, ctx: Optional[MethodContext]) -> None:
    if ctx is None:
        raise AnalysisError(ErrorKind.RETURN_OUTSIDE_METHOD, "RETURN is only allowed inside a method", node)

    value = node.children[0]
    typ = analyze_expression(value, scope)

    if ctx.declared_return is not None:
        require_assignable(ctx.declared_return, typ, value)

    ctx.returns.append(typ)

_STATEMENT_RULES: Dict[str, Callable[[Tree, Scope, Optional[MethodContext]], None]] = {
    'expr_stmt': _analyze_expr_stmt,
    'declaration': _analyze_declaration,
    'assignment': _analyze_assignment,
    'if_stmt': _analyze_if,
    'for_stmt': _analyze_for,
    'while_stmt': _analyze_while,
    'return_stmt': _analyze_return,
}

# ---------------- Expressions ----------------

def analyze_expression(node: Tree, scope: Scope) -> PlcType:
    handler = _EXPRESSION_RULES.get(node.data)

    if handler is None:
        raise TypeError(f"Unknown expression node: {node.data}")

    typ = handler(node, scope)
    annotate(node, type=typ)
    return typ

def _analyze_literal(node: Tree, scope: Scope) -> PlcType:
    return LITERAL_TYPES[node.children[0]]

def _analyze_group(node: Tree, scope: Scope) -> PlcType:
    return analyze_expression(node.children[0], scope)

def _analyze_binary(node: Tree, scope: Scope) -> PlcType:
    op, left, right = node.children
    op = str(op)
    left_type = analyze_expression(left, scope)
    right_type = analyze_expression(right, scope)

    match op:
        case 'AND' | 'OR':
            require_assignable(TYPE_BOOLEAN, left_type, left)
            require_assignable(TYPE_BOOLEAN, right_type, right)
            return TYPE_BOOLEAN
        case '<' | '<=' | '>' | '>=':
            _require_one_of(NUMERIC_TYPES, left_type, left, op)
            require_assignable(left_type, right_type, right)
            return TYPE_BOOLEAN
        case '==' | '!=':
            return TYPE_BOOLEAN
        case '+':
            _require_one_of(ADDABLE_TYPES, left_type, left, op)
            require_assignable(left_type, right_type, right)
            return left_type
        case '-' | '*' | '/':
            _require_one_of(NUMERIC_TYPES, left_type, left, op)
            require_assignable(left_type, right_type, right)
            return left_type
        case _:
            raise AnalysisError(ErrorKind.TYPE_MISMATCH, f"Unknown operator {op}", node)

def _analyze_access(node: Tree, scope: Scope) -> PlcType:
    receiver, name = node.children

    if receiver is None:
        var = scope.lookup_variable(str(name))
        if var is None:
            raise AnalysisError(ErrorKind.UNDEFINED_VARIABLE, f"Variable '{name}' is not defined", node)
    else:
        var = _member_variable(analyze_expression(receiver, scope), name, node)

    annotate(node, binding=var)
    return var.type

def _analyze_function(node: Tree, scope: Scope) -> PlcType:
    receiver, name, args = node.children
    arity = len(args.children)

    if receiver is None:
        sig = scope.lookup_function(str(name), arity)
        if sig is None:
            raise AnalysisError(ErrorKind.UNDEFINED_FUNCTION, f"Function {name}/{arity} is not defined", node)
    else:
        sig = _member_signature(analyze_expression(receiver, scope), name, arity, node)

    for arg, param_type in zip(args.children, sig.param_types):
        require_assignable(param_type, analyze_expression(arg, scope), arg)

    annotate(node, binding=sig)
    return _call_return_type(sig, node)

_EXPRESSION_RULES: Dict[str, Callable[[Tree, Scope], PlcType]] = {
    'literal': _analyze_literal,
    'group': _analyze_group,
    'binary': _analyze_binary,
    'access': _analyze_access,
    'function': _analyze_function,
}

# ---------------- Members ----------------

def _member_variable(receiver_type: PlcType, name: Token, node: Tree) -> Variable:
    if receiver_type.tag == Rep.ANY:
        # checked when the receiver's value is known
        return Variable(str(name), TYPE_ANY)

    if receiver_type.tag == Rep.OBJECT and receiver_type.members is not None:
        var = receiver_type.members.variables.get(str(name))
        if var is not None:
            return var

    raise AnalysisError(ErrorKind.UNDEFINED_FIELD, f"Type {receiver_type} has no field '{name}'", node)

def _member_signature(receiver_type: PlcType, name: Token, arity: int, node: Tree) -> Signature:
    if receiver_type.tag == Rep.ANY:
        return Signature(str(name), (TYPE_ANY,) * arity, TYPE_ANY)

    if receiver_type.tag == Rep.OBJECT and receiver_type.members is not None:
        sig = receiver_type.members.functions.get((str(name), arity))
        if sig is not None:
            return sig

    raise AnalysisError(ErrorKind.UNDEFINED_FUNCTION, f"Type {receiver_type} has no method {name}/{arity}", node)

# ---------------- Helpers ----------------

def _resolve_type(type_name: Token, scope: Scope) -> PlcType:
    typ = scope.lookup_type(str(type_name))

    if typ is None:
        raise AnalysisError(ErrorKind.UNDEFINED_TYPE, f"Type '{type_name}' is not defined", type_name)

    return typ

def _binding_type(type_name: Optional[Token], value: Optional[Tree], scope: Scope) -> PlcType:
    """Type of a new variable: its annotation, else its initializer's, else Any."""
    value_type = analyze_expression(value, scope) if value is not None else None

    if type_name is None:
        return value_type if value_type is not None else TYPE_ANY

    declared = _resolve_type(type_name, scope)

    if value_type is not None:
        require_assignable(declared, value_type, value)

    return declared

def _require_undeclared(scope: Scope, name: Token, node: Tree) -> None:
    if scope.declares(str(name)):
        raise AnalysisError(ErrorKind.REDEFINITION, f"'{name}' is already defined in this scope", node)
