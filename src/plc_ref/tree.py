"""AST node shapes and helpers built on lark's Tree/Token.

Every node is a `lark.Tree`; `tree.data` is the node label and optional
children are `None` placeholders (lark's `maybe_placeholders` convention).
Names are IDENTIFIER tokens so they keep their source offset.

    source       field... method...
    field        name, type-name|None, initializer|None
    method       name, params, return-type-name|None, block
    params       param...            param: name, type-name|None
    block        statement...
    expr_stmt    expr
    declaration  name, type-name|None, initializer|None
    assignment   target, value
    if_stmt      condition, block, block
    for_stmt     name, iterable, block
    while_stmt   condition, block
    return_stmt  value
    literal      tag, native value
    group        expr
    binary       operator, left, right
    access       receiver|None, name
    function     receiver|None, name, args

Annotations written by the analyzer live on `tree.meta` and are write-once.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union
from typing_extensions import TypeAlias, TypeGuard

from lark import Token, Tree

Node: TypeAlias = Union[Tree, Token]
NameLike: TypeAlias = Union[str, Token]
ParamLike: TypeAlias = Union[NameLike, Tuple[NameLike, Optional[NameLike]]]

STATEMENT_LABELS = frozenset({
    'expr_stmt',
    'declaration',
    'assignment',
    'if_stmt',
    'for_stmt',
    'while_stmt',
    'return_stmt',
})

EXPRESSION_LABELS = frozenset({
    'literal',
    'group',
    'binary',
    'access',
    'function',
})

LITERAL_TAGS = frozenset({'NIL', 'BOOLEAN', 'INTEGER', 'DECIMAL', 'CHARACTER', 'STRING'})


def is_tree(node: Any) -> TypeGuard[Tree]:
    return isinstance(node, Tree)

def is_token(node: Any) -> TypeGuard[Token]:
    return isinstance(node, Token)

def tree_label(node: Any) -> Optional[str]:
    return node.data if is_tree(node) else None

def tree_children(node: Any) -> List[Any]:
    if not is_tree(node):
        return []

    return list(node.children)

def child_by_label(node: Node, label: str) -> Optional[Tree]:
    for ch in tree_children(node):
        if tree_label(ch) == label:
            return ch

    return None

def children_by_label(node: Node, label: str) -> List[Tree]:
    return [ch for ch in tree_children(node) if tree_label(ch) == label]

def is_statement(node: Any) -> bool:
    return tree_label(node) in STATEMENT_LABELS

def is_expression(node: Any) -> bool:
    return tree_label(node) in EXPRESSION_LABELS

# ---------------- Positions ----------------

def node_position(node: Any) -> Optional[int]:
    """Source offset of a node or token, if known."""
    if node is None:
        return None

    if is_token(node):
        return getattr(node, 'start_pos', None)

    if is_tree(node):
        return getattr(node.meta, 'start_pos', None)

    return None

def set_position(tree: Tree, origin: Any) -> Tree:
    if is_token(origin):
        start = getattr(origin, 'start_pos', None)
        line = getattr(origin, 'line', None)
        column = getattr(origin, 'column', None)
    elif is_tree(origin):
        start = getattr(origin.meta, 'start_pos', None)
        line = getattr(origin.meta, 'line', None)
        column = getattr(origin.meta, 'column', None)
    else:
        return tree

    if start is None:
        return tree

    meta = tree.meta
    meta.start_pos = start
    meta.line = line
    meta.column = column
    meta.empty = False
    return tree

# ---------------- Annotations ----------------

def annotate(node: Tree, *, type: Any=None, binding: Any=None) -> None:
    meta = node.meta

    if type is not None:
        if getattr(meta, 'resolved_type', None) is not None:
            raise ValueError(f"{node.data} node already has a resolved type")
        meta.resolved_type = type

    if binding is not None:
        if getattr(meta, 'resolved_binding', None) is not None:
            raise ValueError(f"{node.data} node already has a resolved binding")
        meta.resolved_binding = binding

def resolved_type(node: Tree) -> Any:
    return getattr(node.meta, 'resolved_type', None)

def resolved_binding(node: Tree) -> Any:
    return getattr(node.meta, 'resolved_binding', None)

# ---------------- Builders ----------------

def _name(value: Optional[NameLike]) -> Optional[Token]:
    if value is None or is_token(value):
        return value

    return Token('IDENTIFIER', value)

def _op(value: NameLike) -> Token:
    if is_token(value):
        return value

    kind = 'KEYWORD' if value in ('AND', 'OR') else 'OPERATOR'
    return Token(kind, value)

def _tree(label: str, children: List[Any], at: Any=None) -> Tree:
    tree = Tree(label, children)

    if at is not None:
        set_position(tree, at)

    return tree

def source_node(fields: Iterable[Tree]=(), methods: Iterable[Tree]=(), at: Any=None) -> Tree:
    return _tree('source', [*fields, *methods], at)

def field_node(name: NameLike, value: Optional[Tree]=None, type_name: Optional[NameLike]=None, at: Any=None) -> Tree:
    tok = _name(name)
    return _tree('field', [tok, _name(type_name), value], at if at is not None else tok)

def params_node(params: Iterable[ParamLike]=()) -> Tree:
    items = []

    for param in params:
        if isinstance(param, tuple):
            name, type_name = param
        else:
            name, type_name = param, None

        tok = _name(name)
        items.append(_tree('param', [tok, _name(type_name)], tok))

    return Tree('params', items)

def block_node(statements: Iterable[Tree]=()) -> Tree:
    return Tree('block', list(statements))

def method_node(name: NameLike, params: Iterable[ParamLike]=(), statements: Iterable[Tree]=(), return_type: Optional[NameLike]=None, at: Any=None) -> Tree:
    tok = _name(name)
    children = [tok, params_node(params), _name(return_type), block_node(statements)]
    return _tree('method', children, at if at is not None else tok)

def expr_stmt(expr: Tree, at: Any=None) -> Tree:
    return _tree('expr_stmt', [expr], at if at is not None else expr)

def declaration(name: NameLike, value: Optional[Tree]=None, type_name: Optional[NameLike]=None, at: Any=None) -> Tree:
    tok = _name(name)
    return _tree('declaration', [tok, _name(type_name), value], at if at is not None else tok)

def assignment(target: Tree, value: Tree, at: Any=None) -> Tree:
    return _tree('assignment', [target, value], at if at is not None else target)

def if_stmt(condition: Tree, then: Iterable[Tree]=(), otherwise: Iterable[Tree]=(), at: Any=None) -> Tree:
    return _tree('if_stmt', [condition, block_node(then), block_node(otherwise)], at)

def for_stmt(name: NameLike, iterable: Tree, body: Iterable[Tree]=(), at: Any=None) -> Tree:
    tok = _name(name)
    return _tree('for_stmt', [tok, iterable, block_node(body)], at if at is not None else tok)

def while_stmt(condition: Tree, body: Iterable[Tree]=(), at: Any=None) -> Tree:
    return _tree('while_stmt', [condition, block_node(body)], at)

def return_stmt(value: Tree, at: Any=None) -> Tree:
    return _tree('return_stmt', [value], at if at is not None else value)

def literal(value: Any, at: Any=None) -> Tree:
    """Literal for a native value; one-char strings are STRING here, use char_literal."""
    if value is None:
        tag = 'NIL'
    elif isinstance(value, bool):
        tag = 'BOOLEAN'
    elif isinstance(value, int):
        tag = 'INTEGER'
    elif isinstance(value, Decimal):
        tag = 'DECIMAL'
    elif isinstance(value, str):
        tag = 'STRING'
    else:
        raise TypeError(f"no literal representation for {type(value).__name__}")

    return _tree('literal', [tag, value], at)

def char_literal(value: str, at: Any=None) -> Tree:
    if len(value) != 1:
        raise ValueError("character literal needs exactly one character")

    return _tree('literal', ['CHARACTER', value], at)

def group(expr: Tree, at: Any=None) -> Tree:
    return _tree('group', [expr], at if at is not None else expr)

def binary(operator: NameLike, left: Tree, right: Tree) -> Tree:
    return _tree('binary', [_op(operator), left, right], left)

def access(name: NameLike, receiver: Optional[Tree]=None, at: Any=None) -> Tree:
    tok = _name(name)
    origin = at if at is not None else (receiver if receiver is not None else tok)
    return _tree('access', [receiver, tok], origin)

def call(name: NameLike, args: Sequence[Tree]=(), receiver: Optional[Tree]=None, at: Any=None) -> Tree:
    tok = _name(name)
    origin = at if at is not None else (receiver if receiver is not None else tok)
    return _tree('function', [receiver, tok, Tree('args', list(args))], origin)

# ---------------- Inspection ----------------

def source_fields(source: Tree) -> List[Tree]:
    return children_by_label(source, 'field')

def source_methods(source: Tree) -> List[Tree]:
    return children_by_label(source, 'method')

def find_tree_by_label(node: Any, labels: Iterable[str]) -> Optional[Tree]:
    lookup = set(labels)

    if is_tree(node) and tree_label(node) in lookup:
        return node

    for child in tree_children(node):
        found = find_tree_by_label(child, lookup)
        if found is not None:
            return found

    return None

def count_labels(node: Any, label: str) -> int:
    if not is_tree(node):
        return 0

    own = 1 if node.data == label else 0
    return own + sum(count_labels(child, label) for child in node.children)
