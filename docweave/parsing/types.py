"""Interpret annotation text into ``TypeExpr`` trees without evaluating it."""

from __future__ import annotations

import ast
from functools import lru_cache
from typing import Callable, Iterable, List, Optional

from ..models import (
    NONE,
    BackRef,
    CallableType,
    Concatenate,
    ForwardRef,
    Generic,
    Literal,
    Name,
    Opaque,
    OptionalType,
    TypeExpr,
    UnionType,
)

ELLIPSIS = Name("...")

_UNION_NAMES = {"Union"}
_OPTIONAL_NAMES = {"Optional"}
_CALLABLE_NAMES = {"Callable"}
_CONCATENATE_NAMES = {"Concatenate"}
_LITERAL_NAMES = {"Literal"}
_ANNOTATED_NAMES = {"Annotated"}


@lru_cache(maxsize=4096)
def parse_annotation(text: str) -> TypeExpr:
    """Return the ``TypeExpr`` for ``text``.

    Constructs outside the supported grammar come back as ``Opaque`` with the
    original text; this function never raises.
    """
    source = text.strip()
    if not source:
        return Opaque(text)
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError:
        return Opaque(source)
    return from_node(tree.body, source)


def from_node(node: ast.expr, source: Optional[str] = None) -> TypeExpr:
    """Convert an already-parsed annotation expression."""
    try:
        return _convert(node)
    except _Unsupported:
        return Opaque(source if source is not None else ast.unparse(node))


class _Unsupported(Exception):
    pass


def _convert(node: ast.expr) -> TypeExpr:
    if isinstance(node, ast.Name):
        return Name(node.id)
    if isinstance(node, ast.Attribute):
        return Name(_dotted(node))
    if isinstance(node, ast.Constant):
        if node.value is None:
            return NONE
        if node.value is Ellipsis:
            return ELLIPSIS
        if isinstance(node.value, str):
            return _forward(node.value)
        raise _Unsupported
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return make_union([_convert(node.left), _convert(node.right)])
    if isinstance(node, ast.Subscript):
        return _subscript(node)
    raise _Unsupported


def _forward(text: str) -> TypeExpr:
    inner = parse_annotation(text)
    if isinstance(inner, Opaque):
        raise _Unsupported
    if isinstance(inner, Name):
        return ForwardRef(inner.name)
    return inner


def _dotted(node: ast.expr) -> str:
    parts: List[str] = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if not isinstance(node, ast.Name):
        raise _Unsupported
    parts.append(node.id)
    return ".".join(reversed(parts))


def _elements(node: ast.expr) -> List[ast.expr]:
    if isinstance(node, ast.Tuple):
        return list(node.elts)
    return [node]


def _subscript(node: ast.Subscript) -> TypeExpr:
    base = _convert(node.value)
    if not isinstance(base, Name):
        raise _Unsupported
    short = base.name.rsplit(".", 1)[-1]
    elements = _elements(node.slice)

    if short in _LITERAL_NAMES:
        return Literal(tuple(ast.unparse(element) for element in elements))
    if short in _UNION_NAMES:
        return make_union(_convert(element) for element in elements)
    if short in _OPTIONAL_NAMES:
        if len(elements) != 1:
            raise _Unsupported
        return make_union([_convert(elements[0]), NONE])
    if short in _ANNOTATED_NAMES:
        return _convert(elements[0])
    if short in _CALLABLE_NAMES:
        return _callable(elements)
    if short in _CONCATENATE_NAMES:
        if len(elements) < 2:
            raise _Unsupported
        return Concatenate(
            prefix=tuple(_convert(element) for element in elements[:-1]),
            spec=_convert(elements[-1]),
        )

    args = []
    for element in elements:
        if isinstance(element, ast.List):
            # ParamSpec-generic classes accept a bracketed argument list.
            args.append(Generic(Name("list"), tuple(_convert(item) for item in element.elts)))
            continue
        args.append(_convert(element))
    return Generic(base, tuple(args))


def _callable(elements: List[ast.expr]) -> TypeExpr:
    if not elements:
        return Name("Callable")
    if len(elements) != 2:
        raise _Unsupported
    params_node, returns_node = elements
    returns = _convert(returns_node)
    if isinstance(params_node, ast.List):
        return CallableType(tuple(_convert(item) for item in params_node.elts), returns)
    if isinstance(params_node, ast.Constant) and params_node.value is Ellipsis:
        return CallableType(None, returns)
    params = _convert(params_node)
    if isinstance(params, (Name, Concatenate, ForwardRef)):
        return CallableType(params, returns)
    raise _Unsupported


def make_union(members: Iterable[TypeExpr]) -> TypeExpr:
    """Flatten, deduplicate, and normalize a union.

    A two-member union with ``None`` becomes ``OptionalType``.
    """
    flat: List[TypeExpr] = []
    for member in members:
        if isinstance(member, UnionType):
            flat.extend(member.members)
        elif isinstance(member, OptionalType):
            flat.extend(_flatten_optional(member))
        else:
            flat.append(member)
    unique = list(dict.fromkeys(flat))
    if len(unique) == 1:
        return unique[0]
    if len(unique) == 2 and NONE in unique:
        other = unique[0] if unique[1] == NONE else unique[1]
        return OptionalType(other)
    return UnionType(tuple(unique))


def _flatten_optional(member: OptionalType) -> List[TypeExpr]:
    inner = member.inner
    if isinstance(inner, UnionType):
        return [*inner.members, NONE]
    return [inner, NONE]


BACKREF_MARKER = "↺"


def format_type(expr: Optional[TypeExpr], render_name: Optional[Callable[[str], str]] = None) -> str:
    """Render ``expr`` back to annotation-style text.

    ``render_name`` receives every ``Name``/``ForwardRef`` so callers can turn
    references into links; punctuation is emitted unchanged.
    """
    if expr is None:
        return ""

    def fmt(node: Optional[TypeExpr]) -> str:
        return format_type(node, render_name)

    if isinstance(expr, (Name, ForwardRef)):
        return render_name(expr.name) if render_name is not None else expr.name
    if isinstance(expr, Opaque):
        return expr.raw
    if isinstance(expr, BackRef):
        return f"{BACKREF_MARKER} {expr.name}"
    if isinstance(expr, Generic):
        args = ", ".join(fmt(arg) for arg in expr.args)
        return f"{fmt(expr.base)}[{args}]"
    if isinstance(expr, UnionType):
        return " | ".join(fmt(member) for member in expr.members)
    if isinstance(expr, OptionalType):
        return f"Optional[{fmt(expr.inner)}]"
    if isinstance(expr, Literal):
        return f"Literal[{', '.join(expr.values)}]"
    if isinstance(expr, Concatenate):
        parts = [fmt(item) for item in expr.prefix] + [fmt(expr.spec)]
        return f"Concatenate[{', '.join(parts)}]"
    if isinstance(expr, CallableType):
        if expr.params is None:
            params = "..."
        elif isinstance(expr.params, tuple):
            params = "[" + ", ".join(fmt(item) for item in expr.params) + "]"
        else:
            params = fmt(expr.params)
        return f"Callable[{params}, {fmt(expr.returns)}]"
    raise TypeError(f"Unknown type expression: {expr!r}")


__all__ = ["BACKREF_MARKER", "ELLIPSIS", "format_type", "from_node", "make_union", "parse_annotation"]
