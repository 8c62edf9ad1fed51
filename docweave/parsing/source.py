"""Static extraction of declared symbols from Python source.

Nothing here imports or executes the analyzed code. The module is first
tokenized; text that cannot be tokenized is a parse error for the whole
module. Tokenizable text that the grammar rejects is split into top-level
statements and each statement is parsed on its own, so one broken
declaration only degrades that declaration.
"""

from __future__ import annotations

import ast
import io
import re
import textwrap
import tokenize
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..diagnostics import DiagnosticKind, Diagnostics
from ..logging import get_logger
from ..models import (
    ClassSymbol,
    Completeness,
    Decorator,
    Docstring,
    EnumSymbol,
    ForwardRef,
    FunctionSymbol,
    Generic,
    ModuleNode,
    Name,
    ParamKind,
    Parameter,
    ProtocolSymbol,
    Signature,
    Symbol,
    TypeAliasSymbol,
    TypedDictField,
    TypedDictSymbol,
    TypeExpr,
    TypeParameter,
    VariableSymbol,
    Variance,
    contains_opaque,
    iter_type,
)
from ..naming import join, resolve_relative
from .docstrings import parse_docstring
from .types import from_node

_ENUM_BASES = {"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"}
_TYPE_PARAM_FACTORIES = {"TypeVar", "ParamSpec", "TypeVarTuple"}
_ALIAS_FORMS = {
    "Union",
    "Optional",
    "Callable",
    "Literal",
    "Annotated",
    "Dict",
    "List",
    "Set",
    "FrozenSet",
    "Tuple",
    "Type",
    "Mapping",
    "MutableMapping",
    "Sequence",
    "MutableSequence",
    "Iterable",
    "Iterator",
    "Generator",
    "AsyncIterator",
    "Awaitable",
    "Coroutine",
    "dict",
    "list",
    "set",
    "frozenset",
    "tuple",
    "type",
}
_MAX_VALUE_TEXT = 120

_DECL_HEAD = re.compile(r"^\s*(async\s+def|def|class)\s+([A-Za-z_]\w*)", re.MULTILINE)
_TYPE_HEAD = re.compile(r"^type\s+([A-Za-z_]\w*)")
_ASSIGN_HEAD = re.compile(r"^([A-Za-z_]\w*)\s*(?::[^=]*)?=")
_DOC_AFTER_HEAD = re.compile(r":\s*\n\s*[rRuU]?(\"\"\"|''')(.*?)\1", re.DOTALL)


class TokenizeFailure(Exception):
    """Raised when module text cannot be tokenized at all."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        super().__init__(message)
        self.line = line


@dataclass
class _Chunk:
    """One statement, its syntax tree when it parsed, and any class members that did not."""

    text: str
    lineno: int
    node: Optional[ast.stmt] = None
    broken: Tuple["_Chunk", ...] = ()


def tokenize_source(text: str) -> List[tokenize.TokenInfo]:
    try:
        return list(tokenize.generate_tokens(io.StringIO(text).readline))
    except tokenize.TokenError as exc:
        line = exc.args[1][0] if len(exc.args) > 1 and isinstance(exc.args[1], tuple) else None
        raise TokenizeFailure(str(exc.args[0]), line) from exc
    except SyntaxError as exc:
        raise TokenizeFailure(exc.msg or str(exc), exc.lineno) from exc


def split_statements(text: str, tokens: Sequence[tokenize.TokenInfo], *, level: int = 0) -> List[_Chunk]:
    """Cut ``text`` into the statements at indentation ``level`` using the token stream.

    Decorator lines stay attached to the declaration that follows them.
    """
    lines = text.splitlines(keepends=True)
    starts: List[int] = []
    depth = 0
    at_line_start = True
    pending_decorator = False
    for token in tokens:
        if token.type == tokenize.INDENT:
            depth += 1
            continue
        if token.type == tokenize.DEDENT:
            depth -= 1
            continue
        if token.type in (tokenize.NL, tokenize.COMMENT, tokenize.ENCODING, tokenize.ENDMARKER):
            continue
        if token.type == tokenize.NEWLINE:
            at_line_start = True
            continue
        if at_line_start and depth == level:
            if not pending_decorator:
                starts.append(token.start[0])
            pending_decorator = token.type == tokenize.OP and token.string == "@"
        at_line_start = False

    chunks: List[_Chunk] = []
    for index, start in enumerate(starts):
        end = starts[index + 1] - 1 if index + 1 < len(starts) else len(lines)
        chunk_text = "".join(lines[start - 1 : end])
        chunks.append(_Chunk(text=chunk_text, lineno=start))
    return chunks


def _class_head_end(tokens: Sequence[tokenize.TokenInfo]) -> Optional[Tuple[int, str]]:
    """Return the last line of a class header and the indentation of its body."""
    seen_class = False
    head_line: Optional[int] = None
    for token in tokens:
        if head_line is not None:
            if token.type in (tokenize.NL, tokenize.COMMENT):
                continue
            return (head_line, token.string) if token.type == tokenize.INDENT else None
        if token.type == tokenize.INDENT:
            return None
        if token.type == tokenize.NAME and token.string == "class":
            seen_class = True
        elif seen_class and token.type == tokenize.NEWLINE:
            head_line = token.start[0]
    return None


def _recover_class(chunk: _Chunk) -> Optional[_Chunk]:
    """Parse a rejected class statement one member at a time.

    The header is parsed with a placeholder body, then each member is parsed
    on its own. Members that still fail are returned as ``broken`` chunks.
    Returns ``None`` when the chunk is not a class or its header is broken.
    """
    try:
        tokens = tokenize_source(chunk.text)
    except TokenizeFailure:
        return None
    head_end = _class_head_end(tokens)
    if head_end is None:
        return None
    head_line, indent = head_end
    lines = chunk.text.splitlines(keepends=True)
    try:
        head = ast.parse("".join(lines[:head_line]) + f"{indent}pass\n")
    except SyntaxError:
        return None
    node = head.body[0] if len(head.body) == 1 else None
    if not isinstance(node, ast.ClassDef):
        return None
    ast.increment_lineno(head, chunk.lineno - 1)

    body: List[ast.stmt] = []
    broken: List[_Chunk] = []
    for member in split_statements(chunk.text, tokens, level=1):
        lineno = chunk.lineno + member.lineno - 1
        try:
            wrapper = ast.parse("class _:\n" + member.text)
        except SyntaxError:
            broken.append(_Chunk(text=textwrap.dedent(member.text), lineno=lineno))
            continue
        # The member sits on line 2 of the wrapper.
        ast.increment_lineno(wrapper, lineno - 2)
        body.extend(wrapper.body[0].body)  # type: ignore[attr-defined]
    if body:
        node.body = body
    return _Chunk(text=chunk.text, lineno=chunk.lineno, node=node, broken=tuple(broken))


class SourceParser:
    """Turns one module's text into a ``ModuleNode`` full of symbols."""

    def __init__(self, diagnostics: Diagnostics | None = None, *, root: Path | None = None) -> None:
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.root = root
        self.logger = get_logger("parser")

    def parse(self, module: ModuleNode) -> Optional[ModuleNode]:
        """Return ``module`` populated with its symbols, or ``None`` on a parse error."""
        if module.path is None:
            return module
        label = self._label(module.path)
        try:
            text = module.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            self.diagnostics.add(DiagnosticKind.PARSE_ERROR, f"Cannot read {module.qualname}: {exc}", path=label)
            return None
        return self.parse_text(module, text, label=label)

    def parse_text(self, module: ModuleNode, text: str, *, label: Optional[str] = None) -> Optional[ModuleNode]:
        label = label or (self._label(module.path) if module.path else module.qualname)
        try:
            tokens = tokenize_source(text)
        except TokenizeFailure as exc:
            self.diagnostics.add(
                DiagnosticKind.PARSE_ERROR,
                f"Module {module.qualname} could not be tokenized: {exc}",
                path=label,
                line=exc.line,
            )
            return None

        try:
            tree = ast.parse(text)
            chunks = [_Chunk(text="", lineno=stmt.lineno, node=stmt) for stmt in tree.body]
        except SyntaxError as exc:
            self.logger.debug("%s failed to parse as a whole (%s); parsing per statement", label, exc.msg)
            chunks = self._parse_chunks(text, tokens)

        builder = _ModuleBuilder(module, text, self.diagnostics, label)
        return builder.build(chunks)

    @staticmethod
    def _parse_chunks(text: str, tokens: Sequence[tokenize.TokenInfo]) -> List[_Chunk]:
        chunks: List[_Chunk] = []
        for chunk in split_statements(text, tokens):
            try:
                parsed = ast.parse(chunk.text)
            except SyntaxError:
                chunks.append(_recover_class(chunk) or chunk)
                continue
            ast.increment_lineno(parsed, chunk.lineno - 1)
            chunks.extend(_Chunk(text=chunk.text, lineno=stmt.lineno, node=stmt) for stmt in parsed.body)
        return chunks

    def _label(self, path: Path) -> str:
        if self.root is not None:
            try:
                return path.relative_to(self.root).as_posix()
            except ValueError:
                pass
        return path.as_posix()


@dataclass
class _Scope:
    """Collects symbols for a module or class body, grouping overloads."""

    prefix: str
    symbols: List[Symbol] = field(default_factory=list)
    positions: Dict[str, int] = field(default_factory=dict)
    last_variable: Optional[int] = None

    def add(self, symbol: Symbol) -> None:
        if symbol.name in self.positions:
            self.symbols[self.positions[symbol.name]] = symbol
        else:
            self.positions[symbol.name] = len(self.symbols)
            self.symbols.append(symbol)
        self.last_variable = self.positions[symbol.name] if isinstance(symbol, VariableSymbol) else None

    def get(self, name: str) -> Optional[Symbol]:
        index = self.positions.get(name)
        return self.symbols[index] if index is not None else None


class _ModuleBuilder:
    def __init__(self, module: ModuleNode, text: str, diagnostics: Diagnostics, label: str) -> None:
        self.module = module
        self.text = text
        self.lines = text.splitlines()
        self.diagnostics = diagnostics
        self.label = label
        self.provenance = module.provenance
        self.imports: List[Tuple[str, str]] = []
        self.star_imports: List[str] = []
        self.exports: Optional[List[str]] = None
        self.type_params: Dict[str, TypeParameter] = {}

    # -- entry point ---------------------------------------------------------

    def build(self, chunks: Sequence[_Chunk]) -> ModuleNode:
        for chunk in chunks:
            if chunk.node is not None:
                self._collect_type_param(chunk.node)

        docstring: Optional[Docstring] = None
        scope = _Scope(prefix=self.module.qualname)
        for index, chunk in enumerate(chunks):
            node = chunk.node
            if node is None:
                self._degraded_chunk(chunk, scope)
                continue
            if index == 0 and _is_docstring_expr(node):
                docstring = parse_docstring(node.value.value)  # type: ignore[attr-defined]
                continue
            if chunk.broken and isinstance(node, ast.ClassDef):
                scope.add(self._class(node, scope.prefix, broken=chunk.broken))
                continue
            self._statement(node, scope)

        return replace(
            self.module,
            docstring=docstring,
            symbols=tuple(scope.symbols),
            imports=tuple(self.imports),
            star_imports=tuple(dict.fromkeys(self.star_imports)),
            exports=tuple(self.exports) if self.exports is not None else None,
            type_params=tuple(self.type_params.values()),
        )

    # -- statements ----------------------------------------------------------

    def _statement(self, node: ast.stmt, scope: _Scope) -> None:
        if isinstance(node, (ast.Import, ast.ImportFrom)):
            self._import(node)
            scope.last_variable = None
        elif isinstance(node, (ast.If, ast.Try)):
            for child in _nested_statements(node):
                if isinstance(child, (ast.Import, ast.ImportFrom)):
                    self._import(child)
            scope.last_variable = None
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            self._function(node, scope)
        elif isinstance(node, ast.ClassDef):
            scope.add(self._class(node, scope.prefix))
        elif isinstance(node, (ast.Assign, ast.AnnAssign, ast.AugAssign)):
            self._assignment(node, scope)
        elif type(node).__name__ == "TypeAlias":
            scope.add(self._pep695_alias(node, scope.prefix))
        elif _is_docstring_expr(node) and scope.last_variable is not None:
            variable = scope.symbols[scope.last_variable]
            scope.symbols[scope.last_variable] = replace(
                variable, docstring=parse_docstring(node.value.value)  # type: ignore[attr-defined]
            )
            scope.last_variable = None
        else:
            scope.last_variable = None

    def _import(self, node: ast.Import | ast.ImportFrom) -> None:
        if isinstance(node, ast.Import):
            for alias in node.names:
                if alias.asname:
                    self.imports.append((alias.asname, alias.name))
                else:
                    head = alias.name.split(".", 1)[0]
                    self.imports.append((head, head))
            return
        base = resolve_relative(self.module.qualname, self.module.is_package, node.level, node.module)
        if base is None:
            return
        for alias in node.names:
            if alias.name == "*":
                self.star_imports.append(base)
                continue
            self.imports.append((alias.asname or alias.name, join(base, alias.name)))

    def _assignment(self, node: ast.Assign | ast.AnnAssign | ast.AugAssign, scope: _Scope) -> None:
        if isinstance(node, ast.AugAssign):
            if _target_name(node.target) == "__all__" and scope.prefix == self.module.qualname:
                self.exports = (self.exports or []) + _string_list(node.value)
            scope.last_variable = None
            return

        if isinstance(node, ast.Assign):
            if len(node.targets) != 1:
                scope.last_variable = None
                return
            name = _target_name(node.targets[0])
            annotation_node = None
        else:
            name = _target_name(node.target)
            annotation_node = node.annotation
        if name is None:
            scope.last_variable = None
            return
        value = node.value

        if name == "__all__" and scope.prefix == self.module.qualname:
            self.exports = _string_list(value) if value is not None else []
            scope.last_variable = None
            return
        if name.startswith("__") and name.endswith("__"):
            scope.last_variable = None
            return

        qualname = join(scope.prefix, name)
        if annotation_node is not None and _short_name(annotation_node) == "TypeAlias" and value is not None:
            scope.add(self._alias(name, qualname, value, node))
            return
        if annotation_node is None and value is not None and _looks_like_alias(name, value):
            scope.add(self._alias(name, qualname, value, node))
            return

        annotation = from_node(annotation_node) if annotation_node is not None else None
        if annotation is None and name in self.type_params and scope.prefix == self.module.qualname:
            annotation = Name(self.type_params[name].kind)
        symbol = VariableSymbol(
            name=name,
            qualname=qualname,
            module=self.module.qualname,
            provenance=self.provenance,
            annotation=annotation,
            value=_value_text(value),
            lineno=node.lineno,
        )
        scope.add(self._check_degraded(symbol, node))

    def _alias(self, name: str, qualname: str, value: ast.expr, node: ast.stmt) -> TypeAliasSymbol:
        symbol = TypeAliasSymbol(
            name=name,
            qualname=qualname,
            module=self.module.qualname,
            provenance=self.provenance,
            value=from_node(value),
            lineno=node.lineno,
        )
        return self._check_degraded(symbol, node)

    def _pep695_alias(self, node: ast.stmt, prefix: str) -> TypeAliasSymbol:
        name = node.name.id  # type: ignore[attr-defined]
        symbol = TypeAliasSymbol(
            name=name,
            qualname=join(prefix, name),
            module=self.module.qualname,
            provenance=self.provenance,
            value=from_node(node.value),  # type: ignore[attr-defined]
            type_params=self._declared_type_params(node),
            lineno=node.lineno,
        )
        return self._check_degraded(symbol, node)

    # -- functions -----------------------------------------------------------

    def _function(self, node: ast.FunctionDef | ast.AsyncFunctionDef, scope: _Scope) -> None:
        decorators = tuple(_decorator(item) for item in node.decorator_list)
        if any(decorator.name.endswith((".setter", ".deleter")) for decorator in decorators):
            # Accessors of an existing property fold into the getter entry.
            scope.last_variable = None
            return
        signature = self._signature(node)
        docstring = _docstring(node)
        is_overload = any(decorator.short_name == "overload" for decorator in decorators)
        qualname = join(scope.prefix, node.name)
        existing = scope.get(node.name)

        if isinstance(existing, FunctionSymbol) and existing.overloads and existing.signature is None:
            if is_overload:
                symbol = replace(
                    existing,
                    overloads=existing.overloads + (signature,),
                    docstring=existing.docstring or docstring,
                )
            else:
                symbol = replace(
                    existing,
                    signature=signature,
                    decorators=decorators,
                    docstring=docstring or existing.docstring,
                    lineno=node.lineno,
                )
            scope.add(self._check_degraded(symbol, node))
            return

        symbol = FunctionSymbol(
            name=node.name,
            qualname=qualname,
            module=self.module.qualname,
            docstring=docstring,
            decorators=decorators,
            provenance=self.provenance,
            lineno=node.lineno,
            signature=None if is_overload else signature,
            overloads=(signature,) if is_overload else (),
        )
        scope.add(self._check_degraded(symbol, node))

    def _signature(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> Signature:
        arguments = node.args
        params: List[Parameter] = []

        positional = list(arguments.posonlyargs) + list(arguments.args)
        defaults: List[Optional[ast.expr]] = [None] * (len(positional) - len(arguments.defaults))
        defaults.extend(arguments.defaults)
        for index, (arg, default) in enumerate(zip(positional, defaults)):
            kind = ParamKind.POSITIONAL_ONLY if index < len(arguments.posonlyargs) else ParamKind.POSITIONAL
            params.append(_parameter(arg, kind, default))
        if arguments.vararg is not None:
            params.append(_parameter(arguments.vararg, ParamKind.VAR_POSITIONAL, None))
        for arg, default in zip(arguments.kwonlyargs, arguments.kw_defaults):
            params.append(_parameter(arg, ParamKind.KEYWORD_ONLY, default))
        if arguments.kwarg is not None:
            params.append(_parameter(arguments.kwarg, ParamKind.VAR_KEYWORD, None))

        returns = from_node(node.returns) if node.returns is not None else None
        signature = Signature(
            params=tuple(params),
            returns=returns,
            is_async=isinstance(node, ast.AsyncFunctionDef),
        )
        declared = self._declared_type_params(node)
        if declared:
            return replace(signature, type_params=declared)
        return replace(signature, type_params=self._used_type_params(signature.annotations()))

    # -- classes -------------------------------------------------------------

    def _class(self, node: ast.ClassDef, prefix: str, *, broken: Sequence[_Chunk] = ()) -> ClassSymbol:
        qualname = join(prefix, node.name)
        decorators = tuple(_decorator(item) for item in node.decorator_list)
        bases = tuple(from_node(base) for base in node.bases)
        base_names = {_base_short_name(base) for base in bases}
        keywords = {keyword.arg: keyword.value for keyword in node.keywords if keyword.arg}

        scope = _Scope(prefix=qualname)
        pending = sorted(broken, key=lambda chunk: chunk.lineno)
        for index, child in enumerate(node.body):
            while pending and pending[0].lineno < child.lineno:
                self._degraded_chunk(pending.pop(0), scope)
            if index == 0 and _is_docstring_expr(child):
                continue
            if isinstance(child, ast.ClassDef):
                scope.add(self._class(child, qualname))
            elif isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self._function(child, scope)
            elif isinstance(child, (ast.Assign, ast.AnnAssign)):
                self._assignment(child, scope)
            elif _is_docstring_expr(child) and scope.last_variable is not None:
                member = scope.symbols[scope.last_variable]
                scope.symbols[scope.last_variable] = replace(
                    member, docstring=parse_docstring(child.value.value)  # type: ignore[attr-defined]
                )
                scope.last_variable = None
            else:
                scope.last_variable = None
        for chunk in pending:
            self._degraded_chunk(chunk, scope)

        common = dict(
            name=node.name,
            qualname=qualname,
            module=self.module.qualname,
            docstring=_docstring(node),
            decorators=decorators,
            provenance=self.provenance,
            lineno=node.lineno,
            bases=bases,
            members=tuple(scope.symbols),
            type_params=self._class_type_params(node, bases),
        )

        symbol: ClassSymbol
        if base_names & _ENUM_BASES:
            symbol = EnumSymbol(**common)
        elif "Protocol" in base_names:
            symbol = ProtocolSymbol(
                runtime_checkable=any(decorator.short_name == "runtime_checkable" for decorator in decorators),
                **common,
            )
        elif "TypedDict" in base_names:
            total = _literal_bool(keywords.get("total"), default=True)
            symbol = TypedDictSymbol(total=total, keys=_typeddict_keys(scope.symbols, total), **common)
        else:
            symbol = ClassSymbol(**common)
            dataclass_decorator = next((d for d in decorators if d.short_name == "dataclass"), None)
            if dataclass_decorator is not None:
                symbol = self._synthesize_dataclass(symbol, dataclass_decorator)
        return self._check_degraded(symbol, node)

    def _synthesize_dataclass(self, symbol: ClassSymbol, decorator: Decorator) -> ClassSymbol:
        options = decorator.args or ""
        keyword_only = "kw_only=True" in options.replace(" ", "")
        fields: List[VariableSymbol] = []
        params: List[Parameter] = [Parameter(name="self")]
        for member in symbol.attributes():
            annotation = member.annotation
            if annotation is None:
                continue
            if isinstance(annotation, Name) and annotation.name.rsplit(".", 1)[-1] == "KW_ONLY":
                keyword_only = True
                continue
            if _is_classvar(annotation):
                continue
            default = _field_default(member.value)
            fields.append(member)
            params.append(
                Parameter(
                    name=member.name,
                    annotation=annotation,
                    kind=ParamKind.KEYWORD_ONLY if keyword_only else ParamKind.POSITIONAL,
                    has_default=default is not None,
                    default=default,
                )
            )

        members = symbol.members
        generates_init = "init=False" not in options.replace(" ", "")
        if generates_init and symbol.member("__init__") is None:
            init = FunctionSymbol(
                name="__init__",
                qualname=join(symbol.qualname, "__init__"),
                module=symbol.module,
                provenance=symbol.provenance,
                lineno=symbol.lineno,
                signature=Signature(
                    params=tuple(params),
                    returns=Name("None"),
                    type_params=self._used_type_params(p.annotation for p in params if p.annotation),
                ),
            )
            members = (init,) + members
        return replace(symbol, members=members, fields=tuple(fields))

    def _class_type_params(self, node: ast.ClassDef, bases: Sequence[TypeExpr]) -> Tuple[TypeParameter, ...]:
        declared = self._declared_type_params(node)
        if declared:
            return declared
        for base in bases:
            if isinstance(base, Generic) and _base_short_name(base) in {"Generic", "Protocol"}:
                return self._used_type_params(base.args)
        return self._used_type_params(bases)

    # -- type parameters -----------------------------------------------------

    def _collect_type_param(self, node: ast.stmt) -> None:
        if not isinstance(node, ast.Assign) or len(node.targets) != 1:
            return
        name = _target_name(node.targets[0])
        value = node.value
        if name is None or not isinstance(value, ast.Call):
            return
        factory = _short_name(value.func)
        if factory not in _TYPE_PARAM_FACTORIES:
            return
        keywords = {keyword.arg: keyword.value for keyword in value.keywords if keyword.arg}
        variance = Variance.INVARIANT
        if _literal_bool(keywords.get("covariant"), default=False):
            variance = Variance.COVARIANT
        elif _literal_bool(keywords.get("contravariant"), default=False):
            variance = Variance.CONTRAVARIANT
        bound = from_node(keywords["bound"]) if "bound" in keywords else None
        constraints = tuple(from_node(arg) for arg in value.args[1:])
        self.type_params[name] = TypeParameter(
            name=name,
            kind=factory or "TypeVar",
            variance=variance,
            bound=bound,
            constraints=constraints,
        )

    def _declared_type_params(self, node: ast.AST) -> Tuple[TypeParameter, ...]:
        declared = []
        for param in getattr(node, "type_params", None) or ():
            bound_node = getattr(param, "bound", None)
            bound = None
            constraints: Tuple[TypeExpr, ...] = ()
            if isinstance(bound_node, ast.Tuple):
                constraints = tuple(from_node(item) for item in bound_node.elts)
            elif bound_node is not None:
                bound = from_node(bound_node)
            declared.append(
                TypeParameter(name=param.name, kind=type(param).__name__, bound=bound, constraints=constraints)
            )
        return tuple(declared)

    def _used_type_params(self, annotations: Iterable[TypeExpr]) -> Tuple[TypeParameter, ...]:
        found: Dict[str, TypeParameter] = {}
        for annotation in annotations:
            for node in iter_type(annotation):
                if isinstance(node, (Name, ForwardRef)):
                    head = node.name.split(".", 1)[0]
                    if head in self.type_params and head not in found:
                        found[head] = self.type_params[head]
        return tuple(found.values())

    # -- degradation ---------------------------------------------------------

    def _check_degraded(self, symbol: Symbol, node: ast.AST) -> Symbol:
        if symbol.is_degraded or not any(contains_opaque(annotation) for annotation in symbol.annotations()):
            return symbol
        self.diagnostics.add(
            DiagnosticKind.DEGRADED_SYMBOL,
            f"Type information for {symbol.qualname} could not be interpreted",
            path=self.label,
            line=getattr(node, "lineno", None),
            symbol=symbol.qualname,
        )
        return replace(symbol, completeness=Completeness.DEGRADED, raw=self._head_text(node))

    def _head_text(self, node: ast.AST) -> str:
        start = getattr(node, "lineno", 1)
        body = getattr(node, "body", None)
        if isinstance(body, list) and body and body[0].lineno > start:
            end = body[0].lineno - 1
        else:
            end = getattr(node, "end_lineno", start) or start
            if isinstance(body, list):
                end = start
        return "\n".join(self.lines[start - 1 : end]).strip()

    def _degraded_chunk(self, chunk: _Chunk, scope: _Scope) -> None:
        raw = chunk.text.strip()
        symbol = _recover_symbol(raw, self.module, scope.prefix, chunk.lineno)
        self.diagnostics.add(
            DiagnosticKind.DEGRADED_SYMBOL,
            (
                f"Declaration {symbol.qualname} could not be parsed; recorded as raw text"
                if symbol is not None
                else "Unrecognized statement could not be parsed"
            ),
            path=self.label,
            line=chunk.lineno,
            symbol=symbol.qualname if symbol is not None else None,
        )
        if symbol is not None:
            scope.add(symbol)


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _recover_symbol(raw: str, module: ModuleNode, prefix: str, lineno: int) -> Optional[Symbol]:
    common = dict(
        module=module.qualname,
        provenance=module.provenance,
        completeness=Completeness.DEGRADED,
        raw=raw,
        lineno=lineno,
    )
    head = _DECL_HEAD.search(raw)
    if head is not None:
        keyword, name = head.groups()
        doc_match = _DOC_AFTER_HEAD.search(raw, head.end())
        docstring = parse_docstring(doc_match.group(2)) if doc_match else None
        decorators = tuple(
            Decorator(name=line.strip()[1:].split("(", 1)[0].strip())
            for line in raw[: head.start()].splitlines()
            if line.strip().startswith("@")
        )
        cls = ClassSymbol if keyword == "class" else FunctionSymbol
        return cls(name=name, qualname=join(prefix, name), docstring=docstring, decorators=decorators, **common)
    type_head = _TYPE_HEAD.match(raw)
    if type_head is not None:
        name = type_head.group(1)
        return TypeAliasSymbol(name=name, qualname=join(prefix, name), **common)
    assign = _ASSIGN_HEAD.match(raw)
    if assign is not None:
        name = assign.group(1)
        return VariableSymbol(name=name, qualname=join(prefix, name), **common)
    return None


def _nested_statements(node: ast.If | ast.Try) -> Iterator[ast.stmt]:
    blocks: List[List[ast.stmt]] = [node.body, node.orelse]
    if isinstance(node, ast.Try):
        blocks.append(node.finalbody)
        for handler in node.handlers:
            blocks.append(handler.body)
    for block in blocks:
        for child in block:
            if isinstance(child, (ast.If, ast.Try)):
                yield from _nested_statements(child)
            else:
                yield child


def _is_docstring_expr(node: ast.stmt) -> bool:
    return (
        isinstance(node, ast.Expr)
        and isinstance(node.value, ast.Constant)
        and isinstance(node.value.value, str)
    )


def _docstring(node: ast.AST) -> Optional[Docstring]:
    text = ast.get_docstring(node, clean=False)  # type: ignore[arg-type]
    return parse_docstring(text) if text else None


def _decorator(node: ast.expr) -> Decorator:
    if isinstance(node, ast.Call):
        args = [ast.unparse(arg) for arg in node.args]
        args.extend(
            f"{keyword.arg}={ast.unparse(keyword.value)}" if keyword.arg else f"**{ast.unparse(keyword.value)}"
            for keyword in node.keywords
        )
        return Decorator(name=ast.unparse(node.func), args=", ".join(args))
    return Decorator(name=ast.unparse(node))


def _parameter(arg: ast.arg, kind: ParamKind, default: Optional[ast.expr]) -> Parameter:
    return Parameter(
        name=arg.arg,
        annotation=from_node(arg.annotation) if arg.annotation is not None else None,
        kind=kind,
        has_default=default is not None,
        default=ast.unparse(default) if default is not None else None,
    )


def _target_name(node: ast.expr) -> Optional[str]:
    return node.id if isinstance(node, ast.Name) else None


def _short_name(node: ast.expr) -> Optional[str]:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _base_short_name(base: TypeExpr) -> str:
    if isinstance(base, Generic):
        base = base.base
    if isinstance(base, Name):
        return base.name.rsplit(".", 1)[-1]
    return ""


def _string_list(node: ast.expr) -> List[str]:
    if isinstance(node, (ast.List, ast.Tuple)):
        return [item.value for item in node.elts if isinstance(item, ast.Constant) and isinstance(item.value, str)]
    return []


def _value_text(node: Optional[ast.expr]) -> Optional[str]:
    if node is None:
        return None
    text = ast.unparse(node)
    if len(text) > _MAX_VALUE_TEXT:
        return text[: _MAX_VALUE_TEXT - 3] + "..."
    return text


def _literal_bool(node: Optional[ast.expr], *, default: bool) -> bool:
    if isinstance(node, ast.Constant) and isinstance(node.value, bool):
        return node.value
    return default


def _looks_like_alias(name: str, value: ast.expr) -> bool:
    if isinstance(value, ast.BinOp) and isinstance(value.op, ast.BitOr):
        return not name.isupper() and _is_type_operand(value.left) and _is_type_operand(value.right)
    if isinstance(value, ast.Subscript):
        base = _short_name(value.value)
        if base in _ALIAS_FORMS:
            return True
        return bool(base) and base[:1].isupper() and not name.isupper()
    return False


def _is_type_operand(node: ast.expr) -> bool:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _is_type_operand(node.left) and _is_type_operand(node.right)
    if isinstance(node, ast.Constant):
        return node.value is None or isinstance(node.value, str)
    return isinstance(node, (ast.Name, ast.Attribute, ast.Subscript))


def _is_classvar(annotation: TypeExpr) -> bool:
    base = annotation.base if isinstance(annotation, Generic) else annotation
    return isinstance(base, Name) and base.name.rsplit(".", 1)[-1] == "ClassVar"


def _field_default(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    compact = value.replace(" ", "")
    if compact.startswith(("field(", "dataclasses.field(")):
        factory = re.search(r"default_factory=([^,)]+)", compact)
        if factory:
            return f"{factory.group(1)}()"
        default = re.search(r"default=([^,)]+)", value)
        return default.group(1).strip() if default else None
    return value


def _typeddict_keys(members: Sequence[Symbol], total: bool) -> Tuple[TypedDictField, ...]:
    keys = []
    for member in members:
        if not isinstance(member, VariableSymbol) or member.annotation is None:
            continue
        annotation = member.annotation
        required = total
        if isinstance(annotation, Generic) and isinstance(annotation.base, Name):
            wrapper = annotation.base.name.rsplit(".", 1)[-1]
            if wrapper in {"Required", "NotRequired"} and annotation.args:
                required = wrapper == "Required"
                annotation = annotation.args[0]
        keys.append(TypedDictField(name=member.name, annotation=annotation, required=required))
    return tuple(keys)


def parse_signature_text(text: str) -> Optional[Signature]:
    """Parse ``"(a: int, *, b: str = '') -> bool"`` into a ``Signature``.

    Used for externally supplied interface descriptions; returns ``None``
    when the text is not a valid parameter list.
    """
    try:
        tree = ast.parse(f"def _interface{text.strip()}:\n    pass\n")
    except SyntaxError:
        return None
    node = tree.body[0]
    if not isinstance(node, ast.FunctionDef):
        return None
    builder = _ModuleBuilder(ModuleNode(qualname=""), "", Diagnostics(), "<interface>")
    return builder._signature(node)


__all__ = ["SourceParser", "TokenizeFailure", "parse_signature_text", "split_statements", "tokenize_source"]
