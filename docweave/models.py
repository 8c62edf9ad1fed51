"""Data models shared across the docweave pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import ClassVar, Iterator, Mapping, Optional, Tuple, Union


# ---------------------------------------------------------------------------
# Type expressions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Name:
    """A plain or dotted name, including ``None`` and ``P.args``."""

    name: str


@dataclass(frozen=True)
class Generic:
    """A subscripted generic such as ``dict[str, int]``."""

    base: "TypeExpr"
    args: Tuple["TypeExpr", ...]


@dataclass(frozen=True)
class UnionType:
    """A flattened, deduplicated union."""

    members: Tuple["TypeExpr", ...]


@dataclass(frozen=True)
class OptionalType:
    """A union of one type with ``None``."""

    inner: "TypeExpr"


@dataclass(frozen=True)
class Concatenate:
    """``Concatenate[...]`` ending in a ParamSpec."""

    prefix: Tuple["TypeExpr", ...]
    spec: "TypeExpr"


@dataclass(frozen=True)
class CallableType:
    """``Callable[params, returns]``.

    ``params`` is a tuple of argument types, ``None`` for ``...``, or a single
    ``Name``/``Concatenate`` when the callable forwards a parameter spec.
    """

    params: Union[Tuple["TypeExpr", ...], "TypeExpr", None]
    returns: "TypeExpr"


@dataclass(frozen=True)
class Literal:
    """``Literal[...]`` with each value kept as source text."""

    values: Tuple[str, ...]


@dataclass(frozen=True)
class ForwardRef:
    """A quoted annotation naming a type declared elsewhere."""

    name: str


@dataclass(frozen=True)
class Opaque:
    """Annotation text that could not be interpreted."""

    raw: str


@dataclass(frozen=True)
class BackRef:
    """Stand-in for an alias already being expanded further up the walk."""

    name: str


TypeExpr = Union[
    Name,
    Generic,
    UnionType,
    OptionalType,
    Concatenate,
    CallableType,
    Literal,
    ForwardRef,
    Opaque,
    BackRef,
]

NONE = Name("None")


def iter_type(expr: Optional[TypeExpr]) -> Iterator[TypeExpr]:
    """Yield ``expr`` and every nested type expression, depth first."""
    if expr is None:
        return
    stack = [expr]
    while stack:
        node = stack.pop()
        yield node
        children: list = []
        if isinstance(node, Generic):
            children = [node.base, *node.args]
        elif isinstance(node, UnionType):
            children = list(node.members)
        elif isinstance(node, OptionalType):
            children = [node.inner]
        elif isinstance(node, Concatenate):
            children = [*node.prefix, node.spec]
        elif isinstance(node, CallableType):
            if isinstance(node.params, tuple):
                children = list(node.params)
            elif node.params is not None:
                children = [node.params]
            children.append(node.returns)
        stack.extend(reversed(children))


def contains_opaque(expr: Optional[TypeExpr]) -> bool:
    return any(isinstance(node, Opaque) for node in iter_type(expr))


# ---------------------------------------------------------------------------
# Provenance
# ---------------------------------------------------------------------------


class ProvenanceKind(str, Enum):
    SOURCE = "source"
    COMPILED = "compiled"
    OVERLAY = "overlay"


@dataclass(frozen=True)
class Provenance:
    kind: ProvenanceKind
    overlay_of: Optional[str] = None

    @classmethod
    def source(cls) -> "Provenance":
        return cls(ProvenanceKind.SOURCE)

    @classmethod
    def compiled(cls) -> "Provenance":
        return cls(ProvenanceKind.COMPILED)

    @classmethod
    def overlay(cls, compiled_module: str) -> "Provenance":
        return cls(ProvenanceKind.OVERLAY, compiled_module)

    @property
    def is_compiled(self) -> bool:
        return self.kind is ProvenanceKind.COMPILED

    @property
    def is_overlay(self) -> bool:
        return self.kind is ProvenanceKind.OVERLAY

    def __str__(self) -> str:
        if self.kind is ProvenanceKind.OVERLAY:
            return f"overlay-of({self.overlay_of})"
        return self.kind.value


SOURCE = Provenance.source()
COMPILED = Provenance.compiled()


class Completeness(str, Enum):
    COMPLETE = "complete"
    DEGRADED = "degraded"
    OPAQUE = "opaque"


# ---------------------------------------------------------------------------
# Docstrings and signatures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Docstring:
    """Raw docstring text plus its parsed sections."""

    raw: str
    summary: Optional[str] = None
    description: Optional[str] = None
    args: Tuple[Tuple[str, str], ...] = ()
    returns: Optional[str] = None
    raises: Tuple[Tuple[str, str], ...] = ()
    examples: Tuple[str, ...] = ()

    def arg(self, name: str) -> Optional[str]:
        for arg_name, text in self.args:
            if arg_name.lstrip("*") == name:
                return text
        return None


@dataclass(frozen=True)
class Decorator:
    name: str
    args: Optional[str] = None

    def __str__(self) -> str:
        if self.args is None:
            return f"@{self.name}"
        return f"@{self.name}({self.args})"

    @property
    def short_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]


class ParamKind(str, Enum):
    POSITIONAL_ONLY = "positional-only"
    POSITIONAL = "positional"
    VAR_POSITIONAL = "var-positional"
    KEYWORD_ONLY = "keyword-only"
    VAR_KEYWORD = "var-keyword"


@dataclass(frozen=True)
class Parameter:
    name: str
    annotation: Optional[TypeExpr] = None
    kind: ParamKind = ParamKind.POSITIONAL
    has_default: bool = False
    default: Optional[str] = None


class Variance(str, Enum):
    INVARIANT = "invariant"
    COVARIANT = "covariant"
    CONTRAVARIANT = "contravariant"


@dataclass(frozen=True)
class TypeParameter:
    name: str
    kind: str = "TypeVar"
    variance: Variance = Variance.INVARIANT
    bound: Optional[TypeExpr] = None
    constraints: Tuple[TypeExpr, ...] = ()


@dataclass(frozen=True)
class Signature:
    params: Tuple[Parameter, ...] = ()
    returns: Optional[TypeExpr] = None
    type_params: Tuple[TypeParameter, ...] = ()
    is_async: bool = False

    def annotations(self) -> Iterator[TypeExpr]:
        for param in self.params:
            if param.annotation is not None:
                yield param.annotation
        if self.returns is not None:
            yield self.returns
        for type_param in self.type_params:
            if type_param.bound is not None:
                yield type_param.bound
            yield from type_param.constraints


# ---------------------------------------------------------------------------
# Symbols
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Symbol:
    """Fields common to every documented declaration."""

    name: str
    qualname: str
    module: str
    docstring: Optional[Docstring] = None
    decorators: Tuple[Decorator, ...] = ()
    provenance: Provenance = SOURCE
    completeness: Completeness = Completeness.COMPLETE
    raw: Optional[str] = None
    lineno: Optional[int] = None
    bases: Tuple[TypeExpr, ...] = ()

    kind: ClassVar[str] = "symbol"

    @property
    def is_degraded(self) -> bool:
        return self.completeness is Completeness.DEGRADED

    @property
    def is_opaque(self) -> bool:
        return self.completeness is Completeness.OPAQUE

    @property
    def is_private(self) -> bool:
        return self.name.startswith("_") and not (
            self.name.startswith("__") and self.name.endswith("__")
        )

    def has_decorator(self, name: str) -> bool:
        return any(decorator.short_name == name for decorator in self.decorators)

    def annotations(self) -> Iterator[TypeExpr]:
        yield from self.bases


@dataclass(frozen=True)
class FunctionSymbol(Symbol):
    signature: Optional[Signature] = None
    overloads: Tuple[Signature, ...] = ()

    kind: ClassVar[str] = "function"

    @property
    def is_overloaded(self) -> bool:
        return bool(self.overloads)

    @property
    def is_async(self) -> bool:
        if self.signature is not None:
            return self.signature.is_async
        return any(overload.is_async for overload in self.overloads)

    @property
    def is_property(self) -> bool:
        return self.has_decorator("property") or any(
            decorator.name.endswith((".setter", ".getter", ".deleter")) for decorator in self.decorators
        )

    def signatures(self) -> Tuple[Signature, ...]:
        if self.signature is None:
            return self.overloads
        return self.overloads + (self.signature,)

    def annotations(self) -> Iterator[TypeExpr]:
        for signature in self.signatures():
            yield from signature.annotations()


@dataclass(frozen=True)
class VariableSymbol(Symbol):
    annotation: Optional[TypeExpr] = None
    value: Optional[str] = None

    kind: ClassVar[str] = "variable"

    def annotations(self) -> Iterator[TypeExpr]:
        if self.annotation is not None:
            yield self.annotation


@dataclass(frozen=True)
class TypeAliasSymbol(Symbol):
    value: Optional[TypeExpr] = None
    type_params: Tuple[TypeParameter, ...] = ()

    kind: ClassVar[str] = "alias"

    def annotations(self) -> Iterator[TypeExpr]:
        if self.value is not None:
            yield self.value


@dataclass(frozen=True)
class ClassSymbol(Symbol):
    members: Tuple[Symbol, ...] = ()
    type_params: Tuple[TypeParameter, ...] = ()
    fields: Tuple["VariableSymbol", ...] = ()

    kind: ClassVar[str] = "class"

    @property
    def is_dataclass(self) -> bool:
        return self.has_decorator("dataclass")

    def member(self, name: str) -> Optional[Symbol]:
        for member in self.members:
            if member.name == name:
                return member
        return None

    def methods(self) -> Tuple[FunctionSymbol, ...]:
        return tuple(
            member for member in self.members if isinstance(member, FunctionSymbol) and not member.is_property
        )

    def properties(self) -> Tuple[FunctionSymbol, ...]:
        return tuple(member for member in self.members if isinstance(member, FunctionSymbol) and member.is_property)

    def attributes(self) -> Tuple[VariableSymbol, ...]:
        return tuple(member for member in self.members if isinstance(member, VariableSymbol))

    def nested(self) -> Tuple["ClassSymbol", ...]:
        return tuple(member for member in self.members if isinstance(member, ClassSymbol))


@dataclass(frozen=True)
class EnumSymbol(ClassSymbol):
    kind: ClassVar[str] = "enum"


@dataclass(frozen=True)
class ProtocolSymbol(ClassSymbol):
    runtime_checkable: bool = False

    kind: ClassVar[str] = "protocol"

    @property
    def capabilities(self) -> Tuple[str, ...]:
        return tuple(member.name for member in self.members if isinstance(member, FunctionSymbol))


@dataclass(frozen=True)
class TypedDictField:
    name: str
    annotation: Optional[TypeExpr] = None
    required: bool = True


@dataclass(frozen=True)
class TypedDictSymbol(ClassSymbol):
    total: bool = True
    keys: Tuple[TypedDictField, ...] = ()

    kind: ClassVar[str] = "typeddict"

    def annotations(self) -> Iterator[TypeExpr]:
        yield from self.bases
        for key in self.keys:
            if key.annotation is not None:
                yield key.annotation



def owns_page(symbol: Symbol) -> bool:
    """Class-like symbols get their own page; everything else is a subsection."""
    return isinstance(symbol, ClassSymbol)


def iter_members(symbol: Symbol) -> Iterator[Symbol]:
    """Yield ``symbol`` and all nested members recursively."""
    yield symbol
    if isinstance(symbol, ClassSymbol):
        for member in symbol.members:
            yield from iter_members(member)


# ---------------------------------------------------------------------------
# Package tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModuleNode:
    qualname: str
    provenance: Provenance = SOURCE
    package: Optional[str] = None
    path: Optional[Path] = None
    artifact: Optional[Path] = None
    is_package: bool = False
    docstring: Optional[Docstring] = None
    symbols: Tuple[Symbol, ...] = ()
    imports: Tuple[Tuple[str, str], ...] = ()
    star_imports: Tuple[str, ...] = ()
    exports: Optional[Tuple[str, ...]] = None
    type_params: Tuple[TypeParameter, ...] = ()

    @property
    def name(self) -> str:
        return self.qualname.rsplit(".", 1)[-1]

    def binding(self, local_name: str) -> Optional[str]:
        for name, target in self.imports:
            if name == local_name:
                return target
        return None

    def symbol(self, name: str) -> Optional[Symbol]:
        for symbol in self.symbols:
            if symbol.name == name:
                return symbol
        return None

    def type_param(self, name: str) -> Optional[TypeParameter]:
        for type_param in self.type_params:
            if type_param.name == name:
                return type_param
        return None

    def imported_modules(self) -> Tuple[str, ...]:
        targets = [target for _, target in self.imports] + list(self.star_imports)
        return tuple(dict.fromkeys(targets))


@dataclass(frozen=True)
class PackageNode:
    qualname: str
    path: Path
    provenance: Provenance = SOURCE
    children: Tuple[Union["PackageNode", ModuleNode], ...] = ()

    def iter_modules(self) -> Iterator[ModuleNode]:
        for child in self.children:
            if isinstance(child, PackageNode):
                yield from child.iter_modules()
            else:
                yield child

    def iter_packages(self) -> Iterator["PackageNode"]:
        yield self
        for child in self.children:
            if isinstance(child, PackageNode):
                yield from child.iter_packages()

    def with_modules(self, parsed: Mapping[str, Optional[ModuleNode]]) -> "PackageNode":
        """Return a copy with each module swapped for its parsed form.

        Modules mapped to ``None`` failed to parse and are dropped.
        """
        children = []
        provenance = self.provenance
        for child in self.children:
            if isinstance(child, PackageNode):
                children.append(child.with_modules(parsed))
                continue
            replacement = parsed.get(child.qualname, child)
            if replacement is None:
                continue
            if replacement.is_package and replacement.qualname == self.qualname:
                provenance = replacement.provenance
            children.append(replacement)
        return PackageNode(
            qualname=self.qualname,
            path=self.path,
            provenance=provenance,
            children=tuple(children),
        )

    def init_module(self) -> Optional[ModuleNode]:
        for child in self.children:
            if isinstance(child, ModuleNode) and child.is_package and child.qualname == self.qualname:
                return child
        return None


# ---------------------------------------------------------------------------
# Resolution results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Unresolved:
    """A referenced name that matched no symbol in the project."""

    text: str


@dataclass(frozen=True)
class CrossReference:
    """Where one name used by a symbol points."""

    raw: str
    target: Union[str, Unresolved]

    @property
    def resolved(self) -> bool:
        return isinstance(self.target, str)


@dataclass(frozen=True)
class ResolvedModel:
    """The immutable product of the resolver barrier."""

    project: str
    forest: Tuple[PackageNode, ...]
    symbols: Mapping[str, Symbol]
    modules: Mapping[str, ModuleNode]
    references: Mapping[str, Mapping[str, CrossReference]]
    aliases: Mapping[str, TypeExpr] = field(default_factory=lambda: MappingProxyType({}))
    canonical: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    version: Optional[str] = None

    def lookup(self, qualname: str) -> Optional[Symbol]:
        return self.symbols.get(qualname)

    def reference(self, owner: str, raw: str) -> Optional[CrossReference]:
        return self.references.get(owner, {}).get(raw)

    def module_symbols(self, module: str) -> Tuple[Symbol, ...]:
        node = self.modules.get(module)
        return node.symbols if node is not None else ()

    def documented_modules(self) -> Tuple[ModuleNode, ...]:
        """Modules that own a page, in qualified-name order."""
        return tuple(
            self.modules[name]
            for name in sorted(self.modules)
            if self.canonical.get(name, name) == name
        )


def freeze(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))


def freeze_nested(mapping: Mapping[str, Mapping]) -> Mapping:
    return MappingProxyType({key: MappingProxyType(dict(value)) for key, value in mapping.items()})



__all__ = [
    "BackRef",
    "CallableType",
    "ClassSymbol",
    "Completeness",
    "Concatenate",
    "CrossReference",
    "Decorator",
    "Docstring",
    "EnumSymbol",
    "ForwardRef",
    "FunctionSymbol",
    "Generic",
    "Literal",
    "ModuleNode",
    "NONE",
    "Name",
    "Opaque",
    "OptionalType",
    "PackageNode",
    "ParamKind",
    "Parameter",
    "Provenance",
    "ProvenanceKind",
    "ProtocolSymbol",
    "ResolvedModel",
    "Signature",
    "Symbol",
    "TypeAliasSymbol",
    "TypeExpr",
    "TypeParameter",
    "TypedDictField",
    "TypedDictSymbol",
    "UnionType",
    "Unresolved",
    "Variance",
    "VariableSymbol",
    "contains_opaque",
    "freeze",
    "freeze_nested",
    "iter_members",
    "iter_type",
    "owns_page",
]
