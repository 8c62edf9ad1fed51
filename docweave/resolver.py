"""Merge every provenance into one qualified-name addressed model."""

from __future__ import annotations

import builtins
import collections.abc
import typing
from collections import OrderedDict
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .config import InterfaceEntry
from .diagnostics import DiagnosticKind, Diagnostics
from .logging import get_logger
from .models import (
    BackRef,
    CallableType,
    ClassSymbol,
    Completeness,
    Concatenate,
    CrossReference,
    ForwardRef,
    FunctionSymbol,
    Generic,
    ModuleNode,
    Name,
    OptionalType,
    PackageNode,
    ResolvedModel,
    Symbol,
    TypeAliasSymbol,
    TypeExpr,
    UnionType,
    Unresolved,
    VariableSymbol,
    freeze,
    freeze_nested,
    iter_members,
    iter_type,
)
from .naming import is_private, join
from .parsing.docstrings import parse_docstring
from .parsing.source import parse_signature_text
from .parsing.types import parse_annotation

_EXTERNAL_NAMES = (
    set(dir(builtins))
    | set(typing.__all__)
    | set(collections.abc.__all__)
    | {"Self", "Never", "LiteralString", "TypeAlias", "Unpack", "Required", "NotRequired", "Annotated"}
)
_SKIPPED_NAMES = {"None", "..."}
_MAX_FOLLOW = 32


class HybridResolver:
    """Builds the resolved documentation model; the single barrier of a run."""

    def __init__(
        self,
        diagnostics: Diagnostics | None = None,
        *,
        precedence: str = "compiled",
        interfaces: Mapping[str, Sequence[InterfaceEntry]] | None = None,
    ) -> None:
        if precedence not in {"compiled", "overlay"}:
            raise ValueError(f"Unknown provenance precedence: {precedence}")
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.precedence = precedence
        self.interfaces = dict(interfaces or {})
        self.logger = get_logger("resolver")

    def resolve(
        self,
        forest: Sequence[PackageNode],
        *,
        project: str,
        version: Optional[str] = None,
    ) -> ResolvedModel:
        modules: Dict[str, ModuleNode] = {}
        for tree in forest:
            for module in tree.iter_modules():
                modules[module.qualname] = module

        canonical = self._canonical_owners(modules)
        modules = self._instantiate_compiled(modules)
        modules, origins = self._merge_namespaces(modules, canonical)

        index: Dict[str, Symbol] = {}
        for name in sorted(modules):
            for symbol in modules[name].symbols:
                for member in iter_members(symbol):
                    index.setdefault(member.qualname, member)

        context = _LookupContext(index=index, modules=modules, canonical=canonical)
        root = forest[0].path if forest else None
        references = self._resolve_references(index, origins, context, root)
        aliases = {
            qualname: expand_alias(qualname, index, references)
            for qualname, symbol in index.items()
            if isinstance(symbol, TypeAliasSymbol)
        }

        forest = tuple(tree.with_modules(modules) for tree in forest)
        self.logger.debug(
            "Resolved %d symbols across %d modules (%d absorbed)",
            len(index),
            len(modules),
            sum(1 for name, owner in canonical.items() if owner != name),
        )
        return ResolvedModel(
            project=project,
            version=version,
            forest=forest,
            symbols=freeze(index),
            modules=freeze(modules),
            references=freeze_nested(references),
            aliases=freeze(aliases),
            canonical=freeze(canonical),
        )

    # -- provenance merging --------------------------------------------------

    @staticmethod
    def _canonical_owners(modules: Mapping[str, ModuleNode]) -> Dict[str, str]:
        """Map each module to the namespace that publishes its symbols.

        A private compiled module whose parent package initializer overlays it
        publishes into that package; every other module owns itself.
        """
        canonical = {name: name for name in modules}
        for name, module in modules.items():
            if not module.provenance.is_compiled:
                continue
            parent, _, last = name.rpartition(".")
            if not parent or not is_private(last):
                continue
            owner = modules.get(parent)
            if owner is not None and owner.provenance.is_overlay and owner.provenance.overlay_of == name:
                canonical[name] = parent
        return canonical

    def _instantiate_compiled(self, modules: Dict[str, ModuleNode]) -> Dict[str, ModuleNode]:
        """Give compiled modules symbols for every name the project relies on."""
        wanted: Dict[str, List[str]] = {name: [] for name, module in modules.items() if module.provenance.is_compiled}
        for module in modules.values():
            for _, target in module.imports:
                owner, _, attr = target.rpartition(".")
                if owner in wanted and attr and attr not in wanted[owner]:
                    wanted[owner].append(attr)
            for star in module.star_imports:
                if star in wanted and module.exports:
                    for name in module.exports:
                        if module.symbol(name) is None and module.binding(name) is None and name not in wanted[star]:
                            wanted[star].append(name)

        updated = dict(modules)
        for name, names in wanted.items():
            module = modules[name]
            symbols = list(module.symbols)
            declared = {symbol.name for symbol in symbols}
            if module.path is None:
                for entry in self.interfaces.get(name, ()):
                    if entry.name not in declared:
                        symbols.append(_interface_symbol(module, entry))
                        declared.add(entry.name)
            for attr in names:
                if attr in declared or module.binding(attr) is not None or join(name, attr) in modules:
                    continue
                symbols.append(
                    Symbol(
                        name=attr,
                        qualname=join(name, attr),
                        module=name,
                        provenance=module.provenance,
                        completeness=Completeness.OPAQUE,
                    )
                )
                declared.add(attr)
            if len(symbols) != len(module.symbols):
                updated[name] = replace(module, symbols=tuple(symbols))
        return updated

    def _merge_namespaces(
        self, modules: Dict[str, ModuleNode], canonical: Mapping[str, str]
    ) -> Tuple[Dict[str, ModuleNode], Dict[str, ModuleNode]]:
        """Fold absorbed compiled modules into their owners.

        Returns the rewritten modules plus, for every symbol qualified name,
        the module whose import bindings apply to it.
        """
        origins: Dict[str, ModuleNode] = {}
        merged = dict(modules)
        absorbed: Dict[str, List[str]] = {}
        for name, owner in canonical.items():
            if owner != name:
                absorbed.setdefault(owner, []).append(name)

        for module in modules.values():
            if canonical[module.qualname] == module.qualname:
                for symbol in module.symbols:
                    for member in iter_members(symbol):
                        origins[member.qualname] = module

        for owner_name in sorted(absorbed):
            owner = merged[owner_name]
            namespace: "OrderedDict[str, Symbol]" = OrderedDict((symbol.name, symbol) for symbol in owner.symbols)
            for compiled_name in sorted(absorbed[owner_name]):
                compiled = modules[compiled_name]
                for symbol in compiled.symbols:
                    moved = _requalify(symbol, owner_name, owner_name)
                    existing = namespace.get(symbol.name)
                    if existing is None:
                        namespace[symbol.name] = moved
                        origin = compiled
                    else:
                        namespace[symbol.name] = self._merge(moved, existing, compiled_name, owner_name)
                        origin = compiled if self._compiled_wins(moved, existing) else owner
                    for member in iter_members(namespace[symbol.name]):
                        origins.setdefault(member.qualname, origin)
                merged[compiled_name] = replace(compiled, symbols=())
            merged[owner_name] = replace(owner, symbols=tuple(namespace.values()))
        return merged, origins

    def _compiled_wins(self, compiled: Symbol, overlay: Symbol) -> bool:
        if compiled.is_opaque and not overlay.is_opaque:
            return False
        if overlay.is_opaque and not compiled.is_opaque:
            return True
        return self.precedence == "compiled"

    def _merge(self, compiled: Symbol, overlay: Symbol, compiled_module: str, overlay_module: str) -> Symbol:
        compiled_wins = self._compiled_wins(compiled, overlay)
        primary, secondary = (compiled, overlay) if compiled_wins else (overlay, compiled)
        differs = _shape(compiled) != _shape(overlay)
        self.diagnostics.add(
            DiagnosticKind.CONFLICTING_PROVENANCE,
            (
                f"{compiled.qualname} is declared by compiled module {compiled_module} and overlay "
                f"{overlay_module}{' with different shapes' if differs else ''}; using the "
                f"{'compiled' if compiled_wins else 'overlay'} declaration"
            ),
            symbol=compiled.qualname,
        )
        return _combine(primary, secondary)

    # -- cross references ----------------------------------------------------

    def _resolve_references(
        self,
        index: Mapping[str, Symbol],
        origins: Mapping[str, ModuleNode],
        context: "_LookupContext",
        root: Optional[Path] = None,
    ) -> Dict[str, Dict[str, CrossReference]]:
        references: Dict[str, Dict[str, CrossReference]] = {}
        for qualname in sorted(index):
            symbol = index[qualname]
            origin = origins.get(qualname) or context.modules.get(symbol.module)
            if origin is None:
                continue
            entries: Dict[str, CrossReference] = {}
            for raw in _referenced_names(symbol.annotations()):
                target, external = context.lookup(raw, origin, qualname)
                if target is not None:
                    entries[raw] = CrossReference(raw=raw, target=target)
                    continue
                entries[raw] = CrossReference(raw=raw, target=Unresolved(raw))
                if not external:
                    self.diagnostics.add(
                        DiagnosticKind.UNRESOLVED_REFERENCE,
                        f"{raw!r} referenced by {qualname} does not match any known name",
                        path=_relative(origin.path, root),
                        line=symbol.lineno,
                        symbol=qualname,
                    )
            if entries:
                references[qualname] = entries
        return references


class _LookupContext:
    def __init__(
        self,
        *,
        index: Mapping[str, Symbol],
        modules: Mapping[str, ModuleNode],
        canonical: Mapping[str, str],
    ) -> None:
        self.index = index
        self.modules = modules
        self.canonical = canonical

    def lookup(self, raw: str, origin: ModuleNode, scope: str) -> Tuple[Optional[str], bool]:
        """Return ``(target, external)`` for ``raw`` as written in ``origin``."""
        head, _, rest = raw.partition(".")

        enclosing = scope.rpartition(".")[0]
        while enclosing:
            candidate = self.follow(join(enclosing, raw))
            if candidate is not None:
                return candidate, False
            if enclosing in self.modules:
                break
            enclosing = enclosing.rpartition(".")[0]

        local = self.follow(join(origin.qualname, raw))
        if local is not None:
            return local, False
        if origin.type_param(head) is not None or self._class_type_param(head, scope):
            return None, True

        binding = origin.binding(head)
        if binding is not None:
            target = self.follow(join(binding, rest) if rest else binding)
            if target is not None:
                return target, False
            return None, not self._inside_project(binding)

        for star in origin.star_imports:
            target = self.follow(join(star, raw))
            if target is not None:
                return target, False

        target = self.follow(raw)
        if target is not None:
            return target, False
        return None, head in _EXTERNAL_NAMES or any(not self._inside_project(star) for star in origin.star_imports)

    def follow(self, name: str, visited: Optional[Set[str]] = None) -> Optional[str]:
        """Chase ``name`` through modules and re-exports to a known target."""
        visited = visited if visited is not None else set()
        if name in visited or len(visited) > _MAX_FOLLOW:
            return None
        visited.add(name)
        name = self._canonical_name(name)
        if name in self.index:
            return name
        if name in self.modules:
            return self.canonical.get(name, name)

        module_name, attr, rest = self._split_module(name)
        if module_name is None:
            return None
        module = self.modules[module_name]
        binding = module.binding(attr)
        if binding is not None:
            return self.follow(join(binding, rest) if rest else binding, visited)
        for star in module.star_imports:
            target = self.follow(join(star, join(attr, rest) if rest else attr), visited)
            if target is not None:
                return target
        return None

    def _canonical_name(self, name: str) -> str:
        for module, owner in self.canonical.items():
            if module != owner and (name == module or name.startswith(module + ".")):
                return owner + name[len(module):]
        return name

    def _split_module(self, name: str) -> Tuple[Optional[str], str, str]:
        parts = name.split(".")
        for cut in range(len(parts) - 1, 0, -1):
            module_name = ".".join(parts[:cut])
            if module_name in self.modules:
                return module_name, parts[cut], ".".join(parts[cut + 1 :])
        return None, "", ""

    def _inside_project(self, name: str) -> bool:
        head = name.split(".", 1)[0]
        return any(module == head or module.startswith(head + ".") for module in self.modules)

    def _class_type_param(self, name: str, scope: str) -> bool:
        enclosing = scope
        while enclosing:
            symbol = self.index.get(enclosing)
            if isinstance(symbol, (ClassSymbol, TypeAliasSymbol)) and any(
                param.name == name for param in symbol.type_params
            ):
                return True
            if isinstance(symbol, FunctionSymbol) and any(
                param.name == name for signature in symbol.signatures() for param in signature.type_params
            ):
                return True
            enclosing = enclosing.rpartition(".")[0]
        return False


def expand_alias(
    qualname: str,
    index: Mapping[str, Symbol],
    references: Mapping[str, Mapping[str, CrossReference]],
) -> TypeExpr:
    """Expand a type alias, replacing any alias already on the path with ``BackRef``.

    The visited set is keyed by the alias qualified name, which is stable
    across the model, so self- and mutually-recursive aliases terminate.
    """
    symbol = index[qualname]
    if not isinstance(symbol, TypeAliasSymbol):
        raise TypeError(f"{qualname} is not a type alias")
    if symbol.value is None:
        return Name(symbol.name)
    return _expand(symbol.value, qualname, index, references, frozenset({qualname}))


def _expand(
    expr: TypeExpr,
    owner: str,
    index: Mapping[str, Symbol],
    references: Mapping[str, Mapping[str, CrossReference]],
    visited: frozenset,
) -> TypeExpr:
    def recurse(node: TypeExpr) -> TypeExpr:
        return _expand(node, owner, index, references, visited)

    if isinstance(expr, (Name, ForwardRef)):
        reference = references.get(owner, {}).get(expr.name)
        if reference is None or not reference.resolved:
            return expr
        target = reference.target
        alias = index.get(target)  # type: ignore[arg-type]
        if not isinstance(alias, TypeAliasSymbol) or alias.value is None:
            return expr
        if target in visited:
            return BackRef(alias.name)
        return _expand(alias.value, target, index, references, visited | {target})  # type: ignore[operator]
    if isinstance(expr, Generic):
        return Generic(recurse(expr.base), tuple(recurse(arg) for arg in expr.args))
    if isinstance(expr, UnionType):
        return UnionType(tuple(recurse(member) for member in expr.members))
    if isinstance(expr, OptionalType):
        return OptionalType(recurse(expr.inner))
    if isinstance(expr, Concatenate):
        return Concatenate(tuple(recurse(item) for item in expr.prefix), recurse(expr.spec))
    if isinstance(expr, CallableType):
        if isinstance(expr.params, tuple):
            params = tuple(recurse(item) for item in expr.params)
        elif expr.params is not None:
            params = recurse(expr.params)
        else:
            params = None
        return CallableType(params, recurse(expr.returns))
    return expr


def _relative(path: Optional[Path], root: Optional[Path]) -> Optional[str]:
    if path is None:
        return None
    if root is not None:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            pass
    return path.as_posix()


def _referenced_names(annotations: Iterable[TypeExpr]) -> List[str]:
    names: List[str] = []
    for annotation in annotations:
        for node in iter_type(annotation):
            if isinstance(node, (Name, ForwardRef)) and node.name not in _SKIPPED_NAMES and node.name not in names:
                names.append(node.name)
    return names


def _requalify(symbol: Symbol, prefix: str, module: str) -> Symbol:
    qualname = join(prefix, symbol.name)
    if isinstance(symbol, ClassSymbol):
        return replace(
            symbol,
            qualname=qualname,
            module=module,
            members=tuple(_requalify(member, qualname, module) for member in symbol.members),
            fields=tuple(_requalify(item, qualname, module) for item in symbol.fields),  # type: ignore[misc]
        )
    return replace(symbol, qualname=qualname, module=module)


def _combine(primary: Symbol, secondary: Symbol) -> Symbol:
    combined = replace(primary, docstring=primary.docstring or secondary.docstring)
    if isinstance(combined, ClassSymbol) and isinstance(secondary, ClassSymbol):
        members = []
        for member in combined.members:
            other = secondary.member(member.name)
            members.append(_combine(member, other) if other is not None else member)
        known = {member.name for member in combined.members}
        members.extend(member for member in secondary.members if member.name not in known)
        combined = replace(combined, members=tuple(members))
    return combined


def _shape(symbol: Symbol) -> tuple:
    if isinstance(symbol, FunctionSymbol):
        return (symbol.kind, symbol.signatures())
    if isinstance(symbol, ClassSymbol):
        return (symbol.kind, tuple(member.name for member in symbol.members))
    if isinstance(symbol, VariableSymbol):
        return (symbol.kind, symbol.annotation)
    return (symbol.kind,)


def _interface_symbol(module: ModuleNode, entry: InterfaceEntry) -> Symbol:
    common = dict(
        name=entry.name,
        qualname=join(module.qualname, entry.name),
        module=module.qualname,
        provenance=module.provenance,
        docstring=parse_docstring(entry.doc) if entry.doc else None,
    )
    if entry.kind == "class":
        return ClassSymbol(**common)
    if entry.kind == "variable":
        annotation = parse_annotation(entry.signature) if entry.signature else None
        return VariableSymbol(annotation=annotation, **common)
    if entry.signature is None:
        return FunctionSymbol(**common)
    signature = parse_signature_text(entry.signature)
    if signature is None:
        return FunctionSymbol(completeness=Completeness.DEGRADED, raw=entry.signature, **common)
    return FunctionSymbol(signature=signature, **common)


__all__ = ["HybridResolver", "expand_alias"]
