"""Package discovery and provenance classification."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .diagnostics import DiagnosticKind, Diagnostics, FatalIOError
from .logging import get_logger
from .models import COMPILED, SOURCE, ModuleNode, PackageNode, Provenance
from .naming import join, resolve_relative

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    ".tox",
    ".nox",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".docweave",
    "build",
    "dist",
    "site",
    "target",
    "tests",
}

_EXCLUDED_FILES = {
    "setup.py",
    "conftest.py",
    "noxfile.py",
}

_COMPILED_SUFFIXES = (".so", ".pyd")

_FROM_IMPORT = re.compile(r"^\s*from\s+(\.*)([\w.]*)\s+import\s+\(?\s*([^)#]*)")
_PLAIN_IMPORT = re.compile(r"^\s*import\s+([\w.,\s]+?)\s*(?:#.*)?$")


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or exclude_paths."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return self.directory_only and rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    """Read ignore rules; raises ``OSError`` or ``UnicodeDecodeError`` for unreadable files."""
    if not path.is_file():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        rule = build_ignore_rule(line[1:] if negate else line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


@dataclass
class _ModuleFiles:
    source: Optional[Path] = None
    stub: Optional[Path] = None
    artifact: Optional[Path] = None


@dataclass
class _WalkState:
    root: Path
    rules: Sequence[IgnoreRule]
    forced: Mapping[str, str]
    seen: set = field(default_factory=set)


def _module_name(filename: str) -> Optional[tuple[str, str]]:
    """Split ``filename`` into (module name, role) or ``None`` for non-modules."""
    if filename.endswith(".py"):
        return filename[:-3], "source"
    if filename.endswith(".pyi"):
        return filename[:-4], "stub"
    if filename.endswith(_COMPILED_SUFFIXES):
        # name.cpython-312-x86_64-linux-gnu.so -> name
        return filename.split(".", 1)[0], "artifact"
    return None


def _is_package_dir(path: Path) -> bool:
    if (path / "__init__.py").is_file() or (path / "__init__.pyi").is_file():
        return True
    return any(
        entry.name.startswith("__init__.") and entry.name.endswith(_COMPILED_SUFFIXES)
        for entry in path.iterdir()
        if entry.is_file()
    )


class PackageWalker:
    """Walks source roots and builds the ordered package tree."""

    def __init__(self, diagnostics: Diagnostics | None = None) -> None:
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.logger = get_logger("walker")

    def walk(
        self,
        root: Path | str,
        *,
        source_paths: Iterable[str] = (),
        excludes: Iterable[str] = (),
        forced: Mapping[str, str] | None = None,
    ) -> PackageNode:
        """Return the package tree rooted at ``root``.

        Raises ``FatalIOError`` when the root is missing or not a directory.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FatalIOError(f"Project root not found: {root}")
        if not root_path.is_dir():
            raise FatalIOError(f"Project root is not a directory: {root}")
        if not os.access(root_path, os.R_OK | os.X_OK):
            raise FatalIOError(f"Project root is not readable: {root}")

        try:
            rules = _parse_gitignore(root_path / ".gitignore")
        except (OSError, UnicodeDecodeError) as exc:
            self.diagnostics.add(DiagnosticKind.READ_ERROR, f"Cannot read .gitignore: {exc}", path=".gitignore")
            rules = []
        rules.extend(rule for rule in map(build_ignore_rule, excludes) if rule is not None)
        state = _WalkState(root=root_path, rules=rules, forced=dict(forced or {}))

        children: List[PackageNode | ModuleNode] = []
        for source_root in [root_path, *(root_path / path for path in source_paths)]:
            if not source_root.is_dir():
                self.logger.warning("Source path %s does not exist; skipping", source_root)
                continue
            for child in self._scan(source_root, "", state):
                if child.qualname in state.seen:
                    continue
                state.seen.add(child.qualname)
                children.append(child)

        tree = PackageNode(qualname="", path=root_path, provenance=SOURCE, children=tuple(children))
        tree = self._classify_overlays(tree)
        module_count = sum(1 for _ in tree.iter_modules())
        self.logger.debug("Walker discovered %d modules under %s", module_count, root_path)
        return tree

    def _scan(self, directory: Path, package: str, state: _WalkState) -> List[PackageNode | ModuleNode]:
        groups: Dict[str, _ModuleFiles] = {}
        subpackages: Dict[str, Path] = {}
        try:
            entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
        except OSError as exc:
            self.diagnostics.add(DiagnosticKind.READ_ERROR, f"Cannot list directory: {exc}", path=self._rel(directory, state))
            return []

        for entry in entries:
            rel_path = self._rel(entry, state)
            if entry.is_dir():
                if entry.name in _EXCLUDED_DIRS or not entry.name.isidentifier():
                    continue
                if _should_ignore(rel_path, True, state.rules):
                    continue
                try:
                    is_package = _is_package_dir(entry)
                except OSError as exc:
                    self.diagnostics.add(DiagnosticKind.READ_ERROR, f"Cannot inspect directory: {exc}", path=rel_path)
                    continue
                if is_package:
                    subpackages[entry.name] = entry
                continue
            if not package and entry.name in _EXCLUDED_FILES:
                continue
            parsed = _module_name(entry.name)
            if parsed is None or _should_ignore(rel_path, False, state.rules):
                continue
            name, role = parsed
            if not name.isidentifier():
                continue
            setattr(groups.setdefault(name, _ModuleFiles()), role, entry)

        children: List[PackageNode | ModuleNode] = []
        init = groups.pop("__init__", None)
        if init is not None and package:
            children.append(self._module(package, package, init, state, is_package=True))

        names = sorted(set(groups) | set(subpackages))
        for name in names:
            qualname = join(package, name)
            if name in subpackages:
                children.append(self._package(qualname, subpackages[name], state))
            else:
                children.append(self._module(qualname, package or None, groups[name], state))
        return children

    def _package(self, qualname: str, path: Path, state: _WalkState) -> PackageNode:
        children = tuple(self._scan(path, qualname, state))
        provenance = SOURCE
        for child in children:
            if isinstance(child, ModuleNode) and child.is_package:
                provenance = child.provenance
        return PackageNode(qualname=qualname, path=path, provenance=provenance, children=children)

    def _module(
        self,
        qualname: str,
        package: Optional[str],
        files: _ModuleFiles,
        state: _WalkState,
        *,
        is_package: bool = False,
    ) -> ModuleNode:
        forced = state.forced.get(qualname)
        if forced == "compiled" or files.source is None:
            if forced == "source":
                self.logger.warning("%s is forced to source provenance but has no .py file", qualname)
            return ModuleNode(
                qualname=qualname,
                provenance=COMPILED,
                package=package,
                path=files.stub,
                artifact=files.artifact,
                is_package=is_package,
            )
        return ModuleNode(
            qualname=qualname,
            provenance=SOURCE,
            package=package,
            path=files.source,
            artifact=files.artifact,
            is_package=is_package,
        )

    def _classify_overlays(self, tree: PackageNode) -> PackageNode:
        modules = list(tree.iter_modules())
        compiled = {module.qualname for module in modules if module.provenance.is_compiled}
        updates: Dict[str, Optional[ModuleNode]] = {}
        for module in modules:
            if module.provenance.is_compiled or module.path is None:
                continue
            try:
                text = module.path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                self.diagnostics.add(
                    DiagnosticKind.READ_ERROR,
                    f"Cannot read module {module.qualname}: {exc}",
                    path=self._rel(module.path, tree),
                )
                updates[module.qualname] = None
                continue
            if not compiled:
                continue
            target = _first_compiled_import(module, text, compiled)
            if target is not None:
                self.logger.debug("%s is an overlay of %s", module.qualname, target)
                updates[module.qualname] = replace(module, provenance=Provenance.overlay(target))
        if not updates:
            return tree
        return tree.with_modules(updates)

    @staticmethod
    def _rel(path: Path, anchor: _WalkState | PackageNode) -> str:
        root = anchor.root if isinstance(anchor, _WalkState) else anchor.path
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            return path.as_posix()


def scan_imports(module: ModuleNode, text: str) -> List[str]:
    """Return absolute module names referenced by import lines, in order.

    This is a line scan and never executes or fully parses the module, so it
    also works on files the parser would reject.
    """
    found: List[str] = []
    for line in text.splitlines():
        match = _FROM_IMPORT.match(line)
        if match is not None:
            dots, target, names = match.groups()
            base = resolve_relative(module.qualname, module.is_package, len(dots), target or None)
            if base is None:
                continue
            found.append(base)
            for name in names.split(","):
                imported = name.strip().split(" as ")[0].strip()
                if imported and imported != "*" and imported.isidentifier():
                    found.append(join(base, imported))
            continue
        match = _PLAIN_IMPORT.match(line)
        if match is not None:
            for name in match.group(1).split(","):
                imported = name.strip().split(" as ")[0].strip()
                if imported:
                    found.append(imported)
    return found


def _first_compiled_import(module: ModuleNode, text: str, compiled: set) -> Optional[str]:
    for name in scan_imports(module, text):
        if name in compiled and name != module.qualname:
            return name
    return None


__all__ = ["IgnoreRule", "PackageWalker", "build_ignore_rule", "scan_imports"]
