"""Page paths, anchors and relative links for the resolved model."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Tuple

from ..models import ModuleNode, ResolvedModel, Symbol, owns_page
from ..naming import anchor_id, is_private
from .backends import Backend

LAYOUTS = ("project-first", "flat")


class PageKind(str, Enum):
    INDEX = "index"
    MODULE = "module"
    CLASS = "class"


@dataclass(frozen=True)
class RenderSettings:
    backend: Backend = Backend.MKDOCS_MATERIAL
    layout: str = "project-first"

    def __post_init__(self) -> None:
        if self.layout not in LAYOUTS:
            raise ValueError(f"Unknown layout {self.layout!r} (expected one of: {', '.join(LAYOUTS)})")


@dataclass(frozen=True)
class PageTarget:
    """One output page: where it goes and what it documents."""

    path: PurePosixPath
    kind: PageKind
    qualname: str
    title: str

    @property
    def anchor(self) -> str:
        return anchor_id(self.qualname) if self.qualname else "index"


class Layout:
    """Maps qualified names onto pages and anchors for one run."""

    def __init__(self, model: ResolvedModel, settings: RenderSettings) -> None:
        self.model = model
        self.settings = settings
        self.base = PurePosixPath(model.project) if settings.layout == "project-first" else PurePosixPath()
        self._pages: Dict[str, PageTarget] = {}
        self._build()

    def _build(self) -> None:
        self._pages[""] = PageTarget(self.base / "index.md", PageKind.INDEX, "", self.model.project)
        for module in self.model.documented_modules():
            page = PageTarget(self.module_path(module), PageKind.MODULE, module.qualname, module.qualname)
            self._pages[module.qualname] = page
            for symbol in self.visible(module.symbols):
                if owns_page(symbol):
                    self._pages[symbol.qualname] = PageTarget(
                        self.class_path(module, symbol), PageKind.CLASS, symbol.qualname, symbol.name
                    )

    def pages(self) -> List[PageTarget]:
        return sorted(self._pages.values(), key=lambda page: page.path.as_posix())

    def page_for(self, qualname: str) -> Optional[PageTarget]:
        return self._pages.get(qualname)

    def module_path(self, module: ModuleNode) -> PurePosixPath:
        parts = module.qualname.split(".")
        if module.is_package:
            return self.base.joinpath(*parts, "index.md")
        return self.base.joinpath(*parts[:-1], f"{parts[-1]}.md")

    def class_path(self, module: ModuleNode, symbol: Symbol) -> PurePosixPath:
        return self.base.joinpath(*module.qualname.split("."), f"{symbol.name}.md")

    def locate(self, qualname: str) -> Optional[Tuple[PurePosixPath, str]]:
        """Return the page and anchor that document ``qualname``."""
        page = self._pages.get(qualname)
        if page is not None:
            return page.path, page.anchor
        symbol = self.model.lookup(qualname)
        if symbol is None or not self.is_documented(symbol):
            return None
        owner = self._page_owner(symbol)
        if owner is None:
            return None
        return owner.path, anchor_id(qualname)

    def is_documented(self, symbol: Symbol) -> bool:
        """Private names and anything nested under one stay off the pages."""
        relative = symbol.qualname[len(symbol.module) + 1 :]
        return not any(is_private(part) for part in relative.split("."))

    def visible(self, symbols: Iterable[Symbol]) -> List[Symbol]:
        return [symbol for symbol in symbols if not is_private(symbol.name)]

    def _page_owner(self, symbol: Symbol) -> Optional[PageTarget]:
        relative = symbol.qualname[len(symbol.module) + 1 :]
        top = relative.split(".", 1)[0]
        top_page = self._pages.get(f"{symbol.module}.{top}")
        if top_page is not None:
            return top_page
        return self._pages.get(symbol.module)

    def link(self, source: PurePosixPath, qualname: str) -> Optional[str]:
        """Relative ``.md#anchor`` link from page ``source`` to ``qualname``."""
        located = self.locate(qualname)
        if located is None:
            return None
        path, anchor = located
        if path == source:
            return f"#{anchor}"
        relative = posixpath.relpath(path.as_posix(), source.parent.as_posix() or ".")
        return f"{relative}#{anchor}"

    def link_page(self, source: PurePosixPath, target: PurePosixPath) -> str:
        return posixpath.relpath(target.as_posix(), source.parent.as_posix() or ".")

    def breadcrumbs(self, qualname: str) -> List[Tuple[str, Optional[str]]]:
        """Ancestors of ``qualname`` that have pages, outermost first."""
        crumbs: List[Tuple[str, Optional[str]]] = []
        parts = qualname.split(".") if qualname else []
        for cut in range(1, len(parts)):
            prefix = ".".join(parts[:cut])
            if prefix in self._pages:
                crumbs.append((parts[cut - 1], prefix))
        return crumbs


__all__ = ["LAYOUTS", "Layout", "PageKind", "PageTarget", "RenderSettings"]
