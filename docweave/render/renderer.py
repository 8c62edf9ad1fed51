"""Turns a resolved model into backend-specific markdown pages."""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional

import yaml
from jinja2 import Environment, FileSystemLoader

from ..logging import get_logger
from ..models import ResolvedModel
from ..postproc.lint import MarkdownLinter
from .backends import Backend
from .layout import Layout, PageKind, PageTarget, RenderSettings
from .pages import PageBuilder


@dataclass(frozen=True)
class RenderedPage:
    path: PurePosixPath
    content: str
    qualname: str = ""


def default_workers() -> int:
    return min(8, os.cpu_count() or 1)


def create_environment(templates_dir: Path | None = None) -> Environment:
    """Build the Jinja2 environment; user templates shadow the bundled ones."""
    directories = []
    if templates_dir is not None and templates_dir.is_dir():
        directories.append(str(templates_dir))
    directories.append(str(Path(__file__).with_name("templates")))
    loader = FileSystemLoader(directories)
    return Environment(loader=loader, autoescape=False, trim_blocks=True, lstrip_blocks=True)


class Renderer:
    """Renders every page of a model for one backend.

    The environment is built once per renderer; rendering a page reads only
    the frozen model, the layout and the settings.
    """

    def __init__(
        self,
        settings: RenderSettings | None = None,
        *,
        templates_dir: Path | None = None,
        workers: Optional[int] = None,
        linter: MarkdownLinter | None = None,
    ) -> None:
        self.settings = settings or RenderSettings()
        self.env = create_environment(templates_dir)
        self.workers = workers or default_workers()
        self.linter = linter or MarkdownLinter()
        self.logger = get_logger("render")

    @property
    def backend(self) -> Backend:
        return self.settings.backend

    def layout(self, model: ResolvedModel) -> Layout:
        return Layout(model, self.settings)

    def render(self, model: ResolvedModel) -> List[RenderedPage]:
        """Return all pages plus the navigation file, sorted by path."""
        layout = self.layout(model)
        builder = PageBuilder(model, layout, self.env)
        targets = layout.pages()

        def render_one(target: PageTarget) -> RenderedPage:
            return RenderedPage(target.path, self.linter.lint(builder.build(target)), target.qualname)

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            pages = list(executor.map(render_one, targets))

        pages.append(RenderedPage(PurePosixPath(self.backend.nav_file), self.navigation(layout)))
        pages.sort(key=lambda page: page.path.as_posix())
        self.logger.debug("Rendered %d pages for %s", len(pages), self.backend.value)
        return pages

    def navigation(self, layout: Layout) -> str:
        """Navigation listing every page in qualified-name order.

        The file sits at the content root, so page paths are already relative
        to it.
        """
        entries = [page for page in layout.pages() if page.kind is not PageKind.INDEX]
        entries.sort(key=lambda page: (page.qualname.split("."), page.kind is PageKind.CLASS))
        index = layout.page_for("")
        if self.backend is Backend.MDBOOK:
            lines = ["# Summary", ""]
            if index is not None:
                lines.append(f"[{layout.model.project}]({index.path.as_posix()})")
                lines.append("")
            for page in entries:
                depth = page.qualname.count(".")
                lines.append(f"{'  ' * depth}- [{page.qualname}]({page.path.as_posix()})")
            return "\n".join(lines) + "\n"

        nav = [{layout.model.project: index.path.as_posix()}] if index is not None else []
        nav.extend({page.qualname: page.path.as_posix()} for page in entries)
        return yaml.safe_dump({"nav": nav}, sort_keys=False, allow_unicode=True)


__all__ = ["RenderedPage", "Renderer", "create_environment", "default_workers"]
