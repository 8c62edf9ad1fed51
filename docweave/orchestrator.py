"""Pipeline orchestration for render and init runs."""

from __future__ import annotations

import os
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence

from .config import CONFIG_FILENAME, DocweaveConfig, default_config_text, load_config
from .diagnostics import Diagnostic, DiagnosticKind, Diagnostics, FatalIOError, Severity
from .logging import get_logger, report_diagnostics
from .models import ClassSymbol, ModuleNode, PackageNode, ResolvedModel, Symbol
from .parsing.source import SourceParser
from .postproc.links import LinkValidator
from .postproc.lint import MarkdownLinter
from .render.backends import Backend
from .render.layout import Layout, RenderSettings
from .render.renderer import RenderedPage, Renderer, default_workers
from .resolver import HybridResolver
from .walker import PackageWalker

_USER_TEMPLATES = Path(".docweave") / "templates"
_GENERATED_SUFFIXES = {".md", ".yml"}


@dataclass
class RenderResult:
    """Outcome of a render run."""

    paths: List[Path]
    diagnostics: List[Diagnostic]
    exit_code: int
    backend: Backend
    output_dir: Path
    model: Optional[ResolvedModel] = field(default=None, repr=False)


class Orchestrator:
    """Coordinates walker, parser, resolver and renderer for one project."""

    def __init__(
        self,
        linter: MarkdownLinter | None = None,
        link_validator: LinkValidator | None = None,
        *,
        workers: Optional[int] = None,
    ) -> None:
        self.linter = linter or MarkdownLinter()
        self.link_validator = link_validator or LinkValidator()
        self.workers = workers
        self.logger = get_logger("orchestrator")

    def render(
        self,
        project_root: Path | str,
        output_dir: Path | str | None = None,
        *,
        backend: Backend | str | None = None,
        layout: Optional[str] = None,
        clean: bool = False,
        strict: Optional[bool] = None,
    ) -> RenderResult:
        """Render documentation for ``project_root``.

        Raises ``FatalIOError`` for an unusable root or output directory and
        ``ConfigError`` for a malformed configuration file. Nothing is written
        in either case.
        """
        root = Path(project_root).expanduser().resolve()
        if not root.is_dir():
            raise FatalIOError(f"Project root not found or not a directory: {project_root}")
        config = load_config(root)
        selected = Backend.parse(backend if backend is not None else config.output.backend)
        settings = RenderSettings(backend=selected, layout=layout or config.output.layout or "project-first")
        output = self._output_dir(root, config, selected, output_dir)
        workers = self.workers or config.render.workers or default_workers()
        self.logger.info("Rendering %s with %s into %s", root, selected.value, output)

        diagnostics = Diagnostics()
        model = self.build_model(root, config, diagnostics, workers=workers)

        renderer = Renderer(
            settings,
            templates_dir=config.render.templates_dir or root / _USER_TEMPLATES,
            workers=workers,
            linter=self.linter,
        )
        pages = renderer.render(model)
        page_layout = renderer.layout(model)
        self._check_quality(model, page_layout, config, diagnostics)
        self._check_links(pages, config, diagnostics)

        written = self._write(output, pages, clean=clean)
        items = diagnostics.items()
        counts = report_diagnostics(items, self.logger)

        exit_code = 0
        strict_mode = config.strict if strict is None else strict
        if strict_mode and (counts[Severity.WARNING] or counts[Severity.ERROR]):
            exit_code = 1
        if config.quality.fail_on_broken_links and diagnostics.of_kind(DiagnosticKind.BROKEN_LINK):
            exit_code = 1
        self.logger.info("Wrote %d files to %s", len(written), output)
        return RenderResult(
            paths=written,
            diagnostics=items,
            exit_code=exit_code,
            backend=selected,
            output_dir=output,
            model=model,
        )

    def build_model(
        self,
        root: Path,
        config: DocweaveConfig,
        diagnostics: Diagnostics,
        *,
        workers: Optional[int] = None,
    ) -> ResolvedModel:
        """Walk, parse and resolve; the resolver is the barrier before rendering."""
        walker = PackageWalker(diagnostics)
        tree = walker.walk(
            root,
            source_paths=config.source.paths,
            excludes=config.exclude_paths,
            forced=config.source.modules,
        )
        tree = self._parse(tree, root, diagnostics, workers or default_workers())
        resolver = HybridResolver(
            diagnostics,
            precedence=config.resolve.precedence,
            interfaces=config.interfaces,
        )
        return resolver.resolve([tree], project=config.project_name(), version=config.project_version())

    def init(self, project_root: Path | str) -> Path:
        """Write a starter configuration file; refuses to overwrite one."""
        root = Path(project_root).expanduser().resolve()
        if not root.is_dir():
            raise FatalIOError(f"Project root not found or not a directory: {project_root}")
        target = root / CONFIG_FILENAME
        if target.exists():
            raise FileExistsError(f"{CONFIG_FILENAME} already exists at {target}")
        config = DocweaveConfig(root=root)
        target.write_text(default_config_text(config.project_name()), encoding="utf-8")
        self.logger.info("Created %s", target)
        return target

    def _parse(self, tree: PackageNode, root: Path, diagnostics: Diagnostics, workers: int) -> PackageNode:
        parser = SourceParser(diagnostics, root=root)
        modules = list(tree.iter_modules())
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(parser.parse, modules))
        parsed: Dict[str, Optional[ModuleNode]] = {
            module.qualname: result for module, result in zip(modules, results)
        }
        failed = sum(1 for result in results if result is None)
        self.logger.debug("Parsed %d modules (%d failed)", len(modules) - failed, failed)
        return tree.with_modules(parsed)

    @staticmethod
    def _output_dir(
        root: Path, config: DocweaveConfig, backend: Backend, output_dir: Path | str | None
    ) -> Path:
        if output_dir is not None:
            output = Path(output_dir).expanduser()
            output = output if output.is_absolute() else Path.cwd() / output
        elif config.output.path is not None:
            output = config.output.path
        else:
            return root / backend.content_dir
        if (output / backend.site_config).exists():
            return output / backend.content_dir
        return output

    def _check_quality(
        self, model: ResolvedModel, layout: Layout, config: DocweaveConfig, diagnostics: Diagnostics
    ) -> None:
        quality = config.quality
        if not quality.require_docstrings and quality.min_coverage is None:
            return
        total = documented = 0
        for module in model.documented_modules():
            for symbol in _public_symbols(layout, module.symbols):
                if symbol.is_opaque or (symbol.name.startswith("__") and symbol.name.endswith("__")):
                    continue
                total += 1
                if symbol.docstring is not None:
                    documented += 1
                elif quality.require_docstrings:
                    diagnostics.add(
                        DiagnosticKind.MISSING_DOCSTRING,
                        f"{symbol.qualname} has no docstring",
                        line=symbol.lineno,
                        symbol=symbol.qualname,
                    )
        if quality.min_coverage is None or not total:
            return
        threshold = quality.min_coverage / 100 if quality.min_coverage > 1 else quality.min_coverage
        coverage = documented / total
        if coverage < threshold:
            diagnostics.add(
                DiagnosticKind.LOW_COVERAGE,
                f"Docstring coverage {coverage:.0%} is below the required {threshold:.0%}",
            )

    def _check_links(self, pages: Sequence[RenderedPage], config: DocweaveConfig, diagnostics: Diagnostics) -> None:
        emitted = {page.path for page in pages}
        severity = Severity.ERROR if config.quality.fail_on_broken_links else Severity.WARNING
        for page in pages:
            if page.path.suffix != ".md":
                continue
            for issue in self.link_validator.validate(page.content, page=page.path, pages=emitted):
                diagnostics.add(DiagnosticKind.BROKEN_LINK, issue, path=page.path.as_posix(), severity=severity)

    def _write(self, output: Path, pages: Sequence[RenderedPage], *, clean: bool) -> List[Path]:
        try:
            output.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FatalIOError(f"Cannot create output directory {output}: {exc}") from exc
        if not os.access(output, os.W_OK):
            raise FatalIOError(f"Output directory is not writable: {output}")

        if clean:
            self._clean(output, (page.path for page in pages))

        written: List[Path] = []
        for page in pages:
            target = output.joinpath(*page.path.parts)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(page.content, encoding="utf-8")
            except OSError as exc:
                raise FatalIOError(f"Cannot write {target}: {exc}") from exc
            written.append(target)
        return written

    def _clean(self, output: Path, paths: Iterable[PurePosixPath]) -> None:
        """Remove the generated subtrees the new pages will occupy.

        A subtree holding anything other than generated markdown or nav files
        (sources, when the output directory overlaps the project) is kept.
        """
        for head in sorted({path.parts[0] for path in paths}):
            target = output / head
            if target.is_dir():
                foreign = next(
                    (item for item in target.rglob("*") if item.is_file() and item.suffix not in _GENERATED_SUFFIXES),
                    None,
                )
                if foreign is not None:
                    self.logger.warning("Not cleaning %s: %s was not generated by docweave", target, foreign)
                    continue
                self.logger.debug("Removing %s", target)
                shutil.rmtree(target)
            elif target.is_file() and target.suffix in _GENERATED_SUFFIXES:
                target.unlink()


def _public_symbols(layout: Layout, symbols: Sequence[Symbol]) -> List[Symbol]:
    collected: List[Symbol] = []
    for symbol in layout.visible(symbols):
        collected.append(symbol)
        if isinstance(symbol, ClassSymbol):
            collected.extend(_public_symbols(layout, symbol.members))
    return collected


__all__ = ["Orchestrator", "RenderResult"]
