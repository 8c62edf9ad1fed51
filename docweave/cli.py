"""CLI entrypoints for docweave commands."""

from __future__ import annotations

import argparse
from pathlib import Path

from .config import ConfigError
from .diagnostics import FatalIOError
from .logging import configure_logging
from .orchestrator import Orchestrator
from .render.backends import Backend
from .render.layout import LAYOUTS

_BACKEND_CHOICES = ["mkdocs-material", "mkdocs_material", "material", "mkdocs", "mdbook", "md-book", "md_book"]


def _add_verbosity_options(parser: argparse.ArgumentParser, *, suppress_default: bool = False) -> None:
    default: object = argparse.SUPPRESS if suppress_default else False
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default,
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=default,
        help="Only log warnings and errors.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docweave",
        description="Generate static-site API documentation for Python packages without importing them.",
    )
    _add_verbosity_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser(
        "render",
        help="Render markdown pages for mkdocs-material or mdbook.",
    )
    _add_verbosity_options(render_parser, suppress_default=True)
    render_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )
    render_parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output directory (defaults to output.path or <root>/docs, <root>/src for mdbook).",
    )
    render_parser.add_argument(
        "--backend",
        choices=_BACKEND_CHOICES,
        default=None,
        help="Site generator to target (default: mkdocs-material).",
    )
    render_parser.add_argument(
        "--layout",
        choices=list(LAYOUTS),
        default=None,
        help="Place pages under a project directory or directly in the content root.",
    )
    render_parser.add_argument(
        "--clean",
        action="store_true",
        help="Remove previously generated pages before writing.",
    )
    render_parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Exit with a non-zero status when any warning is reported.",
    )
    render_parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Worker threads for parsing and rendering.",
    )

    init_parser = subparsers.add_parser(
        "init",
        help="Write a starter .docweave.yml configuration file.",
    )
    _add_verbosity_options(init_parser, suppress_default=True)
    init_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for docweave commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), quiet=bool(args.quiet))

    if args.command == "render":
        if args.jobs is not None and args.jobs < 1:
            parser.exit(1, "--jobs must be at least 1\n")
        orchestrator = Orchestrator(workers=args.jobs)
        try:
            result = orchestrator.render(
                args.path,
                args.output,
                backend=Backend.parse(args.backend) if args.backend else None,
                layout=args.layout,
                clean=bool(args.clean),
                strict=args.strict,
            )
        except ConfigError as exc:
            parser.exit(1, f"docweave render failed: {exc}\n")
        except FatalIOError as exc:
            parser.exit(1, f"docweave render failed: {exc}\n")
        print(f"Rendered {len(result.paths)} files to {_relativize(result.output_dir)}")
        if result.exit_code:
            parser.exit(result.exit_code, "docweave render reported problems; see the log above.\n")
    elif args.command == "init":
        try:
            config_path = Orchestrator().init(args.path)
        except (FileExistsError, FatalIOError) as exc:
            parser.exit(1, f"{exc}\n")
        print(f"Configuration created at {_relativize(config_path)}")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


__all__ = ["main"]
