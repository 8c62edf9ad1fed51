"""CLI parser and entrypoint behaviour tests."""

from __future__ import annotations

import pytest

from docweave.cli import _build_parser, main
from docweave.config import CONFIG_FILENAME


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "render"])
    assert args.verbose is True
    assert args.command == "render"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["render", "--verbose"])
    assert args.verbose is True
    assert args.command == "render"


def test_cli_render_defaults() -> None:
    args = _build_parser().parse_args(["render"])
    assert args.path == "."
    assert args.output is None
    assert args.backend is None
    assert args.layout is None
    assert args.clean is False
    assert args.strict is None
    assert args.jobs is None


def test_cli_render_accepts_options() -> None:
    args = _build_parser().parse_args(
        ["render", "proj", "-o", "out", "--backend", "mdbook", "--layout", "flat", "--clean", "--strict", "-j", "3"]
    )
    assert args.path == "proj"
    assert args.output == "out"
    assert args.backend == "mdbook"
    assert args.layout == "flat"
    assert args.clean is True
    assert args.strict is True
    assert args.jobs == 3


def test_cli_rejects_unknown_backend() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["render", "--backend", "sphinx"])


def test_main_render_writes_site(project_builder, capsys) -> None:
    project_builder.write({"helpers.py": 'def run() -> None:\n    """Run."""\n'})

    main(["--quiet", "render", str(project_builder.path()), "-o", str(project_builder.output)])

    assert "Rendered 3 files" in capsys.readouterr().out
    assert (project_builder.output / "project" / "helpers.md").exists()


def test_main_render_exits_non_zero_in_strict_mode(project_builder) -> None:
    project_builder.write({"helpers.py": "def lost(thing: Missing) -> None: ...\n"})

    with pytest.raises(SystemExit) as excinfo:
        main(["-q", "render", str(project_builder.path()), "-o", str(project_builder.output), "--strict"])

    assert excinfo.value.code == 1


def test_main_render_reports_config_errors(project_builder, capsys) -> None:
    project_builder.write({CONFIG_FILENAME: "output:\n  backend: sphinx\n"})

    with pytest.raises(SystemExit) as excinfo:
        main(["-q", "render", str(project_builder.path())])

    assert excinfo.value.code == 1
    assert "docweave render failed" in capsys.readouterr().err


def test_main_render_rejects_zero_jobs(project_builder) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["-q", "render", str(project_builder.path()), "--jobs", "0"])

    assert excinfo.value.code == 1


def test_main_init_creates_config_and_refuses_overwrite(project_builder, capsys) -> None:
    main(["-q", "init", str(project_builder.path())])

    assert (project_builder.path() / CONFIG_FILENAME).exists()
    assert "Configuration created at" in capsys.readouterr().out

    with pytest.raises(SystemExit) as excinfo:
        main(["-q", "init", str(project_builder.path())])
    assert excinfo.value.code == 1
