"""Tests for docweave.config."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from docweave.config import (
    ConfigError,
    DocweaveConfig,
    InterfaceEntry,
    default_config_text,
    load_config,
)


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, DocweaveConfig)
    assert config.root == tmp_path.resolve()
    assert config.output.backend is None
    assert config.output.path is None
    assert config.output.layout is None
    assert config.source.paths == []
    assert config.source.modules == {}
    assert config.resolve.precedence == "compiled"
    assert config.render.templates_dir is None
    assert config.quality.require_docstrings is False
    assert config.quality.min_coverage is None
    assert config.interfaces == {}
    assert config.exclude_paths == []
    assert config.strict is False
    assert config.project_name() == tmp_path.name


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".docweave.yml"
    config_file.write_text(
        """
project:
  name: "widgets"
  version: "1.2.0"
output:
  backend: "MDBook"
  path: "book/src"
  layout: "flat"
source:
  paths: ["src"]
  modules:
    widgets._speed: compiled
resolve:
  precedence: overlay
render:
  templates_dir: "docs/templates"
  workers: "4"
quality:
  require_docstrings: yes
  min_coverage: 80
  fail_on_broken_links: true
interfaces:
  widgets._speed:
    spin:
      signature: "(rate: float) -> None"
      doc: "Spin the widget."
    Gear: "A native gear."
exclude_paths:
  - "sandbox/"
strict: true
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.project_name() == "widgets"
    assert config.project_version() == "1.2.0"
    assert config.output.backend == "mdbook"
    assert config.output.path == tmp_path.resolve() / "book" / "src"
    assert config.output.layout == "flat"
    assert config.source.paths == ["src"]
    assert config.source.modules == {"widgets._speed": "compiled"}
    assert config.resolve.precedence == "overlay"
    assert config.render.templates_dir == tmp_path.resolve() / "docs" / "templates"
    assert config.render.workers == 4
    assert config.quality.require_docstrings is True
    assert config.quality.min_coverage == pytest.approx(80.0)
    assert config.quality.fail_on_broken_links is True
    assert config.interfaces["widgets._speed"] == [
        InterfaceEntry(name="spin", kind="function", signature="(rate: float) -> None", doc="Spin the widget."),
        InterfaceEntry(name="Gear", kind="class", signature=None, doc="A native gear."),
    ]
    assert config.exclude_paths == ["sandbox/"]
    assert config.strict is True


def test_load_config_reads_project_metadata_from_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[project]\nname = "from-pyproject"\nversion = "0.3.1"\n', encoding="utf-8"
    )

    config = load_config(tmp_path)

    assert config.project_name() == "from-pyproject"
    assert config.project_version() == "0.3.1"


def test_load_config_accepts_empty_file(tmp_path: Path) -> None:
    (tmp_path / ".docweave.yml").write_text("", encoding="utf-8")

    config = load_config(tmp_path)

    assert config.resolve.precedence == "compiled"


def test_load_config_rejects_malformed_yaml(tmp_path: Path) -> None:
    (tmp_path / ".docweave.yml").write_text("output: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_rejects_non_mapping_root(tmp_path: Path) -> None:
    (tmp_path / ".docweave.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(tmp_path)


@pytest.mark.parametrize(
    "body",
    [
        "output:\n  backend: sphinx\n",
        "output:\n  layout: nested\n",
        "resolve:\n  precedence: newest\n",
        "source:\n  modules:\n    pkg.mod: overlay\n",
    ],
)
def test_load_config_rejects_unknown_choices(tmp_path: Path, body: str) -> None:
    (tmp_path / ".docweave.yml").write_text(body, encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid value"):
        load_config(tmp_path)


def test_default_config_text_round_trips(tmp_path: Path) -> None:
    text = default_config_text("demo")
    (tmp_path / ".docweave.yml").write_text(text, encoding="utf-8")

    payload = yaml.safe_load(text)
    config = load_config(tmp_path)

    assert payload["project"]["name"] == "demo"
    assert config.project_name() == "demo"
    assert config.output.backend == "mkdocs-material"
    assert config.exclude_paths == ["tests/*"]
