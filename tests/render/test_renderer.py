"""Tests for whole-model rendering, navigation and template overrides."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

import yaml

from docweave.render.backends import Backend
from docweave.render.layout import RenderSettings
from docweave.render.renderer import Renderer


def _nested_project(project_builder) -> None:
    project_builder.write(
        {
            "pkg/__init__.py": '"""Package."""\n',
            "pkg/core.py": '''
                class Engine:
                    """Runs things."""
                ''',
            "pkg/sub/__init__.py": "",
            "pkg/sub/leaf.py": "VALUE = 1\n",
        }
    )


def test_renderer_returns_pages_sorted_with_navigation(project_builder) -> None:
    _nested_project(project_builder)

    pages = Renderer(workers=2).render(project_builder.model())
    paths = [page.path.as_posix() for page in pages]

    assert paths == sorted(paths)
    assert "_nav.yml" in paths
    assert "project/pkg/core/Engine.md" in paths
    assert all(page.content.endswith("\n") and not page.content.endswith("\n\n") for page in pages)


def test_renderer_mkdocs_navigation_is_yaml(project_builder) -> None:
    _nested_project(project_builder)
    renderer = Renderer(RenderSettings(backend=Backend.MKDOCS_MATERIAL), workers=2)

    pages = {page.path: page.content for page in renderer.render(project_builder.model())}
    nav = yaml.safe_load(pages[PurePosixPath("_nav.yml")])

    assert nav["nav"][0] == {"project": "project/index.md"}
    assert nav["nav"][1:] == [
        {"pkg": "project/pkg/index.md"},
        {"pkg.core": "project/pkg/core.md"},
        {"pkg.core.Engine": "project/pkg/core/Engine.md"},
        {"pkg.sub": "project/pkg/sub/index.md"},
        {"pkg.sub.leaf": "project/pkg/sub/leaf.md"},
    ]


def test_renderer_mdbook_summary_indents_by_depth(project_builder) -> None:
    _nested_project(project_builder)
    renderer = Renderer(RenderSettings(backend=Backend.MDBOOK, layout="flat"), workers=2)

    pages = {page.path: page.content for page in renderer.render(project_builder.model())}
    summary = pages[PurePosixPath("SUMMARY.md")]

    assert summary.splitlines() == [
        "# Summary",
        "",
        "[project](index.md)",
        "",
        "- [pkg](pkg/index.md)",
        "  - [pkg.core](pkg/core.md)",
        "    - [pkg.core.Engine](pkg/core/Engine.md)",
        "  - [pkg.sub](pkg/sub/index.md)",
        "    - [pkg.sub.leaf](pkg/sub/leaf.md)",
    ]


def test_renderer_output_does_not_depend_on_worker_count(project_builder) -> None:
    _nested_project(project_builder)
    model = project_builder.model()

    single = Renderer(workers=1).render(model)
    many = Renderer(workers=8).render(model)

    assert single == many


def test_renderer_prefers_user_templates(project_builder, tmp_path: Path) -> None:
    _nested_project(project_builder)
    templates = tmp_path / "templates"
    (templates / "partials").mkdir(parents=True)
    (templates / "partials" / "badge.md.j2").write_text("[{{ text }}]", encoding="utf-8")

    pages = Renderer(templates_dir=templates, workers=2).render(project_builder.model())
    index = next(page for page in pages if page.path == PurePosixPath("project/index.md"))

    assert "[4 modules]" in index.content
    assert "docweave-badge" not in index.content
