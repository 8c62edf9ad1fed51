"""Tests for page placement, anchors and relative links."""

from __future__ import annotations

from pathlib import PurePosixPath

import pytest

from docweave.render.layout import Layout, PageKind, RenderSettings


def _widget_project(project_builder) -> None:
    project_builder.write(
        {
            "pkg/__init__.py": '"""Widgets."""\n',
            "pkg/util.py": '''
                class Widget:
                    """A widget."""

                    def run(self) -> None: ...


                class _Secret:
                    pass


                def helper(widget: Widget) -> None: ...


                def _hidden() -> None: ...
                ''',
        }
    )


def test_layout_places_pages_under_project_directory(project_builder) -> None:
    _widget_project(project_builder)
    layout = Layout(project_builder.model(), RenderSettings())

    paths = {page.qualname: page.path.as_posix() for page in layout.pages()}

    assert paths == {
        "": "project/index.md",
        "pkg": "project/pkg/index.md",
        "pkg.util": "project/pkg/util.md",
        "pkg.util.Widget": "project/pkg/util/Widget.md",
    }
    assert layout.page_for("pkg.util.Widget").kind is PageKind.CLASS  # type: ignore[union-attr]


def test_layout_flat_mode_drops_project_directory(project_builder) -> None:
    _widget_project(project_builder)
    layout = Layout(project_builder.model(), RenderSettings(layout="flat"))

    assert layout.page_for("").path == PurePosixPath("index.md")  # type: ignore[union-attr]
    assert layout.page_for("pkg.util").path == PurePosixPath("pkg/util.md")  # type: ignore[union-attr]


def test_layout_links_are_relative_with_qualified_anchors(project_builder) -> None:
    _widget_project(project_builder)
    layout = Layout(project_builder.model(), RenderSettings())
    module_page = PurePosixPath("project/pkg/util.md")
    class_page = PurePosixPath("project/pkg/util/Widget.md")

    assert layout.link(module_page, "pkg.util.Widget") == "util/Widget.md#pkg-util-Widget"
    assert layout.link(class_page, "pkg.util.Widget.run") == "#pkg-util-Widget-run"
    assert layout.link(class_page, "pkg.util.helper") == "../util.md#pkg-util-helper"
    assert layout.link(class_page, "pkg") == "../index.md#pkg"


def test_layout_hides_private_symbols(project_builder) -> None:
    _widget_project(project_builder)
    model = project_builder.model()
    layout = Layout(model, RenderSettings())

    assert model.lookup("pkg.util._Secret") is not None
    assert layout.page_for("pkg.util._Secret") is None
    assert layout.locate("pkg.util._hidden") is None
    assert [symbol.name for symbol in layout.visible(model.module_symbols("pkg.util"))] == ["Widget", "helper"]


def test_layout_breadcrumbs_list_ancestor_pages(project_builder) -> None:
    _widget_project(project_builder)
    layout = Layout(project_builder.model(), RenderSettings())

    assert layout.breadcrumbs("pkg.util.Widget") == [("pkg", "pkg"), ("util", "pkg.util")]
    assert layout.breadcrumbs("pkg") == []


def test_render_settings_reject_unknown_layout() -> None:
    with pytest.raises(ValueError, match="Unknown layout"):
        RenderSettings(layout="nested")
