"""Tests for backend conventions and theme tokens."""

from __future__ import annotations

import pytest

from docweave.render.backends import SEMANTIC_COLORS, Backend


def test_backend_parse_defaults_to_mkdocs_material() -> None:
    assert Backend.parse(None) is Backend.MKDOCS_MATERIAL
    assert Backend.parse(Backend.MDBOOK) is Backend.MDBOOK


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("mkdocs-material", Backend.MKDOCS_MATERIAL),
        ("Material", Backend.MKDOCS_MATERIAL),
        (" mkdocs ", Backend.MKDOCS_MATERIAL),
        ("mdbook", Backend.MDBOOK),
        ("md_book", Backend.MDBOOK),
    ],
)
def test_backend_parse_accepts_aliases(value: str, expected: Backend) -> None:
    assert Backend.parse(value) is expected


def test_backend_parse_rejects_unknown_names() -> None:
    with pytest.raises(ValueError, match="Unknown backend"):
        Backend.parse("sphinx")


def test_backend_layout_conventions() -> None:
    assert Backend.MKDOCS_MATERIAL.content_dir == "docs"
    assert Backend.MKDOCS_MATERIAL.site_config == "mkdocs.yml"
    assert Backend.MKDOCS_MATERIAL.nav_file == "_nav.yml"
    assert Backend.MDBOOK.content_dir == "src"
    assert Backend.MDBOOK.site_config == "book.toml"
    assert Backend.MDBOOK.nav_file == "SUMMARY.md"


def test_backend_heading_carries_anchor() -> None:
    assert Backend.MKDOCS_MATERIAL.heading(2, "`run`", "pkg-run") == "## `run` { #pkg-run }"
    assert Backend.MDBOOK.heading(2, "`run`", "pkg-run") == '<a id="pkg-run"></a>\n\n## `run`'


def test_backend_token_sets_do_not_overlap() -> None:
    material = Backend.MKDOCS_MATERIAL.tokens.badge_style(SEMANTIC_COLORS["info"])
    book = Backend.MDBOOK.tokens.badge_style(SEMANTIC_COLORS["info"])

    assert "var(--md-" in material
    assert "var(--" in book
    assert "var(--md-" not in book
    assert "var(--code-bg)" not in material
    assert "var(--quote-border)" not in material
