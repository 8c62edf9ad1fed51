"""Tests for post-processing helpers."""

from __future__ import annotations

from pathlib import PurePosixPath

from docweave.postproc.links import LinkValidator
from docweave.postproc.lint import MarkdownLinter


def test_markdown_linter_normalises_whitespace() -> None:
    markdown = "# Title\r\n\r\nText\r\n\r\n\r\n## Section\r\nContent  \r\n"
    linted = MarkdownLinter().lint(markdown)
    assert linted.endswith("\n")
    assert "\r" not in linted
    assert "  \n" not in linted
    assert "\n\n\n" not in linted


def test_markdown_linter_pads_headings_and_fences() -> None:
    markdown = "Intro\n## Heading\nBody\n```python\n# not a heading\n\n\n\nx = 1\n```\n"
    linted = MarkdownLinter().lint(markdown)
    assert linted == "Intro\n\n## Heading\n\nBody\n\n```python\n# not a heading\n\n\n\nx = 1\n```\n"


def test_markdown_linter_is_idempotent() -> None:
    linter = MarkdownLinter()
    once = linter.lint("\n\n# A\ntext\n\n\n- item\n")
    assert linter.lint(once) == once
    assert once == "# A\n\ntext\n\n- item\n"


def test_link_validator_accepts_emitted_pages() -> None:
    pages = {PurePosixPath("proj/index.md"), PurePosixPath("proj/pkg/util.md")}
    markdown = "[util](pkg/util.md#pkg-util) [here](#top) [site](https://example.com)"

    issues = LinkValidator().validate(markdown, page=PurePosixPath("proj/index.md"), pages=pages)

    assert issues == []


def test_link_validator_reports_missing_and_empty_targets() -> None:
    pages = {PurePosixPath("proj/pkg/util.md")}
    markdown = "[gone](../missing.md#x) and [blank]()\n```\n[ignored](nowhere.md)\n```\n"

    issues = LinkValidator().validate(markdown, page=PurePosixPath("proj/pkg/util.md"), pages=pages)

    assert issues == ["Link target not found: ../missing.md#x", "Empty link target for 'blank'"]


def test_link_validator_resolves_parent_segments() -> None:
    pages = {PurePosixPath("proj/index.md"), PurePosixPath("proj/pkg/util/Widget.md")}

    issues = LinkValidator().validate(
        "[home](../../index.md)", page=PurePosixPath("proj/pkg/util/Widget.md"), pages=pages
    )

    assert issues == []
