"""Per-backend conventions for the two supported site generators."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict

SEMANTIC_COLORS: Dict[str, str] = {
    "success": "#4caf50",
    "warning": "#ff9800",
    "error": "#f44336",
    "info": "#2196f3",
    "binding": "#9c27b0",
}


@dataclass(frozen=True)
class ThemeTokens:
    """CSS custom properties a page may reference for its backend."""

    code_bg: str
    code_fg: str
    primary: str
    accent: str
    muted: str
    border: str

    def badge_style(self, color: str) -> str:
        return (
            f"background: {self.code_bg}; color: {color}; border: 1px solid {self.border}; "
            "border-radius: 0.2rem; padding: 0 0.4em; font-size: 0.75em"
        )


_MKDOCS_TOKENS = ThemeTokens(
    code_bg="var(--md-code-bg-color)",
    code_fg="var(--md-code-fg-color)",
    primary="var(--md-primary-fg-color)",
    accent="var(--md-accent-fg-color)",
    muted="var(--md-default-fg-color--light)",
    border="var(--md-default-fg-color--lightest)",
)

_MDBOOK_TOKENS = ThemeTokens(
    code_bg="var(--code-bg)",
    code_fg="var(--inline-code-color)",
    primary="var(--links)",
    accent="var(--links)",
    muted="var(--fg)",
    border="var(--quote-border)",
)


class Backend(str, Enum):
    MKDOCS_MATERIAL = "mkdocs-material"
    MDBOOK = "mdbook"

    @classmethod
    def parse(cls, value: "str | Backend | None") -> "Backend":
        """Accept the enum, a canonical name or one of the common aliases."""
        if value is None:
            return cls.MKDOCS_MATERIAL
        if isinstance(value, Backend):
            return value
        normalized = value.strip().lower()
        try:
            return _ALIASES[normalized]
        except KeyError:
            options = ", ".join(sorted(_ALIASES))
            raise ValueError(f"Unknown backend {value!r} (expected one of: {options})") from None

    @property
    def tokens(self) -> ThemeTokens:
        return _MKDOCS_TOKENS if self is Backend.MKDOCS_MATERIAL else _MDBOOK_TOKENS

    @property
    def content_dir(self) -> str:
        return "docs" if self is Backend.MKDOCS_MATERIAL else "src"

    @property
    def site_config(self) -> str:
        """File whose presence marks an output directory as a site root."""
        return "mkdocs.yml" if self is Backend.MKDOCS_MATERIAL else "book.toml"

    @property
    def nav_file(self) -> str:
        return "_nav.yml" if self is Backend.MKDOCS_MATERIAL else "SUMMARY.md"

    def heading(self, level: int, text: str, anchor: str) -> str:
        """Return a heading line carrying ``anchor`` in the backend's syntax."""
        marks = "#" * level
        if self is Backend.MKDOCS_MATERIAL:
            return f"{marks} {text} {{ #{anchor} }}"
        return f'<a id="{anchor}"></a>\n\n{marks} {text}'


_ALIASES: Dict[str, Backend] = {
    "mkdocs-material": Backend.MKDOCS_MATERIAL,
    "mkdocs_material": Backend.MKDOCS_MATERIAL,
    "material": Backend.MKDOCS_MATERIAL,
    "mkdocs": Backend.MKDOCS_MATERIAL,
    "mdbook": Backend.MDBOOK,
    "md-book": Backend.MDBOOK,
    "md_book": Backend.MDBOOK,
}


__all__ = ["Backend", "SEMANTIC_COLORS", "ThemeTokens"]
