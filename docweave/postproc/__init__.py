"""Checks and normalization applied to rendered pages."""

from __future__ import annotations

from .links import LinkValidator
from .lint import MarkdownLinter

__all__ = ["LinkValidator", "MarkdownLinter"]
