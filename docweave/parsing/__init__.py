"""Static parsing of modules, annotations and docstrings."""

from __future__ import annotations

from .docstrings import parse_docstring
from .source import SourceParser
from .types import format_type, parse_annotation

__all__ = ["SourceParser", "format_type", "parse_annotation", "parse_docstring"]
