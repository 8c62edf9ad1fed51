"""Docstring section parsing for Google and NumPy style docstrings."""

from __future__ import annotations

import inspect
import re
import textwrap
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional, Tuple

from ..models import Docstring

_SECTION_ALIASES = {
    "args": "args",
    "arguments": "args",
    "parameters": "args",
    "params": "args",
    "returns": "returns",
    "return": "returns",
    "yields": "returns",
    "raises": "raises",
    "raise": "raises",
    "exceptions": "raises",
    "example": "examples",
    "examples": "examples",
}

_GOOGLE_HEADER = re.compile(r"^([A-Za-z][A-Za-z ]{0,40}):\s*$")
_NUMPY_UNDERLINE = re.compile(r"^\s*-{3,}\s*$")
_GOOGLE_ENTRY = re.compile(r"^(\*{0,2}[A-Za-z_][\w.]*)\s*(?:\(([^)]*)\))?\s*:\s*(.*)$")
_NUMPY_ENTRY = re.compile(r"^(\*{0,2}[A-Za-z_][\w.]*)\s*(?::\s*(.*))?$")
_RAISES_ENTRY = re.compile(r"^([A-Za-z_][\w.]*)\s*:\s*(.*)$")
_RST_FIELD = re.compile(r"^\s*(:(param|type|returns?|rtype|raises?)\b|@(param|return|raise))")


@dataclass
class _Section:
    header: str
    key: Optional[str]
    lines: List[str] = field(default_factory=list)
    numpy: bool = False
    underline: str = ""


@lru_cache(maxsize=2048)
def parse_docstring(raw: str) -> Docstring:
    """Split ``raw`` into summary, description, args, returns, raises and examples.

    The result depends only on ``raw``; parsing the same text twice yields
    equal objects.
    """
    text = inspect.cleandoc(raw) if raw else ""
    if not text.strip():
        return Docstring(raw=raw)

    lines = text.splitlines()
    if any(_RST_FIELD.match(line) for line in lines):
        return Docstring(raw=raw, description=text)

    preamble, sections = _split_sections(lines)
    summary, description = _summary_and_description(preamble)
    extra: List[str] = []
    args: List[Tuple[str, str]] = []
    raises: List[Tuple[str, str]] = []
    returns: List[str] = []
    examples: List[str] = []

    for section in sections:
        if section.key is None:
            extra.append(_verbatim(section))
        elif section.key == "args":
            args.extend(_parse_entries(section, _GOOGLE_ENTRY, _NUMPY_ENTRY))
        elif section.key == "raises":
            raises.extend(_parse_entries(section, _RAISES_ENTRY, _NUMPY_ENTRY))
        elif section.key == "returns":
            body = " ".join(line.strip() for line in section.lines if line.strip())
            if body:
                returns.append(body)
        elif section.key == "examples":
            block = textwrap.dedent("\n".join(section.lines)).strip("\n")
            if block.strip():
                examples.append(block)

    if extra:
        description = "\n\n".join(part for part in [description, *extra] if part)

    return Docstring(
        raw=raw,
        summary=summary,
        description=description or None,
        args=tuple(args),
        returns=" ".join(returns) or None,
        raises=tuple(raises),
        examples=tuple(examples),
    )


def _split_sections(lines: List[str]) -> Tuple[List[str], List[_Section]]:
    preamble: List[str] = []
    sections: List[_Section] = []
    current: Optional[_Section] = None
    index = 0
    while index < len(lines):
        line = lines[index]
        header = _header_at(lines, index)
        if header is not None:
            name, numpy = header
            current = _Section(
                header=name,
                key=_SECTION_ALIASES.get(name.strip().lower()),
                numpy=numpy,
                underline=lines[index + 1].strip() if numpy else "",
            )
            sections.append(current)
            index += 2 if numpy else 1
            continue
        if current is None:
            preamble.append(line)
        else:
            current.lines.append(line)
        index += 1
    for section in sections:
        while section.lines and not section.lines[-1].strip():
            section.lines.pop()
        if not section.numpy:
            section.lines = textwrap.dedent("\n".join(section.lines)).splitlines()
    return preamble, sections


def _header_at(lines: List[str], index: int) -> Optional[Tuple[str, bool]]:
    line = lines[index]
    if not line or line[0].isspace():
        return None
    if index + 1 < len(lines) and _NUMPY_UNDERLINE.match(lines[index + 1]) and line.strip():
        if not _NUMPY_UNDERLINE.match(line):
            return line.strip(), True
    match = _GOOGLE_HEADER.match(line)
    if match is None:
        return None
    name = match.group(1)
    # Unknown headers only count when an indented block follows.
    if name.strip().lower() in _SECTION_ALIASES:
        return name, False
    if index + 1 < len(lines) and lines[index + 1][:1].isspace() and lines[index + 1].strip():
        return name, False
    return None


def _summary_and_description(preamble: List[str]) -> Tuple[Optional[str], Optional[str]]:
    while preamble and not preamble[0].strip():
        preamble = preamble[1:]
    summary_lines: List[str] = []
    index = 0
    while index < len(preamble) and preamble[index].strip():
        summary_lines.append(preamble[index].strip())
        index += 1
    description = "\n".join(preamble[index:]).strip("\n")
    summary = " ".join(summary_lines) or None
    return summary, textwrap.dedent(description).strip() or None


def _parse_entries(section: _Section, google: re.Pattern, numpy: re.Pattern) -> List[Tuple[str, str]]:
    entries: List[Tuple[str, List[str]]] = []
    for line in section.lines:
        if not line.strip():
            continue
        top_level = not line[0].isspace()
        if top_level:
            pattern = numpy if section.numpy else google
            match = pattern.match(line.strip())
            if match is not None:
                head = match.group(1)
                tail = match.groups()[-1] if not section.numpy else None
                entries.append((head, [tail] if tail else []))
                continue
        if entries:
            entries[-1][1].append(line.strip())
        else:
            entries.append((line.strip(), []))
    return [(name, " ".join(parts).strip()) for name, parts in entries]


def _verbatim(section: _Section) -> str:
    header = section.header if section.numpy else f"{section.header}:"
    parts = [header]
    if section.numpy:
        parts.append(section.underline)
        parts.extend(section.lines)
    else:
        parts.extend(f"    {line}" if line else "" for line in section.lines)
    return "\n".join(parts).strip("\n")


def first_line(docstring: Optional[Docstring]) -> str:
    """Return a one-line summary suitable for index listings."""
    if docstring is None:
        return ""
    if docstring.summary:
        return docstring.summary
    for line in (docstring.raw or "").strip().splitlines():
        if line.strip():
            return line.strip()
    return ""


__all__ = ["first_line", "parse_docstring"]
