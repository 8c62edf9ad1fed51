"""Link validation for the emitted page set."""

from __future__ import annotations

import posixpath
import re
from pathlib import PurePosixPath
from typing import AbstractSet, List

_FENCE = re.compile(r"^\s*(```|~~~)")


class LinkValidator:
    """Checks that relative links point at pages emitted by the same run."""

    _LINK_PATTERN = re.compile(r"\[([^\]]*)\]\(([^)\s]*)\)")

    def validate(self, markdown: str, *, page: PurePosixPath, pages: AbstractSet[PurePosixPath]) -> List[str]:
        """Return a list of issues discovered in the provided markdown."""

        issues: List[str] = []
        for line in _outside_code(markdown):
            for match in self._LINK_PATTERN.finditer(line):
                target = match.group(2).strip()
                if not target:
                    issues.append(f"Empty link target for {match.group(1)!r}")
                    continue
                if target.startswith(("http://", "https://", "mailto:", "#")):
                    continue
                cleaned = target.split("#", 1)[0].split("?", 1)[0]
                if not cleaned:
                    continue
                resolved = PurePosixPath(posixpath.normpath(posixpath.join(page.parent.as_posix(), cleaned)))
                if resolved not in pages:
                    issues.append(f"Link target not found: {target}")
        return issues


def _outside_code(markdown: str) -> List[str]:
    lines: List[str] = []
    in_code = False
    for line in markdown.splitlines():
        if _FENCE.match(line):
            in_code = not in_code
            continue
        if not in_code:
            lines.append(line)
    return lines


__all__ = ["LinkValidator"]
