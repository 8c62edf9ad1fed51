"""Normalization pass applied to every generated page."""

from __future__ import annotations

from typing import List


class MarkdownLinter:
    """Normalizes newlines, blank runs, heading spacing and the final newline."""

    def lint(self, markdown: str) -> str:
        normalized = markdown.replace("\r\n", "\n").replace("\r", "\n")
        cleaned: List[str] = []
        fence: str | None = None

        for line in normalized.split("\n"):
            stripped = line.rstrip()
            marker = stripped.lstrip()[:3]
            if marker in {"```", "~~~"} and (fence is None or marker == fence):
                if fence is None:
                    if cleaned and cleaned[-1] != "":
                        cleaned.append("")
                    fence = marker
                else:
                    fence = None
                cleaned.append(stripped)
                continue

            if fence is None:
                if stripped.startswith("#") and cleaned and cleaned[-1] != "":
                    cleaned.append("")
                if not stripped:
                    if cleaned and cleaned[-1] == "":
                        continue
                    if cleaned:
                        cleaned.append("")
                    continue
                if cleaned and cleaned[-1].startswith("#") and not stripped.startswith("#"):
                    cleaned.append("")

            cleaned.append(stripped)

        while cleaned and cleaned[-1] == "":
            cleaned.pop()

        return "\n".join(cleaned) + "\n"


__all__ = ["MarkdownLinter"]
