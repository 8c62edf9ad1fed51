"""Diagnostic taxonomy and fatal error types for render runs."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, List, Optional


class FatalIOError(RuntimeError):
    """Raised when the project root or output directory is unusable."""


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class DiagnosticKind(str, Enum):
    PARSE_ERROR = "ParseError"
    DEGRADED_SYMBOL = "DegradedSymbol"
    UNRESOLVED_REFERENCE = "UnresolvedReference"
    CONFLICTING_PROVENANCE = "ConflictingProvenance"
    READ_ERROR = "ReadError"
    MISSING_DOCSTRING = "MissingDocstring"
    LOW_COVERAGE = "LowCoverage"
    BROKEN_LINK = "BrokenLink"


_DEFAULT_SEVERITY = {
    DiagnosticKind.PARSE_ERROR: Severity.ERROR,
    DiagnosticKind.DEGRADED_SYMBOL: Severity.WARNING,
    DiagnosticKind.UNRESOLVED_REFERENCE: Severity.WARNING,
    DiagnosticKind.CONFLICTING_PROVENANCE: Severity.INFO,
    DiagnosticKind.READ_ERROR: Severity.WARNING,
    DiagnosticKind.MISSING_DOCSTRING: Severity.WARNING,
    DiagnosticKind.LOW_COVERAGE: Severity.WARNING,
    DiagnosticKind.BROKEN_LINK: Severity.ERROR,
}


@dataclass(frozen=True)
class Diagnostic:
    """A single non-fatal finding recorded during a run."""

    kind: DiagnosticKind
    message: str
    severity: Severity
    path: Optional[str] = None
    line: Optional[int] = None
    symbol: Optional[str] = None

    def location(self) -> str:
        if self.path is None:
            return self.symbol or "<project>"
        if self.line is None:
            return self.path
        return f"{self.path}:{self.line}"

    def format(self) -> str:
        return f"{self.location()}: {self.kind.value}: {self.message}"

    def sort_key(self) -> tuple:
        return (self.path or "", self.line or 0, self.kind.value, self.symbol or "", self.message)


class Diagnostics:
    """Thread-safe accumulator shared by every phase of a run.

    Parser workers report into the same collector concurrently, so appends
    are serialized. Reading returns a sorted snapshot so reports are stable
    regardless of worker scheduling.
    """

    def __init__(self) -> None:
        self._items: List[Diagnostic] = []
        self._lock = threading.Lock()

    def add(
        self,
        kind: DiagnosticKind,
        message: str,
        *,
        path: Path | str | None = None,
        line: Optional[int] = None,
        symbol: Optional[str] = None,
        severity: Optional[Severity] = None,
    ) -> Diagnostic:
        diagnostic = Diagnostic(
            kind=kind,
            message=message,
            severity=severity or _DEFAULT_SEVERITY[kind],
            path=Path(path).as_posix() if path is not None else None,
            line=line,
            symbol=symbol,
        )
        with self._lock:
            self._items.append(diagnostic)
        return diagnostic

    def extend(self, items: Iterable[Diagnostic]) -> None:
        with self._lock:
            self._items.extend(items)

    def items(self) -> List[Diagnostic]:
        with self._lock:
            snapshot = list(self._items)
        return sorted(snapshot, key=Diagnostic.sort_key)

    def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [item for item in self.items() if item.kind is kind]

    def count(self, severity: Severity) -> int:
        return sum(1 for item in self.items() if item.severity is severity)

    @property
    def has_errors(self) -> bool:
        return self.count(Severity.ERROR) > 0

    @property
    def has_warnings(self) -> bool:
        return self.count(Severity.WARNING) > 0

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


__all__ = [
    "Diagnostic",
    "DiagnosticKind",
    "Diagnostics",
    "FatalIOError",
    "Severity",
]
