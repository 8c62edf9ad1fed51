"""Logging utilities for docweave runs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from .diagnostics import Diagnostic, Severity

_LOGGER_NAME = "docweave"

_LEVEL_BY_SEVERITY = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the docweave hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, quiet: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Install console (and optional file) handlers on the docweave logger."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter("[docweave] %(levelname)s %(message)s"))
    logger.addHandler(console)

    if log_file is not None:
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(level)
        sink.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(sink)

    return logger


def report_diagnostics(
    diagnostics: Iterable[Diagnostic], logger: logging.Logger | None = None
) -> dict[Severity, int]:
    """Log every diagnostic once, in order, followed by a per-severity summary."""
    logger = logger or get_logger("diagnostics")
    counts = {severity: 0 for severity in Severity}
    for item in diagnostics:
        counts[item.severity] += 1
        logger.log(_LEVEL_BY_SEVERITY[item.severity], "%s", item.format())
    total = sum(counts.values())
    if total:
        logger.info(
            "%d diagnostic(s): %d error(s), %d warning(s), %d note(s)",
            total,
            counts[Severity.ERROR],
            counts[Severity.WARNING],
            counts[Severity.INFO],
        )
    return counts


__all__ = ["configure_logging", "get_logger", "report_diagnostics"]
