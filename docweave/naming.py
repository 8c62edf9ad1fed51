"""Helpers for dotted module names and the anchors derived from them."""

from __future__ import annotations

from typing import Optional


def parent_package(qualname: str, *, is_package: bool = False) -> str:
    """Return the package a module's relative imports are anchored to."""
    if is_package:
        return qualname
    return qualname.rpartition(".")[0]


def resolve_relative(module: str, is_package: bool, level: int, target: Optional[str]) -> Optional[str]:
    """Turn ``from ..x import y`` style references into absolute module names.

    Returns ``None`` when the relative import climbs above the top level.
    """
    if level == 0:
        return target or None
    package = parent_package(module, is_package=is_package)
    parts = package.split(".") if package else []
    climb = level - 1
    if climb > len(parts):
        return None
    base = parts[: len(parts) - climb]
    if target:
        base.append(target)
    return ".".join(base) or None


def join(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


def anchor_id(qualname: str) -> str:
    return qualname.replace(".", "-")


def is_private(name: str) -> bool:
    return name.startswith("_") and not (name.startswith("__") and name.endswith("__"))


__all__ = ["anchor_id", "is_private", "join", "parent_package", "resolve_relative"]
