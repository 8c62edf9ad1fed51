"""Backend-targeted markdown rendering."""

from __future__ import annotations

from .backends import Backend, ThemeTokens
from .layout import Layout, PageKind, PageTarget, RenderSettings
from .renderer import RenderedPage, Renderer, create_environment

__all__ = [
    "Backend",
    "Layout",
    "PageKind",
    "PageTarget",
    "RenderSettings",
    "RenderedPage",
    "Renderer",
    "ThemeTokens",
    "create_environment",
]
