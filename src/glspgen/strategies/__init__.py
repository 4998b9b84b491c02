"""
Template strategies.

Strategies run in a fixed order, common before server before browser,
because server and browser code import the common model types.
"""

from __future__ import annotations

from ..rendering.engine import TemplateEngine
from .base import PerTypeTemplateSpec, TemplateSpec, TemplateStrategy
from .browser import BrowserStrategy
from .common import CommonStrategy
from .server import ServerStrategy

STRATEGY_ORDER: tuple[type[TemplateStrategy], ...] = (CommonStrategy, ServerStrategy, BrowserStrategy)


def default_strategies(engine: TemplateEngine) -> list[TemplateStrategy]:
    """Instantiate the built-in strategies in run order."""
    return [strategy_cls(engine) for strategy_cls in STRATEGY_ORDER]


__all__ = [
    "BrowserStrategy",
    "CommonStrategy",
    "PerTypeTemplateSpec",
    "STRATEGY_ORDER",
    "ServerStrategy",
    "TemplateSpec",
    "TemplateStrategy",
    "default_strategies",
]
