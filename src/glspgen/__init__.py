"""
glspgen - GLSP diagram-editor scaffolding from Langium grammars.

Turns a parsed grammar (interfaces, properties, type aliases) into a
render-ready template context and feeds it through the common, server
and browser template strategies.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _metadata_version

from .core.errors import (
    GlspGenError,
    OutputConflictError,
    ParseError,
    PluginError,
    StructuralGrammarError,
    TemplateNotFoundError,
    TemplateRenderError,
)
from .core.grammar import GrammarInterface, GrammarModel, Property, TypeAlias


def _get_version() -> str:
    try:
        return _metadata_version("glspgen")
    except PackageNotFoundError:
        return "0.0.0+unknown"


__version__ = _get_version()

__all__ = [
    "__version__",
    "GlspGenError",
    "ParseError",
    "StructuralGrammarError",
    "TemplateNotFoundError",
    "TemplateRenderError",
    "PluginError",
    "OutputConflictError",
    "GrammarModel",
    "GrammarInterface",
    "Property",
    "TypeAlias",
]
