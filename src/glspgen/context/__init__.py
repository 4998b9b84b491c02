"""
Template context derivation.

Turns a grammar model plus configuration into the data every template
strategy renders from.
"""

from .builder import ContextBuilder, default_shape
from .classify import classify_interface, find_edge_endpoints
from .helpers import BUILTIN_HELPERS
from .models import (
    EdgeTypeInfo,
    ElementKind,
    InterfaceInfo,
    NodeTypeInfo,
    PortInfo,
    ResolvedProperty,
    TemplateContext,
    TypeInfo,
)

__all__ = [
    "BUILTIN_HELPERS",
    "ContextBuilder",
    "EdgeTypeInfo",
    "ElementKind",
    "InterfaceInfo",
    "NodeTypeInfo",
    "PortInfo",
    "ResolvedProperty",
    "TemplateContext",
    "TypeInfo",
    "classify_interface",
    "default_shape",
    "find_edge_endpoints",
]
