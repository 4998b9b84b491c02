"""
Node/edge classification of grammar interfaces.

One rule is used everywhere an interface's kind matters. An interface is
edge-like when, counting inherited properties, it has at least two
single-valued reference properties and either

- one is named with a source token (``source``, ``from``) and a
  different one with a target token (``target``, ``to``), or
- two of them reference the same or inheritance-compatible interface.

Anything else is node-like. Explicit classification (``@glspType``
annotation or ``diagram.node_types``/``diagram.edge_types``) wins over the
heuristic; an interface explicitly classified both ways is an error.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence

from ..core.errors import ErrorContext, StructuralGrammarError
from ..core.grammar import GrammarInterface
from .models import ElementKind, ResolvedProperty

logger = logging.getLogger(__name__)

SOURCE_TOKENS = frozenset({"source", "from"})
TARGET_TOKENS = frozenset({"target", "to"})

GLSP_TYPE_ANNOTATION = "glspType"


def name_tokens(name: str) -> set[str]:
    """
    Split a camelCase or snake_case name into lower-case tokens.

    Examples:
        >>> sorted(name_tokens("sourceNode"))
        ['node', 'source']
        >>> sorted(name_tokens("to_state"))
        ['state', 'to']
    """
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    return {token.lower() for token in re.split(r"[_\-\s]+", spaced) if token}


def _compatible(a: str, b: str, ancestors: Mapping[str, Sequence[str]]) -> bool:
    return a == b or a in ancestors.get(b, ()) or b in ancestors.get(a, ())


def find_edge_endpoints(
    properties: Sequence[ResolvedProperty],
    ancestors: Mapping[str, Sequence[str]],
) -> tuple[ResolvedProperty, ResolvedProperty] | None:
    """
    Return the (source, target) properties of an edge-like interface.

    Args:
        properties: All properties of the interface, inherited ones included
        ancestors: Interface name to its supertypes

    Returns:
        The endpoint pair, or None if the interface is not edge-like
    """
    candidates = [p for p in properties if p.is_reference and not p.array]
    if len(candidates) < 2:
        return None

    source = next((p for p in candidates if name_tokens(p.name) & SOURCE_TOKENS), None)
    if source is not None:
        target = next(
            (p for p in candidates if p is not source and name_tokens(p.name) & TARGET_TOKENS),
            None,
        )
        if target is not None:
            return source, target

    for i, first in enumerate(candidates):
        for second in candidates[i + 1 :]:
            if _compatible(first.type, second.type, ancestors):
                return first, second
    return None


def explicit_kind(
    iface: GrammarInterface,
    node_types: Sequence[str],
    edge_types: Sequence[str],
) -> ElementKind | None:
    """
    Classification requested by annotation or config, if any.

    Raises:
        StructuralGrammarError: If the interface is requested as both kinds
    """
    requested: set[ElementKind] = set()

    annotated = iface.annotations.get(GLSP_TYPE_ANNOTATION)
    if annotated is not None:
        try:
            requested.add(ElementKind(annotated.strip().lower()))
        except ValueError:
            logger.warning(
                "Ignoring @%s %r on interface %s (expected node or edge)",
                GLSP_TYPE_ANNOTATION,
                annotated,
                iface.name,
            )
    if iface.name in node_types:
        requested.add(ElementKind.NODE)
    if iface.name in edge_types:
        requested.add(ElementKind.EDGE)

    if len(requested) > 1:
        raise StructuralGrammarError(
            f"Interface '{iface.name}' is classified as both node and edge",
            ErrorContext(phase="validating", interface=iface.name),
        )
    return requested.pop() if requested else None


def classify_interface(
    iface: GrammarInterface,
    properties: Sequence[ResolvedProperty],
    ancestors: Mapping[str, Sequence[str]],
    node_types: Sequence[str] = (),
    edge_types: Sequence[str] = (),
) -> ElementKind:
    """Classify one interface as node-like or edge-like."""
    kind = explicit_kind(iface, node_types, edge_types)
    if kind is not None:
        return kind
    if find_edge_endpoints(properties, ancestors) is not None:
        return ElementKind.EDGE
    return ElementKind.NODE
