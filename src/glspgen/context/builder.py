"""
Template context builder.

Turns a parsed grammar plus a generation config into the single
:class:`TemplateContext` every strategy renders from: resolved property
types, type hierarchy, node/edge classification, visual defaults and the
helper and partial tables.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

from .. import __version__
from ..config import GenerationConfig
from ..core.errors import ErrorContext, StructuralGrammarError
from ..core.grammar import (
    PRIMITIVE_TYPES,
    GrammarInterface,
    GrammarModel,
    InterfaceRef,
    PrimitiveType,
    Property,
    TypeAliasRef,
    TypeRef,
)
from ..core.validator import find_inheritance_cycles
from .classify import classify_interface, find_edge_endpoints
from .helpers import BUILTIN_HELPERS, humanize, to_kebab_case
from .models import (
    EdgeTypeInfo,
    InterfaceInfo,
    NodeTypeInfo,
    PortInfo,
    ResolvedProperty,
    TemplateContext,
    TypeInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "unknown"
GENERATOR_NAME = "glspgen"

# Reusable fragments available to every template through partial(name)
DEFAULT_PARTIALS: dict[str, str] = {
    "header": (
        "/*\n"
        " * Generated by {{ metadata.generator }} from the {{ grammar_name }} grammar.\n"
        " * Do not edit by hand; changes are overwritten on regeneration.\n"
        " */\n"
    ),
    "readme_header": "# {{ config.extension.display_name }}\n",
}

CIRCLE_NAME_HINTS = ("start", "initial", "end", "final")
DIAMOND_NAME_HINTS = ("decision", "choice", "gateway")


def default_shape(name: str) -> str:
    """
    Pick a node shape from the interface name.

    Examples:
        >>> default_shape("InitialState")
        'circle'
        >>> default_shape("Gateway")
        'diamond'
        >>> default_shape("Task")
        'rectangle'
    """
    lower = name.lower()
    if any(hint in lower for hint in CIRCLE_NAME_HINTS):
        return "circle"
    if any(hint in lower for hint in DIAMOND_NAME_HINTS):
        return "diamond"
    return "rectangle"


def _flag(annotations: Mapping[str, str], key: str) -> bool:
    return annotations.get(key, "true").strip().lower() != "false"


class ContextBuilder:
    """
    Builds template contexts.

    Example:
        builder = ContextBuilder(helpers={"shout": str.upper})
        context = builder.build(grammar, config)
    """

    def __init__(
        self,
        helpers: Mapping[str, Callable[..., Any]] | None = None,
        partials: Mapping[str, str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.helpers = dict(helpers or {})
        self.partials = dict(partials or {})
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def build(
        self,
        grammar: GrammarModel,
        config: GenerationConfig | Mapping[str, Any] | None = None,
    ) -> TemplateContext:
        """
        Build the context for one generation run.

        Args:
            grammar: Parsed grammar (read-only)
            config: Generation config, or a plain mapping of options

        Returns:
            Immutable template context

        Raises:
            StructuralGrammarError: On dangling references, circular
                inheritance or dual node/edge classification
        """
        if config is None:
            config = GenerationConfig()
        elif not isinstance(config, GenerationConfig):
            config = GenerationConfig.model_validate(dict(config))

        interfaces = {iface.name: iface for iface in grammar.interfaces}
        aliases = {alias.name for alias in grammar.types}

        self._check_supertypes(grammar, interfaces)
        ancestors = {name: self._ancestors(name, interfaces) for name in interfaces}
        own = {
            iface.name: tuple(self._resolve(iface, prop, interfaces, aliases) for prop in iface.properties)
            for iface in grammar.interfaces
        }

        for name in config.diagram.node_types + config.diagram.edge_types:
            if name not in interfaces:
                logger.warning("Configured type %s is not an interface of the grammar", name)

        infos: list[InterfaceInfo] = []
        for iface in grammar.interfaces:
            all_props = self._all_properties(iface.name, own, ancestors)
            kind = classify_interface(
                iface,
                all_props,
                ancestors,
                node_types=config.diagram.node_types,
                edge_types=config.diagram.edge_types,
            )
            infos.append(
                InterfaceInfo(
                    name=iface.name,
                    kind=kind,
                    type_id=f"{kind.value}:{iface.name.lower()}",
                    properties=own[iface.name],
                    all_properties=all_props,
                    super_types=iface.super_types,
                    ancestors=ancestors[iface.name],
                    annotations=MappingProxyType(dict(iface.annotations)),
                )
            )

        node_types = tuple(self._node_info(info, config) for info in infos if info.is_node)
        edge_types = tuple(self._edge_info(info, config, ancestors) for info in infos if info.is_edge)

        helpers = dict(BUILTIN_HELPERS)
        helpers.update(self.helpers)
        partials = dict(DEFAULT_PARTIALS)
        partials.update(self.partials)

        context = TemplateContext(
            project_name=grammar.project_name or grammar.grammar_name or DEFAULT_PROJECT_NAME,
            grammar=grammar,
            interfaces=tuple(infos),
            types=tuple(
                TypeInfo(
                    name=alias.name,
                    definition=alias.definition,
                    union_types=alias.union_types,
                    annotations=MappingProxyType(dict(alias.annotations)),
                )
                for alias in grammar.types
            ),
            node_types=node_types,
            edge_types=edge_types,
            type_hierarchy=MappingProxyType(ancestors),
            features=tuple(config.diagram.features.enabled()),
            config=MappingProxyType(config.to_context_dict()),
            metadata=MappingProxyType(
                {
                    "generated_at": self.clock().isoformat(),
                    "generator": GENERATOR_NAME,
                    "version": __version__,
                }
            ),
            helpers=MappingProxyType(helpers),
            partials=MappingProxyType(partials),
        )
        logger.debug(
            "Built context for %s: %d node types, %d edge types",
            context.project_name,
            len(node_types),
            len(edge_types),
        )
        return context

    def _check_supertypes(self, grammar: GrammarModel, interfaces: Mapping[str, GrammarInterface]) -> None:
        for iface in grammar.interfaces:
            for super_type in iface.super_types:
                if super_type not in interfaces:
                    raise StructuralGrammarError(
                        f"Interface '{iface.name}' extends unknown interface '{super_type}'",
                        ErrorContext(phase="validating", interface=iface.name),
                    )
        cycles = find_inheritance_cycles(grammar)
        if cycles:
            cycle = cycles[0]
            raise StructuralGrammarError(
                f"Circular inheritance: {' -> '.join(cycle)}",
                ErrorContext(phase="validating", interface=cycle[0]),
            )

    def _ancestors(self, name: str, interfaces: Mapping[str, GrammarInterface]) -> tuple[str, ...]:
        """All supertypes, nearest first, each listed once."""
        result: list[str] = []
        queue = list(interfaces[name].super_types)
        while queue:
            current = queue.pop(0)
            if current in result:
                continue
            result.append(current)
            queue.extend(interfaces[current].super_types)
        return tuple(result)

    def _resolve(
        self,
        iface: GrammarInterface,
        prop: Property,
        interfaces: Mapping[str, GrammarInterface],
        aliases: set[str],
    ) -> ResolvedProperty:
        type_ref: TypeRef
        if prop.type in interfaces:
            type_ref = InterfaceRef(name=prop.type)
        elif prop.type in aliases:
            type_ref = TypeAliasRef(name=prop.type)
        elif prop.type in PRIMITIVE_TYPES:
            type_ref = PrimitiveType(name=prop.type)
        else:
            raise StructuralGrammarError(
                f"Property '{iface.name}.{prop.name}' references unknown type '{prop.type}'",
                ErrorContext(phase="validating", interface=iface.name, property=prop.name),
            )
        return ResolvedProperty(
            name=prop.name,
            type=prop.type,
            type_ref=type_ref,
            optional=prop.optional,
            array=prop.array,
            cross_reference=prop.cross_reference,
            declared_in=iface.name,
        )

    def _all_properties(
        self,
        name: str,
        own: Mapping[str, tuple[ResolvedProperty, ...]],
        ancestors: Mapping[str, tuple[str, ...]],
    ) -> tuple[ResolvedProperty, ...]:
        """Inherited properties (root first) followed by own; redeclarations replace in place."""
        merged: dict[str, ResolvedProperty] = {}
        for ancestor in reversed(ancestors[name]):
            for prop in own[ancestor]:
                merged[prop.name] = prop
        for prop in own[name]:
            merged[prop.name] = prop
        return tuple(merged.values())

    def _node_info(self, info: InterfaceInfo, config: GenerationConfig) -> NodeTypeInfo:
        annotations = info.annotations
        defaults = config.styling.node_defaults
        ports: tuple[PortInfo, ...] = ()
        if config.diagram.features.ports:
            kebab = to_kebab_case(info.name)
            ports = (PortInfo(id=f"{kebab}-in", kind="in"), PortInfo(id=f"{kebab}-out", kind="out"))
        return NodeTypeInfo(
            interface=info,
            label=annotations.get("label", humanize(info.name)),
            shape=annotations.get("shape", default_shape(info.name)),
            width=defaults.width,
            height=defaults.height,
            corner_radius=defaults.corner_radius,
            ports=ports,
            icon=annotations.get("icon"),
            category=annotations.get("category"),
            resizable=_flag(annotations, "resizable"),
            deletable=_flag(annotations, "deletable"),
            moveable=_flag(annotations, "moveable"),
        )

    def _edge_info(
        self,
        info: InterfaceInfo,
        config: GenerationConfig,
        ancestors: Mapping[str, tuple[str, ...]],
    ) -> EdgeTypeInfo:
        endpoints = find_edge_endpoints(info.all_properties, ancestors)
        if endpoints is None:
            # Explicit edges without a recognizable pair use their first two references
            refs = [p for p in info.all_properties if p.is_reference and not p.array]
            endpoints = (refs[0], refs[1]) if len(refs) >= 2 else None
        source, target = endpoints if endpoints else (None, None)
        return EdgeTypeInfo(
            interface=info,
            label=info.annotations.get("label", humanize(info.name)),
            routing=config.diagram.features.routing.value,
            source_property=source.name if source else None,
            target_property=target.name if target else None,
            source_type=source.type if source else None,
            target_type=target.type if target else None,
            deletable=_flag(info.annotations, "deletable"),
        )
