"""
Server strategy: GLSP server module, model factory and operation handlers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..context.models import EdgeTypeInfo, ElementKind, NodeTypeInfo, ResolvedProperty, TemplateContext
from ..core.grammar import GrammarModel, TypeAliasRef
from .base import PerTypeTemplateSpec, TemplateSpec, TemplateStrategy

# Operations every GLSP server handles
STANDARD_OPERATIONS: tuple[tuple[str, str], ...] = (
    ("CreateNode", "create"),
    ("CreateEdge", "create"),
    ("DeleteElement", "delete"),
    ("ChangeContainer", "move"),
    ("ChangeBounds", "resize"),
    ("ReconnectEdge", "reconnect"),
    ("LayoutOperation", "layout"),
)

CUSTOM_OPERATION_HINTS = ("operation", "command")


@dataclass(frozen=True)
class Operation:
    name: str
    type: str


@dataclass(frozen=True)
class PropertyDefault:
    """Initial value a generated handler assigns to a property."""

    name: str
    value: str


class ServerStrategy(TemplateStrategy):
    """Renders ``server/`` templates and one create handler per element type."""

    name = "server"
    categories = ("server", "backend")
    templates = (
        TemplateSpec("server-module", "server-module.ts", required=True),
        TemplateSpec("model-factory", "model-factory.ts"),
        TemplateSpec("model-serializer", "model-serializer.ts"),
        TemplateSpec("command-handler", "command-handler.ts"),
        TemplateSpec("operation-handler", "operation-handler.ts"),
        TemplateSpec("model-validator", "model-validator.ts"),
        TemplateSpec("layout-engine", "layout-engine.ts"),
        TemplateSpec("model-index", "model-index.ts"),
        TemplateSpec("di-config", "di.config.ts"),
        TemplateSpec("model-factory-spec", "__tests__/model-factory.spec.ts", gate="generate_tests"),
    )
    per_type_templates = (
        PerTypeTemplateSpec("node-handler", "handlers/create-{kebab}-handler.ts", ElementKind.NODE),
        PerTypeTemplateSpec("edge-handler", "handlers/create-{kebab}-handler.ts", ElementKind.EDGE),
    )

    def build_variables(self, grammar: GrammarModel, context: TemplateContext) -> dict[str, Any]:
        return {
            "operations": self.extract_operations(grammar),
            "handler_defaults": {
                **{node.name: self.property_defaults(node, context) for node in context.node_types},
                **{edge.name: self.property_defaults(edge, context) for edge in context.edge_types},
            },
        }

    def extract_operations(self, grammar: GrammarModel) -> list[Operation]:
        """Standard GLSP operations followed by grammar rules named like operations."""
        operations = [Operation(name, kind) for name, kind in STANDARD_OPERATIONS]
        for rule in grammar.rules:
            lower = rule.lower()
            if any(hint in lower for hint in CUSTOM_OPERATION_HINTS):
                operations.append(Operation(rule, "custom"))
        return operations

    def property_defaults(
        self,
        element: NodeTypeInfo | EdgeTypeInfo,
        context: TemplateContext,
    ) -> list[PropertyDefault]:
        """
        Initial values for the value properties a create handler fills in.

        References and edge endpoints are set from the operation, not
        defaulted.
        """
        default_value = context.helpers["defaultValue"]
        skip: set[str] = set()
        if isinstance(element, EdgeTypeInfo):
            skip.update(p for p in (element.source_property, element.target_property) if p)

        defaults: list[PropertyDefault] = []
        for prop in element.properties:
            if prop.is_reference or prop.name in skip:
                continue
            defaults.append(PropertyDefault(prop.name, self._default_for(prop, context, default_value)))
        return defaults

    def _default_for(self, prop: ResolvedProperty, context: TemplateContext, default_value: Any) -> str:
        if not prop.array and isinstance(prop.type_ref, TypeAliasRef):
            alias = next((t for t in context.types if t.name == prop.type), None)
            if alias is not None and alias.is_literal_union:
                return f"'{alias.union_types[0]}'"
        return str(default_value(prop.default_type))
