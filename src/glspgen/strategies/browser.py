"""
Browser strategy: diagram configuration, views and client contributions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..context.models import ElementKind, NodeTypeInfo, TemplateContext
from ..core.grammar import GrammarModel
from .base import PerTypeTemplateSpec, TemplateSpec, TemplateStrategy

STANDARD_COMMANDS: tuple[tuple[str, str], ...] = (
    ("fit", "Fit to Screen"),
    ("center", "Center"),
    ("export", "Export as SVG"),
)

CUSTOM_COMMAND_HINTS = ("command", "action")
DEFAULT_PALETTE_GROUP = "Nodes"


@dataclass(frozen=True)
class Command:
    id: str
    label: str
    custom: bool = False


@dataclass(frozen=True)
class PaletteGroup:
    id: str
    label: str
    nodes: tuple[NodeTypeInfo, ...]


class BrowserStrategy(TemplateStrategy):
    """Renders ``browser/`` templates and one view per node type."""

    name = "browser"
    categories = ("browser", "client")
    templates = (
        TemplateSpec("frontend-module", "frontend-module.ts", required=True),
        TemplateSpec("diagram-configuration", "diagram-configuration.ts"),
        TemplateSpec("command-contribution", "command-contribution.ts"),
        TemplateSpec("tool-palette-contribution", "tool-palette-contribution.ts"),
        TemplateSpec("property-palette-contribution", "property-palette-contribution.ts"),
        TemplateSpec("context-menu-contribution", "context-menu-contribution.ts"),
        TemplateSpec("model-source", "model-source.ts"),
        TemplateSpec("views", "views.ts"),
        TemplateSpec("di-config", "di.config.ts"),
        TemplateSpec("sample-model", "examples/sample-model.json", gate="include_examples"),
    )
    per_type_templates = (
        PerTypeTemplateSpec("node-view", "views/{kebab}-view.tsx", ElementKind.NODE),
    )

    def build_variables(self, grammar: GrammarModel, context: TemplateContext) -> dict[str, Any]:
        return {
            "commands": self.extract_commands(grammar, context),
            "palette_groups": self.palette_groups(context),
        }

    def extract_commands(self, grammar: GrammarModel, context: TemplateContext) -> list[Command]:
        """Standard diagram commands followed by grammar rules named like commands."""
        humanize = context.helpers["humanize"]
        to_kebab = context.helpers["toKebabCase"]
        commands = [Command(command_id, label) for command_id, label in STANDARD_COMMANDS]
        for rule in grammar.rules:
            lower = rule.lower()
            if any(hint in lower for hint in CUSTOM_COMMAND_HINTS):
                commands.append(Command(to_kebab(rule), humanize(rule), custom=True))
        return commands

    def palette_groups(self, context: TemplateContext) -> list[PaletteGroup]:
        """Node types grouped by their ``@category`` annotation, first-seen order."""
        groups: dict[str, list[NodeTypeInfo]] = {}
        for node in context.node_types:
            groups.setdefault(node.category or DEFAULT_PALETTE_GROUP, []).append(node)
        to_kebab = context.helpers["toKebabCase"]
        return [
            PaletteGroup(id=to_kebab(label.replace(" ", "")), label=label, nodes=tuple(nodes))
            for label, nodes in groups.items()
        ]
