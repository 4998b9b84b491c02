"""
Common strategy: model types and protocol code shared by server and browser.
"""

from __future__ import annotations

from typing import Any

from ..context.models import TemplateContext
from ..core.grammar import GrammarModel
from .base import TemplateSpec, TemplateStrategy


class CommonStrategy(TemplateStrategy):
    """Renders ``common/`` templates."""

    name = "common"
    categories = ("common", "shared")
    templates = (
        TemplateSpec("model-types", "model-types.ts", required=True),
        TemplateSpec("protocol", "protocol.ts"),
        TemplateSpec("actions", "actions.ts"),
        TemplateSpec("utils", "utils.ts"),
        TemplateSpec("constants", "constants.ts"),
        TemplateSpec("readme", "README.md", gate="generate_docs"),
    )

    def build_variables(self, grammar: GrammarModel, context: TemplateContext) -> dict[str, Any]:
        return {
            "element_type_ids": [
                (info.name, info.type_id) for info in context.interfaces
            ],
            "literal_types": [t for t in context.types if t.is_literal_union],
            "alias_types": [t for t in context.types if not t.is_literal_union],
        }
