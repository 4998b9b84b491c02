"""
Built-in plugins.

- metrics: per-hook timings and output size, stored in run metadata
- type-safety: type analysis plus runtime type guards for the model types
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping

from ..core.errors import ErrorContext, PluginError
from ..core.grammar import PRIMITIVE_TYPES, GrammarModel
from .base import GenerationContext, HookHandler, HookName, Plugin

logger = logging.getLogger(__name__)

TYPE_GUARDS_PATH = "common/type-guards.ts"
VALIDATORS_PATH = "common/validators.ts"


class MetricsPlugin(Plugin):
    """Times each hook boundary and counts emitted files."""

    name = "metrics"
    version = "1.0.0"
    description = "Collects generation metrics and performance data"

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self.clock = clock
        self._start = 0.0
        self._last = 0.0

    def hooks(self) -> Mapping[HookName | str, HookHandler]:
        return {
            HookName.BEFORE_GENERATE: self.start,
            HookName.AFTER_PARSE: self.mark,
            HookName.AFTER_VALIDATION: self.mark,
            HookName.BEFORE_TEMPLATE_RENDER: self.mark,
            HookName.AFTER_TEMPLATE_RENDER: self.mark,
            HookName.AFTER_GENERATE: self.finish,
        }

    def start(self, context: GenerationContext) -> None:
        self._start = self._last = self.clock()
        context.metadata["metrics"] = {"phases": {}}

    def mark(self, context: GenerationContext) -> None:
        now = self.clock()
        phases = context.metadata.setdefault("metrics", {"phases": {}})["phases"]
        phases[context.phase] = phases.get(context.phase, 0.0) + (now - self._last)
        self._last = now

    def finish(self, context: GenerationContext) -> None:
        self.mark(context)
        metrics = context.metadata["metrics"]
        files = context.files + context.additional_files
        metrics["file_count"] = len(files)
        metrics["total_size"] = sum(len(f.content.encode(f.encoding)) for f in files)
        metrics["total_duration"] = self.clock() - self._start
        logger.info(
            "Generated %d files (%d bytes) in %.3fs",
            metrics["file_count"],
            metrics["total_size"],
            metrics["total_duration"],
        )


def analyze_types(grammar: GrammarModel) -> dict[str, object]:
    """Summarize the grammar's type usage."""
    references = 0
    arrays = 0
    optional = 0
    for iface in grammar.interfaces:
        for prop in iface.properties:
            references += prop.type not in PRIMITIVE_TYPES and grammar.get_type(prop.type) is None
            arrays += prop.array
            optional += prop.optional
    return {
        "interfaces": len(grammar.interfaces),
        "literal_unions": [t.name for t in grammar.types if t.is_literal_union],
        "reference_properties": references,
        "array_properties": arrays,
        "optional_properties": optional,
    }


_TS_TYPEOF = {"string": "string", "number": "number", "boolean": "boolean", "bigint": "bigint"}


class TypeSafetyPlugin(Plugin):
    """Adds runtime type guards (and optionally validators) for the model types."""

    name = "type-safety"
    version = "1.0.0"
    description = "Adds runtime type checking and validation"

    def __init__(self, generate_guards: bool = True, generate_validators: bool = False, strict: bool = True):
        self.generate_guards = generate_guards
        self.generate_validators = generate_validators
        self.strict = strict

    def hooks(self) -> Mapping[HookName | str, HookHandler]:
        return {
            HookName.AFTER_PARSE: self.analyze,
            HookName.BEFORE_TEMPLATE_RENDER: self.annotate_context,
            HookName.AFTER_TEMPLATE_RENDER: self.add_files,
        }

    def validate(self) -> list[str]:
        if self.generate_validators and not self.generate_guards:
            return ["validators require type guards"]
        return []

    def analyze(self, context: GenerationContext) -> None:
        if context.grammar is None:
            raise PluginError("No grammar to analyze", ErrorContext(plugin=self.name))
        context.metadata["type_info"] = analyze_types(context.grammar)

    def annotate_context(self, context: GenerationContext) -> None:
        if context.template_context is None:
            return
        context.template_context.extras["type_safety"] = {
            "generate_guards": self.generate_guards,
            "generate_validators": self.generate_validators,
            "strict": self.strict,
            "types": context.metadata.get("type_info", {}),
        }

    def add_files(self, context: GenerationContext) -> None:
        tc = context.template_context
        if tc is None:
            return
        if self.generate_guards:
            context.add_file(TYPE_GUARDS_PATH, self._render_guards(context))
        if self.generate_validators:
            context.add_file(VALIDATORS_PATH, self._render_validators(context))

    def _render_guards(self, context: GenerationContext) -> str:
        tc = context.template_context
        assert tc is not None
        names = [info.name for info in tc.interfaces]
        lines = [f"// Type guards for the {tc.grammar_name} model", ""]
        if names:
            lines.append(f"import {{ {', '.join(names)} }} from './model-types';")
            lines.append("")
        for info in tc.interfaces:
            checks = ["typeof value === 'object'", "value !== null"]
            for prop in info.all_properties:
                if prop.optional:
                    continue
                checks.append(f"'{prop.name}' in value")
                if self.strict and not prop.array and prop.type in _TS_TYPEOF:
                    checks.append(f"typeof (value as any).{prop.name} === '{_TS_TYPEOF[prop.type]}'")
            lines.append(f"export function is{info.name}(value: unknown): value is {info.name} {{")
            lines.append("    return " + "\n        && ".join(checks) + ";")
            lines.append("}")
            lines.append("")
        return "\n".join(lines)

    def _render_validators(self, context: GenerationContext) -> str:
        tc = context.template_context
        assert tc is not None
        lines = [f"// Validators for the {tc.grammar_name} model", ""]
        if tc.interfaces:
            guards = ", ".join(f"is{info.name}" for info in tc.interfaces)
            lines.append(f"import {{ {guards} }} from './type-guards';")
            lines.append("")
        for info in tc.interfaces:
            lines.append(f"export function validate{info.name}(value: unknown): string[] {{")
            lines.append(f"    return is{info.name}(value) ? [] : ['Not a valid {info.name}'];")
            lines.append("}")
            lines.append("")
        return "\n".join(lines)


BUILTIN_PLUGINS: dict[str, type[Plugin]] = {
    MetricsPlugin.name: MetricsPlugin,
    TypeSafetyPlugin.name: TypeSafetyPlugin,
}


def create_plugin(name: str) -> Plugin:
    """
    Instantiate a built-in plugin by name.

    Raises:
        PluginError: If no built-in plugin has that name
    """
    try:
        plugin_cls = BUILTIN_PLUGINS[name]
    except KeyError:
        available = ", ".join(sorted(BUILTIN_PLUGINS))
        raise PluginError(
            f"Unknown plugin '{name}' (available: {available})",
            ErrorContext(plugin=name),
        ) from None
    return plugin_cls()
