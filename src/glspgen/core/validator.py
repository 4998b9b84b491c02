"""
Structural validation for parsed grammars.

Checks that must pass before rendering (dangling references, circular
inheritance) are reported as errors; style problems are warnings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .errors import ErrorContext, GlspGenError, StructuralGrammarError
from .grammar import PRIMITIVE_TYPES, GrammarModel

PASCAL_CASE_RE = re.compile(r"^[A-Z][A-Za-z0-9]*$")
CAMEL_CASE_RE = re.compile(r"^[a-z_$][A-Za-z0-9_$]*$")


@dataclass
class ValidationReport:
    """Errors block rendering; warnings are reported only."""

    errors: list[GlspGenError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def extend(self, errors: list[GlspGenError], warnings: list[str]) -> None:
        self.errors.extend(errors)
        self.warnings.extend(warnings)


def _structural(message: str, interface: str | None = None, prop: str | None = None) -> StructuralGrammarError:
    return StructuralGrammarError(
        message,
        ErrorContext(phase="validating", interface=interface, property=prop),
    )


def validate_references(grammar: GrammarModel) -> tuple[list[GlspGenError], list[str]]:
    """Every property type and supertype must name something declared."""
    errors: list[GlspGenError] = []
    warnings: list[str] = []
    interfaces = set(grammar.interface_names)
    known = interfaces | set(grammar.type_names) | PRIMITIVE_TYPES

    for iface in grammar.interfaces:
        for super_type in iface.super_types:
            if super_type not in interfaces:
                errors.append(
                    _structural(
                        f"Interface '{iface.name}' extends unknown interface '{super_type}'",
                        interface=iface.name,
                    )
                )
        for prop in iface.properties:
            if prop.type not in known:
                errors.append(
                    _structural(
                        f"Property '{iface.name}.{prop.name}' has unknown type '{prop.type}'",
                        interface=iface.name,
                        prop=prop.name,
                    )
                )
            elif prop.cross_reference and prop.type not in interfaces:
                warnings.append(
                    f"Property '{iface.name}.{prop.name}' cross-references '{prop.type}', which is not an interface"
                )
    return errors, warnings


def find_inheritance_cycles(grammar: GrammarModel) -> list[list[str]]:
    """
    Find cycles in the supertype graph.

    Returns:
        Each cycle as a list of interface names, first name repeated at the end
    """
    edges = {iface.name: [s for s in iface.super_types] for iface in grammar.interfaces}
    cycles: list[list[str]] = []
    seen_cycles: set[frozenset[str]] = set()
    done: set[str] = set()

    def visit(name: str, path: list[str]) -> None:
        if name in path:
            cycle = path[path.index(name) :] + [name]
            key = frozenset(cycle)
            if key not in seen_cycles:
                seen_cycles.add(key)
                cycles.append(cycle)
            return
        if name in done or name not in edges:
            return
        path.append(name)
        for parent in edges[name]:
            visit(parent, path)
        path.pop()
        done.add(name)

    for iface in grammar.interfaces:
        visit(iface.name, [])
    return cycles


def validate_inheritance(grammar: GrammarModel) -> tuple[list[GlspGenError], list[str]]:
    errors: list[GlspGenError] = [
        _structural(f"Circular inheritance: {' -> '.join(cycle)}", interface=cycle[0])
        for cycle in find_inheritance_cycles(grammar)
    ]
    return errors, []


def validate_declarations(grammar: GrammarModel) -> tuple[list[GlspGenError], list[str]]:
    """Duplicate names and properties, naming conventions."""
    errors: list[GlspGenError] = []
    warnings: list[str] = []

    seen: set[str] = set()
    for name in grammar.interface_names + grammar.type_names:
        if name in seen:
            errors.append(_structural(f"Duplicate declaration '{name}'", interface=name))
        seen.add(name)

    for iface in grammar.interfaces:
        if not PASCAL_CASE_RE.match(iface.name):
            warnings.append(f"Interface '{iface.name}' should be PascalCase")
        prop_names: set[str] = set()
        for prop in iface.properties:
            if prop.name in prop_names:
                warnings.append(f"Interface '{iface.name}' declares property '{prop.name}' more than once")
            prop_names.add(prop.name)
            if not CAMEL_CASE_RE.match(prop.name):
                warnings.append(f"Property '{iface.name}.{prop.name}' should be camelCase")

    for alias in grammar.types:
        if not PASCAL_CASE_RE.match(alias.name):
            warnings.append(f"Type '{alias.name}' should be PascalCase")

    return errors, warnings


def validate_grammar(grammar: GrammarModel) -> ValidationReport:
    """
    Run all structural checks on a grammar.

    Args:
        grammar: Parsed grammar

    Returns:
        ValidationReport with every error and warning found
    """
    report = ValidationReport()

    if not grammar.interfaces and not grammar.types:
        report.warnings.append("Grammar declares no interfaces or types.")

    report.extend(*validate_references(grammar))
    report.extend(*validate_inheritance(grammar))
    report.extend(*validate_declarations(grammar))
    return report
