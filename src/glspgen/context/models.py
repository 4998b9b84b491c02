"""
Render-ready data derived from a grammar.

Everything here is immutable once the builder returns it, except
:attr:`TemplateContext.extras`, which plugins may fill in between phases.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..core.grammar import GrammarModel, InterfaceRef, PrimitiveType, TypeRef
from .helpers import to_pascal_case


class ElementKind(str, Enum):
    NODE = "node"
    EDGE = "edge"


@dataclass(frozen=True)
class ResolvedProperty:
    """
    A property whose type name has been resolved against the grammar.

    Attributes:
        name: Property name
        type: Raw type name
        type_ref: What the type name resolved to
        optional: Whether the property may be absent
        array: Whether the property holds a sequence
        cross_reference: Declared as a Langium cross reference
        declared_in: Interface that declares the property
    """

    name: str
    type: str
    type_ref: TypeRef
    optional: bool = False
    array: bool = False
    cross_reference: bool = False
    declared_in: str = ""

    @property
    def is_reference(self) -> bool:
        return isinstance(self.type_ref, InterfaceRef)

    @property
    def is_primitive(self) -> bool:
        return isinstance(self.type_ref, PrimitiveType)

    @property
    def ts_type(self) -> str:
        """TypeScript type for generated model code; references become ids."""
        base = "string" if self.is_reference else self.type
        return f"{base}[]" if self.array else base

    @property
    def default_type(self) -> str:
        """Type key understood by the ``defaultValue`` helper."""
        return "array" if self.array else self.type


@dataclass(frozen=True)
class InterfaceInfo:
    """
    An interface with resolved properties and its classification.

    Attributes:
        name: Interface name
        kind: Node or edge
        type_id: GLSP element type id (``node:task``)
        properties: Own properties in declaration order
        all_properties: Inherited properties followed by own properties
        super_types: Direct supertypes
        ancestors: All supertypes, nearest first
        annotations: ``@key value`` metadata
    """

    name: str
    kind: ElementKind
    type_id: str
    properties: tuple[ResolvedProperty, ...] = ()
    all_properties: tuple[ResolvedProperty, ...] = ()
    super_types: tuple[str, ...] = ()
    ancestors: tuple[str, ...] = ()
    annotations: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_node(self) -> bool:
        return self.kind is ElementKind.NODE

    @property
    def is_edge(self) -> bool:
        return self.kind is ElementKind.EDGE

    @property
    def reference_properties(self) -> tuple[ResolvedProperty, ...]:
        return tuple(p for p in self.all_properties if p.is_reference)


@dataclass(frozen=True)
class PortInfo:
    id: str
    kind: str


@dataclass(frozen=True)
class NodeTypeInfo:
    """A node-like interface with its default visual properties."""

    interface: InterfaceInfo
    label: str
    shape: str
    width: int
    height: int
    corner_radius: int
    ports: tuple[PortInfo, ...] = ()
    icon: str | None = None
    category: str | None = None
    resizable: bool = True
    deletable: bool = True
    moveable: bool = True

    @property
    def name(self) -> str:
        return self.interface.name

    @property
    def type_id(self) -> str:
        return self.interface.type_id

    @property
    def properties(self) -> tuple[ResolvedProperty, ...]:
        return self.interface.all_properties


@dataclass(frozen=True)
class EdgeTypeInfo:
    """An edge-like interface with its endpoints."""

    interface: InterfaceInfo
    label: str
    routing: str
    source_property: str | None = None
    target_property: str | None = None
    source_type: str | None = None
    target_type: str | None = None
    deletable: bool = True

    @property
    def name(self) -> str:
        return self.interface.name

    @property
    def type_id(self) -> str:
        return self.interface.type_id

    @property
    def properties(self) -> tuple[ResolvedProperty, ...]:
        return self.interface.all_properties


@dataclass(frozen=True)
class TypeInfo:
    name: str
    definition: str
    union_types: tuple[str, ...] = ()
    annotations: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_literal_union(self) -> bool:
        return bool(self.union_types)


@dataclass(frozen=True)
class TemplateContext:
    """
    Data context shared by every strategy in a generation run.

    Attributes:
        project_name: Never empty
        grammar: The grammar the context was built from (read-only)
        interfaces: All interfaces in declaration order
        types: All type aliases in declaration order
        node_types: Node-like interfaces in declaration order
        edge_types: Edge-like interfaces in declaration order
        type_hierarchy: Interface name to ancestors, nearest first
        features: Enabled diagram capability flags, sorted
        config: Generation options, unknown keys included
        metadata: Generation timestamp and generator identity
        helpers: Helper name to function
        partials: Partial name to template source
        extras: Values added by plugins
    """

    project_name: str
    grammar: GrammarModel
    interfaces: tuple[InterfaceInfo, ...]
    types: tuple[TypeInfo, ...]
    node_types: tuple[NodeTypeInfo, ...]
    edge_types: tuple[EdgeTypeInfo, ...]
    type_hierarchy: Mapping[str, tuple[str, ...]]
    features: tuple[str, ...]
    config: Mapping[str, Any]
    metadata: Mapping[str, Any]
    helpers: Mapping[str, Callable[..., Any]]
    partials: Mapping[str, str]
    extras: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def grammar_name(self) -> str:
        return self.grammar.grammar_name or self.project_name

    @property
    def prefix(self) -> str:
        """Identifier prefix for generated classes (``StateMachine``)."""
        return self.grammar.grammar_name or to_pascal_case(self.project_name)

    def get_interface(self, name: str) -> InterfaceInfo | None:
        for info in self.interfaces:
            if info.name == name:
                return info
        return None

    def has_feature(self, name: str) -> bool:
        return name in self.features

    def template_vars(self) -> dict[str, Any]:
        """Variables passed to every template, before strategy additions."""
        return {
            "project_name": self.project_name,
            "grammar_name": self.grammar_name,
            "prefix": self.prefix,
            "grammar": self.grammar,
            "interfaces": self.interfaces,
            "types": self.types,
            "node_types": self.node_types,
            "edge_types": self.edge_types,
            "type_hierarchy": self.type_hierarchy,
            "features": self.features,
            "config": self.config,
            "metadata": self.metadata,
            "extras": self.extras,
        }
