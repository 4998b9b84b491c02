"""
Grammar model for the generator.

This module contains the in-memory representation of a parsed Langium
grammar: interfaces with typed properties, type aliases, and the
tagged type references properties resolve to.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Langium's built-in primitive types
PRIMITIVE_TYPES = frozenset({"string", "number", "boolean", "bigint", "Date"})


class TypeRefKind(str, Enum):
    """What a property type name resolves to."""

    PRIMITIVE = "primitive"
    INTERFACE = "interface"
    TYPE_ALIAS = "type_alias"


class PrimitiveType(BaseModel):
    """A Langium primitive such as ``string`` or ``number``."""

    kind: Literal[TypeRefKind.PRIMITIVE] = TypeRefKind.PRIMITIVE
    name: str

    model_config = ConfigDict(frozen=True)


class InterfaceRef(BaseModel):
    """A reference to another interface in the same grammar."""

    kind: Literal[TypeRefKind.INTERFACE] = TypeRefKind.INTERFACE
    name: str

    model_config = ConfigDict(frozen=True)


class TypeAliasRef(BaseModel):
    """A reference to a declared type alias."""

    kind: Literal[TypeRefKind.TYPE_ALIAS] = TypeRefKind.TYPE_ALIAS
    name: str

    model_config = ConfigDict(frozen=True)


TypeRef = Annotated[PrimitiveType | InterfaceRef | TypeAliasRef, Field(discriminator="kind")]


class Property(BaseModel):
    """
    A single property of a grammar interface.

    Attributes:
        name: Property identifier
        type: Raw type name (primitive, interface or type alias name)
        optional: Whether the property may be absent
        array: Whether the property holds a sequence
        cross_reference: Declared with Langium's ``@Type`` / ``[Type]`` syntax
    """

    name: str
    type: str
    optional: bool = False
    array: bool = False
    cross_reference: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator("name", "type")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v


class GrammarInterface(BaseModel):
    """
    A named record type with ordered properties.

    Attributes:
        name: Unique interface name
        properties: Properties in declaration order
        super_types: Names of extended interfaces, in declaration order
        annotations: ``@key value`` metadata from leading comments
    """

    name: str
    properties: tuple[Property, ...] = ()
    super_types: tuple[str, ...] = ()
    annotations: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def get_property(self, name: str) -> Property | None:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None


class TypeAlias(BaseModel):
    """
    A ``type X = ...`` declaration.

    Attributes:
        name: Alias name
        definition: Raw right-hand side expression
        union_types: String literal members, empty unless a literal union
        annotations: ``@key value`` metadata from leading comments
    """

    name: str
    definition: str
    union_types: tuple[str, ...] = ()
    annotations: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @property
    def is_literal_union(self) -> bool:
        return len(self.union_types) > 0


class GrammarModel(BaseModel):
    """
    A parsed grammar, read-only for everything downstream of the parser.

    Attributes:
        project_name: Project identifier (usually derived from the file name)
        grammar_name: Name from the ``grammar`` declaration, if any
        interfaces: Interfaces in declaration order
        types: Type aliases in declaration order
        rules: Parser rule names in declaration order
        source_path: File the grammar was read from, if any
    """

    project_name: str = ""
    grammar_name: str | None = None
    interfaces: tuple[GrammarInterface, ...] = ()
    types: tuple[TypeAlias, ...] = ()
    rules: tuple[str, ...] = ()
    source_path: str | None = None

    model_config = ConfigDict(frozen=True)

    def get_interface(self, name: str) -> GrammarInterface | None:
        for iface in self.interfaces:
            if iface.name == name:
                return iface
        return None

    def get_type(self, name: str) -> TypeAlias | None:
        for alias in self.types:
            if alias.name == name:
                return alias
        return None

    @property
    def interface_names(self) -> list[str]:
        return [iface.name for iface in self.interfaces]

    @property
    def type_names(self) -> list[str]:
        return [alias.name for alias in self.types]
