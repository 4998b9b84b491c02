"""
Unit tests for the template context builder.

Covers property resolution, node/edge classification, visual defaults,
structural errors and determinism.
"""

from __future__ import annotations

from datetime import datetime

import pytest

from glspgen.config import GenerationConfig, config_from_dict
from glspgen.context.builder import ContextBuilder, default_shape
from glspgen.context.classify import find_edge_endpoints, name_tokens
from glspgen.context.models import ElementKind, TemplateContext
from glspgen.core.errors import StructuralGrammarError
from glspgen.core.grammar import GrammarInterface, GrammarModel, InterfaceRef, PrimitiveType, Property, TypeAliasRef


def _grammar(*interfaces: GrammarInterface) -> GrammarModel:
    return GrammarModel(project_name="test", interfaces=interfaces)


def _ref(name: str, type_name: str, **kwargs: bool) -> Property:
    return Property(name=name, type=type_name, **kwargs)


class TestEmptyGrammar:
    def test_builds(self, builder: ContextBuilder, empty_grammar: GrammarModel) -> None:
        context = builder.build(empty_grammar, GenerationConfig())
        assert context.project_name == "empty-project"
        assert list(context.node_types) == []
        assert list(context.edge_types) == []
        assert list(context.interfaces) == []

    def test_project_name_never_empty(self, builder: ContextBuilder) -> None:
        context = builder.build(GrammarModel(), GenerationConfig())
        assert context.project_name == "unknown"

    def test_prefix_falls_back_to_project_name(self, builder: ContextBuilder, empty_grammar: GrammarModel) -> None:
        assert builder.build(empty_grammar).prefix == "EmptyProject"


class TestPropertyResolution:
    def test_tagged_type_refs(self, context: TemplateContext) -> None:
        state = context.get_interface("State")
        props = {p.name: p for p in state.properties}
        assert props["name"].type_ref == PrimitiveType(name="string")
        assert props["kind"].type_ref == TypeAliasRef(name="StateKind")

        transition = context.get_interface("Transition")
        assert transition.properties[0].type_ref == InterfaceRef(name="State")
        assert transition.properties[0].is_reference

    def test_reference_ts_type_is_id(self, context: TemplateContext) -> None:
        source = context.get_interface("Transition").properties[0]
        assert source.ts_type == "string"

    def test_dangling_reference(self, builder: ContextBuilder) -> None:
        grammar = _grammar(GrammarInterface(name="Node", properties=(_ref("shape", "UnknownType"),)))
        with pytest.raises(StructuralGrammarError) as exc_info:
            builder.build(grammar)
        error = exc_info.value
        assert error.context.interface == "Node"
        assert error.context.property == "shape"
        assert "UnknownType" in error.message

    def test_unknown_supertype(self, builder: ContextBuilder) -> None:
        grammar = _grammar(GrammarInterface(name="Task", super_types=("Base",)))
        with pytest.raises(StructuralGrammarError, match="unknown interface 'Base'"):
            builder.build(grammar)

    def test_circular_inheritance(self, builder: ContextBuilder) -> None:
        grammar = _grammar(
            GrammarInterface(name="A", super_types=("B",)),
            GrammarInterface(name="B", super_types=("A",)),
        )
        with pytest.raises(StructuralGrammarError, match="Circular inheritance"):
            builder.build(grammar)


class TestInheritance:
    @pytest.fixture
    def chain(self, builder: ContextBuilder) -> TemplateContext:
        grammar = _grammar(
            GrammarInterface(name="Element", properties=(_ref("id", "string"), _ref("label", "string"))),
            GrammarInterface(name="Shape", super_types=("Element",), properties=(_ref("width", "number"),)),
            GrammarInterface(
                name="Box",
                super_types=("Shape",),
                properties=(_ref("depth", "number"), _ref("label", "string", optional=True)),
            ),
        )
        return builder.build(grammar)

    def test_type_hierarchy_nearest_first(self, chain: TemplateContext) -> None:
        assert chain.type_hierarchy["Box"] == ("Shape", "Element")
        assert chain.type_hierarchy["Element"] == ()

    def test_all_properties_root_first(self, chain: TemplateContext) -> None:
        box = chain.get_interface("Box")
        assert [p.name for p in box.all_properties] == ["id", "label", "width", "depth"]

    def test_redeclared_property_replaces_inherited(self, chain: TemplateContext) -> None:
        label = next(p for p in chain.get_interface("Box").all_properties if p.name == "label")
        assert label.declared_in == "Box"
        assert label.optional is True


class TestClassification:
    def test_node_and_edge(self, builder: ContextBuilder, node_edge_grammar: GrammarModel) -> None:
        context = builder.build(node_edge_grammar)
        assert [n.name for n in context.node_types] == ["Position", "Size", "Node"]
        assert [e.name for e in context.edge_types] == ["Edge"]

        edge = context.edge_types[0]
        assert edge.source_property == "source"
        assert edge.target_property == "target"
        assert edge.source_type == "Node"
        assert edge.type_id == "edge:edge"

    def test_every_interface_classified_once(self, builder: ContextBuilder, node_edge_grammar: GrammarModel) -> None:
        context = builder.build(node_edge_grammar)
        nodes = {n.name for n in context.node_types}
        edges = {e.name for e in context.edge_types}
        assert nodes.isdisjoint(edges)
        assert nodes | edges == set(node_edge_grammar.interface_names)

    def test_from_to_tokens(self, builder: ContextBuilder) -> None:
        grammar = _grammar(
            GrammarInterface(name="A"),
            GrammarInterface(name="B"),
            GrammarInterface(name="Flow", properties=(_ref("fromNode", "A"), _ref("to_node", "B"))),
        )
        assert builder.build(grammar).get_interface("Flow").kind is ElementKind.EDGE

    def test_tokens_match_whole_words(self, builder: ContextBuilder) -> None:
        grammar = _grammar(
            GrammarInterface(name="A"),
            GrammarInterface(name="B"),
            GrammarInterface(name="Kitchen", properties=(_ref("fromage", "A"), _ref("toaster", "B"))),
        )
        assert builder.build(grammar).get_interface("Kitchen").kind is ElementKind.NODE

    def test_compatible_reference_types(self, builder: ContextBuilder) -> None:
        grammar = _grammar(
            GrammarInterface(name="Vertex"),
            GrammarInterface(name="City", super_types=("Vertex",)),
            GrammarInterface(name="Road", properties=(_ref("start", "Vertex"), _ref("end", "City"))),
        )
        road = builder.build(grammar).edge_types[0]
        assert road.name == "Road"
        assert (road.source_property, road.target_property) == ("start", "end")

    def test_array_references_do_not_count(self, builder: ContextBuilder) -> None:
        grammar = _grammar(
            GrammarInterface(name="Item"),
            GrammarInterface(
                name="Group",
                properties=(_ref("owner", "Item"), _ref("members", "Item", array=True)),
            ),
        )
        assert builder.build(grammar).get_interface("Group").kind is ElementKind.NODE

    def test_inherited_references_count(self, builder: ContextBuilder) -> None:
        grammar = _grammar(
            GrammarInterface(name="Item"),
            GrammarInterface(name="Link", properties=(_ref("source", "Item"), _ref("target", "Item"))),
            GrammarInterface(name="Dependency", super_types=("Link",), properties=(_ref("weight", "number"),)),
        )
        assert builder.build(grammar).get_interface("Dependency").kind is ElementKind.EDGE

    def test_annotation_overrides_heuristic(self, builder: ContextBuilder) -> None:
        grammar = _grammar(
            GrammarInterface(name="Item"),
            GrammarInterface(
                name="Pair",
                properties=(_ref("source", "Item"), _ref("target", "Item")),
                annotations={"glspType": "node"},
            ),
        )
        assert builder.build(grammar).get_interface("Pair").kind is ElementKind.NODE

    def test_config_edge_types(self, builder: ContextBuilder) -> None:
        grammar = _grammar(GrammarInterface(name="Comment", properties=(_ref("text", "string"),)))
        config = config_from_dict({"diagram": {"edgeTypes": ["Comment"]}})
        context = builder.build(grammar, config)
        edge = context.edge_types[0]
        assert edge.name == "Comment"
        assert edge.source_property is None

    def test_dual_classification_is_an_error(self, builder: ContextBuilder) -> None:
        grammar = _grammar(GrammarInterface(name="Task", annotations={"glspType": "edge"}))
        config = config_from_dict({"diagram": {"nodeTypes": ["Task"]}})
        with pytest.raises(StructuralGrammarError, match="both node and edge") as exc_info:
            builder.build(grammar, config)
        assert exc_info.value.context.interface == "Task"

    def test_invalid_annotation_ignored(self, builder: ContextBuilder) -> None:
        grammar = _grammar(GrammarInterface(name="Task", annotations={"glspType": "port"}))
        assert builder.build(grammar).get_interface("Task").kind is ElementKind.NODE

    def test_name_tokens(self) -> None:
        assert name_tokens("sourceNode") == {"source", "node"}
        assert name_tokens("to_state") == {"to", "state"}

    def test_endpoints_need_two_references(self, context: TemplateContext) -> None:
        state = context.get_interface("State")
        assert find_edge_endpoints(state.all_properties, context.type_hierarchy) is None


class TestVisualDefaults:
    def test_node_sizes_from_styling(self, builder: ContextBuilder, statemachine: GrammarModel) -> None:
        config = config_from_dict({"styling": {"nodeDefaults": {"width": 140, "height": 80}}})
        node = builder.build(statemachine, config).node_types[0]
        assert (node.width, node.height, node.corner_radius) == (140, 80, 5)

    def test_annotations(self, context: TemplateContext) -> None:
        state, start = context.node_types
        assert state.label == "State"
        assert start.label == "Start State"
        assert start.shape == "circle"

    def test_flag_annotations(self, builder: ContextBuilder) -> None:
        grammar = _grammar(GrammarInterface(name="Root", annotations={"deletable": "false", "icon": "home"}))
        node = builder.build(grammar).node_types[0]
        assert node.deletable is False
        assert node.resizable is True
        assert node.icon == "home"

    def test_ports_when_enabled(self, builder: ContextBuilder, statemachine: GrammarModel) -> None:
        config = config_from_dict({"diagram": {"features": {"ports": True}}})
        node = builder.build(statemachine, config).node_types[1]
        assert [p.id for p in node.ports] == ["start-state-in", "start-state-out"]

    def test_no_ports_by_default(self, context: TemplateContext) -> None:
        assert all(node.ports == () for node in context.node_types)

    def test_edge_routing(self, builder: ContextBuilder, statemachine: GrammarModel) -> None:
        config = config_from_dict({"diagram": {"features": {"routing": "manhattan"}}})
        assert builder.build(statemachine, config).edge_types[0].routing == "manhattan"

    @pytest.mark.parametrize(
        ("name", "shape"),
        [("InitialState", "circle"), ("FinalState", "circle"), ("Decision", "diamond"), ("Task", "rectangle")],
    )
    def test_default_shape(self, name: str, shape: str) -> None:
        assert default_shape(name) == shape


class TestContext:
    def test_features_sorted(self, context: TemplateContext) -> None:
        assert context.features == ("animation", "grid", "snap_to_grid")
        assert context.has_feature("grid")
        assert not context.has_feature("ports")

    def test_metadata(self, context: TemplateContext, fixed_time: datetime) -> None:
        assert context.metadata["generator"] == "glspgen"
        assert context.metadata["generated_at"] == fixed_time.isoformat()

    def test_config_is_read_only(self, context: TemplateContext) -> None:
        with pytest.raises(TypeError):
            context.config["generation"] = {}  # type: ignore[index]

    def test_extras_are_writable(self, context: TemplateContext) -> None:
        context.extras["note"] = "hello"
        assert context.template_vars()["extras"] == {"note": "hello"}

    def test_helper_override(self, statemachine: GrammarModel) -> None:
        context = ContextBuilder(helpers={"toPascalCase": lambda value: "Overridden"}).build(statemachine)
        assert context.helpers["toPascalCase"]("x") == "Overridden"
        assert context.helpers["toKebabCase"]("StartState") == "start-state"

    def test_partial_override(self, statemachine: GrammarModel) -> None:
        context = ContextBuilder(partials={"header": "// custom\n"}).build(statemachine)
        assert context.partials["header"] == "// custom\n"
        assert "readme_header" in context.partials

    def test_unknown_config_keys_preserved(self, builder: ContextBuilder, statemachine: GrammarModel) -> None:
        context = builder.build(statemachine, {"customSetting": 42})
        assert context.config["customSetting"] == 42

    def test_deterministic(self, builder: ContextBuilder, statemachine: GrammarModel) -> None:
        first = builder.build(statemachine, GenerationConfig())
        second = builder.build(statemachine, GenerationConfig())
        assert first == second
        assert [i.name for i in first.interfaces] == [i.name for i in second.interfaces]

    def test_grammar_not_mutated(self, builder: ContextBuilder, statemachine: GrammarModel) -> None:
        snapshot = statemachine.model_dump()
        builder.build(statemachine)
        assert statemachine.model_dump() == snapshot
