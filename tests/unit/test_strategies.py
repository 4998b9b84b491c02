"""
Unit tests for the template strategies.

Covers output namespacing, per-interface ordering, optional and gated
templates, failure isolation and the server/browser derived variables.
"""

from __future__ import annotations

import pytest

from glspgen.config import GenerationConfig, config_from_dict
from glspgen.context.builder import ContextBuilder
from glspgen.context.models import TemplateContext
from glspgen.core.errors import TemplateNotFoundError, TemplateRenderError
from glspgen.core.grammar import GrammarInterface, GrammarModel, Property
from glspgen.rendering.cache import TemplateCache
from glspgen.rendering.engine import TemplateEngine
from glspgen.rendering.loader import DictTemplateLoader
from glspgen.strategies import (
    BrowserStrategy,
    CommonStrategy,
    ServerStrategy,
    TemplateSpec,
    TemplateStrategy,
    default_strategies,
)
from glspgen.strategies.server import PropertyDefault


def _paths(result) -> list[str]:
    return [f.path for f in result.files]


class TestBuiltinStrategies:
    def test_order(self, engine: TemplateEngine) -> None:
        assert [s.name for s in default_strategies(engine)] == ["common", "server", "browser"]

    def test_can_handle(self, engine: TemplateEngine) -> None:
        server = ServerStrategy(engine)
        assert server.can_handle("server")
        assert server.can_handle("backend")
        assert not server.can_handle("browser")

    @pytest.mark.parametrize("strategy_cls", [CommonStrategy, ServerStrategy, BrowserStrategy])
    def test_paths_are_namespaced(
        self, strategy_cls: type[TemplateStrategy], engine: TemplateEngine, statemachine: GrammarModel, context: TemplateContext
    ) -> None:
        result = strategy_cls(engine).render(statemachine, context)
        assert result.success, result.errors
        assert result.files
        assert all(f.path.startswith(f"{strategy_cls.name}/") for f in result.files)

    def test_common_files(self, engine: TemplateEngine, statemachine: GrammarModel, context: TemplateContext) -> None:
        result = CommonStrategy(engine).render(statemachine, context)
        assert _paths(result) == [
            "common/model-types.ts",
            "common/protocol.ts",
            "common/actions.ts",
            "common/utils.ts",
            "common/README.md",
        ]

    def test_model_types_content(self, engine: TemplateEngine, statemachine: GrammarModel, context: TemplateContext) -> None:
        result = CommonStrategy(engine).render(statemachine, context)
        model_types = result.files[0].content
        assert "export type StateKind = 'simple' | 'composite';" in model_types
        assert "export interface StartState extends State {" in model_types
        assert "entryAction?: string;" in model_types

    def test_one_handler_per_interface(self, engine: TemplateEngine, node_edge_grammar: GrammarModel) -> None:
        context = ContextBuilder().build(node_edge_grammar)
        result = ServerStrategy(engine).render(node_edge_grammar, context)
        handlers = [p for p in _paths(result) if "/handlers/" in p]
        assert handlers == [
            "server/handlers/create-position-handler.ts",
            "server/handlers/create-size-handler.ts",
            "server/handlers/create-node-handler.ts",
            "server/handlers/create-edge-handler.ts",
        ]
        edge_handler = result.files[_paths(result).index("server/handlers/create-edge-handler.ts")]
        assert "class CreateEdgeHandler extends CreateEdgeOperationHandler" in edge_handler.content

    def test_views_only_for_nodes(self, engine: TemplateEngine, statemachine: GrammarModel, context: TemplateContext) -> None:
        result = BrowserStrategy(engine).render(statemachine, context)
        views = [p for p in _paths(result) if p.startswith("browser/views/")]
        assert views == ["browser/views/state-view.tsx", "browser/views/start-state-view.tsx"]

    def test_empty_grammar_has_no_per_type_files(self, engine: TemplateEngine, empty_grammar: GrammarModel) -> None:
        context = ContextBuilder().build(empty_grammar)
        for strategy in default_strategies(engine):
            result = strategy.render(empty_grammar, context)
            assert result.success, result.errors
            assert not any("/handlers/" in p or "/views/" in p for p in _paths(result))

    def test_gates(self, engine: TemplateEngine, statemachine: GrammarModel) -> None:
        config = config_from_dict(
            {"generation": {"generateDocs": False, "generateTests": False, "includeExamples": False}}
        )
        context = ContextBuilder().build(statemachine, config)
        paths = [p for s in default_strategies(engine) for p in _paths(s.render(statemachine, context))]
        assert "common/README.md" not in paths
        assert "server/__tests__/model-factory.spec.ts" not in paths
        assert "browser/examples/sample-model.json" not in paths

    def test_rendering_is_deterministic(self, engine: TemplateEngine, statemachine: GrammarModel, context: TemplateContext) -> None:
        def render_all() -> list[tuple[str, str]]:
            return [
                (f.path, f.content)
                for strategy in default_strategies(engine)
                for f in strategy.render(statemachine, context).files
            ]

        assert render_all() == render_all()


class TestOrdering:
    @pytest.fixture
    def reversed_grammar(self) -> GrammarModel:
        names = ["Zeta", "Alpha", "Mid", "Beta"]
        return GrammarModel(
            project_name="order",
            interfaces=tuple(
                GrammarInterface(name=name, properties=(Property(name="label", type="string"),)) for name in names
            ),
        )

    def test_declaration_order(self, engine: TemplateEngine, reversed_grammar: GrammarModel) -> None:
        context = ContextBuilder().build(reversed_grammar)
        result = ServerStrategy(engine).render(reversed_grammar, context)
        handlers = [p for p in _paths(result) if "/handlers/" in p]
        assert handlers == [
            "server/handlers/create-zeta-handler.ts",
            "server/handlers/create-alpha-handler.ts",
            "server/handlers/create-mid-handler.ts",
            "server/handlers/create-beta-handler.ts",
        ]

    def test_parallel_matches_sequential(self, engine: TemplateEngine, reversed_grammar: GrammarModel) -> None:
        sequential = ContextBuilder().build(reversed_grammar)
        parallel = ContextBuilder().build(reversed_grammar, config_from_dict({"generation": {"parallelWorkers": 4}}))
        first = ServerStrategy(engine).render(reversed_grammar, sequential)
        second = ServerStrategy(engine).render(reversed_grammar, parallel)
        assert [(f.path, f.content) for f in first.files] == [(f.path, f.content) for f in second.files]


class TestFailures:
    @pytest.fixture
    def loader(self) -> DictTemplateLoader:
        return DictTemplateLoader(
            {
                "common/model-types": "types",
                "common/protocol": "{{ broken.attribute }}",
                "common/actions": "actions",
                "common/utils": "utils",
            }
        )

    def _context(self, grammar: GrammarModel, **generation: object) -> TemplateContext:
        return ContextBuilder().build(grammar, GenerationConfig.model_validate({"generation": generation}))

    def test_failed_template_is_skipped(self, loader: DictTemplateLoader, statemachine: GrammarModel) -> None:
        strategy = CommonStrategy(TemplateEngine(loader, TemplateCache()))
        result = strategy.render(statemachine, self._context(statemachine))
        assert _paths(result) == ["common/model-types.ts", "common/actions.ts", "common/utils.ts"]
        assert len(result.errors) == 1
        error = result.errors[0]
        assert isinstance(error, TemplateRenderError)
        assert error.context.template == "common/protocol"
        assert not result.aborted

    def test_fail_fast_stops(self, loader: DictTemplateLoader, statemachine: GrammarModel) -> None:
        strategy = CommonStrategy(TemplateEngine(loader, TemplateCache()))
        result = strategy.render(statemachine, self._context(statemachine, fail_fast=True))
        assert _paths(result) == ["common/model-types.ts"]
        assert result.aborted

    def test_missing_required_template_discards_output(self, statemachine: GrammarModel) -> None:
        loader = DictTemplateLoader({"common/protocol": "protocol"})
        strategy = CommonStrategy(TemplateEngine(loader, TemplateCache()))
        result = strategy.render(statemachine, self._context(statemachine))
        assert result.files == []
        assert result.aborted
        assert isinstance(result.errors[0], TemplateNotFoundError)
        assert result.errors[0].context.template == "common/model-types"

    def test_failed_per_type_template(self, statemachine: GrammarModel) -> None:
        loader = DictTemplateLoader(
            {
                "server/server-module": "module",
                "server/node-handler": "{% if node.name == 'StartState' %}{{ missing() }}{% endif %}{{ node.name }}",
            }
        )
        strategy = ServerStrategy(TemplateEngine(loader, TemplateCache()))
        result = strategy.render(statemachine, self._context(statemachine))
        assert _paths(result) == ["server/server-module.ts", "server/handlers/create-state-handler.ts"]
        assert result.errors[0].context.template == "server/node-handler"

    def test_parallel_fail_fast_keeps_nothing_after_failure(self) -> None:
        grammar = GrammarModel(
            project_name="order",
            interfaces=tuple(
                GrammarInterface(name=name, properties=(Property(name="label", type="string"),))
                for name in ["Zeta", "Alpha", "Mid", "Beta"]
            ),
        )
        loader = DictTemplateLoader(
            {
                "server/server-module": "module",
                "server/node-handler": "{% if node.name == 'Alpha' %}{{ missing() }}{% endif %}{{ node.name }}",
            }
        )
        strategy = ServerStrategy(TemplateEngine(loader, TemplateCache()))
        result = strategy.render(grammar, self._context(grammar, fail_fast=True, parallel_workers=4))

        assert _paths(result) == ["server/server-module.ts", "server/handlers/create-zeta-handler.ts"]
        assert len(result.errors) == 1
        assert result.aborted

    def test_custom_strategy(self, statemachine: GrammarModel) -> None:
        class DocsStrategy(TemplateStrategy):
            name = "docs"
            categories = ("docs",)
            templates = (TemplateSpec("index", "index.md", required=True),)

        loader = DictTemplateLoader({"docs/index": "# {{ grammar_name }} ({{ strategy }})"})
        result = DocsStrategy(TemplateEngine(loader, TemplateCache())).render(statemachine, self._context(statemachine))
        assert result.files[0].path == "docs/index.md"
        assert result.files[0].content == "# StateMachine (docs)"


class TestServerVariables:
    def test_operations(self, engine: TemplateEngine) -> None:
        grammar = GrammarModel(project_name="ops", rules=("Model", "RenameCommand", "MergeOperation"))
        operations = ServerStrategy(engine).extract_operations(grammar)
        names = [op.name for op in operations]
        assert names[:3] == ["CreateNode", "CreateEdge", "DeleteElement"]
        assert names[-2:] == ["RenameCommand", "MergeOperation"]
        assert operations[-1].type == "custom"

    def test_property_defaults(self, engine: TemplateEngine, literal_grammar: GrammarModel) -> None:
        context = ContextBuilder().build(literal_grammar)
        defaults = ServerStrategy(engine).property_defaults(context.node_types[0], context)
        assert defaults == [
            PropertyDefault("title", "''"),
            PropertyDefault("status", "'open'"),
            PropertyDefault("tags", "[]"),
        ]

    def test_edge_endpoints_not_defaulted(self, engine: TemplateEngine, statemachine: GrammarModel, context: TemplateContext) -> None:
        edge = context.edge_types[0]
        defaults = ServerStrategy(engine).property_defaults(edge, context)
        assert defaults == [PropertyDefault("event", "''")]


class TestBrowserVariables:
    def test_commands(self, engine: TemplateEngine, context: TemplateContext) -> None:
        grammar = GrammarModel(project_name="cmds", rules=("Model", "ZoomAction"))
        commands = BrowserStrategy(engine).extract_commands(grammar, context)
        assert [c.id for c in commands] == ["fit", "center", "export", "zoom-action"]
        assert commands[-1].label == "Zoom Action"
        assert commands[-1].custom

    def test_palette_groups(self, engine: TemplateEngine) -> None:
        grammar = GrammarModel(
            project_name="palette",
            interfaces=(
                GrammarInterface(name="Task", annotations={"category": "Activities"}),
                GrammarInterface(name="Note"),
                GrammarInterface(name="Gateway", annotations={"category": "Activities"}),
            ),
        )
        context = ContextBuilder().build(grammar)
        groups = BrowserStrategy(engine).palette_groups(context)
        assert [(g.label, [n.name for n in g.nodes]) for g in groups] == [
            ("Activities", ["Task", "Gateway"]),
            ("Nodes", ["Note"]),
        ]
        assert groups[0].id == "activities"
