"""Shared pytest fixtures for glspgen tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from glspgen.config import GenerationConfig
from glspgen.context.builder import ContextBuilder
from glspgen.context.models import TemplateContext
from glspgen.core.grammar import GrammarInterface, GrammarModel, Property, TypeAlias
from glspgen.core.parser import LangiumGrammarParser
from glspgen.rendering.cache import TemplateCache
from glspgen.rendering.engine import TemplateEngine
from glspgen.rendering.loader import DictTemplateLoader, FileTemplateLoader

FIXED_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

STATEMACHINE_GRAMMAR = """\
grammar StateMachine

// @label State
interface State {
    name: string
    kind: StateKind
    entryAction?: string
}

// @glspType node
// @shape circle
interface StartState extends State {
}

interface Transition {
    source: @State
    target: @State
    event?: string
}

type StateKind = 'simple' | 'composite';
"""


@pytest.fixture
def parser() -> LangiumGrammarParser:
    return LangiumGrammarParser()


@pytest.fixture
def statemachine_text() -> str:
    return STATEMACHINE_GRAMMAR


@pytest.fixture
def statemachine(parser: LangiumGrammarParser) -> GrammarModel:
    """Parsed state machine grammar."""
    return parser.parse_grammar(STATEMACHINE_GRAMMAR, project_name="statemachine")


@pytest.fixture
def grammar_file(tmp_path: Path) -> Path:
    path = tmp_path / "statemachine.langium"
    path.write_text(STATEMACHINE_GRAMMAR, encoding="utf-8")
    return path


@pytest.fixture
def node_edge_grammar() -> GrammarModel:
    """``Node { position, size? }`` and ``Edge { source, target }``."""
    return GrammarModel(
        project_name="node-edge",
        grammar_name="Diagram",
        interfaces=(
            GrammarInterface(
                name="Position",
                properties=(Property(name="x", type="number"), Property(name="y", type="number")),
            ),
            GrammarInterface(
                name="Size",
                properties=(Property(name="width", type="number"), Property(name="height", type="number")),
            ),
            GrammarInterface(
                name="Node",
                properties=(
                    Property(name="position", type="Position"),
                    Property(name="size", type="Size", optional=True),
                ),
            ),
            GrammarInterface(
                name="Edge",
                properties=(Property(name="source", type="Node"), Property(name="target", type="Node")),
            ),
        ),
    )


@pytest.fixture
def empty_grammar() -> GrammarModel:
    return GrammarModel(project_name="empty-project")


@pytest.fixture
def literal_grammar() -> GrammarModel:
    """A node whose status property is a literal union."""
    return GrammarModel(
        project_name="tasks",
        grammar_name="Tasks",
        interfaces=(
            GrammarInterface(
                name="Task",
                properties=(
                    Property(name="title", type="string"),
                    Property(name="status", type="TaskStatus"),
                    Property(name="tags", type="string", array=True),
                ),
            ),
        ),
        types=(TypeAlias(name="TaskStatus", definition="'open' | 'done'", union_types=("open", "done")),),
    )


@pytest.fixture
def fixed_time() -> datetime:
    return FIXED_TIME


@pytest.fixture
def builder(fixed_time: datetime) -> ContextBuilder:
    """Context builder with a pinned clock."""
    return ContextBuilder(clock=lambda: fixed_time)


@pytest.fixture
def config() -> GenerationConfig:
    return GenerationConfig()


@pytest.fixture
def context(builder: ContextBuilder, statemachine: GrammarModel, config: GenerationConfig) -> TemplateContext:
    return builder.build(statemachine, config)


@pytest.fixture
def cache() -> TemplateCache:
    return TemplateCache()


@pytest.fixture
def engine(cache: TemplateCache) -> TemplateEngine:
    """Engine over the built-in templates."""
    return TemplateEngine(FileTemplateLoader(), cache)


@pytest.fixture
def dict_loader() -> DictTemplateLoader:
    return DictTemplateLoader()


@pytest.fixture
def dict_engine(dict_loader: DictTemplateLoader) -> TemplateEngine:
    """Engine over in-memory templates."""
    return TemplateEngine(dict_loader, TemplateCache())
