"""
Generation pipeline.

Drives one run through its phases::

    NOT_STARTED -> PARSING -> VALIDATING -> RENDERING -> WRITING -> DONE
                                                            \\-> FAILED

Plugin hooks run at each phase boundary. Every failure is collected into
the returned :class:`GenerationReport`; ``generate`` does not raise for
problems with the grammar, templates, plugins or output paths.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .config import GenerationConfig
from .context.builder import ContextBuilder
from .core.errors import (
    ErrorContext,
    GlspGenError,
    OutputConflictError,
    ParseError,
    PluginError,
    TemplateRenderError,
)
from .core.grammar import GrammarModel
from .core.parser import LangiumGrammarParser
from .core.validator import validate_grammar
from .generator import GeneratedFile, StrategyResult
from .plugins import GenerationContext, HookName, PluginManager, create_plugin
from .rendering.cache import TemplateCache
from .rendering.engine import TemplateEngine
from .rendering.loader import FileTemplateLoader
from .strategies import TemplateStrategy, default_strategies
from .writer import OutputWriter

logger = logging.getLogger(__name__)


class GenerationPhase(str, Enum):
    NOT_STARTED = "not_started"
    PARSING = "parsing"
    VALIDATING = "validating"
    RENDERING = "rendering"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class GenerationReport:
    """
    Outcome of one generation run.

    Attributes:
        success: Run reached DONE without errors
        phase: Final phase (DONE or FAILED)
        failed_phase: Phase in which the run failed, if it did
        files: Files generated, in output order (partial on failure)
        written: Paths written to disk
        errors: Every error collected, not just the first
        warnings: Warnings collected
        metadata: Values recorded by the pipeline and plugins
        strategy_results: Per-strategy results in run order
    """

    success: bool
    phase: GenerationPhase
    failed_phase: GenerationPhase | None = None
    files: list[GeneratedFile] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)
    errors: list[GlspGenError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    strategy_results: list[StrategyResult] = field(default_factory=list)

    def file_map(self) -> dict[str, str]:
        """Generated content by path."""
        return {f.path: f.content for f in self.files}

    def get_file(self, path: str) -> GeneratedFile | None:
        for f in self.files:
            if f.path == path:
                return f
        return None


class _RunFailed(Exception):
    """Internal signal that the current run cannot continue."""


class GenerationOrchestrator:
    """
    Runs the parse, validate, render and write phases.

    Collaborators are passed in; nothing is looked up globally. The
    engine's template cache may be shared between orchestrators.

    Example:
        orchestrator = GenerationOrchestrator.from_config(config)
        report = orchestrator.generate(Path("statemachine.langium"), config, Path("out"))
        if not report.success:
            for error in report.errors:
                print(error)
    """

    def __init__(
        self,
        engine: TemplateEngine | None = None,
        strategies: Sequence[TemplateStrategy] | None = None,
        plugins: PluginManager | None = None,
        parser: LangiumGrammarParser | None = None,
        context_builder: ContextBuilder | None = None,
        writer_factory: Callable[[Path], OutputWriter] = OutputWriter,
    ):
        self.engine = engine or TemplateEngine(FileTemplateLoader())
        self.strategies = list(strategies) if strategies is not None else default_strategies(self.engine)
        self.plugins = plugins or PluginManager()
        self.parser = parser or LangiumGrammarParser()
        self.context_builder = context_builder or ContextBuilder()
        self.writer_factory = writer_factory

    @classmethod
    def from_config(
        cls,
        config: GenerationConfig,
        project_root: Path | None = None,
        cache: TemplateCache | None = None,
    ) -> GenerationOrchestrator:
        """
        Assemble an orchestrator from configuration.

        Project templates (``generation.templates_dir``) are searched
        before the built-in ones; ``plugins`` names built-in plugins.

        Raises:
            PluginError: If a configured plugin name is unknown
        """
        root = project_root or Path.cwd()
        loader = FileTemplateLoader(project_dir=config.get_templates_dir(root))
        engine = TemplateEngine(loader, cache)
        manager = PluginManager()
        for name in config.plugins:
            manager.register(create_plugin(name))
        return cls(engine=engine, plugins=manager)

    def generate(
        self,
        grammar: GrammarModel | Path | str,
        config: GenerationConfig | None = None,
        output_dir: Path | None = None,
        dry_run: bool = False,
    ) -> GenerationReport:
        """
        Run the full pipeline.

        Args:
            grammar: Parsed grammar, or path to a ``.langium`` file
            config: Generation config (defaults when None)
            output_dir: Where to write files; None computes files only
            dry_run: Compute files without writing them

        Returns:
            GenerationReport with all errors and warnings
        """
        run = _Run(self, config or GenerationConfig())
        try:
            run.execute(grammar, output_dir, dry_run)
        except _RunFailed:
            pass
        return run.report()


class _Run:
    """State of a single ``generate`` call."""

    def __init__(self, orchestrator: GenerationOrchestrator, config: GenerationConfig):
        self.orchestrator = orchestrator
        self.context = GenerationContext(config=config)
        self.phase = GenerationPhase.NOT_STARTED
        self.failed_phase: GenerationPhase | None = None
        self.errors: list[GlspGenError] = []
        self.results: list[StrategyResult] = []
        self.files: list[GeneratedFile] | None = None

    @property
    def isolate_plugins(self) -> bool:
        return self.context.config.generation.continue_on_plugin_error

    def enter(self, phase: GenerationPhase) -> None:
        logger.info("Phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase
        self.context.phase = phase.value

    def fail(self, *errors: GlspGenError) -> _RunFailed:
        for error in errors:
            self.errors.append(error.with_phase(self.phase.value))
        self.failed_phase = self.phase
        logger.error("Generation failed in %s phase with %d error(s)", self.phase.value, len(self.errors))
        self.phase = GenerationPhase.FAILED
        self.context.phase = GenerationPhase.FAILED.value
        return _RunFailed()

    def hook(self, hook: HookName) -> None:
        try:
            self.orchestrator.plugins.run_hook(
                hook,
                self.context,
                # Config can only widen isolation set on the manager
                continue_on_error=True if self.isolate_plugins else None,
            )
        except PluginError as e:
            raise self.fail(e) from e
        if self.context.aborted:
            raise self.fail(
                PluginError(
                    f"Run aborted in {hook.value}: {self.context.abort_reason}",
                    ErrorContext(phase=self.phase.value),
                )
            )

    def execute(self, source: GrammarModel | Path | str, output_dir: Path | None, dry_run: bool) -> None:
        self.configure_plugins()

        self.enter(GenerationPhase.PARSING)
        if not isinstance(source, GrammarModel):
            self.context.grammar_path = Path(source)
        self.hook(HookName.BEFORE_GENERATE)
        self.context.grammar = self.parse(source)
        self.hook(HookName.AFTER_PARSE)

        self.enter(GenerationPhase.VALIDATING)
        self.validate()
        self.hook(HookName.AFTER_VALIDATION)

        self.enter(GenerationPhase.RENDERING)
        self.hook(HookName.BEFORE_TEMPLATE_RENDER)
        self.render()
        self.hook(HookName.AFTER_TEMPLATE_RENDER)
        self.files = self.collect_files()

        self.enter(GenerationPhase.WRITING)
        if output_dir is not None and not dry_run:
            self.write(self.files, output_dir)
        self.hook(HookName.AFTER_GENERATE)

        self.enter(GenerationPhase.DONE)

    def configure_plugins(self) -> None:
        plugins = self.orchestrator.plugins
        try:
            self.context.config = plugins.configure(self.context.config)
        except PluginError as e:
            raise self.fail(e) from e
        problems = plugins.validate()
        if problems:
            raise self.fail(*problems)

    def parse(self, source: GrammarModel | Path | str) -> GrammarModel:
        if isinstance(source, GrammarModel):
            return source
        path = Path(source)
        try:
            return self.orchestrator.parser.parse_grammar_file(path)
        except ParseError as e:
            raise self.fail(e) from e
        except OSError as e:
            raise self.fail(ParseError(f"Cannot read grammar: {e}", ErrorContext(file=path))) from e

    def validate(self) -> None:
        grammar = self.context.grammar
        assert grammar is not None
        validation = validate_grammar(grammar)
        self.context.validation = validation
        self.context.warnings.extend(validation.warnings)
        if not validation.ok:
            raise self.fail(*validation.errors)
        try:
            self.context.template_context = self.orchestrator.context_builder.build(grammar, self.context.config)
        except GlspGenError as e:
            raise self.fail(e) from e

    def render(self) -> None:
        grammar = self.context.grammar
        template_context = self.context.template_context
        assert grammar is not None and template_context is not None

        generation = self.context.config.generation
        targets = generation.targets
        unrecoverable: list[GlspGenError] = []

        for strategy in self.orchestrator.strategies:
            if targets and not any(strategy.can_handle(target) for target in targets):
                logger.debug("Skipping %s strategy (not targeted)", strategy.name)
                continue
            result = self.run_strategy(strategy, grammar)
            self.results.append(result)
            self.context.files.extend(result.files)
            self.context.warnings.extend(result.warnings)

            if result.aborted:
                unrecoverable.extend(result.errors)
            else:
                self.errors.extend(result.errors)
            if result.errors and generation.fail_fast:
                break

        if unrecoverable or (self.errors and generation.fail_fast):
            raise self.fail(*unrecoverable)

    def run_strategy(self, strategy: TemplateStrategy, grammar: GrammarModel) -> StrategyResult:
        template_context = self.context.template_context
        assert template_context is not None
        try:
            return strategy.render(grammar, template_context)
        except GlspGenError as e:
            result = StrategyResult(strategy=strategy.name, aborted=True)
            result.add_error(e.with_phase("rendering"))
            return result
        except Exception as e:
            logger.exception("Strategy %s crashed", strategy.name)
            result = StrategyResult(strategy=strategy.name, aborted=True)
            result.add_error(
                TemplateRenderError(
                    f"Strategy '{strategy.name}' failed: {type(e).__name__}: {e}",
                    ErrorContext(phase="rendering"),
                )
            )
            return result

    def collect_files(self) -> list[GeneratedFile]:
        self.context.files_collected = True
        files = self.context.files + self.context.additional_files
        seen: dict[str, GeneratedFile] = {}
        conflicts: list[GlspGenError] = []
        for f in files:
            previous = seen.get(f.path)
            if previous is not None:
                conflicts.append(
                    OutputConflictError(
                        f"'{f.path}' is generated by both {previous.template or 'a plugin'} "
                        f"and {f.template or 'a plugin'}",
                        ErrorContext(phase="rendering", path=f.path),
                    )
                )
            else:
                seen[f.path] = f
        if conflicts:
            raise self.fail(*conflicts)
        return files

    def write(self, files: list[GeneratedFile], output_dir: Path) -> None:
        writer = self.orchestrator.writer_factory(output_dir)
        for f in files:
            try:
                self.context.written.append(writer.write_file(f))
            except GlspGenError as e:
                raise self.fail(e) from e
        logger.info("Wrote %d files to %s", len(self.context.written), output_dir)

    def report(self) -> GenerationReport:
        metadata = dict(self.context.metadata)
        template_context = self.context.template_context
        if template_context is not None:
            metadata.setdefault("context", dict(template_context.metadata))
        metadata["strategies"] = [result.strategy for result in self.results]

        files = self.files if self.files is not None else self.context.files + self.context.additional_files
        done = self.phase is GenerationPhase.DONE
        return GenerationReport(
            success=done and not self.errors,
            phase=self.phase,
            failed_phase=self.failed_phase,
            files=files,
            written=list(self.context.written),
            errors=list(self.errors),
            warnings=list(self.context.warnings),
            metadata=metadata,
            strategy_results=list(self.results),
        )


def generate(
    grammar: GrammarModel | Path | str,
    config: GenerationConfig | None = None,
    output_dir: Path | None = None,
    dry_run: bool = False,
) -> GenerationReport:
    """Run the pipeline with built-in templates, strategies and configured plugins."""
    config = config or GenerationConfig()
    try:
        orchestrator = GenerationOrchestrator.from_config(config)
    except PluginError as e:
        return GenerationReport(
            success=False,
            phase=GenerationPhase.FAILED,
            failed_phase=GenerationPhase.NOT_STARTED,
            errors=[e],
        )
    return orchestrator.generate(grammar, config, output_dir, dry_run)
