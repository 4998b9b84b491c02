"""
Plugin model for the generation pipeline.

Plugins hook into named points around the orchestration phases:

- beforeGenerate: before the grammar is parsed
- afterParse: grammar model available
- afterValidation: template context built
- beforeTemplateRender / afterTemplateRender: around the strategies
- afterGenerate: files written (or computed, on a dry run)

Every handler receives the same :class:`GenerationContext`; changes it
makes are visible to later handlers and to the orchestrator.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from ..config import GenerationConfig
from ..context.models import TemplateContext
from ..core.grammar import GrammarModel
from ..core.validator import ValidationReport
from ..generator import GeneratedFile


class HookName(str, Enum):
    """Hook points, in the order a run reaches them."""

    BEFORE_GENERATE = "beforeGenerate"
    AFTER_PARSE = "afterParse"
    AFTER_VALIDATION = "afterValidation"
    BEFORE_TEMPLATE_RENDER = "beforeTemplateRender"
    AFTER_TEMPLATE_RENDER = "afterTemplateRender"
    AFTER_GENERATE = "afterGenerate"


@dataclass
class GenerationContext:
    """
    Shared, mutable state handed to every hook of a run.

    Attributes:
        config: Generation configuration in effect
        grammar: Parsed grammar, once available
        grammar_path: Grammar file, when generating from a file
        template_context: Built context, once available
        validation: Validation report, once available
        phase: Current pipeline phase
        metadata: Free-form values plugins share with each other and the report
        additional_files: Extra files plugins want emitted
        files: Files rendered by the strategies
        written: Paths written to disk
        warnings: Warnings collected so far
        files_collected: Output set is fixed; ``add_file`` is refused
    """

    config: GenerationConfig
    grammar: GrammarModel | None = None
    grammar_path: Path | None = None
    template_context: TemplateContext | None = None
    validation: ValidationReport | None = None
    phase: str = "not_started"
    metadata: dict[str, Any] = field(default_factory=dict)
    additional_files: list[GeneratedFile] = field(default_factory=list)
    files: list[GeneratedFile] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    abort_reason: str | None = None
    files_collected: bool = False

    @property
    def aborted(self) -> bool:
        return self.abort_reason is not None

    def abort(self, reason: str) -> None:
        """Stop the run after the current hook."""
        self.abort_reason = reason

    def add_file(self, path: str, content: str) -> None:
        """
        Queue an extra file for emission.

        Raises:
            RuntimeError: If the output set was already collected
        """
        if self.files_collected:
            raise RuntimeError(f"Cannot add '{path}' after output files were collected")
        self.additional_files.append(GeneratedFile(path=path, content=content))


HookHandler = Callable[[GenerationContext], None]


class Plugin:
    """
    Base class for plugins.

    Example:
        class LicensePlugin(Plugin):
            name = "license"
            version = "1.0.0"

            def hooks(self):
                return {HookName.AFTER_TEMPLATE_RENDER: self.add_license}

            def add_license(self, context):
                context.add_file("common/LICENSE", "MIT")
    """

    name: str = "unnamed-plugin"
    version: str = "0.0.0"
    description: str = ""
    priority: int = 0

    def hooks(self) -> Mapping[HookName | str, HookHandler]:
        """Handlers by hook name."""
        return {}

    def configure(self, config: GenerationConfig) -> GenerationConfig | None:
        """Adjust the configuration before it is used; may return a replacement."""
        return None

    def validate(self) -> list[str]:
        """Problems with the plugin's own options."""
        return []

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


class FunctionPlugin(Plugin):
    """Plugin assembled from plain functions."""

    def __init__(
        self,
        name: str,
        hooks: Mapping[HookName | str, HookHandler] | None = None,
        version: str = "0.0.0",
        priority: int = 0,
        configure: Callable[[GenerationConfig], GenerationConfig | None] | None = None,
        validate: Callable[[], list[str]] | None = None,
        description: str = "",
    ):
        self.name = name
        self.version = version
        self.priority = priority
        self.description = description
        self._hooks = dict(hooks or {})
        self._configure = configure
        self._validate = validate

    def hooks(self) -> Mapping[HookName | str, HookHandler]:
        return self._hooks

    def configure(self, config: GenerationConfig) -> GenerationConfig | None:
        if self._configure is None:
            return None
        return self._configure(config)

    def validate(self) -> list[str]:
        if self._validate is None:
            return []
        return self._validate()


class CompositePlugin(Plugin):
    """
    Several plugins acting as one.

    Same-named hooks run as one chain, in the order the plugins were given.
    """

    def __init__(self, name: str, plugins: Sequence[Plugin], version: str = "1.0.0"):
        self.name = name
        self.version = version
        self.plugins = list(plugins)
        self.priority = max((p.priority for p in self.plugins), default=0)

    def hooks(self) -> Mapping[HookName | str, HookHandler]:
        chains: dict[HookName | str, list[HookHandler]] = {}
        for plugin in self.plugins:
            for hook, handler in plugin.hooks().items():
                try:
                    key: HookName | str = HookName(hook)
                except ValueError:
                    # Unknown names pass through for the manager to reject
                    key = hook
                chains.setdefault(key, []).append(handler)
        return {hook: _chain(handlers) for hook, handlers in chains.items()}

    def configure(self, config: GenerationConfig) -> GenerationConfig | None:
        for plugin in self.plugins:
            replacement = plugin.configure(config)
            if replacement is not None:
                config = replacement
        return config

    def validate(self) -> list[str]:
        return [f"{plugin.name}: {problem}" for plugin in self.plugins for problem in plugin.validate()]


def _chain(handlers: list[HookHandler]) -> HookHandler:
    def run(context: GenerationContext) -> None:
        for handler in handlers:
            if context.aborted:
                return
            handler(context)

    return run
