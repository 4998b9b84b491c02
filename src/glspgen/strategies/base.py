"""
Base class for template strategies.

A strategy owns the templates for one output surface (common, server or
browser). It renders its fixed templates in order, then one set of files
per node-like or edge-like interface, walking interfaces in grammar
declaration order. Every output path is prefixed with the strategy's
namespace, so two strategies can never emit the same path.
"""

from __future__ import annotations

import logging
from abc import ABC
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any

from ..context.helpers import to_kebab_case
from ..context.models import EdgeTypeInfo, ElementKind, NodeTypeInfo, TemplateContext
from ..core.errors import ErrorContext, GlspGenError, TemplateNotFoundError
from ..core.grammar import GrammarModel
from ..generator import GeneratedFile, StrategyResult
from ..rendering.engine import TemplateEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateSpec:
    """
    A template owned by a strategy.

    Attributes:
        template: Template name within the strategy's category
        output: Output path relative to the strategy namespace
        required: Missing required templates fail the whole strategy
        gate: Generation option that must be true for the template to run
    """

    template: str
    output: str
    required: bool = False
    gate: str | None = None


@dataclass(frozen=True)
class PerTypeTemplateSpec:
    """
    A template rendered once per classified interface.

    ``output`` is a format string with ``{name}`` and ``{kebab}`` fields.
    """

    template: str
    output: str
    kind: ElementKind


@dataclass(frozen=True)
class _Job:
    index: int
    template: str
    output: str
    variables: Mapping[str, Any]


class TemplateStrategy(ABC):
    """
    Renders one category of templates.

    Subclasses declare ``name``, ``categories``, ``templates`` and
    ``per_type_templates`` and may layer extra variables over the shared
    context by overriding :meth:`build_variables`.

    Example:
        class DocsStrategy(TemplateStrategy):
            name = "docs"
            categories = ("docs",)
            templates = (TemplateSpec("index", "index.md", required=True),)
    """

    name: str = ""
    categories: tuple[str, ...] = ()
    templates: tuple[TemplateSpec, ...] = ()
    per_type_templates: tuple[PerTypeTemplateSpec, ...] = ()

    def __init__(self, engine: TemplateEngine):
        self.engine = engine

    @property
    def namespace(self) -> str:
        return f"{self.name}/"

    def can_handle(self, category: str) -> bool:
        return category in self.categories

    def template_names(self) -> list[str]:
        """Qualified names of every template this strategy may render."""
        names = [self._qualified(spec.template) for spec in self.templates]
        names.extend(self._qualified(spec.template) for spec in self.per_type_templates)
        return names

    def build_variables(self, grammar: GrammarModel, context: TemplateContext) -> dict[str, Any]:
        """Strategy-only variables layered over the shared context."""
        return {}

    def _qualified(self, template: str) -> str:
        return f"{self.name}/{template}"

    def render(self, grammar: GrammarModel, context: TemplateContext) -> StrategyResult:
        """
        Render every applicable template.

        Per-template failures are recorded and skipped; with
        ``generation.fail_fast`` the first failure stops the strategy. A
        missing required template discards the strategy's output.

        Args:
            grammar: Grammar being generated
            context: Shared template context

        Returns:
            StrategyResult with files in deterministic order
        """
        result = StrategyResult(strategy=self.name)
        generation: Mapping[str, Any] = context.config.get("generation", {})
        fail_fast = bool(generation.get("fail_fast", False))

        missing = [
            self._qualified(spec.template)
            for spec in self.templates
            if spec.required and not self.engine.template_exists(self._qualified(spec.template))
        ]
        if missing:
            for name in missing:
                result.add_error(
                    TemplateNotFoundError(
                        f"Required template '{name}' is missing; {self.name} output discarded",
                        ErrorContext(phase="rendering", template=name),
                    )
                )
            result.aborted = True
            logger.error("Strategy %s is missing required templates: %s", self.name, ", ".join(missing))
            return result

        variables = self.build_variables(grammar, context)
        variables.setdefault("strategy", self.name)

        for job in self._fixed_jobs(generation, variables):
            if not self._run_job(job, context, result) and fail_fast:
                result.aborted = True
                return result

        per_type_jobs = self._per_type_jobs(context, variables, start=len(self.templates))
        workers = int(generation.get("parallel_workers", 1) or 1)
        if workers > 1 and len(per_type_jobs) > 1:
            self._run_parallel(per_type_jobs, context, result, workers, fail_fast)
        else:
            for job in per_type_jobs:
                if not self._run_job(job, context, result) and fail_fast:
                    result.aborted = True
                    return result

        logger.info("Generated %d %s files", len(result.files), self.name)
        return result

    def _fixed_jobs(self, generation: Mapping[str, Any], variables: Mapping[str, Any]) -> list[_Job]:
        jobs: list[_Job] = []
        for index, spec in enumerate(self.templates):
            name = self._qualified(spec.template)
            if spec.gate and not generation.get(spec.gate, False):
                logger.debug("Skipping %s (%s disabled)", name, spec.gate)
                continue
            if not spec.required and not self.engine.template_exists(name):
                logger.debug("Optional template %s not found, skipping", name)
                continue
            jobs.append(_Job(index, name, spec.output, variables))
        return jobs

    def _per_type_jobs(
        self,
        context: TemplateContext,
        variables: Mapping[str, Any],
        start: int,
    ) -> list[_Job]:
        nodes = {info.name: info for info in context.node_types}
        edges = {info.name: info for info in context.edge_types}
        jobs: list[_Job] = []
        index = start

        # Declaration order of the grammar, not the order of the kind lists
        for iface in context.interfaces:
            element: NodeTypeInfo | EdgeTypeInfo = nodes.get(iface.name) or edges[iface.name]
            for spec in self.per_type_templates:
                if spec.kind is not iface.kind:
                    continue
                name = self._qualified(spec.template)
                if not self.engine.template_exists(name):
                    logger.debug("Optional template %s not found, skipping", name)
                    continue
                output = spec.output.format(name=iface.name, kebab=to_kebab_case(iface.name))
                element_vars = dict(variables)
                element_vars["element"] = element
                element_vars[iface.kind.value] = element
                jobs.append(_Job(index, name, output, element_vars))
                index += 1
        return jobs

    def _render_job(self, job: _Job, context: TemplateContext) -> GeneratedFile:
        content = self.engine.render(job.template, context, job.variables)
        return GeneratedFile(path=self.namespace + job.output, content=content, template=job.template)

    def _run_job(self, job: _Job, context: TemplateContext, result: StrategyResult) -> bool:
        try:
            result.add_file(self._render_job(job, context))
        except GlspGenError as e:
            logger.warning("Template %s failed: %s", job.template, e.message)
            result.add_error(e.with_phase("rendering"))
            return False
        return True

    def _run_parallel(
        self,
        jobs: list[_Job],
        context: TemplateContext,
        result: StrategyResult,
        workers: int,
        fail_fast: bool,
    ) -> None:
        outcomes: dict[int, GeneratedFile | GlspGenError] = {}

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self._render_job, job, context): job for job in jobs}
            for future in as_completed(futures):
                job = futures[future]
                try:
                    outcomes[job.index] = future.result()
                except GlspGenError as e:
                    logger.warning("Template %s failed: %s", job.template, e.message)
                    outcomes[job.index] = e.with_phase("rendering")

        # Completion order must not leak into the output
        for index in sorted(outcomes):
            outcome = outcomes[index]
            if isinstance(outcome, GeneratedFile):
                result.add_file(outcome)
            else:
                result.add_error(outcome)
                if fail_fast:
                    # Nothing after the first failure is kept
                    result.aborted = True
                    break
