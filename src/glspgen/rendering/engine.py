"""
Jinja2 rendering through the template cache.

Templates are compiled once per cache key and rendered with the
context's helper table bound as plain callables
(``{{ toPascalCase(node.name) }}``) plus a ``partial(name)`` callable for
reusable fragments. Helpers are bound per render rather than installed
on the environment, so a per-run helper override never leaks into a
template compiled for another run.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Mapping
from typing import Any

from jinja2 import Environment, StrictUndefined, Template, TemplateError, TemplateSyntaxError

from ..context.models import TemplateContext
from ..core.errors import ErrorContext, GlspGenError, TemplateRenderError
from .cache import TemplateCache
from .loader import TemplateLoader

logger = logging.getLogger(__name__)


def create_jinja_env() -> Environment:
    """Create the Jinja2 environment used for generated source files."""
    return Environment(
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


class TemplateEngine:
    """
    Loads, compiles and renders templates.

    Example:
        engine = TemplateEngine(FileTemplateLoader(), TemplateCache())
        text = engine.render("server/model-factory", context, {"nodes": ...})
    """

    def __init__(self, loader: TemplateLoader, cache: TemplateCache | None = None):
        self.loader = loader
        self.cache = cache if cache is not None else TemplateCache()
        self.env = create_jinja_env()

    def template_exists(self, name: str) -> bool:
        return self.loader.template_exists(name)

    def get_template(self, name: str) -> Template:
        """
        Return the compiled template, compiling on a cache miss.

        Raises:
            TemplateNotFoundError: If the loader has no such template
            TemplateRenderError: If the template does not compile
        """
        key = self.loader.cache_key(name)
        template = self.cache.get(key)
        if template is not None:
            return template

        source = self.loader.load_template(name)
        template = self._compile(source, name)
        self.cache.set(key, template, source_mtime=self.loader.get_mtime(name))
        return template

    def _compile(self, source: str, name: str) -> Template:
        try:
            return self.env.from_string(source)
        except TemplateSyntaxError as e:
            raise TemplateRenderError(
                f"Syntax error at line {e.lineno}: {e.message}",
                ErrorContext(phase="rendering", template=name, line=e.lineno),
            ) from e

    def _get_partial(self, name: str, source: str) -> Template:
        digest = hashlib.sha256(source.encode("utf-8")).hexdigest()[:16]
        key = f"partial://{name}/{digest}"
        template = self.cache.get(key)
        if template is None:
            template = self._compile(source, f"partial:{name}")
            self.cache.set(key, template, source_mtime=0.0)
        return template

    def render(
        self,
        name: str,
        context: TemplateContext,
        variables: Mapping[str, Any] | None = None,
    ) -> str:
        """
        Render a template.

        Args:
            name: Template name (``category/template``)
            context: Shared template context
            variables: Strategy-specific variables layered over the context

        Returns:
            Rendered text

        Raises:
            TemplateNotFoundError: If the template does not exist
            TemplateRenderError: If compiling or rendering fails
        """
        template = self.get_template(name)

        bound: dict[str, Any] = dict(context.helpers)
        bound.update(context.template_vars())
        bound.update(variables or {})

        def partial(partial_name: str, **extra: Any) -> str:
            source = context.partials.get(partial_name)
            if source is None:
                raise KeyError(f"Unknown partial '{partial_name}'")
            return self._get_partial(partial_name, source).render({**bound, **extra})

        bound["partial"] = partial

        try:
            return template.render(bound)
        except GlspGenError:
            raise
        except TemplateError as e:
            raise TemplateRenderError(
                f"Render failed: {e}",
                ErrorContext(phase="rendering", template=name),
            ) from e
        except Exception as e:
            # Helpers are arbitrary callables and may raise anything
            raise TemplateRenderError(
                f"Render failed: {type(e).__name__}: {e}",
                ErrorContext(phase="rendering", template=name),
            ) from e
