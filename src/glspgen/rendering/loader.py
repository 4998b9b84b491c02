"""
Template loaders.

Templates are addressed by name, ``<category>/<template>`` without the
``.j2`` suffix (``server/model-factory``). :class:`FileTemplateLoader`
searches project template directories before the built-in templates, so
a project can override any single template.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from ..core.errors import ErrorContext, TemplateNotFoundError

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".j2"
BUILTIN_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


class TemplateLoader(Protocol):
    """What the rendering engine needs from a template source."""

    def load_template(self, name: str) -> str: ...

    def template_exists(self, name: str) -> bool: ...

    def list_templates(self, category: str | None = None) -> list[str]: ...

    def get_mtime(self, name: str) -> float | None: ...

    def cache_key(self, name: str) -> str: ...


def _not_found(name: str) -> TemplateNotFoundError:
    return TemplateNotFoundError(
        f"Template '{name}' not found",
        ErrorContext(phase="rendering", template=name),
    )


class FileTemplateLoader:
    """
    Loads templates from an ordered list of directories.

    Example:
        loader = FileTemplateLoader(project_dir=Path("templates"))
        source = loader.load_template("server/model-factory")
    """

    def __init__(
        self,
        search_paths: Sequence[Path] | None = None,
        project_dir: Path | None = None,
        include_builtin: bool = True,
    ):
        dirs: list[Path] = []
        if project_dir is not None:
            if project_dir.is_dir():
                dirs.append(project_dir)
            else:
                logger.warning("Template directory %s does not exist", project_dir)
        dirs.extend(search_paths or [])
        if include_builtin:
            dirs.append(BUILTIN_TEMPLATES_DIR)
        self.search_paths = dirs

    def _find(self, name: str) -> Path | None:
        for directory in self.search_paths:
            candidate = directory / f"{name}{TEMPLATE_SUFFIX}"
            if candidate.is_file():
                return candidate
        return None

    def load_template(self, name: str) -> str:
        """
        Read a template's source.

        Raises:
            TemplateNotFoundError: If no search path has the template
        """
        path = self._find(name)
        if path is None:
            raise _not_found(name)
        logger.debug("Loading template %s from %s", name, path)
        return path.read_text(encoding="utf-8")

    def template_exists(self, name: str) -> bool:
        return self._find(name) is not None

    def list_templates(self, category: str | None = None) -> list[str]:
        """Names of all templates, optionally limited to one category."""
        names: set[str] = set()
        for directory in self.search_paths:
            if not directory.is_dir():
                continue
            for path in directory.rglob(f"*{TEMPLATE_SUFFIX}"):
                name = path.relative_to(directory).as_posix()[: -len(TEMPLATE_SUFFIX)]
                if category is None or name.startswith(f"{category}/"):
                    names.add(name)
        return sorted(names)

    def get_mtime(self, name: str) -> float | None:
        path = self._find(name)
        if path is None:
            return None
        try:
            return path.stat().st_mtime
        except OSError:
            return None

    def cache_key(self, name: str) -> str:
        """The resolved file path, so overrides and built-ins never share an entry."""
        path = self._find(name)
        return str(path.resolve()) if path else name


class DictTemplateLoader:
    """
    Serves templates from memory.

    Each ``set_template`` bumps a revision that is part of the cache key,
    so replaced sources are never served from a stale cache entry.
    """

    def __init__(self, templates: Mapping[str, str] | None = None):
        self._templates: dict[str, str] = dict(templates or {})
        self._revisions: dict[str, int] = {name: 0 for name in self._templates}

    def set_template(self, name: str, source: str) -> None:
        self._templates[name] = source
        self._revisions[name] = self._revisions.get(name, -1) + 1

    def remove_template(self, name: str) -> None:
        self._templates.pop(name, None)

    def load_template(self, name: str) -> str:
        try:
            return self._templates[name]
        except KeyError:
            raise _not_found(name) from None

    def template_exists(self, name: str) -> bool:
        return name in self._templates

    def list_templates(self, category: str | None = None) -> list[str]:
        return sorted(
            name
            for name in self._templates
            if category is None or name.startswith(f"{category}/")
        )

    def get_mtime(self, name: str) -> float | None:
        return None

    def cache_key(self, name: str) -> str:
        return f"memory://{id(self)}/{name}@{self._revisions.get(name, 0)}"
