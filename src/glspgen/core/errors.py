"""
Error types for grammar parsing, validation, rendering and output.

Every failure the generator reports is one of these kinds. Components
wrap low-level exceptions (Jinja2 errors, ``OSError``, plugin crashes)
into the matching class so the orchestrator can aggregate them into a
single report.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass
class ErrorContext:
    """
    Where an error happened.

    Attributes:
        phase: Pipeline phase (parsing, validating, rendering, ...)
        interface: Owning grammar interface, if any
        property: Offending property name, if any
        template: Template identifier, if any
        plugin: Plugin name, if any
        path: Output path, if any
        file: Source file for parse errors
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional source snippet
    """

    phase: str | None = None
    interface: str | None = None
    property: str | None = None
    template: str | None = None
    plugin: str | None = None
    path: str | None = None
    file: Path | None = None
    line: int | None = None
    column: int | None = None
    snippet: str | None = None

    def format(self) -> str:
        """
        Format as a compact location string.

        Returns:
            e.g. ``grammar.langium:10:5`` or ``[rendering] template=server/model-factory``
        """
        parts: list[str] = []
        if self.file is not None:
            location = str(self.file)
            if self.line is not None:
                location += f":{self.line}"
                if self.column is not None:
                    location += f":{self.column}"
            parts.append(location)
        if self.phase:
            parts.append(f"[{self.phase}]")
        for label in ("interface", "property", "template", "plugin", "path"):
            value = getattr(self, label)
            if value:
                parts.append(f"{label}={value}")
        location = " ".join(parts)
        if self.snippet:
            return f"{location}\n{self._format_snippet()}"
        return location

    def _format_snippet(self) -> str:
        """Format snippet with line numbers and an error marker."""
        if not self.snippet or self.line is None:
            return self.snippet or ""

        formatted = []
        start_line = max(1, self.line - 2)
        for i, text in enumerate(self.snippet.split("\n")):
            line_num = start_line + i
            prefix = f"{line_num:4d} | "
            formatted.append(prefix + text)
            if line_num == self.line and self.column is not None:
                formatted.append(" " * (len(prefix) + self.column - 1) + "^^^")
        return "\n".join(formatted)


class GlspGenError(Exception):
    """Base exception for all generator errors."""

    kind: str = "error"
    fatal: bool = True

    def __init__(self, message: str, context: ErrorContext | None = None):
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        location = self.context.format()
        if location:
            return f"{location}\n{self.message}" if "\n" in location else f"{location}: {self.message}"
        return self.message

    def with_phase(self, phase: str) -> GlspGenError:
        """Record the pipeline phase if it is not set yet."""
        if self.context.phase is None:
            self.context.phase = phase
            self.args = (self._format_message(),)
        return self


class ParseError(GlspGenError):
    """
    Raised when grammar text cannot be parsed.

    Examples:
    - Unbalanced braces in an interface body
    - Property declaration without a type
    - Unterminated block comment
    """

    kind = "parse"


class StructuralGrammarError(GlspGenError):
    """
    Raised when a parsed grammar is structurally unusable.

    Examples:
    - Property type names an undeclared interface or type alias
    - Circular inheritance between interfaces
    - Interface classified as both node and edge
    """

    kind = "structural"


class TemplateNotFoundError(GlspGenError):
    """Raised when a required template does not exist."""

    kind = "template-not-found"


class TemplateRenderError(GlspGenError):
    """
    Raised when a template fails to compile or render.

    Recoverable per template unless the run is fail-fast.
    """

    kind = "template-render"


class PluginError(GlspGenError):
    """Raised when a plugin hook, configure or validate step fails."""

    kind = "plugin"


class OutputConflictError(GlspGenError):
    """Raised when two generated files target the same path."""

    kind = "output-conflict"


class OutputWriteError(GlspGenError):
    """Raised when a generated file cannot be persisted."""

    kind = "output-write"


class ConfigError(GlspGenError):
    """Raised when a configuration file cannot be loaded."""

    kind = "config"


def make_parse_error(
    message: str,
    file: Path | None,
    line: int,
    column: int,
    snippet: str | None = None,
) -> ParseError:
    """
    Helper to create a ParseError with source location.

    Args:
        message: Error description
        file: Source file path (None for in-memory grammars)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional code snippet

    Returns:
        ParseError with context attached
    """
    context = ErrorContext(
        phase="parsing",
        file=file,
        line=line,
        column=column,
        snippet=snippet,
    )
    return ParseError(message, context)
