"""
Generated output records.

A strategy returns a :class:`StrategyResult`; every file in it is an
immutable :class:`GeneratedFile` whose path is relative to the extension
root.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .core.errors import GlspGenError


@dataclass(frozen=True)
class GeneratedFile:
    """
    One emitted file.

    Attributes:
        path: POSIX path relative to the output root
        content: Full file text
        encoding: Encoding used when writing
        template: Template the file was rendered from, if any
    """

    path: str
    content: str
    encoding: str = "utf-8"
    template: str | None = None

    def __post_init__(self) -> None:
        if not self.path or self.path.startswith("/") or ".." in self.path.split("/"):
            raise ValueError(f"Generated file path must be relative and inside the output root: {self.path!r}")


@dataclass
class StrategyResult:
    """
    Result from a strategy's render.

    Attributes:
        strategy: Strategy name
        files: Files in deterministic output order
        errors: Failures encountered (recoverable ones included)
        warnings: Warnings to display to the user
        artifacts: Data to share with plugins
    """

    strategy: str = ""
    files: list[GeneratedFile] = field(default_factory=list)
    errors: list[GlspGenError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    artifacts: dict[str, Any] = field(default_factory=dict)
    aborted: bool = False

    @property
    def success(self) -> bool:
        """Whether the strategy rendered without errors."""
        return len(self.errors) == 0

    def add_file(self, file: GeneratedFile) -> None:
        self.files.append(file)

    def add_error(self, error: GlspGenError) -> None:
        self.errors.append(error)

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

    def merge(self, other: StrategyResult) -> None:
        """Merge another result into this one."""
        self.files.extend(other.files)
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.artifacts.update(other.artifacts)
        self.aborted = self.aborted or other.aborted
