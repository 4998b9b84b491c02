"""
Generation configuration models.

Parses ``glspgen.toml`` (or a JSON config file) into a typed
:class:`GenerationConfig`. Keys may be written in snake_case or
camelCase; unknown keys are kept and passed through to templates.
"""

from __future__ import annotations

import json
import logging
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .core.errors import ConfigError, ErrorContext

logger = logging.getLogger(__name__)


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class DiagramType(str, Enum):
    """Supported diagram layouts."""

    NODE_EDGE = "node-edge"
    COMPARTMENT = "compartment"
    PORT = "port"
    HIERARCHICAL = "hierarchical"


class EdgeRouting(str, Enum):
    """Edge routing styles."""

    POLYLINE = "polyline"
    MANHATTAN = "manhattan"
    BEZIER = "bezier"


class ExtensionConfig(_ConfigModel):
    """Extension manifest metadata, passed through untouched."""

    name: str = "my-glsp-extension"
    display_name: str = "My GLSP Extension"
    version: str = "1.0.0"
    publisher: str = "my-company"
    description: str = "A GLSP-based visual modeling tool"
    license: str = "MIT"
    file_extension: str | None = None


class DiagramFeatures(_ConfigModel):
    """Diagram capability flags."""

    compartments: bool = False
    ports: bool = False
    routing: EdgeRouting = EdgeRouting.POLYLINE
    grid: bool = True
    snap_to_grid: bool = True
    auto_layout: bool = False
    animation: bool = True

    def enabled(self) -> list[str]:
        """Names of enabled boolean features, sorted."""
        names = [
            name
            for name, value in self.model_dump().items()
            if isinstance(value, bool) and value
        ]
        return sorted(names)


class DiagramConfig(_ConfigModel):
    """Diagram settings and explicit interface classification."""

    type: DiagramType = DiagramType.NODE_EDGE
    features: DiagramFeatures = Field(default_factory=DiagramFeatures)
    node_types: list[str] = Field(default_factory=list)
    edge_types: list[str] = Field(default_factory=list)


class NodeDefaults(_ConfigModel):
    width: int = 100
    height: int = 60
    corner_radius: int = 5


class ColorConfig(_ConfigModel):
    node: str = "#4A90E2"
    edge: str = "#333333"
    selected: str = "#FF6B6B"
    hover: str = "#FFA500"
    error: str = "#DC143C"


class StylingConfig(_ConfigModel):
    """Visual defaults for generated views."""

    theme: str = "light"
    node_defaults: NodeDefaults = Field(default_factory=NodeDefaults)
    default_colors: ColorConfig = Field(default_factory=ColorConfig)


class GenerationOptions(_ConfigModel):
    """
    Options controlling what is generated and how failures are handled.

    Attributes:
        include_examples: Emit example model files
        generate_tests: Emit test scaffolding
        generate_docs: Emit README files
        fail_fast: Stop at the first template failure
        continue_on_plugin_error: Log plugin failures instead of aborting
        parallel_workers: Threads for per-interface rendering (1 = sequential)
        targets: Strategy categories to run; empty means all
        templates_dir: Project template directory searched before built-ins
    """

    include_examples: bool = True
    generate_tests: bool = True
    generate_docs: bool = True
    fail_fast: bool = False
    continue_on_plugin_error: bool = False
    parallel_workers: int = Field(default=1, ge=1)
    targets: list[str] = Field(default_factory=list)
    templates_dir: str | None = None


class GenerationConfig(_ConfigModel):
    """Complete generation configuration."""

    extension: ExtensionConfig = Field(default_factory=ExtensionConfig)
    dependencies: dict[str, str] = Field(
        default_factory=lambda: {
            "@eclipse-glsp/server": "^2.0.0",
            "@eclipse-glsp/client": "^2.0.0",
            "@eclipse-glsp/theia-integration": "^2.0.0",
            "@theia/core": "^1.35.0",
        }
    )
    diagram: DiagramConfig = Field(default_factory=DiagramConfig)
    styling: StylingConfig = Field(default_factory=StylingConfig)
    generation: GenerationOptions = Field(default_factory=GenerationOptions)
    plugins: list[str] = Field(default_factory=list)

    def to_context_dict(self) -> dict[str, Any]:
        """Plain dict for templates, extras included."""
        return self.model_dump(mode="json")

    def get_templates_dir(self, project_root: Path) -> Path | None:
        """Resolve the project template directory, if configured."""
        if not self.generation.templates_dir:
            return None
        templates_dir = Path(self.generation.templates_dir)
        if templates_dir.is_absolute():
            return templates_dir
        return project_root / templates_dir


def config_from_dict(data: dict[str, Any]) -> GenerationConfig:
    """
    Build a config from a plain mapping.

    Raises:
        ConfigError: If a recognized key has an invalid value
    """
    try:
        return GenerationConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", ErrorContext(phase="configuring")) from e


def load_config(path: Path | None) -> GenerationConfig:
    """
    Load configuration from a TOML or JSON file.

    A missing path yields the defaults. TOML files may nest everything
    under a ``[glspgen]`` table.

    Args:
        path: Config file path

    Returns:
        GenerationConfig with parsed values or defaults
    """
    if path is None or not path.exists():
        return GenerationConfig()

    try:
        if path.suffix == ".json":
            data = json.loads(path.read_text(encoding="utf-8"))
        else:
            with open(path, "rb") as f:
                data = tomllib.load(f)
            data = data.get("glspgen", data)
    except (OSError, json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Cannot read config: {e}", ErrorContext(phase="configuring", file=path)) from e

    if not isinstance(data, dict):
        raise ConfigError("Config root must be a table", ErrorContext(phase="configuring", file=path))

    logger.debug("Loaded config from %s", path)
    return config_from_dict(data)
