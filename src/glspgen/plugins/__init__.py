"""Plugin hooks around the generation pipeline."""

from .base import CompositePlugin, FunctionPlugin, GenerationContext, HookHandler, HookName, Plugin
from .builtin import (
    BUILTIN_PLUGINS,
    TYPE_GUARDS_PATH,
    VALIDATORS_PATH,
    MetricsPlugin,
    TypeSafetyPlugin,
    analyze_types,
    create_plugin,
)
from .manager import HookRecord, PluginManager

__all__ = [
    "BUILTIN_PLUGINS",
    "CompositePlugin",
    "FunctionPlugin",
    "GenerationContext",
    "HookHandler",
    "HookName",
    "HookRecord",
    "MetricsPlugin",
    "Plugin",
    "PluginManager",
    "TYPE_GUARDS_PATH",
    "TypeSafetyPlugin",
    "VALIDATORS_PATH",
    "analyze_types",
    "create_plugin",
]
