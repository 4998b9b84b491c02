"""
Plugin registration and hook dispatch.

Hook handlers are flattened into one ordered record list per hook name
when a plugin is registered; dispatch walks that list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import GenerationConfig
from ..core.errors import ErrorContext, PluginError
from .base import GenerationContext, HookHandler, HookName, Plugin

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HookRecord:
    plugin: str
    hook: HookName
    handler: HookHandler


class PluginManager:
    """
    Holds registered plugins and runs their hooks.

    Hooks run in registration order. A plugin's ``priority`` only matters
    when it is registered with ``honor_priority=True``, which places it
    ahead of already-registered plugins of lower priority.

    Example:
        manager = PluginManager()
        manager.register(MetricsPlugin())
        manager.run_hook(HookName.BEFORE_GENERATE, context)
    """

    def __init__(self, continue_on_error: bool = False):
        self.continue_on_error = continue_on_error
        self._plugins: list[Plugin] = []
        self._hooks: dict[HookName, list[HookRecord]] = {hook: [] for hook in HookName}

    @property
    def plugins(self) -> list[Plugin]:
        return list(self._plugins)

    def register(self, plugin: Plugin, honor_priority: bool = False) -> None:
        """
        Register a plugin.

        Raises:
            PluginError: If the name is taken or a hook name is unknown
        """
        if any(p.name == plugin.name for p in self._plugins):
            raise PluginError(
                f"Plugin '{plugin.name}' is already registered",
                ErrorContext(plugin=plugin.name),
            )
        self._records_for(plugin)

        position = len(self._plugins)
        if honor_priority:
            for i, existing in enumerate(self._plugins):
                if plugin.priority > existing.priority:
                    position = i
                    break
        self._plugins.insert(position, plugin)
        self._rebuild()
        logger.debug("Registered plugin %s", plugin)

    def register_many(self, plugins: list[Plugin]) -> None:
        for plugin in plugins:
            self.register(plugin)

    def unregister(self, name: str) -> None:
        self._plugins = [p for p in self._plugins if p.name != name]
        self._rebuild()

    def get_hooks(self, hook: HookName) -> list[HookRecord]:
        return list(self._hooks[hook])

    def has_hooks(self, hook: HookName) -> bool:
        return len(self._hooks[hook]) > 0

    def _records_for(self, plugin: Plugin) -> list[HookRecord]:
        records = []
        for name, handler in plugin.hooks().items():
            try:
                hook = HookName(name)
            except ValueError as e:
                raise PluginError(
                    f"Plugin '{plugin.name}' registers unknown hook '{name}'",
                    ErrorContext(plugin=plugin.name),
                ) from e
            records.append(HookRecord(plugin.name, hook, handler))
        return records

    def _rebuild(self) -> None:
        hooks: dict[HookName, list[HookRecord]] = {hook: [] for hook in HookName}
        for plugin in self._plugins:
            for record in self._records_for(plugin):
                hooks[record.hook].append(record)
        self._hooks = hooks

    def configure(self, config: GenerationConfig) -> GenerationConfig:
        """
        Let each plugin adjust the configuration, in registration order.

        Raises:
            PluginError: If a plugin's configure step fails
        """
        for plugin in self._plugins:
            try:
                replacement = plugin.configure(config)
            except Exception as e:
                raise PluginError(
                    f"Plugin '{plugin.name}' failed to configure: {e}",
                    ErrorContext(phase="configuring", plugin=plugin.name),
                ) from e
            if replacement is not None:
                config = replacement
        return config

    def validate(self) -> list[PluginError]:
        """Collect every plugin's self-check problems."""
        errors: list[PluginError] = []
        for plugin in self._plugins:
            try:
                problems = plugin.validate()
            except Exception as e:
                problems = [f"validate raised {type(e).__name__}: {e}"]
            for problem in problems:
                errors.append(
                    PluginError(
                        f"Plugin '{plugin.name}' is misconfigured: {problem}",
                        ErrorContext(phase="configuring", plugin=plugin.name),
                    )
                )
        return errors

    def run_hook(
        self,
        hook: HookName,
        context: GenerationContext,
        continue_on_error: bool | None = None,
    ) -> None:
        """
        Run every handler for ``hook`` in registration order.

        A failing handler aborts the run with a PluginError, unless
        plugin failures are isolated, in which case it is logged and
        recorded as a warning.

        Raises:
            PluginError: If a handler fails and failures are not isolated
        """
        isolate = self.continue_on_error if continue_on_error is None else continue_on_error
        for record in self._hooks[hook]:
            if context.aborted:
                logger.debug("Skipping %s hooks, run aborted", hook.value)
                return
            try:
                record.handler(context)
            except Exception as e:
                error = PluginError(
                    f"Plugin '{record.plugin}' failed in {hook.value}: {e}",
                    ErrorContext(phase=context.phase, plugin=record.plugin),
                )
                if not isolate:
                    raise error from e
                logger.warning("%s (continuing)", error)
                context.warnings.append(str(error))
