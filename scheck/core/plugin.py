"""Anchor plugin loading.

Third-party packages contribute anchor extractors by exposing a ScheckPlugin
under the ``scheck.anchors`` entry point group. PluginManager loads them,
keeps them registered with pluggy, and copies their extractors into an
AnchorRegistry.
"""

from __future__ import annotations

import logging
from importlib.metadata import entry_points
from typing import Any, Optional

import pluggy

from scheck.core.errors import AnchorConflictError, PluginError
from scheck.core.finding_id import AnchorRegistry
from scheck.plugin import ScheckHookSpec, ScheckPlugin

ENTRY_POINT_GROUP = "scheck.anchors"

_default_logger = logging.getLogger(__name__)


def _instantiate(target: Any) -> ScheckPlugin:
    # Entry points may name the plugin class or a ready-made instance
    plugin = target() if isinstance(target, type) else target
    if not isinstance(plugin, ScheckPlugin):
        raise PluginError(f"{target!r} is not a ScheckPlugin")
    return plugin


class PluginManager:
    """Registry of anchor plugins.

    Example:
        manager = PluginManager(logger)
        manager.discover()
        manager.register(MyAnchors())

        registry = default_registry()
        manager.apply(registry)
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.pm = pluggy.PluginManager("scheck")
        self.pm.add_hookspecs(ScheckHookSpec)
        self._plugins: dict[str, ScheckPlugin] = {}
        self.logger = logger or _default_logger

    def register(self, plugin: ScheckPlugin) -> None:
        """Register a plugin instance.

        Raises:
            PluginError: If the plugin has no name or the name is taken.
        """
        if not plugin.name:
            raise PluginError(f"Plugin {type(plugin).__name__} must define a name")
        if plugin.name in self._plugins:
            raise PluginError(f"A plugin named '{plugin.name}' is already registered")
        self.pm.register(plugin, name=plugin.name)
        self._plugins[plugin.name] = plugin
        self.logger.debug("Registered anchor plugin %s %s", plugin.name, plugin.version)

    def unregister(self, name: str) -> None:
        plugin = self._plugins.pop(name, None)
        if plugin is not None:
            self.pm.unregister(plugin)

    def discover(self) -> list[str]:
        """Load and register every plugin in the ``scheck.anchors`` group.

        A plugin that fails to import or register is skipped with a warning
        so one broken package does not stop a scan.

        Returns:
            Names of the plugins registered.
        """
        discovered = []
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            try:
                plugin = _instantiate(ep.load())
                self.register(plugin)
            except Exception as e:
                self.logger.warning("Skipping plugin %s: %s", ep.name, e)
                continue
            discovered.append(plugin.name)
        return discovered

    def list_plugins(self) -> list[str]:
        return list(self._plugins)

    def get_plugin(self, name: str) -> ScheckPlugin | None:
        return self._plugins.get(name)

    def get_plugin_info(self, name: str) -> dict[str, str] | None:
        """Name, version and description of a registered plugin."""
        plugin = self._plugins.get(name)
        if plugin is None:
            return None
        return {"name": plugin.name, "version": plugin.version, "description": plugin.description}

    def apply(self, registry: AnchorRegistry) -> list[str]:
        """Copy plugin anchor extractors into ``registry``.

        The ``get_anchor_extractors`` hook is called once per plugin that
        implements it with ``@hookimpl``, in registration order. Built-in and
        earlier extractors win: a conflicting extractor is skipped with a
        warning, as is one that is not callable. A plugin whose hook raises
        is skipped with a warning.

        Returns:
            Invariant IDs that received an extractor.
        """
        applied: list[str] = []
        for impl in self.pm.hook.get_anchor_extractors.get_hookimpls():
            name = impl.plugin_name
            try:
                extractors = impl.function() or {}
            except Exception as e:
                self.logger.warning("Skipping plugin %s: %s", name, e)
                continue
            for invariant_id, extractor in extractors.items():
                if not callable(extractor):
                    self.logger.warning(
                        "Plugin %s: extractor for %s is not callable", name, invariant_id
                    )
                    continue
                try:
                    registry.register(invariant_id, extractor)
                except AnchorConflictError as e:
                    self.logger.warning("Plugin %s: %s; keeping the existing one", name, e)
                    continue
                applied.append(invariant_id)
        return applied
