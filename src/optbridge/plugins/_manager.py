"""The plugin manager."""

from __future__ import annotations

import logging
from functools import cache
from importlib.metadata import entry_points
from typing import TYPE_CHECKING, Any, Final, Literal

from .solver.base import SolverPlugin
from .solver.scipy import SciPySolverPlugin

if TYPE_CHECKING:
    from optbridge.plugins.base import Plugin

logger = logging.getLogger(__name__)

_PLUGIN_TYPES: Final = {
    "solver": SolverPlugin,
}

_BUILTIN_PLUGINS: Final[dict[str, dict[str, type[Plugin]]]] = {
    "solver": {"scipy": SciPySolverPlugin},
}

PluginType = Literal["solver"]
"""Represents the valid types of plugins supported by `optbridge`.

* `"solver"`: Plugins creating solvers for optimization problems
  ([`SolverPlugin`][optbridge.plugins.solver.base.SolverPlugin]).
"""


class PluginManager:
    """Manages the discovery and retrieval of `optbridge` plugins.

    The `PluginManager` registers the built-in plugins and finds additional
    plugins using Python's entry points mechanism, under the
    `optbridge.plugins.*` groups (e.g., `optbridge.plugins.solver`).

    The primary way to interact with the manager is through the
    [`get_plugin`][optbridge.plugins.PluginManager.get_plugin] method, which
    retrieves a plugin class based on its type and a method name it supports.

    **Example: Registering a Custom Solver Plugin**

    ```toml
    [project.entry-points."optbridge.plugins.solver"]
    my_solver = "my_package.my_module:MySolverPlugin"
    ```

    The plugin is then available as `"my_solver/some_method"`, or as
    `"some_method"` if discovery is allowed and no other plugin registered
    before it supports the method.
    """

    def __init__(self) -> None:
        """Initialize the plugin manager."""
        self._plugins: dict[PluginType, dict[str, type[Plugin]]] = {"solver": {}}

        for plugin_type in self._plugins:
            for name, plugin in _BUILTIN_PLUGINS[plugin_type].items():
                self._add_plugin(plugin_type, name, plugin)
            for name, plugin in _from_entry_points(plugin_type).items():
                if self._plugins[plugin_type].get(name.lower()) is plugin:
                    continue
                self._add_plugin(plugin_type, name, plugin)

    def _add_plugin(
        self,
        plugin_type: PluginType,
        name: str,
        plugin: type[Plugin],
    ) -> None:
        name_lower = name.lower()
        if name_lower in self._plugins[plugin_type]:
            msg = f"Duplicate plugin name: {name_lower}"
            raise ValueError(msg)
        self._plugins[plugin_type][name_lower] = plugin
        logger.debug("registered %s plugin `%s`", plugin_type, name_lower)

    def _get_plugin(
        self, plugin_type: PluginType, method: str
    ) -> tuple[str, Any] | None:
        split_method = method.split("/", maxsplit=1)
        if len(split_method) > 1:
            plugin_name, method = split_method
            plugin = self._plugins[plugin_type].get(plugin_name.lower())
            if plugin and plugin.is_supported(method):
                return plugin_name.lower(), plugin
        else:
            method = split_method[0]
            if method == "default":
                msg = "Cannot specify 'default' method without a plugin name"
                raise ValueError(msg)
            for plugin_name, plugin in self._plugins[plugin_type].items():
                if plugin.allows_discovery() and plugin.is_supported(method):
                    return plugin_name, plugin
            # A bare plugin name selects the default method of that plugin.
            plugin = self._plugins[plugin_type].get(method.lower())
            if plugin and plugin.is_supported("default"):
                return method.lower(), plugin
        return None

    def get_plugin(self, plugin_type: PluginType, method: str) -> Any:  # noqa: ANN401
        """Retrieve a plugin class by its type and a supported method name.

        The `method` argument can be specified in three ways:

        1.  **Explicit Plugin:** Use the format `"plugin-name/method-name"`.
        2.  **Implicit Plugin:** Provide only the `method-name`. The manager
            returns the first plugin that allows discovery (see
            [`Plugin.allows_discovery`][optbridge.plugins.Plugin.allows_discovery])
            and supports the method.
        3.  **Plugin Name:** Provide only the `plugin-name`, selecting the
            default method of that plugin.

        Args:
            plugin_type: The category of the plugin (e.g., "solver").
            method:      The name of the method the plugin must support, potentially
                         prefixed with the plugin name and a slash (`/`).

        Returns:
            The plugin class that matches the criteria.

        Raises:
            ValueError: If no matching plugin is found for the given type and
                        method, or if "default" is used as a method name without
                        specifying a plugin name.
        """
        plugin = self._get_plugin(plugin_type, method)
        if plugin is not None:
            return plugin[1]
        msg = f"Method not found: {method}"
        raise ValueError(msg)


@cache  # Without the cache, repeated calls are very slow
def _from_entry_points(plugin_type: str) -> dict[str, type[Plugin]]:
    plugins: dict[str, type[Plugin]] = {}
    for entry_point in entry_points().select(group=f"optbridge.plugins.{plugin_type}"):
        plugin = entry_point.load()
        plugins[entry_point.name] = plugin
        if not issubclass(plugins[entry_point.name], _PLUGIN_TYPES[plugin_type]):
            msg = (
                f"Incorrect type for {plugin_type} plugin `{entry_point.name}`"
                f": {type(plugins[entry_point.name])}"
            )
            raise TypeError(msg)
    return plugins
