"""Extending `optbridge` with solver plugins.

The [`PluginManager`][optbridge.plugins.PluginManager] discovers solver
plugins, installed as separate packages and registered through Python's
entry points mechanism under the `optbridge.plugins.solver` group, next to the
built-in [`scipy`][optbridge.plugins.solver.scipy.SciPySolver] plugin.

Plugins may implement multiple named methods. To request a method
(`method-name`) from a particular plugin (`plugin-name`), use the format
`"plugin-name/method-name"`. If only a method name is provided, the plugin
manager searches all plugins that allow discovery for one that supports the
method.
"""

from ._manager import PluginManager, PluginType
from .base import Plugin

__all__ = [
    "Plugin",
    "PluginManager",
    "PluginType",
]
