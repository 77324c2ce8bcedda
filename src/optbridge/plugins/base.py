"""This module defines the abstract base class for plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Plugin(ABC):
    """Abstract base class for all `optbridge` plugins.

    Any class intended to function as a plugin must inherit from this base
    class. Subclasses implement the `is_supported` class method to indicate
    which named methods they provide, and may override `allows_discovery` if
    they should only be used when requested by their plugin name.
    """

    @classmethod
    @abstractmethod
    def is_supported(cls, method: str) -> bool:
        """Verify if this plugin supports a specific named method.

        Args:
            method: The string identifier of the method to check for support.

        Returns:
            `True` if the plugin supports the specified method, `False` otherwise.
        """

    @classmethod
    def allows_discovery(cls) -> bool:
        """Determine if the plugin allows implicit discovery by method name.

        By default, plugins are found by the
        [`PluginManager`][optbridge.plugins.PluginManager] when only a method
        name is given (e.g., `"slsqp"`). Plugins that must always be requested
        explicitly (e.g., `"plugin-name/method-name"`) return `False`.

        Returns:
            `True` if the plugin can be discovered implicitly by method name.
        """
        return True
