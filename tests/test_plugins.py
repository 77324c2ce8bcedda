# ruff: noqa: SLF001
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

import pytest
from pydantic import ValidationError

from optbridge.config.options import OptionsSchemaModel
from optbridge.plugins import PluginManager
from optbridge.plugins.solver.base import SolverPlugin
from optbridge.plugins.solver.scipy import SciPySolverPlugin

if TYPE_CHECKING:
    from optbridge.bridge import SharedRef
    from optbridge.engine import Problem


class MockedPlugin(SolverPlugin):
    @classmethod
    def create(cls, _0: str, _1: SharedRef[Problem]) -> None:  # type: ignore[override]
        pass

    @classmethod
    def is_supported(cls, method: str) -> bool:
        return method.lower() in {"slsqp", "test"}


class MockedPluginWithValidation(MockedPlugin):
    @classmethod
    def validate_options(cls, method: str, options: dict[str, Any] | None) -> None:
        OptionsSchemaModel.model_validate(
            {
                "methods": {
                    "Test": {
                        "options": {
                            "a": float | str,
                            "b": Literal["foo", "bar"],
                        },
                        "url": "https://example.org",
                    },
                },
            }
        ).get_options_model(method).model_validate(options)


class HiddenPlugin(MockedPlugin):
    @classmethod
    def allows_discovery(cls) -> bool:
        return False

    @classmethod
    def is_supported(cls, method: str) -> bool:
        return method.lower() in {"secret", "default"}


def test_default_plugins() -> None:
    plugin_manager = PluginManager()

    plugin = plugin_manager.get_plugin("solver", "slsqp")
    assert issubclass(plugin, SciPySolverPlugin)


def test_default_plugins_full_spec() -> None:
    plugin_manager = PluginManager()

    plugin = plugin_manager.get_plugin("solver", "scipy/slsqp")
    assert issubclass(plugin, SciPySolverPlugin)
    plugin = plugin_manager.get_plugin("solver", "SciPy/SLSQP")
    assert issubclass(plugin, SciPySolverPlugin)


def test_default_plugins_by_name() -> None:
    plugin_manager = PluginManager()

    plugin = plugin_manager.get_plugin("solver", "scipy")
    assert issubclass(plugin, SciPySolverPlugin)
    plugin = plugin_manager.get_plugin("solver", "scipy/default")
    assert issubclass(plugin, SciPySolverPlugin)


def test_default_method_requires_plugin() -> None:
    plugin_manager = PluginManager()

    with pytest.raises(ValueError, match="Cannot specify 'default' method"):
        plugin_manager.get_plugin("solver", "default")


@pytest.mark.parametrize("method", ["unknown", "scipy/unknown", "unknown/slsqp"])
def test_unknown_method(method: str) -> None:
    plugin_manager = PluginManager()

    with pytest.raises(ValueError, match="Method not found"):
        plugin_manager.get_plugin("solver", method)


def test_added_plugin() -> None:
    plugin_manager = PluginManager()
    plugin_manager._add_plugin("solver", "test", MockedPlugin)

    plugin = plugin_manager.get_plugin("solver", "test")
    assert issubclass(plugin, MockedPlugin)

    plugin = plugin_manager.get_plugin("solver", "slsqp")
    assert issubclass(plugin, SciPySolverPlugin)

    plugin = plugin_manager.get_plugin("solver", "test/slsqp")
    assert issubclass(plugin, MockedPlugin)


def test_duplicate_plugin() -> None:
    plugin_manager = PluginManager()

    with pytest.raises(ValueError, match="Duplicate plugin name: scipy"):
        plugin_manager._add_plugin("solver", "SciPy", MockedPlugin)


def test_plugin_without_discovery() -> None:
    plugin_manager = PluginManager()
    plugin_manager._add_plugin("solver", "hidden", HiddenPlugin)

    with pytest.raises(ValueError, match="Method not found"):
        plugin_manager.get_plugin("solver", "secret")
    # A bare plugin name still selects its default method.
    plugin = plugin_manager.get_plugin("solver", "hidden")
    assert issubclass(plugin, HiddenPlugin)
    plugin = plugin_manager.get_plugin("solver", "hidden/secret")
    assert issubclass(plugin, HiddenPlugin)


def test_validate_options() -> None:
    plugin_manager = PluginManager()
    plugin_manager._add_plugin("solver", "test", MockedPluginWithValidation)
    plugin = plugin_manager.get_plugin("solver", "test")
    assert issubclass(plugin, MockedPluginWithValidation)
    plugin.validate_options("test", {"a": 1.0})
    plugin.validate_options("test", {"a": "foo"})
    with pytest.raises(ValidationError, match="Input should be a valid number"):
        plugin.validate_options("test", {"a": []})
    plugin.validate_options("Test", {"b": "foo"})
    with pytest.raises(ValidationError, match="Input should be 'foo' or 'bar'"):
        plugin.validate_options("TEST", {"b": "wrong"})
    with pytest.raises(
        ValidationError, match=r"Unknown or unsupported option\(s\): `c`, `d`"
    ):
        plugin.validate_options("test", {"c": 1, "d": "foo"})


def test_default_validate_options() -> None:
    MockedPlugin.validate_options("test", {"anything": 1})


def test_scipy_validate_options() -> None:
    SciPySolverPlugin.validate_options("slsqp", {"ftol": 1e-6, "disp": False})
    SciPySolverPlugin.validate_options("l-bfgs-b", {"maxcor": 5})
    SciPySolverPlugin.validate_options("cobyla", None)
    with pytest.raises(ValidationError, match=r"Unknown or unsupported option\(s\)"):
        SciPySolverPlugin.validate_options("cobyla", {"ftol": 1e-6})
    with pytest.raises(ValueError, match="not found in schema"):
        SciPySolverPlugin.validate_options("nelder-mead", {"xatol": 1e-6})


@pytest.mark.parametrize(
    "method", ["slsqp", "SLSQP", "trust-constr", "l-bfgs-b", "tnc", "cobyla", "default"]
)
def test_scipy_is_supported(method: str) -> None:
    assert SciPySolverPlugin.is_supported(method)


def test_scipy_not_supported() -> None:
    assert not SciPySolverPlugin.is_supported("nelder-mead")
