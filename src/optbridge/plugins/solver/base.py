"""This module defines the base class for solver plugins."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any

from optbridge.plugins.base import Plugin

if TYPE_CHECKING:
    from optbridge.bridge import SharedRef
    from optbridge.engine import Problem, Solver


class SolverPlugin(Plugin):
    """Abstract base class for solver plugins (factories).

    A solver plugin creates [`Solver`][optbridge.engine.Solver] objects for a
    problem. The [`SolverFactory`][optbridge.engine.SolverFactory] finds the
    plugin through the [`PluginManager`][optbridge.plugins.PluginManager] and
    calls its `create` class method.
    """

    @classmethod
    @abstractmethod
    def create(cls, method: str, problem: SharedRef[Problem]) -> Solver:
        """Create a solver.

        Args:
            method:  The requested method, possibly prefixed with the plugin name.
            problem: Reference to the problem to solve.

        Returns:
            An initialized solver.
        """

    @classmethod
    def validate_options(cls, method: str, options: dict[str, Any] | None) -> None:  # noqa: B027
        """Validate the plugin specific options of a method.

        Solvers call this before solving, with the solver parameters that are
        not generic settings. This default implementation performs no
        validation.

        Args:
            method:  The method name, without the plugin prefix.
            options: The options to validate.

        Raises:
            Exception: If the options are invalid for the method.
        """
