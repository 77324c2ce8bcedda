"""Solvers, solver states, and solver outcomes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeAlias

import numpy as np

from optbridge.enums import OutcomeKind

from ._parameters import Parameter

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from optbridge.bridge import SharedRef
    from optbridge.plugins import PluginManager

    from ._callbacks import IterationCallback
    from ._problem import Problem


def _format(array: NDArray[np.float64]) -> str:
    return "[" + ", ".join(f"{item:g}" for item in array) + "]"


@dataclass(frozen=True, slots=True)
class NoSolution:
    """Outcome of a solver that has not been run."""

    kind = OutcomeKind.NO_SOLUTION

    def __str__(self) -> str:
        return "No solution."


@dataclass(eq=False, slots=True)
class Result:
    """Outcome of a successful solve.

    Attributes:
        input_size:  Size of the problem argument.
        output_size: Output size of the cost function.
        x:           The optimal argument.
        value:       The cost at `x`.
        constraints: The constraint values at `x`, concatenated.
        lambda_:     The Lagrange multipliers of the constraints.
    """

    input_size: int
    output_size: int
    x: NDArray[np.float64]
    value: NDArray[np.float64]
    constraints: NDArray[np.float64]
    lambda_: NDArray[np.float64]

    kind = OutcomeKind.VALUE

    def __str__(self) -> str:
        return "\n".join(
            [
                "Result:",
                f"  Size (input, output): {self.input_size}, {self.output_size}",
                f"  X: {_format(self.x)}",
                f"  Value: {_format(self.value)}",
                f"  Constraints values: {_format(self.constraints)}",
                f"  Lambda: {_format(self.lambda_)}",
            ]
        )


@dataclass(eq=False, slots=True)
class ResultWithWarnings(Result):
    """Outcome of a successful solve that produced warnings.

    Attributes:
        warnings: The warning messages, in the order they were emitted.
    """

    warnings: list[str] = field(default_factory=list)

    kind = OutcomeKind.VALUE_WITH_WARNINGS

    @classmethod
    def from_result(cls, result: Result, warnings: list[str]) -> ResultWithWarnings:
        """Attach warnings to a result.

        Args:
            result:   The result.
            warnings: The warning messages.

        Returns:
            A new result with warnings, sharing the arrays of `result`.
        """
        return cls(
            input_size=result.input_size,
            output_size=result.output_size,
            x=result.x,
            value=result.value,
            constraints=result.constraints,
            lambda_=result.lambda_,
            warnings=list(warnings),
        )

    def __str__(self) -> str:
        lines = [Result.__str__(self).replace("Result:", "Result with warnings:", 1)]
        lines.append("  Warnings:")
        lines.extend(f"    - {warning}" for warning in self.warnings)
        return "\n".join(lines)


@dataclass(eq=False, slots=True)
class SolverError:
    """Outcome of a failed solve.

    Attributes:
        message:    The error message.
        last_state: The last known state of the solver, if any.
    """

    message: str
    last_state: Result | None = None

    kind = OutcomeKind.ERROR

    def __str__(self) -> str:
        text = f"Solver error: {self.message}"
        if self.last_state is not None:
            state = str(self.last_state).replace("Result:", "Last state:", 1)
            text = f"{text}\n{state}"
        return text


SolverOutcome: TypeAlias = NoSolution | Result | ResultWithWarnings | SolverError
"""The outcome of a solver."""


class SolverState:
    """The state of a solver at an iteration.

    A state is passed to the iteration callbacks of a solver. Callbacks may
    modify the state; setting the boolean `stop` parameter to `True` requests
    the solver to stop after the current iteration.

    Attributes:
        x:                    The current argument.
        cost:                 The current cost, `None` before the first evaluation.
        constraint_violation: The current violation, `None` if unknown.
        parameters:           Additional tagged state parameters.
    """

    def __init__(self, x: NDArray[np.float64]) -> None:
        """Initialize the state.

        Args:
            x: The current argument.
        """
        self.x = x
        self.cost: float | None = None
        self.constraint_violation: float | None = None
        self.parameters: dict[str, Parameter] = {}

    def __str__(self) -> str:
        lines = ["Solver state:", f"  x: {_format(self.x)}"]
        if self.cost is not None:
            lines.append(f"  Cost: {self.cost:g}")
        if self.constraint_violation is not None:
            lines.append(f"  Constraint violation: {self.constraint_violation:g}")
        if self.parameters:
            lines.append("  Parameters:")
            lines.extend(
                f"    {key}: {parameter}" for key, parameter in self.parameters.items()
            )
        return "\n".join(lines)


class Solver(ABC):
    """Abstract base class of solvers.

    A solver is created for a problem by a solver plugin. It exposes a map of
    tagged parameters that configure it, and an optional iteration callback
    that is called with the solver state at each iteration. After
    [`solve`][optbridge.engine.Solver.solve] has run, the outcome is available
    through [`minimum`][optbridge.engine.Solver.minimum].
    """

    name: str = "solver"

    def __init__(self, problem: SharedRef[Problem]) -> None:
        """Initialize the solver.

        Args:
            problem: Reference to the problem to solve.
        """
        self._problem = problem
        self.parameters: dict[str, Parameter] = {}
        self._outcome: SolverOutcome = NoSolution()
        self._iteration_callback: IterationCallback | None = None

    @property
    def problem(self) -> Problem:
        """Return the problem."""
        return self._problem.get()

    @property
    def iteration_callback(self) -> IterationCallback | None:
        """Return the iteration callback."""
        return self._iteration_callback

    def set_iteration_callback(self, callback: IterationCallback | None) -> None:
        """Set or clear the iteration callback.

        Args:
            callback: The callback, or `None`.
        """
        self._iteration_callback = callback

    def minimum(self) -> SolverOutcome:
        """Return the outcome of the last solve.

        Returns:
            The outcome.
        """
        return self._outcome

    def solve(self) -> None:
        """Solve the problem.

        If an evaluation fails, the outcome is set to a
        [`SolverError`][optbridge.engine.SolverError] and the exception
        propagates.
        """
        try:
            self._outcome = self.impl_solve()
        except Exception as exc:
            self._outcome = SolverError(message=str(exc))
            raise

    @abstractmethod
    def impl_solve(self) -> SolverOutcome:
        """Run the solver.

        Returns:
            The outcome.
        """

    def release(self) -> None:
        """Release the reference to the problem."""
        self._iteration_callback = None
        self._problem.reset()

    def __str__(self) -> str:
        lines = [f"Solver: {self.name}", f"  Outcome: {self._outcome.kind.name}"]
        if self.parameters:
            lines.append("  Parameters:")
            lines.extend(
                f"    {key}: {parameter}" for key, parameter in self.parameters.items()
            )
        return "\n".join(lines)


class SolverFactory:
    """Create a solver for a problem using a solver plugin.

    The plugin is selected by name, either as `"plugin/method"` or as
    `"method"`, as resolved by the
    [`PluginManager`][optbridge.plugins.PluginManager]. Calling the factory
    returns the solver.
    """

    def __init__(
        self,
        plugin_name: str,
        problem: SharedRef[Problem],
        plugin_manager: PluginManager | None = None,
    ) -> None:
        """Initialize the factory, creating the solver.

        Args:
            plugin_name:    Name of the solver plugin or method.
            problem:        Reference to the problem to solve.
            plugin_manager: The plugin manager, a default one if `None`.

        Raises:
            ValueError: If no plugin supports the requested name.
        """
        if plugin_manager is None:
            from optbridge.plugins import PluginManager  # noqa: PLC0415

            plugin_manager = PluginManager()
        plugin = plugin_manager.get_plugin("solver", plugin_name)
        self._solver: Solver = plugin.create(plugin_name, problem)

    def __call__(self) -> Solver:
        return self._solver

    def release(self) -> None:
        """Release the solver."""
        self._solver.release()

    def __str__(self) -> str:
        return str(self._solver)


def result_from(
    problem: Problem, x: NDArray[np.float64], multipliers: NDArray[np.float64] | None
) -> Result:
    """Evaluate the problem at `x` and build a result.

    Args:
        problem:     The problem.
        x:           The argument.
        multipliers: Lagrange multipliers, zeros if `None`.

    Returns:
        The result.
    """
    x = np.array(x, dtype=np.float64)
    constraint_values = [function(x) for function in problem.constraints]
    constraints = (
        np.concatenate(constraint_values)
        if constraint_values
        else np.zeros(0, dtype=np.float64)
    )
    if multipliers is None or np.size(multipliers) != constraints.size:
        multipliers = np.zeros(constraints.size, dtype=np.float64)
    return Result(
        input_size=problem.input_size,
        output_size=problem.function.output_size,
        x=x,
        value=problem.function(x),
        constraints=constraints,
        lambda_=np.array(multipliers, dtype=np.float64),
    )
