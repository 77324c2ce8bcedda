"""The optimization problem definition."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from optbridge.bridge import SharedRef

    from ._functions import DifferentiableFunction


class Problem:
    """An optimization problem: a cost function with bounds and constraints.

    The problem minimizes a differentiable cost function over its argument,
    subject to box bounds on the argument and to constraints of the form
    `lower <= g(x) <= upper`, given per output of each constraint function.

    The problem holds shared references to its cost and constraint functions,
    keeping them alive until the problem is released.
    """

    def __init__(self, function: SharedRef[DifferentiableFunction]) -> None:
        """Initialize the problem.

        Args:
            function: Reference to the cost function.
        """
        self._function = function
        size = function.get().input_size
        self.starting_point: NDArray[np.float64] | None = None
        self.argument_bounds = np.tile([-np.inf, np.inf], (size, 1))
        self.argument_scales = np.ones(size, dtype=np.float64)
        self._constraints: list[SharedRef[DifferentiableFunction]] = []
        self._bounds: list[NDArray[np.float64]] = []
        self._scales: list[NDArray[np.float64]] = []

    @property
    def function(self) -> DifferentiableFunction:
        """Return the cost function."""
        return self._function.get()

    @property
    def input_size(self) -> int:
        """Return the size of the argument."""
        return self.function.input_size

    @property
    def constraints(self) -> tuple[DifferentiableFunction, ...]:
        """Return the constraint functions."""
        return tuple(ref.get() for ref in self._constraints)

    @property
    def bounds(self) -> tuple[NDArray[np.float64], ...]:
        """Return the `(output_size, 2)` bounds of each constraint."""
        return tuple(self._bounds)

    @property
    def scales(self) -> tuple[NDArray[np.float64], ...]:
        """Return the scales of each constraint."""
        return tuple(self._scales)

    @property
    def constraints_output_size(self) -> int:
        """Return the total output size of all constraints."""
        return sum(function.output_size for function in self.constraints)

    def add_constraint(
        self,
        function: SharedRef[DifferentiableFunction],
        bounds: NDArray[np.float64],
        scales: NDArray[np.float64] | None = None,
    ) -> None:
        """Add a constraint to the problem.

        Args:
            function: Reference to the constraint function.
            bounds:   The `(output_size, 2)` lower and upper bounds.
            scales:   Scales of the constraint outputs, ones by default.
        """
        constraint = function.get()
        if constraint.input_size != self.input_size:
            msg = (
                f"constraint input size {constraint.input_size} does not match "
                f"problem input size {self.input_size}"
            )
            raise ValueError(msg)
        bounds = np.array(bounds, dtype=np.float64).reshape(constraint.output_size, 2)
        if scales is None:
            scales = np.ones(constraint.output_size, dtype=np.float64)
        self._constraints.append(function)
        self._bounds.append(bounds)
        self._scales.append(np.asarray(scales, dtype=np.float64))

    def constraint_violation(self, x: NDArray[np.float64]) -> float:
        """Return the largest violation of the bounds and constraints at `x`.

        Args:
            x: The argument.

        Returns:
            The violation, zero if `x` is feasible.
        """
        lower, upper = self.argument_bounds[:, 0], self.argument_bounds[:, 1]
        violations = [np.maximum(lower - x, 0.0), np.maximum(x - upper, 0.0)]
        for function, bounds in zip(self.constraints, self._bounds, strict=True):
            values = function(x)
            violations.append(np.maximum(bounds[:, 0] - values, 0.0))
            violations.append(np.maximum(values - bounds[:, 1], 0.0))
        return float(max((item.max(initial=0.0) for item in violations), default=0.0))

    def release(self) -> None:
        """Release the references to the cost and constraint functions."""
        for ref in self._constraints:
            ref.reset()
        self._constraints.clear()
        self._bounds.clear()
        self._scales.clear()
        self._function.reset()

    def __str__(self) -> str:
        lines = ["Problem:", f"  Cost function: {self.function}"]
        lines.append(f"  Starting point: {_format(self.starting_point)}")
        lines.append(f"  Argument bounds: {_format_bounds(self.argument_bounds)}")
        lines.append(f"  Argument scales: {_format(self.argument_scales)}")
        if self._constraints:
            lines.append(f"  Number of constraints: {len(self._constraints)}")
            for idx, (function, bounds) in enumerate(
                zip(self.constraints, self._bounds, strict=True)
            ):
                lines.append(f"  Constraint {idx}: {function}")
                lines.append(f"    Bounds: {_format_bounds(bounds)}")
        return "\n".join(lines)


def _format(array: NDArray[np.float64] | None) -> str:
    if array is None:
        return "none"
    return "[" + ", ".join(f"{item:g}" for item in array) + "]"


def _format_bounds(bounds: NDArray[np.float64]) -> str:
    return ", ".join(f"({lower:g}, {upper:g})" for lower, upper in bounds)
