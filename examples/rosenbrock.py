"""Example of optimization of a multi-dimensional Rosenbrock test function.

This example demonstrates the object-oriented interface: the cost function
is defined by subclassing `DifferentiableFunction`, the iterations are
monitored with a `SolverCallback`, and the iterations are recorded in a
journal by an `OptimizationLogger`.
"""

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from optbridge import (
    DifferentiableFunction,
    OptimizationLogger,
    Problem,
    Result,
    Solver,
    SolverCallback,
    SolverState,
)

DIM = 5


class Rosenbrock(DifferentiableFunction):
    """The multi-dimensional Rosenbrock function."""

    def __init__(self, dimension: int) -> None:
        super().__init__(dimension, 1, "rosenbrock")

    def impl_compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        result[0] = np.sum((1.0 - x[:-1]) ** 2 + 100.0 * (x[1:] - x[:-1] ** 2) ** 2)

    def impl_gradient(
        self,
        result: NDArray[np.float64],
        x: NDArray[np.float64],
        function_id: int,  # noqa: ARG002
    ) -> None:
        result[:] = 0.0
        result[:-1] += -2.0 * (1.0 - x[:-1]) - 400.0 * x[:-1] * (x[1:] - x[:-1] ** 2)
        result[1:] += 200.0 * (x[1:] - x[:-1] ** 2)


class Report(SolverCallback):
    """Print the state of the solver at each iteration."""

    def callback(self, problem: Problem, state: SolverState) -> None:  # noqa: ARG002
        iteration = state.parameters["iteration"][1]
        print(f"  iteration {iteration}: cost = {state.cost:.6g}")


def run_optimization(output: Path | None = None) -> Result:
    """Run the optimization.

    Args:
        output: Optional directory receiving the optimization journal.

    Returns:
        The optimal result.
    """
    problem = Problem(Rosenbrock(DIM))
    problem.starting_point = 2 * np.arange(DIM) / DIM + 0.5
    solver = Solver("scipy/l-bfgs-b", problem)
    solver.set_parameter("max_iterations", 1000, "maximum number of iterations")
    report = Report(problem)
    solver.add_iteration_callback(report)
    if output is None:
        solver.solve()
    else:
        with OptimizationLogger(solver, output):
            solver.solve()
    result = solver.minimum()
    assert isinstance(result, Result)

    print(f"  variables: {result.x}")
    print(f"  objective: {result.value}\n")

    return result


def main(argv: list[str] | None = None) -> None:
    """Run the example and check the result."""
    argv = sys.argv[1:] if argv is None else argv
    result = run_optimization(Path(argv[0]) if argv else None)
    assert np.allclose(result.value, 0, atol=1e-4)
    assert np.allclose(result.x, 1, atol=1e-2)


if __name__ == "__main__":
    main()
