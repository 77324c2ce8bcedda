"""Example of a constrained optimization using the handle interface.

The functions are created as handles with `optbridge.wrap`, and evaluated by
plain Python callables writing into the buffers passed to them. The problem
minimizes the distance to a point, subject to the argument staying within
the unit disk.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray

from optbridge import wrap
from optbridge.enums import TypeTag

TARGET = np.array([2.0, 1.0])


def distance(result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
    """Compute the squared distance to the target."""
    result[0] = np.sum((x - TARGET) ** 2)


def distance_gradient(
    result: NDArray[np.float64],
    x: NDArray[np.float64],
    function_id: int,  # noqa: ARG001
) -> None:
    """Compute the gradient of the squared distance."""
    result[:] = 2.0 * (x - TARGET)


def norm(result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
    """Compute the squared norm."""
    result[0] = np.sum(x**2)


def norm_gradient(
    result: NDArray[np.float64],
    x: NDArray[np.float64],
    function_id: int,  # noqa: ARG001
) -> None:
    """Compute the gradient of the squared norm."""
    result[:] = 2.0 * x


def run_optimization(method: str) -> dict[str, Any]:
    """Run the optimization.

    Args:
        method: The solver method.

    Returns:
        The record of the optimal result.
    """
    cost = wrap.create_differentiable_function(2, 1, "distance")
    wrap.bind_compute(cost, distance)
    wrap.bind_gradient(cost, distance_gradient)

    constraint = wrap.create_differentiable_function(2, 1, "norm")
    wrap.bind_compute(constraint, norm)
    wrap.bind_gradient(constraint, norm_gradient)

    problem = wrap.create_problem(cost)
    wrap.set_starting_point(problem, np.zeros(2))
    wrap.add_constraint(problem, constraint, (-np.inf, 1.0))

    solver = wrap.create_solver(method, problem)
    if solver is None:
        raise RuntimeError(str(wrap.get_last_error()))
    wrap.set_solver_parameter(solver, "max_iterations", 1000)
    wrap.set_solver_parameter(solver, "tolerance", 1e-6)
    wrap.solve(solver)

    tag, result = wrap.minimum(solver)
    print(wrap.str_problem(problem))
    print(wrap.str_solver(solver))
    if tag == TypeTag.SOLVER_ERROR:
        raise RuntimeError(wrap.solver_error_to_dict(result)["error"])
    record = wrap.result_to_dict(result)
    print(f"  variables: {record['x']}")
    print(f"  objective: {record['value']}\n")
    return record


def main() -> None:
    """Run the example and check the result."""
    expected = TARGET / np.linalg.norm(TARGET)
    for method in ("scipy/slsqp", "scipy/trust-constr"):
        record = run_optimization(method)
        assert np.allclose(record["x"], expected, atol=1e-3)


if __name__ == "__main__":
    main()
