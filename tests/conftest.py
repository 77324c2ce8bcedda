from __future__ import annotations

from typing import Any, Sequence

import numpy as np
import pytest
from numpy.typing import NDArray

from optbridge import wrap
from optbridge.bridge import Handle


def pytest_addoption(parser: Any) -> Any:
    parser.addoption(
        "--run-slow", action="store_true", default=False, help="run slow tests"
    )


def pytest_collection_modifyitems(config: Any, items: Sequence[Any]) -> None:
    if not config.getoption("--run-slow"):
        skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def fixture_clear_error() -> None:
    wrap.clear_error()


def sphere_compute(result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
    result[0] = x[0] ** 2 + x[1] ** 2


def sphere_gradient(
    result: NDArray[np.float64],
    x: NDArray[np.float64],
    function_id: int,  # noqa: ARG001
) -> None:
    result[:] = 2.0 * x


def sum_compute(result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
    result[0] = x[0] + x[1]


def sum_gradient(
    result: NDArray[np.float64],
    x: NDArray[np.float64],  # noqa: ARG001
    function_id: int,  # noqa: ARG001
) -> None:
    result[:] = 1.0


@pytest.fixture(name="sphere")
def fixture_sphere() -> Handle:
    function = wrap.create_differentiable_function(2, 1, "sphere")
    wrap.bind_compute(function, sphere_compute)
    wrap.bind_gradient(function, sphere_gradient)
    return function


@pytest.fixture(name="sum_constraint")
def fixture_sum_constraint() -> Handle:
    function = wrap.create_differentiable_function(2, 1, "sum")
    wrap.bind_compute(function, sum_compute)
    wrap.bind_gradient(function, sum_gradient)
    return function


@pytest.fixture(name="problem")
def fixture_problem(sphere: Handle) -> Handle:
    problem = wrap.create_problem(sphere)
    wrap.set_starting_point(problem, np.array([3.0, 4.0]))
    return problem


@pytest.fixture(name="constrained_problem")
def fixture_constrained_problem(sphere: Handle, sum_constraint: Handle) -> Handle:
    problem = wrap.create_problem(sphere)
    wrap.set_starting_point(problem, np.array([2.0, 2.0]))
    wrap.add_constraint(problem, sum_constraint, (1.0, np.inf))
    return problem


@pytest.fixture(name="rosenbrock")
def fixture_rosenbrock() -> Handle:
    def _compute(result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        result[0] = (1.0 - x[0]) ** 2 + 100.0 * (x[1] - x[0] ** 2) ** 2

    def _gradient(
        result: NDArray[np.float64],
        x: NDArray[np.float64],
        function_id: int,  # noqa: ARG001
    ) -> None:
        result[0] = -2.0 * (1.0 - x[0]) - 400.0 * x[0] * (x[1] - x[0] ** 2)
        result[1] = 200.0 * (x[1] - x[0] ** 2)

    function = wrap.create_differentiable_function(2, 1, "rosenbrock")
    wrap.bind_compute(function, _compute)
    wrap.bind_gradient(function, _gradient)
    return function
