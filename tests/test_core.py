from __future__ import annotations

import gc
from pathlib import Path

import numpy as np
import pytest
from numpy.typing import NDArray

from optbridge import (
    DifferentiableFunction,
    FiniteDifferenceGradient,
    Function,
    FunctionPool,
    OptimizationLogger,
    Problem,
    Result,
    ResultWithWarnings,
    Solver,
    SolverCallback,
    SolverError,
    SolverState,
    wrap,
)
from optbridge.exceptions import (
    ConstructionFailure,
    HostCallbackError,
    NoSolutionError,
)


class Sphere(DifferentiableFunction):
    def __init__(self) -> None:
        super().__init__(2, 1, "sphere")

    def impl_compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        result[0] = np.sum(x**2)

    def impl_gradient(
        self,
        result: NDArray[np.float64],
        x: NDArray[np.float64],
        function_id: int,  # noqa: ARG002
    ) -> None:
        result[:] = 2.0 * x


class Rosenbrock(DifferentiableFunction):
    def __init__(self) -> None:
        super().__init__(2, 1, "rosenbrock")

    def impl_compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        result[0] = (1.0 - x[0]) ** 2 + 100.0 * (x[1] - x[0] ** 2) ** 2

    def impl_gradient(
        self,
        result: NDArray[np.float64],
        x: NDArray[np.float64],
        function_id: int,  # noqa: ARG002
    ) -> None:
        result[0] = -2.0 * (1.0 - x[0]) - 400.0 * x[0] * (x[1] - x[0] ** 2)
        result[1] = 200.0 * (x[1] - x[0] ** 2)


class Linear(DifferentiableFunction):
    def __init__(self) -> None:
        super().__init__(2, 2, "linear")
        self.jacobian_calls = 0

    def impl_compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        result[0] = x[0] + x[1]
        result[1] = x[0] - x[1]

    def impl_gradient(
        self,
        result: NDArray[np.float64],
        x: NDArray[np.float64],  # noqa: ARG002
        function_id: int,
    ) -> None:
        result[:] = [1.0, 1.0] if function_id == 0 else [1.0, -1.0]

    def impl_jacobian(
        self,
        result: NDArray[np.float64],
        x: NDArray[np.float64],  # noqa: ARG002
    ) -> None:
        self.jacobian_calls += 1
        result[:, :] = [[1.0, 1.0], [1.0, -1.0]]


class Norm(Function):
    def __init__(self) -> None:
        super().__init__(2, 1, "norm")

    def impl_compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        result[0] = np.sum(x**2)


class Recorder(SolverCallback):
    def __init__(self, problem: Problem, stop_after: int | None = None) -> None:
        super().__init__(problem)
        self.xs: list[NDArray[np.float64]] = []
        self.problems: list[Problem] = []
        self._stop_after = stop_after

    def callback(self, problem: Problem, state: SolverState) -> None:
        self.problems.append(problem)
        self.xs.append(state.x.copy())
        if self._stop_after is not None and len(self.xs) >= self._stop_after:
            parameters = state.parameters
            parameters["stop"] = ("stop", True)
            state.parameters = parameters


@pytest.fixture(name="problem")
def fixture_problem() -> Problem:
    problem = Problem(Sphere())
    problem.starting_point = [3.0, 4.0]
    return problem


def test_function() -> None:
    sphere = Sphere()
    assert sphere.input_size == 2
    assert sphere.output_size == 1
    assert sphere.name == "sphere"
    assert np.array_equal(sphere([3.0, 4.0]), [25.0])
    assert np.array_equal(sphere.gradient([3.0, 4.0]), [6.0, 8.0])
    assert np.array_equal(sphere.jacobian([3.0, 4.0]), [[6.0, 8.0]])
    assert "sphere" in str(sphere)


def test_jacobian_override() -> None:
    linear = Linear()
    assert np.array_equal(linear.jacobian([1.0, 2.0]), [[1.0, 1.0], [1.0, -1.0]])
    assert linear.jacobian_calls == 1


def test_plain_function() -> None:
    norm = Norm()
    assert np.array_equal(norm([1.0, 2.0]), [5.0])
    assert not hasattr(norm, "gradient")


def test_function_collected() -> None:
    sphere = Sphere()
    handle = sphere.handle
    del sphere
    gc.collect()
    with pytest.raises(HostCallbackError, match="no longer exists"):
        wrap.compute(handle, np.zeros(1), np.zeros(2))


def test_problem(problem: Problem) -> None:
    assert np.array_equal(problem.starting_point, [3.0, 4.0])
    problem.argument_bounds = [(-1.0, 1.0), (-2.0, 2.0)]
    assert np.array_equal(problem.argument_bounds, [[-1.0, 1.0], [-2.0, 2.0]])
    problem.argument_scales = [2.0, 2.0]
    assert np.array_equal(problem.argument_scales, [2.0, 2.0])
    linear = Linear()
    problem.add_constraint(linear, [[0.0, 1.0], [0.0, 1.0]])
    assert problem.constraints == (linear,)
    assert "Number of constraints: 1" in str(problem)


def test_solve(problem: Problem) -> None:
    solver = Solver("scipy", problem)
    assert solver.problem is problem
    with pytest.raises(NoSolutionError):
        solver.minimum()
    solver.solve()
    result = solver.minimum()
    assert isinstance(result, Result)
    assert not isinstance(result, ResultWithWarnings)
    assert np.allclose(result.x, [0.0, 0.0], atol=1e-4)
    assert result.input_size == 2
    assert result.output_size == 1
    assert "Outcome: VALUE" in str(solver)


def test_solve_constrained(problem: Problem) -> None:
    class Sum(DifferentiableFunction):
        def __init__(self) -> None:
            super().__init__(2, 1, "sum")

        def impl_compute(
            self, result: NDArray[np.float64], x: NDArray[np.float64]
        ) -> None:
            result[0] = np.sum(x)

        def impl_gradient(
            self,
            result: NDArray[np.float64],
            x: NDArray[np.float64],  # noqa: ARG002
            function_id: int,  # noqa: ARG002
        ) -> None:
            result[:] = 1.0

    problem.add_constraint(Sum(), (1.0, np.inf))
    solver = Solver("scipy/slsqp", problem)
    solver.solve()
    result = solver.minimum()
    assert isinstance(result, Result)
    assert np.allclose(result.x, [0.5, 0.5], atol=1e-4)
    assert np.allclose(result.constraints, [1.0], atol=1e-4)


def test_solver_construction_failure(problem: Problem) -> None:
    with pytest.raises(ConstructionFailure, match="cannot create solver") as exc_info:
        Solver("unknown", problem)
    assert isinstance(exc_info.value.__cause__, ConstructionFailure)


def test_solver_parameters(problem: Problem) -> None:
    solver = Solver("scipy", problem)
    assert solver.parameters["method"][1] == "slsqp"
    solver.set_parameter("max_iterations", 10, "iteration limit")
    assert solver.parameters["max_iterations"] == ("iteration limit", 10)
    solver.parameters = {"method": ("method", "tnc")}
    assert solver.parameters == {"method": ("method", "tnc")}


def test_solver_error() -> None:
    problem = Problem(Rosenbrock())
    problem.starting_point = [-1.2, 1.0]
    solver = Solver("scipy", problem)
    solver.set_parameter("max_iterations", 2)
    solver.solve()
    error = solver.minimum()
    assert isinstance(error, SolverError)
    assert error.error
    assert error.last_state is not None
    assert error.last_state.x.shape == (2,)


def test_iteration_callback(problem: Problem) -> None:
    solver = Solver("scipy", problem)
    recorder = Recorder(problem)
    solver.add_iteration_callback(recorder)
    solver.solve()
    assert recorder.xs
    assert all(item is problem for item in recorder.problems)
    assert solver.multiplexer.callbacks == (recorder,)


def test_stop_iteration(problem: Problem) -> None:
    solver = Solver("scipy", problem)
    recorder = Recorder(problem, stop_after=1)
    solver.add_iteration_callback(recorder)
    solver.solve()
    result = solver.minimum()
    assert isinstance(result, ResultWithWarnings)
    assert "solver stopped by an iteration callback" in result.warnings
    assert len(recorder.xs) == 1


def test_remove_iteration_callback(problem: Problem) -> None:
    solver = Solver("scipy", problem)
    recorder = Recorder(problem)
    solver.add_iteration_callback(recorder)
    solver.multiplexer.remove(recorder)
    solver.solve()
    assert not recorder.xs
    assert solver.multiplexer.callbacks == ()


def test_optimization_logger(problem: Problem, tmp_path: Path) -> None:
    solver = Solver("scipy", problem)
    with OptimizationLogger(solver, tmp_path):
        solver.solve()
    assert (tmp_path / "journal.log").exists()
    assert (tmp_path / "x.csv").exists()


def test_function_pool() -> None:
    calls: list[int] = []

    class Prepare(Function):
        def __init__(self) -> None:
            super().__init__(2, 0, "prepare")

        def impl_compute(
            self,
            result: NDArray[np.float64],  # noqa: ARG002
            x: NDArray[np.float64],  # noqa: ARG002
        ) -> None:
            calls.append(1)

    sphere = Sphere()
    linear = Linear()
    pool = FunctionPool(Prepare(), [sphere, linear], "pool")
    assert pool.functions == (sphere, linear)
    assert np.array_equal(pool([1.0, 2.0]), [5.0, 3.0, -1.0])
    assert np.array_equal(
        pool.jacobian([1.0, 2.0]), [[2.0, 4.0], [1.0, 1.0], [1.0, -1.0]]
    )
    assert calls == [1, 1]


def test_finite_difference_gradient() -> None:
    norm = Norm()
    fd_gradient = FiniteDifferenceGradient(norm, 1e-3, "five-points")
    assert np.allclose(fd_gradient.gradient([3.0, 4.0]), [6.0, 8.0])
    problem = Problem(fd_gradient)
    problem.starting_point = [3.0, 4.0]
    solver = Solver("scipy", problem)
    solver.solve()
    result = solver.minimum()
    assert isinstance(result, Result)
    assert np.allclose(result.x, [0.0, 0.0], atol=1e-3)
