from __future__ import annotations

import warnings

import numpy as np
import pytest
from numpy.typing import NDArray

from optbridge import wrap
from optbridge.bridge import Handle, host_refcount
from optbridge.enums import TypeTag
from optbridge.exceptions import (
    ConstructionFailure,
    HostCallbackError,
    NoSolutionError,
    ParameterSkippedWarning,
    TypeMismatchError,
)


def _solve(solver: Handle) -> tuple[str, Handle]:
    wrap.solve(solver)
    return wrap.minimum(solver)


def test_create_solver_unknown_plugin(problem: Handle) -> None:
    assert wrap.create_solver("unknown/method", problem) is None
    error = wrap.get_last_error()
    assert isinstance(error, ConstructionFailure)
    assert "unknown/method" in str(error)
    assert error.__cause__ is not None
    assert host_refcount(problem) == 0


def test_create_solver_unsupported_method(problem: Handle) -> None:
    assert wrap.create_solver("scipy/nelder-mead", problem) is None
    assert isinstance(wrap.get_last_error(), ConstructionFailure)


def test_create_solver_vector_cost() -> None:
    function = wrap.create_differentiable_function(2, 2)
    problem = wrap.create_problem(function)
    assert wrap.create_solver("scipy", problem) is None
    assert "output size of 1" in str(wrap.get_last_error())


def test_solver_keeps_problem_alive(problem: Handle) -> None:
    solver = wrap.create_solver("scipy", problem)
    assert solver is not None
    assert host_refcount(problem) == 1
    wrap.release(solver)
    assert host_refcount(problem) == 0


def test_minimum_before_solve(problem: Handle) -> None:
    solver = wrap.create_solver("scipy", problem)
    with pytest.raises(NoSolutionError, match="problem not yet solved"):
        wrap.minimum(solver)
    assert "NO_SOLUTION" in wrap.str_solver(solver)


@pytest.mark.parametrize("name", ["scipy", "scipy/default", "slsqp", "scipy/SLSQP"])
def test_solve_sphere(problem: Handle, name: str) -> None:
    solver = wrap.create_solver(name, problem)
    assert solver is not None
    tag, result = _solve(solver)
    assert tag == TypeTag.RESULT.value
    assert result.tag == TypeTag.RESULT
    record = wrap.result_to_dict(result)
    assert record["inputSize"] == 2
    assert record["outputSize"] == 1
    assert np.allclose(record["x"], [0.0, 0.0], atol=1e-4)
    assert np.allclose(record["value"], [0.0], atol=1e-6)
    assert record["constraints"].size == 0
    assert record["lambda"].size == 0
    assert wrap.str_result(result).startswith("Result:")


def test_result_views_share_memory(problem: Handle) -> None:
    solver = wrap.create_solver("scipy", problem)
    _, result = _solve(solver)
    first = wrap.result_to_dict(result)
    second = wrap.result_to_dict(result)
    assert np.shares_memory(first["x"], second["x"])


def test_result_survives_new_solve(problem: Handle) -> None:
    solver = wrap.create_solver("scipy", problem)
    _, result = _solve(solver)
    x = wrap.result_to_dict(result)["x"].copy()
    wrap.set_starting_point(problem, [1.0, 1.0])
    wrap.set_argument_bounds(problem, [[1.0, 2.0], [1.0, 2.0]])
    _, other = _solve(solver)
    assert np.allclose(wrap.result_to_dict(other)["x"], [1.0, 1.0])
    assert np.array_equal(wrap.result_to_dict(result)["x"], x)


def test_result_handle_type(problem: Handle) -> None:
    solver = wrap.create_solver("scipy", problem)
    _, result = _solve(solver)
    with pytest.raises(TypeMismatchError):
        wrap.solver_error_to_dict(result)
    with pytest.raises(TypeMismatchError):
        wrap.result_with_warnings_to_dict(result)


@pytest.mark.parametrize(
    "method", ["slsqp", "trust-constr", "cobyla"]
)
def test_solve_constrained(constrained_problem: Handle, method: str) -> None:
    solver = wrap.create_solver(f"scipy/{method}", constrained_problem)
    wrap.set_solver_parameter(solver, "max_iterations", 1000)
    wrap.set_solver_parameter(solver, "tolerance", 1e-6)
    tag, result = _solve(solver)
    assert tag in {TypeTag.RESULT.value, TypeTag.RESULT_WITH_WARNINGS.value}
    record = wrap.result_to_dict(result)
    assert np.allclose(record["x"], [0.5, 0.5], atol=1e-3)
    assert np.allclose(record["constraints"], [1.0], atol=1e-3)
    assert record["lambda"].shape == (1,)


def test_solve_equality_constraint(problem: Handle, sum_constraint: Handle) -> None:
    wrap.add_constraint(problem, sum_constraint, [2.0, 2.0])
    solver = wrap.create_solver("scipy/slsqp", problem)
    _, result = _solve(solver)
    assert np.allclose(wrap.result_to_dict(result)["x"], [1.0, 1.0], atol=1e-4)


@pytest.mark.parametrize("method", ["l-bfgs-b", "tnc"])
def test_solve_bounded(problem: Handle, method: str) -> None:
    wrap.set_argument_bounds(problem, [[1.0, 5.0], [-5.0, 5.0]])
    solver = wrap.create_solver(f"scipy/{method}", problem)
    _, result = _solve(solver)
    assert np.allclose(wrap.result_to_dict(result)["x"], [1.0, 0.0], atol=1e-4)


def test_solve_without_starting_point(sphere: Handle) -> None:
    problem = wrap.create_problem(sphere)
    wrap.set_argument_bounds(problem, [[1.0, 5.0], [2.0, 5.0]])
    solver = wrap.create_solver("scipy", problem)
    _, result = _solve(solver)
    assert np.allclose(wrap.result_to_dict(result)["x"], [1.0, 2.0], atol=1e-4)


def test_constraints_not_supported(constrained_problem: Handle) -> None:
    solver = wrap.create_solver("scipy/l-bfgs-b", constrained_problem)
    with pytest.raises(NotImplementedError, match="does not support constraints"):
        wrap.solve(solver)
    tag, error = wrap.minimum(solver)
    assert tag == TypeTag.SOLVER_ERROR.value
    assert "does not support constraints" in wrap.solver_error_to_dict(error)["error"]


def test_unknown_option(problem: Handle) -> None:
    solver = wrap.create_solver("scipy", problem)
    wrap.set_solver_parameter(solver, "foo", 1.0)
    with pytest.raises(ValueError, match="Unknown or unsupported option"):
        wrap.solve(solver)


def test_method_option(problem: Handle) -> None:
    solver = wrap.create_solver("scipy", problem)
    wrap.set_solver_parameter(solver, "method", "l-bfgs-b")
    wrap.set_solver_parameter(solver, "gtol", 1e-10)
    tag, result = _solve(solver)
    assert tag == TypeTag.RESULT.value
    assert np.allclose(wrap.result_to_dict(result)["x"], [0.0, 0.0], atol=1e-4)


def test_iteration_limit(rosenbrock: Handle) -> None:
    problem = wrap.create_problem(rosenbrock)
    wrap.set_starting_point(problem, [-1.2, 1.0])
    solver = wrap.create_solver("scipy", problem)
    wrap.set_solver_parameter(solver, "max_iterations", 2)
    tag, error = _solve(solver)
    assert tag == TypeTag.SOLVER_ERROR.value
    record = wrap.solver_error_to_dict(error)
    assert record["error"]
    assert record["lastState"]["inputSize"] == 2
    assert record["lastState"]["x"].shape == (2,)
    assert wrap.str_solver_error(error).startswith("Solver error:")


def test_host_error_during_solve(sphere: Handle) -> None:
    calls = []

    def _compute(result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        calls.append(x.copy())
        if len(calls) > 3:  # noqa: PLR2004
            msg = "evaluation failed"
            raise RuntimeError(msg)
        result[0] = np.sum(x**2)

    wrap.bind_compute(sphere, _compute)
    problem = wrap.create_problem(sphere)
    wrap.set_starting_point(problem, [3.0, 4.0])
    solver = wrap.create_solver("scipy", problem)
    with pytest.raises(HostCallbackError, match="evaluation failed"):
        wrap.solve(solver)
    assert isinstance(wrap.get_last_error(), HostCallbackError)
    tag, error = wrap.minimum(solver)
    assert tag == TypeTag.SOLVER_ERROR.value
    assert "evaluation failed" in wrap.solver_error_to_dict(error)["error"]


def test_warnings_during_solve(sphere: Handle) -> None:
    def _compute(result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        warnings.warn("inaccurate evaluation", RuntimeWarning, stacklevel=1)
        result[0] = np.sum(x**2)

    wrap.bind_compute(sphere, _compute)
    problem = wrap.create_problem(sphere)
    wrap.set_starting_point(problem, [3.0, 4.0])
    solver = wrap.create_solver("scipy", problem)
    tag, result = _solve(solver)
    assert tag == TypeTag.RESULT_WITH_WARNINGS.value
    record = wrap.result_with_warnings_to_dict(result)
    assert "inaccurate evaluation" in record["warnings"]
    assert np.allclose(record["x"], [0.0, 0.0], atol=1e-4)
    assert np.allclose(wrap.result_to_dict(result)["x"], record["x"])
    text = wrap.str_result_with_warnings(result)
    assert text.startswith("Result with warnings:")
    assert "inaccurate evaluation" in text


def test_solver_parameters(problem: Handle) -> None:
    solver = wrap.create_solver("scipy", problem)
    parameters = wrap.get_solver_parameters(solver)
    assert parameters["method"] == ("optimization method", "slsqp")
    assert parameters["max_iterations"][1] == 100
    assert parameters["tolerance"][1] == 1e-9

    wrap.set_solver_parameters(
        solver, {"method": ("method", "tnc"), "max_iterations": ("limit", 50)}
    )
    assert wrap.get_solver_parameters(solver) == {
        "method": ("method", "tnc"),
        "max_iterations": ("limit", 50),
    }
    assert "method: tnc" in wrap.str_solver(solver)


def test_solver_parameters_skipped(problem: Handle) -> None:
    solver = wrap.create_solver("scipy", problem)
    with pytest.warns(ParameterSkippedWarning, match="'flag'"):
        wrap.set_solver_parameters(
            solver, {"flag": ("a flag", np.zeros(2)), "tolerance": ("tol", 1e-6)}
        )
    assert wrap.get_solver_parameters(solver) == {"tolerance": ("tol", 1e-6)}


def test_solver_parameter_bad_value(problem: Handle) -> None:
    solver = wrap.create_solver("scipy", problem)
    with pytest.raises(TypeError):
        wrap.set_solver_parameter(solver, "tolerance", None)


def test_invalid_generic_parameter(problem: Handle) -> None:
    solver = wrap.create_solver("scipy", problem)
    wrap.set_solver_parameter(solver, "max_iterations", -1)
    with pytest.raises(ValueError, match="max_iterations"):
        wrap.solve(solver)
