from __future__ import annotations

import numpy as np
import pytest

from optbridge import wrap
from optbridge.bridge import Handle, host_refcount
from optbridge.enums import TypeTag
from optbridge.exceptions import ShapeMismatchError, TypeMismatchError


def test_problem_defaults(sphere: Handle) -> None:
    problem = wrap.create_problem(sphere)
    assert wrap.get_starting_point(problem) is None
    assert np.array_equal(
        wrap.get_argument_bounds(problem), [[-np.inf, np.inf], [-np.inf, np.inf]]
    )
    assert np.array_equal(wrap.get_argument_scales(problem), [1.0, 1.0])


def test_problem_requires_differentiable_cost() -> None:
    function = wrap.create_function(2, 1)
    with pytest.raises(TypeMismatchError, match="differentiable function"):
        wrap.create_problem(function)


def test_problem_keeps_cost_alive(sphere: Handle) -> None:
    assert host_refcount(sphere) == 0
    problem = wrap.create_problem(sphere)
    assert host_refcount(sphere) == 1
    wrap.release(problem)
    assert host_refcount(sphere) == 0


def test_released_cost_stays_alive_in_problem(sphere: Handle) -> None:
    problem = wrap.create_problem(sphere)
    wrap.set_starting_point(problem, [3.0, 4.0])
    wrap.release(sphere)
    assert host_refcount(sphere) == 1
    assert sphere.alive
    with pytest.raises(TypeMismatchError, match="has been released"):
        wrap.compute(sphere, np.zeros(1), np.zeros(2))

    solver = wrap.create_solver("scipy", problem)
    assert solver is not None
    wrap.solve(solver)
    tag, result = wrap.minimum(solver)
    assert tag == TypeTag.RESULT.value
    assert np.allclose(wrap.result_to_dict(result)["x"], [0.0, 0.0], atol=1e-4)

    wrap.release(solver)
    assert sphere.alive
    wrap.release(problem)
    assert host_refcount(sphere) == 0
    assert not sphere.alive


def test_starting_point(problem: Handle) -> None:
    assert np.array_equal(wrap.get_starting_point(problem), [3.0, 4.0])
    wrap.set_starting_point(problem, [1.0, 2.0])
    assert np.array_equal(wrap.get_starting_point(problem), [1.0, 2.0])
    with pytest.raises(ShapeMismatchError, match="vector of size 2"):
        wrap.set_starting_point(problem, [1.0, 2.0, 3.0])


def test_starting_point_is_copied(problem: Handle) -> None:
    x = np.array([1.0, 2.0])
    wrap.set_starting_point(problem, x)
    x[0] = 5.0
    assert np.array_equal(wrap.get_starting_point(problem), [1.0, 2.0])


def test_argument_bounds(problem: Handle) -> None:
    wrap.set_argument_bounds(problem, [(0.0, 1.0), (-1.0, np.inf)])
    assert np.array_equal(
        wrap.get_argument_bounds(problem), [[0.0, 1.0], [-1.0, np.inf]]
    )
    with pytest.raises(ShapeMismatchError, match=r"\(2 x 2\) array of bounds"):
        wrap.set_argument_bounds(problem, [0.0, 1.0])


def test_argument_scales(problem: Handle) -> None:
    wrap.set_argument_scales(problem, np.array([2.0, 3.0]))
    assert np.array_equal(wrap.get_argument_scales(problem), [2.0, 3.0])
    with pytest.raises(ShapeMismatchError):
        wrap.set_argument_scales(problem, np.array([2.0]))


def test_add_scalar_constraint(problem: Handle, sum_constraint: Handle) -> None:
    wrap.add_constraint(problem, sum_constraint, [1.0, 2.0])
    assert host_refcount(sum_constraint) == 1
    text = wrap.str_problem(problem)
    assert "Number of constraints: 1" in text
    assert "(1, 2)" in text


@pytest.mark.parametrize("bounds", [[1.0], [[1.0, 2.0], [3.0, 4.0]], "bounds"])
def test_add_scalar_constraint_bad_bounds(
    problem: Handle, sum_constraint: Handle, bounds: object
) -> None:
    with pytest.raises(
        ShapeMismatchError, match="3rd argument must be a \\(n x 2\\) NumPy array"
    ):
        wrap.add_constraint(problem, sum_constraint, bounds)
    assert host_refcount(sum_constraint) == 0


def test_add_vector_constraint(problem: Handle) -> None:
    function = wrap.create_differentiable_function(2, 2, "box")
    wrap.add_constraint(problem, function, np.array([[0.0, 1.0], [0.0, 2.0]]))
    with pytest.raises(ShapeMismatchError):
        wrap.add_constraint(problem, function, [0.0, 1.0])
    assert host_refcount(function) == 1


def test_add_constraint_input_size_mismatch(problem: Handle) -> None:
    function = wrap.create_differentiable_function(3, 1, "wide")
    with pytest.raises(ShapeMismatchError, match="does not match"):
        wrap.add_constraint(problem, function, [0.0, 1.0])
    assert host_refcount(function) == 0


def test_add_constraint_scales(problem: Handle, sum_constraint: Handle) -> None:
    with pytest.raises(ShapeMismatchError, match="4th argument"):
        wrap.add_constraint(problem, sum_constraint, [0.0, 1.0], [1.0, 2.0])
    wrap.add_constraint(problem, sum_constraint, [0.0, 1.0], [2.0])


def test_constraints_released_with_problem(
    problem: Handle, sum_constraint: Handle
) -> None:
    wrap.add_constraint(problem, sum_constraint, [1.0, np.inf])
    wrap.add_constraint(problem, sum_constraint, [-np.inf, 5.0])
    assert host_refcount(sum_constraint) == 2
    wrap.release(problem)
    assert host_refcount(sum_constraint) == 0


def test_str_problem(problem: Handle) -> None:
    text = wrap.str_problem(problem)
    assert text.startswith("Problem:")
    assert "sphere" in text
    assert "Starting point: [3, 4]" in text
