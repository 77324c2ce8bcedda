"""The flat boundary surface between host code and the optimization engine.

Every function in this module is an entry point callable from host code.
Engine objects are returned as opaque [`Handle`][optbridge.bridge.Handle]
tokens and passed back as handles; a handle of the wrong kind is rejected
with a [`TypeMismatchError`][optbridge.exceptions.TypeMismatchError].

Failures raise a [`BridgeError`][optbridge.exceptions.BridgeError] (or the
error of a host callable, wrapped in a
[`HostCallbackError`][optbridge.exceptions.HostCallbackError]), and are
recorded before they leave the bridge, so that
[`get_last_error`][optbridge.wrap.get_last_error] returns them afterwards.
The one exception is [`create_solver`][optbridge.wrap.create_solver], which
returns `None` when the solver cannot be constructed.

The engine objects are released when the host drops the last reference to
their handle, or earlier with [`release`][optbridge.wrap.release].

**Example**:
```py
import numpy as np
from optbridge import wrap

def compute(result, x):
    result[0] = x[0] ** 2 + x[1] ** 2

def gradient(result, x, function_id):
    result[:] = 2.0 * x

function = wrap.create_differentiable_function(2, 1, "sphere")
wrap.bind_compute(function, compute)
wrap.bind_gradient(function, gradient)

problem = wrap.create_problem(function)
wrap.set_starting_point(problem, np.array([3.0, 4.0]))
solver = wrap.create_solver("scipy", problem)
wrap.solve(solver)
tag, result = wrap.minimum(solver)
print(wrap.result_to_dict(result)["x"])
```
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import numpy as np

from optbridge.bridge import (
    REGISTRY,
    Borrowed,
    CallbackDifferentiableFunction,
    CallbackFunction,
    CallbackSlot,
    CallbackTwiceDifferentiableFunction,
    Handle,
    SolverCallback,
    acquire,
    bind,
    entry_point,
    get_parameters,
    record_error,
    release_all,
    set_parameter,
    set_parameters,
)
from optbridge.bridge import clear_error as _clear_error
from optbridge.bridge import get_last_error as _get_last_error
from optbridge.bridge import minimum as _minimum
from optbridge.bridge import result_to_dict as _result_to_dict
from optbridge.bridge import (
    result_with_warnings_to_dict as _result_with_warnings_to_dict,
)
from optbridge.bridge import set_callback_error as _set_callback_error
from optbridge.bridge import solver_error_to_dict as _solver_error_to_dict
from optbridge.engine import (
    FINITE_DIFFERENCE_EPSILON,
    DifferentiableFunction,
    FiniteDifferenceGradient,
    Function,
    FunctionPool,
    Multiplexer,
    OptimizationLogger,
    Problem,
    SolverFactory,
)
from optbridge.enums import TypeTag
from optbridge.exceptions import (
    ConstructionFailure,
    ConversionError,
    ShapeMismatchError,
    TypeMismatchError,
)

if TYPE_CHECKING:
    from pathlib import Path

    from numpy.typing import ArrayLike, NDArray

    from optbridge.engine import (
        FiniteDifferenceRule,
        IterationCallback,
        Result,
        ResultWithWarnings,
        Solver,
        SolverError,
        SolverState,
    )

logger = logging.getLogger(__name__)


def _release(obj: Any) -> None:  # noqa: ANN401
    obj.release()


def _discard(obj: Any) -> None:  # noqa: ANN401
    logger.debug("discarded %s", type(obj).__name__)


REGISTRY.register_destructor(TypeTag.FUNCTION, _release)
REGISTRY.register_destructor(TypeTag.PROBLEM, _release)
REGISTRY.register_destructor(TypeTag.SOLVER, _release)
REGISTRY.register_destructor(TypeTag.SOLVER_STATE, Borrowed.invalidate)
REGISTRY.register_destructor(TypeTag.OPTIMIZATION_LOGGER, OptimizationLogger.close)
REGISTRY.register_destructor(TypeTag.RESULT, _discard)
REGISTRY.register_destructor(TypeTag.RESULT_WITH_WARNINGS, _discard)
REGISTRY.register_destructor(TypeTag.SOLVER_ERROR, _discard)
REGISTRY.register_destructor(TypeTag.MULTIPLEXER, _release)
REGISTRY.register_destructor(TypeTag.SOLVER_CALLBACK, _release)


# Unwrapping helpers.


def _function(handle: Any) -> Function:  # noqa: ANN401
    return REGISTRY.unwrap(handle, TypeTag.FUNCTION)


def _differentiable(handle: Any, position: str) -> DifferentiableFunction:  # noqa: ANN401
    function = _function(handle)
    if not isinstance(function, DifferentiableFunction):
        msg = f"{position} argument must be a differentiable function"
        raise TypeMismatchError(msg)
    return function


def _slot(handle: Any, name: str) -> CallbackSlot:  # noqa: ANN401
    function = _function(handle)
    slot = getattr(function, f"{name}_callback", None)
    if not isinstance(slot, CallbackSlot):
        msg = f"{function.kind} `{function.name}` does not accept a {name} callback"
        raise TypeMismatchError(msg)
    return slot


def _problem(handle: Any) -> Problem:  # noqa: ANN401
    return REGISTRY.unwrap(handle, TypeTag.PROBLEM)


def _factory(handle: Any) -> SolverFactory:  # noqa: ANN401
    return REGISTRY.unwrap(handle, TypeTag.SOLVER)


def _solver(handle: Any) -> Solver:  # noqa: ANN401
    return _factory(handle)()


def _multiplexer(handle: Any) -> Multiplexer:  # noqa: ANN401
    return REGISTRY.unwrap(handle, TypeTag.MULTIPLEXER)


def _state(handle: Any) -> SolverState:  # noqa: ANN401
    borrowed: Borrowed[SolverState] = REGISTRY.unwrap(handle, TypeTag.SOLVER_STATE)
    return borrowed.get()


# Array helpers.


def _vector(value: ArrayLike, size: int, position: str) -> NDArray[np.float64]:
    try:
        array = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        msg = f"{position} argument must be a vector of size {size}"
        raise ShapeMismatchError(msg) from exc
    if array.shape != (size,):
        msg = (
            f"{position} argument must be a vector of size {size}, "
            f"got shape {array.shape}"
        )
        raise ShapeMismatchError(msg)
    return array


def _matrix(
    value: ArrayLike, shape: tuple[int, ...], msg: str
) -> NDArray[np.float64]:
    try:
        array = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ShapeMismatchError(msg) from exc
    if array.shape != shape:
        raise ShapeMismatchError(msg)
    return array


def _buffer(
    value: Any,  # noqa: ANN401
    shape: tuple[int, ...],
    position: str,
) -> NDArray[np.float64]:
    if not isinstance(value, np.ndarray) or value.dtype != np.float64:
        msg = f"{position} argument must be a NumPy array of float64 values"
        raise ConversionError(msg)
    if value.shape != shape:
        msg = f"{position} argument must have shape {shape}, got {value.shape}"
        raise ShapeMismatchError(msg)
    if not value.flags.writeable or not value.flags.c_contiguous:
        msg = f"{position} argument must be a writeable, contiguous array"
        raise ConversionError(msg)
    return value


# Functions.


@entry_point
def create_function(input_size: int, output_size: int, name: str = "") -> Handle:
    """Create a function evaluated by a host callable.

    Args:
        input_size:  Size of the argument vector.
        output_size: Size of the result vector.
        name:        Name of the function.

    Returns:
        The handle of the function.
    """
    return REGISTRY.wrap(
        CallbackFunction(input_size, output_size, name), TypeTag.FUNCTION
    )


@entry_point
def create_differentiable_function(
    input_size: int, output_size: int, name: str = ""
) -> Handle:
    """Create a differentiable function evaluated by host callables.

    Args:
        input_size:  Size of the argument vector.
        output_size: Size of the result vector.
        name:        Name of the function.

    Returns:
        The handle of the function.
    """
    return REGISTRY.wrap(
        CallbackDifferentiableFunction(input_size, output_size, name),
        TypeTag.FUNCTION,
    )


@entry_point
def create_twice_differentiable_function(
    input_size: int, output_size: int, name: str = ""
) -> Handle:
    """Create a twice differentiable function evaluated by host callables.

    Args:
        input_size:  Size of the argument vector.
        output_size: Size of the result vector.
        name:        Name of the function.

    Returns:
        The handle of the function.
    """
    return REGISTRY.wrap(
        CallbackTwiceDifferentiableFunction(input_size, output_size, name),
        TypeTag.FUNCTION,
    )


@entry_point
def create_function_pool(
    callback: Handle, functions: Sequence[Handle], name: str = ""
) -> Handle:
    """Create a pool stacking differentiable functions into one function.

    The coordinating function `callback` is evaluated before the members, at
    the same argument. The pool keeps the coordinating function and all
    members alive until it is released.

    Args:
        callback:  Handle of the coordinating function.
        functions: Handles of the differentiable member functions.
        name:      Name of the pool.

    Returns:
        The handle of the pool.

    Raises:
        TypeMismatchError: If a member is not a differentiable function.
    """
    coordinator = _function(callback)
    if not isinstance(functions, Sequence) or isinstance(functions, str):
        msg = "2nd argument must be a list of differentiable functions"
        raise TypeMismatchError(msg)
    members = [
        _differentiable(handle, f"element {idx} of the 2nd")
        for idx, handle in enumerate(functions)
    ]
    refs = [
        acquire(member, handle)
        for member, handle in zip(members, functions, strict=True)
    ]
    callback_ref = acquire(coordinator, callback)
    try:
        pool = FunctionPool(callback_ref, refs, name)
    except ValueError:
        callback_ref.reset()
        release_all(refs)
        raise
    return REGISTRY.wrap(pool, TypeTag.FUNCTION)


@entry_point
def create_fd_gradient(
    function: Handle,
    epsilon: float = FINITE_DIFFERENCE_EPSILON,
    rule: FiniteDifferenceRule = "simple",
) -> Handle:
    """Wrap a function, approximating its gradients by finite differences.

    Args:
        function: Handle of the function to wrap.
        epsilon:  Step size of the finite differences.
        rule:     `"simple"` or `"five-points"`.

    Returns:
        The handle of the differentiable wrapper.
    """
    wrapped = _function(function)
    ref = acquire(wrapped, function)
    try:
        fd_gradient = FiniteDifferenceGradient(ref, epsilon, rule)
    except ValueError:
        ref.reset()
        raise
    return REGISTRY.wrap(fd_gradient, TypeTag.FUNCTION)


@entry_point
def input_size(function: Handle) -> int:
    """Return the input size of a function."""
    return _function(function).input_size


@entry_point
def output_size(function: Handle) -> int:
    """Return the output size of a function."""
    return _function(function).output_size


@entry_point
def get_name(function: Handle) -> str:
    """Return the name of a function."""
    return _function(function).name


@entry_point
def compute(function: Handle, result: NDArray[np.float64], x: ArrayLike) -> None:
    """Evaluate a function.

    Args:
        function: Handle of the function.
        result:   Buffer of size `output_size` receiving the result.
        x:        Argument of size `input_size`.

    Raises:
        ShapeMismatchError: If a size does not match the function.
    """
    obj = _function(function)
    result = _buffer(result, (obj.output_size,), "2nd")
    obj.compute(result, _vector(x, obj.input_size, "3rd"))


@entry_point
def gradient(
    function: Handle, result: NDArray[np.float64], x: ArrayLike, function_id: int
) -> None:
    """Evaluate the gradient of one output of a function.

    Args:
        function:    Handle of the differentiable function.
        result:      Buffer of size `input_size` receiving the gradient.
        x:           Argument of size `input_size`.
        function_id: Index of the output.

    Raises:
        ShapeMismatchError: If a size or the index does not match the function.
    """
    obj = _differentiable(function, "1st")
    result = _buffer(result, (obj.gradient_size,), "2nd")
    x = _vector(x, obj.input_size, "3rd")
    if isinstance(function_id, bool) or not 0 <= function_id < obj.output_size:
        msg = f"function index out of range: {function_id}"
        raise ShapeMismatchError(msg)
    obj.compute_gradient(result, x, int(function_id))


@entry_point
def jacobian(function: Handle, result: NDArray[np.float64], x: ArrayLike) -> None:
    """Evaluate the Jacobian of a function.

    Args:
        function: Handle of the differentiable function.
        result:   Buffer of shape `(output_size, input_size)`.
        x:        Argument of size `input_size`.

    Raises:
        ShapeMismatchError: If a size does not match the function.
    """
    obj = _differentiable(function, "1st")
    result = _buffer(result, obj.jacobian_shape, "2nd")
    obj.compute_jacobian(result, _vector(x, obj.input_size, "3rd"))


@entry_point
def bind_compute(function: Handle, func: Any) -> None:  # noqa: ANN401
    """Bind the callable computing a function, as `func(result, x)`."""
    bind(_slot(function, "compute"), func)


@entry_point
def bind_gradient(function: Handle, func: Any) -> None:  # noqa: ANN401
    """Bind the callable computing gradients, as `func(result, x, function_id)`."""
    bind(_slot(function, "gradient"), func)


@entry_point
def bind_jacobian(function: Handle, func: Any) -> None:  # noqa: ANN401
    """Bind the callable computing the Jacobian, as `func(result, x)`."""
    bind(_slot(function, "jacobian"), func)


@entry_point
def str_function(function: Handle) -> str:
    """Return the text representation of a function."""
    return str(_function(function))


# Problems.


@entry_point
def create_problem(function: Handle) -> Handle:
    """Create a problem minimizing a differentiable cost function.

    Args:
        function: Handle of the cost function.

    Returns:
        The handle of the problem.
    """
    cost = _differentiable(function, "1st")
    return REGISTRY.wrap(Problem(acquire(cost, function)), TypeTag.PROBLEM)


@entry_point
def get_starting_point(problem: Handle) -> NDArray[np.float64] | None:
    """Return the starting point of a problem, `None` if it is not set."""
    starting_point = _problem(problem).starting_point
    return None if starting_point is None else starting_point.view()


@entry_point
def set_starting_point(problem: Handle, x: ArrayLike) -> None:
    """Set the starting point of a problem.

    Args:
        problem: Handle of the problem.
        x:       The starting point, of size `input_size`.
    """
    obj = _problem(problem)
    obj.starting_point = np.array(_vector(x, obj.input_size, "2nd"))


@entry_point
def get_argument_bounds(problem: Handle) -> NDArray[np.float64]:
    """Return the `(input_size, 2)` array of argument bounds."""
    return _problem(problem).argument_bounds.view()


@entry_point
def set_argument_bounds(problem: Handle, bounds: ArrayLike) -> None:
    """Set the argument bounds of a problem.

    Args:
        problem: Handle of the problem.
        bounds:  An `(input_size, 2)` array, or a list of `(lower, upper)` pairs.
    """
    obj = _problem(problem)
    shape = (obj.input_size, 2)
    msg = f"2nd argument must be a ({obj.input_size} x 2) array of bounds"
    obj.argument_bounds = np.array(_matrix(bounds, shape, msg))


@entry_point
def get_argument_scales(problem: Handle) -> NDArray[np.float64]:
    """Return the argument scales of a problem."""
    return _problem(problem).argument_scales.view()


@entry_point
def set_argument_scales(problem: Handle, scales: ArrayLike) -> None:
    """Set the argument scales of a problem."""
    obj = _problem(problem)
    obj.argument_scales = np.array(_vector(scales, obj.input_size, "2nd"))


@entry_point
def add_constraint(
    problem: Handle,
    function: Handle,
    bounds: ArrayLike,
    scales: ArrayLike | None = None,
) -> None:
    """Add a constraint to a problem.

    For a constraint function of output size 1, `bounds` must be a single
    `(lower, upper)` pair. Otherwise it must be an `(output_size, 2)` array.

    Args:
        problem:  Handle of the problem.
        function: Handle of the differentiable constraint function.
        bounds:   The bounds of the constraint.
        scales:   Scales of the constraint outputs, ones by default.

    Raises:
        ShapeMismatchError: If the bounds have the wrong shape, or the input
                            size of the function does not match the problem.
    """
    obj = _problem(problem)
    constraint = _differentiable(function, "2nd")
    size = constraint.output_size
    msg = "3rd argument must be a (n x 2) NumPy array or a list of size 2."
    array = _matrix(bounds, (2,) if size == 1 else (size, 2), msg)
    if constraint.input_size != obj.input_size:
        msg = (
            f"constraint input size {constraint.input_size} does not match "
            f"problem input size {obj.input_size}"
        )
        raise ShapeMismatchError(msg)
    if scales is not None:
        scales = _vector(scales, size, "4th")
    obj.add_constraint(acquire(constraint, function), array.reshape(size, 2), scales)


@entry_point
def str_problem(problem: Handle) -> str:
    """Return the text representation of a problem."""
    return str(_problem(problem))


# Solvers.


@entry_point
def create_solver(plugin_name: str, problem: Handle) -> Handle | None:
    """Create a solver for a problem.

    Construction failures, such as an unknown plugin name, do not raise: the
    failure is logged and recorded as a
    [`ConstructionFailure`][optbridge.exceptions.ConstructionFailure], and
    `None` is returned.

    Args:
        plugin_name: The solver plugin, as `"plugin"`, `"method"` or
                     `"plugin/method"`.
        problem:     Handle of the problem.

    Returns:
        The handle of the solver, or `None`.
    """
    obj = _problem(problem)
    ref = acquire(obj, problem)
    try:
        factory = SolverFactory(plugin_name, ref)
    except Exception as exc:  # noqa: BLE001
        ref.reset()
        msg = f"failed to create solver `{plugin_name}`: {exc}"
        logger.warning(msg)
        error = ConstructionFailure(msg)
        error.__cause__ = exc
        record_error(error)
        return None
    return REGISTRY.wrap(factory, TypeTag.SOLVER)


@entry_point
def solve(solver: Handle) -> None:
    """Solve the problem of a solver.

    Raises:
        HostCallbackError: If a host callable failed during the solve.
    """
    _solver(solver).solve()


@entry_point
def minimum(solver: Handle) -> tuple[str, Handle]:
    """Return the outcome of the last solve.

    Args:
        solver: Handle of the solver.

    Returns:
        The tag name of the outcome, and its handle: a result, a result with
        warnings, or a solver error.

    Raises:
        NoSolutionError: If the solver has not been run.
    """
    return _minimum(_solver(solver))


@entry_point
def get_solver_parameters(solver: Handle) -> dict[str, tuple[str, Any]]:
    """Return the parameters of a solver as `key: (description, value)`."""
    return get_parameters(_solver(solver).parameters)


@entry_point
def set_solver_parameters(solver: Handle, parameters: Any) -> None:  # noqa: ANN401
    """Replace the parameters of a solver.

    The existing parameters are cleared first. Values must be real numbers,
    integers or text. Malformed entries are skipped with a
    [`ParameterSkippedWarning`][optbridge.exceptions.ParameterSkippedWarning].

    Args:
        solver:     Handle of the solver.
        parameters: A mapping of keys to `(description, value)` pairs.
    """
    set_parameters(_solver(solver).parameters, parameters)


@entry_point
def set_solver_parameter(
    solver: Handle,
    key: str | bytes,
    value: Any,  # noqa: ANN401
    description: str = "",
) -> None:
    """Set a single solver parameter, keeping the others."""
    set_parameter(_solver(solver).parameters, key, value, description)


@entry_point
def str_solver(solver: Handle) -> str:
    """Return the text representation of a solver."""
    return str(_solver(solver))


# Iteration callbacks.


@entry_point
def create_multiplexer(solver: Handle) -> Handle:
    """Create a multiplexer forwarding the iterations of a solver.

    The multiplexer installs itself as the iteration callback of the solver,
    replacing any previous one, and keeps the solver alive.

    Args:
        solver: Handle of the solver.

    Returns:
        The handle of the multiplexer.
    """
    factory = _factory(solver)
    return REGISTRY.wrap(Multiplexer(acquire(factory, solver)), TypeTag.MULTIPLEXER)


@entry_point
def create_solver_callback(problem: Handle) -> Handle:
    """Create an iteration callback forwarding to a host callable.

    Args:
        problem: Handle of the problem, passed to the host callable.

    Returns:
        The handle of the callback.
    """
    obj = _problem(problem)
    return REGISTRY.wrap(
        SolverCallback(acquire(obj, problem)), TypeTag.SOLVER_CALLBACK
    )


@entry_point
def bind_solver_callback(callback: Handle, func: Any) -> None:  # noqa: ANN401
    """Bind the host callable of a solver callback, as `func(problem, state)`."""
    obj: SolverCallback = REGISTRY.unwrap(callback, TypeTag.SOLVER_CALLBACK)
    bind(obj.callback, func)


@entry_point
def add_iteration_callback(multiplexer: Handle, callback: Handle) -> None:
    """Add a solver callback to a multiplexer, keeping it alive.

    Args:
        multiplexer: Handle of the multiplexer.
        callback:    Handle of the solver callback.
    """
    obj = _multiplexer(multiplexer)
    iteration_callback: IterationCallback = REGISTRY.unwrap(
        callback, TypeTag.SOLVER_CALLBACK
    )
    obj.add(acquire(iteration_callback, callback))


@entry_point
def remove_iteration_callback(multiplexer: Handle, callback: Handle | int) -> None:
    """Remove a callback from a multiplexer.

    Args:
        multiplexer: Handle of the multiplexer.
        callback:    Handle of the callback, or its index in the multiplexer.
    """
    obj = _multiplexer(multiplexer)
    if isinstance(callback, Handle):
        iteration_callback = REGISTRY.unwrap(
            callback, (TypeTag.SOLVER_CALLBACK, TypeTag.OPTIMIZATION_LOGGER)
        )
        obj.remove(obj.index(iteration_callback))
        return
    if isinstance(callback, bool) or not isinstance(callback, int):
        msg = "2nd argument must be a callback handle or an index"
        raise TypeMismatchError(msg)
    obj.remove(callback)


@entry_point
def create_optimization_logger(
    solver: Handle, multiplexer: Handle, directory: str | Path
) -> tuple[str, Handle]:
    """Create a logger recording the iterations of a solver.

    The logger is added to the multiplexer. Its journal is written to
    `directory` when its handle is released, so the handle must be kept
    alive while the solver runs.

    Args:
        solver:      Handle of the solver.
        multiplexer: Handle of the multiplexer of the solver.
        directory:   The output directory.

    Returns:
        The tag name and the handle of the logger.
    """
    solver_obj = _solver(solver)
    obj = _multiplexer(multiplexer)
    optimization_logger = OptimizationLogger(solver_obj, directory)
    handle = REGISTRY.wrap(optimization_logger, TypeTag.OPTIMIZATION_LOGGER)
    obj.add(acquire(optimization_logger, None))
    return TypeTag.OPTIMIZATION_LOGGER.value, handle


# Solver states.


@entry_point
def get_state_x(state: Handle) -> NDArray[np.float64]:
    """Return the argument of a solver state."""
    return _state(state).x.view()


@entry_point
def set_state_x(state: Handle, x: ArrayLike) -> None:
    """Set the argument of a solver state."""
    obj = _state(state)
    obj.x = np.array(_vector(x, obj.x.size, "2nd"))


@entry_point
def get_state_cost(state: Handle) -> float | None:
    """Return the cost of a solver state, `None` if not evaluated yet."""
    return _state(state).cost


@entry_point
def set_state_cost(state: Handle, cost: float | None) -> None:
    """Set or clear the cost of a solver state."""
    _state(state).cost = None if cost is None else float(cost)


@entry_point
def get_state_constraint_violation(state: Handle) -> float | None:
    """Return the constraint violation of a solver state, `None` if unknown."""
    return _state(state).constraint_violation


@entry_point
def set_state_constraint_violation(state: Handle, violation: float | None) -> None:
    """Set or clear the constraint violation of a solver state."""
    _state(state).constraint_violation = None if violation is None else float(violation)


@entry_point
def get_state_parameters(state: Handle) -> dict[str, tuple[str, Any]]:
    """Return the parameters of a solver state as `key: (description, value)`."""
    return get_parameters(_state(state).parameters)


@entry_point
def set_state_parameters(state: Handle, parameters: Any) -> None:  # noqa: ANN401
    """Replace the parameters of a solver state.

    Like [`set_solver_parameters`][optbridge.wrap.set_solver_parameters],
    but booleans and one-dimensional vectors are accepted as values.
    """
    set_parameters(_state(state).parameters, parameters, state=True)


@entry_point
def str_solver_state(state: Handle) -> str:
    """Return the text representation of a solver state."""
    return str(_state(state))


# Outcomes.


@entry_point
def result_to_dict(result: Handle) -> dict[str, Any]:
    """Convert a result, with or without warnings, to a structured record.

    See [`result_to_dict`][optbridge.bridge.result_to_dict].
    """
    obj: Result = REGISTRY.unwrap(
        result, (TypeTag.RESULT, TypeTag.RESULT_WITH_WARNINGS)
    )
    return _result_to_dict(obj)


@entry_point
def result_with_warnings_to_dict(result: Handle) -> dict[str, Any]:
    """Convert a result with warnings to a structured record.

    See [`result_with_warnings_to_dict`][optbridge.bridge.result_with_warnings_to_dict].
    """
    obj: ResultWithWarnings = REGISTRY.unwrap(result, TypeTag.RESULT_WITH_WARNINGS)
    return _result_with_warnings_to_dict(obj)


@entry_point
def solver_error_to_dict(error: Handle) -> dict[str, Any]:
    """Convert a solver error to a structured record.

    See [`solver_error_to_dict`][optbridge.bridge.solver_error_to_dict].
    """
    obj: SolverError = REGISTRY.unwrap(error, TypeTag.SOLVER_ERROR)
    return _solver_error_to_dict(obj)


@entry_point
def str_result(result: Handle) -> str:
    """Return the text representation of a result."""
    return str(REGISTRY.unwrap(result, TypeTag.RESULT))


@entry_point
def str_result_with_warnings(result: Handle) -> str:
    """Return the text representation of a result with warnings."""
    return str(REGISTRY.unwrap(result, TypeTag.RESULT_WITH_WARNINGS))


@entry_point
def str_solver_error(error: Handle) -> str:
    """Return the text representation of a solver error."""
    return str(REGISTRY.unwrap(error, TypeTag.SOLVER_ERROR))


# Handles and errors.


@entry_point
def release(handle: Handle) -> None:
    """Release the engine object of a handle now.

    The handle can no longer be used afterwards. Releasing a handle twice
    has no effect.
    """
    if not isinstance(handle, Handle):
        msg = f"Invalid handle given: {type(handle).__name__} is not a handle"
        raise TypeMismatchError(msg)
    REGISTRY.release(handle)


def get_last_error() -> Exception | None:
    """Return the error recorded by the last failing call, or `None`."""
    return _get_last_error()


def clear_error() -> None:
    """Clear the recorded error."""
    _clear_error()


def set_callback_error(message: str | BaseException) -> None:
    """Signal a failure from a host callable without raising.

    The evaluation that invoked the callable fails with a
    [`HostCallbackError`][optbridge.exceptions.HostCallbackError] when the
    callable returns.

    Args:
        message: The error message, or an exception whose text is used.
    """
    _set_callback_error(message)
