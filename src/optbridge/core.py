"""An object-oriented interface to the boundary surface.

The classes in this module wrap the handles of [`optbridge.wrap`][] in
ordinary Python objects. Functions are defined by subclassing and
overriding the `impl_*` methods, which are bound to the engine function
when the object is created:

```py
import numpy as np
from optbridge.core import DifferentiableFunction, Problem, Solver


class Sphere(DifferentiableFunction):
    def __init__(self) -> None:
        super().__init__(2, 1, "sphere")

    def impl_compute(self, result, x):
        result[0] = np.sum(x**2)

    def impl_gradient(self, result, x, function_id):
        result[:] = 2.0 * x


problem = Problem(Sphere())
problem.starting_point = [3.0, 4.0]
solver = Solver("scipy", problem)
solver.solve()
print(solver.minimum().x)
```

The engine only holds weak references to the objects of this module: they
must be kept alive by host code while the engine uses them. The composite
objects ([`Problem`][optbridge.core.Problem],
[`FunctionPool`][optbridge.core.FunctionPool],
[`Solver`][optbridge.core.Solver], ...) keep references to their parts.
"""

from __future__ import annotations

import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np

from optbridge import wrap
from optbridge.engine import FINITE_DIFFERENCE_EPSILON
from optbridge.enums import TypeTag
from optbridge.exceptions import ConstructionFailure

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path
    from types import TracebackType

    from numpy.typing import ArrayLike, NDArray

    from optbridge.bridge import Handle
    from optbridge.engine import FiniteDifferenceRule


class _Trampoline:
    """Forward calls to a method without keeping its object alive."""

    __slots__ = ("_method",)

    def __init__(self, method: Callable[..., Any]) -> None:
        self._method = weakref.WeakMethod(method)  # type: ignore[arg-type]

    def __call__(self, *args: Any) -> Any:  # noqa: ANN401
        method = self._method()
        if method is None:
            msg = "the object implementing this callback no longer exists"
            raise ReferenceError(msg)
        return method(*args)


class _FunctionBase:
    def __init__(self, handle: Handle) -> None:
        self._handle = handle

    @property
    def handle(self) -> Handle:
        """Return the handle of the function."""
        return self._handle

    @property
    def input_size(self) -> int:
        """Return the size of the argument vector."""
        return wrap.input_size(self._handle)

    @property
    def output_size(self) -> int:
        """Return the size of the result vector."""
        return wrap.output_size(self._handle)

    @property
    def name(self) -> str:
        """Return the name of the function."""
        return wrap.get_name(self._handle)

    def __call__(self, x: ArrayLike) -> NDArray[np.float64]:
        result = np.zeros(self.output_size, dtype=np.float64)
        wrap.compute(self._handle, result, x)
        return result

    def __str__(self) -> str:
        return wrap.str_function(self._handle)


class _DifferentiableBase(_FunctionBase):
    def gradient(self, x: ArrayLike, function_id: int = 0) -> NDArray[np.float64]:
        """Return the gradient of one output of the function.

        Args:
            x:           The argument.
            function_id: Index of the output.

        Returns:
            The gradient vector.
        """
        result = np.zeros(self.input_size, dtype=np.float64)
        wrap.gradient(self._handle, result, x, function_id)
        return result

    def jacobian(self, x: ArrayLike) -> NDArray[np.float64]:
        """Return the Jacobian of the function.

        Args:
            x: The argument.

        Returns:
            The `(output_size, input_size)` Jacobian matrix.
        """
        result = np.zeros((self.output_size, self.input_size), dtype=np.float64)
        wrap.jacobian(self._handle, result, x)
        return result


class Function(_FunctionBase, ABC):
    """Base class of functions implemented in Python.

    Subclasses implement [`impl_compute`][optbridge.core.Function.impl_compute].
    """

    def __init__(self, input_size: int, output_size: int, name: str = "") -> None:
        """Initialize the function.

        Args:
            input_size:  Size of the argument vector.
            output_size: Size of the result vector.
            name:        Name of the function.
        """
        super().__init__(wrap.create_function(input_size, output_size, name))
        wrap.bind_compute(self._handle, _Trampoline(self.impl_compute))

    @abstractmethod
    def impl_compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        """Compute the function.

        Args:
            result: Buffer receiving the result, to be modified in place.
            x:      The argument, read-only.
        """


class DifferentiableFunction(_DifferentiableBase, ABC):
    """Base class of differentiable functions implemented in Python.

    Subclasses implement
    [`impl_compute`][optbridge.core.DifferentiableFunction.impl_compute] and
    [`impl_gradient`][optbridge.core.DifferentiableFunction.impl_gradient]. A
    subclass may also define `impl_jacobian(result, x)`; otherwise the
    Jacobian is assembled from the gradients.
    """

    _create: ClassVar[Callable[[int, int, str], Handle]] = staticmethod(
        wrap.create_differentiable_function
    )
    impl_jacobian: ClassVar[Callable[..., None] | None] = None

    def __init__(self, input_size: int, output_size: int, name: str = "") -> None:
        """Initialize the function.

        Args:
            input_size:  Size of the argument vector.
            output_size: Size of the result vector.
            name:        Name of the function.
        """
        super().__init__(self._create(input_size, output_size, name))
        wrap.bind_compute(self._handle, _Trampoline(self.impl_compute))
        wrap.bind_gradient(self._handle, _Trampoline(self.impl_gradient))
        if self.impl_jacobian is not None:
            wrap.bind_jacobian(self._handle, _Trampoline(self.impl_jacobian))

    @abstractmethod
    def impl_compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        """Compute the function.

        Args:
            result: Buffer receiving the result, to be modified in place.
            x:      The argument, read-only.
        """

    @abstractmethod
    def impl_gradient(
        self, result: NDArray[np.float64], x: NDArray[np.float64], function_id: int
    ) -> None:
        """Compute the gradient of one output.

        Args:
            result:      Buffer receiving the gradient, to be modified in place.
            x:           The argument, read-only.
            function_id: Index of the output.
        """


class TwiceDifferentiableFunction(DifferentiableFunction):
    """Base class of twice differentiable functions implemented in Python."""

    _create = staticmethod(wrap.create_twice_differentiable_function)


class FiniteDifferenceGradient(_DifferentiableBase):
    """A function whose gradients are approximated by finite differences."""

    def __init__(
        self,
        function: _FunctionBase,
        epsilon: float = FINITE_DIFFERENCE_EPSILON,
        rule: FiniteDifferenceRule = "simple",
    ) -> None:
        """Wrap a function.

        Args:
            function: The wrapped function.
            epsilon:  Step size of the finite differences.
            rule:     `"simple"` or `"five-points"`.
        """
        super().__init__(wrap.create_fd_gradient(function.handle, epsilon, rule))
        self._function = function


class FunctionPool(_DifferentiableBase):
    """Stack differentiable functions into one function.

    The coordinating function is evaluated before the members, at the same
    argument, so that it can prepare data shared by the members.
    """

    def __init__(
        self,
        callback: _FunctionBase,
        functions: Sequence[_DifferentiableBase],
        name: str = "",
    ) -> None:
        """Initialize the pool.

        Args:
            callback:  The coordinating function.
            functions: The member functions.
            name:      Name of the pool.
        """
        super().__init__(
            wrap.create_function_pool(
                callback.handle, [function.handle for function in functions], name
            )
        )
        self._callback = callback
        self._functions = list(functions)

    @property
    def functions(self) -> tuple[_DifferentiableBase, ...]:
        """Return the member functions."""
        return tuple(self._functions)


class Problem:
    """An optimization problem: a cost function, bounds and constraints."""

    def __init__(self, cost: _DifferentiableBase) -> None:
        """Initialize the problem.

        Args:
            cost: The differentiable cost function.
        """
        self._handle = wrap.create_problem(cost.handle)
        self._cost = cost
        self._constraints: list[_DifferentiableBase] = []

    @property
    def handle(self) -> Handle:
        """Return the handle of the problem."""
        return self._handle

    @property
    def cost(self) -> _DifferentiableBase:
        """Return the cost function."""
        return self._cost

    @property
    def constraints(self) -> tuple[_DifferentiableBase, ...]:
        """Return the constraint functions."""
        return tuple(self._constraints)

    @property
    def starting_point(self) -> NDArray[np.float64] | None:
        """The starting point, `None` if not set."""
        return wrap.get_starting_point(self._handle)

    @starting_point.setter
    def starting_point(self, x: ArrayLike) -> None:
        wrap.set_starting_point(self._handle, x)

    @property
    def argument_bounds(self) -> NDArray[np.float64]:
        """The `(input_size, 2)` argument bounds."""
        return wrap.get_argument_bounds(self._handle)

    @argument_bounds.setter
    def argument_bounds(self, bounds: ArrayLike) -> None:
        wrap.set_argument_bounds(self._handle, bounds)

    @property
    def argument_scales(self) -> NDArray[np.float64]:
        """The argument scales."""
        return wrap.get_argument_scales(self._handle)

    @argument_scales.setter
    def argument_scales(self, scales: ArrayLike) -> None:
        wrap.set_argument_scales(self._handle, scales)

    def add_constraint(
        self,
        function: _DifferentiableBase,
        bounds: ArrayLike,
        scales: ArrayLike | None = None,
    ) -> None:
        """Add a constraint.

        Args:
            function: The differentiable constraint function.
            bounds:   A `(lower, upper)` pair for a scalar constraint, or an
                      `(output_size, 2)` array.
            scales:   Scales of the constraint outputs.
        """
        wrap.add_constraint(self._handle, function.handle, bounds, scales)
        self._constraints.append(function)

    def __str__(self) -> str:
        return wrap.str_problem(self._handle)


@dataclass(frozen=True, slots=True)
class Result:
    """The outcome of a successful solve.

    Attributes:
        input_size:  Size of the problem argument.
        output_size: Output size of the cost function.
        x:           The optimal argument.
        value:       The cost at `x`.
        constraints: The constraint values at `x`.
        lambda_:     The Lagrange multipliers.
    """

    input_size: int
    output_size: int
    x: NDArray[np.float64]
    value: NDArray[np.float64]
    constraints: NDArray[np.float64]
    lambda_: NDArray[np.float64]

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Result:
        """Build a result from a structured record."""
        return cls(
            input_size=record["inputSize"],
            output_size=record["outputSize"],
            x=record["x"],
            value=record["value"],
            constraints=record["constraints"],
            lambda_=record["lambda"],
        )


@dataclass(frozen=True, slots=True)
class ResultWithWarnings(Result):
    """The outcome of a successful solve that produced warnings.

    Attributes:
        warnings: The warning messages.
    """

    warnings: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> ResultWithWarnings:
        """Build a result from a structured record."""
        return cls(
            input_size=record["inputSize"],
            output_size=record["outputSize"],
            x=record["x"],
            value=record["value"],
            constraints=record["constraints"],
            lambda_=record["lambda"],
            warnings=tuple(record["warnings"]),
        )


@dataclass(frozen=True, slots=True)
class SolverError:
    """The outcome of a failed solve.

    Attributes:
        error:      The error message.
        last_state: The last known state, if any.
    """

    error: str
    last_state: Result | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> SolverError:
        """Build a solver error from a structured record."""
        last_state = record.get("lastState")
        return cls(
            error=record["error"],
            last_state=None if last_state is None else Result.from_record(last_state),
        )


class SolverState:
    """A view of the solver state, valid during an iteration callback."""

    def __init__(self, handle: Handle) -> None:
        self._handle = handle

    @property
    def x(self) -> NDArray[np.float64]:
        """The current argument."""
        return wrap.get_state_x(self._handle)

    @x.setter
    def x(self, x: ArrayLike) -> None:
        wrap.set_state_x(self._handle, x)

    @property
    def cost(self) -> float | None:
        """The current cost, `None` if not evaluated yet."""
        return wrap.get_state_cost(self._handle)

    @cost.setter
    def cost(self, cost: float | None) -> None:
        wrap.set_state_cost(self._handle, cost)

    @property
    def constraint_violation(self) -> float | None:
        """The current constraint violation, `None` if unknown."""
        return wrap.get_state_constraint_violation(self._handle)

    @constraint_violation.setter
    def constraint_violation(self, violation: float | None) -> None:
        wrap.set_state_constraint_violation(self._handle, violation)

    @property
    def parameters(self) -> dict[str, tuple[str, Any]]:
        """The state parameters, as `key: (description, value)`."""
        return wrap.get_state_parameters(self._handle)

    @parameters.setter
    def parameters(self, parameters: dict[str, tuple[str, Any]]) -> None:
        wrap.set_state_parameters(self._handle, parameters)

    def __str__(self) -> str:
        return wrap.str_solver_state(self._handle)


class SolverCallback(ABC):
    """Base class of iteration callbacks implemented in Python.

    Subclasses implement [`callback`][optbridge.core.SolverCallback.callback],
    and are added to a solver with
    [`Solver.add_iteration_callback`][optbridge.core.Solver.add_iteration_callback].
    """

    def __init__(self, problem: Problem) -> None:
        """Initialize the callback.

        Args:
            problem: The problem passed to the callback.
        """
        self._problem = problem
        self._handle = wrap.create_solver_callback(problem.handle)
        wrap.bind_solver_callback(self._handle, _Trampoline(self._forward))

    @property
    def handle(self) -> Handle:
        """Return the handle of the callback."""
        return self._handle

    def _forward(self, problem: Handle, state: Handle) -> None:  # noqa: ARG002
        self.callback(self._problem, SolverState(state))

    @abstractmethod
    def callback(self, problem: Problem, state: SolverState) -> None:
        """Handle an iteration.

        Setting the boolean `stop` state parameter to `True` stops the solver.

        Args:
            problem: The problem.
            state:   The solver state, only valid during the call.
        """


class Multiplexer:
    """Forward the iterations of a solver to several callbacks."""

    def __init__(self, solver: Solver) -> None:
        """Initialize the multiplexer.

        Args:
            solver: The solver.
        """
        self._handle = wrap.create_multiplexer(solver.handle)
        self._callbacks: list[SolverCallback] = []

    @property
    def handle(self) -> Handle:
        """Return the handle of the multiplexer."""
        return self._handle

    @property
    def callbacks(self) -> tuple[SolverCallback, ...]:
        """Return the callbacks."""
        return tuple(self._callbacks)

    def add(self, callback: SolverCallback) -> None:
        """Add a callback."""
        wrap.add_iteration_callback(self._handle, callback.handle)
        self._callbacks.append(callback)

    def remove(self, callback: SolverCallback) -> None:
        """Remove a callback."""
        wrap.remove_iteration_callback(self._handle, callback.handle)
        self._callbacks.remove(callback)


class Solver:
    """A solver for a problem, created by a solver plugin."""

    def __init__(self, plugin_name: str, problem: Problem) -> None:
        """Initialize the solver.

        Args:
            plugin_name: The plugin, as `"plugin"`, `"method"` or
                         `"plugin/method"`.
            problem:     The problem.

        Raises:
            ConstructionFailure: If the solver cannot be created.
        """
        handle = wrap.create_solver(plugin_name, problem.handle)
        if handle is None:
            msg = f"cannot create solver `{plugin_name}`"
            raise ConstructionFailure(msg) from wrap.get_last_error()
        self._handle = handle
        self._problem = problem
        self._multiplexer: Multiplexer | None = None

    @property
    def handle(self) -> Handle:
        """Return the handle of the solver."""
        return self._handle

    @property
    def problem(self) -> Problem:
        """Return the problem."""
        return self._problem

    @property
    def parameters(self) -> dict[str, tuple[str, Any]]:
        """The solver parameters, as `key: (description, value)`."""
        return wrap.get_solver_parameters(self._handle)

    @parameters.setter
    def parameters(self, parameters: dict[str, tuple[str, Any]]) -> None:
        wrap.set_solver_parameters(self._handle, parameters)

    def set_parameter(self, key: str, value: Any, description: str = "") -> None:  # noqa: ANN401
        """Set a single parameter, keeping the others."""
        wrap.set_solver_parameter(self._handle, key, value, description)

    @property
    def multiplexer(self) -> Multiplexer:
        """Return the multiplexer of the solver, creating it if needed."""
        if self._multiplexer is None:
            self._multiplexer = Multiplexer(self)
        return self._multiplexer

    def add_iteration_callback(self, callback: SolverCallback) -> None:
        """Add an iteration callback."""
        self.multiplexer.add(callback)

    def solve(self) -> None:
        """Solve the problem."""
        wrap.solve(self._handle)

    def minimum(self) -> Result | ResultWithWarnings | SolverError:
        """Return the outcome of the last solve.

        Raises:
            NoSolutionError: If the solver has not been run.
        """
        tag, handle = wrap.minimum(self._handle)
        if tag == TypeTag.RESULT_WITH_WARNINGS:
            return ResultWithWarnings.from_record(
                wrap.result_with_warnings_to_dict(handle)
            )
        if tag == TypeTag.RESULT:
            return Result.from_record(wrap.result_to_dict(handle))
        return SolverError.from_record(wrap.solver_error_to_dict(handle))

    def __str__(self) -> str:
        return wrap.str_solver(self._handle)


class OptimizationLogger:
    """Record the iterations of a solver in a directory.

    The journal is written when the logger is closed, or when the `with`
    block using the logger exits.
    """

    def __init__(self, solver: Solver, path: str | Path) -> None:
        """Initialize the logger.

        Args:
            solver: The solver.
            path:   The output directory.
        """
        _, self._handle = wrap.create_optimization_logger(
            solver.handle, solver.multiplexer.handle, path
        )

    def close(self) -> None:
        """Write the journal."""
        wrap.release(self._handle)

    def __enter__(self) -> OptimizationLogger:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()
