"""Function objects evaluated by the optimization engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Final, Literal

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from optbridge.bridge import SharedRef

FINITE_DIFFERENCE_EPSILON: Final = 1e-8

FiniteDifferenceRule = Literal["simple", "five-points"]


def _check_size(size: int, what: str) -> int:
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        msg = f"{what} must be a non-negative integer, got: {size!r}"
        raise ValueError(msg)
    return size


class Function(ABC):
    """A function mapping vectors of size `input_size` to `output_size`.

    Evaluations write into caller-provided buffers: the
    [`compute`][optbridge.engine.Function.compute] method passes its `result`
    array on to [`impl_compute`][optbridge.engine.Function.impl_compute]
    without copying. Calling the function object allocates the result.
    """

    kind: str = "function"

    def __init__(self, input_size: int, output_size: int, name: str = "") -> None:
        """Initialize the function.

        Args:
            input_size:  Size of the argument vector.
            output_size: Size of the result vector.
            name:        Name of the function.
        """
        self._input_size = _check_size(input_size, "input size")
        self._output_size = _check_size(output_size, "output size")
        self._name = name

    @property
    def input_size(self) -> int:
        """Return the size of the argument vector."""
        return self._input_size

    @property
    def output_size(self) -> int:
        """Return the size of the result vector."""
        return self._output_size

    @property
    def name(self) -> str:
        """Return the name of the function."""
        return self._name

    def __call__(self, x: ArrayLike) -> NDArray[np.float64]:
        result = np.zeros(self._output_size, dtype=np.float64)
        self.compute(result, np.asarray(x, dtype=np.float64))
        return result

    def compute(self, result: NDArray[np.float64], x: NDArray[np.float64]) -> None:
        """Evaluate the function, storing the output in `result`.

        Args:
            result: Output buffer of size `output_size`.
            x:      Argument of size `input_size`.
        """
        self.impl_compute(result, x)

    @abstractmethod
    def impl_compute(
        self, result: NDArray[np.float64], x: NDArray[np.float64]
    ) -> None:
        """Implement the function evaluation.

        Args:
            result: Output buffer of size `output_size`.
            x:      Argument of size `input_size`.
        """

    def release(self) -> None:  # noqa: B027
        """Release the references held by the function."""

    def __str__(self) -> str:
        name = self._name or "(unnamed)"
        return (
            f"{name} ({self.kind}, input size: {self._input_size}, "
            f"output size: {self._output_size})"
        )


class DifferentiableFunction(Function):
    """A function that also provides gradients and a Jacobian.

    The gradient of output `function_id` has the size of the input. The
    Jacobian is a row-major `(output_size, input_size)` matrix; the default
    implementation fills it row by row from the gradients.
    """

    kind = "differentiable function"

    @property
    def gradient_size(self) -> int:
        """Return the size of a gradient vector."""
        return self.input_size

    @property
    def jacobian_shape(self) -> tuple[int, int]:
        """Return the shape of the Jacobian matrix."""
        return self.output_size, self.input_size

    def gradient(self, x: ArrayLike, function_id: int = 0) -> NDArray[np.float64]:
        """Return the gradient of one output of the function.

        Args:
            x:           The argument.
            function_id: Index of the output.

        Returns:
            The gradient vector.
        """
        result = np.zeros(self.gradient_size, dtype=np.float64)
        self.compute_gradient(result, np.asarray(x, dtype=np.float64), function_id)
        return result

    def jacobian(self, x: ArrayLike) -> NDArray[np.float64]:
        """Return the Jacobian of the function.

        Args:
            x: The argument.

        Returns:
            The Jacobian matrix.
        """
        result = np.zeros(self.jacobian_shape, dtype=np.float64)
        self.compute_jacobian(result, np.asarray(x, dtype=np.float64))
        return result

    def compute_gradient(
        self, result: NDArray[np.float64], x: NDArray[np.float64], function_id: int
    ) -> None:
        """Evaluate a gradient, storing it in `result`.

        Args:
            result:      Output buffer of size `input_size`.
            x:           Argument of size `input_size`.
            function_id: Index of the output.
        """
        self.impl_gradient(result, x, function_id)

    def compute_jacobian(
        self, result: NDArray[np.float64], x: NDArray[np.float64]
    ) -> None:
        """Evaluate the Jacobian, storing it in `result`.

        Args:
            result: Output buffer of shape `(output_size, input_size)`.
            x:      Argument of size `input_size`.
        """
        self.impl_jacobian(result, x)

    @abstractmethod
    def impl_gradient(
        self, result: NDArray[np.float64], x: NDArray[np.float64], function_id: int
    ) -> None:
        """Implement the gradient evaluation.

        Args:
            result:      Output buffer of size `input_size`.
            x:           Argument of size `input_size`.
            function_id: Index of the output.
        """

    def impl_jacobian(
        self, result: NDArray[np.float64], x: NDArray[np.float64]
    ) -> None:
        """Implement the Jacobian evaluation from the gradients.

        Args:
            result: Output buffer of shape `(output_size, input_size)`.
            x:      Argument of size `input_size`.
        """
        for idx in range(self.output_size):
            self.impl_gradient(result[idx], x, idx)


class TwiceDifferentiableFunction(DifferentiableFunction):
    """A differentiable function that also provides Hessians."""

    kind = "twice differentiable function"

    def hessian(self, x: ArrayLike, function_id: int = 0) -> NDArray[np.float64]:
        """Return the Hessian of one output of the function.

        Args:
            x:           The argument.
            function_id: Index of the output.

        Returns:
            The `(input_size, input_size)` Hessian matrix.
        """
        result = np.zeros((self.input_size, self.input_size), dtype=np.float64)
        self.impl_hessian(result, np.asarray(x, dtype=np.float64), function_id)
        return result

    def impl_hessian(
        self,
        result: NDArray[np.float64],  # noqa: ARG002
        x: NDArray[np.float64],  # noqa: ARG002
        function_id: int,  # noqa: ARG002
    ) -> None:
        """Implement the Hessian evaluation.

        Args:
            result:      Output buffer.
            x:           The argument.
            function_id: Index of the output.
        """
        msg = f"Hessian is not implemented by `{self.name}`"
        raise NotImplementedError(msg)


class FiniteDifferenceGradient(DifferentiableFunction):
    """Wrap a function, approximating its gradients by finite differences.

    Two rules are supported: `"simple"` uses a forward difference, and
    `"five-points"` uses the five-point central stencil.
    """

    kind = "finite difference gradient"

    def __init__(
        self,
        function: SharedRef[Function],
        epsilon: float = FINITE_DIFFERENCE_EPSILON,
        rule: FiniteDifferenceRule = "simple",
    ) -> None:
        """Initialize the wrapper.

        Args:
            function: Reference to the wrapped function.
            epsilon:  Step size of the finite differences.
            rule:     The finite difference rule.
        """
        wrapped = function.get()
        super().__init__(wrapped.input_size, wrapped.output_size, wrapped.name)
        if epsilon <= 0.0:
            msg = f"finite difference step must be positive, got: {epsilon}"
            raise ValueError(msg)
        if rule not in {"simple", "five-points"}:
            msg = f"unknown finite difference rule: {rule}"
            raise ValueError(msg)
        self._function = function
        self._epsilon = epsilon
        self._rule = rule

    def impl_compute(
        self, result: NDArray[np.float64], x: NDArray[np.float64]
    ) -> None:
        self._function.get().compute(result, x)

    def impl_gradient(
        self, result: NDArray[np.float64], x: NDArray[np.float64], function_id: int
    ) -> None:
        function = self._function.get()
        eps = self._epsilon
        perturbed = np.array(x, dtype=np.float64)
        if self._rule == "simple":
            base = function(x)[function_id]
            for idx in range(self.input_size):
                perturbed[idx] = x[idx] + eps
                result[idx] = (function(perturbed)[function_id] - base) / eps
                perturbed[idx] = x[idx]
            return
        for idx in range(self.input_size):
            values = []
            for step in (2.0, 1.0, -1.0, -2.0):
                perturbed[idx] = x[idx] + step * eps
                values.append(function(perturbed)[function_id])
            perturbed[idx] = x[idx]
            result[idx] = (
                -values[0] + 8.0 * values[1] - 8.0 * values[2] + values[3]
            ) / (12.0 * eps)

    def release(self) -> None:
        self._function.reset()

    def __str__(self) -> str:
        return f"{super().__str__()} [{self._rule}, epsilon: {self._epsilon:g}]"


class FunctionPool(DifferentiableFunction):
    """Stack several differentiable functions into one function.

    All member functions share the same input size; the output of the pool
    is the concatenation of the member outputs. Before the members are
    evaluated, a coordinating function is evaluated at the same argument, so
    that it can compute data shared by the members: its `compute` method runs
    before a function evaluation, and its Jacobian (or `compute`, if it is not
    differentiable) before gradient and Jacobian evaluations.
    """

    kind = "function pool"

    def __init__(
        self,
        callback: SharedRef[Function],
        functions: list[SharedRef[DifferentiableFunction]],
        name: str = "",
    ) -> None:
        """Initialize the pool.

        Args:
            callback:  Reference to the coordinating function.
            functions: References to the member functions.
            name:      Name of the pool.
        """
        if not functions:
            msg = "a function pool needs at least one function"
            raise ValueError(msg)
        input_sizes = {ref.get().input_size for ref in functions}
        if len(input_sizes) != 1:
            msg = f"functions in a pool must have the same input size: {input_sizes}"
            raise ValueError(msg)
        output_sizes = [ref.get().output_size for ref in functions]
        super().__init__(input_sizes.pop(), sum(output_sizes), name)
        self._callback = callback
        self._functions = functions
        self._offsets = np.cumsum([0, *output_sizes])

    @property
    def functions(self) -> tuple[DifferentiableFunction, ...]:
        """Return the member functions."""
        return tuple(ref.get() for ref in self._functions)

    def impl_compute(
        self, result: NDArray[np.float64], x: NDArray[np.float64]
    ) -> None:
        self._callback.get()(x)
        for ref, start, stop in self._segments():
            ref.get().compute(result[start:stop], x)

    def impl_gradient(
        self, result: NDArray[np.float64], x: NDArray[np.float64], function_id: int
    ) -> None:
        self._prepare_derivatives(x)
        for ref, start, stop in self._segments():
            if start <= function_id < stop:
                ref.get().compute_gradient(result, x, function_id - start)
                return
        msg = f"function index out of range: {function_id}"
        raise IndexError(msg)

    def impl_jacobian(
        self, result: NDArray[np.float64], x: NDArray[np.float64]
    ) -> None:
        self._prepare_derivatives(x)
        for ref, start, stop in self._segments():
            ref.get().compute_jacobian(result[start:stop, :], x)

    def release(self) -> None:
        self._callback.reset()
        for ref in self._functions:
            ref.reset()

    def _prepare_derivatives(self, x: NDArray[np.float64]) -> None:
        callback = self._callback.get()
        if isinstance(callback, DifferentiableFunction):
            callback.jacobian(x)
        else:
            callback(x)

    def _segments(self) -> list[tuple[SharedRef[DifferentiableFunction], int, int]]:
        return [
            (ref, int(start), int(stop))
            for ref, start, stop in zip(
                self._functions, self._offsets[:-1], self._offsets[1:], strict=True
            )
        ]

    def __str__(self) -> str:
        members = "\n".join(f"  {ref.get()}" for ref in self._functions)
        return f"{super().__str__()}\n{members}"
