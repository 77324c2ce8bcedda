"""Invocation of host callables from engine evaluation call sites.

Engine functions created from host code evaluate themselves by calling host
callables bound to them. Each callable is held in a
[`CallbackSlot`][optbridge.bridge.CallbackSlot], which owns a shared
reference to it and implements the invocation protocol:

1. An unbound slot fails with a
   [`CallbackNotSetError`][optbridge.exceptions.CallbackNotSetError].
2. A bound value that cannot be invoked fails with a
   [`NotCallableError`][optbridge.exceptions.NotCallableError].
3. The engine buffers are passed as NumPy views, never copied. The argument
   view is read-only.
4. The callable is invoked with the views as positional arguments.
5. The pending-error indicator is checked after the call: a callable may
   signal failure by raising, or by calling
   [`set_callback_error`][optbridge.bridge.set_callback_error] and returning
   normally. Either way a
   [`HostCallbackError`][optbridge.exceptions.HostCallbackError] aborts the
   evaluation.
6. The views are released on every exit path.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from optbridge.engine import (
    DifferentiableFunction,
    FiniteDifferenceGradient,
    Function,
    IterationCallback,
    TwiceDifferentiableFunction,
)
from optbridge.enums import TypeTag
from optbridge.exceptions import (
    CallbackNotSetError,
    HostCallbackError,
    NotCallableError,
)

from ._guard import fetch_callback_error, set_callback_error, swap_callback_error
from ._ownership import acquire, borrow
from ._registry import REGISTRY

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    import numpy as np
    from numpy.typing import NDArray

    from optbridge.engine import Problem, SolverState

    from ._ownership import SharedRef

logger = logging.getLogger(__name__)


class CallbackSlot:
    """Hold a host callable bound to an engine object.

    The slot is either unbound or bound to one callable. Binding acquires a
    shared reference to the new callable before the reference to the old one
    is released; binding the callable that is already bound has no effect.
    """

    __slots__ = ("_name", "_ref")

    def __init__(self, name: str) -> None:
        """Initialize an unbound slot.

        Args:
            name: Name of the slot, used in error messages.
        """
        self._name = name
        self._ref: SharedRef[Any] | None = None

    @property
    def name(self) -> str:
        """Return the name of the slot."""
        return self._name

    @property
    def bound(self) -> bool:
        """Return whether a callable is bound."""
        return self._ref is not None

    @property
    def target(self) -> Any:  # noqa: ANN401
        """Return the bound callable, or `None`."""
        return None if self._ref is None else self._ref.get()

    def bind(self, func: Any) -> None:  # noqa: ANN401
        """Bind a callable to the slot.

        Args:
            func: The host callable.
        """
        if self._ref is not None and self._ref.get() is func:
            return
        ref = acquire(func, func)
        old, self._ref = self._ref, ref
        if old is not None:
            old.reset()
        logger.debug("bound %s callback %r", self._name, func)

    def release(self) -> None:
        """Release the bound callable, if any."""
        ref, self._ref = self._ref, None
        if ref is not None:
            ref.reset()

    def invoke(self, *args: Any) -> None:  # noqa: ANN401
        """Invoke the bound callable.

        Args:
            args: The positional arguments of the call.

        Raises:
            CallbackNotSetError: If no callable is bound.
            NotCallableError:    If the bound value cannot be invoked.
            HostCallbackError:   If the callable signaled a failure.
        """
        if self._ref is None:
            msg = f"{self._name} callback not set"
            raise CallbackNotSetError(msg)
        func = self._ref.get()
        if not callable(func):
            msg = f"{self._name} callback is not callable"
            raise NotCallableError(msg)
        cause: Exception | None = None
        # Errors pending from outside this call belong to an enclosing callable.
        outer = swap_callback_error(None)
        try:
            try:
                func(*args)
            except Exception as exc:  # noqa: BLE001
                cause = exc
                set_callback_error(exc)
            pending = fetch_callback_error()
        finally:
            swap_callback_error(outer)
        if pending is not None:
            message, frames = pending
            raise HostCallbackError(message, frames) from cause


@contextmanager
def _buffer_views(
    result: NDArray[np.float64], x: NDArray[np.float64]
) -> Iterator[tuple[NDArray[np.float64], NDArray[np.float64]]]:
    result_view = result.view()
    x_view = x.view()
    x_view.flags.writeable = False
    try:
        yield result_view, x_view
    finally:
        result_view.flags.writeable = False


class CallbackFunction(Function):
    """A function evaluated by a host callable.

    The compute callable is called as `compute(result, x)` and must write
    the output into `result`.
    """

    def __init__(self, input_size: int, output_size: int, name: str = "") -> None:
        super().__init__(input_size, output_size, name)
        self.compute_callback = CallbackSlot("compute")

    def impl_compute(
        self, result: NDArray[np.float64], x: NDArray[np.float64]
    ) -> None:
        with _buffer_views(result, x) as (result_view, x_view):
            self.compute_callback.invoke(result_view, x_view)

    def release(self) -> None:
        self.compute_callback.release()


class CallbackDifferentiableFunction(DifferentiableFunction):
    """A differentiable function evaluated by host callables.

    The callables are called as `compute(result, x)`,
    `gradient(result, x, function_id)` and `jacobian(result, x)`. The
    Jacobian callable is optional: if it is not bound, the Jacobian is
    assembled from the gradients, or approximated by finite differences if
    no gradient callable is bound either.
    """

    def __init__(self, input_size: int, output_size: int, name: str = "") -> None:
        super().__init__(input_size, output_size, name)
        self.compute_callback = CallbackSlot("compute")
        self.gradient_callback = CallbackSlot("gradient")
        self.jacobian_callback = CallbackSlot("jacobian")

    def impl_compute(
        self, result: NDArray[np.float64], x: NDArray[np.float64]
    ) -> None:
        with _buffer_views(result, x) as (result_view, x_view):
            self.compute_callback.invoke(result_view, x_view)

    def impl_gradient(
        self, result: NDArray[np.float64], x: NDArray[np.float64], function_id: int
    ) -> None:
        with _buffer_views(result, x) as (result_view, x_view):
            self.gradient_callback.invoke(result_view, x_view, function_id)

    def impl_jacobian(
        self, result: NDArray[np.float64], x: NDArray[np.float64]
    ) -> None:
        if self.jacobian_callback.bound:
            with _buffer_views(result, x) as (result_view, x_view):
                self.jacobian_callback.invoke(result_view, x_view)
        elif self.gradient_callback.bound:
            super().impl_jacobian(result, x)
        else:
            ref = acquire(self, None)
            try:
                FiniteDifferenceGradient(ref).impl_jacobian(result, x)
            finally:
                ref.reset()

    def release(self) -> None:
        self.compute_callback.release()
        self.gradient_callback.release()
        self.jacobian_callback.release()


class CallbackTwiceDifferentiableFunction(
    CallbackDifferentiableFunction, TwiceDifferentiableFunction
):
    """A twice differentiable function evaluated by host callables."""


class SolverCallback(IterationCallback):
    """An iteration callback forwarding to a host callable.

    The callable is called as `callback(problem, state)`, where `problem` is
    the handle of the problem the callback was created for, and `state` is a
    handle to the solver state. The state handle is only valid during the
    call: it is released when the callable returns.
    """

    def __init__(self, problem: SharedRef[Problem]) -> None:
        """Initialize the callback.

        Args:
            problem: Reference to the problem, owned by its handle.
        """
        self._problem = problem
        self.callback = CallbackSlot("solver")

    @property
    def problem_handle(self) -> Any:  # noqa: ANN401
        """Return the handle of the problem."""
        return self._problem.owner

    def __call__(self, problem: Problem, state: SolverState) -> None:  # noqa: ARG002
        with borrow(state) as borrowed:
            state_handle = REGISTRY.wrap(borrowed, TypeTag.SOLVER_STATE)
            try:
                self.callback.invoke(self._problem.owner, state_handle)
            finally:
                REGISTRY.release(state_handle)

    def release(self) -> None:
        self.callback.release()
        self._problem.reset()


def bind(slot: CallbackSlot, func: Callable[..., Any]) -> None:
    """Bind a callable to a slot, checking that it can be invoked.

    Args:
        slot: The slot.
        func: The host callable.

    Raises:
        NotCallableError: If `func` is not callable.
    """
    if not callable(func):
        msg = "2nd argument must be callable"
        raise NotCallableError(msg)
    slot.bind(func)
