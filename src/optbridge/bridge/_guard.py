"""Execution token and error state shared by all boundary entry points."""

from __future__ import annotations

import threading
import traceback
from functools import wraps
from typing import TYPE_CHECKING, Any, Final, ParamSpec, TypeVar

from optbridge.exceptions import StackFrame

if TYPE_CHECKING:
    from collections.abc import Callable

P = ParamSpec("P")
R = TypeVar("R")

# Only one thread may run inside the bridge at a time. The lock is re-entrant,
# so host callables invoked during an evaluation may call back into the
# bridge on the same thread.
_EXECUTION_TOKEN: Final = threading.RLock()


class _ErrorState:
    def __init__(self) -> None:
        self.last_error: Exception | None = None
        self.pending: tuple[str, tuple[StackFrame, ...]] | None = None
        self.depth = 0


_STATE: Final = _ErrorState()


def entry_point(func: Callable[P, R]) -> Callable[P, R]:
    """Decorate a function that can be called from host code.

    The decorated function runs while holding the execution token. Any
    exception leaving it is recorded as the last error before it propagates,
    so that the failure can be retrieved with
    [`get_last_error`][optbridge.bridge.get_last_error].

    Args:
        func: The function to decorate.

    Returns:
        The decorated function.
    """

    @wraps(func)
    def _wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        with _EXECUTION_TOKEN:
            _STATE.depth += 1
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                _STATE.last_error = exc
                raise
            finally:
                _STATE.depth -= 1

    return _wrapper


def record_error(error: Exception) -> None:
    """Store an error as the last error without raising it.

    Args:
        error: The error to record.
    """
    with _EXECUTION_TOKEN:
        _STATE.last_error = error


def get_last_error() -> Exception | None:
    """Return the error recorded by the last failing boundary call.

    Returns:
        The last recorded error, or `None` if no failure was recorded.
    """
    with _EXECUTION_TOKEN:
        return _STATE.last_error


def clear_error() -> None:
    """Clear the recorded error and any pending callback error."""
    with _EXECUTION_TOKEN:
        _STATE.last_error = None
        _STATE.pending = None


def entry_depth() -> int:
    """Return the number of boundary calls active on the current thread.

    Returns:
        The nesting depth, zero when called from outside the bridge.
    """
    with _EXECUTION_TOKEN:
        return _STATE.depth


def set_callback_error(message: str | BaseException) -> None:
    """Signal a failure from inside a host callable without raising.

    A host callable invoked during an evaluation may call this function and
    return normally. The dispatcher checks the pending error after every call
    and aborts the evaluation with a
    [`HostCallbackError`][optbridge.exceptions.HostCallbackError].

    Args:
        message: The error message, or an exception whose text is used.
    """
    frames = frames_from_stack(traceback.extract_stack()[:-1])
    if isinstance(message, BaseException) and message.__traceback__ is not None:
        frames = frames_from_stack(traceback.extract_tb(message.__traceback__))
    with _EXECUTION_TOKEN:
        _STATE.pending = (str(message), frames)


def fetch_callback_error() -> tuple[str, tuple[StackFrame, ...]] | None:
    """Fetch and clear the pending callback error.

    Returns:
        The pending message and stack frames, or `None`.
    """
    with _EXECUTION_TOKEN:
        pending, _STATE.pending = _STATE.pending, None
        return pending


def swap_callback_error(
    pending: tuple[str, tuple[StackFrame, ...]] | None,
) -> tuple[str, tuple[StackFrame, ...]] | None:
    """Replace the pending callback error.

    Args:
        pending: The new pending error, or `None` to clear it.

    Returns:
        The previously pending error, or `None`.
    """
    with _EXECUTION_TOKEN:
        previous, _STATE.pending = _STATE.pending, pending
        return previous


def frames_from_stack(stack: Any) -> tuple[StackFrame, ...]:  # noqa: ANN401
    """Convert a `traceback` stack summary into stack frames.

    Args:
        stack: A stack summary as produced by the `traceback` module.

    Returns:
        The converted frames.
    """
    return tuple(
        StackFrame(filename=item.filename, lineno=item.lineno, name=item.name)
        for item in stack
    )
