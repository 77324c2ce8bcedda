"""Exceptions raised within the `optbridge` library.

All errors detected by the boundary layer derive from
[`BridgeError`][optbridge.exceptions.BridgeError]. Most of them also derive
from the built-in exception that describes the same kind of problem, so host
code catching `TypeError` or `ValueError` keeps working.
"""

from __future__ import annotations

from dataclasses import dataclass


class BridgeError(Exception):
    """Base class of all errors raised by the boundary layer."""


class TypeMismatchError(BridgeError, TypeError):
    """Raised when a handle of the wrong type, or no handle at all, is passed.

    Unwrapping never falls back to reinterpreting an object: if the tag of
    the handle does not match the expected tag, this error is raised.
    """


class NotCallableError(BridgeError, TypeError):
    """Raised when a value that cannot be invoked is bound as a callback."""


class CallbackNotSetError(BridgeError, TypeError):
    """Raised when an evaluation is requested before a callback was bound."""


class ShapeMismatchError(BridgeError, ValueError):
    """Raised when buffer or array dimensions disagree with declared sizes."""


class ConversionError(BridgeError, TypeError):
    """Raised when a host value cannot be converted to a tagged value."""


class ConstructionFailure(BridgeError):  # noqa: N818
    """Records the failure to construct an engine object.

    This error is not raised to host code by solver construction: the host
    receives `None` instead, and this error is stored as the last error so
    that the reason can be retrieved.
    """


class NoSolutionError(BridgeError):
    """Raised when the outcome of a solver is requested before solving."""


@dataclass(frozen=True, slots=True)
class StackFrame:
    """A single frame of the host call stack captured after a failure.

    Attributes:
        filename: Source file of the frame.
        lineno:   Line number in the source file.
        name:     Name of the function executing in the frame.
    """

    filename: str
    lineno: int | None
    name: str


class HostCallbackError(BridgeError, RuntimeError):
    """Raised when a host callable signals a failure during an evaluation.

    The failure aborts the evaluation in progress. When raised during a solve,
    it propagates through the solver, which cannot safely continue after a
    broken evaluation.

    Attributes:
        message: The message of the error signaled by the host callable.
        frames:  The captured host call stack, outermost frame first.
    """

    def __init__(self, message: str, frames: tuple[StackFrame, ...] = ()) -> None:
        """Initialize the exception.

        Args:
            message: The error message reported by the host callable.
            frames:  The captured call stack, may be empty.
        """
        self.message = message
        self.frames = frames
        super().__init__(self._format())

    def _format(self) -> str:
        text = f"Error occurred in Python code: {self.message}"
        if self.frames:
            trace = "".join(
                f"    {frame.filename}({frame.lineno}): {frame.name}\n"
                for frame in self.frames
            )
            text = f"{text}\nPython stack trace:\n{trace}"
        return text


class ParameterSkippedWarning(UserWarning):
    """Issued when a malformed entry is skipped while setting parameters.

    Bulk parameter updates skip entries that are not `(description, value)`
    pairs, or whose value cannot be converted, instead of aborting the whole
    update. This warning makes such configuration errors visible.
    """
