"""Marshaling of solver outcomes into handles and structured records."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any, assert_never

from optbridge.engine import (
    NoSolution,
    Result,
    ResultWithWarnings,
    SolverError,
)
from optbridge.enums import TypeTag
from optbridge.exceptions import NoSolutionError

from ._registry import REGISTRY

if TYPE_CHECKING:
    from optbridge.engine import Solver

    from ._registry import Handle


def minimum(solver: Solver) -> tuple[str, Handle]:
    """Wrap the outcome of a solver in a handle.

    The outcome is copied, so that the handle stays valid when the solver
    runs again or is released.

    Args:
        solver: The solver.

    Returns:
        The tag name of the outcome and its handle.

    Raises:
        NoSolutionError: If the solver has not been run.
    """
    outcome = solver.minimum()
    match outcome:
        case ResultWithWarnings():
            tag = TypeTag.RESULT_WITH_WARNINGS
        case Result():
            tag = TypeTag.RESULT
        case SolverError():
            tag = TypeTag.SOLVER_ERROR
        case NoSolution():
            msg = "problem not yet solved"
            raise NoSolutionError(msg)
        case _:
            assert_never(outcome)
    return tag.value, REGISTRY.wrap(copy.deepcopy(outcome), tag)


def result_to_dict(result: Result) -> dict[str, Any]:
    """Convert a result to a structured record.

    The vectors of the record are views of the arrays stored in the result.

    Args:
        result: The result.

    Returns:
        A dictionary with the `inputSize`, `outputSize`, `x`, `value`,
        `constraints` and `lambda` entries.
    """
    return {
        "inputSize": result.input_size,
        "outputSize": result.output_size,
        "x": result.x.view(),
        "value": result.value.view(),
        "constraints": result.constraints.view(),
        "lambda": result.lambda_.view(),
    }


def result_with_warnings_to_dict(result: ResultWithWarnings) -> dict[str, Any]:
    """Convert a result with warnings to a structured record.

    Args:
        result: The result.

    Returns:
        The record of [`result_to_dict`][optbridge.bridge.result_to_dict],
        with an additional `warnings` entry.
    """
    return {**result_to_dict(result), "warnings": list(result.warnings)}


def solver_error_to_dict(error: SolverError) -> dict[str, Any]:
    """Convert a solver error to a structured record.

    Args:
        error: The solver error.

    Returns:
        A dictionary with an `error` entry, and a `lastState` entry holding
        the record of the last state, if known.
    """
    record: dict[str, Any] = {"error": error.message}
    if error.last_state is not None:
        record["lastState"] = result_to_dict(error.last_state)
    return record
