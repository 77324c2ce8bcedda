"""Enumerations used within the `optbridge` library."""

from enum import IntEnum, StrEnum


class TypeTag(StrEnum):
    """Enumerates the type tags of objects crossing the boundary.

    Every engine object handed to host code is wrapped in an opaque
    [`Handle`][optbridge.bridge.Handle] carrying one of these tags. The tag is
    checked on every unwrap, so a handle of one type is never interpreted as
    an object of another type, even when both objects would accept the same
    operations.

    The string values are the names returned to host code by
    [`minimum`][optbridge.wrap.minimum] and
    [`create_optimization_logger`][optbridge.wrap.create_optimization_logger].
    """

    FUNCTION = "optbridge.function"
    "Functions of all kinds, including pools and finite-difference wrappers."

    PROBLEM = "optbridge.problem"
    "Optimization problems."

    SOLVER = "optbridge.solver"
    "Solver factories, holding the solver created by a plugin."

    SOLVER_STATE = "optbridge.solver_state"
    "Solver states, only valid while an iteration callback runs."

    OPTIMIZATION_LOGGER = "optbridge.optimization_logger"
    "Optimization loggers writing an iteration journal."

    RESULT = "optbridge.result"
    "Successful solver outcomes."

    RESULT_WITH_WARNINGS = "optbridge.result_with_warnings"
    "Successful solver outcomes that produced warnings."

    SOLVER_ERROR = "optbridge.solver_error"
    "Failed solver outcomes."

    MULTIPLEXER = "optbridge.callback_multiplexer"
    "Iteration callback multiplexers."

    SOLVER_CALLBACK = "optbridge.solver_callback"
    "Iteration callbacks forwarding to a host callable."


class ValueKind(IntEnum):
    """Enumerates the kinds of a tagged parameter value."""

    REAL = 1
    "Floating point value."

    INTEGER = 2
    "Integer value."

    TEXT = 3
    "String value."

    BOOLEAN = 4
    "Boolean flag, only allowed in solver state parameters."

    VECTOR = 5
    "One-dimensional float vector, only allowed in solver state parameters."


class OutcomeKind(IntEnum):
    """Enumerates the possible outcomes of a solver.

    A solver starts in the `NO_SOLUTION` state and moves to one of the other
    states when its `solve` method has run.
    """

    NO_SOLUTION = 0
    "The solver has not been run yet."

    VALUE = 1
    "The solver found a solution."

    VALUE_WITH_WARNINGS = 2
    "The solver found a solution, but emitted warnings."

    ERROR = 3
    "The solver failed."
