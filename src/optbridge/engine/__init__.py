"""The optimization engine driven through the boundary layer.

The engine implements functions, problems, solvers and their outcomes. Host
code does not use these objects directly: it refers to them through opaque
handles created by [`optbridge.wrap`][], and supplies its own evaluation code
as callables bound to engine functions.

Engine data structures that keep other objects alive, such as the
constraint list of a [`Problem`][optbridge.engine.Problem] or the member list
of a [`FunctionPool`][optbridge.engine.FunctionPool], store them as
[`SharedRef`][optbridge.bridge.SharedRef] references.
"""

from ._callbacks import IterationCallback, Multiplexer, OptimizationLogger
from ._functions import (
    FINITE_DIFFERENCE_EPSILON,
    DifferentiableFunction,
    FiniteDifferenceGradient,
    FiniteDifferenceRule,
    Function,
    FunctionPool,
    TwiceDifferentiableFunction,
)
from ._parameters import (
    Boolean,
    Integer,
    Parameter,
    Real,
    TaggedValue,
    Text,
    Vector,
)
from ._problem import Problem
from ._solver import (
    NoSolution,
    Result,
    ResultWithWarnings,
    Solver,
    SolverError,
    SolverFactory,
    SolverOutcome,
    SolverState,
    result_from,
)

__all__ = [
    "FINITE_DIFFERENCE_EPSILON",
    "Boolean",
    "DifferentiableFunction",
    "FiniteDifferenceGradient",
    "FiniteDifferenceRule",
    "Function",
    "FunctionPool",
    "Integer",
    "IterationCallback",
    "Multiplexer",
    "NoSolution",
    "OptimizationLogger",
    "Parameter",
    "Problem",
    "Real",
    "Result",
    "ResultWithWarnings",
    "Solver",
    "SolverError",
    "SolverFactory",
    "SolverOutcome",
    "SolverState",
    "TaggedValue",
    "Text",
    "TwiceDifferentiableFunction",
    "Vector",
    "result_from",
]
