"""Drive a numerical optimization engine from Python code.

`optbridge` exposes functions, problems, solvers and results of an
optimization engine as opaque handles ([`optbridge.wrap`][]), and lets
Python callables compute the functions and observe the iterations of the
solvers. The [`optbridge.core`][] module wraps the handles in ordinary
classes.
"""

from .core import (
    DifferentiableFunction,
    FiniteDifferenceGradient,
    Function,
    FunctionPool,
    Multiplexer,
    OptimizationLogger,
    Problem,
    Result,
    ResultWithWarnings,
    Solver,
    SolverCallback,
    SolverError,
    SolverState,
    TwiceDifferentiableFunction,
)

__all__ = [
    "DifferentiableFunction",
    "FiniteDifferenceGradient",
    "Function",
    "FunctionPool",
    "Multiplexer",
    "OptimizationLogger",
    "Problem",
    "Result",
    "ResultWithWarnings",
    "Solver",
    "SolverCallback",
    "SolverError",
    "SolverState",
    "TwiceDifferentiableFunction",
]
