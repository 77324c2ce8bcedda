"""This module implements the SciPy solver plugin."""

from __future__ import annotations

import logging
import warnings
from functools import partial
from typing import TYPE_CHECKING, Any, Callable, Final

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import BFGS, Bounds, NonlinearConstraint, minimize

from optbridge.config import SolverConfig
from optbridge.config.options import OptionsSchemaModel
from optbridge.engine import (
    Boolean,
    Integer,
    Parameter,
    Real,
    ResultWithWarnings,
    Solver,
    SolverError,
    SolverState,
    Text,
    result_from,
)

from .base import SolverPlugin

if TYPE_CHECKING:
    from optbridge.bridge import SharedRef
    from optbridge.engine import DifferentiableFunction, Problem, SolverOutcome

logger = logging.getLogger(__name__)

_SUPPORTED_METHODS: Final[set[str]] = {
    name.lower() for name in ("SLSQP", "trust-constr", "L-BFGS-B", "TNC", "COBYLA")
}

_DEFAULT_METHOD: Final = "slsqp"
_DEFAULT_MAX_ITERATIONS: Final = 100
_DEFAULT_TOLERANCE: Final = 1e-9

# Categorize the methods by the types of constraint they support.
_CONSTRAINT_SUPPORT_NONLINEAR: Final = {"slsqp", "trust-constr", "cobyla"}
_CONSTRAINT_SUPPORT_NONLINEAR_EQ: Final = {"slsqp", "trust-constr"}

# These methods do not use a gradient:
_NO_GRADIENT: Final = {"cobyla"}

_ConstraintType = str | Callable[..., float] | Callable[..., NDArray[np.float64]]


class _StopSolve(Exception):  # noqa: N818
    pass


class SciPySolver(Solver):
    """SciPy solver backend for optbridge.

    This class solves problems with algorithms from SciPy's
    [`scipy.optimize`](https://docs.scipy.org/doc/scipy/reference/optimize.html)
    module. The algorithm is selected by the `method` parameter of the
    solver, SLSQP by default. The `max_iterations` and `tolerance` parameters
    set the iteration limit and the convergence tolerance; any other solver
    parameter is passed as an option to the algorithm, after validation
    against the options supported by the method:

    | Method       | Constraints          | Options                                 |
    | ------------ | -------------------- | --------------------------------------- |
    | SLSQP        | bounds, eq, ineq     | disp, ftol, eps, finite_diff_rel_step    |
    | trust-constr | bounds, eq, ineq     | gtol, xtol, barrier_tol, ...            |
    | L-BFGS-B     | bounds               | ftol, gtol, eps, maxcor, maxls, ...     |
    | TNC          | bounds               | ftol, xtol, gtol, eps, accuracy, ...    |
    | COBYLA       | bounds, ineq         | rhobeg, catol, disp                     |

    At each iteration the solver state is updated and passed to the iteration
    callback. The state holds an `iteration` counter and a boolean `stop`
    parameter; a callback setting `stop` to `True` ends the solve, producing a
    result with a warning.
    """

    name = "scipy"

    def __init__(self, problem: SharedRef[Problem], method: str) -> None:
        """Initialize the solver.

        Args:
            problem: Reference to the problem to solve.
            method:  The SciPy method.

        Raises:
            NotImplementedError: If the method is not supported.
            ValueError:          If the cost function is not scalar.
        """
        super().__init__(problem)
        self._check_method(method)
        if self.problem.function.output_size != 1:
            msg = (
                "the cost function must have an output size of 1, got: "
                f"{self.problem.function.output_size}"
            )
            raise ValueError(msg)
        self.parameters.update(
            {
                "method": Parameter("optimization method", Text(method)),
                "max_iterations": Parameter(
                    "maximum number of iterations", Integer(_DEFAULT_MAX_ITERATIONS)
                ),
                "tolerance": Parameter(
                    "convergence tolerance", Real(_DEFAULT_TOLERANCE)
                ),
            }
        )
        self._method = method
        self._state: SolverState | None = None
        self._iterations = 0
        self._cache: dict[int, tuple[NDArray[np.float64], NDArray[np.float64]]] = {}

    def impl_solve(self) -> SolverOutcome:
        """Run the SciPy algorithm.

        See the [optbridge.engine.Solver][] abstract base class.

        # noqa
        """
        config = SolverConfig.from_parameters(self.parameters)
        method = (config.method or self._method).lower()
        self._check_method(method)
        SciPySolverPlugin.validate_options(method, config.options)
        problem = self.problem

        x0 = self._starting_point(problem)
        self._cache.clear()
        self._iterations = 0
        self._state = SolverState(x0.copy())
        self._state.parameters["stop"] = Parameter(
            "stop the solver after this iteration", Boolean(False)  # noqa: FBT003
        )

        options = dict(config.options)
        if config.max_iterations is not None:
            options["maxfun" if method == "tnc" else "maxiter"] = config.max_iterations

        stopped = False
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                result = minimize(
                    fun=self._function,
                    x0=x0,
                    method=method,
                    jac=False if method in _NO_GRADIENT else self._gradient,
                    hess=BFGS() if method == "trust-constr" else None,
                    bounds=self._initialize_bounds(problem),
                    constraints=self._initialize_constraints(problem, method),
                    tol=config.tolerance,
                    callback=self._iteration,
                    options=options if options else None,
                )
            except _StopSolve:
                stopped = True
        messages = [str(item.message) for item in caught]

        if stopped:
            logger.info("solver stopped by an iteration callback")
            return ResultWithWarnings.from_result(
                result_from(problem, self._state.x, None),
                [*messages, "solver stopped by an iteration callback"],
            )
        if not result.success:
            logger.warning("solver failed: %s", result.message)
            return SolverError(
                message=str(result.message),
                last_state=result_from(problem, result.x, None),
            )
        outcome = result_from(problem, result.x, self._multipliers(problem, result))
        if messages:
            return ResultWithWarnings.from_result(outcome, messages)
        return outcome

    def _check_method(self, method: str) -> None:
        if method.lower() not in _SUPPORTED_METHODS:
            msg = f"SciPy solver algorithm {method} is not supported"
            raise NotImplementedError(msg)

    @staticmethod
    def _starting_point(problem: Problem) -> NDArray[np.float64]:
        if problem.starting_point is not None:
            return np.array(problem.starting_point, dtype=np.float64)
        lower, upper = problem.argument_bounds[:, 0], problem.argument_bounds[:, 1]
        return np.clip(np.zeros(problem.input_size, dtype=np.float64), lower, upper)

    @staticmethod
    def _initialize_bounds(problem: Problem) -> Bounds | None:
        lower, upper = problem.argument_bounds[:, 0], problem.argument_bounds[:, 1]
        if np.isfinite(lower).any() or np.isfinite(upper).any():
            return Bounds(lower, upper)
        return None

    def _initialize_constraints(
        self, problem: Problem, method: str
    ) -> list[dict[str, _ConstraintType]] | list[NonlinearConstraint]:
        if not problem.constraints:
            return []
        if method not in _CONSTRAINT_SUPPORT_NONLINEAR:
            msg = f"SciPy solver algorithm {method} does not support constraints"
            raise NotImplementedError(msg)
        if method == "trust-constr":
            return [
                NonlinearConstraint(
                    fun=partial(self._constraint_values, index),
                    jac=function.jacobian,
                    lb=bounds[:, 0],
                    ub=bounds[:, 1],
                )
                for index, (function, bounds) in enumerate(
                    zip(problem.constraints, problem.bounds, strict=True)
                )
            ]
        return self._initialize_constraints_dict(problem, method)

    def _initialize_constraints_dict(
        self, problem: Problem, method: str
    ) -> list[dict[str, _ConstraintType]]:
        def _constraint_entry(
            type_: str, index: int, output: int, bound: float, sign: float
        ) -> dict[str, _ConstraintType]:
            fun = partial(self._constraint_fun, index, output, bound, sign)
            if method in _NO_GRADIENT:
                return {"type": type_, "fun": fun}
            jac = partial(self._constraint_jac, index, output, sign)
            return {"type": type_, "fun": fun, "jac": jac}

        entries = []
        for index, bounds in enumerate(problem.bounds):
            for output, (lower, upper) in enumerate(bounds):
                if lower == upper and method in _CONSTRAINT_SUPPORT_NONLINEAR_EQ:
                    entries.append(_constraint_entry("eq", index, output, lower, 1.0))
                    continue
                if np.isfinite(lower):
                    entries.append(
                        _constraint_entry("ineq", index, output, lower, 1.0)
                    )
                if np.isfinite(upper):
                    entries.append(
                        _constraint_entry("ineq", index, output, upper, -1.0)
                    )
        return entries

    def _constraint_values(
        self, index: int, variables: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        cached = self._cache.get(index)
        if cached is None or not np.array_equal(cached[0], variables):
            function = self.problem.constraints[index]
            cached = (np.array(variables, dtype=np.float64), function(variables))
            self._cache[index] = cached
        return cached[1]

    def _constraint_fun(
        self,
        index: int,
        output: int,
        bound: float,
        sign: float,
        variables: NDArray[np.float64],
    ) -> float:
        return sign * float(self._constraint_values(index, variables)[output] - bound)

    def _constraint_jac(
        self, index: int, output: int, sign: float, variables: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        function: DifferentiableFunction = self.problem.constraints[index]
        return sign * function.gradient(variables, output)

    def _function(self, variables: NDArray[np.float64]) -> float:
        # The cost is cached under index -1, next to the constraints.
        cached = self._cache.get(-1)
        if cached is None or not np.array_equal(cached[0], variables):
            cached = (
                np.array(variables, dtype=np.float64),
                self.problem.function(variables),
            )
            self._cache[-1] = cached
        return float(cached[1][0])

    def _gradient(self, variables: NDArray[np.float64]) -> NDArray[np.float64]:
        return self.problem.function.gradient(variables, 0)

    def _iteration(self, variables: NDArray[np.float64], *_: Any) -> None:  # noqa: ANN401
        assert self._state is not None
        self._iterations += 1
        state = self._state
        state.x = np.array(variables, dtype=np.float64)
        state.cost = self._function(state.x)
        state.constraint_violation = self.problem.constraint_violation(state.x)
        state.parameters["iteration"] = Parameter(
            "iteration number", Integer(self._iterations)
        )
        callback = self.iteration_callback
        if callback is not None:
            callback(self.problem, state)
        stop = state.parameters.get("stop")
        if stop is not None and isinstance(stop.value, Boolean) and stop.value.value:
            raise _StopSolve

    @staticmethod
    def _multipliers(problem: Problem, result: Any) -> NDArray[np.float64] | None:  # noqa: ANN401
        multipliers = getattr(result, "v", None)
        if multipliers is None or not problem.constraints:
            return None
        return np.concatenate(
            [np.atleast_1d(item) for item in multipliers[: len(problem.constraints)]]
        )


class SciPySolverPlugin(SolverPlugin):
    """The SciPy solver plugin class."""

    @classmethod
    def create(cls, method: str, problem: SharedRef[Problem]) -> SciPySolver:
        """Initialize the solver plugin.

        See the [optbridge.plugins.solver.base.SolverPlugin][] abstract base class.

        # noqa
        """
        _, _, method = method.lower().rpartition("/")
        if method in {"default", "scipy"}:
            method = _DEFAULT_METHOD
        return SciPySolver(problem, method)

    @classmethod
    def is_supported(cls, method: str) -> bool:
        """Check if a method is supported.

        See the [optbridge.plugins.base.Plugin][] abstract base class.

        # noqa
        """
        return method.lower() in (_SUPPORTED_METHODS | {"default"})

    @classmethod
    def validate_options(cls, method: str, options: dict[str, Any] | None) -> None:
        """Validate the options of a given method.

        Args:
            method:  The method.
            options: The options to validate.

        Raises:
            ValueError: If an option is unknown or has the wrong type.
        """
        if options:
            OptionsSchemaModel.model_validate(_OPTIONS_SCHEMA).get_options_model(
                method
            ).model_validate(options)


_OPTIONS_SCHEMA: dict[str, Any] = {
    "methods": {
        "SLSQP": {
            "options": {
                "disp": bool,
                "ftol": float,
                "eps": float,
                "finite_diff_rel_step": float,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-slsqp.html",
        },
        "trust-constr": {
            "options": {
                "disp": bool,
                "verbose": int,
                "gtol": float,
                "xtol": float,
                "barrier_tol": float,
                "initial_tr_radius": float,
                "initial_constr_penalty": float,
                "initial_barrier_parameter": float,
                "initial_barrier_tolerance": float,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-trustconstr.html",
        },
        "L-BFGS-B": {
            "options": {
                "maxcor": int,
                "ftol": float,
                "gtol": float,
                "eps": float,
                "maxfun": int,
                "maxls": int,
                "finite_diff_rel_step": float,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-lbfgsb.html",
        },
        "TNC": {
            "options": {
                "disp": bool,
                "eps": float,
                "offset": float,
                "maxCGit": int,
                "eta": float,
                "stepmx": float,
                "accuracy": float,
                "minfev": float,
                "ftol": float,
                "xtol": float,
                "gtol": float,
                "rescale": float,
                "finite_diff_rel_step": float,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-tnc.html",
        },
        "COBYLA": {
            "options": {
                "disp": bool,
                "rhobeg": float,
                "catol": float,
            },
            "url": "https://docs.scipy.org/doc/scipy/reference/optimize.minimize-cobyla.html",
        },
    },
}
