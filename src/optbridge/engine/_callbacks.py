"""Iteration callbacks: the multiplexer and the optimization logger."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
from tabulate import tabulate

if TYPE_CHECKING:
    from optbridge.bridge import SharedRef

    from ._problem import Problem
    from ._solver import Solver, SolverFactory, SolverState

logger = logging.getLogger(__name__)


class IterationCallback(ABC):
    """Abstract base class of callbacks called at each solver iteration."""

    @abstractmethod
    def __call__(self, problem: Problem, state: SolverState) -> None:
        """Handle an iteration.

        Args:
            problem: The problem being solved.
            state:   The state of the solver, may be modified.
        """

    def release(self) -> None:  # noqa: B027
        """Release the resources held by the callback."""


class Multiplexer(IterationCallback):
    """Forward iterations of a solver to a list of callbacks.

    On creation, the multiplexer installs itself as the iteration callback of
    the solver. It holds shared references to the solver factory and to each
    added callback, and calls the callbacks in the order they were added.
    """

    def __init__(self, factory: SharedRef[SolverFactory]) -> None:
        """Initialize the multiplexer.

        Args:
            factory: Reference to the factory holding the solver.
        """
        self._factory = factory
        self._callbacks: list[SharedRef[IterationCallback]] = []
        factory.get()().set_iteration_callback(self)

    @property
    def solver(self) -> Solver:
        """Return the solver."""
        return self._factory.get()()

    @property
    def callbacks(self) -> tuple[IterationCallback, ...]:
        """Return the callbacks."""
        return tuple(ref.get() for ref in self._callbacks)

    def add(self, callback: SharedRef[IterationCallback]) -> None:
        """Add a callback.

        Args:
            callback: Reference to the callback.
        """
        self._callbacks.append(callback)

    def remove(self, index: int) -> None:
        """Remove a callback.

        Args:
            index: The index of the callback.

        Raises:
            IndexError: If the index is out of range.
        """
        if not -len(self._callbacks) <= index < len(self._callbacks):
            msg = f"callback index out of range: {index}"
            raise IndexError(msg)
        self._callbacks.pop(index).reset()

    def index(self, callback: IterationCallback) -> int:
        """Return the index of a callback.

        Args:
            callback: The callback.

        Returns:
            The index of the first occurrence of the callback.

        Raises:
            ValueError: If the callback was not added.
        """
        for idx, ref in enumerate(self._callbacks):
            if ref.get() is callback:
                return idx
        msg = "callback not found in multiplexer"
        raise ValueError(msg)

    def __len__(self) -> int:
        return len(self._callbacks)

    def __call__(self, problem: Problem, state: SolverState) -> None:
        # Callbacks may be removed while iterating.
        for ref in list(self._callbacks):
            if ref:
                ref.get()(problem, state)

    def release(self) -> None:
        """Release all callbacks and detach from the solver."""
        for ref in self._callbacks:
            ref.reset()
        self._callbacks.clear()
        if self._factory:
            solver = self._factory.get()()
            if solver.iteration_callback is self:
                solver.set_iteration_callback(None)
            self._factory.reset()


class OptimizationLogger(IterationCallback):
    """Record the iterations of a solver in a directory.

    The problem, the solver and every iteration are collected in memory.
    They are written when the logger is closed: `journal.log` contains the
    problem, the solver and a table of the iterations, and `x.csv` contains
    the argument of each iteration, one row per iteration. Iterations
    reported after closing are ignored.
    """

    def __init__(self, solver: Solver, path: Path | str) -> None:
        """Initialize the logger.

        Args:
            solver: The solver to record.
            path:   The directory where the journal is written.
        """
        self._path = Path(path)
        self._solver_text = str(solver)
        self._problem_text = str(solver.problem)
        self._rows: list[list[Any]] = []
        self._xs: list[np.ndarray[Any, np.dtype[np.float64]]] = []
        self._closed = False

    @property
    def path(self) -> Path:
        """Return the output directory."""
        return self._path

    @property
    def iterations(self) -> int:
        """Return the number of recorded iterations."""
        return len(self._rows)

    def __call__(self, problem: Problem, state: SolverState) -> None:  # noqa: ARG002
        if self._closed:
            return
        parameters = ", ".join(
            f"{key}={parameter.value.value!s}"
            for key, parameter in state.parameters.items()
        )
        self._rows.append(
            [
                len(self._rows),
                state.cost,
                state.constraint_violation,
                parameters,
            ]
        )
        self._xs.append(np.array(state.x, dtype=np.float64))

    def release(self) -> None:
        """Close the logger."""
        self.close()

    def close(self) -> None:
        """Write the journal. Subsequent calls have no effect."""
        if self._closed:
            return
        self._closed = True
        self._path.mkdir(parents=True, exist_ok=True)
        table = tabulate(
            self._rows,
            headers=["Iteration", "Cost", "Constraint violation", "Parameters"],
            missingval="-",
        )
        journal = "\n\n".join([self._problem_text, self._solver_text, table])
        (self._path / "journal.log").write_text(journal + "\n", encoding="utf-8")
        if self._xs:
            np.savetxt(self._path / "x.csv", np.vstack(self._xs), delimiter=",")
        logger.debug("wrote %d iteration(s) to %s", len(self._rows), self._path)
