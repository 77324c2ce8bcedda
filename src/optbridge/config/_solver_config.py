"""Configuration class for solvers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

from pydantic import BaseModel, ConfigDict, NonNegativeFloat, PositiveInt

from optbridge.engine._parameters import Vector

if TYPE_CHECKING:
    from collections.abc import Mapping

    from optbridge.engine import Parameter

_GENERIC_KEYS: Final = frozenset({"method", "max_iterations", "tolerance"})


class SolverConfig(BaseModel):
    """Configuration of a solver, validated from its parameter map.

    Solvers store their configuration as a map of tagged parameters that host
    code can read and replace freely. Before solving, the map is validated
    into this model: the generic settings below are checked here, and all
    other entries are collected in `options`, to be validated by the solver
    plugin against its own option schema.

    Attributes:
        method:         Name of the optimization method (optional).
        max_iterations: Maximum number of iterations (optional).
        tolerance:      Convergence tolerance (optional).
        options:        Plugin specific options.
    """

    method: str | None = None
    max_iterations: PositiveInt | None = None
    tolerance: NonNegativeFloat | None = None
    options: dict[str, Any] = {}

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        str_min_length=1,
        str_strip_whitespace=True,
    )

    @classmethod
    def from_parameters(cls, parameters: Mapping[str, Parameter]) -> SolverConfig:
        """Validate a solver configuration from a parameter map.

        Args:
            parameters: The solver parameters.

        Returns:
            The validated configuration.
        """
        values: dict[str, Any] = {}
        options: dict[str, Any] = {}
        for key, parameter in parameters.items():
            value = parameter.value.value
            if isinstance(parameter.value, Vector):
                value = value.tolist()
            if key in _GENERIC_KEYS:
                values[key] = value
            else:
                options[key] = value
        return cls.model_validate({**values, "options": options})
