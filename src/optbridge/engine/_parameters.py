"""Tagged parameter values stored by solvers and solver states."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

from optbridge.enums import ValueKind

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray


@dataclass(frozen=True, slots=True)
class Real:
    """A floating point parameter value."""

    value: float
    kind = ValueKind.REAL


@dataclass(frozen=True, slots=True)
class Integer:
    """An integer parameter value."""

    value: int
    kind = ValueKind.INTEGER


@dataclass(frozen=True, slots=True)
class Text:
    """A string parameter value."""

    value: str
    kind = ValueKind.TEXT


@dataclass(frozen=True, slots=True)
class Boolean:
    """A boolean parameter value, only used in solver states."""

    value: bool
    kind = ValueKind.BOOLEAN


@dataclass(frozen=True, slots=True, eq=False)
class Vector:
    """A vector parameter value, only used in solver states.

    The vector is stored as given; it is not copied.
    """

    value: NDArray[np.float64]
    kind = ValueKind.VECTOR


TaggedValue: TypeAlias = Real | Integer | Text | Boolean | Vector
"""The values of solver and solver state parameters."""


@dataclass(slots=True)
class Parameter:
    """A named solver or solver state parameter.

    Attributes:
        description: Human readable description of the parameter.
        value:       The tagged value.
    """

    description: str
    value: TaggedValue

    def __str__(self) -> str:
        value = self.value.value
        if isinstance(self.value, Vector):
            value = "[" + ", ".join(f"{item:g}" for item in self.value.value) + "]"
        return f"{value} ({self.description})"
