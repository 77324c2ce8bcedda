"""Conversion between host values and tagged parameter values."""

from __future__ import annotations

import logging
import numbers
import warnings
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, assert_never

import numpy as np

from optbridge.engine import (
    Boolean,
    Integer,
    Parameter,
    Real,
    TaggedValue,
    Text,
    Vector,
)
from optbridge.exceptions import ConversionError, ParameterSkippedWarning

if TYPE_CHECKING:
    from collections.abc import MutableMapping

logger = logging.getLogger(__name__)


def to_native(value: Any, *, state: bool = False) -> TaggedValue:  # noqa: ANN401
    """Convert a host value to a tagged value.

    The kinds are recognized in this order: boolean and numeric vector (only
    if `state` is set), text (`str` or UTF-8 `bytes`), integer, and real
    number. A numeric vector must be a one-dimensional NumPy array; if it
    already holds `float64` values it is stored without copying.

    Outside of solver states, booleans are not a kind of their own: they are
    stored as integers.

    Args:
        value: The host value.
        state: Accept the kinds only allowed in solver state parameters.

    Returns:
        The tagged value.

    Raises:
        ConversionError: If the value is of none of the recognized kinds.
    """
    if state and isinstance(value, bool | np.bool_):
        return Boolean(bool(value))
    if state and isinstance(value, np.ndarray):
        if value.ndim != 1:
            msg = f"vector parameters must be one-dimensional, got shape {value.shape}"
            raise ConversionError(msg)
        if not np.issubdtype(value.dtype, np.number):
            msg = f"vector parameters must be numeric, got dtype {value.dtype}"
            raise ConversionError(msg)
        return Vector(np.asarray(value, dtype=np.float64))
    if isinstance(value, str):
        return Text(value)
    if isinstance(value, bytes):
        try:
            return Text(value.decode("utf-8"))
        except UnicodeDecodeError as exc:
            msg = f"text parameters must be valid UTF-8: {exc}"
            raise ConversionError(msg) from exc
    if isinstance(value, numbers.Integral):
        return Integer(int(value))
    if isinstance(value, numbers.Real):
        return Real(float(value))
    msg = f"unsupported parameter value of type {type(value).__name__}"
    raise ConversionError(msg)


def to_host(value: TaggedValue) -> Any:  # noqa: ANN401
    """Convert a tagged value to a host value.

    Vectors are returned as a view of the stored array, not as a copy.

    Args:
        value: The tagged value.

    Returns:
        The host value.
    """
    match value:
        case Real() | Integer() | Text() | Boolean():
            return value.value
        case Vector():
            return value.value.view()
        case _:
            assert_never(value)


def _decode_key(key: object) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bytes):
        try:
            return key.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"parameter keys must be valid UTF-8: {exc}"
            raise ConversionError(msg) from exc
    msg = f"parameter keys must be strings, got {type(key).__name__}"
    raise ConversionError(msg)


def _skip(key: object, reason: str) -> None:
    msg = f"skipping parameter {key!r}: {reason}"
    logger.warning(msg)
    warnings.warn(msg, ParameterSkippedWarning, stacklevel=4)


def set_parameters(
    target: MutableMapping[str, Parameter],
    parameters: Any,  # noqa: ANN401
    *,
    state: bool = False,
) -> None:
    """Replace the contents of a parameter map.

    The target map is cleared first, then every entry of `parameters` of the
    form `key: (description, value)` is inserted, where keys are strings or
    UTF-8 encoded bytes. Entries of any other shape,
    and entries whose value cannot be converted, are skipped with a
    [`ParameterSkippedWarning`][optbridge.exceptions.ParameterSkippedWarning]
    instead of failing the whole update.

    Args:
        target:     The parameter map to replace.
        parameters: A mapping of keys to `(description, value)` pairs.
        state:      Accept the kinds only allowed in solver state parameters.

    Raises:
        ConversionError: If `parameters` is not a mapping.
    """
    if not isinstance(parameters, Mapping):
        msg = f"parameters must be a mapping, got {type(parameters).__name__}"
        raise ConversionError(msg)
    target.clear()
    for raw_key, entry in parameters.items():
        try:
            key = _decode_key(raw_key)
        except ConversionError as exc:
            _skip(raw_key, str(exc))
            continue
        if not isinstance(entry, tuple | list) or len(entry) != 2:  # noqa: PLR2004
            _skip(key, "expected a (description, value) pair")
            continue
        description, value = entry
        if not isinstance(description, str):
            _skip(key, "the description must be a string")
            continue
        try:
            target[key] = Parameter(description, to_native(value, state=state))
        except ConversionError as exc:
            _skip(key, str(exc))


def get_parameters(source: Mapping[str, Parameter]) -> dict[str, tuple[str, Any]]:
    """Convert a parameter map to host values.

    Args:
        source: The parameter map.

    Returns:
        A dictionary mapping keys to `(description, value)` tuples.
    """
    return {
        key: (parameter.description, to_host(parameter.value))
        for key, parameter in source.items()
    }


def set_parameter(
    target: MutableMapping[str, Parameter],
    key: str | bytes,
    value: Any,  # noqa: ANN401
    description: str = "",
    *,
    state: bool = False,
) -> None:
    """Set a single entry of a parameter map.

    Unlike [`set_parameters`][optbridge.bridge.set_parameters], the other
    entries are kept, and a value that cannot be converted is an error.

    Args:
        target:      The parameter map.
        key:         The key of the parameter.
        value:       The host value.
        description: The description of the parameter.
        state:       Accept the kinds only allowed in solver state parameters.

    Raises:
        ConversionError: If the key is neither a string nor UTF-8 encoded
                         bytes, or the value cannot be converted.
    """
    target[_decode_key(key)] = Parameter(description, to_native(value, state=state))
