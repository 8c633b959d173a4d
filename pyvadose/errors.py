"""Error taxonomy.

Classes
-------
PyVadoseError
    Base class of all package errors.
ConfigurationError
    Invalid or inconsistent configuration (fatal at load).
MissingInputError
    A required field or file is absent (fatal at start-up).
NumericalInstabilityError
    A derived field became non-finite or left its physical range.

Functions
---------
check_field
    Raise :class:`NumericalInstabilityError` on the first bad entry.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import ArrayLike


class PyVadoseError(Exception):
    """Base class for errors raised by pyvadose."""


class ConfigurationError(PyVadoseError, ValueError):
    """Invalid configuration: unknown variant, duplicate name, bad series."""


class MissingInputError(PyVadoseError, FileNotFoundError):
    """A required input field or file could not be found."""


class NumericalInstabilityError(PyVadoseError, FloatingPointError):
    """A derived quantity is non-finite or out of its physical range.

    Args:
        field: Name of the offending field (e.g. ``"theta"``).
        index: Cell or face index of the first offending entry.
        value: The offending value.
        time: Simulation time at which it was detected, if known.
        reason: Short description of the violated condition.
    """

    def __init__(
        self,
        field: str,
        index: int,
        value: float,
        time: float | None = None,
        reason: str = "non-finite value",
    ) -> None:
        self.field = field
        self.index = index
        self.value = value
        self.time = time
        when = "" if time is None else f" at t={time:g}"
        super().__init__(
            f"{reason} in field {field!r}{when}: index {index}, value {value!r}"
        )


def check_field(
    name: str,
    values: ArrayLike,
    lower: float | None = None,
    upper: float | None = None,
    time: float | None = None,
    atol: float = 1e-12,
) -> np.ndarray:
    """Check that *values* are finite and inside ``[lower, upper]``.

    Args:
        name: Field name used in the error message.
        values: Values to check.
        lower: Lower physical bound (``None`` to skip).
        upper: Upper physical bound (``None`` to skip).
        time: Current simulation time, for diagnostics.
        atol: Absolute tolerance applied to both bounds.

    Returns:
        The checked values as an array.

    Raises:
        NumericalInstabilityError: On the first offending entry.
    """
    arr = np.asarray(values, dtype=float)
    flat = arr.reshape(-1)

    bad = ~np.isfinite(flat)
    if bad.any():
        i = int(np.argmax(bad))
        raise NumericalInstabilityError(name, i, float(flat[i]), time)

    if lower is not None:
        below = flat < lower - atol
        if below.any():
            i = int(np.argmax(below))
            raise NumericalInstabilityError(
                name, i, float(flat[i]), time, reason=f"value below {lower:g}"
            )
    if upper is not None:
        above = flat > upper + atol
        if above.any():
            i = int(np.argmax(above))
            raise NumericalInstabilityError(
                name, i, float(flat[i]), time, reason=f"value above {upper:g}"
            )
    return arr


def require_keys(mapping: dict[str, Any], allowed: set[str], context: str) -> None:
    """Raise :class:`ConfigurationError` if *mapping* has unknown keys."""
    unknown = sorted(set(mapping) - allowed)
    if unknown:
        raise ConfigurationError(
            f"Unknown key(s) {unknown} in {context}.  "
            f"Allowed: {sorted(allowed)}"
        )
