"""Persisted cell fields.

Fields live in a case directory, one ``.npy`` file per field::

    <case>/0/h.npy              initial condition (time directory)
    <case>/constant/K.npy       time-independent field

Functions
---------
time_name
    Directory name of a simulation time.
read_field
    Read a field, failing or falling back when it is absent.
write_field
    Write a field to a time directory.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from numpy.typing import ArrayLike

from pyvadose.errors import ConfigurationError, MissingInputError

logger = logging.getLogger(__name__)


def time_name(time: float | str) -> str:
    """Directory name for *time* (``0``, ``3600``, ``0.5``, ``constant``)."""
    if isinstance(time, str):
        return time
    return f"{time:g}"


def field_path(case_dir: str | Path, time: float | str, name: str) -> Path:
    """Path of field *name* at *time* in *case_dir*."""
    return Path(case_dir) / time_name(time) / f"{name}.npy"


def read_field(
    case_dir: str | Path,
    time: float | str,
    name: str,
    n_values: int | None = None,
    required: bool = True,
) -> np.ndarray | None:
    """Read a persisted field.

    Args:
        case_dir: Case directory.
        time: Time directory (a number or ``"constant"``).
        name: Field name.
        n_values: Expected leading dimension (number of cells).
        required: If ``False``, a missing file yields ``None``.

    Returns:
        The field values, or ``None`` for an absent optional field.

    Raises:
        MissingInputError: If a required field is absent.
        ConfigurationError: If the field has the wrong length.
    """
    path = field_path(case_dir, time, name)
    if not path.is_file():
        if required:
            raise MissingInputError(f"Required field {name!r} not found: {path}")
        logger.info("Optional field %r not present at %s", name, path)
        return None

    logger.info("Reading field %s from %s", name, path)
    values = np.asarray(np.load(path), dtype=float)
    if n_values is not None and (values.ndim == 0 or values.shape[0] != n_values):
        raise ConfigurationError(
            f"Field {name!r} in {path} has shape {values.shape}, "
            f"expected {n_values} values"
        )
    return values


def write_field(
    case_dir: str | Path,
    time: float | str,
    name: str,
    values: ArrayLike,
) -> Path:
    """Write a field to ``<case>/<time>/<name>.npy`` and return the path."""
    path = field_path(case_dir, time, name)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.save(path, np.asarray(values, dtype=float))
    return path
