"""Porous medium properties.

Classes
-------
PorousMediaProperties
    Intrinsic permeability (cells and faces), specific storage and
    porosity of the medium.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import ArrayLike

from pyvadose.errors import ConfigurationError
from pyvadose.geometry.operators import interpolate, interpolation_scheme
from pyvadose.io.fields import read_field

logger = logging.getLogger(__name__)


class PorousMediaProperties:
    """Static properties of the porous medium.

    All arrays are read-only once constructed.

    Args:
        mesh: The mesh.
        K: Intrinsic permeability per cell (m²), strictly positive.
        Ss: Specific storage (1/m), non-negative.
        eps: Porosity, scalar or per cell, in [0, 1].
        interpolation: Face interpolation scheme for K (``"harmonic"``
            keeps the flux continuous across material interfaces).

    Attributes:
        K: Cell permeability.
        Kf: Face permeability.
        Ss: Specific storage.
        eps: Porosity per cell.
    """

    def __init__(
        self,
        mesh: Any,
        K: ArrayLike,
        Ss: float = 0.0,
        eps: float | ArrayLike = 0.0,
        interpolation: str = "harmonic",
    ) -> None:
        self.mesh = mesh
        K_arr = np.array(K, dtype=float)
        if K_arr.ndim == 0:
            K_arr = np.full(mesh.n_cells, float(K_arr))
        if K_arr.shape != (mesh.n_cells,):
            raise ConfigurationError(
                f"K must have one value per cell ({mesh.n_cells}), got {K_arr.shape}"
            )
        if not np.all(np.isfinite(K_arr)) or np.any(K_arr <= 0.0):
            i = int(np.argmax(~(np.isfinite(K_arr) & (K_arr > 0.0))))
            raise ConfigurationError(
                f"K must be strictly positive; cell {i} has {K_arr[i]!r}"
            )
        if Ss < 0.0:
            raise ConfigurationError(f"Ss must be non-negative, got {Ss}")

        eps_arr = np.array(eps, dtype=float)
        if eps_arr.ndim == 0:
            eps_arr = np.full(mesh.n_cells, float(eps_arr))
        if eps_arr.shape != (mesh.n_cells,):
            raise ConfigurationError(
                f"eps must have one value per cell ({mesh.n_cells}), got {eps_arr.shape}"
            )
        if np.any(eps_arr < 0.0) or np.any(eps_arr > 1.0):
            raise ConfigurationError("eps must lie in [0, 1].")

        interpolation_scheme(interpolation)
        self.interpolation = interpolation
        self.K = K_arr
        self.Kf = interpolate(mesh, K_arr, interpolation)
        self.Ss = float(Ss)
        self.eps = eps_arr
        for arr in (self.K, self.Kf, self.eps):
            arr.flags.writeable = False

    @classmethod
    def from_case(
        cls,
        case_dir: str | Path,
        mesh: Any,
        properties: Any,
    ) -> "PorousMediaProperties":
        """Read the medium of a case.

        ``constant/K.npy`` is required; ``constant/eps.npy`` is optional
        and falls back to the scalar ``eps`` of the transport properties.

        Raises:
            MissingInputError: If the permeability field is absent.
        """
        logger.info("Reading permeability field K")
        K = read_field(case_dir, "constant", "K", mesh.n_cells, required=True)

        logger.info("Reading specific storage: Ss = %g", properties.Ss)

        logger.info("Reading porosity field eps (if present)")
        eps = read_field(case_dir, "constant", "eps", mesh.n_cells, required=False)
        if eps is None:
            logger.info("Using uniform porosity eps = %g", properties.eps)
            eps = properties.eps

        return cls(
            mesh,
            K,
            Ss=properties.Ss,
            eps=eps,
            interpolation=properties.permeability_interpolation,
        )

    def __repr__(self) -> str:
        return (
            f"PorousMediaProperties(K=[{self.K.min():g}, {self.K.max():g}], "
            f"Ss={self.Ss}, interpolation={self.interpolation!r})"
        )
