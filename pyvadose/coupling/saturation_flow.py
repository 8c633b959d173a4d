"""Saturation-flow coupling — Richards equation closure.

Governing equation (head form)::

    (Ss Se + C(h)) ∂h/∂t = ∇·(K_h kr(θ) ∇(h + z)) + Q

where Se is the effective saturation, C(h) = dθ/dh the moisture
capacity and K_h = K ρ g / μ the saturated hydraulic conductivity
computed from the intrinsic permeability K.

The coupler evaluates the closure for the current head: saturation,
relative permeability, conductivities, the Darcy velocity of the phase
and the volumetric face flux handed to the transport mixture.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from numpy.typing import ArrayLike

from pyvadose.boundaries.base import BoundaryConditions
from pyvadose.errors import ConfigurationError, check_field
from pyvadose.geometry.operators import domain_integrate, gradient, interpolate

logger = logging.getLogger(__name__)

GRAVITY = 9.81


class SaturationFlowCoupler:
    """Closure of the variably saturated flow problem.

    Args:
        mesh: The mesh.
        h: Pressure head per cell (m).  Kept by reference.
        capillarity: A :class:`~pyvadose.materials.capillarity.CapillarityModel`.
        relative_permeability: A
            :class:`~pyvadose.materials.relative_permeability.RelativePermeabilityModel`.
        media: :class:`~pyvadose.materials.porous_media.PorousMediaProperties`.
        phase: The :class:`~pyvadose.physics.phase.PhaseModel` carrying
            the water.
        boundary_conditions: Conditions on the head field.
        field_name: Name of the head field in the boundary conditions.
        gravity: Gravitational acceleration (m/s²).

    Attributes:
        theta: Saturation field (shared with the capillarity model).
        kr: Relative permeability per cell.
        Mf: Hydraulic conductivity on the faces, K_f kr_f ρ g / μ.
        phi: Volumetric face flux (m³/s), outward from the owner.
    """

    def __init__(
        self,
        mesh: Any,
        h: np.ndarray,
        capillarity: Any,
        relative_permeability: Any,
        media: Any,
        phase: Any,
        boundary_conditions: BoundaryConditions | None = None,
        field_name: str = "h",
        gravity: float = GRAVITY,
    ) -> None:
        if h.shape != (mesh.n_cells,):
            raise ConfigurationError(
                f"Pressure head has shape {h.shape}, expected ({mesh.n_cells},)"
            )
        if relative_permeability.theta is not capillarity.theta:
            raise ConfigurationError(
                "Capillarity and relative permeability models must share "
                "the same saturation field."
            )
        self.mesh = mesh
        self.h = h
        self.capillarity = capillarity
        self.relative_permeability = relative_permeability
        self.media = media
        self.phase = phase
        self.boundary_conditions = boundary_conditions or BoundaryConditions()
        self.field_name = field_name
        self.gravity = float(gravity)

        self.kr = np.ones(mesh.n_cells)
        self.Mf = np.zeros(mesh.n_faces)
        self.phi = np.zeros(mesh.n_faces)

    @property
    def theta(self) -> np.ndarray:
        return self.capillarity.theta

    @property
    def conductivity_factor(self) -> float:
        """ρ g / μ, converting permeability (m²) to conductivity (m/s)."""
        return self.phase.rho * self.gravity / self.phase.mu

    def hydraulic_conductivity(self, kr: ArrayLike | None = None) -> np.ndarray:
        """Cell hydraulic conductivity K kr ρ g / μ."""
        kr = self.kr if kr is None else np.asarray(kr, dtype=float)
        return self.media.K * kr * self.conductivity_factor

    def face_conductivity(self, kr: ArrayLike | None = None) -> np.ndarray:
        """Face hydraulic conductivity K_f kr_f ρ g / μ."""
        kr = self.kr if kr is None else np.asarray(kr, dtype=float)
        krf = interpolate(self.mesh, kr, "linear")
        return self.media.Kf * krf * self.conductivity_factor

    def correct(
        self,
        h: ArrayLike | None = None,
        time: float = 0.0,
        dt: float | None = None,
    ) -> np.ndarray:
        """Update saturation, permeability, velocity and flux from the head.

        Args:
            h: New pressure head; the current one is used if omitted.
            time: Simulation time (for time-varying boundaries).
            dt: Time step; event boundary fluxes are averaged over it.

        Returns:
            The volumetric face flux φ.

        Raises:
            NumericalInstabilityError: If saturation, permeability or
                flux become invalid.
        """
        if h is not None:
            self.h[...] = h

        self.capillarity.correct_and_sb(self.h, time)
        self.kr = self.relative_permeability.relative_permeability(self.theta, time)
        self.Mf = self.face_conductivity()

        ez = np.zeros(self.mesh.dim)
        ez[-1] = 1.0
        grad_h = gradient(
            self.mesh,
            self.h,
            self.boundary_conditions.boundary_values(self.field_name, time),
        )
        K_cell = self.hydraulic_conductivity()
        self.phase.U[...] = -K_cell[:, np.newaxis] * (grad_h + ez)

        phi = self.phase.phi()
        prescribed = self.boundary_conditions.boundary_fluxes(
            self.field_name, self.mesh, time, dt
        )
        for patch_name, flux in prescribed.items():
            phi[self.mesh.patch(patch_name).faces] = flux

        self.phi = check_field("phi", phi, time=time)
        logger.debug(
            "t=%g: theta in [%g, %g], kr in [%g, %g]",
            time, self.theta.min(), self.theta.max(), self.kr.min(), self.kr.max(),
        )
        return self.phi

    def storage_coefficient(self, h: ArrayLike | None = None) -> np.ndarray:
        """Storage coefficient Ss Se + C(h) of the head equation."""
        h = self.h if h is None else np.asarray(h, dtype=float)
        Se = self.capillarity.effective_saturation(h)
        return self.media.Ss * Se + self.capillarity.capacity(h)

    def patch_fluxes(self, phi: ArrayLike | None = None) -> dict[str, float]:
        """Outward water flux through every ``"patch"`` patch."""
        phi = self.phi if phi is None else np.asarray(phi, dtype=float)
        return {
            name: float(phi[self.mesh.patch(name).faces].sum())
            for name in self.mesh.patch_names("patch")
        }

    def water_volume(self) -> float:
        """Total water volume ∫ θ dV."""
        return domain_integrate(self.mesh, self.theta)

    def __repr__(self) -> str:
        return (
            f"SaturationFlowCoupler(capillarity={type(self.capillarity).__name__}, "
            f"relative_permeability={type(self.relative_permeability).__name__})"
        )
