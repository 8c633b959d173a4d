"""Fluid phase models.

Classes
-------
PhaseModel
    Abstract phase owning a velocity field and its constants.
IncompressiblePhase
    Constant density and viscosity.

Functions
---------
phase_model
    Build the phase named in the transport properties.
"""

from __future__ import annotations

import logging
from abc import ABC
from typing import Any

import numpy as np

from pyvadose.errors import ConfigurationError, require_keys
from pyvadose.geometry.operators import face_flux, interpolate

logger = logging.getLogger(__name__)


class PhaseModel(ABC):
    """A fluid phase moving through the medium.

    Args:
        mesh: The mesh.
        name: Phase name (e.g. ``"theta"``).
        rho: Density (kg/m³).
        mu: Dynamic viscosity (Pa·s).

    Attributes:
        U: Cell velocity, shape ``(n_cells, dim)``.
        write_phi: Whether the phase flux is written with the outputs.
    """

    model: str
    required = ("rho", "mu")

    def __init__(self, mesh: Any, name: str, rho: float, mu: float) -> None:
        if rho <= 0.0 or mu <= 0.0:
            raise ConfigurationError(
                f"Phase {name!r}: rho and mu must be positive, got rho={rho}, mu={mu}"
            )
        self.mesh = mesh
        self.name = name
        self.rho = float(rho)
        self.mu = float(mu)
        self.U = np.zeros((mesh.n_cells, mesh.dim))
        self.write_phi = False

    def phi(self) -> np.ndarray:
        """Volumetric face flux: interpolated velocity projected on Sf."""
        return face_flux(self.mesh, interpolate(self.mesh, self.U, "linear"))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, rho={self.rho}, mu={self.mu})"


class IncompressiblePhase(PhaseModel):
    """Phase with constant density and viscosity."""

    model = "incompressible"


PHASE_MODELS: dict[str, type[PhaseModel]] = {
    "incompressible": IncompressiblePhase,
}


def phase_model(mesh: Any, properties: Any, phase_name: str) -> PhaseModel:
    """Build phase *phase_name* from ``properties.phases[phase_name]``.

    The block selects the variant with ``model`` (default
    ``"incompressible"``), may set ``write_phi`` and must provide
    every constant the variant requires.

    Raises:
        ConfigurationError: If the block, the variant or a constant is
            missing.
    """
    block = properties.phases.get(phase_name)
    if block is None:
        raise ConfigurationError(
            f"No properties for phase {phase_name!r} in 'phases'.  "
            f"Available: {sorted(properties.phases)}"
        )
    block = dict(block)
    model = block.pop("model", "incompressible")
    write_phi = bool(block.pop("write_phi", False))
    if model not in PHASE_MODELS:
        raise ConfigurationError(
            f"Unknown model {model!r} for phase {phase_name!r}.  "
            f"Available: {sorted(PHASE_MODELS)}"
        )
    cls = PHASE_MODELS[model]
    missing = [key for key in cls.required if key not in block]
    if missing:
        raise ConfigurationError(
            f"Phase {phase_name!r} is missing required properties {missing}"
        )
    require_keys(block, set(cls.required), f"phases.{phase_name}")
    logger.info("Creating %s phase %r", model, phase_name)
    constants = {}
    for key, value in block.items():
        try:
            constants[key] = float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"phases.{phase_name}.{key} must be a number, got {value!r}"
            ) from None
    phase = cls(mesh, phase_name, **constants)
    phase.write_phi = write_phi
    return phase
