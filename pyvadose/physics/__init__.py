"""Physics: fluid phases and transported species."""

from pyvadose.physics.phase import PhaseModel, IncompressiblePhase, phase_model
from pyvadose.physics.mixture import MultiscalarMixture, SpeciesParameters

__all__ = [
    "PhaseModel",
    "IncompressiblePhase",
    "phase_model",
    "MultiscalarMixture",
    "SpeciesParameters",
]
