"""Geometry: finite-volume mesh and explicit operators."""

from pyvadose.geometry.mesh import Mesh, Patch
from pyvadose.geometry.operators import (
    interpolate,
    gradient,
    face_flux,
    divergence,
    domain_integrate,
    patch_sum,
    harmonic,
)

__all__ = [
    "Mesh",
    "Patch",
    "interpolate",
    "gradient",
    "face_flux",
    "divergence",
    "domain_integrate",
    "patch_sum",
    "harmonic",
]
