"""Finite-volume operators on a :class:`~pyvadose.geometry.mesh.Mesh`.

Only the handful of explicit operators used by the closure models and
the transport mixture are provided here; implicit discretisation and
linear solves belong to the surrounding simulation loop.

Functions
---------
interpolate
    Cell-to-face interpolation with a named scheme.
gradient
    Gauss gradient of a cell field.
face_flux
    Projection of face vectors onto the face area vectors.
divergence
    Net outflow per unit volume of a face flux.
domain_integrate
    Volume integral of a cell field.
patch_sum
    Sum of a face field over one patch.
"""

from __future__ import annotations

from typing import Any, Callable

import numpy as np
from numpy.typing import ArrayLike

from pyvadose.errors import ConfigurationError


def linear(phi_p: ArrayLike, phi_n: ArrayLike, w: ArrayLike = 0.5) -> np.ndarray:
    """Distance-weighted arithmetic mean ``w phi_P + (1 - w) phi_N``."""
    p = np.asarray(phi_p, dtype=float)
    n = np.asarray(phi_n, dtype=float)
    return w * p + (1.0 - w) * n


def harmonic(phi_p: ArrayLike, phi_n: ArrayLike, w: ArrayLike = 0.5) -> np.ndarray:
    """Distance-weighted harmonic mean ``1 / (w / phi_P + (1 - w) / phi_N)``.

    Written as ``phi_N / (w phi_N / phi_P + 1 - w)`` so that equal
    values are returned unchanged.  Requires strictly positive values.
    """
    p = np.asarray(phi_p, dtype=float)
    n = np.asarray(phi_n, dtype=float)
    return n / (w * (n / p) + (1.0 - w))


def geometric(phi_p: ArrayLike, phi_n: ArrayLike, w: ArrayLike = 0.5) -> np.ndarray:
    """Distance-weighted geometric mean ``phi_P^w phi_N^(1 - w)``."""
    p = np.asarray(phi_p, dtype=float)
    n = np.asarray(phi_n, dtype=float)
    return p ** w * n ** (1.0 - w)


INTERPOLATION_SCHEMES: dict[str, Callable[..., np.ndarray]] = {
    "linear": linear,
    "harmonic": harmonic,
    "geometric": geometric,
}


def interpolation_scheme(name: str) -> Callable[..., np.ndarray]:
    """Look up an interpolation scheme by name.

    Raises:
        ConfigurationError: If *name* is not a known scheme.
    """
    try:
        return INTERPOLATION_SCHEMES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown interpolation scheme {name!r}.  "
            f"Available: {sorted(INTERPOLATION_SCHEMES)}"
        ) from None


def interpolate(
    mesh: Any,
    values: ArrayLike,
    scheme: str = "linear",
    boundary_values: dict[str, ArrayLike] | None = None,
) -> np.ndarray:
    """Interpolate a cell field to the faces.

    Args:
        mesh: The mesh.
        values: Cell values, shape ``(n_cells,)`` or ``(n_cells, dim)``.
        scheme: ``"linear"``, ``"harmonic"`` or ``"geometric"``.
        boundary_values: Prescribed face values per patch name.  Other
            boundary faces take the owner value (zero gradient).

    Returns:
        Face values, shape ``(n_faces,)`` or ``(n_faces, dim)``.
    """
    func = interpolation_scheme(scheme)
    vals = np.asarray(values, dtype=float)
    n_int = mesh.n_internal_faces

    w = mesh.weights
    if vals.ndim > 1:
        w = w.reshape((-1,) + (1,) * (vals.ndim - 1))

    out = np.empty((mesh.n_faces,) + vals.shape[1:], dtype=float)
    out[:n_int] = func(vals[mesh.owner[:n_int]], vals[mesh.neighbour], w)
    out[n_int:] = vals[mesh.owner[n_int:]]

    for name, bv in (boundary_values or {}).items():
        faces = mesh.patch(name).faces
        out[faces] = bv
    return out


def gradient(
    mesh: Any,
    values: ArrayLike,
    boundary_values: dict[str, ArrayLike] | None = None,
) -> np.ndarray:
    """Gauss gradient ``(1/V) sum_f phi_f S_f`` of a cell scalar field.

    Returns:
        Gradient, shape ``(n_cells, dim)``.
    """
    phi_f = interpolate(mesh, values, "linear", boundary_values)
    return (mesh.incidence @ (phi_f[:, np.newaxis] * mesh.Sf)) / mesh.cell_volumes[
        :, np.newaxis
    ]


def face_flux(mesh: Any, face_vectors: ArrayLike) -> np.ndarray:
    """Dot product of face vectors with the face area vectors."""
    u = np.asarray(face_vectors, dtype=float)
    return np.einsum("fi,fi->f", u, mesh.Sf)


def divergence(mesh: Any, flux: ArrayLike) -> np.ndarray:
    """Net outflow per unit volume of a face flux, shape ``(n_cells,)``."""
    return (mesh.incidence @ np.asarray(flux, dtype=float)) / mesh.cell_volumes


def domain_integrate(mesh: Any, values: ArrayLike) -> float:
    """Volume integral ``sum_c values_c V_c``."""
    return float(np.dot(np.asarray(values, dtype=float), mesh.cell_volumes))


def patch_sum(mesh: Any, face_values: ArrayLike, patch_name: str) -> float:
    """Sum of a face field over the faces of one patch."""
    faces = mesh.patch(patch_name).faces
    return float(np.asarray(face_values, dtype=float)[faces].sum())
