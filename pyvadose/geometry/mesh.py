"""Finite-volume mesh.

Classes
-------
Patch
    Named group of boundary faces.
Mesh
    Cells, faces and boundary patches, with convenience methods for
    structured mesh generation.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Sequence

import numpy as np
from numpy.typing import ArrayLike
from scipy import sparse
from scipy.spatial import cKDTree


@dataclass(frozen=True)
class Patch:
    """Contiguous range of boundary faces.

    Args:
        name: Patch name (e.g. ``"top"``).
        type: Patch type.  Only ``"patch"`` boundaries are reported in
            the mass balances; ``"wall"`` and ``"empty"`` are not.
        start: Index of the first face of the patch.
        size: Number of faces.
    """

    name: str
    type: str
    start: int
    size: int

    @property
    def faces(self) -> np.ndarray:
        """Face indices of the patch."""
        return np.arange(self.start, self.start + self.size)


class Mesh:
    """Cell-centred finite-volume mesh.

    Internal faces come first and are followed by the boundary faces,
    grouped per patch.  Face area vectors point from the owner to the
    neighbour cell, and outwards on the boundary.  The last coordinate
    is the elevation.

    Attributes:
        cell_centers: Cell centroids, shape ``(n_cells, dim)``.
        cell_volumes: Cell volumes, shape ``(n_cells,)``.
        owner: Owner cell of every face, shape ``(n_faces,)``.
        neighbour: Neighbour cell of every internal face.
        Sf: Face area vectors, shape ``(n_faces, dim)``.
        face_centers: Face centroids, shape ``(n_faces, dim)``.
        patches: Boundary patches in face order.
    """

    def __init__(
        self,
        cell_centers: ArrayLike,
        cell_volumes: ArrayLike,
        owner: ArrayLike,
        neighbour: ArrayLike,
        Sf: ArrayLike,
        face_centers: ArrayLike,
        patches: Sequence[Patch],
    ) -> None:
        self.cell_centers = np.asarray(cell_centers, dtype=float)
        self.cell_volumes = np.asarray(cell_volumes, dtype=float)
        self.owner = np.asarray(owner, dtype=int)
        self.neighbour = np.asarray(neighbour, dtype=int)
        self.Sf = np.asarray(Sf, dtype=float)
        self.face_centers = np.asarray(face_centers, dtype=float)
        self.patches = list(patches)
        self.dim = self.cell_centers.shape[1]

        if len(self.cell_volumes) != len(self.cell_centers):
            raise ValueError("cell_centers and cell_volumes differ in length.")
        if np.any(self.cell_volumes <= 0.0):
            raise ValueError("Cell volumes must be positive.")
        covered = self.n_internal_faces + sum(p.size for p in self.patches)
        if covered != self.n_faces:
            raise ValueError(
                f"Patches cover {covered} faces but the mesh has {self.n_faces}."
            )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def n_cells(self) -> int:
        """Number of cells."""
        return len(self.cell_centers)

    @property
    def n_faces(self) -> int:
        """Number of faces (internal and boundary)."""
        return len(self.owner)

    @property
    def n_internal_faces(self) -> int:
        """Number of internal faces."""
        return len(self.neighbour)

    @cached_property
    def magSf(self) -> np.ndarray:
        """Face areas, shape ``(n_faces,)``."""
        return np.linalg.norm(self.Sf, axis=1)

    @cached_property
    def weights(self) -> np.ndarray:
        """Linear interpolation weight of the owner on internal faces.

        ``w = (d_fN . n) / (d_PN . n)``, so ``phi_f = w phi_P + (1 - w) phi_N``.
        """
        n_int = self.n_internal_faces
        nf = self.Sf[:n_int] / self.magSf[:n_int, np.newaxis]
        cp = self.cell_centers[self.owner[:n_int]]
        cn = self.cell_centers[self.neighbour]
        xf = self.face_centers[:n_int]
        d_fn = np.abs(np.einsum("fi,fi->f", cn - xf, nf))
        d_pn = np.abs(np.einsum("fi,fi->f", cn - cp, nf))
        return d_fn / d_pn

    @cached_property
    def incidence(self) -> sparse.csr_matrix:
        """Cell-face incidence: +1 for the owner, -1 for the neighbour.

        ``incidence @ face_flux`` is the net outflow of every cell.
        """
        n_int = self.n_internal_faces
        rows = np.concatenate([self.owner, self.neighbour])
        cols = np.concatenate([np.arange(self.n_faces), np.arange(n_int)])
        vals = np.concatenate([np.ones(self.n_faces), -np.ones(n_int)])
        return sparse.csr_matrix(
            (vals, (rows, cols)), shape=(self.n_cells, self.n_faces)
        )

    @cached_property
    def _tree(self) -> cKDTree:
        return cKDTree(self.cell_centers)

    # ------------------------------------------------------------------
    # Look-ups
    # ------------------------------------------------------------------

    def patch(self, name: str) -> Patch:
        """Return the patch called *name*.

        Raises:
            ValueError: If no such patch exists.
        """
        for p in self.patches:
            if p.name == name:
                return p
        raise ValueError(
            f"Patch '{name}' not found in mesh.  "
            f"Available: {[p.name for p in self.patches]}"
        )

    def patch_names(self, patch_type: str | None = None) -> list[str]:
        """Names of the patches, optionally restricted to one type."""
        return [
            p.name for p in self.patches if patch_type is None or p.type == patch_type
        ]

    def find_cells(self, points: ArrayLike) -> np.ndarray:
        """Index of the cell whose centre is closest to each point."""
        pts = np.atleast_2d(np.asarray(points, dtype=float))
        if pts.shape[1] != self.dim:
            raise ValueError(
                f"Points have dimension {pts.shape[1]}, mesh has {self.dim}."
            )
        _, idx = self._tree.query(pts)
        return np.asarray(idx, dtype=int)

    # ------------------------------------------------------------------
    # Factory methods
    # ------------------------------------------------------------------

    @classmethod
    def rectangle(
        cls,
        Lx: float,
        Ly: float,
        nx: int,
        ny: int,
        x0: float = 0.0,
        y0: float = 0.0,
        patch_types: dict[str, str] | None = None,
    ) -> "Mesh":
        """Structured 2-D mesh of ``nx * ny`` rectangular cells.

        Cells are numbered row by row from the bottom-left corner.  The
        boundary patches are ``left``, ``right``, ``bottom`` and ``top``,
        all of type ``"patch"`` unless overridden by *patch_types*.
        The out-of-plane depth is one.
        """
        if nx < 1 or ny < 1:
            raise ValueError("nx and ny must be at least 1.")
        types = {"left": "patch", "right": "patch", "bottom": "patch", "top": "patch"}
        types.update(patch_types or {})

        dx = Lx / nx
        dy = Ly / ny
        ii, jj = np.meshgrid(np.arange(nx), np.arange(ny))
        ii = ii.ravel()
        jj = jj.ravel()
        centers = np.column_stack([x0 + (ii + 0.5) * dx, y0 + (jj + 0.5) * dy])
        volumes = np.full(nx * ny, dx * dy)

        def cell(i: np.ndarray, j: np.ndarray) -> np.ndarray:
            return j * nx + i

        owner, neighbour, Sf, fc = [], [], [], []

        # Internal faces normal to x
        i, j = np.meshgrid(np.arange(nx - 1), np.arange(ny))
        i, j = i.ravel(), j.ravel()
        owner.append(cell(i, j))
        neighbour.append(cell(i + 1, j))
        Sf.append(np.tile([dy, 0.0], (len(i), 1)))
        fc.append(np.column_stack([x0 + (i + 1) * dx, y0 + (j + 0.5) * dy]))

        # Internal faces normal to y
        i, j = np.meshgrid(np.arange(nx), np.arange(ny - 1))
        i, j = i.ravel(), j.ravel()
        owner.append(cell(i, j))
        neighbour.append(cell(i, j + 1))
        Sf.append(np.tile([0.0, dx], (len(i), 1)))
        fc.append(np.column_stack([x0 + (i + 0.5) * dx, y0 + (j + 1) * dy]))

        n_internal = sum(len(o) for o in owner)
        start = n_internal
        patches = []
        j = np.arange(ny)
        i = np.arange(nx)
        boundary = [
            ("left", cell(np.zeros(ny, int), j), [-dy, 0.0],
             np.column_stack([np.full(ny, x0), y0 + (j + 0.5) * dy])),
            ("right", cell(np.full(ny, nx - 1), j), [dy, 0.0],
             np.column_stack([np.full(ny, x0 + Lx), y0 + (j + 0.5) * dy])),
            ("bottom", cell(i, np.zeros(nx, int)), [0.0, -dx],
             np.column_stack([x0 + (i + 0.5) * dx, np.full(nx, y0)])),
            ("top", cell(i, np.full(nx, ny - 1)), [0.0, dx],
             np.column_stack([x0 + (i + 0.5) * dx, np.full(nx, y0 + Ly)])),
        ]
        for name, cells, area, centres in boundary:
            owner.append(cells)
            Sf.append(np.tile(area, (len(cells), 1)))
            fc.append(centres)
            patches.append(Patch(name, types[name], start, len(cells)))
            start += len(cells)

        return cls(
            cell_centers=centers,
            cell_volumes=volumes,
            owner=np.concatenate(owner),
            neighbour=np.concatenate(neighbour),
            Sf=np.concatenate(Sf),
            face_centers=np.concatenate(fc),
            patches=patches,
        )

    @classmethod
    def column(
        cls,
        height: float,
        n_cells: int,
        width: float = 1.0,
        bottom: float = 0.0,
    ) -> "Mesh":
        """Vertical soil column, one cell wide.

        The ``left`` and ``right`` sides are of type ``"empty"``, so only
        ``bottom`` and ``top`` take part in the mass balances.
        """
        return cls.rectangle(
            Lx=width,
            Ly=height,
            nx=1,
            ny=n_cells,
            y0=bottom,
            patch_types={"left": "empty", "right": "empty"},
        )

    # ------------------------------------------------------------------
    # repr
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"Mesh(n_cells={self.n_cells}, n_faces={self.n_faces}, "
            f"dim={self.dim}, patches={self.patch_names()})"
        )
