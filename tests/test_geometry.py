"""Tests for the geometry module."""

import numpy as np
import pytest

from pyvadose.errors import ConfigurationError
from pyvadose.geometry.mesh import Mesh, Patch
from pyvadose.geometry.operators import (
    interpolate,
    gradient,
    face_flux,
    divergence,
    domain_integrate,
    patch_sum,
    harmonic,
    linear,
    geometric,
    interpolation_scheme,
)


class TestRectangle:
    def test_counts(self):
        mesh = Mesh.rectangle(Lx=2.0, Ly=1.0, nx=2, ny=1)
        assert mesh.n_cells == 2
        assert mesh.n_internal_faces == 1
        assert mesh.n_faces == 7
        assert mesh.dim == 2

    def test_patches(self):
        mesh = Mesh.rectangle(Lx=2.0, Ly=1.0, nx=2, ny=1)
        assert mesh.patch_names() == ["left", "right", "bottom", "top"]
        assert mesh.patch("bottom").size == 2
        assert mesh.patch("left").type == "patch"

    def test_unknown_patch(self):
        mesh = Mesh.rectangle(Lx=2.0, Ly=1.0, nx=2, ny=1)
        with pytest.raises(ValueError, match="not found"):
            mesh.patch("front")

    def test_volumes(self):
        mesh = Mesh.rectangle(Lx=3.0, Ly=2.0, nx=3, ny=4)
        np.testing.assert_allclose(mesh.cell_volumes, 0.5)
        assert domain_integrate(mesh, np.ones(mesh.n_cells)) == pytest.approx(6.0)

    def test_boundary_normals_point_outwards(self):
        mesh = Mesh.rectangle(Lx=1.0, Ly=1.0, nx=2, ny=2)
        top = mesh.patch("top").faces
        bottom = mesh.patch("bottom").faces
        assert np.all(mesh.Sf[top, 1] > 0)
        assert np.all(mesh.Sf[bottom, 1] < 0)

    def test_uniform_weights(self):
        mesh = Mesh.rectangle(Lx=4.0, Ly=2.0, nx=4, ny=2)
        np.testing.assert_allclose(mesh.weights, 0.5)

    def test_find_cells(self):
        mesh = Mesh.rectangle(Lx=2.0, Ly=2.0, nx=2, ny=2)
        cells = mesh.find_cells([[0.1, 0.1], [1.9, 1.9]])
        np.testing.assert_array_equal(cells, [0, 3])

    def test_find_cells_wrong_dimension(self):
        mesh = Mesh.rectangle(Lx=2.0, Ly=2.0, nx=2, ny=2)
        with pytest.raises(ValueError, match="dimension"):
            mesh.find_cells([[0.1, 0.1, 0.1]])

    def test_patch_coverage_checked(self):
        mesh = Mesh.rectangle(Lx=2.0, Ly=1.0, nx=2, ny=1)
        with pytest.raises(ValueError, match="Patches cover"):
            Mesh(
                mesh.cell_centers,
                mesh.cell_volumes,
                mesh.owner,
                mesh.neighbour,
                mesh.Sf,
                mesh.face_centers,
                mesh.patches[:-1],
            )


class TestColumn:
    def test_side_patches_are_empty(self):
        mesh = Mesh.column(height=1.0, n_cells=5)
        assert mesh.patch_names("patch") == ["bottom", "top"]
        assert mesh.patch_names("empty") == ["left", "right"]

    def test_elevation_is_last_coordinate(self):
        mesh = Mesh.column(height=1.0, n_cells=4, bottom=-1.0)
        np.testing.assert_allclose(mesh.cell_centers[:, 1], [-0.875, -0.625, -0.375, -0.125])


class TestPatch:
    def test_faces(self):
        p = Patch("top", "patch", start=5, size=3)
        np.testing.assert_array_equal(p.faces, [5, 6, 7])


class TestInterpolationSchemes:
    def test_harmonic_of_equal_values_is_exact(self):
        assert harmonic(1e-12, 1e-12) == pytest.approx(1e-12, rel=1e-15)
        assert harmonic(7.3, 7.3, 0.25) == 7.3

    def test_harmonic_between_and_below_arithmetic(self):
        h = harmonic(1.0, 3.0)
        assert 1.0 < h < 3.0
        assert h == pytest.approx(1.5)
        assert h < linear(1.0, 3.0)

    def test_geometric(self):
        assert geometric(1.0, 4.0) == pytest.approx(2.0)

    def test_unknown_scheme(self):
        with pytest.raises(ConfigurationError, match="Unknown interpolation"):
            interpolation_scheme("cubic")


class TestOperators:
    def test_interpolate_harmonic(self):
        mesh = Mesh.rectangle(Lx=2.0, Ly=1.0, nx=2, ny=1)
        Kf = interpolate(mesh, [1.0, 3.0], "harmonic")
        assert Kf[0] == pytest.approx(1.5)
        # Boundary faces take the owner value
        np.testing.assert_allclose(Kf[mesh.patch("left").faces], 1.0)
        np.testing.assert_allclose(Kf[mesh.patch("right").faces], 3.0)

    def test_interpolate_boundary_values(self):
        mesh = Mesh.rectangle(Lx=2.0, Ly=1.0, nx=2, ny=1)
        f = interpolate(mesh, [1.0, 3.0], boundary_values={"top": 10.0})
        np.testing.assert_allclose(f[mesh.patch("top").faces], 10.0)

    def test_interpolate_vector(self):
        mesh = Mesh.rectangle(Lx=2.0, Ly=1.0, nx=2, ny=1)
        U = np.array([[1.0, 0.0], [3.0, 2.0]])
        Uf = interpolate(mesh, U)
        assert Uf.shape == (mesh.n_faces, 2)
        np.testing.assert_allclose(Uf[0], [2.0, 1.0])

    def test_gradient_of_linear_field(self):
        mesh = Mesh.rectangle(Lx=4.0, Ly=1.0, nx=4, ny=1)
        x = mesh.cell_centers[:, 0]
        g = gradient(mesh, x, {"left": 0.0, "right": 4.0})
        np.testing.assert_allclose(g[:, 0], 1.0)
        np.testing.assert_allclose(g[:, 1], 0.0, atol=1e-12)

    def test_uniform_velocity_is_divergence_free(self):
        mesh = Mesh.rectangle(Lx=3.0, Ly=2.0, nx=3, ny=2)
        Uf = np.tile([1.0, 0.5], (mesh.n_faces, 1))
        phi = face_flux(mesh, Uf)
        np.testing.assert_allclose(divergence(mesh, phi), 0.0, atol=1e-12)

    def test_patch_sum(self):
        mesh = Mesh.rectangle(Lx=3.0, Ly=2.0, nx=3, ny=2)
        Uf = np.tile([0.0, 2.0], (mesh.n_faces, 1))
        phi = face_flux(mesh, Uf)
        assert patch_sum(mesh, phi, "top") == pytest.approx(6.0)
        assert patch_sum(mesh, phi, "bottom") == pytest.approx(-6.0)
