"""Tests for persisted fields and mass-balance reports."""

import numpy as np
import pytest

from pyvadose.config import TransportProperties
from pyvadose.boundaries.events import EventFileRegistry
from pyvadose.errors import ConfigurationError, MissingInputError
from pyvadose.geometry.mesh import Mesh
from pyvadose.io.fields import field_path, read_field, time_name, write_field
from pyvadose.io import reports as reports_module
from pyvadose.io.reports import MassBalanceCSV, MassBalanceReports
from pyvadose.physics.mixture import MultiscalarMixture


class TestFields:
    def test_time_name(self):
        assert time_name(0.0) == "0"
        assert time_name(3600.0) == "3600"
        assert time_name(0.5) == "0.5"
        assert time_name("constant") == "constant"

    def test_write_then_read(self, tmp_path):
        path = write_field(tmp_path, 10.0, "h", [-1.0, -2.0])
        assert path == field_path(tmp_path, 10.0, "h")
        assert path == tmp_path / "10" / "h.npy"
        np.testing.assert_allclose(read_field(tmp_path, 10.0, "h", 2), [-1.0, -2.0])

    def test_missing_required(self, tmp_path):
        with pytest.raises(MissingInputError, match="'h'"):
            read_field(tmp_path, 0, "h")

    def test_missing_optional(self, tmp_path):
        assert read_field(tmp_path, 0, "C", required=False) is None

    def test_wrong_length(self, tmp_path):
        write_field(tmp_path, 0, "h", [1.0, 2.0, 3.0])
        with pytest.raises(ConfigurationError, match="expected 4 values"):
            read_field(tmp_path, 0, "h", 4)


class TestMassBalanceCSV:
    def test_header_and_rows(self, tmp_path):
        path = tmp_path / "waterMassBalance.csv"
        with MassBalanceCSV(path, ["flux(bottom)", "flux(top)"]) as report:
            report.write_row(0.0, [1.0, -2.5])
            report.write_row(60.0, [0.5, 0.0])
        assert report.closed
        lines = path.read_text().splitlines()
        assert lines[0] == "#Time flux(bottom) flux(top)"
        assert lines[1] == "0 1 -2.5"
        assert lines[2] == "60 0.5 0"

    def test_row_length(self, tmp_path):
        with MassBalanceCSV(tmp_path / "b.csv", ["flux(top)"]) as report:
            with pytest.raises(ConfigurationError, match="expected 1 values"):
                report.write_row(0.0, [1.0, 2.0])


class _Coupler:
    """Stand-in exposing the water fluxes the reports read."""

    def __init__(self, mesh):
        self.phi = np.zeros(mesh.n_faces)
        self.phi[mesh.patch("bottom").faces] = 2.0
        self.phi[mesh.patch("top").faces] = -3.0

    def patch_fluxes(self):
        return {"bottom": 2.0, "top": -3.0}


class TestMassBalanceReports:
    def test_files_and_headers(self, tmp_path):
        mesh = Mesh.column(height=1.0, n_cells=2)
        with MassBalanceReports(tmp_path, mesh, ["C", "D"]):
            pass
        water = (tmp_path / "waterMassBalance.csv").read_text().splitlines()
        assert water[0] == "#Time flux(bottom) flux(top)"
        species = (tmp_path / "DmassBalance.csv").read_text().splitlines()
        assert species[0] == "#Time TotalMass(kg) flux(bottom) flux(top)"

    def test_rows(self, tmp_path):
        mesh = Mesh.column(height=1.0, n_cells=2)
        mixture = MultiscalarMixture(
            TransportProperties(),
            ["C"],
            mesh,
            0.5,
            EventFileRegistry(),
            initial={"C": [1.0, 1.0]},
        )
        with MassBalanceReports(tmp_path, mesh, mixture.species) as reports:
            reports.write(30.0, _Coupler(mesh), mixture)
        water = (tmp_path / "waterMassBalance.csv").read_text().splitlines()
        assert water[1] == "30 2 -3"
        species = (tmp_path / "CmassBalance.csv").read_text().splitlines()
        assert species[1] == "30 0.5 2 -3"

    def test_failed_open_closes_earlier_files(self, tmp_path, monkeypatch):
        opened = []

        class RecordingCSV(MassBalanceCSV):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                opened.append(self)

        monkeypatch.setattr(reports_module, "MassBalanceCSV", RecordingCSV)
        (tmp_path / "BmassBalance.csv").mkdir()
        mesh = Mesh.column(height=1.0, n_cells=2)
        with pytest.raises(OSError):
            MassBalanceReports(tmp_path, mesh, ["C", "B"])
        assert len(opened) == 2
        assert all(report.closed for report in opened)
