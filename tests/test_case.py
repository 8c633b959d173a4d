"""End-to-end tests of the case set-up."""

import numpy as np
import pytest

from pyvadose import case
from pyvadose.boundaries.events import EventFileRegistry, PatchEventFile
from pyvadose.case import create_fields
from pyvadose.errors import ConfigurationError, MissingInputError
from pyvadose.geometry.mesh import Mesh
from pyvadose.io.fields import write_field
from pyvadose.physics.mixture import MultiscalarMixture


TRANSPORT_YAML = """\
theta_r: 0.1
theta_s: 0.4
model_coefficients:
  van_genuchten: {alpha: 1.0, n: 2.0}
phases:
  theta: {rho: 1000.0, mu: 1.0e-3}
Ss: 1.0e-4
eps: 0.4
species: [C]
species_parameters:
  C:
    Dm: 1.0e-9
    source_events:
      - {times: [0.0, 100.0], values: [1.0e-6, 1.0e-6], coordinates: [[0.5, 0.5]]}
boundary_conditions:
  h:
    top: {type: event_infiltration, event_file: rain.csv}
    bottom: {type: fixed_value, value: 0.0}
"""

N_CELLS = 5


def _make_case(case_dir, transport=TRANSPORT_YAML, control=None, with_K=True):
    """Write a small infiltration column case and return its mesh."""
    mesh = Mesh.column(height=1.0, n_cells=N_CELLS)
    write_field(case_dir, 0, "h", np.full(N_CELLS, -1.0))
    if with_K:
        write_field(case_dir, "constant", "K", np.full(N_CELLS, 1e-12))
    (case_dir / "constant").mkdir(exist_ok=True)
    (case_dir / "constant" / "transportProperties.yaml").write_text(transport)
    (case_dir / "rain.csv").write_text("time,top\n0,2e-6\n3600,2e-6\n")
    if control is not None:
        (case_dir / "system").mkdir()
        (case_dir / "system" / "controlDict.yaml").write_text(control)
    return mesh


class TestCreateFields:
    def test_builds_all_models(self, tmp_path):
        mesh = _make_case(tmp_path)
        fields = create_fields(tmp_path, mesh)
        try:
            assert isinstance(fields.mixture, MultiscalarMixture)
            assert fields.mixture.species == ["C"]
            assert fields.phase.name == "theta"
            assert fields.media.Ss == 1e-4
            np.testing.assert_allclose(fields.media.eps, 0.4)
            np.testing.assert_allclose(fields.theta, 0.1 + 0.3 * 2 ** -0.5)
        finally:
            fields.close()

    def test_saturation_written(self, tmp_path):
        mesh = _make_case(tmp_path)
        fields = create_fields(tmp_path, mesh)
        fields.close()
        theta = np.load(tmp_path / "0" / "theta.npy")
        np.testing.assert_allclose(theta, fields.theta)

    def test_registry_frozen_with_events(self, tmp_path):
        mesh = _make_case(tmp_path)
        fields = create_fields(tmp_path, mesh)
        fields.close()
        registry = fields.registry
        assert registry.frozen
        assert [ef.name for ef in registry.events_for("h")] == ["rain.csv"]
        assert [ef.name for ef in registry.events_for("C")] == ["C-source-0"]
        with pytest.raises(RuntimeError):
            registry.register("h", registry.events_for("C")[0])

    def test_infiltration_flux(self, tmp_path):
        mesh = _make_case(tmp_path)
        fields = create_fields(tmp_path, mesh)
        fields.close()
        np.testing.assert_allclose(fields.phi[mesh.patch("top").faces], -2e-6)

    def test_initial_concentration(self, tmp_path):
        mesh = _make_case(tmp_path)
        write_field(tmp_path, 0, "C", np.arange(N_CELLS, dtype=float))
        fields = create_fields(tmp_path, mesh)
        fields.close()
        np.testing.assert_allclose(fields.mixture["C"], np.arange(N_CELLS))

    def test_reports_opened(self, tmp_path):
        mesh = _make_case(tmp_path)
        fields = create_fields(tmp_path, mesh)
        fields.write_balances(0.0)
        fields.close()
        water = (tmp_path / "waterMassBalance.csv").read_text().splitlines()
        assert water[0] == "#Time flux(bottom) flux(top)"
        assert water[1].startswith("0 ")
        species = (tmp_path / "CmassBalance.csv").read_text().splitlines()
        assert species[0] == "#Time TotalMass(kg) flux(bottom) flux(top)"
        assert len(species) == 2

    def test_reports_in_output_dir(self, tmp_path):
        case_dir = tmp_path / "case"
        case_dir.mkdir()
        mesh = _make_case(case_dir)
        fields = create_fields(case_dir, mesh, output_dir=tmp_path / "out")
        fields.close()
        assert (tmp_path / "out" / "waterMassBalance.csv").is_file()
        assert not (case_dir / "waterMassBalance.csv").exists()

    def test_csv_output_disabled(self, tmp_path):
        mesh = _make_case(tmp_path, control="csv_output: false\n")
        fields = create_fields(tmp_path, mesh)
        fields.write_balances(0.0)
        fields.close()
        assert fields.reports is None
        assert not (tmp_path / "waterMassBalance.csv").exists()

    def test_write_fields(self, tmp_path):
        mesh = _make_case(tmp_path)
        fields = create_fields(tmp_path, mesh)
        fields.close()
        fields.write_fields(60.0)
        for name in ("h", "theta", "phi", "C"):
            assert (tmp_path / "60" / f"{name}.npy").is_file()
        assert not (tmp_path / "60" / "phi.theta.npy").exists()

    def test_write_phase_flux(self, tmp_path):
        transport = TRANSPORT_YAML.replace(
            "theta: {rho: 1000.0, mu: 1.0e-3}",
            "theta: {rho: 1000.0, mu: 1.0e-3, write_phi: true}",
        )
        mesh = _make_case(tmp_path, transport=transport)
        fields = create_fields(tmp_path, mesh)
        fields.close()
        fields.write_fields(60.0)
        phi = np.load(tmp_path / "60" / "phi.theta.npy")
        assert phi.shape == (mesh.n_faces,)

    def test_event_time_tracking(self, tmp_path):
        mesh = _make_case(tmp_path, control="event_time_tracking: true\n")
        fields = create_fields(tmp_path, mesh)
        fields.close()
        assert fields.next_event_time(0.0) == 100.0
        assert fields.adjust_time_step(0.0, 500.0) == pytest.approx(100.0)
        assert fields.adjust_time_step(0.0, 50.0) == pytest.approx(50.0)

    def test_registry_frozen_before_first_evaluation(self, tmp_path, monkeypatch):
        registries = []

        class RecordingRegistry(EventFileRegistry):
            def __init__(self):
                super().__init__()
                registries.append(self)

        frozen_at_read = []
        patch_value = PatchEventFile.patch_value

        def recording_patch_value(self, patch, t):
            frozen_at_read.append(registries[0].frozen)
            return patch_value(self, patch, t)

        monkeypatch.setattr(case, "EventFileRegistry", RecordingRegistry)
        monkeypatch.setattr(PatchEventFile, "patch_value", recording_patch_value)
        mesh = _make_case(tmp_path)
        create_fields(tmp_path, mesh).close()
        assert frozen_at_read
        assert all(frozen_at_read)

    def test_no_event_time_tracking(self, tmp_path):
        mesh = _make_case(tmp_path)
        fields = create_fields(tmp_path, mesh)
        fields.close()
        assert fields.next_event_time(0.0) is None
        assert fields.adjust_time_step(0.0, 500.0) == 500.0


class TestCreateFieldsFailures:
    def test_missing_permeability_before_reports(self, tmp_path):
        mesh = _make_case(tmp_path, with_K=False)
        with pytest.raises(MissingInputError, match="'K'"):
            create_fields(tmp_path, mesh)
        assert not (tmp_path / "waterMassBalance.csv").exists()
        assert not (tmp_path / "CmassBalance.csv").exists()

    def test_missing_head(self, tmp_path):
        mesh = _make_case(tmp_path)
        (tmp_path / "0" / "h.npy").unlink()
        with pytest.raises(MissingInputError, match="'h'"):
            create_fields(tmp_path, mesh)

    def test_missing_transport_properties(self, tmp_path):
        mesh = _make_case(tmp_path)
        (tmp_path / "constant" / "transportProperties.yaml").unlink()
        with pytest.raises(MissingInputError, match="transport"):
            create_fields(tmp_path, mesh)

    def test_duplicate_species(self, tmp_path):
        transport = TRANSPORT_YAML.replace("species: [C]", "species: [C, C]")
        mesh = _make_case(tmp_path, transport=transport)
        with pytest.raises(ConfigurationError, match="Duplicate species"):
            create_fields(tmp_path, mesh)
        assert not (tmp_path / "CmassBalance.csv").exists()
        assert not (tmp_path / "0" / "theta.npy").exists()

    def test_missing_phase(self, tmp_path):
        transport = TRANSPORT_YAML.replace(
            "phases:\n  theta: {rho: 1000.0, mu: 1.0e-3}\n", ""
        )
        mesh = _make_case(tmp_path, transport=transport)
        with pytest.raises(ConfigurationError, match="'theta'"):
            create_fields(tmp_path, mesh)

    def test_unknown_capillarity_model(self, tmp_path):
        mesh = _make_case(tmp_path, transport="capillarity_model: gardner\n" + TRANSPORT_YAML)
        with pytest.raises(ConfigurationError, match="gardner"):
            create_fields(tmp_path, mesh)
