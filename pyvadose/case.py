"""Case set-up.

A case directory holds the inputs of one simulation::

    <case>/0/h.npy                         initial pressure head (required)
    <case>/0/<species>.npy                 initial concentrations (optional)
    <case>/constant/K.npy                  intrinsic permeability (required)
    <case>/constant/eps.npy                porosity (optional)
    <case>/constant/transportProperties.yaml
    <case>/system/controlDict.yaml         run switches (optional)

:func:`create_fields` reads them in a fixed order, so that a missing
required input is reported before any output file is created.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from pyvadose.boundaries.base import BoundaryConditions, build_boundary_conditions
from pyvadose.boundaries.events import EventFileRegistry
from pyvadose.config import (
    ControlDict,
    TransportProperties,
    load_control_dict,
    load_transport_properties,
)
from pyvadose.coupling.saturation_flow import SaturationFlowCoupler
from pyvadose.io.fields import read_field, write_field
from pyvadose.io.reports import MassBalanceReports
from pyvadose.materials.capillarity import CapillarityModel, capillarity_model
from pyvadose.materials.porous_media import PorousMediaProperties
from pyvadose.materials.relative_permeability import (
    RelativePermeabilityModel,
    relative_permeability_model,
)
from pyvadose.physics.mixture import MultiscalarMixture
from pyvadose.physics.phase import PhaseModel, phase_model

logger = logging.getLogger(__name__)

TRANSPORT_PROPERTIES = Path("constant") / "transportProperties.yaml"
CONTROL_DICT = Path("system") / "controlDict.yaml"
PHASE_NAME = "theta"


@dataclass
class CaseFields:
    """Everything :func:`create_fields` builds for a case."""

    case_dir: Path
    mesh: Any
    start_time: float
    properties: TransportProperties
    control: ControlDict
    registry: EventFileRegistry
    h: np.ndarray
    theta: np.ndarray
    phase: PhaseModel
    capillarity: CapillarityModel
    relative_permeability: RelativePermeabilityModel
    media: PorousMediaProperties
    mixture: MultiscalarMixture
    boundary_conditions: BoundaryConditions
    coupler: SaturationFlowCoupler
    reports: MassBalanceReports | None = None

    @property
    def phi(self) -> np.ndarray:
        return self.coupler.phi

    def write_fields(self, time: float) -> list[Path]:
        """Write the solution fields to the time directory of *time*."""
        paths = [
            write_field(self.case_dir, time, "h", self.h),
            write_field(self.case_dir, time, "theta", self.theta),
            write_field(self.case_dir, time, "phi", self.coupler.phi),
        ]
        for name in self.mixture.species:
            paths.append(write_field(self.case_dir, time, name, self.mixture[name]))
        if self.phase.write_phi:
            paths.append(
                write_field(self.case_dir, time, f"phi.{self.phase.name}", self.phase.phi())
            )
        logger.info("Wrote %d fields at t=%g", len(paths), time)
        return paths

    def write_balances(self, time: float, dt: float | None = None) -> None:
        """Append a row to every mass-balance report (if enabled)."""
        if self.reports is None:
            return
        self.reports.write(
            time, self.coupler, self.mixture, self.boundary_conditions, dt
        )

    def next_event_time(self, time: float) -> float | None:
        """Next event time after *time*, when event time tracking is on."""
        if not self.control.event_time_tracking:
            return None
        return self.registry.next_event_time(time)

    def adjust_time_step(self, time: float, dt: float) -> float:
        """Shorten *dt* to land on the next event, when tracking is on."""
        if not self.control.event_time_tracking:
            return dt
        return self.registry.clip_time_step(time, dt)

    def close(self) -> None:
        if self.reports is not None:
            self.reports.close()


def create_fields(
    case_dir: str | Path,
    mesh: Any,
    start_time: float = 0.0,
    output_dir: str | Path | None = None,
) -> CaseFields:
    """Read a case and build its models.

    Args:
        case_dir: Case directory.
        mesh: The mesh the fields live on.
        start_time: Time directory holding the initial fields.
        output_dir: Directory of the balance reports (default: *case_dir*).

    Returns:
        The assembled :class:`CaseFields`.

    Raises:
        MissingInputError: If ``h``, ``K`` or the transport properties
            are absent.
        ConfigurationError: If the configuration is invalid.
    """
    case_dir = Path(case_dir)

    logger.info("Reading pressure head h")
    h = read_field(case_dir, start_time, "h", mesh.n_cells, required=True).copy()

    properties = load_transport_properties(case_dir / TRANSPORT_PROPERTIES)
    control = load_control_dict(case_dir / CONTROL_DICT)

    registry = EventFileRegistry()

    phase = phase_model(mesh, properties, PHASE_NAME)

    # Temporary value, overwritten by the capillarity model below
    theta = np.zeros(mesh.n_cells)
    kr_model = relative_permeability_model(properties, theta)
    pc_model = capillarity_model(properties, theta)

    logger.info("Computing field theta")
    pc_model.correct_and_sb(h, start_time)
    write_field(case_dir, start_time, "theta", theta)

    media = PorousMediaProperties.from_case(case_dir, mesh, properties)

    logger.info("Reading composition")
    initial = {}
    for name in dict.fromkeys(properties.species):
        values = read_field(case_dir, start_time, name, mesh.n_cells, required=False)
        if values is not None:
            initial[name] = values
    mixture = MultiscalarMixture(
        properties,
        properties.species,
        mesh,
        media.eps,
        registry,
        initial=initial,
        case_dir=case_dir,
    )

    boundary_conditions = build_boundary_conditions(
        properties.boundary_conditions, mesh, registry, case_dir
    )
    coupler = SaturationFlowCoupler(
        mesh,
        h,
        pc_model,
        kr_model,
        media,
        phase,
        boundary_conditions=boundary_conditions,
    )
    registry.freeze()
    coupler.correct(time=start_time)
    mixture.correct(phase.U, theta)

    reports = None
    if control.csv_output:
        reports = MassBalanceReports(output_dir or case_dir, mesh, mixture.species)

    return CaseFields(
        case_dir=case_dir,
        mesh=mesh,
        start_time=start_time,
        properties=properties,
        control=control,
        registry=registry,
        h=h,
        theta=theta,
        phase=phase,
        capillarity=pc_model,
        relative_permeability=kr_model,
        media=media,
        mixture=mixture,
        boundary_conditions=boundary_conditions,
        coupler=coupler,
        reports=reports,
    )
