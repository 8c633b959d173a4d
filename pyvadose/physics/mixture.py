"""Multi-species solute mixture.

Each species obeys the advection-dispersion-reaction equation::

    θ R ∂C/∂t + ∇·(φ C) = ∇·(D ∇C) − θ R λ C + S

where φ is the volumetric flux of the carrier phase, D the dispersion
tensor, R the retardation factor, λ a first-order decay rate and S the
source term.  The mixture supplies the coefficients and sources; the
equation is solved by the time-stepping loop.

    R = 1 + (1 − ε) ρ_s K_d / θ
    D = (θ τ D_m + α_T |U|) I + (α_L − α_T) U Uᵀ / |U|

Classes
-------
SpeciesParameters
    Transport parameters of one species.
MultiscalarMixture
    Concentration fields, coefficients, sources and masses of all
    species.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Sequence

import numpy as np
from numpy.typing import ArrayLike

from pyvadose.boundaries.events import (
    EventFileRegistry,
    EventKey,
    SourceEventFile,
    set_event_file_registry,
)
from pyvadose.errors import ConfigurationError, check_field, require_keys
from pyvadose.geometry.operators import domain_integrate

logger = logging.getLogger(__name__)


@dataclass
class SpeciesParameters:
    """Transport parameters of one species.

    Args:
        Dm: Molecular diffusion coefficient (m²/s).
        alpha_l: Longitudinal dispersivity (m).
        alpha_t: Transverse dispersivity (m).
        tortuosity: Tortuosity factor applied to Dm.
        decay: First-order decay rate λ (1/s).
        Kd: Linear sorption distribution coefficient (m³/kg).
        rho_s: Solid grain density (kg/m³).
        source: Uniform volumetric source (kg/m³/s).
        source_events: Point source event definitions, each a mapping
            with ``coordinates`` and either ``file`` or ``times`` and
            ``values``, plus optional ``interpolation`` and ``beyond``.
    """

    Dm: float = 0.0
    alpha_l: float = 0.0
    alpha_t: float = 0.0
    tortuosity: float = 1.0
    decay: float = 0.0
    Kd: float = 0.0
    rho_s: float = 0.0
    source: float = 0.0
    source_events: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.name in ("source", "source_events"):
                continue
            value = getattr(self, f.name)
            if value < 0.0:
                raise ConfigurationError(f"{f.name} must be non-negative, got {value}")

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any] | None) -> "SpeciesParameters":
        data = dict(data or {})
        context = f"species_parameters.{name}"
        require_keys(data, {f.name for f in fields(cls)}, context)
        for key, value in data.items():
            if key == "source_events":
                continue
            try:
                data[key] = float(value)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"{context}: {key!r} must be a number, got {value!r}"
                ) from None
        try:
            return cls(**data)
        except ConfigurationError as exc:
            raise ConfigurationError(f"{context}: {exc}") from None


class MultiscalarMixture:
    """Set of transported species sharing one carrier phase.

    Args:
        properties: A :class:`~pyvadose.config.TransportProperties`
            providing ``species_parameters``.
        species: Species names.  Empty means the single default species.
        mesh: The mesh.
        porosity: Porosity per cell (or scalar).
        registry: Event registry holding the species source events.
        default_species: Name used when *species* is empty.
        initial: Initial concentrations keyed by species name.
        case_dir: Directory source event files are relative to.

    Raises:
        ConfigurationError: On a duplicate species name (before any
            field is built) or invalid species parameters.
    """

    def __init__(
        self,
        properties: Any,
        species: Sequence[str],
        mesh: Any,
        porosity: float | ArrayLike,
        registry: EventFileRegistry,
        default_species: str = "C",
        initial: dict[str, ArrayLike] | None = None,
        case_dir: str | Path = ".",
    ) -> None:
        names = [str(s) for s in species] or [default_species]
        seen: set[str] = set()
        for name in names:
            if name in seen:
                raise ConfigurationError(f"Duplicate species name {name!r} in {names}")
            seen.add(name)

        configured = dict(getattr(properties, "species_parameters", {}) or {})
        stray = sorted(set(configured) - seen)
        if stray:
            raise ConfigurationError(
                f"species_parameters given for undeclared species {stray}"
            )

        self.mesh = mesh
        self.registry = registry
        self._species = names
        self.eps = np.broadcast_to(
            np.asarray(porosity, dtype=float), (mesh.n_cells,)
        ).copy()
        self._params: dict[str, SpeciesParameters] = {}
        for name in names:
            if name not in configured:
                logger.info("No parameters for species %r, using defaults", name)
            self._params[name] = SpeciesParameters.from_dict(name, configured.get(name))

        self._source_cells: dict[EventKey, np.ndarray] = {}
        for name in names:
            channel = set_event_file_registry(registry, name)
            for i, entry in enumerate(self._params[name].source_events):
                event_file = self._load_source_event(name, i, entry, case_dir)
                channel.register(event_file)

        initial = initial or {}
        self._Y: list[np.ndarray] = []
        for name in names:
            if name in initial:
                c = np.array(initial[name], dtype=float)
                if c.shape != (mesh.n_cells,):
                    raise ConfigurationError(
                        f"Initial field of species {name!r} has shape {c.shape}, "
                        f"expected ({mesh.n_cells},)"
                    )
            else:
                c = np.zeros(mesh.n_cells)
            self._Y.append(c)

        self._dispersion: dict[str, np.ndarray] = {}
        logger.info("Composition: %s", names)

    @staticmethod
    def _load_source_event(
        name: str,
        index: int,
        entry: dict[str, Any],
        case_dir: str | Path,
    ) -> SourceEventFile:
        context = f"species_parameters.{name}.source_events[{index}]"
        entry = dict(entry)
        require_keys(
            entry,
            {"file", "times", "values", "coordinates", "interpolation", "beyond"},
            context,
        )
        if "coordinates" not in entry:
            raise ConfigurationError(f"{context}: 'coordinates' is required")
        options = {
            "coordinates": entry["coordinates"],
            "interpolation": entry.get("interpolation", "linear"),
            "beyond": entry.get("beyond", "hold"),
        }
        if "file" in entry:
            return SourceEventFile.from_csv(Path(case_dir) / entry["file"], **options)
        if "times" in entry and "values" in entry:
            return SourceEventFile(
                f"{name}-source-{index}", entry["times"], entry["values"], **options
            )
        raise ConfigurationError(f"{context}: give either 'file' or 'times' and 'values'")

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    @property
    def species(self) -> list[str]:
        """Species names in declaration order."""
        return list(self._species)

    @property
    def Y(self) -> list[np.ndarray]:
        """Concentration fields in species order."""
        return self._Y

    def index(self, name: str) -> int:
        try:
            return self._species.index(name)
        except ValueError:
            raise KeyError(f"Unknown species {name!r}; available: {self._species}") from None

    def __getitem__(self, name: str) -> np.ndarray:
        return self._Y[self.index(name)]

    def __contains__(self, name: str) -> bool:
        return name in self._species

    def __len__(self) -> int:
        return len(self._species)

    def parameters(self, name: str) -> SpeciesParameters:
        """Transport parameters of species *name*."""
        self.index(name)
        return self._params[name]

    # ------------------------------------------------------------------
    # Masses
    # ------------------------------------------------------------------

    def total_mass(self, name: str) -> float:
        """Total mass ∫ C ε dV of species *name*."""
        return domain_integrate(self.mesh, self[name] * self.eps)

    def total_masses(self) -> dict[str, float]:
        """Total mass of every species."""
        return {name: self.total_mass(name) for name in self._species}

    # ------------------------------------------------------------------
    # Coefficients
    # ------------------------------------------------------------------

    def retardation(self, name: str, theta: ArrayLike) -> np.ndarray:
        """Retardation factor R = 1 + (1 − ε) ρ_s K_d / θ per cell.

        Raises:
            NumericalInstabilityError: If sorption is active and θ is
                not strictly positive.
        """
        p = self.parameters(name)
        th = np.broadcast_to(np.asarray(theta, dtype=float), (self.mesh.n_cells,))
        if p.Kd == 0.0 or p.rho_s == 0.0:
            return np.ones(self.mesh.n_cells)
        check_field("theta", th, lower=np.finfo(float).tiny, atol=0.0)
        return 1.0 + (1.0 - self.eps) * p.rho_s * p.Kd / th

    def dispersion_tensor(
        self,
        name: str,
        U: ArrayLike,
        theta: ArrayLike,
    ) -> np.ndarray:
        """Dispersion tensor per cell.

        D = (θ τ D_m + α_T |U|) I + (α_L − α_T) U Uᵀ / |U|

        Args:
            name: Species name.
            U: Darcy velocity, shape ``(n_cells, dim)``.
            theta: Saturation per cell.

        Returns:
            Tensor of shape ``(n_cells, dim, dim)``.
        """
        p = self.parameters(name)
        v = np.asarray(U, dtype=float)
        dim = v.shape[1]
        th = np.broadcast_to(np.asarray(theta, dtype=float), (len(v),))
        v_mag = np.linalg.norm(v, axis=1)
        v_mag_safe = np.maximum(v_mag, 1e-30)

        iso = th * p.tortuosity * p.Dm + p.alpha_t * v_mag
        D = iso[:, np.newaxis, np.newaxis] * np.eye(dim)
        D += (p.alpha_l - p.alpha_t) * np.einsum("ci,cj->cij", v, v) / v_mag_safe[
            :, np.newaxis, np.newaxis
        ]
        return D

    def correct(self, U: ArrayLike, theta: ArrayLike) -> None:
        """Update the dispersion tensors of all species."""
        for name in self._species:
            self._dispersion[name] = self.dispersion_tensor(name, U, theta)

    def dispersion(self, name: str) -> np.ndarray:
        """Dispersion tensor from the last :meth:`correct`."""
        if name not in self._dispersion:
            raise RuntimeError(f"correct() must be called before dispersion({name!r})")
        return self._dispersion[name]

    def coefficients(self, name: str, theta: ArrayLike) -> dict[str, np.ndarray]:
        """Coefficient arrays of the transport equation of *name*."""
        p = self.parameters(name)
        return {
            "porosity": self.eps,
            "retardation": self.retardation(name, theta),
            "dispersion": self.dispersion(name),
            "decay_rate": np.full(self.mesh.n_cells, p.decay),
        }

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def _cells(self, key: EventKey) -> np.ndarray:
        cells = self._source_cells.get(key)
        if cells is None:
            cells = self.mesh.find_cells(self.registry.get(key).coordinates)
            self._source_cells[key] = cells
        return cells

    def source_term(self, name: str, time: float, dt: float | None = None) -> np.ndarray:
        """Volumetric source of species *name* (kg/m³/s) per cell.

        Point rates of the registered source events are added to the
        cell nearest each point and divided by its volume.  With *dt*
        the rates are averaged over ``[time - dt, time]``.  A species
        without events has only its uniform ``source``.
        """
        p = self.parameters(name)
        rates = np.zeros(self.mesh.n_cells)
        for i, event_file in enumerate(self.registry.events_for(name)):
            if not isinstance(event_file, SourceEventFile):
                continue
            values = event_file.average(time - dt, time) if dt else event_file.value(time)
            np.add.at(rates, self._cells((name, i)), values)
        return p.source + rates / self.mesh.cell_volumes

    def source_terms(self, time: float, dt: float | None = None) -> dict[str, np.ndarray]:
        """Volumetric sources of every species."""
        return {name: self.source_term(name, time, dt) for name in self._species}

    # ------------------------------------------------------------------
    # Boundary fluxes
    # ------------------------------------------------------------------

    def boundary_fluxes(
        self,
        name: str,
        phi: ArrayLike,
        time: float,
        boundary_conditions: Any = None,
        dt: float | None = None,
    ) -> dict[str, float]:
        """Outward mass flux of species *name* through each ``"patch"`` patch.

        Advective flux φ C with the cell value on outflow faces and the
        fixed value (if any) on inflow faces; an ``event_flux``
        condition replaces it on its patch.
        """
        mesh = self.mesh
        C = self[name]
        phi = np.asarray(phi, dtype=float)
        fixed = {}
        prescribed = {}
        if boundary_conditions is not None:
            fixed = boundary_conditions.boundary_values(name, time)
            prescribed = boundary_conditions.boundary_fluxes(name, mesh, time, dt)

        fluxes = {}
        for patch_name in mesh.patch_names("patch"):
            faces = mesh.patch(patch_name).faces
            if patch_name in prescribed:
                fluxes[patch_name] = float(np.sum(prescribed[patch_name]))
                continue
            c_face = C[mesh.owner[faces]]
            if patch_name in fixed:
                c_face = np.where(phi[faces] < 0.0, fixed[patch_name], c_face)
            fluxes[patch_name] = float(np.sum(phi[faces] * c_face))
        return fluxes

    def __repr__(self) -> str:
        return f"MultiscalarMixture(species={self._species})"
