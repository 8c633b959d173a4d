"""Run configuration.

The transport properties of a case are read once from YAML and resolved
into a :class:`TransportProperties` dataclass.  Every optional key has a
documented default; substitutions are logged.

Example ``constant/transportProperties.yaml``::

    capillarity_model: van_genuchten
    relative_permeability_model: van_genuchten
    theta_r: 0.102
    theta_s: 0.368
    model_coefficients:
      van_genuchten: {alpha: 3.35, n: 2.0}
    phases:
      theta: {rho: 1000.0, mu: 1.0e-3}
    Ss: 1.0e-6
    eps: 0.368
    species: [C]
    species_parameters:
      C: {Dm: 1.0e-9, alpha_l: 0.01, alpha_t: 0.001}
    boundary_conditions:
      h:
        top: {type: event_infiltration, event_file: rain.csv}

Classes
-------
TransportProperties
    Physical and model configuration of a case.
ControlDict
    Run control switches (CSV output, event time tracking).

Functions
---------
load_transport_properties
    Read :class:`TransportProperties` from a YAML file.
load_control_dict
    Read :class:`ControlDict` from a YAML file (optional).
lookup_or_default
    Dictionary lookup that logs the default it falls back to.
"""

from __future__ import annotations

import logging
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from pyvadose.errors import ConfigurationError, MissingInputError, require_keys

logger = logging.getLogger(__name__)

_MISSING = object()


def lookup_or_default(
    mapping: dict[str, Any],
    key: str,
    default: Any,
    context: str = "configuration",
) -> Any:
    """Return ``mapping[key]``, or *default* with a log message.

    Args:
        mapping: Configuration mapping.
        key: Key to look up.
        default: Value used when *key* is absent.
        context: Name of the mapping, for the log message.
    """
    value = mapping.get(key, _MISSING)
    if value is _MISSING:
        logger.info("%s: %r not set, using default %r", context, key, default)
        return default
    return value


@dataclass
class TransportProperties:
    """Physical and model configuration of a case.

    Attributes:
        capillarity_model: Name of the capillarity variant.
        relative_permeability_model: Name of the relative permeability
            variant.
        theta_r: Residual saturation (water content).
        theta_s: Saturated saturation (water content).
        model_coefficients: Coefficient blocks keyed by variant name,
            shared by the capillarity and relative permeability variants
            of the same name.
        kr_min: Floor of the relative permeability.
        phases: Per-phase properties keyed by phase name.
        Ss: Specific storage (1/m).
        eps: Default porosity when no porosity field is present.
        species: Transported species names.
        species_parameters: Transport parameters keyed by species name.
        permeability_interpolation: Face interpolation scheme for K.
        boundary_conditions: ``{field: {patch: {type: ..., ...}}}``.
    """

    capillarity_model: str = "van_genuchten"
    relative_permeability_model: str = "van_genuchten"
    theta_r: float = 0.0
    theta_s: float = 1.0
    model_coefficients: dict[str, dict[str, Any]] = field(default_factory=dict)
    kr_min: float = 1e-9
    phases: dict[str, dict[str, Any]] = field(default_factory=dict)
    Ss: float = 0.0
    eps: float = 0.0
    species: list[str] = field(default_factory=lambda: ["C"])
    species_parameters: dict[str, dict[str, Any]] = field(default_factory=dict)
    permeability_interpolation: str = "harmonic"
    boundary_conditions: dict[str, dict[str, dict[str, Any]]] = field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        if not 0.0 <= self.theta_r < self.theta_s <= 1.0:
            raise ConfigurationError(
                f"Saturation bounds must satisfy 0 <= theta_r < theta_s <= 1, "
                f"got theta_r={self.theta_r}, theta_s={self.theta_s}"
            )
        if not 0.0 <= self.kr_min < 1.0:
            raise ConfigurationError(f"kr_min must lie in [0, 1), got {self.kr_min}")
        if self.Ss < 0.0:
            raise ConfigurationError(f"Ss must be non-negative, got {self.Ss}")
        if not 0.0 <= self.eps <= 1.0:
            raise ConfigurationError(f"eps must lie in [0, 1], got {self.eps}")
        if isinstance(self.species, str):
            self.species = [self.species]
        self.species = [str(s) for s in self.species]
        duplicates = sorted({s for s in self.species if self.species.count(s) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate species names: {duplicates}")

    def coefficients(self, model_name: str) -> dict[str, Any]:
        """Coefficient block of variant *model_name* (empty if absent)."""
        coeffs = self.model_coefficients.get(model_name)
        if coeffs is None:
            logger.info("No coefficients given for model %r, using defaults", model_name)
            return {}
        return dict(coeffs)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TransportProperties":
        """Resolve a raw mapping into :class:`TransportProperties`.

        Raises:
            ConfigurationError: On unknown keys or invalid values.
        """
        data = dict(data or {})
        allowed = set(cls.__dataclass_fields__)
        require_keys(data, allowed, "transportProperties")

        ctx = "transportProperties"
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            default = f.default if f.default_factory is MISSING else f.default_factory()
            kwargs[f.name] = lookup_or_default(data, f.name, default, ctx)

        for key in ("theta_r", "theta_s", "kr_min", "Ss", "eps"):
            try:
                kwargs[key] = float(kwargs[key])
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(
                    f"{ctx}: {key!r} must be a number, got {kwargs[key]!r}"
                ) from exc
        return cls(**kwargs)


@dataclass
class ControlDict:
    """Run control switches.

    Attributes:
        csv_output: Write the mass-balance CSV reports.
        event_time_tracking: Shorten time steps so that they land on
            event times.
    """

    csv_output: bool = True
    event_time_tracking: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ControlDict":
        data = dict(data or {})
        require_keys(data, set(cls.__dataclass_fields__), "controlDict")
        return cls(
            csv_output=bool(lookup_or_default(data, "csv_output", True, "controlDict")),
            event_time_tracking=bool(
                lookup_or_default(data, "event_time_tracking", False, "controlDict")
            ),
        )


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path) as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at top level")
    return data


def load_transport_properties(path: str | Path) -> TransportProperties:
    """Read the transport properties of a case.

    Raises:
        MissingInputError: If *path* does not exist.
        ConfigurationError: If the content is invalid.
    """
    path = Path(path)
    if not path.is_file():
        raise MissingInputError(f"Transport properties file not found: {path}")
    logger.info("Reading transportProperties from %s", path)
    return TransportProperties.from_dict(_read_yaml(path))


def load_control_dict(path: str | Path) -> ControlDict:
    """Read run control switches; a missing file yields the defaults."""
    path = Path(path)
    if not path.is_file():
        logger.info("No control dictionary at %s, using defaults", path)
        return ControlDict()
    return ControlDict.from_dict(_read_yaml(path))
