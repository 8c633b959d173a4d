"""Patch boundary conditions.

Classes
-------
BoundaryCondition
    Abstract base for all BC types.
FixedValue
    Fixed field value on a patch.
ZeroGradient
    Zero normal gradient (the default on patches without a condition).
EventInfiltration
    Infiltration velocity on a patch of the flow field, read from a
    patch event file.
EventFlux
    Mass flux of a species on a patch, read from a patch event file.
BoundaryConditions
    Collection of boundary conditions applied to a problem.

Functions
---------
build_boundary_conditions
    Build the collection from the ``boundary_conditions`` configuration.
"""

from __future__ import annotations

import logging
from abc import ABC
from pathlib import Path
from typing import Any

import numpy as np

from pyvadose.boundaries.events import (
    EventChannel,
    EventFileRegistry,
    PatchEventFile,
    set_event_file_registry,
)
from pyvadose.errors import ConfigurationError, require_keys

logger = logging.getLogger(__name__)


class BoundaryCondition(ABC):
    """Abstract boundary condition on one patch of one field.

    A condition may prescribe the face value of the field (used by the
    gradient), the face flux (overriding the computed flux), or neither.
    """

    type_name: str

    def __init__(self, field: str, patch: str) -> None:
        self.field = field
        self.patch = patch

    def face_value(self, time: float | None = None) -> float | None:
        """Prescribed face value, or ``None``."""
        return None

    def face_flux(
        self,
        mesh: Any,
        time: float,
        dt: float | None = None,
    ) -> np.ndarray | None:
        """Prescribed outward flux on every face of the patch, or ``None``."""
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(field={self.field!r}, patch={self.patch!r})"


class FixedValue(BoundaryCondition):
    """Fixed-value (Dirichlet) boundary condition.

    Args:
        field: Name of the field (e.g. ``"h"``).
        patch: Patch name.
        value: Prescribed value.
    """

    type_name = "fixed_value"

    def __init__(self, field: str, patch: str, value: float = 0.0) -> None:
        super().__init__(field, patch)
        self.value = float(value)

    def face_value(self, time: float | None = None) -> float:
        return self.value

    def __repr__(self) -> str:
        return f"FixedValue(field={self.field!r}, patch={self.patch!r}, value={self.value})"


class ZeroGradient(BoundaryCondition):
    """Zero normal gradient: the face takes the value of its cell."""

    type_name = "zero_gradient"


class _EventCondition(BoundaryCondition):
    """Condition whose value comes from a registered patch event file.

    The condition registers the event file through *channel* and keeps
    only the returned key.
    """

    def __init__(
        self,
        patch: str,
        event_file: PatchEventFile,
        channel: EventChannel,
    ) -> None:
        super().__init__(channel.field_name, patch)
        event_file.column(patch)
        self.registry = channel.registry
        self.key = channel.register(event_file)

    @property
    def event_file(self) -> PatchEventFile:
        return self.registry.get(self.key)

    def rate(self, time: float, dt: float | None = None) -> float:
        """Inflow rate per unit area at *time*.

        With *dt*, the rate is averaged over ``[time - dt, time]``.
        """
        ef = self.event_file
        if dt:
            return ef.patch_average(self.patch, time - dt, time)
        return ef.patch_value(self.patch, time)

    def face_flux(
        self,
        mesh: Any,
        time: float,
        dt: float | None = None,
    ) -> np.ndarray:
        # Inflow is negative with outward face normals
        faces = mesh.patch(self.patch).faces
        return -self.rate(time, dt) * mesh.magSf[faces]


class EventInfiltration(_EventCondition):
    """Infiltration velocity (m/s, positive into the domain) on a patch."""

    type_name = "event_infiltration"


class EventFlux(_EventCondition):
    """Species mass flux (kg/m²/s, positive into the domain) on a patch."""

    type_name = "event_flux"


# ======================================================================
# Collection
# ======================================================================


class BoundaryConditions:
    """Ordered collection of boundary conditions.

    Example::

        bc = BoundaryConditions()
        bc.add(FixedValue(field="h", patch="bottom", value=-1.0))
    """

    def __init__(self) -> None:
        self._conditions: list[BoundaryCondition] = []

    def add(self, condition: BoundaryCondition) -> None:
        """Append a boundary condition.

        Raises:
            ConfigurationError: If the patch already has a condition for
                the same field.
        """
        if self.for_patch(condition.field, condition.patch) is not None:
            raise ConfigurationError(
                f"Patch {condition.patch!r} already has a condition for "
                f"field {condition.field!r}"
            )
        self._conditions.append(condition)

    def __iter__(self):
        return iter(self._conditions)

    def __len__(self) -> int:
        return len(self._conditions)

    def of_type(self, cls: type) -> list[BoundaryCondition]:
        """Return all conditions of a given type."""
        return [c for c in self._conditions if isinstance(c, cls)]

    def for_field(self, field: str) -> list[BoundaryCondition]:
        """Return all conditions for a given field name."""
        return [c for c in self._conditions if c.field == field]

    def for_patch(self, field: str, patch: str) -> BoundaryCondition | None:
        """Condition of *field* on *patch*, or ``None``."""
        for c in self._conditions:
            if c.field == field and c.patch == patch:
                return c
        return None

    def boundary_values(self, field: str, time: float | None = None) -> dict[str, float]:
        """Prescribed face values of *field*, keyed by patch."""
        values = {}
        for c in self.for_field(field):
            v = c.face_value(time)
            if v is not None:
                values[c.patch] = v
        return values

    def boundary_fluxes(
        self,
        field: str,
        mesh: Any,
        time: float,
        dt: float | None = None,
    ) -> dict[str, np.ndarray]:
        """Prescribed face fluxes of *field*, keyed by patch."""
        fluxes = {}
        for c in self.for_field(field):
            f = c.face_flux(mesh, time, dt)
            if f is not None:
                fluxes[c.patch] = f
        return fluxes

    def __repr__(self) -> str:
        return f"BoundaryConditions({self._conditions})"


BOUNDARY_CONDITIONS: dict[str, type[BoundaryCondition]] = {
    "fixed_value": FixedValue,
    "zero_gradient": ZeroGradient,
    "event_infiltration": EventInfiltration,
    "event_flux": EventFlux,
}


def build_boundary_conditions(
    config: dict[str, dict[str, dict[str, Any]]],
    mesh: Any,
    registry: EventFileRegistry,
    case_dir: str | Path = ".",
) -> BoundaryConditions:
    """Build boundary conditions from configuration.

    Args:
        config: ``{field: {patch: {type: ..., ...}}}``.  ``fixed_value``
            takes ``value``; event types take ``event_file`` (relative to
            *case_dir*) and optional ``interpolation`` and ``beyond``.
        mesh: The mesh, used to check patch names.
        registry: Registry receiving the event files.
        case_dir: Directory event file paths are relative to.

    Raises:
        ConfigurationError: On an unknown type, patch or key.
    """
    bcs = BoundaryConditions()
    loaded: dict[tuple[Path, str, str], PatchEventFile] = {}
    known_patches = mesh.patch_names()

    for field_name, patches in (config or {}).items():
        channel = set_event_file_registry(registry, field_name)
        for patch, entry in (patches or {}).items():
            if patch not in known_patches:
                raise ConfigurationError(
                    f"boundary_conditions.{field_name}: patch {patch!r} not found.  "
                    f"Available: {known_patches}"
                )
            entry = dict(entry or {})
            bc_type = entry.pop("type", None)
            if bc_type not in BOUNDARY_CONDITIONS:
                raise ConfigurationError(
                    f"boundary_conditions.{field_name}.{patch}: unknown type "
                    f"{bc_type!r}.  Available: {sorted(BOUNDARY_CONDITIONS)}"
                )
            context = f"boundary_conditions.{field_name}.{patch}"

            if bc_type == "fixed_value":
                require_keys(entry, {"value"}, context)
                bcs.add(FixedValue(field_name, patch, entry.get("value", 0.0)))
            elif bc_type == "zero_gradient":
                require_keys(entry, set(), context)
                bcs.add(ZeroGradient(field_name, patch))
            else:
                require_keys(entry, {"event_file", "interpolation", "beyond"}, context)
                if "event_file" not in entry:
                    raise ConfigurationError(f"{context}: 'event_file' is required")
                path = Path(case_dir) / entry["event_file"]
                interpolation = entry.get("interpolation", "linear")
                beyond = entry.get("beyond", "hold")
                cache_key = (path.resolve(), interpolation, beyond)
                if cache_key not in loaded:
                    loaded[cache_key] = PatchEventFile.from_csv(
                        path, interpolation=interpolation, beyond=beyond
                    )
                cls = BOUNDARY_CONDITIONS[bc_type]
                bcs.add(cls(patch, loaded[cache_key], channel))
            logger.info("Boundary condition %s on %s.%s", bc_type, field_name, patch)
    return bcs
