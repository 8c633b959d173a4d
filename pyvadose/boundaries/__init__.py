"""Boundaries: event files and patch boundary conditions."""

from pyvadose.boundaries.events import (
    EventFile,
    PatchEventFile,
    SourceEventFile,
    EventFileRegistry,
    EventChannel,
    set_event_file_registry,
)
from pyvadose.boundaries.base import (
    BoundaryCondition,
    FixedValue,
    ZeroGradient,
    EventInfiltration,
    EventFlux,
    BoundaryConditions,
    build_boundary_conditions,
)

__all__ = [
    "EventFile",
    "PatchEventFile",
    "SourceEventFile",
    "EventFileRegistry",
    "EventChannel",
    "set_event_file_registry",
    "BoundaryCondition",
    "FixedValue",
    "ZeroGradient",
    "EventInfiltration",
    "EventFlux",
    "BoundaryConditions",
    "build_boundary_conditions",
]
