"""
pyvadose: closure models and set-up for variably saturated flow with
multi-species solute transport in porous media.

Subpackages
-----------
geometry
    Structured finite-volume mesh and face/cell operators.
materials
    Capillarity, relative permeability and porous medium properties.
boundaries
    Event files, the event registry and patch boundary conditions.
physics
    Fluid phase and multi-species mixture.
coupling
    Saturation-flow closure feeding the transport mixture.
io
    Persisted fields and mass-balance reports.

Modules
-------
config
    Transport properties and run control.
case
    Start-up sequence of a case directory.
errors
    Exception taxonomy.
"""

from pyvadose import (
    geometry,
    materials,
    boundaries,
    physics,
    coupling,
    io,
)
from pyvadose.case import CaseFields, create_fields
from pyvadose.errors import (
    PyVadoseError,
    ConfigurationError,
    MissingInputError,
    NumericalInstabilityError,
)

__version__ = "0.1.0"

__all__ = [
    "geometry",
    "materials",
    "boundaries",
    "physics",
    "coupling",
    "io",
    "CaseFields",
    "create_fields",
    "PyVadoseError",
    "ConfigurationError",
    "MissingInputError",
    "NumericalInstabilityError",
]
