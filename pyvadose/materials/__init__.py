"""Materials: capillarity, relative permeability, porous medium.

The capillarity and relative permeability variants share names
(``VanGenuchten``, ``BrooksCorey``, ``Linear``) and are reached through
their modules or the factories.
"""

from pyvadose.materials import capillarity, relative_permeability
from pyvadose.materials.capillarity import (
    CapillarityModel,
    CAPILLARITY_MODELS,
    capillarity_model,
)
from pyvadose.materials.relative_permeability import (
    RelativePermeabilityModel,
    RELATIVE_PERMEABILITY_MODELS,
    relative_permeability_model,
)
from pyvadose.materials.porous_media import PorousMediaProperties

__all__ = [
    "capillarity",
    "relative_permeability",
    "CapillarityModel",
    "CAPILLARITY_MODELS",
    "capillarity_model",
    "RelativePermeabilityModel",
    "RELATIVE_PERMEABILITY_MODELS",
    "relative_permeability_model",
    "PorousMediaProperties",
]
