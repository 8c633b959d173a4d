"""Coupling between the flow closure and the transported species."""

from pyvadose.coupling.saturation_flow import SaturationFlowCoupler

__all__ = ["SaturationFlowCoupler"]
