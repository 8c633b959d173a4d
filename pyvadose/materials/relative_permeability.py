"""Relative permeability models.

kr(Se) ∈ [kr_min, 1], monotonic increasing, kr = 1 at θ_s.

Classes
-------
RelativePermeabilityModel
    Abstract base.
VanGenuchten
    Mualem-van Genuchten model.
BrooksCorey
    Burdine-Brooks-Corey model.
Linear
    kr = Se.

Functions
---------
relative_permeability_model
    Build the variant named in the transport properties.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import numpy as np
from numpy.typing import ArrayLike

from pyvadose.errors import ConfigurationError, check_field
from pyvadose.materials.capillarity import variant_coefficients

logger = logging.getLogger(__name__)


class RelativePermeabilityModel(ABC):
    """Abstract relative permeability model.

    Args:
        theta: Saturation field evaluated by :meth:`correct`.
        theta_r: Residual saturation.
        theta_s: Saturated saturation.
        kr_min: Floor applied at low saturation.
    """

    name: str
    #: Coefficients read from the variant's coefficient block.
    parameters: tuple[str, ...] = ()

    def __init__(
        self,
        theta: np.ndarray,
        theta_r: float,
        theta_s: float,
        kr_min: float = 1e-9,
    ) -> None:
        if not 0.0 <= kr_min < 1.0:
            raise ConfigurationError(f"{self.name}: kr_min must lie in [0, 1)")
        self.theta = theta
        self.theta_r = float(theta_r)
        self.theta_s = float(theta_s)
        self.kr_min = float(kr_min)

    @abstractmethod
    def _kr(self, Se: np.ndarray) -> np.ndarray:
        """Unfloored relative permeability of the effective saturation."""

    def effective_saturation(self, theta: ArrayLike, time: float | None = None) -> np.ndarray:
        """Se = (θ − θ_r) / (θ_s − θ_r).

        Raises:
            NumericalInstabilityError: If θ is outside ``[theta_r, theta_s]``.
        """
        th = check_field("theta", theta, self.theta_r, self.theta_s, time)
        Se = (th - self.theta_r) / (self.theta_s - self.theta_r)
        return np.clip(Se, 0.0, 1.0)

    def relative_permeability(
        self,
        theta: ArrayLike,
        time: float | None = None,
    ) -> np.ndarray:
        """Relative permeability of a saturation field.

        Args:
            theta: Saturation values.
            time: Simulation time, reported if the result is invalid.

        Returns:
            kr ∈ [kr_min, 1].
        """
        Se = self.effective_saturation(theta, time)
        kr = np.maximum(self._kr(Se), self.kr_min)
        return check_field("kr", kr, self.kr_min, 1.0, time)

    def correct(self, time: float | None = None) -> np.ndarray:
        """Relative permeability of the referenced saturation field."""
        return self.relative_permeability(self.theta, time)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kr_min={self.kr_min})"


class VanGenuchten(RelativePermeabilityModel):
    """Mualem-van Genuchten relative permeability.

    kr = Se^0.5 [1 − (1 − Se^(1/m))^m]²

    Args:
        n: Van Genuchten shape parameter (m = 1 − 1/n).
    """

    name = "van_genuchten"
    parameters = ("n",)

    def __init__(
        self,
        theta: np.ndarray,
        theta_r: float,
        theta_s: float,
        kr_min: float = 1e-9,
        n: float = 1.5,
    ) -> None:
        super().__init__(theta, theta_r, theta_s, kr_min)
        if n <= 1.0:
            raise ConfigurationError(f"van_genuchten: n must be > 1, got {n}")
        self.n = float(n)

    @property
    def m(self) -> float:
        return 1.0 - 1.0 / self.n

    def _kr(self, Se: np.ndarray) -> np.ndarray:
        inner = 1.0 - (1.0 - Se ** (1.0 / self.m)) ** self.m
        return Se ** 0.5 * inner ** 2


class BrooksCorey(RelativePermeabilityModel):
    """Burdine-Brooks-Corey relative permeability, kr = Se^(3 + 2/λ)."""

    name = "brooks_corey"
    parameters = ("lambda_bc",)

    def __init__(
        self,
        theta: np.ndarray,
        theta_r: float,
        theta_s: float,
        kr_min: float = 1e-9,
        lambda_bc: float = 2.0,
    ) -> None:
        super().__init__(theta, theta_r, theta_s, kr_min)
        if lambda_bc <= 0.0:
            raise ConfigurationError(
                f"brooks_corey: lambda_bc must be > 0, got {lambda_bc}"
            )
        self.lambda_bc = float(lambda_bc)

    def _kr(self, Se: np.ndarray) -> np.ndarray:
        return Se ** (3.0 + 2.0 / self.lambda_bc)


class Linear(RelativePermeabilityModel):
    """kr = Se."""

    name = "linear"

    def _kr(self, Se: np.ndarray) -> np.ndarray:
        return Se.copy()


RELATIVE_PERMEABILITY_MODELS: dict[str, type[RelativePermeabilityModel]] = {
    "van_genuchten": VanGenuchten,
    "brooks_corey": BrooksCorey,
    "linear": Linear,
}


def relative_permeability_model(
    properties: Any,
    theta: np.ndarray,
) -> RelativePermeabilityModel:
    """Build the relative permeability variant named in *properties*.

    Raises:
        ConfigurationError: If the variant name or a coefficient is unknown.
    """
    name = properties.relative_permeability_model
    if name not in RELATIVE_PERMEABILITY_MODELS:
        raise ConfigurationError(
            f"Unknown relative_permeability_model {name!r}.  "
            f"Available: {sorted(RELATIVE_PERMEABILITY_MODELS)}"
        )
    cls = RELATIVE_PERMEABILITY_MODELS[name]
    coeffs = variant_coefficients(properties, name)
    used = {k: v for k, v in coeffs.items() if k in cls.parameters}
    model = cls(theta, properties.theta_r, properties.theta_s, properties.kr_min, **used)
    logger.info("Selecting relative permeability model %s %s", name, used)
    return model
