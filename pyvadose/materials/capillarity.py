"""Capillarity models: pressure head to saturation and back.

θ(h) = θ_r + (θ_s − θ_r) Se(h),   Se = 1 for h ≥ 0

Classes
-------
CapillarityModel
    Abstract base.  Holds a reference to the saturation field it updates.
VanGenuchten
    Van Genuchten (1980) retention curve.
BrooksCorey
    Brooks-Corey retention curve.
Linear
    Saturation linear in pressure head down to a residual head.

Functions
---------
capillarity_model
    Build the variant named in the transport properties.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import numpy as np
from numpy.typing import ArrayLike

from pyvadose.errors import ConfigurationError, check_field, require_keys

logger = logging.getLogger(__name__)

#: Coefficient names accepted in each variant's coefficient block.  The
#: block is shared by the capillarity and relative permeability variant
#: of the same name.
VARIANT_COEFFICIENTS: dict[str, tuple[str, ...]] = {
    "van_genuchten": ("alpha", "n"),
    "brooks_corey": ("h_b", "lambda_bc"),
    "linear": ("h_r",),
}


class CapillarityModel(ABC):
    """Abstract capillarity model.

    Args:
        theta: Saturation field, updated in place by :meth:`correct_and_sb`.
        theta_r: Residual saturation.
        theta_s: Saturated saturation.
    """

    name: str

    def __init__(self, theta: np.ndarray, theta_r: float, theta_s: float) -> None:
        if not isinstance(theta, np.ndarray) or theta.dtype.kind != "f":
            raise TypeError("theta must be a floating-point numpy array.")
        if not 0.0 <= theta_r < theta_s <= 1.0:
            raise ConfigurationError(
                f"{self.name}: need 0 <= theta_r < theta_s <= 1, "
                f"got theta_r={theta_r}, theta_s={theta_s}"
            )
        self.theta = theta
        self.theta_r = float(theta_r)
        self.theta_s = float(theta_s)

    @abstractmethod
    def effective_saturation(self, h: ArrayLike) -> np.ndarray:
        """Effective saturation Se(h) ∈ [0, 1].

        Args:
            h: Pressure head (m), negative in the unsaturated zone.
        """

    @abstractmethod
    def _capillary_head(self, Se: np.ndarray) -> np.ndarray:
        """Capillary head h_c ≥ 0 with Se(−h_c) = Se."""

    def water_content(self, h: ArrayLike) -> np.ndarray:
        """Saturation θ(h); exactly ``theta_s`` where Se = 1."""
        Se = self.effective_saturation(h)
        theta = self.theta_r + (self.theta_s - self.theta_r) * Se
        return np.where(Se >= 1.0, self.theta_s, theta)

    def capacity(self, h: ArrayLike) -> np.ndarray:
        """Specific moisture capacity C(h) = dθ/dh.

        Central difference; variants override with the analytic form.
        """
        h_arr = np.asarray(h, dtype=float)
        eps = 1e-6
        return (self.water_content(h_arr + eps) - self.water_content(h_arr - eps)) / (
            2.0 * eps
        )

    def correct_and_sb(self, h: ArrayLike, time: float | None = None) -> np.ndarray:
        """Update the saturation field from the pressure head.

        Args:
            h: Pressure head per cell.
            time: Simulation time, reported if the result is invalid.

        Returns:
            The (updated) saturation field.

        Raises:
            NumericalInstabilityError: If a saturation is non-finite or
                outside ``[theta_r, theta_s]``.
        """
        theta_new = check_field(
            "theta", self.water_content(h), self.theta_r, self.theta_s, time
        )
        self.theta[...] = theta_new
        return self.theta

    def capillary_pressure(self, theta: ArrayLike) -> np.ndarray:
        """Capillary head (m, ≥ 0) for a given saturation.

        The pressure head is its negative.  Infinite at residual
        saturation for curves without a finite residual head.
        """
        th = check_field("theta", theta, self.theta_r, self.theta_s)
        Se = np.clip((th - self.theta_r) / (self.theta_s - self.theta_r), 0.0, 1.0)
        with np.errstate(divide="ignore"):
            return self._capillary_head(Se)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(theta_r={self.theta_r}, theta_s={self.theta_s})"
        )


class VanGenuchten(CapillarityModel):
    """Van Genuchten (1980) retention model.

    Se(h) = [1 + (α|h|)^n]^(−m),   m = 1 − 1/n

    Args:
        theta: Saturation field.
        theta_r: Residual saturation.
        theta_s: Saturated saturation.
        alpha: Inverse of air-entry head (1/m).
        n: Shape parameter (> 1).
    """

    name = "van_genuchten"

    def __init__(
        self,
        theta: np.ndarray,
        theta_r: float,
        theta_s: float,
        alpha: float = 0.01,
        n: float = 1.5,
    ) -> None:
        super().__init__(theta, theta_r, theta_s)
        if alpha <= 0.0:
            raise ConfigurationError(f"van_genuchten: alpha must be > 0, got {alpha}")
        if n <= 1.0:
            raise ConfigurationError(f"van_genuchten: n must be > 1, got {n}")
        self.alpha = float(alpha)
        self.n = float(n)

    @property
    def m(self) -> float:
        """Van Genuchten m parameter: m = 1 - 1/n."""
        return 1.0 - 1.0 / self.n

    def effective_saturation(self, h: ArrayLike) -> np.ndarray:
        h_arr = np.asarray(h, dtype=float)
        suction = np.maximum(-h_arr, 0.0)
        return (1.0 + (self.alpha * suction) ** self.n) ** (-self.m)

    def capacity(self, h: ArrayLike) -> np.ndarray:
        h_arr = np.asarray(h, dtype=float)
        suction = np.maximum(-h_arr, 0.0)
        alpha_h_n = (self.alpha * suction) ** self.n
        denom = 1.0 + alpha_h_n
        return np.where(
            h_arr >= 0.0,
            0.0,
            (self.theta_s - self.theta_r)
            * self.n
            * self.m
            * alpha_h_n
            / (suction + 1e-300)
            * denom ** (-(self.m + 1)),
        )

    def _capillary_head(self, Se: np.ndarray) -> np.ndarray:
        return (Se ** (-1.0 / self.m) - 1.0) ** (1.0 / self.n) / self.alpha


class BrooksCorey(CapillarityModel):
    """Brooks-Corey retention model.

    Se = (h_b / |h|)^λ   for h < −h_b
    Se = 1                for h ≥ −h_b

    Args:
        theta: Saturation field.
        theta_r: Residual saturation.
        theta_s: Saturated saturation.
        h_b: Bubbling (air-entry) head (m, positive).
        lambda_bc: Pore-size distribution index.
    """

    name = "brooks_corey"

    def __init__(
        self,
        theta: np.ndarray,
        theta_r: float,
        theta_s: float,
        h_b: float = 0.5,
        lambda_bc: float = 2.0,
    ) -> None:
        super().__init__(theta, theta_r, theta_s)
        if h_b <= 0.0:
            raise ConfigurationError(f"brooks_corey: h_b must be > 0, got {h_b}")
        if lambda_bc <= 0.0:
            raise ConfigurationError(
                f"brooks_corey: lambda_bc must be > 0, got {lambda_bc}"
            )
        self.h_b = float(h_b)
        self.lambda_bc = float(lambda_bc)

    def effective_saturation(self, h: ArrayLike) -> np.ndarray:
        h_arr = np.asarray(h, dtype=float)
        # Suction below the bubbling head maps to Se = 1
        suction = np.maximum(-h_arr, self.h_b)
        return (self.h_b / suction) ** self.lambda_bc

    def capacity(self, h: ArrayLike) -> np.ndarray:
        h_arr = np.asarray(h, dtype=float)
        suction = np.maximum(-h_arr, self.h_b)
        dSe = self.lambda_bc * self.h_b ** self.lambda_bc * suction ** (
            -self.lambda_bc - 1.0
        )
        return np.where(-h_arr > self.h_b, (self.theta_s - self.theta_r) * dSe, 0.0)

    def _capillary_head(self, Se: np.ndarray) -> np.ndarray:
        return self.h_b * Se ** (-1.0 / self.lambda_bc)


class Linear(CapillarityModel):
    """Saturation linear in pressure head.

    Se = 1 + h / h_r   for −h_r < h < 0, clipped to [0, 1].

    Args:
        theta: Saturation field.
        theta_r: Residual saturation.
        theta_s: Saturated saturation.
        h_r: Capillary head at residual saturation (m, positive).
    """

    name = "linear"

    def __init__(
        self,
        theta: np.ndarray,
        theta_r: float,
        theta_s: float,
        h_r: float = 1.0,
    ) -> None:
        super().__init__(theta, theta_r, theta_s)
        if h_r <= 0.0:
            raise ConfigurationError(f"linear: h_r must be > 0, got {h_r}")
        self.h_r = float(h_r)

    def effective_saturation(self, h: ArrayLike) -> np.ndarray:
        h_arr = np.asarray(h, dtype=float)
        return np.clip(1.0 + h_arr / self.h_r, 0.0, 1.0)

    def capacity(self, h: ArrayLike) -> np.ndarray:
        h_arr = np.asarray(h, dtype=float)
        inside = (h_arr < 0.0) & (h_arr > -self.h_r)
        return np.where(inside, (self.theta_s - self.theta_r) / self.h_r, 0.0)

    def _capillary_head(self, Se: np.ndarray) -> np.ndarray:
        return (1.0 - Se) * self.h_r


CAPILLARITY_MODELS: dict[str, type[CapillarityModel]] = {
    "van_genuchten": VanGenuchten,
    "brooks_corey": BrooksCorey,
    "linear": Linear,
}


def variant_coefficients(properties: Any, name: str) -> dict[str, Any]:
    """Validated coefficient block of variant *name*."""
    context = f"model_coefficients.{name}"
    coeffs = properties.coefficients(name)
    require_keys(coeffs, set(VARIANT_COEFFICIENTS[name]), context)
    try:
        return {key: float(value) for key, value in coeffs.items()}
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{context}: coefficients must be numbers, got {coeffs}") from exc


def capillarity_model(properties: Any, theta: np.ndarray) -> CapillarityModel:
    """Build the capillarity variant named in *properties*.

    Args:
        properties: A :class:`~pyvadose.config.TransportProperties`.
        theta: Saturation field the model will update.

    Raises:
        ConfigurationError: If the variant name or a coefficient is unknown.
    """
    name = properties.capillarity_model
    if name not in CAPILLARITY_MODELS:
        raise ConfigurationError(
            f"Unknown capillarity_model {name!r}.  "
            f"Available: {sorted(CAPILLARITY_MODELS)}"
        )
    coeffs = variant_coefficients(properties, name)
    model = CAPILLARITY_MODELS[name](
        theta, properties.theta_r, properties.theta_s, **coeffs
    )
    logger.info("Selecting capillarity model %s %s", name, coeffs)
    return model
