"""Ohmic bosonic bath providing the rate and Lamb-shift densities of a Davies generator."""

from __future__ import annotations

import numpy as np
from scipy import integrate

from .davies import DaviesGenerator
from .units import temperature_2_beta

__all__ = ["OhmicBath", "davies_generator"]


class OhmicBath:
    """Ohmic bath with exponential cutoff.

    The rate density is

    ``γ(ω) = 2πηω e^{-|ω|/ωc} / (1 - e^{-βω})``

    with limit ``2πη/β`` at ``ω = 0``, so that ``γ(-ω) = e^{-βω} γ(ω)``
    (detailed balance). The Lamb-shift density is the principal-value
    integral ``S(ω) = -(1/2π) P∫ γ(x) / (x - ω) dx``.

    Parameters
    ----------
    eta : float
        Dimensionless system-bath coupling strength.
    fc : float
        Cutoff frequency in GHz.
    T : float
        Bath temperature in mK.
    """

    def __init__(self, eta: float, fc: float, T: float) -> None:
        if eta < 0:
            raise ValueError("eta must be non-negative.")
        if fc <= 0 or T <= 0:
            raise ValueError("Cutoff frequency and temperature must be positive.")
        self.eta = eta
        self.fc = fc
        self.T = T
        self.omega_c = 2 * np.pi * fc
        self.beta = float(temperature_2_beta(T))

    def gamma(self, w):
        """Rate density ``γ(ω)`` in GHz (angular)."""
        w = np.asarray(w, dtype=float)
        safe = np.where(w == 0, 1.0, w)
        with np.errstate(over="ignore"):
            val = (
                2 * np.pi * self.eta * safe * np.exp(-np.abs(safe) / self.omega_c)
                / -np.expm1(-self.beta * safe)
            )
        return np.where(w == 0, 2 * np.pi * self.eta / self.beta, val)

    def _lamb_shift(self, w):
        lim = max(30 * self.omega_c, 2 * abs(w) + self.omega_c)
        pv, _ = integrate.quad(
            lambda x: float(self.gamma(x)), -lim, lim, weight="cauchy", wvar=w, limit=200
        )
        return -pv / (2 * np.pi)

    def S(self, w):
        """Lamb-shift density ``S(ω)``."""
        w = np.asarray(w, dtype=float)
        return np.vectorize(self._lamb_shift, otypes=[float])(w)

    def __repr__(self):
        return f"OhmicBath(eta={self.eta}, fc={self.fc}, T={self.T})"


def davies_generator(bath, coupling):
    """:class:`DaviesGenerator` with the rate and Lamb-shift densities of ``bath``."""
    return DaviesGenerator(coupling, bath.gamma, bath.S)
