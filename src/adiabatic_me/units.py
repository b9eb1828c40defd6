"""Physical constants and conversions between temperature, frequency and β.

Temperatures are in mK, frequencies in GHz and ``β`` is expressed in units of
inverse angular frequency (ns), i.e. ``β = ħ / kT``.
"""

import numpy as np
from scipy.constants import Boltzmann, Planck, hbar

__all__ = [
    "hbar",
    "Planck",
    "Boltzmann",
    "temperature_2_beta",
    "temperature_2_freq",
    "beta_2_temperature",
    "freq_2_temperature",
]

# mK -> K combined with s -> ns or Hz -> GHz
_SCALE = 1e12


def temperature_2_beta(T):
    """Convert a temperature in mK to ``β`` in inverse angular frequency.

    Parameters
    ----------
    T : float or array_like
        Temperature in mK.

    Returns
    -------
    float or numpy.ndarray
        ``β = ħ / kT`` in ns.
    """
    return hbar * _SCALE / Boltzmann / np.asarray(T, dtype=float)


def temperature_2_freq(T):
    """Convert a temperature in mK to a frequency ``kT/h`` in GHz."""
    return Boltzmann * np.asarray(T, dtype=float) / Planck / _SCALE


def beta_2_temperature(beta):
    """Convert ``β`` in inverse angular frequency to a temperature in mK."""
    return hbar * _SCALE / Boltzmann / np.asarray(beta, dtype=float)


def freq_2_temperature(freq):
    """Convert a frequency in GHz to a temperature in mK."""
    return np.asarray(freq, dtype=float) * Planck * _SCALE / Boltzmann
