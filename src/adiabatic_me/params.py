"""Parameters handed to the operators by an external integrator."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["EvolutionParams", "rescale"]


def rescale(tf: float, t: float, unit_time: bool = False) -> tuple[float, float]:
    """Map integrator time ``t`` to ``(scale, s)``.

    In real-time mode the integrator runs in the dimensionless annealing time
    ``s = t`` and every generator is multiplied by ``tf``. In unit-time mode
    the integrator runs in physical time ``t ∈ [0, tf]``; generators are left
    unscaled and evaluated at ``s = t / tf``.
    """
    if unit_time:
        return 1.0, t / tf
    return tf, t


@dataclass(frozen=True)
class EvolutionParams:
    """Total annealing time and time-mode flag.

    Attributes
    ----------
    tf : float
        Total annealing time, must be positive.
    unit_time : bool
        ``False`` for real-time mode (integrate over ``s ∈ [0, 1]``),
        ``True`` for unit-time mode (integrate over ``t ∈ [0, tf]``).
    """

    tf: float
    unit_time: bool = False

    def __post_init__(self):
        if not self.tf > 0:
            raise ValueError(f"tf must be positive, got {self.tf}")

    def rescale(self, t: float) -> tuple[float, float]:
        return rescale(self.tf, t, self.unit_time)


def resolve(p, t):
    """``(scale, s)`` for any params object exposing ``tf`` and optionally ``unit_time``."""
    return rescale(p.tf, t, getattr(p, "unit_time", False))
