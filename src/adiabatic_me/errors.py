"""Exceptions raised by the adiabatic master equation kernel."""

__all__ = ["AMEError", "ConvergenceError", "DimensionMismatchError"]


class AMEError(Exception):
    """Base class for all errors raised by ``adiabatic_me``."""


class ConvergenceError(AMEError, RuntimeError):
    """Iterative eigen-solver stopped at ``maxiter`` without reaching ``tol``."""


class DimensionMismatchError(AMEError, ValueError):
    """Shapes of Hamiltonian, coupling operators, states or level count disagree."""
