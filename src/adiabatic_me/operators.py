"""Adiabatic master equation right-hand sides for an external integrator.

Every operator is a callable ``op(du, u, p, t)`` writing ``dρ/dt`` into ``du``
for the density matrix ``u``. ``p`` carries the total annealing time ``tf``
and the time-mode flag ``unit_time`` (see :class:`~adiabatic_me.params.EvolutionParams`).
The representation strategy is fixed once by :func:`build_ame_operator`.
"""

from __future__ import annotations

import abc
import logging

import numpy as np

from .config import EIG_MAXITER, EIG_NCV, EIG_TOL
from .eigen import build_eigen_solver, prepare_hamiltonian
from .errors import DimensionMismatchError
from .params import resolve

logger = logging.getLogger(__name__)

__all__ = [
    "AMEOperator",
    "AdiabaticFrameAMEOperator",
    "DenseAMEOperator",
    "SparseAMEOperator",
    "RWAAMEOperator",
    "build_ame_operator",
]


class AMEOperator(abc.ABC):
    """Abstract adiabatic master equation operator.

    Instances own mutable scratch buffers and must be driven by a single
    integration loop. Parallel runs need one operator each.
    """

    def __init__(self, hamiltonian, davies, lvl: int) -> None:
        if davies.dim != hamiltonian.dim:
            raise DimensionMismatchError(
                f"Coupling operators have dimension {davies.dim}, "
                f"Hamiltonian has dimension {hamiltonian.dim}."
            )
        self.hamiltonian = hamiltonian
        self.davies = davies
        self.lvl = lvl
        self.shape = (hamiltonian.dim, hamiltonian.dim)

    @abc.abstractmethod
    def __call__(self, du, u, p, t) -> None:
        """Write the master equation derivative of ``u`` at time ``t`` into ``du``."""

    def _check_state(self, u):
        if u.shape != self.shape:
            raise DimensionMismatchError(
                f"Density matrix has shape {u.shape}, operator expects {self.shape}."
            )

    def ivp_rhs(self, p):
        """Flattened ``f(t, y)`` for ``scipy.integrate.solve_ivp``.

        Examples
        --------
        >>> from scipy.integrate import solve_ivp
        >>> sol = solve_ivp(op.ivp_rhs(p), (0, 1), rho0.reshape(-1))  # doctest: +SKIP
        """
        du = np.empty(self.shape, dtype=np.complex128)

        def rhs(t, y):
            self(du, y.reshape(self.shape), p, t)
            return du.reshape(-1).copy()

        return rhs


class _EigenbasisOperator(AMEOperator):
    """Assemble in a truncated eigenbasis, then rotate back to the lab frame."""

    def __init__(self, hamiltonian, davies, lvl):
        super().__init__(hamiltonian, davies, lvl)
        self.u_cache = np.empty((lvl, lvl), dtype=np.complex128)

    def _assemble(self, du, u, w, v, p, t):
        scale, _ = resolve(p, t)
        vh = v.conj().T
        rho = vh @ u @ v
        cache = self.u_cache
        cache[...] = -1.0j * scale * (w[:, None] - w[None, :]) * rho
        omega_ba = w[None, :] - w[:, None]
        self.davies(cache, rho, omega_ba, v, p.tf, t, getattr(p, "unit_time", False))
        du[...] = v @ cache @ vh


class _SolverOperator(_EigenbasisOperator):
    def __init__(self, hamiltonian, davies, lvl, solver):
        super().__init__(hamiltonian, davies, lvl)
        self.solver = solver

    def __call__(self, du, u, p, t):
        self._check_state(u)
        _, s = resolve(p, t)
        w, v = self.solver(self.hamiltonian(s))
        self._assemble(du, u, w, v, p, t)


class DenseAMEOperator(_SolverOperator):
    """AME operator for dense Hamiltonians, diagonalized exactly at every call."""


class SparseAMEOperator(_SolverOperator):
    """AME operator for sparse Hamiltonians.

    The lowest ``lvl`` levels are computed with ARPACK, warm-started from the
    ground state of the previous call.
    """

    @property
    def warm_start(self):
        return self.solver.warm_start


class RWAAMEOperator(_EigenbasisOperator):
    """Rotating-wave AME operator for adiabatic-frame Hamiltonians.

    The dissipator is assembled in the dressed basis of ``E(s) + G(s)/tf``.
    """

    def __call__(self, du, u, p, t):
        self._check_state(u)
        _, s = resolve(p, t)
        w, v = self.hamiltonian.rwa_eigen(p.tf, s, self.lvl)
        self._assemble(du, u, w, v, p, t)


class AdiabaticFrameAMEOperator(AMEOperator):
    """AME operator for Hamiltonians already expressed in the adiabatic frame.

    The Hamiltonian writes the moving-frame unitary term, the Davies
    generator adds the dissipator using the frame's own gap matrix.
    """

    def __call__(self, du, u, p, t):
        self._check_state(u)
        unit_time = getattr(p, "unit_time", False)
        _, s = resolve(p, t)
        self.hamiltonian.frame_update(du, u, p.tf, t, unit_time)
        omega_ba = self.hamiltonian.omega_matrix(s, self.lvl)
        self.davies.frame_update(du, u, omega_ba, p.tf, t, unit_time)


def build_ame_operator(
    hamiltonian,
    davies,
    lvl=None,
    *,
    control=None,
    rwa=False,
    eig_tol=EIG_TOL,
    maxiter=EIG_MAXITER,
    ncv=EIG_NCV,
    v0=None,
):
    """Select and construct the AME operator for ``hamiltonian``.

    Parameters
    ----------
    hamiltonian : Hamiltonian or AdiabaticFrameHamiltonian
        System Hamiltonian.
    davies : DaviesGenerator
        Dissipator data.
    lvl : int, optional
        Number of instantaneous levels kept. Defaults to the full dimension
        (reduced by one for sparse Hamiltonians).
    control : optional
        Annealing control hook. Only ``None`` is supported.
    rwa : bool, default=False
        Use the rotating-wave operator (adiabatic-frame Hamiltonians only).
    eig_tol, maxiter, ncv, v0
        ARPACK settings and warm-start vector for sparse Hamiltonians.

    Returns
    -------
    AMEOperator

    Raises
    ------
    NotImplementedError
        If a control hook is given.
    DimensionMismatchError
        If ``lvl`` or the coupling shapes do not fit the Hamiltonian.
    """
    if control is not None:
        raise NotImplementedError("Annealing controls are not supported by the AME operators.")
    if lvl is None:
        lvl = hamiltonian.dim

    if hamiltonian.is_adiabatic_frame:
        if not 1 <= lvl <= hamiltonian.dim:
            raise DimensionMismatchError(f"lvl must lie in [1, {hamiltonian.dim}], got {lvl}.")
        if rwa:
            return RWAAMEOperator(hamiltonian, davies, lvl)
        return AdiabaticFrameAMEOperator(hamiltonian, davies, lvl)
    if rwa:
        raise ValueError("The rotating-wave operator requires an AdiabaticFrameHamiltonian.")

    hamiltonian, lvl = prepare_hamiltonian(hamiltonian, lvl)
    if davies.dim != hamiltonian.dim:
        raise DimensionMismatchError(
            f"Coupling operators have dimension {davies.dim}, "
            f"Hamiltonian has dimension {hamiltonian.dim}."
        )
    solver = build_eigen_solver(hamiltonian, lvl, tol=eig_tol, maxiter=maxiter, ncv=ncv, v0=v0)
    if hamiltonian.is_sparse:
        logger.debug("Using sparse AME operator with %d levels", lvl)
        return SparseAMEOperator(hamiltonian, davies, lvl, solver)
    return DenseAMEOperator(hamiltonian, davies, lvl, solver)
