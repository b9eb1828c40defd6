"""Quantum-trajectory unraveling of the adiabatic master equation.

Between jumps a trajectory evolves with the non-Hermitian generator written
by :meth:`AMETrajectoryOperator.update_cache`; at a jump one channel is drawn
by :meth:`AMETrajectoryOperator.jump` with probability proportional to its
instantaneous rate:

    1. Transition ``b -> a`` of channel ``i``: weight ``γ_ab |A_ab|² φ_b``,
       operator ``√γ_ab A_ab |a⟩⟨b|``.
    2. Aggregated dephasing of channel ``i``: weight ``Σ_b γ(0) |A_bb|² φ_b``,
       operator ``Σ_l √γ(0) A_ll |l⟩⟨l|``.

Here ``A = v† op_i v`` is the coupling in the instantaneous eigenbasis and
``φ_b = |⟨b|u⟩|²`` the population of level ``b``. The total weight equals the
norm loss rate of the no-jump evolution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .config import EIG_MAXITER, EIG_NCV, EIG_TOL
from .eigen import build_eigen_solver, prepare_hamiltonian
from .errors import DimensionMismatchError
from .params import rescale

logger = logging.getLogger(__name__)

__all__ = [
    "JumpSampler",
    "JumpBasis",
    "AMETrajectoryOperator",
    "DenseAMETrajectoryOperator",
    "SparseAMETrajectoryOperator",
    "build_trajectory_operator",
]


class JumpSampler:
    """Weighted draw of a single jump tag from a seedable random source.

    Parameters
    ----------
    seed : int, numpy.random.Generator or None
        Seed or generator. One sampler per trajectory keeps trajectories
        reproducible.
    """

    def __init__(self, seed=None) -> None:
        if isinstance(seed, np.random.Generator):
            self.rng = seed
        else:
            self.rng = np.random.default_rng(seed)

    def sample(self, tags, weights):
        """Return one element of ``tags`` with probability proportional to ``weights``."""
        weights = np.asarray(weights, dtype=float)
        if weights.shape != (len(tags),):
            raise DimensionMismatchError(
                f"Got weights of shape {weights.shape} for {len(tags)} tags."
            )
        if not np.all(np.isfinite(weights)) or np.any(weights < 0):
            raise ValueError("Jump weights must be finite and non-negative.")
        total = weights.sum()
        if total <= 0:
            raise ValueError("No jump channel has a positive rate.")
        return tags[self.rng.choice(len(tags), p=weights / total)]


@dataclass
class JumpBasis:
    """Eigenbasis data shared by the candidates of one jump evaluation.

    Attributes
    ----------
    v : numpy.ndarray
        Instantaneous eigenvectors (``dim`` x ``lvl``).
    sigma : list of numpy.ndarray
        Coupling operators rotated into the eigenbasis, one per channel.
    gamma : numpy.ndarray
        Scaled rates ``γ(ω_ba)``.
    """

    v: np.ndarray
    sigma: list
    gamma: np.ndarray


class AMETrajectoryOperator:
    """Effective generator and jump sampler of one AME trajectory.

    Use :func:`build_trajectory_operator` to construct the dense or sparse
    variant. An instance owns its eigen-solver warm start and its random
    generator, and must serve a single trajectory.
    """

    def __init__(self, hamiltonian, davies, lvl, solver, sampler=None) -> None:
        if davies.dim != hamiltonian.dim:
            raise DimensionMismatchError(
                f"Coupling operators have dimension {davies.dim}, "
                f"Hamiltonian has dimension {hamiltonian.dim}."
            )
        self.hamiltonian = hamiltonian
        self.davies = davies
        self.lvl = lvl
        self.solver = solver
        self.sampler = sampler if sampler is not None else JumpSampler()
        self.dim = hamiltonian.dim

    def eigen_decomp(self, s):
        return self.solver(self.hamiltonian(s))

    def update_cache(self, cache, tf, t, unit_time=False):
        """Overwrite ``cache`` with the no-jump generator at time ``t``.

        The generator is ``v diag(λ) v†`` with

        ``λ_b = -i·tf·w_b - Σ_i Σ_a |A_ab|² (½γ_ab + i·S_ab)``

        so that ``du = cache @ u`` propagates a trajectory between jumps.
        """
        if cache.shape != (self.dim, self.dim):
            raise DimensionMismatchError(
                f"Cache has shape {cache.shape}, expected {(self.dim, self.dim)}."
            )
        scale, s = rescale(tf, t, unit_time)
        w, v = self.eigen_decomp(s)
        omega_ba = w[None, :] - w[:, None]
        gm, sm = self.davies.rates(omega_ba, scale)
        vh = v.conj().T

        lam = -1.0j * scale * w.astype(np.complex128)
        for op in self.davies.coupling(s):
            A2 = np.abs(vh @ (op @ v)) ** 2
            lam -= (A2 * (0.5 * gm + 1.0j * sm)).sum(axis=0)
        cache[...] = (v * lam) @ vh

    def jump_candidates(self, u, tf, t, unit_time=False):
        """Enumerate every jump channel with its weight.

        Returns
        -------
        tags : list of tuple
            ``(channel, origin, destination)`` for each ordered pair of
            distinct levels, followed per channel by the dephasing sentinel
            ``(channel, None, None)``. Tag ``(i, a, b)`` is the transition
            from level ``b`` to level ``a``, matching ``A_ab``.
        weights : numpy.ndarray
            Transition rate times population for each tag.
        basis : JumpBasis
            Data needed to build the jump operator of any tag.
        """
        u = np.asarray(u)
        if u.shape != (self.dim,):
            raise DimensionMismatchError(f"State has shape {u.shape}, expected {(self.dim,)}.")
        scale, s = rescale(tf, t, unit_time)
        w, v = self.eigen_decomp(s)
        gm = self.davies.gamma_matrix(w[None, :] - w[:, None], scale)
        vh = v.conj().T
        phi = np.abs(vh @ u) ** 2
        sigma = [vh @ (op @ v) for op in self.davies.coupling(s)]

        tags = []
        weights = []
        for i, A in enumerate(sigma):
            gA = gm * np.abs(A) ** 2
            for b in range(self.lvl):
                for a in range(self.lvl):
                    if a != b:
                        tags.append((i, a, b))
                        weights.append(gA[a, b] * phi[b])
            tags.append((i, None, None))
            weights.append(np.diagonal(gA) @ phi)
        return tags, np.asarray(weights), JumpBasis(v, sigma, gm)

    def jump_operator(self, tag, basis):
        """Jump operator of ``tag`` in the lab frame (``dim`` x ``dim``)."""
        i, a, b = tag
        v = basis.v
        A = basis.sigma[i]
        if a is None:
            d = np.sqrt(basis.gamma[0, 0]) * np.diagonal(A)
            return (v * d) @ v.conj().T
        return np.sqrt(basis.gamma[a, b]) * A[a, b] * np.outer(v[:, a], v[:, b].conj())

    def sample_jump(self, u, tf, t, unit_time=False):
        """Draw one jump; return ``(tag, operator)``."""
        tags, weights, basis = self.jump_candidates(u, tf, t, unit_time)
        tag = self.sampler.sample(tags, weights)
        logger.debug("Jump %s at t=%g", tag, t)
        return tag, self.jump_operator(tag, basis)

    def jump(self, u, tf, t, unit_time=False):
        """Jump operator to apply to the state ``u`` at time ``t``."""
        return self.sample_jump(u, tf, t, unit_time)[1]


class DenseAMETrajectoryOperator(AMETrajectoryOperator):
    """Trajectory operator for dense Hamiltonians."""


class SparseAMETrajectoryOperator(AMETrajectoryOperator):
    """Trajectory operator for sparse Hamiltonians with ARPACK warm start."""

    @property
    def warm_start(self):
        return self.solver.warm_start


def build_trajectory_operator(
    hamiltonian,
    davies,
    lvl=None,
    *,
    eig_tol=EIG_TOL,
    maxiter=EIG_MAXITER,
    ncv=EIG_NCV,
    v0=None,
    seed=None,
):
    """Construct the trajectory operator matching the storage of ``hamiltonian``.

    Parameters
    ----------
    hamiltonian : Hamiltonian
        Lab-frame Hamiltonian (dense or sparse).
    davies : DaviesGenerator
        Dissipator data.
    lvl : int, optional
        Number of instantaneous levels kept, defaults to the full dimension.
    eig_tol, maxiter, ncv, v0
        ARPACK settings and warm-start vector for sparse Hamiltonians.
    seed : int, numpy.random.Generator or None
        Random source of the jump sampler.
    """
    if hamiltonian.is_adiabatic_frame:
        raise ValueError("Trajectory operators require a lab-frame Hamiltonian.")
    if lvl is None:
        lvl = hamiltonian.dim
    hamiltonian, lvl = prepare_hamiltonian(hamiltonian, lvl)
    solver = build_eigen_solver(hamiltonian, lvl, tol=eig_tol, maxiter=maxiter, ncv=ncv, v0=v0)
    sampler = JumpSampler(seed)
    if hamiltonian.is_sparse:
        return SparseAMETrajectoryOperator(hamiltonian, davies, lvl, solver, sampler)
    return DenseAMETrajectoryOperator(hamiltonian, davies, lvl, solver, sampler)
