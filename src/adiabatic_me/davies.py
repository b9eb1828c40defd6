"""Davies generator: coupling operators, spectral densities and the dissipator.

The dissipator is assembled in the instantaneous eigenbasis from the gap
matrix ``ω_ba[a, b] = w[b] - w[a]``. With this convention ``ω_ba[a, b] > 0``
labels the downward transition ``b -> a`` and ``γ(ω_ba[a, b])`` is its rate.
"""

from __future__ import annotations

from typing import Callable, Sequence

import numpy as np
import scipy.sparse as sp

from .errors import DimensionMismatchError
from .hamiltonian import as_matrix
from .params import rescale

__all__ = [
    "CouplingOperators",
    "ConstantCouplings",
    "DaviesGenerator",
    "adiabatic_me_update",
]


class CouplingOperators:
    """Ordered system-bath coupling operators ``[f_1(s) A_1, f_2(s) A_2, ...]``.

    The number of channels is fixed at construction and does not change with
    ``s``.

    Parameters
    ----------
    ops : sequence of matrices
        Hermitian coupling operators, all of the same square shape.
    funcs : sequence of callable, optional
        Scalar schedules multiplying each operator. Constant couplings when
        omitted.
    """

    def __init__(self, ops: Sequence, funcs: Sequence[Callable[[float], float]] | None = None) -> None:
        if not ops:
            raise ValueError("At least one coupling operator is required.")
        if funcs is not None and len(funcs) != len(ops):
            raise DimensionMismatchError(
                f"Got {len(funcs)} schedules for {len(ops)} coupling operators."
            )
        self.ops = [op if sp.issparse(op) else as_matrix(op) for op in ops]
        shapes = {op.shape for op in self.ops}
        if len(shapes) != 1:
            raise DimensionMismatchError(
                f"Coupling operators have inconsistent shapes: {sorted(shapes)}"
            )
        (shape,) = shapes
        if len(shape) != 2 or shape[0] != shape[1]:
            raise DimensionMismatchError(f"Coupling operators must be square, got {shape}")
        self.dim = shape[0]
        self.funcs = None if funcs is None else list(funcs)

    def __len__(self):
        return len(self.ops)

    def __call__(self, s):
        if self.funcs is None:
            return self.ops
        return [op * f(s) for f, op in zip(self.funcs, self.ops)]


class ConstantCouplings(CouplingOperators):
    """Time-independent coupling operators."""

    def __init__(self, ops: Sequence) -> None:
        super().__init__(ops)


def _evaluate_density(func, omega):
    """Evaluate a spectral density elementwise, broadcasting scalar results."""
    values = np.asarray(func(omega), dtype=float)
    return np.broadcast_to(values, omega.shape)


def adiabatic_me_update(du, rho, A, gamma, S):
    """Add the contribution of one coupling operator to ``du``.

    Parameters
    ----------
    du : numpy.ndarray
        Derivative buffer (``lvl`` x ``lvl``), updated in place.
    rho : numpy.ndarray
        Density matrix in the same basis as ``A``.
    A : numpy.ndarray
        Coupling operator in the working basis.
    gamma, S : numpy.ndarray
        Rates ``γ(ω_ba)`` and Lamb-shift densities ``S(ω_ba)``, already scaled.
    """
    A2 = np.abs(A) ** 2
    gA = gamma * A2
    # total rate out of each level, including its γ(0) diagonal part
    Gamma = gA.sum(axis=0)
    p = np.diagonal(rho)
    pop = gA @ p - Gamma * p

    dA = np.real(np.diagonal(A))
    coh = -0.5 * (Gamma[:, None] + Gamma[None, :]) + gamma[0, 0] * np.outer(dA, dA)
    np.fill_diagonal(coh, 0.0)
    du += coh * rho
    idx = np.diag_indices_from(du)
    du[idx] += pop

    h_ls = (S * A2).sum(axis=0)
    du += -1.0j * (h_ls[:, None] - h_ls[None, :]) * rho


class DaviesGenerator:
    """Davies (weak-coupling Markovian) generator.

    Parameters
    ----------
    coupling : CouplingOperators or sequence of matrices
        System-bath coupling operators. A plain sequence is wrapped into
        constant couplings.
    gamma : callable
        Rate density ``γ(ω) >= 0``. Called with numpy arrays of Bohr
        frequencies; detailed balance is encoded through the sign of ``ω``.
    S : callable
        Real Lamb-shift density ``S(ω)``.

    Notes
    -----
    Both call forms add to ``du`` and never overwrite it, so the unitary part
    can be computed separately into the same buffer.

    Time-mode contract: in real-time mode rates are scaled by ``tf`` and the
    couplings are evaluated at ``t``; in unit-time mode the ``tf`` factor is
    dropped and the couplings are evaluated at ``t / tf``.
    """

    def __init__(self, coupling, gamma, S) -> None:
        if not isinstance(coupling, CouplingOperators):
            coupling = CouplingOperators(coupling)
        self.coupling = coupling
        self.gamma = gamma
        self.S = S

    @property
    def dim(self):
        return self.coupling.dim

    def gamma_matrix(self, omega_ba, scale=1.0):
        """``scale * γ(ω_ba)`` evaluated elementwise."""
        return scale * _evaluate_density(self.gamma, np.asarray(omega_ba, dtype=float))

    def rates(self, omega_ba, scale=1.0):
        """``(γm, Sm)`` evaluated over the gap matrix and multiplied by ``scale``."""
        omega_ba = np.asarray(omega_ba, dtype=float)
        gm = self.gamma_matrix(omega_ba, scale)
        sm = scale * _evaluate_density(self.S, omega_ba)
        return gm, sm

    def __call__(self, du, rho, omega_ba, v, tf, t, unit_time=False):
        """Add the dissipator of ``rho`` (eigenbasis) to ``du``.

        Parameters
        ----------
        du, rho : numpy.ndarray
            ``lvl`` x ``lvl`` buffers in the eigenbasis.
        omega_ba : numpy.ndarray
            Gap matrix of the ``lvl`` levels.
        v : numpy.ndarray
            Eigenvectors (``dim`` x ``lvl``) used to rotate the couplings.
        tf, t : float
            Total annealing time and integrator time.
        unit_time : bool, default=False
            Time mode, see the class notes.
        """
        scale, s = rescale(tf, t, unit_time)
        gm, sm = self.rates(omega_ba, scale)
        vh = v.conj().T
        for op in self.coupling(s):
            A = vh @ (op @ v)
            adiabatic_me_update(du, rho, A, gm, sm)

    def frame_update(self, du, u, omega_ba, tf, t, unit_time=False):
        """Add the dissipator of ``u`` to ``du`` with couplings taken in the working basis.

        Used in the adiabatic frame, where the working basis already is the
        instantaneous eigenbasis. Only the leading block matching
        ``omega_ba`` is updated.
        """
        scale, s = rescale(tf, t, unit_time)
        gm, sm = self.rates(omega_ba, scale)
        lvl = gm.shape[0]
        block = du[:lvl, :lvl]
        for op in self.coupling(s):
            A = as_matrix(op)[:lvl, :lvl]
            adiabatic_me_update(block, u[:lvl, :lvl], A, gm, sm)
