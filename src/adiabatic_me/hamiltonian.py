"""Time-dependent Hamiltonians consumed by the AME operators.

Both Hamiltonian flavours are affine combinations ``H(s) = Σ_i f_i(s) M_i`` of
constant matrices with scalar schedules. The matrices can be supplied as numpy
arrays, ``scipy.sparse`` matrices or ``qutip.Qobj`` instances.
"""

from __future__ import annotations

from typing import Callable, Sequence

import numpy as np
import qutip
import scipy.sparse as sp
from scipy.linalg import eigh

from .errors import DimensionMismatchError
from .params import rescale

__all__ = ["Hamiltonian", "AdiabaticFrameHamiltonian", "as_matrix"]


def as_matrix(op, sparse: bool = False):
    """Convert ``op`` to a dense ``ndarray`` or a CSR matrix.

    Parameters
    ----------
    op : array_like, scipy.sparse matrix or qutip.Qobj
        Operator to convert.
    sparse : bool, default=False
        Return a ``scipy.sparse.csr_matrix`` instead of a dense array.
    """
    if isinstance(op, qutip.Qobj):
        op = op.full()
    if sp.issparse(op):
        return sp.csr_matrix(op) if sparse else op.toarray()
    mat = np.asarray(op)
    return sp.csr_matrix(mat) if sparse else mat


def _check_square(mats, what):
    shapes = {m.shape for m in mats}
    if len(shapes) != 1:
        raise DimensionMismatchError(f"{what} matrices have inconsistent shapes: {sorted(shapes)}")
    (shape,) = shapes
    if len(shape) != 2 or shape[0] != shape[1]:
        raise DimensionMismatchError(f"{what} matrices must be square, got shape {shape}")
    return shape[0]


class Hamiltonian:
    """Affine time-dependent Hamiltonian ``H(s) = Σ_i f_i(s) M_i``.

    Parameters
    ----------
    funcs : sequence of callable
        Scalar schedules ``f_i(s)``. Each is evaluated once at ``s = 0`` to
        determine the matrix dtype, so a schedule returning complex values
        marks the Hamiltonian as complex.
    mats : sequence of matrices
        Constant Hermitian matrices ``M_i``, all of the same square shape.
    sparse : bool or None, default=None
        Storage trait. ``None`` selects sparse storage only when every matrix
        is already a ``scipy.sparse`` matrix.

    Examples
    --------
    Transverse-field annealing of a single qubit:

    >>> import qutip
    >>> H = Hamiltonian([lambda s: 1 - s, lambda s: s], [-qutip.sigmax(), -qutip.sigmaz()])
    >>> H(0.5).shape
    (2, 2)
    """

    is_adiabatic_frame = False

    def __init__(
        self,
        funcs: Sequence[Callable[[float], complex]],
        mats: Sequence,
        sparse: bool | None = None,
    ) -> None:
        if len(funcs) != len(mats):
            raise DimensionMismatchError(
                f"Got {len(funcs)} schedules for {len(mats)} matrices."
            )
        if not mats:
            raise ValueError("A Hamiltonian needs at least one term.")
        if sparse is None:
            sparse = all(sp.issparse(m) for m in mats)
        self.is_sparse = bool(sparse)
        self.funcs = list(funcs)
        self.mats = [as_matrix(m, self.is_sparse) for m in mats]
        self.dim = _check_square(self.mats, "Hamiltonian")
        # complex schedules make H(s) complex even on real matrices
        self.dtype = np.result_type(
            *(m.dtype for m in self.mats), *(np.asarray(f(0.0)).dtype for f in self.funcs)
        )

    @property
    def shape(self):
        return (self.dim, self.dim)

    def __call__(self, s):
        """Hamiltonian matrix at reduced time ``s``."""
        hmat = self.mats[0] * self.funcs[0](s)
        for f, m in zip(self.funcs[1:], self.mats[1:]):
            hmat = hmat + m * f(s)
        return hmat

    def to_dense(self) -> "Hamiltonian":
        """Same Hamiltonian with dense storage."""
        return Hamiltonian(self.funcs, self.mats, sparse=False)

    def __repr__(self):
        kind = "sparse" if self.is_sparse else "dense"
        return f"Hamiltonian(dim={self.dim}, terms={len(self.mats)}, {kind})"


class AdiabaticFrameHamiltonian:
    """Hamiltonian written in the instantaneous eigenbasis (adiabatic frame).

    In the adiabatic frame the state obeys

    ``dρ/ds = -i [tf·E(s) + G(s), ρ]``

    where ``E(s)`` is the diagonal matrix of instantaneous energies and ``G(s)``
    is the geometric term generated by the rotation of the eigenbasis.

    Parameters
    ----------
    geometric_funcs, geometric_mats : sequence
        Schedules and matrices of the geometric part ``G(s)``. May be empty.
    adiabatic_funcs, adiabatic_mats : sequence
        Schedules and diagonal matrices of the adiabatic part ``E(s)``.
    """

    is_adiabatic_frame = True
    is_sparse = False

    def __init__(self, geometric_funcs, geometric_mats, adiabatic_funcs, adiabatic_mats):
        self.adiabatic = Hamiltonian(adiabatic_funcs, adiabatic_mats, sparse=False)
        for m in self.adiabatic.mats:
            if np.count_nonzero(m - np.diag(np.diag(m))):
                raise ValueError("Adiabatic-frame energy matrices must be diagonal.")
        self.dim = self.adiabatic.dim
        if geometric_mats:
            self.geometric = Hamiltonian(geometric_funcs, geometric_mats, sparse=False)
            if self.geometric.dim != self.dim:
                raise DimensionMismatchError(
                    f"Geometric part has dimension {self.geometric.dim}, "
                    f"adiabatic part has dimension {self.dim}."
                )
        else:
            self.geometric = None
        self.dtype = np.complex128

    @property
    def shape(self):
        return (self.dim, self.dim)

    def _geometric(self, s):
        if self.geometric is None:
            return np.zeros((self.dim, self.dim), dtype=self.dtype)
        return self.geometric(s)

    def __call__(self, s):
        """Instantaneous energies ``E(s)`` (diagonal matrix)."""
        return self.adiabatic(s)

    def frame_matrix(self, tf, t, unit_time=False):
        """Generator of the moving-frame unitary evolution at integrator time ``t``."""
        scale, s = rescale(tf, t, unit_time)
        return scale * self.adiabatic(s) + (scale / tf) * self._geometric(s)

    def frame_update(self, du, u, tf, t, unit_time=False):
        """Write ``-i[H_frame, u]`` into ``du`` (overwrites ``du``)."""
        hmat = self.frame_matrix(tf, t, unit_time)
        du[...] = -1.0j * (hmat @ u - u @ hmat)

    def omega_matrix(self, s, lvl):
        """Gap matrix ``ω[a, b] = E_b - E_a`` of the lowest ``lvl`` levels."""
        w = np.real(np.diag(self.adiabatic(s)))[:lvl]
        return w[None, :] - w[:, None]

    def rwa_eigen(self, tf, s, lvl):
        """Dressed energies and states of ``E(s) + G(s)/tf`` for the rotating-wave operator.

        Returns
        -------
        w : numpy.ndarray
            Lowest ``lvl`` eigenvalues, ascending.
        v : numpy.ndarray
            Corresponding eigenvectors as columns.
        """
        hmat = self.adiabatic(s) + self._geometric(s) / tf
        return eigh(hmat, subset_by_index=[0, lvl - 1])

    def __repr__(self):
        return f"AdiabaticFrameHamiltonian(dim={self.dim})"
