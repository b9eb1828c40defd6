"""Truncated eigen-decomposition of instantaneous Hamiltonians.

Dense Hamiltonians are diagonalized exactly with LAPACK. Sparse Hamiltonians
go through ARPACK, warm-started from the ground state of the previous call so
that closely spaced evaluations along an annealing schedule converge quickly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import scipy.sparse as sp
from scipy.linalg import eigh
from scipy.sparse.linalg import ArpackNoConvergence, eigsh

from .config import EIG_MAXITER, EIG_NCV, EIG_TOL
from .errors import ConvergenceError, DimensionMismatchError

logger = logging.getLogger(__name__)

__all__ = [
    "WarmStart",
    "DenseEigenSolver",
    "SparseEigenSolver",
    "prepare_hamiltonian",
    "build_eigen_solver",
]


@dataclass
class WarmStart:
    """Ground eigenvector seeding the next sparse solve.

    Owned by exactly one :class:`SparseEigenSolver`; only replaced through
    :meth:`commit` once a decomposition has fully succeeded.
    """

    v0: np.ndarray | None = None

    def commit(self, v):
        self.v0 = np.array(v[:, 0], copy=True)


class DenseEigenSolver:
    """Exact Hermitian decomposition truncated to the lowest ``lvl`` levels."""

    is_sparse = False

    def __init__(self, lvl: int) -> None:
        self.lvl = lvl

    def __call__(self, hmat):
        """Return ``(w, v)`` with ascending ``w`` of length ``lvl``."""
        if sp.issparse(hmat):
            hmat = hmat.toarray()
        return eigh(hmat, subset_by_index=[0, self.lvl - 1])


class SparseEigenSolver:
    """ARPACK solver for the ``lvl`` smallest eigenpairs with warm start.

    Parameters
    ----------
    lvl : int
        Number of levels to compute. Must be smaller than the matrix dimension.
    tol : float
        Relative accuracy requested from ARPACK.
    maxiter : int
        Maximum number of Arnoldi update iterations.
    ncv : int
        Requested number of Lanczos vectors. Raised to at least ``2*lvl + 1``
        and capped at the matrix dimension on each call.
    v0 : array_like, optional
        Initial warm-start vector.
    """

    is_sparse = True

    def __init__(self, lvl, tol=EIG_TOL, maxiter=EIG_MAXITER, ncv=EIG_NCV, v0=None):
        self.lvl = lvl
        self.tol = tol
        self.maxiter = maxiter
        self.ncv = max(ncv, 2 * lvl + 1)
        self.warm_start = WarmStart(None if v0 is None else np.asarray(v0))

    def __call__(self, hmat):
        """Return ``(w, v)`` with ascending ``w`` of length ``lvl``.

        Raises
        ------
        ConvergenceError
            If ARPACK does not reach ``tol`` within ``maxiter`` iterations.
            The warm-start vector is left untouched in that case.
        """
        dim = hmat.shape[0]
        v0 = self.warm_start.v0
        if v0 is not None and v0.shape != (dim,):
            raise DimensionMismatchError(
                f"Warm-start vector has shape {v0.shape}, Hamiltonian has dimension {dim}."
            )
        try:
            w, v = eigsh(
                hmat,
                k=self.lvl,
                which="SA",
                v0=v0,
                tol=self.tol,
                maxiter=self.maxiter,
                ncv=min(dim, self.ncv),
            )
        except ArpackNoConvergence as exc:
            raise ConvergenceError(
                f"ARPACK found {len(exc.eigenvalues)} of {self.lvl} eigenpairs "
                f"within maxiter={self.maxiter} (tol={self.tol})."
            ) from exc
        order = np.argsort(w)
        w, v = np.real(w[order]), v[:, order]
        self.warm_start.commit(v)
        logger.debug("ARPACK solve converged, ground energy %.12g", w[0])
        return w, v


def prepare_hamiltonian(hamiltonian, lvl):
    """Apply the sparse edge-case policy to ``(hamiltonian, lvl)``.

    * A sparse 2x2 Hamiltonian cannot be handled by ARPACK and is converted
      to dense storage.
    * ARPACK cannot return every eigenpair of a sparse Hamiltonian, so
      ``lvl == dim`` is truncated to ``dim - 1``.
    * The complex ARPACK driver needs ``lvl < dim - 1``, so complex sparse
      Hamiltonians are truncated to at most ``dim - 2`` levels.

    All recoveries are reported through the module logger.

    Returns
    -------
    tuple
        Possibly converted Hamiltonian and possibly reduced level count.
    """
    dim = hamiltonian.dim
    if not 1 <= lvl <= dim:
        raise DimensionMismatchError(f"lvl must lie in [1, {dim}], got {lvl}.")
    if not hamiltonian.is_sparse:
        return hamiltonian, lvl
    if dim == 2:
        logger.warning(
            "Hamiltonian size is too small for sparse factorization. "
            "Converting to dense Hamiltonian."
        )
        return hamiltonian.to_dense(), lvl
    if lvl == dim:
        logger.warning("Sparse Hamiltonian detected. Truncating the level to %d.", dim - 1)
        lvl = dim - 1
    if np.issubdtype(hamiltonian.dtype, np.complexfloating) and lvl > dim - 2:
        logger.warning(
            "Complex sparse Hamiltonian detected. Truncating the level to %d.", dim - 2
        )
        lvl = dim - 2
    return hamiltonian, lvl


def build_eigen_solver(hamiltonian, lvl, tol=EIG_TOL, maxiter=EIG_MAXITER, ncv=EIG_NCV, v0=None):
    """Eigen-solver matching the storage trait of an already prepared Hamiltonian.

    For sparse Hamiltonians without a usable ``v0`` the warm start is seeded
    with a cold solve at ``s = 0``.
    """
    if not hamiltonian.is_sparse:
        return DenseEigenSolver(lvl)
    if v0 is not None:
        v0 = np.asarray(v0)
        if v0.ndim != 1 or v0.shape[0] != hamiltonian.dim:
            v0 = None
    solver = SparseEigenSolver(lvl, tol=tol, maxiter=maxiter, ncv=ncv, v0=v0)
    if v0 is None:
        solver(hamiltonian(0.0))
    return solver
