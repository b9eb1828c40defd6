"""Shared fixtures: transverse-field Ising Hamiltonians and simple rate models."""

import numpy as np
import pytest
import scipy.sparse as sp

SX = np.array([[0, 1], [1, 0]], dtype=float)
SZ = np.array([[1, 0], [0, -1]], dtype=float)


def _site_op(op, site, n):
    mats = [sp.identity(2, format="csr")] * n
    mats[site] = sp.csr_matrix(op)
    out = mats[0]
    for m in mats[1:]:
        out = sp.kron(out, m, format="csr")
    return out


def tfim_terms(n):
    """Driver ``-Σ X_i`` and problem ``-Σ Z_i Z_{i+1} - 0.1 Z_0`` as sparse matrices."""
    driver = -sum(_site_op(SX, i, n) for i in range(n))
    problem = -sum(_site_op(SZ, i, n) @ _site_op(SZ, i + 1, n) for i in range(n - 1))
    problem = problem - 0.1 * _site_op(SZ, 0, n)
    return sp.csr_matrix(driver), sp.csr_matrix(problem)


@pytest.fixture
def tfim():
    """Factory for transverse-field Ising terms on ``n`` qubits."""
    return tfim_terms


@pytest.fixture
def thermal_gamma():
    """Detailed-balance rate ``γ(ω) = γ0 / (1 + e^{-βω})`` with ``γ0 = 0.1``, ``β = 1``."""
    return lambda w: 0.1 / (1 + np.exp(-np.asarray(w, dtype=float)))


@pytest.fixture
def tanh_shift():
    return lambda w: 0.05 * np.tanh(np.asarray(w, dtype=float))
