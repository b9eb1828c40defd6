"""Tests for the master equation operators."""

import logging
from types import SimpleNamespace

import numpy as np
import pytest
import qutip
import scipy.sparse as sp
from scipy.integrate import solve_ivp

from adiabatic_me import (
    AdiabaticFrameAMEOperator,
    AdiabaticFrameHamiltonian,
    CouplingOperators,
    DaviesGenerator,
    DenseAMEOperator,
    DimensionMismatchError,
    EvolutionParams,
    Hamiltonian,
    RWAAMEOperator,
    SparseAMEOperator,
    build_ame_operator,
)
from adiabatic_me.params import rescale

from conftest import SX, SZ


def _random_setup(seed, dim=4, channels=2):
    H = Hamiltonian(
        [lambda s: 1 - s, lambda s: s],
        [qutip.rand_herm(dim, seed=seed), qutip.rand_herm(dim, seed=seed + 1000)],
    )
    ops = [qutip.rand_herm(dim, seed=seed + 2000 + k) for k in range(channels)]
    rho = qutip.rand_dm(dim, seed=seed + 3000).full()
    return H, ops, rho


def _evaluate(op, u, p, t):
    du = np.zeros(op.shape, dtype=complex)
    op(du, u, p, t)
    return du


class TestEvolutionParams:
    """Tests for evolution parameters."""

    def test_rejects_non_positive_tf(self):
        """tf must be positive."""
        with pytest.raises(ValueError):
            EvolutionParams(0)
        with pytest.raises(ValueError):
            EvolutionParams(-2.0)

    def test_rescale(self):
        """Both time modes map to (scale, s)."""
        assert EvolutionParams(5.0).rescale(0.2) == (5.0, 0.2)
        assert EvolutionParams(5.0, unit_time=True).rescale(1.0) == (1.0, 0.2)
        assert rescale(4.0, 2.0, True) == (1.0, 0.5)


class TestDenseOperator:
    """Tests for the dense AME operator."""

    @pytest.mark.parametrize("seed", range(50))
    def test_trace_and_hermiticity(self, seed, thermal_gamma, tanh_shift):
        """Random setups give traceless Hermitian derivatives."""
        H, ops, rho = _random_setup(seed)
        op = build_ame_operator(H, DaviesGenerator(ops, thermal_gamma, tanh_shift))
        assert isinstance(op, DenseAMEOperator)
        du = _evaluate(op, rho, EvolutionParams(3.0), 0.37)
        assert abs(np.trace(du)) < 1e-10
        np.testing.assert_allclose(du, du.conj().T, atol=1e-10)

    def test_truncated_trace(self, thermal_gamma, tanh_shift):
        """Truncated operators still conserve the trace."""
        H, ops, rho = _random_setup(11, dim=5)
        op = build_ame_operator(H, DaviesGenerator(ops, thermal_gamma, tanh_shift), lvl=3)
        assert op.u_cache.shape == (3, 3)
        du = _evaluate(op, rho, EvolutionParams(2.0), 0.5)
        assert abs(np.trace(du)) < 1e-10

    def test_relaxation_step(self):
        """One Euler step relaxes the population at rate γ0."""
        H = Hamiltonian([lambda s: 1.0], [np.diag([0.0, 1.0])])
        davies = DaviesGenerator([SX], lambda w: 0.01 * np.ones_like(w), lambda w: 0.0)
        op = build_ame_operator(H, davies)
        rho = np.diag([1.0, 0.0]).astype(complex)
        drho = 1e-3 * _evaluate(op, rho, EvolutionParams(1.0), 0.0)
        assert drho[0, 0].real == pytest.approx(-1e-5)
        assert drho[1, 1].real == pytest.approx(1e-5)

    def test_unitary_part(self):
        """Without dissipation the operator reduces to -i·tf·[H, ρ]."""
        hmat = qutip.rand_herm(3, seed=21).full()
        H = Hamiltonian([lambda s: 1.0], [hmat])
        op = build_ame_operator(H, DaviesGenerator([np.eye(3)], lambda w: 0.0, lambda w: 0.0))
        rho = qutip.rand_dm(3, seed=22).full()
        du = _evaluate(op, rho, EvolutionParams(2.5), 0.1)
        np.testing.assert_allclose(du, -2.5j * (hmat @ rho - rho @ hmat), atol=1e-12)

    @pytest.mark.parametrize("T", [0.5, 10.0, 300.0])
    def test_time_mode_equivalence(self, T, thermal_gamma, tanh_shift):
        """Real time at (T, s) is T times unit time at (T, s*T)."""
        H, ops, rho = _random_setup(5)
        coupling = CouplingOperators(ops, [lambda s: 1 + s, lambda s: np.sin(s)])
        op = build_ame_operator(H, DaviesGenerator(coupling, thermal_gamma, tanh_shift))
        s = 0.42
        real = _evaluate(op, rho, EvolutionParams(T), s)
        unit = _evaluate(op, rho, EvolutionParams(T, unit_time=True), s * T)
        np.testing.assert_allclose(real, T * unit, rtol=1e-9, atol=1e-12)

    def test_plain_params_object(self, thermal_gamma, tanh_shift):
        """Params without unit_time default to real time."""
        H, ops, rho = _random_setup(6)
        op = build_ame_operator(H, DaviesGenerator(ops, thermal_gamma, tanh_shift))
        np.testing.assert_allclose(
            _evaluate(op, rho, SimpleNamespace(tf=2.0), 0.3),
            _evaluate(op, rho, EvolutionParams(2.0), 0.3),
        )

    def test_state_shape_checked(self, thermal_gamma, tanh_shift):
        """States of the wrong shape are rejected."""
        H, ops, _ = _random_setup(7)
        op = build_ame_operator(H, DaviesGenerator(ops, thermal_gamma, tanh_shift))
        with pytest.raises(DimensionMismatchError):
            op(np.zeros((4, 4), dtype=complex), np.eye(3), EvolutionParams(1.0), 0.0)

    def test_ivp_rhs(self, thermal_gamma, tanh_shift):
        """The solve_ivp adapter matches a direct call."""
        H, ops, rho = _random_setup(8)
        op = build_ame_operator(H, DaviesGenerator(ops, thermal_gamma, tanh_shift))
        p = EvolutionParams(4.0)
        rhs = op.ivp_rhs(p)
        first = rhs(0.2, rho.reshape(-1))
        second = rhs(0.7, rho.reshape(-1))
        np.testing.assert_allclose(first, _evaluate(op, rho, p, 0.2).reshape(-1))
        assert not np.allclose(first, second)


class TestBuildAMEOperator:
    """Tests for operator selection."""

    def test_control_not_supported(self, thermal_gamma, tanh_shift):
        """Control hooks are not supported."""
        H, ops, _ = _random_setup(1)
        with pytest.raises(NotImplementedError):
            build_ame_operator(H, DaviesGenerator(ops, thermal_gamma, tanh_shift), control=object())

    def test_rwa_requires_adiabatic_frame(self, thermal_gamma, tanh_shift):
        """The RWA operator needs an adiabatic-frame Hamiltonian."""
        H, ops, _ = _random_setup(1)
        with pytest.raises(ValueError, match="AdiabaticFrameHamiltonian"):
            build_ame_operator(H, DaviesGenerator(ops, thermal_gamma, tanh_shift), rwa=True)

    def test_dimension_mismatch(self, thermal_gamma, tanh_shift):
        """Couplings must match the Hamiltonian dimension."""
        H, _, _ = _random_setup(1)
        with pytest.raises(DimensionMismatchError):
            build_ame_operator(H, DaviesGenerator([np.eye(3)], thermal_gamma, tanh_shift))

    def test_level_out_of_range(self, thermal_gamma, tanh_shift):
        """lvl above the dimension is rejected."""
        H, ops, _ = _random_setup(1)
        with pytest.raises(DimensionMismatchError):
            build_ame_operator(H, DaviesGenerator(ops, thermal_gamma, tanh_shift), lvl=5)


class TestSparseOperator:
    """Tests for the sparse AME operator."""

    def test_matches_dense(self, tfim, thermal_gamma, tanh_shift):
        """Sparse and dense operators agree."""
        driver, problem = tfim(3)
        H = Hamiltonian([lambda s: 1 - s, lambda s: s], [driver, problem])
        davies = DaviesGenerator(
            [driver, problem], thermal_gamma, tanh_shift
        )
        sparse_op = build_ame_operator(H, davies, lvl=4)
        dense_op = build_ame_operator(H.to_dense(), davies, lvl=4)
        assert isinstance(sparse_op, SparseAMEOperator)
        assert isinstance(dense_op, DenseAMEOperator)

        rho = qutip.rand_dm(8, seed=12).full()
        p = EvolutionParams(5.0)
        np.testing.assert_allclose(
            _evaluate(sparse_op, rho, p, 0.5), _evaluate(dense_op, rho, p, 0.5), atol=1e-6
        )
        assert sparse_op.warm_start.v0.shape == (8,)

    def test_full_level_count_truncated(self, tfim, thermal_gamma, tanh_shift, caplog):
        """The default level count is truncated with a warning."""
        driver, problem = tfim(3)
        H = Hamiltonian([lambda s: 1 - s, lambda s: s], [driver, problem])
        with caplog.at_level(logging.WARNING, logger="adiabatic_me.eigen"):
            op = build_ame_operator(H, DaviesGenerator([problem], thermal_gamma, tanh_shift))
        assert op.lvl == 7
        assert "Truncating" in caplog.text
        du = _evaluate(op, qutip.rand_dm(8, seed=3).full(), EvolutionParams(1.0), 0.2)
        assert abs(np.trace(du)) < 1e-8

    def test_complex_default_levels(self, tfim, thermal_gamma, tanh_shift, caplog):
        """A complex sparse Hamiltonian with the default level count is truncated and runs."""
        driver, problem = tfim(3)
        y_field = sp.kron(sp.csr_matrix([[0, -1j], [1j, 0]]), sp.identity(4), format="csr")
        H = Hamiltonian([lambda s: 1 - s, lambda s: s, lambda s: 0.2], [driver, problem, y_field])
        davies = DaviesGenerator([problem], thermal_gamma, tanh_shift)
        with caplog.at_level(logging.WARNING, logger="adiabatic_me.eigen"):
            op = build_ame_operator(H, davies)
        assert isinstance(op, SparseAMEOperator)
        assert op.lvl == 6
        assert "Complex sparse Hamiltonian" in caplog.text
        du = _evaluate(op, qutip.rand_dm(8, seed=13).full(), EvolutionParams(2.0), 0.4)
        assert abs(np.trace(du)) < 1e-8
        np.testing.assert_allclose(du, du.conj().T, atol=1e-8)

    def test_two_level_falls_back_to_dense(self, thermal_gamma, tanh_shift, caplog):
        """A sparse 2-level Hamiltonian gives a dense operator."""
        H = Hamiltonian(
            [lambda s: 1 - s, lambda s: s], [sp.csr_matrix(-SX), sp.csr_matrix(-SZ)]
        )
        davies = DaviesGenerator([SZ], thermal_gamma, tanh_shift)
        with caplog.at_level(logging.WARNING, logger="adiabatic_me.eigen"):
            op = build_ame_operator(H, davies)
        assert isinstance(op, DenseAMEOperator)
        assert "Converting to dense" in caplog.text
        du = _evaluate(op, np.eye(2, dtype=complex) / 2, EvolutionParams(1.0), 0.5)
        assert abs(np.trace(du)) < 1e-12


class TestAdiabaticFrameOperators:
    """Tests for the adiabatic-frame and RWA operators."""

    @pytest.fixture
    def energies(self):
        return [lambda s: 1 - s, lambda s: s], [np.diag([0.0, 1.0, 2.5]), np.diag([0.0, 0.5, 3.0])]

    def test_matches_lab_frame_without_geometric_term(self, energies, thermal_gamma, tanh_shift):
        """Without a geometric term the frame operator equals the lab operator."""
        funcs, mats = energies
        couplings = [qutip.rand_herm(3, seed=30).full()]
        davies = DaviesGenerator(couplings, thermal_gamma, tanh_shift)
        frame_op = build_ame_operator(AdiabaticFrameHamiltonian([], [], funcs, mats), davies)
        lab_op = build_ame_operator(Hamiltonian(funcs, mats), davies)
        assert isinstance(frame_op, AdiabaticFrameAMEOperator)

        rho = qutip.rand_dm(3, seed=31).full()
        for p, t in [(EvolutionParams(4.0), 0.3), (EvolutionParams(4.0, unit_time=True), 1.2)]:
            np.testing.assert_allclose(
                _evaluate(frame_op, rho, p, t), _evaluate(lab_op, rho, p, t), atol=1e-12
            )

    def test_rwa_matches_frame_without_geometric_term(self, energies, thermal_gamma, tanh_shift):
        """Without a geometric term the RWA operator equals the frame operator."""
        funcs, mats = energies
        H = AdiabaticFrameHamiltonian([], [], funcs, mats)
        davies = DaviesGenerator([qutip.rand_herm(3, seed=32).full()], thermal_gamma, tanh_shift)
        rwa_op = build_ame_operator(H, davies, rwa=True)
        frame_op = build_ame_operator(H, davies)
        assert isinstance(rwa_op, RWAAMEOperator)
        rho = qutip.rand_dm(3, seed=33).full()
        p = EvolutionParams(6.0)
        np.testing.assert_allclose(
            _evaluate(rwa_op, rho, p, 0.8), _evaluate(frame_op, rho, p, 0.8), atol=1e-12
        )

    @pytest.mark.parametrize("rwa", [False, True])
    def test_trace_and_hermiticity(self, energies, rwa, thermal_gamma, tanh_shift):
        """Frame operators give traceless Hermitian derivatives."""
        funcs, mats = energies
        H = AdiabaticFrameHamiltonian([lambda s: 0.3 * s], [qutip.rand_herm(3, seed=40)], funcs, mats)
        davies = DaviesGenerator([qutip.rand_herm(3, seed=41)], thermal_gamma, tanh_shift)
        op = build_ame_operator(H, davies, rwa=rwa)
        du = _evaluate(op, qutip.rand_dm(3, seed=42).full(), EvolutionParams(2.0), 0.6)
        assert abs(np.trace(du)) < 1e-12
        np.testing.assert_allclose(du, du.conj().T, atol=1e-12)

    def test_truncated_frame_operator(self, energies, thermal_gamma, tanh_shift):
        """Truncated frame operators conserve the trace."""
        funcs, mats = energies
        H = AdiabaticFrameHamiltonian([], [], funcs, mats)
        davies = DaviesGenerator([qutip.rand_herm(3, seed=43)], thermal_gamma, tanh_shift)
        op = build_ame_operator(H, davies, lvl=2)
        du = _evaluate(op, qutip.rand_dm(3, seed=44).full(), EvolutionParams(2.0), 0.6)
        assert abs(np.trace(du)) < 1e-12


def test_anneal_with_solve_ivp(thermal_gamma, tanh_shift):
    """A full anneal keeps the state a valid density matrix."""
    H = Hamiltonian([lambda s: 1 - s, lambda s: s], [-SX, -SZ])
    davies = DaviesGenerator([SZ], thermal_gamma, tanh_shift)
    op = build_ame_operator(H, davies)
    plus = np.array([1.0, 1.0]) / np.sqrt(2)
    rho0 = np.outer(plus, plus).astype(complex)

    sol = solve_ivp(op.ivp_rhs(EvolutionParams(10.0)), (0.0, 1.0), rho0.reshape(-1), rtol=1e-8, atol=1e-10)
    assert sol.success
    rho = sol.y[:, -1].reshape(2, 2)
    assert np.trace(rho).real == pytest.approx(1.0, abs=1e-7)
    np.testing.assert_allclose(rho, rho.conj().T, atol=1e-7)
    assert np.linalg.eigvalsh(rho).min() > -1e-7
    # the final ground state of -Z is |0⟩
    assert rho[0, 0].real > 0.5
