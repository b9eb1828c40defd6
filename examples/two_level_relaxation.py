"""Example: thermal relaxation of a single annealed qubit.

The qubit follows ``H(s) = 2π[-(1-s) X - s Z]`` (GHz) over ``tf`` ns while
coupled to an Ohmic bath through ``Z``. The final ground-state population is
computed once from the density-matrix master equation and once as an average
over quantum trajectories.
"""

import numpy as np
from scipy.integrate import solve_ivp
from scipy.linalg import expm

from adiabatic_me import (
    DaviesGenerator,
    EvolutionParams,
    Hamiltonian,
    OhmicBath,
    build_ame_operator,
    build_trajectory_operator,
)

SX = np.array([[0, 1], [1, 0]], dtype=complex)
SZ = np.array([[1, 0], [0, -1]], dtype=complex)

tf = 20.0
H = Hamiltonian([lambda s: 1 - s, lambda s: s], [-2 * np.pi * SX, -2 * np.pi * SZ])
bath = OhmicBath(eta=1e-3, fc=4, T=16)
# Lamb shift dropped to keep the trajectory loop fast
davies = DaviesGenerator([SZ], bath.gamma, lambda w: np.zeros_like(w))

plus = np.array([1, 1], dtype=complex) / np.sqrt(2)

# density matrix
ame = build_ame_operator(H, davies)
sol = solve_ivp(
    ame.ivp_rhs(EvolutionParams(tf)),
    (0.0, 1.0),
    np.outer(plus, plus.conj()).reshape(-1),
    rtol=1e-8,
    atol=1e-10,
)
rho = sol.y[:, -1].reshape(2, 2)
print(f"AME ground population:        {rho[0, 0].real:.6f}")

# trajectories
n_traj = 200
dt = 1e-3
ground = 0.0
cache = np.empty((2, 2), dtype=complex)
for n in range(n_traj):
    op = build_trajectory_operator(H, davies, seed=n)
    rng = op.sampler.rng
    u = plus.copy()
    r = rng.uniform()
    for s in np.arange(0.0, 1.0, dt):
        op.update_cache(cache, tf, s)
        u = expm(dt * cache) @ u
        if np.vdot(u, u).real < r:
            u = op.jump(u, tf, s) @ u
            u /= np.linalg.norm(u)
            r = rng.uniform()
    u /= np.linalg.norm(u)
    ground += abs(u[0]) ** 2 / n_traj

print(f"Trajectory ground population: {ground:.6f}")
