"""adiabatic_me – Adiabatic master equation and quantum-trajectory kernel for open-system annealing."""

__version__ = "0.1.0"

from . import config  # noqa: F401 - configures logging
from .bath import OhmicBath, davies_generator
from .davies import ConstantCouplings, CouplingOperators, DaviesGenerator
from .eigen import DenseEigenSolver, SparseEigenSolver, WarmStart
from .errors import AMEError, ConvergenceError, DimensionMismatchError
from .hamiltonian import AdiabaticFrameHamiltonian, Hamiltonian
from .operators import (
    AdiabaticFrameAMEOperator,
    AMEOperator,
    DenseAMEOperator,
    RWAAMEOperator,
    SparseAMEOperator,
    build_ame_operator,
)
from .params import EvolutionParams
from .trajectory import (
    AMETrajectoryOperator,
    JumpSampler,
    build_trajectory_operator,
)

__all__ = [
    "AMEError",
    "AMEOperator",
    "AMETrajectoryOperator",
    "AdiabaticFrameAMEOperator",
    "AdiabaticFrameHamiltonian",
    "ConstantCouplings",
    "ConvergenceError",
    "CouplingOperators",
    "DaviesGenerator",
    "DenseAMEOperator",
    "DenseEigenSolver",
    "DimensionMismatchError",
    "EvolutionParams",
    "Hamiltonian",
    "JumpSampler",
    "OhmicBath",
    "RWAAMEOperator",
    "SparseAMEOperator",
    "SparseEigenSolver",
    "WarmStart",
    "build_ame_operator",
    "build_trajectory_operator",
    "davies_generator",
]
