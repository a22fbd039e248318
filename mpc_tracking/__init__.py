"""Polynomial path tracking MPC."""

from .config import MPCConfig
from .exceptions import (MPCError, ConfigurationError, InvalidInputError,
                         LatencyError, NonFiniteSolutionError)
from .layout import VariableLayout, build_layout
from .mpc_controller import MPC, FGEval, IpoptSolver, SolverResult, build_problem, extract_actuations

__all__ = [
    'MPC',
    'MPCConfig',
    'FGEval',
    'IpoptSolver',
    'SolverResult',
    'VariableLayout',
    'build_layout',
    'build_problem',
    'extract_actuations',
    'MPCError',
    'ConfigurationError',
    'InvalidInputError',
    'LatencyError',
    'NonFiniteSolutionError',
]
