"""
Solvers: global assembly, boundary conditions and linear solve.
"""

from .base import Solver
from .elasticity import ElasticitySolver, solve_cantilever
