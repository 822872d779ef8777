"""
Problem configuration from JSON files and MFEM mesh files.
"""

from .config import load_config, setup_problem_from_config, run_problem, Problem
from .mesh_file import read_mfem_mesh, write_mfem_mesh
