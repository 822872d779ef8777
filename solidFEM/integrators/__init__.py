"""
Element integrators for linear elasticity.
"""

from .stiffness import (
    strain_displacement_matrix,
    element_stiffness,
    element_body_force,
    facet_traction,
)
