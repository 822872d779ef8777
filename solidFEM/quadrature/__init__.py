"""
Quadrature rules on reference cells.
"""

from .gauss import (
    gauss_legendre_1d,
    gauss_legendre_tensor,
    triangle_rule,
    tetrahedron_rule,
    QuadratureRule,
    quadrature_for,
)
