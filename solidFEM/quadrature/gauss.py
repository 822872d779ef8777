"""
Quadrature rules for element integration.

Gauss-Legendre quadrature provides optimal polynomial integration:
n points integrate exactly polynomials up to degree 2n-1.

Reference domains:
- Line, quadrilateral, hexahedron: [0, 1]^d (weights sum to 1)
- Triangle: {xi, eta >= 0, xi + eta <= 1} (weights sum to 1/2)
- Tetrahedron: {xi, eta, zeta >= 0, xi + eta + zeta <= 1} (weights sum to 1/6)

Standard Gauss points on [-1, 1] are mapped accordingly.

Usage:
    points, weights = gauss_legendre_1d(n)              # 1D on [0,1]
    points, weights = gauss_legendre_tensor((2, 2, 2))   # [0,1]^3
    rule = quadrature_for("quad", order=2)
"""

import numpy as np
from typing import Tuple
from functools import lru_cache


@lru_cache(maxsize=16)
def gauss_legendre_1d(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss-Legendre quadrature points and weights on [0, 1].

    Parameters:
        n: Number of quadrature points

    Returns:
        (points, weights) where:
        - points: Array of n quadrature points in [0, 1]
        - weights: Array of n quadrature weights (sum to 1)
    """
    if n < 1:
        raise ValueError("Need at least 1 quadrature point")

    points_std, weights_std = np.polynomial.legendre.leggauss(n)

    # Map to [0, 1]: x = (xi + 1) / 2, dx = 1/2 * dxi
    points = 0.5 * (points_std + 1.0)
    weights = 0.5 * weights_std

    return points.copy(), weights.copy()


def gauss_legendre_tensor(n_points_per_dir: Tuple[int, ...]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Tensor-product Gauss-Legendre quadrature on [0,1]^d.

    The last direction varies fastest.

    Parameters:
        n_points_per_dir: Number of points in each direction

    Returns:
        (points, weights) where:
        - points: Array of shape (n_total, d)
        - weights: Array of shape (n_total,)
    """
    rules = [gauss_legendre_1d(n) for n in n_points_per_dir]
    grids = np.meshgrid(*[pts for pts, _ in rules], indexing="ij")
    wgrids = np.meshgrid(*[wts for _, wts in rules], indexing="ij")

    points = np.stack([g.ravel() for g in grids], axis=1)
    weights = np.prod(np.stack([g.ravel() for g in wgrids], axis=1), axis=1)
    return points, weights


def triangle_rule(n_points: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Symmetric quadrature on the reference triangle.

    Parameters:
        n_points: 1 (exact for degree 1), 3 (degree 2) or 4 (degree 3)

    Returns:
        (points, weights) with points of shape (n_points, 2)
    """
    if n_points == 1:
        bary = np.array([[1/3, 1/3, 1/3]])
        weights = np.array([1.0])
    elif n_points == 3:
        bary = np.array([
            [2/3, 1/6, 1/6],
            [1/6, 2/3, 1/6],
            [1/6, 1/6, 2/3]])
        weights = np.array([1/3, 1/3, 1/3])
    elif n_points == 4:
        bary = np.array([
            [1/3, 1/3, 1/3],
            [0.6, 0.2, 0.2],
            [0.2, 0.6, 0.2],
            [0.2, 0.2, 0.6]])
        weights = np.array([-27/48, 25/48, 25/48, 25/48])
    else:
        raise ValueError(f"Unsupported number of triangle points: {n_points}. "
                         f"'n_points' must be 1, 3 or 4.")
    # (xi, eta) are the 2nd and 3rd barycentric coordinates; area = 1/2
    return bary[:, 1:].copy(), 0.5 * weights


def tetrahedron_rule(n_points: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Symmetric quadrature on the reference tetrahedron.

    Parameters:
        n_points: 1 (exact for degree 1) or 4 (degree 2)

    Returns:
        (points, weights) with points of shape (n_points, 3)
    """
    if n_points == 1:
        bary = np.array([[0.25, 0.25, 0.25, 0.25]])
        weights = np.array([1.0])
    elif n_points == 4:
        a = 0.5854101966249685
        b = 0.1381966011250105
        bary = np.array([
            [a, b, b, b],
            [b, a, b, b],
            [b, b, a, b],
            [b, b, b, a]])
        weights = np.full(4, 0.25)
    else:
        raise ValueError(f"Unsupported number of tetrahedron points: {n_points}. "
                         f"'n_points' must be 1 or 4.")
    return bary[:, 1:].copy(), weights / 6.0


class QuadratureRule:
    """
    Quadrature points and weights on a reference cell.

    Attributes:
        cell: Reference cell name ("line", "tri", "quad", "tet", "hex")
        points: Array of shape (n_points, n_dim)
        weights: Array of shape (n_points,)
    """

    def __init__(self, cell: str, points: np.ndarray, weights: np.ndarray):
        self.cell = cell
        self._points = np.atleast_2d(np.asarray(points, dtype=float))
        self._weights = np.asarray(weights, dtype=float)
        if self._points.shape[0] != self._weights.shape[0]:
            raise ValueError("Quadrature points and weights differ in length")

    @property
    def n_points(self) -> int:
        """Total number of quadrature points."""
        return len(self._weights)

    @property
    def n_dim(self) -> int:
        return self._points.shape[1]

    @property
    def points(self) -> np.ndarray:
        return self._points

    @property
    def weights(self) -> np.ndarray:
        return self._weights

    def __repr__(self) -> str:
        return f"QuadratureRule(cell={self.cell!r}, n_points={self.n_points})"


# Dimension of each tensor-product cell
_TENSOR_CELLS = {"line": 1, "quad": 2, "hex": 3}


def quadrature_for(cell: str, order: int = 2) -> QuadratureRule:
    """
    Create a quadrature rule exact for polynomials of the given order.

    Parameters:
        cell: Reference cell name
        order: Polynomial order to integrate exactly

    Returns:
        QuadratureRule

    Note:
        For bilinear/trilinear elements the stiffness integrand B^T C B has
        order 2 per direction, so order=2 gives full integration.
    """
    if order < 0:
        raise ValueError(f"Quadrature order must be non-negative, got {order}")

    if cell in _TENSOR_CELLS:
        n = order // 2 + 1
        points, weights = gauss_legendre_tensor((n,) * _TENSOR_CELLS[cell])
    elif cell == "tri":
        n = 1 if order <= 1 else (3 if order == 2 else 4)
        if order > 3:
            raise ValueError(f"Triangle rules available up to order 3, got {order}")
        points, weights = triangle_rule(n)
    elif cell == "tet":
        if order > 2:
            raise ValueError(f"Tetrahedron rules available up to order 2, got {order}")
        points, weights = tetrahedron_rule(1 if order <= 1 else 4)
    else:
        raise ValueError(f"Unknown cell type: {cell!r}")

    return QuadratureRule(cell, points, weights)
