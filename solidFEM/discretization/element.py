"""
Reference elements and per-element local data.

Supported Lagrange elements:
- LINE2, LINE3: lines on [0, 1] (boundary facets of 2D elements)
- TRI3,  TRI6:  triangles on the unit simplex
- QUAD4, QUAD9: quadrilaterals on [0, 1]^2
- TET4,  TET10: tetrahedra on the unit simplex
- HEX8,  HEX27: hexahedra on [0, 1]^3

Vertices are numbered counter-clockwise on the bottom face, then the top
face for hexahedra:

    QUAD4          HEX8 (z = 0 face, then z = 1 face)
    3 --- 2        7 --- 6
    |     |        4 --- 5
    0 --- 1        3 --- 2
                   0 --- 1

Quadratic elements keep the vertices of their linear counterpart and
append edge midpoints, then face centres, then the cell centre, in the
order VTK uses for the same cell:

    QUAD9          TRI6
    3 - 6 - 2      2
    7   8   5      5  4
    0 - 4 - 1      0 - 3 - 1

The assembly and recovery kernels never see reference elements directly.
They receive an ElementLocalData record holding physical basis gradients,
integration weights and Jacobian determinants at the evaluation points.
This module builds that record from node coordinates:

    J      = X^T dN/dxi              (physical dim x reference dim)
    dN/dx  = dN/dxi J^{-1}
    det J  = local volume scale factor

Local DOF ordering is node-interleaved: [u0_x, u0_y, (u0_z), u1_x, ...].
"""

import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..quadrature.gauss import QuadratureRule, quadrature_for


class ReferenceElement(ABC):
    """
    Abstract reference element.

    Attributes:
        name: Element type name (e.g. "quad4")
        cell: Reference cell name used for quadrature ("quad", "tri", ...)
        node_coordinates: Reference coordinates of the nodes, (n_nodes, dim)
        degree: Polynomial degree of the basis (1 or 2)
        facet: Name of the boundary facet element type (None for lines)
        facet_nodes: Local node indices of each facet, in the facet's node order
        parents: For each node, the vertices whose mean gives its position
        quadratic: Name of the degree-2 counterpart of a linear element
    """

    def __init__(self, name: str, cell: str, node_coordinates: np.ndarray,
                 degree: int = 1,
                 facet: Optional[str] = None,
                 facet_nodes: Tuple[Tuple[int, ...], ...] = (),
                 parents: Optional[Tuple[Tuple[int, ...], ...]] = None,
                 quadratic: Optional[str] = None):
        self.name = name
        self.cell = cell
        self.node_coordinates = np.asarray(node_coordinates, dtype=float)
        self.node_coordinates.setflags(write=False)
        self.degree = degree
        self.facet = facet
        self.facet_nodes = facet_nodes
        if parents is None:
            parents = tuple((a,) for a in range(self.n_nodes))
        self.parents = parents
        self.quadratic = quadratic

    @property
    def dim(self) -> int:
        """Reference (parametric) dimension."""
        return self.node_coordinates.shape[1]

    @property
    def n_nodes(self) -> int:
        return self.node_coordinates.shape[0]

    @property
    def n_vertices(self) -> int:
        return sum(1 for p in self.parents if len(p) == 1)

    @property
    def quadrature_order(self) -> int:
        """Order of full integration of the stiffness on undistorted cells."""
        return 2 * self.degree

    @abstractmethod
    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        """Basis values at reference point xi, shape (n_nodes,)."""

    @abstractmethod
    def shape_derivatives(self, xi: np.ndarray) -> np.ndarray:
        """Basis derivatives w.r.t. reference coordinates, shape (n_nodes, dim)."""

    def default_quadrature(self, order: Optional[int] = None) -> QuadratureRule:
        if order is None:
            order = self.quadrature_order
        return quadrature_for(self.cell, order)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class TensorProductElement(ReferenceElement):
    """
    Lagrange element on [0, 1]^d.

    Each basis function is a product of 1D Lagrange polynomials on the
    equally spaced points 0, 1/p, ..., 1 of degree p:

        N_a(xi) = prod_d  l_{c_ad}(xi_d)

    where c_ad is the reference coordinate of node a in direction d.
    For p = 1 the factors are xi_d and 1 - xi_d.
    """

    def _factors(self, xi: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """1D basis values and slopes per node and direction."""
        c = self.node_coordinates
        x = np.broadcast_to(np.asarray(xi, dtype=float), c.shape)
        values = np.ones_like(c)
        slopes = np.zeros_like(c)
        for knot in np.linspace(0.0, 1.0, self.degree + 1):
            other = ~np.isclose(c, knot)
            denom = np.where(other, c - knot, 1.0)
            term = np.where(other, (x - knot) / denom, 1.0)
            dterm = np.where(other, 1.0 / denom, 0.0)
            # product rule, slopes first
            slopes = slopes * term + values * dterm
            values = values * term
        return values, slopes

    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        values, _ = self._factors(xi)
        return np.prod(values, axis=1)

    def shape_derivatives(self, xi: np.ndarray) -> np.ndarray:
        values, slopes = self._factors(xi)
        dN = np.empty_like(values)
        for d in range(self.dim):
            others = np.delete(values, d, axis=1)
            dN[:, d] = slopes[:, d] * np.prod(others, axis=1)
        return dN


class SimplexElement(ReferenceElement):
    """
    Lagrange simplex element in barycentric coordinates
    L_0 = 1 - sum(xi), L_k = xi_{k-1}.

    Linear:    N_a = L_a
    Quadratic: N_a = L_a (2 L_a - 1) at vertex a,
               N_ab = 4 L_a L_b at the midpoint of edge (a, b)

    Linear gradients are constant over the element.
    """

    @property
    def quadrature_order(self) -> int:
        # gradients of degree p - 1; the body-force integrand needs order 2
        return max(2 * (self.degree - 1), 2)

    def _barycentric(self, xi: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        xi = np.asarray(xi, dtype=float)
        L = np.concatenate(([1.0 - np.sum(xi)], xi))
        dL = np.zeros((self.dim + 1, self.dim))
        dL[0, :] = -1.0
        dL[1:, :] = np.eye(self.dim)
        return L, dL

    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        L, _ = self._barycentric(xi)
        if self.degree == 1:
            return L
        N = np.empty(self.n_nodes)
        for a, parent in enumerate(self.parents):
            if len(parent) == 1:
                i = parent[0]
                N[a] = L[i] * (2.0 * L[i] - 1.0)
            else:
                i, j = parent
                N[a] = 4.0 * L[i] * L[j]
        return N

    def shape_derivatives(self, xi: np.ndarray) -> np.ndarray:
        L, dL = self._barycentric(xi)
        if self.degree == 1:
            return dL
        dN = np.empty((self.n_nodes, self.dim))
        for a, parent in enumerate(self.parents):
            if len(parent) == 1:
                i = parent[0]
                dN[a] = (4.0 * L[i] - 1.0) * dL[i]
            else:
                i, j = parent
                dN[a] = 4.0 * (L[j] * dL[i] + L[i] * dL[j])
        return dN


def _elevate(linear: ReferenceElement, name: str,
             extra: Tuple[Tuple[int, ...], ...],
             facet: Optional[ReferenceElement] = None) -> ReferenceElement:
    """
    Degree-2 element obtained by adding nodes at the means of vertex groups
    (edge midpoints, face and cell centres) of a linear element.
    """
    parents = tuple((a,) for a in range(linear.n_nodes)) + tuple(extra)
    coords = np.array([linear.node_coordinates[list(p)].mean(axis=0) for p in parents])
    index = {frozenset(p): a for a, p in enumerate(parents)}

    facet_nodes = []
    if facet is not None:
        for corners in linear.facet_nodes:
            facet_nodes.append(tuple(index[frozenset(corners[i] for i in p)]
                                     for p in facet.parents))

    element = type(linear)(name, linear.cell, coords, degree=2,
                           facet=None if facet is None else facet.name,
                           facet_nodes=tuple(facet_nodes), parents=parents)
    linear.quadratic = name
    return element


LINE2 = TensorProductElement("line2", "line", [[0.0], [1.0]])

TRI3 = SimplexElement("tri3", "tri", [
    [0.0, 0.0], [1.0, 0.0], [0.0, 1.0]], facet="line2",
    facet_nodes=((0, 1), (1, 2), (2, 0)))

QUAD4 = TensorProductElement("quad4", "quad", [
    [0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]], facet="line2",
    facet_nodes=((0, 1), (1, 2), (2, 3), (3, 0)))

TET4 = SimplexElement("tet4", "tet", [
    [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]], facet="tri3",
    facet_nodes=((0, 2, 1), (0, 1, 3), (0, 3, 2), (1, 2, 3)))

HEX8 = TensorProductElement("hex8", "hex", [
    [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0],
    [0.0, 0.0, 1.0], [1.0, 0.0, 1.0], [1.0, 1.0, 1.0], [0.0, 1.0, 1.0]], facet="quad4",
    facet_nodes=((0, 3, 2, 1), (4, 5, 6, 7), (0, 1, 5, 4),
                 (1, 2, 6, 5), (2, 3, 7, 6), (3, 0, 4, 7)))

# Quadratic elements; extra nodes follow the VTK node ordering
LINE3 = _elevate(LINE2, "line3", ((0, 1),))

TRI6 = _elevate(TRI3, "tri6", ((0, 1), (1, 2), (2, 0)), facet=LINE3)

QUAD9 = _elevate(QUAD4, "quad9", ((0, 1), (1, 2), (2, 3), (3, 0), (0, 1, 2, 3)),
                 facet=LINE3)

TET10 = _elevate(TET4, "tet10", ((0, 1), (1, 2), (0, 2), (0, 3), (1, 3), (2, 3)),
                 facet=TRI6)

HEX27 = _elevate(HEX8, "hex27", (
    (0, 1), (1, 2), (2, 3), (3, 0), (4, 5), (5, 6), (6, 7), (7, 4),
    (0, 4), (1, 5), (2, 6), (3, 7),
    (0, 3, 7, 4), (1, 2, 6, 5), (0, 1, 5, 4), (3, 2, 6, 7), (0, 1, 2, 3), (4, 5, 6, 7),
    tuple(range(8))), facet=QUAD9)

ELEMENT_TYPES: Dict[str, ReferenceElement] = {
    e.name: e for e in (LINE2, TRI3, QUAD4, TET4, HEX8,
                        LINE3, TRI6, QUAD9, TET10, HEX27)
}


def get_element_type(name: str) -> ReferenceElement:
    """Look up a reference element by name."""
    try:
        return ELEMENT_TYPES[name]
    except KeyError:
        raise ValueError(f"Unknown element type: {name!r}. "
                         f"Available: {sorted(ELEMENT_TYPES)}") from None


@dataclass
class ElementLocalData:
    """
    Geometry and basis data of one element at its evaluation points.

    Attributes:
        region: Region id (material attribute) of the element
        dim: Spatial dimension
        N: Basis values, shape (n_points, n_nodes)
        dN_dx: Physical basis gradients, shape (n_points, n_nodes, dim)
        weights: Reference integration weights, shape (n_points,)
        det_jac: Jacobian determinants, shape (n_points,)
        points: Physical coordinates of the evaluation points, shape (n_points, dim)
    """
    region: int
    dim: int
    N: np.ndarray
    dN_dx: np.ndarray
    weights: np.ndarray
    det_jac: np.ndarray
    points: np.ndarray

    @property
    def n_points(self) -> int:
        return self.dN_dx.shape[0]

    @property
    def n_nodes(self) -> int:
        return self.dN_dx.shape[1]

    @property
    def n_dof(self) -> int:
        """Number of local degrees of freedom (n_nodes * dim)."""
        return self.n_nodes * self.dim


@dataclass
class FacetLocalData:
    """
    Basis data of one boundary facet at its quadrature points.

    Attributes:
        dim: Spatial dimension of the embedding space
        N: Basis values, shape (n_points, n_nodes)
        weights: Reference integration weights, shape (n_points,)
        measure: Surface (or length) scale factor, shape (n_points,)
        points: Physical coordinates of the quadrature points
    """
    dim: int
    N: np.ndarray
    weights: np.ndarray
    measure: np.ndarray
    points: np.ndarray

    @property
    def n_points(self) -> int:
        return self.N.shape[0]

    @property
    def n_nodes(self) -> int:
        return self.N.shape[1]

    @property
    def n_dof(self) -> int:
        return self.n_nodes * self.dim


def compute_local_data(element_type: ReferenceElement,
                       coords: np.ndarray,
                       region: int,
                       ref_points: np.ndarray,
                       ref_weights: Optional[np.ndarray] = None) -> ElementLocalData:
    """
    Evaluate physical basis gradients of an element.

    Parameters:
        element_type: Reference element
        coords: Physical node coordinates, shape (n_nodes, dim)
        region: Region id of the element
        ref_points: Reference evaluation points, shape (n_points, dim)
        ref_weights: Quadrature weights (ones if the points are not a rule,
                     e.g. nodal evaluation for stress recovery)

    Returns:
        ElementLocalData

    Raises:
        ValueError: If the element is degenerate or inverted
    """
    coords = np.asarray(coords, dtype=float)
    ref_points = np.atleast_2d(np.asarray(ref_points, dtype=float))
    n_points = ref_points.shape[0]
    n_nodes, dim = coords.shape

    if n_nodes != element_type.n_nodes or dim != element_type.dim:
        raise ValueError(
            f"{element_type.name} expects {element_type.n_nodes} nodes in "
            f"{element_type.dim}D, got coordinates of shape {coords.shape}")

    if ref_weights is None:
        ref_weights = np.ones(n_points)

    N = np.zeros((n_points, n_nodes))
    dN_dx = np.zeros((n_points, n_nodes, dim))
    det_jac = np.zeros(n_points)
    points = np.zeros((n_points, dim))

    for q in range(n_points):
        xi = ref_points[q]
        N[q] = element_type.shape_functions(xi)
        dN_dxi = element_type.shape_derivatives(xi)

        # J[i, j] = dx_i / dxi_j
        jacobian = coords.T @ dN_dxi
        det = np.linalg.det(jacobian)
        if det <= 0.0:
            raise ValueError(
                f"Non-positive Jacobian determinant {det:g} in {element_type.name} "
                f"element (degenerate or inverted node ordering)")

        # dN/dx = dN/dxi * dxi/dx
        dN_dx[q] = dN_dxi @ np.linalg.inv(jacobian)
        det_jac[q] = det
        points[q] = N[q] @ coords

    return ElementLocalData(region=region, dim=dim, N=N, dN_dx=dN_dx,
                            weights=np.asarray(ref_weights, dtype=float),
                            det_jac=det_jac, points=points)


def compute_facet_data(facet_type: ReferenceElement,
                       coords: np.ndarray,
                       quadrature: Optional[QuadratureRule] = None) -> FacetLocalData:
    """
    Evaluate basis values and surface measure on a boundary facet.

    Parameters:
        facet_type: Reference element of the facet (LINE2/3, TRI3/6 or QUAD4/9)
        coords: Physical node coordinates, shape (n_nodes, dim), where dim
                is one larger than the facet's reference dimension
        quadrature: Quadrature rule (defaults to full integration of the facet)

    Returns:
        FacetLocalData
    """
    coords = np.asarray(coords, dtype=float)
    if quadrature is None:
        quadrature = facet_type.default_quadrature()

    n_points = quadrature.n_points
    n_nodes, dim = coords.shape
    N = np.zeros((n_points, n_nodes))
    measure = np.zeros(n_points)
    points = np.zeros((n_points, dim))

    for q in range(n_points):
        xi = quadrature.points[q]
        N[q] = facet_type.shape_functions(xi)
        tangents = coords.T @ facet_type.shape_derivatives(xi)  # (dim, dim - 1)
        # Length of the tangent in 2D, area of the tangent parallelogram in 3D
        measure[q] = np.sqrt(np.linalg.det(tangents.T @ tangents))
        points[q] = N[q] @ coords

    return FacetLocalData(dim=dim, N=N, weights=quadrature.weights,
                          measure=measure, points=points)
