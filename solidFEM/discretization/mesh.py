"""
Unstructured mesh with material regions and boundary attributes.

The Mesh class is the data structure the solver iterates over:
1. Node coordinates and element connectivity (one element type per mesh)
2. One region id (material attribute) per element
3. Boundary facets, each tagged with a boundary attribute

Structured generators label the sides of the bounding box with the
boundary attributes

    1: x = x_min    2: x = x_max
    3: y = y_min    4: y = y_max
    5: z = z_min    6: z = z_max   (3D only)

so that a cantilever is clamped on attribute 1 and loaded on attribute 2.
Region ids start at 1, with n_regions equal slabs along x. Generators build
linear meshes and, with order=2, elevate them to quadratic elements.

DOF numbering is node-interleaved: global DOF of node n, component i
is n * dim + i.
"""
from __future__ import annotations

import logging
import numpy as np
from typing import Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass

from .element import (ReferenceElement, ElementLocalData, FacetLocalData,
                      compute_local_data, compute_facet_data, get_element_type,
                      QUAD4, TRI3, HEX8, TET4)
from ..quadrature.gauss import QuadratureRule

logger = logging.getLogger(__name__)


class Mesh:
    """
    Finite element mesh with region and boundary attributes.

    Attributes:
        nodes: Node coordinates, shape (n_nodes, dim)
        elements: Connectivity, shape (n_elements, n_nodes_per_element)
        element_type: Reference element shared by all elements
        attributes: Region id of each element, shape (n_elements,)
        facets: Boundary facet connectivity, shape (n_facets, n_nodes_per_facet)
        facet_attributes: Boundary attribute of each facet, shape (n_facets,)
    """

    def __init__(self,
                 nodes: np.ndarray,
                 elements: np.ndarray,
                 element_type: ReferenceElement,
                 attributes: Optional[np.ndarray] = None,
                 facets: Optional[np.ndarray] = None,
                 facet_attributes: Optional[np.ndarray] = None):
        """
        Initialize mesh.

        Parameters:
            nodes: Node coordinates
            elements: Element connectivity (node indices)
            element_type: Reference element (or its name)
            attributes: Region ids, defaults to 1 for every element
            facets: Boundary facets; extracted from the connectivity if None
            facet_attributes: Boundary attributes; classified against the
                              bounding box if None
        """
        if isinstance(element_type, str):
            element_type = get_element_type(element_type)
        if element_type.facet is None:
            raise ValueError(f"{element_type.name} cannot be used as a volume element")

        self.nodes = np.asarray(nodes, dtype=float)
        self.elements = np.asarray(elements, dtype=int)
        self.element_type = element_type

        if self.elements.ndim != 2 or self.elements.shape[1] != element_type.n_nodes:
            raise ValueError(
                f"{element_type.name} connectivity must have {element_type.n_nodes} "
                f"columns, got shape {self.elements.shape}")
        if self.nodes.ndim != 2 or self.nodes.shape[1] != element_type.dim:
            raise ValueError(
                f"{element_type.name} mesh needs {element_type.dim}D nodes, "
                f"got shape {self.nodes.shape}")

        if attributes is None:
            attributes = np.ones(self.n_elements, dtype=int)
        self.attributes = np.asarray(attributes, dtype=int)
        if self.attributes.shape != (self.n_elements,):
            raise ValueError("Need exactly one attribute per element")

        if facets is None:
            facets = self.find_boundary_facets()
        n_facet_nodes = len(element_type.facet_nodes[0])
        self.facets = np.asarray(facets, dtype=int).reshape(-1, n_facet_nodes)
        if facet_attributes is None:
            facet_attributes = self.classify_box_facets()
        self.facet_attributes = np.asarray(facet_attributes, dtype=int)

    @property
    def dim(self) -> int:
        """Spatial dimension."""
        return self.nodes.shape[1]

    @property
    def n_nodes(self) -> int:
        return self.nodes.shape[0]

    @property
    def n_elements(self) -> int:
        return self.elements.shape[0]

    @property
    def n_dof(self) -> int:
        """Total number of displacement DOFs."""
        return self.n_nodes * self.dim

    @property
    def regions(self) -> Tuple[int, ...]:
        """Sorted distinct region ids present in the mesh."""
        return tuple(int(r) for r in np.unique(self.attributes))

    @property
    def boundary_attributes(self) -> Tuple[int, ...]:
        return tuple(int(a) for a in np.unique(self.facet_attributes))

    @property
    def facet_type(self) -> ReferenceElement:
        return get_element_type(self.element_type.facet)

    def element_coordinates(self, element_id: int) -> np.ndarray:
        """Node coordinates of one element, shape (n_nodes_per_element, dim)."""
        return self.nodes[self.elements[element_id]]

    def node_dofs(self, node_ids) -> np.ndarray:
        """Node-interleaved global DOF indices of the given nodes."""
        node_ids = np.asarray(node_ids, dtype=int)
        return (node_ids[:, None] * self.dim + np.arange(self.dim)).ravel()

    def element_dofs(self, element_id: int) -> np.ndarray:
        """Global DOF indices of one element (node-interleaved)."""
        return self.node_dofs(self.elements[element_id])

    def local_data(self, element_id: int, ref_points: np.ndarray,
                   ref_weights: Optional[np.ndarray] = None) -> ElementLocalData:
        """Evaluate ElementLocalData of one element at reference points."""
        return compute_local_data(self.element_type,
                                  self.element_coordinates(element_id),
                                  int(self.attributes[element_id]),
                                  ref_points, ref_weights)

    def quadrature_data(self, element_id: int, quadrature: QuadratureRule) -> ElementLocalData:
        """ElementLocalData at the points of a quadrature rule."""
        return self.local_data(element_id, quadrature.points, quadrature.weights)

    def nodal_data(self, element_id: int) -> ElementLocalData:
        """ElementLocalData evaluated at the element's own nodes."""
        return self.local_data(element_id, self.element_type.node_coordinates)

    def facet_data(self, facet_id: int,
                   quadrature: Optional[QuadratureRule] = None) -> FacetLocalData:
        return compute_facet_data(self.facet_type, self.nodes[self.facets[facet_id]],
                                  quadrature)

    def get_facets(self, boundary_attribute: int) -> np.ndarray:
        """Indices of facets carrying a boundary attribute."""
        return np.flatnonzero(self.facet_attributes == boundary_attribute)

    def boundary_nodes(self, boundary_attribute: int) -> np.ndarray:
        """Sorted node indices on facets with the given attribute."""
        facet_ids = self.get_facets(boundary_attribute)
        return np.unique(self.facets[facet_ids])

    def boundary_dofs(self, boundary_attribute: int,
                      components: Optional[Sequence[int]] = None) -> np.ndarray:
        """
        Global DOFs of boundary nodes.

        Parameters:
            boundary_attribute: Boundary attribute
            components: Displacement components to include (default all)
        """
        nodes = self.boundary_nodes(boundary_attribute)
        if components is None:
            components = range(self.dim)
        components = np.asarray(list(components), dtype=int)
        return (nodes[:, None] * self.dim + components).ravel()

    def node_elements(self) -> List[List[int]]:
        """Element ids touching each node."""
        touching: List[List[int]] = [[] for _ in range(self.n_nodes)]
        for e, conn in enumerate(self.elements):
            for n in conn:
                touching[n].append(e)
        return touching

    def find_boundary_facets(self) -> np.ndarray:
        """
        Extract facets that belong to exactly one element.

        Returns:
            Facet connectivity in the owning element's local facet order
        """
        count: Dict[Tuple[int, ...], int] = {}
        first: Dict[Tuple[int, ...], Tuple[int, ...]] = {}
        for conn in self.elements:
            for local in self.element_type.facet_nodes:
                facet = tuple(int(conn[i]) for i in local)
                key = tuple(sorted(facet))
                count[key] = count.get(key, 0) + 1
                first.setdefault(key, facet)

        boundary = [first[key] for key, c in count.items() if c == 1]
        n_facet_nodes = len(self.element_type.facet_nodes[0])
        return np.array(boundary, dtype=int).reshape(-1, n_facet_nodes)

    def classify_box_facets(self, tol: float = 1e-10) -> np.ndarray:
        """
        Tag facets lying on a side of the bounding box.

        Facets not on any side get attribute 0.
        """
        lo = self.nodes.min(axis=0)
        hi = self.nodes.max(axis=0)
        scale = max(float(np.max(hi - lo)), 1.0)

        attrs = np.zeros(len(self.facets), dtype=int)
        for f, facet in enumerate(self.facets):
            xyz = self.nodes[facet]
            for d in range(self.dim):
                if np.all(np.abs(xyz[:, d] - lo[d]) < tol * scale):
                    attrs[f] = 2 * d + 1
                    break
                if np.all(np.abs(xyz[:, d] - hi[d]) < tol * scale):
                    attrs[f] = 2 * d + 2
                    break
        return attrs

    def __repr__(self) -> str:
        return (f"Mesh({self.element_type.name}, n_nodes={self.n_nodes}, "
                f"n_elements={self.n_elements}, regions={list(self.regions)})")


def elevate_mesh(mesh: Mesh) -> Mesh:
    """
    Quadratic mesh with the same vertices, regions and boundary attributes.

    New nodes are placed at edge midpoints and at face and cell centres.
    A node shared by neighbouring elements (or by an element and a
    boundary facet) is created once.

    Parameters:
        mesh: Mesh of linear elements

    Returns:
        Mesh of the quadratic counterpart (TRI6, QUAD9, TET10 or HEX27)
    """
    linear = mesh.element_type
    if linear.quadratic is None:
        raise ValueError(f"{linear.name} elements have no quadratic counterpart")
    quadratic = get_element_type(linear.quadratic)
    facet_type = get_element_type(quadratic.facet)

    new_ids: Dict[frozenset, int] = {}
    extra: List[np.ndarray] = []

    def node_for(vertex_ids: Tuple[int, ...]) -> int:
        if len(vertex_ids) == 1:
            return vertex_ids[0]
        key = frozenset(vertex_ids)
        if key not in new_ids:
            new_ids[key] = mesh.n_nodes + len(extra)
            extra.append(mesh.nodes[list(vertex_ids)].mean(axis=0))
        return new_ids[key]

    def elevate(connectivity: np.ndarray, element: ReferenceElement) -> np.ndarray:
        rows = [[node_for(tuple(conn[list(p)].tolist())) for p in element.parents]
                for conn in connectivity]
        return np.array(rows, dtype=int).reshape(-1, element.n_nodes)

    elements = elevate(mesh.elements, quadratic)
    facets = elevate(mesh.facets, facet_type)
    nodes = np.vstack([mesh.nodes] + extra) if extra else mesh.nodes.copy()

    result = Mesh(nodes, elements, quadratic, mesh.attributes.copy(),
                  facets, mesh.facet_attributes.copy())
    logger.debug("Elevated %s mesh to %r", linear.name, result)
    return result


def _with_order(mesh: Mesh, order: int) -> Mesh:
    if order == 1:
        return mesh
    if order == 2:
        return elevate_mesh(mesh)
    raise ValueError(f"Element order must be 1 or 2, got {order}")


def _slab_attributes(centroids_x: np.ndarray, x_min: float, length: float,
                     n_regions: int) -> np.ndarray:
    """Region ids 1..n_regions from equal slabs along x."""
    if n_regions < 1:
        raise ValueError(f"Need at least one region, got {n_regions}")
    idx = np.floor((centroids_x - x_min) / length * n_regions).astype(int)
    return np.clip(idx, 0, n_regions - 1) + 1


def make_rectangle_mesh(length: float = 1.0, height: float = 1.0,
                        nx: int = 4, ny: int = 4,
                        n_regions: int = 1,
                        triangles: bool = False,
                        origin: Tuple[float, float] = (0.0, 0.0),
                        order: int = 1) -> Mesh:
    """
    Structured mesh of a rectangle.

    Parameters:
        length, height: Size in x and y
        nx, ny: Number of cells per direction
        n_regions: Number of equal material slabs along x
        triangles: Split every quadrilateral into two TRI3 elements
        origin: Lower-left corner
        order: Element degree, 1 (QUAD4, TRI3) or 2 (QUAD9, TRI6)

    Returns:
        Mesh of QUAD4, TRI3, QUAD9 or TRI6 elements
    """
    x0, y0 = origin
    xs = np.linspace(x0, x0 + length, nx + 1)
    ys = np.linspace(y0, y0 + height, ny + 1)
    X, Y = np.meshgrid(xs, ys, indexing="ij")
    nodes = np.column_stack([X.ravel(), Y.ravel()])

    def nid(i, j):
        return i * (ny + 1) + j

    quads = []
    for i in range(nx):
        for j in range(ny):
            quads.append([nid(i, j), nid(i + 1, j), nid(i + 1, j + 1), nid(i, j + 1)])
    quads = np.array(quads, dtype=int)

    if triangles:
        elements = np.vstack([quads[:, [0, 1, 2]], quads[:, [0, 2, 3]]])
        element_type = TRI3
    else:
        elements = quads
        element_type = QUAD4

    centroids = nodes[elements].mean(axis=1)
    attributes = _slab_attributes(centroids[:, 0], x0, length, n_regions)

    mesh = _with_order(Mesh(nodes, elements, element_type, attributes), order)
    logger.debug("Built %r", mesh)
    return mesh


# Kuhn subdivision of the unit cube into six tetrahedra sharing the 0-6 diagonal
_HEX_TO_TETS = (
    (0, 1, 2, 6), (0, 2, 3, 6), (0, 3, 7, 6),
    (0, 7, 4, 6), (0, 4, 5, 6), (0, 5, 1, 6),
)


def make_box_mesh(lx: float = 1.0, ly: float = 1.0, lz: float = 1.0,
                  nx: int = 2, ny: int = 2, nz: int = 2,
                  n_regions: int = 1,
                  tetrahedra: bool = False,
                  origin: Tuple[float, float, float] = (0.0, 0.0, 0.0),
                  order: int = 1) -> Mesh:
    """
    Structured mesh of a box.

    Parameters:
        lx, ly, lz: Size in each direction
        nx, ny, nz: Number of cells per direction
        n_regions: Number of equal material slabs along x
        tetrahedra: Split every hexahedron into six TET4 elements
        origin: Minimum corner
        order: Element degree, 1 (HEX8, TET4) or 2 (HEX27, TET10)

    Returns:
        Mesh of HEX8, TET4, HEX27 or TET10 elements
    """
    x0, y0, z0 = origin
    xs = np.linspace(x0, x0 + lx, nx + 1)
    ys = np.linspace(y0, y0 + ly, ny + 1)
    zs = np.linspace(z0, z0 + lz, nz + 1)
    X, Y, Z = np.meshgrid(xs, ys, zs, indexing="ij")
    nodes = np.column_stack([X.ravel(), Y.ravel(), Z.ravel()])

    def nid(i, j, k):
        return (i * (ny + 1) + j) * (nz + 1) + k

    hexes = []
    for i in range(nx):
        for j in range(ny):
            for k in range(nz):
                hexes.append([
                    nid(i, j, k), nid(i + 1, j, k), nid(i + 1, j + 1, k), nid(i, j + 1, k),
                    nid(i, j, k + 1), nid(i + 1, j, k + 1), nid(i + 1, j + 1, k + 1),
                    nid(i, j + 1, k + 1)])
    hexes = np.array(hexes, dtype=int)

    if tetrahedra:
        elements = np.vstack([hexes[:, list(t)] for t in _HEX_TO_TETS])
        elements = orient_elements(nodes, elements, TET4)
        element_type = TET4
    else:
        elements = hexes
        element_type = HEX8

    centroids = nodes[elements].mean(axis=1)
    attributes = _slab_attributes(centroids[:, 0], x0, lx, n_regions)

    mesh = _with_order(Mesh(nodes, elements, element_type, attributes), order)
    logger.debug("Built %r", mesh)
    return mesh


# Node permutation mirroring each linear reference cell
_MIRRORS = {
    "tri3": (0, 2, 1),
    "quad4": (0, 3, 2, 1),
    "tet4": (0, 2, 1, 3),
    "hex8": (4, 5, 6, 7, 0, 1, 2, 3),
}


def orient_elements(nodes: np.ndarray, elements: np.ndarray,
                    element_type: ReferenceElement) -> np.ndarray:
    """Reorder the nodes of negatively oriented linear elements."""
    elements = np.array(elements, dtype=int)
    mirror = _MIRRORS.get(element_type.name)
    if mirror is None or len(elements) == 0:
        return elements
    centre = element_type.node_coordinates.mean(axis=0)
    dN = element_type.shape_derivatives(centre)
    jacobians = np.einsum("eni,nj->eij", np.asarray(nodes)[elements], dN)
    flip = np.linalg.det(jacobians) < 0
    elements[flip] = elements[flip][:, list(mirror)]
    return elements


def make_beam_mesh(dim: int = 2, length: float = 8.0, height: float = 1.0,
                   n_elements_x: int = 16, n_elements_y: int = 2,
                   n_elements_z: int = 2, n_regions: int = 2,
                   simplex: bool = False, order: int = 1) -> Mesh:
    """
    Multi-material cantilever beam.

    The beam spans [0, length] x [0, height] (x [0, height] in 3D), with
    n_regions material slabs along its axis, clamped side 1 at x = 0 and
    loaded side 2 at x = length. order=2 gives quadratic elements.
    """
    if dim == 2:
        return make_rectangle_mesh(length, height, n_elements_x, n_elements_y,
                                   n_regions=n_regions, triangles=simplex, order=order)
    if dim == 3:
        return make_box_mesh(length, height, height, n_elements_x, n_elements_y,
                             n_elements_z, n_regions=n_regions, tetrahedra=simplex,
                             order=order)
    raise ValueError(f"Beam mesh dimension must be 2 or 3, got {dim}")


class BoundaryCondition:
    """Base class for boundary conditions."""
    pass


@dataclass
class DirichletBC(BoundaryCondition):
    """
    Dirichlet boundary condition: u_i = g on selected DOFs.

    Attributes:
        dof_indices: Global DOF indices where BC is applied
        values: Prescribed values at those DOFs
    """
    dof_indices: np.ndarray
    values: np.ndarray

    def __post_init__(self):
        self.dof_indices = np.asarray(self.dof_indices, dtype=int)
        self.values = np.broadcast_to(
            np.asarray(self.values, dtype=float), self.dof_indices.shape).copy()

    @classmethod
    def homogeneous(cls, dof_indices: np.ndarray) -> 'DirichletBC':
        """Create homogeneous Dirichlet BC (u = 0)."""
        return cls(dof_indices, np.zeros(len(dof_indices)))

    @classmethod
    def on_boundary(cls, mesh: Mesh, boundary_attribute: int,
                    components: Optional[Sequence[int]] = None,
                    value: float = 0.0) -> 'DirichletBC':
        """
        Prescribe displacement components on all nodes of a boundary.

        Parameters:
            mesh: Mesh
            boundary_attribute: Boundary attribute (e.g. 1 for x = x_min)
            components: Components to fix (default all, i.e. clamped)
            value: Prescribed value
        """
        dofs = mesh.boundary_dofs(boundary_attribute, components)
        if len(dofs) == 0:
            raise ValueError(f"No nodes on boundary attribute {boundary_attribute}")
        return cls(dofs, np.full(len(dofs), float(value)))

    @classmethod
    def from_function(cls, mesh: Mesh, boundary_attribute: int, func) -> 'DirichletBC':
        """
        Prescribe u = func(x) on a boundary.

        Parameters:
            mesh: Mesh
            boundary_attribute: Boundary attribute
            func: Function of node coordinates returning a (dim,) displacement
        """
        nodes = mesh.boundary_nodes(boundary_attribute)
        values = np.array([func(mesh.nodes[n]) for n in nodes], dtype=float)
        return cls(mesh.node_dofs(nodes), values.ravel())
