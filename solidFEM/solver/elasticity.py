"""
Linear elasticity solver for heterogeneous bodies.

Solves the linear elasticity equations:
    -div(σ) = b    in Ω
          u = g    on Γ_D (Dirichlet)
        σ·n = t    on Γ_N (Neumann/traction)

where:
    σ = C_r ε(u)   (constitutive relation of region r, Voigt form)
    ε(u) = 1/2 (∇u + ∇u^T)

Element stiffness matrix:
    K_e = ∫_e B^T C_r B dΩ

where B is the strain-displacement matrix and C_r is looked up from the
region id of the element. After the solve, recover_stress() turns the
displacement into a continuous nodal stress field.

2D problems are plane strain unless the tensor map was built with
plane="stress".
"""

import logging
import numpy as np
from typing import Callable, List, Optional, Tuple, Union

from .base import Solver
from ..constitutive.elasticity import ElasticityTensorMap
from ..discretization.mesh import Mesh, DirichletBC
from ..integrators.stiffness import element_stiffness, element_body_force, facet_traction
from ..postprocess.stress import recover_nodal_stress, StressField
from ..quadrature.gauss import QuadratureRule
from ..errors import DimensionMismatchError

logger = logging.getLogger(__name__)

VectorLoad = Union[np.ndarray, List[float], Callable[[np.ndarray], np.ndarray]]


class ElasticitySolver(Solver):
    """
    Linear elasticity solver.

    Example usage:
        mesh = make_beam_mesh(dim=2)
        tensors = ElasticityTensorMap.from_triples(
            [(1, 1000e3, 0.3), (2, 200e3, 0.3)], dim=2,
            domain_regions=mesh.attributes)

        solver = ElasticitySolver(mesh, tensors)
        solver.add_dirichlet_bc(DirichletBC.on_boundary(mesh, 1))
        solver.add_traction(2, [0.0, -0.01])
        u = solver.run()
        stress = solver.recover_stress()
    """

    def __init__(self, mesh: Mesh, tensor_map: ElasticityTensorMap,
                 body_force: Optional[VectorLoad] = None):
        """
        Initialize elasticity solver.

        Parameters:
            mesh: Mesh with region attributes
            tensor_map: Region -> constitutive matrix mapping
            body_force: Body force density (constant vector or callable)

        Raises:
            DimensionMismatchError: Mesh and material dimensions differ
            ConfigurationError: Number of materials differs from the number
                                of distinct mesh regions
            UnmappedRegionError: A mesh region has no material
        """
        super().__init__(mesh)
        if tensor_map.dim != mesh.dim:
            raise DimensionMismatchError(
                f"Mesh is {mesh.dim}D but material tensors are {tensor_map.dim}D")
        # Fail before any element is processed
        tensor_map.check_domain(mesh.regions)

        self.tensor_map = tensor_map
        self.body_force = body_force
        self._tractions: List[Tuple[int, VectorLoad]] = []

    def add_traction(self, boundary_attribute: int, traction: VectorLoad):
        """
        Add a surface traction on a boundary.

        Parameters:
            boundary_attribute: Boundary attribute of the loaded facets
            traction: Traction vector (force per area) or callable t(x)
        """
        if len(self.mesh.get_facets(boundary_attribute)) == 0:
            raise ValueError(f"No facets with boundary attribute {boundary_attribute}")
        self._tractions.append((boundary_attribute, traction))

    def compute_element_matrices(self, element_id: int,
                                 quadrature: QuadratureRule) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute element stiffness matrix and body-force vector.

        Parameters:
            element_id: Element index
            quadrature: Quadrature rule

        Returns:
            (K_e, f_e)
        """
        local_data = self.mesh.quadrature_data(element_id, quadrature)
        K_e = element_stiffness(local_data, self.tensor_map)

        if self.body_force is None:
            f_e = np.zeros(local_data.n_dof)
        else:
            f_e = element_body_force(local_data, self.body_force)
        return K_e, f_e

    def compute_boundary_load(self) -> np.ndarray:
        """Integrate tractions over the loaded boundary facets."""
        f = np.zeros(self.n_dof)
        for attr, traction in self._tractions:
            for facet_id in self.mesh.get_facets(attr):
                facet_data = self.mesh.facet_data(facet_id)
                dofs = self.mesh.node_dofs(self.mesh.facets[facet_id])
                f[dofs] += facet_traction(facet_data, traction)
        return f

    def recover_stress(self, u: Optional[np.ndarray] = None) -> StressField:
        """
        Continuous nodal stress field from the displacement solution.

        Parameters:
            u: Displacement vector (defaults to the last solution)

        Returns:
            StressField
        """
        if u is None:
            if self.u is None:
                raise RuntimeError("No solution available. Call run() first.")
            u = self.u
        return recover_nodal_stress(self.mesh, u, self.tensor_map)

    def nodal_displacements(self, u: Optional[np.ndarray] = None) -> np.ndarray:
        """Displacement reshaped to (n_nodes, dim)."""
        if u is None:
            u = self.u
        return np.asarray(u).reshape(self.mesh.n_nodes, self.mesh.dim)


def solve_cantilever(mesh: Mesh, tensor_map: ElasticityTensorMap,
                     traction: VectorLoad,
                     fixed_attribute: int = 1,
                     loaded_attribute: int = 2) -> Tuple[np.ndarray, StressField]:
    """
    Clamp one boundary, pull on another, solve and recover stress.

    Parameters:
        mesh: Mesh
        tensor_map: Region -> constitutive matrix mapping
        traction: Traction on the loaded boundary
        fixed_attribute: Clamped boundary attribute
        loaded_attribute: Loaded boundary attribute

    Returns:
        (u, stress)
    """
    solver = ElasticitySolver(mesh, tensor_map)
    solver.add_dirichlet_bc(DirichletBC.on_boundary(mesh, fixed_attribute))
    solver.add_traction(loaded_attribute, traction)
    u = solver.run()
    return u, solver.recover_stress()
