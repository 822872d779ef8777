"""
Base solver class.

A solver owns the global side of a finite element problem: the DOF map
(taken from the mesh), the sparse operator, the load vector and the
solution. Subclasses only supply the element kernel.

Assembly visits elements one at a time:

    for e in mesh:
        K_e, f_e = compute_element_matrices(e, quadrature)   # dense blocks
        scatter K_e, f_e into rows/columns mesh.element_dofs(e)

Element blocks are collected as (row, col, value) triplets in preallocated
arrays and converted once to CSR; duplicate entries are summed during the
conversion.

Dirichlet conditions are applied after assembly, either by elimination
(prescribed values moved to the right-hand side, rows and columns replaced
by the identity) or by a diagonal penalty.
"""

import logging
import numpy as np
from scipy import sparse
from scipy.sparse.linalg import spsolve
from typing import Tuple, List, Optional
from abc import ABC, abstractmethod

from ..discretization.mesh import Mesh, DirichletBC
from ..quadrature.gauss import QuadratureRule

logger = logging.getLogger(__name__)

BC_METHODS = ("elimination", "penalty")


class Solver(ABC):
    """
    Abstract finite element solver on a Mesh.

    Subclasses override compute_element_matrices and, for Neumann terms,
    compute_boundary_load.

    Attributes:
        mesh: Mesh being solved on
        K: Global operator (CSR) after assemble(), modified by BCs
        f: Global load vector after assemble(), modified by BCs
        u: Solution after solve()
    """

    def __init__(self, mesh: Mesh):
        self.mesh = mesh
        self.n_dof = mesh.n_dof

        self.K: Optional[sparse.csr_matrix] = None
        self.f: Optional[np.ndarray] = None
        self.u: Optional[np.ndarray] = None

        # Unconstrained system, kept for reaction forces
        self._K_free: Optional[sparse.csr_matrix] = None
        self._f_free: Optional[np.ndarray] = None

        self._dirichlet_bcs: List[DirichletBC] = []

    def add_dirichlet_bc(self, bc: DirichletBC):
        """Register a Dirichlet condition; later ones win on shared DOFs."""
        self._dirichlet_bcs.append(bc)

    @abstractmethod
    def compute_element_matrices(self, element_id: int,
                                 quadrature: QuadratureRule) -> Tuple[np.ndarray, np.ndarray]:
        """
        Element kernel.

        Parameters:
            element_id: Element index in the mesh
            quadrature: Quadrature rule on the element's reference cell

        Returns:
            (K_e, f_e) with shapes (n_local, n_local) and (n_local,), in the
            order of mesh.element_dofs(element_id)
        """

    def compute_boundary_load(self) -> np.ndarray:
        """Global load vector of boundary terms. Zero unless overridden."""
        return np.zeros(self.n_dof)

    def assemble(self, quadrature: Optional[QuadratureRule] = None):
        """
        Build the global operator and load vector.

        Parameters:
            quadrature: Quadrature rule; defaults to full integration of
                        the mesh's element type
        """
        if quadrature is None:
            quadrature = self.mesh.element_type.default_quadrature()

        n_local = self.mesh.elements.shape[1] * self.mesh.dim
        block = n_local * n_local
        n_entries = self.mesh.n_elements * block
        rows = np.empty(n_entries, dtype=int)
        cols = np.empty(n_entries, dtype=int)
        vals = np.empty(n_entries)
        f = np.zeros(self.n_dof)

        for e in range(self.mesh.n_elements):
            K_e, f_e = self.compute_element_matrices(e, quadrature)
            dofs = self.mesh.element_dofs(e)

            span = slice(e * block, (e + 1) * block)
            rows[span] = np.repeat(dofs, n_local)
            cols[span] = np.tile(dofs, n_local)
            vals[span] = K_e.ravel()
            np.add.at(f, dofs, f_e)

        f += self.compute_boundary_load()

        K = sparse.coo_matrix((vals, (rows, cols)), shape=(self.n_dof, self.n_dof)).tocsr()
        self._K_free, self._f_free = K, f
        self.K, self.f = K.copy(), f.copy()

        logger.info("Assembled %d elements: %d DOFs, %d nonzeros",
                    self.mesh.n_elements, self.n_dof, self.K.nnz)

    def apply_boundary_conditions(self, method: str = "elimination"):
        """
        Impose the registered Dirichlet conditions on K and f.

        Parameters:
            method: "elimination" (exact) or "penalty"
        """
        if self.K is None or self.f is None:
            raise RuntimeError("System not assembled. Call assemble() first.")
        if method not in BC_METHODS:
            raise ValueError(f"Unknown BC method: {method!r}; expected one of {BC_METHODS}")

        dofs, values = self.prescribed_dofs()
        if dofs.size == 0:
            logger.warning("No Dirichlet conditions; the operator is singular "
                           "unless rigid-body motion is otherwise prevented")
            return

        if method == "elimination":
            self._eliminate(dofs, values)
        else:
            self._penalize(dofs, values)
        logger.debug("Applied %d Dirichlet DOFs by %s", dofs.size, method)

    def prescribed_dofs(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Merged Dirichlet DOFs and values.

        Returns:
            (dofs, values) with dofs sorted and unique
        """
        prescribed = {}
        for bc in self._dirichlet_bcs:
            prescribed.update(zip(bc.dof_indices.tolist(), bc.values.tolist()))
        dofs = np.array(sorted(prescribed), dtype=int)
        values = np.array([prescribed[d] for d in dofs.tolist()], dtype=float)
        return dofs, values

    def _eliminate(self, dofs: np.ndarray, values: np.ndarray):
        g = np.zeros(self.n_dof)
        g[dofs] = values
        f = self.f - self.K @ g

        # K <- P K P + (I - P), with P the projector on free DOFs
        free = np.ones(self.n_dof)
        free[dofs] = 0.0
        P = sparse.diags(free)
        self.K = (P @ self.K @ P + sparse.diags(1.0 - free)).tocsr()

        f[dofs] = values
        self.f = f

    def _penalize(self, dofs: np.ndarray, values: np.ndarray, penalty: float = 1e10):
        scale = penalty * max(np.abs(self.K.diagonal()).max(), 1.0)
        weights = np.zeros(self.n_dof)
        weights[dofs] = scale
        self.K = (self.K + sparse.diags(weights)).tocsr()
        self.f = self.f.copy()
        self.f[dofs] += scale * values

    def solve(self) -> np.ndarray:
        """
        Solve K u = f with a sparse direct solver.

        Returns:
            Solution vector u
        """
        if self.K is None or self.f is None:
            raise RuntimeError("System not assembled. Call assemble() first.")

        self.u = spsolve(self.K.tocsc(), self.f)
        logger.info("Solved linear system of size %d", self.n_dof)
        return self.u

    def reaction_forces(self, u: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Residual K u - f of the unconstrained system.

        Nonzero only on prescribed DOFs, where it is the support reaction.
        """
        if self._K_free is None:
            raise RuntimeError("System not assembled. Call assemble() first.")
        if u is None:
            u = self.u
        if u is None:
            raise RuntimeError("No solution available. Call solve() first.")
        return self._K_free @ u - self._f_free

    def run(self, quadrature: Optional[QuadratureRule] = None,
            bc_method: str = "elimination") -> np.ndarray:
        """
        Assemble, apply Dirichlet conditions and solve.

        Parameters:
            quadrature: Quadrature rule (default: full integration)
            bc_method: "elimination" or "penalty"

        Returns:
            Solution vector
        """
        self.assemble(quadrature)
        self.apply_boundary_conditions(bc_method)
        return self.solve()
