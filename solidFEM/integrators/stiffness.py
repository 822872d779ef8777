"""
Element-level integrators for linear elasticity.

Bilinear form (element stiffness matrix):

    K_e = ∫_e B^T C B dΩ  ≈  Σ_q  w_q |J_q| B_q^T C B_q

where B is the strain-displacement operator, eps_voigt = B u_e, and C is
the constitutive matrix of the element's region.

For node a with gradient (Nx, Ny, Nz) the columns of B are

    2D (xx, yy, xy):          3D (xx, yy, zz, yz, xz, xy):
        [Nx  0 ]                  [Nx  0   0 ]
        [0   Ny]                  [0   Ny  0 ]
        [Ny  Nx]                  [0   0   Nz]
                                  [0   Nz  Ny]
                                  [Nz  0   Nx]
                                  [Ny  Nx  0 ]

The shear rows produce engineering shear strain, matching the Voigt
convention of the constitutive matrix.

The integrators only produce dense local blocks. Mapping to global DOFs
is done by the assembly loop (see solver.base.Solver.assemble).
"""

import numpy as np

from ..constitutive.voigt import VOIGT_PAIRS
from ..constitutive.elasticity import ElasticityTensorMap
from ..discretization.element import ElementLocalData, FacetLocalData
from ..errors import DimensionMismatchError


def strain_displacement_matrix(dN_dx: np.ndarray) -> np.ndarray:
    """
    Build the strain-displacement operator B at one point.

    Parameters:
        dN_dx: Physical basis gradients, shape (n_nodes, dim)

    Returns:
        B of shape (voigt_size, n_nodes * dim), node-interleaved columns
    """
    dN_dx = np.asarray(dN_dx, dtype=float)
    if dN_dx.ndim != 2 or dN_dx.shape[1] not in VOIGT_PAIRS:
        raise DimensionMismatchError(
            f"Basis gradients must have shape (n_nodes, 2|3), got {dN_dx.shape}")
    n_nodes, dim = dN_dx.shape
    pairs = VOIGT_PAIRS[dim]

    B = np.zeros((len(pairs), n_nodes * dim))
    for row, (i, j) in enumerate(pairs):
        # eps_ij = 1/2 (du_i/dx_j + du_j/dx_i); shear rows carry 2 eps_ij
        B[row, i::dim] += dN_dx[:, j]
        if i != j:
            B[row, j::dim] += dN_dx[:, i]
    return B


def _check_dim(local_data: ElementLocalData, tensor_map: ElasticityTensorMap):
    if local_data.dim != tensor_map.dim:
        raise DimensionMismatchError(
            f"Element is {local_data.dim}D but material tensors are {tensor_map.dim}D")


def element_stiffness(local_data: ElementLocalData,
                      tensor_map: ElasticityTensorMap) -> np.ndarray:
    """
    Compute the element stiffness matrix.

    Parameters:
        local_data: Element basis gradients and weights at quadrature points
        tensor_map: Region -> constitutive matrix mapping

    Returns:
        Symmetric K_e of shape (n_dof, n_dof)

    Raises:
        UnmappedRegionError: If the element's region has no material
        DimensionMismatchError: If element and material dimensions differ
    """
    _check_dim(local_data, tensor_map)
    C = tensor_map.matrix_for(local_data.region)

    n_dof = local_data.n_dof
    K_e = np.zeros((n_dof, n_dof))

    for q in range(local_data.n_points):
        B = strain_displacement_matrix(local_data.dN_dx[q])
        dV = local_data.weights[q] * local_data.det_jac[q]
        K_e += dV * (B.T @ C @ B)

    # Remove round-off asymmetry
    return 0.5 * (K_e + K_e.T)


def element_body_force(local_data: ElementLocalData, force) -> np.ndarray:
    """
    Element load vector of a body force density.

        f_e[a*dim + i] = ∫_e N_a b_i dΩ

    Parameters:
        local_data: Element data at quadrature points
        force: Constant force vector (dim,) or callable f(point) -> (dim,)

    Returns:
        Load vector of shape (n_dof,)
    """
    dim = local_data.dim
    f_e = np.zeros((local_data.n_nodes, dim))

    for q in range(local_data.n_points):
        b = force(local_data.points[q]) if callable(force) else force
        b = np.asarray(b, dtype=float)
        if b.shape != (dim,):
            raise DimensionMismatchError(
                f"Body force must have {dim} components, got shape {b.shape}")
        dV = local_data.weights[q] * local_data.det_jac[q]
        f_e += dV * np.outer(local_data.N[q], b)

    return f_e.ravel()


def facet_traction(facet_data: FacetLocalData, traction) -> np.ndarray:
    """
    Facet load vector of a surface traction.

        f_e[a*dim + i] = ∫_Γ N_a t_i dΓ

    Parameters:
        facet_data: Facet basis values and surface measure
        traction: Constant traction vector (dim,) or callable t(point) -> (dim,)

    Returns:
        Load vector of shape (n_nodes * dim,)
    """
    dim = facet_data.dim
    f_e = np.zeros((facet_data.n_nodes, dim))

    for q in range(facet_data.n_points):
        t = traction(facet_data.points[q]) if callable(traction) else traction
        t = np.asarray(t, dtype=float)
        if t.shape != (dim,):
            raise DimensionMismatchError(
                f"Traction must have {dim} components, got shape {t.shape}")
        dA = facet_data.weights[q] * facet_data.measure[q]
        f_e += dA * np.outer(facet_data.N[q], t)

    return f_e.ravel()
