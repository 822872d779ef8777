"""
Stress recovery from a displacement solution.

For every element and every evaluation point p:

    eps_voigt   = B_p u_e
    sigma_voigt = C_region eps_voigt

Element stresses are discontinuous across element boundaries. A continuous
nodal field is obtained by equal-weight averaging: every element touching
a node contributes its stress evaluated at that node, and the nodal value
is the arithmetic mean of all contributions.

Accumulation and finalization are separate steps. NodalStressAccumulator
keeps a (sum, count) pair per node; the mean is formed only in finalize(),
after every element has been visited, so the result does not depend on
the order in which elements are processed. Partial accumulators built over
disjoint element subsets can be combined with merge().

In plane strain the out-of-plane normal stress is not zero:

    sigma_zz = nu_region (sigma_xx + sigma_yy)

It is averaged alongside the in-plane components and kept on the
StressField, so that von_mises() sees the full 3D state.
"""

from __future__ import annotations

import logging
import numpy as np
from dataclasses import dataclass
from typing import Iterable, Optional, TYPE_CHECKING

from ..constitutive.voigt import VOIGT_LABELS, voigt_size, voigt_to_tensor, STRESS
from ..constitutive.elasticity import ElasticityTensorMap, PLANE_STRAIN
from ..discretization.element import ElementLocalData
from ..integrators.stiffness import strain_displacement_matrix
from ..quadrature.gauss import QuadratureRule
from ..errors import ConfigurationError, DimensionMismatchError

if TYPE_CHECKING:
    from ..discretization.mesh import Mesh

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StressField:
    """
    Nodal stress field in Voigt form.

    Attributes:
        values: Read-only array of shape (n_nodes, voigt_size)
        dim: Spatial dimension
        zz: Out-of-plane normal stress of a 2D plane strain field, shape
            (n_nodes,); None in 3D and in plane stress
    """
    values: np.ndarray
    dim: int
    zz: Optional[np.ndarray] = None

    def __post_init__(self):
        values = np.array(self.values, dtype=float)
        if values.ndim != 2 or values.shape[1] != voigt_size(self.dim):
            raise DimensionMismatchError(
                f"{self.dim}D stress field needs {voigt_size(self.dim)} components "
                f"per node, got shape {values.shape}")
        values.setflags(write=False)
        object.__setattr__(self, "values", values)

        if self.zz is not None:
            if self.dim != 2:
                raise DimensionMismatchError("Only 2D stress fields carry sigma_zz")
            zz = np.array(self.zz, dtype=float).ravel()
            if zz.shape != (values.shape[0],):
                raise DimensionMismatchError(
                    f"sigma_zz needs one value per node ({values.shape[0]}), "
                    f"got shape {zz.shape}")
            zz.setflags(write=False)
            object.__setattr__(self, "zz", zz)

    @property
    def n_nodes(self) -> int:
        return self.values.shape[0]

    @property
    def labels(self):
        return VOIGT_LABELS[self.dim]

    def component(self, name: str) -> np.ndarray:
        """Nodal values of one component, e.g. "xx" or "xy"."""
        try:
            k = self.labels.index(name)
        except ValueError:
            raise ValueError(f"Unknown stress component {name!r}; "
                             f"available: {self.labels}") from None
        return self.values[:, k]

    def as_tensors(self) -> np.ndarray:
        """Stress tensors, shape (n_nodes, dim, dim)."""
        return np.array([voigt_to_tensor(v, STRESS) for v in self.values])

    def __len__(self) -> int:
        return self.n_nodes


def element_point_stresses(local_displacement: np.ndarray,
                           local_data: ElementLocalData,
                           tensor_map: ElasticityTensorMap) -> np.ndarray:
    """
    Voigt stress at every evaluation point of one element.

    Parameters:
        local_displacement: Element DOF values, shape (n_nodes * dim,)
        local_data: Element data at the evaluation points
        tensor_map: Region -> constitutive matrix mapping

    Returns:
        Array of shape (n_points, voigt_size)

    Raises:
        DimensionMismatchError: Displacement size or dimension inconsistent
        UnmappedRegionError: Element region has no material
    """
    u_e = np.asarray(local_displacement, dtype=float).ravel()
    if local_data.dim != tensor_map.dim:
        raise DimensionMismatchError(
            f"Element is {local_data.dim}D but material tensors are {tensor_map.dim}D")
    if u_e.shape[0] != local_data.n_dof:
        raise DimensionMismatchError(
            f"Element has {local_data.n_dof} DOFs ({local_data.n_nodes} nodes x "
            f"{local_data.dim}), got {u_e.shape[0]} displacement values")

    C = tensor_map.matrix_for(local_data.region)

    stresses = np.zeros((local_data.n_points, voigt_size(local_data.dim)))
    for p in range(local_data.n_points):
        B = strain_displacement_matrix(local_data.dN_dx[p])
        strain = B @ u_e
        stresses[p] = C @ strain
    return stresses


def out_of_plane_stress(stresses: np.ndarray, tensor_map: ElasticityTensorMap,
                        region: int) -> Optional[np.ndarray]:
    """
    sigma_zz of 2D plane strain stresses, None for other models.

    Parameters:
        stresses: In-plane Voigt stresses [xx, yy, xy], shape (n, 3)
        tensor_map: Region -> constitutive matrix mapping
        region: Region the stresses were computed in
    """
    if tensor_map.dim != 2 or tensor_map.plane != PLANE_STRAIN:
        return None
    stresses = np.atleast_2d(stresses)
    nu = tensor_map.constants_for(region).nu
    return nu * (stresses[:, 0] + stresses[:, 1])


class NodalStressAccumulator:
    """
    Per-node running sum and contribution count.

    Example usage:
        acc = NodalStressAccumulator(mesh.n_nodes, mesh.dim)
        for e in range(mesh.n_elements):
            acc.add(mesh.elements[e], stresses_at_nodes)
        field = acc.finalize()

    With out_of_plane=True (2D plane strain) a sigma_zz sum is kept too
    and every add() must supply it.
    """

    def __init__(self, n_nodes: int, dim: int, out_of_plane: bool = False):
        if out_of_plane and dim != 2:
            raise DimensionMismatchError("Out-of-plane stress only exists in 2D")
        self.dim = dim
        self.sums = np.zeros((n_nodes, voigt_size(dim)))
        self.counts = np.zeros(n_nodes, dtype=int)
        self.zz_sums = np.zeros(n_nodes) if out_of_plane else None

    @property
    def n_nodes(self) -> int:
        return self.counts.shape[0]

    def add(self, node_ids: Iterable[int], stresses: np.ndarray,
            zz: Optional[np.ndarray] = None) -> None:
        """
        Add one element's stresses at its nodes.

        Parameters:
            node_ids: Global node ids, shape (k,)
            stresses: Voigt stresses at those nodes, shape (k, voigt_size)
            zz: sigma_zz at those nodes, shape (k,); plane strain only
        """
        node_ids = np.asarray(node_ids, dtype=int)
        stresses = np.asarray(stresses, dtype=float)
        if stresses.shape != (node_ids.shape[0], self.sums.shape[1]):
            raise DimensionMismatchError(
                f"Expected stresses of shape ({node_ids.shape[0]}, {self.sums.shape[1]}), "
                f"got {stresses.shape}")
        if (zz is None) != (self.zz_sums is None):
            raise DimensionMismatchError(
                "sigma_zz must be given exactly when the accumulator tracks it")
        # unbuffered so repeated node ids accumulate
        np.add.at(self.sums, node_ids, stresses)
        np.add.at(self.counts, node_ids, 1)
        if zz is not None:
            np.add.at(self.zz_sums, node_ids, np.asarray(zz, dtype=float).ravel())

    def merge(self, other: 'NodalStressAccumulator') -> 'NodalStressAccumulator':
        """Fold another partial accumulator into this one."""
        if other.sums.shape != self.sums.shape:
            raise DimensionMismatchError(
                f"Cannot merge accumulators of shapes {other.sums.shape} and {self.sums.shape}")
        if (other.zz_sums is None) != (self.zz_sums is None):
            raise DimensionMismatchError(
                "Cannot merge accumulators with and without sigma_zz")
        self.sums += other.sums
        self.counts += other.counts
        if self.zz_sums is not None:
            self.zz_sums += other.zz_sums
        return self

    def finalize(self) -> StressField:
        """
        Divide sums by counts.

        Raises:
            ConfigurationError: If any node received no contribution
        """
        missing = np.flatnonzero(self.counts == 0)
        if missing.size:
            raise ConfigurationError(
                f"{missing.size} nodes received no stress contribution "
                f"(first: {missing[:5].tolist()}); nodes outside every element?")
        zz = None if self.zz_sums is None else self.zz_sums / self.counts
        return StressField(self.sums / self.counts[:, None], self.dim, zz)


def _check_displacement(mesh: 'Mesh', displacement: np.ndarray,
                        tensor_map: ElasticityTensorMap) -> np.ndarray:
    u = np.asarray(displacement, dtype=float).ravel()
    if u.shape[0] != mesh.n_dof:
        raise DimensionMismatchError(
            f"Displacement has {u.shape[0]} values but the {mesh.dim}D mesh with "
            f"{mesh.n_nodes} nodes has {mesh.n_dof} DOFs")
    if tensor_map.dim != mesh.dim:
        raise DimensionMismatchError(
            f"Mesh is {mesh.dim}D but material tensors are {tensor_map.dim}D")
    return u


def accumulate_nodal_stress(mesh: 'Mesh', displacement: np.ndarray,
                            tensor_map: ElasticityTensorMap,
                            element_ids: Optional[Iterable[int]] = None) -> NodalStressAccumulator:
    """
    Accumulate nodal stress contributions of a subset of elements.

    Parameters:
        mesh: Mesh
        displacement: Global displacement vector, shape (n_dof,)
        tensor_map: Region -> constitutive matrix mapping
        element_ids: Elements to visit (default all, in order)

    Returns:
        Unfinalized accumulator
    """
    u = _check_displacement(mesh, displacement, tensor_map)
    if element_ids is None:
        element_ids = range(mesh.n_elements)

    plane_strain = mesh.dim == 2 and tensor_map.plane == PLANE_STRAIN
    acc = NodalStressAccumulator(mesh.n_nodes, mesh.dim, out_of_plane=plane_strain)
    for e in element_ids:
        local_data = mesh.nodal_data(e)
        stresses = element_point_stresses(u[mesh.element_dofs(e)], local_data, tensor_map)
        zz = out_of_plane_stress(stresses, tensor_map, local_data.region)
        acc.add(mesh.elements[e], stresses, zz)
    return acc


def recover_nodal_stress(mesh: 'Mesh', displacement: np.ndarray,
                         tensor_map: ElasticityTensorMap,
                         element_order: Optional[Iterable[int]] = None) -> StressField:
    """
    Continuous nodal stress field by equal-weight nodal averaging.

    Parameters:
        mesh: Mesh
        displacement: Global displacement vector, shape (n_dof,)
        tensor_map: Region -> constitutive matrix mapping
        element_order: Order in which to visit elements (default 0..n-1).
                       Must cover every element exactly once.

    Returns:
        StressField with one Voigt vector per node

    Raises:
        DimensionMismatchError: Displacement size does not match the mesh
        UnmappedRegionError: An element region has no material
        ConfigurationError: Some node is not touched by any element
    """
    if element_order is not None:
        element_order = [int(e) for e in element_order]
        if sorted(element_order) != list(range(mesh.n_elements)):
            raise ValueError("element_order must be a permutation of all element ids")

    acc = accumulate_nodal_stress(mesh, displacement, tensor_map, element_order)
    field = acc.finalize()
    logger.info("Recovered nodal stress at %d nodes from %d elements",
                field.n_nodes, mesh.n_elements)
    return field


def element_average_stress(mesh: 'Mesh', displacement: np.ndarray,
                           tensor_map: ElasticityTensorMap,
                           quadrature: Optional[QuadratureRule] = None) -> np.ndarray:
    """
    Volume-weighted mean stress of each element over its quadrature points.

    Returns:
        Array of shape (n_elements, voigt_size)
    """
    u = _check_displacement(mesh, displacement, tensor_map)
    if quadrature is None:
        quadrature = mesh.element_type.default_quadrature()

    result = np.zeros((mesh.n_elements, voigt_size(mesh.dim)))
    for e in range(mesh.n_elements):
        local_data = mesh.quadrature_data(e, quadrature)
        stresses = element_point_stresses(u[mesh.element_dofs(e)], local_data, tensor_map)
        dV = local_data.weights * local_data.det_jac
        result[e] = dV @ stresses / np.sum(dV)
    return result


def von_mises(stress, zz=None) -> np.ndarray:
    """
    Von Mises equivalent stress.

    Parameters:
        stress: StressField, or Voigt stresses of shape (n, 6) or (n, 3)
        zz: sigma_zz for 2D input, scalar or shape (n,). Defaults to the
            field's own zz (plane strain) and to 0 (plane stress).

    Returns:
        Array of shape (n,)
    """
    if isinstance(stress, StressField):
        values = stress.values
        if zz is None:
            zz = stress.zz
    else:
        values = np.atleast_2d(stress)

    if values.shape[1] == 6:
        sxx, syy, szz, syz, sxz, sxy = values.T
    elif values.shape[1] == 3:
        sxx, syy, sxy = values.T
        syz = sxz = np.zeros_like(sxx)
        szz = np.zeros_like(sxx) if zz is None else np.broadcast_to(zz, sxx.shape)
    else:
        raise DimensionMismatchError(
            f"Voigt stresses must have 3 or 6 components, got {values.shape[1]}")

    return np.sqrt(0.5 * ((sxx - syy)**2 + (syy - szz)**2 + (szz - sxx)**2)
                   + 3.0 * (sxy**2 + syz**2 + sxz**2))
