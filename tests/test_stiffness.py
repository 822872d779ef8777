"""
Unit tests for the element stiffness integrator.
"""

import pytest
import numpy as np
from numpy.testing import assert_almost_equal, assert_array_almost_equal

from solidFEM.constitutive.voigt import tensor_to_voigt_strain
from solidFEM.discretization.element import (
    LINE2, QUAD4, TRI3, HEX8, TET4, LINE3, QUAD9, TRI6, HEX27, TET10,
    compute_local_data, compute_facet_data
)
from solidFEM.integrators.stiffness import (
    strain_displacement_matrix, element_stiffness, element_body_force, facet_traction
)
from solidFEM.errors import UnmappedRegionError, DimensionMismatchError


def _local_data(element, coords, region=1, order=2):
    rule = element.default_quadrature(order)
    return compute_local_data(element, np.asarray(coords, dtype=float), region,
                              rule.points, rule.weights)


def _rigid_modes(coords):
    """Rigid-body displacement modes (node-interleaved) of a set of nodes."""
    n, dim = coords.shape
    modes = []
    for d in range(dim):
        t = np.zeros((n, dim))
        t[:, d] = 1.0
        modes.append(t.ravel())
    if dim == 2:
        modes.append(np.column_stack([-coords[:, 1], coords[:, 0]]).ravel())
    else:
        for axis in np.eye(3):
            modes.append(np.cross(axis, coords).ravel())
    return modes


QUAD_COORDS = [[0.0, 0.0], [2.0, 0.2], [2.2, 1.5], [-0.1, 1.0]]
TRI_COORDS = [[0.0, 0.0], [1.5, 0.3], [0.2, 1.1]]
HEX_COORDS = [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
              [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1]]
TET_COORDS = [[0, 0, 0], [1, 0, 0], [0, 1, 0], [0.1, 0.2, 1.0]]

CASES_2D = [(QUAD4, QUAD_COORDS), (TRI3, TRI_COORDS)]
CASES_3D = [(HEX8, HEX_COORDS), (TET4, TET_COORDS)]


class TestStrainDisplacement:
    """Tests for the B operator."""

    @pytest.mark.parametrize("element,coords", CASES_2D + CASES_3D,
                             ids=["quad4", "tri3", "hex8", "tet4"])
    def test_linear_field_strain(self, element, coords):
        """Test that B u gives the exact Voigt strain of a linear field."""
        coords = np.asarray(coords, dtype=float)
        dim = coords.shape[1]
        rng = np.random.default_rng(dim)
        A = rng.standard_normal((dim, dim)) * 1e-3
        u = (coords @ A.T).ravel()
        expected = tensor_to_voigt_strain(0.5 * (A + A.T))

        data = _local_data(element, coords)
        for q in range(data.n_points):
            B = strain_displacement_matrix(data.dN_dx[q])
            assert_array_almost_equal(B @ u, expected, decimal=14)

    def test_shape(self):
        """Test B dimensions in 2D and 3D."""
        assert strain_displacement_matrix(np.ones((4, 2))).shape == (3, 8)
        assert strain_displacement_matrix(np.ones((8, 3))).shape == (6, 24)

    def test_known_2d_columns(self):
        """Test column layout for one node."""
        B = strain_displacement_matrix(np.array([[2.0, 3.0]]))
        assert_array_almost_equal(B, [[2.0, 0.0], [0.0, 3.0], [3.0, 2.0]])

    def test_invalid_gradient_shape(self):
        """Test that 1D gradients are rejected."""
        with pytest.raises(DimensionMismatchError):
            strain_displacement_matrix(np.ones((2, 1)))


class TestElementStiffness:
    """Tests for K_e = sum w |J| B^T C B."""

    @pytest.mark.parametrize("element,coords", CASES_2D, ids=["quad4", "tri3"])
    def test_symmetric_2d(self, element, coords, two_material_map_2d):
        """Test exact symmetry of K_e."""
        K = element_stiffness(_local_data(element, coords), two_material_map_2d)
        assert K.shape == (element.n_nodes * 2,) * 2
        assert np.array_equal(K, K.T)

    @pytest.mark.parametrize("element,coords", CASES_2D + CASES_3D,
                             ids=["quad4", "tri3", "hex8", "tet4"])
    def test_rigid_body_null_space(self, element, coords,
                                   two_material_map_2d, two_material_map_3d):
        """Test that rigid-body modes produce no force."""
        coords = np.asarray(coords, dtype=float)
        tmap = two_material_map_2d if coords.shape[1] == 2 else two_material_map_3d
        K = element_stiffness(_local_data(element, coords), tmap)
        scale = np.max(np.abs(K))
        for mode in _rigid_modes(coords):
            assert np.max(np.abs(K @ mode)) < 1e-10 * scale

    @pytest.mark.parametrize("element,coords", CASES_2D + CASES_3D,
                             ids=["quad4", "tri3", "hex8", "tet4"])
    def test_rank(self, element, coords, two_material_map_2d, two_material_map_3d):
        """Test that only the rigid-body modes are zero-energy modes."""
        coords = np.asarray(coords, dtype=float)
        dim = coords.shape[1]
        tmap = two_material_map_2d if dim == 2 else two_material_map_3d
        K = element_stiffness(_local_data(element, coords), tmap)
        eig = np.linalg.eigvalsh(K)
        n_rigid = 3 if dim == 2 else 6
        assert np.sum(eig < 1e-8 * eig.max()) == n_rigid
        assert np.all(eig > -1e-8 * eig.max())

    def test_scales_with_modulus(self, two_material_map_2d):
        """Test that region 1 (E = 1000e3) is 5x stiffer than region 2 (E = 200e3)."""
        K1 = element_stiffness(_local_data(QUAD4, QUAD_COORDS, region=1), two_material_map_2d)
        K2 = element_stiffness(_local_data(QUAD4, QUAD_COORDS, region=2), two_material_map_2d)
        assert_array_almost_equal(K1, 5.0 * K2, decimal=6)

    def test_strain_energy_of_uniform_strain(self, two_material_map_2d):
        """Test u^T K u = area * eps^T C eps for a uniform strain."""
        coords = np.asarray(QUAD_COORDS)
        A = np.array([[1e-3, 2e-4], [5e-4, -3e-4]])
        u = (coords @ A.T).ravel()
        eps = tensor_to_voigt_strain(0.5 * (A + A.T))

        data = _local_data(QUAD4, coords)
        area = np.sum(data.weights * data.det_jac)
        C = two_material_map_2d.matrix_for(1)
        K = element_stiffness(data, two_material_map_2d)
        assert_almost_equal(u @ K @ u, area * eps @ C @ eps, decimal=8)

    def test_unmapped_region(self, two_material_map_2d):
        """Test that an element in an unregistered region fails."""
        data = _local_data(QUAD4, QUAD_COORDS, region=3)
        with pytest.raises(UnmappedRegionError):
            element_stiffness(data, two_material_map_2d)

    def test_dimension_mismatch(self, two_material_map_3d):
        """Test that 2D elements cannot use 3D tensors."""
        data = _local_data(QUAD4, QUAD_COORDS)
        with pytest.raises(DimensionMismatchError):
            element_stiffness(data, two_material_map_3d)


AFFINE_2D = np.array([[1.2, 0.3], [-0.1, 0.9]])
AFFINE_3D = np.array([[1.1, 0.2, 0.0], [0.1, 0.9, 0.3], [0.0, -0.2, 1.3]])


def _affine_coords(element):
    """Node coordinates of a sheared, stretched copy of the reference cell."""
    A = AFFINE_2D if element.dim == 2 else AFFINE_3D
    return element.node_coordinates @ A.T + 0.5


class TestQuadraticElements:
    """Tests for B and K_e of quadratic elements."""

    @pytest.mark.parametrize("element", [TRI6, QUAD9, TET10, HEX27], ids=lambda e: e.name)
    def test_quadratic_field_strain(self, element):
        """Test that B u gives the exact strain of a quadratic field."""
        coords = _affine_coords(element)
        dim = element.dim
        rng = np.random.default_rng(7)
        Q = rng.standard_normal((dim, dim, dim)) * 1e-3
        Q = 0.5 * (Q + Q.transpose(0, 2, 1))
        u = np.einsum("ijk,nj,nk->ni", Q, coords, coords).ravel()

        data = _local_data(element, coords, order=None)
        for q in range(data.n_points):
            grad = 2.0 * np.einsum("ijk,k->ij", Q, data.points[q])
            expected = tensor_to_voigt_strain(0.5 * (grad + grad.T))
            B = strain_displacement_matrix(data.dN_dx[q])
            assert_array_almost_equal(B @ u, expected, decimal=12)

    @pytest.mark.parametrize("element", [TRI6, QUAD9, TET10, HEX27], ids=lambda e: e.name)
    def test_rigid_body_null_space_and_rank(self, element, two_material_map_2d,
                                            two_material_map_3d):
        """Test that only rigid-body modes are zero-energy modes."""
        coords = _affine_coords(element)
        tmap = two_material_map_2d if element.dim == 2 else two_material_map_3d
        K = element_stiffness(_local_data(element, coords, order=None), tmap)
        assert K.shape == (element.n_nodes * element.dim,) * 2
        scale = np.max(np.abs(K))
        for mode in _rigid_modes(coords):
            assert np.max(np.abs(K @ mode)) < 1e-10 * scale
        eig = np.linalg.eigvalsh(0.5 * (K + K.T))
        n_rigid = 3 if element.dim == 2 else 6
        assert np.sum(eig < 1e-8 * eig.max()) == n_rigid

    def test_line3_traction_total(self):
        """Test that a LINE3 facet distributes the total traction force."""
        data = compute_facet_data(LINE3, np.array([[0.0, 0.0], [0.0, 2.0], [0.0, 1.0]]))
        f = facet_traction(data, np.array([1.0, -3.0]))
        assert_almost_equal(f[0::2].sum(), 2.0)
        assert_almost_equal(f[1::2].sum(), -6.0)
        # 1/6, 1/6, 2/3 of the load on the end and middle nodes
        assert_array_almost_equal(f[0::2], [1.0 / 3.0, 1.0 / 3.0, 4.0 / 3.0])


class TestLoadVectors:
    """Tests for body force and traction integration."""

    def test_body_force_total(self):
        """Test that nodal body forces sum to force density times area."""
        coords = np.array([[0, 0], [2, 0], [2, 3], [0, 3]], dtype=float)
        f = element_body_force(_local_data(QUAD4, coords), [0.0, -2.0])
        assert_almost_equal(np.sum(f[0::2]), 0.0)
        assert_almost_equal(np.sum(f[1::2]), -12.0)
        assert_array_almost_equal(f[1::2], -3.0)

    def test_traction_total(self):
        """Test that traction on an edge of length 5 sums to 5 t."""
        data = compute_facet_data(LINE2, np.array([[0.0, 0.0], [3.0, 4.0]]))
        f = facet_traction(data, [1.0, -2.0])
        assert_array_almost_equal(f, [2.5, -5.0, 2.5, -5.0])

    def test_traction_callable(self):
        """Test a linearly varying traction."""
        data = compute_facet_data(LINE2, np.array([[0.0, 0.0], [0.0, 1.0]]))
        f = facet_traction(data, lambda x: np.array([x[1], 0.0]))
        assert_array_almost_equal(f, [1/6, 0.0, 1/3, 0.0])

    def test_wrong_traction_size(self):
        """Test that the traction must have dim components."""
        data = compute_facet_data(LINE2, np.array([[0.0, 0.0], [1.0, 0.0]]))
        with pytest.raises(DimensionMismatchError):
            facet_traction(data, [1.0, 0.0, 0.0])
