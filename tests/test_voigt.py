"""
Unit tests for Voigt notation conversions.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_array_equal

from solidFEM.constitutive.voigt import (
    tensor_to_voigt, tensor_to_voigt_strain, tensor_to_voigt_stress,
    voigt_to_tensor, voigt_size, dim_from_voigt_size, VOIGT_LABELS
)
from solidFEM.errors import DimensionMismatchError


def _random_symmetric(dim, seed=0):
    rng = np.random.default_rng(seed)
    A = rng.standard_normal((dim, dim))
    return 0.5 * (A + A.T)


class TestVoigtOrdering:
    """Tests for the component ordering convention."""

    def test_sizes(self):
        """Test Voigt sizes for 2D and 3D."""
        assert voigt_size(2) == 3
        assert voigt_size(3) == 6
        assert dim_from_voigt_size(3) == 2
        assert dim_from_voigt_size(6) == 3

    def test_labels(self):
        """Test normal components first, then shear."""
        assert VOIGT_LABELS[2] == ("xx", "yy", "xy")
        assert VOIGT_LABELS[3] == ("xx", "yy", "zz", "yz", "xz", "xy")

    def test_invalid_dimension(self):
        """Test that unsupported dimensions are rejected."""
        with pytest.raises(DimensionMismatchError):
            voigt_size(1)
        with pytest.raises(DimensionMismatchError):
            dim_from_voigt_size(4)


class TestTensorToVoigt:
    """Tests for tensor -> Voigt conversion."""

    def test_strain_3d_known(self):
        """Test that strain shear components are doubled."""
        eps = np.array([[1.0, 6.0, 5.0],
                        [6.0, 2.0, 4.0],
                        [5.0, 4.0, 3.0]])
        v = tensor_to_voigt_strain(eps)
        assert_array_equal(v, [1.0, 2.0, 3.0, 8.0, 10.0, 12.0])

    def test_stress_3d_known(self):
        """Test that stress shear components are copied."""
        sig = np.array([[1.0, 6.0, 5.0],
                        [6.0, 2.0, 4.0],
                        [5.0, 4.0, 3.0]])
        v = tensor_to_voigt_stress(sig)
        assert_array_equal(v, [1.0, 2.0, 3.0, 4.0, 5.0, 6.0])

    def test_2d_known(self):
        """Test 2D ordering [xx, yy, xy]."""
        T = np.array([[1.0, 0.5],
                      [0.5, 2.0]])
        assert_array_equal(tensor_to_voigt_strain(T), [1.0, 2.0, 1.0])
        assert_array_equal(tensor_to_voigt_stress(T), [1.0, 2.0, 0.5])

    def test_wrong_shape(self):
        """Test that non-square or 4x4 tensors are rejected."""
        with pytest.raises(DimensionMismatchError):
            tensor_to_voigt_strain(np.zeros((2, 3)))
        with pytest.raises(DimensionMismatchError):
            tensor_to_voigt_stress(np.zeros((4, 4)))

    def test_unknown_kind(self):
        """Test that an unknown kind is rejected."""
        with pytest.raises(ValueError):
            tensor_to_voigt(np.eye(3), "displacement")


class TestVoigtToTensor:
    """Tests for Voigt -> tensor conversion."""

    @pytest.mark.parametrize("dim", [2, 3])
    @pytest.mark.parametrize("kind", ["strain", "stress"])
    def test_round_trip(self, dim, kind):
        """Test that tensor -> Voigt -> tensor reconstructs the tensor."""
        T = _random_symmetric(dim, seed=dim)
        v = tensor_to_voigt(T, kind)
        assert_array_almost_equal(voigt_to_tensor(v, kind), T, decimal=14)

    def test_strain_shear_halved(self):
        """Test that strain shear is halved when rebuilding the tensor."""
        T = voigt_to_tensor([0.0, 0.0, 0.0, 2.0, 4.0, 6.0], "strain")
        assert T[1, 2] == 1.0 and T[2, 1] == 1.0
        assert T[0, 2] == 2.0
        assert T[0, 1] == 3.0

    def test_result_symmetric(self):
        """Test that rebuilt tensors are symmetric."""
        T = voigt_to_tensor(np.arange(6.0), "stress")
        assert_array_equal(T, T.T)

    def test_wrong_length(self):
        """Test that vector lengths other than 3 or 6 are rejected."""
        with pytest.raises(DimensionMismatchError):
            voigt_to_tensor(np.zeros(4), "stress")
        with pytest.raises(DimensionMismatchError):
            voigt_to_tensor(np.zeros((2, 3)), "strain")
