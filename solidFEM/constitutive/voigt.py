"""
Voigt notation for symmetric rank-2 tensors.

A symmetric tensor is flattened into a vector with the normal components
first and the shear components after:

    3D:  [xx, yy, zz, yz, xz, xy]
    2D:  [xx, yy, xy]

Strain vectors use engineering shear (gamma_ij = 2 eps_ij), stress vectors
do not. With this convention the strain energy density is simply
    W = 1/2 sigma_v . eps_v
and the constitutive law is a plain matrix product sigma_v = C eps_v.

The same ordering is used by the elasticity tensor builder, the
strain-displacement operator and the stress recovery.
"""

import numpy as np
from typing import Tuple

from ..errors import DimensionMismatchError


# (i, j) tensor index pairs in Voigt order
VOIGT_PAIRS = {
    2: ((0, 0), (1, 1), (0, 1)),
    3: ((0, 0), (1, 1), (2, 2), (1, 2), (0, 2), (0, 1)),
}

VOIGT_LABELS = {
    2: ("xx", "yy", "xy"),
    3: ("xx", "yy", "zz", "yz", "xz", "xy"),
}

STRAIN = "strain"
STRESS = "stress"


def voigt_size(dim: int) -> int:
    """Number of Voigt components for a spatial dimension (2 -> 3, 3 -> 6)."""
    if dim not in VOIGT_PAIRS:
        raise DimensionMismatchError(f"Spatial dimension must be 2 or 3, got {dim}")
    return len(VOIGT_PAIRS[dim])


def dim_from_voigt_size(n: int) -> int:
    """Spatial dimension implied by a Voigt vector length (3 -> 2, 6 -> 3)."""
    for dim, pairs in VOIGT_PAIRS.items():
        if len(pairs) == n:
            return dim
    raise DimensionMismatchError(f"Voigt vector length must be 3 or 6, got {n}")


def _check_tensor(tensor) -> Tuple[np.ndarray, int]:
    T = np.asarray(tensor, dtype=float)
    if T.ndim != 2 or T.shape[0] != T.shape[1] or T.shape[0] not in VOIGT_PAIRS:
        raise DimensionMismatchError(
            f"Expected a 2x2 or 3x3 tensor, got shape {T.shape}")
    return T, T.shape[0]


def _shear_factor(kind: str) -> float:
    if kind == STRAIN:
        return 2.0
    if kind == STRESS:
        return 1.0
    raise ValueError(f"Unknown Voigt kind: {kind!r} (expected 'strain' or 'stress')")


def tensor_to_voigt(tensor, kind: str) -> np.ndarray:
    """
    Flatten a symmetric tensor to Voigt form.

    Parameters:
        tensor: Symmetric tensor, shape (dim, dim)
        kind: "strain" (shear doubled) or "stress" (shear copied)

    Returns:
        Voigt vector, shape (3,) or (6,)

    Note:
        Only the upper triangle is read for the shear terms; the tensor
        is assumed symmetric.
    """
    factor = _shear_factor(kind)
    T, dim = _check_tensor(tensor)
    pairs = VOIGT_PAIRS[dim]
    v = np.array([T[i, j] for i, j in pairs])
    v[dim:] *= factor
    return v


def tensor_to_voigt_strain(tensor) -> np.ndarray:
    """Strain tensor to Voigt vector (engineering shear, 2 eps_ij)."""
    return tensor_to_voigt(tensor, STRAIN)


def tensor_to_voigt_stress(tensor) -> np.ndarray:
    """Stress tensor to Voigt vector (shear copied)."""
    return tensor_to_voigt(tensor, STRESS)


def voigt_to_tensor(vector, kind: str) -> np.ndarray:
    """
    Rebuild the symmetric tensor from a Voigt vector.

    Parameters:
        vector: Voigt vector of length 3 (2D) or 6 (3D)
        kind: "strain" (shear halved) or "stress"

    Returns:
        Symmetric tensor, shape (dim, dim)
    """
    factor = _shear_factor(kind)
    v = np.asarray(vector, dtype=float)
    if v.ndim != 1:
        raise DimensionMismatchError(f"Expected a 1D Voigt vector, got shape {v.shape}")
    dim = dim_from_voigt_size(v.shape[0])

    T = np.zeros((dim, dim))
    for k, (i, j) in enumerate(VOIGT_PAIRS[dim]):
        value = v[k] if k < dim else v[k] / factor
        T[i, j] = value
        T[j, i] = value
    return T
