"""
Isotropic linear elasticity tensors in Voigt form.

For an isotropic material with Young's modulus E and Poisson ratio nu the
Lamé parameters are

    lam = E nu / ((1 + nu)(1 - 2 nu))
    mu  = E / (2 (1 + nu))

and the 3D constitutive matrix (ordering [xx, yy, zz, yz, xz, xy]) is

    [lam+2mu  lam      lam      0   0   0 ]
    [lam      lam+2mu  lam      0   0   0 ]
    [lam      lam      lam+2mu  0   0   0 ]
    [0        0        0        mu  0   0 ]
    [0        0        0        0   mu  0 ]
    [0        0        0        0   0   mu]

The shear block holds mu (not 2 mu) because Voigt strain carries
engineering shear.

2D problems default to plane strain, which is the [xx, yy, xy] sub-block
of the 3D matrix. Plane stress is available for thin bodies.

A heterogeneous body is described by an ElasticityTensorMap, an immutable
mapping from region id (mesh attribute) to constitutive matrix. Lookups of
unregistered regions fail; there is no default material.
"""

from __future__ import annotations

import logging
import numpy as np
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional, Sequence, Tuple

from .voigt import VOIGT_PAIRS, voigt_size
from ..errors import ConfigurationError, UnmappedRegionError, DimensionMismatchError

logger = logging.getLogger(__name__)

PLANE_STRAIN = "strain"
PLANE_STRESS = "stress"


def lame_parameters(E: float, nu: float) -> Tuple[float, float]:
    """
    Lamé parameters (lam, mu) from engineering constants.

    Raises:
        ConfigurationError: If E <= 0 or nu is outside [0, 0.5)
    """
    _validate_constants(E, nu)
    lam = E * nu / ((1.0 + nu) * (1.0 - 2.0 * nu))
    mu = E / (2.0 * (1.0 + nu))
    return lam, mu


def _validate_constants(E: float, nu: float) -> None:
    if not np.isfinite(E) or E <= 0.0:
        raise ConfigurationError(f"Young's modulus must be positive, got E={E}")
    if not np.isfinite(nu) or nu < 0.0:
        raise ConfigurationError(f"Poisson ratio must be non-negative, got nu={nu}")
    if nu >= 0.5:
        # lam diverges at the incompressible limit
        raise ConfigurationError(
            f"Poisson ratio must be below 0.5 (incompressible limit), got nu={nu}")


@dataclass(frozen=True)
class MaterialConstants:
    """
    Engineering constants of one homogeneous isotropic material.

    Attributes:
        E: Young's modulus (> 0)
        nu: Poisson ratio (0 <= nu < 0.5)
    """
    E: float
    nu: float

    def __post_init__(self):
        object.__setattr__(self, "E", float(self.E))
        object.__setattr__(self, "nu", float(self.nu))
        _validate_constants(self.E, self.nu)

    @property
    def lam(self) -> float:
        """First Lamé parameter."""
        return lame_parameters(self.E, self.nu)[0]

    @property
    def mu(self) -> float:
        """Shear modulus."""
        return lame_parameters(self.E, self.nu)[1]

    @property
    def bulk_modulus(self) -> float:
        return self.E / (3.0 * (1.0 - 2.0 * self.nu))


def build_isotropic(E: float, nu: float, dim: int = 3,
                    plane: str = PLANE_STRAIN) -> np.ndarray:
    """
    Build the isotropic constitutive matrix in Voigt form.

    Parameters:
        E: Young's modulus
        nu: Poisson ratio
        dim: Spatial dimension (2 or 3)
        plane: 2D model, "strain" (default) or "stress". Ignored in 3D.

    Returns:
        Read-only symmetric positive-definite matrix, (6, 6) or (3, 3)

    Raises:
        ConfigurationError: Invalid constants or unknown plane model
        DimensionMismatchError: dim not in (2, 3)
    """
    if dim not in VOIGT_PAIRS:
        raise DimensionMismatchError(f"Spatial dimension must be 2 or 3, got {dim}")
    lam, mu = lame_parameters(E, nu)

    if dim == 3 or plane == PLANE_STRAIN:
        C3 = np.zeros((6, 6))
        C3[:3, :3] = lam
        C3[:3, :3] += 2.0 * mu * np.eye(3)
        C3[3:, 3:] = mu * np.eye(3)
        if dim == 3:
            C = C3
        else:
            # rows/columns of xx, yy, xy in the 3D ordering
            idx = [0, 1, 5]
            C = C3[np.ix_(idx, idx)]
    elif plane == PLANE_STRESS:
        factor = E / (1.0 - nu * nu)
        C = factor * np.array([
            [1.0, nu, 0.0],
            [nu, 1.0, 0.0],
            [0.0, 0.0, 0.5 * (1.0 - nu)],
        ])
    else:
        raise ConfigurationError(f"Unknown 2D plane model: {plane!r}")

    C = np.ascontiguousarray(C)
    C.setflags(write=False)
    return C


class ElasticityTensorMap(Mapping):
    """
    Immutable mapping from region id to constitutive matrix.

    Built once before assembly and shared read-only by the stiffness
    integrator and the stress recovery.

    Example usage:
        tensors = build_region_map([1, 2],
                                   [MaterialConstants(1000e3, 0.3),
                                    MaterialConstants(200e3, 0.3)],
                                   dim=2)
        C = tensors.matrix_for(element.region)
    """

    def __init__(self, matrices: Dict[int, np.ndarray],
                 constants: Dict[int, MaterialConstants],
                 dim: int, plane: str = PLANE_STRAIN):
        self._matrices = dict(matrices)
        self._constants = dict(constants)
        self.dim = dim
        self.plane = plane

    @classmethod
    def from_triples(cls, triples: Iterable[Tuple[int, float, float]],
                     dim: int = 3, plane: str = PLANE_STRAIN,
                     domain_regions: Optional[Iterable[int]] = None) -> 'ElasticityTensorMap':
        """
        Build the map from an ordered list of (region_id, E, nu) triples.
        """
        region_ids = []
        constants = []
        for entry in triples:
            if len(entry) != 3:
                raise ConfigurationError(
                    f"Material entries must be (region, E, nu), got {entry!r}")
            region, E, nu = entry
            region_ids.append(region)
            constants.append(MaterialConstants(E, nu))
        return build_region_map(region_ids, constants, dim=dim, plane=plane,
                                domain_regions=domain_regions)

    def matrix_for(self, region_id: int) -> np.ndarray:
        """
        Constitutive matrix of a region.

        Raises:
            UnmappedRegionError: If the region was never registered
        """
        try:
            return self._matrices[region_id]
        except KeyError:
            raise UnmappedRegionError(region_id, sorted(self._matrices)) from None

    def constants_for(self, region_id: int) -> MaterialConstants:
        """Material constants of a region."""
        try:
            return self._constants[region_id]
        except KeyError:
            raise UnmappedRegionError(region_id, sorted(self._constants)) from None

    @property
    def region_ids(self) -> Tuple[int, ...]:
        return tuple(self._matrices)

    @property
    def voigt_size(self) -> int:
        return voigt_size(self.dim)

    def check_regions(self, regions: Iterable[int]) -> None:
        """Fail with UnmappedRegionError on the first region without a material."""
        for region in regions:
            self.matrix_for(region)

    def check_domain(self, regions: Iterable[int]) -> None:
        """
        Check the map against the region ids present in a mesh.

        Raises:
            ConfigurationError: Number of materials differs from the number
                                of distinct regions
            UnmappedRegionError: Counts agree but some region has no material
        """
        present = sorted(set(int(r) for r in regions))
        if len(present) != len(self):
            raise ConfigurationError(
                f"Got {len(self)} materials {sorted(self._matrices)} but the domain "
                f"has {len(present)} regions {present}")
        self.check_regions(present)

    def __getitem__(self, region_id: int) -> np.ndarray:
        return self.matrix_for(region_id)

    def __iter__(self) -> Iterator[int]:
        return iter(self._matrices)

    def __len__(self) -> int:
        return len(self._matrices)

    def __repr__(self) -> str:
        items = ", ".join(f"{r}: E={c.E:g}, nu={c.nu:g}" for r, c in self._constants.items())
        return f"ElasticityTensorMap(dim={self.dim}, {{{items}}})"


def build_region_map(region_ids: Sequence[int],
                     constants_per_region: Sequence[MaterialConstants],
                     dim: int = 3,
                     plane: str = PLANE_STRAIN,
                     domain_regions: Optional[Iterable[int]] = None) -> ElasticityTensorMap:
    """
    Build one constitutive matrix per region.

    Parameters:
        region_ids: Region identifiers, one per material
        constants_per_region: Material constants in the same order
        dim: Spatial dimension (2 or 3)
        plane: 2D model, "strain" or "stress"
        domain_regions: Region ids actually present in the mesh (e.g. all
                        element attributes). When given, the number of
                        distinct ids must equal the number of materials.

    Returns:
        ElasticityTensorMap

    Raises:
        ConfigurationError: Duplicate region ids, or material count not
                            matching the number of regions
    """
    region_ids = [int(r) for r in region_ids]
    constants_per_region = list(constants_per_region)

    seen = set()
    duplicates = set()
    for region in region_ids:
        if region in seen:
            duplicates.add(region)
        seen.add(region)
    if duplicates:
        raise ConfigurationError(f"Duplicate region ids: {sorted(duplicates)}")

    if len(constants_per_region) != len(region_ids):
        raise ConfigurationError(
            f"Got {len(constants_per_region)} materials for {len(region_ids)} regions")

    if domain_regions is not None:
        present = sorted(set(int(r) for r in domain_regions))
        if len(present) != len(constants_per_region):
            raise ConfigurationError(
                f"Got {len(constants_per_region)} materials but the domain has "
                f"{len(present)} regions {present}")

    if dim not in VOIGT_PAIRS:
        raise DimensionMismatchError(f"Spatial dimension must be 2 or 3, got {dim}")

    matrices = {}
    constants = {}
    for region, mat in zip(region_ids, constants_per_region):
        if not isinstance(mat, MaterialConstants):
            mat = MaterialConstants(*mat)
        matrices[region] = build_isotropic(mat.E, mat.nu, dim=dim, plane=plane)
        constants[region] = mat
        logger.debug("Region %d: E=%g, nu=%g", region, mat.E, mat.nu)

    logger.info("Built %d-D elasticity tensors for %d regions", dim, len(matrices))
    return ElasticityTensorMap(matrices, constants, dim, plane)
