"""
Constitutive module: Voigt notation and elasticity tensors.
"""

from .voigt import (
    tensor_to_voigt,
    tensor_to_voigt_strain,
    tensor_to_voigt_stress,
    voigt_to_tensor,
    voigt_size,
    VOIGT_LABELS,
)
from .elasticity import (
    MaterialConstants,
    ElasticityTensorMap,
    lame_parameters,
    build_isotropic,
    build_region_map,
)
