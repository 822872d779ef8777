"""
Pytest configuration and shared fixtures for solidFEM tests.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add the parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from solidFEM.constitutive.elasticity import ElasticityTensorMap


@pytest.fixture
def tolerance():
    """Default tolerance for floating point comparisons."""
    return 1e-12


@pytest.fixture
def loose_tolerance():
    """Looser tolerance for numerical integration tests."""
    return 1e-8


@pytest.fixture
def two_material_triples():
    """Stiff and soft material of the two-region cantilever."""
    return [(1, 1000e3, 0.3), (2, 200e3, 0.3)]


@pytest.fixture
def two_material_map_2d(two_material_triples):
    return ElasticityTensorMap.from_triples(two_material_triples, dim=2)


@pytest.fixture
def two_material_map_3d(two_material_triples):
    return ElasticityTensorMap.from_triples(two_material_triples, dim=3)
