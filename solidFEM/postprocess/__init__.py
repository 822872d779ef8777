"""
Post-processing: nodal stress recovery and VTK export.
"""

from .stress import (
    StressField,
    NodalStressAccumulator,
    element_point_stresses,
    out_of_plane_stress,
    accumulate_nodal_stress,
    recover_nodal_stress,
    element_average_stress,
    von_mises,
)
from .vtk import export_vtk_unstructured
