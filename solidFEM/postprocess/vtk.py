"""
VTK export for visualization.

This module exports meshes and elasticity results to the VTK legacy
format (.vtk, ASCII UnstructuredGrid) for ParaView, VisIt or any other
VTK-compatible viewer.

Exported fields:
- displacement: point VECTORS
- stress_<component>: point SCALARS, one per Voigt component
- von_mises: point SCALARS
- region: cell SCALARS (material attribute)
- cell_stress_<component>: optional cell SCALARS
"""

import logging
import numpy as np
from typing import Optional, Dict
from pathlib import Path

from .stress import StressField, von_mises
from ..constitutive.voigt import VOIGT_LABELS
from ..discretization.mesh import Mesh

logger = logging.getLogger(__name__)

# VTK cell type ids
VTK_CELL_TYPES = {
    "tri3": 5,
    "quad4": 9,
    "tet4": 10,
    "hex8": 12,
    "tri6": 22,
    "quad9": 28,
    "tet10": 24,
    "hex27": 29,
}


def _write_scalars(f, name: str, values: np.ndarray):
    f.write(f"SCALARS {name} double 1\n")
    f.write("LOOKUP_TABLE default\n")
    for v in values:
        f.write(f"{v:.10g}\n")


def export_vtk_unstructured(filename: str,
                            mesh: Mesh,
                            u: Optional[np.ndarray] = None,
                            stress: Optional[StressField] = None,
                            cell_stress: Optional[np.ndarray] = None,
                            additional_point_fields: Optional[Dict[str, np.ndarray]] = None) -> Path:
    """
    Export mesh and results to a VTK UnstructuredGrid file.

    Parameters:
        filename: Output filename (will add .vtk extension if missing)
        mesh: Mesh
        u: Displacement vector, shape (n_dof,)
        stress: Nodal stress field
        cell_stress: Per-element Voigt stresses, shape (n_elements, voigt_size)
        additional_point_fields: Optional dict of additional nodal scalar fields

    Returns:
        Path of the written file
    """
    path = Path(filename)
    if path.suffix != '.vtk':
        path = path.with_suffix('.vtk')

    cell_type = VTK_CELL_TYPES[mesh.element_type.name]
    labels = VOIGT_LABELS[mesh.dim]

    # VTK points are always 3D
    points = np.zeros((mesh.n_nodes, 3))
    points[:, :mesh.dim] = mesh.nodes

    with open(path, 'w') as f:
        f.write("# vtk DataFile Version 3.0\n")
        f.write("solidFEM linear elasticity\n")
        f.write("ASCII\n")
        f.write("DATASET UNSTRUCTURED_GRID\n")

        f.write(f"POINTS {mesh.n_nodes} double\n")
        for p in points:
            f.write(f"{p[0]:.10g} {p[1]:.10g} {p[2]:.10g}\n")

        n_per_cell = mesh.elements.shape[1]
        f.write(f"\nCELLS {mesh.n_elements} {mesh.n_elements * (n_per_cell + 1)}\n")
        for conn in mesh.elements:
            f.write(f"{n_per_cell} " + " ".join(str(n) for n in conn) + "\n")

        f.write(f"\nCELL_TYPES {mesh.n_elements}\n")
        for _ in range(mesh.n_elements):
            f.write(f"{cell_type}\n")

        # Cell data
        f.write(f"\nCELL_DATA {mesh.n_elements}\n")
        f.write("SCALARS region int 1\n")
        f.write("LOOKUP_TABLE default\n")
        for a in mesh.attributes:
            f.write(f"{a}\n")
        if cell_stress is not None:
            cell_stress = np.asarray(cell_stress)
            for k, label in enumerate(labels):
                _write_scalars(f, f"cell_stress_{label}", cell_stress[:, k])

        # Point data
        has_point_data = u is not None or stress is not None or bool(additional_point_fields)
        if has_point_data:
            f.write(f"\nPOINT_DATA {mesh.n_nodes}\n")

            if u is not None:
                disp = np.zeros((mesh.n_nodes, 3))
                disp[:, :mesh.dim] = np.asarray(u).reshape(mesh.n_nodes, mesh.dim)
                f.write("VECTORS displacement double\n")
                for d in disp:
                    f.write(f"{d[0]:.10g} {d[1]:.10g} {d[2]:.10g}\n")

            if stress is not None:
                for label in labels:
                    _write_scalars(f, f"stress_{label}", stress.component(label))
                _write_scalars(f, "von_mises", von_mises(stress))

            if additional_point_fields:
                for name, values in additional_point_fields.items():
                    _write_scalars(f, name, np.asarray(values).ravel())

    logger.info("Exported VTK file: %s", path)
    return path
