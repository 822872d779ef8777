"""
Tests for VTK export.
"""

import pytest
import numpy as np

from solidFEM.discretization.mesh import make_rectangle_mesh, make_box_mesh, make_beam_mesh
from solidFEM.postprocess.stress import recover_nodal_stress, element_average_stress
from solidFEM.postprocess.vtk import export_vtk_unstructured


class TestVTKExport:
    """Tests for legacy VTK unstructured grid output."""

    def test_mesh_only(self, tmp_path):
        """Test header, points, cells and region data."""
        mesh = make_rectangle_mesh(2.0, 1.0, nx=2, ny=1, n_regions=2)
        path = export_vtk_unstructured(tmp_path / "mesh", mesh)

        assert path.suffix == ".vtk"
        text = path.read_text()
        assert text.startswith("# vtk DataFile Version 3.0")
        assert "DATASET UNSTRUCTURED_GRID" in text
        assert f"POINTS {mesh.n_nodes} double" in text
        assert "CELLS 2 10" in text
        assert "SCALARS region int 1" in text
        assert "POINT_DATA" not in text

    def test_results(self, tmp_path, two_material_map_2d):
        """Test that displacement and stress fields are written."""
        mesh = make_rectangle_mesh(2.0, 1.0, nx=2, ny=1, n_regions=2)
        u = (mesh.nodes @ np.array([[1e-3, 0.0], [0.0, 0.0]]).T).ravel()
        stress = recover_nodal_stress(mesh, u, two_material_map_2d)
        cell_stress = element_average_stress(mesh, u, two_material_map_2d)

        path = export_vtk_unstructured(tmp_path / "beam.vtk", mesh, u=u, stress=stress,
                                       cell_stress=cell_stress)
        text = path.read_text()
        assert f"POINT_DATA {mesh.n_nodes}" in text
        assert "VECTORS displacement double" in text
        for label in ("xx", "yy", "xy"):
            assert f"SCALARS stress_{label} double 1" in text
            assert f"SCALARS cell_stress_{label} double 1" in text
        assert "SCALARS von_mises double 1" in text

    def test_cell_types(self, tmp_path):
        """Test the VTK cell type of tetrahedra."""
        mesh = make_box_mesh(nx=1, ny=1, nz=1, tetrahedra=True)
        path = export_vtk_unstructured(tmp_path / "tets.vtk", mesh)
        lines = path.read_text().splitlines()
        start = lines.index(f"CELL_TYPES {mesh.n_elements}")
        assert lines[start + 1:start + 1 + mesh.n_elements] == ["10"] * mesh.n_elements

    @pytest.mark.parametrize("mesh_kwargs,cell_type", [
        ({"dim": 2}, "28"),
        ({"dim": 2, "simplex": True}, "22"),
        ({"dim": 3}, "29"),
        ({"dim": 3, "simplex": True}, "24"),
    ], ids=["quad9", "tri6", "hex27", "tet10"])
    def test_quadratic_cell_types(self, tmp_path, mesh_kwargs, cell_type):
        """Test the VTK cell types and point counts of quadratic meshes."""
        mesh = make_beam_mesh(n_elements_x=2, n_elements_y=1, n_elements_z=1, order=2,
                              **mesh_kwargs)
        path = export_vtk_unstructured(tmp_path / "quadratic.vtk", mesh)
        lines = path.read_text().splitlines()
        start = lines.index(f"CELL_TYPES {mesh.n_elements}")
        assert lines[start + 1:start + 1 + mesh.n_elements] == [cell_type] * mesh.n_elements
        assert f"POINTS {mesh.n_nodes} double" in lines
