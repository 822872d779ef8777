"""
Tests for JSON problem configuration.
"""

import json
import pytest
import numpy as np

from solidFEM.io.config import (
    load_config, validate_config, parse_materials, build_mesh_from_config,
    setup_problem_from_config, run_problem
)
from solidFEM.discretization.element import QUAD9, TRI3
from solidFEM.discretization.mesh import make_beam_mesh
from solidFEM.io.mesh_file import write_mfem_mesh
from solidFEM.errors import ConfigurationError


def _beam_config(**overrides):
    config = {
        "dimension": 2,
        "materials": [
            {"region": 1, "E": 1000e3, "nu": 0.3},
            {"region": 2, "E": 200e3, "nu": 0.3},
        ],
        "mesh": {"type": "beam", "length": 8.0, "height": 1.0, "elements": [8, 2]},
        "boundary_conditions": [
            {"type": "dirichlet", "boundary": 1},
            {"type": "traction", "boundary": 2, "value": [0.0, -1.0]},
        ],
        "solver": {"bc_method": "elimination", "quadrature_order": 2},
    }
    config.update(overrides)
    return config


class TestLoadConfig:
    """Tests for reading configuration files."""

    def test_load(self, tmp_path):
        """Test loading a valid file."""
        path = tmp_path / "beam.json"
        path.write_text(json.dumps(_beam_config()))
        config = load_config(path)
        assert config["dimension"] == 2
        assert len(config["materials"]) == 2

    def test_invalid_json(self, tmp_path):
        """Test that malformed JSON raises ConfigurationError."""
        path = tmp_path / "broken.json"
        path.write_text("{\"dimension\": 2,")
        with pytest.raises(ConfigurationError):
            load_config(path)

    @pytest.mark.parametrize("key", ["dimension", "materials", "mesh"])
    def test_missing_key(self, key):
        """Test that required sections are checked."""
        config = _beam_config()
        del config[key]
        with pytest.raises(ConfigurationError):
            validate_config(config)

    def test_unknown_mesh_type(self):
        """Test that unknown mesh types are rejected."""
        with pytest.raises(ConfigurationError):
            validate_config(_beam_config(mesh={"type": "sphere"}))

    def test_bad_dimension(self):
        """Test that only 2D and 3D problems are accepted."""
        with pytest.raises(ConfigurationError):
            validate_config(_beam_config(dimension=1))


class TestMaterials:
    """Tests for material parsing."""

    def test_dicts_and_triples(self):
        """Test both accepted material formats."""
        triples = parse_materials([{"region": 1, "E": 10, "nu": 0.2}, [2, 20.0, 0.25]])
        assert triples == [(1, 10.0, 0.2), (2, 20.0, 0.25)]

    def test_invalid_entry(self):
        """Test that incomplete entries are rejected."""
        with pytest.raises(ConfigurationError):
            parse_materials([{"region": 1, "E": 10}])

    def test_material_count_mismatch(self):
        """Test that three materials on a two-region mesh fail."""
        config = _beam_config(materials=[[1, 1000e3, 0.3], [2, 200e3, 0.3], [3, 50e3, 0.3]])
        config["mesh"]["regions"] = 2
        with pytest.raises(ConfigurationError):
            setup_problem_from_config(config)

    def test_invalid_poisson(self):
        """Test that nu = 0.5 in a configuration fails."""
        config = _beam_config(materials=[[1, 1000e3, 0.5], [2, 200e3, 0.3]])
        with pytest.raises(ConfigurationError):
            setup_problem_from_config(config)


class TestMeshConfig:
    """Tests for mesh construction from configuration."""

    def test_rectangle(self):
        """Test a rectangle mesh."""
        mesh = build_mesh_from_config(
            {"type": "rectangle", "size": [2.0, 1.0], "elements": [4, 2]}, dim=2, n_regions=1)
        assert mesh.n_elements == 8

    def test_box_tetrahedra(self):
        """Test a tetrahedral box mesh."""
        mesh = build_mesh_from_config(
            {"type": "box", "size": [1, 1, 1], "elements": [1, 1, 1], "simplex": True},
            dim=3, n_regions=1)
        assert mesh.n_elements == 6

    def test_wrong_size_length(self):
        """Test that size and elements must match the dimension."""
        with pytest.raises(ConfigurationError):
            build_mesh_from_config({"type": "box", "size": [1, 1], "elements": [1, 1]},
                                   dim=3, n_regions=1)


class TestProblemSetup:
    """Tests for end-to-end configured problems."""

    def test_run_beam(self):
        """Test that the configured beam deflects downward at the tip."""
        problem = setup_problem_from_config(_beam_config())
        assert problem.mesh.regions == (1, 2)
        u, stress = run_problem(problem)

        disp = u.reshape(-1, 2)
        tip = np.flatnonzero(np.isclose(problem.mesh.nodes[:, 0], 8.0))
        assert np.all(disp[tip, 1] < 0.0)
        assert stress.values.shape == (problem.mesh.n_nodes, 3)

    def test_unknown_boundary(self):
        """Test that boundary attributes must exist on the mesh."""
        config = _beam_config(boundary_conditions=[{"type": "dirichlet", "boundary": 6}])
        with pytest.raises(ConfigurationError):
            setup_problem_from_config(config)

    def test_unknown_bc_type(self):
        """Test that boundary condition types are validated."""
        config = _beam_config(boundary_conditions=[{"type": "robin", "boundary": 1}])
        with pytest.raises(ConfigurationError):
            setup_problem_from_config(config)

    def test_traction_size(self):
        """Test that the traction needs dim components."""
        config = _beam_config(boundary_conditions=[
            {"type": "traction", "boundary": 2, "value": [1.0, 0.0, 0.0]}])
        with pytest.raises(ConfigurationError):
            setup_problem_from_config(config)

    def test_unknown_bc_method(self):
        """Test that the solver section names a known method."""
        config = _beam_config(solver={"bc_method": "lagrange"})
        with pytest.raises(ConfigurationError):
            setup_problem_from_config(config)

    def test_default_quadrature(self):
        """Test that the quadrature defaults to full integration."""
        config = _beam_config(solver={})
        config["mesh"]["order"] = 2
        problem = setup_problem_from_config(config)
        assert problem.mesh.element_type is QUAD9
        assert problem.quadrature.n_points == 9


class TestQuadratureConfig:
    """Tests for the configured quadrature order."""

    @pytest.mark.parametrize("order", [4, 5])
    def test_triangle_order_too_high(self, order):
        """Test that triangle orders above 3 are configuration errors."""
        config = _beam_config(solver={"quadrature_order": order})
        config["mesh"]["simplex"] = True
        with pytest.raises(ConfigurationError):
            setup_problem_from_config(config)

    def test_triangle_order_three(self):
        """Test that order 3 is the highest triangle rule."""
        config = _beam_config(solver={"quadrature_order": 3})
        config["mesh"]["simplex"] = True
        problem = setup_problem_from_config(config)
        assert problem.mesh.element_type is TRI3
        assert problem.quadrature.n_points == 4

    def test_negative_order(self):
        """Test that negative orders are configuration errors."""
        with pytest.raises(ConfigurationError):
            setup_problem_from_config(_beam_config(solver={"quadrature_order": -1}))


class TestElementOrder:
    """Tests for linear and quadratic meshes from configuration."""

    def test_quadratic_beam(self):
        """Test a QUAD9 beam that deflects downward."""
        config = _beam_config()
        config["mesh"]["order"] = 2
        config["solver"] = {}
        problem = setup_problem_from_config(config)
        assert problem.mesh.element_type is QUAD9
        u, stress = run_problem(problem)
        tip = np.flatnonzero(np.isclose(problem.mesh.nodes[:, 0], 8.0))
        assert np.all(u.reshape(-1, 2)[tip, 1] < 0.0)
        assert stress.values.shape == (problem.mesh.n_nodes, 3)

    @pytest.mark.parametrize("order", [0, 3, "2"])
    def test_invalid_order(self, order):
        """Test that only orders 1 and 2 are accepted."""
        config = _beam_config()
        config["mesh"]["order"] = order
        with pytest.raises(ConfigurationError):
            validate_config(config)


class TestFileMesh:
    """Tests for meshes read from MFEM files."""

    def _write(self, tmp_path, mesh_cfg):
        write_mfem_mesh(make_beam_mesh(dim=2, n_elements_x=8, n_elements_y=2),
                        tmp_path / "beam-quad.mesh")
        path = tmp_path / "beam.json"
        path.write_text(json.dumps(_beam_config(mesh=mesh_cfg, solver={})))
        return path

    def test_relative_path(self, tmp_path):
        """Test that a relative mesh path is resolved next to the JSON file."""
        path = self._write(tmp_path, {"type": "file", "path": "beam-quad.mesh"})
        config = load_config(path)
        assert config["mesh"]["path"] == str(tmp_path / "beam-quad.mesh")

    def test_run_quadratic_file_mesh(self, tmp_path):
        """Test solving on an elevated file mesh."""
        path = self._write(tmp_path, {"type": "file", "path": "beam-quad.mesh", "order": 2})
        problem = setup_problem_from_config(load_config(path))
        assert problem.mesh.element_type is QUAD9
        assert problem.mesh.regions == (1, 2)
        u, _ = run_problem(problem)
        tip = np.flatnonzero(np.isclose(problem.mesh.nodes[:, 0], 8.0))
        assert np.all(u.reshape(-1, 2)[tip, 1] < 0.0)

    def test_missing_path(self):
        """Test that file meshes need a path."""
        with pytest.raises(ConfigurationError):
            validate_config(_beam_config(mesh={"type": "file"}))

    def test_dimension_mismatch(self, tmp_path):
        """Test that a 2D file cannot be used for a 3D problem."""
        self._write(tmp_path, {})
        with pytest.raises(ConfigurationError):
            build_mesh_from_config({"type": "file", "path": str(tmp_path / "beam-quad.mesh")},
                                   dim=3, n_regions=2)
