"""
Configuration and problem setup.

Utilities for loading an analysis configuration from a JSON file and
turning it into a mesh, material tensors and a ready-to-run solver.

Example JSON format:
    {
      "dimension": 2,
      "plane": "strain",
      "materials": [
        {"region": 1, "E": 1000e3, "nu": 0.3},
        {"region": 2, "E": 200e3, "nu": 0.3}
      ],
      "mesh": {"type": "beam", "length": 8.0, "height": 1.0,
               "elements": [16, 2], "simplex": false, "order": 2},
      "boundary_conditions": [
        {"type": "dirichlet", "boundary": 1},
        {"type": "traction", "boundary": 2, "value": [0.0, -0.0333]}
      ],
      "solver": {"bc_method": "elimination"},
      "output": {"vtk": "beam.vtk"}
    }

Materials may also be given as [region, E, nu] triples. The number of
materials must match the number of regions in the mesh.

A mesh can also be read from an MFEM v1.0 file, with element attributes as
regions and boundary attributes as given in the file:

    "mesh": {"type": "file", "path": "beam-quad.mesh", "order": 2}

Relative paths are resolved against the directory of the JSON file.
"order" selects linear (1) or quadratic (2) elements for every mesh type.
The optional "quadrature_order" of the solver section defaults to full
integration of the element type.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Tuple, Union

from ..constitutive.elasticity import ElasticityTensorMap, PLANE_STRAIN
from ..discretization.mesh import (Mesh, DirichletBC, elevate_mesh, make_rectangle_mesh,
                                   make_box_mesh, make_beam_mesh)
from ..quadrature.gauss import QuadratureRule, quadrature_for
from ..solver.base import BC_METHODS
from ..solver.elasticity import ElasticitySolver
from ..errors import ConfigurationError
from .mesh_file import read_mfem_mesh

logger = logging.getLogger(__name__)

MESH_TYPES = ("beam", "rectangle", "box", "file")
ELEMENT_ORDERS = (1, 2)


@dataclass
class Problem:
    """
    A configured elasticity problem.

    Attributes:
        mesh: Mesh
        tensor_map: Region -> constitutive matrix mapping
        solver: ElasticitySolver with boundary conditions applied
        quadrature: Quadrature rule used for assembly
        settings: Solver and output settings from the configuration
    """
    mesh: Mesh
    tensor_map: ElasticityTensorMap
    solver: ElasticitySolver
    quadrature: QuadratureRule
    settings: Dict[str, Any] = field(default_factory=dict)


def load_config(filename: Union[str, Path]) -> Dict[str, Any]:
    """
    Load analysis configuration from a JSON file.

    Parameters:
        filename: Path to the JSON file

    Returns:
        Validated configuration dictionary, with a relative mesh file path
        made relative to the JSON file's directory

    Raises:
        ConfigurationError: Malformed file or missing sections
    """
    path = Path(filename)
    try:
        with open(path, 'r') as f:
            config = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc

    validate_config(config)
    mesh_cfg = config["mesh"]
    if mesh_cfg.get("type") == "file" and not Path(mesh_cfg["path"]).is_absolute():
        mesh_cfg["path"] = str(path.parent / mesh_cfg["path"])

    logger.info("Loaded configuration from %s", path)
    return config


def validate_config(config: Dict[str, Any]) -> None:
    """Check required sections and basic types."""
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration must be a JSON object")
    for key in ("dimension", "materials", "mesh"):
        if key not in config:
            raise ConfigurationError(f"Missing required configuration key: {key!r}")
    if config["dimension"] not in (2, 3):
        raise ConfigurationError(f"dimension must be 2 or 3, got {config['dimension']!r}")
    if not isinstance(config["materials"], list) or not config["materials"]:
        raise ConfigurationError("materials must be a non-empty list")
    if not isinstance(config["mesh"], dict):
        raise ConfigurationError("mesh must be a JSON object")
    mesh_type = config["mesh"].get("type", "beam")
    if mesh_type not in MESH_TYPES:
        raise ConfigurationError(f"Unknown mesh type {mesh_type!r}; expected one of {MESH_TYPES}")
    if mesh_type == "file" and "path" not in config["mesh"]:
        raise ConfigurationError("file meshes need a 'path'")
    if config["mesh"].get("order", 1) not in ELEMENT_ORDERS:
        raise ConfigurationError(
            f"mesh order must be one of {ELEMENT_ORDERS}, got {config['mesh']['order']!r}")


def parse_materials(entries: List[Any]) -> List[Tuple[int, float, float]]:
    """
    Normalize material entries to (region, E, nu) triples.
    """
    triples = []
    for entry in entries:
        try:
            if isinstance(entry, dict):
                triples.append((int(entry["region"]), float(entry["E"]), float(entry["nu"])))
            else:
                region, E, nu = entry
                triples.append((int(region), float(E), float(nu)))
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid material entry {entry!r}: {exc}") from exc
    return triples


def build_mesh_from_config(mesh_cfg: Dict[str, Any], dim: int, n_regions: int) -> Mesh:
    """Build a structured mesh, or read a mesh file, from the "mesh" section."""
    mesh_type = mesh_cfg.get("type", "beam")
    simplex = bool(mesh_cfg.get("simplex", False))
    order = int(mesh_cfg.get("order", 1))
    n_regions = int(mesh_cfg.get("regions", n_regions))

    if mesh_type == "file":
        mesh = read_mfem_mesh(mesh_cfg["path"])
        if mesh.dim != dim:
            raise ConfigurationError(f"Mesh file is {mesh.dim}D but dimension is {dim}")
        return elevate_mesh(mesh) if order == 2 else mesh

    if mesh_type == "beam":
        elements = mesh_cfg.get("elements", [16, 2, 2])
        nz = elements[2] if len(elements) > 2 else 2
        return make_beam_mesh(dim=dim,
                              length=float(mesh_cfg.get("length", 8.0)),
                              height=float(mesh_cfg.get("height", 1.0)),
                              n_elements_x=int(elements[0]),
                              n_elements_y=int(elements[1]),
                              n_elements_z=int(nz),
                              n_regions=n_regions,
                              simplex=simplex,
                              order=order)

    size = mesh_cfg.get("size", [1.0] * dim)
    elements = mesh_cfg.get("elements", [4] * dim)
    if len(size) != dim or len(elements) != dim:
        raise ConfigurationError(f"mesh size and elements need {dim} entries")

    if mesh_type == "rectangle":
        if dim != 2:
            raise ConfigurationError("rectangle meshes are 2D")
        return make_rectangle_mesh(*size, *elements, n_regions=n_regions, triangles=simplex,
                                   order=order)
    if dim != 3:
        raise ConfigurationError("box meshes are 3D")
    return make_box_mesh(*size, *elements, n_regions=n_regions, tetrahedra=simplex,
                         order=order)


def build_quadrature(mesh: Mesh, solver_cfg: Dict[str, Any]) -> QuadratureRule:
    """
    Quadrature rule of the "solver" section.

    Raises:
        ConfigurationError: Order not available for the mesh's cell type
    """
    order = solver_cfg.get("quadrature_order")
    if order is None:
        return mesh.element_type.default_quadrature()
    try:
        return quadrature_for(mesh.element_type.cell, int(order))
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid quadrature_order {order!r} for {mesh.element_type.name}: {exc}") from exc


def setup_problem_from_config(config: Dict[str, Any]) -> Problem:
    """
    Set up mesh, material tensors and solver from configuration.

    Parameters:
        config: Configuration dictionary (see module docstring)

    Returns:
        Problem

    Raises:
        ConfigurationError: Inconsistent materials, regions, boundary
                            conditions or solver settings
    """
    validate_config(config)
    dim = int(config["dimension"])
    plane = config.get("plane", PLANE_STRAIN)
    solver_cfg = config.get("solver", {})

    triples = parse_materials(config["materials"])
    mesh = build_mesh_from_config(config["mesh"], dim, n_regions=len(triples))

    tensor_map = ElasticityTensorMap.from_triples(
        triples, dim=dim, plane=plane, domain_regions=mesh.attributes)

    solver = ElasticitySolver(mesh, tensor_map, body_force=config.get("body_force"))

    for bc_cfg in config.get("boundary_conditions", []):
        bc_type = bc_cfg.get("type")
        boundary = bc_cfg.get("boundary")
        if boundary not in mesh.boundary_attributes:
            raise ConfigurationError(f"Unknown boundary attribute {boundary!r}; "
                                     f"mesh has {list(mesh.boundary_attributes)}")
        if bc_type == "dirichlet":
            solver.add_dirichlet_bc(DirichletBC.on_boundary(
                mesh, boundary, bc_cfg.get("components"), bc_cfg.get("value", 0.0)))
        elif bc_type == "traction":
            value = bc_cfg.get("value")
            if value is None or len(value) != dim:
                raise ConfigurationError(f"traction needs a {dim}-component 'value'")
            solver.add_traction(boundary, value)
        else:
            raise ConfigurationError(f"Unknown boundary condition type {bc_type!r}")

    quadrature = build_quadrature(mesh, solver_cfg)
    bc_method = solver_cfg.get("bc_method", "elimination")
    if bc_method not in BC_METHODS:
        raise ConfigurationError(f"Unknown bc_method {bc_method!r}; expected one of {BC_METHODS}")

    settings = {
        "bc_method": bc_method,
        "output": config.get("output", {}),
    }
    logger.info("Problem set up: %r, %d materials, %r", mesh, len(tensor_map), quadrature)
    return Problem(mesh=mesh, tensor_map=tensor_map, solver=solver,
                   quadrature=quadrature, settings=settings)


def run_problem(problem: Problem):
    """
    Solve a configured problem and recover nodal stress.

    Returns:
        (u, stress)
    """
    u = problem.solver.run(problem.quadrature, bc_method=problem.settings["bc_method"])
    stress = problem.solver.recover_stress()
    return u, stress
