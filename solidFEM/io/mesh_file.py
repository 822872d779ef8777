"""
Mesh files in the MFEM v1.0 text format.

A file lists elements and boundary facets as
"<attribute> <geometry> <vertex ids...>", followed by the vertex
coordinates:

    MFEM mesh v1.0

    dimension
    2

    elements
    2
    1 3 0 1 4 3
    2 3 1 2 5 4

    boundary
    2
    1 1 3 0
    2 1 2 5

    vertices
    6
    2
    0 0
    ...

Element attributes become region ids and boundary attributes become the
mesh's boundary attributes. Geometry codes: 1 segment, 2 triangle,
3 quadrilateral, 4 tetrahedron, 5 hexahedron. Curved meshes (a "nodes"
section instead of plain vertices) are not supported.
"""

import logging
import numpy as np
from pathlib import Path
from typing import Dict, List, Tuple, Union

from ..discretization.element import get_element_type
from ..discretization.mesh import Mesh, orient_elements
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

MFEM_HEADER = "MFEM mesh v1.0"

GEOMETRY_TYPES: Dict[int, str] = {
    1: "line2",
    2: "tri3",
    3: "quad4",
    4: "tet4",
    5: "hex8",
}
GEOMETRY_CODES = {name: code for code, name in GEOMETRY_TYPES.items()}


def _strip(lines: List[str]) -> List[str]:
    """Drop comments and blank lines."""
    result = []
    for line in lines:
        line = line.split("#", 1)[0].strip()
        if line:
            result.append(line)
    return result


def _read_cells(lines: List[str], pos: int, section: str) -> Tuple[List[Tuple[int, int, List[int]]], int]:
    """Parse "<count>" and count lines of "<attr> <geom> <vertices...>"."""
    try:
        count = int(lines[pos])
        cells = []
        for line in lines[pos + 1:pos + 1 + count]:
            values = [int(v) for v in line.split()]
            cells.append((values[0], values[1], values[2:]))
    except (IndexError, ValueError) as exc:
        raise ConfigurationError(f"Malformed {section} section: {exc}") from exc
    if len(cells) != count:
        raise ConfigurationError(f"{section} section lists {len(cells)} of {count} entries")
    return cells, pos + 1 + count


def _cell_array(cells, section: str) -> Tuple[str, np.ndarray, np.ndarray]:
    geometries = {geom for _, geom, _ in cells}
    if len(geometries) != 1:
        raise ConfigurationError(
            f"{section} must use a single geometry type, got codes {sorted(geometries)}")
    geom = geometries.pop()
    if geom not in GEOMETRY_TYPES:
        raise ConfigurationError(f"Unsupported geometry code {geom} in {section}")
    name = GEOMETRY_TYPES[geom]
    n_nodes = get_element_type(name).n_nodes
    if any(len(v) != n_nodes for _, _, v in cells):
        raise ConfigurationError(f"{section}: {name} entries need {n_nodes} vertices")
    attributes = np.array([attr for attr, _, _ in cells], dtype=int)
    connectivity = np.array([v for _, _, v in cells], dtype=int)
    return name, connectivity, attributes


def _parse_sections(lines: List[str], path: Path):
    """Split the lines after the header into (dim, elements, boundary, vertices)."""
    dim = None
    elements = boundary = None
    vertices = None
    pos = 1
    while pos < len(lines):
        key = lines[pos]
        pos += 1
        if key == "dimension":
            dim = int(lines[pos])
            pos += 1
        elif key == "elements":
            elements, pos = _read_cells(lines, pos, "elements")
        elif key == "boundary":
            boundary, pos = _read_cells(lines, pos, "boundary")
        elif key == "vertices":
            count = int(lines[pos])
            sdim = int(lines[pos + 1])
            rows = [[float(v) for v in line.split()] for line in lines[pos + 2:pos + 2 + count]]
            if len(rows) != count or any(len(r) != sdim for r in rows):
                raise ConfigurationError(
                    f"vertices section needs {count} rows of {sdim} coordinates")
            vertices = np.array(rows, dtype=float).reshape(count, sdim)
            pos += 2 + count
        elif key == "nodes":
            raise ConfigurationError("Curved meshes with a 'nodes' section are not supported")
        else:
            raise ConfigurationError(f"Unknown section {key!r} in {path}")

    if dim is None or elements is None or vertices is None:
        raise ConfigurationError(f"{path} needs dimension, elements and vertices sections")
    return dim, elements, boundary, vertices


def read_mfem_mesh(filename: Union[str, Path]) -> Mesh:
    """
    Read a linear mesh from an MFEM v1.0 file.

    Parameters:
        filename: Path to the .mesh file

    Returns:
        Mesh with element attributes as regions and the file's boundary
        facets and boundary attributes

    Raises:
        ConfigurationError: Unknown format, unsupported geometry or
                            inconsistent sections
    """
    path = Path(filename)
    with open(path, 'r') as f:
        lines = _strip(f.readlines())

    if not lines or lines[0] != MFEM_HEADER:
        raise ConfigurationError(f"{path} is not an '{MFEM_HEADER}' file")

    try:
        dim, elements, boundary, vertices = _parse_sections(lines, path)
    except ConfigurationError:
        raise
    except (IndexError, ValueError) as exc:
        raise ConfigurationError(f"Malformed mesh file {path}: {exc}") from exc

    if vertices.shape[1] != dim:
        raise ConfigurationError(
            f"Mesh dimension {dim} but vertices have {vertices.shape[1]} coordinates")

    element_name, connectivity, attributes = _cell_array(elements, "elements")
    element_type = get_element_type(element_name)
    if element_type.dim != dim:
        raise ConfigurationError(f"{element_name} elements in a {dim}D mesh")
    if connectivity.min() < 0 or connectivity.max() >= len(vertices):
        raise ConfigurationError("Element vertex index out of range")
    connectivity = orient_elements(vertices, connectivity, element_type)

    facets = facet_attributes = None
    if boundary:
        facet_name, facets, facet_attributes = _cell_array(boundary, "boundary")
        if facet_name != element_type.facet:
            raise ConfigurationError(
                f"Boundary of {element_name} elements must be {element_type.facet}, "
                f"got {facet_name}")

    mesh = Mesh(vertices, connectivity, element_type, attributes, facets, facet_attributes)
    logger.info("Read %r from %s", mesh, path)
    return mesh


def write_mfem_mesh(mesh: Mesh, filename: Union[str, Path]) -> Path:
    """
    Write a linear mesh in the MFEM v1.0 format.

    Returns:
        Path of the written file
    """
    name = mesh.element_type.name
    if name not in GEOMETRY_CODES:
        raise ValueError(f"Cannot write {name} elements to an MFEM v1.0 file")
    geom = GEOMETRY_CODES[name]
    facet_geom = GEOMETRY_CODES[mesh.element_type.facet]

    path = Path(filename)
    with open(path, 'w') as f:
        f.write(f"{MFEM_HEADER}\n\n")
        f.write(f"dimension\n{mesh.dim}\n\n")

        f.write(f"elements\n{mesh.n_elements}\n")
        for attr, conn in zip(mesh.attributes, mesh.elements):
            f.write(f"{attr} {geom} " + " ".join(str(n) for n in conn) + "\n")

        f.write(f"\nboundary\n{len(mesh.facets)}\n")
        for attr, facet in zip(mesh.facet_attributes, mesh.facets):
            f.write(f"{attr} {facet_geom} " + " ".join(str(n) for n in facet) + "\n")

        f.write(f"\nvertices\n{mesh.n_nodes}\n{mesh.dim}\n")
        for p in mesh.nodes:
            f.write(" ".join(f"{x:.16g}" for x in p) + "\n")

    logger.info("Wrote %r to %s", mesh, path)
    return path
