"""
Discretization module.

Provides:
- Linear reference elements (TRI3, QUAD4, TET4, HEX8, LINE2 facets)
- Quadratic counterparts (TRI6, QUAD9, TET10, HEX27, LINE3 facets)
- ElementLocalData: basis gradients and weights handed to the kernels
- Mesh: nodes, connectivity, region and boundary attributes
- DirichletBC, structured mesh generators and quadratic elevation
"""

from .element import (
    ReferenceElement,
    ElementLocalData,
    FacetLocalData,
    compute_local_data,
    compute_facet_data,
    get_element_type,
    LINE2, TRI3, QUAD4, TET4, HEX8,
    LINE3, TRI6, QUAD9, TET10, HEX27,
)
from .mesh import (Mesh, DirichletBC, elevate_mesh, orient_elements, make_rectangle_mesh,
                   make_box_mesh, make_beam_mesh)
