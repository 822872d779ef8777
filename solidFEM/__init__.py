"""
solidFEM - Linear elasticity for heterogeneous solids

A finite element library for the mechanical response of linearly elastic
bodies partitioned into material regions. Each region carries its own
isotropic material; the library builds the region constitutive tensors,
assembles element stiffness matrices from them and, after the solve,
recovers a continuous nodal stress field.

Key modules:
- constitutive: Voigt notation and isotropic elasticity tensors
- integrators: Element stiffness and load kernels
- discretization: Reference elements, meshes, boundary conditions
- solver: Global assembly and linear solve
- postprocess: Nodal stress recovery and VTK export
- io: JSON problem configuration and MFEM mesh files

Quick start (two-material cantilever):
    from solidFEM.discretization.mesh import make_beam_mesh, DirichletBC
    from solidFEM.constitutive.elasticity import ElasticityTensorMap
    from solidFEM.solver.elasticity import ElasticitySolver

    mesh = make_beam_mesh(dim=2, n_regions=2, order=2)
    tensors = ElasticityTensorMap.from_triples(
        [(1, 1000e3, 0.3), (2, 200e3, 0.3)], dim=2,
        domain_regions=mesh.attributes)

    solver = ElasticitySolver(mesh, tensors)
    solver.add_dirichlet_bc(DirichletBC.on_boundary(mesh, 1))
    solver.add_traction(2, [0.0, -4.0e3 / (200.0 * 60.0)])
    u = solver.run()
    stress = solver.recover_stress()
"""

__version__ = "0.1.0"

# Core imports for convenience
from .errors import (SolidFEMError, ConfigurationError, UnmappedRegionError,
                     DimensionMismatchError)
from .constitutive.voigt import tensor_to_voigt_strain, tensor_to_voigt_stress, voigt_to_tensor
from .constitutive.elasticity import (MaterialConstants, ElasticityTensorMap,
                                      build_isotropic, build_region_map)
from .discretization.mesh import Mesh, DirichletBC, make_rectangle_mesh, make_box_mesh, make_beam_mesh
from .integrators.stiffness import element_stiffness, strain_displacement_matrix
from .solver.elasticity import ElasticitySolver
from .postprocess.stress import StressField, recover_nodal_stress
from .postprocess.vtk import export_vtk_unstructured
