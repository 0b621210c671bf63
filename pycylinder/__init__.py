"""
pycylinder: parametric cylinder meshes with taper, elliptical cross-section,
twist and oblique shear, plus smooth normals and small exporters.
"""
from .cylinder import base_cylinder, build_mesh, deform, vertex_count
from .errors import InvalidParameter, MeshError
from .mesh import Mesh, recompute_normals
from .params import ParameterSet, load_params, save_params

__all__ = [
    "ParameterSet",
    "Mesh",
    "MeshError",
    "InvalidParameter",
    "build_mesh",
    "base_cylinder",
    "deform",
    "recompute_normals",
    "vertex_count",
    "load_params",
    "save_params",
]

__version__ = "0.1.0"
