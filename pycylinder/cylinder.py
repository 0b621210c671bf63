"""
Deformed cylinder: base grid, deformation pipeline and the build entry point.

    mesh = build_mesh(ParameterSet(radius_top=0.5, twist=1.5, obliqueness=0.3))
    mesh = build_mesh(radialSegments=48, ellipticity=2.0)

The base cylinder always has unit radius; top/bottom radii are applied as a
deformation so every radius pair shares one grid topology. The deformation
order (taper, ellipticity, twist, oblique shear) is fixed: twist rotates the
already elliptical cross-section and the shear always moves along world X.
"""
from __future__ import annotations

import logging
import math
from typing import Any, List, Optional, Tuple

import numpy as np

from .errors import InvalidParameter
from .mesh import Mesh, Vec3
from .params import ParameterSet, field_values

logger = logging.getLogger(__name__)

Tri = Tuple[int, int, int]

# Arithmetic after validation must never raise; inf/nan are passed through.
_QUIET = dict(divide="ignore", invalid="ignore", over="ignore")


# -----------------------
# Base mesh
# -----------------------

def vertex_count(radial_segments: int, height_segments: int, open_ended: bool = False) -> int:
    """Number of vertices base_cylinder() emits for these counts."""
    side = (radial_segments + 1) * (height_segments + 1)
    if open_ended:
        return side
    # per cap: one apex copy per fan triangle plus a duplicated rim ring
    return side + 2 * (2 * radial_segments + 1)


def base_cylinder(radial_segments: int = 32, height_segments: int = 1, open_ended: bool = False,
                  theta_start: float = 0.0, theta_length: float = 2 * math.pi,
                  height: float = 1.0, name: str = "cylinder") -> Mesh:
    """Unit-radius cylinder centred on the origin, axis along Y.

    Rings run from the top (y = +height/2) to the bottom. Each ring repeats
    its first vertex at the end so a partial sweep gets a clean seam.
    """
    if radial_segments < 3:
        raise InvalidParameter("radial_segments", radial_segments, ">= 3")
    if height_segments < 1:
        raise InvalidParameter("height_segments", height_segments, ">= 1")

    verts: List[Vec3] = []
    normals: List[Vec3] = []
    faces: List[Tri] = []
    half = height / 2
    row = radial_segments + 1
    # side
    for iy in range(height_segments + 1):
        y = half - iy / height_segments * height
        for ix in range(row):
            theta = theta_start + theta_length * ix / radial_segments
            s, c = math.sin(theta), math.cos(theta)
            verts.append((s, y, c))
            normals.append((s, 0.0, c))
            if ix < radial_segments and iy < height_segments:
                a = iy * row + ix
                b = a + row
                d = a + 1
                faces.append((a, b, d))
                faces.append((b, b + 1, d))
    # caps
    if not open_ended:
        _add_cap(verts, normals, faces, True, radial_segments, theta_start, theta_length, half)
        _add_cap(verts, normals, faces, False, radial_segments, theta_start, theta_length, half)
    return Mesh(verts, faces, normals, name=name)


def _add_cap(verts: List[Vec3], normals: List[Vec3], faces: List[Tri], top: bool,
             radial_segments: int, theta_start: float, theta_length: float, half: float) -> None:
    sign = 1.0 if top else -1.0
    y = sign * half
    apex_start = len(verts)
    for _ in range(radial_segments):
        verts.append((0.0, y, 0.0))
        normals.append((0.0, sign, 0.0))
    rim_start = len(verts)
    for ix in range(radial_segments + 1):
        theta = theta_start + theta_length * ix / radial_segments
        verts.append((math.sin(theta), y, math.cos(theta)))
        normals.append((0.0, sign, 0.0))
    for ix in range(radial_segments):
        apex = apex_start + ix
        i = rim_start + ix
        if top:
            faces.append((i, i + 1, apex))
        else:
            faces.append((i + 1, i, apex))  # reverse winding for bottom


# -----------------------
# Deformation steps
# -----------------------

def height_fraction(y, height: float) -> np.ndarray:
    """0 at the bottom of the cylinder, 1 at the top, clamped."""
    with np.errstate(**_QUIET):
        return np.clip((np.asarray(y, dtype=np.float64) + height / 2) / height, 0.0, 1.0)


def taper_radius(h, radius_top: float, radius_bottom: float) -> np.ndarray:
    # A hard step at the equator, not a cone: h >= 0.5 takes the top radius.
    return np.where(np.asarray(h) >= 0.5, radius_top, radius_bottom)


def ellipse_scale(x, z, radius, ellipticity: float) -> Tuple[np.ndarray, np.ndarray]:
    """Scale X by radius/ellipticity and Z by radius*ellipticity."""
    with np.errstate(**_QUIET):
        inv = np.float64(1.0) / np.float64(ellipticity)
        return np.asarray(x) * radius * inv, np.asarray(z) * radius * ellipticity


def twist_rotate(x, z, angle) -> Tuple[np.ndarray, np.ndarray]:
    """Rotate (x, z) about the Y axis by angle (radians)."""
    with np.errstate(**_QUIET):
        c, s = np.cos(angle), np.sin(angle)
        return x * c - z * s, x * s + z * c


def oblique_shift(x, h, obliqueness: float) -> np.ndarray:
    with np.errstate(**_QUIET):
        return x + obliqueness * np.asarray(h)


def deform(mesh: Mesh, params: ParameterSet) -> Mesh:
    """Apply taper, ellipticity, twist and oblique shear to a base cylinder.

    Returns a new mesh; ``mesh`` is left untouched. Normals are copied as-is
    and are stale until recompute_normals() runs.
    """
    p = params.validate()
    out = mesh.copy()
    v = mesh.vertices
    x, y, z = v[:, 0], v[:, 1], v[:, 2]

    h = height_fraction(y, p.height)
    radius = taper_radius(h, p.radius_top, p.radius_bottom)
    sx, sz = ellipse_scale(x, z, radius, p.ellipticity)
    tx, tz = twist_rotate(sx, sz, p.twist * h)
    ox = oblique_shift(tx, h, p.obliqueness)

    out.vertices = np.column_stack([ox, y, tz])
    return out


# -----------------------
# Entry point
# -----------------------

def build_mesh(params: Optional[ParameterSet] = None, *, name: str = "custom_cylinder",
               **overrides: Any) -> Mesh:
    """Build the deformed cylinder for a parameter set.

    Keyword overrides (snake_case or camelCase) are merged onto ``params`` or
    onto the defaults. Raises InvalidParameter before any geometry is made.
    """
    if params is None:
        params = ParameterSet.from_mapping(overrides)
    elif overrides:
        params = params.updated(**field_values(overrides))
    p = params.validate()
    logger.debug("building %s from %s", name, p)

    base = base_cylinder(p.radial_segments, p.height_segments, p.open_ended,
                         p.theta_start, p.theta_length, p.height, name=name)
    mesh = deform(base, p).compute_normals()

    logger.debug("%s: %d vertices, %d faces", name, mesh.vertex_count, mesh.face_count)
    if not mesh.is_finite():
        logger.debug("%s: %d vertices with non-finite coordinates",
                     name, len(mesh.non_finite_vertices()))
    return mesh
