from __future__ import annotations

import math
from typing import Any, Dict, Optional

import numpy as np

from .mesh import Mesh


# ----------------------------
# Mesh analysis: area & volume
# ----------------------------

def triangle_areas(mesh: Mesh) -> np.ndarray:
    v, f = mesh.vertices, mesh.faces
    if not mesh.face_count:
        return np.zeros(0)
    with np.errstate(invalid="ignore", over="ignore"):
        cr = np.cross(v[f[:, 1]] - v[f[:, 0]], v[f[:, 2]] - v[f[:, 0]])
        return 0.5 * np.linalg.norm(cr, axis=1)


def surface_area(mesh: Mesh) -> float:
    return float(triangle_areas(mesh).sum())


def signed_volume(mesh: Mesh) -> float:
    """
    Signed volume for a closed, consistently oriented triangle mesh.
    Uses origin-based tetrahedron summation: V = sum(dot(a, cross(b,c))) / 6
    """
    if not mesh.face_count:
        return 0.0
    v, f = mesh.vertices, mesh.faces
    with np.errstate(invalid="ignore", over="ignore"):
        a, b, c = v[f[:, 0]], v[f[:, 1]], v[f[:, 2]]
        return float(np.einsum("ij,ij->i", a, np.cross(b, c)).sum() / 6.0)


def _finite_or_none(x: float) -> Optional[float]:
    # JSON has no inf/nan
    return float(x) if math.isfinite(x) else None


def summary(mesh: Mesh) -> Dict[str, Any]:
    lo, hi = mesh.bounds()
    return {
        "name": mesh.name,
        "vertices": mesh.vertex_count,
        "faces": mesh.face_count,
        "bounds": [[_finite_or_none(x) for x in lo], [_finite_or_none(x) for x in hi]],
        "surface_area": _finite_or_none(surface_area(mesh)),
        "volume": _finite_or_none(signed_volume(mesh)),
        "finite": mesh.is_finite(),
        "degenerate_normals": int(len(mesh.degenerate_normals())),
    }
