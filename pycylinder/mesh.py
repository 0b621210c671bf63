"""
Triangle mesh container used by every stage of the cylinder pipeline.

Vertices, normals and faces are numpy arrays (N x 3 float64, N x 3 float64,
M x 3 integer). Each stage hands the next one a Mesh it owns outright;
``copy()`` is cheap enough that stages never share buffers.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Vec3 = Tuple[float, float, float]

# Accumulators shorter than this are treated as zero (degenerate geometry).
_ZERO_LENGTH = 1e-12


@dataclass
class Mesh:
    vertices: np.ndarray
    faces: np.ndarray
    normals: Optional[np.ndarray] = None  # aligned 1:1 with vertices when present
    name: str = "mesh"

    def __post_init__(self) -> None:
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.int64).reshape(-1, 3)
        if self.normals is not None:
            self.normals = np.asarray(self.normals, dtype=np.float64).reshape(-1, 3)

    @property
    def vertex_count(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def face_count(self) -> int:
        return int(self.faces.shape[0])

    def copy(self) -> "Mesh":
        return Mesh(self.vertices.copy(), self.faces.copy(),
                    None if self.normals is None else self.normals.copy(),
                    self.name)

    # ---- analysis ----
    def bounds(self) -> Tuple[Vec3, Vec3]:
        if not self.vertex_count:
            return (0.0, 0.0, 0.0), (0.0, 0.0, 0.0)
        lo = self.vertices.min(axis=0)
        hi = self.vertices.max(axis=0)
        return (float(lo[0]), float(lo[1]), float(lo[2])), (float(hi[0]), float(hi[1]), float(hi[2]))

    def is_finite(self) -> bool:
        return bool(np.isfinite(self.vertices).all())

    def non_finite_vertices(self) -> np.ndarray:
        """Indices of vertices with an inf or nan coordinate."""
        return np.flatnonzero(~np.isfinite(self.vertices).all(axis=1))

    def degenerate_normals(self) -> np.ndarray:
        """Indices of vertices whose normal is the zero vector."""
        if self.normals is None:
            return np.empty(0, dtype=np.int64)
        return np.flatnonzero(~self.normals.any(axis=1))

    # ---- shading ----
    def compute_normals(self) -> "Mesh":
        """Area-weighted smooth normals, in place.

        Face normals are the raw cross product of two edges, so each face
        contributes in proportion to its area. A vertex whose accumulated
        normal is zero (or not finite) keeps a zero normal.
        """
        acc = np.zeros_like(self.vertices)
        if self.face_count:
            f = self.faces
            with np.errstate(invalid="ignore", over="ignore"):
                a = self.vertices[f[:, 0]]
                face_n = np.cross(self.vertices[f[:, 1]] - a, self.vertices[f[:, 2]] - a)
                for k in range(3):
                    np.add.at(acc, f[:, k], face_n)
        with np.errstate(invalid="ignore", over="ignore"):
            lengths = np.linalg.norm(acc, axis=1)
            ok = np.isfinite(lengths) & (lengths > _ZERO_LENGTH)
            normals = np.zeros_like(acc)
            normals[ok] = acc[ok] / lengths[ok, None]
        bad = int(self.vertex_count - np.count_nonzero(ok))
        if bad:
            logger.debug("%s: %d degenerate vertex normals left as zero", self.name, bad)
        self.normals = normals
        return self

    # ---- render buffers ----
    def as_buffers(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Flat float32 positions, float32 normals and uint32 indices."""
        mesh = self if self.normals is not None else self.copy().compute_normals()
        return (
            mesh.vertices.astype(np.float32).ravel(),
            mesh.normals.astype(np.float32).ravel(),
            mesh.faces.astype(np.uint32).ravel(),
        )


def recompute_normals(mesh: Mesh) -> Mesh:
    """Return a new mesh with the same geometry and freshly computed normals."""
    return mesh.copy().compute_normals()
