"""
File exporters: Wavefront OBJ, binary STL, ASCII PLY and glTF 2.0 (.gltf/.glb).

No texture coordinates are written. Vertex normals are written where the
format supports them; STL always carries one flat normal per face.
"""
from __future__ import annotations

import base64
import json
import os
import struct
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .errors import MeshError
from .mesh import Mesh

FORMATS = ("obj", "stl", "ply", "gltf", "glb")


def _ensure_dir(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def _face_normals(mesh: Mesh) -> np.ndarray:
    v, f = mesh.vertices, mesh.faces
    with np.errstate(invalid="ignore", over="ignore"):
        n = np.cross(v[f[:, 1]] - v[f[:, 0]], v[f[:, 2]] - v[f[:, 0]])
        lengths = np.linalg.norm(n, axis=1)
        ok = np.isfinite(lengths) & (lengths > 0)
        out = np.zeros_like(n)
        out[ok] = n[ok] / lengths[ok, None]
    return out


# ---------------
# OBJ / STL / PLY
# ---------------

def save_obj(path: str, mesh: Mesh) -> None:
    """Save OBJ with optional vn (aligned 1:1 with vertices)."""
    _ensure_dir(path)
    use_vn = mesh.normals is not None
    with open(path, "w", encoding="utf-8") as f:
        f.write(f"o {mesh.name}\n")
        for x, y, z in mesh.vertices:
            f.write(f"v {x:.6f} {y:.6f} {z:.6f}\n")
        if use_vn:
            for nx, ny, nz in mesh.normals:
                f.write(f"vn {nx:.6f} {ny:.6f} {nz:.6f}\n")
        for tri in mesh.faces + 1:
            if use_vn:
                f.write("f " + " ".join(f"{i}//{i}" for i in tri) + "\n")
            else:
                f.write("f " + " ".join(str(i) for i in tri) + "\n")


def save_stl_binary(path: str, mesh: Mesh) -> None:
    """Write a binary STL. Normals are per face (flat)."""
    _ensure_dir(path)
    header = b"pycylinder STL export"
    record = np.dtype([
        ("normal", "<f4", (3,)),
        ("v", "<f4", (3, 3)),
        ("attr", "<u2"),
    ])
    data = np.zeros(mesh.face_count, dtype=record)
    data["normal"] = _face_normals(mesh)
    data["v"] = mesh.vertices[mesh.faces]
    with open(path, "wb") as f:
        f.write(header + bytes(80 - len(header)))
        f.write(struct.pack("<I", mesh.face_count))
        f.write(data.tobytes())


def save_ply_ascii(path: str, mesh: Mesh) -> None:
    _ensure_dir(path)
    use_n = mesh.normals is not None
    with open(path, "w", encoding="utf-8") as f:
        f.write("ply\nformat ascii 1.0\n")
        f.write(f"element vertex {mesh.vertex_count}\n")
        f.write("property float x\nproperty float y\nproperty float z\n")
        if use_n:
            f.write("property float nx\nproperty float ny\nproperty float nz\n")
        f.write(f"element face {mesh.face_count}\n")
        f.write("property list uchar int vertex_indices\nend_header\n")
        for i, (x, y, z) in enumerate(mesh.vertices):
            line = f"{x:.6f} {y:.6f} {z:.6f}"
            if use_n:
                nx, ny, nz = mesh.normals[i]
                line += f" {nx:.6f} {ny:.6f} {nz:.6f}"
            f.write(line + "\n")
        for a, b, c in mesh.faces:
            f.write(f"3 {a} {b} {c}\n")


# -------------------------
# Minimal glTF 2.0 exporter
# -------------------------

# little-endian numpy dtype -> glTF componentType
_COMPONENT_TYPES = {"<f4": 5126, "<u2": 5123, "<u4": 5125}
_ARRAY_BUFFER = 34962
_ELEMENT_ARRAY_BUFFER = 34963


def _gltf_document(mesh: Mesh) -> Tuple[Dict[str, Any], bytes]:
    """Return (gltf dict, binary buffer) for a single-primitive scene.

    Each array from Mesh.as_buffers() becomes one buffer view and one
    accessor; the component type follows the array dtype. JSON has no inf/nan,
    so a mesh with non-finite coordinates is refused.
    """
    if not mesh.is_finite():
        raise MeshError(f"{mesh.name}: {len(mesh.non_finite_vertices())} vertices are not finite; "
                        "glTF cannot store them")
    positions, normals, indices = mesh.as_buffers()
    positions = positions.reshape(-1, 3)
    if mesh.vertex_count < 65536:
        indices = indices.astype(np.uint16)

    blob = bytearray()
    views: List[Dict[str, Any]] = []
    accessors: List[Dict[str, Any]] = []
    arrays = (
        (positions, "VEC3", _ARRAY_BUFFER),
        (normals.reshape(-1, 3), "VEC3", _ARRAY_BUFFER),
        (indices, "SCALAR", _ELEMENT_ARRAY_BUFFER),
    )
    for data, kind, target in arrays:
        data = np.ascontiguousarray(data, dtype=data.dtype.newbyteorder("<"))
        views.append({"buffer": 0, "byteOffset": len(blob), "byteLength": data.nbytes, "target": target})
        blob += data.tobytes()
        blob += bytes(-len(blob) % 4)
        accessors.append({
            "bufferView": len(views) - 1,
            "componentType": _COMPONENT_TYPES[data.dtype.str],
            "count": len(data),
            "type": kind,
        })
    # bounds of the float32 values actually stored
    if mesh.vertex_count:
        accessors[0]["min"] = positions.min(axis=0).tolist()
        accessors[0]["max"] = positions.max(axis=0).tolist()

    gltf: Dict[str, Any] = {
        "asset": {"version": "2.0", "generator": "pycylinder"},
        "scene": 0,
        "scenes": [{"nodes": [0]}],
        "nodes": [{"mesh": 0, "name": mesh.name}],
        "meshes": [{
            "name": mesh.name,
            "primitives": [{"attributes": {"POSITION": 0, "NORMAL": 1}, "indices": 2, "mode": 4}],
        }],
        "buffers": [{"byteLength": len(blob)}],
        "bufferViews": views,
        "accessors": accessors,
    }
    return gltf, bytes(blob)


def save_gltf(path: str, mesh: Mesh, *, embed_buffer: bool = True) -> None:
    """
    Save glTF 2.0 .gltf.
    - embed_buffer=True => one .gltf file with base64 buffer
    - embed_buffer=False => writes sibling .bin
    """
    gltf, blob = _gltf_document(mesh)
    _ensure_dir(path)
    if embed_buffer:
        gltf["buffers"][0]["uri"] = "data:application/octet-stream;base64," + base64.b64encode(blob).decode("ascii")
    else:
        bin_path = os.path.splitext(path)[0] + ".bin"
        gltf["buffers"][0]["uri"] = os.path.basename(bin_path)
        with open(bin_path, "wb") as bf:
            bf.write(blob)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(gltf, f, ensure_ascii=False, allow_nan=False, separators=(",", ":"))


def save_glb(path: str, mesh: Mesh) -> None:
    """Save GLB (binary glTF 2.0): 12-byte header, JSON chunk, BIN chunk."""
    gltf, blob = _gltf_document(mesh)
    _ensure_dir(path)
    doc = json.dumps(gltf, ensure_ascii=False, allow_nan=False, separators=(",", ":")).encode("utf-8")
    doc += b" " * (-len(doc) % 4)
    total_len = 12 + 8 + len(doc) + 8 + len(blob)
    with open(path, "wb") as f:
        f.write(struct.pack("<4sII", b"glTF", 2, total_len))
        f.write(struct.pack("<I4s", len(doc), b"JSON") + doc)
        f.write(struct.pack("<I4s", len(blob), b"BIN\x00") + blob)


_WRITERS = {
    "obj": save_obj,
    "stl": save_stl_binary,
    "ply": save_ply_ascii,
    "gltf": save_gltf,
    "glb": save_glb,
}


def save_mesh(path: str, mesh: Mesh, fmt: Optional[str] = None) -> str:
    """Write mesh to path, picking the format from fmt or the file extension."""
    fmt = (fmt or os.path.splitext(path)[1].lstrip(".")).lower()
    if fmt not in _WRITERS:
        raise MeshError(f"unknown output format {fmt!r} (expected one of {', '.join(FORMATS)})")
    _WRITERS[fmt](path, mesh)
    return fmt
