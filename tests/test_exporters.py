import json
import struct

import numpy as np
import pytest

from pycylinder import MeshError, build_mesh
from pycylinder.exporters import save_glb, save_gltf, save_mesh, save_obj, save_ply_ascii, save_stl_binary


@pytest.fixture
def mesh():
    return build_mesh(radial_segments=6, height_segments=2, twist=0.4, name="twisty")


def test_obj_lines(tmp_path, mesh):
    path = tmp_path / "m.obj"
    save_obj(str(path), mesh)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "o twisty"
    assert sum(1 for l in lines if l.startswith("v ")) == mesh.vertex_count
    assert sum(1 for l in lines if l.startswith("vn ")) == mesh.vertex_count
    faces = [l for l in lines if l.startswith("f ")]
    assert len(faces) == mesh.face_count
    a, b, c = mesh.faces[0] + 1
    assert faces[0] == f"f {a}//{a} {b}//{b} {c}//{c}"


def test_stl_size_and_count(tmp_path, mesh):
    path = tmp_path / "m.stl"
    save_stl_binary(str(path), mesh)
    data = path.read_bytes()
    assert len(data) == 84 + 50 * mesh.face_count
    assert struct.unpack("<I", data[80:84])[0] == mesh.face_count


def test_ply_header(tmp_path, mesh):
    path = tmp_path / "m.ply"
    save_ply_ascii(str(path), mesh)
    text = path.read_text(encoding="utf-8")
    header, body = text.split("end_header\n")
    assert f"element vertex {mesh.vertex_count}" in header
    assert f"element face {mesh.face_count}" in header
    assert "property float nx" in header
    rows = body.splitlines()
    assert len(rows) == mesh.vertex_count + mesh.face_count
    assert len(rows[0].split()) == 6


def test_glb_layout(tmp_path, mesh):
    path = tmp_path / "m.glb"
    save_glb(str(path), mesh)
    data = path.read_bytes()
    magic, version, total = struct.unpack("<4sII", data[:12])
    assert magic == b"glTF" and version == 2
    assert total == len(data)
    json_len, json_type = struct.unpack("<I4s", data[12:20])
    assert json_type == b"JSON"
    doc = json.loads(data[20:20 + json_len])
    prim = doc["meshes"][0]["primitives"][0]
    assert doc["accessors"][prim["attributes"]["POSITION"]]["count"] == mesh.vertex_count
    assert doc["accessors"][prim["indices"]]["count"] == mesh.face_count * 3
    assert "TEXCOORD_0" not in prim["attributes"]


def test_gltf_embedded_and_external(tmp_path, mesh):
    embedded = tmp_path / "a.gltf"
    save_gltf(str(embedded), mesh)
    doc = json.loads(embedded.read_text(encoding="utf-8"))
    assert doc["buffers"][0]["uri"].startswith("data:application/octet-stream;base64,")

    external = tmp_path / "b.gltf"
    save_gltf(str(external), mesh, embed_buffer=False)
    doc = json.loads(external.read_text(encoding="utf-8"))
    assert doc["buffers"][0]["uri"] == "b.bin"
    assert (tmp_path / "b.bin").stat().st_size == doc["buffers"][0]["byteLength"]


def test_save_mesh_picks_format_from_extension(tmp_path, mesh):
    assert save_mesh(str(tmp_path / "x.STL"), mesh) == "stl"
    assert save_mesh(str(tmp_path / "x.out"), mesh, fmt="ply") == "ply"
    with pytest.raises(MeshError):
        save_mesh(str(tmp_path / "x.fbx"), mesh)


def _strict_json(text):
    def reject(token):
        raise ValueError(f"non-standard JSON constant {token}")
    return json.loads(text, parse_constant=reject)


def test_gltf_position_bounds_match_stored_float32(tmp_path, mesh):
    path = tmp_path / "m.gltf"
    save_gltf(str(path), mesh)
    doc = _strict_json(path.read_text(encoding="utf-8"))
    positions = mesh.vertices.astype(np.float32)
    accessor = doc["accessors"][doc["meshes"][0]["primitives"][0]["attributes"]["POSITION"]]
    assert accessor["componentType"] == 5126
    assert accessor["min"] == positions.min(axis=0).tolist()
    assert accessor["max"] == positions.max(axis=0).tolist()
    indices = doc["accessors"][doc["meshes"][0]["primitives"][0]["indices"]]
    assert indices["componentType"] == 5123


@pytest.mark.parametrize("writer, suffix", [(save_gltf, "gltf"), (save_glb, "glb")])
def test_gltf_refuses_non_finite_mesh(tmp_path, writer, suffix):
    broken = build_mesh(ellipticity=0.0, radial_segments=4)
    path = tmp_path / f"broken.{suffix}"
    with pytest.raises(MeshError):
        writer(str(path), broken)
    assert not path.exists()
