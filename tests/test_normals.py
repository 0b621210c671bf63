import math

import numpy as np
import pytest

from pycylinder.cylinder import base_cylinder, build_mesh
from pycylinder.mesh import Mesh, recompute_normals


@pytest.mark.parametrize(
    "overrides",
    [
        {},
        {"radius_top": 0.5, "radius_bottom": 1.5, "height_segments": 6},
        {"ellipticity": 2.5, "twist": 2.0, "obliqueness": 1.2, "height_segments": 8},
        {"theta_length": math.pi, "theta_start": 0.3, "open_ended": True},
    ],
)
def test_non_degenerate_normals_are_unit_length(overrides):
    mesh = build_mesh(**overrides)
    lengths = np.linalg.norm(mesh.normals, axis=1)
    nonzero = lengths > 0
    assert nonzero.any()
    np.testing.assert_allclose(lengths[nonzero], 1.0, atol=1e-5)


def test_faces_are_area_weighted():
    # vertex 0 is shared by a large triangle in the XY plane and a small one in the XZ plane
    vertices = [
        (0.0, 0.0, 0.0),
        (2.0, 0.0, 0.0),
        (0.0, 2.0, 0.0),
        (0.0, 0.0, 1.0),
        (1.0, 0.0, 0.0),
    ]
    faces = [(0, 1, 2), (0, 3, 4)]
    mesh = Mesh(vertices, faces).compute_normals()
    expected = np.array([0.0, 1.0, 4.0]) / math.sqrt(17.0)
    np.testing.assert_allclose(mesh.normals[0], expected)
    np.testing.assert_allclose(mesh.normals[1], [0.0, 0.0, 1.0])
    np.testing.assert_allclose(mesh.normals[3], [0.0, 1.0, 0.0])


def test_degenerate_faces_leave_zero_normals():
    vertices = [(1.0, 1.0, 1.0)] * 3 + [(5.0, 5.0, 5.0)]
    mesh = Mesh(vertices, [(0, 1, 2)]).compute_normals()
    np.testing.assert_array_equal(mesh.normals, np.zeros((4, 3)))
    np.testing.assert_array_equal(mesh.degenerate_normals(), [0, 1, 2, 3])


def test_zero_sweep_builds_with_degenerate_normals():
    mesh = build_mesh(theta_length=0.0, radial_segments=4, open_ended=True)
    np.testing.assert_array_equal(mesh.normals, np.zeros_like(mesh.vertices))


def test_recompute_returns_a_new_mesh():
    base = base_cylinder(8, 1, False)
    analytic = base.normals.copy()
    base.vertices[:, 0] *= 3.0
    out = recompute_normals(base)
    assert out is not base
    assert out.normals is not base.normals
    np.testing.assert_array_equal(base.normals, analytic)


def test_smooth_side_normals_stay_radial_and_caps_stay_flat():
    radial = 16
    mesh = build_mesh(radial_segments=radial, height_segments=2)
    row = radial + 1
    side = mesh.normals[:row * 3].reshape(3, row, 3)
    # the middle ring sees the same triangle area on both sides, so its
    # smoothed normal is radial away from the seam
    for j in range(1, radial):
        theta = 2 * math.pi * j / radial
        np.testing.assert_allclose(side[1, j], [math.sin(theta), 0.0, math.cos(theta)], atol=1e-9)
    np.testing.assert_allclose(side[..., 1], 0.0, atol=1e-12)
    caps = mesh.normals[row * 3:]
    top, bottom = caps[:2 * radial + 1], caps[2 * radial + 1:]
    np.testing.assert_allclose(top, np.tile([0.0, 1.0, 0.0], (len(top), 1)), atol=1e-12)
    np.testing.assert_allclose(bottom, np.tile([0.0, -1.0, 0.0], (len(bottom), 1)), atol=1e-12)


def test_partial_sweep_keeps_a_hard_seam():
    radial = 8
    mesh = build_mesh(radial_segments=radial, theta_length=math.pi, open_ended=True)
    first, last = mesh.normals[0], mesh.normals[radial]
    assert not np.allclose(first, last)
