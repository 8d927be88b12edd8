"""Unit tests for triangle intersection.

Tests cover:
- Double-sided hits with front_face from the winding
- Misses outside the triangle, parallel rays and degenerate triangles
- Barycentric UVs, interpolated vertex UVs and shading normals
"""

import numpy as np
import taichi as ti


def _hit(origin, direction, verts, normals=None, uvs=None, t_min=0.001, t_max=1000.0):
    """Run hit_triangle and return (hit, t, normal, front_face, uv)."""
    from pathtracer.geometry.triangle import Triangle, hit_triangle

    vec3 = ti.math.vec3

    positions = ti.Vector.field(3, dtype=ti.f32, shape=3)
    vertex_normals = ti.Vector.field(3, dtype=ti.f32, shape=3)
    vertex_uvs = ti.Vector.field(2, dtype=ti.f32, shape=3)
    flags = ti.field(dtype=ti.i32, shape=2)

    positions.from_numpy(np.asarray(verts, dtype=np.float32))
    vertex_normals.from_numpy(np.asarray(normals if normals is not None else np.zeros((3, 3)), dtype=np.float32))
    vertex_uvs.from_numpy(np.asarray(uvs if uvs is not None else np.zeros((3, 2)), dtype=np.float32))
    flags.from_numpy(np.array([normals is not None, uvs is not None], dtype=np.int32))

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    normal = ti.Vector.field(3, dtype=ti.f32, shape=())
    front_face = ti.field(dtype=ti.i32, shape=())
    uv = ti.Vector.field(2, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel(o: vec3, d: vec3, t0: ti.f32, t1: ti.f32):
        tri = Triangle(
            v0=positions[0],
            v1=positions[1],
            v2=positions[2],
            n0=vertex_normals[0],
            n1=vertex_normals[1],
            n2=vertex_normals[2],
            uv0=vertex_uvs[0],
            uv1=vertex_uvs[1],
            uv2=vertex_uvs[2],
            has_normals=flags[0],
            has_uvs=flags[1],
        )
        rec = hit_triangle(o, d, tri, t0, t1)
        hit[None] = rec.hit
        t_val[None] = rec.t
        normal[None] = rec.normal
        front_face[None] = rec.front_face
        uv[None] = rec.uv

    test_kernel(vec3(*origin), vec3(*direction), t_min, t_max)
    return hit[None], t_val[None], normal[None].to_numpy(), front_face[None], uv[None].to_numpy()


UNIT_TRI = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)]


class TestTriangleIntersection:
    """Tests for Moller-Trumbore hits and misses."""

    def test_hit_from_front(self):
        hit, t, normal, front_face, uv = _hit((0.25, 0.25, 1.0), (0, 0, -1), UNIT_TRI)
        assert hit == 1
        assert abs(t - 1.0) < 1e-5
        assert np.allclose(normal, [0, 0, 1], atol=1e-5)
        assert front_face == 1
        # Barycentric (u, v) without vertex UVs
        assert np.allclose(uv, [0.25, 0.25], atol=1e-5)

    def test_hit_from_back(self):
        hit, t, normal, front_face, _ = _hit((0.25, 0.25, -2.0), (0, 0, 1), UNIT_TRI)
        assert hit == 1
        assert abs(t - 2.0) < 1e-5
        assert np.allclose(normal, [0, 0, -1], atol=1e-5)
        assert front_face == 0

    def test_miss_outside(self):
        hit, *_ = _hit((0.8, 0.8, 1.0), (0, 0, -1), UNIT_TRI)
        assert hit == 0

    def test_parallel_ray_misses(self):
        hit, *_ = _hit((-1.0, 0.2, 0.0), (1, 0, 0), UNIT_TRI)
        assert hit == 0

    def test_degenerate_triangle_misses(self):
        collinear = [(0.0, 0.0, 0.0), (1.0, 1.0, 0.0), (2.0, 2.0, 0.0)]
        hit, *_ = _hit((1.0, 1.0, 1.0), (0, 0, -1), collinear)
        assert hit == 0

    def test_interval_excluding_hit_misses(self):
        hit, *_ = _hit((0.25, 0.25, 1.0), (0, 0, -1), UNIT_TRI, t_max=0.5)
        assert hit == 0

    def test_scale_independent_parallel_test(self):
        """Tiny triangles are still hit by steep rays."""
        tiny = [tuple(1e-3 * np.asarray(v)) for v in UNIT_TRI]
        hit, t, *_ = _hit((2.5e-4, 2.5e-4, 1.0), (0, 0, -1), tiny)
        assert hit == 1
        assert abs(t - 1.0) < 1e-5


class TestTriangleAttributes:
    """Tests for interpolated normals and UVs."""

    def test_interpolated_shading_normal(self):
        normals = [(0.0, 0.0, 1.0), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0)]
        # Barycentrics w=0.25, u=0.5, v=0.25
        hit, _, normal, front_face, _ = _hit((0.5, 0.25, 1.0), (0, 0, -1), UNIT_TRI, normals=normals)
        assert hit == 1
        assert front_face == 1
        s = 1.0 / np.sqrt(2.0)
        assert np.allclose(normal, [s, 0.0, s], atol=1e-5)

    def test_shading_normal_flipped_for_back_face(self):
        normals = [(0.0, 0.0, 1.0)] * 3
        hit, _, normal, front_face, _ = _hit((0.25, 0.25, -1.0), (0, 0, 1), UNIT_TRI, normals=normals)
        assert hit == 1
        assert front_face == 0
        assert np.allclose(normal, [0, 0, -1], atol=1e-5)

    def test_interpolated_uvs(self):
        uvs = [(0.2, 0.2), (1.0, 0.2), (0.2, 1.0)]
        hit, _, _, _, uv = _hit((0.5, 0.25, 1.0), (0, 0, -1), UNIT_TRI, uvs=uvs)
        assert hit == 1
        assert np.allclose(uv, [0.6, 0.4], atol=1e-5)

    def test_normals_opposite_to_winding_face_the_ray(self):
        normals = [(0.0, 0.0, -1.0)] * 3
        hit, _, normal, front_face, _ = _hit((0.25, 0.25, 1.0), (0, 0, -1), UNIT_TRI, normals=normals)
        assert hit == 1
        # front_face comes from the winding, the normal from the ray side
        assert front_face == 1
        assert np.allclose(normal, [0, 0, 1], atol=1e-5)

        hit, _, normal, front_face, _ = _hit((0.25, 0.25, -1.0), (0, 0, 1), UNIT_TRI, normals=normals)
        assert hit == 1
        assert front_face == 0
        assert np.allclose(normal, [0, 0, -1], atol=1e-5)

    def test_tilted_shading_normal_never_faces_along_ray(self):
        # Interpolated normal tips away from a grazing ray
        normals = [(0.9, 0.0, 0.1)] * 3
        direction = np.array([1.0, 0.0, -0.2])
        hit, _, normal, _, _ = _hit((0.0, 0.25, 0.05), tuple(direction), UNIT_TRI, normals=normals)
        assert hit == 1
        assert np.dot(direction, normal) < 0.0
