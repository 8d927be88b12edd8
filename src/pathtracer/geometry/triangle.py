"""Triangle primitive using the Moller-Trumbore intersection algorithm.

Triangles are double-sided. The winding of (v0, v1, v2) defines the
geometric normal used for ``front_face``; optional per-vertex normals and UVs
are interpolated with the barycentric coordinates of the hit.
"""

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.hit import HitRecord, make_miss_record

vec3 = tm.vec3
vec2 = tm.vec2

# Minimum |cos| between the ray and the triangle plane normal
_PARALLEL_EPSILON = 1e-7

# Minimum |e1 x e2|, below which the triangle has no area
_AREA_EPSILON = 1e-12


@ti.dataclass
class Triangle:
    """A triangle with optional per-vertex shading normals and texture coordinates.

    Attributes:
        v0, v1, v2: Vertex positions in world space.
        n0, n1, n2: Per-vertex normals, used only when ``has_normals == 1``.
        uv0, uv1, uv2: Per-vertex texture coordinates, used only when
            ``has_uvs == 1``.
        has_normals: 1 if the vertex normals are valid.
        has_uvs: 1 if the vertex UVs are valid.
    """

    v0: vec3
    v1: vec3
    v2: vec3
    n0: vec3
    n1: vec3
    n2: vec3
    uv0: vec2
    uv1: vec2
    uv2: vec2
    has_normals: ti.i32
    has_uvs: ti.i32


@ti.func
def hit_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    tri: Triangle,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Nearest intersection of a ray with a triangle inside ``(t_min, t_max)``.

    Zero-area triangles, zero-length directions and rays parallel to the
    triangle's plane miss. The parallel test is relative to the lengths of
    the direction and the edge cross product, so it does not depend on scene
    scale.

    Returns:
        A HitRecord whose normal is the interpolated shading normal (or the
        geometric normal) flipped to face the ray, or a miss record. ``front_face``
        always follows the geometric normal.
    """
    result = make_miss_record()

    e1 = tri.v1 - tri.v0
    e2 = tri.v2 - tri.v0
    n_geo = tm.cross(e1, e2)
    area2 = tm.length(n_geo)
    dir_len = tm.length(ray_direction)

    pvec = tm.cross(ray_direction, e2)
    det = tm.dot(e1, pvec)

    if area2 > _AREA_EPSILON and ti.abs(det) > _PARALLEL_EPSILON * dir_len * area2:
        inv_det = 1.0 / det
        svec = ray_origin - tri.v0
        u = tm.dot(svec, pvec) * inv_det
        if 0.0 <= u <= 1.0:
            qvec = tm.cross(svec, e1)
            v = tm.dot(ray_direction, qvec) * inv_det
            if v >= 0.0 and u + v <= 1.0:
                t = tm.dot(e2, qvec) * inv_det
                if t_min < t < t_max:
                    w = 1.0 - u - v
                    geometric_normal = n_geo / area2
                    front_face = tm.dot(ray_direction, geometric_normal) < 0.0

                    shading_normal = geometric_normal
                    if tri.has_normals == 1:
                        interpolated = w * tri.n0 + u * tri.n1 + v * tri.n2
                        if tm.dot(interpolated, interpolated) > 1e-12:
                            shading_normal = tm.normalize(interpolated)
                    # Vertex normals may disagree with the winding
                    if tm.dot(ray_direction, shading_normal) > 0.0:
                        shading_normal = -shading_normal

                    uv = vec2(u, v)
                    if tri.has_uvs == 1:
                        uv = w * tri.uv0 + u * tri.uv1 + v * tri.uv2

                    result.hit = 1
                    result.t = t
                    result.point = ray_origin + t * ray_direction
                    result.normal = shading_normal
                    result.front_face = ti.cast(front_face, ti.i32)
                    result.uv = uv

    return result
