"""Oriented box (cuboid) primitive.

A cuboid is an axis-aligned box in its own local frame, placed in the world by
a rotation followed by a translation. Intersection transforms the ray into the
local frame, runs a slab test that remembers which face was crossed, and
rotates that face normal back to world space.
"""

import math

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import safe_inverse
from pathtracer.geometry.hit import HitRecord, make_hit_record, make_miss_record

vec3 = tm.vec3
vec2 = tm.vec2
mat3 = tm.mat3

_FAR = 1e30


@ti.dataclass
class Cuboid:
    """A box with local-frame corners and a local-to-world transform.

    Attributes:
        box_min: Minimum corner in the local frame.
        box_max: Maximum corner in the local frame.
        rotation: Local-to-world rotation matrix (orthonormal).
        translation: World position of the local origin.
    """

    box_min: vec3
    box_max: vec3
    rotation: mat3
    translation: vec3


@ti.func
def _face_uv(axis: ti.i32, rel: vec3) -> vec2:
    """Texture coordinates on the face perpendicular to ``axis``."""
    uv = vec2(rel.x, rel.y)
    if axis == 0:
        uv = vec2(rel.y, rel.z)
    elif axis == 1:
        uv = vec2(rel.x, rel.z)
    return uv


@ti.func
def hit_cuboid(
    ray_origin: vec3,
    ray_direction: vec3,
    cuboid: Cuboid,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Nearest intersection of a ray with an oriented box inside ``(t_min, t_max)``.

    The ray parameter is preserved by the rigid transform, so ``t`` is valid in
    both frames. When the entry point lies before ``t_min`` (ray starting
    inside the box) the exit face is reported instead, as a back-face hit.
    Rays that only graze an edge or face (entry equal to exit) and boxes with
    an empty extent miss.
    """
    result = make_miss_record()

    world_to_local = cuboid.rotation.transpose()
    origin = world_to_local @ (ray_origin - cuboid.translation)
    direction = world_to_local @ ray_direction
    extent = cuboid.box_max - cuboid.box_min

    if extent.x > 0.0 and extent.y > 0.0 and extent.z > 0.0 and tm.dot(direction, direction) > 1e-24:
        inv_direction = safe_inverse(direction)

        t_near = -_FAR
        t_far = _FAR
        near_axis = 0
        far_axis = 0
        near_sign = 1.0
        far_sign = 1.0
        for axis in ti.static(range(3)):
            t_lo = (cuboid.box_min[axis] - origin[axis]) * inv_direction[axis]
            t_hi = (cuboid.box_max[axis] - origin[axis]) * inv_direction[axis]
            t0 = ti.min(t_lo, t_hi)
            t1 = ti.max(t_lo, t_hi)
            # Travelling towards +axis enters through the min face
            entry_sign = ti.select(t_lo > t_hi, 1.0, -1.0)
            if t0 > t_near:
                t_near = t0
                near_axis = axis
                near_sign = entry_sign
            if t1 < t_far:
                t_far = t1
                far_axis = axis
                far_sign = -entry_sign

        if t_near < t_far:
            t = t_near
            hit_axis = near_axis
            sign = near_sign
            valid = t_min < t < t_max
            if not valid:
                t = t_far
                hit_axis = far_axis
                sign = far_sign
                valid = t_min < t < t_max

            if valid:
                local_normal = vec3(0.0, 0.0, 0.0)
                local_normal[hit_axis] = sign
                local_point = origin + t * direction
                rel = (local_point - cuboid.box_min) / extent
                rel = tm.clamp(rel, 0.0, 1.0)
                outward_normal = cuboid.rotation @ local_normal
                result = make_hit_record(
                    t,
                    ray_origin + t * ray_direction,
                    outward_normal,
                    ray_direction,
                    _face_uv(hit_axis, rel),
                )

    return result


# =============================================================================
# Host-side Transform Helpers
# =============================================================================


def rotation_matrix(degrees: tuple[float, float, float]) -> npt.NDArray[np.float64]:
    """Rotation about x, then y, then z by the given angles in degrees.

    Returns:
        A 3x3 matrix R such that ``world = R @ local``.
    """
    rx, ry, rz = (math.radians(a) for a in degrees)
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)

    rot_x = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    rot_y = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    rot_z = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])
    return rot_z @ rot_y @ rot_x
