"""Sphere primitive with robust ray-sphere intersection.

The quadratic is solved in its half-b form with the sign-aware root from
Ray Tracing Gems (chapter 7), which avoids catastrophic cancellation when the
ray origin is far from the sphere relative to its radius.

Example:
    >>> @ti.kernel
    ... def first_hit() -> ti.f32:
    ...     sphere = Sphere(center=vec3(0.0, 0.0, -1.0), radius=0.5)
    ...     rec = hit_sphere(vec3(0.0), vec3(0.0, 0.0, -1.0), sphere, 1e-3, 1e10)
    ...     return rec.t
"""

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.hit import HitRecord, make_hit_record, make_miss_record

vec3 = tm.vec3
vec2 = tm.vec2


@ti.dataclass
class Sphere:
    """A sphere defined by center point and radius."""

    center: vec3
    radius: ti.f32


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Roots of ``a*t^2 + 2*h*t + c = 0`` ordered so that t0 <= t1."""
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0
    if ti.abs(q) < 1e-10:
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        t0, t1 = t1, t0

    return t0, t1


@ti.func
def sphere_uv(outward_normal: vec3) -> vec2:
    """Spherical texture coordinates of a point given its unit outward normal.

    u wraps around the y axis starting at -x, v runs from the -y pole (0) to
    the +y pole (1).
    """
    theta = ti.acos(tm.clamp(-outward_normal.y, -1.0, 1.0))
    phi = ti.atan2(-outward_normal.z, outward_normal.x) + tm.pi
    return vec2(phi / (2.0 * tm.pi), theta / tm.pi)


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Nearest intersection of a ray with a sphere inside ``(t_min, t_max)``.

    Solves ``|origin + t*direction - center|^2 = radius^2`` with

        a = dot(direction, direction)
        h = dot(direction, origin - center)
        c = dot(origin - center, origin - center) - radius^2

    Tangent rays (zero discriminant) are treated as misses, as are spheres
    with a non-positive radius and rays with a zero-length direction.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray, any non-zero length.
        sphere: The sphere to test.
        t_min: Exclusive lower bound on the ray parameter.
        t_max: Exclusive upper bound on the ray parameter.

    Returns:
        A HitRecord with the normal facing the ray, or a miss record.
    """
    result = make_miss_record()

    oc = ray_origin - sphere.center
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    discriminant = h * h - a * c

    if sphere.radius > 0.0 and a > 1e-12 and discriminant > 0.0:
        t0, t1 = _solve_quadratic_robust(h, a, c, ti.sqrt(discriminant))

        t = t0
        valid = t_min < t < t_max
        if not valid:
            t = t1
            valid = t_min < t < t_max

        if valid:
            point = ray_origin + t * ray_direction
            outward_normal = (point - sphere.center) / sphere.radius
            result = make_hit_record(t, point, outward_normal, ray_direction, sphere_uv(outward_normal))

    return result
