"""Ray data structure plus the vector and sampling helpers used by every kernel.

All functions here are ``@ti.func`` and are inlined into the calling kernel.
Random draws go through ``ti.random``, which reads the generator state of the
CPU thread executing the kernel, so concurrent workers never share a stream.

Example:
    >>> @ti.kernel
    ... def point_at_five() -> vec3:
    ...     ray = make_ray(vec3(0.0), vec3(0.0, 0.0, -1.0), T_MIN, T_MAX)
    ...     return ray_at(ray, 5.0)
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3
vec2 = tm.vec2

# Secondary rays start this far along their direction, which is what keeps a
# scattered ray from re-hitting the surface it left.
T_MIN = 1e-3
T_MAX = 1e10

# Replacement for zero direction components before taking reciprocals.
_INV_DIR_EPSILON = 1e-12


@ti.dataclass
class Ray:
    """A parametric ray ``origin + t * direction`` valid on ``[t_min, t_max]``.

    Attributes:
        origin: The starting point of the ray.
        direction: The direction vector. Not required to be unit length.
        t_min: Lower bound of the valid parameter interval.
        t_max: Upper bound of the valid parameter interval.
    """

    origin: vec3
    direction: vec3
    t_min: ti.f32
    t_max: ti.f32


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Point at parameter t along the ray."""
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3, t_min: ti.f32, t_max: ti.f32) -> Ray:
    return Ray(origin=origin, direction=direction, t_min=t_min, t_max=t_max)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    return tm.dot(v, v)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """1 if every component of v is within 1e-8 of zero."""
    s = 1e-8
    return ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s


@ti.func
def safe_inverse(direction: vec3) -> vec3:
    """Component-wise reciprocal with zero components nudged to a tiny value.

    Keeps slab tests free of ``0 * inf`` NaNs for axis-parallel rays.
    """
    d = direction
    for axis in ti.static(range(3)):
        if ti.abs(d[axis]) < _INV_DIR_EPSILON:
            d[axis] = ti.select(d[axis] < 0.0, -_INV_DIR_EPSILON, _INV_DIR_EPSILON)
    return 1.0 / d


@ti.func
def luminance(c: vec3) -> ti.f32:
    return 0.2126 * c.x + 0.7152 * c.y + 0.0722 * c.z


# =============================================================================
# Reflection and Refraction
# =============================================================================


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Mirror ``incident`` about a unit ``normal``."""
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, eta: ti.f32) -> vec3:
    """Refract a unit incident direction through a surface using Snell's law.

    Args:
        incident: Unit incoming direction.
        normal: Unit normal on the incident side of the surface.
        eta: Ratio of refractive indices, n_incident / n_transmitted.

    Returns:
        The refracted direction, or a zero vector under total internal
        reflection.
    """
    cos_i = tm.min(-tm.dot(incident, normal), 1.0)
    sin2_t = eta * eta * (1.0 - cos_i * cos_i)
    result = vec3(0.0, 0.0, 0.0)
    if sin2_t <= 1.0:
        cos_t = ti.sqrt(1.0 - sin2_t)
        result = eta * incident + (eta * cos_i - cos_t) * normal
    return result


@ti.func
def fresnel_dielectric(cos_i: ti.f32, eta: ti.f32) -> ti.f32:
    """Unpolarised Fresnel reflectance at a dielectric interface.

    Averages the s- and p-polarised reflectances. The result is exactly zero
    when ``eta == 1`` and one under total internal reflection.

    Args:
        cos_i: Cosine between the incident direction and the surface normal.
        eta: Ratio of refractive indices, n_incident / n_transmitted.

    Returns:
        Fraction of light reflected, in [0, 1].
    """
    reflectance = 1.0
    sin2_t = eta * eta * (1.0 - cos_i * cos_i)
    if sin2_t < 1.0:
        cos_t = ti.sqrt(1.0 - sin2_t)
        denom_s = eta * cos_i + cos_t
        denom_p = cos_i + eta * cos_t
        if denom_s > 1e-8 and denom_p > 1e-8:
            r_s = (eta * cos_i - cos_t) / denom_s
            r_p = (cos_i - eta * cos_t) / denom_p
            reflectance = 0.5 * (r_s * r_s + r_p * r_p)
    return reflectance


# =============================================================================
# Random Sampling
# =============================================================================


@ti.func
def random_in_unit_sphere() -> vec3:
    """Uniform point inside the unit sphere by rejection sampling."""
    p = vec3(0.0, 0.0, 0.0)
    found = False
    # Bounded rejection loop
    for _ in range(64):
        if not found:
            p = vec3(
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
            )
            if 1e-12 < length_squared(p) < 1.0:
                found = True
    return p


@ti.func
def random_unit_vector() -> vec3:
    return tm.normalize(random_in_unit_sphere())


@ti.func
def random_in_unit_disk() -> vec3:
    """Uniform point ``(x, y, 0)`` inside the unit disk."""
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(64):
        if not found:
            p = vec3(ti.random(ti.f32) * 2.0 - 1.0, ti.random(ti.f32) * 2.0 - 1.0, 0.0)
            if p.x * p.x + p.y * p.y < 1.0:
                found = True
    return p


@ti.func
def random_cosine_direction() -> vec3:
    """Cosine-weighted direction in a z-up local frame (pdf = cos(theta) / pi)."""
    r1 = ti.random(ti.f32)
    r2 = ti.random(ti.f32)
    phi = 2.0 * tm.pi * r1
    sqrt_r2 = ti.sqrt(r2)
    return vec3(ti.cos(phi) * sqrt_r2, ti.sin(phi) * sqrt_r2, ti.sqrt(1.0 - r2))


@ti.func
def build_onb_from_normal(normal: vec3):
    """Orthonormal basis (tangent, bitangent, normal) with ``normal`` as z."""
    a = vec3(1.0, 0.0, 0.0)
    if ti.abs(normal.x) > 0.9:
        a = vec3(0.0, 1.0, 0.0)
    tangent = tm.normalize(tm.cross(a, normal))
    bitangent = tm.cross(normal, tangent)
    return tangent, bitangent, normal


@ti.func
def local_to_world(local_dir: vec3, tangent: vec3, bitangent: vec3, normal: vec3) -> vec3:
    return local_dir.x * tangent + local_dir.y * bitangent + local_dir.z * normal


@ti.func
def sample_cosine_hemisphere(normal: vec3) -> vec3:
    """Cosine-weighted direction in the hemisphere around a unit normal."""
    tangent, bitangent, n = build_onb_from_normal(normal)
    return local_to_world(random_cosine_direction(), tangent, bitangent, n)
