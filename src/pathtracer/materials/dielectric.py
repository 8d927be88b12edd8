"""Dielectric (glass, water) material.

At each hit the ray either reflects or refracts. Reflection is chosen with
probability equal to the unpolarised Fresnel reflectance, and always under
total internal reflection. Clear dielectrics absorb nothing, so the
attenuation is white.

The side of the interface comes from ``front_face``: entering the medium
uses the ratio ``1 / ior``, leaving it uses ``ior``.
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import fresnel_dielectric, reflect, refract

vec3 = tm.vec3


@ti.func
def scatter_dielectric(ior: ti.f32, incident_direction: vec3, normal: vec3, front_face: ti.i32):
    """Reflect or refract a ray at a dielectric boundary.

    Args:
        ior: Index of refraction of the medium.
        incident_direction: Incoming ray direction, any non-zero length.
        normal: Unit normal facing the incoming ray.
        front_face: 1 if the ray is entering the medium, 0 if leaving it.

    Returns:
        A tuple (scattered_direction, attenuation, did_scatter). Dielectrics
        always scatter.
    """
    unit_direction = tm.normalize(incident_direction)
    refraction_ratio = ior
    if front_face == 1:
        refraction_ratio = 1.0 / ior

    cos_theta = tm.min(-tm.dot(unit_direction, normal), 1.0)
    reflectance = fresnel_dielectric(cos_theta, refraction_ratio)

    # reflectance is 1 under total internal reflection
    scattered_direction = vec3(0.0, 0.0, 0.0)
    if reflectance >= 1.0 or ti.random(ti.f32) < reflectance:
        scattered_direction = reflect(unit_direction, normal)
    else:
        scattered_direction = refract(unit_direction, normal, refraction_ratio)

    return tm.normalize(scattered_direction), vec3(1.0, 1.0, 1.0), 1


# =============================================================================
# Material Field Storage
# =============================================================================

MAX_DIELECTRIC_MATERIALS = 1024

dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    num_dielectric_materials[None] = 0


def add_dielectric_material(ior: float = 1.5) -> int:
    """Add a dielectric material to the registry.

    Args:
        ior: Index of refraction, at least 1.0. Air is 1.0, water 1.33,
            glass about 1.5, diamond 2.4.

    Returns:
        The index of the material in the dielectric registry.

    Raises:
        ValueError: If ior is less than 1.0.
        RuntimeError: If the maximum number of materials is exceeded.
    """
    if not ior >= 1.0:
        raise ValueError(f"Index of refraction = {ior} is less than 1.0")

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_iors[idx] = ior
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    return int(num_dielectric_materials[None])


@ti.func
def scatter_dielectric_by_id(
    material_idx: ti.i32, incident_direction: vec3, normal: vec3, front_face: ti.i32
):
    return scatter_dielectric(dielectric_iors[material_idx], incident_direction, normal, front_face)
