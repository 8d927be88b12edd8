"""Metal (fuzzy specular) material.

The incoming direction is mirrored about the normal and then pushed by
``fuzz * random_unit_vector()``. A perturbed direction that ends up at or
below the surface is absorbed. The albedo tints every reflection.
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import random_unit_vector, reflect

vec3 = tm.vec3


@ti.func
def scatter_metal(albedo: vec3, fuzz: ti.f32, incident_direction: vec3, normal: vec3):
    """Reflect an incoming ray off a metal surface.

    Args:
        albedo: Reflective color.
        fuzz: Perturbation radius in [0, 1]. 0 is a perfect mirror.
        incident_direction: Incoming ray direction, any non-zero length.
        normal: Unit normal facing the incoming ray.

    Returns:
        A tuple (scattered_direction, attenuation, did_scatter). did_scatter
        is 0 when the perturbed direction has a non-positive dot product with
        the normal.
    """
    reflected = reflect(tm.normalize(incident_direction), normal)
    scattered = reflected + fuzz * random_unit_vector()

    did_scatter = 0
    scattered_direction = vec3(0.0, 0.0, 0.0)
    if tm.dot(scattered, normal) > 0.0:
        did_scatter = 1
        scattered_direction = tm.normalize(scattered)

    return scattered_direction, albedo, did_scatter


# =============================================================================
# Material Field Storage
# =============================================================================

MAX_METAL_MATERIALS = 1024

metal_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_METAL_MATERIALS)
metal_fuzz = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    num_metal_materials[None] = 0


def add_metal_material(albedo: tuple[float, float, float], fuzz: float = 0.0) -> int:
    """Add a metal material to the registry.

    Args:
        albedo: Reflective color, each component in [0, 1].
        fuzz: Perturbation radius in [0, 1].

    Returns:
        The index of the material in the metal registry.

    Raises:
        ValueError: If an albedo component or fuzz is outside [0, 1].
        RuntimeError: If the maximum number of materials is exceeded.
    """
    for i, component in enumerate(albedo):
        if not 0.0 <= component <= 1.0:
            raise ValueError(f"Albedo component {i} = {component} is outside [0, 1]")
    if not 0.0 <= fuzz <= 1.0:
        raise ValueError(f"Fuzz = {fuzz} is outside [0, 1]")

    idx = num_metal_materials[None]
    if idx >= MAX_METAL_MATERIALS:
        raise RuntimeError(f"Maximum number of metal materials ({MAX_METAL_MATERIALS}) exceeded")

    metal_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    metal_fuzz[idx] = fuzz
    num_metal_materials[None] = idx + 1
    return idx


def get_metal_material_count() -> int:
    return int(num_metal_materials[None])


@ti.func
def scatter_metal_by_id(material_idx: ti.i32, incident_direction: vec3, normal: vec3):
    return scatter_metal(
        metal_albedos[material_idx], metal_fuzz[material_idx], incident_direction, normal
    )
