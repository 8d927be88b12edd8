"""Lambertian (ideal diffuse) material.

Scattered directions are drawn from a cosine-weighted hemisphere about the
shading normal. With that importance sampling the BRDF ``albedo / pi``, the
cosine term and the pdf ``cos(theta) / pi`` cancel, leaving an attenuation
equal to the albedo.

Albedo is a texture reference, so diffuse surfaces can be solid, checkered or
noise-textured.
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import near_zero, sample_cosine_hemisphere
from pathtracer.materials.texture import num_textures, sample_texture

vec3 = tm.vec3
vec2 = tm.vec2


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3):
    """Sample a diffuse bounce.

    Args:
        albedo: Diffuse reflectance at the hit point.
        normal: Unit shading normal facing the incoming ray.

    Returns:
        A tuple (scattered_direction, attenuation, did_scatter). The
        direction never points below the surface.
    """
    scattered_direction = sample_cosine_hemisphere(normal)
    if near_zero(scattered_direction):
        scattered_direction = normal
    return scattered_direction, albedo, 1


# =============================================================================
# Material Field Storage
# =============================================================================

MAX_LAMBERTIAN_MATERIALS = 1024

lambertian_texture_ids = ti.field(dtype=ti.i32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    num_lambertian_materials[None] = 0


def add_lambertian_material(texture_id: int) -> int:
    """Register a Lambertian material whose albedo comes from a texture.

    Args:
        texture_id: Id returned by one of the ``add_*_texture`` functions.

    Returns:
        The index of the material in the Lambertian registry.

    Raises:
        ValueError: If texture_id does not name a registered texture.
        RuntimeError: If the maximum number of materials is exceeded.
    """
    if not 0 <= texture_id < num_textures[None]:
        raise ValueError(f"Invalid texture_id: {texture_id}")

    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )
    lambertian_texture_ids[idx] = texture_id
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    return int(num_lambertian_materials[None])


@ti.func
def get_lambertian_albedo(material_idx: ti.i32, uv: vec2, point: vec3) -> vec3:
    return sample_texture(lambertian_texture_ids[material_idx], uv, point)


@ti.func
def scatter_lambertian_by_id(material_idx: ti.i32, normal: vec3, uv: vec2, point: vec3):
    """Look up the albedo texture of a registered material and scatter."""
    return scatter_lambertian(get_lambertian_albedo(material_idx, uv, point), normal)
