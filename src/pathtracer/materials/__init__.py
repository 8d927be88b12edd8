"""Materials module for scattering models and textures.

Components:
    texture: Solid, checker and Perlin-noise textures
    lambertian: Ideal diffuse reflection with textured albedo
    metal: Mirror reflection perturbed by a fuzz radius
    dielectric: Glass-like refraction with Fresnel-weighted reflection
    emissive: Diffuse light sources that terminate paths

Each material type keeps its parameters in its own Taichi field registry and
exposes a ``scatter_*`` function returning
``(scattered_direction, attenuation, did_scatter)``. The scene manager maps
unified material ids onto these per-type registries.
"""

from .dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
    get_dielectric_material_count,
    scatter_dielectric,
    scatter_dielectric_by_id,
)
from .emissive import (
    add_emissive_material,
    clear_emissive_materials,
    emitted_by_id,
    get_emissive_material_count,
    scatter_emissive,
)
from .lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
    get_lambertian_albedo,
    get_lambertian_material_count,
    scatter_lambertian,
    scatter_lambertian_by_id,
)
from .metal import (
    add_metal_material,
    clear_metal_materials,
    get_metal_material_count,
    scatter_metal,
    scatter_metal_by_id,
)
from .texture import (
    TextureType,
    add_checker_texture,
    add_noise_texture,
    add_solid_texture,
    clear_textures,
    get_texture_count,
    perlin_noise,
    sample_texture,
    seed_perlin,
    turbulence,
)

__all__ = [
    # Textures
    "TextureType",
    "add_solid_texture",
    "add_checker_texture",
    "add_noise_texture",
    "clear_textures",
    "get_texture_count",
    "perlin_noise",
    "turbulence",
    "sample_texture",
    "seed_perlin",
    # Lambertian
    "scatter_lambertian",
    "scatter_lambertian_by_id",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "get_lambertian_material_count",
    "get_lambertian_albedo",
    # Metal
    "scatter_metal",
    "scatter_metal_by_id",
    "add_metal_material",
    "clear_metal_materials",
    "get_metal_material_count",
    # Dielectric
    "scatter_dielectric",
    "scatter_dielectric_by_id",
    "add_dielectric_material",
    "clear_dielectric_materials",
    "get_dielectric_material_count",
    # Emissive
    "scatter_emissive",
    "emitted_by_id",
    "add_emissive_material",
    "clear_emissive_materials",
    "get_emissive_material_count",
]
