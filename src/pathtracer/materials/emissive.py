"""Emissive (diffuse light) material.

Emitters never scatter, so a path ends at the first light it reaches. The
emitted radiance is a texture value scaled by an intensity and is the same on
both faces of the surface. Intensities above one are expected; radiance is
only clamped when pixels are written.
"""

import taichi as ti
import taichi.math as tm

from pathtracer.materials.texture import num_textures, sample_texture

vec3 = tm.vec3
vec2 = tm.vec2


@ti.func
def scatter_emissive():
    """Emitters absorb every incoming ray."""
    return vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, 0.0), 0


# =============================================================================
# Material Field Storage
# =============================================================================

MAX_EMISSIVE_MATERIALS = 1024

emissive_texture_ids = ti.field(dtype=ti.i32, shape=MAX_EMISSIVE_MATERIALS)
emissive_intensities = ti.field(dtype=ti.f32, shape=MAX_EMISSIVE_MATERIALS)
num_emissive_materials = ti.field(dtype=ti.i32, shape=())


def clear_emissive_materials() -> None:
    num_emissive_materials[None] = 0


def add_emissive_material(texture_id: int, intensity: float = 1.0) -> int:
    """Register an emitter whose radiance is ``intensity * texture``.

    Raises:
        ValueError: If texture_id is unknown or intensity is negative.
        RuntimeError: If the maximum number of materials is exceeded.
    """
    if not 0 <= texture_id < num_textures[None]:
        raise ValueError(f"Invalid texture_id: {texture_id}")
    if not intensity >= 0.0:
        raise ValueError(f"Emission intensity must be non-negative, got {intensity}")

    idx = num_emissive_materials[None]
    if idx >= MAX_EMISSIVE_MATERIALS:
        raise RuntimeError(
            f"Maximum number of emissive materials ({MAX_EMISSIVE_MATERIALS}) exceeded"
        )
    emissive_texture_ids[idx] = texture_id
    emissive_intensities[idx] = intensity
    num_emissive_materials[None] = idx + 1
    return idx


def get_emissive_material_count() -> int:
    return int(num_emissive_materials[None])


@ti.func
def emitted_by_id(material_idx: ti.i32, uv: vec2, point: vec3) -> vec3:
    return emissive_intensities[material_idx] * sample_texture(
        emissive_texture_ids[material_idx], uv, point
    )
