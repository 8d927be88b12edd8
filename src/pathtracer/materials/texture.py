"""Procedural textures sampled by Lambertian albedo and emissive radiance.

Three texture kinds share one registry of Taichi fields:

    SOLID: a constant color.
    CHECKER: 3D checker pattern. The sign of ``sin(s*x) sin(s*y) sin(s*z)``
        picks between two colors.
    NOISE: Perlin turbulence "marble". The value is
        ``color * 0.5 * (1 + sin(s*z + 10 * turb(p)))``.

The Perlin lattice (random gradient vectors and three permutation tables) is
generated once on the host from a seeded NumPy generator.
"""

from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3
vec2 = tm.vec2


class TextureType(IntEnum):
    SOLID = 0
    CHECKER = 1
    NOISE = 2


MAX_TEXTURES = 1024

PERLIN_POINT_COUNT = 256
TURBULENCE_DEPTH = 7

texture_types = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_color_a = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_color_b = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_scales = ti.field(dtype=ti.f32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())

perlin_gradients = ti.Vector.field(3, dtype=ti.f32, shape=PERLIN_POINT_COUNT)
perlin_perm_x = ti.field(dtype=ti.i32, shape=PERLIN_POINT_COUNT)
perlin_perm_y = ti.field(dtype=ti.i32, shape=PERLIN_POINT_COUNT)
perlin_perm_z = ti.field(dtype=ti.i32, shape=PERLIN_POINT_COUNT)
_perlin_seeded = ti.field(dtype=ti.i32, shape=())


def clear_textures() -> None:
    num_textures[None] = 0


def seed_perlin(seed: int = 0) -> None:
    """Regenerate the Perlin lattice from a seeded generator."""
    rng = np.random.default_rng(seed)
    gradients = rng.uniform(-1.0, 1.0, size=(PERLIN_POINT_COUNT, 3))
    gradients /= np.linalg.norm(gradients, axis=1, keepdims=True)
    perlin_gradients.from_numpy(gradients.astype(np.float32))
    for perm in (perlin_perm_x, perlin_perm_y, perlin_perm_z):
        perm.from_numpy(rng.permutation(PERLIN_POINT_COUNT).astype(np.int32))
    _perlin_seeded[None] = 1


def _validate_color(name: str, color: tuple[float, float, float]) -> None:
    if len(color) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(color)}")
    for i, component in enumerate(color):
        if not component >= 0.0:
            raise ValueError(f"{name} component {i} = {component} must be non-negative")


def _add_texture(
    texture_type: TextureType,
    color_a: tuple[float, float, float],
    color_b: tuple[float, float, float],
    scale: float,
) -> int:
    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    texture_types[idx] = int(texture_type)
    texture_color_a[idx] = vec3(color_a[0], color_a[1], color_a[2])
    texture_color_b[idx] = vec3(color_b[0], color_b[1], color_b[2])
    texture_scales[idx] = scale
    num_textures[None] = idx + 1
    return idx


def add_solid_texture(color: tuple[float, float, float]) -> int:
    """Register a constant-color texture and return its id.

    Raises:
        ValueError: If any component is negative.
        RuntimeError: If the texture registry is full.
    """
    _validate_color("color", color)
    return _add_texture(TextureType.SOLID, color, color, 1.0)


def add_checker_texture(
    even: tuple[float, float, float],
    odd: tuple[float, float, float],
    scale: float = 10.0,
) -> int:
    """Register a 3D checker texture alternating between ``even`` and ``odd``.

    Args:
        even: Color where the sine product is non-negative.
        odd: Color where the sine product is negative.
        scale: Spatial frequency of the pattern.

    Raises:
        ValueError: If a color component is negative or scale is not positive.
    """
    _validate_color("even", even)
    _validate_color("odd", odd)
    if not scale > 0.0:
        raise ValueError(f"Checker scale must be positive, got {scale}")
    return _add_texture(TextureType.CHECKER, even, odd, scale)


def add_noise_texture(color: tuple[float, float, float] = (1.0, 1.0, 1.0), scale: float = 4.0) -> int:
    """Register a Perlin marble texture.

    Raises:
        ValueError: If a color component is negative or scale is not positive.
    """
    _validate_color("color", color)
    if not scale > 0.0:
        raise ValueError(f"Noise scale must be positive, got {scale}")
    if _perlin_seeded[None] == 0:
        seed_perlin()
    return _add_texture(TextureType.NOISE, color, color, scale)


def get_texture_count() -> int:
    return int(num_textures[None])


# =============================================================================
# Texture Evaluation (Taichi)
# =============================================================================


@ti.func
def perlin_noise(p: vec3) -> ti.f32:
    """Gradient noise in roughly [-1, 1] with Hermite-smoothed trilinear blending."""
    cell = ti.floor(p)
    f = p - cell
    i = ti.cast(cell.x, ti.i32)
    j = ti.cast(cell.y, ti.i32)
    k = ti.cast(cell.z, ti.i32)
    smooth = f * f * (3.0 - 2.0 * f)

    accum = 0.0
    for di in ti.static(range(2)):
        for dj in ti.static(range(2)):
            for dk in ti.static(range(2)):
                lattice = (
                    perlin_perm_x[(i + di) & 255]
                    ^ perlin_perm_y[(j + dj) & 255]
                    ^ perlin_perm_z[(k + dk) & 255]
                )
                offset = f - vec3(di, dj, dk)
                weight = (
                    (di * smooth.x + (1 - di) * (1.0 - smooth.x))
                    * (dj * smooth.y + (1 - dj) * (1.0 - smooth.y))
                    * (dk * smooth.z + (1 - dk) * (1.0 - smooth.z))
                )
                accum += weight * tm.dot(perlin_gradients[lattice], offset)
    return accum


@ti.func
def turbulence(p: vec3, depth: ti.i32) -> ti.f32:
    """Sum of ``depth`` noise octaves with halving weights, absolute value."""
    accum = 0.0
    q = p
    weight = 1.0
    for _ in range(depth):
        accum += weight * perlin_noise(q)
        weight *= 0.5
        q *= 2.0
    return ti.abs(accum)


@ti.func
def sample_texture(texture_id: ti.i32, uv: vec2, point: vec3) -> vec3:
    """Color of texture ``texture_id`` at a surface point.

    Unknown ids evaluate to black.
    """
    color = vec3(0.0, 0.0, 0.0)
    if 0 <= texture_id < num_textures[None]:
        kind = texture_types[texture_id]
        scale = texture_scales[texture_id]
        if kind == int(TextureType.SOLID):
            color = texture_color_a[texture_id]
        elif kind == int(TextureType.CHECKER):
            sines = ti.sin(scale * point.x) * ti.sin(scale * point.y) * ti.sin(scale * point.z)
            color = texture_color_a[texture_id]
            if sines < 0.0:
                color = texture_color_b[texture_id]
        elif kind == int(TextureType.NOISE):
            marble = 0.5 * (1.0 + ti.sin(scale * point.z + 10.0 * turbulence(point, TURBULENCE_DEPTH)))
            color = texture_color_a[texture_id] * marble
    return color
