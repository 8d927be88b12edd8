"""Core rendering module.

Components:
    ray: Ray dataclass, vector and sampling helpers, reflection and refraction
    framebuffer: NumPy-backed RGB render target
    integrator: Iterative path-tracing estimator and material dispatch
    scheduler: Row partitioning, the parallel render kernel and Renderer

Only the field-free modules are re-exported here. ``integrator`` and
``scheduler`` read scene and camera fields and are imported explicitly once
the Taichi runtime is initialised.
"""

from .framebuffer import Framebuffer
from .ray import (
    T_MAX,
    T_MIN,
    Ray,
    build_onb_from_normal,
    fresnel_dielectric,
    length_squared,
    local_to_world,
    luminance,
    make_ray,
    near_zero,
    random_cosine_direction,
    random_in_unit_disk,
    random_in_unit_sphere,
    random_unit_vector,
    ray_at,
    reflect,
    refract,
    safe_inverse,
    sample_cosine_hemisphere,
    vec2,
    vec3,
)

__all__ = [
    "Framebuffer",
    "Ray",
    "T_MIN",
    "T_MAX",
    "vec2",
    "vec3",
    "ray_at",
    "make_ray",
    "length_squared",
    "near_zero",
    "safe_inverse",
    "luminance",
    "reflect",
    "refract",
    "fresnel_dielectric",
    "random_in_unit_sphere",
    "random_unit_vector",
    "random_in_unit_disk",
    "random_cosine_direction",
    "build_onb_from_normal",
    "local_to_world",
    "sample_cosine_hemisphere",
]
