"""Path tracing integrator for Monte Carlo light transport.

Each camera sample follows a single path through the scene. At every vertex
the emitted radiance of the surface is added with the current throughput,
then the material either scatters the path (multiplying the throughput by
its attenuation) or absorbs it. Paths that escape the scene pick up the
background gradient. The loop is iterative with an explicit depth counter;
a path that uses up ``max_depth`` segments contributes nothing further.

Optional Russian roulette terminates low-throughput paths after a few
bounces and reweights the survivors, which keeps the estimate unbiased.

Example:
    >>> from pathtracer.core.integrator import trace_ray
    >>> color = trace_ray(vec3(0, 0, 0), vec3(0, 0, -1), 12)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import T_MAX, T_MIN, luminance
from pathtracer.geometry.hit import HitRecord
from pathtracer.materials.dielectric import scatter_dielectric_by_id
from pathtracer.materials.emissive import emitted_by_id, scatter_emissive
from pathtracer.materials.lambertian import scatter_lambertian_by_id
from pathtracer.materials.metal import scatter_metal_by_id
from pathtracer.scene.intersection import intersect_scene
from pathtracer.scene.manager import (
    MaterialType,
    background_bottom,
    background_top,
    get_material_type,
    get_material_type_index,
)

vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Bounces before Russian roulette may terminate a path
MIN_BOUNCES_BEFORE_RR = 3

# Russian roulette survival probability cap
MAX_RR_PROBABILITY = 0.95


# =============================================================================
# Background
# =============================================================================


@ti.func
def background(direction: vec3) -> vec3:
    """Vertical gradient from the bottom color to the top color."""
    unit_direction = tm.normalize(direction)
    t = 0.5 * (unit_direction.y + 1.0)
    return (1.0 - t) * background_bottom[None] + t * background_top[None]


# =============================================================================
# Material Dispatch
# =============================================================================


@ti.func
def scatter_material(incident_direction: vec3, rec: HitRecord):
    """Dispatch to the scattering function of the material at a hit.

    Args:
        incident_direction: Direction of the incoming ray.
        rec: The hit record; its normal faces the incoming ray.

    Returns:
        A tuple (scattered_direction, attenuation, did_scatter). Unknown
        material ids absorb the path.
    """
    mat_type = get_material_type(rec.material_id)
    type_index = get_material_type_index(rec.material_id)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0

    if mat_type == int(MaterialType.LAMBERTIAN):
        scattered_direction, attenuation, did_scatter = scatter_lambertian_by_id(
            type_index, rec.normal, rec.uv, rec.point
        )
    elif mat_type == int(MaterialType.METAL):
        scattered_direction, attenuation, did_scatter = scatter_metal_by_id(
            type_index, incident_direction, rec.normal
        )
    elif mat_type == int(MaterialType.DIELECTRIC):
        scattered_direction, attenuation, did_scatter = scatter_dielectric_by_id(
            type_index, incident_direction, rec.normal, rec.front_face
        )
    elif mat_type == int(MaterialType.EMISSIVE):
        scattered_direction, attenuation, did_scatter = scatter_emissive()

    return scattered_direction, attenuation, did_scatter


@ti.func
def emitted(rec: HitRecord) -> vec3:
    """Radiance emitted at a hit; zero for everything except emissive materials."""
    emission = vec3(0.0, 0.0, 0.0)
    if get_material_type(rec.material_id) == int(MaterialType.EMISSIVE):
        emission = emitted_by_id(get_material_type_index(rec.material_id), rec.uv, rec.point)
    return emission


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def radiance(origin: vec3, direction: vec3, max_depth: ti.i32, russian_roulette: ti.i32) -> vec3:
    """Estimate the radiance arriving at ``origin`` from ``direction``.

    Args:
        origin: Ray origin.
        direction: Ray direction, any non-zero length.
        max_depth: Maximum number of path segments.
        russian_roulette: 1 to enable Russian roulette termination.

    Returns:
        The non-negative radiance estimate of one path.
    """
    result = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    ray_origin = origin
    ray_direction = direction

    # Cleared when the path escapes or is absorbed
    active = 1
    for depth in range(max_depth):
        if active == 1:
            rec = intersect_scene(ray_origin, ray_direction, T_MIN, T_MAX)

            if rec.hit == 0:
                result += throughput * background(ray_direction)
                active = 0
            else:
                result += throughput * emitted(rec)

                scattered_direction, attenuation, did_scatter = scatter_material(ray_direction, rec)
                if did_scatter == 0:
                    active = 0
                else:
                    throughput *= attenuation

                    if russian_roulette == 1 and depth >= MIN_BOUNCES_BEFORE_RR:
                        survival = tm.min(luminance(throughput), MAX_RR_PROBABILITY)
                        if survival <= 0.0 or ti.random(ti.f32) >= survival:
                            active = 0
                        else:
                            throughput /= survival

                    ray_origin = rec.point
                    ray_direction = scattered_direction

    return result


@ti.func
def sanitize(color: vec3) -> vec3:
    """Replace NaN and infinite components by zero."""
    result = color
    for c in ti.static(range(3)):
        if tm.isnan(result[c]) or tm.isinf(result[c]):
            result[c] = 0.0
    return result


@ti.kernel
def trace_ray(origin: vec3, direction: vec3, max_depth: ti.i32) -> vec3:
    """Trace a single path from Python, for tests and debugging.

    Russian roulette is disabled so the result only depends on the scene.
    """
    result = vec3(0.0, 0.0, 0.0)
    # Serial wrapper so the path loop is not the kernel's parallel loop
    ti.loop_config(serialize=True)
    for _ in range(1):
        result = sanitize(radiance(origin, direction, max_depth, 0))
    return result
