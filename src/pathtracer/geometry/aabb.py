"""Axis-aligned bounding boxes.

``hit_aabb`` is the slab test used by BVH traversal; the remaining helpers
compute primitive bounds on the host with NumPy while the BVH is built.
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


@ti.func
def hit_aabb(
    bbox_min: vec3,
    bbox_max: vec3,
    ray_origin: vec3,
    inv_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
):
    """Slab test of a ray against a box.

    Boxes of zero thickness along an axis still report hits, so flat meshes
    remain reachable.

    Args:
        bbox_min: Minimum corner of the box.
        bbox_max: Maximum corner of the box.
        ray_origin: The starting point of the ray.
        inv_direction: Component-wise reciprocal of the ray direction, as
            produced by ``safe_inverse``.
        t_min: Lower bound on the ray parameter.
        t_max: Upper bound on the ray parameter.

    Returns:
        A tuple (hit, t_enter) where t_enter is the parameter at which the
        ray enters the box, clipped to the interval.
    """
    t_enter = t_min
    t_exit = t_max
    for axis in ti.static(range(3)):
        t0 = (bbox_min[axis] - ray_origin[axis]) * inv_direction[axis]
        t1 = (bbox_max[axis] - ray_origin[axis]) * inv_direction[axis]
        if t0 > t1:
            t0, t1 = t1, t0
        t_enter = tm.max(t_enter, t0)
        t_exit = tm.min(t_exit, t1)
    return t_enter <= t_exit, t_enter


# =============================================================================
# Host-side Bounds
# =============================================================================


def sphere_bounds(
    centers: npt.NDArray[np.float64], radii: npt.NDArray[np.float64]
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Bounds of N spheres given (N, 3) centers and (N,) radii."""
    r = np.abs(np.asarray(radii, dtype=np.float64))[:, None]
    centers = np.asarray(centers, dtype=np.float64)
    return centers - r, centers + r


def triangle_bounds(
    v0: npt.NDArray[np.float64], v1: npt.NDArray[np.float64], v2: npt.NDArray[np.float64]
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Bounds of N triangles given three (N, 3) vertex arrays."""
    stacked = np.stack([v0, v1, v2], axis=0)
    return stacked.min(axis=0), stacked.max(axis=0)


def box_corners(bbox_min: npt.ArrayLike, bbox_max: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """The eight corners of a box as an (8, 3) array."""
    lo = np.asarray(bbox_min, dtype=np.float64)
    hi = np.asarray(bbox_max, dtype=np.float64)
    return np.array(
        [[hi[0] if i & 1 else lo[0], hi[1] if i & 2 else lo[1], hi[2] if i & 4 else lo[2]] for i in range(8)]
    )


def transformed_box_bounds(
    bbox_min: npt.ArrayLike,
    bbox_max: npt.ArrayLike,
    rotation: npt.NDArray[np.float64],
    translation: npt.ArrayLike,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """World bounds of a local-space box after rotation then translation."""
    corners = box_corners(bbox_min, bbox_max) @ np.asarray(rotation).T + np.asarray(translation)
    return corners.min(axis=0), corners.max(axis=0)
