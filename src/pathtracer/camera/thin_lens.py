"""Thin-lens camera model for perspective ray generation with depth of field.

The camera supports:
- Look-at positioning (lookfrom, lookat, vup)
- Vertical field of view in degrees and arbitrary aspect ratios
- An optional circular aperture focused at a given distance

The orthonormal basis (u, v, w) is built once on the host:
- w: points from lookat toward lookfrom (opposite the view direction)
- u: points right in the image plane
- v: points up in the image plane

The viewport lies on the focus plane, ``focus_dist`` in front of the eye.
With a zero aperture every ray starts at the eye and the camera is a pinhole;
otherwise ray origins are spread over a lens disk of radius ``aperture / 2``
and only points on the focus plane are sharp.

Example:
    >>> camera = ThinLensCamera(
    ...     lookfrom=(13.0, 2.0, 3.0),
    ...     lookat=(0.0, 0.0, 0.0),
    ...     vfov=20.0,
    ...     aspect_ratio=16.0 / 9.0,
    ...     aperture=0.1,
    ...     focus_dist=10.0,
    ... )
    >>> setup_camera(camera)
    >>> @ti.kernel
    ... def center() -> vec3:
    ...     return get_ray(0.5, 0.5).direction
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
import taichi as ti

from pathtracer.core.ray import T_MAX, T_MIN, Ray, make_ray, random_in_unit_disk, vec3

logger = logging.getLogger(__name__)

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class ThinLensCamera:
    """Configuration for a thin-lens perspective camera.

    Attributes:
        lookfrom: Camera position in world space.
        lookat: Point the camera is looking at.
        vup: Up direction used to orient the camera.
        vfov: Vertical field of view in degrees, in (0, 180).
        aspect_ratio: Width divided by height of the image.
        aperture: Lens diameter; 0 gives a pinhole camera.
        focus_dist: Distance from the eye to the plane in perfect focus.

    Raises:
        ValueError: If the view direction is zero, vup is parallel to it, or
            any scalar parameter is out of range.
    """

    lookfrom: tuple[float, float, float]
    lookat: tuple[float, float, float]
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    vfov: float = 40.0
    aspect_ratio: float = 16.0 / 9.0
    aperture: float = 0.0
    focus_dist: float = 1.0

    def __post_init__(self) -> None:
        view = np.asarray(self.lookat, dtype=np.float64) - np.asarray(self.lookfrom, dtype=np.float64)
        view_len = np.linalg.norm(view)
        if view_len == 0.0:
            raise ValueError("lookfrom and lookat must differ")
        vup = np.asarray(self.vup, dtype=np.float64)
        if np.linalg.norm(np.cross(vup, view / view_len)) < 1e-8:
            raise ValueError(f"vup {self.vup} is zero or parallel to the view direction")
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"vfov must be in (0, 180) degrees, got {self.vfov}")
        if not self.aspect_ratio > 0.0:
            raise ValueError(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        if not self.aperture >= 0.0:
            raise ValueError(f"aperture must be non-negative, got {self.aperture}")
        if not self.focus_dist > 0.0:
            raise ValueError(f"focus_dist must be positive, got {self.focus_dist}")


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis: right, up, backward
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())

# Viewport on the focus plane
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())

_lens_radius = ti.field(dtype=ti.f32, shape=())
_camera_ready = ti.field(dtype=ti.i32, shape=())


# =============================================================================
# Camera Setup
# =============================================================================


def setup_camera(camera: ThinLensCamera) -> None:
    """Derive the camera basis and viewport and store them for kernels.

    Must be called before rendering and again whenever the camera changes.
    """
    theta = math.radians(camera.vfov)
    viewport_height = 2.0 * math.tan(theta / 2.0)
    viewport_width = camera.aspect_ratio * viewport_height

    lookfrom = np.array(camera.lookfrom, dtype=np.float64)
    lookat = np.array(camera.lookat, dtype=np.float64)
    vup = np.array(camera.vup, dtype=np.float64)

    w = lookfrom - lookat
    w = w / np.linalg.norm(w)
    u = np.cross(vup, w)
    u = u / np.linalg.norm(u)
    v = np.cross(w, u)

    horizontal = camera.focus_dist * viewport_width * u
    vertical = camera.focus_dist * viewport_height * v
    lower_left = lookfrom - horizontal / 2.0 - vertical / 2.0 - camera.focus_dist * w

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()
    _lens_radius[None] = camera.aperture / 2.0
    _camera_ready[None] = 1

    logger.debug(
        "Camera at %s looking at %s (vfov=%.1f, aspect=%.3f, aperture=%.3f, focus=%.3f)",
        camera.lookfrom,
        camera.lookat,
        camera.vfov,
        camera.aspect_ratio,
        camera.aperture,
        camera.focus_dist,
    )


def is_camera_ready() -> bool:
    return bool(_camera_ready[None])


def reset_camera() -> None:
    _camera_ready[None] = 0


# =============================================================================
# Ray Generation
# =============================================================================


@ti.func
def get_ray(s: ti.f32, t: ti.f32) -> Ray:
    """Generate a ray through normalized image coordinates.

    Args:
        s: Horizontal coordinate in [0, 1], left to right.
        t: Vertical coordinate in [0, 1], bottom to top.

    Returns:
        A ray with a unit direction. Its origin is the eye for a pinhole
        camera, or a random point on the lens disk otherwise.
    """
    origin = _camera_origin[None]
    lens_radius = _lens_radius[None]
    offset = vec3(0.0, 0.0, 0.0)
    if lens_radius > 0.0:
        rd = lens_radius * random_in_unit_disk()
        offset = _camera_u[None] * rd.x + _camera_v[None] * rd.y

    target = _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]
    direction = (target - origin - offset).normalized()
    return make_ray(origin + offset, direction, T_MIN, T_MAX)


@ti.func
def get_ray_jittered(pixel_x: ti.i32, pixel_y: ti.i32, width: ti.i32, height: ti.i32) -> Ray:
    """Ray through a uniformly random point inside a pixel.

    Args:
        pixel_x: Column, 0 at the left.
        pixel_y: Row counted from the bottom of the image.
        width: Image width in pixels.
        height: Image height in pixels.
    """
    s = (ti.cast(pixel_x, ti.f32) + ti.random(ti.f32)) / ti.cast(width, ti.f32)
    t = (ti.cast(pixel_y, ti.f32) + ti.random(ti.f32)) / ti.cast(height, ti.f32)
    return get_ray(s, t)


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, float, float] | float]:
    """Current camera state, for debugging and tests.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical, lower_left
        and lens_radius.
    """

    def as_tuple(field) -> tuple[float, float, float]:
        value = field[None]
        return (float(value[0]), float(value[1]), float(value[2]))

    return {
        "origin": as_tuple(_camera_origin),
        "u": as_tuple(_camera_u),
        "v": as_tuple(_camera_v),
        "w": as_tuple(_camera_w),
        "horizontal": as_tuple(_viewport_horizontal),
        "vertical": as_tuple(_viewport_vertical),
        "lower_left": as_tuple(_lower_left_corner),
        "lens_radius": float(_lens_radius[None]),
    }
