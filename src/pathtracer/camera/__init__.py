"""Camera module for primary ray generation.

Components:
    thin_lens: Look-at perspective camera with optional depth of field
"""

from .thin_lens import (
    ThinLensCamera,
    get_camera_info,
    get_ray,
    get_ray_jittered,
    is_camera_ready,
    reset_camera,
    setup_camera,
)

__all__ = [
    "ThinLensCamera",
    "setup_camera",
    "get_ray",
    "get_ray_jittered",
    "get_camera_info",
    "is_camera_ready",
    "reset_camera",
]
