"""Output module for writing finished framebuffers to image files."""

from .export import compute_rmse, image_to_uint8, load_image, save_framebuffer, save_image

__all__ = [
    "image_to_uint8",
    "save_image",
    "save_framebuffer",
    "load_image",
    "compute_rmse",
]
