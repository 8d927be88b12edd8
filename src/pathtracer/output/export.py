"""Image export utilities for rendered images.

Framebuffers already hold gamma-corrected display values, so export only
quantises them to 8 bits and hands them to Pillow. The file format follows
the path's extension (PNG, JPEG, BMP, ...).

Example:
    >>> framebuffer = Renderer(config, camera).render()
    >>> save_framebuffer(framebuffer, "cornell.png")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

if TYPE_CHECKING:
    from pathtracer.core.framebuffer import Framebuffer

logger = logging.getLogger(__name__)


def image_to_uint8(image: npt.NDArray[np.floating]) -> npt.NDArray[np.uint8]:
    """Convert display values in [0, 1] to 8-bit, clipping anything outside.

    Args:
        image: Image array of shape (H, W, 3).

    Returns:
        Array of shape (H, W, 3) with dtype uint8.
    """
    clipped = np.clip(np.nan_to_num(np.asarray(image, dtype=np.float64)), 0.0, 1.0)
    return (clipped * 255.0 + 0.5).astype(np.uint8)


def save_image(image: npt.NDArray[np.floating], filepath: str | Path) -> None:
    """Save an (H, W, 3) array of display values with row 0 at the top.

    Raises:
        ValueError: If the array is not an RGB image.
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) image, got shape {image.shape}")
    pil_image = PILImage.fromarray(image_to_uint8(image))
    pil_image.save(filepath)
    logger.info("Saved %dx%d image to %s", image.shape[1], image.shape[0], filepath)


def save_framebuffer(framebuffer: Framebuffer, filepath: str | Path) -> None:
    save_image(framebuffer.pixels, filepath)


def load_image(filepath: str | Path) -> npt.NDArray[np.float32]:
    """Read an image file back as float32 values in [0, 1], shape (H, W, 3)."""
    with PILImage.open(filepath) as pil_image:
        data = np.asarray(pil_image.convert("RGB"), dtype=np.float32)
    return data / 255.0


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Root mean squared error between two images.

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
