"""Render target holding final display values.

Pixels are stored as a ``(height, width, 3)`` float32 array with row 0 at the
top of the image, so the array can be handed to image libraries unchanged.
The render kernel writes gamma-corrected values clamped to [0, 1].
"""

from pathlib import Path

import numpy as np
import numpy.typing as npt

from pathtracer.output.export import image_to_uint8, save_image


class Framebuffer:
    """RGB image buffer.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.

    Raises:
        ValueError: If either dimension is not positive.
    """

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Framebuffer dimensions must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self.pixels: npt.NDArray[np.float32] = np.zeros((height, width, 3), dtype=np.float32)

    @property
    def shape(self) -> tuple[int, int]:
        return self.height, self.width

    def get_pixel(self, x: int, y: int) -> tuple[float, float, float]:
        """Color at column ``x`` and row ``y`` (row 0 is the top)."""
        r, g, b = self.pixels[y, x]
        return float(r), float(g), float(b)

    def to_uint8(self) -> npt.NDArray[np.uint8]:
        return image_to_uint8(self.pixels)

    def save(self, path: str | Path) -> None:
        """Write the image through Pillow; the format follows the file extension."""
        save_image(self.pixels, path)

    def __repr__(self) -> str:
        return f"Framebuffer(width={self.width}, height={self.height})"
