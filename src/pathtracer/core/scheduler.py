"""Parallel render scheduling.

Image rows are split into one row list per worker. The render kernel's outer
loop runs once per worker and is spread over Taichi's CPU thread pool; each
worker then walks its rows and pixels serially and writes only its own rows,
so no two workers touch the same pixel. The kernel returning is the join
point for all workers.

Two partition strategies are available:
- ``interleaved``: worker ``w`` renders rows ``w, w + W, w + 2W, ...``, which
  balances load when expensive regions span several adjacent rows
- ``contiguous``: each worker renders one block of adjacent rows

Example:
    >>> config = RenderConfig(image_height=180, samples_per_pixel=16)
    >>> camera = ThinLensCamera(lookfrom=(0, 0, 3), lookat=(0, 0, 0))
    >>> framebuffer = Renderer(config, camera).render()
    >>> framebuffer.save("out.png")
"""

import logging
import time
from dataclasses import replace

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.camera.thin_lens import ThinLensCamera, get_ray_jittered, is_camera_ready, setup_camera
from pathtracer.config import PARTITION_STRATEGIES, RenderConfig
from pathtracer.core.framebuffer import Framebuffer
from pathtracer.core.integrator import radiance, sanitize
from pathtracer.scene.intersection import is_scene_built

logger = logging.getLogger(__name__)

vec3 = tm.vec3


def partition_rows(height: int, workers: int, strategy: str = "interleaved") -> list[list[int]]:
    """Assign every image row to exactly one worker.

    Args:
        height: Number of image rows.
        workers: Number of workers. Workers beyond the row count get no rows.
        strategy: "interleaved" or "contiguous".

    Returns:
        One list of row indices per worker.

    Raises:
        ValueError: If height or workers is not positive or the strategy is unknown.
    """
    if height <= 0:
        raise ValueError(f"height must be positive, got {height}")
    if workers <= 0:
        raise ValueError(f"workers must be positive, got {workers}")
    if strategy not in PARTITION_STRATEGIES:
        raise ValueError(f"Unknown partition strategy {strategy!r}, expected one of {PARTITION_STRATEGIES}")

    if strategy == "interleaved":
        return [list(range(w, height, workers)) for w in range(workers)]
    return [chunk.tolist() for chunk in np.array_split(np.arange(height), workers)]


def _flatten_partition(partition: list[list[int]]) -> tuple[np.ndarray, np.ndarray]:
    """Concatenated rows plus offsets: worker w owns ``order[offsets[w]:offsets[w + 1]]``."""
    sizes = [len(rows) for rows in partition]
    offsets = np.zeros(len(partition) + 1, dtype=np.int32)
    offsets[1:] = np.cumsum(sizes)
    order = np.array([row for rows in partition for row in rows], dtype=np.int32)
    return order, offsets


# =============================================================================
# Render Kernel
# =============================================================================


@ti.kernel
def _render_rows(
    pixels: ti.types.ndarray(dtype=ti.f32, ndim=3),
    row_order: ti.types.ndarray(dtype=ti.i32, ndim=1),
    row_offsets: ti.types.ndarray(dtype=ti.i32, ndim=1),
    num_workers: ti.template(),
    width: ti.i32,
    height: ti.i32,
    samples_per_pixel: ti.i32,
    max_depth: ti.i32,
    inv_gamma: ti.f32,
    russian_roulette: ti.i32,
):
    ti.loop_config(parallelize=num_workers, block_dim=1)
    for worker in range(num_workers):
        for k in range(row_offsets[worker], row_offsets[worker + 1]):
            row = row_order[k]
            # Framebuffer row 0 is the top; camera t runs bottom to top
            y = height - 1 - row
            for x in range(width):
                total = vec3(0.0, 0.0, 0.0)
                for _ in range(samples_per_pixel):
                    ray = get_ray_jittered(x, y, width, height)
                    total += sanitize(radiance(ray.origin, ray.direction, max_depth, russian_roulette))

                color = total / ti.cast(samples_per_pixel, ti.f32)
                for c in ti.static(range(3)):
                    pixels[row, x, c] = tm.clamp(ti.pow(tm.max(color[c], 0.0), inv_gamma), 0.0, 1.0)


# =============================================================================
# Renderer
# =============================================================================


class Renderer:
    """Renders the current scene into a new Framebuffer.

    Args:
        config: Validated render configuration.
        camera: Camera to render from. Its aspect ratio is replaced by the
            configuration's. If omitted, the camera most recently passed to
            ``setup_camera`` is used.
    """

    def __init__(self, config: RenderConfig, camera: ThinLensCamera | None = None) -> None:
        if not isinstance(config, RenderConfig):
            raise ValueError(f"config must be a RenderConfig, got {type(config).__name__}")
        self.config = config
        self.camera = camera

    def render(self) -> Framebuffer:
        """Render every pixel and return the finished framebuffer.

        Raises:
            RuntimeError: If no scene has been built or no camera is set up.
        """
        config = self.config
        if not is_scene_built():
            raise RuntimeError("No scene has been built; call SceneManager.build() before rendering")
        if self.camera is not None:
            setup_camera(replace(self.camera, aspect_ratio=config.aspect_ratio))
        elif not is_camera_ready():
            raise RuntimeError("No camera has been set up")

        width, height = config.image_width, config.image_height
        framebuffer = Framebuffer(width, height)
        row_order, row_offsets = _flatten_partition(
            partition_rows(height, config.thread_count, config.partition)
        )

        logger.info(
            "Rendering %dx%d at %d spp with %d workers (%s rows, max depth %d)",
            width,
            height,
            config.samples_per_pixel,
            config.thread_count,
            config.partition,
            config.max_depth,
        )
        start = time.perf_counter()
        _render_rows(
            framebuffer.pixels,
            row_order,
            row_offsets,
            config.thread_count,
            width,
            height,
            config.samples_per_pixel,
            config.max_depth,
            1.0 / config.gamma,
            int(config.russian_roulette),
        )
        ti.sync()
        elapsed = time.perf_counter() - start
        logger.info(
            "Render finished in %.2fs (%.0f samples/s)",
            elapsed,
            width * height * config.samples_per_pixel / max(elapsed, 1e-9),
        )
        return framebuffer


def render(config: RenderConfig, camera: ThinLensCamera | None = None) -> Framebuffer:
    """Shorthand for ``Renderer(config, camera).render()``."""
    return Renderer(config, camera).render()
