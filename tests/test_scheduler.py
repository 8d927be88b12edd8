"""Unit tests for render scheduling and the Renderer.

Tests cover:
- Row partitions covering every row exactly once
- Renderer preconditions
- Output shape, range and row orientation
"""

import numpy as np
import pytest


class TestPartitionRows:
    """Tests for partition_rows."""

    @pytest.mark.parametrize("strategy", ["interleaved", "contiguous"])
    @pytest.mark.parametrize("height,workers", [(10, 3), (7, 7), (5, 8), (1, 1), (100, 16)])
    def test_every_row_exactly_once(self, strategy, height, workers):
        from pathtracer.core.scheduler import partition_rows

        partition = partition_rows(height, workers, strategy)
        assert len(partition) == workers
        rows = sorted(r for worker_rows in partition for r in worker_rows)
        assert rows == list(range(height))

    def test_interleaved_layout(self):
        from pathtracer.core.scheduler import partition_rows

        assert partition_rows(7, 3, "interleaved") == [[0, 3, 6], [1, 4], [2, 5]]

    def test_contiguous_layout(self):
        from pathtracer.core.scheduler import partition_rows

        assert partition_rows(7, 3, "contiguous") == [[0, 1, 2], [3, 4], [5, 6]]

    def test_more_workers_than_rows(self):
        from pathtracer.core.scheduler import partition_rows

        partition = partition_rows(2, 4)
        assert [len(rows) for rows in partition] == [1, 1, 0, 0]

    @pytest.mark.parametrize("height,workers,strategy", [(0, 2, "interleaved"), (4, 0, "interleaved"), (4, 2, "random")])
    def test_invalid_arguments_raise(self, height, workers, strategy):
        from pathtracer.core.scheduler import partition_rows

        with pytest.raises(ValueError):
            partition_rows(height, workers, strategy)

    def test_flatten_partition_offsets(self):
        from pathtracer.core.scheduler import _flatten_partition, partition_rows

        order, offsets = _flatten_partition(partition_rows(7, 3))
        assert order.tolist() == [0, 3, 6, 1, 4, 2, 5]
        assert offsets.tolist() == [0, 3, 5, 7]


class TestRenderer:
    """Tests for Renderer.render."""

    def _camera(self):
        from pathtracer.camera.thin_lens import ThinLensCamera

        return ThinLensCamera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0), vfov=90.0)

    def test_render_without_scene_raises(self):
        from pathtracer.config import RenderConfig
        from pathtracer.core.scheduler import Renderer

        with pytest.raises(RuntimeError, match="scene"):
            Renderer(RenderConfig(image_height=4, samples_per_pixel=1), self._camera()).render()

    def test_render_without_camera_raises(self):
        from pathtracer.config import RenderConfig
        from pathtracer.core.scheduler import Renderer
        from pathtracer.scene.manager import SceneManager

        SceneManager().build()
        with pytest.raises(RuntimeError, match="camera"):
            Renderer(RenderConfig(image_height=4, samples_per_pixel=1)).render()

    def test_invalid_config_type_raises(self):
        from pathtracer.core.scheduler import Renderer

        with pytest.raises(ValueError):
            Renderer({"image_height": 4, "samples_per_pixel": 1})

    def test_output_shape_and_range(self):
        from pathtracer.config import RenderConfig
        from pathtracer.core.scheduler import render
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        light = scene.add_emissive_material((1.0, 1.0, 1.0), intensity=20.0)
        scene.add_sphere((0, 0, -3), 1.0, light)
        scene.build()

        config = RenderConfig(image_height=12, samples_per_pixel=2, aspect_ratio=1.5, thread_count=4)
        framebuffer = render(config, self._camera())
        assert framebuffer.shape == (12, 18)
        assert framebuffer.pixels.shape == (12, 18, 3)
        assert framebuffer.pixels.min() >= 0.0
        assert framebuffer.pixels.max() <= 1.0
        # Over-bright emission clamps to white at the centre
        assert np.allclose(framebuffer.get_pixel(9, 6), (1.0, 1.0, 1.0))

    def test_row_zero_is_top_of_image(self):
        """The sky gradient is bluer at the top, so row 0 has less red than the last row."""
        from pathtracer.config import RenderConfig
        from pathtracer.core.scheduler import render
        from pathtracer.scene.manager import SceneManager

        SceneManager().build()
        config = RenderConfig(image_height=16, samples_per_pixel=1, aspect_ratio=1.0, thread_count=2)
        framebuffer = render(config, self._camera())
        assert framebuffer.pixels[0, :, 0].mean() < framebuffer.pixels[-1, :, 0].mean()
        # Blue is constant across the default gradient
        assert np.allclose(framebuffer.pixels[..., 2], 1.0, atol=1e-5)

    @pytest.mark.parametrize("partition", ["interleaved", "contiguous"])
    def test_every_pixel_is_written(self, partition):
        from pathtracer.config import RenderConfig
        from pathtracer.core.scheduler import render
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        scene.set_background((0.5, 0.5, 0.5))
        scene.build()
        config = RenderConfig(image_height=9, samples_per_pixel=1, aspect_ratio=1.0, thread_count=4, partition=partition)
        framebuffer = render(config, self._camera())
        # Constant background of 0.5 at gamma 2
        assert np.allclose(framebuffer.pixels, np.sqrt(0.5), atol=1e-5)
