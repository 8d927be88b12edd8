"""Unit tests for the path tracing integrator.

Tests cover:
- Background gradient for escaping rays
- Emission picked up at the first hit
- Mirror and index-matched glass paths
- max_depth cutting paths short
- Sanitising NaN and infinite samples
"""

import numpy as np
import taichi as ti


def _trace(origin, direction, max_depth=12):
    from pathtracer.core.integrator import trace_ray

    vec3 = ti.math.vec3
    c = trace_ray(vec3(*origin), vec3(*direction), max_depth)
    return np.array([c[0], c[1], c[2]])


class TestBackground:
    """Tests for rays that leave the scene."""

    def test_gradient_top_bottom_and_horizon(self):
        from pathtracer.scene.manager import DEFAULT_BACKGROUND_BOTTOM, DEFAULT_BACKGROUND_TOP

        top = np.array(DEFAULT_BACKGROUND_TOP)
        bottom = np.array(DEFAULT_BACKGROUND_BOTTOM)
        assert np.allclose(_trace((0, 0, 0), (0, 1, 0)), top, atol=1e-5)
        assert np.allclose(_trace((0, 0, 0), (0, -1, 0)), bottom, atol=1e-5)
        assert np.allclose(_trace((0, 0, 0), (1, 0, 0)), 0.5 * (top + bottom), atol=1e-5)

    def test_unnormalized_direction_gives_same_background(self):
        a = _trace((0, 0, 0), (0.3, 0.4, 0.0))
        b = _trace((0, 0, 0), (3.0, 4.0, 0.0))
        assert np.allclose(a, b, atol=1e-5)

    def test_custom_background(self):
        from pathtracer.scene.manager import set_background

        set_background((0.2, 0.4, 0.6))
        assert np.allclose(_trace((0, 0, 0), (0, 0, -1)), [0.2, 0.4, 0.6], atol=1e-5)


class TestPaths:
    """Tests for simple deterministic paths."""

    def test_direct_emission(self):
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        light = scene.add_emissive_material((1.0, 0.5, 0.25), intensity=2.0)
        scene.add_sphere((0, 0, -5), 1.0, light)
        scene.set_background((0.0, 0.0, 0.0))
        scene.build()

        assert np.allclose(_trace((0, 0, 0), (0, 0, -1)), [2.0, 1.0, 0.5], atol=1e-5)

    def test_mirror_reflects_background(self):
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        mirror = scene.add_metal_material((0.5, 0.25, 1.0), fuzz=0.0)
        scene.add_sphere((0, 0, -5), 1.0, mirror)
        scene.set_background((1.0, 1.0, 1.0))
        scene.build()

        assert np.allclose(_trace((0, 0, 0), (0, 0, -1)), [0.5, 0.25, 1.0], atol=1e-5)

    def test_max_depth_truncates_paths(self):
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        mirror = scene.add_metal_material((0.5, 0.5, 0.5), fuzz=0.0)
        scene.add_sphere((0, 0, -5), 1.0, mirror)
        scene.set_background((1.0, 1.0, 1.0))
        scene.build()

        # One segment reaches the mirror but not the background behind it
        assert np.allclose(_trace((0, 0, 0), (0, 0, -1), max_depth=1), 0.0)
        assert np.allclose(_trace((0, 0, 0), (0, 0, -1), max_depth=0), 0.0)
        assert np.allclose(_trace((0, 0, 0), (0, 0, -1), max_depth=2), 0.5, atol=1e-5)

    def test_index_matched_glass_is_invisible(self):
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        glass = scene.add_dielectric_material(ior=1.0)
        scene.add_sphere((0, 0, -5), 1.0, glass)
        scene.set_background((0.3, 0.6, 0.9))
        scene.build()

        for direction in [(0, 0, -1), (0.1, 0.05, -1)]:
            assert np.allclose(_trace((0, 0, 0), direction), [0.3, 0.6, 0.9], atol=1e-4)

    def test_black_diffuse_absorbs(self):
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        black = scene.add_lambertian_material(albedo=(0.0, 0.0, 0.0))
        scene.add_sphere((0, 0, -5), 1.0, black)
        scene.set_background((1.0, 1.0, 1.0))
        scene.build()

        assert np.allclose(_trace((0, 0, 0), (0, 0, -1)), 0.0)


class TestSanitize:
    """Tests for dropping invalid sample values."""

    def test_nan_and_inf_become_zero(self):
        from pathtracer.core.integrator import sanitize

        source = ti.Vector.field(3, dtype=ti.f32, shape=())
        result = ti.Vector.field(3, dtype=ti.f32, shape=())
        source[None] = [float("nan"), float("inf"), 0.5]

        @ti.kernel
        def test_kernel():
            result[None] = sanitize(source[None])

        test_kernel()
        assert np.allclose(result[None].to_numpy(), [0.0, 0.0, 0.5])


class TestMaterialDispatch:
    """Tests for scatter_material on hand-built hit records."""

    def _scatter(self, material_id):
        from pathtracer.core.integrator import scatter_material
        from pathtracer.geometry.hit import make_miss_record

        vec3 = ti.math.vec3
        scattered = ti.field(dtype=ti.i32, shape=())
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(mat: ti.i32):
            rec = make_miss_record()
            rec.hit = 1
            rec.t = 1.0
            rec.point = vec3(0.0, 0.0, -1.0)
            rec.normal = vec3(0.0, 0.0, 1.0)
            rec.front_face = 1
            rec.material_id = mat
            _, att, s = scatter_material(vec3(0.0, 0.0, -1.0), rec)
            scattered[None] = s
            attenuation[None] = att

        test_kernel(material_id)
        return scattered[None], attenuation[None].to_numpy()

    def test_emissive_never_scatters(self):
        from pathtracer.scene.manager import MaterialType, SceneManager

        scene = SceneManager()
        scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        light = scene.add_emissive_material((1.0, 1.0, 1.0), intensity=5.0)
        assert scene.get_material_type_python(light) == MaterialType.EMISSIVE

        for _ in range(8):
            did_scatter, attenuation = self._scatter(light)
            assert did_scatter == 0
            assert np.allclose(attenuation, 0.0)

    def test_lambertian_scatters(self):
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        diffuse = scene.add_lambertian_material(albedo=(0.5, 0.25, 0.75))
        did_scatter, attenuation = self._scatter(diffuse)
        assert did_scatter == 1
        assert np.allclose(attenuation, [0.5, 0.25, 0.75], atol=1e-6)

    def test_unknown_material_absorbs(self):
        did_scatter, _ = self._scatter(42)
        assert did_scatter == 0
