"""Unit tests for the metal material module.

Tests cover:
- Perfect mirror reflection
- Fuzzy reflection staying above the surface
- Absorption of grazing fuzzy reflections
- Material registry validation
"""

import numpy as np
import pytest
import taichi as ti


class TestScatterMetal:
    """Tests for metal scattering."""

    def test_perfect_mirror(self):
        from pathtracer.materials.metal import scatter_metal

        direction = ti.Vector.field(3, dtype=ti.f32, shape=())
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())
        scattered = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            d, a, s = scatter_metal(
                ti.math.vec3(0.9, 0.8, 0.7), 0.0, ti.math.vec3(1.0, -1.0, 0.0), ti.math.vec3(0.0, 1.0, 0.0)
            )
            direction[None] = d
            attenuation[None] = a
            scattered[None] = s

        test_kernel()
        s = 1.0 / np.sqrt(2.0)
        assert scattered[None] == 1
        assert np.allclose(direction[None].to_numpy(), [s, s, 0.0], atol=1e-5)
        assert np.allclose(attenuation[None].to_numpy(), [0.9, 0.8, 0.7], atol=1e-6)

    def test_fuzzy_reflections_stay_above_surface(self):
        from pathtracer.materials.metal import scatter_metal

        n = 512
        cosines = ti.field(dtype=ti.f32, shape=n)
        scattered = ti.field(dtype=ti.i32, shape=n)

        @ti.kernel
        def test_kernel():
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            for i in range(n):
                d, _, s = scatter_metal(ti.math.vec3(1.0, 1.0, 1.0), 0.5, ti.math.vec3(0.3, -1.0, 0.2), normal)
                cosines[i] = ti.math.dot(d, normal)
                scattered[i] = s

        test_kernel()
        mask = scattered.to_numpy() == 1
        assert mask.any()
        assert cosines.to_numpy()[mask].min() > 0.0

    def test_grazing_fuzzy_reflection_is_sometimes_absorbed(self):
        from pathtracer.materials.metal import scatter_metal

        n = 512
        scattered = ti.field(dtype=ti.i32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                _, _, s = scatter_metal(
                    ti.math.vec3(1.0, 1.0, 1.0), 1.0, ti.math.vec3(1.0, -0.05, 0.0), ti.math.vec3(0.0, 1.0, 0.0)
                )
                scattered[i] = s

        test_kernel()
        absorbed = (scattered.to_numpy() == 0).mean()
        assert 0.1 < absorbed < 0.9


class TestMetalRegistry:
    """Tests for the metal material registry."""

    def test_add_metal_material(self):
        from pathtracer.materials.metal import add_metal_material, get_metal_material_count, metal_fuzz

        idx = add_metal_material((0.8, 0.8, 0.8), fuzz=0.3)
        assert idx == 0
        assert get_metal_material_count() == 1
        assert abs(metal_fuzz[idx] - 0.3) < 1e-6

    @pytest.mark.parametrize("albedo,fuzz", [((1.2, 0.5, 0.5), 0.0), ((0.5, -0.1, 0.5), 0.0), ((0.5, 0.5, 0.5), 1.5)])
    def test_out_of_range_parameters_raise(self, albedo, fuzz):
        from pathtracer.materials.metal import add_metal_material

        with pytest.raises(ValueError):
            add_metal_material(albedo, fuzz=fuzz)
