"""Unit tests for the ray module.

Tests cover:
- Ray dataclass and ray_at
- reflect, refract and Fresnel reflectance
- Random sampling helpers
"""

import math

import taichi as ti


class TestRayBasics:
    """Tests for Ray dataclass and basic operations."""

    def test_ray_at_origin(self):
        """ray_at returns the origin when t=0."""
        from pathtracer.core.ray import T_MAX, T_MIN, make_ray, ray_at, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(1.0, 2.0, 3.0), vec3(0.0, 0.0, -1.0), T_MIN, T_MAX)
            result[None] = ray_at(ray, 0.0)

        test_kernel()
        r = result[None]
        assert abs(r[0] - 1.0) < 1e-6
        assert abs(r[1] - 2.0) < 1e-6
        assert abs(r[2] - 3.0) < 1e-6

    def test_ray_at_unnormalized_direction(self):
        """Directions need not be unit length; t scales the raw direction."""
        from pathtracer.core.ray import Ray, ray_at, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ray = Ray(origin=vec3(0.0, 0.0, 0.0), direction=vec3(2.0, 0.0, 0.0), t_min=0.0, t_max=1.0)
            result[None] = ray_at(ray, 2.5)

        test_kernel()
        assert abs(result[None][0] - 5.0) < 1e-6

    def test_make_ray_keeps_interval(self):
        from pathtracer.core.ray import make_ray, vec3

        t_min = ti.field(dtype=ti.f32, shape=())
        t_max = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(0.0, 0.0, 0.0), vec3(0.0, 1.0, 0.0), 0.5, 7.0)
            t_min[None] = ray.t_min
            t_max[None] = ray.t_max

        test_kernel()
        assert abs(t_min[None] - 0.5) < 1e-6
        assert abs(t_max[None] - 7.0) < 1e-6

    def test_safe_inverse_axis_parallel(self):
        """Zero components map to large finite reciprocals."""
        from pathtracer.core.ray import safe_inverse, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = safe_inverse(vec3(0.0, 2.0, -4.0))

        test_kernel()
        r = result[None]
        assert math.isfinite(r[0]) and r[0] > 1e10
        assert abs(r[1] - 0.5) < 1e-6
        assert abs(r[2] + 0.25) < 1e-6


class TestReflectRefract:
    """Tests for reflection, refraction and Fresnel reflectance."""

    def test_reflect_off_horizontal_plane(self):
        from pathtracer.core.ray import reflect, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = reflect(vec3(1.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0))

        test_kernel()
        r = result[None]
        assert abs(r[0] - 1.0) < 1e-6
        assert abs(r[1] - 1.0) < 1e-6
        assert abs(r[2]) < 1e-6

    def test_refract_equal_indices_goes_straight(self):
        from pathtracer.core.ray import refract, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            incident = ti.math.normalize(vec3(1.0, -1.0, 0.0))
            result[None] = refract(incident, vec3(0.0, 1.0, 0.0), 1.0)

        test_kernel()
        r = result[None]
        s = 1.0 / math.sqrt(2.0)
        assert abs(r[0] - s) < 1e-5
        assert abs(r[1] + s) < 1e-5

    def test_refract_bends_toward_normal(self):
        """Entering a denser medium, the refracted ray is closer to the normal (Snell's law)."""
        from pathtracer.core.ray import refract, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            incident = ti.math.normalize(vec3(1.0, -1.0, 0.0))
            result[None] = refract(incident, vec3(0.0, 1.0, 0.0), 1.0 / 1.5)

        test_kernel()
        r = result[None]
        sin_t = r[0] / math.sqrt(r[0] ** 2 + r[1] ** 2)
        assert abs(sin_t - math.sin(math.pi / 4) / 1.5) < 1e-5
        assert r[1] < 0.0

    def test_refract_total_internal_reflection_returns_zero(self):
        from pathtracer.core.ray import refract, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            incident = ti.math.normalize(vec3(1.0, -0.1, 0.0))
            result[None] = refract(incident, vec3(0.0, 1.0, 0.0), 1.5)

        test_kernel()
        r = result[None]
        assert abs(r[0]) < 1e-9 and abs(r[1]) < 1e-9 and abs(r[2]) < 1e-9

    def test_fresnel_values(self):
        """Zero for matched indices, 4% at normal incidence on glass, one under TIR."""
        from pathtracer.core.ray import fresnel_dielectric

        matched = ti.field(dtype=ti.f32, shape=())
        normal_glass = ti.field(dtype=ti.f32, shape=())
        tir = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            matched[None] = fresnel_dielectric(0.3, 1.0)
            normal_glass[None] = fresnel_dielectric(1.0, 1.0 / 1.5)
            tir[None] = fresnel_dielectric(0.1, 1.5)

        test_kernel()
        assert abs(matched[None]) < 1e-6
        assert abs(normal_glass[None] - 0.04) < 1e-5
        assert tir[None] == 1.0

    def test_fresnel_grows_toward_grazing(self):
        from pathtracer.core.ray import fresnel_dielectric

        steep = ti.field(dtype=ti.f32, shape=())
        grazing = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            steep[None] = fresnel_dielectric(0.9, 1.0 / 1.5)
            grazing[None] = fresnel_dielectric(0.05, 1.0 / 1.5)

        test_kernel()
        assert 0.0 < steep[None] < grazing[None] < 1.0


class TestRandomSampling:
    """Tests for the random sampling helpers."""

    def test_random_unit_vector_has_unit_length(self):
        from pathtracer.core.ray import random_unit_vector

        n = 256
        lengths = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                lengths[i] = random_unit_vector().norm()

        test_kernel()
        assert abs(lengths.to_numpy() - 1.0).max() < 1e-4

    def test_random_in_unit_disk_stays_in_plane(self):
        from pathtracer.core.ray import random_in_unit_disk

        n = 256
        points = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                points[i] = random_in_unit_disk()

        test_kernel()
        p = points.to_numpy()
        assert abs(p[:, 2]).max() == 0.0
        assert (p[:, 0] ** 2 + p[:, 1] ** 2).max() < 1.0

    def test_cosine_hemisphere_faces_normal(self):
        from pathtracer.core.ray import sample_cosine_hemisphere, vec3

        n = 512
        cosines = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            normal = ti.math.normalize(vec3(1.0, 2.0, -0.5))
            for i in range(n):
                d = sample_cosine_hemisphere(normal)
                cosines[i] = ti.math.dot(d, normal)

        test_kernel()
        c = cosines.to_numpy()
        assert c.min() >= -1e-6
        # E[cos] under a cosine-weighted pdf is 2/3
        assert abs(c.mean() - 2.0 / 3.0) < 0.05
