"""Unit tests for BVH construction and the AABB slab test.

Tests cover:
- Node layout, leaf sizes and the primitive order permutation
- Parent boxes enclosing children and primitives
- Relocation into a larger arena
- hit_aabb including flat boxes
"""

import numpy as np
import pytest
import taichi as ti


def _random_boxes(n, seed=0):
    rng = np.random.default_rng(seed)
    lo = rng.uniform(-10.0, 10.0, size=(n, 3))
    return lo, lo + rng.uniform(0.1, 1.0, size=(n, 3))


class TestBuildBVH:
    """Tests for build_bvh."""

    def test_empty_input_has_no_nodes(self):
        from pathtracer.geometry.bvh import build_bvh

        bvh = build_bvh(np.zeros((0, 3)), np.zeros((0, 3)))
        assert bvh.node_count == 0
        assert bvh.depth == 0
        assert len(bvh.order) == 0

    def test_single_leaf(self):
        from pathtracer.geometry.bvh import build_bvh

        lo, hi = _random_boxes(3)
        bvh = build_bvh(lo, hi)
        assert bvh.node_count == 1
        assert bvh.count[0] == 3
        assert bvh.first[0] == 0
        assert bvh.left[0] == -1 and bvh.right[0] == -1

    def test_order_is_permutation(self):
        from pathtracer.geometry.bvh import build_bvh

        lo, hi = _random_boxes(200)
        bvh = build_bvh(lo, hi)
        assert sorted(bvh.order.tolist()) == list(range(200))

    def test_leaves_respect_leaf_size(self):
        from pathtracer.geometry.bvh import build_bvh

        lo, hi = _random_boxes(100)
        bvh = build_bvh(lo, hi, leaf_size=2)
        leaves = bvh.count > 0
        assert bvh.count[leaves].max() <= 2
        assert bvh.count.sum() == 100
        # Interior nodes have two children and no run
        interior = ~leaves
        assert (bvh.left[interior] >= 0).all()
        assert (bvh.right[interior] >= 0).all()
        assert (bvh.first[interior] == -1).all()

    def test_boxes_enclose_primitives(self):
        from pathtracer.geometry.bvh import build_bvh

        lo, hi = _random_boxes(64, seed=3)
        bvh = build_bvh(lo, hi)
        for node in range(bvh.node_count):
            if bvh.count[node] > 0:
                items = bvh.order[bvh.first[node] : bvh.first[node] + bvh.count[node]]
                assert (bvh.bbox_min[node] <= lo[items].min(axis=0)).all()
                assert (bvh.bbox_max[node] >= hi[items].max(axis=0)).all()
            else:
                for child in (bvh.left[node], bvh.right[node]):
                    assert (bvh.bbox_min[node] <= bvh.bbox_min[child]).all()
                    assert (bvh.bbox_max[node] >= bvh.bbox_max[child]).all()

    def test_depth_is_logarithmic(self):
        from pathtracer.geometry.bvh import build_bvh

        lo, hi = _random_boxes(1024)
        bvh = build_bvh(lo, hi)
        # Median splits give a balanced tree
        assert bvh.depth <= 10

    def test_mismatched_shapes_raise(self):
        from pathtracer.geometry.bvh import build_bvh

        with pytest.raises(ValueError):
            build_bvh(np.zeros((4, 3)), np.zeros((3, 3)))

    def test_invalid_leaf_size_raises(self):
        from pathtracer.geometry.bvh import build_bvh

        with pytest.raises(ValueError):
            build_bvh(np.zeros((4, 3)), np.ones((4, 3)), leaf_size=0)

    def test_offset_relocates_links(self):
        from pathtracer.geometry.bvh import build_bvh

        lo, hi = _random_boxes(20)
        bvh = build_bvh(lo, hi, leaf_size=2)
        moved = bvh.offset(100, 1000)
        interior = bvh.count == 0
        assert (moved.left[interior] == bvh.left[interior] + 100).all()
        assert (moved.first[~interior] == bvh.first[~interior] + 1000).all()
        assert (moved.left[~interior] == -1).all()
        assert (moved.first[interior] == -1).all()


class TestHitAABB:
    """Tests for the slab test."""

    def _hit(self, origin, direction, lo, hi, t_min=0.0, t_max=1000.0):
        from pathtracer.core.ray import safe_inverse
        from pathtracer.geometry.aabb import hit_aabb

        vec3 = ti.math.vec3
        hit = ti.field(dtype=ti.i32, shape=())
        t_enter = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(o: vec3, d: vec3, a: vec3, b: vec3, t0: ti.f32, t1: ti.f32):
            h, t = hit_aabb(a, b, o, safe_inverse(d), t0, t1)
            hit[None] = ti.cast(h, ti.i32)
            t_enter[None] = t

        test_kernel(vec3(*origin), vec3(*direction), vec3(*lo), vec3(*hi), t_min, t_max)
        return hit[None], t_enter[None]

    def test_hit_reports_entry(self):
        hit, t = self._hit((0, 0, 5), (0, 0, -1), (-1, -1, -1), (1, 1, 1))
        assert hit == 1
        assert abs(t - 4.0) < 1e-5

    def test_miss(self):
        hit, _ = self._hit((3, 0, 5), (0, 0, -1), (-1, -1, -1), (1, 1, 1))
        assert hit == 0

    def test_box_behind_ray_misses(self):
        hit, _ = self._hit((0, 0, 5), (0, 0, 1), (-1, -1, -1), (1, 1, 1))
        assert hit == 0

    def test_flat_box_is_hit(self):
        hit, t = self._hit((0.5, 5, 0.5), (0, -1, 0), (0, 0, 0), (1, 0, 1))
        assert hit == 1
        assert abs(t - 5.0) < 1e-5

    def test_origin_inside_clips_to_t_min(self):
        hit, t = self._hit((0, 0, 0), (1, 0, 0), (-1, -1, -1), (1, 1, 1), t_min=0.001)
        assert hit == 1
        assert abs(t - 0.001) < 1e-6


class TestHostBounds:
    """Tests for primitive bound helpers."""

    def test_sphere_bounds_use_absolute_radius(self):
        from pathtracer.geometry.aabb import sphere_bounds

        lo, hi = sphere_bounds(np.array([[1.0, 2.0, 3.0]]), np.array([-2.0]))
        assert np.allclose(lo, [[-1.0, 0.0, 1.0]])
        assert np.allclose(hi, [[3.0, 4.0, 5.0]])

    def test_triangle_bounds(self):
        from pathtracer.geometry.aabb import triangle_bounds

        lo, hi = triangle_bounds(
            np.array([[0.0, 0.0, 0.0]]), np.array([[2.0, -1.0, 0.0]]), np.array([[1.0, 3.0, 0.5]])
        )
        assert np.allclose(lo, [[0.0, -1.0, 0.0]])
        assert np.allclose(hi, [[2.0, 3.0, 0.5]])

    def test_box_corners(self):
        from pathtracer.geometry.aabb import box_corners

        corners = box_corners((0, 0, 0), (1, 2, 3))
        assert corners.shape == (8, 3)
        assert np.allclose(corners.min(axis=0), [0, 0, 0])
        assert np.allclose(corners.max(axis=0), [1, 2, 3])
        assert len({tuple(c) for c in corners}) == 8
