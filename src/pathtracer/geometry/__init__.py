"""Geometry module for primitives and spatial acceleration.

Components:
    hit: HitRecord shared by every intersection routine
    sphere: Sphere with robust quadratic intersection
    cuboid: Oriented box with a local-frame slab test
    triangle: Double-sided Moller-Trumbore triangle with interpolated attributes
    aabb: Slab test used by BVH traversal plus host-side bounds helpers
    bvh: Host-side median-split BVH builder producing flat node arrays
    mesh: Indexed triangle meshes and their world-space flattening

Intersection routines are ``@ti.func`` and follow one pattern:

    rec = hit_shape(ray_origin, ray_direction, shape, t_min, t_max)

returning the nearest hit strictly inside ``(t_min, t_max)`` or a record with
``hit == 0``. Degenerate shapes and grazing rays miss rather than fail.
"""

from .aabb import box_corners, hit_aabb, sphere_bounds, transformed_box_bounds, triangle_bounds
from .bvh import BVH, LEAF_SIZE, build_bvh
from .cuboid import Cuboid, hit_cuboid, rotation_matrix
from .hit import HitRecord, make_hit_record, make_miss_record
from .mesh import Mesh, MeshTriangles, quad_mesh
from .sphere import Sphere, hit_sphere, sphere_uv
from .triangle import Triangle, hit_triangle

__all__ = [
    "HitRecord",
    "make_hit_record",
    "make_miss_record",
    "Sphere",
    "hit_sphere",
    "sphere_uv",
    "Cuboid",
    "hit_cuboid",
    "rotation_matrix",
    "Triangle",
    "hit_triangle",
    "hit_aabb",
    "box_corners",
    "sphere_bounds",
    "triangle_bounds",
    "transformed_box_bounds",
    "BVH",
    "LEAF_SIZE",
    "build_bvh",
    "Mesh",
    "MeshTriangles",
    "quad_mesh",
]
