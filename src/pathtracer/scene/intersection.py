"""Scene-level primitive storage and ray intersection.

Primitives live in structure-of-arrays Taichi fields. Every sphere, cuboid,
loose triangle and mesh is also an *object*, and a top-level BVH is built over
the objects. Each mesh additionally owns a BVH over its triangles. Both
levels share one node arena (``bvh_*`` fields): a leaf's ``bvh_first`` and
``bvh_count`` select a run of ``bvh_items``, which holds object ids for
top-level leaves and triangle ids for mesh leaves.

Traversal keeps an explicit fixed-size stack of (node, entry t) pairs. The
nearer child is pushed last so it is visited first, and nodes whose entry
distance is beyond the closest hit found so far are skipped when popped.

Fields are filled by ``upload_scene`` from padded NumPy arrays; the scene
manager prepares those arrays in ``SceneManager.build()``.
"""

from dataclasses import dataclass
from enum import IntEnum

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import safe_inverse
from pathtracer.geometry.aabb import hit_aabb
from pathtracer.geometry.cuboid import Cuboid, hit_cuboid
from pathtracer.geometry.hit import HitRecord, make_miss_record
from pathtracer.geometry.sphere import Sphere, hit_sphere
from pathtracer.geometry.triangle import Triangle, hit_triangle

vec3 = tm.vec3


class ObjectType(IntEnum):
    SPHERE = 0
    CUBOID = 1
    TRIANGLE = 2
    MESH = 3


MAX_SPHERES = 4096
MAX_CUBOIDS = 1024
MAX_TRIANGLES = 1 << 17
MAX_MESHES = 256
MAX_OBJECTS = 1 << 14
MAX_BVH_NODES = MAX_TRIANGLES + MAX_OBJECTS
MAX_BVH_ITEMS = MAX_TRIANGLES + MAX_OBJECTS

# Median-split trees over MAX_BVH_ITEMS stay far below this depth
STACK_SIZE = 64

# Spheres
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Cuboids: local box corners plus local-to-world rotation and translation
cuboid_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_CUBOIDS)
cuboid_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_CUBOIDS)
cuboid_rotation = ti.Matrix.field(3, 3, dtype=ti.f32, shape=MAX_CUBOIDS)
cuboid_translation = ti.Vector.field(3, dtype=ti.f32, shape=MAX_CUBOIDS)
cuboid_material_ids = ti.field(dtype=ti.i32, shape=MAX_CUBOIDS)
num_cuboids = ti.field(dtype=ti.i32, shape=())

# Triangles, both loose and mesh-owned, in world space
tri_v0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
tri_v1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
tri_v2 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
tri_n0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
tri_n1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
tri_n2 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
tri_uv0 = ti.Vector.field(2, dtype=ti.f32, shape=MAX_TRIANGLES)
tri_uv1 = ti.Vector.field(2, dtype=ti.f32, shape=MAX_TRIANGLES)
tri_uv2 = ti.Vector.field(2, dtype=ti.f32, shape=MAX_TRIANGLES)
tri_has_normals = ti.field(dtype=ti.i32, shape=MAX_TRIANGLES)
tri_has_uvs = ti.field(dtype=ti.i32, shape=MAX_TRIANGLES)
tri_material_ids = ti.field(dtype=ti.i32, shape=MAX_TRIANGLES)
num_triangles = ti.field(dtype=ti.i32, shape=())

# Meshes: a run of triangles and the root of the mesh BVH
mesh_tri_first = ti.field(dtype=ti.i32, shape=MAX_MESHES)
mesh_tri_count = ti.field(dtype=ti.i32, shape=MAX_MESHES)
mesh_bvh_roots = ti.field(dtype=ti.i32, shape=MAX_MESHES)
num_meshes = ti.field(dtype=ti.i32, shape=())

# Objects indexed by the top-level BVH
object_types = ti.field(dtype=ti.i32, shape=MAX_OBJECTS)
object_indices = ti.field(dtype=ti.i32, shape=MAX_OBJECTS)
num_objects = ti.field(dtype=ti.i32, shape=())

# BVH node arena shared by the top level and every mesh
bvh_bbox_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_bbox_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_left = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_right = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_first = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_count = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_items = ti.field(dtype=ti.i32, shape=MAX_BVH_ITEMS)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())
top_level_root = ti.field(dtype=ti.i32, shape=())

scene_built = ti.field(dtype=ti.i32, shape=())


@dataclass
class SceneArrays:
    """Host-side arrays describing a complete scene, ready for upload.

    Per-primitive arrays have one row per primitive; BVH arrays describe the
    whole node arena with node ids already relocated.
    """

    sphere_centers: npt.NDArray[np.float32]
    sphere_radii: npt.NDArray[np.float32]
    sphere_material_ids: npt.NDArray[np.int32]
    cuboid_min: npt.NDArray[np.float32]
    cuboid_max: npt.NDArray[np.float32]
    cuboid_rotation: npt.NDArray[np.float32]
    cuboid_translation: npt.NDArray[np.float32]
    cuboid_material_ids: npt.NDArray[np.int32]
    tri_vertices: npt.NDArray[np.float32]
    tri_normals: npt.NDArray[np.float32]
    tri_uvs: npt.NDArray[np.float32]
    tri_has_normals: npt.NDArray[np.int32]
    tri_has_uvs: npt.NDArray[np.int32]
    tri_material_ids: npt.NDArray[np.int32]
    mesh_tri_first: npt.NDArray[np.int32]
    mesh_tri_count: npt.NDArray[np.int32]
    mesh_bvh_roots: npt.NDArray[np.int32]
    object_types: npt.NDArray[np.int32]
    object_indices: npt.NDArray[np.int32]
    bvh_bbox_min: npt.NDArray[np.float32]
    bvh_bbox_max: npt.NDArray[np.float32]
    bvh_left: npt.NDArray[np.int32]
    bvh_right: npt.NDArray[np.int32]
    bvh_first: npt.NDArray[np.int32]
    bvh_count: npt.NDArray[np.int32]
    bvh_items: npt.NDArray[np.int32]
    top_level_root: int


def clear_scene() -> None:
    """Reset all primitive counts and mark the scene as unbuilt.

    Field contents are left in place and overwritten by the next upload.
    """
    num_spheres[None] = 0
    num_cuboids[None] = 0
    num_triangles[None] = 0
    num_meshes[None] = 0
    num_objects[None] = 0
    num_bvh_nodes[None] = 0
    top_level_root[None] = -1
    scene_built[None] = 0


def is_scene_built() -> bool:
    return bool(scene_built[None])


def _fill(field, data: npt.NDArray, capacity: int, dtype, name: str) -> int:
    """Copy ``data`` into the leading rows of ``field`` via a padded array."""
    count = int(data.shape[0])
    if count > capacity:
        raise RuntimeError(f"Maximum number of {name} ({capacity}) exceeded: {count}")
    padded = np.zeros((capacity,) + tuple(data.shape[1:]), dtype=dtype)
    padded[:count] = data
    field.from_numpy(padded)
    return count


def upload_scene(arrays: SceneArrays) -> None:
    """Copy a prepared scene into the Taichi fields and mark it built.

    Raises:
        RuntimeError: If any primitive or node count exceeds field capacity.
    """
    f32, i32 = np.float32, np.int32

    num_spheres[None] = _fill(sphere_centers, arrays.sphere_centers, MAX_SPHERES, f32, "spheres")
    _fill(sphere_radii, arrays.sphere_radii, MAX_SPHERES, f32, "spheres")
    _fill(sphere_material_ids, arrays.sphere_material_ids, MAX_SPHERES, i32, "spheres")

    num_cuboids[None] = _fill(cuboid_min, arrays.cuboid_min, MAX_CUBOIDS, f32, "cuboids")
    _fill(cuboid_max, arrays.cuboid_max, MAX_CUBOIDS, f32, "cuboids")
    _fill(cuboid_rotation, arrays.cuboid_rotation, MAX_CUBOIDS, f32, "cuboids")
    _fill(cuboid_translation, arrays.cuboid_translation, MAX_CUBOIDS, f32, "cuboids")
    _fill(cuboid_material_ids, arrays.cuboid_material_ids, MAX_CUBOIDS, i32, "cuboids")

    verts = arrays.tri_vertices
    normals = arrays.tri_normals
    uvs = arrays.tri_uvs
    num_triangles[None] = _fill(tri_v0, verts[:, 0], MAX_TRIANGLES, f32, "triangles")
    _fill(tri_v1, verts[:, 1], MAX_TRIANGLES, f32, "triangles")
    _fill(tri_v2, verts[:, 2], MAX_TRIANGLES, f32, "triangles")
    _fill(tri_n0, normals[:, 0], MAX_TRIANGLES, f32, "triangles")
    _fill(tri_n1, normals[:, 1], MAX_TRIANGLES, f32, "triangles")
    _fill(tri_n2, normals[:, 2], MAX_TRIANGLES, f32, "triangles")
    _fill(tri_uv0, uvs[:, 0], MAX_TRIANGLES, f32, "triangles")
    _fill(tri_uv1, uvs[:, 1], MAX_TRIANGLES, f32, "triangles")
    _fill(tri_uv2, uvs[:, 2], MAX_TRIANGLES, f32, "triangles")
    _fill(tri_has_normals, arrays.tri_has_normals, MAX_TRIANGLES, i32, "triangles")
    _fill(tri_has_uvs, arrays.tri_has_uvs, MAX_TRIANGLES, i32, "triangles")
    _fill(tri_material_ids, arrays.tri_material_ids, MAX_TRIANGLES, i32, "triangles")

    num_meshes[None] = _fill(mesh_tri_first, arrays.mesh_tri_first, MAX_MESHES, i32, "meshes")
    _fill(mesh_tri_count, arrays.mesh_tri_count, MAX_MESHES, i32, "meshes")
    _fill(mesh_bvh_roots, arrays.mesh_bvh_roots, MAX_MESHES, i32, "meshes")

    num_objects[None] = _fill(object_types, arrays.object_types, MAX_OBJECTS, i32, "objects")
    _fill(object_indices, arrays.object_indices, MAX_OBJECTS, i32, "objects")

    num_bvh_nodes[None] = _fill(bvh_bbox_min, arrays.bvh_bbox_min, MAX_BVH_NODES, f32, "BVH nodes")
    _fill(bvh_bbox_max, arrays.bvh_bbox_max, MAX_BVH_NODES, f32, "BVH nodes")
    _fill(bvh_left, arrays.bvh_left, MAX_BVH_NODES, i32, "BVH nodes")
    _fill(bvh_right, arrays.bvh_right, MAX_BVH_NODES, i32, "BVH nodes")
    _fill(bvh_first, arrays.bvh_first, MAX_BVH_NODES, i32, "BVH nodes")
    _fill(bvh_count, arrays.bvh_count, MAX_BVH_NODES, i32, "BVH nodes")
    _fill(bvh_items, arrays.bvh_items, MAX_BVH_ITEMS, i32, "BVH items")

    top_level_root[None] = arrays.top_level_root
    scene_built[None] = 1


def get_sphere_count() -> int:
    return int(num_spheres[None])


def get_cuboid_count() -> int:
    return int(num_cuboids[None])


def get_triangle_count() -> int:
    return int(num_triangles[None])


def get_mesh_count() -> int:
    return int(num_meshes[None])


def get_object_count() -> int:
    return int(num_objects[None])


def get_bvh_node_count() -> int:
    return int(num_bvh_nodes[None])


# =============================================================================
# Primitive Access (Taichi)
# =============================================================================


@ti.func
def _hit_triangle_by_id(
    tri_idx: ti.i32, ray_origin: vec3, ray_direction: vec3, t_min: ti.f32, t_max: ti.f32
) -> HitRecord:
    tri = Triangle(
        v0=tri_v0[tri_idx],
        v1=tri_v1[tri_idx],
        v2=tri_v2[tri_idx],
        n0=tri_n0[tri_idx],
        n1=tri_n1[tri_idx],
        n2=tri_n2[tri_idx],
        uv0=tri_uv0[tri_idx],
        uv1=tri_uv1[tri_idx],
        uv2=tri_uv2[tri_idx],
        has_normals=tri_has_normals[tri_idx],
        has_uvs=tri_has_uvs[tri_idx],
    )
    rec = hit_triangle(ray_origin, ray_direction, tri, t_min, t_max)
    rec.material_id = tri_material_ids[tri_idx]
    return rec


@ti.func
def _push(node_stack: ti.template(), t_stack: ti.template(), sp: ti.i32, node: ti.i32, t_enter: ti.f32) -> ti.i32:
    """Push (node, t_enter) if there is room; returns the new stack pointer."""
    new_sp = sp
    if sp < STACK_SIZE:
        node_stack[sp] = node
        t_stack[sp] = t_enter
        new_sp = sp + 1
    return new_sp


@ti.func
def intersect_mesh(
    mesh_idx: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    inv_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Nearest hit against one mesh using its BVH."""
    result = make_miss_record()
    closest_t = t_max

    node_stack = ti.Vector([0 for _ in range(STACK_SIZE)], dt=ti.i32)
    t_stack = ti.Vector([0.0 for _ in range(STACK_SIZE)], dt=ti.f32)
    sp = 0

    root = mesh_bvh_roots[mesh_idx]
    root_hit, root_t = hit_aabb(bvh_bbox_min[root], bvh_bbox_max[root], ray_origin, inv_direction, t_min, closest_t)
    if root_hit:
        sp = _push(node_stack, t_stack, sp, root, root_t)

    while sp > 0:
        sp -= 1
        node = node_stack[sp]
        if t_stack[sp] <= closest_t:
            count = bvh_count[node]
            if count > 0:
                first = bvh_first[node]
                for k in range(first, first + count):
                    rec = _hit_triangle_by_id(bvh_items[k], ray_origin, ray_direction, t_min, closest_t)
                    if rec.hit == 1:
                        closest_t = rec.t
                        result = rec
            else:
                sp = _push_children(node_stack, t_stack, sp, node, ray_origin, inv_direction, t_min, closest_t)

    return result


@ti.func
def _push_children(
    node_stack: ti.template(),
    t_stack: ti.template(),
    sp: ti.i32,
    node: ti.i32,
    ray_origin: vec3,
    inv_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Push the children of an interior node that the ray reaches, nearer one last."""
    left = bvh_left[node]
    right = bvh_right[node]
    hit_l, t_l = hit_aabb(bvh_bbox_min[left], bvh_bbox_max[left], ray_origin, inv_direction, t_min, t_max)
    hit_r, t_r = hit_aabb(bvh_bbox_min[right], bvh_bbox_max[right], ray_origin, inv_direction, t_min, t_max)

    new_sp = sp
    if hit_l and hit_r:
        if t_l <= t_r:
            new_sp = _push(node_stack, t_stack, new_sp, right, t_r)
            new_sp = _push(node_stack, t_stack, new_sp, left, t_l)
        else:
            new_sp = _push(node_stack, t_stack, new_sp, left, t_l)
            new_sp = _push(node_stack, t_stack, new_sp, right, t_r)
    elif hit_l:
        new_sp = _push(node_stack, t_stack, new_sp, left, t_l)
    elif hit_r:
        new_sp = _push(node_stack, t_stack, new_sp, right, t_r)
    return new_sp


@ti.func
def _intersect_object(
    object_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    inv_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    kind = object_types[object_id]
    idx = object_indices[object_id]
    rec = make_miss_record()
    if kind == int(ObjectType.SPHERE):
        sphere = Sphere(center=sphere_centers[idx], radius=sphere_radii[idx])
        rec = hit_sphere(ray_origin, ray_direction, sphere, t_min, t_max)
        rec.material_id = sphere_material_ids[idx]
    elif kind == int(ObjectType.CUBOID):
        cuboid = Cuboid(
            box_min=cuboid_min[idx],
            box_max=cuboid_max[idx],
            rotation=cuboid_rotation[idx],
            translation=cuboid_translation[idx],
        )
        rec = hit_cuboid(ray_origin, ray_direction, cuboid, t_min, t_max)
        rec.material_id = cuboid_material_ids[idx]
    elif kind == int(ObjectType.TRIANGLE):
        rec = _hit_triangle_by_id(idx, ray_origin, ray_direction, t_min, t_max)
    elif kind == int(ObjectType.MESH):
        rec = intersect_mesh(idx, ray_origin, ray_direction, inv_direction, t_min, t_max)
    return rec


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Nearest hit of a ray against the whole scene inside ``(t_min, t_max)``.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector, any non-zero length. Zero-length
            directions always miss.
        t_min: Exclusive lower bound on the ray parameter.
        t_max: Exclusive upper bound on the ray parameter.

    Returns:
        The closest HitRecord, carrying the struck primitive's material id,
        or a miss record.
    """
    result = make_miss_record()
    closest_t = t_max
    root = top_level_root[None]

    if root >= 0 and tm.dot(ray_direction, ray_direction) > 0.0:
        inv_direction = safe_inverse(ray_direction)
        node_stack = ti.Vector([0 for _ in range(STACK_SIZE)], dt=ti.i32)
        t_stack = ti.Vector([0.0 for _ in range(STACK_SIZE)], dt=ti.f32)
        sp = 0

        root_hit, root_t = hit_aabb(bvh_bbox_min[root], bvh_bbox_max[root], ray_origin, inv_direction, t_min, closest_t)
        if root_hit:
            sp = _push(node_stack, t_stack, sp, root, root_t)

        while sp > 0:
            sp -= 1
            node = node_stack[sp]
            if t_stack[sp] <= closest_t:
                count = bvh_count[node]
                if count > 0:
                    first = bvh_first[node]
                    for k in range(first, first + count):
                        rec = _intersect_object(bvh_items[k], ray_origin, ray_direction, inv_direction, t_min, closest_t)
                        if rec.hit == 1:
                            closest_t = rec.t
                            result = rec
                else:
                    sp = _push_children(node_stack, t_stack, sp, node, ray_origin, inv_direction, t_min, closest_t)

    return result


@ti.func
def intersect_scene_any(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """1 if anything in the scene is hit inside ``(t_min, t_max)``.

    Traversal stops at the first object hit instead of searching for the
    nearest one. A mesh is still searched through its own BVH.
    """
    found = 0
    root = top_level_root[None]

    if root >= 0 and tm.dot(ray_direction, ray_direction) > 0.0:
        inv_direction = safe_inverse(ray_direction)
        node_stack = ti.Vector([0 for _ in range(STACK_SIZE)], dt=ti.i32)
        t_stack = ti.Vector([0.0 for _ in range(STACK_SIZE)], dt=ti.f32)
        sp = 0

        root_hit, root_t = hit_aabb(bvh_bbox_min[root], bvh_bbox_max[root], ray_origin, inv_direction, t_min, t_max)
        if root_hit:
            sp = _push(node_stack, t_stack, sp, root, root_t)

        while sp > 0:
            sp -= 1
            node = node_stack[sp]
            count = bvh_count[node]
            if count > 0:
                first = bvh_first[node]
                for k in range(first, first + count):
                    if found == 0:
                        rec = _intersect_object(bvh_items[k], ray_origin, ray_direction, inv_direction, t_min, t_max)
                        found = rec.hit
            else:
                sp = _push_children(node_stack, t_stack, sp, node, ray_origin, inv_direction, t_min, t_max)
            if found == 1:
                sp = 0

    return found


@ti.func
def intersect_mesh_brute_force(
    mesh_idx: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Nearest hit against one mesh by testing every triangle.

    Reference implementation for checking BVH traversal.
    """
    result = make_miss_record()
    closest_t = t_max
    first = mesh_tri_first[mesh_idx]
    for tri_idx in range(first, first + mesh_tri_count[mesh_idx]):
        rec = _hit_triangle_by_id(tri_idx, ray_origin, ray_direction, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = rec
    return result
