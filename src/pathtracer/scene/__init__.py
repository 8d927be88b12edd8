"""Scene module for primitive storage, scene management and preset scenes.

Components:
    intersection: Structure-of-arrays primitive fields, the shared BVH node
        arena and the scene/mesh traversal routines
    manager: SceneManager coordinating textures, materials and primitives,
        building the BVHs and (de)serializing scenes
    presets: Cornell box, sphere field and Perlin sphere scenes

All submodules declare Taichi fields, so this package must be imported after
the runtime is initialised.
"""

from .intersection import (
    MAX_BVH_NODES,
    MAX_CUBOIDS,
    MAX_MESHES,
    MAX_OBJECTS,
    MAX_SPHERES,
    MAX_TRIANGLES,
    ObjectType,
    SceneArrays,
    clear_scene,
    get_bvh_node_count,
    get_cuboid_count,
    get_mesh_count,
    get_object_count,
    get_sphere_count,
    get_triangle_count,
    intersect_mesh,
    intersect_mesh_brute_force,
    intersect_scene,
    intersect_scene_any,
    is_scene_built,
    upload_scene,
)
from .manager import (
    MAX_MATERIALS,
    CuboidInfo,
    MaterialInfo,
    MaterialType,
    MeshInfo,
    SceneConfig,
    SceneManager,
    SphereInfo,
    TextureInfo,
    TriangleInfo,
    get_background,
    get_material_type,
    get_material_type_index,
    set_background,
)
from .presets import (
    BOX_SIZE,
    CornellBoxParams,
    create_cornell_box_scene,
    create_perlin_spheres_scene,
    create_sphere_field_scene,
)

__all__ = [
    # Intersection
    "ObjectType",
    "SceneArrays",
    "clear_scene",
    "upload_scene",
    "is_scene_built",
    "intersect_scene",
    "intersect_scene_any",
    "intersect_mesh",
    "intersect_mesh_brute_force",
    "get_sphere_count",
    "get_cuboid_count",
    "get_triangle_count",
    "get_mesh_count",
    "get_object_count",
    "get_bvh_node_count",
    "MAX_SPHERES",
    "MAX_CUBOIDS",
    "MAX_TRIANGLES",
    "MAX_MESHES",
    "MAX_OBJECTS",
    "MAX_BVH_NODES",
    # Manager
    "SceneManager",
    "SceneConfig",
    "MaterialType",
    "MaterialInfo",
    "TextureInfo",
    "SphereInfo",
    "CuboidInfo",
    "TriangleInfo",
    "MeshInfo",
    "MAX_MATERIALS",
    "get_material_type",
    "get_material_type_index",
    "set_background",
    "get_background",
    # Presets
    "BOX_SIZE",
    "CornellBoxParams",
    "create_cornell_box_scene",
    "create_sphere_field_scene",
    "create_perlin_spheres_scene",
]
