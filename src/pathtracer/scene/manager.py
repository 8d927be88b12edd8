"""Unified scene manager for coordinating textures, materials and primitives.

The SceneManager is the host-side front end of the scene. It keeps:
- A unified material_id space across all material types, mirrored into
  Taichi fields so kernels can dispatch on (material_type, type_index)
- Textures referenced by Lambertian and emissive materials
- Python-side records of every sphere, cuboid, triangle and mesh
- The background gradient

Primitives are collected on the host and only reach the Taichi fields when
``build()`` is called, which flattens meshes, builds the two-level BVH and
uploads everything in one go. The scene must not change while a render is
running.

Example:
    >>> from pathtracer.runtime import init_runtime
    >>> init_runtime()
    >>> from pathtracer.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> red = scene.add_lambertian_material(albedo=(0.8, 0.3, 0.3))
    >>> scene.add_sphere(center=(0, 0, -1), radius=0.5, material_id=red)
    0
    >>> scene.build()
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import Any

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import sphere_bounds, transformed_box_bounds, triangle_bounds
from pathtracer.geometry.bvh import BVH, build_bvh
from pathtracer.geometry.cuboid import rotation_matrix
from pathtracer.geometry.mesh import Mesh, MeshTriangles, quad_mesh
from pathtracer.materials.dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
)
from pathtracer.materials.emissive import (
    add_emissive_material,
    clear_emissive_materials,
)
from pathtracer.materials.lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
)
from pathtracer.materials.metal import (
    add_metal_material,
    clear_metal_materials,
)
from pathtracer.materials.texture import (
    TextureType,
    add_checker_texture,
    add_noise_texture,
    add_solid_texture,
    clear_textures,
)
from pathtracer.scene.intersection import (
    MAX_CUBOIDS,
    MAX_MESHES,
    MAX_OBJECTS,
    MAX_SPHERES,
    MAX_TRIANGLES,
    ObjectType,
    SceneArrays,
    clear_scene,
    upload_scene,
)

logger = logging.getLogger(__name__)

vec3 = tm.vec3

Color = tuple[float, float, float]
Point = tuple[float, float, float]


class MaterialType(IntEnum):
    """Material archetypes, used as dispatch tags inside kernels."""

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2
    EMISSIVE = 3


# Maximum number of materials across all types
MAX_MATERIALS = 4096

# material_types[i] is the MaterialType of material_id i;
# material_type_indices[i] is its index inside the type-specific registry
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())

# Sky gradient returned for rays that leave the scene
background_top = ti.Vector.field(3, dtype=ti.f32, shape=())
background_bottom = ti.Vector.field(3, dtype=ti.f32, shape=())

DEFAULT_BACKGROUND_TOP: Color = (0.5, 0.7, 1.0)
DEFAULT_BACKGROUND_BOTTOM: Color = (1.0, 1.0, 1.0)


def _clear_material_tracking() -> None:
    num_materials[None] = 0


def set_background(top: Color, bottom: Color | None = None) -> None:
    """Set the background gradient; a single color gives a constant background.

    Raises:
        ValueError: If a color has a negative component.
    """
    if bottom is None:
        bottom = top
    for name, color in (("top", top), ("bottom", bottom)):
        if len(color) != 3 or any(c < 0.0 for c in color):
            raise ValueError(f"Background {name} color must be 3 non-negative values, got {color}")
    background_top[None] = vec3(*top)
    background_bottom[None] = vec3(*bottom)


def get_background() -> tuple[Color, Color]:
    top = background_top[None]
    bottom = background_bottom[None]
    return (top[0], top[1], top[2]), (bottom[0], bottom[1], bottom[2])


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Material type for a unified material id, -1 if the id is invalid."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Index into the type-specific registry for a material id, -1 if invalid."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


@dataclass
class TextureInfo:
    texture_id: int
    texture_type: TextureType
    params: dict[str, Any]


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The material archetype.
        type_index: The index within the type-specific registry.
        params: The material parameters as provided during creation.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class SphereInfo:
    center: Point
    radius: float
    material_id: int


@dataclass
class CuboidInfo:
    """An oriented box: local corners, rotation in degrees, then translation."""

    box_min: Point
    box_max: Point
    material_id: int
    rotation: Point = (0.0, 0.0, 0.0)
    translation: Point = (0.0, 0.0, 0.0)


@dataclass
class TriangleInfo:
    vertices: tuple[Point, Point, Point]
    material_id: int
    normals: tuple[Point, Point, Point] | None = None
    uvs: tuple[tuple[float, float], tuple[float, float], tuple[float, float]] | None = None


@dataclass
class MeshInfo:
    mesh: Mesh
    material_id: int


@dataclass
class SceneConfig:
    """Plain-data description of a scene.

    Materials and primitives refer to textures and materials by their
    position in the ``textures`` and ``materials`` lists.
    """

    textures: list[dict[str, Any]] = field(default_factory=list)
    materials: list[dict[str, Any]] = field(default_factory=list)
    spheres: list[dict[str, Any]] = field(default_factory=list)
    cuboids: list[dict[str, Any]] = field(default_factory=list)
    triangles: list[dict[str, Any]] = field(default_factory=list)
    meshes: list[dict[str, Any]] = field(default_factory=list)
    background: dict[str, Any] = field(default_factory=dict)


def _as_point(value: Any, name: str) -> Point:
    arr = np.asarray(value, dtype=np.float64).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"{name} must have 3 components, got {len(arr)}")
    return (float(arr[0]), float(arr[1]), float(arr[2]))


class SceneManager:
    """Host-side scene builder with unified material tracking.

    Attributes:
        textures: TextureInfo for every registered texture.
        materials: MaterialInfo for every registered material.
        spheres: Spheres added so far.
        cuboids: Oriented boxes added so far.
        triangles: Loose triangles added so far.
        meshes: Meshes added so far (quads are two-triangle meshes).

    Example:
        >>> scene = SceneManager()
        >>> checker = scene.add_checker_texture((0.2, 0.3, 0.1), (0.9, 0.9, 0.9))
        >>> ground = scene.add_lambertian_material(texture_id=checker)
        >>> glass = scene.add_dielectric_material(ior=1.5)
        >>> scene.add_sphere((0, -1000, 0), 1000, ground)
        0
        >>> scene.add_sphere((0, 1, 0), 1.0, glass)
        1
        >>> scene.build()
    """

    def __init__(self) -> None:
        self.textures: list[TextureInfo] = []
        self.materials: list[MaterialInfo] = []
        self.spheres: list[SphereInfo] = []
        self.cuboids: list[CuboidInfo] = []
        self.triangles: list[TriangleInfo] = []
        self.meshes: list[MeshInfo] = []
        self._built = False
        self._clear_all()

    def _clear_all(self) -> None:
        clear_scene()
        clear_textures()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        clear_emissive_materials()
        _clear_material_tracking()
        set_background(DEFAULT_BACKGROUND_TOP, DEFAULT_BACKGROUND_BOTTOM)

        self.textures.clear()
        self.materials.clear()
        self.spheres.clear()
        self.cuboids.clear()
        self.triangles.clear()
        self.meshes.clear()
        self._built = False

    def clear(self) -> None:
        """Clear the entire scene: primitives, materials, textures and background."""
        self._clear_all()

    def _invalidate(self) -> None:
        # Edits after build() require another build() before rendering
        if self._built:
            clear_scene()
            self._built = False

    # =========================================================================
    # Textures
    # =========================================================================

    def _track_texture(self, texture_id: int, texture_type: TextureType, params: dict[str, Any]) -> int:
        self.textures.append(TextureInfo(texture_id, texture_type, params))
        return texture_id

    def add_solid_texture(self, color: Color) -> int:
        texture_id = add_solid_texture(color)
        return self._track_texture(texture_id, TextureType.SOLID, {"color": tuple(color)})

    def add_checker_texture(self, even: Color, odd: Color, scale: float = 10.0) -> int:
        """Add a 3D checker texture alternating between two colors.

        Args:
            even: Color where ``sin(s*x) * sin(s*y) * sin(s*z)`` is non-negative.
            odd: Color elsewhere.
            scale: Spatial frequency ``s``.

        Returns:
            The texture ID.
        """
        texture_id = add_checker_texture(even, odd, scale)
        return self._track_texture(
            texture_id, TextureType.CHECKER, {"even": tuple(even), "odd": tuple(odd), "scale": scale}
        )

    def add_noise_texture(self, color: Color = (1.0, 1.0, 1.0), scale: float = 4.0) -> int:
        texture_id = add_noise_texture(color, scale)
        return self._track_texture(texture_id, TextureType.NOISE, {"color": tuple(color), "scale": scale})

    def _validate_texture_id(self, texture_id: int) -> None:
        if not 0 <= texture_id < len(self.textures):
            raise ValueError(f"Invalid texture_id: {texture_id}")

    # =========================================================================
    # Material Management
    # =========================================================================

    def _register_material(self, material_type: MaterialType, type_index: int, params: dict[str, Any]) -> int:
        material_id = num_materials[None]
        if material_id >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

        material_types[material_id] = int(material_type)
        material_type_indices[material_id] = type_index
        num_materials[None] = material_id + 1

        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                params=params,
            )
        )
        return material_id

    def add_lambertian_material(self, albedo: Color | None = None, texture_id: int | None = None) -> int:
        """Add a Lambertian (diffuse) material.

        Give either a constant ``albedo`` or the ``texture_id`` of an existing
        texture. A constant albedo is stored as a new solid texture.

        Args:
            albedo: Diffuse reflectance (R, G, B), each component in [0, 1].
            texture_id: Texture providing the albedo.

        Returns:
            The unified material ID.

        Raises:
            ValueError: If both or neither of albedo and texture_id are given,
                an albedo component is outside [0, 1], or the texture is unknown.
            RuntimeError: If a registry is full.
        """
        if (albedo is None) == (texture_id is None):
            raise ValueError("Exactly one of albedo or texture_id must be given")

        if albedo is not None:
            if len(albedo) != 3:
                raise ValueError(f"Albedo must have 3 components, got {len(albedo)}")
            for i, component in enumerate(albedo):
                if not 0.0 <= component <= 1.0:
                    raise ValueError(f"Albedo component {i} = {component} is outside [0, 1]")
            texture_id = self.add_solid_texture(albedo)
        else:
            self._validate_texture_id(texture_id)

        type_index = add_lambertian_material(texture_id)
        return self._register_material(MaterialType.LAMBERTIAN, type_index, {"texture_id": texture_id})

    def add_metal_material(self, albedo: Color, fuzz: float = 0.0) -> int:
        """Add a metal (specular reflective) material.

        Args:
            albedo: Reflective color (R, G, B), each component in [0, 1].
            fuzz: Radius of the random perturbation of the mirror direction,
                in [0, 1]. Zero is a perfect mirror.

        Returns:
            The unified material ID.

        Raises:
            ValueError: If albedo or fuzz is outside [0, 1].
            RuntimeError: If a registry is full.
        """
        type_index = add_metal_material(albedo, fuzz)
        return self._register_material(
            MaterialType.METAL, type_index, {"albedo": tuple(albedo), "fuzz": fuzz}
        )

    def add_dielectric_material(self, ior: float = 1.5) -> int:
        type_index = add_dielectric_material(ior)
        return self._register_material(MaterialType.DIELECTRIC, type_index, {"ior": ior})

    def add_emissive_material(
        self,
        emission: Color | None = (1.0, 1.0, 1.0),
        intensity: float = 1.0,
        texture_id: int | None = None,
    ) -> int:
        """Add a diffuse light.

        Args:
            emission: Emitted color, non-negative. Ignored when texture_id is given.
            intensity: Multiplier applied to the emitted color.
            texture_id: Texture providing the emitted color.

        Returns:
            The unified material ID.

        Raises:
            ValueError: If the color or intensity is negative, or the texture
                is unknown.
            RuntimeError: If a registry is full.
        """
        if texture_id is None:
            texture_id = self.add_solid_texture(emission)
        else:
            self._validate_texture_id(texture_id)
        type_index = add_emissive_material(texture_id, intensity)
        return self._register_material(
            MaterialType.EMISSIVE, type_index, {"texture_id": texture_id, "intensity": intensity}
        )

    def get_material_count(self) -> int:
        return int(num_materials[None])

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def get_material_type_python(self, material_id: int) -> MaterialType | None:
        """Material type of a material ID, for use outside of kernels."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id].material_type
        return None

    def _validate_material_id(self, material_id: int) -> None:
        if not 0 <= material_id < len(self.materials):
            raise ValueError(f"Invalid material_id: {material_id}")

    # =========================================================================
    # Primitive Management
    # =========================================================================

    def add_sphere(self, center: Point, radius: float, material_id: int) -> int:
        """Add a sphere.

        Non-positive radii are accepted with a warning; such spheres are
        never hit.

        Returns:
            The index of the sphere.

        Raises:
            ValueError: If material_id is invalid.
            RuntimeError: If the maximum number of spheres is exceeded.
        """
        self._validate_material_id(material_id)
        if len(self.spheres) >= MAX_SPHERES:
            raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
        if not radius > 0.0:
            logger.warning("Sphere at %s has non-positive radius %s and will never be hit", center, radius)

        self._invalidate()
        self.spheres.append(SphereInfo(_as_point(center, "center"), float(radius), material_id))
        return len(self.spheres) - 1

    def add_cuboid(
        self,
        box_min: Point,
        box_max: Point,
        material_id: int,
        rotation: Point = (0.0, 0.0, 0.0),
        translation: Point = (0.0, 0.0, 0.0),
    ) -> int:
        """Add a box, optionally rotated and then translated.

        Args:
            box_min: Minimum corner in the box's local frame.
            box_max: Maximum corner in the box's local frame.
            material_id: Material of all six faces.
            rotation: Angles in degrees about x, then y, then z.
            translation: Offset applied after the rotation.

        Returns:
            The index of the cuboid.

        Raises:
            ValueError: If material_id is invalid.
            RuntimeError: If the maximum number of cuboids is exceeded.
        """
        self._validate_material_id(material_id)
        if len(self.cuboids) >= MAX_CUBOIDS:
            raise RuntimeError(f"Maximum number of cuboids ({MAX_CUBOIDS}) exceeded")
        lo = _as_point(box_min, "box_min")
        hi = _as_point(box_max, "box_max")
        if any(a >= b for a, b in zip(lo, hi)):
            logger.warning("Cuboid %s..%s has an empty extent and will never be hit", lo, hi)

        self._invalidate()
        self.cuboids.append(
            CuboidInfo(
                box_min=lo,
                box_max=hi,
                material_id=material_id,
                rotation=_as_point(rotation, "rotation"),
                translation=_as_point(translation, "translation"),
            )
        )
        return len(self.cuboids) - 1

    def add_triangle(
        self,
        v0: Point,
        v1: Point,
        v2: Point,
        material_id: int,
        normals: tuple[Point, Point, Point] | None = None,
        uvs: tuple[tuple[float, float], tuple[float, float], tuple[float, float]] | None = None,
    ) -> int:
        """Add a single double-sided triangle.

        Returns:
            The index of the triangle among loose triangles.

        Raises:
            ValueError: If material_id is invalid or normals/uvs are malformed.
            RuntimeError: If the maximum number of triangles is exceeded.
        """
        self._validate_material_id(material_id)
        if self._triangle_total() + 1 > MAX_TRIANGLES:
            raise RuntimeError(f"Maximum number of triangles ({MAX_TRIANGLES}) exceeded")
        verts = (_as_point(v0, "v0"), _as_point(v1, "v1"), _as_point(v2, "v2"))
        if normals is not None:
            normals = tuple(_as_point(n, "normal") for n in normals)
            if len(normals) != 3:
                raise ValueError(f"Expected 3 vertex normals, got {len(normals)}")
        if uvs is not None:
            uv_arr = np.asarray(uvs, dtype=np.float64)
            if uv_arr.shape != (3, 2):
                raise ValueError(f"uvs must have shape (3, 2), got {uv_arr.shape}")
            uvs = tuple((float(u), float(v)) for u, v in uv_arr)

        a = np.asarray(verts)
        if np.linalg.norm(np.cross(a[1] - a[0], a[2] - a[0])) == 0.0:
            logger.warning("Triangle %s has zero area and will never be hit", verts)

        self._invalidate()
        self.triangles.append(TriangleInfo(verts, material_id, normals, uvs))
        return len(self.triangles) - 1

    def add_mesh(
        self,
        vertices: npt.ArrayLike,
        indices: npt.ArrayLike,
        material_id: int,
        normals: npt.ArrayLike | None = None,
        uvs: npt.ArrayLike | None = None,
        transform: npt.ArrayLike | None = None,
    ) -> int:
        """Add an indexed triangle mesh with its own BVH.

        Args:
            vertices: (V, 3) object-space positions.
            indices: (F, 3) triangle vertex indices.
            material_id: Material of every triangle.
            normals: Optional (V, 3) vertex normals for smooth shading.
            uvs: Optional (V, 2) texture coordinates.
            transform: Optional 4x4 object-to-world matrix.

        Returns:
            The index of the mesh.

        Raises:
            ValueError: If material_id is invalid, the mesh arrays are
                malformed, or the mesh has no triangles.
            RuntimeError: If mesh or triangle capacity is exceeded.
        """
        self._validate_material_id(material_id)
        mesh = Mesh(vertices, indices, normals=normals, uvs=uvs, transform=transform)
        return self._append_mesh(mesh, material_id)

    def add_quad(self, corner: Point, edge_u: Point, edge_v: Point, material_id: int) -> int:
        """Add a parallelogram ``corner + s*edge_u + t*edge_v``, stored as a two-triangle mesh.

        Returns:
            The index of the mesh holding the quad.
        """
        self._validate_material_id(material_id)
        return self._append_mesh(quad_mesh(corner, edge_u, edge_v), material_id)

    def _append_mesh(self, mesh: Mesh, material_id: int) -> int:
        if mesh.triangle_count == 0:
            raise ValueError("Mesh has no triangles")
        if len(self.meshes) >= MAX_MESHES:
            raise RuntimeError(f"Maximum number of meshes ({MAX_MESHES}) exceeded")
        if self._triangle_total() + mesh.triangle_count > MAX_TRIANGLES:
            raise RuntimeError(f"Maximum number of triangles ({MAX_TRIANGLES}) exceeded")
        degenerate = int(np.count_nonzero(mesh.flatten().areas() == 0.0))
        if degenerate:
            logger.warning("Mesh has %d zero-area triangles that will never be hit", degenerate)

        self._invalidate()
        self.meshes.append(MeshInfo(mesh, material_id))
        return len(self.meshes) - 1

    def set_background(self, top: Color, bottom: Color | None = None) -> None:
        """Set the gradient seen by escaping rays; one color makes it constant."""
        set_background(top, bottom)

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def _triangle_total(self) -> int:
        return len(self.triangles) + sum(m.mesh.triangle_count for m in self.meshes)

    def get_sphere_count(self) -> int:
        return len(self.spheres)

    def get_cuboid_count(self) -> int:
        return len(self.cuboids)

    def get_triangle_count(self) -> int:
        """Total triangle count, loose and mesh-owned."""
        return self._triangle_total()

    def get_mesh_count(self) -> int:
        return len(self.meshes)

    def get_primitive_count(self) -> int:
        """Number of top-level objects: spheres, cuboids, loose triangles and meshes."""
        return len(self.spheres) + len(self.cuboids) + len(self.triangles) + len(self.meshes)

    @property
    def is_built(self) -> bool:
        return self._built

    # =========================================================================
    # Build
    # =========================================================================

    def build(self) -> None:
        """Flatten meshes, build the two-level BVH and upload the scene.

        Raises:
            RuntimeError: If the scene exceeds the capacity of the fields.
        """
        if self.get_primitive_count() > MAX_OBJECTS:
            raise RuntimeError(f"Maximum number of objects ({MAX_OBJECTS}) exceeded")

        tri_verts, tri_normals, tri_uvs = [], [], []
        tri_has_normals, tri_has_uvs, tri_materials = [], [], []

        for tri in self.triangles:
            tri_verts.append(np.asarray(tri.vertices))
            tri_normals.append(np.asarray(tri.normals) if tri.normals is not None else np.zeros((3, 3)))
            tri_uvs.append(np.asarray(tri.uvs) if tri.uvs is not None else np.zeros((3, 2)))
            tri_has_normals.append(int(tri.normals is not None))
            tri_has_uvs.append(int(tri.uvs is not None))
            tri_materials.append(tri.material_id)

        loose_count = len(self.triangles)
        flattened: list[MeshTriangles] = [info.mesh.flatten() for info in self.meshes]
        mesh_first = []
        for info, flat in zip(self.meshes, flattened):
            mesh_first.append(len(tri_verts))
            tri_verts.extend(np.stack([flat.v0, flat.v1, flat.v2], axis=1))
            tri_normals.extend(np.stack([flat.n0, flat.n1, flat.n2], axis=1))
            tri_uvs.extend(np.stack([flat.uv0, flat.uv1, flat.uv2], axis=1))
            tri_has_normals.extend([int(flat.has_normals)] * len(flat))
            tri_has_uvs.extend([int(flat.has_uvs)] * len(flat))
            tri_materials.extend([info.material_id] * len(flat))

        # Object bounds in object-id order: spheres, cuboids, loose triangles, meshes
        object_types: list[int] = []
        object_indices: list[int] = []
        lo_parts: list[npt.NDArray[np.float64]] = []
        hi_parts: list[npt.NDArray[np.float64]] = []

        if self.spheres:
            centers = np.array([s.center for s in self.spheres], dtype=np.float64)
            radii = np.array([s.radius for s in self.spheres], dtype=np.float64)
            lo, hi = sphere_bounds(centers, radii)
            lo_parts.append(lo)
            hi_parts.append(hi)
            object_types.extend([int(ObjectType.SPHERE)] * len(self.spheres))
            object_indices.extend(range(len(self.spheres)))

        rotations = [rotation_matrix(c.rotation) for c in self.cuboids]
        for i, (cub, rot) in enumerate(zip(self.cuboids, rotations)):
            lo, hi = transformed_box_bounds(cub.box_min, cub.box_max, rot, cub.translation)
            lo_parts.append(lo[None, :])
            hi_parts.append(hi[None, :])
            object_types.append(int(ObjectType.CUBOID))
            object_indices.append(i)

        if loose_count:
            loose = np.asarray(tri_verts[:loose_count])
            lo, hi = triangle_bounds(loose[:, 0], loose[:, 1], loose[:, 2])
            lo_parts.append(lo)
            hi_parts.append(hi)
            object_types.extend([int(ObjectType.TRIANGLE)] * loose_count)
            object_indices.extend(range(loose_count))

        mesh_bvhs: list[BVH] = []
        for i, flat in enumerate(flattened):
            lo, hi = triangle_bounds(flat.v0, flat.v1, flat.v2)
            mesh_bvhs.append(build_bvh(lo, hi))
            lo_parts.append(lo.min(axis=0)[None, :])
            hi_parts.append(hi.max(axis=0)[None, :])
            object_types.append(int(ObjectType.MESH))
            object_indices.append(i)

        if lo_parts:
            top = build_bvh(np.concatenate(lo_parts), np.concatenate(hi_parts))
        else:
            top = build_bvh(np.zeros((0, 3)), np.zeros((0, 3)))

        # Node arena: the top level first, then each mesh hierarchy
        pieces = [top]
        item_parts = [top.order]
        mesh_roots = []
        node_offset = top.node_count
        item_offset = len(top.order)
        for first, bvh in zip(mesh_first, mesh_bvhs):
            pieces.append(bvh.offset(node_offset, item_offset))
            item_parts.append(bvh.order + first)
            mesh_roots.append(node_offset)
            node_offset += bvh.node_count
            item_offset += len(bvh.order)

        tri_count = len(tri_verts)
        arrays = SceneArrays(
            sphere_centers=np.array([s.center for s in self.spheres], dtype=np.float32).reshape(-1, 3),
            sphere_radii=np.array([s.radius for s in self.spheres], dtype=np.float32),
            sphere_material_ids=np.array([s.material_id for s in self.spheres], dtype=np.int32),
            cuboid_min=np.array([c.box_min for c in self.cuboids], dtype=np.float32).reshape(-1, 3),
            cuboid_max=np.array([c.box_max for c in self.cuboids], dtype=np.float32).reshape(-1, 3),
            cuboid_rotation=np.array(rotations, dtype=np.float32).reshape(-1, 3, 3),
            cuboid_translation=np.array([c.translation for c in self.cuboids], dtype=np.float32).reshape(-1, 3),
            cuboid_material_ids=np.array([c.material_id for c in self.cuboids], dtype=np.int32),
            tri_vertices=np.array(tri_verts, dtype=np.float32).reshape(tri_count, 3, 3),
            tri_normals=np.array(tri_normals, dtype=np.float32).reshape(tri_count, 3, 3),
            tri_uvs=np.array(tri_uvs, dtype=np.float32).reshape(tri_count, 3, 2),
            tri_has_normals=np.array(tri_has_normals, dtype=np.int32),
            tri_has_uvs=np.array(tri_has_uvs, dtype=np.int32),
            tri_material_ids=np.array(tri_materials, dtype=np.int32),
            mesh_tri_first=np.array(mesh_first, dtype=np.int32),
            mesh_tri_count=np.array([len(f) for f in flattened], dtype=np.int32),
            mesh_bvh_roots=np.array(mesh_roots, dtype=np.int32),
            object_types=np.array(object_types, dtype=np.int32),
            object_indices=np.array(object_indices, dtype=np.int32),
            bvh_bbox_min=np.concatenate([p.bbox_min for p in pieces]).reshape(-1, 3),
            bvh_bbox_max=np.concatenate([p.bbox_max for p in pieces]).reshape(-1, 3),
            bvh_left=np.concatenate([p.left for p in pieces]).astype(np.int32),
            bvh_right=np.concatenate([p.right for p in pieces]).astype(np.int32),
            bvh_first=np.concatenate([p.first for p in pieces]).astype(np.int32),
            bvh_count=np.concatenate([p.count for p in pieces]).astype(np.int32),
            bvh_items=np.concatenate(item_parts).astype(np.int32),
            top_level_root=0 if top.node_count > 0 else -1,
        )
        upload_scene(arrays)
        self._built = True

        logger.info(
            "Scene built: %d spheres, %d cuboids, %d triangles in %d meshes plus %d loose, "
            "%d materials, %d BVH nodes (top-level depth %d)",
            len(self.spheres),
            len(self.cuboids),
            tri_count,
            len(self.meshes),
            loose_count,
            len(self.materials),
            node_offset,
            top.depth,
        )

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object."""
        config = SceneConfig()

        for tex in self.textures:
            config.textures.append({"type": tex.texture_type.name.lower(), **_listify(tex.params)})

        for mat in self.materials:
            config.materials.append({"type": mat.material_type.name.lower(), **_listify(mat.params)})

        config.spheres = [_listify(asdict(s)) for s in self.spheres]
        config.cuboids = [_listify(asdict(c)) for c in self.cuboids]
        config.triangles = [_listify(asdict(t)) for t in self.triangles]

        for info in self.meshes:
            mesh = info.mesh
            entry: dict[str, Any] = {
                "vertices": mesh.vertices.tolist(),
                "indices": mesh.indices.tolist(),
                "material_id": info.material_id,
            }
            if mesh.normals is not None:
                entry["normals"] = mesh.normals.tolist()
            if mesh.uvs is not None:
                entry["uvs"] = mesh.uvs.tolist()
            if not np.array_equal(mesh.transform, np.eye(4)):
                entry["transform"] = mesh.transform.tolist()
            config.meshes.append(entry)

        top, bottom = get_background()
        config.background = {"top": list(top), "bottom": list(bottom)}
        return config

    def from_config(self, config: SceneConfig) -> None:
        """Load a scene from a configuration object, replacing the current one.

        The scene is not built; call ``build()`` afterwards.

        Raises:
            ValueError: If the configuration contains unknown types or invalid data.
        """
        self.clear()

        # Textures are recreated in order so stored texture ids stay valid
        for tex in config.textures:
            tex_type = tex.get("type", "").lower()
            if tex_type == "solid":
                self.add_solid_texture(tuple(tex["color"]))
            elif tex_type == "checker":
                self.add_checker_texture(tuple(tex["even"]), tuple(tex["odd"]), tex.get("scale", 10.0))
            elif tex_type == "noise":
                self.add_noise_texture(tuple(tex.get("color", (1.0, 1.0, 1.0))), tex.get("scale", 4.0))
            else:
                raise ValueError(f"Unknown texture type: {tex_type}")

        for mat in config.materials:
            mat_type = mat.get("type", "").lower()
            if mat_type == "lambertian":
                self._load_material(MaterialType.LAMBERTIAN, mat)
            elif mat_type == "metal":
                self._load_material(MaterialType.METAL, mat)
            elif mat_type == "dielectric":
                self._load_material(MaterialType.DIELECTRIC, mat)
            elif mat_type == "emissive":
                self._load_material(MaterialType.EMISSIVE, mat)
            else:
                raise ValueError(f"Unknown material type: {mat_type}")

        for sphere in config.spheres:
            self.add_sphere(tuple(sphere["center"]), sphere["radius"], sphere["material_id"])

        for cub in config.cuboids:
            self.add_cuboid(
                tuple(cub["box_min"]),
                tuple(cub["box_max"]),
                cub["material_id"],
                rotation=tuple(cub.get("rotation", (0.0, 0.0, 0.0))),
                translation=tuple(cub.get("translation", (0.0, 0.0, 0.0))),
            )

        for tri in config.triangles:
            v0, v1, v2 = tri["vertices"]
            self.add_triangle(v0, v1, v2, tri["material_id"], normals=tri.get("normals"), uvs=tri.get("uvs"))

        for mesh in config.meshes:
            self.add_mesh(
                mesh["vertices"],
                mesh["indices"],
                mesh["material_id"],
                normals=mesh.get("normals"),
                uvs=mesh.get("uvs"),
                transform=mesh.get("transform"),
            )

        if config.background:
            top = tuple(config.background["top"])
            self.set_background(top, tuple(config.background.get("bottom", top)))

    def _load_material(self, material_type: MaterialType, params: dict[str, Any]) -> None:
        # Materials created here reference existing textures, so no extra textures are added
        texture_id = params.get("texture_id")
        if material_type == MaterialType.LAMBERTIAN:
            if texture_id is None:
                self.add_lambertian_material(albedo=tuple(params["albedo"]))
            else:
                self.add_lambertian_material(texture_id=texture_id)
        elif material_type == MaterialType.METAL:
            self.add_metal_material(tuple(params["albedo"]), params.get("fuzz", 0.0))
        elif material_type == MaterialType.DIELECTRIC:
            self.add_dielectric_material(params.get("ior", 1.5))
        else:
            if texture_id is None:
                self.add_emissive_material(
                    emission=tuple(params.get("emission", (1.0, 1.0, 1.0))),
                    intensity=params.get("intensity", 1.0),
                )
            else:
                self.add_emissive_material(intensity=params.get("intensity", 1.0), texture_id=texture_id)

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a JSON-compatible dictionary."""
        return asdict(self.to_config())

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary produced by ``to_dict``.

        Raises:
            ValueError: If the dictionary has unknown sections or invalid data.
        """
        known = {f for f in SceneConfig.__dataclass_fields__}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown scene sections: {', '.join(unknown)}")
        self.from_config(SceneConfig(**data))


def _listify(value: Any) -> Any:
    """Convert tuples (recursively) into lists for plain-data export."""
    if isinstance(value, dict):
        return {k: _listify(v) for k, v in value.items()}
    if isinstance(value, (tuple, list)):
        return [_listify(v) for v in value]
    return value
