"""Hit record shared by every primitive intersection routine."""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3
vec2 = tm.vec2


@ti.dataclass
class HitRecord:
    """Record of a ray-surface intersection.

    All fields other than ``hit`` are only meaningful when ``hit == 1``.

    Attributes:
        hit: 1 if the ray intersected the surface, 0 on a miss.
        t: Ray parameter of the intersection.
        point: World-space intersection point.
        normal: Unit surface normal, oriented against the incoming ray.
        front_face: 1 if the ray arrived from the outward side of the surface.
        uv: Surface texture coordinates.
        material_id: Unified material id of the struck primitive, -1 if unset.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    uv: vec2
    material_id: ti.i32


@ti.func
def make_miss_record() -> HitRecord:
    return HitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        uv=vec2(0.0, 0.0),
        material_id=-1,
    )


@ti.func
def make_hit_record(
    t: ti.f32,
    point: vec3,
    outward_normal: vec3,
    ray_direction: vec3,
    uv: vec2,
) -> HitRecord:
    """Build a hit record, flipping the outward normal to face the ray."""
    front_face = tm.dot(ray_direction, outward_normal) < 0.0
    normal = outward_normal
    if not front_face:
        normal = -outward_normal
    return HitRecord(
        hit=1,
        t=t,
        point=point,
        normal=normal,
        front_face=ti.cast(front_face, ti.i32),
        uv=uv,
        material_id=-1,
    )
