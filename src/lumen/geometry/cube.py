"""Axis-aligned cube primitive.

The cube occupies [-1, 1]^3 in local space; its size and placement come from
the owning shape's transform. The normal at a hit is the axis along which the
hit point has its largest absolute coordinate, and (u, v) are the two other
coordinates remapped to [0, 1].
"""

import taichi as ti
import taichi.math as tm

from lumen.geometry.aabb import intersect_box
from lumen.geometry.hit_record import HitRecord

vec3 = tm.vec3


@ti.func
def hit_cube(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a local-space ray with the cube [-1, 1]^3.

    The entry point is reported when it lies inside (t_min, t_max);
    otherwise the exit point is used, so rays starting inside the cube hit
    its far face.
    """
    box_hit, t_enter, t_exit = intersect_box(
        ray_origin, ray_direction, vec3(-1.0, -1.0, -1.0), vec3(1.0, 1.0, 1.0), -1e30, 1e30
    )

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    normal = vec3(0.0, 0.0, 0.0)
    u = 0.0
    v = 0.0

    if box_hit == 1:
        t = t_enter
        if not (t > t_min and t < t_max):
            t = t_exit
        if t > t_min and t < t_max:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction
            a = ti.abs(hit_point)
            if a.x >= a.y and a.x >= a.z:
                normal = vec3(tm.sign(hit_point.x), 0.0, 0.0)
                u = 0.5 * (hit_point.z + 1.0)
                v = 0.5 * (hit_point.y + 1.0)
            elif a.y >= a.z:
                normal = vec3(0.0, tm.sign(hit_point.y), 0.0)
                u = 0.5 * (hit_point.x + 1.0)
                v = 0.5 * (hit_point.z + 1.0)
            else:
                normal = vec3(0.0, 0.0, tm.sign(hit_point.z))
                u = 0.5 * (hit_point.x + 1.0)
                v = 0.5 * (hit_point.y + 1.0)

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=normal,
        u=u,
        v=v,
    )
