"""Rectangle-in-plane primitive.

The rectangle lies in the local plane z = k and spans [x0, x1] x [y0, y1].
Its outward normal is the local +Z axis. Orientation and placement in the
world come from the owning shape's transform.

A rectangle without bounds is an infinite plane. It has no finite bounding
box, so the scene keeps it out of the BVH and tests it directly.
"""

import taichi as ti
import taichi.math as tm

from lumen.geometry.hit_record import HitRecord

vec3 = tm.vec3
vec4 = tm.vec4

# Rays with |d.z| below this are treated as parallel to the plane
PARALLEL_EPSILON = 1e-8


@ti.func
def hit_rectangle(
    ray_origin: vec3,
    ray_direction: vec3,
    bounds: vec4,
    offset: ti.f32,
    bounded: ti.i32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a local-space ray with the rectangle.

    Args:
        ray_origin: The ray origin in local space.
        ray_direction: The ray direction in local space.
        bounds: (x0, y0, x1, y1) extent of the rectangle in its plane.
        offset: Position k of the plane along the local Z axis.
        bounded: 1 for a finite rectangle, 0 for an infinite plane.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A HitRecord with normal (0, 0, 1). For a finite rectangle u and v are
        the normalized in-plane position; for a plane they are the raw local
        x and y coordinates.
    """
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    u = 0.0
    v = 0.0

    if ti.abs(ray_direction.z) >= PARALLEL_EPSILON:
        t = (offset - ray_origin.z) / ray_direction.z
        if t > t_min and t < t_max:
            x = ray_origin.x + t * ray_direction.x
            y = ray_origin.y + t * ray_direction.y
            if bounded == 0:
                did_hit = 1
                u = x
                v = y
            elif bounds[0] <= x and x <= bounds[2] and bounds[1] <= y and y <= bounds[3]:
                did_hit = 1
                u = (x - bounds[0]) / (bounds[2] - bounds[0])
                v = (y - bounds[1]) / (bounds[3] - bounds[1])
            if did_hit == 1:
                hit_t = t
                hit_point = vec3(x, y, offset)

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=vec3(0.0, 0.0, 1.0),
        u=u,
        v=v,
    )
