"""Sphere of radius r centered at the local origin.

Position, size and orientation in the world come from the owning shape's
transform. The quadratic is solved in the cancellation-free form
``q = -(h + sign(h) sqrt(D))``, ``t = q / a`` and ``t = c / q``, so grazing
rays keep their precision.

Surface coordinates are latitude/longitude of the unit direction q from the
center:

    theta = acos(-q.y),  phi = atan2(-q.z, q.x) + pi
    u = phi / (2 pi),    v = theta / pi
"""

import taichi as ti
import taichi.math as tm

from lumen.geometry.hit_record import HitRecord

vec3 = tm.vec3


@ti.func
def _sorted_roots(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    # Roots of a t^2 + 2 h t + c = 0, smaller first
    q = -(h + ti.select(h < 0.0, -1.0, 1.0) * sqrt_d)
    near = 0.0
    far = 0.0
    if ti.abs(q) < 1e-10:
        near = (-h - sqrt_d) / a
        far = (-h + sqrt_d) / a
    else:
        near = q / a
        far = c / q
    if near > far:
        swap = near
        near = far
        far = swap
    return near, far


@ti.func
def sphere_uv(q: vec3):
    """Latitude/longitude coordinates of a unit direction."""
    theta = tm.acos(tm.clamp(-q.y, -1.0, 1.0))
    phi = tm.atan2(-q.z, q.x) + tm.pi
    return phi / (2.0 * tm.pi), theta / tm.pi


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    radius: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """First root of |o + t d| = radius inside (t_min, t_max).

    The direction need not be unit length; t is in units of it. The normal
    is ``point / radius`` and always points outward.
    """
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, ray_origin)
    c = tm.dot(ray_origin, ray_origin) - radius * radius
    discriminant = h * h - a * c

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    normal = vec3(0.0, 0.0, 0.0)
    u = 0.0
    v = 0.0

    if discriminant >= 0.0:
        near, far = _sorted_roots(h, a, c, ti.sqrt(discriminant))
        t = near
        if not (t > t_min and t < t_max):
            t = far
        if t > t_min and t < t_max:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction
            normal = hit_point / radius
            u, v = sphere_uv(normal)

    return HitRecord(hit=did_hit, t=hit_t, point=hit_point, normal=normal, u=u, v=v)
