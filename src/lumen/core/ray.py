"""Rays and the vector helpers shared by camera, scene and materials.

Everything here is a Taichi function and only callable from kernels. The
valid interval of a ray is not part of the Ray struct: intersection
queries take ``t_min`` and ``t_max`` next to the ray instead.

Example:
    >>> @ti.kernel
    ... def probe() -> ti.f32:
    ...     ray = make_ray(vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, -1.0))
    ...     return ray_at(ray, 5.0).z
    >>> probe()
    -5.0
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


@ti.dataclass
class Ray:
    """Origin and direction. Camera and scattered rays are unit length."""

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    return Ray(origin=origin, direction=direction)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    return tm.dot(v, v)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Mirror ``incident`` about the unit ``normal``: I - 2 (I.N) N."""
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, eta: ti.f32) -> vec3:
    """Bend a unit direction through an interface by Snell's law.

    Args:
        incident: Unit direction arriving at the surface.
        normal: Unit normal on the side the ray arrives from.
        eta: n_incident / n_transmitted.

    Returns:
        The transmitted direction, or the zero vector under total internal
        reflection. eta == 1 returns ``incident`` unchanged.
    """
    cos_i = tm.min(-tm.dot(incident, normal), 1.0)
    sin2_t = eta * eta * (1.0 - cos_i * cos_i)
    result = vec3(0.0, 0.0, 0.0)
    if sin2_t <= 1.0:
        cos_t = ti.sqrt(1.0 - sin2_t)
        result = eta * incident + (eta * cos_i - cos_t) * normal
    return result


@ti.func
def schlick_fresnel(cosine: ti.f32, ref_idx: ti.f32) -> ti.f32:
    """Schlick's reflectance estimate r0 + (1 - r0)(1 - cos)^5."""
    r0 = ((1.0 - ref_idx) / (1.0 + ref_idx)) ** 2
    return r0 + (1.0 - r0) * ((1.0 - cosine) ** 5)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    s = 1e-8
    return ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s


@ti.func
def face_forward(outward_normal: vec3, direction: vec3):
    """Flip an outward normal so it opposes ``direction``.

    Returns:
        (normal, front_face): front_face is 1 when the ray arrives from the
        outside, in which case normal is the outward normal itself.
    """
    front_face = 1
    normal = outward_normal
    if tm.dot(direction, outward_normal) > 0.0:
        front_face = 0
        normal = -outward_normal
    return normal, front_face


@ti.func
def random_in_unit_sphere() -> vec3:
    """Uniform point in the unit ball, by rejection (at most 100 tries)."""
    p = vec3(0.0, 0.0, 0.0)
    accepted = 0
    for _ in range(100):
        if accepted == 0:
            p = 2.0 * vec3(ti.random(ti.f32), ti.random(ti.f32), ti.random(ti.f32)) - 1.0
            if length_squared(p) < 1.0:
                accepted = 1
    return p


@ti.func
def random_unit_vector() -> vec3:
    """Uniform direction on the unit sphere from a random height and azimuth."""
    z = ti.random(ti.f32) * 2.0 - 1.0
    phi = 2.0 * tm.pi * ti.random(ti.f32)
    r = ti.sqrt(tm.max(0.0, 1.0 - z * z))
    return vec3(r * ti.cos(phi), r * ti.sin(phi), z)
