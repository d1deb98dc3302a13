"""Local-space intersection record shared by all shape primitives.

Shape intersection functions work in the shape's local space and return a
HitRecord. The scene maps it back to world space and attaches the material.
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection in local space.

    Attributes:
        hit: Whether the ray intersected the primitive (1 if hit, 0 if miss).
        t: The local ray parameter of the intersection. Only valid if hit == 1.
        point: The local-space intersection point.
        normal: The outward geometric normal (unit length, local space).
        u: First surface coordinate.
        v: Second surface coordinate.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    u: ti.f32
    v: ti.f32


@ti.func
def make_miss_record() -> HitRecord:
    """Create a HitRecord indicating no intersection."""
    return HitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        u=0.0,
        v=0.0,
    )
