"""Ray intersection with implicit surfaces (tori and brute-force shapes).

The ray is clipped to the field's local bounding box, then marched and
bisected by ``lumen.core.rootfind``. The normal at the root is the
normalized field gradient: analytic for the torus, central differences for
every other field. Its sign is chosen so that it points into the region where
the field has the sign it takes at 3 * half_extents, a corner well outside
the bounding box. For closed surfaces that is the outside. Open or
sign-ambiguous fields (Sine, Hunt's surface, some cyclides) have no inside,
so there the orientation is a convention only and says nothing about which
side is enclosed.
"""

import taichi as ti
import taichi.math as tm

from lumen.core.rootfind import march_first_root, numeric_gradient
from lumen.geometry.aabb import intersect_box
from lumen.geometry.fields import FieldKind, field_uv, field_value, torus_gradient
from lumen.geometry.hit_record import HitRecord

vec3 = tm.vec3
vec4 = tm.vec4


@ti.dataclass
class ImplicitSurface:
    """Parameters of one implicit surface.

    Attributes:
        kind: Field kind (see FieldKind).
        params: Field parameters (a, b, c, d).
        half_extents: Half extents of the local bounding box.
        step: March increment along the local ray.
    """

    kind: ti.i32
    params: vec4
    half_extents: vec3
    step: ti.f32


@ti.func
def implicit_gradient(kind: ti.i32, params: vec4, p: vec3) -> vec3:
    gradient = vec3(0.0, 0.0, 0.0)
    if kind == int(FieldKind.TORUS):
        gradient = torus_gradient(p, params[0], params[1])
    else:
        gradient = numeric_gradient(kind, params, p)
    return gradient


@ti.func
def hit_implicit(
    ray_origin: vec3,
    ray_direction: vec3,
    surface: ImplicitSurface,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a local-space ray with an implicit surface.

    Args:
        ray_origin: The ray origin in local space.
        ray_direction: The ray direction in local space (normalized, so
            ``step`` is a distance).
        surface: The surface parameters.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A HitRecord for the first root along the ray, or a miss.
    """
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    normal = vec3(0.0, 0.0, 0.0)
    u = 0.0
    v = 0.0

    box_hit, t_enter, t_exit = intersect_box(
        ray_origin, ray_direction, -surface.half_extents, surface.half_extents, t_min, t_max
    )
    if box_hit == 1:
        found, t = march_first_root(
            surface.kind, surface.params, ray_origin, ray_direction, t_enter, t_exit, surface.step
        )
        if found == 1 and t > t_min and t < t_max:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction

            gradient = implicit_gradient(surface.kind, surface.params, hit_point)
            # Orientation convention; see the module docstring for open fields
            outside = field_value(surface.kind, surface.params, 3.0 * surface.half_extents)
            if outside < 0.0:
                gradient = -gradient

            if tm.dot(gradient, gradient) > 1e-20:
                normal = tm.normalize(gradient)
            else:
                normal = -ray_direction
            u, v = field_uv(surface.kind, surface.params, hit_point)

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=normal,
        u=u,
        v=v,
    )
