"""Scalar fields whose zero sets define implicit surfaces.

Each field is a pure function from a local-space point to a scalar. The
surface is the set where the field is zero; the root finder in
``lumen.core.rootfind`` only needs ``field_value`` and knows nothing about
the individual formulas, so a new surface is added here alone:

    1. add a member to FieldKind,
    2. add a branch to ``field_value`` (and ``field_uv`` if it has a mapping),
    3. give it bounds in ``field_half_extents``.

Parameters are packed in a vec4 (a, b, c, d); each field documents which
components it reads.
"""

from enum import IntEnum

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3
vec4 = tm.vec4

HEART_HALF_EXTENTS = (1.45, 1.45 / 2.05, 1.45)


class FieldKind(IntEnum):
    """Closed set of implicit fields, dispatched by value inside kernels."""

    TORUS = 0  # params: (major radius R, tube radius r, -, -)
    CUSHION = 1  # params: unused
    HEART = 2  # params: unused
    SINE = 3  # params: (a, -, -, -)
    STAR = 4  # params: (a, -, -, -)
    DUPIN_CYCLIDE = 5  # params: (a, b, c, d)
    HUNTS_SURFACE = 6  # params: unused


def field_half_extents(kind: FieldKind, params, sphere_radius: float) -> npt.NDArray[np.float64]:
    """Half extents of the local box that contains the whole surface.

    Args:
        kind: The field kind.
        params: The (a, b, c, d) parameters.
        sphere_radius: Radius of the bounding sphere for fields that take one.

    Returns:
        Half extents (hx, hy, hz) of a box centered at the local origin.
    """
    if kind == FieldKind.TORUS:
        major, tube = float(params[0]), float(params[1])
        return np.array([major + tube, major + tube, tube])
    if kind == FieldKind.HEART:
        return np.array(HEART_HALF_EXTENTS)
    return np.full(3, float(sphere_radius))


@ti.func
def torus_field(p: vec3, major: ti.f32, tube: ti.f32) -> ti.f32:
    s = tm.dot(p, p) + major * major - tube * tube
    return s * s - 4.0 * major * major * (p.x * p.x + p.y * p.y)


@ti.func
def torus_gradient(p: vec3, major: ti.f32, tube: ti.f32) -> vec3:
    """Analytic gradient of the torus field (axis along local z)."""
    s = tm.dot(p, p) + major * major - tube * tube
    return 4.0 * s * p - 8.0 * major * major * vec3(p.x, p.y, 0.0)


@ti.func
def cushion_field(p: vec3) -> ti.f32:
    x2 = p.x * p.x
    y2 = p.y * p.y
    z = p.z
    z2 = z * z
    a = x2 - z
    return (
        z2 * x2
        - z2 * z2
        - 2.0 * z * x2
        + 2.0 * z * z2
        + x2
        - z2
        - a * a
        - y2 * y2
        - 2.0 * x2 * y2
        - y2 * z2
        + 2.0 * y2 * z
        + y2
    )


@ti.func
def heart_field(p: vec3) -> ti.f32:
    x2 = p.x * p.x
    y2 = p.y * p.y
    z2 = p.z * p.z
    z3 = z2 * p.z
    a = x2 + 2.25 * y2 + z2 - 1.0
    return a * a * a - x2 * z3 - (9.0 / 80.0) * y2 * z3


@ti.func
def sine_field(p: vec3, a: ti.f32) -> ti.f32:
    x, y, z = p.x, p.y, p.z
    return (
        a * a * (x - y - z) * (x + y - z) * (x - y + z) * (x + y + z)
        + 4.0 * x * x * y * y * z * z
    )


@ti.func
def star_field(p: vec3, a: ti.f32) -> ti.f32:
    x2 = p.x * p.x
    y2 = p.y * p.y
    z2 = p.z * p.z
    r = x2 + y2 + z2 - 1.0
    return a * (x2 * y2 + x2 * z2 + y2 * z2) + r * r * r


@ti.func
def dupin_cyclide_field(p: vec3, params: vec4) -> ti.f32:
    a, b, c, d = params[0], params[1], params[2], params[3]
    e = tm.dot(p, p) + b * b - d * d
    f = a * p.x - c * d
    return e * e - 4.0 * (f * f + b * b * p.y * p.y)


@ti.func
def hunts_surface_field(p: vec3) -> ti.f32:
    a = tm.dot(p, p) - 13.0
    b = 3.0 * p.x * p.x + p.y * p.y - 4.0 * p.z * p.z - 12.0
    return 4.0 * a * a * a + 27.0 * b * b


@ti.func
def field_value(kind: ti.i32, params: vec4, p: vec3) -> ti.f32:
    """Evaluate the field of the given kind at local point p."""
    value = 0.0
    if kind == int(FieldKind.TORUS):
        value = torus_field(p, params[0], params[1])
    elif kind == int(FieldKind.CUSHION):
        value = cushion_field(p)
    elif kind == int(FieldKind.HEART):
        value = heart_field(p)
    elif kind == int(FieldKind.SINE):
        value = sine_field(p, params[0])
    elif kind == int(FieldKind.STAR):
        value = star_field(p, params[0])
    elif kind == int(FieldKind.DUPIN_CYCLIDE):
        value = dupin_cyclide_field(p, params)
    elif kind == int(FieldKind.HUNTS_SURFACE):
        value = hunts_surface_field(p)
    return value


@ti.func
def field_uv(kind: ti.i32, params: vec4, p: vec3):
    """Surface coordinates of a point on the surface.

    Fields without a mapping return (0, 0).
    """
    u = 0.0
    v = 0.0
    if kind == int(FieldKind.TORUS):
        phi = tm.atan2(p.y, p.x)
        theta = tm.atan2(p.z, tm.sqrt(p.x * p.x + p.y * p.y) - params[0])
        u = (phi + tm.pi) / (2.0 * tm.pi)
        v = (theta + tm.pi) / (2.0 * tm.pi)
    elif (
        kind == int(FieldKind.CUSHION)
        or kind == int(FieldKind.DUPIN_CYCLIDE)
        or kind == int(FieldKind.HUNTS_SURFACE)
    ):
        u = p.x
        v = p.y
    return u, v
