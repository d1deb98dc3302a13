"""Numerical root finding along rays for implicit surfaces.

Intersections with implicit surfaces are found in two stages:

    1. March: sample the field at fixed increments of ``step`` along the
       ray; the first pair of consecutive samples with different signs
       brackets a root.
    2. Refine: bisect the bracket until it is narrower than
       ROOT_TOLERANCE (or MAX_BISECTION_STEPS halvings were made).

Only the field *value* is needed, looked up through ``field_value`` by
field kind, so the routines here are shared by the torus and every
brute-force implicit shape. ``step`` trades speed for the risk of stepping
over thin features whose two crossings fall between consecutive samples.
That tunneling is an accepted approximation. Failing to bracket a root
within the interval is reported as a miss. Long segments are covered with at
most MAX_MARCH_STEPS samples by widening the stride.
"""

import taichi as ti
import taichi.math as tm

from lumen.geometry.fields import field_value

vec3 = tm.vec3
vec4 = tm.vec4

# Width of the bracket at which bisection stops (local units)
ROOT_TOLERANCE = 1e-5

# Upper bound on bisection halvings (guards against f32 spacing wider than ROOT_TOLERANCE)
MAX_BISECTION_STEPS = 48

# Central-difference offset used for numeric gradients (local units)
GRADIENT_EPSILON = 1e-3

# Upper bound on march samples per ray
MAX_MARCH_STEPS = 1 << 16


@ti.func
def sample_along_ray(kind: ti.i32, params: vec4, origin: vec3, direction: vec3, t: ti.f32) -> ti.f32:
    """Field value at origin + t * direction."""
    return field_value(kind, params, origin + t * direction)


@ti.func
def bisect_root(
    kind: ti.i32,
    params: vec4,
    origin: vec3,
    direction: vec3,
    t_lo: ti.f32,
    t_hi: ti.f32,
) -> ti.f32:
    """Refine a bracketed root by bisection.

    Args:
        kind: Field kind (see FieldKind).
        params: Field parameters.
        origin: Ray origin in the field's space.
        direction: Ray direction in the field's space.
        t_lo: Start of a bracket whose end points have different signs.
        t_hi: End of the bracket.

    Returns:
        The midpoint of the final bracket.
    """
    lo = t_lo
    hi = t_hi
    lo_negative = sample_along_ray(kind, params, origin, direction, lo) < 0.0
    steps = 0
    while hi - lo > ROOT_TOLERANCE and steps < MAX_BISECTION_STEPS:
        mid = 0.5 * (lo + hi)
        mid_negative = sample_along_ray(kind, params, origin, direction, mid) < 0.0
        if mid_negative == lo_negative:
            lo = mid
        else:
            hi = mid
        steps += 1
    return 0.5 * (lo + hi)


@ti.func
def march_first_root(
    kind: ti.i32,
    params: vec4,
    origin: vec3,
    direction: vec3,
    t_start: ti.f32,
    t_end: ti.f32,
    step: ti.f32,
):
    """Find the first root of the field along a ray segment.

    The stride is ``step``, widened to ``(t_end - t_start) / MAX_MARCH_STEPS``
    when the segment would need more samples than that. Sample i sits at
    ``t_start + i * stride`` rather than at a running sum, so samples that
    round onto the previous one are skipped and t always moves forward. The
    last sample is taken exactly at t_end.

    Args:
        kind: Field kind (see FieldKind).
        params: Field parameters.
        origin: Ray origin in the field's space.
        direction: Ray direction in the field's space.
        t_start: Where marching starts.
        t_end: Where marching stops.
        step: Requested distance between consecutive samples (positive).

    Returns:
        A tuple (found, t) where found is 1 if a root was bracketed and t is
        the refined root.
    """
    found = 0
    t_root = 0.0

    if t_start < t_end and step > 0.0:
        span = t_end - t_start
        stride = tm.max(step, span / MAX_MARCH_STEPS)
        num_samples = tm.min(ti.cast(ti.ceil(span / stride), ti.i32), MAX_MARCH_STEPS)
        num_samples = tm.max(num_samples, 1)

        t_prev = t_start
        f_prev = sample_along_ray(kind, params, origin, direction, t_prev)
        if f_prev == 0.0:
            found = 1
            t_root = t_prev

        i = 1
        while found == 0 and i <= num_samples:
            t_next = t_end
            if i < num_samples:
                t_next = tm.min(t_start + ti.cast(i, ti.f32) * stride, t_end)
            if t_next > t_prev:
                f_next = sample_along_ray(kind, params, origin, direction, t_next)
                if f_next == 0.0:
                    found = 1
                    t_root = t_next
                elif (f_next < 0.0) != (f_prev < 0.0):
                    found = 1
                    t_root = bisect_root(kind, params, origin, direction, t_prev, t_next)
                t_prev = t_next
                f_prev = f_next
            i += 1

    return found, t_root


@ti.func
def numeric_gradient(kind: ti.i32, params: vec4, p: vec3) -> vec3:
    """Central-difference gradient of the field at p."""
    e = GRADIENT_EPSILON
    dx = field_value(kind, params, p + vec3(e, 0.0, 0.0)) - field_value(kind, params, p - vec3(e, 0.0, 0.0))
    dy = field_value(kind, params, p + vec3(0.0, e, 0.0)) - field_value(kind, params, p - vec3(0.0, e, 0.0))
    dz = field_value(kind, params, p + vec3(0.0, 0.0, e)) - field_value(kind, params, p - vec3(0.0, 0.0, e))
    return vec3(dx, dy, dz) / (2.0 * e)
