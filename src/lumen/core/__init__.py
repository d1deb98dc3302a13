"""Core rendering module.

This module contains the fundamental building blocks for ray tracing:

Components:
    ray: Ray data structure, reflection/refraction and random sampling
    transform: Affine object-to-world transforms
    rootfind: Ray marching and bisection for implicit surfaces
    integrator: Path tracing loop, render target and render entry point
    progressive: Progressive renderer wrapper with progress callbacks

All compute-intensive operations use Taichi kernels.
"""

from .ray import (
    Ray,
    face_forward,
    length_squared,
    make_ray,
    near_zero,
    random_in_unit_sphere,
    random_unit_vector,
    ray_at,
    reflect,
    refract,
    schlick_fresnel,
    vec3,
)
from .transform import Transform

# Note: integrator and progressive are NOT imported here to avoid circular imports.
# Import directly from lumen.core.integrator or lumen.core.progressive when needed.

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length_squared",
    "reflect",
    "refract",
    "schlick_fresnel",
    "near_zero",
    "face_forward",
    "random_in_unit_sphere",
    "random_unit_vector",
    "Transform",
]
