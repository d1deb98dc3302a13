"""Reflective metal with optional fuzz.

The incoming direction is mirrored about the facing normal, then offset by
``fuzz`` times a random point in the unit ball. A fuzz of 0 is a perfect
mirror. When the offset pushes the direction below the surface the path is
absorbed.
"""

import taichi as ti
import taichi.math as tm

from lumen.core.ray import random_in_unit_sphere, reflect
from lumen.errors import ConfigurationError

vec3 = tm.vec3


@ti.func
def scatter_metal(albedo: vec3, fuzz: ti.f32, incident_direction: vec3, normal: vec3):
    """Reflect off a metal surface.

    Args:
        albedo: Albedo texture value at the hit, used as the attenuation.
        fuzz: Perturbation radius in [0, 1].
        incident_direction: Unit direction of the incoming ray.
        normal: Unit normal facing the incoming ray.

    Returns:
        (direction, attenuation, did_scatter). did_scatter is 0 and the
        direction is zero when the perturbed ray points into the surface.
    """
    scattered_direction = tm.normalize(reflect(incident_direction, normal)) + fuzz * random_in_unit_sphere()

    did_scatter = 0
    if tm.dot(scattered_direction, normal) > 0.0:
        did_scatter = 1
        scattered_direction = tm.normalize(scattered_direction)
    else:
        scattered_direction = vec3(0.0, 0.0, 0.0)

    return scattered_direction, albedo, did_scatter


MAX_METAL_MATERIALS = 256

metal_albedo_textures = ti.field(dtype=ti.i32, shape=MAX_METAL_MATERIALS)
metal_fuzz = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    num_metal_materials[None] = 0


def add_metal_material(albedo_texture: int, fuzz: float = 0.0) -> int:
    """Register a metal material.

    Args:
        albedo_texture: Texture id of the albedo.
        fuzz: Perturbation radius. Anything above 1 is stored as 1.

    Returns:
        The metal-local index.

    Raises:
        ConfigurationError: If fuzz is negative or MAX_METAL_MATERIALS are
            already registered.
    """
    if fuzz < 0.0:
        raise ConfigurationError(f"Metal fuzz = {fuzz} is negative")

    idx = num_metal_materials[None]
    if idx >= MAX_METAL_MATERIALS:
        raise ConfigurationError(f"Maximum number of metal materials ({MAX_METAL_MATERIALS}) exceeded")

    metal_albedo_textures[idx] = albedo_texture
    metal_fuzz[idx] = min(float(fuzz), 1.0)
    num_metal_materials[None] = idx + 1
    return idx


def get_metal_material_count() -> int:
    return int(num_metal_materials[None])


@ti.func
def get_metal_albedo_texture(material_idx: ti.i32) -> ti.i32:
    return metal_albedo_textures[material_idx]


@ti.func
def get_metal_fuzz(material_idx: ti.i32) -> ti.f32:
    return metal_fuzz[material_idx]
