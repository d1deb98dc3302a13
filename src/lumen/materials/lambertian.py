"""Ideal diffuse reflector.

Scattered directions are ``normal + random_unit_vector()``, a
cosine-weighted distribution about the facing normal. The cosine term and
the BRDF cancel against that density, so the attenuation is just the albedo
texture value at the hit. A Lambertian surface never absorbs a path.
"""

import taichi as ti
import taichi.math as tm

from lumen.core.ray import near_zero, random_unit_vector
from lumen.errors import ConfigurationError

vec3 = tm.vec3


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3):
    """Returns (direction, attenuation, did_scatter); did_scatter is always 1."""
    scattered_direction = normal + random_unit_vector()

    # The sample landed opposite the normal
    if near_zero(scattered_direction):
        scattered_direction = normal

    return tm.normalize(scattered_direction), albedo, 1


MAX_LAMBERTIAN_MATERIALS = 256

lambertian_albedo_textures = ti.field(dtype=ti.i32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    num_lambertian_materials[None] = 0


def add_lambertian_material(albedo_texture: int) -> int:
    """Register a Lambertian material by its albedo texture id.

    Returns:
        The Lambertian-local index.

    Raises:
        ConfigurationError: If MAX_LAMBERTIAN_MATERIALS are already registered.
    """
    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise ConfigurationError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )

    lambertian_albedo_textures[idx] = albedo_texture
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    return int(num_lambertian_materials[None])


@ti.func
def get_lambertian_albedo_texture(material_idx: ti.i32) -> ti.i32:
    return lambertian_albedo_textures[material_idx]
