"""Clear dielectric (glass, water) with Fresnel-weighted reflection.

The side of the interface is read off the outward normal: a ray with
``dot(direction, outward_normal) < 0`` is entering and sees the ratio
``1 / ior``, otherwise it is leaving and sees ``ior``. Under total internal
reflection the ray reflects. Otherwise it reflects with the Schlick
probability and refracts the rest of the time. Nothing is absorbed, and at
``ior == 1`` transmitted rays continue unbent.
"""

import taichi as ti
import taichi.math as tm

from lumen.core.ray import face_forward, reflect, refract, schlick_fresnel
from lumen.errors import ConfigurationError

vec3 = tm.vec3


@ti.func
def scatter_dielectric(ior: ti.f32, incident_direction: vec3, outward_normal: vec3):
    """Returns (direction, attenuation, did_scatter) with white attenuation and did_scatter 1."""
    normal, front_face = face_forward(outward_normal, incident_direction)
    eta = ior
    if front_face == 1:
        eta = 1.0 / ior

    cos_theta = tm.min(-tm.dot(incident_direction, normal), 1.0)
    sin_theta = tm.sqrt(tm.max(0.0, 1.0 - cos_theta * cos_theta))

    scattered_direction = vec3(0.0, 0.0, 0.0)
    if eta * sin_theta > 1.0 or ti.random(ti.f32) < schlick_fresnel(cos_theta, eta):
        scattered_direction = reflect(incident_direction, normal)
    else:
        scattered_direction = refract(incident_direction, normal, eta)

    return tm.normalize(scattered_direction), vec3(1.0, 1.0, 1.0), 1


MAX_DIELECTRIC_MATERIALS = 256

dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    num_dielectric_materials[None] = 0


def add_dielectric_material(ior: float = 1.5) -> int:
    """Register a dielectric by its index of refraction (water 1.33, glass 1.5).

    Returns:
        The dielectric-local index.

    Raises:
        ConfigurationError: If ior is not positive or MAX_DIELECTRIC_MATERIALS
            are already registered.
    """
    if ior <= 0.0:
        raise ConfigurationError(f"Index of refraction = {ior} must be positive")

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise ConfigurationError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_iors[idx] = ior
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    return int(num_dielectric_materials[None])


@ti.func
def get_dielectric_ior(material_idx: ti.i32) -> ti.f32:
    return dielectric_iors[material_idx]
