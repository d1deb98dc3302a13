"""Materials module for light scattering models.

Components:
    lambertian: Ideal diffuse reflection
    metal: Specular reflection with optional fuzz
    dielectric: Glass-like materials with refraction (Schlick Fresnel)
    diffuse_light: Emissive surfaces that never scatter

Each material provides a scatter function returning
(scattered_direction, attenuation, did_scatter), plus a field-backed
registry (add_*, clear_*, get_*) used by the scene manager. Texture-valued
parameters are stored as texture ids and evaluated at the hit.
"""

from .dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
    get_dielectric_ior,
    get_dielectric_material_count,
    scatter_dielectric,
)
from .diffuse_light import (
    add_diffuse_light_material,
    clear_diffuse_light_materials,
    emitted_diffuse_light,
    get_diffuse_light_emit_texture,
    get_diffuse_light_material_count,
    scatter_diffuse_light,
)
from .lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
    get_lambertian_albedo_texture,
    get_lambertian_material_count,
    scatter_lambertian,
)
from .metal import (
    add_metal_material,
    clear_metal_materials,
    get_metal_albedo_texture,
    get_metal_fuzz,
    get_metal_material_count,
    scatter_metal,
)


def clear_all_materials() -> None:
    """Clear every material registry."""
    clear_lambertian_materials()
    clear_metal_materials()
    clear_dielectric_materials()
    clear_diffuse_light_materials()


__all__ = [
    # Lambertian
    "scatter_lambertian",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "get_lambertian_albedo_texture",
    "get_lambertian_material_count",
    # Metal
    "scatter_metal",
    "add_metal_material",
    "clear_metal_materials",
    "get_metal_albedo_texture",
    "get_metal_fuzz",
    "get_metal_material_count",
    # Dielectric
    "scatter_dielectric",
    "add_dielectric_material",
    "clear_dielectric_materials",
    "get_dielectric_ior",
    "get_dielectric_material_count",
    # Diffuse light
    "scatter_diffuse_light",
    "emitted_diffuse_light",
    "add_diffuse_light_material",
    "clear_diffuse_light_materials",
    "get_diffuse_light_emit_texture",
    "get_diffuse_light_material_count",
    "clear_all_materials",
]
