"""Diffuse area light material.

A diffuse light never scatters; it terminates the path and contributes its
emission texture, sampled at the hit, on both faces of the surface. This is
the only way energy enters a scene apart from the background.
"""

import taichi as ti
import taichi.math as tm

from lumen.errors import ConfigurationError

vec3 = tm.vec3


@ti.func
def scatter_diffuse_light():
    """Diffuse lights absorb every incoming ray.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) with
        did_scatter always 0.
    """
    return vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, 0.0), 0


@ti.func
def emitted_diffuse_light(emit_color: vec3) -> vec3:
    """Radiance emitted by the light, given its emission texture value."""
    return emit_color


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of diffuse light materials in the scene
MAX_DIFFUSE_LIGHT_MATERIALS = 256

diffuse_light_emit_textures = ti.field(dtype=ti.i32, shape=MAX_DIFFUSE_LIGHT_MATERIALS)
num_diffuse_light_materials = ti.field(dtype=ti.i32, shape=())


def clear_diffuse_light_materials() -> None:
    """Clear all diffuse light materials."""
    num_diffuse_light_materials[None] = 0


def add_diffuse_light_material(emit_texture: int) -> int:
    """Add a diffuse light material to the material registry.

    Args:
        emit_texture: Texture id of the emitted radiance. Values may exceed 1.

    Returns:
        The index of the added material.

    Raises:
        ConfigurationError: If the maximum number of materials is exceeded.
    """
    idx = num_diffuse_light_materials[None]
    if idx >= MAX_DIFFUSE_LIGHT_MATERIALS:
        raise ConfigurationError(
            f"Maximum number of diffuse light materials ({MAX_DIFFUSE_LIGHT_MATERIALS}) exceeded"
        )

    diffuse_light_emit_textures[idx] = emit_texture
    num_diffuse_light_materials[None] = idx + 1
    return idx


def get_diffuse_light_material_count() -> int:
    """Get the number of diffuse light materials in the registry."""
    return int(num_diffuse_light_materials[None])


@ti.func
def get_diffuse_light_emit_texture(material_idx: ti.i32) -> ti.i32:
    """Get the emission texture id for a diffuse light by index."""
    return diffuse_light_emit_textures[material_idx]
