"""Texture module.

Components:
    texture: Texture table (solid, 3-D checker, UV checker, image, noise) and
        the evaluate_texture Taichi function
    image: Pillow-based image decoding for image textures
"""

from .image import load_image
from .texture import (
    MAX_TEXTURE_DEPTH,
    MAX_TEXTURES,
    TextureKind,
    add_checker_texture,
    add_image_texture,
    add_noise_texture,
    add_solid_texture,
    add_uv_checker_texture,
    clear_textures,
    evaluate_texture,
    get_texture_count,
)

__all__ = [
    "load_image",
    "TextureKind",
    "MAX_TEXTURES",
    "MAX_TEXTURE_DEPTH",
    "add_solid_texture",
    "add_checker_texture",
    "add_uv_checker_texture",
    "add_image_texture",
    "add_noise_texture",
    "clear_textures",
    "evaluate_texture",
    "get_texture_count",
]
