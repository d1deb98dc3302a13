"""Texture registry and evaluation.

Textures are stored in a flat table indexed by texture id. Checker textures
refer to their "odd" and "even" sub-textures by id, so a nested texture
description becomes a small tree in the table. Evaluation walks down the
tree iteratively until it reaches a solid color or an image.

Variants:
    SOLID: a fixed color.
    CHECKER: sin(s*mx*x) * sin(s*my*y) * sin(s*mz*z) < 0 selects "odd",
        using the world-space hit point.
    UV_CHECKER: floor(u*mu) + floor(v*mv) odd selects "odd", using the
        surface coordinates.
    IMAGE: nearest-texel lookup. u and v are clamped to [0, 1], v is
        flipped so that v = 1 is the top row, and the texel is
        (min(floor(u*w), w-1), min(floor(v*h), h-1)).
    NOISE: gray marble, 0.5 * (1 + sin(s*z + 10 * turb(point))), where turb
        sums NOISE_OCTAVES octaves of Perlin noise. Each noise texture owns a
        permutation and gradient table drawn when it is added.

Example:
    >>> white = add_solid_texture((1.0, 1.0, 1.0))
    >>> black = add_solid_texture((0.0, 0.0, 0.0))
    >>> checker = add_checker_texture(odd=black, even=white, scale=4.0)
    >>> # evaluate_texture(checker, u, v, point) inside a kernel
"""

import logging
from enum import IntEnum

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from lumen.errors import ConfigurationError
from lumen.textures.image import validate_texels

logger = logging.getLogger(__name__)

vec3 = tm.vec3


class TextureKind(IntEnum):
    """Enumeration of supported texture types."""

    SOLID = 0
    CHECKER = 1
    UV_CHECKER = 2
    IMAGE = 3
    NOISE = 4


# Maximum number of textures (including checker sub-textures)
MAX_TEXTURES = 1024

# Total texel capacity shared by all image textures
MAX_TEXELS = 1 << 20

# Maximum nesting of checker textures
MAX_TEXTURE_DEPTH = 16

# Perlin tables: one per noise texture, PERLIN_SIZE entries each
MAX_NOISE_TEXTURES = 64
PERLIN_SIZE = 256
NOISE_OCTAVES = 7

texture_kinds = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_scales = ti.field(dtype=ti.f32, shape=MAX_TEXTURES)
texture_multipliers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_odd = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_even = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_image_offsets = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_image_sizes = ti.Vector.field(2, dtype=ti.i32, shape=MAX_TEXTURES)
texture_noise_tables = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())

# Texel pool: images are stored row-major, top row first, one after another
texels = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXELS)
num_texels = ti.field(dtype=ti.i32, shape=())

noise_permutations = ti.Vector.field(3, dtype=ti.i32, shape=(MAX_NOISE_TEXTURES, PERLIN_SIZE))
noise_gradients = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_NOISE_TEXTURES, PERLIN_SIZE))
num_noise_tables = ti.field(dtype=ti.i32, shape=())

# Python-side nesting depth per texture id, used to reject overly deep trees
_texture_depths: list[int] = []


def clear_textures() -> None:
    """Remove all textures and image data."""
    num_textures[None] = 0
    num_texels[None] = 0
    num_noise_tables[None] = 0
    _texture_depths.clear()


def get_texture_count() -> int:
    """Get the number of textures in the registry."""
    return int(num_textures[None])


def _allocate_texture(kind: TextureKind, depth: int) -> int:
    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise ConfigurationError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    if depth > MAX_TEXTURE_DEPTH:
        raise ConfigurationError(
            f"Checker textures nest {depth} levels deep; at most {MAX_TEXTURE_DEPTH} are supported"
        )
    texture_kinds[idx] = int(kind)
    texture_colors[idx] = [0.0, 0.0, 0.0]
    texture_scales[idx] = 1.0
    texture_multipliers[idx] = [1.0, 1.0, 1.0]
    texture_odd[idx] = -1
    texture_even[idx] = -1
    texture_image_offsets[idx] = 0
    texture_image_sizes[idx] = [0, 0]
    texture_noise_tables[idx] = -1
    num_textures[None] = idx + 1
    _texture_depths.append(depth)
    return idx


def _check_texture_id(texture_id: int, role: str) -> None:
    if not 0 <= texture_id < num_textures[None]:
        raise ConfigurationError(f"{role} texture id {texture_id} does not exist")


def add_solid_texture(color: tuple[float, float, float]) -> int:
    """Add a constant-color texture.

    Args:
        color: The RGB color. Components must be non-negative.

    Returns:
        The texture id.

    Raises:
        ConfigurationError: If a component is negative or the table is full.
    """
    for i, component in enumerate(color):
        if component < 0.0:
            raise ConfigurationError(f"Color component {i} = {component} is negative")
    idx = _allocate_texture(TextureKind.SOLID, 1)
    texture_colors[idx] = [float(color[0]), float(color[1]), float(color[2])]
    return idx


def add_checker_texture(
    odd: int,
    even: int,
    multipliers: tuple[float, float, float] = (1.0, 1.0, 1.0),
    scale: float = 1.0,
) -> int:
    """Add a 3-D checker texture evaluated on the world-space hit point.

    Args:
        odd: Texture id used where the sine product is negative.
        even: Texture id used elsewhere.
        multipliers: Per-axis frequency multipliers.
        scale: Global frequency scale.

    Returns:
        The texture id.
    """
    _check_texture_id(odd, "Odd")
    _check_texture_id(even, "Even")
    depth = 1 + max(_texture_depths[odd], _texture_depths[even])
    idx = _allocate_texture(TextureKind.CHECKER, depth)
    texture_odd[idx] = odd
    texture_even[idx] = even
    texture_multipliers[idx] = [float(m) for m in multipliers]
    texture_scales[idx] = float(scale)
    return idx


def add_uv_checker_texture(
    odd: int,
    even: int,
    multipliers: tuple[float, float] = (1.0, 1.0),
) -> int:
    """Add a checker texture evaluated on the surface coordinates (u, v).

    Args:
        odd: Texture id used where floor(u*mu) + floor(v*mv) is odd.
        even: Texture id used elsewhere.
        multipliers: Number of checks along u and v.

    Returns:
        The texture id.
    """
    _check_texture_id(odd, "Odd")
    _check_texture_id(even, "Even")
    depth = 1 + max(_texture_depths[odd], _texture_depths[even])
    idx = _allocate_texture(TextureKind.UV_CHECKER, depth)
    texture_odd[idx] = odd
    texture_even[idx] = even
    texture_multipliers[idx] = [float(multipliers[0]), float(multipliers[1]), 1.0]
    return idx


@ti.kernel
def _upload_texels(offset: ti.i32, data: ti.types.ndarray()):
    for i in range(data.shape[0]):
        texels[offset + i] = vec3(data[i, 0], data[i, 1], data[i, 2])


def add_image_texture(image: npt.ArrayLike, source: str = "<array>") -> int:
    """Add an image texture from a decoded texel buffer.

    Args:
        image: Array of shape (height, width, 3), top row first, values
            normally in [0, 1]. Use ``lumen.textures.image.load_image`` to
            decode a file.
        source: Name used in error and log messages (usually the file path).

    Returns:
        The texture id.

    Raises:
        ResourceError: If the buffer has the wrong shape.
        ConfigurationError: If the texel pool is full.
    """
    array = validate_texels(image, source)
    height, width = array.shape[0], array.shape[1]
    offset = num_texels[None]
    if offset + width * height > MAX_TEXELS:
        raise ConfigurationError(
            f"Image texture {source} ({width}x{height}) does not fit in the texel pool "
            f"({MAX_TEXELS - offset} texels left)"
        )

    idx = _allocate_texture(TextureKind.IMAGE, 1)
    _upload_texels(offset, array.reshape(-1, 3))
    texture_image_offsets[idx] = offset
    texture_image_sizes[idx] = [width, height]
    num_texels[None] = offset + width * height
    logger.debug(f"Uploaded image texture {source} as texture {idx} at texel offset {offset}")
    return idx


@ti.kernel
def _upload_noise_table(table: ti.i32, permutations: ti.types.ndarray(), gradients: ti.types.ndarray()):
    for i in range(PERLIN_SIZE):
        noise_permutations[table, i] = ti.Vector(
            [permutations[i, 0], permutations[i, 1], permutations[i, 2]], dt=ti.i32
        )
        noise_gradients[table, i] = vec3(gradients[i, 0], gradients[i, 1], gradients[i, 2])


def make_perlin_table(rng: np.random.Generator) -> tuple[np.ndarray, np.ndarray]:
    """Draw a Perlin table.

    Returns:
        (permutations, gradients): an int32 array of shape (PERLIN_SIZE, 3)
        holding one shuffled 0..PERLIN_SIZE-1 per axis, and a float32 array
        of PERLIN_SIZE unit gradient vectors.
    """
    permutations = np.stack([rng.permutation(PERLIN_SIZE) for _ in range(3)], axis=1).astype(np.int32)
    gradients = rng.normal(size=(PERLIN_SIZE, 3))
    lengths = np.linalg.norm(gradients, axis=1, keepdims=True)
    gradients = gradients / np.maximum(lengths, 1e-12)
    return permutations, gradients.astype(np.float32)


def add_noise_texture(scale: float = 1.0, seed: int | None = None) -> int:
    """Add a Perlin turbulence (marble) texture evaluated on the world point.

    Args:
        scale: Frequency of the stripes along z.
        seed: Seed of the table; None draws a fresh one.

    Returns:
        The texture id.

    Raises:
        ConfigurationError: If MAX_NOISE_TEXTURES tables are already in use or
            the texture table is full.
    """
    table = num_noise_tables[None]
    if table >= MAX_NOISE_TEXTURES:
        raise ConfigurationError(f"Maximum number of noise textures ({MAX_NOISE_TEXTURES}) exceeded")

    idx = _allocate_texture(TextureKind.NOISE, 1)
    permutations, gradients = make_perlin_table(np.random.default_rng(seed))
    _upload_noise_table(table, permutations, gradients)
    texture_noise_tables[idx] = table
    texture_scales[idx] = float(scale)
    num_noise_tables[None] = table + 1
    logger.debug(f"Uploaded Perlin table {table} for noise texture {idx}")
    return idx


# =============================================================================
# Evaluation (Taichi-side)
# =============================================================================


@ti.func
def _is_checker(kind: ti.i32) -> ti.i32:
    return kind == int(TextureKind.CHECKER) or kind == int(TextureKind.UV_CHECKER)


@ti.func
def _select_odd(idx: ti.i32, u: ti.f32, v: ti.f32, point: vec3) -> ti.i32:
    """Whether checker texture idx selects its odd branch at the given inputs."""
    odd = 0
    m = texture_multipliers[idx]
    if texture_kinds[idx] == int(TextureKind.CHECKER):
        m = m * texture_scales[idx]
        product = ti.sin(m.x * point.x) * ti.sin(m.y * point.y) * ti.sin(m.z * point.z)
        odd = ti.select(product < 0.0, 1, 0)
    else:
        parity = ti.cast(tm.floor(u * m.x) + tm.floor(v * m.y), ti.i32)
        odd = parity & 1
    return odd


@ti.func
def sample_image(idx: ti.i32, u: ti.f32, v: ti.f32) -> vec3:
    """Nearest-texel lookup in image texture idx."""
    size = texture_image_sizes[idx]
    width = size[0]
    height = size[1]
    uu = tm.clamp(u, 0.0, 1.0)
    vv = 1.0 - tm.clamp(v, 0.0, 1.0)
    x = ti.min(ti.cast(uu * ti.cast(width, ti.f32), ti.i32), width - 1)
    y = ti.min(ti.cast(vv * ti.cast(height, ti.f32), ti.i32), height - 1)
    return texels[texture_image_offsets[idx] + y * width + x]


@ti.func
def perlin_noise(table: ti.i32, p: vec3) -> ti.f32:
    """Gradient noise in about [-1, 1], zero at every lattice point."""
    cell = tm.floor(p)
    frac = p - cell
    i = ti.cast(cell.x, ti.i32)
    j = ti.cast(cell.y, ti.i32)
    k = ti.cast(cell.z, ti.i32)
    smooth = frac * frac * (3.0 - 2.0 * frac)

    accum = 0.0
    for di in ti.static(range(2)):
        for dj in ti.static(range(2)):
            for dk in ti.static(range(2)):
                hashed = (
                    noise_permutations[table, (i + di) & (PERLIN_SIZE - 1)][0]
                    ^ noise_permutations[table, (j + dj) & (PERLIN_SIZE - 1)][1]
                    ^ noise_permutations[table, (k + dk) & (PERLIN_SIZE - 1)][2]
                )
                offset = frac - vec3(di, dj, dk)
                weight = (
                    (di * smooth.x + (1 - di) * (1.0 - smooth.x))
                    * (dj * smooth.y + (1 - dj) * (1.0 - smooth.y))
                    * (dk * smooth.z + (1 - dk) * (1.0 - smooth.z))
                )
                accum += weight * tm.dot(noise_gradients[table, hashed], offset)
    return accum


@ti.func
def turbulence(table: ti.i32, p: vec3) -> ti.f32:
    """|sum of NOISE_OCTAVES octaves|, each at double the frequency and half the weight."""
    accum = 0.0
    point = p
    weight = 1.0
    for _ in range(NOISE_OCTAVES):
        accum += weight * perlin_noise(table, point)
        weight *= 0.5
        point *= 2.0
    return ti.abs(accum)


@ti.func
def sample_noise(idx: ti.i32, point: vec3) -> vec3:
    phase = texture_scales[idx] * point.z + 10.0 * turbulence(texture_noise_tables[idx], point)
    return 0.5 * (1.0 + ti.sin(phase)) * vec3(1.0, 1.0, 1.0)


@ti.func
def evaluate_texture(texture_id: ti.i32, u: ti.f32, v: ti.f32, point: vec3) -> vec3:
    """Evaluate a texture at surface coordinates (u, v) and world point.

    Args:
        texture_id: The texture id. Negative ids evaluate to black.
        u: First surface coordinate.
        v: Second surface coordinate.
        point: The world-space hit point.

    Returns:
        The RGB color.
    """
    color = vec3(0.0, 0.0, 0.0)
    if texture_id >= 0:
        idx = texture_id
        depth = 0
        while depth < MAX_TEXTURE_DEPTH and _is_checker(texture_kinds[idx]):
            if _select_odd(idx, u, v, point) == 1:
                idx = texture_odd[idx]
            else:
                idx = texture_even[idx]
            depth += 1

        kind = texture_kinds[idx]
        if kind == int(TextureKind.SOLID):
            color = texture_colors[idx]
        elif kind == int(TextureKind.IMAGE):
            color = sample_image(idx, u, v)
        elif kind == int(TextureKind.NOISE):
            color = sample_noise(idx, point)
    return color
