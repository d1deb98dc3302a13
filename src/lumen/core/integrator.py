"""Monte Carlo path tracer: kernels, render target and the one-call render API.

Each sample follows one camera path through the scene. Materials decide how
the path scatters and textures supply albedo and emission at each hit.
Optional Russian roulette ends dim paths early.

The radiance of a ray is defined recursively: black once the depth budget is
spent, the background if the ray escapes, otherwise the emission at the hit
plus the attenuated radiance of the scattered ray. ``trace_ray`` evaluates
that recursion as a loop with a radiance and a throughput accumulator.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from lumen.core.integrator import RenderSettings, render_scene
    >>> from lumen.scene.cornell_box import create_cornell_box_scene
    >>>
    >>> scene, camera, _ = create_cornell_box_scene()
    >>> settings = RenderSettings(width=128, height=128, samples_per_pixel=16)
    >>> image = render_scene(scene, camera, settings)
    >>> image.shape
    (128, 128, 3)
"""

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from lumen.camera.pinhole import get_ray_jittered, setup_camera
from lumen.core.ray import face_forward
from lumen.errors import ConfigurationError
from lumen.materials.dielectric import get_dielectric_ior, scatter_dielectric
from lumen.materials.diffuse_light import (
    emitted_diffuse_light,
    get_diffuse_light_emit_texture,
    scatter_diffuse_light,
)
from lumen.materials.lambertian import get_lambertian_albedo_texture, scatter_lambertian
from lumen.materials.metal import get_metal_albedo_texture, get_metal_fuzz, scatter_metal
from lumen.scene.intersection import get_background, intersect_scene
from lumen.scene.manager import MaterialType, get_material_type, get_material_type_index
from lumen.textures.texture import evaluate_texture

if TYPE_CHECKING:
    from lumen.camera.pinhole import PinholeCamera
    from lumen.scene.manager import SceneManager

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Scattering events per path unless configured otherwise
DEFAULT_MAX_DEPTH = 8

# Upper bound on the Russian roulette survival probability
MAX_RR_PROBABILITY = 0.95

# Distance scattered rays start off the surface
RAY_EPSILON = 1e-4

# Valid ray interval for scene queries
T_MIN = 1e-4
T_MAX = 1e10


# =============================================================================
# Render Settings
# =============================================================================


@dataclass
class RenderSettings:
    """Image size and sampling parameters of a render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Jittered samples averaged per pixel.
        max_depth: Number of scattering events a path may contain. 0 shows
            only emitters and the background.
        russian_roulette_depth: Bounce from which paths may be terminated
            early with probability based on their throughput. 0 disables it.
    """

    width: int = 400
    height: int = 225
    samples_per_pixel: int = 16
    max_depth: int = DEFAULT_MAX_DEPTH
    russian_roulette_depth: int = 0

    def validate(self) -> None:
        """Raise ConfigurationError if any setting is out of range."""
        if not (0 < self.width <= MAX_IMAGE_WIDTH and 0 < self.height <= MAX_IMAGE_HEIGHT):
            raise ConfigurationError(
                f"Image dimensions ({self.width}x{self.height}) must be positive and at most "
                f"{MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT}"
            )
        if self.samples_per_pixel < 1:
            raise ConfigurationError(f"samples_per_pixel = {self.samples_per_pixel} must be at least 1")
        if self.max_depth < 0:
            raise ConfigurationError(f"max_depth = {self.max_depth} must not be negative")
        if self.russian_roulette_depth < 0:
            raise ConfigurationError(
                f"russian_roulette_depth = {self.russian_roulette_depth} must not be negative"
            )

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


# =============================================================================
# Render Target
# =============================================================================

# Buffers are allocated once at the largest size; the active region is
# (_image_width, _image_height)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Running mean radiance per pixel, indexed (i, j) with j = 0 the bottom row
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

_render_target_ready = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Set the active image size and zero the accumulators.

    Raises:
        ConfigurationError: If the size is not within
            MAX_IMAGE_WIDTH x MAX_IMAGE_HEIGHT.
    """
    if not (0 < width <= MAX_IMAGE_WIDTH and 0 < height <= MAX_IMAGE_HEIGHT):
        raise ConfigurationError(
            f"Image dimensions ({width}x{height}) must be positive and at most "
            f"{MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT}"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_ready[None] = 1
    clear_render_target()


def clear_render_target() -> None:
    _color_buffer.fill(0.0)
    _sample_count.fill(0)


def get_image_dimensions() -> tuple[int, int]:
    """(width, height) of the active region."""
    return int(_image_width[None]), int(_image_height[None])


def _require_render_target() -> None:
    if _render_target_ready[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


# =============================================================================
# Material Dispatch
# =============================================================================


@ti.func
def _scatter_material(
    material_id: ti.i32,
    incident_direction: vec3,
    hit_point: vec3,
    outward_normal: vec3,
    u: ti.f32,
    v: ti.f32,
):
    """Dispatch to the appropriate material scattering function.

    Args:
        material_id: The unified material ID.
        incident_direction: The incoming ray direction (normalized).
        hit_point: The intersection point on the surface.
        outward_normal: The geometric normal pointing out of the shape.
        u: Surface coordinate u at the hit.
        v: Surface coordinate v at the hit.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter).
    """
    mat_type = get_material_type(material_id)
    type_index = get_material_type_index(material_id)
    normal, _ = face_forward(outward_normal, incident_direction)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0

    if mat_type == int(MaterialType.LAMBERTIAN):
        albedo = evaluate_texture(get_lambertian_albedo_texture(type_index), u, v, hit_point)
        scattered_direction, attenuation, did_scatter = scatter_lambertian(albedo, normal)

    elif mat_type == int(MaterialType.METAL):
        albedo = evaluate_texture(get_metal_albedo_texture(type_index), u, v, hit_point)
        fuzz = get_metal_fuzz(type_index)
        scattered_direction, attenuation, did_scatter = scatter_metal(
            albedo, fuzz, incident_direction, normal
        )

    elif mat_type == int(MaterialType.DIELECTRIC):
        ior = get_dielectric_ior(type_index)
        scattered_direction, attenuation, did_scatter = scatter_dielectric(
            ior, incident_direction, outward_normal
        )

    elif mat_type == int(MaterialType.DIFFUSE_LIGHT):
        scattered_direction, attenuation, did_scatter = scatter_diffuse_light()

    return scattered_direction, attenuation, did_scatter


@ti.func
def _get_emission(material_id: ti.i32, hit_point: vec3, u: ti.f32, v: ti.f32) -> vec3:
    """Get the emission from a surface; black unless it is a diffuse light."""
    emission = vec3(0.0, 0.0, 0.0)
    if get_material_type(material_id) == int(MaterialType.DIFFUSE_LIGHT):
        emit_texture = get_diffuse_light_emit_texture(get_material_type_index(material_id))
        emission = emitted_diffuse_light(evaluate_texture(emit_texture, u, v, hit_point))
    return emission


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def _offset_ray_origin(point: vec3, normal: vec3, direction: vec3) -> vec3:
    """Offset ray origin to avoid self-intersection.

    Pushes the point slightly along the geometric normal toward the side the
    scattered ray travels (above the surface for reflection, below for
    refraction).
    """
    offset_dir = normal
    if tm.dot(direction, normal) < 0.0:
        offset_dir = -normal
    return point + RAY_EPSILON * offset_dir


@ti.func
def trace_ray(ray_origin: vec3, ray_direction: vec3, depth: ti.i32, rr_depth: ti.i32) -> vec3:
    """Estimate the radiance arriving along a ray.

    Args:
        ray_origin: The ray origin.
        ray_direction: The ray direction (normalized).
        depth: Number of rays the path may trace, counting this one.
        rr_depth: Bounce from which Russian roulette applies; 0 disables it.

    Returns:
        The estimated radiance (RGB).
    """
    origin = ray_origin
    direction = ray_direction
    radiance = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)

    # Active flag for path continuation (no break inside ti.func loops)
    active = 1

    for bounce in range(depth):
        if active == 1:
            hit_record = intersect_scene(origin, direction, T_MIN, T_MAX)

            if hit_record.hit == 0:
                radiance += throughput * get_background(direction)
                active = 0
            else:
                hit_point = hit_record.point
                u = hit_record.u
                v = hit_record.v
                material_id = hit_record.material_id

                radiance += throughput * _get_emission(material_id, hit_point, u, v)

                scattered_direction, attenuation, did_scatter = _scatter_material(
                    material_id, direction, hit_point, hit_record.normal, u, v
                )

                if did_scatter == 0:
                    active = 0
                else:
                    throughput *= attenuation

                    if rr_depth > 0 and bounce + 1 >= rr_depth:
                        luminance = (
                            0.2126 * throughput.x + 0.7152 * throughput.y + 0.0722 * throughput.z
                        )
                        rr_prob = tm.min(luminance, MAX_RR_PROBABILITY)
                        if rr_prob <= 0.0 or ti.random(ti.f32) > rr_prob:
                            active = 0
                        else:
                            throughput /= rr_prob

                    if active == 1:
                        origin = _offset_ray_origin(hit_point, hit_record.normal, scattered_direction)
                        direction = scattered_direction

    return radiance


@ti.func
def render_sample_impl(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    max_depth: ti.i32,
    rr_depth: ti.i32,
) -> vec3:
    """Render a single jittered sample for a pixel (j = 0 is the bottom row)."""
    ray = get_ray_jittered(pixel_i, pixel_j, width, height)
    return trace_ray(ray.origin, ray.direction, max_depth + 1, rr_depth)


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_one_spp(width: ti.i32, height: ti.i32, max_depth: ti.i32, rr_depth: ti.i32):
    """Render one sample per pixel and accumulate a running average."""
    for i, j in ti.ndrange(width, height):
        color = render_sample_impl(i, j, width, height, max_depth, rr_depth)

        # Replace NaN/Inf and negative components with zero
        for c in ti.static(range(3)):
            if tm.isnan(color[c]) or tm.isinf(color[c]) or color[c] < 0.0:
                color[c] = 0.0

        _sample_count[i, j] += 1
        n = _sample_count[i, j]

        # Running average: avg_n = avg_{n-1} + (x_n - avg_{n-1}) / n
        _color_buffer[i, j] += (color - _color_buffer[i, j]) / ti.cast(n, ti.f32)


@ti.kernel
def _render_single_pixel(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    max_depth: ti.i32,
    rr_depth: ti.i32,
) -> vec3:
    """Render a single sample for a specific pixel."""
    return render_sample_impl(pixel_i, pixel_j, width, height, max_depth, rr_depth)


# =============================================================================
# Public Rendering API
# =============================================================================


def render_sample(
    pixel_i: int,
    pixel_j: int,
    max_depth: int = DEFAULT_MAX_DEPTH,
    russian_roulette_depth: int = 0,
) -> tuple[float, float, float]:
    """Render a single sample for a specific pixel.

    This is a Python-callable function for testing. For production rendering,
    use render_image() which processes all pixels in parallel.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        max_depth: Number of scattering events allowed.
        russian_roulette_depth: Bounce from which Russian roulette applies.

    Returns:
        Tuple of (R, G, B) color values.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _require_render_target()

    width, height = get_image_dimensions()
    color = _render_single_pixel(pixel_i, pixel_j, width, height, max_depth, russian_roulette_depth)
    return (float(color[0]), float(color[1]), float(color[2]))


def render_image(
    num_samples: int = 1,
    max_depth: int = DEFAULT_MAX_DEPTH,
    russian_roulette_depth: int = 0,
) -> None:
    """Render the image with the specified number of samples per pixel.

    Progressively accumulates samples into the color buffer. Can be called
    multiple times to add more samples for convergence.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _require_render_target()

    width, height = get_image_dimensions()
    for _ in range(num_samples):
        _render_one_spp(width, height, max_depth, russian_roulette_depth)


def get_total_samples() -> int:
    """Get the number of samples accumulated per pixel.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _require_render_target()
    return int(_sample_count[0, 0])


def get_image_numpy() -> npt.NDArray[np.float32]:
    """Get the accumulated image as linear, unclamped RGB.

    Returns:
        NumPy array of shape (height, width, 3), dtype float32, with the
        top-left pixel first.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _require_render_target()

    width, height = get_image_dimensions()
    image = _color_buffer.to_numpy()[:width, :height, :]

    # (width, height, 3) -> (height, width, 3), then top row first
    image = np.transpose(image, (1, 0, 2))
    image = np.flipud(image)
    return np.ascontiguousarray(image, dtype=np.float32)


def render_scene(
    scene: "SceneManager",
    camera: "PinholeCamera",
    settings: RenderSettings | None = None,
) -> npt.NDArray[np.float32]:
    """Render a scene to a linear RGB image.

    Builds the scene's BVH, sets up the camera for the image's aspect ratio,
    and averages ``samples_per_pixel`` jittered samples per pixel.

    Args:
        scene: The scene to render.
        camera: The camera to render from.
        settings: Image size and sampling; defaults to RenderSettings().

    Returns:
        A float32 array of shape (height, width, 3), linear RGB, top-left
        origin, not clamped.

    Raises:
        ConfigurationError: If the settings or camera are invalid.
    """
    settings = settings or RenderSettings()
    settings.validate()

    scene.build()
    setup_camera(camera, settings.aspect_ratio)
    setup_render_target(settings.width, settings.height)

    logger.info(
        f"Rendering {settings.width}x{settings.height}, {settings.samples_per_pixel} spp, "
        f"max depth {settings.max_depth}"
    )
    start = time.perf_counter()
    render_image(settings.samples_per_pixel, settings.max_depth, settings.russian_roulette_depth)
    image = get_image_numpy()
    logger.info(f"Render finished in {time.perf_counter() - start:.2f}s")
    return image
