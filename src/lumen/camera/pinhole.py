"""Pinhole camera: primary rays from a position, a view direction and a field of view.

Supported:
- Position plus viewing direction and an up hint
- Vertical field of view specification and a focal length
- Arbitrary aspect ratios
- Jittered sampling for anti-aliasing

The camera builds an orthonormal basis from the view parameters:
- forward: the normalized viewing direction
- right: normalize(forward x up), pointing right in the image plane
- true_up: right x forward, pointing up in the image plane

The viewport sits at focal_length along forward. Its height is
2 * focal_length * tan(fov / 2), so the field of view does not depend on the
focal length; the focal length only moves the plane the rays pass through.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from lumen.camera.pinhole import PinholeCamera, setup_camera, get_ray
    >>>
    >>> # Camera at z=3 looking toward the origin
    >>> camera = PinholeCamera(
    ...     position=(0.0, 0.0, 3.0),
    ...     direction=(0.0, 0.0, -1.0),
    ...     up=(0.0, 1.0, 0.0),
    ...     fov=60.0,
    ... )
    >>> setup_camera(camera, aspect_ratio=16.0 / 9.0)
    >>>
    >>> # Generate ray for the image center
    >>> @ti.kernel
    ... def render():
    ...     ray = get_ray(0.5, 0.5)
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from lumen.core.ray import Ray, make_ray, vec3
from lumen.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Below this |direction x up| the two vectors count as parallel
PARALLEL_TOLERANCE = 1e-8

# =============================================================================
# Configuration
# =============================================================================


@dataclass
class PinholeCamera:
    """Configuration for a pinhole (perspective) camera.

    Attributes:
        position: Camera position in world space (x, y, z).
        direction: Viewing direction; need not be normalized.
        up: Up hint; must not be parallel to direction.
        fov: Vertical field of view in degrees, in (0, 180).
        focal_length: Distance from the position to the image plane.
    """

    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    direction: tuple[float, float, float] = (0.0, 0.0, -1.0)
    up: tuple[float, float, float] = (0.0, 1.0, 0.0)
    fov: float = 90.0
    focal_length: float = 1.0


# =============================================================================
# Kernel-side state
# =============================================================================

# World-space eye point
_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# right, true up and forward, as set by setup_camera
_camera_right = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_up = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_forward = ti.Vector.field(3, dtype=ti.f32, shape=())

# Image plane: full-width and full-height edges plus the corner at (0, 0)
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())


# =============================================================================
# Python-side setup
# =============================================================================


def camera_basis(camera: PinholeCamera) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Compute the (right, true_up, forward) basis of a camera.

    Raises:
        ConfigurationError: If direction is zero or parallel to up.
    """
    direction = np.asarray(camera.direction, dtype=np.float64)
    up = np.asarray(camera.up, dtype=np.float64)
    if direction.shape != (3,) or up.shape != (3,):
        raise ConfigurationError("Camera direction and up must be 3-vectors")

    length = np.linalg.norm(direction)
    if length == 0.0 or not np.isfinite(length):
        raise ConfigurationError(f"Camera direction {tuple(direction)} has no length")
    forward = direction / length

    right = np.cross(forward, up)
    right_length = np.linalg.norm(right)
    if right_length < PARALLEL_TOLERANCE:
        raise ConfigurationError(
            f"Camera up {tuple(up)} is parallel to direction {tuple(direction)}"
        )
    right = right / right_length
    true_up = np.cross(right, forward)
    return right, true_up, forward


def setup_camera(camera: PinholeCamera, aspect_ratio: float) -> None:
    """Initialize camera state from configuration.

    Computes the camera's orthonormal basis and viewport geometry and writes
    them to Taichi fields. This must be called before rendering.

    Args:
        camera: Camera configuration with position, orientation, and FOV.
        aspect_ratio: Width divided by height of the output image.

    Raises:
        ConfigurationError: If the direction is zero or parallel to up, or
            the fov, focal length or aspect ratio is not positive.
    """
    if not 0.0 < camera.fov < 180.0:
        raise ConfigurationError(f"Camera fov = {camera.fov} must be in (0, 180) degrees")
    if camera.focal_length <= 0.0:
        raise ConfigurationError(f"Camera focal length = {camera.focal_length} must be positive")
    if aspect_ratio <= 0.0:
        raise ConfigurationError(f"Aspect ratio = {aspect_ratio} must be positive")

    right, true_up, forward = camera_basis(camera)
    position = np.asarray(camera.position, dtype=np.float64)

    theta = math.radians(camera.fov)
    viewport_height = 2.0 * camera.focal_length * math.tan(theta / 2.0)
    viewport_width = aspect_ratio * viewport_height

    horizontal = viewport_width * right
    vertical = viewport_height * true_up
    center = position + camera.focal_length * forward
    lower_left = center - horizontal / 2.0 - vertical / 2.0

    _camera_origin[None] = position.tolist()
    _camera_right[None] = right.tolist()
    _camera_up[None] = true_up.tolist()
    _camera_forward[None] = forward.tolist()
    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()

    logger.debug(
        f"Camera at {tuple(position)} looking {tuple(forward)}, "
        f"viewport {viewport_width:.3f} x {viewport_height:.3f}"
    )


# =============================================================================
# Ray Generation (Taichi-compatible)
# =============================================================================


@ti.func
def get_ray(s: ti.f32, t: ti.f32) -> Ray:
    """Generate a ray through normalized image coordinates (s, t).

    Args:
        s: Horizontal coordinate in [0, 1] (left to right).
        t: Vertical coordinate in [0, 1] (bottom to top).

    Returns:
        A Ray from the camera position with a normalized direction through
        the specified point on the image plane.
    """
    point_on_viewport = (
        _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]
    )
    origin = _camera_origin[None]
    direction = tm.normalize(point_on_viewport - origin)
    return make_ray(origin, direction)


@ti.func
def get_ray_jittered(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32) -> Ray:
    """Generate a jittered ray for anti-aliasing.

    Adds a uniform random sub-pixel offset in [0, 1) to the pixel
    coordinates before converting to normalized image coordinates.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        A Ray with random sub-pixel offset for anti-aliasing.
    """
    jitter_s = ti.random(ti.f32)
    jitter_t = ti.random(ti.f32)

    s = (ti.cast(pixel_i, ti.f32) + jitter_s) / ti.cast(width, ti.f32)
    t = (ti.cast(pixel_j, ti.f32) + jitter_t) / ti.cast(height, ti.f32)

    return get_ray(s, t)


@ti.func
def get_camera_origin() -> vec3:
    """Get the camera position in world space."""
    return _camera_origin[None]


@ti.func
def get_camera_basis():
    """Get the camera's orthonormal basis vectors as (right, up, forward)."""
    return _camera_right[None], _camera_up[None], _camera_forward[None]


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, float, float]]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, right, up, forward, horizontal, vertical and
        lower_left.
    """
    fields = {
        "origin": _camera_origin,
        "right": _camera_right,
        "up": _camera_up,
        "forward": _camera_forward,
        "horizontal": _viewport_horizontal,
        "vertical": _viewport_vertical,
        "lower_left": _lower_left_corner,
    }
    info = {}
    for name, value in fields.items():
        vec = value[None]
        info[name] = (float(vec[0]), float(vec[1]), float(vec[2]))
    return info
