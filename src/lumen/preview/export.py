"""PNG export and image comparison.

Writes renders as 8-bit sRGB PNG files through Pillow, after running them
through the display pipeline (tone mapping, gamma, clamping).

Example:
    >>> from lumen.core.integrator import RenderSettings, render_scene
    >>> from lumen.preview.export import save_png
    >>> from lumen.scene.cornell_box import create_cornell_box_scene
    >>>
    >>> scene, camera, _ = create_cornell_box_scene()
    >>> image = render_scene(scene, camera, RenderSettings(256, 256, 64))
    >>> save_png(image, "cornell.png", tone_map="reinhard")
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

from lumen.errors import ResourceError
from lumen.preview.display import (
    ImageSource,
    ToneMapMethod,
    linear_image_of,
    process_image_for_display,
)

logger = logging.getLogger(__name__)


def image_to_uint8(
    image: npt.NDArray[np.float32],
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> npt.NDArray[np.uint8]:
    """Run a linear image through the display pipeline and quantize it.

    Values are rounded to the nearest 8-bit level.

    Returns:
        A uint8 array with the same (H, W, 3) shape.
    """
    processed = process_image_for_display(
        image,
        tone_map=tone_map,
        gamma=gamma,
        exposure=exposure,
    )
    return np.round(processed * 255.0).astype(np.uint8)


def save_png(
    source: ImageSource,
    filepath: str | Path,
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> None:
    """Save a render as a PNG file.

    Args:
        source: A linear image from render_scene() or a ProgressiveRenderer.
        filepath: Destination; written as PNG whatever the suffix.
        tone_map: "none", "reinhard" or "exposure".
        gamma: Display gamma; 2.2 approximates sRGB.
        exposure: Multiplier used by the "exposure" operator.

    Raises:
        ResourceError: If the file cannot be written.
    """
    image_uint8 = image_to_uint8(
        linear_image_of(source),
        tone_map=tone_map,
        gamma=gamma,
        exposure=exposure,
    )

    try:
        PILImage.fromarray(image_uint8).save(filepath, format="PNG")
    except OSError as exc:
        raise ResourceError(f"Could not write image {filepath}: {exc}") from exc

    height, width = image_uint8.shape[:2]
    logger.info(f"Saved {width}x{height} image to {filepath}")


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Root mean squared difference over all pixels and channels.

    Raises:
        ValueError: If the shapes differ.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
