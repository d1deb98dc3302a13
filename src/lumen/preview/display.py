"""Display pipeline and Matplotlib preview for rendered images.

Renders come out of the integrator as linear, unclamped radiance. Before an
image can be shown or written as 8-bit it goes through the display pipeline:

    1. Tone mapping (optional): "reinhard" or "exposure"
    2. Gamma encoding (2.2 for sRGB displays)
    3. Clamping to [0, 1]

Example:
    >>> from lumen.core.integrator import RenderSettings, render_scene
    >>> from lumen.preview.display import show_preview
    >>> from lumen.scene.cornell_box import create_cornell_box_scene
    >>>
    >>> scene, camera, _ = create_cornell_box_scene()
    >>> image = render_scene(scene, camera, RenderSettings(256, 256, 64))
    >>> show_preview(image, tone_map="reinhard")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal, Union

import numpy as np
import numpy.typing as npt

from lumen.errors import ConfigurationError

if TYPE_CHECKING:
    from lumen.core.progressive import ProgressiveRenderer

logger = logging.getLogger(__name__)

# Names accepted by process_image_for_display
ToneMapMethod = Literal["none", "reinhard", "exposure"]

# A preview source: a linear (H, W, 3) image or a renderer holding one
ImageSource = Union["ProgressiveRenderer", npt.NDArray[np.float32]]


def tone_map_reinhard(image: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Compress radiance into [0, 1) with the Reinhard operator c / (1 + c)."""
    image = np.maximum(image, 0.0)
    return (image / (1.0 + image)).astype(np.float32)


def tone_map_exposure(
    image: npt.NDArray[np.float32],
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Map radiance to [0, 1) with 1 - exp(-c * exposure).

    Args:
        image: Linear image array of shape (H, W, 3).
        exposure: Higher values brighten the image.
    """
    image = np.maximum(image, 0.0)
    return (1.0 - np.exp(-image * exposure)).astype(np.float32)


def apply_gamma(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Gamma-encode a linear image, clamping it to [0, 1] first.

    Raises:
        ConfigurationError: If gamma is not positive.
    """
    if gamma <= 0.0:
        raise ConfigurationError(f"gamma = {gamma} must be positive")
    if gamma == 1.0:
        return image

    # Negative values would turn into NaN under the power
    image = np.clip(image, 0.0, 1.0)
    return np.power(image, 1.0 / gamma).astype(np.float32)


def process_image_for_display(
    image: npt.NDArray[np.float32],
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Run a linear image through tone mapping, gamma and clamping.

    Args:
        image: Linear image array of shape (H, W, 3).
        tone_map: "none", "reinhard" or "exposure".
        gamma: Display gamma; 2.2 approximates sRGB.
        exposure: Multiplier used by the "exposure" operator.

    Returns:
        A new float32 array in [0, 1] with the same shape.

    Raises:
        ConfigurationError: If the tone mapping method is unknown or the
            image is not (H, W, 3).
    """
    image = np.asarray(image, dtype=np.float32)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ConfigurationError(f"Expected an (H, W, 3) image, got shape {image.shape}")

    # Non-finite samples display as black
    result = np.nan_to_num(image, nan=0.0, posinf=0.0, neginf=0.0)

    if tone_map == "reinhard":
        result = tone_map_reinhard(result)
    elif tone_map == "exposure":
        result = tone_map_exposure(result, exposure)
    elif tone_map != "none":
        raise ConfigurationError(f"Unknown tone mapping method: {tone_map}")

    result = apply_gamma(result, gamma)
    return np.clip(result, 0.0, 1.0).astype(np.float32)


def linear_image_of(source: ImageSource) -> npt.NDArray[np.float32]:
    """Get the linear (H, W, 3) image from an array or a renderer."""
    if isinstance(source, np.ndarray):
        return source
    return source.get_linear_image()


def show_preview(
    source: ImageSource,
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
    title: str | None = None,
    figsize: tuple[float, float] = (8, 8),
    block: bool = True,
) -> None:
    """Display a render as a Matplotlib figure.

    Args:
        source: A linear image from render_scene() or a ProgressiveRenderer.
        tone_map: "none", "reinhard" or "exposure".
        gamma: Display gamma; 2.2 approximates sRGB.
        exposure: Multiplier used by the "exposure" operator.
        title: Custom title; renderers default to their sample count.
        figsize: (width, height) in inches.
        block: Wait for the window to close before returning.
    """
    import matplotlib.pyplot as plt

    display_image = process_image_for_display(
        linear_image_of(source),
        tone_map=tone_map,
        gamma=gamma,
        exposure=exposure,
    )

    if title is None:
        title = "Render Preview"
        if not isinstance(source, np.ndarray):
            title += f" - {source.sample_count} SPP"
        if tone_map != "none":
            title += f" ({tone_map})"

    height, width = display_image.shape[:2]
    logger.debug(f"Showing {width}x{height} preview")

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    ax.imshow(display_image)
    ax.axis("off")
    ax.set_title(title)

    plt.tight_layout()
    plt.show(block=block)
