"""Preview module for output and visualization.

Components:
    display: Tone mapping, gamma and the Matplotlib preview
    export: PNG export through Pillow

Example:
    >>> from lumen.preview import show_preview, save_png
    >>> show_preview(image, tone_map="reinhard")
    >>> save_png(image, "output.png", gamma=2.2)
"""

from lumen.preview.display import (
    ToneMapMethod,
    apply_gamma,
    process_image_for_display,
    show_preview,
    tone_map_exposure,
    tone_map_reinhard,
)
from lumen.preview.export import compute_rmse, image_to_uint8, save_png

__all__ = [
    # Display functions
    "show_preview",
    # Tone mapping
    "tone_map_reinhard",
    "tone_map_exposure",
    "apply_gamma",
    "process_image_for_display",
    "ToneMapMethod",
    # Export functions
    "save_png",
    "image_to_uint8",
    "compute_rmse",
]
