"""Image decoding for image textures.

Images are decoded once, at scene construction, into an (height, width, 3)
float32 array with values in [0, 1] and the top row first.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from lumen.errors import ResourceError

logger = logging.getLogger(__name__)


def load_image(path: str | Path) -> npt.NDArray[np.float32]:
    """Decode an image file into linear texel values.

    Args:
        path: Path of the image file (any format Pillow can read).

    Returns:
        Array of shape (height, width, 3), dtype float32, values in [0, 1].

    Raises:
        ResourceError: If the file is missing or cannot be decoded.
    """
    path = Path(path)
    try:
        with PILImage.open(path) as image:
            rgb = image.convert("RGB")
            texels = np.asarray(rgb, dtype=np.float32) / 255.0
    except FileNotFoundError as exc:
        raise ResourceError(f"Image texture file not found: {path}") from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise ResourceError(f"Could not decode image texture {path}: {exc}") from exc

    logger.debug(f"Decoded image texture {path} ({texels.shape[1]}x{texels.shape[0]})")
    return texels


def validate_texels(texels: npt.ArrayLike, source: str = "<array>") -> npt.NDArray[np.float32]:
    """Check a caller-provided texel buffer and convert it to float32.

    Raises:
        ResourceError: If the buffer is not a non-empty (h, w, 3) array.
    """
    array = np.asarray(texels, dtype=np.float32)
    if array.ndim != 3 or array.shape[2] != 3 or array.shape[0] == 0 or array.shape[1] == 0:
        raise ResourceError(f"Image texture {source} must have shape (height, width, 3), got {array.shape}")
    return np.ascontiguousarray(array)
