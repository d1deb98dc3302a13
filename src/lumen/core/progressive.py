"""Batched sample accumulation with progress reporting.

A ProgressiveRenderer owns the integrator's render target and adds samples
to it in batches. After each batch it reports ``(samples so far, target)``
either through a callback or by yielding from a generator. The image can
be read at any time, so a caller may save or preview intermediate results
and stop whenever the noise is low enough.

Scene and camera are global: build the scene and call ``setup_camera``
before rendering.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from lumen.camera.pinhole import setup_camera
    >>> from lumen.core.progressive import ProgressiveRenderer
    >>> from lumen.scene.cornell_box import create_cornell_box_scene
    >>>
    >>> scene, camera, _ = create_cornell_box_scene()
    >>> scene.build()
    >>> setup_camera(camera, aspect_ratio=1.0)
    >>> renderer = ProgressiveRenderer(256, 256)
    >>> for done, target in renderer.render_progressive(64, batch_size=16):
    ...     renderer.save_image("cornell.png")
"""

import logging
from collections.abc import Callable, Iterator

import numpy as np
import numpy.typing as npt

from lumen.core.integrator import (
    DEFAULT_MAX_DEPTH,
    clear_render_target,
    get_image_numpy,
    get_total_samples,
    render_image,
    setup_render_target,
)
from lumen.preview.display import apply_gamma
from lumen.preview.export import image_to_uint8, save_png

logger = logging.getLogger(__name__)

# Called with (accumulated samples per pixel, target samples per pixel)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """Accumulates path-traced samples into the shared render target.

    Attributes:
        max_depth: Scattering events per path.
        russian_roulette_depth: Bounce from which Russian roulette applies;
            0 disables it.
    """

    def __init__(
        self,
        width: int,
        height: int,
        max_depth: int = DEFAULT_MAX_DEPTH,
        russian_roulette_depth: int = 0,
    ) -> None:
        """Allocate (and clear) a width x height render target.

        Raises:
            ConfigurationError: If the size is outside the render target
                capacity.
        """
        self.max_depth = max_depth
        self.russian_roulette_depth = russian_roulette_depth
        self._width = 0
        self._height = 0
        self.resize(width, height)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def sample_count(self) -> int:
        """Samples per pixel accumulated since the last reset."""
        return get_total_samples()

    def reset(self) -> None:
        """Discard accumulated samples, keeping the size."""
        clear_render_target()

    def resize(self, width: int, height: int) -> None:
        """Change the image size. Accumulated samples are discarded."""
        setup_render_target(width, height)
        self._width = width
        self._height = height

    def _batches(self, num_samples: int, batch_size: int) -> Iterator[tuple[int, int]]:
        target = self.sample_count + num_samples
        batch_size = max(1, batch_size)
        remaining = num_samples
        while remaining > 0:
            batch = min(batch_size, remaining)
            render_image(batch, self.max_depth, self.russian_roulette_depth)
            remaining -= batch
            done = self.sample_count
            logger.debug(f"Accumulated {done}/{target} samples")
            yield done, target

    def render(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Add num_samples samples per pixel, in batches of batch_size.

        A non-positive num_samples renders nothing. The callback, if given,
        runs after every batch with (accumulated, target).
        """
        for done, target in self._batches(num_samples, batch_size):
            if callback is not None:
                callback(done, target)

    def render_progressive(self, num_samples: int = 1, batch_size: int = 1) -> Iterator[tuple[int, int]]:
        """Generator form of render(): yields (accumulated, target) per batch.

        Nothing is rendered until the generator is iterated, and stopping
        early keeps the samples rendered so far.
        """
        yield from self._batches(num_samples, batch_size)

    def get_linear_image(self) -> npt.NDArray[np.float32]:
        """Accumulated radiance, linear and unclamped, top row first."""
        return get_image_numpy()

    def get_image_numpy(self, gamma: float = 1.0) -> npt.NDArray[np.float32]:
        """The image clamped to [0, 1] and gamma-encoded."""
        return apply_gamma(np.clip(get_image_numpy(), 0.0, 1.0), gamma)

    def get_image_uint8(self, gamma: float = 2.2) -> npt.NDArray[np.uint8]:
        return image_to_uint8(get_image_numpy(), gamma=gamma)

    def save_image(self, filepath: str, gamma: float = 2.2) -> None:
        """Write the current image as a PNG.

        Raises:
            ResourceError: If the file cannot be written.
        """
        save_png(self, filepath, gamma=gamma)

    def __repr__(self) -> str:
        return f"ProgressiveRenderer(width={self.width}, height={self.height}, samples={self.sample_count})"
