"""Integration tests for the end-to-end rendering pipeline.

This module tests the complete rendering pipeline from scene creation through
final image output. It verifies that all components work together correctly
and that the output meets basic quality criteria.

Tests are designed to be fast (low resolution, few samples) while still
exercising the full pipeline.

Note: Imports are done inside test methods to avoid Taichi initialization issues.
The conftest.py fixture initializes Taichi before tests run.
"""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest
from PIL import Image as PILImage


class TestLitSphere:
    """A diffuse sphere under an infinite emitting plane."""

    EMISSION = 2.0

    @pytest.fixture
    def lit_sphere(self, scene_manager):
        from lumen.camera.pinhole import PinholeCamera
        from lumen.core.transform import Transform

        clay = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        lamp = scene_manager.add_diffuse_light_material((self.EMISSION,) * 3)
        scene_manager.add_sphere(clay)
        scene_manager.add_plane(lamp, transform=Transform(translate=(0.0, 5.0, 0.0), rotate=(90.0, 0.0, 0.0)))
        scene_manager.set_background((0.0, 0.0, 0.0))

        camera = PinholeCamera(position=(0.0, 2.5, 0.0), direction=(0.0, -1.0, 0.0), up=(0.0, 0.0, -1.0), fov=60.0)
        return scene_manager, camera

    def test_top_of_sphere_is_lit(self, lit_sphere) -> None:
        """Test that the top of the sphere is between black and the emission."""
        from lumen.core.integrator import RenderSettings, render_scene

        scene, camera = lit_sphere
        image = render_scene(scene, camera, RenderSettings(width=8, height=8, samples_per_pixel=16, max_depth=1))

        center = image[3:5, 3:5].mean(axis=(0, 1))
        assert np.all(center > 0.0)
        assert np.all(center < self.EMISSION)
        # One diffuse bounce into the upper hemisphere reaches the plane
        np.testing.assert_allclose(center, 0.5 * self.EMISSION, rtol=0.1)

    def test_corners_see_black_background(self, lit_sphere) -> None:
        """Test that rays missing the sphere escape below the light."""
        from lumen.core.integrator import RenderSettings, render_scene

        scene, camera = lit_sphere
        image = render_scene(scene, camera, RenderSettings(width=8, height=8, samples_per_pixel=4, max_depth=1))

        for corner in (image[0, 0], image[0, -1], image[-1, 0], image[-1, -1]):
            np.testing.assert_array_equal(corner, [0.0, 0.0, 0.0])

    def test_without_bounces_sphere_is_black(self, lit_sphere) -> None:
        """Test that max_depth 0 leaves the non-emissive sphere black."""
        from lumen.core.integrator import RenderSettings, render_scene

        scene, camera = lit_sphere
        image = render_scene(scene, camera, RenderSettings(width=8, height=8, samples_per_pixel=2, max_depth=0))
        assert np.all(image == 0.0)

    def test_finite_light_single_sample_is_all_or_nothing(self, scene_manager) -> None:
        """Test that one bounce toward a finite lamp gives either 0 or albedo * emission per pixel."""
        from lumen.camera.pinhole import PinholeCamera
        from lumen.core.integrator import RenderSettings, render_scene
        from lumen.core.transform import Transform

        clay = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        lamp = scene_manager.add_diffuse_light_material((self.EMISSION,) * 3)
        scene_manager.add_sphere(clay)
        scene_manager.add_rectangle(
            lamp,
            bounds=(-4.0, -4.0, 4.0, 4.0),
            transform=Transform(translate=(0.0, 5.0, 0.0), rotate=(90.0, 0.0, 0.0)),
        )
        scene_manager.set_background((0.0, 0.0, 0.0))
        camera = PinholeCamera(position=(0.0, 2.5, 0.0), direction=(0.0, -1.0, 0.0), up=(0.0, 0.0, -1.0), fov=60.0)

        settings = RenderSettings(width=16, height=16, samples_per_pixel=1, max_depth=1)
        image = render_scene(scene_manager, camera, settings)
        # The central block sees only the top of the sphere
        block = image[5:11, 5:11]
        lit = np.isclose(block, 0.5 * self.EMISSION, atol=1e-5)
        dark = block == 0.0
        assert np.all(lit | dark)
        # Each pixel's channels agree: a single path either reaches the lamp or escapes
        assert np.all(lit.all(axis=-1) | dark.all(axis=-1))
        assert 0.0 < block.mean() < self.EMISSION
        assert lit.any() and dark.any()


class TestSceneFilePipeline:
    """Scene file to PNG."""

    def test_json_to_png(self, tmp_path: Path) -> None:
        """Test loading a description, rendering it and saving a PNG."""
        from lumen.core.integrator import RenderSettings, render_scene
        from lumen.preview.export import save_png
        from lumen.scene.description import load_scene

        description = {
            "background": [0.6, 0.7, 1.0],
            "sky": True,
            "camera": {"position": [0, 1, 4], "direction": [0, -0.2, -1], "fov": 50},
            "materials": {
                "ground": {
                    "type": "Lambertian",
                    "albedo": {"type": "CheckerTexture", "odd": [0.1, 0.1, 0.1], "even": [0.9, 0.9, 0.9], "scale": 4},
                },
                "glass": {"type": "Dielectric", "index_of_refraction": 1.5},
                "gold": {"type": "Metal", "albedo": {"x": 0.8, "y": 0.6, "z": 0.2}, "fuzz": 0.2},
            },
            "shapes": [
                {"type": "Rectangle", "material": "ground", "transform": {"rotate": [-90, 0, 0]}},
                {"type": "Sphere", "material": "glass", "transform": {"translate": [-0.6, 0.5, 0], "scale": [0.5, 0.5, 0.5]}},
                {"type": "Torus", "material": "gold", "radius": 0.4, "tube_radius": 0.15,
                 "transform": {"translate": [0.7, 0.5, 0], "rotate": [60, 0, 0]}},
            ],
        }
        scene_path = tmp_path / "scene.json"
        scene_path.write_text(json.dumps(description))

        scene, camera = load_scene(scene_path)
        image = render_scene(scene, camera, RenderSettings(width=20, height=12, samples_per_pixel=4, max_depth=4))

        assert image.shape == (12, 20, 3)
        assert np.all(np.isfinite(image))
        assert np.all(image >= 0.0)

        output = tmp_path / "render.png"
        save_png(image, output, tone_map="reinhard")
        with PILImage.open(output) as saved:
            assert saved.size == (20, 12)


class TestConvergence:
    """Noise falls as samples accumulate."""

    def test_more_samples_reduce_noise(self) -> None:
        """Test that independent renders agree better at higher sample counts."""
        from lumen.core.integrator import RenderSettings, render_scene
        from lumen.preview.export import compute_rmse
        from lumen.scene.cornell_box import create_cornell_box_scene

        scene, camera, _ = create_cornell_box_scene()

        def render(spp: int) -> np.ndarray:
            settings = RenderSettings(width=16, height=16, samples_per_pixel=spp, max_depth=3)
            # Clamp so that rare fireflies do not dominate the comparison
            return np.clip(render_scene(scene, camera, settings), 0.0, 1.0)

        coarse = compute_rmse(render(2), render(2))
        fine = compute_rmse(render(32), render(32))
        assert fine < coarse

    def test_progressive_matches_single_shot_layout(self) -> None:
        """Test that ProgressiveRenderer and render_scene produce the same layout."""
        from lumen.camera.pinhole import setup_camera
        from lumen.core.progressive import ProgressiveRenderer
        from lumen.scene.cornell_box import create_cornell_box_scene

        scene, camera, _ = create_cornell_box_scene()
        scene.build()
        setup_camera(camera, 12 / 8)

        renderer = ProgressiveRenderer(12, 8, max_depth=2)
        progress = list(renderer.render_progressive(6, batch_size=4))

        assert progress == [(4, 6), (6, 6)]
        assert renderer.get_linear_image().shape == (8, 12, 3)
        assert renderer.get_image_uint8().shape == (8, 12, 3)
