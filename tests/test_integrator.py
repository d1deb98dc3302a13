"""Tests for the path tracing integrator.

This module tests the core path tracing functionality including:
- Render settings validation and render target management
- Background-only and emitter-only renders
- A single diffuse bounce against the background
- Russian roulette staying unbiased
- Progressive accumulation and the output image layout

Note: Imports are done inside test methods to avoid Taichi initialization issues.
The conftest.py fixture initializes Taichi before tests run, so module-level
imports of modules containing ti.field() declarations would fail.
"""

import numpy as np
import pytest


def _sphere_scene(scene, material, background=(1.0, 1.0, 1.0)):
    """A sphere of radius 1.5 three units in front of a camera looking down -z."""
    from lumen.camera.pinhole import PinholeCamera
    from lumen.core.transform import Transform

    scene.set_background(background)
    scene.add_sphere(material, radius=1.5, transform=Transform(translate=(0.0, 0.0, -3.0)))
    return PinholeCamera(position=(0.0, 0.0, 0.0), direction=(0.0, 0.0, -1.0), fov=90.0)


class TestRenderSettings:
    """Tests for RenderSettings."""

    def test_defaults_are_valid(self):
        """Test that the default settings validate."""
        from lumen.core.integrator import RenderSettings

        settings = RenderSettings()
        settings.validate()
        assert settings.aspect_ratio == pytest.approx(400 / 225)

    @pytest.mark.parametrize(
        "kwargs, match",
        [
            ({"width": 0}, "dimensions"),
            ({"height": 4096}, "dimensions"),
            ({"samples_per_pixel": 0}, "samples_per_pixel"),
            ({"max_depth": -1}, "max_depth"),
            ({"russian_roulette_depth": -2}, "russian_roulette_depth"),
        ],
    )
    def test_invalid_settings(self, kwargs, match):
        """Test that out-of-range settings raise ConfigurationError."""
        from lumen.core.integrator import RenderSettings
        from lumen.errors import ConfigurationError

        with pytest.raises(ConfigurationError, match=match):
            RenderSettings(**kwargs).validate()


class TestRenderTarget:
    """Tests for render target setup and management."""

    def test_setup_sets_dimensions_and_clears(self):
        """Test that setup_render_target sizes and zeroes the buffers."""
        from lumen.core.integrator import get_image_dimensions, get_image_numpy, setup_render_target

        setup_render_target(16, 9)
        assert get_image_dimensions() == (16, 9)
        image = get_image_numpy()
        assert image.shape == (9, 16, 3)
        assert image.dtype == np.float32
        assert np.all(image == 0.0)

    @pytest.mark.parametrize("width, height", [(0, 10), (10, -1), (4096, 10), (10, 4096)])
    def test_invalid_dimensions(self, width, height):
        """Test that non-positive or oversized targets are rejected."""
        from lumen.core.integrator import setup_render_target
        from lumen.errors import ConfigurationError

        with pytest.raises(ConfigurationError, match="dimensions"):
            setup_render_target(width, height)

    def test_samples_accumulate(self, scene_manager):
        """Test that repeated render_image calls add samples."""
        from lumen.camera.pinhole import PinholeCamera, setup_camera
        from lumen.core.integrator import get_total_samples, render_image, setup_render_target

        scene_manager.build()
        setup_camera(PinholeCamera(), 1.0)
        setup_render_target(4, 4)
        render_image(3)
        render_image(2)
        assert get_total_samples() == 5


class TestRadiance:
    """Tests for the radiance estimates of simple scenes."""

    def test_empty_scene_shows_background(self, scene_manager):
        """Test that every pixel of an empty scene is the background color."""
        from lumen.camera.pinhole import PinholeCamera
        from lumen.core.integrator import RenderSettings, render_scene

        scene_manager.set_background((0.5, 0.7, 1.0))
        image = render_scene(scene_manager, PinholeCamera(), RenderSettings(width=12, height=8, samples_per_pixel=2))

        assert image.shape == (8, 12, 3)
        assert image.dtype == np.float32
        np.testing.assert_allclose(image, np.broadcast_to([0.5, 0.7, 1.0], image.shape), atol=1e-6)

    def test_zero_depth_shows_only_emitters(self, scene_manager):
        """Test that max_depth 0 gives the emission on lights and black on other surfaces."""
        from lumen.core.integrator import RenderSettings, render_scene

        light = scene_manager.add_diffuse_light_material((4.0, 2.0, 1.0))
        camera = _sphere_scene(scene_manager, light, background=(0.0, 0.0, 0.0))
        image = render_scene(scene_manager, camera, RenderSettings(width=8, height=8, samples_per_pixel=1, max_depth=0))

        # Emission is not clamped
        np.testing.assert_allclose(image[4, 4], [4.0, 2.0, 1.0], atol=1e-6)
        np.testing.assert_allclose(image[0, 0], [0.0, 0.0, 0.0])

    def test_zero_depth_diffuse_is_black(self, scene_manager):
        """Test that a non-emissive surface contributes nothing without bounces."""
        from lumen.core.integrator import RenderSettings, render_scene

        clay = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        camera = _sphere_scene(scene_manager, clay)
        image = render_scene(scene_manager, camera, RenderSettings(width=8, height=8, samples_per_pixel=1, max_depth=0))

        np.testing.assert_allclose(image[4, 4], [0.0, 0.0, 0.0])
        np.testing.assert_allclose(image[0, 0], [1.0, 1.0, 1.0], atol=1e-6)

    def test_one_bounce_diffuse_sees_background(self, scene_manager):
        """Test that a bounce off a lone convex diffuse sphere returns albedo * background."""
        from lumen.core.integrator import RenderSettings, render_scene

        clay = scene_manager.add_lambertian_material((0.5, 0.25, 0.75))
        camera = _sphere_scene(scene_manager, clay)
        image = render_scene(scene_manager, camera, RenderSettings(width=8, height=8, samples_per_pixel=4, max_depth=1))

        np.testing.assert_allclose(image[4, 4], [0.5, 0.25, 0.75], atol=1e-5)

    def test_russian_roulette_is_unbiased(self, scene_manager):
        """Test that Russian roulette keeps the expected value of a pixel."""
        from lumen.core.integrator import RenderSettings, render_scene

        clay = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        camera = _sphere_scene(scene_manager, clay)
        settings = RenderSettings(width=8, height=8, samples_per_pixel=256, max_depth=4, russian_roulette_depth=1)
        image = render_scene(scene_manager, camera, settings)

        # Survivors are reweighted to 1, so single samples are 0 or 1
        assert abs(image[3:5, 3:5].mean() - 0.5) < 0.1

    def test_render_sample_matches_kernel(self, scene_manager):
        """Test the single-pixel helper against a known radiance."""
        from lumen.camera.pinhole import setup_camera
        from lumen.core.integrator import render_sample, setup_render_target

        clay = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        camera = _sphere_scene(scene_manager, clay, background=(0.2, 0.4, 0.6))
        scene_manager.build()
        setup_camera(camera, 1.0)
        setup_render_target(8, 8)

        color = render_sample(4, 4, max_depth=1)
        np.testing.assert_allclose(color, [0.1, 0.2, 0.3], atol=1e-5)

    def test_image_is_top_left_origin(self, scene_manager):
        """Test that the first row of the image looks up into the sky."""
        from lumen.camera.pinhole import PinholeCamera
        from lumen.core.integrator import RenderSettings, render_scene

        # Sky fades from white (looking down) to pure blue (looking up)
        scene_manager.set_background((0.0, 0.0, 1.0), sky=True)
        image = render_scene(scene_manager, PinholeCamera(), RenderSettings(width=4, height=8, samples_per_pixel=4))

        assert np.all(image[0, :, 0] < 0.5)
        assert np.all(image[-1, :, 0] > 0.5)

    def test_output_is_finite_and_non_negative(self, scene_manager):
        """Test that a mixed scene renders without NaN or negative values."""
        from lumen.core.integrator import RenderSettings, render_scene
        from lumen.core.transform import Transform

        glass = scene_manager.add_dielectric_material(1.5)
        metal = scene_manager.add_metal_material((0.9, 0.9, 0.9), fuzz=0.2)
        light = scene_manager.add_diffuse_light_material((3.0, 3.0, 3.0))
        camera = _sphere_scene(scene_manager, glass, background=(0.1, 0.1, 0.1))
        scene_manager.add_sphere(metal, transform=Transform(translate=(1.5, 0.0, -3.0), scale=(0.5, 0.5, 0.5)))
        scene_manager.add_plane(light, transform=Transform(translate=(0.0, 4.0, 0.0), rotate=(90, 0, 0)))

        image = render_scene(scene_manager, camera, RenderSettings(width=16, height=16, samples_per_pixel=4))
        assert np.all(np.isfinite(image))
        assert np.all(image >= 0.0)
        assert image.max() > 0.1
