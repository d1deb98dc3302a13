"""Unit tests for the Cornell box scene.

Tests cover:
- Scene creation and geometry counts
- Wall placement from transformed rectangles
- Sphere positions and materials (diffuse, metal, glass)
- Light material and custom parameters
- Camera configuration
- A small render of the full scene
"""

import numpy as np
import pytest


@pytest.fixture
def cornell_box_scene():
    """Create a Cornell box scene for testing."""
    from lumen.scene.cornell_box import create_cornell_box_scene

    scene, camera, light_mat_id = create_cornell_box_scene()
    yield scene, camera, light_mat_id
    scene.clear()


class TestSceneContents:
    """Tests for the shapes and materials of the scene."""

    def test_shape_count(self, cornell_box_scene):
        """Test five walls, one light and three spheres."""
        from lumen.scene.manager import ShapeKind

        scene, _, _ = cornell_box_scene
        assert scene.get_shape_count() == 9
        kinds = [s.kind for s in scene.shapes]
        assert kinds.count(ShapeKind.RECTANGLE) == 6
        assert kinds.count(ShapeKind.SPHERE) == 3

    def test_light_material(self, cornell_box_scene):
        """Test that the light emits intensity times color."""
        from lumen.scene.manager import MaterialType

        scene, _, light_mat = cornell_box_scene
        info = scene.get_material_info(light_mat)
        assert info.material_type == MaterialType.DIFFUSE_LIGHT
        assert info.name == "light"
        assert scene.resolve_material("light") == light_mat

    def test_sphere_materials(self, cornell_box_scene):
        """Test one diffuse, one metal and one glass sphere."""
        from lumen.scene.manager import MaterialType, ShapeKind

        scene, _, _ = cornell_box_scene
        types = sorted(
            scene.get_material_type_python(s.material_id).name for s in scene.shapes if s.kind == ShapeKind.SPHERE
        )
        assert types == sorted([MaterialType.LAMBERTIAN.name, MaterialType.METAL.name, MaterialType.DIELECTRIC.name])

    def test_walls_enclose_box(self, cornell_box_scene):
        """Test that the union of wall bounds is the box."""
        from lumen.geometry.aabb import enclose
        from lumen.scene.manager import ShapeKind

        scene, _, _ = cornell_box_scene
        walls = [s.bounds for s in scene.shapes if s.kind == ShapeKind.RECTANGLE]
        box = enclose(walls)
        np.testing.assert_allclose(box.minimum, [0.0, 0.0, 0.0], atol=1e-3)
        np.testing.assert_allclose(box.maximum, [555.0, 555.0, 555.0], atol=1e-3)

    def test_spheres_rest_on_floor(self, cornell_box_scene):
        """Test that every sphere's lowest point is at y = 0."""
        from lumen.scene.manager import ShapeKind

        scene, _, _ = cornell_box_scene
        for shape in scene.shapes:
            if shape.kind == ShapeKind.SPHERE:
                assert abs(shape.bounds.minimum[1]) < 1e-6

    def test_custom_params_and_size(self):
        """Test light intensity and box size parameters."""
        from lumen.geometry.aabb import enclose
        from lumen.scene.cornell_box import CornellBoxParams, create_cornell_box_scene

        params = CornellBoxParams(light_intensity=5.0, light_color=(1.0, 0.5, 0.25))
        scene, _, light_mat = create_cornell_box_scene(box_size=300.0, params=params)

        assert scene.get_material_info(light_mat).params["emit"] == (5.0, 2.5, 1.25)
        box = enclose([s.bounds for s in scene.shapes])
        np.testing.assert_allclose(box.maximum, [300.0, 300.0, 300.0], atol=1e-3)


class TestCamera:
    """Tests for the Cornell box camera."""

    def test_camera_looks_into_box(self, cornell_box_scene):
        """Test that the camera sits in front of the opening looking +z."""
        _, camera, _ = cornell_box_scene
        assert camera.position == (277.5, 277.5, -800.0)
        assert camera.direction == (0.0, 0.0, 1.0)
        assert camera.fov == 40.0

    def test_red_wall_on_image_right(self, cornell_box_scene):
        """Test that right = forward x up points toward the x = 0 wall."""
        from lumen.camera.pinhole import camera_basis

        _, camera, _ = cornell_box_scene
        right, _, _ = camera_basis(camera)
        np.testing.assert_allclose(right, [-1.0, 0.0, 0.0], atol=1e-12)


class TestRender:
    """A small render of the full scene."""

    def test_small_render(self, cornell_box_scene):
        """Test that a low-resolution render is finite, non-negative and lit."""
        from lumen.core.integrator import RenderSettings, render_scene

        scene, camera, _ = cornell_box_scene
        image = render_scene(scene, camera, RenderSettings(width=24, height=24, samples_per_pixel=4, max_depth=4))

        assert image.shape == (24, 24, 3)
        assert np.all(np.isfinite(image))
        assert np.all(image >= 0.0)
        assert image.mean() > 0.0
        # The light is visible near the top center of the image
        assert image[:6, 8:16].max() > 1.0
