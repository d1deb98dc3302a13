"""Tests for world-space scene intersection.

Tests cover:
- Transformed shapes: the t = d - r property under translation and rotation
- Non-uniform scale with normals from the inverse transpose
- Closest-hit selection through the BVH and among unbounded shapes
- Material and shape ids on hit records
- Background color and the sky gradient
"""

import numpy as np
import pytest
import taichi as ti


def _trace(origin, direction, t_min=1e-4, t_max=1e10):
    """Intersect a ray with the current scene and return the hit record as numpy values."""
    from lumen.scene.intersection import intersect_scene

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    ids = ti.Vector.field(2, dtype=ti.i32, shape=())
    front = ti.field(dtype=ti.i32, shape=())
    point = ti.Vector.field(3, dtype=ti.f32, shape=())
    normal = ti.Vector.field(3, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel(origin: ti.math.vec3, direction: ti.math.vec3, t_min: ti.f32, t_max: ti.f32):
        rec = intersect_scene(origin, direction, t_min, t_max)
        hit[None] = rec.hit
        t_val[None] = rec.t
        ids[None] = ti.math.ivec2(rec.material_id, rec.shape_id)
        front[None] = rec.front_face
        point[None] = rec.point
        normal[None] = rec.normal

    test_kernel(ti.math.vec3(*origin), ti.math.vec3(*direction), t_min, t_max)
    return {
        "hit": hit[None],
        "t": t_val[None],
        "material_id": ids[None][0],
        "shape_id": ids[None][1],
        "front_face": front[None],
        "point": point[None].to_numpy(),
        "normal": normal[None].to_numpy(),
    }


class TestTransformedShapes:
    """Tests for shapes placed with transforms."""

    @pytest.mark.parametrize(
        "center, radius",
        [((0.0, 0.0, 0.0), 1.0), ((3.0, -2.0, 1.0), 0.5), ((-4.0, 5.0, -6.0), 2.0)],
    )
    def test_sphere_hit_at_distance_minus_radius(self, scene_manager, center, radius):
        """Test that a ray aimed at a sphere center hits at t = d - r."""
        from lumen.core.transform import Transform

        mat = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        scene_manager.add_sphere(mat, radius=radius, transform=Transform(translate=center, rotate=(30, 45, 60)))
        scene_manager.build()

        origin = np.array(center) + np.array([2.0, 3.0, 6.0])
        direction = np.array(center) - origin
        rec = _trace(origin, direction / np.linalg.norm(direction))

        assert rec["hit"] == 1
        assert abs(rec["t"] - (7.0 - radius)) < 1e-3
        assert rec["front_face"] == 1

    def test_unnormalized_direction_scales_t(self, scene_manager):
        """Test that t is measured in units of the given direction."""
        mat = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        scene_manager.add_sphere(mat)
        scene_manager.build()

        rec = _trace((0.0, 0.0, 5.0), (0.0, 0.0, -2.0))
        assert rec["hit"] == 1
        assert abs(rec["t"] - 2.0) < 1e-4

    def test_scaled_sphere_normal(self, scene_manager):
        """Test that an ellipsoid keeps unit outward normals."""
        from lumen.core.transform import Transform

        mat = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        scene_manager.add_sphere(mat, transform=Transform(scale=(3.0, 1.0, 1.0)))
        scene_manager.build()

        rec = _trace((10.0, 0.0, 0.0), (-1.0, 0.0, 0.0))
        assert rec["hit"] == 1
        assert abs(rec["t"] - 7.0) < 1e-3
        np.testing.assert_allclose(rec["point"], [3.0, 0.0, 0.0], atol=1e-3)
        np.testing.assert_allclose(rec["normal"], [1.0, 0.0, 0.0], atol=1e-4)

    def test_rotated_rectangle(self, scene_manager):
        """Test a floor rectangle made by rotating the local xy plane."""
        from lumen.core.transform import Transform

        mat = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        scene_manager.add_rectangle(mat, bounds=(-1, -1, 1, 1), transform=Transform(rotate=(-90, 0, 0)))
        scene_manager.build()

        rec = _trace((0.5, 4.0, 0.5), (0.0, -1.0, 0.0))
        assert rec["hit"] == 1
        assert abs(rec["t"] - 4.0) < 1e-4
        np.testing.assert_allclose(rec["normal"], [0.0, 1.0, 0.0], atol=1e-5)

        # Outside the bounds the floor is missed
        assert _trace((1.5, 4.0, 0.0), (0.0, -1.0, 0.0))["hit"] == 0


class TestClosestHit:
    """Tests for closest-hit selection."""

    def test_nearest_of_two_spheres(self, scene_manager):
        """Test that the nearer sphere wins regardless of insertion order."""
        from lumen.core.transform import Transform

        far_mat = scene_manager.add_lambertian_material((1.0, 0.0, 0.0))
        near_mat = scene_manager.add_metal_material((0.0, 1.0, 0.0))
        scene_manager.add_sphere(far_mat, transform=Transform(translate=(0, 0, -10)))
        near = scene_manager.add_sphere(near_mat, transform=Transform(translate=(0, 0, -4)))
        scene_manager.build()

        rec = _trace((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1
        assert abs(rec["t"] - 3.0) < 1e-4
        assert rec["shape_id"] == near
        assert rec["material_id"] == near_mat

    def test_many_spheres_through_bvh(self, scene_manager):
        """Test closest hits along a row of spheres with a deep BVH."""
        from lumen.core.transform import Transform

        mat = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        ids = [
            scene_manager.add_sphere(mat, radius=0.4, transform=Transform(translate=(x, y, 0)))
            for x in range(-5, 6)
            for y in range(-5, 6)
        ]
        scene_manager.build()

        rec = _trace((3.0, -2.0, 10.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1
        assert abs(rec["t"] - 9.6) < 1e-3
        assert rec["shape_id"] == ids[(3 + 5) * 11 + (-2 + 5)]

        # Between the spheres nothing is hit
        assert _trace((0.5, 0.5, 10.0), (0.0, 0.0, -1.0))["hit"] == 0

    def test_bounded_shape_in_front_of_plane(self, scene_manager):
        """Test that a sphere above an infinite plane occludes it."""
        from lumen.core.transform import Transform

        floor = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        ball = scene_manager.add_lambertian_material((0.9, 0.1, 0.1))
        scene_manager.add_plane(floor, transform=Transform(rotate=(-90, 0, 0)))
        scene_manager.add_sphere(ball, transform=Transform(translate=(0, 1, 0)))
        scene_manager.build()

        rec = _trace((0.0, 5.0, 0.0), (0.0, -1.0, 0.0))
        assert rec["material_id"] == ball
        assert abs(rec["t"] - 3.0) < 1e-4

        rec = _trace((5.0, 5.0, 0.0), (0.0, -1.0, 0.0))
        assert rec["material_id"] == floor
        assert abs(rec["t"] - 5.0) < 1e-4

    def test_t_max_limits_hits(self, scene_manager):
        """Test that hits beyond t_max are ignored."""
        mat = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        scene_manager.add_sphere(mat)
        scene_manager.build()

        assert _trace((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), t_max=3.0)["hit"] == 0

    def test_back_face_from_inside(self, scene_manager):
        """Test that a ray from inside a sphere reports a back face."""
        mat = scene_manager.add_dielectric_material(1.5)
        scene_manager.add_sphere(mat, radius=2.0)
        scene_manager.build()

        rec = _trace((0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
        assert rec["hit"] == 1
        assert abs(rec["t"] - 2.0) < 1e-4
        assert rec["front_face"] == 0
        # The stored normal stays outward
        np.testing.assert_allclose(rec["normal"], [1.0, 0.0, 0.0], atol=1e-5)

    def test_inverse_normal_sphere(self, scene_manager):
        """Test that an inverse_normal sphere reports inward normals and an outside back face."""
        from lumen.core.transform import Transform

        mat = scene_manager.add_lambertian_material((0.5, 0.5, 0.5))
        scene_manager.add_sphere(mat, radius=2.0, transform=Transform(translate=(0, 0, -5)), inverse_normal=True)
        scene_manager.build()

        outside = _trace((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert outside["hit"] == 1
        assert abs(outside["t"] - 3.0) < 1e-4
        np.testing.assert_allclose(outside["normal"], [0.0, 0.0, -1.0], atol=1e-5)
        assert outside["front_face"] == 0

        inside = _trace((0.0, 0.0, -5.0), (1.0, 0.0, 0.0))
        np.testing.assert_allclose(inside["normal"], [-1.0, 0.0, 0.0], atol=1e-5)
        assert inside["front_face"] == 1

    def test_empty_scene_misses(self, scene_manager):
        """Test that a scene without shapes is never hit."""
        scene_manager.build()
        assert _trace((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))["hit"] == 0


class TestBackground:
    """Tests for the color of escaping rays."""

    @staticmethod
    def _background(direction):
        from lumen.scene.intersection import get_background

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(direction: ti.math.vec3):
            result[None] = get_background(direction)

        test_kernel(ti.math.vec3(*direction))
        return result[None].to_numpy()

    def test_flat_background(self, scene_manager):
        """Test that without the sky gradient every direction gets the color."""
        scene_manager.set_background((0.5, 0.7, 1.0))
        for direction in [(0, 1, 0), (0, -1, 0), (1, 0, 0)]:
            np.testing.assert_allclose(self._background(direction), [0.5, 0.7, 1.0], atol=1e-6)

    def test_sky_gradient(self, scene_manager):
        """Test that the sky blends from white below to the color overhead."""
        scene_manager.set_background((0.5, 0.7, 1.0), sky=True)
        np.testing.assert_allclose(self._background((0, 1, 0)), [0.5, 0.7, 1.0], atol=1e-6)
        np.testing.assert_allclose(self._background((0, -1, 0)), [1.0, 1.0, 1.0], atol=1e-6)
        np.testing.assert_allclose(self._background((1, 0, 0)), [0.75, 0.85, 1.0], atol=1e-6)
