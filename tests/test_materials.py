"""Tests for material scattering and the material registries.

Tests cover:
- Lambertian always scatters into the hemisphere of the normal
- Metal mirror reflection, fuzz clamping and absorption below the surface
- Dielectric refraction, including ior = 1 transmitting rays unbent
- Diffuse lights never scatter and emit their texture value
- Registry capacity and argument validation
"""

import numpy as np
import pytest
import taichi as ti


class TestLambertian:
    """Tests for Lambertian scattering."""

    def test_always_scatters_above_surface(self):
        """Test that every sample scatters with the albedo as attenuation."""
        from lumen.materials.lambertian import scatter_lambertian

        n = 512
        scattered = ti.field(dtype=ti.i32, shape=n)
        cosines = ti.field(dtype=ti.f32, shape=n)
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                normal = ti.math.vec3(0.0, 1.0, 0.0)
                direction, att, did = scatter_lambertian(ti.math.vec3(0.2, 0.5, 0.8), normal)
                scattered[i] = did
                cosines[i] = ti.math.dot(direction, normal)
                attenuation[i] = att

        test_kernel()
        assert scattered.to_numpy().min() == 1
        assert cosines.to_numpy().min() >= 0.0
        np.testing.assert_allclose(attenuation.to_numpy(), np.tile([0.2, 0.5, 0.8], (n, 1)), atol=1e-6)

    def test_registry_stores_texture_ids(self):
        """Test that material indices are sequential."""
        from lumen.materials.lambertian import add_lambertian_material, get_lambertian_material_count

        assert add_lambertian_material(3) == 0
        assert add_lambertian_material(7) == 1
        assert get_lambertian_material_count() == 2


class TestMetal:
    """Tests for metal scattering."""

    def test_mirror_reflection(self):
        """Test that fuzz 0 reflects exactly."""
        from lumen.materials.metal import scatter_metal

        direction = ti.Vector.field(3, dtype=ti.f32, shape=())
        did_scatter = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            incident = ti.math.normalize(ti.math.vec3(1.0, -1.0, 0.0))
            d, _, s = scatter_metal(ti.math.vec3(0.9, 0.9, 0.9), 0.0, incident, ti.math.vec3(0.0, 1.0, 0.0))
            direction[None] = d
            did_scatter[None] = s

        test_kernel()
        assert did_scatter[None] == 1
        inv_sqrt2 = 1.0 / np.sqrt(2.0)
        np.testing.assert_allclose(direction[None].to_numpy(), [inv_sqrt2, inv_sqrt2, 0.0], atol=1e-5)

    def test_grazing_fuzzy_reflection_can_be_absorbed(self):
        """Test that fuzz can push a grazing reflection below the surface."""
        from lumen.materials.metal import scatter_metal

        n = 512
        did_scatter = ti.field(dtype=ti.i32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                incident = ti.math.normalize(ti.math.vec3(1.0, -0.01, 0.0))
                _, _, s = scatter_metal(ti.math.vec3(1.0, 1.0, 1.0), 1.0, incident, ti.math.vec3(0.0, 1.0, 0.0))
                did_scatter[i] = s

        test_kernel()
        values = did_scatter.to_numpy()
        assert values.min() == 0
        assert values.max() == 1

    def test_fuzz_clamped_to_one(self):
        """Test that fuzz above 1 is stored as 1."""
        from lumen.materials.metal import add_metal_material, metal_fuzz

        idx = add_metal_material(0, fuzz=3.0)
        assert metal_fuzz[idx] == pytest.approx(1.0)

    def test_negative_fuzz_rejected(self):
        """Test that negative fuzz raises ConfigurationError."""
        from lumen.errors import ConfigurationError
        from lumen.materials.metal import add_metal_material

        with pytest.raises(ConfigurationError, match="negative"):
            add_metal_material(0, fuzz=-0.1)


class TestDielectric:
    """Tests for dielectric scattering."""

    def test_unit_ior_transmits_unbent(self):
        """Test that ior = 1 passes a ray at normal incidence straight through."""
        from lumen.materials.dielectric import scatter_dielectric

        n = 64
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                d, _, _ = scatter_dielectric(1.0, ti.math.vec3(0.0, 0.0, -1.0), ti.math.vec3(0.0, 0.0, 1.0))
                directions[i] = d

        test_kernel()
        np.testing.assert_allclose(directions.to_numpy(), np.tile([0.0, 0.0, -1.0], (n, 1)), atol=1e-6)

    def test_unit_ior_refracted_rays_keep_direction(self):
        """Test that oblique rays with ior = 1 either pass unbent or reflect."""
        from lumen.materials.dielectric import scatter_dielectric

        n = 256
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                incident = ti.math.normalize(ti.math.vec3(1.0, -1.0, 0.0))
                d, _, _ = scatter_dielectric(1.0, incident, ti.math.vec3(0.0, 1.0, 0.0))
                directions[i] = d

        test_kernel()
        s = 1.0 / np.sqrt(2.0)
        result = directions.to_numpy()
        transmitted = np.all(np.abs(result - [s, -s, 0.0]) < 1e-5, axis=1)
        reflected = np.all(np.abs(result - [s, s, 0.0]) < 1e-5, axis=1)
        assert np.all(transmitted | reflected)
        # Schlick reflectance at 45 degrees with r0 = 0 is (1 - cos)^5, about 0.2%
        assert transmitted.mean() > 0.95

    def test_total_internal_reflection_when_exiting(self):
        """Test that a grazing ray leaving glass is always reflected."""
        from lumen.materials.dielectric import scatter_dielectric

        n = 64
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                # Travelling along the outward normal: inside the medium
                incident = ti.math.normalize(ti.math.vec3(1.0, 0.2, 0.0))
                d, att, _ = scatter_dielectric(1.5, incident, ti.math.vec3(0.0, 1.0, 0.0))
                directions[i] = d
                attenuation[i] = att

        test_kernel()
        expected = np.array([1.0, -0.2, 0.0]) / np.linalg.norm([1.0, 0.2, 0.0])
        np.testing.assert_allclose(directions.to_numpy(), np.tile(expected, (n, 1)), atol=1e-5)
        np.testing.assert_allclose(attenuation.to_numpy(), np.ones((n, 3)))

    def test_nonpositive_ior_rejected(self):
        """Test that ior <= 0 raises ConfigurationError."""
        from lumen.errors import ConfigurationError
        from lumen.materials.dielectric import add_dielectric_material

        with pytest.raises(ConfigurationError):
            add_dielectric_material(0.0)


class TestDiffuseLight:
    """Tests for emissive materials."""

    def test_never_scatters(self):
        """Test that a diffuse light absorbs every ray."""
        from lumen.materials.diffuse_light import scatter_diffuse_light

        did_scatter = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            _, _, s = scatter_diffuse_light()
            did_scatter[None] = s

        test_kernel()
        assert did_scatter[None] == 0

    def test_emits_texture_value(self):
        """Test that the emission is the texture value at the hit."""
        from lumen.materials.diffuse_light import (
            add_diffuse_light_material,
            emitted_diffuse_light,
            get_diffuse_light_emit_texture,
        )
        from lumen.textures.texture import add_solid_texture, evaluate_texture

        tid = add_solid_texture((4.0, 3.0, 2.0))
        idx = add_diffuse_light_material(tid)
        emission = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(idx: ti.i32):
            texture = get_diffuse_light_emit_texture(idx)
            value = evaluate_texture(texture, 0.5, 0.5, ti.math.vec3(0.0, 0.0, 0.0))
            emission[None] = emitted_diffuse_light(value)

        test_kernel(idx)
        np.testing.assert_allclose(emission[None].to_numpy(), [4.0, 3.0, 2.0])


class TestRegistries:
    """Tests shared by all material registries."""

    def test_clear_all_materials(self):
        """Test that clear_all_materials empties every registry."""
        from lumen.materials import (
            add_dielectric_material,
            add_diffuse_light_material,
            add_lambertian_material,
            add_metal_material,
            clear_all_materials,
            get_dielectric_material_count,
            get_diffuse_light_material_count,
            get_lambertian_material_count,
            get_metal_material_count,
        )

        add_lambertian_material(0)
        add_metal_material(0)
        add_dielectric_material()
        add_diffuse_light_material(0)
        clear_all_materials()
        assert get_lambertian_material_count() == 0
        assert get_metal_material_count() == 0
        assert get_dielectric_material_count() == 0
        assert get_diffuse_light_material_count() == 0

    def test_capacity_exceeded(self):
        """Test that exceeding the registry size raises ConfigurationError."""
        from lumen.errors import ConfigurationError
        from lumen.materials.dielectric import MAX_DIELECTRIC_MATERIALS, add_dielectric_material

        for _ in range(MAX_DIELECTRIC_MATERIALS):
            add_dielectric_material(1.5)
        with pytest.raises(ConfigurationError, match="Maximum number"):
            add_dielectric_material(1.5)
