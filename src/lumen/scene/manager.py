"""Unified scene manager for coordinating shapes, materials and textures.

This module provides a high-level scene management API on top of the
field-backed registries. It tracks which material type each unified
material id refers to, enabling material dispatch in the path tracer, and
owns the Python-side view of every shape (kind, transform and world bounds)
needed to build the BVH.

The SceneManager maintains:
- A unified material_id space across all material types
- Mapping from material_id to (material_type, type_local_index)
- Optional material names, so shapes can refer to materials by name
- Per-shape transforms and world-space bounding boxes

Only one scene is resident at a time: creating a SceneManager clears the
textures, materials and shapes left by any previous one.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from lumen.core.transform import Transform
    >>> from lumen.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> scene.add_lambertian_material(albedo=(0.8, 0.3, 0.3), name="red")
    0
    >>> scene.add_sphere("red", radius=0.5, transform=Transform(translate=(0, 0, -1)))
    0
    >>> scene.build()
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any

import numpy as np
import taichi as ti
import taichi.math as tm

from lumen.core.transform import Transform
from lumen.errors import ConfigurationError
from lumen.geometry.aabb import AABB
from lumen.geometry.fields import FieldKind, field_half_extents
from lumen.materials import (
    add_dielectric_material,
    add_diffuse_light_material,
    add_lambertian_material,
    add_metal_material,
    clear_all_materials,
)
from lumen.scene import intersection
from lumen.scene.bvh import build_scene_bvh
from lumen.scene.intersection import ShapeKind
from lumen.textures import (
    add_checker_texture,
    add_image_texture,
    add_noise_texture,
    add_solid_texture,
    add_uv_checker_texture,
    clear_textures,
    get_texture_count,
    load_image,
)

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# A color given directly, or the id of an existing texture
ColorOrTexture = tuple[float, float, float] | int

# Half thickness of a rectangle's bounding box along its normal
RECTANGLE_PADDING = 1e-4


class MaterialType(IntEnum):
    """Material variants; the integrator dispatches on these values."""

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2
    DIFFUSE_LIGHT = 3


# One slot per material of every type
MAX_MATERIALS = 1024

# Unified material id -> (MaterialType, index in that type's registry)
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def _clear_material_tracking() -> None:
    num_materials[None] = 0


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """MaterialType of a unified id as an int, or -1 for an unknown id."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Row of a unified id in its type's registry (e.g. metal_fuzz), or -1."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The type of material.
        type_index: The index within the type-specific material array.
        name: Optional name used by shapes and scene descriptions.
        params: The material parameters as provided during creation.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    name: str | None
    params: dict[str, Any]


@dataclass
class ShapeInfo:
    """Information about a shape in the scene.

    Attributes:
        shape_id: The row in the shape table.
        kind: The shape kind.
        material_id: The material ID assigned to the shape.
        transform: Local-to-world transform.
        bounds: World-space bounding box, or None for unbounded shapes.
        params: The shape parameters as provided during creation.
    """

    shape_id: int
    kind: ShapeKind
    material_id: int
    transform: Transform
    bounds: AABB | None
    params: dict[str, Any] = field(default_factory=dict)


class SceneManager:
    """Unified scene manager coordinating shapes, materials and textures.

    Attributes:
        materials: List of MaterialInfo for all registered materials.
        shapes: List of ShapeInfo for all shapes in the scene.
        background: Background color.
        sky: Whether the sky gradient is applied to escaping rays.

    Example:
        >>> scene = SceneManager()
        >>> red = scene.add_lambertian_material(albedo=(0.8, 0.1, 0.1))
        >>> gold = scene.add_metal_material(albedo=(0.8, 0.6, 0.2), fuzz=0.3)
        >>> glass = scene.add_dielectric_material(ior=1.5)
        >>> scene.add_sphere(red, radius=0.5)
        0
        >>> scene.add_cube(gold, transform=Transform(translate=(2, 0, 0)))
        1
        >>> scene.add_sphere(glass, transform=Transform(translate=(-2, 0, 0)))
        2
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.materials: list[MaterialInfo] = []
        self.shapes: list[ShapeInfo] = []
        self.background: tuple[float, float, float] = (0.0, 0.0, 0.0)
        self.sky = False
        self._material_names: dict[str, int] = {}
        self._built = False
        self._clear_all()

    def _clear_all(self) -> None:
        """Clear all scene data including Taichi fields."""
        intersection.clear_scene()
        clear_textures()
        clear_all_materials()
        _clear_material_tracking()
        self.materials.clear()
        self.shapes.clear()
        self._material_names.clear()
        self.background = (0.0, 0.0, 0.0)
        self.sky = False
        self._built = False

    def clear(self) -> None:
        """Clear the entire scene (shapes, materials and textures)."""
        self._clear_all()

    # =========================================================================
    # Texture Management
    # =========================================================================

    def add_solid_texture(self, color: tuple[float, float, float]) -> int:
        """Add a constant-color texture and return its id."""
        return add_solid_texture(_as_color(color, "Solid color"))

    def add_checker_texture(
        self,
        odd: ColorOrTexture,
        even: ColorOrTexture,
        multipliers: tuple[float, float, float] = (1.0, 1.0, 1.0),
        scale: float = 1.0,
    ) -> int:
        """Add a 3-D checker over two colors or textures and return its id."""
        return add_checker_texture(
            self._texture(odd, "odd"), self._texture(even, "even"), tuple(multipliers), scale
        )

    def add_uv_checker_texture(
        self,
        odd: ColorOrTexture,
        even: ColorOrTexture,
        multipliers: tuple[float, float] = (1.0, 1.0),
    ) -> int:
        """Add a checker in surface coordinates and return its id."""
        return add_uv_checker_texture(self._texture(odd, "odd"), self._texture(even, "even"), tuple(multipliers))

    def add_noise_texture(self, scale: float = 1.0, seed: int | None = None) -> int:
        """Add a Perlin marble texture and return its id; seed fixes its table."""
        return add_noise_texture(scale, seed=seed)

    def add_image_texture(self, image: str | Path | np.ndarray) -> int:
        """Add an image texture from a file path or an (h, w, 3) array.

        Raises:
            ResourceError: If the file is missing or cannot be decoded.
            ConfigurationError: If the texel pool capacity is exceeded.
        """
        if isinstance(image, (str, Path)):
            return add_image_texture(load_image(image), source=str(image))
        return add_image_texture(image)

    def _texture(self, value: ColorOrTexture, role: str) -> int:
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            texture_id = int(value)
            if not 0 <= texture_id < get_texture_count():
                raise ConfigurationError(f"Unknown {role} texture id {texture_id}")
            return texture_id
        return self.add_solid_texture(value)

    # =========================================================================
    # Material Management
    # =========================================================================

    def _register_material(
        self,
        material_type: MaterialType,
        type_index: int,
        name: str | None,
        params: dict[str, Any],
    ) -> int:
        material_id = num_materials[None]
        if material_id >= MAX_MATERIALS:
            raise ConfigurationError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
        if name is not None and name in self._material_names:
            raise ConfigurationError(f"Material name '{name}' is already defined")

        material_types[material_id] = int(material_type)
        material_type_indices[material_id] = type_index
        num_materials[None] = material_id + 1

        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                name=name,
                params=params,
            )
        )
        if name is not None:
            self._material_names[name] = material_id
        return material_id

    def add_lambertian_material(self, albedo: ColorOrTexture, name: str | None = None) -> int:
        """Add a Lambertian (diffuse) material to the scene.

        Args:
            albedo: The diffuse reflectance as an (R, G, B) tuple or a
                texture id.
            name: Optional name for lookups by shapes.

        Returns:
            The unified material ID for this material.
        """
        type_index = add_lambertian_material(self._texture(albedo, "albedo"))
        return self._register_material(MaterialType.LAMBERTIAN, type_index, name, {"albedo": albedo})

    def add_metal_material(self, albedo: ColorOrTexture, fuzz: float = 0.0, name: str | None = None) -> int:
        """Add a metal (specular reflective) material to the scene.

        Args:
            albedo: The reflective color as an (R, G, B) tuple or a texture id.
            fuzz: Perturbation of the reflected ray; clamped to 1.
            name: Optional name for lookups by shapes.

        Returns:
            The unified material ID for this material.
        """
        type_index = add_metal_material(self._texture(albedo, "albedo"), fuzz)
        return self._register_material(MaterialType.METAL, type_index, name, {"albedo": albedo, "fuzz": fuzz})

    def add_dielectric_material(self, ior: float = 1.5, name: str | None = None) -> int:
        """Add a dielectric (glass-like) material to the scene.

        Args:
            ior: The index of refraction. Default is 1.5 (glass).
            name: Optional name for lookups by shapes.

        Returns:
            The unified material ID for this material.
        """
        type_index = add_dielectric_material(ior)
        return self._register_material(MaterialType.DIELECTRIC, type_index, name, {"ior": ior})

    def add_diffuse_light_material(self, emit: ColorOrTexture, name: str | None = None) -> int:
        """Add an emissive material to the scene.

        Args:
            emit: Emitted radiance as an (R, G, B) tuple or a texture id.
                Components may exceed 1.
            name: Optional name for lookups by shapes.

        Returns:
            The unified material ID for this material.
        """
        type_index = add_diffuse_light_material(self._texture(emit, "emit"))
        return self._register_material(MaterialType.DIFFUSE_LIGHT, type_index, name, {"emit": emit})

    def resolve_material(self, material: int | str) -> int:
        """Map a material name or id to a valid material id.

        Raises:
            ConfigurationError: If the name is not defined or the id is out
                of range.
        """
        if isinstance(material, str):
            if material not in self._material_names:
                raise ConfigurationError(f"Unknown material '{material}'")
            return self._material_names[material]
        if not 0 <= int(material) < len(self.materials):
            raise ConfigurationError(f"Unknown material id {material}")
        return int(material)

    def get_material_count(self) -> int:
        """Get the total number of materials registered."""
        return len(self.materials)

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """Get information about a material by ID."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def get_material_type_python(self, material_id: int) -> MaterialType | None:
        """Get the material type for a material ID (Python-side lookup)."""
        info = self.get_material_info(material_id)
        return info.material_type if info is not None else None

    # =========================================================================
    # Shape Management
    # =========================================================================

    def _add_shape(
        self,
        kind: ShapeKind,
        type_index: int,
        material_id: int,
        transform: Transform,
        local_bounds: tuple[Any, Any] | None,
        params: dict[str, Any],
    ) -> int:
        bounds = None
        if local_bounds is not None:
            bounds = AABB(*transform.transform_bounds(*local_bounds))
        shape_id = intersection.add_shape_record(kind, type_index, material_id, transform)
        self.shapes.append(
            ShapeInfo(
                shape_id=shape_id,
                kind=kind,
                material_id=material_id,
                transform=transform,
                bounds=bounds,
                params=params,
            )
        )
        self._built = False
        return shape_id

    def add_sphere(
        self,
        material: int | str,
        radius: float = 1.0,
        transform: Transform | None = None,
        inverse_normal: bool = False,
    ) -> int:
        """Add a sphere centered at the local origin.

        Args:
            material: Material id or name.
            radius: Radius of the sphere (must be positive).
            transform: Local-to-world transform. Defaults to identity.
            inverse_normal: Report inward normals, so the outside of the
                sphere counts as its back face.

        Returns:
            The shape id.
        """
        if radius <= 0.0:
            raise ConfigurationError(f"Sphere radius = {radius} must be positive")
        material_id = self.resolve_material(material)
        transform = transform or Transform.identity()
        type_index = intersection.add_sphere_params(radius, inverse_normal)
        local = ((-radius, -radius, -radius), (radius, radius, radius))
        params = {"radius": radius, "inverse_normal": inverse_normal}
        return self._add_shape(ShapeKind.SPHERE, type_index, material_id, transform, local, params)

    def add_torus(
        self,
        material: int | str,
        major_radius: float = 1.0,
        tube_radius: float = 0.25,
        transform: Transform | None = None,
        step: float | None = None,
    ) -> int:
        """Add a torus around the local z axis.

        Args:
            material: Material id or name.
            major_radius: Distance R from the axis to the tube center.
            tube_radius: Radius r of the tube.
            transform: Local-to-world transform. Defaults to identity.
            step: March increment; defaults to min(R, r) / 8.

        Returns:
            The shape id.
        """
        if major_radius <= 0.0 or tube_radius <= 0.0:
            raise ConfigurationError(
                f"Torus radii ({major_radius}, {tube_radius}) must both be positive"
            )
        if step is None:
            step = min(major_radius, tube_radius) / 8.0
        params = (major_radius, tube_radius, 0.0, 0.0)
        return self._add_field_shape(FieldKind.TORUS, params, 0.0, step, material, transform)

    def add_implicit(
        self,
        material: int | str,
        kind: FieldKind,
        params: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0),
        sphere_radius: float = 1.0,
        step: float = 0.01,
        transform: Transform | None = None,
    ) -> int:
        """Add a surface defined by the zero set of a named scalar field.

        Args:
            material: Material id or name.
            kind: The field (see FieldKind).
            params: Field parameters (a, b, c, d).
            sphere_radius: Half extent of the marching box for fields that
                take one.
            step: March increment along the ray (must be positive).
            transform: Local-to-world transform. Defaults to identity.

        Returns:
            The shape id.
        """
        if sphere_radius <= 0.0:
            raise ConfigurationError(f"Bounding radius = {sphere_radius} must be positive")
        return self._add_field_shape(FieldKind(kind), params, sphere_radius, step, material, transform)

    def _add_field_shape(self, kind, params, sphere_radius, step, material, transform) -> int:
        if step <= 0.0:
            raise ConfigurationError(f"March step = {step} must be positive")
        params = tuple(float(p) for p in params)
        if len(params) != 4:
            raise ConfigurationError(f"Field parameters {params} must have four components")
        material_id = self.resolve_material(material)
        transform = transform or Transform.identity()
        half_extents = field_half_extents(kind, params, sphere_radius)
        type_index = intersection.add_implicit_params(kind, params, half_extents, step)
        local = (-half_extents, half_extents)
        info = {"field": kind.name, "params": params, "step": step, "sphere_radius": sphere_radius}
        return self._add_shape(ShapeKind.IMPLICIT, type_index, material_id, transform, local, info)

    def add_rectangle(
        self,
        material: int | str,
        bounds: tuple[float, float, float, float] | None = (-1.0, -1.0, 1.0, 1.0),
        offset: float = 0.0,
        transform: Transform | None = None,
    ) -> int:
        """Add a rectangle in the local plane z = offset.

        Args:
            material: Material id or name.
            bounds: (x0, y0, x1, y1) with x0 < x1 and y0 < y1, or None for
                an infinite plane.
            offset: Position of the plane along the local z axis.
            transform: Local-to-world transform. Defaults to identity.

        Returns:
            The shape id.
        """
        local = None
        if bounds is not None:
            x0, y0, x1, y1 = (float(b) for b in bounds)
            if not (x0 < x1 and y0 < y1):
                raise ConfigurationError(f"Rectangle bounds {tuple(bounds)} are empty")
            bounds = (x0, y0, x1, y1)
            local = ((x0, y0, offset - RECTANGLE_PADDING), (x1, y1, offset + RECTANGLE_PADDING))
        material_id = self.resolve_material(material)
        transform = transform or Transform.identity()
        type_index = intersection.add_rectangle_params(bounds, offset)
        params = {"bounds": bounds, "offset": offset}
        return self._add_shape(ShapeKind.RECTANGLE, type_index, material_id, transform, local, params)

    def add_plane(self, material: int | str, offset: float = 0.0, transform: Transform | None = None) -> int:
        """Add an infinite plane z = offset (local space)."""
        return self.add_rectangle(material, bounds=None, offset=offset, transform=transform)

    def add_cube(self, material: int | str, transform: Transform | None = None) -> int:
        """Add the cube [-1, 1]^3; size and placement come from the transform."""
        material_id = self.resolve_material(material)
        transform = transform or Transform.identity()
        local = ((-1.0, -1.0, -1.0), (1.0, 1.0, 1.0))
        return self._add_shape(ShapeKind.CUBE, 0, material_id, transform, local, {})

    def bounding_box(self, shape_id: int) -> AABB | None:
        """World-space bounding box of a shape, None if it is unbounded."""
        return self.shapes[shape_id].bounds

    # =========================================================================
    # Background and Build
    # =========================================================================

    def set_background(self, color: tuple[float, float, float], sky: bool = False) -> None:
        """Set the color of escaping rays, optionally as a sky gradient."""
        self.background = _as_color(color, "Background")
        self.sky = bool(sky)
        intersection.set_background(self.background, self.sky)

    def build(self) -> None:
        """Build the BVH over bounded shapes and upload the unbounded list.

        Safe to call repeatedly; work is only done after the shape list
        changed.
        """
        if self._built:
            return
        bounded = [(s.shape_id, s.bounds) for s in self.shapes if s.bounds is not None]
        unbounded = [s.shape_id for s in self.shapes if s.bounds is None]
        build_scene_bvh(bounded)
        intersection.set_unbounded_shapes(unbounded)
        self._built = True
        logger.info(
            f"Scene built: {len(self.shapes)} shapes ({len(bounded)} bounded, "
            f"{len(unbounded)} unbounded), {len(self.materials)} materials, "
            f"{get_texture_count()} textures"
        )

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_shape_count(self) -> int:
        """Get the number of shapes in the scene."""
        return len(self.shapes)

    def from_dict(self, data: dict[str, Any], base_dir: str | Path | None = None) -> None:
        """Load a scene description dictionary into this (cleared) scene.

        See ``lumen.scene.description`` for the format. The camera block, if
        any, is ignored here; use ``build_scene`` to get it as well.
        """
        from lumen.scene.description import populate_scene

        self.clear()
        populate_scene(self, data, base_dir)

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_shapes() -> int:
        """Get the maximum number of shapes supported."""
        return intersection.MAX_SHAPES

    @staticmethod
    def get_max_materials() -> int:
        """Get the maximum number of materials supported."""
        return MAX_MATERIALS


def _as_color(color, role: str) -> tuple[float, float, float]:
    try:
        values = np.asarray(color, dtype=np.float64).ravel()
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{role} {color!r} is not a finite RGB triple") from exc
    if values.shape != (3,) or not np.all(np.isfinite(values)):
        raise ConfigurationError(f"{role} {color!r} is not a finite RGB triple")
    return (float(values[0]), float(values[1]), float(values[2]))
