"""Declarative scene descriptions.

A scene description is a dictionary (usually loaded from JSON) of the form::

    {
        "background": [0.5, 0.7, 1.0],
        "sky": false,
        "camera": {"position": [0, 0, 3], "direction": [0, 0, -1],
                   "up": [0, 1, 0], "fov": 60, "focal_length": 1},
        "materials": {
            "floor": {"type": "Lambertian",
                      "albedo": {"type": "CheckerTexture",
                                 "odd": [0.2, 0.3, 0.1], "even": [0.9, 0.9, 0.9],
                                 "scale": 10}},
            "lamp": {"type": "DiffuseLight", "emit": [4, 4, 4]}
        },
        "shapes": [
            {"type": "Sphere", "material": "floor",
             "transform": {"translate": {"x": 0, "y": -1000, "z": 0},
                           "scale": [1000, 1000, 1000]}},
            {"type": "BruteForceShape", "material": "lamp", "step": 0.01,
             "shape": {"type": "Cushion", "sphere_radius": 2}}
        ]
    }

Every "type" tag is resolved through a registry (SHAPE_BUILDERS,
MATERIAL_BUILDERS, TEXTURE_BUILDERS, FIELD_KINDS). Vectors are accepted as
three-element lists or as {x, y, z} objects. A texture may be written as a
bare color, which is shorthand for a SolidColor. Image filenames are
resolved relative to the directory of the scene file.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import numpy as np

from lumen.camera.pinhole import PinholeCamera, camera_basis
from lumen.core.transform import Transform
from lumen.errors import ConfigurationError, ResourceError
from lumen.geometry.fields import FieldKind
from lumen.scene.manager import SceneManager

logger = logging.getLogger(__name__)


# =============================================================================
# Value parsing
# =============================================================================


def parse_vec3(value: Any, where: str = "vector") -> tuple[float, float, float]:
    """Parse a 3-vector given as a list or as an {x, y, z} mapping.

    Raises:
        ConfigurationError: If the value is not three finite numbers.
    """
    if isinstance(value, Mapping):
        try:
            value = [value["x"], value["y"], value["z"]]
        except KeyError as exc:
            raise ConfigurationError(f"{where}: missing component {exc.args[0]!r}") from exc
    try:
        array = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{where}: {value!r} is not a 3-vector") from exc
    if array.shape != (3,) or not np.all(np.isfinite(array)):
        raise ConfigurationError(f"{where}: {value!r} is not a finite 3-vector")
    return (float(array[0]), float(array[1]), float(array[2]))


def _number(desc: Mapping[str, Any], key: str, where: str, default: float | None = None) -> float:
    if key not in desc:
        if default is None:
            raise ConfigurationError(f"{where}: missing required field '{key}'")
        return default
    try:
        return float(desc[key])
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{where}: field '{key}' = {desc[key]!r} is not a number") from exc


def _optional_number(desc: Mapping[str, Any], key: str, where: str) -> float | None:
    return _number(desc, key, where) if key in desc else None


def _type_tag(desc: Any, where: str) -> str:
    if not isinstance(desc, Mapping) or "type" not in desc:
        raise ConfigurationError(f"{where}: expected an object with a 'type' tag, got {desc!r}")
    return str(desc["type"])


def _lookup(registry: Mapping[str, Any], tag: str, what: str) -> Any:
    if tag not in registry:
        known = ", ".join(sorted(registry))
        raise ConfigurationError(f"Unknown {what} type '{tag}' (known: {known})")
    return registry[tag]


def parse_transform(desc: Mapping[str, Any] | None, where: str = "transform") -> Transform:
    """Build a Transform from {translate, rotate, scale}, all optional."""
    if desc is None:
        return Transform.identity()
    if not isinstance(desc, Mapping):
        raise ConfigurationError(f"{where}: expected an object, got {desc!r}")
    return Transform(
        translate=parse_vec3(desc.get("translate", (0.0, 0.0, 0.0)), f"{where}.translate"),
        rotate=parse_vec3(desc.get("rotate", (0.0, 0.0, 0.0)), f"{where}.rotate"),
        scale=parse_vec3(desc.get("scale", (1.0, 1.0, 1.0)), f"{where}.scale"),
    )


def parse_camera(desc: Mapping[str, Any] | None) -> PinholeCamera:
    """Build a PinholeCamera; omitted fields take the dataclass defaults.

    Raises:
        ConfigurationError: If a field is malformed or the direction and up
            vector do not span a basis.
    """
    camera = PinholeCamera()
    if desc is None:
        return camera
    if "position" in desc:
        camera.position = parse_vec3(desc["position"], "camera.position")
    if "direction" in desc:
        camera.direction = parse_vec3(desc["direction"], "camera.direction")
    if "up" in desc:
        camera.up = parse_vec3(desc["up"], "camera.up")
    camera.fov = _number(desc, "fov", "camera", camera.fov)
    camera.focal_length = _number(desc, "focal_length", "camera", camera.focal_length)
    camera_basis(camera)
    return camera


# =============================================================================
# Textures
# =============================================================================


def _solid_color(scene, desc, base_dir):
    return scene.add_solid_texture(parse_vec3(desc.get("color"), "SolidColor.color"))


def _checker(scene, desc, base_dir):
    return scene.add_checker_texture(
        build_texture(scene, desc.get("odd"), base_dir, "CheckerTexture.odd"),
        build_texture(scene, desc.get("even"), base_dir, "CheckerTexture.even"),
        parse_vec3(desc.get("multipliers", (1.0, 1.0, 1.0)), "CheckerTexture.multipliers"),
        _number(desc, "scale", "CheckerTexture", 1.0),
    )


def _uv_checker(scene, desc, base_dir):
    multipliers = desc.get("multipliers", (1.0, 1.0))
    try:
        mu, mv = (float(m) for m in multipliers)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"UVChecker.multipliers: {multipliers!r} is not a pair") from exc
    return scene.add_uv_checker_texture(
        build_texture(scene, desc.get("odd"), base_dir, "UVChecker.odd"),
        build_texture(scene, desc.get("even"), base_dir, "UVChecker.even"),
        (mu, mv),
    )


def _image(scene, desc, base_dir):
    if "image_filename" not in desc:
        raise ConfigurationError("ImageTexture: missing required field 'image_filename'")
    path = Path(desc["image_filename"])
    if base_dir is not None and not path.is_absolute():
        path = Path(base_dir) / path
    return scene.add_image_texture(path)


def _noise(scene, desc, base_dir):
    seed = desc.get("seed")
    if seed is not None and not isinstance(seed, int):
        raise ConfigurationError(f"NoiseTexture: field 'seed' = {seed!r} is not an integer")
    return scene.add_noise_texture(_number(desc, "scale", "NoiseTexture", 1.0), seed=seed)


TEXTURE_BUILDERS: dict[str, Callable[..., int]] = {
    "SolidColor": _solid_color,
    "CheckerTexture": _checker,
    "UVChecker": _uv_checker,
    "ImageTexture": _image,
    "NoiseTexture": _noise,
}


def build_texture(scene: SceneManager, desc: Any, base_dir: Path | None, where: str = "texture") -> int:
    """Register a (possibly nested) texture and return its id.

    A bare vector stands for a SolidColor of that color.
    """
    if desc is None:
        raise ConfigurationError(f"{where}: missing texture")
    if not (isinstance(desc, Mapping) and "type" in desc):
        return scene.add_solid_texture(parse_vec3(desc, where))
    builder = _lookup(TEXTURE_BUILDERS, _type_tag(desc, where), "texture")
    return builder(scene, desc, base_dir)


# =============================================================================
# Materials
# =============================================================================


def _lambertian(scene, desc, name, base_dir):
    albedo = build_texture(scene, desc.get("albedo"), base_dir, f"{name}.albedo")
    return scene.add_lambertian_material(albedo, name=name)


def _metal(scene, desc, name, base_dir):
    albedo = build_texture(scene, desc.get("albedo"), base_dir, f"{name}.albedo")
    return scene.add_metal_material(albedo, _number(desc, "fuzz", name, 0.0), name=name)


def _dielectric(scene, desc, name, base_dir):
    return scene.add_dielectric_material(_number(desc, "index_of_refraction", name), name=name)


def _diffuse_light(scene, desc, name, base_dir):
    emit = build_texture(scene, desc.get("emit"), base_dir, f"{name}.emit")
    return scene.add_diffuse_light_material(emit, name=name)


MATERIAL_BUILDERS: dict[str, Callable[..., int]] = {
    "Lambertian": _lambertian,
    "Metal": _metal,
    "Dielectric": _dielectric,
    "DiffuseLight": _diffuse_light,
}


# =============================================================================
# Shapes
# =============================================================================

# Field type tag -> (kind, parameter names packed into (a, b, c, d))
FIELD_KINDS: dict[str, tuple[FieldKind, tuple[str, ...]]] = {
    "Cushion": (FieldKind.CUSHION, ()),
    "Heart": (FieldKind.HEART, ()),
    "Sine": (FieldKind.SINE, ("a",)),
    "Star": (FieldKind.STAR, ("a",)),
    "DupinCyclide": (FieldKind.DUPIN_CYCLIDE, ("a", "b", "c", "d")),
    "HuntsSurface": (FieldKind.HUNTS_SURFACE, ()),
}


def _sphere(scene, desc, material, transform, where):
    radius = _number(desc, "radius", where, 1.0)
    if "tube_radius" in desc:
        return scene.add_torus(
            material,
            major_radius=radius,
            tube_radius=_number(desc, "tube_radius", where),
            transform=transform,
            step=_optional_number(desc, "step", where),
        )
    inverse_normal = desc.get("inverse_normal", False)
    if not isinstance(inverse_normal, bool):
        raise ConfigurationError(f"{where}: field 'inverse_normal' = {inverse_normal!r} is not a boolean")
    return scene.add_sphere(material, radius=radius, transform=transform, inverse_normal=inverse_normal)


def _torus(scene, desc, material, transform, where):
    return scene.add_torus(
        material,
        major_radius=_number(desc, "radius", where),
        tube_radius=_number(desc, "tube_radius", where),
        transform=transform,
        step=_optional_number(desc, "step", where),
    )


def _rectangle(scene, desc, material, transform, where):
    keys = ("x0", "y0", "x1", "y1")
    present = [key for key in keys if key in desc]
    offset = _number(desc, "k", where, 0.0)
    if not present:
        return scene.add_plane(material, offset=offset, transform=transform)
    if len(present) != len(keys):
        missing = ", ".join(key for key in keys if key not in desc)
        raise ConfigurationError(f"{where}: rectangle bounds incomplete, missing {missing}")
    bounds = tuple(_number(desc, key, where) for key in keys)
    return scene.add_rectangle(material, bounds=bounds, offset=offset, transform=transform)


def _cube(scene, desc, material, transform, where):
    return scene.add_cube(material, transform=transform)


def _brute_force(scene, desc, material, transform, where):
    field_desc = desc.get("shape")
    tag = _type_tag(field_desc, f"{where}.shape")
    kind, names = _lookup(FIELD_KINDS, tag, "field")
    params = [0.0, 0.0, 0.0, 0.0]
    for i, name in enumerate(names):
        params[i] = _number(field_desc, name, f"{where}.shape")
    return scene.add_implicit(
        material,
        kind,
        params=tuple(params),
        sphere_radius=_number(field_desc, "sphere_radius", f"{where}.shape", 1.0),
        step=_number(desc, "step", where),
        transform=transform,
    )


SHAPE_BUILDERS: dict[str, Callable[..., int]] = {
    "Sphere": _sphere,
    "Torus": _torus,
    "Rectangle": _rectangle,
    "Cube": _cube,
    "BruteForceShape": _brute_force,
}


# =============================================================================
# Entry points
# =============================================================================


def populate_scene(scene: SceneManager, description: Mapping[str, Any], base_dir: str | Path | None = None) -> None:
    """Add the background, materials and shapes of a description to a scene.

    Raises:
        ConfigurationError: On unknown type tags, dangling material names or
            malformed values.
        ResourceError: If an image texture cannot be loaded.
    """
    if not isinstance(description, Mapping):
        raise ConfigurationError(f"Scene description must be an object, got {type(description).__name__}")
    base = Path(base_dir) if base_dir is not None else None

    scene.set_background(
        parse_vec3(description.get("background", (0.0, 0.0, 0.0)), "background"),
        sky=bool(description.get("sky", False)),
    )

    materials = description.get("materials", {})
    if not isinstance(materials, Mapping):
        raise ConfigurationError("'materials' must map names to material descriptions")
    for name, desc in materials.items():
        builder = _lookup(MATERIAL_BUILDERS, _type_tag(desc, f"material '{name}'"), "material")
        builder(scene, desc, name, base)

    for index, desc in enumerate(description.get("shapes", [])):
        where = f"shapes[{index}]"
        builder = _lookup(SHAPE_BUILDERS, _type_tag(desc, where), "shape")
        if "material" not in desc:
            raise ConfigurationError(f"{where}: missing required field 'material'")
        transform = parse_transform(desc.get("transform"), f"{where}.transform")
        builder(scene, desc, desc["material"], transform, where)

    logger.debug(f"Populated scene: {len(materials)} materials, {scene.get_shape_count()} shapes")


def build_scene(
    description: Mapping[str, Any],
    base_dir: str | Path | None = None,
) -> tuple[SceneManager, PinholeCamera]:
    """Build a scene and its camera from a description dictionary."""
    scene = SceneManager()
    populate_scene(scene, description, base_dir)
    camera = parse_camera(description.get("camera"))
    return scene, camera


def load_scene(path: str | Path) -> tuple[SceneManager, PinholeCamera]:
    """Load a JSON scene file.

    Image filenames inside the file are resolved relative to its directory.

    Raises:
        ResourceError: If the file cannot be read.
        ConfigurationError: If the file is not valid JSON or not a valid
            scene description.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ResourceError(f"Could not read scene file {path}: {exc}") from exc
    try:
        description = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Scene file {path} is not valid JSON: {exc}") from exc

    logger.info(f"Loading scene {path}")
    return build_scene(description, base_dir=path.parent)
