"""Scene module for shape storage, acceleration and scene building.

Components:
    intersection: Shape table fields, per-shape hit and closest-hit query
    bvh: Median-split BVH, flattened for stackless traversal
    manager: SceneManager, the single owner of the resident scene
    description: Scene descriptions (dict or JSON file) to SceneManager
    cornell_box: The Cornell box sample scene
"""

# Order matters: bvh and manager import the intersection fields
from . import intersection
from .bvh import MAX_LEAF_SIZE, build_bvh, build_scene_bvh, flatten_bvh
from .intersection import (
    MAX_BVH_NODES,
    MAX_SHAPES,
    SceneHitRecord,
    ShapeKind,
    clear_scene,
    get_background,
    hit_shape,
    intersect_scene,
)
from .manager import MAX_MATERIALS, MaterialType, SceneManager, get_material_type, get_material_type_index
from .description import build_scene, load_scene, parse_vec3
from .cornell_box import CornellBoxParams, create_cornell_box_scene

__all__ = [
    "intersection",
    "MAX_LEAF_SIZE",
    "build_bvh",
    "flatten_bvh",
    "build_scene_bvh",
    "MAX_SHAPES",
    "MAX_BVH_NODES",
    "SceneHitRecord",
    "ShapeKind",
    "clear_scene",
    "get_background",
    "hit_shape",
    "intersect_scene",
    "MAX_MATERIALS",
    "MaterialType",
    "SceneManager",
    "get_material_type",
    "get_material_type_index",
    "build_scene",
    "load_scene",
    "parse_vec3",
    "CornellBoxParams",
    "create_cornell_box_scene",
]
