"""Geometry module for shape primitives and bounding boxes.

This module provides geometric primitives and intersection algorithms:

Components:
    hit_record: Local-space intersection record
    aabb: Axis-Aligned Bounding Box utilities and the slab test
    rectangle: Rectangle-in-plane and infinite plane
    sphere: Sphere with latitude/longitude surface coordinates
    cube: Axis-aligned cube
    fields: Scalar fields of implicit surfaces (torus, cushion, heart, ...)
    implicit: Marching intersection for implicit surfaces

All intersection routines are Taichi functions working in the shape's local
space. The scene maps rays into local space and results back to world space.

Ray-object intersection follows the pattern:
    record = hit_<shape>(local_origin, local_direction, <params>, t_min, t_max)
"""

from .aabb import AABB, enclose, intersect_box
from .fields import FieldKind, field_half_extents
from .hit_record import HitRecord, make_miss_record

__all__ = [
    "AABB",
    "enclose",
    "intersect_box",
    "FieldKind",
    "field_half_extents",
    "HitRecord",
    "make_miss_record",
]
