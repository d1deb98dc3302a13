"""Axis-aligned bounding boxes.

The Python-side AABB is used while building the scene and its BVH. The
``intersect_box`` slab test is used in kernels for BVH traversal and to
clip ray-marching intervals of implicit surfaces.
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


@dataclass(frozen=True)
class AABB:
    """An axis-aligned box given by its minimum and maximum corners.

    Attributes:
        minimum: Lower corner (x, y, z).
        maximum: Upper corner (x, y, z).
    """

    minimum: npt.NDArray[np.float64]
    maximum: npt.NDArray[np.float64]

    @classmethod
    def from_corners(cls, a, b) -> "AABB":
        a = np.asarray(a, dtype=np.float64)
        b = np.asarray(b, dtype=np.float64)
        return cls(np.minimum(a, b), np.maximum(a, b))

    def union(self, other: "AABB") -> "AABB":
        """Return the smallest box enclosing both boxes."""
        return AABB(np.minimum(self.minimum, other.minimum), np.maximum(self.maximum, other.maximum))

    @property
    def centroid(self) -> npt.NDArray[np.float64]:
        return 0.5 * (self.minimum + self.maximum)

    @property
    def extent(self) -> npt.NDArray[np.float64]:
        return self.maximum - self.minimum

    def largest_axis(self) -> int:
        """Index (0, 1 or 2) of the axis with the largest extent."""
        return int(np.argmax(self.extent))

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.minimum)) and np.all(np.isfinite(self.maximum)))


def enclose(boxes: list[AABB]) -> AABB:
    """Return the box enclosing a non-empty list of boxes."""
    result = boxes[0]
    for box in boxes[1:]:
        result = result.union(box)
    return result


@ti.func
def intersect_box(
    ray_origin: vec3,
    ray_direction: vec3,
    box_min: vec3,
    box_max: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
):
    """Slab test of a ray against an axis-aligned box.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The ray direction (zero components are allowed).
        box_min: Lower corner of the box.
        box_max: Upper corner of the box.
        t_min: Start of the valid ray interval.
        t_max: End of the valid ray interval.

    Returns:
        A tuple (hit, t_enter, t_exit) where hit is 1 if the ray overlaps
        the box within [t_min, t_max], and [t_enter, t_exit] is the overlap.
    """
    t_enter = t_min
    t_exit = t_max
    for axis in ti.static(range(3)):
        inv_d = 1.0 / ray_direction[axis]
        t_a = (box_min[axis] - ray_origin[axis]) * inv_d
        t_b = (box_max[axis] - ray_origin[axis]) * inv_d
        t_enter = tm.max(t_enter, tm.min(t_a, t_b))
        t_exit = tm.min(t_exit, tm.max(t_a, t_b))
    hit = ti.select(t_enter <= t_exit, 1, 0)
    return hit, t_enter, t_exit
