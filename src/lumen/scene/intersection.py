"""Scene-level ray intersection.

This module owns the Taichi fields that describe the resident scene: the
shape table (kind, per-kind parameter index, material id and transform), the
per-kind parameter rows, the flattened BVH, the list of unbounded shapes and
the background. ``intersect_scene`` returns the closest hit with material
information.

Every shape is intersected in its local space: the world ray is mapped with
the inverse transform, the direction is renormalized and the interval scaled
by the same factor, and the local hit is mapped back. The world t is then
recomputed from the world point so it is comparable across shapes.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from lumen.scene.intersection import intersect_scene
    >>> # Shapes are added through lumen.scene.manager.SceneManager;
    >>> # use intersect_scene within a Taichi kernel.
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from lumen.core.ray import face_forward
from lumen.core.transform import Transform, transform_normal, transform_point
from lumen.errors import ConfigurationError
from lumen.geometry.aabb import intersect_box
from lumen.geometry.cube import hit_cube
from lumen.geometry.hit_record import make_miss_record
from lumen.geometry.implicit import ImplicitSurface, hit_implicit
from lumen.geometry.rectangle import hit_rectangle
from lumen.geometry.sphere import hit_sphere

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


class ShapeKind(IntEnum):
    """Enumeration of supported shape kinds, used for kernel dispatch."""

    RECTANGLE = 0
    SPHERE = 1
    CUBE = 2
    IMPLICIT = 3


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Attributes:
        hit: Whether the ray intersected any shape (1 if hit, 0 if miss).
        t: Ray parameter of the hit in world space.
        point: World-space hit point.
        normal: Outward geometric normal in world space (unit length). Spheres
            added with inverse_normal report the inward one.
        front_face: 1 if the ray arrived from the outside of the surface.
        u: Surface coordinate u.
        v: Surface coordinate v.
        material_id: The material id of the hit shape, -1 on a miss.
        shape_id: The index of the hit shape, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    u: ti.f32
    v: ti.f32
    material_id: ti.i32
    shape_id: ti.i32


# Maximum number of shapes supported in the scene
MAX_SHAPES = 4096

# A binary tree over N leaves has fewer than 2N nodes
MAX_BVH_NODES = 2 * MAX_SHAPES

# Shape table: Structure of Arrays layout
shape_kinds = ti.field(dtype=ti.i32, shape=MAX_SHAPES)
shape_type_indices = ti.field(dtype=ti.i32, shape=MAX_SHAPES)
shape_material_ids = ti.field(dtype=ti.i32, shape=MAX_SHAPES)
shape_linear = ti.Matrix.field(3, 3, dtype=ti.f32, shape=MAX_SHAPES)
shape_inverse_linear = ti.Matrix.field(3, 3, dtype=ti.f32, shape=MAX_SHAPES)
shape_normal_matrices = ti.Matrix.field(3, 3, dtype=ti.f32, shape=MAX_SHAPES)
shape_translations = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SHAPES)
num_shapes = ti.field(dtype=ti.i32, shape=())

# Sphere parameters
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SHAPES)
sphere_inverted = ti.field(dtype=ti.i32, shape=MAX_SHAPES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Rectangle parameters: bounds are (x0, y0, x1, y1) in the plane z = offset
rectangle_bounds = ti.Vector.field(4, dtype=ti.f32, shape=MAX_SHAPES)
rectangle_offsets = ti.field(dtype=ti.f32, shape=MAX_SHAPES)
rectangle_bounded = ti.field(dtype=ti.i32, shape=MAX_SHAPES)
num_rectangles = ti.field(dtype=ti.i32, shape=())

# Implicit surface parameters
implicit_kinds = ti.field(dtype=ti.i32, shape=MAX_SHAPES)
implicit_params = ti.Vector.field(4, dtype=ti.f32, shape=MAX_SHAPES)
implicit_half_extents = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SHAPES)
implicit_steps = ti.field(dtype=ti.f32, shape=MAX_SHAPES)
num_implicits = ti.field(dtype=ti.i32, shape=())

# Flattened BVH in depth-first pre-order. A node's successor on a box hit is
# the next node; on a miss it is bvh_skip. Interior nodes have count 0.
bvh_node_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_node_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_skip = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_leaf_starts = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_leaf_counts = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_shape_ids = ti.field(dtype=ti.i32, shape=MAX_SHAPES)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())

# Shapes without a finite bounding box are tested on every query
unbounded_shape_ids = ti.field(dtype=ti.i32, shape=MAX_SHAPES)
num_unbounded_shapes = ti.field(dtype=ti.i32, shape=())

# Background
background_color = ti.Vector.field(3, dtype=ti.f32, shape=())
use_sky_gradient = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Clear all shapes, the BVH and the background.

    Resets the counts to zero. The field data is not cleared but will be
    overwritten when new shapes are added.
    """
    num_shapes[None] = 0
    num_spheres[None] = 0
    num_rectangles[None] = 0
    num_implicits[None] = 0
    num_bvh_nodes[None] = 0
    num_unbounded_shapes[None] = 0
    background_color[None] = [0.0, 0.0, 0.0]
    use_sky_gradient[None] = 0


def _next_index(counter, what: str) -> int:
    idx = counter[None]
    if idx >= MAX_SHAPES:
        raise ConfigurationError(f"Maximum number of {what} ({MAX_SHAPES}) exceeded")
    counter[None] = idx + 1
    return idx


def add_sphere_params(radius: float, inverse_normal: bool = False) -> int:
    """Store sphere parameters and return their index."""
    idx = _next_index(num_spheres, "spheres")
    sphere_radii[idx] = radius
    sphere_inverted[idx] = 1 if inverse_normal else 0
    return idx


def add_rectangle_params(bounds: tuple[float, float, float, float] | None, offset: float) -> int:
    """Store rectangle parameters and return their index.

    Args:
        bounds: (x0, y0, x1, y1), or None for an infinite plane.
        offset: Position k of the plane along the local Z axis.
    """
    idx = _next_index(num_rectangles, "rectangles")
    if bounds is None:
        rectangle_bounds[idx] = [0.0, 0.0, 0.0, 0.0]
        rectangle_bounded[idx] = 0
    else:
        rectangle_bounds[idx] = [float(b) for b in bounds]
        rectangle_bounded[idx] = 1
    rectangle_offsets[idx] = offset
    return idx


def add_implicit_params(kind: int, params, half_extents, step: float) -> int:
    """Store implicit surface parameters and return their index."""
    idx = _next_index(num_implicits, "implicit surfaces")
    implicit_kinds[idx] = int(kind)
    implicit_params[idx] = [float(p) for p in params]
    implicit_half_extents[idx] = [float(h) for h in half_extents]
    implicit_steps[idx] = step
    return idx


def add_shape_record(kind: ShapeKind, type_index: int, material_id: int, transform: Transform) -> int:
    """Add a row to the shape table.

    Args:
        kind: The shape kind.
        type_index: Index into the kind's parameter rows.
        material_id: Unified material id.
        transform: Local-to-world transform of the shape.

    Returns:
        The shape id.

    Raises:
        ConfigurationError: If the maximum number of shapes is exceeded.
    """
    idx = _next_index(num_shapes, "shapes")
    shape_kinds[idx] = int(kind)
    shape_type_indices[idx] = type_index
    shape_material_ids[idx] = material_id
    shape_linear[idx] = transform.linear.tolist()
    shape_inverse_linear[idx] = transform.inverse_linear.tolist()
    shape_normal_matrices[idx] = transform.normal_matrix.tolist()
    shape_translations[idx] = transform.translate.tolist()
    return idx


def set_unbounded_shapes(shape_ids: list[int]) -> None:
    """Replace the list of shapes tested outside the BVH."""
    for i, shape_id in enumerate(shape_ids):
        unbounded_shape_ids[i] = shape_id
    num_unbounded_shapes[None] = len(shape_ids)


def set_background(color: tuple[float, float, float], sky: bool = False) -> None:
    """Set the background color and whether the sky gradient is applied."""
    background_color[None] = [float(c) for c in color]
    use_sky_gradient[None] = 1 if sky else 0


def get_shape_count() -> int:
    """Get the number of shapes in the scene."""
    return int(num_shapes[None])


def get_bvh_node_count() -> int:
    """Get the number of nodes in the uploaded BVH."""
    return int(num_bvh_nodes[None])


@ti.func
def _make_scene_miss_record() -> SceneHitRecord:
    """Create a SceneHitRecord indicating no intersection."""
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        u=0.0,
        v=0.0,
        material_id=-1,
        shape_id=-1,
    )


@ti.func
def _hit_local(kind: ti.i32, type_index: ti.i32, origin: vec3, direction: vec3, t_min: ti.f32, t_max: ti.f32):
    rec = make_miss_record()
    if kind == int(ShapeKind.SPHERE):
        rec = hit_sphere(origin, direction, sphere_radii[type_index], t_min, t_max)
        if sphere_inverted[type_index] == 1:
            rec.normal = -rec.normal
    elif kind == int(ShapeKind.RECTANGLE):
        rec = hit_rectangle(
            origin,
            direction,
            rectangle_bounds[type_index],
            rectangle_offsets[type_index],
            rectangle_bounded[type_index],
            t_min,
            t_max,
        )
    elif kind == int(ShapeKind.CUBE):
        rec = hit_cube(origin, direction, t_min, t_max)
    elif kind == int(ShapeKind.IMPLICIT):
        surface = ImplicitSurface(
            kind=implicit_kinds[type_index],
            params=implicit_params[type_index],
            half_extents=implicit_half_extents[type_index],
            step=implicit_steps[type_index],
        )
        rec = hit_implicit(origin, direction, surface, t_min, t_max)
    return rec


@ti.func
def hit_shape(
    shape_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Intersect a world-space ray with one shape.

    Args:
        shape_id: Row in the shape table.
        ray_origin: The starting point of the ray.
        ray_direction: The direction of the ray (need not be normalized).
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A SceneHitRecord in world space, or a miss record.
    """
    result = _make_scene_miss_record()

    translation = shape_translations[shape_id]
    inverse_linear = shape_inverse_linear[shape_id]
    local_origin = inverse_linear @ (ray_origin - translation)
    raw_direction = inverse_linear @ ray_direction
    k = tm.length(raw_direction)

    if k > 0.0:
        local_direction = raw_direction / k
        rec = _hit_local(
            shape_kinds[shape_id],
            shape_type_indices[shape_id],
            local_origin,
            local_direction,
            t_min * k,
            t_max * k,
        )
        if rec.hit == 1:
            world_point = transform_point(shape_linear[shape_id], translation, rec.point)
            world_normal = transform_normal(shape_normal_matrices[shape_id], rec.normal)
            t = tm.dot(world_point - ray_origin, ray_direction) / tm.dot(ray_direction, ray_direction)
            _, front_face = face_forward(world_normal, ray_direction)
            result = SceneHitRecord(
                hit=1,
                t=t,
                point=world_point,
                normal=world_normal,
                front_face=front_face,
                u=rec.u,
                v=rec.v,
                material_id=shape_material_ids[shape_id],
                shape_id=shape_id,
            )
    return result


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Find the closest hit among all shapes in the scene.

    Walks the flattened BVH without a stack, skipping every subtree whose
    box is missed within [t_min, closest_t], then tests the unbounded shapes.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A SceneHitRecord containing the closest intersection, or a miss
        record if no intersection was found.
    """
    closest_t = t_max
    result = _make_scene_miss_record()

    n_nodes = num_bvh_nodes[None]
    node = 0
    while node < n_nodes:
        box_hit, _, _ = intersect_box(
            ray_origin, ray_direction, bvh_node_min[node], bvh_node_max[node], t_min, closest_t
        )
        if box_hit == 1:
            start = bvh_leaf_starts[node]
            for j in range(bvh_leaf_counts[node]):
                rec = hit_shape(bvh_shape_ids[start + j], ray_origin, ray_direction, t_min, closest_t)
                if rec.hit == 1 and rec.t < closest_t:
                    closest_t = rec.t
                    result = rec
            node += 1
        else:
            node = bvh_skip[node]

    for j in range(num_unbounded_shapes[None]):
        rec = hit_shape(unbounded_shape_ids[j], ray_origin, ray_direction, t_min, closest_t)
        if rec.hit == 1 and rec.t < closest_t:
            closest_t = rec.t
            result = rec

    return result


@ti.func
def get_background(direction: vec3) -> vec3:
    """Radiance of a ray that leaves the scene.

    Either the flat background color or, with the sky gradient enabled, a
    blend from white at the horizon below to the background color overhead.
    """
    color = background_color[None]
    if use_sky_gradient[None] == 1:
        unit_direction = tm.normalize(direction)
        a = 0.5 * (unit_direction.y + 1.0)
        color = (1.0 - a) * vec3(1.0, 1.0, 1.0) + a * background_color[None]
    return color

