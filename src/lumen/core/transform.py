"""Affine object-to-world transforms.

A Transform is built once from translate / rotate / scale parameters and is
immutable afterwards. The forward transform applies, in order:

    1. scale (per axis)
    2. rotation about X, then Y, then Z (degrees)
    3. translation

so that ``forward = T @ Rz @ Ry @ Rx @ S``. The inverse is computed
analytically as ``S^-1 @ R^T @ T^-1``. Normals are mapped with the
inverse-transpose of the linear part so they stay perpendicular to the
surface under non-uniform scale.

The Python side works in float64 NumPy arrays. The matrices are uploaded to
Taichi fields by the scene, and the ``transform_*`` Taichi functions at the
bottom of this module apply them inside kernels.

Example:
    >>> t = Transform(translate=(0, 1, 0), scale=(2, 2, 2))
    >>> t.to_world((1.0, 0.0, 0.0))
    array([2., 1., 0.])
"""

import math
from collections.abc import Sequence

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from lumen.errors import ConfigurationError

vec3 = tm.vec3
mat3 = tm.mat3

Vec3Like = Sequence[float] | npt.NDArray[np.floating]


def _as_vec3(value: Vec3Like, name: str) -> npt.NDArray[np.float64]:
    array = np.asarray(value, dtype=np.float64)
    if array.shape != (3,):
        raise ConfigurationError(f"{name} must have exactly 3 components, got {value!r}")
    if not np.all(np.isfinite(array)):
        raise ConfigurationError(f"{name} must be finite, got {value!r}")
    return array


def rotation_matrix(angles_degrees: Vec3Like) -> npt.NDArray[np.float64]:
    """Build the 3x3 rotation Rz @ Ry @ Rx for per-axis angles in degrees."""
    ax, ay, az = (math.radians(a) for a in angles_degrees)
    cx, sx = math.cos(ax), math.sin(ax)
    cy, sy = math.cos(ay), math.sin(ay)
    cz, sz = math.cos(az), math.sin(az)

    rx = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    ry = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    rz = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])
    return rz @ ry @ rx


class Transform:
    """Immutable affine transform from a shape's local space to world space.

    Attributes:
        translate: Translation applied last.
        rotate: Rotation angles about X, Y and Z in degrees.
        scale: Per-axis scale applied first. No component may be zero.
        forward: 4x4 local-to-world matrix.
        inverse: 4x4 world-to-local matrix.
        normal_matrix: 3x3 inverse-transpose of the forward linear part.
    """

    def __init__(
        self,
        translate: Vec3Like = (0.0, 0.0, 0.0),
        rotate: Vec3Like = (0.0, 0.0, 0.0),
        scale: Vec3Like = (1.0, 1.0, 1.0),
    ) -> None:
        """Build the forward, inverse and normal matrices.

        Raises:
            ConfigurationError: If any scale component is exactly zero or any
                parameter is not a finite 3-vector.
        """
        self.translate = _as_vec3(translate, "translate")
        self.rotate = _as_vec3(rotate, "rotate")
        self.scale = _as_vec3(scale, "scale")

        if np.any(self.scale == 0.0):
            raise ConfigurationError(
                f"Transform scale {tuple(self.scale)} has a zero component and is not invertible"
            )

        rotation = rotation_matrix(self.rotate)
        linear = rotation @ np.diag(self.scale)
        inverse_linear = np.diag(1.0 / self.scale) @ rotation.T

        forward = np.eye(4)
        forward[:3, :3] = linear
        forward[:3, 3] = self.translate

        inverse = np.eye(4)
        inverse[:3, :3] = inverse_linear
        inverse[:3, 3] = -inverse_linear @ self.translate

        self.forward = forward
        self.inverse = inverse
        self.normal_matrix = inverse_linear.T.copy()

        for matrix in (self.translate, self.rotate, self.scale, self.forward, self.inverse, self.normal_matrix):
            matrix.setflags(write=False)

    @classmethod
    def identity(cls) -> "Transform":
        """Return the identity transform."""
        return cls()

    @property
    def linear(self) -> npt.NDArray[np.float64]:
        """The 3x3 linear part of the forward transform."""
        return self.forward[:3, :3]

    @property
    def inverse_linear(self) -> npt.NDArray[np.float64]:
        """The 3x3 linear part of the inverse transform."""
        return self.inverse[:3, :3]

    def to_world(self, point: Vec3Like) -> npt.NDArray[np.float64]:
        """Map a local-space point to world space."""
        return self.linear @ np.asarray(point, dtype=np.float64) + self.translate

    def to_world_dir(self, direction: Vec3Like) -> npt.NDArray[np.float64]:
        """Map a local-space direction to world space (no translation)."""
        return self.linear @ np.asarray(direction, dtype=np.float64)

    def to_local(self, point: Vec3Like) -> npt.NDArray[np.float64]:
        """Map a world-space point to local space."""
        return self.inverse_linear @ np.asarray(point, dtype=np.float64) + self.inverse[:3, 3]

    def to_local_dir(self, direction: Vec3Like) -> npt.NDArray[np.float64]:
        """Map a world-space direction to local space (no translation)."""
        return self.inverse_linear @ np.asarray(direction, dtype=np.float64)

    def normal_to_world(self, normal: Vec3Like) -> npt.NDArray[np.float64]:
        """Map a local-space normal to a unit world-space normal."""
        n = self.normal_matrix @ np.asarray(normal, dtype=np.float64)
        return n / np.linalg.norm(n)

    def transform_bounds(
        self,
        local_min: Vec3Like,
        local_max: Vec3Like,
    ) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Transform a local box and return the world box enclosing it.

        All eight corners are mapped by the forward transform, so the result
        stays conservative under rotation.
        """
        lo = np.asarray(local_min, dtype=np.float64)
        hi = np.asarray(local_max, dtype=np.float64)
        corners = np.array(
            [[x, y, z] for x in (lo[0], hi[0]) for y in (lo[1], hi[1]) for z in (lo[2], hi[2])]
        )
        world = corners @ self.linear.T + self.translate
        return world.min(axis=0), world.max(axis=0)

    def __repr__(self) -> str:
        return (
            f"Transform(translate={tuple(self.translate)}, rotate={tuple(self.rotate)}, "
            f"scale={tuple(self.scale)})"
        )


# =============================================================================
# Kernel-side application (matrices uploaded by the scene)
# =============================================================================


@ti.func
def transform_point(linear: mat3, translation: vec3, p: vec3) -> vec3:
    """Apply an affine transform given as linear part plus translation."""
    return linear @ p + translation


@ti.func
def transform_direction(linear: mat3, d: vec3) -> vec3:
    """Apply the linear part of a transform to a direction."""
    return linear @ d


@ti.func
def transform_normal(normal_matrix: mat3, n: vec3) -> vec3:
    """Map a normal with the inverse-transpose matrix and renormalize it."""
    return tm.normalize(normal_matrix @ n)
