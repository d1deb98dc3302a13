"""Bounding volume hierarchy over the bounded shapes of a scene.

The tree is built on the Python side from world-space AABBs: each node
splits its shapes at the median centroid along the axis where the centroids
spread the most, until at most MAX_LEAF_SIZE shapes remain. The tree is then
flattened in depth-first pre-order. Every flattened node carries a skip
index, the position just past its subtree, so kernels can traverse it with a
single cursor: on a box hit move to the next node, on a miss jump to skip.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from lumen.errors import ConfigurationError
from lumen.geometry.aabb import AABB, enclose
from lumen.scene import intersection

logger = logging.getLogger(__name__)

# Maximum number of shapes stored in one leaf
MAX_LEAF_SIZE = 2


@dataclass
class BVHNode:
    """A node of the Python-side tree.

    Attributes:
        box: Box enclosing every shape below this node.
        shape_ids: Shapes stored in a leaf; empty for interior nodes.
        left: Left child, None for leaves.
        right: Right child, None for leaves.
    """

    box: AABB
    shape_ids: list[int]
    left: BVHNode | None = None
    right: BVHNode | None = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None


@dataclass
class FlatBVH:
    """A BVH flattened in depth-first pre-order.

    Attributes:
        node_min: (N, 3) lower box corners.
        node_max: (N, 3) upper box corners.
        skip: (N,) index of the first node after each subtree.
        leaf_starts: (N,) offset of a leaf's shapes in ``shape_ids``.
        leaf_counts: (N,) number of shapes in a leaf, 0 for interior nodes.
        shape_ids: Shape ids of all leaves, concatenated.
    """

    node_min: npt.NDArray[np.float64]
    node_max: npt.NDArray[np.float64]
    skip: npt.NDArray[np.int32]
    leaf_starts: npt.NDArray[np.int32]
    leaf_counts: npt.NDArray[np.int32]
    shape_ids: npt.NDArray[np.int32]

    @property
    def node_count(self) -> int:
        return len(self.skip)


def build_bvh(entries: list[tuple[int, AABB]]) -> BVHNode | None:
    """Build a tree over (shape_id, box) pairs.

    Returns:
        The root node, or None when there are no entries.
    """
    if not entries:
        return None

    box = enclose([b for _, b in entries])
    if len(entries) <= MAX_LEAF_SIZE:
        return BVHNode(box=box, shape_ids=[shape_id for shape_id, _ in entries])

    centroids = np.array([b.centroid for _, b in entries])
    spread = centroids.max(axis=0) - centroids.min(axis=0)
    axis = int(np.argmax(spread))

    order = np.argsort(centroids[:, axis], kind="stable")
    ordered = [entries[i] for i in order]
    mid = len(ordered) // 2

    return BVHNode(
        box=box,
        shape_ids=[],
        left=build_bvh(ordered[:mid]),
        right=build_bvh(ordered[mid:]),
    )


def flatten_bvh(root: BVHNode | None) -> FlatBVH:
    """Flatten a tree into pre-order arrays with skip indices."""
    node_min: list[npt.NDArray[np.float64]] = []
    node_max: list[npt.NDArray[np.float64]] = []
    skip: list[int] = []
    leaf_starts: list[int] = []
    leaf_counts: list[int] = []
    shape_ids: list[int] = []

    def visit(node: BVHNode) -> None:
        index = len(skip)
        node_min.append(node.box.minimum)
        node_max.append(node.box.maximum)
        skip.append(-1)
        if node.is_leaf:
            leaf_starts.append(len(shape_ids))
            leaf_counts.append(len(node.shape_ids))
            shape_ids.extend(node.shape_ids)
        else:
            leaf_starts.append(0)
            leaf_counts.append(0)
            visit(node.left)
            visit(node.right)
        skip[index] = len(skip)

    if root is not None:
        visit(root)

    return FlatBVH(
        node_min=np.array(node_min, dtype=np.float64).reshape(-1, 3),
        node_max=np.array(node_max, dtype=np.float64).reshape(-1, 3),
        skip=np.array(skip, dtype=np.int32),
        leaf_starts=np.array(leaf_starts, dtype=np.int32),
        leaf_counts=np.array(leaf_counts, dtype=np.int32),
        shape_ids=np.array(shape_ids, dtype=np.int32),
    )


def upload_bvh(flat: FlatBVH) -> None:
    """Copy a flattened BVH into the scene's Taichi fields.

    Raises:
        ConfigurationError: If the tree exceeds the node capacity.
    """
    if flat.node_count > intersection.MAX_BVH_NODES:
        raise ConfigurationError(
            f"BVH has {flat.node_count} nodes, but MAX_BVH_NODES is {intersection.MAX_BVH_NODES}"
        )

    for i in range(flat.node_count):
        intersection.bvh_node_min[i] = flat.node_min[i].tolist()
        intersection.bvh_node_max[i] = flat.node_max[i].tolist()
        intersection.bvh_skip[i] = int(flat.skip[i])
        intersection.bvh_leaf_starts[i] = int(flat.leaf_starts[i])
        intersection.bvh_leaf_counts[i] = int(flat.leaf_counts[i])
    for i, shape_id in enumerate(flat.shape_ids):
        intersection.bvh_shape_ids[i] = int(shape_id)
    intersection.num_bvh_nodes[None] = flat.node_count


def build_scene_bvh(entries: list[tuple[int, AABB]]) -> FlatBVH:
    """Build, flatten and upload the BVH for the bounded shapes."""
    flat = flatten_bvh(build_bvh(entries))
    upload_bvh(flat)
    logger.info(f"BVH built over {len(entries)} bounded shapes: {flat.node_count} nodes")
    return flat
