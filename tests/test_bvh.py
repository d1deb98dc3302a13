"""Tests for BVH construction and flattening.

Tests cover:
- Leaf sizes and coverage of every shape
- Boxes enclosing their subtrees
- Pre-order layout with skip indices
- Capacity checks on upload
"""

import numpy as np
import pytest


def _unit_boxes(centers):
    from lumen.geometry.aabb import AABB

    return [
        (i, AABB.from_corners(np.subtract(c, 0.5), np.add(c, 0.5)))
        for i, c in enumerate(centers)
    ]


def _leaves(node):
    if node.is_leaf:
        return [node]
    return _leaves(node.left) + _leaves(node.right)


class TestBuildBVH:
    """Tests for build_bvh."""

    def test_empty(self):
        """Test that no entries give no tree and an empty flat BVH."""
        from lumen.scene.bvh import build_bvh, flatten_bvh

        assert build_bvh([]) is None
        assert flatten_bvh(None).node_count == 0

    def test_single_leaf(self):
        """Test that up to MAX_LEAF_SIZE shapes stay in one leaf."""
        from lumen.scene.bvh import MAX_LEAF_SIZE, build_bvh

        root = build_bvh(_unit_boxes([(0, 0, 0), (5, 0, 0)][:MAX_LEAF_SIZE]))
        assert root.is_leaf
        assert sorted(root.shape_ids) == list(range(MAX_LEAF_SIZE))

    def test_every_shape_in_exactly_one_leaf(self):
        """Test that leaves partition the input."""
        from lumen.scene.bvh import MAX_LEAF_SIZE, build_bvh

        rng = np.random.default_rng(7)
        entries = _unit_boxes(rng.uniform(-20, 20, size=(37, 3)))
        root = build_bvh(entries)

        ids = [shape_id for leaf in _leaves(root) for shape_id in leaf.shape_ids]
        assert sorted(ids) == list(range(37))
        assert all(len(leaf.shape_ids) <= MAX_LEAF_SIZE for leaf in _leaves(root))

    def test_boxes_enclose_children(self):
        """Test that each node's box encloses both child boxes."""
        from lumen.scene.bvh import build_bvh

        rng = np.random.default_rng(3)
        root = build_bvh(_unit_boxes(rng.uniform(-5, 5, size=(16, 3))))

        stack = [root]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                continue
            for child in (node.left, node.right):
                assert np.all(node.box.minimum <= child.box.minimum)
                assert np.all(node.box.maximum >= child.box.maximum)
                stack.append(child)

    def test_splits_along_largest_spread(self):
        """Test that shapes spread along x are split by x."""
        from lumen.scene.bvh import build_bvh

        root = build_bvh(_unit_boxes([(x, 0, 0) for x in (0, 10, 20, 30)]))
        assert sorted(root.left.shape_ids) == [0, 1]
        assert sorted(root.right.shape_ids) == [2, 3]


class TestFlattenBVH:
    """Tests for flatten_bvh."""

    def test_preorder_with_skip_indices(self):
        """Test the flat layout of a three-node tree."""
        from lumen.scene.bvh import build_bvh, flatten_bvh

        flat = flatten_bvh(build_bvh(_unit_boxes([(x, 0, 0) for x in (0, 10, 20, 30)])))

        assert flat.node_count == 3
        # Root, left leaf, right leaf; every skip leaves its subtree
        np.testing.assert_array_equal(flat.skip, [3, 2, 3])
        np.testing.assert_array_equal(flat.leaf_counts, [0, 2, 2])
        np.testing.assert_array_equal(flat.leaf_starts[1:], [0, 2])
        assert sorted(flat.shape_ids.tolist()) == [0, 1, 2, 3]

    def test_skip_points_past_subtree(self):
        """Test that skip[i] equals i plus the size of i's subtree."""
        from lumen.scene.bvh import build_bvh, flatten_bvh

        rng = np.random.default_rng(11)
        root = build_bvh(_unit_boxes(rng.uniform(-10, 10, size=(25, 3))))
        flat = flatten_bvh(root)

        def subtree_size(node):
            if node.is_leaf:
                return 1
            return 1 + subtree_size(node.left) + subtree_size(node.right)

        # Walk the tree in pre-order alongside the flat arrays
        index = 0
        stack = [root]
        while stack:
            node = stack.pop()
            assert flat.skip[index] == index + subtree_size(node)
            index += 1
            if not node.is_leaf:
                stack.append(node.right)
                stack.append(node.left)
        assert index == flat.node_count


class TestUploadBVH:
    """Tests for uploading into Taichi fields."""

    def test_upload_sets_node_count(self):
        """Test that build_scene_bvh uploads every node."""
        from lumen.scene.bvh import build_scene_bvh
        from lumen.scene.intersection import get_bvh_node_count

        flat = build_scene_bvh(_unit_boxes([(x, 0, 0) for x in range(9)]))
        assert get_bvh_node_count() == flat.node_count

    def test_upload_rejects_oversized_tree(self, monkeypatch):
        """Test that a tree larger than MAX_BVH_NODES raises."""
        from lumen.errors import ConfigurationError
        from lumen.scene import intersection
        from lumen.scene.bvh import build_bvh, flatten_bvh, upload_bvh

        flat = flatten_bvh(build_bvh(_unit_boxes([(x, 0, 0) for x in range(8)])))
        monkeypatch.setattr(intersection, "MAX_BVH_NODES", 4)
        with pytest.raises(ConfigurationError, match="MAX_BVH_NODES"):
            upload_bvh(flat)
