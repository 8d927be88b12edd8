"""Bounding volume hierarchy construction.

The hierarchy is built once on the host with NumPy and stored as flat node
arrays, so the scene can upload it into Taichi fields and traverse it with an
explicit stack. Interior nodes reference their children by index; leaves
reference a contiguous run of ``order``, which lists primitive indices in
leaf order.

Construction is a recursive median split along the axis with the largest
spread of primitive centroids. It runs once per scene build, so it favours
simplicity over build speed.

Example:
    >>> lo = np.array([[0, 0, 0], [2, 0, 0]], dtype=float)
    >>> bvh = build_bvh(lo, lo + 1.0)
    >>> bvh.node_count
    1
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

LEAF_SIZE = 4

# Relative padding added to every node box
_PAD_RELATIVE = 1e-5
_PAD_ABSOLUTE = 1e-6


@dataclass
class BVH:
    """Flat node arrays of a built hierarchy.

    Attributes:
        bbox_min: (M, 3) minimum corner per node.
        bbox_max: (M, 3) maximum corner per node.
        left: (M,) left child index, -1 for leaves.
        right: (M,) right child index, -1 for leaves.
        first: (M,) start of the leaf's run in ``order``, -1 for interior nodes.
        count: (M,) number of primitives in a leaf, 0 for interior nodes.
        order: (N,) primitive indices in leaf order.
    """

    bbox_min: npt.NDArray[np.float32]
    bbox_max: npt.NDArray[np.float32]
    left: npt.NDArray[np.int32]
    right: npt.NDArray[np.int32]
    first: npt.NDArray[np.int32]
    count: npt.NDArray[np.int32]
    order: npt.NDArray[np.int32]

    @property
    def node_count(self) -> int:
        return int(self.left.shape[0])

    @property
    def depth(self) -> int:
        """Number of nodes on the longest root-to-leaf path."""
        if self.node_count == 0:
            return 0
        best = 0
        stack = [(0, 1)]
        while stack:
            node, level = stack.pop()
            best = max(best, level)
            if self.count[node] == 0:
                stack.append((int(self.left[node]), level + 1))
                stack.append((int(self.right[node]), level + 1))
        return best

    def offset(self, node_offset: int, item_offset: int) -> "BVH":
        """Copy of this hierarchy relocated inside a larger node/item arena."""
        interior = self.count == 0
        return BVH(
            bbox_min=self.bbox_min,
            bbox_max=self.bbox_max,
            left=np.where(interior, self.left + node_offset, -1).astype(np.int32),
            right=np.where(interior, self.right + node_offset, -1).astype(np.int32),
            first=np.where(interior, -1, self.first + item_offset).astype(np.int32),
            count=self.count,
            order=self.order,
        )


def build_bvh(
    bounds_min: npt.ArrayLike,
    bounds_max: npt.ArrayLike,
    leaf_size: int = LEAF_SIZE,
) -> BVH:
    """Build a hierarchy over N primitives given their bounding boxes.

    Args:
        bounds_min: (N, 3) minimum corners.
        bounds_max: (N, 3) maximum corners.
        leaf_size: Maximum number of primitives per leaf.

    Returns:
        The flattened hierarchy. Node 0 is the root; an empty input gives a
        hierarchy with no nodes.

    Raises:
        ValueError: If the bounds arrays are malformed or leaf_size < 1.
    """
    lo = np.asarray(bounds_min, dtype=np.float64).reshape(-1, 3)
    hi = np.asarray(bounds_max, dtype=np.float64).reshape(-1, 3)
    if lo.shape != hi.shape:
        raise ValueError(f"Bounds shapes differ: {lo.shape} vs {hi.shape}")
    if leaf_size < 1:
        raise ValueError(f"leaf_size must be at least 1, got {leaf_size}")

    centroids = 0.5 * (lo + hi)
    nodes_min: list[npt.NDArray[np.float64]] = []
    nodes_max: list[npt.NDArray[np.float64]] = []
    left: list[int] = []
    right: list[int] = []
    first: list[int] = []
    count: list[int] = []
    order: list[int] = []

    def new_node(indices: npt.NDArray[np.int64]) -> int:
        node_lo = lo[indices].min(axis=0)
        node_hi = hi[indices].max(axis=0)
        pad = _PAD_RELATIVE * np.max(node_hi - node_lo) + _PAD_ABSOLUTE
        nodes_min.append(node_lo - pad)
        nodes_max.append(node_hi + pad)
        left.append(-1)
        right.append(-1)
        first.append(-1)
        count.append(0)
        return len(left) - 1

    def build(indices: npt.NDArray[np.int64]) -> int:
        node = new_node(indices)
        if len(indices) <= leaf_size:
            first[node] = len(order)
            count[node] = len(indices)
            order.extend(int(i) for i in indices)
            return node

        spread = centroids[indices].max(axis=0) - centroids[indices].min(axis=0)
        axis = int(np.argmax(spread))
        ranked = indices[np.argsort(centroids[indices, axis], kind="stable")]
        mid = len(ranked) // 2
        left[node] = build(ranked[:mid])
        right[node] = build(ranked[mid:])
        return node

    if len(lo) > 0:
        build(np.arange(len(lo)))

    return BVH(
        bbox_min=np.asarray(nodes_min, dtype=np.float32).reshape(-1, 3),
        bbox_max=np.asarray(nodes_max, dtype=np.float32).reshape(-1, 3),
        left=np.asarray(left, dtype=np.int32),
        right=np.asarray(right, dtype=np.int32),
        first=np.asarray(first, dtype=np.int32),
        count=np.asarray(count, dtype=np.int32),
        order=np.asarray(order, dtype=np.int32),
    )
