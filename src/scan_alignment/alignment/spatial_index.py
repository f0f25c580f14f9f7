"""
2D KD-Tree

Balanced KD-tree over the reference cloud, built once and queried for the
nearest reference point of every moving point on each ICP iteration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, Optional, Sequence, Tuple, TypeVar, Union
import time

import numpy as np

from ..utils.logging import setup_logger
from .exceptions import InvalidInputError
from .points import SupportsXY, points_to_array

logger = setup_logger(__name__)

TRef = TypeVar("TRef", bound=SupportsXY)

QueryPoint = Union[SupportsXY, Tuple[float, float], Sequence[float]]


@dataclass(frozen=True)
class SpatialIndexNode:
    """One node of the tree: a reference point and its splitting axis (0 = x, 1 = y)."""

    index: int
    x: float
    y: float
    axis: int
    left: Optional["SpatialIndexNode"] = None
    right: Optional["SpatialIndexNode"] = None

    def coord(self, axis: int) -> float:
        return self.x if axis == 0 else self.y


def _query_xy(query: QueryPoint) -> Tuple[float, float]:
    if hasattr(query, "x") and hasattr(query, "y"):
        return float(query.x), float(query.y)
    qx, qy = query[0], query[1]
    return float(qx), float(qy)


class KDTree2D(Generic[TRef]):
    """
    Balanced 2D KD-tree supporting nearest-neighbour queries.

    At every level the points are split at the median along the node's
    axis. With ``axis_policy="alternate"`` the axis alternates x/y by depth;
    with ``"spread"`` the axis of greatest extent of the current partition
    is used instead.

    The tree keeps a reference to the input sequence (not a copy) and
    returns its elements from queries. It has no mutation operations; a
    changed reference cloud requires a new tree.
    """

    def __init__(
        self,
        points: Sequence[TRef],
        axis_policy: Literal["alternate", "spread"] = "alternate",
    ):
        """
        Build the tree.

        Args:
            points: Non-empty sequence of reference points.
            axis_policy: Splitting-axis selection, "alternate" or "spread".

        Raises:
            InvalidInputError: If ``points`` is empty or the policy is unknown.
        """
        if len(points) == 0:
            raise InvalidInputError("Cannot build a spatial index from zero reference points")
        if axis_policy not in ("alternate", "spread"):
            raise InvalidInputError(f"Unknown axis policy '{axis_policy}'")

        self._points = points
        self._coords = points_to_array(points)
        self.axis_policy = axis_policy
        self.depth = 0

        build_start = time.time()
        self.root = self._build(np.arange(len(points)), 0)
        logger.debug(
            "KD-tree built over %d points in %.4f s (depth=%d, policy=%s).",
            len(points),
            time.time() - build_start,
            self.depth,
            axis_policy,
        )

    def __len__(self) -> int:
        return len(self._points)

    @property
    def points(self) -> Sequence[TRef]:
        return self._points

    def _choose_axis(self, order: np.ndarray, depth: int) -> int:
        if self.axis_policy == "alternate":
            return depth % 2
        coords = self._coords[order]
        spread = coords.max(axis=0) - coords.min(axis=0)
        return int(np.argmax(spread))

    def _build(self, order: np.ndarray, depth: int) -> Optional[SpatialIndexNode]:
        if order.size == 0:
            return None
        self.depth = max(self.depth, depth + 1)

        axis = self._choose_axis(order, depth)
        ordered = order[np.argsort(self._coords[order, axis], kind="stable")]
        mid = len(ordered) // 2
        i = int(ordered[mid])

        return SpatialIndexNode(
            index=i,
            x=float(self._coords[i, 0]),
            y=float(self._coords[i, 1]),
            axis=axis,
            left=self._build(ordered[:mid], depth + 1),
            right=self._build(ordered[mid + 1:], depth + 1),
        )

    def nearest_index(self, query: QueryPoint) -> Tuple[int, float]:
        """
        Find the reference point closest to ``query``.

        Args:
            query: Any object with x/y attributes, or an (x, y) pair.

        Returns:
            Tuple of (index into the reference sequence, squared distance).
        """
        qx, qy = _query_xy(query)
        best_index = -1
        best_dist = float("inf")

        # Explicit stack of (node, squared axis distance to node's half-plane)
        stack: list[Tuple[SpatialIndexNode, float]] = [(self.root, 0.0)]
        while stack:
            node, bound = stack.pop()
            if bound >= best_dist:
                continue

            dx = node.x - qx
            dy = node.y - qy
            d = dx * dx + dy * dy
            if d < best_dist:
                best_index = node.index
                best_dist = d

            diff = (qx if node.axis == 0 else qy) - node.coord(node.axis)
            if diff < 0:
                near, far = node.left, node.right
            else:
                near, far = node.right, node.left

            # Far side pushed first so the near side is searched first
            if far is not None:
                stack.append((far, diff * diff))
            if near is not None:
                stack.append((near, 0.0))

        return best_index, best_dist

    def nearest(self, query: QueryPoint) -> Tuple[TRef, float]:
        """
        Find the reference point closest to ``query``.

        Returns:
            Tuple of (reference point, squared distance). Ties resolve to the
            first candidate found.
        """
        index, dist = self.nearest_index(query)
        return self._points[index], dist

    def query_array(self, queries: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Batch query over an (N, 2) array of query coordinates.

        Returns:
            Tuple of (indices, squared_distances), each of length N.
        """
        queries = np.asarray(queries, dtype=float)
        n = len(queries)
        indices = np.empty(n, dtype=np.int64)
        distances = np.empty(n, dtype=float)
        for k in range(n):
            indices[k], distances[k] = self.nearest_index((queries[k, 0], queries[k, 1]))
        return indices, distances
