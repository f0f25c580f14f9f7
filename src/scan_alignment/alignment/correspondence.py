"""
Correspondence Matching

Pairs every moving point with its nearest reference point.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Sequence, Tuple, TypeVar
import math

import numpy as np

from .points import SupportsXY
from .spatial_index import KDTree2D

TMoving = TypeVar("TMoving", bound=SupportsXY)
TRef = TypeVar("TRef", bound=SupportsXY)


@dataclass(frozen=True)
class Correspondence(Generic[TMoving, TRef]):
    moving: TMoving
    reference: TRef
    squared_distance: float

    @property
    def distance(self) -> float:
        return math.sqrt(self.squared_distance)


@dataclass(frozen=True)
class MatchResult(Generic[TMoving, TRef]):
    """Correspondences of one matching pass, in moving-cloud order."""

    correspondences: Tuple[Correspondence[TMoving, TRef], ...]
    mean_squared_distance: float

    def __len__(self) -> int:
        return len(self.correspondences)

    @property
    def rmse(self) -> float:
        return math.sqrt(self.mean_squared_distance)

    def moving_array(self) -> np.ndarray:
        """Coordinates of the moving side as an (N, 2) array."""
        if not self.correspondences:
            return np.empty((0, 2), dtype=float)
        return np.array([(c.moving.x, c.moving.y) for c in self.correspondences], dtype=float)

    def reference_array(self) -> np.ndarray:
        """Coordinates of the matched reference side as an (N, 2) array."""
        if not self.correspondences:
            return np.empty((0, 2), dtype=float)
        return np.array([(c.reference.x, c.reference.y) for c in self.correspondences], dtype=float)


def match_points(
    moving: Sequence[TMoving],
    index: KDTree2D[TRef],
) -> MatchResult[TMoving, TRef]:
    """
    Find the nearest reference point of every moving point.

    Neither ``moving`` nor ``index`` is modified. Several moving points may
    share the same reference point.

    Args:
        moving: Current (possibly transformed) moving cloud.
        index: Spatial index over the reference cloud.

    Returns:
        MatchResult with one correspondence per moving point and the mean
        squared distance (0.0 for an empty moving cloud).
    """
    correspondences = []
    total = 0.0
    for point in moving:
        reference, d = index.nearest(point)
        correspondences.append(Correspondence(point, reference, d))
        total += d

    mean = total / len(correspondences) if correspondences else 0.0
    return MatchResult(tuple(correspondences), mean)


def inlier_fraction(
    correspondences: Sequence[Correspondence],
    max_axis_distance: float,
) -> float:
    """
    Fraction of correspondences whose |dx| and |dy| are both below ``max_axis_distance``.

    Returns 0.0 for an empty sequence.
    """
    if len(correspondences) == 0:
        return 0.0
    inliers = sum(
        1
        for c in correspondences
        if abs(c.moving.x - c.reference.x) < max_axis_distance
        and abs(c.moving.y - c.reference.y) < max_axis_distance
    )
    return inliers / len(correspondences)
