"""
Spatial Alignment Module

This module provides tools for aligning two 2D scans using the ICP
(Iterative Closest Point) algorithm: a KD-tree for correspondence search,
a closed-form rigid transform solver and the iteration driver.
"""

from .exceptions import ScanAlignmentError, InvalidInputError
from .points import (
    SupportsXY,
    MovablePoint,
    Point2D,
    points_from_array,
    points_to_array,
    centroid,
)
from .spatial_index import KDTree2D, SpatialIndexNode
from .correspondence import Correspondence, MatchResult, match_points, inlier_fraction
from .rigid_transform import (
    RigidTransform,
    svd_2x2,
    solve_rigid_transform,
    estimate_rigid_transform,
    wrap_angle,
)
from .coarse_registration import CoarseRegistration
from .icp import (
    ICP,
    ICPResult,
    ICPStatus,
    ConvergenceParameters,
    align,
    align_from_config,
)

__all__ = [
    "ScanAlignmentError",
    "InvalidInputError",
    "SupportsXY",
    "MovablePoint",
    "Point2D",
    "points_from_array",
    "points_to_array",
    "centroid",
    "KDTree2D",
    "SpatialIndexNode",
    "Correspondence",
    "MatchResult",
    "match_points",
    "inlier_fraction",
    "RigidTransform",
    "svd_2x2",
    "solve_rigid_transform",
    "estimate_rigid_transform",
    "wrap_angle",
    "CoarseRegistration",
    "ICP",
    "ICPResult",
    "ICPStatus",
    "ConvergenceParameters",
    "align",
    "align_from_config",
]
