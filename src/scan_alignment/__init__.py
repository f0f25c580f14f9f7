"""
Scan Alignment Package

A Python package for aligning consecutive 2D scans (e.g. from a planar
lidar) to recover the relative motion between them. Alignment is
implemented with the Iterative Closest Point (ICP) algorithm from scratch:
a balanced KD-tree for nearest-neighbour correspondences and a closed-form
2x2 SVD for the rigid transform.
"""

__version__ = "0.1.0"

from .alignment import *
from .utils import *

__all__ = [
    "alignment",
    "utils",
]
