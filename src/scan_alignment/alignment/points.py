"""
Point Abstractions

Any object exposing numeric ``x`` and ``y`` attributes can be used as a
reference point. Points in the moving cloud additionally need in-place
``translate`` and ``rotate`` methods. ``Point2D`` is the bundled concrete
implementation; callers with their own scan measurement types only need to
satisfy the protocols below.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from .exceptions import InvalidInputError


@runtime_checkable
class SupportsXY(Protocol):
    """Read access to planar coordinates."""

    @property
    def x(self) -> float: ...

    @property
    def y(self) -> float: ...


@runtime_checkable
class MovablePoint(SupportsXY, Protocol):
    """A point that can be moved in place by a rigid transform."""

    def translate(self, dx: float, dy: float) -> None: ...

    def rotate(self, angle_rad: float, center: Optional[Tuple[float, float]] = None) -> None: ...


@dataclass
class Point2D:
    """
    Mutable 2D point.

    Example:
        >>> p = Point2D(1.0, 0.0)
        >>> p.rotate(math.pi / 2)
        >>> round(p.x, 9), round(p.y, 9)
        (0.0, 1.0)
    """

    x: float
    y: float

    def translate(self, dx: float, dy: float) -> None:
        self.x += dx
        self.y += dy

    def rotate(self, angle_rad: float, center: Optional[Tuple[float, float]] = None) -> None:
        """Rotate counter-clockwise by ``angle_rad`` about the origin or ``center``."""
        cx, cy = center if center is not None else (0.0, 0.0)
        c = math.cos(angle_rad)
        s = math.sin(angle_rad)
        px = self.x - cx
        py = self.y - cy
        self.x = c * px - s * py + cx
        self.y = s * px + c * py + cy

    def is_valid(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


def points_from_array(array: "np.ndarray | Iterable[Sequence[float]]") -> list[Point2D]:
    """
    Build ``Point2D`` objects from an (N, 2) array-like.

    Extra columns (e.g. intensity) are ignored.
    """
    arr = np.asarray(array, dtype=float)
    if arr.size == 0:
        return []
    if arr.ndim != 2 or arr.shape[1] < 2:
        raise InvalidInputError(f"Expected Nx2 array, got shape {arr.shape}")
    return [Point2D(float(px), float(py)) for px, py in arr[:, :2]]


def points_to_array(points: Sequence[SupportsXY]) -> np.ndarray:
    """
    Extract the coordinates of ``points`` into a float (N, 2) array.

    An (N, 2+) numpy array is accepted as-is (first two columns).
    """
    if isinstance(points, np.ndarray):
        if points.size == 0:
            return np.empty((0, 2), dtype=float)
        if points.ndim != 2 or points.shape[1] < 2:
            raise InvalidInputError(f"Expected Nx2 array, got shape {points.shape}")
        return np.asarray(points[:, :2], dtype=float)
    if len(points) == 0:
        return np.empty((0, 2), dtype=float)
    return np.array([(float(p.x), float(p.y)) for p in points], dtype=float)


def centroid(points: Sequence[SupportsXY]) -> Tuple[float, float]:
    """
    Center of mass of a point collection.

    Raises:
        InvalidInputError: If ``points`` is empty.
    """
    if len(points) == 0:
        raise InvalidInputError("Cannot compute centroid of an empty point collection")
    c = points_to_array(points).mean(axis=0)
    return float(c[0]), float(c[1])


def is_point_valid(point: SupportsXY) -> bool:
    """True if the point has finite coordinates and does not report itself invalid."""
    check = getattr(point, "is_valid", None)
    if callable(check) and not check():
        return False
    return math.isfinite(point.x) and math.isfinite(point.y)


def validate_points(points: Sequence[SupportsXY], name: str, *, movable: bool = False) -> None:
    """
    Validate a point collection before alignment.

    Args:
        points: Collection to check.
        name: Label used in error messages ("reference", "moving").
        movable: Also require the in-place transform methods.

    Raises:
        InvalidInputError: On the first offending point.
    """
    for i, p in enumerate(points):
        if not isinstance(p, SupportsXY):
            raise InvalidInputError(f"{name} point {i} has no x/y coordinates: {p!r}")
        if movable and not isinstance(p, MovablePoint):
            raise InvalidInputError(
                f"{name} point {i} does not support translate/rotate: {type(p).__name__}"
            )
        if not is_point_valid(p):
            raise InvalidInputError(f"{name} point {i} is invalid: {p!r}")
