"""
Rigid Transform Estimation

Closed-form least-squares rotation and translation between matched 2D
point sets (Kabsch / orthogonal Procrustes), using an analytic 2x2 SVD.

Convention: a transform maps a point ``p`` to ``R(rotation) @ p + (dx, dy)``,
i.e. rotate about the origin, then translate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple
import math

import numpy as np

from ..utils.logging import setup_logger
from .correspondence import MatchResult
from .points import MovablePoint

logger = setup_logger(__name__)

# Relative size below which the cross-covariance is treated as zero
_DEGENERATE_EPS = 1e-12


def wrap_angle(angle: float) -> float:
    """Wrap an angle in radians into (-pi, pi]."""
    wrapped = math.remainder(angle, 2.0 * math.pi)
    if wrapped <= -math.pi:
        wrapped += 2.0 * math.pi
    return wrapped


def rotation_matrix(angle: float) -> np.ndarray:
    c = math.cos(angle)
    s = math.sin(angle)
    return np.array([[c, -s], [s, c]])


@dataclass(frozen=True)
class RigidTransform:
    """Planar rigid transform: rotation (radians) followed by translation (dx, dy)."""

    rotation: float = 0.0
    dx: float = 0.0
    dy: float = 0.0

    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def from_matrix(cls, R: np.ndarray, t: np.ndarray) -> "RigidTransform":
        """Build from a 2x2 rotation matrix and a translation vector."""
        angle = math.atan2(float(R[1, 0]), float(R[0, 0]))
        return cls(angle, float(t[0]), float(t[1]))

    @property
    def matrix(self) -> np.ndarray:
        return rotation_matrix(self.rotation)

    @property
    def translation(self) -> np.ndarray:
        return np.array([self.dx, self.dy])

    @property
    def translation_norm(self) -> float:
        return math.hypot(self.dx, self.dy)

    def homogeneous(self) -> np.ndarray:
        """3x3 homogeneous matrix of the transform."""
        T = np.eye(3)
        T[:2, :2] = self.matrix
        T[:2, 2] = self.translation
        return T

    def apply_xy(self, x: float, y: float) -> Tuple[float, float]:
        c = math.cos(self.rotation)
        s = math.sin(self.rotation)
        return c * x - s * y + self.dx, s * x + c * y + self.dy

    def apply_array(self, points: np.ndarray) -> np.ndarray:
        """Transform an (N, 2) array, returning a new array."""
        points = np.asarray(points, dtype=float)
        if points.size == 0:
            return points.reshape(0, 2)
        return points @ self.matrix.T + self.translation

    def apply_to(self, point: MovablePoint) -> None:
        """Move ``point`` in place: rotate about the origin, then translate."""
        if self.rotation != 0.0:
            point.rotate(self.rotation)
        if self.dx != 0.0 or self.dy != 0.0:
            point.translate(self.dx, self.dy)

    def then(self, other: "RigidTransform") -> "RigidTransform":
        """
        Composition applying ``self`` first and ``other`` second.

        Rotations add (wrapped to (-pi, pi]); the first translation is
        rotated by the second rotation before the second translation is added.
        """
        c = math.cos(other.rotation)
        s = math.sin(other.rotation)
        return RigidTransform(
            rotation=wrap_angle(self.rotation + other.rotation),
            dx=c * self.dx - s * self.dy + other.dx,
            dy=s * self.dx + c * self.dy + other.dy,
        )

    def inverse(self) -> "RigidTransform":
        c = math.cos(self.rotation)
        s = math.sin(self.rotation)
        return RigidTransform(
            rotation=wrap_angle(-self.rotation),
            dx=-(c * self.dx + s * self.dy),
            dy=-(-s * self.dx + c * self.dy),
        )

    def is_close(self, other: "RigidTransform", translation_tol: float = 1e-9, rotation_tol: float = 1e-9) -> bool:
        return (
            math.hypot(self.dx - other.dx, self.dy - other.dy) <= translation_tol
            and abs(wrap_angle(self.rotation - other.rotation)) <= rotation_tol
        )


def svd_2x2(M: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Closed-form singular value decomposition of a 2x2 matrix.

    M is written as Rot(phi) @ diag(q + r, q - r) @ Rot(theta); a negative
    second singular value is made positive by flipping the second column
    of U.

    Args:
        M: 2x2 matrix.

    Returns:
        Tuple (U, S, Vt) with ``M == U @ np.diag(S) @ Vt``, S descending and
        non-negative, U and Vt orthogonal.
    """
    a, b = float(M[0, 0]), float(M[0, 1])
    c, d = float(M[1, 0]), float(M[1, 1])

    e = (a + d) * 0.5
    f = (a - d) * 0.5
    g = (c + b) * 0.5
    h = (c - b) * 0.5

    q = math.hypot(e, h)
    r = math.hypot(f, g)
    a1 = math.atan2(g, f)
    a2 = math.atan2(h, e)

    theta = (a2 - a1) * 0.5
    phi = (a2 + a1) * 0.5

    U = rotation_matrix(phi)
    Vt = rotation_matrix(theta)
    s1 = q + r
    s2 = q - r
    if s2 < 0:
        s2 = -s2
        U[:, 1] *= -1

    return U, np.array([s1, s2]), Vt


def solve_rigid_transform(moving: np.ndarray, reference: np.ndarray) -> RigidTransform:
    """
    Least-squares rigid transform mapping ``moving`` onto ``reference``.

    Both inputs are (N, 2) arrays of corresponding points. Degenerate input
    (no points, all points coincident, or an undetermined rotation) yields
    an identity rotation with the centroid difference as translation.

    Args:
        moving: Moving points (N x 2).
        reference: Matched reference points (N x 2).

    Returns:
        RigidTransform minimising the sum of squared residuals.
    """
    moving = np.asarray(moving, dtype=float)
    reference = np.asarray(reference, dtype=float)
    if len(moving) == 0:
        return RigidTransform.identity()

    # Center the point sets
    moving_centroid = np.mean(moving, axis=0)
    reference_centroid = np.mean(reference, axis=0)
    moving_centered = moving - moving_centroid
    reference_centered = reference - reference_centroid

    # Cross-covariance: sum of outer products (moving) x (reference)
    H = moving_centered.T @ reference_centered

    scale = math.sqrt(
        float(np.sum(moving_centered ** 2)) * float(np.sum(reference_centered ** 2))
    )
    U, S, Vt = svd_2x2(H)

    # Rotation maximising trace(R H) is undetermined when H is zero or when
    # H + its cofactor vanishes (the rotation-invariant part of H)
    rotation_part = math.hypot(H[0, 0] + H[1, 1], H[0, 1] - H[1, 0])
    if scale == 0.0 or S[0] <= _DEGENERATE_EPS * scale or rotation_part <= _DEGENERATE_EPS * scale:
        logger.debug(
            "Degenerate cross-covariance (singular values %.3e, %.3e); using identity rotation.",
            S[0],
            S[1],
        )
        t = reference_centroid - moving_centroid
        return RigidTransform(0.0, float(t[0]), float(t[1]))

    V = Vt.T
    R = V @ U.T
    # Ensure proper rotation (det(R) should be 1)
    if np.linalg.det(R) < 0:
        V[:, -1] *= -1
        R = V @ U.T

    t = reference_centroid - R @ moving_centroid
    return RigidTransform.from_matrix(R, t)


def estimate_rigid_transform(correspondences: Sequence) -> RigidTransform:
    """
    Least-squares rigid transform for a set of correspondences.

    Args:
        correspondences: Sequence of ``Correspondence`` or a ``MatchResult``.

    Returns:
        RigidTransform moving each correspondence's moving point towards its
        reference point.
    """
    if not isinstance(correspondences, MatchResult):
        correspondences = MatchResult(tuple(correspondences), 0.0)
    if len(correspondences) == 0:
        return RigidTransform.identity()
    return solve_rigid_transform(correspondences.moving_array(), correspondences.reference_array())
