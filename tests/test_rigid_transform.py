"""
Tests for the closed-form rigid transform solver and transform algebra.
"""

from pathlib import Path
import math
import sys

import numpy as np
import pytest

# Ensure src is importable
sys.path.append(str(Path(__file__).parent.parent / "src"))

from scan_alignment.alignment.correspondence import Correspondence, MatchResult
from scan_alignment.alignment.points import Point2D
from scan_alignment.alignment.rigid_transform import (
    RigidTransform,
    estimate_rigid_transform,
    solve_rigid_transform,
    svd_2x2,
    wrap_angle,
)


def _make_random_cloud(n: int = 200, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    # Anisotropic spread to avoid degenerate covariance
    return rng.normal(size=(n, 2)) * np.array([8.0, 3.0]) + np.array([5.0, -2.0])


def _best_angle(moving: np.ndarray, reference: np.ndarray) -> float:
    """Rotation maximising trace(R H), written directly in terms of H."""
    A = moving - moving.mean(axis=0)
    B = reference - reference.mean(axis=0)
    H = A.T @ B
    return math.atan2(H[0, 1] - H[1, 0], H[0, 0] + H[1, 1])


class TestSVD2x2:
    """Closed-form 2x2 SVD."""

    @pytest.mark.parametrize("seed", range(8))
    def test_reconstructs_random_matrix(self, seed):
        M = np.random.default_rng(seed).normal(size=(2, 2)) * 5.0
        U, S, Vt = svd_2x2(M)

        np.testing.assert_allclose(U @ np.diag(S) @ Vt, M, atol=1e-10)
        np.testing.assert_allclose(U.T @ U, np.eye(2), atol=1e-12)
        np.testing.assert_allclose(Vt @ Vt.T, np.eye(2), atol=1e-12)
        assert S[0] >= S[1] >= 0.0
        np.testing.assert_allclose(S, np.linalg.svd(M, compute_uv=False), atol=1e-10)

    def test_zero_matrix(self):
        U, S, Vt = svd_2x2(np.zeros((2, 2)))
        np.testing.assert_allclose(S, [0.0, 0.0])
        np.testing.assert_allclose(U @ np.diag(S) @ Vt, np.zeros((2, 2)))

    def test_reflection_matrix(self):
        M = np.diag([1.0, -1.0])
        U, S, Vt = svd_2x2(M)
        np.testing.assert_allclose(S, [1.0, 1.0])
        np.testing.assert_allclose(U @ np.diag(S) @ Vt, M, atol=1e-12)


def test_solver_recovers_known_transform():
    src = _make_random_cloud(n=300, seed=1)
    truth = RigidTransform(math.radians(17.0), 1.5, -0.7)
    dst = truth.apply_array(src)

    est = solve_rigid_transform(src, dst)

    assert est.is_close(truth, translation_tol=1e-9, rotation_tol=1e-12)


def test_solver_handles_large_rotation():
    src = _make_random_cloud(n=100, seed=2)
    truth = RigidTransform(math.radians(-150.0), -3.0, 12.0)

    est = solve_rigid_transform(src, truth.apply_array(src))

    assert est.is_close(truth, translation_tol=1e-9, rotation_tol=1e-12)


def test_solver_never_returns_reflection():
    # Mirrored target: raw V @ U.T would be a reflection
    src = _make_random_cloud(n=50, seed=3)
    dst = src * np.array([-1.0, 1.0])

    est = solve_rigid_transform(src, dst)

    assert np.linalg.det(est.matrix) == pytest.approx(1.0)
    assert wrap_angle(est.rotation - _best_angle(src, dst)) == pytest.approx(0.0, abs=1e-9)


def test_collinear_points_still_rotate():
    t = np.linspace(0.0, 5.0, 20)
    src = np.column_stack([t, 0.5 * t])
    truth = RigidTransform(math.radians(30.0), 2.0, 1.0)

    est = solve_rigid_transform(src, truth.apply_array(src))

    assert est.is_close(truth, translation_tol=1e-9, rotation_tol=1e-9)


def test_coincident_points_fall_back_to_translation():
    src = np.tile([[1.0, 2.0]], (5, 1))
    dst = np.array([[3.0, 3.0], [4.0, 3.0], [5.0, 3.0], [4.0, 4.0], [4.0, 2.0]])

    est = solve_rigid_transform(src, dst)

    assert est.rotation == 0.0
    assert (est.dx, est.dy) == pytest.approx((3.0, 1.0))


def test_empty_input_gives_identity():
    assert solve_rigid_transform(np.empty((0, 2)), np.empty((0, 2))) == RigidTransform.identity()
    assert estimate_rigid_transform([]) == RigidTransform.identity()


def test_estimate_from_correspondences():
    truth = RigidTransform(math.radians(10.0), 0.2, -0.1)
    src = _make_random_cloud(n=30, seed=4)
    pairs = [
        Correspondence(Point2D(*p), Point2D(*truth.apply_xy(*p)), 0.0)
        for p in src
    ]

    est = estimate_rigid_transform(pairs)

    assert est.is_close(truth, translation_tol=1e-9, rotation_tol=1e-12)


class TestRigidTransformAlgebra:
    """Composition, inversion and application."""

    def test_then_matches_sequential_application(self):
        a = RigidTransform(0.4, 1.0, -2.0)
        b = RigidTransform(-1.3, 0.5, 3.0)
        pts = _make_random_cloud(n=10, seed=5)

        np.testing.assert_allclose(
            a.then(b).apply_array(pts),
            b.apply_array(a.apply_array(pts)),
            atol=1e-12,
        )

    def test_inverse_cancels(self):
        t = RigidTransform(2.5, -4.0, 7.0)
        assert t.then(t.inverse()).is_close(RigidTransform.identity(), 1e-12, 1e-12)
        assert t.inverse().then(t).is_close(RigidTransform.identity(), 1e-12, 1e-12)

    def test_apply_to_moves_point_in_place(self):
        p = Point2D(1.0, 0.0)
        RigidTransform(math.pi / 2, 2.0, 3.0).apply_to(p)
        assert (p.x, p.y) == pytest.approx((2.0, 4.0))

    def test_apply_xy_and_homogeneous_agree(self):
        t = RigidTransform(0.7, -1.0, 2.0)
        x, y = t.apply_xy(3.0, -5.0)
        v = t.homogeneous() @ np.array([3.0, -5.0, 1.0])
        assert (x, y) == pytest.approx((v[0], v[1]))

    def test_composed_rotation_is_wrapped(self):
        t = RigidTransform(3.0, 0.0, 0.0).then(RigidTransform(3.0, 0.0, 0.0))
        assert -math.pi < t.rotation <= math.pi
        assert t.rotation == pytest.approx(6.0 - 2.0 * math.pi)


def test_wrap_angle():
    assert wrap_angle(3.0 * math.pi / 2.0) == pytest.approx(-math.pi / 2.0)
    assert wrap_angle(-math.pi) == pytest.approx(math.pi)
    assert wrap_angle(math.pi) == pytest.approx(math.pi)
    assert wrap_angle(0.25) == pytest.approx(0.25)


def test_estimate_from_match_result_uses_its_arrays():
    truth = RigidTransform(math.radians(-8.0), -0.3, 0.4)
    ref_xy = _make_random_cloud(n=40, seed=6)
    reference = [Point2D(*p) for p in ref_xy]
    moving = [Point2D(*p) for p in truth.inverse().apply_array(ref_xy)]
    pairs = tuple(
        Correspondence(m, r, 0.0) for m, r in zip(moving, reference)
    )
    match = MatchResult(pairs, 0.0)

    from_result = estimate_rigid_transform(match)
    from_sequence = estimate_rigid_transform(list(pairs))

    assert from_result.is_close(truth, translation_tol=1e-9, rotation_tol=1e-10)
    assert from_result == from_sequence
