"""
Coarse Registration Methods

Provides coarse alignment strategies to initialize ICP on 2D scans.

Methods implemented:
- centroid: translation-only alignment by centroids
- pca: rigid alignment by principal axes, then centroid translation
- none: identity

All methods return a RigidTransform suitable as the ICP initial guess.
"""

from __future__ import annotations

from dataclasses import dataclass
import math

import numpy as np

from ..utils.logging import setup_logger
from .rigid_transform import RigidTransform
from .spatial_index import KDTree2D

logger = setup_logger(__name__)


@dataclass
class CoarseRegistration:
    method: str = "centroid"  # centroid | pca | none

    def compute_initial_transform(self, source: np.ndarray, target: np.ndarray) -> RigidTransform:
        """
        Compute a coarse initial transform aligning source -> target.

        Args:
            source: Nx2 array
            target: Mx2 array

        Returns:
            RigidTransform mapping source towards target
        """
        method = self.method.lower()
        if method == "none":
            return RigidTransform.identity()

        if source.size == 0 or target.size == 0:
            logger.warning("CoarseRegistration: empty inputs; returning identity transform.")
            return RigidTransform.identity()

        if method == "centroid":
            return self._centroid_transform(source, target)
        if method == "pca":
            T = self._pca_transform(source, target)
            return self._validate_or_fallback(source, target, T)

        logger.warning(f"Unknown coarse registration method '{self.method}', using identity.")
        return RigidTransform.identity()

    # ------------------------ Methods ------------------------
    def _centroid_transform(self, src: np.ndarray, dst: np.ndarray) -> RigidTransform:
        t = np.mean(dst, axis=0) - np.mean(src, axis=0)
        return RigidTransform(0.0, float(t[0]), float(t[1]))

    def _pca_transform(self, src: np.ndarray, dst: np.ndarray) -> RigidTransform:
        c_src = np.mean(src, axis=0)
        c_dst = np.mean(dst, axis=0)
        A = src - c_src
        B = dst - c_dst

        # Small regularization keeps eigh stable on degenerate clouds
        C_A = (A.T @ A) / max(1, len(A)) + 1e-12 * np.eye(2)
        C_B = (B.T @ B) / max(1, len(B)) + 1e-12 * np.eye(2)

        # Direction of the major axis (largest eigenvalue comes last from eigh)
        _, VA = np.linalg.eigh(C_A)
        _, VB = np.linalg.eigh(C_B)
        angle_a = math.atan2(VA[1, -1], VA[0, -1])
        angle_b = math.atan2(VB[1, -1], VB[0, -1])

        # Axis directions are sign-ambiguous: try both and keep the better
        best = None
        best_score = float("inf")
        for flip in (0.0, math.pi):
            rotation = angle_b - angle_a + flip
            R = RigidTransform(rotation).matrix
            t = c_dst - R @ c_src
            candidate = RigidTransform.from_matrix(R, t)
            score = self._score_rmse(src, dst, candidate)
            if score < best_score:
                best, best_score = candidate, score
        return best

    # ------------------------ Helpers ------------------------
    def _validate_or_fallback(
        self, src: np.ndarray, dst: np.ndarray, T: RigidTransform, *, threshold: float = 1.1
    ) -> RigidTransform:
        """Evaluate the coarse transform; fall back to centroid if clearly worse."""
        rmse_T = self._score_rmse(src, dst, T)
        T_cent = self._centroid_transform(src, dst)
        rmse_C = self._score_rmse(src, dst, T_cent)
        if not np.isfinite(rmse_T) or rmse_T > threshold * rmse_C:
            logger.warning(
                "CoarseRegistration: candidate transform worse than centroid (rmse %.3f vs %.3f). Using centroid.",
                rmse_T, rmse_C,
            )
            return T_cent
        return T

    def _score_rmse(self, src: np.ndarray, dst: np.ndarray, T: RigidTransform, *, max_pairs: int = 3000) -> float:
        if src.size == 0 or dst.size == 0:
            return float("inf")
        rng = np.random.default_rng(0)
        idx_s = rng.choice(len(src), max_pairs, replace=False) if len(src) > max_pairs else np.arange(len(src))
        moved = T.apply_array(src[idx_s])
        _, d2 = KDTree2D(dst).query_array(moved)
        return float(np.sqrt(np.mean(d2)))
