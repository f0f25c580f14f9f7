"""
ICP Registration Implementation

This module implements the Iterative Closest Point (ICP) algorithm for
aligning a moving 2D scan to a stationary reference scan.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, List, Literal, Optional, Sequence, Tuple, TypeVar, Union
import copy
import math
import time

from ..utils.logging import add_package_log_file, set_package_log_level, setup_logger
from .coarse_registration import CoarseRegistration
from .correspondence import MatchResult, inlier_fraction, match_points
from .exceptions import InvalidInputError
from .points import MovablePoint, SupportsXY, points_to_array, validate_points
from .rigid_transform import RigidTransform, estimate_rigid_transform
from .spatial_index import KDTree2D

logger = setup_logger(__name__)

TRef = TypeVar("TRef", bound=SupportsXY)
TMoving = TypeVar("TMoving", bound=MovablePoint)


@dataclass(frozen=True)
class ConvergenceParameters:
    """
    Termination policy of an ICP run.

    Attributes:
        max_iterations: Iteration cap (positive).
        translation_threshold: Incremental translation norm below which the
            run is considered converged.
        rotation_threshold: Incremental rotation (radians) below which the
            run is considered converged.
        inlier_distance: Per-axis distance within which a moving point
            counts as aligned in the convergence score.
    """

    max_iterations: int = 50
    translation_threshold: float = 0.005
    rotation_threshold: float = math.radians(0.1)
    inlier_distance: float = 0.01

    def __post_init__(self):
        if isinstance(self.max_iterations, bool) or not isinstance(self.max_iterations, int) or self.max_iterations <= 0:
            raise InvalidInputError(f"max_iterations must be a positive integer, got {self.max_iterations!r}")
        for name in ("translation_threshold", "rotation_threshold", "inlier_distance"):
            value = getattr(self, name)
            if not (value >= 0.0 and math.isfinite(value)):
                raise InvalidInputError(f"{name} must be a finite non-negative number, got {value!r}")

    @classmethod
    def from_config(cls, cfg) -> "ConvergenceParameters":
        """Build from an ``ICPConfig`` (rotation epsilon configured in degrees)."""
        return cls(
            max_iterations=cfg.max_iterations,
            translation_threshold=cfg.convergence_translation_epsilon,
            rotation_threshold=math.radians(cfg.convergence_rotation_epsilon_deg),
            inlier_distance=cfg.inlier_distance,
        )


class ICPStatus(str, Enum):
    INITIALIZED = "initialized"
    ITERATING = "iterating"
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    EMPTY = "empty"

    @property
    def is_terminal(self) -> bool:
        return self in (ICPStatus.CONVERGED, ICPStatus.MAX_ITERATIONS_REACHED, ICPStatus.EMPTY)


@dataclass(frozen=True)
class ICPResult:
    """
    Outcome of an ICP run.

    The offsets map the moving cloud onto the reference cloud:
    ``reference ~= R(rotation_offset_rad) @ p + (x_offset, y_offset)``.

    ``convergence`` is the fraction (0.0 to 1.0) of moving points whose
    nearest reference point lies within ``inlier_distance`` on both axes;
    ``mean_squared_distance`` is the raw residual of the same matching pass.
    """

    x_offset: float
    y_offset: float
    rotation_offset_rad: float
    convergence: float
    mean_squared_distance: float = 0.0
    iterations: int = 0
    status: ICPStatus = ICPStatus.INITIALIZED

    @property
    def transform(self) -> RigidTransform:
        return RigidTransform(self.rotation_offset_rad, self.x_offset, self.y_offset)

    @property
    def converged(self) -> bool:
        return self.status is ICPStatus.CONVERGED


GuessLike = Union[RigidTransform, Tuple[float, float, float]]


def _as_transform(x: float, y: float, rotation: float) -> RigidTransform:
    return RigidTransform(float(rotation), float(x), float(y))


class ICP(Generic[TRef, TMoving]):
    """
    Point-to-point ICP for 2D scans.

    The ICP algorithm iteratively:
    1. Finds closest point correspondences via a KD-tree over the reference
    2. Estimates the optimal incremental rotation + translation
    3. Applies it to the moving cloud and composes it into the total
    4. Repeats until the increment is below the thresholds or the
       iteration budget is exhausted

    The reference cloud is indexed once at construction. Unless
    ``in_place=True``, the algorithm moves a deep copy of the moving points
    and the caller's objects are never modified.
    """

    def __init__(
        self,
        reference: Sequence[TRef],
        moving: Sequence[TMoving],
        params: Optional[ConvergenceParameters] = None,
        *,
        in_place: bool = False,
        axis_policy: Literal["alternate", "spread"] = "alternate",
    ):
        """
        Initialize ICP.

        Args:
            reference: Stationary reference cloud (non-empty).
            moving: Cloud to align onto the reference (may be empty).
            params: Convergence parameters; defaults converge at 5 mm and 0.1 degrees.
            in_place: Move the caller's point objects directly.
            axis_policy: KD-tree split-axis policy ("alternate" or "spread").

        Raises:
            InvalidInputError: Empty reference cloud or invalid points.
        """
        if len(reference) == 0:
            raise InvalidInputError("Reference cloud is empty; nothing to align against.")
        validate_points(reference, "reference")
        validate_points(moving, "moving", movable=True)

        self.params = params if params is not None else ConvergenceParameters()
        self.in_place = in_place
        self._index: KDTree2D[TRef] = KDTree2D(reference, axis_policy=axis_policy)

        if in_place:
            self._pristine: Optional[List[TMoving]] = None
            self._working: Sequence[TMoving] = moving
        else:
            self._pristine = copy.deepcopy(list(moving))
            self._working = copy.deepcopy(self._pristine)

        self._transform = RigidTransform.identity()
        self._status = ICPStatus.INITIALIZED
        self._iterations = 0
        self._history: List[float] = []

        logger.debug(
            "ICP initialized with %d reference and %d moving points (in_place=%s).",
            len(reference),
            len(moving),
            in_place,
        )

    # ------------------------ State ------------------------
    @property
    def status(self) -> ICPStatus:
        return self._status

    @property
    def iterations(self) -> int:
        return self._iterations

    @property
    def transform(self) -> RigidTransform:
        """Accumulated transform, including the initial guess."""
        return self._transform

    @property
    def moving_points(self) -> Sequence[TMoving]:
        return self._working

    @property
    def history(self) -> List[float]:
        """Mean squared correspondence distance of each iteration's matching pass."""
        return list(self._history)

    @property
    def index(self) -> KDTree2D[TRef]:
        return self._index

    def reset(self) -> None:
        """Return to the initialized state with the moving cloud at its starting pose."""
        if self.in_place:
            if self._transform != RigidTransform.identity():
                undo = self._transform.inverse()
                for point in self._working:
                    undo.apply_to(point)
        else:
            self._working = copy.deepcopy(self._pristine)

        self._transform = RigidTransform.identity()
        self._status = ICPStatus.INITIALIZED
        self._iterations = 0
        self._history = []

    # ------------------------ Public API ------------------------
    def run(self, x: float = 0.0, y: float = 0.0, rotation: float = 0.0) -> Tuple[ICPResult, Sequence[TMoving]]:
        """
        Run ICP to completion.

        Any previous run is discarded first.

        Args:
            x: Initial guess translation along x.
            y: Initial guess translation along y.
            rotation: Initial guess rotation in radians (applied before the translation).

        Returns:
            Tuple of (ICPResult, transformed moving points).
        """
        if self._status is not ICPStatus.INITIALIZED:
            self.reset()

        n_moving = len(self._working)
        logger.info(
            "Starting ICP alignment with %d moving points and %d reference points.",
            n_moving,
            len(self._index),
        )

        icp_start = time.time()
        self._begin(x, y, rotation)
        while self._status is ICPStatus.ITERATING:
            self._iterate()
        result = self._result()

        if result.status is ICPStatus.CONVERGED:
            logger.info("ICP converged after %d iterations.", result.iterations)
        elif result.status is ICPStatus.MAX_ITERATIONS_REACHED:
            logger.info("ICP did not converge after %d iterations.", result.iterations)

        logger.info(
            "ICP finished in %.4f s (%d iterations). Offset: x=%.4f, y=%.4f, rot=%.4f deg; "
            "convergence %.1f%%, MSE %.6f",
            time.time() - icp_start,
            result.iterations,
            result.x_offset,
            result.y_offset,
            math.degrees(result.rotation_offset_rad),
            result.convergence * 100.0,
            result.mean_squared_distance,
        )
        return result, self._working

    def step(self, x: float = 0.0, y: float = 0.0, rotation: float = 0.0) -> ICPResult:
        """
        Perform exactly one ICP iteration.

        The initial guess is applied only on the first step after
        construction or ``reset()``. Once the run has reached a terminal
        status further steps do nothing and return the current result.

        Returns:
            ICPResult after this iteration.
        """
        if self._status is ICPStatus.INITIALIZED:
            self._begin(x, y, rotation)

        if self._status.is_terminal:
            if self._status is not ICPStatus.EMPTY:
                logger.debug("ICP step requested after termination (%s); no iteration performed.", self._status.value)
            return self._result()

        self._iterate()
        return self._result()

    # ------------------------ Internals ------------------------
    def _begin(self, x: float, y: float, rotation: float) -> None:
        if len(self._working) == 0:
            logger.warning("ICP called with an empty moving cloud; returning identity transform.")
            self._status = ICPStatus.EMPTY
            return

        initial = _as_transform(x, y, rotation)
        if initial != RigidTransform.identity():
            for point in self._working:
                initial.apply_to(point)
        self._transform = initial
        self._status = ICPStatus.ITERATING

    def _iterate(self) -> MatchResult:
        match = match_points(self._working, self._index)
        self._history.append(match.mean_squared_distance)

        delta = estimate_rigid_transform(match)
        for point in self._working:
            delta.apply_to(point)
        self._transform = self._transform.then(delta)
        self._iterations += 1

        trans_step = delta.translation_norm
        rot_step = abs(delta.rotation)
        logger.debug(
            "Iteration %d: MSE=%.6f, |Δt|=%.6e, Δθ=%.6e rad",
            self._iterations,
            match.mean_squared_distance,
            trans_step,
            rot_step,
        )

        if trans_step < self.params.translation_threshold and rot_step < self.params.rotation_threshold:
            self._status = ICPStatus.CONVERGED
        elif self._iterations >= self.params.max_iterations:
            self._status = ICPStatus.MAX_ITERATIONS_REACHED
        return match

    def _result(self) -> ICPResult:
        if self._status is ICPStatus.EMPTY:
            return ICPResult(0.0, 0.0, 0.0, 0.0, 0.0, 0, ICPStatus.EMPTY)

        final = match_points(self._working, self._index)
        return ICPResult(
            x_offset=self._transform.dx,
            y_offset=self._transform.dy,
            rotation_offset_rad=self._transform.rotation,
            convergence=inlier_fraction(final.correspondences, self.params.inlier_distance),
            mean_squared_distance=final.mean_squared_distance,
            iterations=self._iterations,
            status=self._status,
        )


def align(
    reference: Sequence[TRef],
    moving: Sequence[TMoving],
    params: Optional[ConvergenceParameters] = None,
    *,
    initial_guess: Optional[GuessLike] = None,
    coarse_method: str = "none",
    in_place: bool = False,
) -> Tuple[ICPResult, Sequence[TMoving]]:
    """
    Align ``moving`` onto ``reference`` in one call.

    Args:
        reference: Stationary reference cloud (non-empty).
        moving: Cloud to align.
        params: Convergence parameters (defaults if None).
        initial_guess: RigidTransform or (x, y, rotation) prior.
        coarse_method: Coarse initialisation ("none", "centroid", "pca")
            computed after applying ``initial_guess`` and composed with it.
        in_place: Move the caller's point objects directly.

    Returns:
        Tuple of (ICPResult, transformed moving points).
    """
    if initial_guess is None:
        guess = RigidTransform.identity()
    elif isinstance(initial_guess, RigidTransform):
        guess = initial_guess
    else:
        gx, gy, grot = initial_guess
        guess = _as_transform(gx, gy, grot)

    icp = ICP(reference, moving, params, in_place=in_place)

    if coarse_method != "none" and len(moving) > 0:
        moving_xy = guess.apply_array(points_to_array(moving))
        coarse = CoarseRegistration(method=coarse_method).compute_initial_transform(
            moving_xy, points_to_array(reference)
        )
        guess = guess.then(coarse)

    return icp.run(guess.dx, guess.dy, guess.rotation)


def align_from_config(
    reference: Sequence[TRef],
    moving: Sequence[TMoving],
    config,
    *,
    initial_guess: Optional[GuessLike] = None,
) -> Tuple[ICPResult, Sequence[TMoving]]:
    """
    Align using the ``icp`` section of an ``AppConfig``.

    Args:
        reference: Stationary reference cloud.
        moving: Cloud to align.
        config: AppConfig (or ICPConfig) instance. An AppConfig also sets
            the package log level and optional log file from its logging
            section.
        initial_guess: Optional prior, see ``align``.
    """
    logging_cfg = getattr(config, "logging", None)
    if logging_cfg is not None:
        set_package_log_level(logging_cfg.level)
        if logging_cfg.file:
            add_package_log_file(logging_cfg.file)

    icp_cfg = getattr(config, "icp", config)
    coarse_method = icp_cfg.coarse.method if icp_cfg.coarse.enabled else "none"
    return align(
        reference,
        moving,
        ConvergenceParameters.from_config(icp_cfg),
        initial_guess=initial_guess,
        coarse_method=coarse_method,
        in_place=icp_cfg.in_place,
    )
