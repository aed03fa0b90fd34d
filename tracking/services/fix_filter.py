"""
Fix filtering for the live ride pipeline.

Decides whether a raw fix is plausible given the previous accepted fix and
computes the deltas the accumulator needs. Pure: no I/O, no state.
"""

from __future__ import annotations

import logging

from config import get_max_step_meters, get_step_tolerance_meters
from core.spatial import GeometryService
from tracking.models import AcceptedFix, Fix, FixRejection

logger = logging.getLogger(__name__)


def step_distance_m(previous: Fix, candidate: Fix) -> float:
    """Great-circle distance in meters between two fixes."""
    return GeometryService.haversine_distance(
        previous.longitude,
        previous.latitude,
        candidate.longitude,
        candidate.latitude,
    )


def elevation_gain_m(previous: Fix, candidate: Fix) -> float:
    """Positive altitude change between two fixes; descents count as zero."""
    if previous.altitude_m is None or candidate.altitude_m is None:
        return 0.0
    return max(0.0, candidate.altitude_m - previous.altitude_m)


class FixFilter:
    """
    Accepts or rejects one candidate fix against the previous accepted fix.

    A candidate farther than ``max_step_m`` (plus ``tolerance_m``) from the
    previous accepted fix is a GPS jump and is rejected, whatever the time
    between the two samples. The first fix of a session is always accepted.
    """

    def __init__(
        self,
        max_step_m: float | None = None,
        tolerance_m: float | None = None,
    ) -> None:
        self.max_step_m = get_max_step_meters() if max_step_m is None else max_step_m
        self.tolerance_m = (
            get_step_tolerance_meters() if tolerance_m is None else tolerance_m
        )

    @property
    def rejection_threshold_m(self) -> float:
        return self.max_step_m + self.tolerance_m

    def accept(
        self,
        previous: AcceptedFix | None,
        candidate: Fix,
    ) -> AcceptedFix | FixRejection:
        if previous is None:
            return AcceptedFix(fix=candidate)

        distance = step_distance_m(previous.fix, candidate)
        if distance >= self.rejection_threshold_m:
            logger.debug(
                "Rejected fix at (%.6f, %.6f): %.1fm jump exceeds %.1fm",
                candidate.latitude,
                candidate.longitude,
                distance,
                self.max_step_m,
            )
            return FixRejection(fix=candidate, reason="jump", distance_m=distance)

        return AcceptedFix(
            fix=candidate,
            distance_delta_m=distance,
            elevation_delta_m=elevation_gain_m(previous.fix, candidate),
        )


__all__ = [
    "FixFilter",
    "elevation_gain_m",
    "step_distance_m",
]
