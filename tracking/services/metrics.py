"""
Running ride metrics.

Every field of ``RideMetrics`` is a fold over the ordered accepted fixes of
the session plus its start time, so the incremental update here and a
from-scratch rebuild always agree.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.constants import METERS_PER_KM, SECONDS_PER_HOUR
from core.date_utils import elapsed_seconds
from tracking.models import AcceptedFix, RideMetrics

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

logger = logging.getLogger(__name__)


def elapsed_hours(started_at: datetime, now: datetime) -> float:
    return elapsed_seconds(started_at, now) / SECONDS_PER_HOUR


def apply_fix(
    metrics: RideMetrics,
    fix: AcceptedFix,
    elapsed_hours: float,
) -> RideMetrics:
    """
    Fold one accepted fix into ``metrics`` in place and return it.

    Speed comes from the receiver's reported speed, never from position
    deltas. A fix without a usable speed still adds distance and elevation
    but leaves the running maximum alone.

    The average is distance over ``elapsed_hours``, measured at the fix's
    own timestamp. A fix sampled at or before the session start (a clock
    behind the engine's, or the start fix itself) has no positive elapsed
    time: its distance still counts but the average keeps its last value
    until a later fix supplies one.
    """
    metrics.distance_meters += fix.distance_delta_m
    metrics.elevation_gain_meters += fix.elevation_delta_m
    metrics.points_recorded += 1

    speed_kmh = fix.speed_kmh
    if speed_kmh is None:
        metrics.current_speed_kmh = 0.0
    else:
        metrics.current_speed_kmh = speed_kmh
        metrics.max_speed_kmh = max(metrics.max_speed_kmh, speed_kmh)

    if elapsed_hours > 0:
        metrics.average_speed_kmh = (
            metrics.distance_meters / METERS_PER_KM
        ) / elapsed_hours

    return metrics


def update_duration(
    metrics: RideMetrics,
    started_at: datetime,
    now: datetime,
) -> RideMetrics:
    """Set the whole-second elapsed duration since ``started_at``."""
    metrics.duration_seconds = int(elapsed_seconds(started_at, now))
    return metrics


def fix_elapsed_hours(started_at: datetime, fix: AcceptedFix) -> float:
    """Hours from the session start to the moment ``fix`` was sampled."""
    return elapsed_hours(started_at, fix.fix.timestamp)


def rebuild_metrics(
    fixes: Iterable[AcceptedFix],
    started_at: datetime,
    now: datetime,
    baseline: RideMetrics | None = None,
) -> RideMetrics:
    """
    Recompute metrics from scratch.

    ``baseline`` carries totals restored from a remote record that the fix
    sequence itself cannot reproduce (elevation gain and top speed of a
    recovered ride); it is the starting value of the fold.
    """
    metrics = baseline.model_copy() if baseline else RideMetrics()
    for fix in fixes:
        apply_fix(metrics, fix, fix_elapsed_hours(started_at, fix))
    update_duration(metrics, started_at, now)
    return metrics


__all__ = [
    "apply_fix",
    "elapsed_hours",
    "fix_elapsed_hours",
    "rebuild_metrics",
    "update_duration",
]
