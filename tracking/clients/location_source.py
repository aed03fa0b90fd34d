"""
Location sources feeding raw fixes to the tracking controller.

A source pushes ``Fix`` values to its subscribers whenever the platform
delivers them; delivery is best-effort and may stop without notice. The
permission state is queried separately from the stream.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import gpxpy
import gpxpy.gpx

from core.date_utils import ensure_utc
from tracking.models import Fix, PermissionState

logger = logging.getLogger(__name__)

FixCallback = Callable[[Fix], None]


class LocationSource(Protocol):
    def subscribe(self, callback: FixCallback) -> None: ...

    def unsubscribe(self, callback: FixCallback) -> None: ...

    async def permission_state(self) -> PermissionState: ...


class PushLocationSource:
    """
    Source driven by platform glue code calling ``push`` for every fix.

    Subscribers are called synchronously, in subscription order. A failing
    subscriber is logged and the remaining ones still receive the fix.
    """

    def __init__(self, permission: PermissionState = PermissionState.PROMPT) -> None:
        self._subscribers: list[FixCallback] = []
        self.permission = permission

    def subscribe(self, callback: FixCallback) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: FixCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def permission_state(self) -> PermissionState:
        return self.permission

    def push(self, fix: Fix) -> None:
        for callback in list(self._subscribers):
            try:
                callback(fix)
            except Exception:
                logger.exception("Location subscriber failed")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


def fixes_from_gpx(gpx: gpxpy.gpx.GPX) -> list[Fix]:
    """Flatten every track point of a parsed GPX document into fixes."""
    fixes: list[Fix] = []
    for track in gpx.tracks:
        for segment in track.segments:
            for point in segment.points:
                kwargs = {
                    "latitude": point.latitude,
                    "longitude": point.longitude,
                    "altitude_m": point.elevation,
                    "speed_mps": point.speed,
                }
                if point.time is not None:
                    kwargs["timestamp"] = ensure_utc(point.time)
                fixes.append(Fix(**kwargs))
    return fixes


class GpxReplaySource(PushLocationSource):
    """
    Replays a recorded GPX track at its recorded pace.

    ``speedup`` divides the gaps between point timestamps; points without
    timestamps are pushed back to back.
    """

    def __init__(self, fixes: list[Fix], *, speedup: float = 1.0) -> None:
        super().__init__(permission=PermissionState.GRANTED)
        if speedup <= 0:
            msg = "speedup must be positive"
            raise ValueError(msg)
        self.fixes = fixes
        self.speedup = speedup

    @classmethod
    def from_xml(cls, xml: str, *, speedup: float = 1.0) -> GpxReplaySource:
        return cls(fixes_from_gpx(gpxpy.parse(xml)), speedup=speedup)

    @classmethod
    def from_file(cls, path: str | Path, *, speedup: float = 1.0) -> GpxReplaySource:
        with open(path, encoding="utf-8") as handle:
            gpx = gpxpy.parse(handle)
        logger.info("Loaded GPX replay from %s", path)
        return cls(fixes_from_gpx(gpx), speedup=speedup)

    async def play(self) -> int:
        """Push every fix, sleeping between them; returns the number pushed."""
        previous: Fix | None = None
        for fix in self.fixes:
            if previous is not None:
                gap = (fix.timestamp - previous.timestamp).total_seconds()
                if gap > 0:
                    await asyncio.sleep(gap / self.speedup)
            self.push(fix)
            previous = fix
        return len(self.fixes)


__all__ = [
    "FixCallback",
    "GpxReplaySource",
    "LocationSource",
    "PushLocationSource",
    "fixes_from_gpx",
]
