"""Append-only buffer of the coordinates that make up a ride's path."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from core.spatial import route_to_feature

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class RouteBuffer:
    """
    Ordered ``(lat, lon)`` pairs, one per accepted fix plus the start position.

    The buffer only ever grows. Freezing after the ride ends is the session
    state machine's job: it stops calling ``append`` once the ride is Ending.
    """

    def __init__(self, points: Iterable[tuple[float, float]] | None = None) -> None:
        self._points: list[tuple[float, float]] = [
            (float(lat), float(lon)) for lat, lon in (points or [])
        ]

    def append(self, coordinate: tuple[float, float]) -> RouteBuffer:
        lat, lon = coordinate
        self._points.append((float(lat), float(lon)))
        return self

    def snapshot(self) -> tuple[tuple[float, float], ...]:
        """Immutable copy of the path as it stands now."""
        return tuple(self._points)

    def to_feature(self) -> dict[str, Any]:
        """GeoJSON LineString Feature of the path, ``[lon, lat]`` ordered."""
        return route_to_feature(self._points)

    @property
    def last(self) -> tuple[float, float] | None:
        return self._points[-1] if self._points else None

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[tuple[float, float]]:
        return iter(list(self._points))


__all__ = ["RouteBuffer"]
