"""
Remote ride authority client.

The remote authority is the source of truth for rides: it opens a ride,
answers whether a ride is still open (with the last path it stored), takes
periodic checkpoints and finalizes the ride with its summary. Rides are
exchanged as JSON documents with ``route_data`` as a GeoJSON LineString
Feature of ``[lon, lat]`` pairs.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from config import get_remote_max_retries, get_ride_api_base_url, get_ride_api_token
from core.date_utils import parse_timestamp
from core.exceptions import RemoteValidationError
from core.http.request import request_json
from core.http.retry import retry_async
from core.http.session import get_session
from core.spatial import route_from_geojson, route_to_feature
from tracking.models import Fix, RemoteRideRecord, RideMetrics, RideSummary

logger = logging.getLogger(__name__)


class RemoteRideAuthority(Protocol):
    """Contract the tracking controller relies on.

    Every call may raise ``RemoteNetworkError`` (unreachable, timed out,
    server failure) or ``RemoteValidationError`` (request rejected).
    """

    async def open_ride(self, start_fix: Fix, metadata: dict[str, Any]) -> str: ...

    async def is_ride_open(self, session_id: str) -> RemoteRideRecord: ...

    async def update_ride(
        self,
        session_id: str,
        path: tuple[tuple[float, float], ...],
        metrics: RideMetrics,
    ) -> None: ...

    async def finalize_ride(self, session_id: str, summary: RideSummary) -> None: ...


def _metrics_payload(metrics: RideMetrics) -> dict[str, Any]:
    return {
        "distance": metrics.distance_meters,
        "elevation_gain": metrics.elevation_gain_meters,
        "max_speed": metrics.max_speed_kmh,
        "average_speed": metrics.average_speed_kmh,
        "duration": metrics.duration_seconds,
    }


def summary_payload(summary: RideSummary) -> dict[str, Any]:
    """Serialize a finished ride the way the authority stores it."""
    payload = {
        "is_live": False,
        "title": summary.title,
        "description": summary.description,
        "start_time": summary.started_at.isoformat(),
        "end_time": summary.ended_at.isoformat(),
        "route_data": route_to_feature(summary.path),
    }
    payload.update(_metrics_payload(summary.metrics))
    return payload


def parse_ride_record(session_id: str, document: dict[str, Any] | None) -> RemoteRideRecord:
    """Build a ``RemoteRideRecord`` from the authority's ride document."""
    if not document:
        return RemoteRideRecord(session_id=session_id, is_open=False)

    if not isinstance(document, dict):
        msg = "Ride authority returned an unexpected ride document"
        raise RemoteValidationError(msg, {"session_id": session_id})

    return RemoteRideRecord(
        session_id=str(document.get("id") or session_id),
        is_open=bool(document.get("is_live")),
        started_at=parse_timestamp(document.get("start_time")),
        path=route_from_geojson(document.get("route_data")),
        elevation_gain_meters=document.get("elevation_gain"),
        max_speed_kmh=document.get("max_speed"),
    )


class HttpRideAuthority:
    """``RemoteRideAuthority`` over the ride service's JSON HTTP API."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        max_retries: int | None = None,
        retry_delay: float = 0.5,
    ) -> None:
        self._base_url = (base_url or get_ride_api_base_url()).rstrip("/")
        self._token = token if token is not None else get_ride_api_token()
        self._max_retries = (
            get_remote_max_retries() if max_retries is None else max_retries
        )
        self._retry_delay = retry_delay

    def _headers(self) -> dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    def _ride_url(self, session_id: str | None = None) -> str:
        if session_id is None:
            return f"{self._base_url}/rides"
        return f"{self._base_url}/rides/{session_id}"

    def _retrying(self, func):
        return retry_async(
            max_retries=self._max_retries,
            retry_delay=self._retry_delay,
        )(func)

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any | None:
        session = await get_session()
        return await request_json(
            method,
            url,
            session=session,
            headers=self._headers(),
            service_name="Ride authority",
            **kwargs,
        )

    async def open_ride(self, start_fix: Fix, metadata: dict[str, Any]) -> str:
        payload = {
            "is_live": True,
            "route_data": route_to_feature([start_fix.coordinate]),
            "start_position": {
                "lat": start_fix.latitude,
                "lon": start_fix.longitude,
                "altitude": start_fix.altitude_m,
            },
            **metadata,
        }
        result = await self._retrying(self._send)(
            "POST",
            self._ride_url(),
            json=payload,
            expected_status=(200, 201),
        )
        ride_id = result.get("id") if isinstance(result, dict) else None
        if not ride_id:
            msg = "Ride authority did not return a ride id"
            raise RemoteValidationError(msg, {"response": result})
        logger.info("Opened remote ride %s", ride_id)
        return str(ride_id)

    async def is_ride_open(self, session_id: str) -> RemoteRideRecord:
        # Not retried: an unreachable authority ends this recovery attempt.
        document = await self._send(
            "GET",
            self._ride_url(session_id),
            none_on=(404,),
        )
        return parse_ride_record(session_id, document)

    async def update_ride(
        self,
        session_id: str,
        path: tuple[tuple[float, float], ...],
        metrics: RideMetrics,
    ) -> None:
        payload = {"route_data": route_to_feature(path), **_metrics_payload(metrics)}
        await self._retrying(self._send)(
            "PATCH",
            self._ride_url(session_id),
            json=payload,
            expected_status=(200, 204),
        )

    async def finalize_ride(self, session_id: str, summary: RideSummary) -> None:
        await self._retrying(self._send)(
            "PATCH",
            self._ride_url(session_id),
            json=summary_payload(summary),
            expected_status=(200, 204),
        )
        logger.info("Finalized remote ride %s", session_id)


__all__ = [
    "HttpRideAuthority",
    "RemoteRideAuthority",
    "parse_ride_record",
    "summary_payload",
]
