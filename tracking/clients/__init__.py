"""Collaborators the tracking engine talks to: location sources and the ride authority."""

from tracking.clients.location_source import (
    GpxReplaySource,
    LocationSource,
    PushLocationSource,
)
from tracking.clients.remote_authority import HttpRideAuthority, RemoteRideAuthority

__all__ = [
    "GpxReplaySource",
    "HttpRideAuthority",
    "LocationSource",
    "PushLocationSource",
    "RemoteRideAuthority",
]
