"""Live ride tracking engine."""

from tracking.models import Fix, RideMetrics, RideSummary, SessionState
from tracking.services.tracking_service import TrackingController

__all__ = [
    "Fix",
    "RideMetrics",
    "RideSummary",
    "SessionState",
    "TrackingController",
]
