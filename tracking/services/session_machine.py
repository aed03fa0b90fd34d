"""
Ride Session State Module.

Defines the ride lifecycle state machine and the typed session object it
governs. The machine enforces which lifecycle moves are legal and keeps a
timestamped history of every move; the session owns the metrics, route and
accepted-fix sequence of one ride attempt.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from core.date_utils import get_current_utc_time
from core.exceptions import InvalidTransitionError
from tracking.models import AcceptedFix, RideMetrics, SessionState
from tracking.services.metrics import apply_fix, fix_elapsed_hours, update_duration
from tracking.services.route_buffer import RouteBuffer

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.IDLE: {SessionState.ACTIVE},
    SessionState.ACTIVE: {SessionState.ENDING},
    # Ending falls back to Active when finalization fails.
    SessionState.ENDING: {SessionState.CLOSED, SessionState.ACTIVE},
    SessionState.CLOSED: {SessionState.IDLE, SessionState.ACTIVE},
}


class RideSessionMachine:
    """
    Manages the lifecycle transitions of the tracking engine.

    Tracks the current state, maintains a history of state changes, and
    records any errors attached to a transition.
    """

    def __init__(self) -> None:
        """Initialize the state machine in IDLE state."""
        self.state = SessionState.IDLE
        self.state_history: list[dict[str, Any]] = []
        self.errors: dict[str, str] = {}

    def can_proceed_to(self, target_state: SessionState) -> bool:
        """Check if transitioning to the target state is valid."""
        return target_state in VALID_TRANSITIONS.get(self.state, set())

    def set_state(
        self,
        new_state: SessionState,
        error: str | None = None,
    ) -> None:
        """
        Move to ``new_state`` and record it in history.

        Args:
            new_state: The state to move to
            error: Optional reason, recorded when a transition undoes a
                failed step (e.g. Ending back to Active)

        Raises:
            InvalidTransitionError: If the move is not allowed from the
                current state.
        """
        previous_state = self.state
        if not self.can_proceed_to(new_state):
            msg = f"Cannot move from {previous_state.value} to {new_state.value}"
            raise InvalidTransitionError(
                msg,
                {"from": previous_state.value, "to": new_state.value},
            )

        self.state = new_state
        state_change = {
            "from": previous_state.value,
            "to": new_state.value,
            "timestamp": get_current_utc_time(),
        }
        if error:
            state_change["error"] = error
            self.errors[previous_state.value] = error

        self.state_history.append(state_change)
        logger.debug("Session state %s -> %s", previous_state.value, new_state.value)

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE


class RideSession:
    """
    One ride attempt: identity, start time, metrics, route and fix history.

    ``record`` is the only way metrics and route change, and it changes both
    together, so a fix is either fully applied or not applied at all.
    """

    def __init__(
        self,
        session_id: str,
        started_at: datetime,
        *,
        route: RouteBuffer | None = None,
        baseline: RideMetrics | None = None,
    ) -> None:
        self.session_id = session_id
        self.started_at = started_at
        self.route = route or RouteBuffer()
        self.metrics = baseline.model_copy() if baseline else RideMetrics()
        self.baseline = baseline.model_copy() if baseline else None
        self.accepted: list[AcceptedFix] = []

    @property
    def last_accepted(self) -> AcceptedFix | None:
        return self.accepted[-1] if self.accepted else None

    def record(self, fix: AcceptedFix, *, add_to_route: bool = True) -> None:
        apply_fix(self.metrics, fix, fix_elapsed_hours(self.started_at, fix))
        if add_to_route:
            self.route.append(fix.coordinate)
        self.accepted.append(fix)

    def tick(self, now: datetime) -> None:
        update_duration(self.metrics, self.started_at, now)


__all__ = [
    "VALID_TRANSITIONS",
    "RideSession",
    "RideSessionMachine",
]
