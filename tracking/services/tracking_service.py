"""
Live ride tracking controller.

Receives raw fixes from a location source, runs them through the fix filter
into the session's metrics and route, drives the ride lifecycle against the
remote ride authority, and exposes read-only snapshots to presentation.

Concurrency model: ``ingest`` only enqueues. A single consumer task applies
queued fixes, a ticker task refreshes the duration every tick, and
``start``/``stop``/``recover`` change state; all of them serialize on one
``asyncio.Lock`` so a tick can never interleave with a fix update.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from config import get_checkpoint_interval_seconds, get_duration_tick_seconds
from core.date_utils import (
    elapsed_seconds,
    get_current_utc_time,
    ride_name_for_time,
)
from core.exceptions import (
    NoActiveSessionError,
    NoFixAvailableError,
    PermissionDeniedError,
    RemoteAuthorityError,
    RemoteFinalizeFailedError,
    RemoteOpenFailedError,
    SessionAlreadyActiveError,
)
from tracking.models import (
    AcceptedFix,
    Fix,
    FixRejection,
    LocalSessionRecord,
    PermissionState,
    RemoteRideRecord,
    RideEvent,
    RideMetrics,
    RideSummary,
    SessionState,
)
from tracking.services.events import RideEventBus, RideEventListener
from tracking.services.fix_filter import FixFilter
from tracking.services.route_buffer import RouteBuffer
from tracking.services.session_machine import RideSession, RideSessionMachine
from tracking.services.session_store import InMemorySessionStore, SessionStore

if TYPE_CHECKING:
    from datetime import datetime

    from tracking.clients.location_source import LocationSource
    from tracking.clients.remote_authority import RemoteRideAuthority

logger = logging.getLogger(__name__)


class TrackingController:
    """Orchestrates filtering, accumulation and the ride lifecycle."""

    def __init__(
        self,
        authority: RemoteRideAuthority,
        *,
        location_source: LocationSource | None = None,
        store: SessionStore | None = None,
        fix_filter: FixFilter | None = None,
        clock: Callable[[], datetime] | None = None,
        tick_seconds: float | None = None,
        checkpoint_seconds: float | None = None,
    ) -> None:
        self._authority = authority
        self._source = location_source
        self._store = store or InMemorySessionStore()
        self._filter = fix_filter or FixFilter()
        self._clock = clock or get_current_utc_time
        self._tick_seconds = (
            get_duration_tick_seconds() if tick_seconds is None else tick_seconds
        )
        self._checkpoint_seconds = (
            get_checkpoint_interval_seconds()
            if checkpoint_seconds is None
            else checkpoint_seconds
        )

        self.machine = RideSessionMachine()
        self.session: RideSession | None = None
        self.events = RideEventBus()

        self._lock = asyncio.Lock()
        self._queue: asyncio.Queue[Fix] = asyncio.Queue()
        self._consumer_task: asyncio.Task | None = None
        self._ticker_task: asyncio.Task | None = None
        self._checkpoint_task: asyncio.Task | None = None
        self._last_checkpoint_at: datetime | None = None
        self._starting = False
        self._last_fix: Fix | None = None

        if self._source is not None:
            self._source.subscribe(self.ingest)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self.machine.state

    @property
    def session_id(self) -> str | None:
        return self.session.session_id if self.session else None

    @property
    def last_known_fix(self) -> Fix | None:
        return self._last_fix

    def snapshot(self) -> RideMetrics:
        """Copy of the current metrics; zeroed when no ride is in progress."""
        if self.session is None:
            return RideMetrics()
        return self.session.metrics.model_copy()

    def route(self) -> tuple[tuple[float, float], ...]:
        if self.session is None:
            return ()
        return self.session.route.snapshot()

    def subscribe(self, listener: RideEventListener) -> None:
        self.events.subscribe(listener)

    def unsubscribe(self, listener: RideEventListener) -> None:
        self.events.unsubscribe(listener)

    # ------------------------------------------------------------------
    # Fix ingestion
    # ------------------------------------------------------------------

    def ingest(self, fix: Fix) -> None:
        """
        Hand one raw fix to the engine without waiting for it to be applied.

        Outside an active ride the fix only becomes the last known position.
        Must be called from the event loop's thread.
        """
        self._last_fix = fix
        if not (self._starting or self.machine.is_active):
            return

        self._queue.put_nowait(fix)
        if self._consumer_task is None or self._consumer_task.done():
            self._consumer_task = asyncio.get_running_loop().create_task(
                self._consume(),
            )

    async def drain(self) -> None:
        """Wait until every fix ingested so far has been applied or dropped."""
        await self._queue.join()

    async def _consume(self) -> None:
        while True:
            fix = await self._queue.get()
            try:
                await self._apply(fix)
            except Exception:
                logger.exception("Failed to apply fix for session %s", self.session_id)
            finally:
                self._queue.task_done()

    async def _apply(self, fix: Fix) -> None:
        async with self._lock:
            session = self.session
            if session is None or not self.machine.is_active:
                return

            result = self._filter.accept(session.last_accepted, fix)
            if isinstance(result, FixRejection):
                return

            session.record(result)
            event = self._event("metrics")

        await self.events.emit(event)

    # ------------------------------------------------------------------
    # Duration ticking and checkpoints
    # ------------------------------------------------------------------

    async def tick(self) -> None:
        """Refresh the elapsed duration; also schedules due checkpoints."""
        async with self._lock:
            session = self.session
            if session is None or not self.machine.is_active:
                return
            now = self._clock()
            session.tick(now)
            event = self._event("metrics")
            checkpoint_due = self._checkpoint_due(now)
            if checkpoint_due:
                self._last_checkpoint_at = now
                path = session.route.snapshot()
                metrics = session.metrics.model_copy()

        await self.events.emit(event)
        if checkpoint_due:
            self._checkpoint_task = asyncio.get_running_loop().create_task(
                self._checkpoint(session.session_id, path, metrics),
            )

    def _checkpoint_due(self, now: datetime) -> bool:
        if self._checkpoint_seconds <= 0:
            return False
        if self._checkpoint_task is not None and not self._checkpoint_task.done():
            return False
        if self._last_checkpoint_at is None:
            return True
        return elapsed_seconds(self._last_checkpoint_at, now) >= self._checkpoint_seconds

    async def _checkpoint(
        self,
        session_id: str,
        path: tuple[tuple[float, float], ...],
        metrics: RideMetrics,
    ) -> None:
        if not self.machine.is_active or self.session_id != session_id:
            return
        try:
            await self._authority.update_ride(session_id, path, metrics)
        except Exception:
            logger.warning("Checkpoint of ride %s failed", session_id, exc_info=True)
        else:
            logger.debug("Checkpointed ride %s (%d points)", session_id, len(path))

    async def _run_ticker(self) -> None:
        while True:
            await asyncio.sleep(self._tick_seconds)
            await self.tick()

    def _start_ticker(self) -> None:
        if self._ticker_task is None or self._ticker_task.done():
            self._ticker_task = asyncio.get_running_loop().create_task(
                self._run_ticker(),
            )

    async def _stop_ticker(self) -> None:
        task, self._ticker_task = self._ticker_task, None
        await _cancel(task)

    async def _cancel_checkpoint(self) -> None:
        task, self._checkpoint_task = self._checkpoint_task, None
        await _cancel(task)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, metadata: dict[str, Any] | None = None) -> str:
        """
        Open a ride at the last known position and begin accumulating.

        Returns:
            The session identifier issued by the remote ride authority.

        Raises:
            SessionAlreadyActiveError: A ride is already in progress.
            PermissionDeniedError: The location source reports denied access.
            NoFixAvailableError: No position has been received yet.
            RemoteOpenFailedError: The authority could not open the ride.
        """
        async with self._lock:
            if self.machine.state != SessionState.IDLE:
                msg = "A ride is already in progress"
                raise SessionAlreadyActiveError(msg, {"session_id": self.session_id})

            if self._source is not None:
                permission = await self._source.permission_state()
                if permission == PermissionState.DENIED:
                    msg = "Location permission is required to start a ride"
                    raise PermissionDeniedError(msg)

            start_fix = self._last_fix
            if start_fix is None:
                msg = "Waiting for GPS signal"
                raise NoFixAvailableError(msg)

            started_at = self._clock()
            ride_metadata = {
                "start_time": started_at.isoformat(),
                "title": ride_name_for_time(started_at.astimezone()),
            }
            ride_metadata.update(metadata or {})

            self._starting = True
            try:
                session_id = await self._authority.open_ride(start_fix, ride_metadata)
            except RemoteAuthorityError as exc:
                logger.warning("Could not open ride: %s", exc.message)
                msg = "Failed to open ride"
                raise RemoteOpenFailedError(msg, {"cause": exc.message}) from exc
            finally:
                self._starting = False

            session = RideSession(session_id, started_at)
            session.record(AcceptedFix(fix=start_fix))
            self.session = session
            self._last_checkpoint_at = started_at
            self.machine.set_state(SessionState.ACTIVE)

        logger.info("Ride %s started", session_id)
        await self._save_local(session)
        await self.events.emit(self._event("state"))
        self._start_ticker()
        return session_id

    async def stop(
        self,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> RideSummary:
        """
        Freeze the ride and hand its summary to the remote ride authority.

        Raises:
            NoActiveSessionError: No ride is active.
            RemoteFinalizeFailedError: Finalization failed; the ride stays
                Active so ``stop`` can be retried.
        """
        async with self._lock:
            session = self.session
            if session is None or not self.machine.is_active:
                msg = "No active ride to stop"
                raise NoActiveSessionError(msg)

            await self._stop_ticker()
            # No checkpoint may reach the authority after the final summary.
            await self._cancel_checkpoint()
            self.machine.set_state(SessionState.ENDING)
            ended_at = self._clock()
            session.tick(ended_at)
            summary = RideSummary(
                session_id=session.session_id,
                title=title or ride_name_for_time(session.started_at.astimezone()),
                description=description
                or f"Ride on {ended_at.astimezone():%Y-%m-%d}",
                started_at=session.started_at,
                ended_at=ended_at,
                metrics=session.metrics.model_copy(),
                path=session.route.snapshot(),
            )

        await self.events.emit(self._event("state"))

        try:
            await self._authority.finalize_ride(session.session_id, summary)
        except asyncio.CancelledError:
            logger.warning(
                "Finalization of ride %s was cancelled, keeping it active",
                session.session_id,
            )
            self._resume_ride("Finalization cancelled")
            raise
        except Exception as exc:
            if isinstance(exc, RemoteAuthorityError):
                cause = exc.message
                logger.warning(
                    "Could not finalize ride %s, keeping it active: %s",
                    session.session_id,
                    cause,
                )
            else:
                cause = str(exc) or exc.__class__.__name__
                logger.exception(
                    "Unexpected error finalizing ride %s, keeping it active",
                    session.session_id,
                )
            self._resume_ride(cause)
            await self.events.emit(self._event("state"))
            msg = "Failed to save ride"
            raise RemoteFinalizeFailedError(
                msg,
                {"session_id": session.session_id, "cause": cause},
            ) from exc

        async with self._lock:
            self.machine.set_state(SessionState.CLOSED)
            closed_event = self._event("state")
            self.session = None
            self.machine.set_state(SessionState.IDLE)

        logger.info(
            "Ride %s finished: %.0fm in %ss",
            summary.session_id,
            summary.metrics.distance_meters,
            summary.metrics.duration_seconds,
        )
        await self._clear_local()
        await self.events.emit(closed_event)
        await self.events.emit(self._event("state"))
        return summary

    async def recover(self) -> SessionState:
        """
        Reconcile a ride left Active by a previous process with the authority.

        The ride resumes only when the authority confirms it is still open.
        A closed or unknown ride, or an unreachable authority, discards the
        local state and leaves the engine Idle.
        """
        async with self._lock:
            if self.machine.state != SessionState.IDLE:
                return self.machine.state

            record = await self._load_local()
            if record is None:
                return self.machine.state
            if record.state not in (SessionState.ACTIVE, SessionState.ENDING):
                await self._clear_local()
                return self.machine.state

            try:
                remote = await self._authority.is_ride_open(record.session_id)
            except RemoteAuthorityError as exc:
                logger.warning(
                    "Ride authority unreachable while recovering %s; discarding: %s",
                    record.session_id,
                    exc.message,
                )
                await self._clear_local()
                return self.machine.state

            if not remote.is_open:
                logger.info(
                    "Ride %s is no longer open remotely; discarding local state",
                    record.session_id,
                )
                await self._clear_local()
                return self.machine.state

            session = self._restore_session(
                record.session_id,
                remote.started_at or record.started_at,
                remote,
            )
            self.session = session
            self._last_checkpoint_at = self._clock()
            self.machine.set_state(SessionState.ACTIVE)

        logger.info(
            "Recovered ride %s with %d route points",
            session.session_id,
            len(session.route),
        )
        await self._save_local(session)
        await self.events.emit(self._event("state"))
        self._start_ticker()
        return self.machine.state

    def _resume_ride(self, error: str) -> None:
        # Synchronous so it also runs while the caller is being cancelled.
        self.machine.set_state(SessionState.ACTIVE, error=error)
        self._start_ticker()

    def _restore_session(
        self,
        session_id: str,
        started_at: datetime,
        remote: RemoteRideRecord,
    ) -> RideSession:
        baseline = RideMetrics(
            elevation_gain_meters=remote.elevation_gain_meters or 0.0,
            max_speed_kmh=remote.max_speed_kmh or 0.0,
        )
        session = RideSession(
            session_id,
            started_at,
            route=RouteBuffer(remote.path),
            baseline=baseline,
        )
        now = self._clock()
        for lat, lon in remote.path:
            fix = Fix(latitude=lat, longitude=lon, timestamp=now)
            result = self._filter.accept(session.last_accepted, fix)
            if isinstance(result, FixRejection):
                # Already part of the stored route: restart distance from it.
                result = AcceptedFix(fix=fix)
            session.record(result, add_to_route=False)
        session.tick(now)
        return session

    async def close(self) -> None:
        """Stop background tasks and detach from the location source."""
        if self._source is not None:
            self._source.unsubscribe(self.ingest)
        await self._stop_ticker()
        await self._cancel_checkpoint()
        task, self._consumer_task = self._consumer_task, None
        await _cancel(task)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _event(self, event_type: str) -> RideEvent:
        return RideEvent(
            event_type=event_type,
            state=self.machine.state,
            session_id=self.session_id,
            metrics=self.snapshot(),
            timestamp=self._clock(),
        )

    async def _save_local(self, session: RideSession) -> None:
        record = LocalSessionRecord(
            session_id=session.session_id,
            started_at=session.started_at,
            state=SessionState.ACTIVE,
            updated_at=self._clock(),
        )
        try:
            await self._store.save(record)
        except Exception:
            logger.exception("Could not persist local state for ride %s", session.session_id)

    async def _load_local(self) -> LocalSessionRecord | None:
        try:
            return await self._store.load()
        except Exception:
            logger.exception("Could not read local ride state")
            return None

    async def _clear_local(self) -> None:
        try:
            await self._store.clear()
        except Exception:
            logger.exception("Could not clear local ride state")


async def _cancel(task: asyncio.Task | None) -> None:
    if task is None or task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


__all__ = ["TrackingController"]
