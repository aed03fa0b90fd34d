"""Shared aiohttp session for calls to the remote ride authority.

One session is kept per process and per event loop. A session inherited
through ``fork`` or left behind by a loop that has since stopped is thrown
away and a fresh one is built on the next call.
"""

from __future__ import annotations

import asyncio
import logging
import os

import aiohttp

from core.constants import (
    HTTP_CONNECTION_LIMIT,
    HTTP_TIMEOUT_CONNECT,
    HTTP_TIMEOUT_SOCK_READ,
    HTTP_TIMEOUT_TOTAL,
)

logger = logging.getLogger(__name__)

USER_AGENT = "RideTracker/1.0"


class SessionState:
    """Holder for the process-wide session and the process that built it."""

    session: aiohttp.ClientSession | None = None
    session_owner_pid: int | None = None


def _new_session() -> aiohttp.ClientSession:
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(
            total=HTTP_TIMEOUT_TOTAL,
            connect=HTTP_TIMEOUT_CONNECT,
            sock_read=HTTP_TIMEOUT_SOCK_READ,
        ),
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        connector=aiohttp.TCPConnector(
            limit=HTTP_CONNECTION_LIMIT,
            enable_cleanup_closed=True,
        ),
    )


async def _discard_stale_session(pid: int) -> None:
    session = SessionState.session
    if session is None:
        return

    if SessionState.session_owner_pid != pid:
        # The parent's connector is unusable here; never close it from the child.
        logger.debug(
            "Dropping session inherited from process %s",
            SessionState.session_owner_pid,
        )
        SessionState.session = None
        return

    if session.closed:
        SessionState.session = None
        return

    session_loop = session.loop
    if session_loop is asyncio.get_running_loop() and not session_loop.is_closed():
        return

    logger.info("Event loop changed; replacing ride API session")
    if not session_loop.is_closed():
        try:
            await session.close()
        except Exception as exc:
            logger.warning("Error closing stale session: %s", exc)
    SessionState.session = None


async def get_session() -> aiohttp.ClientSession:
    """Return the session for the running loop, creating it on first use."""
    pid = os.getpid()
    await _discard_stale_session(pid)

    if SessionState.session is None:
        SessionState.session = _new_session()
        SessionState.session_owner_pid = pid
        logger.debug("Created ride API session for process %s", pid)

    return SessionState.session


async def cleanup_session() -> None:
    """Close the shared session for the current process."""
    session = SessionState.session
    if session is not None and not session.closed:
        try:
            await session.close()
            logger.info("Closed ride API session for process %s", os.getpid())
        except Exception as exc:
            logger.warning("Error closing session: %s", exc)

    SessionState.session = None
    SessionState.session_owner_pid = None
