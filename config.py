"""Centralized configuration for environment variables and external APIs.

This module is the single source of truth for configuration used across the
tracking engine. Import constants from here rather than calling os.getenv
directly in multiple places.

Values that tests or long-running processes may need to re-read are exposed
through accessor functions; the module-level constants hold the values seen at
import time.
"""

from __future__ import annotations

import logging
import os
from typing import Final

from dotenv import load_dotenv

# Load environment variables from .env if present
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_RIDE_API_BASE_URL: Final[str] = "http://ride-api:8080/v1"
DEFAULT_MAX_STEP_METERS: Final[float] = 100.0
DEFAULT_STEP_TOLERANCE_METERS: Final[float] = 1.0
DEFAULT_DURATION_TICK_SECONDS: Final[float] = 1.0
DEFAULT_CHECKPOINT_INTERVAL_SECONDS: Final[float] = 30.0
DEFAULT_REMOTE_MAX_RETRIES: Final[int] = 2


def _env_float(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; using default %s", name, raw, default)
        return default
    if value < minimum:
        logger.warning("%s=%s is below %s; using default %s", name, value, minimum, default)
        return default
    return value


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; using default %s", name, raw, default)
        return default
    if value < minimum:
        logger.warning("%s=%s is below %s; using default %s", name, value, minimum, default)
        return default
    return value


# --- Remote Ride Authority ---


def get_ride_api_base_url() -> str:
    """Base URL of the remote ride authority, without a trailing slash."""
    value = os.getenv("RIDE_API_BASE_URL", "").strip()
    return (value or DEFAULT_RIDE_API_BASE_URL).rstrip("/")


def get_ride_api_token() -> str | None:
    """Bearer token for the remote ride authority, if one is configured."""
    value = os.getenv("RIDE_API_TOKEN", "").strip()
    return value or None


def get_remote_max_retries() -> int:
    """Transport-level retries for open/finalize/checkpoint calls."""
    return _env_int("REMOTE_MAX_RETRIES", DEFAULT_REMOTE_MAX_RETRIES)


# --- Fix filtering ---


def get_max_step_meters() -> float:
    """Largest plausible distance between two consecutive accepted fixes."""
    return _env_float("MAX_STEP_METERS", DEFAULT_MAX_STEP_METERS, minimum=1.0)


def get_step_tolerance_meters() -> float:
    """Slack added on top of the step limit before a fix is rejected."""
    return _env_float("STEP_TOLERANCE_METERS", DEFAULT_STEP_TOLERANCE_METERS)


# --- Scheduling ---


def get_duration_tick_seconds() -> float:
    return _env_float(
        "DURATION_TICK_SECONDS",
        DEFAULT_DURATION_TICK_SECONDS,
        minimum=0.01,
    )


def get_checkpoint_interval_seconds() -> float:
    """Seconds between remote checkpoints of an active ride; 0 disables them."""
    return _env_float(
        "CHECKPOINT_INTERVAL_SECONDS",
        DEFAULT_CHECKPOINT_INTERVAL_SECONDS,
    )


RIDE_API_BASE_URL: Final[str] = get_ride_api_base_url()
MAX_STEP_METERS: Final[float] = get_max_step_meters()
DURATION_TICK_SECONDS: Final[float] = get_duration_tick_seconds()


__all__ = [
    "DEFAULT_CHECKPOINT_INTERVAL_SECONDS",
    "DEFAULT_DURATION_TICK_SECONDS",
    "DEFAULT_MAX_STEP_METERS",
    "DEFAULT_REMOTE_MAX_RETRIES",
    "DEFAULT_RIDE_API_BASE_URL",
    "DEFAULT_STEP_TOLERANCE_METERS",
    "DURATION_TICK_SECONDS",
    "MAX_STEP_METERS",
    "RIDE_API_BASE_URL",
    "get_checkpoint_interval_seconds",
    "get_duration_tick_seconds",
    "get_max_step_meters",
    "get_remote_max_retries",
    "get_ride_api_base_url",
    "get_ride_api_token",
    "get_step_tolerance_meters",
]
