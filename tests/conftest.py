import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from ride_fakes import FakeRideAuthority  # noqa: E402

_CONFIG_ENV_VARS = (
    "RIDE_API_BASE_URL",
    "RIDE_API_TOKEN",
    "REDIS_URL",
    "MAX_STEP_METERS",
    "STEP_TOLERANCE_METERS",
    "DURATION_TICK_SECONDS",
    "CHECKPOINT_INTERVAL_SECONDS",
    "REMOTE_MAX_RETRIES",
)


class ManualClock:
    """Clock the tests advance explicitly."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture(autouse=True)
def _default_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(datetime(2026, 5, 2, 9, 0, tzinfo=UTC))


@pytest.fixture
def authority() -> FakeRideAuthority:
    return FakeRideAuthority()
