from __future__ import annotations

from datetime import UTC, datetime

import pytest

from tracking.clients.location_source import GpxReplaySource, PushLocationSource
from tracking.models import Fix, PermissionState

GPX_TRACK = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.0" creator="test" xmlns="http://www.topografix.com/GPX/1/0">
  <trk>
    <trkseg>
      <trkpt lat="51.5000" lon="-0.1200">
        <ele>12.0</ele>
        <time>2026-05-02T09:00:00Z</time>
        <speed>4.5</speed>
      </trkpt>
      <trkpt lat="51.5003" lon="-0.1201">
        <ele>13.5</ele>
        <time>2026-05-02T09:00:10Z</time>
      </trkpt>
      <trkpt lat="51.5006" lon="-0.1202">
        <time>2026-05-02T09:00:20Z</time>
      </trkpt>
    </trkseg>
  </trk>
</gpx>
"""


def test_push_delivers_to_subscribers_in_order() -> None:
    source = PushLocationSource()
    seen: list[str] = []
    source.subscribe(lambda fix: seen.append(f"a:{fix.latitude}"))
    source.subscribe(lambda fix: seen.append(f"b:{fix.latitude}"))

    source.push(Fix(latitude=1.0, longitude=2.0))

    assert seen == ["a:1.0", "b:1.0"]
    assert source.subscriber_count == 2


def test_failing_subscriber_does_not_starve_others() -> None:
    source = PushLocationSource()
    received: list[Fix] = []

    def broken(_fix: Fix) -> None:
        msg = "boom"
        raise RuntimeError(msg)

    source.subscribe(broken)
    source.subscribe(received.append)

    source.push(Fix(latitude=1.0, longitude=2.0))

    assert len(received) == 1


def test_unsubscribe_stops_delivery() -> None:
    source = PushLocationSource()
    received: list[Fix] = []
    source.subscribe(received.append)
    source.unsubscribe(received.append)

    source.push(Fix(latitude=1.0, longitude=2.0))

    assert received == []
    assert source.subscriber_count == 0


@pytest.mark.asyncio
async def test_permission_state_is_reported() -> None:
    source = PushLocationSource(permission=PermissionState.DENIED)

    assert await source.permission_state() == PermissionState.DENIED


def test_gpx_points_become_fixes() -> None:
    source = GpxReplaySource.from_xml(GPX_TRACK)

    assert len(source.fixes) == 3
    first, second, third = source.fixes
    assert first.coordinate == (51.5, -0.12)
    assert first.altitude_m == 12.0
    assert first.speed_mps == 4.5
    assert first.timestamp == datetime(2026, 5, 2, 9, 0, tzinfo=UTC)
    assert second.speed_mps is None
    assert third.altitude_m is None


@pytest.mark.asyncio
async def test_replay_pushes_every_fix_with_permission_granted() -> None:
    source = GpxReplaySource.from_xml(GPX_TRACK, speedup=1000.0)
    received: list[Fix] = []
    source.subscribe(received.append)

    count = await source.play()

    assert await source.permission_state() == PermissionState.GRANTED
    assert count == 3
    assert [fix.latitude for fix in received] == [51.5, 51.5003, 51.5006]


def test_replay_rejects_non_positive_speedup() -> None:
    with pytest.raises(ValueError):
        GpxReplaySource([], speedup=0)


def test_replay_from_file(tmp_path) -> None:
    path = tmp_path / "ride.gpx"
    path.write_text(GPX_TRACK, encoding="utf-8")

    source = GpxReplaySource.from_file(path)

    assert len(source.fixes) == 3
