# tests/test_position_sources.py

from __future__ import annotations

import asyncio
import time
from pathlib import Path

import pytest

from taskfence.geofence.geo_models import Coordinate
from taskfence.geofence.position_sources import (
    CsvTrackFetcher,
    ManualPositionSource,
    PollingPositionSource,
    PositionError,
    PositionOptions,
    UnsupportedPositionSource,
    load_track,
)


def _write_track(path: Path, text: str) -> Path:
    path.write_text(text, "utf-8")
    return path


def test_manual_source_fan_out_and_unsubscribe() -> None:
    src = ManualPositionSource()
    a: list[Coordinate] = []
    b: list[Coordinate] = []

    unsub_a = src.subscribe(a.append, lambda e: None)
    src.subscribe(b.append, lambda e: None)

    p = Coordinate(1.0, 2.0)
    assert src.push(p) == 2
    unsub_a()
    assert src.push(p) == 1

    assert a == [p]
    assert b == [p, p]
    assert src.last_sample == p


def test_manual_source_survives_crashing_subscriber() -> None:
    src = ManualPositionSource()
    got: list[Coordinate] = []

    def crash(_: Coordinate) -> None:
        raise RuntimeError("subscriber bug")

    src.subscribe(crash, lambda e: None)
    src.subscribe(got.append, lambda e: None)

    assert src.push(Coordinate(0.0, 0.0)) == 2
    assert len(got) == 1


def test_unsupported_source_reports_unavailable() -> None:
    errors: list[Exception] = []
    src = UnsupportedPositionSource()

    assert src.is_supported() is False
    unsub = src.subscribe(lambda c: None, errors.append)
    unsub()

    assert len(errors) == 1
    assert isinstance(errors[0], PositionError)
    assert errors[0].code == PositionError.POSITION_UNAVAILABLE


@pytest.mark.asyncio
async def test_acquire_times_out() -> None:
    async def slow(high_accuracy: bool) -> Coordinate:
        await asyncio.sleep(5)
        return Coordinate(0.0, 0.0)

    src = PollingPositionSource(slow, options=PositionOptions(timeout_seconds=0.05))
    with pytest.raises(PositionError) as exc_info:
        await src.acquire()
    assert exc_info.value.code == PositionError.TIMEOUT


@pytest.mark.asyncio
async def test_acquire_rejects_stale_fix() -> None:
    def stale(high_accuracy: bool) -> Coordinate:
        return Coordinate(0.0, 0.0, timestamp=time.time() - 120)

    src = PollingPositionSource(stale, options=PositionOptions(maximum_age_seconds=60.0))
    with pytest.raises(PositionError) as exc_info:
        await src.acquire()
    assert exc_info.value.code == PositionError.POSITION_UNAVAILABLE


@pytest.mark.asyncio
async def test_acquire_wraps_fetch_failures() -> None:
    def broken(high_accuracy: bool) -> Coordinate:
        raise OSError("gpsd not running")

    src = PollingPositionSource(broken)
    with pytest.raises(PositionError) as exc_info:
        await src.acquire()
    assert exc_info.value.code == PositionError.POSITION_UNAVAILABLE
    assert "gpsd not running" in exc_info.value.message


@pytest.mark.asyncio
async def test_acquire_passes_high_accuracy_flag() -> None:
    seen: list[bool] = []

    def fetch(high_accuracy: bool) -> Coordinate:
        seen.append(high_accuracy)
        return Coordinate(3.0, 4.0, timestamp=time.time())

    src = PollingPositionSource(fetch, options=PositionOptions(high_accuracy=False))
    coord = await src.acquire()
    assert (coord.latitude, coord.longitude) == (3.0, 4.0)
    assert seen == [False]


@pytest.mark.asyncio
async def test_polling_delivers_samples_and_errors_until_unsubscribed() -> None:
    calls = {"n": 0}

    async def fetch(high_accuracy: bool) -> Coordinate:
        calls["n"] += 1
        if calls["n"] == 2:
            raise PositionError(PositionError.PERMISSION_DENIED, "denied once")
        return Coordinate(1.0, 1.0)

    samples: list[Coordinate] = []
    errors: list[Exception] = []
    src = PollingPositionSource(fetch, interval_seconds=0.01)

    unsubscribe = src.subscribe(samples.append, errors.append)
    for _ in range(200):
        if len(samples) >= 2:
            break
        await asyncio.sleep(0.01)
    unsubscribe()
    await asyncio.sleep(0.05)

    assert len(samples) >= 2
    assert [getattr(e, "code", None) for e in errors] == [PositionError.PERMISSION_DENIED]

    seen = calls["n"]
    await asyncio.sleep(0.05)
    assert calls["n"] == seen


def test_polling_subscribe_without_loop_raises() -> None:
    src = PollingPositionSource(lambda high_accuracy: Coordinate(0.0, 0.0))
    with pytest.raises(RuntimeError):
        src.subscribe(lambda c: None, lambda e: None)


def test_load_track_skips_malformed_rows(tmp_path: Path) -> None:
    path = _write_track(
        tmp_path / "track.csv",
        "latitude,longitude,horizontalAccuracy\n"
        "48.85,2.35,12\n"
        "not-a-number,2.35,\n"
        "48.86,2.36,\n"
        "95.0,2.36,5\n",
    )

    points = load_track(path)
    assert [(p.latitude, p.longitude, p.accuracy) for p in points] == [
        (48.85, 2.35, 12.0),
        (48.86, 2.36, None),
    ]


def test_load_track_requires_columns(tmp_path: Path) -> None:
    path = _write_track(tmp_path / "bad.csv", "lat,lon\n1,2\n")
    with pytest.raises(KeyError):
        load_track(path)


def test_csv_fetcher_exhausts_or_repeats(tmp_path: Path) -> None:
    path = _write_track(tmp_path / "t.csv", "latitude,longitude\n1,1\n2,2\n")

    once = CsvTrackFetcher(path)
    assert once().latitude == 1.0
    assert once().latitude == 2.0
    with pytest.raises(PositionError) as exc_info:
        once()
    assert exc_info.value.code == PositionError.POSITION_UNAVAILABLE

    looped = CsvTrackFetcher(path, repeat=True)
    assert [looped().latitude for _ in range(3)] == [1.0, 2.0, 1.0]


@pytest.mark.asyncio
async def test_polling_stops_after_track_is_exhausted(tmp_path: Path) -> None:
    path = _write_track(tmp_path / "short.csv", "latitude,longitude\n1,1\n")
    fetcher = CsvTrackFetcher(path)
    calls = {"n": 0}

    def counting_fetch(high_accuracy: bool) -> Coordinate:
        calls["n"] += 1
        return fetcher(high_accuracy)

    samples: list[Coordinate] = []
    errors: list[Exception] = []
    src = PollingPositionSource(counting_fetch, interval_seconds=0.01)

    unsubscribe = src.subscribe(samples.append, errors.append)
    try:
        for _ in range(200):
            if errors:
                break
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.1)
    finally:
        unsubscribe()

    assert len(samples) == 1
    assert len(errors) == 1
    assert getattr(errors[0], "final", False) is True
    assert calls["n"] == 2


def test_load_track_accepts_byte_order_mark(tmp_path: Path) -> None:
    path = tmp_path / "excel.csv"
    path.write_bytes("\ufefflatitude,longitude\n48.85,2.35\n".encode("utf-8"))

    (point,) = load_track(path)
    assert (point.latitude, point.longitude) == (48.85, 2.35)
