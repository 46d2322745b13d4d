# src/taskfence/geofence/position_sources.py

"""
Position sources.

All sources share the push-style contract from core.ports.PositionSource:
subscribe(on_sample, on_error) -> unsubscribe.

- ManualPositionSource: samples are pushed in by the caller (console /pos, tests).
- PollingPositionSource: an asyncio task that repeatedly acquires a fix from a fetch callable,
  applying the acquisition timeout and staleness limit from PositionOptions.
- CsvTrackFetcher: a fetch callable that replays a recorded CSV track.
- UnsupportedPositionSource: stands in when no sensor is available.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import csv
import inspect
import itertools
import logging
import threading
import time
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

from ..core.ports import ErrorCallback, SampleCallback, Unsubscribe
from .geo_models import Coordinate

logger = logging.getLogger(__name__)

Fetch = Callable[[bool], Coordinate | Awaitable[Coordinate]]


class PositionError(RuntimeError):
    """A single fix could not be obtained. Not fatal for monitoring."""

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3

    def __init__(self, code: int, message: str, *, final: bool = False) -> None:
        super().__init__(message)
        self.code = int(code)
        self.message = message
        # No later fix can succeed (e.g. a replayed track ran out); pollers stop on it.
        self.final = final

    def __repr__(self) -> str:
        return f"PositionError(code={self.code}, message={self.message!r})"


@dataclass(slots=True, frozen=True)
class PositionOptions:
    high_accuracy: bool = True
    timeout_seconds: float = 10.0
    maximum_age_seconds: float = 60.0


def _deliver_sample(on_sample: SampleCallback, coord: Coordinate) -> None:
    try:
        on_sample(coord)
    except Exception:
        logger.exception("Position sample callback crashed")


def _deliver_error(on_error: ErrorCallback, err: Exception) -> None:
    try:
        on_error(err)
    except Exception:
        logger.exception("Position error callback crashed")


class ManualPositionSource:
    """Position source fed explicitly via push()."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[int, tuple[SampleCallback, ErrorCallback]] = {}
        self._ids = itertools.count(1)
        self.last_sample: Coordinate | None = None

    def is_supported(self) -> bool:
        return True

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, on_sample: SampleCallback, on_error: ErrorCallback) -> Unsubscribe:
        with self._lock:
            sub_id = next(self._ids)
            self._subscribers[sub_id] = (on_sample, on_error)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(sub_id, None)

        return unsubscribe

    def push(self, coord: Coordinate) -> int:
        """Deliver a sample to current subscribers. Returns how many received it."""
        self.last_sample = coord
        with self._lock:
            subs = list(self._subscribers.values())
        for on_sample, _ in subs:
            _deliver_sample(on_sample, coord)
        return len(subs)

    def push_error(self, err: Exception) -> int:
        with self._lock:
            subs = list(self._subscribers.values())
        for _, on_error in subs:
            _deliver_error(on_error, err)
        return len(subs)


class UnsupportedPositionSource:
    """No positioning capability on this host."""

    def is_supported(self) -> bool:
        return False

    def subscribe(self, on_sample: SampleCallback, on_error: ErrorCallback) -> Unsubscribe:
        _deliver_error(
            on_error,
            PositionError(PositionError.POSITION_UNAVAILABLE, "Geolocation is not supported on this host."),
        )
        return lambda: None


class PollingPositionSource:
    """
    Polls fetch(high_accuracy) every interval_seconds on an asyncio loop.

    - fetch may be sync (run in a worker thread) or async.
    - acquisition is bounded by options.timeout_seconds -> PositionError(TIMEOUT)
    - fixes older than options.maximum_age_seconds -> PositionError(POSITION_UNAVAILABLE)
    - any other fetch failure is wrapped as POSITION_UNAVAILABLE
    Errors go to on_error and polling continues, except after a final error (see PositionError.final).

    If loop is given, the polling task runs there (thread-safe subscribe);
    otherwise subscribe() must be called from a running event loop.
    """

    def __init__(
        self,
        fetch: Fetch,
        *,
        options: PositionOptions | None = None,
        interval_seconds: float = 5.0,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._fetch = fetch
        self.options = options or PositionOptions()
        self._interval = max(0.01, float(interval_seconds))
        self._loop = loop

    def is_supported(self) -> bool:
        return True

    async def _call_fetch(self) -> Coordinate:
        if inspect.iscoroutinefunction(self._fetch):
            result = await self._fetch(self.options.high_accuracy)
        else:
            result = await asyncio.to_thread(self._fetch, self.options.high_accuracy)
            if inspect.isawaitable(result):
                result = await result
        return result

    async def acquire(self) -> Coordinate:
        """Obtain one fix under the configured timeout/staleness policy."""
        try:
            coord = await asyncio.wait_for(self._call_fetch(), timeout=self.options.timeout_seconds)
        except TimeoutError as e:
            raise PositionError(
                PositionError.TIMEOUT,
                f"Position acquisition timed out after {self.options.timeout_seconds:.1f}s",
            ) from e
        except PositionError:
            raise
        except Exception as e:
            raise PositionError(PositionError.POSITION_UNAVAILABLE, f"{type(e).__name__}: {e}") from e

        if not isinstance(coord, Coordinate):
            raise PositionError(PositionError.POSITION_UNAVAILABLE, f"fetch returned {type(coord).__name__}")

        if coord.timestamp is not None:
            age = time.time() - coord.timestamp
            if age > self.options.maximum_age_seconds:
                raise PositionError(
                    PositionError.POSITION_UNAVAILABLE,
                    f"Position fix is stale ({age:.0f}s old)",
                )
        return coord

    async def _poll(self, on_sample: SampleCallback, on_error: ErrorCallback) -> None:
        while True:
            try:
                coord = await self.acquire()
            except PositionError as e:
                _deliver_error(on_error, e)
                if e.final:
                    logger.info("Position polling stopped: %s", e.message)
                    return
            else:
                _deliver_sample(on_sample, coord)
            await asyncio.sleep(self._interval)

    def subscribe(self, on_sample: SampleCallback, on_error: ErrorCallback) -> Unsubscribe:
        coro = self._poll(on_sample, on_error)

        handle: concurrent.futures.Future[None] | asyncio.Task[None]
        if self._loop is not None:
            handle = asyncio.run_coroutine_threadsafe(coro, self._loop)
        else:
            try:
                handle = asyncio.get_running_loop().create_task(coro)
            except RuntimeError:
                coro.close()
                raise

        def unsubscribe() -> None:
            handle.cancel()

        return unsubscribe


class CsvTrackFetcher:
    """
    Replays a recorded track as successive fixes.

    Columns: latitude, longitude and optionally accuracy (or horizontalAccuracy).
    Malformed rows are skipped. When the track is exhausted the fetcher raises
    a final PositionError(POSITION_UNAVAILABLE) (pollers stop there), unless repeat=True.
    """

    def __init__(self, csv_path: str | Path, *, repeat: bool = False) -> None:
        self.path = Path(csv_path)
        self.points = load_track(self.path)
        self.repeat = repeat
        self._it: Iterator[Coordinate] = iter(self.points)
        self._lock = threading.Lock()
        logger.info("Loaded track %s: %d points (repeat=%s)", self.path, len(self.points), repeat)

    def __call__(self, high_accuracy: bool = True) -> Coordinate:
        with self._lock:
            try:
                return next(self._it)
            except StopIteration:
                if self.repeat and self.points:
                    self._it = iter(self.points)
                    return next(self._it)
        raise PositionError(PositionError.POSITION_UNAVAILABLE, f"Track {self.path.name} exhausted", final=True)


def _parse_accuracy(row: dict[str, str]) -> float | None:
    raw = (row.get("accuracy") or row.get("horizontalAccuracy") or "").strip()
    if not raw:
        return None
    val = float(raw)
    return val if val >= 0 else None


def load_track(csv_path: str | Path) -> list[Coordinate]:
    p = Path(csv_path)
    out: list[Coordinate] = []
    skipped = 0
    with p.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            return out
        missing = {"latitude", "longitude"} - set(reader.fieldnames)
        if missing:
            raise KeyError(f"CSV is missing required columns: {sorted(missing)}; got {reader.fieldnames}")

        for row in reader:
            try:
                out.append(
                    Coordinate(
                        latitude=float(row["latitude"].strip()),
                        longitude=float(row["longitude"].strip()),
                        accuracy=_parse_accuracy(row),
                    )
                )
            except (ValueError, TypeError, AttributeError):
                skipped += 1
                continue

    if skipped:
        logger.warning("Track %s: skipped %d malformed rows", p, skipped)
    return out
