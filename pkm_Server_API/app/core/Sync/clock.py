# clock.py
# Description: Monotonic millisecond clock used to stamp every row mutation and every sync response.
#
# Imports
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
#
########################################################################################################################
#
# Functions:

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
EPOCH_ISO = "1970-01-01T00:00:00.000Z"
# Largest millisecond value whose ISO form keeps the fixed-width layout (9999-12-31T23:59:59.999Z)
MAX_TIMESTAMP_MS = 253402300799999


def wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


def ms_to_iso(ms: int) -> str:
    """
    Converts integer milliseconds since the Unix epoch to the stored timestamp
    format, e.g. ``2024-04-05T12:00:00.123Z``. The format is fixed width, so
    stored values order the same way as strings and as instants.
    """
    if ms < 0 or ms > MAX_TIMESTAMP_MS:
        raise ValueError(f"Timestamp {ms} ms is outside the supported range.")
    dt = EPOCH + timedelta(milliseconds=ms)
    return dt.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def iso_to_ms(value: str) -> int:
    """Inverse of ms_to_iso. Accepts any ISO-8601 string; naive values are taken as UTC."""
    dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - EPOCH) // timedelta(milliseconds=1)


class SyncClock:
    """
    Issues strictly increasing millisecond timestamps for this process.

    Each call returns ``max(wall clock, last issued + 1)``, so two mutations
    never share a timestamp and a backwards step of the wall clock never
    produces a timestamp earlier than one already handed out. ``observe``
    lets the database seed the clock with the newest stamp it already holds.

    Only one process may write a database file through this clock; separate
    processes keep separate clocks.
    """

    def __init__(self, time_source: Optional[Callable[[], int]] = None):
        self._time_source = time_source or wall_clock_ms
        self._last_ms = 0
        self._lock = threading.Lock()

    @property
    def last_issued_ms(self) -> int:
        with self._lock:
            return self._last_ms

    def now_ms(self) -> int:
        with self._lock:
            candidate = int(self._time_source())
            if candidate <= self._last_ms:
                candidate = self._last_ms + 1
            self._last_ms = candidate
            return candidate

    def next_iso(self) -> str:
        return ms_to_iso(self.now_ms())

    def observe(self, ms: int) -> None:
        with self._lock:
            if ms > self._last_ms:
                logger.debug(f"SyncClock advanced from {self._last_ms} to observed {ms}.")
                self._last_ms = ms


# Shared by every database handle in the process. PKMDatabase.now_ms orders it against other processes.
default_clock = SyncClock()

#
# End of clock.py
########################################################################################################################
