# test_sync_clock.py
#
# Imports
import threading
#
# Third-Party Imports
import pytest
#
# Local Imports
from pkm_Server_API.app.core.Sync.clock import (
    SyncClock, ms_to_iso, iso_to_ms, EPOCH_ISO, MAX_TIMESTAMP_MS
)
#
########################################################################################################################
#
# Tests:


def test_ms_to_iso_fixed_width_format():
    assert ms_to_iso(0) == EPOCH_ISO
    assert ms_to_iso(1712345678901) == "2024-04-05T19:34:38.901Z"
    assert ms_to_iso(MAX_TIMESTAMP_MS) == "9999-12-31T23:59:59.999Z"


@pytest.mark.parametrize("value", [-1, MAX_TIMESTAMP_MS + 1])
def test_ms_to_iso_rejects_out_of_range(value):
    with pytest.raises(ValueError):
        ms_to_iso(value)


def test_iso_to_ms_inverts_ms_to_iso():
    for ms in (0, 1, 999, 1000, 1712345678901, MAX_TIMESTAMP_MS):
        assert iso_to_ms(ms_to_iso(ms)) == ms


def test_string_order_matches_instant_order():
    values = [5, 1_000, 999_999, 1712345678901, 1712345678902, 9_999_999_999_999]
    as_iso = [ms_to_iso(v) for v in values]
    assert sorted(as_iso) == as_iso


def test_clock_is_strictly_increasing_with_frozen_wall_clock(fake_time):
    clock = SyncClock(time_source=fake_time)
    issued = [clock.now_ms() for _ in range(5)]
    assert issued == [fake_time.now + i for i in range(5)]


def test_clock_never_goes_backwards(fake_time):
    clock = SyncClock(time_source=fake_time)
    first = clock.now_ms()
    fake_time.advance(-60_000)
    assert clock.now_ms() == first + 1


def test_clock_follows_wall_clock_when_it_moves_ahead(fake_time):
    clock = SyncClock(time_source=fake_time)
    clock.now_ms()
    fake_time.advance(5_000)
    assert clock.now_ms() == fake_time.now


def test_observe_only_moves_forward(fake_time):
    clock = SyncClock(time_source=fake_time)
    clock.observe(fake_time.now + 10_000)
    assert clock.now_ms() == fake_time.now + 10_001
    clock.observe(0)
    assert clock.last_issued_ms == fake_time.now + 10_001


def test_next_iso_uses_issued_milliseconds(fake_time):
    clock = SyncClock(time_source=fake_time)
    assert clock.next_iso() == ms_to_iso(fake_time.now)
    assert clock.last_issued_ms == fake_time.now


def test_clock_unique_across_threads(fake_time):
    clock = SyncClock(time_source=fake_time)
    issued = []
    lock = threading.Lock()

    def worker():
        values = [clock.now_ms() for _ in range(200)]
        with lock:
            issued.extend(values)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(issued) == len(set(issued)) == 800

#
# End of test_sync_clock.py
########################################################################################################################
