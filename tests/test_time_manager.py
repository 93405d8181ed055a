import os
import time
from datetime import datetime

import pytest

from linkseq.time_manager import RealTimeClock, TimeManager


class FakeClock(RealTimeClock):
    def __init__(self, moment):
        self.moment = moment
        self.adjusted = []

    def now(self):
        return self.moment

    def adjust(self, moment):
        self.adjusted.append(moment)
        self.moment = moment


@pytest.fixture
def restore_tz():
    saved = os.environ.get("TZ")
    yield
    if saved is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = saved
    if hasattr(time, "tzset"):
        time.tzset()


@pytest.fixture
def restore_instance():
    yield
    TimeManager.set_instance(None)


def test_begin_reports_whether_clock_given():
    manager = TimeManager()
    assert manager.begin(None) is False
    assert manager.begin(FakeClock(datetime(2025, 5, 20))) is True


def test_set_system_time_round_trip():
    manager = TimeManager()
    manager.set_system_time(1_700_000_000)
    assert abs(manager.system_time() - 1_700_000_000) <= 1


def test_rtc_time_struct_without_clock_is_none():
    manager = TimeManager()
    assert manager.rtc_time_struct() is None


def test_rtc_time_struct_fields():
    manager = TimeManager()
    manager.begin(FakeClock(datetime(2025, 5, 20, 12, 34, 56)))
    fields = manager.rtc_time_struct()
    assert (fields.tm_year, fields.tm_mon, fields.tm_mday) == (2025, 5, 20)
    assert (fields.tm_hour, fields.tm_min, fields.tm_sec) == (12, 34, 56)
    assert fields.tm_isdst == 0


def test_set_system_time_from_rtc_treats_clock_as_utc():
    manager = TimeManager()
    manager.begin(FakeClock(datetime(1970, 1, 2, 0, 0, 0)))
    assert manager.set_system_time_from_rtc() is True
    assert abs(manager.system_time() - 86400) <= 1


def test_set_system_time_from_rtc_without_clock():
    manager = TimeManager()
    manager.set_system_time(1000)
    assert manager.set_system_time_from_rtc() is False
    assert abs(manager.system_time() - 1000) <= 1


def test_manual_time_round_trips_through_local_time(restore_tz):
    manager = TimeManager()
    manager.update_timezone("UTC0")
    manager.set_system_time_manually(2024, 1, 2, 3, 4, 5)
    local = manager.local_time_struct()
    assert (local.tm_year, local.tm_mon, local.tm_mday) == (2024, 1, 2)
    assert (local.tm_hour, local.tm_min) == (3, 4)


def test_update_timezone_shifts_local_time(restore_tz):
    manager = TimeManager()
    manager.update_timezone("JST-9")
    assert os.environ["TZ"] == "JST-9"
    manager.set_system_time(0)
    assert manager.local_time_struct().tm_hour == 9
    assert manager.system_time_struct().tm_hour == 9


def test_update_rtc_from_system_time():
    clock = FakeClock(datetime(2000, 1, 1))
    manager = TimeManager()
    manager.begin(clock)
    manager.set_system_time(86400)
    updated = manager.update_rtc_from_system_time()
    assert len(clock.adjusted) == 1
    assert abs((clock.adjusted[0] - datetime(1970, 1, 2)).total_seconds()) <= 1
    assert updated == clock.adjusted[0]


def test_update_rtc_without_clock_returns_none():
    manager = TimeManager()
    assert manager.update_rtc_from_system_time() is None


def test_handle_sntp_sync_runs_callback_and_updates_rtc(restore_instance):
    clock = FakeClock(datetime(2000, 1, 1))
    manager = TimeManager()
    manager.begin(clock)
    manager.set_system_time(86400)
    calls = []
    manager.on_sntp_sync(lambda: calls.append(len(clock.adjusted)))
    TimeManager.set_instance(manager)
    TimeManager.handle_sntp_sync()
    assert calls == [0]
    assert len(clock.adjusted) == 1


def test_handle_sntp_sync_after_instance_cleared(restore_instance):
    clock = FakeClock(datetime(2000, 1, 1))
    manager = TimeManager()
    manager.begin(clock)
    calls = []
    manager.on_sntp_sync(lambda: calls.append(True))
    TimeManager.set_instance(None)
    TimeManager.handle_sntp_sync()
    assert calls == []
    assert clock.adjusted == []