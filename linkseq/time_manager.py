"""System clock, timezone and real-time-clock synchronisation."""

import calendar
import logging
import os
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def _apply_timezone():
    tzset = getattr(time, "tzset", None)
    if tzset is not None:
        tzset()


def _struct_from_moment(moment):
    """Calendar fields of ``moment`` as a struct_time with daylight saving off."""
    fields = moment.replace(tzinfo=None).timetuple()
    return time.struct_time(tuple(fields)[:8] + (0,))


class RealTimeClock(ABC):
    """A battery-backed clock keeping UTC wall time as naive datetimes."""

    @abstractmethod
    def now(self):
        """Return the clock's current time as a naive UTC datetime."""

    @abstractmethod
    def adjust(self, moment):
        """Set the clock to the naive UTC datetime ``moment``."""


class TimeManager:
    """Keeps the system time and keeps it in step with a real-time clock.

    The system time is held as an offset from the host clock, so setting it
    affects this manager only.
    """

    _instance = None

    def __init__(self):
        self._rtc = None
        self._offset = 0.0
        self._sntp_sync_callback = None

    def begin(self, rtc):
        """Attach the real-time clock; return True when one was given."""
        self._rtc = rtc
        return rtc is not None

    def system_time(self):
        """Return the system time in whole seconds since the Unix epoch."""
        return int(time.time() + self._offset)

    def system_time_struct(self):
        """Return the system time broken down in the current timezone."""
        return time.localtime(self.system_time())

    def rtc_time_struct(self):
        """Return the real-time clock's fields, or None without a clock."""
        if self._rtc is None:
            return None
        return _struct_from_moment(self._rtc.now())

    def local_time_struct(self):
        """Return the current local time in the configured timezone."""
        return time.localtime(self.system_time())

    def set_system_time(self, timestamp):
        """Set the system time to ``timestamp`` seconds since the Unix epoch."""
        self._offset = float(timestamp) - time.time()

    def set_system_time_from_rtc(self):
        """Copy the real-time clock into the system time; False without a clock."""
        if self._rtc is None:
            return False
        moment = self._rtc.now()
        self.set_system_time(calendar.timegm(moment.replace(tzinfo=None).timetuple()))
        return True

    def set_system_time_manually(self, year, month, day, hour, minute, second):
        """Set the system time from local calendar fields, daylight saving off."""
        fields = (year, month, day, hour, minute, second, 0, 0, 0)
        self.set_system_time(int(time.mktime(fields)))

    def update_timezone(self, tz_param):
        """Switch the process timezone to the POSIX TZ string ``tz_param``."""
        os.environ["TZ"] = tz_param
        _apply_timezone()

    def update_rtc_from_system_time(self):
        """Write the system time to the real-time clock; return the clock's new time."""
        if self._rtc is None:
            return None
        logger.info("updating RTC from system time")
        moment = datetime.fromtimestamp(self.system_time(), timezone.utc).replace(tzinfo=None)
        logger.info("SystemTime: %s", moment.strftime("%Y-%m-%d %H:%M:%S"))
        self._rtc.adjust(moment)
        updated = self._rtc.now()
        logger.info("RTC updated: %s", updated.strftime("%Y-%m-%d %H:%M:%S"))
        return updated

    def on_sntp_sync(self, callback):
        """Set the function called when network time synchronisation finishes."""
        self._sntp_sync_callback = callback

    @classmethod
    def set_instance(cls, instance):
        """Register the manager notified of network time synchronisation."""
        cls._instance = instance

    @classmethod
    def handle_sntp_sync(cls):
        """React to finished synchronisation: run the callback, then update the RTC."""
        logger.info("SNTP time sync completed")
        instance = cls._instance
        if instance is None:
            return
        if instance._sntp_sync_callback:
            instance._sntp_sync_callback()
        instance.update_rtc_from_system_time()