"""
Business Calendar
=================

Converts between wall-clock instants and business minutes.

All arithmetic happens on naive local datetimes (UTC shifted by the
configured fixed offset); public functions accept and return aware UTC
datetimes. Naive inputs are taken to be UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Optional, Tuple

from helpdesk.core import ConfigurationException
from helpdesk.sla.domain.value_objects import WEEKDAYS, CalendarConfig

Window = Tuple[time, time]


class BusinessCalendar:
    """
    Pure business-time arithmetic over one weekly definition.

    `add_business_minutes` and `business_minutes_between` share the same
    windows, so for any start `s` and `m >= 0`:

        business_minutes_between(s, add_business_minutes(s, m)) == m
    """

    def __init__(self, windows: Dict[int, Optional[Window]], utc_offset: timedelta = timedelta(0)):
        self._windows: Dict[int, Optional[Window]] = {}
        for weekday in range(7):
            window = windows.get(weekday)
            if window is not None:
                start, end = window
                if end <= start:
                    raise ConfigurationException(
                        f"Business hours for {WEEKDAYS[weekday]} end before they start",
                        details={"weekday": WEEKDAYS[weekday], "start": start.isoformat(), "end": end.isoformat()},
                    )
            self._windows[weekday] = window

        if not any(self._windows.values()):
            raise ConfigurationException("Business calendar has no business day")

        self._offset = utc_offset

    @classmethod
    def from_config(cls, config: CalendarConfig) -> "BusinessCalendar":
        windows = {}
        for weekday, name in enumerate(WEEKDAYS):
            window = config.business_hours.get(name)
            windows[weekday] = (window.start, window.end) if window is not None else None
        return cls(windows, config.offset)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add_business_minutes(self, start: datetime, minutes: int) -> datetime:
        """
        Advance `start` by `minutes` of business time.

        The start is aligned to the next business boundary first, so a zero
        duration returns the aligned start. The result is inside business
        hours or exactly at the end of a window.
        """
        if minutes < 0:
            raise ValueError("minutes must be >= 0")

        current = self._align(self._to_local(start))
        remaining = timedelta(minutes=minutes)

        while True:
            _, window_end = self._bounds(current.date())
            available = window_end - current
            if remaining <= available:
                return self._to_utc(current + remaining)
            remaining -= available
            current = self._align(window_end)

    def business_minutes_between(self, a: datetime, b: datetime) -> int:
        """Business minutes in [a, b), rounded to whole minutes; 0 when b <= a."""
        start = self._to_local(a)
        end = self._to_local(b)
        if end <= start:
            return 0

        total = timedelta(0)
        day = start.date()
        while day <= end.date():
            bounds = self._bounds(day)
            if bounds is not None:
                lo = max(start, bounds[0])
                hi = min(end, bounds[1])
                if hi > lo:
                    total += hi - lo
            day += timedelta(days=1)

        return int(round(total.total_seconds() / 60))

    def is_business_time(self, instant: datetime) -> bool:
        local = self._to_local(instant)
        bounds = self._bounds(local.date())
        return bounds is not None and bounds[0] <= local < bounds[1]

    def align(self, instant: datetime) -> datetime:
        """Next instant at or after `instant` that is inside business hours."""
        return self._to_utc(self._align(self._to_local(instant)))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _to_local(self, instant: datetime) -> datetime:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return (instant.astimezone(timezone.utc) + self._offset).replace(tzinfo=None)

    def _to_utc(self, local: datetime) -> datetime:
        return (local - self._offset).replace(tzinfo=timezone.utc)

    def _bounds(self, day: date) -> Optional[Tuple[datetime, datetime]]:
        window = self._windows[day.weekday()]
        if window is None:
            return None
        return datetime.combine(day, window[0]), datetime.combine(day, window[1])

    def _align(self, local: datetime) -> datetime:
        # Terminates within a week: at least one business day exists
        while True:
            bounds = self._bounds(local.date())
            if bounds is not None and local < bounds[1]:
                return max(local, bounds[0])
            local = datetime.combine(local.date() + timedelta(days=1), time(0, 0))


def default_calendar() -> BusinessCalendar:
    """Calendar built from the built-in defaults (Mon-Thu 08-18, Fri 08-17, UTC-03:00)."""
    return BusinessCalendar.from_config(CalendarConfig())
