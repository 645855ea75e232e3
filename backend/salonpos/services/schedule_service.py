# Overview: Store operating-hours resolution in the store's civil timezone.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..models import Store
from salonpos.config import get_setting
from salonpos.time_utils import local_to_utc, to_local


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class ScheduleError(ValueError):
    """Raised when a store's schedule cannot be resolved for a day."""
    pass


def parse_clock(value) -> time:
    """Accept "HH:MM" or "HH:MM:SS"."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ScheduleError(f"Invalid clock time: {value!r}")
    try:
        return time.fromisoformat(value.strip())
    except ValueError as exc:
        raise ScheduleError(f"Invalid clock time: {value!r}") from exc


@dataclass(frozen=True)
class StoreSchedule:
    """
    Day-of-week opening/closing hours for one store.

    Hours are wall-clock times; conversion to UTC happens per date so DST
    transitions are always respected.
    """
    store_id: int
    tz_name: str
    opening: dict = field(default_factory=dict)
    closing: dict = field(default_factory=dict)

    @classmethod
    def for_store(cls, store: Store) -> "StoreSchedule":
        tz_name = store.timezone or get_setting("STORE_TIMEZONE")
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ScheduleError(f"Store {store.id} has unknown timezone {tz_name!r}") from exc
        return cls(
            store_id=store.id,
            tz_name=tz_name,
            opening=_normalise(store.opening_hours),
            closing=_normalise(store.closing_hours),
        )

    def local_date(self, now: datetime) -> date:
        return to_local(now, self.tz_name).date()

    def opening_time(self, day: date) -> time | None:
        value = self.opening.get(WEEKDAYS[day.weekday()])
        return parse_clock(value) if value is not None else None

    def closing_time(self, day: date) -> time:
        value = self.closing.get(WEEKDAYS[day.weekday()])
        if value is None:
            raise ScheduleError(
                f"Store {self.store_id} has no closing time for {WEEKDAYS[day.weekday()]}"
            )
        return parse_clock(value)

    def closing_on(self, day: date) -> datetime:
        """Closing instant (UTC-naive) of a store-local calendar day."""
        return local_to_utc(day, self.closing_time(day), self.tz_name)

    def closing_at(self, now: datetime) -> datetime:
        """Today's closing instant (UTC-naive) for the store-local day containing now."""
        return self.closing_on(self.local_date(now))

    def check_in_window_start(self, now: datetime) -> datetime | None:
        """
        Earliest instant (UTC-naive) to check in or join the queue today.

        None when the store has no opening time for today (no restriction).
        """
        day = self.local_date(now)
        opening = self.opening_time(day)
        if opening is None:
            return None
        window = timedelta(minutes=get_setting("CHECK_IN_WINDOW_MINUTES"))
        return local_to_utc(day, opening, self.tz_name) - window

    def check_in_allowed(self, now: datetime) -> bool:
        start = self.check_in_window_start(now)
        return start is None or now >= start


def _normalise(hours) -> dict:
    if not hours:
        return {}
    if not isinstance(hours, dict):
        raise ScheduleError(f"Operating hours must be a mapping, got {type(hours).__name__}")
    return {str(day).strip().lower(): value for day, value in hours.items() if value}
