from datetime import date, datetime, timedelta, time

from lunchqueue.services.slots.grid import TimeSlot


TODAY = date(2026, 10, 19)  # Monday
TOMORROW = TODAY + timedelta(days=1)
SATURDAY = date(2026, 10, 24)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_slot(location_id: str, hhmm: str, remaining: int, capacity: int = 10, slot_id=None) -> TimeSlot:
    hour, minute = (int(part) for part in hhmm.split(":"))
    return TimeSlot(
        id=slot_id or f"{location_id}@{hhmm}",
        location_id=location_id,
        date=TOMORROW,
        start=time(hour, minute),
        capacity=capacity,
        remaining=remaining,
    )
