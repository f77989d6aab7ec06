"""Working-day arithmetic (Monday through Friday)."""

from datetime import date, datetime, time, timedelta

SATURDAY = 5


def is_working_day(day: date) -> bool:
    return day.weekday() < SATURDAY


def subtract_working_days(moment: datetime, days: int) -> datetime:
    """Step back one calendar day at a time until ``days`` working days have been passed.

    The time of day is preserved. From a Monday, Saturday or Sunday, one working day back is the prior Friday.
    """
    result = moment
    counted = 0
    while counted < days:
        result -= timedelta(days=1)
        if is_working_day(result):
            counted += 1
    return result


def default_activity_after(now: datetime) -> datetime:
    """Midnight of the day before the last working day before ``now``.

    Tuesday → Sunday 00:00 (last working day Monday), Monday → Thursday 00:00,
    Saturday/Sunday → Thursday 00:00.
    """
    last_working_day = subtract_working_days(now, 1)
    day_before = last_working_day - timedelta(days=1)
    return datetime.combine(day_before.date(), time.min, tzinfo=now.tzinfo)


def parse_activity_dates(after: str | None, before: str | None, now: datetime) -> tuple[datetime, datetime | None]:
    """Parse ISO ``YYYY-MM-DD`` bounds for an activity query.

    ``after`` defaults to :func:`default_activity_after`; ``before`` is optional.
    Raises ValueError on a malformed date or when ``after`` is later than ``before``.
    """
    if after:
        try:
            after_dt = datetime.combine(date.fromisoformat(after), time.min, tzinfo=now.tzinfo)
        except ValueError as exc:
            raise ValueError(f"invalid --after date {after!r}: expected YYYY-MM-DD") from exc
    else:
        after_dt = default_activity_after(now)

    before_dt: datetime | None = None
    if before:
        try:
            before_dt = datetime.combine(date.fromisoformat(before), time.min, tzinfo=now.tzinfo)
        except ValueError as exc:
            raise ValueError(f"invalid --before date {before!r}: expected YYYY-MM-DD") from exc
        if after_dt > before_dt:
            raise ValueError("--after date must be before --before date")

    return after_dt, before_dt
