"""
Recurrence expansion for booking patterns.

This module is framework-agnostic and side-effect free:
- Rule classes describe one cadence each (daily, weekly, biweekly, monthly, custom)
- RecurrencePattern bundles a rule with its bounds, time of day and timezone
- generate_occurrences() turns a pattern into concrete, numbered occurrences

Occurrences are numbered by ``sequence_index`` from the pattern start. The
caller keeps the count of occurrences already created and asks for the next
batch, so the same inputs always produce the same batch.

Days of the week are numbered 0 (Sunday) to 6 (Saturday).
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from itertools import count, islice
from typing import FrozenSet, Iterator, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


RECURRENCE_TYPES = ('daily', 'weekly', 'biweekly', 'monthly', 'custom')

SHORT_MONTH_CLAMP = 'clamp'
SHORT_MONTH_SKIP = 'skip'
SHORT_MONTH_POLICIES = (SHORT_MONTH_CLAMP, SHORT_MONTH_SKIP)


class PatternValidationError(ValueError):
    """Raised when a recurrence pattern cannot be expanded as configured."""


def day_of_week(value: date) -> int:
    """Day of week with 0 = Sunday and 6 = Saturday."""
    return (value.weekday() + 1) % 7


def _validate_days_of_week(days) -> FrozenSet[int]:
    days = frozenset(days or ())
    if not days:
        raise PatternValidationError("Select at least one day of the week.")
    invalid = sorted(str(d) for d in days if not isinstance(d, int) or not 0 <= d <= 6)
    if invalid:
        raise PatternValidationError(
            f"Days of the week must be between 0 (Sunday) and 6 (Saturday), got {', '.join(invalid)}."
        )
    return days


def _add_months(year: int, month: int, months: int) -> Tuple[int, int]:
    year_offset, month_index = divmod(month - 1 + months, 12)
    return year + year_offset, month_index + 1


def _validate_interval(interval) -> None:
    if not isinstance(interval, int) or interval < 1:
        raise PatternValidationError("The interval must be at least 1.")


def _weekly_dates(start: date, days_of_week: FrozenSet[int], every: int) -> Iterator[date]:
    # Weeks start on Sunday and are counted from the week containing ``start``.
    week_start = start - timedelta(days=day_of_week(start))
    current = start
    while True:
        week_offset = (current - week_start).days // 7
        if week_offset % every == 0 and day_of_week(current) in days_of_week:
            yield current
        current += timedelta(days=1)


@dataclass(frozen=True)
class DailyRule:
    """Every ``interval`` days from the start date."""

    interval: int = 1

    recurrence_type = 'daily'

    def __post_init__(self):
        _validate_interval(self.interval)

    def dates(self, start: date) -> Iterator[date]:
        for k in count():
            yield start + timedelta(days=k * self.interval)


@dataclass(frozen=True)
class WeeklyRule:
    """
    Every day whose weekday is in ``days_of_week``, every ``interval`` weeks.

    Weeks start on Sunday and are counted from the week containing the
    start date; with an interval of 3, week offsets 0, 3, 6... qualify.
    """

    days_of_week: FrozenSet[int]
    interval: int = 1

    recurrence_type = 'weekly'

    def __post_init__(self):
        object.__setattr__(self, 'days_of_week', _validate_days_of_week(self.days_of_week))
        _validate_interval(self.interval)

    def dates(self, start: date) -> Iterator[date]:
        return _weekly_dates(start, self.days_of_week, self.interval)


@dataclass(frozen=True)
class BiweeklyRule:
    """Like WeeklyRule with a fixed interval of two weeks; week offsets 0, 2, 4... qualify."""

    days_of_week: FrozenSet[int]

    recurrence_type = 'biweekly'

    def __post_init__(self):
        object.__setattr__(self, 'days_of_week', _validate_days_of_week(self.days_of_week))

    def dates(self, start: date) -> Iterator[date]:
        return _weekly_dates(start, self.days_of_week, 2)


@dataclass(frozen=True)
class MonthlyRule:
    """
    One occurrence every ``interval`` months.

    With ``days_of_week`` the occurrence is the first day of the month whose
    weekday is in the set; later matching days of that month are not used,
    so ``{1, 3}`` means the first Monday or Wednesday of the month, never
    both. In the start month only days on or after the start date count.

    Otherwise it falls on ``day_of_month`` (the start date's day when unset);
    months too short for that day are clamped to their last day or skipped,
    according to ``short_month_policy``.
    """

    day_of_month: Optional[int] = None
    days_of_week: Optional[FrozenSet[int]] = None
    short_month_policy: str = SHORT_MONTH_CLAMP
    interval: int = 1

    recurrence_type = 'monthly'

    def __post_init__(self):
        if self.day_of_month is not None and self.days_of_week is not None:
            raise PatternValidationError(
                "Choose either a day of the month or days of the week, not both."
            )
        if self.days_of_week is not None:
            object.__setattr__(self, 'days_of_week', _validate_days_of_week(self.days_of_week))
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise PatternValidationError("Day of the month must be between 1 and 31.")
        if self.short_month_policy not in SHORT_MONTH_POLICIES:
            raise PatternValidationError(
                f"Short month policy must be one of: {', '.join(SHORT_MONTH_POLICIES)}."
            )
        _validate_interval(self.interval)

    def dates(self, start: date) -> Iterator[date]:
        for month_offset in count(0, self.interval):
            year, month = _add_months(start.year, start.month, month_offset)
            candidate = self._date_in_month(year, month, start)
            if candidate is not None and candidate >= start:
                yield candidate

    def _date_in_month(self, year: int, month: int, start: date) -> Optional[date]:
        last_day = calendar.monthrange(year, month)[1]

        if self.days_of_week is not None:
            first_day = start.day if (year, month) == (start.year, start.month) else 1
            for day in range(first_day, last_day + 1):
                candidate = date(year, month, day)
                if day_of_week(candidate) in self.days_of_week:
                    return candidate
            return None

        target_day = self.day_of_month or start.day
        if target_day > last_day:
            if self.short_month_policy == SHORT_MONTH_SKIP:
                return None
            target_day = last_day
        return date(year, month, target_day)


@dataclass(frozen=True)
class CustomRule:
    """Every ``interval_days`` days from the start date."""

    interval_days: int

    recurrence_type = 'custom'

    def __post_init__(self):
        if self.interval_days is None or self.interval_days < 1:
            raise PatternValidationError("Custom recurrence needs an interval of at least one day.")

    def dates(self, start: date) -> Iterator[date]:
        for k in count():
            yield start + timedelta(days=k * self.interval_days)


Rule = Union[DailyRule, WeeklyRule, BiweeklyRule, MonthlyRule, CustomRule]


@dataclass(frozen=True)
class RecurrencePattern:
    """
    A recurrence rule with its bounds.

    ``end_date`` and ``date_limit`` are inclusive; the earlier one wins.
    ``shift_days`` moves every derived date, and is how rescheduling carries
    over to occurrences generated later.
    """

    rule: Rule
    start_date: date
    start_time: time
    duration_minutes: int
    timezone: str = 'UTC'
    end_date: Optional[date] = None
    date_limit: Optional[date] = None
    occurrence_limit: Optional[int] = None
    shift_days: int = 0
    pattern_id: Optional[int] = field(default=None, compare=False)

    def __post_init__(self):
        if self.duration_minutes is None or self.duration_minutes < 1:
            raise PatternValidationError("Duration must be at least one minute.")
        if self.occurrence_limit is not None and self.occurrence_limit < 1:
            raise PatternValidationError("The number of occurrences must be at least 1.")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise PatternValidationError(f"Unknown timezone: {self.timezone}.") from None

        last_date = self.last_date
        if last_date is not None:
            if last_date < self.start_date:
                raise PatternValidationError("The end date cannot be before the start date.")
            if next(self.rule.dates(self.start_date)) > last_date:
                raise PatternValidationError(
                    "No occurrences fall between the start date and the end date."
                )

    @property
    def recurrence_type(self) -> str:
        return self.rule.recurrence_type

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def last_date(self) -> Optional[date]:
        bounds = [bound for bound in (self.end_date, self.date_limit) if bound is not None]
        return min(bounds) if bounds else None

    def occurrence_dates(self) -> Iterator[date]:
        """Every occurrence date in order, with ``shift_days`` applied."""
        shift = timedelta(days=self.shift_days)
        for occurrence_date in self.rule.dates(self.start_date):
            yield occurrence_date + shift


@dataclass(frozen=True)
class BookingOccurrence:
    """One concrete occurrence of a pattern."""

    sequence_index: int
    start_datetime: datetime
    end_datetime: datetime
    pattern_id: Optional[int] = None

    @property
    def duration_minutes(self) -> int:
        return int((self.end_datetime - self.start_datetime).total_seconds() // 60)


def build_pattern(
    recurrence_type: str,
    *,
    start_date: date,
    start_time: time,
    duration_minutes: int,
    timezone: str = 'UTC',
    end_date: Optional[date] = None,
    date_limit: Optional[date] = None,
    occurrence_limit: Optional[int] = None,
    days_of_week=None,
    day_of_month: Optional[int] = None,
    interval_days: Optional[int] = None,
    interval: Optional[int] = None,
    short_month_policy: str = SHORT_MONTH_CLAMP,
    shift_days: int = 0,
    pattern_id: Optional[int] = None,
) -> RecurrencePattern:
    """
    Build a pattern from flat, stored fields.

    Fields that do not apply to the recurrence type are rejected, so a
    stored pattern always maps to exactly one rule. ``interval`` ("every N
    days, weeks or months") applies to daily, weekly and monthly patterns;
    None and 1 both mean every period.

    Raises:
        PatternValidationError: If the fields do not describe a valid pattern
    """
    if recurrence_type not in RECURRENCE_TYPES:
        raise PatternValidationError(
            f"Recurrence type must be one of: {', '.join(RECURRENCE_TYPES)}."
        )

    if interval == 1:
        interval = None
    _reject_unused(recurrence_type, days_of_week=days_of_week, day_of_month=day_of_month,
                   interval_days=interval_days, interval=interval)
    if interval is None:
        interval = 1

    if recurrence_type == 'daily':
        rule = DailyRule(interval)
    elif recurrence_type == 'weekly':
        rule = WeeklyRule(days_of_week, interval)
    elif recurrence_type == 'biweekly':
        rule = BiweeklyRule(days_of_week)
    elif recurrence_type == 'monthly':
        rule = MonthlyRule(
            day_of_month=day_of_month,
            days_of_week=days_of_week or None,
            short_month_policy=short_month_policy,
            interval=interval,
        )
    else:
        rule = CustomRule(interval_days)

    return RecurrencePattern(
        rule=rule,
        start_date=start_date,
        start_time=start_time,
        duration_minutes=duration_minutes,
        timezone=timezone,
        end_date=end_date,
        date_limit=date_limit,
        occurrence_limit=occurrence_limit,
        shift_days=shift_days,
        pattern_id=pattern_id,
    )


_FIELDS_BY_TYPE = {
    'daily': {'interval'},
    'weekly': {'days_of_week', 'interval'},
    'biweekly': {'days_of_week'},
    'monthly': {'days_of_week', 'day_of_month', 'interval'},
    'custom': {'interval_days'},
}


def _reject_unused(recurrence_type: str, **fields) -> None:
    for name, value in fields.items():
        if value in (None, [], (), set(), frozenset()):
            continue
        if name not in _FIELDS_BY_TYPE[recurrence_type]:
            label = name.replace('_', ' ')
            raise PatternValidationError(
                f"{label.capitalize()} does not apply to {recurrence_type} recurrence."
            )


def generate_occurrences(
    pattern: RecurrencePattern,
    already_created: int,
    request_count: int
) -> List[BookingOccurrence]:
    """
    Generate the next batch of occurrences for a pattern.

    Args:
        pattern: RecurrencePattern to expand
        already_created: Number of occurrences generated so far; the batch
                         starts at this sequence index
        request_count: Maximum number of occurrences to return

    Returns:
        Up to ``request_count`` occurrences. Fewer are returned once the end
        date or the occurrence limit is reached.

    Raises:
        PatternValidationError: If the counters are out of range
    """
    if already_created < 0:
        raise PatternValidationError("The created occurrence count cannot be negative.")
    if request_count < 1:
        raise PatternValidationError("Request at least one occurrence.")

    last_date = pattern.last_date
    tz = pattern.tzinfo
    occurrences = []

    candidates = islice(enumerate(pattern.occurrence_dates()), already_created, None)
    for sequence_index, occurrence_date in candidates:
        if last_date is not None and occurrence_date > last_date:
            break
        if pattern.occurrence_limit is not None and sequence_index >= pattern.occurrence_limit:
            break
        if len(occurrences) >= request_count:
            break
        occurrences.append(_build_occurrence(pattern, sequence_index, occurrence_date, tz))

    return occurrences


def _build_occurrence(
    pattern: RecurrencePattern,
    sequence_index: int,
    occurrence_date: date,
    tz: ZoneInfo
) -> BookingOccurrence:
    start = datetime.combine(occurrence_date, pattern.start_time.replace(tzinfo=None), tzinfo=tz)
    # Add the duration in UTC so DST transitions do not stretch or shrink it.
    end = (start.astimezone(dt_timezone.utc) + timedelta(minutes=pattern.duration_minutes)).astimezone(tz)
    return BookingOccurrence(
        sequence_index=sequence_index,
        start_datetime=start,
        end_datetime=end,
        pattern_id=pattern.pattern_id,
    )


def shift_for_reschedule(anchor_date: date, new_start_date: date) -> int:
    """Days to move occurrences so the one on ``anchor_date`` lands on ``new_start_date``."""
    return (new_start_date - anchor_date).days
