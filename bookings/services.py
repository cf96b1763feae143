"""
Service layer for recurring booking logic.

Date arithmetic lives in ``recurrence.py``; the functions here read and write
patterns and occurrences around it. Generation is resumable: each pattern
keeps a ``created_occurrences`` counter and every batch starts from it.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .models import BookingOccurrence, RecurrencePattern
from .recurrence import build_pattern, generate_occurrences, shift_for_reschedule
from .types import DEFAULT_BATCH_SIZE, PatternCreateData, PatternUpdateData

logger = logging.getLogger(__name__)


def _batch_size(request_count: Optional[int]) -> int:
    if request_count is not None:
        return request_count
    return getattr(settings, 'OCCURRENCE_BATCH_SIZE', DEFAULT_BATCH_SIZE)


@transaction.atomic
def generate_occurrences_for_pattern(
    pattern: RecurrencePattern,
    request_count: Optional[int] = None
) -> List[BookingOccurrence]:
    """
    Generate the next batch of occurrences for a recurrence pattern.

    The pattern row is locked while the batch is written, and the counter
    snapshot is read under that lock. If two writers still race, the unique
    ``(pattern, sequence_index)`` constraint rejects the second batch.

    Args:
        pattern: RecurrencePattern instance
        request_count: Maximum number of occurrences to create
                       (defaults to settings.OCCURRENCE_BATCH_SIZE)

    Returns:
        List of created BookingOccurrence instances
    """
    locked = RecurrencePattern.objects.select_for_update().get(pk=pattern.pk)
    if not locked.is_active or locked.is_exhausted:
        return []

    generated = generate_occurrences(
        locked.to_rule(),
        locked.created_occurrences,
        _batch_size(request_count)
    )
    if not generated:
        logger.debug("Pattern %s has no occurrences left to generate", locked.pk)
        return []

    occurrences = _create_occurrence_objects(locked, generated)
    BookingOccurrence.objects.bulk_create(occurrences)

    created_count = generated[-1].sequence_index + 1
    RecurrencePattern.objects.filter(pk=locked.pk).update(
        created_occurrences=created_count,
        updated_at=timezone.now()
    )
    pattern.created_occurrences = created_count

    logger.info(
        "Generated %d occurrence(s) for pattern %s (sequence %d-%d)",
        len(occurrences), locked.pk,
        generated[0].sequence_index, generated[-1].sequence_index
    )
    return occurrences


def generate_occurrences_for_all_patterns(request_count: Optional[int] = None) -> int:
    """
    Generate the next batch for every active pattern that still has occurrences left.

    Args:
        request_count: Maximum number of occurrences per pattern

    Returns:
        Number of occurrences created
    """
    total_created = 0

    for pattern in RecurrencePattern.objects.needing_generation():
        created = generate_occurrences_for_pattern(pattern, request_count)
        total_created += len(created)

    return total_created


def _create_occurrence_objects(pattern: RecurrencePattern, generated) -> List[BookingOccurrence]:
    """Create occurrence objects (not yet saved to DB)."""
    return [
        BookingOccurrence(
            pattern=pattern,
            sequence_index=occurrence.sequence_index,
            title=pattern.title,
            start_datetime=occurrence.start_datetime,
            duration_minutes=pattern.duration_minutes,
            status=BookingOccurrence.STATUS_SCHEDULED,
        )
        for occurrence in generated
    ]


@transaction.atomic
def create_recurrence_pattern(
    data: PatternCreateData,
    generate: bool = True,
    request_count: Optional[int] = None
) -> Tuple[RecurrencePattern, int]:
    """
    Create a new recurrence pattern and optionally generate its first batch.

    Args:
        data: PatternCreateData describing the pattern
        generate: Whether to generate occurrences immediately
        request_count: Size of the first batch

    Returns:
        Tuple of (created RecurrencePattern, number of occurrences created)

    Raises:
        PatternValidationError: If the pattern cannot produce occurrences
    """
    build_pattern(
        data.recurrence_type,
        start_date=data.start_date,
        start_time=data.time_of_day,
        duration_minutes=data.duration_minutes,
        timezone=data.timezone,
        end_date=data.end_date,
        date_limit=data.date_limit,
        occurrence_limit=data.occurrence_limit,
        days_of_week=data.days_of_week,
        day_of_month=data.day_of_month,
        interval_days=data.interval_days,
        interval=data.interval,
        short_month_policy=data.short_month_policy,
    )

    pattern = RecurrencePattern.objects.create(
        title=data.title,
        description=data.description,
        recurrence_type=data.recurrence_type,
        days_of_week=sorted(data.days_of_week or []),
        day_of_month=data.day_of_month,
        interval_days=data.interval_days,
        interval=data.interval,
        short_month_policy=data.short_month_policy,
        start_date=data.start_date,
        end_date=data.end_date,
        date_limit=data.date_limit,
        time=data.time_of_day,
        duration_minutes=data.duration_minutes,
        timezone=data.timezone,
        occurrence_limit=data.occurrence_limit,
    )
    logger.info("Created %s pattern %s: %s", pattern.recurrence_type, pattern.pk, pattern.title)

    occurrences_created = 0
    if generate:
        occurrences_created = len(generate_occurrences_for_pattern(pattern, request_count))

    return pattern, occurrences_created


@transaction.atomic
def cancel_future_occurrences(pattern: RecurrencePattern, from_datetime: datetime) -> int:
    """
    Cancel every scheduled occurrence starting on or after ``from_datetime``.

    Generation history is kept: the rows stay, with status 'cancelled'.
    Running it again affects nothing.

    Returns:
        Number of occurrences cancelled
    """
    cancelled = (
        BookingOccurrence.objects.for_pattern(pattern)
        .scheduled()
        .from_datetime(from_datetime)
        .update(status=BookingOccurrence.STATUS_CANCELLED, updated_at=timezone.now())
    )
    logger.info("Cancelled %d future occurrence(s) of pattern %s", cancelled, pattern.pk)
    return cancelled


@transaction.atomic
def reschedule_future_occurrences(
    pattern: RecurrencePattern,
    new_start_date: date,
    from_datetime: datetime,
    now: Optional[datetime] = None
) -> int:
    """
    Move upcoming occurrences so the first one lands on ``new_start_date``.

    Only occurrences that have not started yet, are not cancelled and start
    on or after ``from_datetime`` are moved. All of them move by the same
    number of days, keeping their order, spacing and local time of day.
    Occurrences generated later follow the new timeline.

    Args:
        pattern: RecurrencePattern instance
        new_start_date: Date the first affected occurrence moves to
        from_datetime: Earliest occurrence start to move
        now: Current time (defaults to timezone.now())

    Returns:
        Number of occurrences moved

    Raises:
        ValueError: If the new date is in the past, is not after the
                    occurrence before the moved ones, or would move an
                    occurrence past the pattern's end date
    """
    if new_start_date is None:
        raise ValueError("Choose a new start date.")

    now = now or timezone.now()
    locked = RecurrencePattern.objects.select_for_update().get(pk=pattern.pk)
    rule = locked.to_rule()
    tz = rule.tzinfo

    if new_start_date < now.astimezone(tz).date():
        raise ValueError("The new date cannot be in the past.")

    targets = list(
        BookingOccurrence.objects.for_pattern(locked)
        .scheduled()
        .from_datetime(max(from_datetime, now))
        .order_by('sequence_index')
    )

    if targets:
        anchor = targets[0].start_datetime.astimezone(tz).date()
        last_moved = targets[-1].start_datetime.astimezone(tz).date()
        first_index = targets[0].sequence_index
    else:
        upcoming = generate_occurrences(rule, locked.created_occurrences, 1)
        if not upcoming:
            return 0
        anchor = last_moved = upcoming[0].start_datetime.date()
        first_index = upcoming[0].sequence_index

    delta_days = shift_for_reschedule(anchor, new_start_date)
    if delta_days == 0:
        return 0

    previous = (
        BookingOccurrence.objects.for_pattern(locked)
        .exclude(status=BookingOccurrence.STATUS_CANCELLED)
        .filter(sequence_index__lt=first_index)
        .order_by('-start_datetime')
        .first()
    )
    if previous is not None and new_start_date <= previous.start_datetime.astimezone(tz).date():
        raise ValueError("The new date must be after the previous occurrence.")

    if rule.last_date is not None and last_moved + timedelta(days=delta_days) > rule.last_date:
        raise ValueError("The new date would move occurrences past the end date.")

    updated_at = timezone.now()
    for occurrence in targets:
        occurrence.start_datetime = _shift_local(occurrence.start_datetime, delta_days, tz)
        occurrence.status = BookingOccurrence.STATUS_RESCHEDULED
        occurrence.updated_at = updated_at
    BookingOccurrence.objects.bulk_update(targets, ['start_datetime', 'status', 'updated_at'])

    RecurrencePattern.objects.filter(pk=locked.pk).update(
        shift_days=locked.shift_days + delta_days,
        updated_at=updated_at
    )
    pattern.shift_days = locked.shift_days + delta_days

    logger.info(
        "Rescheduled %d occurrence(s) of pattern %s by %+d day(s)",
        len(targets), locked.pk, delta_days
    )
    return len(targets)


def _shift_local(value: datetime, days: int, tz) -> datetime:
    """Move a datetime by whole days, keeping its local time of day."""
    local = value.astimezone(tz)
    return datetime.combine(
        local.date() + timedelta(days=days),
        local.time(),
        tzinfo=tz
    )


@transaction.atomic
def cancel_occurrence(occurrence: BookingOccurrence) -> BookingOccurrence:
    """
    Cancel a single occurrence.

    Raises:
        ValueError: If occurrence is already cancelled or completed
    """
    if occurrence.status == BookingOccurrence.STATUS_CANCELLED:
        raise ValueError("Occurrence is already cancelled")

    if occurrence.status == BookingOccurrence.STATUS_COMPLETED:
        raise ValueError("Cannot cancel a completed occurrence")

    occurrence.status = BookingOccurrence.STATUS_CANCELLED
    occurrence.save()
    return occurrence


@transaction.atomic
def complete_occurrence(occurrence: BookingOccurrence) -> BookingOccurrence:
    """
    Mark an occurrence as completed.

    Raises:
        ValueError: If occurrence is already completed or cancelled
    """
    if occurrence.status == BookingOccurrence.STATUS_COMPLETED:
        raise ValueError("Occurrence is already completed")

    if occurrence.status == BookingOccurrence.STATUS_CANCELLED:
        raise ValueError("Cannot complete a cancelled occurrence")

    occurrence.status = BookingOccurrence.STATUS_COMPLETED
    occurrence.save()
    return occurrence


def get_occurrences_in_range(
    start_datetime: datetime,
    end_datetime: datetime,
    status: Optional[str] = None,
    pattern: Optional[RecurrencePattern] = None
) -> List[BookingOccurrence]:
    """
    Get occurrences within a datetime range.

    Args:
        start_datetime: Range start
        end_datetime: Range end
        status: Optional status filter
        pattern: Optional pattern filter

    Raises:
        ValueError: If start_datetime >= end_datetime
    """
    if start_datetime >= end_datetime:
        raise ValueError("Start datetime must be before end datetime")

    queryset = BookingOccurrence.objects.in_range(start_datetime, end_datetime)

    if status:
        queryset = queryset.filter(status=status)
    if pattern is not None:
        queryset = queryset.for_pattern(pattern)

    return list(queryset)


@transaction.atomic
def update_recurrence_pattern(
    pattern: RecurrencePattern,
    update_data: PatternUpdateData,
    update_future_occurrences: bool = True,
    now: Optional[datetime] = None
) -> RecurrencePattern:
    """
    Update the descriptive fields of a recurrence pattern.

    The recurrence rule cannot be edited; retire the pattern and create a
    new one to change cadence. Moving the end date earlier cancels the
    generated occurrences that now fall after it.

    Args:
        pattern: RecurrencePattern instance to update
        update_data: PatternUpdateData with fields to update
        update_future_occurrences: Whether to copy title and duration to
                                   upcoming occurrences that were not moved

    Raises:
        ValueError: If duration_minutes is not positive
        ValidationError: If the new end date leaves no possible occurrence
    """
    if update_data.duration_minutes is not None and update_data.duration_minutes <= 0:
        raise ValueError("Duration must be positive")

    pattern_fields = {
        'title': update_data.title,
        'description': update_data.description,
        'duration_minutes': update_data.duration_minutes,
        'end_date': update_data.end_date,
        'is_active': update_data.is_active,
    }
    _apply_field_updates(pattern, pattern_fields)
    if update_data.clear_end_date:
        pattern.end_date = None
    pattern.save()

    if update_data.end_date is not None:
        tz = pattern.to_rule().tzinfo
        day_after_end = datetime.combine(update_data.end_date + timedelta(days=1), time.min, tzinfo=tz)
        cancel_future_occurrences(pattern, day_after_end)

    if update_future_occurrences:
        _update_future_occurrences(pattern, update_data, now or timezone.now())

    return pattern


def _update_future_occurrences(
    pattern: RecurrencePattern,
    update_data: PatternUpdateData,
    now: datetime
) -> None:
    """Update upcoming occurrences still on their generated schedule."""
    future_occurrences = BookingOccurrence.objects.filter(
        pattern=pattern,
        start_datetime__gte=now,
        status=BookingOccurrence.STATUS_SCHEDULED
    )

    updates = {}
    if update_data.title is not None:
        updates['title'] = update_data.title
    if update_data.duration_minutes is not None:
        updates['duration_minutes'] = update_data.duration_minutes

    if updates:
        future_occurrences.update(**updates)


@transaction.atomic
def retire_recurrence_pattern(pattern: RecurrencePattern, now: Optional[datetime] = None) -> int:
    """
    Stop a pattern: cancel its upcoming occurrences and deactivate it.

    Returns:
        Number of occurrences cancelled
    """
    cancelled = cancel_future_occurrences(pattern, now or timezone.now())
    pattern.is_active = False
    pattern.save()
    logger.info("Retired pattern %s", pattern.pk)
    return cancelled


def _apply_field_updates(obj, fields: dict) -> None:
    """Apply field updates to object if values are not None (DRY helper)."""
    for field_name, value in fields.items():
        if value is not None:
            setattr(obj, field_name, value)
