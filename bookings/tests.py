"""
Tests for the recurring booking system.

Tests cover:
- Recurrence expansion (recurrence.py), one cadence at a time
- RecurrencePattern and BookingOccurrence models and managers
- Service layer (generation, cancellation, rescheduling, updates)
- API endpoints (patterns and occurrences)
- Management command
"""

from datetime import date, datetime, time, timedelta
from datetime import timezone as dt_timezone
from io import StringIO
from zoneinfo import ZoneInfo

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.db import IntegrityError, transaction
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from . import services
from .models import BookingOccurrence, RecurrencePattern
from .recurrence import (
    PatternValidationError,
    build_pattern,
    day_of_week,
    generate_occurrences,
    shift_for_reschedule,
)
from .types import PatternCreateData, PatternUpdateData


UTC = dt_timezone.utc


def _dates(occurrences):
    return [occurrence.start_datetime.date() for occurrence in occurrences]


def _weekly_data(**overrides):
    values = dict(
        title="Piano lesson",
        recurrence_type='weekly',
        start_date=date(2030, 1, 1),
        time_of_day=time(10, 0),
        days_of_week=[1, 3],
        occurrence_limit=10,
    )
    values.update(overrides)
    return PatternCreateData(**values)


class RecurrenceExpansionTests(TestCase):
    """Test the pure recurrence expansion."""

    def _pattern(self, recurrence_type, **kwargs):
        kwargs.setdefault('start_date', date(2025, 1, 1))
        kwargs.setdefault('start_time', time(10, 0))
        kwargs.setdefault('duration_minutes', 60)
        return build_pattern(recurrence_type, **kwargs)

    def test_day_of_week_starts_on_sunday(self):
        """Test that Sunday is 0 and Wednesday is 3."""
        self.assertEqual(day_of_week(date(2025, 1, 5)), 0)
        self.assertEqual(day_of_week(date(2025, 1, 1)), 3)

    def test_weekly_first_occurrences(self):
        """Test Monday/Wednesday pattern starting on a Wednesday."""
        pattern = self._pattern('weekly', days_of_week=[1, 3])

        occurrences = generate_occurrences(pattern, 0, 3)

        self.assertEqual(
            _dates(occurrences),
            [date(2025, 1, 1), date(2025, 1, 6), date(2025, 1, 8)]
        )
        self.assertEqual([o.sequence_index for o in occurrences], [0, 1, 2])

    def test_daily(self):
        """Test daily pattern."""
        pattern = self._pattern('daily')

        occurrences = generate_occurrences(pattern, 0, 3)

        self.assertEqual(
            _dates(occurrences),
            [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)]
        )

    def test_custom_interval(self):
        """Test custom pattern every three days."""
        pattern = self._pattern('custom', interval_days=3)

        occurrences = generate_occurrences(pattern, 0, 3)

        self.assertEqual(
            _dates(occurrences),
            [date(2025, 1, 1), date(2025, 1, 4), date(2025, 1, 7)]
        )

    def test_daily_every_three_days(self):
        """Test daily pattern with an interval."""
        pattern = self._pattern('daily', interval=3)

        occurrences = generate_occurrences(pattern, 0, 3)

        self.assertEqual(
            _dates(occurrences),
            [date(2025, 1, 1), date(2025, 1, 4), date(2025, 1, 7)]
        )

    def test_weekly_every_three_weeks(self):
        """Test weekly pattern on Mondays every third week, counted from the start week."""
        pattern = self._pattern('weekly', days_of_week=[1], interval=3)

        occurrences = generate_occurrences(pattern, 0, 3)

        self.assertEqual(
            _dates(occurrences),
            [date(2025, 1, 20), date(2025, 2, 10), date(2025, 3, 3)]
        )

    def test_monthly_every_two_months(self):
        """Test monthly pattern with an interval."""
        pattern = self._pattern('monthly', interval=2)

        occurrences = generate_occurrences(pattern, 0, 3)

        self.assertEqual(
            _dates(occurrences),
            [date(2025, 1, 1), date(2025, 3, 1), date(2025, 5, 1)]
        )

    def test_interval_of_one_is_the_default(self):
        """Test an explicit interval of 1 builds the same pattern as none."""
        self.assertEqual(self._pattern('weekly', days_of_week=[1], interval=1),
                         self._pattern('weekly', days_of_week=[1]))

    def test_interval_does_not_apply_to_custom_or_biweekly(self):
        """Test interval is rejected where the cadence is already fixed by other fields."""
        with self.assertRaisesMessage(PatternValidationError, "Interval does not apply"):
            self._pattern('custom', interval_days=2, interval=2)
        with self.assertRaisesMessage(PatternValidationError, "Interval does not apply"):
            self._pattern('biweekly', days_of_week=[1], interval=3)

    def test_interval_must_be_positive(self):
        """Test a zero interval is rejected."""
        with self.assertRaises(PatternValidationError):
            self._pattern('daily', interval=0)

    def test_biweekly_skips_odd_weeks(self):
        """Test biweekly pattern only uses even week offsets."""
        pattern = self._pattern('biweekly', days_of_week=[1, 3])

        occurrences = generate_occurrences(pattern, 0, 4)

        self.assertEqual(
            _dates(occurrences),
            [date(2025, 1, 1), date(2025, 1, 13), date(2025, 1, 15), date(2025, 1, 27)]
        )

    def test_monthly_day_of_month_clamps_short_months(self):
        """Test day 31 falls on the last day of shorter months by default."""
        pattern = self._pattern('monthly', start_date=date(2025, 1, 31), day_of_month=31)

        occurrences = generate_occurrences(pattern, 0, 4)

        self.assertEqual(
            _dates(occurrences),
            [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30)]
        )

    def test_monthly_day_of_month_can_skip_short_months(self):
        """Test the skip policy leaves out months without the day."""
        pattern = self._pattern(
            'monthly',
            start_date=date(2025, 1, 31),
            day_of_month=31,
            short_month_policy='skip'
        )

        occurrences = generate_occurrences(pattern, 0, 3)

        self.assertEqual(
            _dates(occurrences),
            [date(2025, 1, 31), date(2025, 3, 31), date(2025, 5, 31)]
        )

    def test_monthly_defaults_to_start_day(self):
        """Test monthly pattern without a day uses the start date's day."""
        pattern = self._pattern('monthly', start_date=date(2025, 1, 15))

        occurrences = generate_occurrences(pattern, 0, 2)

        self.assertEqual(_dates(occurrences), [date(2025, 1, 15), date(2025, 2, 15)])

    def test_monthly_day_of_month_before_start_is_skipped(self):
        """Test the first month is skipped when its day precedes the start date."""
        pattern = self._pattern('monthly', start_date=date(2025, 1, 20), day_of_month=10)

        occurrences = generate_occurrences(pattern, 0, 2)

        self.assertEqual(_dates(occurrences), [date(2025, 2, 10), date(2025, 3, 10)])

    def test_monthly_days_of_week_uses_first_match(self):
        """Test monthly pattern on the first Monday of each month."""
        pattern = self._pattern('monthly', days_of_week=[1])

        occurrences = generate_occurrences(pattern, 0, 3)

        self.assertEqual(
            _dates(occurrences),
            [date(2025, 1, 6), date(2025, 2, 3), date(2025, 3, 3)]
        )

    def test_monthly_several_days_of_week_give_one_occurrence_per_month(self):
        """Test only the earliest of the matching weekdays is used each month."""
        pattern = self._pattern('monthly', days_of_week=[1, 3])

        occurrences = generate_occurrences(pattern, 0, 3)

        self.assertEqual(
            _dates(occurrences),
            [date(2025, 1, 1), date(2025, 2, 3), date(2025, 3, 3)]
        )

    def test_same_arguments_give_same_batch(self):
        """Test generating twice with the same counter gives identical results."""
        pattern = self._pattern('weekly', days_of_week=[2, 4], occurrence_limit=20)

        first = generate_occurrences(pattern, 5, 4)
        second = generate_occurrences(pattern, 5, 4)

        self.assertEqual(first, second)
        self.assertEqual([o.sequence_index for o in first], [5, 6, 7, 8])

    def test_batches_continue_where_previous_stopped(self):
        """Test a resumed batch continues the sequence."""
        pattern = self._pattern('daily')

        whole = generate_occurrences(pattern, 0, 6)
        resumed = generate_occurrences(pattern, 0, 3) + generate_occurrences(pattern, 3, 3)

        self.assertEqual(whole, resumed)

    def test_occurrence_limit_is_never_exceeded(self):
        """Test the total across batches stops at the occurrence limit."""
        pattern = self._pattern('daily', occurrence_limit=5)

        created = 0
        batch_sizes = []
        for _ in range(4):
            batch = generate_occurrences(pattern, created, 3)
            batch_sizes.append(len(batch))
            created += len(batch)

        self.assertEqual(batch_sizes, [3, 2, 0, 0])
        self.assertEqual(created, 5)

    def test_end_date_is_inclusive_ceiling(self):
        """Test no occurrence is generated after the end date."""
        pattern = self._pattern('daily', end_date=date(2025, 1, 5))

        occurrences = generate_occurrences(pattern, 0, 10)

        self.assertEqual(len(occurrences), 5)
        self.assertEqual(occurrences[-1].start_datetime.date(), date(2025, 1, 5))

    def test_earlier_of_end_date_and_date_limit_wins(self):
        """Test date_limit caps generation before end_date."""
        pattern = self._pattern(
            'daily',
            end_date=date(2025, 1, 10),
            date_limit=date(2025, 1, 3)
        )

        occurrences = generate_occurrences(pattern, 0, 10)

        self.assertEqual(_dates(occurrences)[-1], date(2025, 1, 3))

    def test_occurrence_times_use_pattern_timezone(self):
        """Test local time is kept across a DST change and duration stays exact."""
        pattern = self._pattern(
            'daily',
            start_date=date(2025, 3, 8),
            timezone='America/New_York',
            duration_minutes=90
        )

        before, after = generate_occurrences(pattern, 0, 2)

        self.assertEqual(before.start_datetime.tzinfo, ZoneInfo('America/New_York'))
        self.assertEqual(before.start_datetime.hour, 10)
        self.assertEqual(after.start_datetime.hour, 10)
        self.assertEqual(before.start_datetime.utcoffset(), timedelta(hours=-5))
        self.assertEqual(after.start_datetime.utcoffset(), timedelta(hours=-4))
        self.assertEqual(after.duration_minutes, 90)

    def test_shift_days_moves_every_date(self):
        """Test rescheduled patterns generate shifted dates."""
        pattern = self._pattern('daily', shift_days=2)

        occurrences = generate_occurrences(pattern, 0, 2)

        self.assertEqual(_dates(occurrences), [date(2025, 1, 3), date(2025, 1, 4)])

    def test_shift_for_reschedule(self):
        """Test the reschedule delta in days."""
        self.assertEqual(shift_for_reschedule(date(2025, 1, 1), date(2025, 1, 8)), 7)
        self.assertEqual(shift_for_reschedule(date(2025, 1, 8), date(2025, 1, 1)), -7)

    def test_weekly_requires_days(self):
        """Test weekly pattern with no days gives an actionable message."""
        with self.assertRaisesMessage(PatternValidationError, "Select at least one day of the week."):
            self._pattern('weekly', days_of_week=[])

    def test_invalid_day_of_week(self):
        """Test day numbers outside 0..6 are rejected."""
        with self.assertRaises(PatternValidationError):
            self._pattern('weekly', days_of_week=[7])

    def test_custom_requires_interval(self):
        """Test custom pattern needs a positive interval."""
        with self.assertRaises(PatternValidationError):
            self._pattern('custom', interval_days=0)

    def test_fields_that_do_not_apply_are_rejected(self):
        """Test a daily pattern cannot carry days of the week."""
        with self.assertRaisesMessage(PatternValidationError, "Days of week does not apply"):
            self._pattern('daily', days_of_week=[1])

    def test_monthly_rejects_both_day_kinds(self):
        """Test monthly pattern takes a day of month or days of week, not both."""
        with self.assertRaises(PatternValidationError):
            self._pattern('monthly', day_of_month=5, days_of_week=[1])

    def test_unknown_recurrence_type(self):
        """Test unknown recurrence types are rejected."""
        with self.assertRaises(PatternValidationError):
            self._pattern('yearly')

    def test_unknown_timezone(self):
        """Test unknown timezones are rejected."""
        with self.assertRaisesMessage(PatternValidationError, "Unknown timezone"):
            self._pattern('daily', timezone='Mars/Olympus_Mons')

    def test_end_date_before_start_date(self):
        """Test end date before start date is rejected."""
        with self.assertRaises(PatternValidationError):
            self._pattern('daily', end_date=date(2024, 12, 31))

    def test_no_possible_occurrence_is_an_error(self):
        """Test a window without any matching day is rejected, not silently empty."""
        with self.assertRaisesMessage(PatternValidationError, "No occurrences fall"):
            self._pattern('weekly', days_of_week=[1], end_date=date(2025, 1, 3))

    def test_invalid_counters(self):
        """Test negative counters and empty requests are rejected."""
        pattern = self._pattern('daily')

        with self.assertRaises(PatternValidationError):
            generate_occurrences(pattern, -1, 3)
        with self.assertRaises(PatternValidationError):
            generate_occurrences(pattern, 0, 0)


class RecurrencePatternModelTests(TestCase):
    """Test RecurrencePattern model and validation."""

    def test_create_recurrence_pattern(self):
        """Test creating a recurrence pattern."""
        pattern = RecurrencePattern.objects.create(
            title="Weekly yoga",
            recurrence_type='weekly',
            days_of_week=[1, 3],
            time=time(10, 0),
            start_date=date(2030, 1, 1),
        )

        self.assertEqual(pattern.created_occurrences, 0)
        self.assertEqual(pattern.timezone, 'UTC')
        self.assertTrue(pattern.is_active)
        self.assertFalse(pattern.is_exhausted)
        self.assertEqual(pattern.to_rule().recurrence_type, 'weekly')

    def test_invalid_rule_is_rejected_on_save(self):
        """Test that a weekly pattern without days cannot be saved."""
        with self.assertRaises(ValidationError):
            RecurrencePattern.objects.create(
                title="Broken",
                recurrence_type='weekly',
                days_of_week=[],
                time=time(10, 0),
                start_date=date(2030, 1, 1),
            )

    def test_recurrence_type_is_immutable(self):
        """Test that the recurrence type cannot change after creation."""
        pattern = RecurrencePattern.objects.create(
            title="Daily standup",
            recurrence_type='daily',
            time=time(9, 0),
            start_date=date(2030, 1, 1),
        )

        pattern.recurrence_type = 'custom'
        pattern.interval_days = 2

        with self.assertRaises(ValidationError):
            pattern.save()

    def test_is_exhausted(self):
        """Test exhaustion once the limit has been generated."""
        pattern = RecurrencePattern(occurrence_limit=3, created_occurrences=3)

        self.assertTrue(pattern.is_exhausted)


class BookingOccurrenceModelTests(TestCase):
    """Test BookingOccurrence model."""

    def setUp(self):
        """Create a pattern for testing."""
        self.pattern = RecurrencePattern.objects.create(
            title="Test Pattern",
            recurrence_type='daily',
            time=time(10, 0),
            start_date=date(2030, 1, 1),
        )

    def test_occurrence_end_datetime(self):
        """Test calculated end_datetime property."""
        occurrence = BookingOccurrence.objects.create(
            pattern=self.pattern,
            sequence_index=0,
            title="Test Pattern",
            start_datetime=datetime(2030, 1, 1, 10, 0, tzinfo=UTC),
            duration_minutes=90
        )

        self.assertEqual(occurrence.end_datetime, datetime(2030, 1, 1, 11, 30, tzinfo=UTC))
        self.assertTrue(occurrence.is_active)

    def test_sequence_index_is_unique_per_pattern(self):
        """Test a second row with the same sequence index is rejected."""
        BookingOccurrence.objects.create(
            pattern=self.pattern,
            sequence_index=0,
            title="Test Pattern",
            start_datetime=datetime(2030, 1, 1, 10, 0, tzinfo=UTC),
        )

        with self.assertRaises(IntegrityError), transaction.atomic():
            BookingOccurrence.objects.bulk_create([
                BookingOccurrence(
                    pattern=self.pattern,
                    sequence_index=0,
                    title="Test Pattern",
                    start_datetime=datetime(2030, 1, 1, 10, 0, tzinfo=UTC),
                )
            ])


class BookingOccurrenceManagerTests(TestCase):
    """Test BookingOccurrence manager methods."""

    def setUp(self):
        """Create test occurrences."""
        self.pattern = RecurrencePattern.objects.create(
            title="Test Pattern",
            recurrence_type='daily',
            time=time(10, 0),
            start_date=date(2030, 1, 1),
        )
        self.now = datetime(2030, 1, 2, 12, 0, tzinfo=UTC)
        statuses = ['completed', 'scheduled', 'rescheduled', 'cancelled']
        for index, occurrence_status in enumerate(statuses):
            BookingOccurrence.objects.create(
                pattern=self.pattern,
                sequence_index=index,
                title="Test Pattern",
                start_datetime=datetime(2030, 1, 1 + index, 10, 0, tzinfo=UTC),
                status=occurrence_status
            )

    def test_scheduled_filter(self):
        """Test scheduled() includes rescheduled occurrences."""
        self.assertEqual(BookingOccurrence.objects.scheduled().count(), 2)

    def test_upcoming_filter(self):
        """Test upcoming() skips past and cancelled occurrences."""
        upcoming = BookingOccurrence.objects.upcoming(now=self.now)

        self.assertEqual([o.sequence_index for o in upcoming], [2])

    def test_past_filter(self):
        """Test past() filter."""
        self.assertEqual(BookingOccurrence.objects.past(now=self.now).count(), 2)

    def test_in_range_filter(self):
        """Test in_range() filter."""
        occurrences = BookingOccurrence.objects.in_range(
            datetime(2030, 1, 2, 0, 0, tzinfo=UTC),
            datetime(2030, 1, 3, 23, 59, tzinfo=UTC)
        )

        self.assertEqual(occurrences.count(), 2)

    def test_needing_generation(self):
        """Test exhausted and inactive patterns need no generation."""
        RecurrencePattern.objects.create(
            title="Done",
            recurrence_type='daily',
            time=time(10, 0),
            start_date=date(2030, 1, 1),
            occurrence_limit=2,
            created_occurrences=2,
        )
        RecurrencePattern.objects.create(
            title="Inactive",
            recurrence_type='daily',
            time=time(10, 0),
            start_date=date(2030, 1, 1),
            is_active=False,
        )

        self.assertEqual(
            list(RecurrencePattern.objects.needing_generation()),
            [self.pattern]
        )

    def test_of_type_and_active_on_date(self):
        """Test filtering patterns by type and by active date."""
        ended = RecurrencePattern.objects.create(
            title="Ended",
            recurrence_type='custom',
            interval_days=2,
            time=time(10, 0),
            start_date=date(2029, 1, 1),
            end_date=date(2029, 6, 30),
        )

        self.assertEqual(list(RecurrencePattern.objects.of_type('custom')), [ended])
        self.assertEqual(
            list(RecurrencePattern.objects.active_on_date(date(2030, 2, 1))),
            [self.pattern]
        )


class OccurrenceGenerationServiceTests(TestCase):
    """Test batch generation of occurrences."""

    def test_create_pattern_with_first_batch(self):
        """Test creating a pattern generates its first batch."""
        pattern, created = services.create_recurrence_pattern(_weekly_data(), request_count=4)

        self.assertEqual(created, 4)
        self.assertEqual(pattern.created_occurrences, 4)
        occurrences = list(pattern.occurrences.order_by('sequence_index'))
        self.assertEqual([o.sequence_index for o in occurrences], [0, 1, 2, 3])
        self.assertEqual(occurrences[0].start_datetime, datetime(2030, 1, 2, 10, 0, tzinfo=UTC))
        self.assertEqual(occurrences[0].title, "Piano lesson")

    def test_create_pattern_without_generation(self):
        """Test creating a pattern without generating occurrences."""
        pattern, created = services.create_recurrence_pattern(_weekly_data(), generate=False)

        self.assertEqual(created, 0)
        self.assertEqual(pattern.occurrences.count(), 0)

    def test_create_invalid_pattern_saves_nothing(self):
        """Test an invalid pattern is rejected before anything is stored."""
        with self.assertRaises(PatternValidationError):
            services.create_recurrence_pattern(_weekly_data(days_of_week=[]))

        self.assertEqual(RecurrencePattern.objects.count(), 0)

    def test_batches_resume_from_counter(self):
        """Test successive batches continue the sequence up to the limit."""
        pattern, _ = services.create_recurrence_pattern(_weekly_data(), request_count=4)

        second = services.generate_occurrences_for_pattern(pattern, 4)
        third = services.generate_occurrences_for_pattern(pattern, 4)
        fourth = services.generate_occurrences_for_pattern(pattern, 4)

        self.assertEqual([o.sequence_index for o in second], [4, 5, 6, 7])
        self.assertEqual([o.sequence_index for o in third], [8, 9])
        self.assertEqual(fourth, [])
        pattern.refresh_from_db()
        self.assertEqual(pattern.created_occurrences, 10)
        self.assertEqual(pattern.occurrences.count(), 10)

    def test_default_batch_size_from_settings(self):
        """Test the batch size falls back to OCCURRENCE_BATCH_SIZE."""
        pattern, _ = services.create_recurrence_pattern(
            _weekly_data(occurrence_limit=None),
            generate=False
        )

        with self.settings(OCCURRENCE_BATCH_SIZE=3):
            created = services.generate_occurrences_for_pattern(pattern)

        self.assertEqual(len(created), 3)

    def test_inactive_pattern_generates_nothing(self):
        """Test inactive patterns are skipped."""
        pattern, _ = services.create_recurrence_pattern(_weekly_data(), generate=False)
        RecurrencePattern.objects.filter(pk=pattern.pk).update(is_active=False)

        self.assertEqual(services.generate_occurrences_for_pattern(pattern, 5), [])

    def test_stale_counter_fails_at_write_time(self):
        """Test that regenerating an existing sequence index raises IntegrityError."""
        pattern, _ = services.create_recurrence_pattern(_weekly_data(), request_count=2)
        RecurrencePattern.objects.filter(pk=pattern.pk).update(created_occurrences=0)

        with self.assertRaises(IntegrityError):
            services.generate_occurrences_for_pattern(pattern, 2)

        self.assertEqual(pattern.occurrences.count(), 2)

    def test_generate_for_all_patterns(self):
        """Test generating the next batch for every pattern."""
        services.create_recurrence_pattern(_weekly_data(), generate=False)
        services.create_recurrence_pattern(
            _weekly_data(title="Guitar", occurrence_limit=2),
            generate=False
        )

        total = services.generate_occurrences_for_all_patterns(request_count=5)

        self.assertEqual(total, 7)


class OccurrenceChangeServiceTests(TestCase):
    """Test cancelling, rescheduling and updating occurrences."""

    def setUp(self):
        """Create a daily pattern with five generated occurrences."""
        self.pattern, _ = services.create_recurrence_pattern(
            PatternCreateData(
                title="Daily coaching",
                recurrence_type='daily',
                start_date=date(2030, 1, 1),
                time_of_day=time(10, 0),
                occurrence_limit=10,
            ),
            request_count=5
        )
        self.before_start = datetime(2029, 12, 1, tzinfo=UTC)

    def _occurrence(self, sequence_index):
        return BookingOccurrence.objects.get(pattern=self.pattern, sequence_index=sequence_index)

    def test_cancel_future_occurrences(self):
        """Test cancelling from a date keeps earlier occurrences."""
        cancelled = services.cancel_future_occurrences(
            self.pattern,
            datetime(2030, 1, 3, 0, 0, tzinfo=UTC)
        )

        self.assertEqual(cancelled, 3)
        self.assertEqual(self._occurrence(1).status, 'scheduled')
        self.assertEqual(self._occurrence(2).status, 'cancelled')
        self.assertEqual(self.pattern.occurrences.count(), 5)

    def test_cancel_future_occurrences_is_idempotent(self):
        """Test running cancellation again changes nothing."""
        from_datetime = datetime(2030, 1, 3, 0, 0, tzinfo=UTC)
        services.cancel_future_occurrences(self.pattern, from_datetime)

        self.assertEqual(services.cancel_future_occurrences(self.pattern, from_datetime), 0)

    def test_reschedule_future_occurrences(self):
        """Test rescheduling keeps spacing and order."""
        moved = services.reschedule_future_occurrences(
            self.pattern,
            new_start_date=date(2030, 1, 10),
            from_datetime=datetime(2030, 1, 3, 0, 0, tzinfo=UTC),
            now=self.before_start
        )

        self.assertEqual(moved, 3)
        self.assertEqual(self._occurrence(1).start_datetime, datetime(2030, 1, 2, 10, 0, tzinfo=UTC))
        self.assertEqual(self._occurrence(2).start_datetime, datetime(2030, 1, 10, 10, 0, tzinfo=UTC))
        self.assertEqual(self._occurrence(4).start_datetime, datetime(2030, 1, 12, 10, 0, tzinfo=UTC))
        self.assertEqual(self._occurrence(2).status, 'rescheduled')
        self.assertEqual(self._occurrence(1).status, 'scheduled')

    def test_reschedule_carries_over_to_later_batches(self):
        """Test occurrences generated after a reschedule follow the new dates."""
        services.reschedule_future_occurrences(
            self.pattern,
            new_start_date=date(2030, 1, 10),
            from_datetime=datetime(2030, 1, 3, 0, 0, tzinfo=UTC),
            now=self.before_start
        )

        next_batch = services.generate_occurrences_for_pattern(self.pattern, 1)

        self.pattern.refresh_from_db()
        self.assertEqual(self.pattern.shift_days, 7)
        self.assertEqual(next_batch[0].sequence_index, 5)
        self.assertEqual(next_batch[0].start_datetime, datetime(2030, 1, 13, 10, 0, tzinfo=UTC))

    def test_reschedule_skips_cancelled_and_past_occurrences(self):
        """Test only upcoming, non-cancelled occurrences move."""
        services.cancel_occurrence(self._occurrence(3))

        moved = services.reschedule_future_occurrences(
            self.pattern,
            new_start_date=date(2030, 1, 20),
            from_datetime=datetime(2030, 1, 1, 0, 0, tzinfo=UTC),
            now=datetime(2030, 1, 2, 12, 0, tzinfo=UTC)
        )

        self.assertEqual(moved, 2)
        self.assertEqual(self._occurrence(2).start_datetime, datetime(2030, 1, 20, 10, 0, tzinfo=UTC))
        self.assertEqual(self._occurrence(3).start_datetime, datetime(2030, 1, 4, 10, 0, tzinfo=UTC))
        self.assertEqual(self._occurrence(4).start_datetime, datetime(2030, 1, 22, 10, 0, tzinfo=UTC))

    def test_reschedule_to_same_date_moves_nothing(self):
        """Test a zero shift is a no-op."""
        moved = services.reschedule_future_occurrences(
            self.pattern,
            new_start_date=date(2030, 1, 1),
            from_datetime=datetime(2030, 1, 1, 0, 0, tzinfo=UTC),
            now=self.before_start
        )

        self.assertEqual(moved, 0)
        self.assertEqual(self._occurrence(0).status, 'scheduled')

    def test_reschedule_cannot_move_past_end_date(self):
        """Test a move that would push occurrences past the end date is rejected."""
        pattern, _ = services.create_recurrence_pattern(
            PatternCreateData(
                title="Bounded coaching",
                recurrence_type='daily',
                start_date=date(2030, 1, 1),
                time_of_day=time(10, 0),
                end_date=date(2030, 1, 10),
            ),
            request_count=10
        )

        with self.assertRaisesMessage(ValueError, "past the end date"):
            services.reschedule_future_occurrences(
                pattern,
                new_start_date=date(2030, 1, 8),
                from_datetime=datetime(2030, 1, 3, 0, 0, tzinfo=UTC),
                now=self.before_start
            )

        pattern.refresh_from_db()
        latest = pattern.occurrences.order_by('-start_datetime').first()
        self.assertEqual(latest.start_datetime, datetime(2030, 1, 10, 10, 0, tzinfo=UTC))
        self.assertEqual(latest.status, 'scheduled')
        self.assertEqual(pattern.shift_days, 0)

    def test_reschedule_cannot_overtake_previous_occurrence(self):
        """Test moving back onto or before an earlier occurrence is rejected."""
        with self.assertRaisesMessage(ValueError, "after the previous occurrence"):
            services.reschedule_future_occurrences(
                self.pattern,
                new_start_date=date(2030, 1, 3),
                from_datetime=datetime(2030, 1, 4, 0, 0, tzinfo=UTC),
                now=self.before_start
            )

        ordered = BookingOccurrence.objects.filter(pattern=self.pattern).order_by('start_datetime')
        self.assertEqual([o.sequence_index for o in ordered], [0, 1, 2, 3, 4])
        self.assertEqual(self._occurrence(3).status, 'scheduled')

    def test_reschedule_earlier_into_a_cancelled_gap(self):
        """Test moving back is allowed while the order stays intact."""
        services.cancel_occurrence(self._occurrence(2))

        moved = services.reschedule_future_occurrences(
            self.pattern,
            new_start_date=date(2030, 1, 3),
            from_datetime=datetime(2030, 1, 4, 0, 0, tzinfo=UTC),
            now=self.before_start
        )

        self.assertEqual(moved, 2)
        self.assertEqual(self._occurrence(3).start_datetime, datetime(2030, 1, 3, 10, 0, tzinfo=UTC))
        self.assertEqual(self._occurrence(4).start_datetime, datetime(2030, 1, 4, 10, 0, tzinfo=UTC))
        self.pattern.refresh_from_db()
        self.assertEqual(self.pattern.shift_days, -1)

    def test_reschedule_into_the_past_is_rejected(self):
        """Test the new date cannot be before today."""
        with self.assertRaisesMessage(ValueError, "cannot be in the past"):
            services.reschedule_future_occurrences(
                self.pattern,
                new_start_date=date(2030, 1, 2),
                from_datetime=datetime(2030, 1, 4, 0, 0, tzinfo=UTC),
                now=datetime(2030, 1, 3, 12, 0, tzinfo=UTC)
            )

        self.assertEqual(self._occurrence(3).start_datetime, datetime(2030, 1, 4, 10, 0, tzinfo=UTC))

    def test_cancel_occurrence(self):
        """Test cancelling an occurrence."""
        occurrence = services.cancel_occurrence(self._occurrence(0))

        self.assertEqual(occurrence.status, 'cancelled')
        with self.assertRaises(ValueError):
            services.cancel_occurrence(occurrence)

    def test_complete_occurrence(self):
        """Test completing an occurrence."""
        occurrence = services.complete_occurrence(self._occurrence(0))

        self.assertEqual(occurrence.status, 'completed')
        with self.assertRaises(ValueError):
            services.cancel_occurrence(occurrence)

    def test_get_occurrences_in_range(self):
        """Test getting occurrences in a date range."""
        occurrences = services.get_occurrences_in_range(
            datetime(2030, 1, 2, 0, 0, tzinfo=UTC),
            datetime(2030, 1, 3, 23, 59, tzinfo=UTC)
        )

        self.assertEqual(len(occurrences), 2)
        with self.assertRaises(ValueError):
            services.get_occurrences_in_range(
                datetime(2030, 1, 3, tzinfo=UTC),
                datetime(2030, 1, 2, tzinfo=UTC)
            )

    def test_update_pattern_propagates_to_future_occurrences(self):
        """Test that title and duration changes reach upcoming occurrences."""
        services.update_recurrence_pattern(
            self.pattern,
            PatternUpdateData(title="Evening coaching", duration_minutes=45),
            now=datetime(2030, 1, 3, 0, 0, tzinfo=UTC)
        )

        self.assertEqual(self._occurrence(1).title, "Daily coaching")
        self.assertEqual(self._occurrence(3).title, "Evening coaching")
        self.assertEqual(self._occurrence(3).duration_minutes, 45)

    def test_earlier_end_date_cancels_occurrences_after_it(self):
        """Test shortening the pattern cancels what now falls after the end date."""
        services.update_recurrence_pattern(
            self.pattern,
            PatternUpdateData(end_date=date(2030, 1, 3)),
            now=self.before_start
        )

        self.pattern.refresh_from_db()
        self.assertEqual(self.pattern.end_date, date(2030, 1, 3))
        self.assertEqual(self._occurrence(2).status, 'scheduled')
        self.assertEqual(
            BookingOccurrence.objects.filter(pattern=self.pattern)
            .scheduled()
            .filter(start_datetime__gte=datetime(2030, 1, 4, tzinfo=UTC))
            .count(),
            0
        )
        self.assertEqual(self._occurrence(4).status, 'cancelled')
        self.assertEqual(services.generate_occurrences_for_pattern(self.pattern, 5), [])

    def test_end_date_can_be_cleared(self):
        """Test removing the end date lets generation continue past it."""
        services.update_recurrence_pattern(self.pattern, PatternUpdateData(end_date=date(2030, 1, 5)))

        services.update_recurrence_pattern(self.pattern, PatternUpdateData(clear_end_date=True))

        self.pattern.refresh_from_db()
        self.assertIsNone(self.pattern.end_date)
        self.assertEqual(len(services.generate_occurrences_for_pattern(self.pattern, 2)), 2)

    def test_update_pattern_rejects_non_positive_duration(self):
        """Test that the duration must stay positive."""
        with self.assertRaises(ValueError):
            services.update_recurrence_pattern(self.pattern, PatternUpdateData(duration_minutes=0))

    def test_retire_pattern(self):
        """Test retiring cancels upcoming occurrences and deactivates the pattern."""
        cancelled = services.retire_recurrence_pattern(
            self.pattern,
            now=datetime(2030, 1, 4, 0, 0, tzinfo=UTC)
        )

        self.pattern.refresh_from_db()
        self.assertEqual(cancelled, 2)
        self.assertFalse(self.pattern.is_active)
        self.assertEqual(services.generate_occurrences_for_pattern(self.pattern, 5), [])


class RecurrencePatternAPITests(APITestCase):
    """Test RecurrencePattern API endpoints."""

    def setUp(self):
        """Set up API client."""
        self.client = APIClient()

    def _create(self, **overrides):
        data = {
            'title': 'Swimming class',
            'recurrence_type': 'weekly',
            'days_of_week': [1, 3],
            'time': '10:00:00',
            'start_date': '2030-01-01',
            'occurrence_limit': 6,
            'batch_size': 4,
        }
        data.update(overrides)
        return self.client.post('/api/bookings/patterns/', data, format='json')

    def test_create_pattern(self):
        """Test creating a pattern via API."""
        response = self._create()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['occurrences_created'], 4)
        self.assertEqual(response.data['pattern']['created_occurrences'], 4)
        self.assertEqual(response.data['pattern']['days_of_week'], [1, 3])

    def test_create_weekly_pattern_without_days(self):
        """Test the empty-days message reaches the client."""
        response = self._create(days_of_week=[])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('days_of_week', response.data)

    def test_create_pattern_with_field_for_other_type(self):
        """Test a service validation error becomes a 400 response."""
        response = self._create(recurrence_type='daily', days_of_week=[1])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('does not apply', response.data['detail'])

    def test_list_and_retrieve_patterns(self):
        """Test listing and retrieving patterns."""
        pattern_id = self._create().data['pattern']['id']

        list_response = self.client.get('/api/bookings/patterns/')
        detail_response = self.client.get(f'/api/bookings/patterns/{pattern_id}/')

        self.assertEqual(len(list_response.data), 1)
        self.assertEqual(detail_response.data['title'], 'Swimming class')

    def test_update_pattern(self):
        """Test updating a pattern's descriptive fields."""
        pattern_id = self._create().data['pattern']['id']

        response = self.client.patch(
            f'/api/bookings/patterns/{pattern_id}/',
            {'title': 'Advanced swimming'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['title'], 'Advanced swimming')
        self.assertEqual(response.data['recurrence_type'], 'weekly')

    def test_update_pattern_end_date(self):
        """Test shortening and then clearing the end date via API."""
        pattern_id = self._create(end_date='2030-01-31').data['pattern']['id']

        shortened = self.client.patch(
            f'/api/bookings/patterns/{pattern_id}/',
            {'end_date': '2030-01-03'},
            format='json'
        )
        cleared = self.client.patch(
            f'/api/bookings/patterns/{pattern_id}/',
            {'end_date': None},
            format='json'
        )

        self.assertEqual(shortened.data['end_date'], '2030-01-03')
        self.assertEqual(
            BookingOccurrence.objects.filter(pattern_id=pattern_id, status='scheduled').count(),
            1
        )
        self.assertEqual(cleared.status_code, status.HTTP_200_OK)
        self.assertIsNone(cleared.data['end_date'])

    def test_create_pattern_with_interval(self):
        """Test creating a pattern that repeats every two weeks on Tuesdays."""
        response = self._create(days_of_week=[2], interval=2, batch_size=2)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['pattern']['interval'], 2)
        starts = BookingOccurrence.objects.filter(
            pattern_id=response.data['pattern']['id']
        ).order_by('sequence_index').values_list('start_datetime', flat=True)
        self.assertEqual(
            list(starts),
            [datetime(2030, 1, 1, 10, 0, tzinfo=UTC), datetime(2030, 1, 15, 10, 0, tzinfo=UTC)]
        )

    def test_create_custom_pattern_with_interval(self):
        """Test interval is rejected for custom patterns."""
        response = self._create(recurrence_type='custom', days_of_week=[], interval_days=3, interval=2)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_generate_next_batch(self):
        """Test generating the remaining occurrences."""
        pattern_id = self._create().data['pattern']['id']

        response = self.client.post(
            f'/api/bookings/patterns/{pattern_id}/generate/',
            {'count': 10},
            format='json'
        )

        self.assertEqual(response.data['occurrences_created'], 2)
        self.assertEqual(response.data['created_occurrences'], 6)

    def test_cancel_future(self):
        """Test cancelling upcoming occurrences via API."""
        pattern_id = self._create().data['pattern']['id']

        response = self.client.post(
            f'/api/bookings/patterns/{pattern_id}/cancel-future/',
            {'from_datetime': '2030-01-06T00:00:00Z'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['occurrences_cancelled'], 3)

    def test_reschedule(self):
        """Test rescheduling upcoming occurrences via API."""
        pattern_id = self._create().data['pattern']['id']

        response = self.client.post(
            f'/api/bookings/patterns/{pattern_id}/reschedule/',
            {'new_start_date': '2030-01-03', 'from_datetime': '2030-01-01T00:00:00Z'},
            format='json'
        )

        self.assertEqual(response.data['occurrences_rescheduled'], 4)
        first = BookingOccurrence.objects.get(pattern_id=pattern_id, sequence_index=0)
        self.assertEqual(first.start_datetime, datetime(2030, 1, 3, 10, 0, tzinfo=UTC))

    def test_delete_retires_pattern(self):
        """Test deleting a pattern retires it."""
        pattern_id = self._create().data['pattern']['id']

        response = self.client.delete(f'/api/bookings/patterns/{pattern_id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['occurrences_cancelled'], 4)
        self.assertFalse(RecurrencePattern.objects.get(pk=pattern_id).is_active)


class BookingOccurrenceAPITests(APITestCase):
    """Test BookingOccurrence API endpoints."""

    def setUp(self):
        """Set up test data."""
        self.client = APIClient()
        self.pattern, _ = services.create_recurrence_pattern(
            _weekly_data(occurrence_limit=4),
            request_count=4
        )
        self.occurrence = self.pattern.occurrences.get(sequence_index=0)

    def test_list_occurrences_in_range(self):
        """Test listing occurrences in a date range."""
        response = self.client.get('/api/bookings/occurrences/', {
            'start': '2030-01-01T00:00:00Z',
            'end': '2030-01-07T23:59:59Z',
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_list_occurrences_with_inverted_range(self):
        """Test start after end is rejected."""
        response = self.client.get('/api/bookings/occurrences/', {
            'start': '2030-01-07T00:00:00Z',
            'end': '2030-01-01T00:00:00Z',
        })

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_get_occurrence_detail(self):
        """Test retrieving an occurrence."""
        response = self.client.get(f'/api/bookings/occurrences/{self.occurrence.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pattern_id'], self.pattern.id)
        self.assertEqual(response.data['sequence_index'], 0)

    def test_cancel_occurrence(self):
        """Test cancelling an occurrence via API."""
        response = self.client.delete(f'/api/bookings/occurrences/{self.occurrence.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.occurrence.refresh_from_db()
        self.assertEqual(self.occurrence.status, 'cancelled')

    def test_complete_occurrence(self):
        """Test completing an occurrence via API."""
        response = self.client.post(f'/api/bookings/occurrences/{self.occurrence.id}/complete/')
        second = self.client.post(f'/api/bookings/occurrences/{self.occurrence.id}/complete/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(second.status_code, status.HTTP_400_BAD_REQUEST)


class ManagementCommandTests(TestCase):
    """Test management commands."""

    def test_generate_occurrences_command(self):
        """Test generate_occurrences management command."""
        services.create_recurrence_pattern(_weekly_data(), generate=False)
        out = StringIO()

        call_command('generate_occurrences', '--count', '3', stdout=out)

        self.assertIn('Successfully generated 3 new occurrence(s)', out.getvalue())
        self.assertEqual(BookingOccurrence.objects.count(), 3)
