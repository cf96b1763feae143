"""
Models for recurring service bookings.

This implementation uses the Occurrence Materialization Pattern where:
- RecurrencePattern stores the recurrence rule and a counter of generated occurrences
- BookingOccurrence stores every generated, bookable instance, numbered by sequence_index
"""

from datetime import timedelta

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from .managers import BookingOccurrenceManager, RecurrencePatternManager
from .recurrence import (
    SHORT_MONTH_CLAMP,
    PatternValidationError,
    build_pattern,
)


class RecurrencePattern(models.Model):
    """
    Stores the recurrence rule of a booking series.

    The recurrence type cannot change after creation: changing cadence means
    retiring this pattern and creating a new one. Actual occurrences are
    stored in BookingOccurrence.
    """

    RECURRENCE_TYPE_CHOICES = [
        ('daily', 'Daily'),
        ('weekly', 'Weekly'),
        ('biweekly', 'Every two weeks'),
        ('monthly', 'Monthly'),
        ('custom', 'Custom interval'),
    ]

    SHORT_MONTH_POLICY_CHOICES = [
        ('clamp', 'Use the last day of the month'),
        ('skip', 'Skip the month'),
    ]

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')

    recurrence_type = models.CharField(max_length=20, choices=RECURRENCE_TYPE_CHOICES)
    days_of_week = models.JSONField(
        default=list,
        blank=True,
        help_text="Days of week (0=Sunday, 6=Saturday) for weekly, biweekly or monthly patterns"
    )
    day_of_month = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(31)],
        help_text="Day of month for monthly patterns without days of week"
    )
    interval_days = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1)],
        help_text="Days between occurrences for custom patterns"
    )
    interval = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
        help_text="Repeat every N days, weeks or months (daily, weekly and monthly patterns)"
    )
    short_month_policy = models.CharField(
        max_length=10,
        choices=SHORT_MONTH_POLICY_CHOICES,
        default=SHORT_MONTH_CLAMP
    )

    start_date = models.DateField(help_text="First date this pattern is active")
    end_date = models.DateField(
        null=True,
        blank=True,
        help_text="Last date this pattern is active (null = no end date)"
    )
    date_limit = models.DateField(
        null=True,
        blank=True,
        help_text="Hard ceiling on generated dates, independent of end_date"
    )
    time = models.TimeField(help_text="Time of day for each occurrence")
    duration_minutes = models.PositiveIntegerField(default=60, validators=[MinValueValidator(1)])
    timezone = models.CharField(max_length=64, default='UTC')

    occurrence_limit = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1)],
        help_text="Total number of occurrences (null = no limit)"
    )
    created_occurrences = models.PositiveIntegerField(
        default=0,
        help_text="Number of occurrences generated so far; the next batch starts here"
    )
    shift_days = models.IntegerField(
        default=0,
        help_text="Day offset applied to generated dates after a reschedule"
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether new occurrences are generated for this pattern"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RecurrencePatternManager()

    class Meta:
        ordering = ['start_date', 'time']
        indexes = [
            models.Index(fields=['is_active', 'recurrence_type']),
            models.Index(fields=['start_date', 'end_date']),
        ]

    def __str__(self):
        return f"{self.title} ({self.get_recurrence_type_display()} from {self.start_date})"

    def to_rule(self):
        """Build the pure recurrence pattern for this row."""
        return build_pattern(
            self.recurrence_type,
            start_date=self.start_date,
            start_time=self.time,
            duration_minutes=self.duration_minutes,
            timezone=self.timezone,
            end_date=self.end_date,
            date_limit=self.date_limit,
            occurrence_limit=self.occurrence_limit,
            days_of_week=self.days_of_week,
            day_of_month=self.day_of_month,
            interval_days=self.interval_days,
            interval=self.interval,
            short_month_policy=self.short_month_policy,
            shift_days=self.shift_days,
            pattern_id=self.pk,
        )

    @property
    def is_exhausted(self):
        """True once the occurrence limit has been generated."""
        return self.occurrence_limit is not None and self.created_occurrences >= self.occurrence_limit

    def clean(self):
        """Validate pattern data."""
        super().clean()

        if self.pk:
            stored_type = (
                RecurrencePattern.objects.filter(pk=self.pk)
                .values_list('recurrence_type', flat=True)
                .first()
            )
            if stored_type and stored_type != self.recurrence_type:
                raise ValidationError({
                    'recurrence_type': 'The recurrence type cannot be changed. '
                                       'Create a new pattern instead.'
                })

        if self.start_date is None or self.time is None:
            return

        try:
            self.to_rule()
        except PatternValidationError as e:
            raise ValidationError(str(e)) from e

    def save(self, *args, **kwargs):
        """Save with validation."""
        self.full_clean()
        super().save(*args, **kwargs)


class BookingOccurrence(models.Model):
    """
    Stores one generated occurrence of a RecurrencePattern.

    ``(pattern, sequence_index)`` is unique, so a generation race fails at
    write time instead of creating duplicate bookings.
    """

    STATUS_SCHEDULED = 'scheduled'
    STATUS_RESCHEDULED = 'rescheduled'
    STATUS_CANCELLED = 'cancelled'
    STATUS_COMPLETED = 'completed'

    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_RESCHEDULED, 'Rescheduled'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_COMPLETED, 'Completed'),
    ]

    ACTIVE_STATUSES = (STATUS_SCHEDULED, STATUS_RESCHEDULED)

    pattern = models.ForeignKey(
        RecurrencePattern,
        on_delete=models.CASCADE,
        related_name='occurrences'
    )
    sequence_index = models.PositiveIntegerField()

    title = models.CharField(max_length=200)
    start_datetime = models.DateTimeField()
    duration_minutes = models.PositiveIntegerField(default=60)

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_SCHEDULED
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BookingOccurrenceManager()

    class Meta:
        ordering = ['start_datetime']
        constraints = [
            models.UniqueConstraint(
                fields=['pattern', 'sequence_index'],
                name='unique_occurrence_per_pattern_sequence',
            ),
        ]
        indexes = [
            models.Index(fields=['start_datetime', 'status']),
            models.Index(fields=['pattern', 'start_datetime']),
        ]

    def __str__(self):
        status_str = f" [{self.status}]" if self.status != self.STATUS_SCHEDULED else ""
        return f"{self.title} #{self.sequence_index} - {self.start_datetime.strftime('%Y-%m-%d %H:%M')}{status_str}"

    @property
    def end_datetime(self):
        """Calculate end datetime based on duration."""
        return self.start_datetime + timedelta(minutes=self.duration_minutes)

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    def save(self, *args, **kwargs):
        """Save with validation."""
        self.full_clean()
        super().save(*args, **kwargs)
