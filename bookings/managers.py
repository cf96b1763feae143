"""
Custom managers and querysets for booking models.

QuerySets define chainable query methods.
Managers use QuerySets to enable method chaining.
No business logic should be here - only query operations.
"""

from django.db import models
from django.utils import timezone


class RecurrencePatternQuerySet(models.QuerySet):
    """Custom queryset for RecurrencePattern model with chainable methods."""

    def active(self):
        """Get all active recurrence patterns."""
        return self.filter(is_active=True)

    def of_type(self, recurrence_type):
        """
        Get active patterns of one recurrence type.

        Args:
            recurrence_type: 'daily', 'weekly', 'biweekly', 'monthly' or 'custom'
        """
        return self.filter(recurrence_type=recurrence_type, is_active=True)

    def active_on_date(self, date):
        """
        Get patterns that are active on a specific date.

        Args:
            date: date object
        """
        return self.filter(
            is_active=True,
            start_date__lte=date
        ).filter(
            models.Q(end_date__isnull=True) | models.Q(end_date__gte=date)
        )

    def needing_generation(self):
        """Get active patterns whose occurrence limit has not been reached."""
        return self.active().filter(
            models.Q(occurrence_limit__isnull=True)
            | models.Q(created_occurrences__lt=models.F('occurrence_limit'))
        )


class RecurrencePatternManager(models.Manager.from_queryset(RecurrencePatternQuerySet)):
    """Custom manager for RecurrencePattern model."""


class BookingOccurrenceQuerySet(models.QuerySet):
    """Custom queryset for BookingOccurrence model with chainable methods."""

    def scheduled(self):
        """Get occurrences that will still take place (scheduled or rescheduled)."""
        return self.filter(status__in=['scheduled', 'rescheduled'])

    def upcoming(self, now=None):
        """Get upcoming occurrences that will still take place."""
        return self.scheduled().filter(start_datetime__gte=now or timezone.now())

    def past(self, now=None):
        """Get past occurrences."""
        return self.filter(start_datetime__lt=now or timezone.now())

    def in_range(self, start_datetime, end_datetime):
        """
        Get occurrences within a datetime range.

        Args:
            start_datetime: datetime object
            end_datetime: datetime object
        """
        return self.filter(
            start_datetime__gte=start_datetime,
            start_datetime__lte=end_datetime
        )

    def for_pattern(self, pattern):
        """
        Get all occurrences for a specific recurrence pattern.

        Args:
            pattern: RecurrencePattern instance
        """
        return self.filter(pattern=pattern)

    def from_datetime(self, from_datetime):
        """Get occurrences starting on or after ``from_datetime``."""
        return self.filter(start_datetime__gte=from_datetime)


class BookingOccurrenceManager(models.Manager.from_queryset(BookingOccurrenceQuerySet)):
    """Custom manager for BookingOccurrence model."""
