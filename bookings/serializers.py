"""
Serializers for the booking system.
"""

from rest_framework import serializers

from .models import BookingOccurrence, RecurrencePattern
from .recurrence import RECURRENCE_TYPES, SHORT_MONTH_POLICIES


class RecurrencePatternReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying RecurrencePattern (output)."""

    class Meta:
        model = RecurrencePattern
        fields = [
            'id',
            'title',
            'description',
            'recurrence_type',
            'days_of_week',
            'day_of_month',
            'interval_days',
            'interval',
            'short_month_policy',
            'start_date',
            'end_date',
            'date_limit',
            'time',
            'duration_minutes',
            'timezone',
            'occurrence_limit',
            'created_occurrences',
            'shift_days',
            'is_active',
            'created_at',
            'updated_at',
        ]


class RecurrencePatternWriteSerializer(serializers.ModelSerializer):
    """Serializer for updating RecurrencePattern (input). The rule fields are read-only."""

    class Meta:
        model = RecurrencePattern
        fields = [
            'title',
            'description',
            'duration_minutes',
            'end_date',
            'is_active',
        ]

    def validate(self, data):
        """Validate pattern data."""
        if data.get('end_date'):
            start_date = self.instance.start_date if self.instance else None
            if start_date and data['end_date'] < start_date:
                raise serializers.ValidationError({
                    'end_date': 'End date cannot be before the start date.'
                })

        return data


class RecurrencePatternCreateSerializer(serializers.Serializer):
    """Serializer for creating a recurrence pattern with options."""

    title = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    recurrence_type = serializers.ChoiceField(choices=RECURRENCE_TYPES)
    days_of_week = serializers.ListField(
        child=serializers.IntegerField(min_value=0, max_value=6),
        required=False,
        default=list
    )
    day_of_month = serializers.IntegerField(min_value=1, max_value=31, required=False, allow_null=True)
    interval_days = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    interval = serializers.IntegerField(min_value=1, default=1)
    short_month_policy = serializers.ChoiceField(choices=SHORT_MONTH_POLICIES, default='clamp')
    time = serializers.TimeField()
    duration_minutes = serializers.IntegerField(min_value=1, default=60)
    timezone = serializers.CharField(max_length=64, default='UTC')
    start_date = serializers.DateField()
    end_date = serializers.DateField(required=False, allow_null=True)
    date_limit = serializers.DateField(required=False, allow_null=True)
    occurrence_limit = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    generate_occurrences = serializers.BooleanField(default=True)
    batch_size = serializers.IntegerField(min_value=1, max_value=500, required=False)

    def validate(self, data):
        """Check rule fields before the service builds the pattern."""
        recurrence_type = data['recurrence_type']

        if recurrence_type in ('weekly', 'biweekly') and not data.get('days_of_week'):
            raise serializers.ValidationError({
                'days_of_week': 'Select at least one day of the week.'
            })

        if recurrence_type == 'custom' and not data.get('interval_days'):
            raise serializers.ValidationError({
                'interval_days': 'Custom recurrence needs an interval of at least one day.'
            })

        if recurrence_type in ('biweekly', 'custom') and data.get('interval', 1) != 1:
            raise serializers.ValidationError({
                'interval': f'Interval does not apply to {recurrence_type} recurrence.'
            })

        end_date = data.get('end_date')
        if end_date and end_date < data['start_date']:
            raise serializers.ValidationError({
                'end_date': 'End date cannot be before the start date.'
            })

        return data


class BookingOccurrenceReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying BookingOccurrence (output)."""

    pattern_id = serializers.IntegerField(source='pattern.id', read_only=True)
    end_datetime = serializers.DateTimeField(read_only=True)

    class Meta:
        model = BookingOccurrence
        fields = [
            'id',
            'pattern_id',
            'sequence_index',
            'title',
            'start_datetime',
            'end_datetime',
            'duration_minutes',
            'status',
            'created_at',
            'updated_at',
        ]


class GenerateRequestSerializer(serializers.Serializer):
    """Serializer for an on-demand generation batch."""

    count = serializers.IntegerField(min_value=1, max_value=500, required=False)


class CancelFutureSerializer(serializers.Serializer):
    """Serializer for cancelling upcoming occurrences of a pattern."""

    from_datetime = serializers.DateTimeField()


class RescheduleSerializer(serializers.Serializer):
    """Serializer for moving upcoming occurrences of a pattern."""

    new_start_date = serializers.DateField()
    from_datetime = serializers.DateTimeField()


class DateRangeQuerySerializer(serializers.Serializer):
    """Serializer for date range query parameters."""

    start = serializers.DateTimeField(required=True)
    end = serializers.DateTimeField(required=True)
    status = serializers.ChoiceField(
        choices=[choice for choice, _ in BookingOccurrence.STATUS_CHOICES],
        required=False,
        allow_null=True
    )

    def validate(self, data):
        """Ensure start is before end."""
        if data['start'] >= data['end']:
            raise serializers.ValidationError(
                "Start datetime must be before end datetime."
            )
        return data
