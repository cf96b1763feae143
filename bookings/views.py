"""Views for the booking system."""

from django.shortcuts import get_object_or_404

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import BookingOccurrence, RecurrencePattern
from .serializers import (
    BookingOccurrenceReadSerializer,
    CancelFutureSerializer,
    DateRangeQuerySerializer,
    GenerateRequestSerializer,
    RecurrencePatternCreateSerializer,
    RecurrencePatternReadSerializer,
    RecurrencePatternWriteSerializer,
    RescheduleSerializer,
)
from . import services
from .types import PatternCreateData, PatternUpdateData


class RecurrencePatternListCreateView(APIView):
    """
    List all recurrence patterns or create a new one.

    GET /api/bookings/patterns/ - List all patterns
    POST /api/bookings/patterns/ - Create a new pattern
    """

    def get(self, request):
        """List all recurrence patterns."""
        patterns = RecurrencePattern.objects.all()
        serializer = RecurrencePatternReadSerializer(patterns, many=True)
        return Response(serializer.data)

    def post(self, request):
        """Create a new recurrence pattern with an optional first batch."""
        serializer = RecurrencePatternCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        pattern, occurrences_count = services.create_recurrence_pattern(
            PatternCreateData(
                title=data['title'],
                description=data.get('description', ''),
                recurrence_type=data['recurrence_type'],
                start_date=data['start_date'],
                time_of_day=data['time'],
                duration_minutes=data.get('duration_minutes', 60),
                timezone=data.get('timezone', 'UTC'),
                end_date=data.get('end_date'),
                date_limit=data.get('date_limit'),
                occurrence_limit=data.get('occurrence_limit'),
                days_of_week=data.get('days_of_week', []),
                day_of_month=data.get('day_of_month'),
                interval_days=data.get('interval_days'),
                interval=data.get('interval', 1),
                short_month_policy=data.get('short_month_policy', 'clamp'),
            ),
            generate=data.get('generate_occurrences', True),
            request_count=data.get('batch_size')
        )

        response_serializer = RecurrencePatternReadSerializer(pattern)
        return Response({
            'pattern': response_serializer.data,
            'occurrences_created': occurrences_count
        }, status=status.HTTP_201_CREATED)


class RecurrencePatternDetailView(APIView):
    """
    Retrieve, update, or retire a recurrence pattern.

    GET /api/bookings/patterns/{id}/ - Retrieve pattern
    PATCH /api/bookings/patterns/{id}/ - Update descriptive fields
    DELETE /api/bookings/patterns/{id}/ - Retire pattern (cancel upcoming occurrences)
    """

    def get(self, request, pk):
        """Retrieve a recurrence pattern."""
        pattern = get_object_or_404(RecurrencePattern, pk=pk)
        serializer = RecurrencePatternReadSerializer(pattern)
        return Response(serializer.data)

    def patch(self, request, pk):
        """Update a recurrence pattern."""
        pattern = get_object_or_404(RecurrencePattern, pk=pk)
        serializer = RecurrencePatternWriteSerializer(pattern, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        update_data = PatternUpdateData(
            title=serializer.validated_data.get('title'),
            description=serializer.validated_data.get('description'),
            duration_minutes=serializer.validated_data.get('duration_minutes'),
            end_date=serializer.validated_data.get('end_date'),
            clear_end_date=(
                'end_date' in serializer.validated_data
                and serializer.validated_data['end_date'] is None
            ),
            is_active=serializer.validated_data.get('is_active')
        )
        updated_pattern = services.update_recurrence_pattern(
            pattern=pattern,
            update_data=update_data,
            update_future_occurrences=True
        )

        response_serializer = RecurrencePatternReadSerializer(updated_pattern)
        return Response(response_serializer.data)

    def delete(self, request, pk):
        """Retire a recurrence pattern."""
        pattern = get_object_or_404(RecurrencePattern, pk=pk)
        cancelled = services.retire_recurrence_pattern(pattern)

        return Response({
            'message': f'Pattern "{pattern.title}" has been retired.',
            'occurrences_cancelled': cancelled
        }, status=status.HTTP_200_OK)


class PatternGenerateView(APIView):
    """
    Generate the next batch of occurrences.

    POST /api/bookings/patterns/{id}/generate/
    """

    def post(self, request, pk):
        pattern = get_object_or_404(RecurrencePattern, pk=pk)
        serializer = GenerateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        occurrences = services.generate_occurrences_for_pattern(
            pattern,
            serializer.validated_data.get('count')
        )

        return Response({
            'occurrences_created': len(occurrences),
            'created_occurrences': pattern.created_occurrences,
        }, status=status.HTTP_200_OK)


class PatternCancelFutureView(APIView):
    """
    Cancel every upcoming occurrence from a given moment.

    POST /api/bookings/patterns/{id}/cancel-future/
    """

    def post(self, request, pk):
        pattern = get_object_or_404(RecurrencePattern, pk=pk)
        serializer = CancelFutureSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        cancelled = services.cancel_future_occurrences(
            pattern,
            serializer.validated_data['from_datetime']
        )
        return Response({'occurrences_cancelled': cancelled}, status=status.HTTP_200_OK)


class PatternRescheduleView(APIView):
    """
    Move upcoming occurrences to a new start date.

    POST /api/bookings/patterns/{id}/reschedule/
    """

    def post(self, request, pk):
        pattern = get_object_or_404(RecurrencePattern, pk=pk)
        serializer = RescheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        moved = services.reschedule_future_occurrences(
            pattern,
            new_start_date=serializer.validated_data['new_start_date'],
            from_datetime=serializer.validated_data['from_datetime']
        )
        return Response({'occurrences_rescheduled': moved}, status=status.HTTP_200_OK)


class BookingOccurrenceListView(APIView):
    """
    List occurrences within a date range.

    GET /api/bookings/occurrences/?start=X&end=Y&status=Z
    """

    def get(self, request):
        """List occurrences within a date range."""
        query_serializer = DateRangeQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        occurrences = services.get_occurrences_in_range(
            query_serializer.validated_data['start'],
            query_serializer.validated_data['end'],
            query_serializer.validated_data.get('status')
        )

        serializer = BookingOccurrenceReadSerializer(occurrences, many=True)
        return Response(serializer.data)


class BookingOccurrenceDetailView(APIView):
    """
    Retrieve or cancel an occurrence.

    GET /api/bookings/occurrences/{id}/ - Retrieve occurrence
    DELETE /api/bookings/occurrences/{id}/ - Cancel occurrence
    """

    def get(self, request, pk):
        """Retrieve an occurrence."""
        occurrence = get_object_or_404(BookingOccurrence, pk=pk)
        serializer = BookingOccurrenceReadSerializer(occurrence)
        return Response(serializer.data)

    def delete(self, request, pk):
        """Cancel an occurrence."""
        occurrence = get_object_or_404(BookingOccurrence, pk=pk)

        services.cancel_occurrence(occurrence)

        return Response({
            'message': f'Occurrence "{occurrence.title}" on {occurrence.start_datetime.date()} has been cancelled.'
        }, status=status.HTTP_200_OK)


class OccurrenceCompleteView(APIView):
    """
    Mark an occurrence as completed.

    POST /api/bookings/occurrences/{id}/complete/
    """

    def post(self, request, pk):
        """Mark occurrence as completed."""
        occurrence = get_object_or_404(BookingOccurrence, pk=pk)

        services.complete_occurrence(occurrence)

        return Response({
            'message': f'Occurrence "{occurrence.title}" has been marked as completed.'
        }, status=status.HTTP_200_OK)
