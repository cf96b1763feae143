"""
Admin configuration for the bookings app.
"""

from django.contrib import admin
from .models import BookingOccurrence, RecurrencePattern


@admin.register(RecurrencePattern)
class RecurrencePatternAdmin(admin.ModelAdmin):
    """Admin interface for RecurrencePattern model."""

    list_display = ['title', 'recurrence_type', 'time', 'start_date', 'end_date',
                    'created_occurrences', 'occurrence_limit', 'is_active']
    list_filter = ['is_active', 'recurrence_type', 'created_at']
    search_fields = ['title', 'description']
    date_hierarchy = 'start_date'

    fieldsets = (
        ('Basic Information', {
            'fields': ('title', 'description', 'is_active')
        }),
        ('Recurrence Rules', {
            'fields': ('recurrence_type', 'interval', 'days_of_week', 'day_of_month', 'interval_days',
                       'short_month_policy', 'time', 'duration_minutes', 'timezone')
        }),
        ('Pattern Boundaries', {
            'fields': ('start_date', 'end_date', 'date_limit', 'occurrence_limit')
        }),
        ('Generation', {
            'fields': ('created_occurrences', 'shift_days'),
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['created_occurrences', 'shift_days', 'created_at', 'updated_at']

    def get_readonly_fields(self, request, obj=None):
        if obj is not None:
            return self.readonly_fields + ['recurrence_type']
        return self.readonly_fields


@admin.register(BookingOccurrence)
class BookingOccurrenceAdmin(admin.ModelAdmin):
    """Admin interface for BookingOccurrence model."""

    list_display = ['title', 'sequence_index', 'start_datetime', 'duration_minutes', 'status', 'pattern']
    list_filter = ['status', 'pattern', 'created_at']
    search_fields = ['title']
    date_hierarchy = 'start_datetime'

    fieldsets = (
        ('Basic Information', {
            'fields': ('title', 'pattern', 'sequence_index')
        }),
        ('Schedule', {
            'fields': ('start_datetime', 'duration_minutes')
        }),
        ('Status', {
            'fields': ('status',)
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['pattern', 'sequence_index', 'created_at', 'updated_at']
