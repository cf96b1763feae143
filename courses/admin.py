"""
Admin configuration for the courses app.
"""

from django.contrib import admin
from .models import Course, CourseEnrollment, CourseSection


class CourseSectionInline(admin.TabularInline):
    model = CourseSection
    extra = 0
    fields = ['order_index', 'title', 'locked', 'unlock_after_days']
    readonly_fields = ['locked', 'unlock_after_days']
    ordering = ['order_index']


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    """Admin interface for Course model."""

    list_display = ['title', 'drip_enabled', 'drip_cadence', 'drip_interval', 'created_at']
    list_filter = ['drip_enabled', 'drip_cadence']
    search_fields = ['title', 'description']
    inlines = [CourseSectionInline]

    fieldsets = (
        ('Basic Information', {
            'fields': ('title', 'description')
        }),
        ('Drip Release', {
            'fields': ('drip_enabled', 'drip_cadence', 'drip_interval')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['created_at', 'updated_at']


@admin.register(CourseEnrollment)
class CourseEnrollmentAdmin(admin.ModelAdmin):
    list_display = ['learner_email', 'course', 'enrolled_at']
    list_filter = ['course']
    search_fields = ['learner_email']
