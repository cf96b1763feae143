"""
Serializers for courses and drip schedules.
"""

from rest_framework import serializers

from .models import Course, CourseEnrollment, CourseSection


class CourseSerializer(serializers.ModelSerializer):
    """Serializer for reading, creating and updating Course."""

    class Meta:
        model = Course
        fields = [
            'id',
            'title',
            'description',
            'drip_enabled',
            'drip_cadence',
            'drip_interval',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']


class CourseSectionSerializer(serializers.ModelSerializer):
    """Serializer for CourseSection. Lock state is written by the drip schedule."""

    class Meta:
        model = CourseSection
        fields = ['id', 'title', 'order_index', 'locked', 'unlock_after_days']
        read_only_fields = ['locked', 'unlock_after_days']


class UnlockScheduleEntrySerializer(serializers.Serializer):
    """Serializer for one computed schedule entry (output only)."""

    section_id = serializers.IntegerField()
    order_index = serializers.IntegerField()
    unlock_after_days = serializers.IntegerField()
    unlock_date = serializers.DateField(allow_null=True)
    locked = serializers.BooleanField()


class EnrollSerializer(serializers.Serializer):
    learner_email = serializers.EmailField()


class CourseEnrollmentSerializer(serializers.ModelSerializer):

    class Meta:
        model = CourseEnrollment
        fields = ['id', 'course', 'learner_email', 'enrolled_at']
