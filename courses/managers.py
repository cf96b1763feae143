"""
Custom managers and querysets for course models.
"""

from django.db import models


class CourseQuerySet(models.QuerySet):
    """Custom queryset for Course model with chainable methods."""

    def with_drip(self):
        """Get courses that release their sections over time."""
        return self.filter(drip_enabled=True).exclude(drip_cadence='none')


class CourseManager(models.Manager.from_queryset(CourseQuerySet)):
    """Custom manager for Course model."""


class CourseSectionQuerySet(models.QuerySet):
    """Custom queryset for CourseSection model with chainable methods."""

    def for_course(self, course):
        return self.filter(course=course)

    def in_release_order(self):
        return self.order_by('order_index')

    def unlocked(self):
        return self.filter(locked=False)


class CourseSectionManager(models.Manager.from_queryset(CourseSectionQuerySet)):
    """Custom manager for CourseSection model."""
