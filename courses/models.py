"""
Models for courses released section by section.

Course stores the drip settings; CourseSection stores the sections with the
lock state last written by the drip schedule; CourseEnrollment records when a
learner joined, which is where unlock delays are counted from.
"""

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from .drip import DripCadence, DripConfig, SectionRef
from .managers import CourseManager, CourseSectionManager


class Course(models.Model):
    """A course with optional drip release."""

    DRIP_CADENCE_CHOICES = [
        (DripCadence.NONE.value, 'No drip'),
        (DripCadence.DAILY.value, 'Daily'),
        (DripCadence.WEEKLY.value, 'Weekly'),
    ]

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')

    drip_enabled = models.BooleanField(default=False)
    drip_cadence = models.CharField(
        max_length=10,
        choices=DRIP_CADENCE_CHOICES,
        default=DripCadence.NONE.value
    )
    drip_interval = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
        help_text="Number of days (daily) or weeks (weekly) between two sections"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CourseManager()

    class Meta:
        ordering = ['title']

    def __str__(self):
        return self.title

    @property
    def drip_config(self):
        return DripConfig(
            enabled=self.drip_enabled,
            cadence=DripCadence(self.drip_cadence),
            interval_count=self.drip_interval,
        )

    def save(self, *args, **kwargs):
        """Save with validation."""
        self.full_clean()
        super().save(*args, **kwargs)


class CourseSection(models.Model):
    """
    One section of a course.

    ``order_index`` is unique within a course and defines the release order.
    """

    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='sections')
    title = models.CharField(max_length=200)
    order_index = models.PositiveIntegerField()
    locked = models.BooleanField(default=False)
    unlock_after_days = models.PositiveIntegerField(default=0)

    objects = CourseSectionManager()

    class Meta:
        ordering = ['course', 'order_index']
        constraints = [
            models.UniqueConstraint(
                fields=['course', 'order_index'],
                name='unique_section_position_per_course',
            ),
        ]

    def __str__(self):
        return f"{self.course.title} / {self.order_index}. {self.title}"

    def to_ref(self):
        return SectionRef(id=self.pk, title=self.title, order_index=self.order_index)

    def save(self, *args, **kwargs):
        """Save with validation."""
        self.full_clean()
        super().save(*args, **kwargs)


class CourseEnrollment(models.Model):
    """A learner's enrollment in a course."""

    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='enrollments')
    learner_email = models.EmailField()
    enrolled_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-enrolled_at']
        constraints = [
            models.UniqueConstraint(
                fields=['course', 'learner_email'],
                name='unique_enrollment_per_learner',
            ),
        ]

    def __str__(self):
        return f"{self.learner_email} in {self.course.title}"
