"""
Tests for courses and drip release.

Tests cover:
- Unlock schedule computation (drip.py)
- Course and CourseSection models
- Service layer (schedule, write-back, enrollment, available sections)
- API endpoints
"""

from datetime import date, datetime
from datetime import timezone as dt_timezone

from django.core.exceptions import ValidationError
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from . import services
from .drip import (
    DripCadence,
    DripConfig,
    SectionRef,
    available_section_ids,
    compute_unlock_schedule,
)
from .models import Course, CourseSection


NOW = datetime(2025, 3, 1, 15, 30, tzinfo=dt_timezone.utc)


def _sections(*order_indexes):
    return [
        SectionRef(id=100 + order_index, title=f"Section {order_index}", order_index=order_index)
        for order_index in order_indexes
    ]


class UnlockScheduleTests(TestCase):
    """Test the pure unlock schedule."""

    def test_disabled_drip_unlocks_everything(self):
        """Test that a disabled drip leaves every section open."""
        config = DripConfig(enabled=False, cadence=DripCadence.WEEKLY, interval_count=2)

        schedule = compute_unlock_schedule(config, _sections(2, 0, 1), NOW)

        self.assertEqual([entry.order_index for entry in schedule], [2, 0, 1])
        for entry in schedule:
            self.assertEqual(entry.unlock_after_days, 0)
            self.assertIsNone(entry.unlock_date)
            self.assertFalse(entry.locked)

    def test_cadence_none_unlocks_everything(self):
        """Test that cadence 'none' ignores the enabled flag."""
        config = DripConfig(enabled=True, cadence=DripCadence.NONE)

        schedule = compute_unlock_schedule(config, _sections(0, 1, 2), NOW)

        self.assertTrue(all(not entry.locked for entry in schedule))
        self.assertTrue(all(entry.unlock_after_days == 0 for entry in schedule))

    def test_daily_cadence(self):
        """Test daily release every interval_count days."""
        config = DripConfig(enabled=True, cadence=DripCadence.DAILY, interval_count=2)

        schedule = compute_unlock_schedule(config, _sections(0, 1, 2), NOW)

        self.assertEqual([entry.unlock_after_days for entry in schedule], [2, 4, 6])
        self.assertEqual(
            [entry.unlock_date for entry in schedule],
            [date(2025, 3, 3), date(2025, 3, 5), date(2025, 3, 7)]
        )
        self.assertEqual([entry.locked for entry in schedule], [False, True, True])

    def test_weekly_cadence_sorted_by_order_index(self):
        """Test weekly release follows order_index, not input order."""
        config = DripConfig(enabled=True, cadence='weekly', interval_count=1)

        schedule = compute_unlock_schedule(config, _sections(5, 0, 3), NOW)

        self.assertEqual([entry.order_index for entry in schedule], [0, 3, 5])
        self.assertEqual([entry.unlock_after_days for entry in schedule], [7, 14, 21])
        self.assertEqual([entry.section_id for entry in schedule], [100, 103, 105])

    def test_first_section_is_always_unlocked(self):
        """Test the section at position 0 is open for every cadence."""
        for cadence in (DripCadence.DAILY, DripCadence.WEEKLY):
            for interval in (1, 3, 10):
                config = DripConfig(enabled=True, cadence=cadence, interval_count=interval)
                schedule = compute_unlock_schedule(config, _sections(2, 1, 0), NOW)
                first = [entry for entry in schedule if entry.order_index == 0][0]
                self.assertFalse(first.locked)

    def test_unlock_days_never_decrease(self):
        """Test unlock delays grow with order_index."""
        config = DripConfig(enabled=True, cadence=DripCadence.WEEKLY, interval_count=3)

        schedule = compute_unlock_schedule(config, _sections(9, 4, 0, 7, 1), NOW)
        days = [entry.unlock_after_days for entry in schedule]

        self.assertEqual(days, sorted(days))

    def test_empty_course(self):
        """Test that no sections give an empty schedule."""
        config = DripConfig(enabled=True, cadence=DripCadence.DAILY)

        self.assertEqual(compute_unlock_schedule(config, [], NOW), [])

    def test_zero_interval_is_treated_as_one(self):
        """Test that interval 0 behaves like interval 1."""
        zero = DripConfig(enabled=True, cadence=DripCadence.DAILY, interval_count=0)
        one = DripConfig(enabled=True, cadence=DripCadence.DAILY, interval_count=1)

        self.assertEqual(
            compute_unlock_schedule(zero, _sections(0, 1), NOW),
            compute_unlock_schedule(one, _sections(0, 1), NOW)
        )

    def test_negative_interval_is_rejected(self):
        """Test that a negative interval cannot be configured."""
        with self.assertRaises(ValueError):
            DripConfig(enabled=True, cadence=DripCadence.DAILY, interval_count=-1)

    def test_unknown_cadence_is_rejected(self):
        """Test that unknown cadences fail fast."""
        with self.assertRaises(ValueError):
            DripConfig(enabled=True, cadence='monthly')

    def test_duplicate_order_index_is_rejected(self):
        """Test that two sections in the same position are rejected."""
        config = DripConfig(enabled=True, cadence=DripCadence.DAILY)
        sections = _sections(0, 1) + [SectionRef(id=999, title="Twin", order_index=1)]

        with self.assertRaises(ValueError):
            compute_unlock_schedule(config, sections, NOW)

    def test_available_sections_count_from_enrollment(self):
        """Test that delays count from the enrollment date."""
        config = DripConfig(enabled=True, cadence=DripCadence.DAILY, interval_count=1)
        schedule = compute_unlock_schedule(config, _sections(0, 1, 2), NOW)
        enrolled_at = datetime(2025, 3, 10, 9, 0, tzinfo=dt_timezone.utc)

        on_day_0 = available_section_ids(schedule, enrolled_at, enrolled_at)
        on_day_2 = available_section_ids(
            schedule, enrolled_at, datetime(2025, 3, 12, 8, 0, tzinfo=dt_timezone.utc)
        )

        self.assertEqual(on_day_0, {100})
        self.assertEqual(on_day_2, {100, 101})


class CourseModelTests(TestCase):
    """Test Course and CourseSection models."""

    def test_drip_config_from_course(self):
        """Test the course exposes its drip configuration."""
        course = Course.objects.create(
            title="Watercolour basics",
            drip_enabled=True,
            drip_cadence='weekly',
            drip_interval=2
        )

        self.assertEqual(
            course.drip_config,
            DripConfig(enabled=True, cadence=DripCadence.WEEKLY, interval_count=2)
        )

    def test_drip_interval_must_be_positive(self):
        """Test that interval 0 is rejected at the model boundary."""
        with self.assertRaises(ValidationError):
            Course.objects.create(title="Broken", drip_enabled=True, drip_cadence='daily', drip_interval=0)

    def test_order_index_is_unique_per_course(self):
        """Test that two sections cannot share a position."""
        course = Course.objects.create(title="Pottery")
        CourseSection.objects.create(course=course, title="Clay", order_index=0)

        with self.assertRaises(ValidationError):
            CourseSection.objects.create(course=course, title="Wheel", order_index=0)

    def test_with_drip(self):
        """Test with_drip() filter."""
        Course.objects.create(title="Open", drip_enabled=False)
        dripped = Course.objects.create(title="Dripped", drip_enabled=True, drip_cadence='daily')
        Course.objects.create(title="No cadence", drip_enabled=True, drip_cadence='none')

        self.assertEqual(list(Course.objects.with_drip()), [dripped])


class DripServiceTests(TestCase):
    """Test the drip service layer."""

    def setUp(self):
        """Create a daily drip course with three sections."""
        self.course = Course.objects.create(
            title="Guitar in 30 days",
            drip_enabled=True,
            drip_cadence='daily',
            drip_interval=1
        )
        for order_index in (2, 0, 1):
            CourseSection.objects.create(
                course=self.course,
                title=f"Lesson {order_index}",
                order_index=order_index
            )

    def test_get_unlock_schedule_does_not_write(self):
        """Test previewing the schedule leaves sections untouched."""
        schedule = services.get_unlock_schedule(self.course, NOW)

        self.assertEqual([entry.unlock_after_days for entry in schedule], [1, 2, 3])
        self.assertFalse(CourseSection.objects.filter(locked=True).exists())

    def test_apply_drip_schedule(self):
        """Test lock state is written back to the sections."""
        services.apply_drip_schedule(self.course, NOW)

        sections = list(CourseSection.objects.for_course(self.course).in_release_order())
        self.assertEqual([s.locked for s in sections], [False, True, True])
        self.assertEqual([s.unlock_after_days for s in sections], [1, 2, 3])

    def test_apply_after_disabling_drip_unlocks_sections(self):
        """Test switching drip off opens every section again."""
        services.apply_drip_schedule(self.course, NOW)
        self.course.drip_enabled = False
        self.course.save()

        services.apply_drip_schedule(self.course, NOW)

        self.assertEqual(CourseSection.objects.unlocked().count(), 3)

    def test_enroll_learner_is_idempotent(self):
        """Test enrolling twice keeps one enrollment."""
        first = services.enroll_learner(self.course, "Ada@example.com", NOW)
        second = services.enroll_learner(self.course, "ada@example.com")

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(second.enrolled_at, NOW)

    def test_get_available_sections(self):
        """Test sections open up as days pass after enrollment."""
        enrollment = services.enroll_learner(self.course, "ada@example.com", NOW)

        today = services.get_available_sections(enrollment, NOW)
        later = services.get_available_sections(
            enrollment, datetime(2025, 3, 3, 12, 0, tzinfo=dt_timezone.utc)
        )

        self.assertEqual([s.order_index for s in today], [0])
        self.assertEqual([s.order_index for s in later], [0, 1])


class CourseAPITests(APITestCase):
    """Test course API endpoints."""

    def setUp(self):
        """Set up API client and a course."""
        self.client = APIClient()
        response = self.client.post('/api/courses/', {
            'title': 'Spanish for travellers',
            'drip_enabled': True,
            'drip_cadence': 'weekly',
            'drip_interval': 1,
        }, format='json')
        self.course_id = response.data['id']
        for order_index in range(3):
            self.client.post(
                f'/api/courses/{self.course_id}/sections/',
                {'title': f'Unit {order_index}', 'order_index': order_index},
                format='json'
            )

    def test_create_course_with_invalid_interval(self):
        """Test that interval 0 is rejected."""
        response = self.client.post('/api/courses/', {
            'title': 'Broken',
            'drip_enabled': True,
            'drip_cadence': 'daily',
            'drip_interval': 0,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_section_position(self):
        """Test that a second section at the same position is rejected."""
        response = self.client.post(
            f'/api/courses/{self.course_id}/sections/',
            {'title': 'Duplicate', 'order_index': 1},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unlock_schedule(self):
        """Test previewing the unlock schedule."""
        response = self.client.get(f'/api/courses/{self.course_id}/unlock-schedule/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([entry['unlock_after_days'] for entry in response.data], [7, 14, 21])
        self.assertEqual([entry['locked'] for entry in response.data], [False, True, True])

    def test_apply_drip(self):
        """Test applying the schedule via API."""
        response = self.client.post(f'/api/courses/{self.course_id}/apply-drip/')

        self.assertEqual(response.data['sections_updated'], 3)
        sections = self.client.get(f'/api/courses/{self.course_id}/sections/').data
        self.assertEqual([s['locked'] for s in sections], [False, True, True])

    def test_update_course_disables_drip(self):
        """Test turning drip off through PATCH."""
        self.client.patch(f'/api/courses/{self.course_id}/', {'drip_enabled': False}, format='json')

        response = self.client.get(f'/api/courses/{self.course_id}/unlock-schedule/')

        self.assertTrue(all(not entry['locked'] for entry in response.data))

    def test_enroll_and_available_sections(self):
        """Test a new learner sees only the first section."""
        enroll = self.client.post(
            f'/api/courses/{self.course_id}/enroll/',
            {'learner_email': 'learner@example.com'},
            format='json'
        )

        response = self.client.get(
            f"/api/courses/enrollments/{enroll.data['id']}/available-sections/"
        )

        self.assertEqual(enroll.status_code, status.HTTP_201_CREATED)
        self.assertEqual([s['order_index'] for s in response.data], [0])
