"""
Service layer for course drip release.

The schedule itself is computed by ``drip.py``; these functions read the
sections, write lock state back and answer what an enrolled learner can open.
"""

import logging
from datetime import datetime
from typing import List, Optional

from django.db import transaction
from django.utils import timezone

from .drip import UnlockScheduleEntry, available_section_ids, compute_unlock_schedule
from .models import Course, CourseEnrollment, CourseSection

logger = logging.getLogger(__name__)


def get_unlock_schedule(course: Course, now: Optional[datetime] = None) -> List[UnlockScheduleEntry]:
    """
    Compute the unlock schedule of a course without saving it.

    Raises:
        ValueError: If two sections share an order_index
    """
    sections = CourseSection.objects.for_course(course).in_release_order()
    return compute_unlock_schedule(
        course.drip_config,
        [section.to_ref() for section in sections],
        now or timezone.now()
    )


@transaction.atomic
def apply_drip_schedule(course: Course, now: Optional[datetime] = None) -> List[UnlockScheduleEntry]:
    """
    Compute the unlock schedule and write it back to the sections.

    Every section gets its ``locked`` flag and ``unlock_after_days`` from the
    schedule, in one transaction.

    Args:
        course: Course instance
        now: Reference time (defaults to timezone.now())

    Returns:
        The applied schedule
    """
    schedule = get_unlock_schedule(course, now)
    sections = CourseSection.objects.in_bulk([entry.section_id for entry in schedule])

    changed = []
    for entry in schedule:
        section = sections[entry.section_id]
        section.locked = entry.locked
        section.unlock_after_days = entry.unlock_after_days
        changed.append(section)
    CourseSection.objects.bulk_update(changed, ['locked', 'unlock_after_days'])

    logger.info(
        "Applied drip schedule to course %s: %d section(s), %d locked",
        course.pk, len(schedule), sum(1 for entry in schedule if entry.locked)
    )
    return schedule


def enroll_learner(
    course: Course,
    learner_email: str,
    enrolled_at: Optional[datetime] = None
) -> CourseEnrollment:
    """
    Enroll a learner; enrolling twice returns the existing enrollment.
    """
    enrollment, created = CourseEnrollment.objects.get_or_create(
        course=course,
        learner_email=learner_email.lower(),
        defaults={'enrolled_at': enrolled_at or timezone.now()}
    )
    if created:
        logger.info("Enrolled %s in course %s", enrollment.learner_email, course.pk)
    return enrollment


def get_available_sections(
    enrollment: CourseEnrollment,
    now: Optional[datetime] = None
) -> List[CourseSection]:
    """
    Get the sections an enrolled learner can open now.

    Args:
        enrollment: CourseEnrollment instance
        now: Current time (defaults to timezone.now())

    Returns:
        Sections in release order
    """
    now = now or timezone.now()
    schedule = get_unlock_schedule(enrollment.course, now)
    section_ids = available_section_ids(schedule, enrollment.enrolled_at, now)

    return list(
        CourseSection.objects.filter(pk__in=section_ids).in_release_order()
    )
