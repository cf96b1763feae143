"""
Drip release of course sections.

Framework-agnostic: takes a drip configuration, the course sections and the
current time, and returns when each section unlocks. Nothing is persisted
here; the service layer writes the result back to the sections.
"""

import enum
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Set


class DripCadence(str, enum.Enum):
    NONE = 'none'
    DAILY = 'daily'
    WEEKLY = 'weekly'


_DAYS_PER_STEP = {
    DripCadence.DAILY: 1,
    DripCadence.WEEKLY: 7,
}


@dataclass(frozen=True)
class DripConfig:
    """How a course releases its sections."""

    enabled: bool
    cadence: DripCadence = DripCadence.NONE
    interval_count: int = 1

    def __post_init__(self):
        object.__setattr__(self, 'cadence', DripCadence(self.cadence))
        if self.interval_count is None or self.interval_count < 0:
            raise ValueError("The drip interval must be at least 1.")


@dataclass(frozen=True)
class SectionRef:
    id: int
    title: str
    order_index: int


@dataclass(frozen=True)
class UnlockScheduleEntry:
    section_id: int
    order_index: int
    unlock_after_days: int
    unlock_date: Optional[date]
    locked: bool


def compute_unlock_schedule(
    config: DripConfig,
    sections: Iterable[SectionRef],
    now: datetime
) -> List[UnlockScheduleEntry]:
    """
    Compute when each section of a course unlocks.

    Sections are released in ``order_index`` order, one every
    ``interval_count`` days (daily) or weeks (weekly). The section with
    ``order_index`` 0 is always unlocked.

    Args:
        config: DripConfig of the course
        sections: Sections of the course, in any order
        now: Reference time the unlock dates are counted from

    Returns:
        One UnlockScheduleEntry per section, in release order

    Raises:
        ValueError: If two sections share an order_index
    """
    sections = list(sections)
    _check_unique_order(sections)

    if not config.enabled or config.cadence == DripCadence.NONE:
        return [
            UnlockScheduleEntry(
                section_id=section.id,
                order_index=section.order_index,
                unlock_after_days=0,
                unlock_date=None,
                locked=False,
            )
            for section in sections
        ]

    # An interval of 0 would unlock everything on day 0.
    interval = max(config.interval_count, 1)
    step_days = interval * _DAYS_PER_STEP[config.cadence]
    today = now.date()

    schedule = []
    for position, section in enumerate(sorted(sections, key=lambda s: s.order_index)):
        unlock_after_days = step_days * (position + 1)
        schedule.append(UnlockScheduleEntry(
            section_id=section.id,
            order_index=section.order_index,
            unlock_after_days=unlock_after_days,
            unlock_date=today + timedelta(days=unlock_after_days),
            locked=section.order_index > 0,
        ))
    return schedule


def available_section_ids(
    schedule: Iterable[UnlockScheduleEntry],
    enrolled_at: datetime,
    now: datetime
) -> Set[int]:
    """
    Ids of the sections a learner may open.

    Unlock delays count from the learner's enrollment date, not from the
    date the schedule was computed.
    """
    days_enrolled = (now.date() - enrolled_at.date()).days
    return {
        entry.section_id
        for entry in schedule
        if not entry.locked or entry.unlock_after_days <= days_enrolled
    }


def _check_unique_order(sections: List[SectionRef]) -> None:
    seen = set()
    for section in sections:
        if section.order_index in seen:
            raise ValueError(
                f"Two sections share position {section.order_index}; "
                "give every section its own position."
            )
        seen.add(section.order_index)
