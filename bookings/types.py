"""
Data types and constants for the booking system.

This module contains:
- DTOs (Data Transfer Objects) for service layer operations
- Constants used across the application
"""

from dataclasses import dataclass, field
from datetime import date, time
from typing import List, Optional


DEFAULT_BATCH_SIZE = 20


@dataclass
class PatternCreateData:
    """DTO for pattern creation."""
    title: str
    recurrence_type: str
    start_date: date
    time_of_day: time
    duration_minutes: int = 60
    description: str = ''
    timezone: str = 'UTC'
    end_date: Optional[date] = None
    date_limit: Optional[date] = None
    occurrence_limit: Optional[int] = None
    days_of_week: List[int] = field(default_factory=list)
    day_of_month: Optional[int] = None
    interval_days: Optional[int] = None
    interval: int = 1
    short_month_policy: str = 'clamp'


@dataclass
class PatternUpdateData:
    """
    DTO for pattern update operations. The recurrence rule itself is immutable.

    None leaves a field unchanged; set ``clear_end_date`` to remove the end date.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    duration_minutes: Optional[int] = None
    end_date: Optional[date] = None
    clear_end_date: bool = False
    is_active: Optional[bool] = None
