from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from app.core.config import Settings

SCHOOL_YEAR_START_MONTH = 8
SCHOOL_YEAR_START_DAY = 1
REQUIRED_OBSERVATIONS_PER_YEAR = 1


@dataclass(frozen=True)
class SchedulingPolicy:
    """Immutable scheduling rules handed to every service at construction time."""

    lock_timeout_seconds: float = 30.0
    requirement_deadline_month: int = 5
    requirement_deadline_day: int = 31
    school_timezone: str = "America/New_York"
    coverage_coordinator_email: str | None = None
    fixed_today: date | None = None

    def today(self) -> date:
        if self.fixed_today is not None:
            return self.fixed_today
        return datetime.now(ZoneInfo(self.school_timezone)).date()

    def school_year_window(self, on_date: date | None = None) -> tuple[date, date]:
        reference = on_date or self.today()
        start_year = reference.year if reference.month >= SCHOOL_YEAR_START_MONTH else reference.year - 1
        start = date(start_year, SCHOOL_YEAR_START_MONTH, SCHOOL_YEAR_START_DAY)
        deadline = date(start_year + 1, self.requirement_deadline_month, self.requirement_deadline_day)
        return start, deadline


def policy_from_settings(settings: Settings) -> SchedulingPolicy:
    return SchedulingPolicy(
        lock_timeout_seconds=max(0.0, settings.booking_lock_timeout_seconds),
        requirement_deadline_month=settings.requirement_deadline_month,
        requirement_deadline_day=settings.requirement_deadline_day,
        school_timezone=settings.school_timezone,
        coverage_coordinator_email=settings.coverage_coordinator_email,
    )
