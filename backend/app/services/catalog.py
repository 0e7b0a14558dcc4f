"""Bell schedules, lunch periods and per-teacher unavailability.

The catalog is an immutable snapshot of the reference tables. It is loaded once per
request with :func:`load_catalog` and handed to the availability resolver and the
booking manager, so every rule in one operation sees the same data.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.schedule import BellSchedulePeriod, LunchPeriod
from app.models.teacher import Teacher, TeacherType

SIXTH_GRADE_COHORT = "6"
UPPER_GRADE_COHORT = "7"

DEFAULT_BELL_SCHEDULES: dict[str, list[tuple[int, str, str]]] = {
    SIXTH_GRADE_COHORT: [
        (1, "08:00", "08:50"),
        (2, "08:54", "09:44"),
        (3, "09:48", "10:38"),
        (4, "10:42", "11:32"),
        (5, "11:36", "12:26"),
        (6, "12:30", "13:20"),
        (7, "13:24", "14:14"),
    ],
    UPPER_GRADE_COHORT: [
        (1, "08:00", "08:50"),
        (2, "08:54", "09:44"),
        (3, "09:48", "10:38"),
        (4, "10:42", "11:32"),
        (5, "11:36", "12:26"),
        (6, "12:30", "13:20"),
        (7, "13:24", "14:14"),
        (8, "14:18", "15:05"),
    ],
}
DEFAULT_LUNCH_PERIODS: dict[str, list[int]] = {
    "6": [4],
    "7": [5],
    "8": [6],
}


def cohort_for_grade(grade: str | int | None) -> str:
    if grade is not None and str(grade).strip() == "6":
        return SIXTH_GRADE_COHORT
    return UPPER_GRADE_COHORT


@dataclass(frozen=True)
class BellSlot:
    period: int
    start_time: str
    end_time: str


@dataclass(frozen=True)
class CatalogSnapshot:
    bell_schedules: Mapping[str, tuple[BellSlot, ...]] = field(default_factory=dict)
    lunch_periods: Mapping[str, frozenset[int]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        bell_rows: dict[str, list[tuple[int, str, str]]],
        lunch_rows: dict[str, list[int]],
    ) -> "CatalogSnapshot":
        schedules = {
            cohort: tuple(BellSlot(period, start, end) for period, start, end in sorted(rows))
            for cohort, rows in bell_rows.items()
        }
        lunches = {str(grade): frozenset(periods) for grade, periods in lunch_rows.items()}
        return cls(bell_schedules=MappingProxyType(schedules), lunch_periods=MappingProxyType(lunches))


DEFAULT_CATALOG = CatalogSnapshot.build(DEFAULT_BELL_SCHEDULES, DEFAULT_LUNCH_PERIODS)


class ScheduleCatalog:
    def __init__(self, snapshot: CatalogSnapshot = DEFAULT_CATALOG) -> None:
        self._snapshot = snapshot

    def bell_schedule(self, cohort_or_grade: str | int) -> list[BellSlot]:
        cohort = cohort_for_grade(cohort_or_grade)
        return list(self._snapshot.bell_schedules.get(cohort, ()))

    def lunch_periods(self, grade: str | int) -> frozenset[int]:
        return self._snapshot.lunch_periods.get(str(grade).strip().lower(), frozenset())

    def cohort_for_teacher(self, teacher: Teacher) -> str:
        numeric = sorted(int(grade) for grade in teacher.grades or [] if grade.isdigit())
        if not numeric:
            return UPPER_GRADE_COHORT
        return cohort_for_grade(numeric[0])

    def schedule_for_teacher(self, teacher: Teacher) -> list[BellSlot]:
        return self.bell_schedule(self.cohort_for_teacher(teacher))

    def unavailable_periods(self, teacher: Teacher) -> frozenset[int]:
        if teacher.teacher_type == TeacherType.support:
            return frozenset()
        if teacher.unavailable_periods:
            return frozenset(teacher.unavailable_periods)
        if teacher.lunch_period:
            return frozenset({teacher.lunch_period})
        periods: set[int] = set()
        for grade in teacher.grades or []:
            periods.update(self.lunch_periods(grade))
        return frozenset(periods)


def load_catalog(db: Session) -> ScheduleCatalog:
    bell_rows: dict[str, list[tuple[int, str, str]]] = defaultdict(list)
    for row in db.execute(select(BellSchedulePeriod)).scalars():
        bell_rows[cohort_for_grade(row.cohort)].append((row.period, row.start_time, row.end_time))

    lunch_rows: dict[str, list[int]] = defaultdict(list)
    for row in db.execute(select(LunchPeriod)).scalars():
        lunch_rows[row.grade.strip().lower()].append(row.period)

    if not bell_rows:
        return ScheduleCatalog(DEFAULT_CATALOG)
    if not lunch_rows:
        lunch_rows = defaultdict(list, DEFAULT_LUNCH_PERIODS)
    return ScheduleCatalog(CatalogSnapshot.build(dict(bell_rows), dict(lunch_rows)))


def seed_reference_catalog(db: Session) -> bool:
    """Insert the default bell schedules and lunch periods when the tables are empty."""
    seeded = False
    if db.execute(select(BellSchedulePeriod.id).limit(1)).first() is None:
        for cohort, rows in DEFAULT_BELL_SCHEDULES.items():
            for period, start, end in rows:
                db.add(BellSchedulePeriod(cohort=cohort, period=period, start_time=start, end_time=end))
        seeded = True
    if db.execute(select(LunchPeriod.id).limit(1)).first() is None:
        for grade, periods in DEFAULT_LUNCH_PERIODS.items():
            for period in periods:
                db.add(LunchPeriod(grade=grade, period=period))
        seeded = True
    return seeded
