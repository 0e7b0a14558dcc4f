from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from app.models.teacher import Teacher
from app.schemas.schedule import SlotAvailability
from app.services.catalog import ScheduleCatalog
from app.services.occupancy import OccupancyIndex

REASON_TEACHER_UNAVAILABLE = "Teacher unavailable"
REASON_ALREADY_OBSERVED = "Already has observer"
REASON_OBSERVER_BUSY = "You have another observation"
REASON_OBSERVER_OBSERVED = "You are being observed"


def slot_block_reason(
    period: int,
    *,
    unavailable: frozenset[int],
    occupancy: OccupancyIndex,
    observer_id: str,
    target_id: str,
) -> str | None:
    """First matching reason a period cannot be booked, in fixed priority order."""
    if period in unavailable:
        return REASON_TEACHER_UNAVAILABLE
    if period in occupancy.observed_periods(target_id):
        return REASON_ALREADY_OBSERVED
    if period in occupancy.observing_periods(observer_id):
        return REASON_OBSERVER_BUSY
    if period in occupancy.observed_periods(observer_id):
        return REASON_OBSERVER_OBSERVED
    return None


def resolve_slots(
    db: Session,
    catalog: ScheduleCatalog,
    *,
    observer_id: str,
    target: Teacher,
    on_date: date,
) -> list[SlotAvailability]:
    occupancy = OccupancyIndex.for_date(db, on_date, [observer_id, target.id])
    unavailable = catalog.unavailable_periods(target)
    slots: list[SlotAvailability] = []
    for slot in catalog.schedule_for_teacher(target):
        reason = slot_block_reason(
            slot.period,
            unavailable=unavailable,
            occupancy=occupancy,
            observer_id=observer_id,
            target_id=target.id,
        )
        slots.append(
            SlotAvailability(
                period=slot.period,
                start_time=slot.start_time,
                end_time=slot.end_time,
                available=reason is None,
                reason=reason,
            )
        )
    return slots
