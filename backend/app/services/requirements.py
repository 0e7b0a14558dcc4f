from __future__ import annotations

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.policy import REQUIRED_OBSERVATIONS_PER_YEAR, SchedulingPolicy
from app.models.observation import Observation, ObservationStatus
from app.models.teacher import Teacher
from app.schemas.requirement import RequirementStatus, TeacherRequirementOut


def _build_status(count: int, start: date, deadline: date, today: date) -> RequirementStatus:
    return RequirementStatus(
        count=count,
        has_met_requirement=count >= REQUIRED_OBSERVATIONS_PER_YEAR,
        days_remaining=max(0, (deadline - today).days),
        is_past_deadline=today > deadline,
        school_year_start=start,
        deadline=deadline,
    )


def requirement_status(
    db: Session,
    observer_id: str,
    policy: SchedulingPolicy,
    today: date | None = None,
) -> RequirementStatus:
    """Observations this teacher made as observer during the current school year."""
    today = today or policy.today()
    start, deadline = policy.school_year_window(today)
    count = db.execute(
        select(func.count(Observation.id)).where(
            Observation.observer_id == observer_id,
            Observation.status != ObservationStatus.canceled,
            Observation.observation_date >= start,
            Observation.observation_date <= deadline,
        )
    ).scalar_one()
    return _build_status(int(count), start, deadline, today)


def requirement_dashboard(
    db: Session,
    policy: SchedulingPolicy,
    today: date | None = None,
) -> list[TeacherRequirementOut]:
    today = today or policy.today()
    start, deadline = policy.school_year_window(today)
    counts = dict(
        db.execute(
            select(Observation.observer_id, func.count(Observation.id))
            .where(
                Observation.status != ObservationStatus.canceled,
                Observation.observation_date >= start,
                Observation.observation_date <= deadline,
            )
            .group_by(Observation.observer_id)
        ).all()
    )
    teachers = db.execute(
        select(Teacher).where(Teacher.is_active.is_(True)).order_by(Teacher.name)
    ).scalars()
    return [
        TeacherRequirementOut(
            teacher_id=teacher.id,
            teacher_name=teacher.name,
            teacher_email=teacher.email,
            **_build_status(int(counts.get(teacher.id, 0)), start, deadline, today).model_dump(),
        )
        for teacher in teachers
    ]
