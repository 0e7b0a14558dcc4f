from fastapi import APIRouter, Depends, Query

from app.api.deps import get_catalog, get_current_user
from app.db.types import normalize_grades
from app.models.user import User
from app.schemas.schedule import BellScheduleOut, BellSlotOut, LunchPeriodsOut
from app.services.catalog import ScheduleCatalog, cohort_for_grade

router = APIRouter()


def _grade_label(grade: str) -> str:
    labels = normalize_grades(grade)
    return labels[0] if labels else grade.strip().lower()


@router.get("/bell", response_model=BellScheduleOut)
def get_bell_schedule(
    grade: str = Query(min_length=1, max_length=20),
    current_user: User = Depends(get_current_user),
    catalog: ScheduleCatalog = Depends(get_catalog),
) -> BellScheduleOut:
    grade = _grade_label(grade)
    return BellScheduleOut(
        grade=grade,
        cohort=cohort_for_grade(grade),
        periods=[
            BellSlotOut(period=slot.period, start_time=slot.start_time, end_time=slot.end_time)
            for slot in catalog.bell_schedule(grade)
        ],
    )


@router.get("/lunch", response_model=LunchPeriodsOut)
def get_lunch_periods(
    grade: str = Query(min_length=1, max_length=20),
    current_user: User = Depends(get_current_user),
    catalog: ScheduleCatalog = Depends(get_catalog),
) -> LunchPeriodsOut:
    grade = _grade_label(grade)
    return LunchPeriodsOut(grade=grade, periods=sorted(catalog.lunch_periods(grade)))
