from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_teacher, get_db, get_policy, require_roles
from app.core.policy import SchedulingPolicy
from app.models.teacher import Teacher
from app.models.user import User, UserRole
from app.schemas.requirement import RequirementStatus, TeacherRequirementOut
from app.services.requirements import requirement_dashboard, requirement_status

router = APIRouter()


@router.get("/me", response_model=RequirementStatus)
def get_my_requirement(
    teacher: Teacher = Depends(get_current_teacher),
    policy: SchedulingPolicy = Depends(get_policy),
    db: Session = Depends(get_db),
) -> RequirementStatus:
    return requirement_status(db, teacher.id, policy)


@router.get("", response_model=list[TeacherRequirementOut])
def get_requirement_dashboard(
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.readonly)),
    policy: SchedulingPolicy = Depends(get_policy),
    db: Session = Depends(get_db),
) -> list[TeacherRequirementOut]:
    return requirement_dashboard(db, policy)
