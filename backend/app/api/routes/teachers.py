from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.api.deps import get_current_actor, get_current_user, get_db, require_roles
from app.core.exceptions import ResourceNotFoundError
from app.models.teacher import Teacher
from app.models.user import User, UserRole
from app.schemas.teacher import TeacherCreate, TeacherOut, TeacherUpdate
from app.services.actor import Actor
from app.services.audit import AuditSink

router = APIRouter()


def _ensure_login(db: Session, teacher: Teacher) -> None:
    user = db.execute(select(User).where(func.lower(User.email) == teacher.email)).scalar_one_or_none()
    if user is None:
        db.add(User(name=teacher.name, email=teacher.email, role=UserRole.teacher, is_active=teacher.is_active))
    elif user.role != UserRole.admin:
        user.is_active = teacher.is_active


@router.get("", response_model=list[TeacherOut])
def list_teachers(
    include_inactive: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[TeacherOut]:
    query = select(Teacher).order_by(Teacher.name)
    if not (include_inactive and current_user.role == UserRole.admin):
        query = query.where(Teacher.is_active.is_(True))
    return list(db.execute(query).scalars())


@router.get("/me", response_model=TeacherOut)
def get_my_roster_entry(actor: Actor = Depends(get_current_actor)) -> TeacherOut:
    if actor.teacher is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="You are not on the teacher roster")
    return actor.teacher


@router.post("", response_model=TeacherOut, status_code=status.HTTP_201_CREATED)
def create_teacher(
    payload: TeacherCreate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> TeacherOut:
    existing = db.execute(select(Teacher).where(func.lower(Teacher.email) == payload.email)).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Teacher email already exists")
    teacher = Teacher(**payload.model_dump(), is_active=True)
    db.add(teacher)
    _ensure_login(db, teacher)
    db.commit()
    db.refresh(teacher)
    AuditSink(db).append(
        "teacher.create",
        current_user.email,
        {"email": teacher.email, "grades": teacher.grades},
        entity_type="teacher",
        entity_id=teacher.id,
    )
    return teacher


@router.put("/{teacher_id}", response_model=TeacherOut)
def update_teacher(
    teacher_id: str,
    payload: TeacherUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> TeacherOut:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise ResourceNotFoundError("Teacher", teacher_id)
    data = payload.model_dump(exclude_unset=True)
    for key, value in data.items():
        setattr(teacher, key, value)
    if "is_active" in data:
        _ensure_login(db, teacher)
    db.commit()
    db.refresh(teacher)
    AuditSink(db).append(
        "teacher.update",
        current_user.email,
        {"fields": sorted(data)},
        entity_type="teacher",
        entity_id=teacher.id,
    )
    return teacher


@router.post("/{teacher_id}/deactivate", response_model=TeacherOut)
def deactivate_teacher(
    teacher_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> TeacherOut:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise ResourceNotFoundError("Teacher", teacher_id)
    teacher.is_active = False
    _ensure_login(db, teacher)
    db.commit()
    db.refresh(teacher)
    AuditSink(db).append("teacher.deactivate", current_user.email, entity_type="teacher", entity_id=teacher.id)
    return teacher
