from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_identity, require_roles
from app.core.exceptions import ResourceNotFoundError, StateConflictError
from app.models.access_request import AccessRequest, AccessRequestStatus
from app.models.notification import NotificationType
from app.models.teacher import Teacher
from app.models.user import User, UserRole
from app.schemas.access import AccessRequestCreate, AccessRequestOut, AccessRequestReview
from app.services.audit import AuditSink
from app.services.notifications import notify_emails, notify_roles

router = APIRouter()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _load_pending(db: Session, request_id: str) -> AccessRequest:
    item = db.get(AccessRequest, request_id)
    if item is None:
        raise ResourceNotFoundError("Access request", request_id)
    if item.status != AccessRequestStatus.pending:
        raise StateConflictError("Access request is not pending", details={"status": item.status.value})
    return item


@router.post("", response_model=AccessRequestOut, status_code=status.HTTP_201_CREATED)
def submit_access_request(
    payload: AccessRequestCreate,
    email: str = Depends(get_identity),
    db: Session = Depends(get_db),
) -> AccessRequestOut:
    existing_user = db.execute(select(User).where(func.lower(User.email) == email)).scalar_one_or_none()
    if existing_user is not None and existing_user.is_active:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This account already has access")
    pending = db.execute(
        select(AccessRequest).where(
            AccessRequest.email == email,
            AccessRequest.status == AccessRequestStatus.pending,
        )
    ).scalar_one_or_none()
    if pending is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An access request is already pending")

    item = AccessRequest(email=email, **payload.model_dump())
    db.add(item)
    notify_roles(
        db,
        roles=[UserRole.admin],
        title="New Access Request",
        message=f"{payload.name} ({email}) requested {payload.requested_role.value} access.",
        notification_type=NotificationType.roster,
    )
    db.commit()
    db.refresh(item)
    AuditSink(db).append("access.request", email, entity_type="access_request", entity_id=item.id)
    return item


@router.get("", response_model=list[AccessRequestOut])
def list_access_requests(
    request_status: AccessRequestStatus | None = Query(default=None, alias="status"),
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> list[AccessRequestOut]:
    query = select(AccessRequest).order_by(AccessRequest.created_at.desc())
    if request_status is not None:
        query = query.where(AccessRequest.status == request_status)
    return list(db.execute(query).scalars())


@router.post("/{request_id}/approve", response_model=AccessRequestOut)
def approve_access_request(
    request_id: str,
    payload: AccessRequestReview | None = None,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> AccessRequestOut:
    item = _load_pending(db, request_id)

    user = db.execute(select(User).where(func.lower(User.email) == item.email)).scalar_one_or_none()
    if user is None:
        db.add(User(name=item.name, email=item.email, role=item.requested_role, is_active=True))
    else:
        user.role = item.requested_role
        user.is_active = True

    if item.requested_role == UserRole.teacher:
        teacher = db.execute(select(Teacher).where(func.lower(Teacher.email) == item.email)).scalar_one_or_none()
        if teacher is None:
            db.add(
                Teacher(
                    email=item.email,
                    name=item.name,
                    room=item.room,
                    grades=list(item.grades),
                    teacher_type=item.teacher_type,
                    unavailable_periods=[],
                    is_active=True,
                )
            )
        else:
            teacher.is_active = True

    item.status = AccessRequestStatus.approved
    item.reviewed_by = current_user.email
    item.reviewed_at = _utc_now()
    item.review_note = payload.note if payload else None
    db.commit()
    db.refresh(item)
    AuditSink(db).append(
        "access.approve",
        current_user.email,
        {"email": item.email, "role": item.requested_role.value},
        entity_type="access_request",
        entity_id=item.id,
    )
    return item


@router.post("/{request_id}/deny", response_model=AccessRequestOut)
def deny_access_request(
    request_id: str,
    payload: AccessRequestReview | None = None,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> AccessRequestOut:
    item = _load_pending(db, request_id)
    item.status = AccessRequestStatus.denied
    item.reviewed_by = current_user.email
    item.reviewed_at = _utc_now()
    item.review_note = payload.note if payload else None
    notify_emails(
        db,
        emails=[item.email],
        title="Access Request Denied",
        message=item.review_note or "Your access request was denied.",
        notification_type=NotificationType.roster,
    )
    db.commit()
    db.refresh(item)
    AuditSink(db).append(
        "access.deny",
        current_user.email,
        {"email": item.email},
        entity_type="access_request",
        entity_id=item.id,
    )
    return item
