from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.core.exceptions import ResourceNotFoundError
from app.models.notification import Notification, NotificationType
from app.models.user import User
from app.schemas.notification import NotificationOut, NotificationSummary
from app.services.notifications import list_inbox, mark_all_read, unread_count

router = APIRouter()


@router.get("/notifications", response_model=list[NotificationOut])
def list_my_notifications(
    unread_only: bool = Query(default=False),
    kind: NotificationType | None = Query(default=None, alias="type"),
    limit: int = Query(default=50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[NotificationOut]:
    return list_inbox(db, current_user.id, unread_only=unread_only, notification_type=kind, limit=limit)


@router.get("/notifications/summary", response_model=NotificationSummary)
def notification_summary(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationSummary:
    return NotificationSummary(unread=unread_count(db, current_user.id))


@router.post("/notifications/read-all", response_model=NotificationSummary)
def read_all_notifications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationSummary:
    marked = mark_all_read(db, current_user.id)
    db.commit()
    return NotificationSummary(unread=0, marked=marked)


@router.post("/notifications/{notification_id}/read", response_model=NotificationOut)
def read_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationOut:
    # Other users' notifications are reported as missing.
    item = db.get(Notification, notification_id)
    if item is None or item.user_id != current_user.id:
        raise ResourceNotFoundError("Notification", notification_id)
    if not item.is_read:
        item.is_read = True
        db.commit()
        db.refresh(item)
    return item
