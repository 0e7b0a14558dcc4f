from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.notification import Notification, NotificationType
from app.models.user import User, UserRole
from app.services.email import EmailDeliveryError, EmailNotConfiguredError, send_email
from app.services.side_effects import DeliveryOutcome, SideEffectResult, skipped

logger = logging.getLogger(__name__)

EMAIL_CHANNEL = "email"
SUBJECT_PREFIX = "Peer Observations"


@dataclass(frozen=True)
class OutgoingEmail:
    to: str | None
    subject: str
    text_body: str
    html_body: str | None = None


class Notifier:
    """Email collaborator. ``send`` never raises delivery errors."""

    def __init__(self, sender: Callable[..., None] = send_email) -> None:
        self._sender = sender

    def send(self, to: str | None, subject: str, text_body: str, html_body: str | None = None) -> SideEffectResult:
        if not to:
            return skipped(EMAIL_CHANNEL, None, "No recipient configured")
        try:
            self._sender(
                to_email=to,
                subject=f"{SUBJECT_PREFIX}: {subject}",
                text_content=text_body,
                html_content=html_body,
            )
        except EmailNotConfiguredError:
            return skipped(EMAIL_CHANNEL, to, "SMTP is not configured")
        except EmailDeliveryError as exc:
            logger.warning("Notification email delivery failed for %s", to, exc_info=True)
            return SideEffectResult(channel=EMAIL_CHANNEL, outcome=DeliveryOutcome.failed, target=to, detail=str(exc))
        return SideEffectResult(channel=EMAIL_CHANNEL, outcome=DeliveryOutcome.sent, target=to)

    def dispatch(self, emails: list[OutgoingEmail]) -> list[SideEffectResult]:
        return [self.send(item.to, item.subject, item.text_body, item.html_body) for item in emails]


def user_for_email(db: Session, email: str | None) -> User | None:
    if not email:
        return None
    return db.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()


def create_notification(
    db: Session,
    *,
    user_id: str,
    title: str,
    message: str,
    notification_type: NotificationType = NotificationType.system,
) -> Notification:
    record = Notification(
        user_id=user_id,
        title=title,
        message=message,
        notification_type=notification_type,
    )
    db.add(record)
    return record


def notify_emails(
    db: Session,
    *,
    emails: list[str],
    title: str,
    message: str,
    notification_type: NotificationType = NotificationType.system,
) -> list[Notification]:
    results: list[Notification] = []
    for email in dict.fromkeys(item.strip().lower() for item in emails if item):
        recipient = user_for_email(db, email)
        if recipient is None or not recipient.is_active:
            continue
        results.append(
            create_notification(
                db,
                user_id=recipient.id,
                title=title,
                message=message,
                notification_type=notification_type,
            )
        )
    return results


def notify_roles(
    db: Session,
    *,
    roles: list[UserRole] | set[UserRole] | tuple[UserRole, ...],
    title: str,
    message: str,
    notification_type: NotificationType = NotificationType.system,
    exclude_email: str | None = None,
) -> list[Notification]:
    if not roles:
        return []
    recipients = db.execute(
        select(User).where(
            User.role.in_(list(roles)),
            User.is_active.is_(True),
        )
    ).scalars()
    excluded = (exclude_email or "").strip().lower()
    results: list[Notification] = []
    for recipient in recipients:
        if excluded and recipient.email.lower() == excluded:
            continue
        results.append(
            create_notification(
                db,
                user_id=recipient.id,
                title=title,
                message=message,
                notification_type=notification_type,
            )
        )
    return results


def list_inbox(
    db: Session,
    user_id: str,
    *,
    unread_only: bool = False,
    notification_type: NotificationType | None = None,
    limit: int = 100,
) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    if notification_type is not None:
        query = query.where(Notification.notification_type == notification_type)
    query = query.order_by(Notification.created_at.desc(), Notification.id).limit(limit)
    return list(db.execute(query).scalars())


def unread_count(db: Session, user_id: str) -> int:
    return db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
    ).scalar_one()


def mark_all_read(db: Session, user_id: str) -> int:
    pending = list_inbox(db, user_id, unread_only=True, limit=10_000)
    for item in pending:
        item.is_read = True
    return len(pending)
