"""Substitute coverage workflow.

A request starts ``pending``; an administrator approves or denies it once. A request
is canceled automatically when its observation is canceled or stops needing
coverage. Approval confirms the observation, denial cancels it.
"""
from __future__ import annotations

from datetime import datetime, timezone
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import AuthorizationError, ResourceNotFoundError, StateConflictError
from app.core.policy import SchedulingPolicy
from app.models.notification import NotificationType
from app.models.observation import Observation, ObservationStatus, SubStatus
from app.models.substitute_request import SubstituteRequest, SubstituteRequestStatus
from app.models.teacher import Teacher
from app.services.actor import Actor
from app.services.audit import AuditSink
from app.services.booking_lock import BookingLock, booking_lock
from app.services.calendar import CalendarClient, publish_confirmed_events, remove_observation_events
from app.services.catalog import ScheduleCatalog
from app.services.notifications import Notifier, OutgoingEmail, notify_emails
from app.services.side_effects import SideEffectResult

logger = logging.getLogger(__name__)

DENIED_CANCEL_REASON = "Substitute coverage denied"

REVIEW_TRANSITIONS: dict[SubstituteRequestStatus, set[SubstituteRequestStatus]] = {
    SubstituteRequestStatus.pending: {SubstituteRequestStatus.approved, SubstituteRequestStatus.denied},
}
# Coverage that is no longer needed is withdrawn even after approval.
CASCADE_CANCELABLE = {SubstituteRequestStatus.pending, SubstituteRequestStatus.approved}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _period_label(periods: list[int]) -> str:
    return ", ".join(str(item) for item in periods)


class SubstituteWorkflow:
    def __init__(
        self,
        db: Session,
        *,
        catalog: ScheduleCatalog,
        policy: SchedulingPolicy,
        notifier: Notifier,
        calendar: CalendarClient,
        lock: BookingLock = booking_lock,
    ) -> None:
        self._db = db
        self._catalog = catalog
        self._policy = policy
        self._notifier = notifier
        self._calendar = calendar
        self._lock = lock
        self._audit = AuditSink(db)

    # Transactional helpers used by the booking manager; callers commit.

    def open_request(self, observation: Observation, requester: Teacher) -> SubstituteRequest:
        request = SubstituteRequest(
            observation_id=observation.id,
            requester_id=requester.id,
            requester_email=requester.email,
            requester_name=requester.name,
            request_date=observation.observation_date,
            periods=list(observation.periods),
            status=SubstituteRequestStatus.pending,
        )
        self._db.add(request)
        self._db.flush()
        observation.needs_sub = True
        observation.sub_status = SubStatus.pending
        observation.status = ObservationStatus.pending_sub
        return request

    def active_request_for(self, observation_id: str) -> SubstituteRequest | None:
        return self._db.execute(
            select(SubstituteRequest)
            .where(
                SubstituteRequest.observation_id == observation_id,
                SubstituteRequest.status.in_(list(CASCADE_CANCELABLE)),
            )
            .order_by(SubstituteRequest.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()

    def cancel_for_observation(self, observation: Observation, actor_email: str) -> SubstituteRequest | None:
        request = self.active_request_for(observation.id)
        if request is None:
            return None
        request.status = SubstituteRequestStatus.canceled
        request.canceled_at = _utc_now()
        request.reviewed_by = request.reviewed_by or actor_email
        logger.info("Substitute request %s canceled with observation %s", request.id, observation.id)
        return request

    # Administrator review.

    def _load_pending(self, request_id: str) -> SubstituteRequest:
        request = self._db.get(SubstituteRequest, request_id)
        if request is None:
            raise ResourceNotFoundError("Substitute request", request_id)
        return request

    @staticmethod
    def _check_transition(request: SubstituteRequest, target: SubstituteRequestStatus) -> None:
        allowed = REVIEW_TRANSITIONS.get(request.status, set())
        if target not in allowed:
            raise StateConflictError(
                "Substitute request is not pending",
                details={"status": request.status.value, "requested": target.value},
            )

    def _review(self, request_id: str, actor: Actor, target: SubstituteRequestStatus) -> tuple[SubstituteRequest, Observation]:
        if not actor.is_admin:
            raise AuthorizationError("Only administrators can review substitute requests")
        request = self._load_pending(request_id)
        self._check_transition(request, target)
        return request, self._observation_for(request)

    def _observation_for(self, request: SubstituteRequest) -> Observation:
        observation = self._db.get(Observation, request.observation_id)
        if observation is None:
            raise ResourceNotFoundError("Observation", request.observation_id)
        return observation

    def approve(self, request_id: str, actor: Actor) -> SubstituteRequest:
        self._review(request_id, actor, SubstituteRequestStatus.approved)
        with self._lock.hold(self._policy.lock_timeout_seconds):
            request = self._load_pending(request_id)
            self._db.refresh(request)
            self._check_transition(request, SubstituteRequestStatus.approved)
            observation = self._observation_for(request)

            now = _utc_now()
            request.status = SubstituteRequestStatus.approved
            request.reviewed_by = actor.email
            request.reviewed_at = now
            observation.sub_status = SubStatus.approved
            observation.status = ObservationStatus.confirmed
            observation.modified_at = now
            observation.modified_by = actor.email
            notify_emails(
                self._db,
                emails=[request.requester_email],
                title="Substitute Coverage Approved",
                message=(
                    f"Coverage for your observation on {request.request_date.isoformat()} "
                    f"(period {_period_label(request.periods)}) was approved."
                ),
                notification_type=NotificationType.coverage,
            )
            self._commit()
        logger.info("Substitute request %s approved by %s", request.id, actor.email)

        self._audit.append(
            "substitute.approve",
            actor.email,
            {"observation_id": observation.id, "requester_email": request.requester_email},
            entity_type="substitute_request",
            entity_id=request.id,
        )
        publish_confirmed_events(
            self._db,
            self._calendar,
            observation,
            catalog=self._catalog,
            timezone_name=self._policy.school_timezone,
        )
        self._notifier.send(
            request.requester_email,
            "Substitute coverage approved",
            (
                f"Your substitute coverage request for {request.request_date.isoformat()} "
                f"(period {_period_label(request.periods)}) was approved. Your observation is confirmed."
            ),
        )
        return request

    def deny(self, request_id: str, actor: Actor, reason: str | None) -> SubstituteRequest:
        self._review(request_id, actor, SubstituteRequestStatus.denied)
        reason = (reason or "").strip() or "No reason provided"
        with self._lock.hold(self._policy.lock_timeout_seconds):
            request = self._load_pending(request_id)
            self._db.refresh(request)
            self._check_transition(request, SubstituteRequestStatus.denied)
            observation = self._observation_for(request)

            calendar_results: list[SideEffectResult] = remove_observation_events(self._calendar, observation)
            now = _utc_now()
            request.status = SubstituteRequestStatus.denied
            request.reviewed_by = actor.email
            request.reviewed_at = now
            request.denial_reason = reason
            observation.sub_status = SubStatus.denied
            observation.status = ObservationStatus.canceled
            observation.cancel_reason = DENIED_CANCEL_REASON
            observation.canceled_at = now
            observation.canceled_by = actor.email
            notify_emails(
                self._db,
                emails=[request.requester_email],
                title="Substitute Coverage Denied",
                message=(
                    f"Coverage for your observation on {request.request_date.isoformat()} was denied: "
                    f"{reason}. The observation has been canceled."
                ),
                notification_type=NotificationType.coverage,
            )
            self._commit()
        logger.info("Substitute request %s denied by %s", request.id, actor.email)

        self._audit.append(
            "substitute.deny",
            actor.email,
            {
                "observation_id": observation.id,
                "reason": reason,
                "calendar": [item.outcome.value for item in calendar_results],
            },
            entity_type="substitute_request",
            entity_id=request.id,
        )
        self._notifier.send(
            request.requester_email,
            "Substitute coverage denied",
            (
                f"Your substitute coverage request for {request.request_date.isoformat()} "
                f"(period {_period_label(request.periods)}) was denied.\n\nReason: {reason}\n\n"
                "The observation has been canceled. Please book another time."
            ),
        )
        return request

    def list_requests(self, status: SubstituteRequestStatus | None = None) -> list[SubstituteRequest]:
        query = select(SubstituteRequest)
        if status is not None:
            query = query.where(SubstituteRequest.status == status)
        query = query.order_by(SubstituteRequest.request_date.asc(), SubstituteRequest.created_at.asc())
        return list(self._db.execute(query).scalars())

    def _commit(self) -> None:
        try:
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            raise
