"""Booking transaction manager.

Every write path runs :meth:`BookingService.validate_booking` twice: once before the
booking lock is taken, to fail fast, and once while holding it, so the rows being
written were checked against the latest committed state. Nothing is written before
the lock is held.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
import logging

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    AuthorizationError,
    BookingValidationError,
    ResourceNotFoundError,
    StateConflictError,
)
from app.core.policy import SchedulingPolicy
from app.models.notification import NotificationType
from app.models.observation import Observation, ObservationStatus, SubStatus
from app.models.substitute_request import SubstituteRequest, SubstituteRequestStatus
from app.models.teacher import Teacher
from app.models.user import UserRole
from app.schemas.observation import BookingResult
from app.services.actor import Actor
from app.services.audit import AuditSink
from app.services.booking_lock import BookingLock, booking_lock
from app.services.calendar import CalendarClient, publish_confirmed_events, remove_observation_events
from app.services.catalog import ScheduleCatalog
from app.services.notifications import Notifier, OutgoingEmail, notify_emails, notify_roles
from app.services.occupancy import OccupancyIndex
from app.services.requirements import requirement_status
from app.services.side_effects import SideEffectResult
from app.services.substitutes import SubstituteWorkflow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingRequest:
    teacher_id: str | None
    observation_date: date | None
    periods: list[int] = field(default_factory=list)
    needs_sub: bool = False


@dataclass(frozen=True)
class ValidatedBooking:
    target: Teacher
    observation_date: date
    periods: list[int]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _period_label(periods: list[int]) -> str:
    return ", ".join(str(item) for item in periods)


class BookingService:
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
        self.substitutes = SubstituteWorkflow(
            db,
            catalog=catalog,
            policy=policy,
            notifier=notifier,
            calendar=calendar,
            lock=lock,
        )

    # Validation

    def validate_booking(
        self,
        observer: Teacher,
        request: BookingRequest,
        *,
        exclude_observation_id: str | None = None,
    ) -> ValidatedBooking:
        if not request.teacher_id:
            raise BookingValidationError("Please choose a teacher to observe.", rule="required_fields")
        if request.observation_date is None:
            raise BookingValidationError("Please choose an observation date.", rule="required_fields")
        periods = sorted(set(request.periods))
        if not periods:
            raise BookingValidationError("Please select at least one period.", rule="required_fields")
        if request.teacher_id == observer.id:
            raise BookingValidationError("You cannot observe yourself.", rule="self_observation")

        on_date = request.observation_date
        if on_date < self._policy.today():
            raise BookingValidationError("Observation date cannot be in the past.", rule="past_date")
        if on_date.weekday() >= 5:
            raise BookingValidationError("Observations can only be scheduled on weekdays.", rule="weekend")

        target = self._db.get(Teacher, request.teacher_id)
        if target is None:
            raise ResourceNotFoundError("Teacher", request.teacher_id)
        if not target.is_active:
            raise BookingValidationError(
                f"{target.name} is not currently available for observations.",
                rule="inactive_teacher",
            )

        scheduled = {slot.period for slot in self._catalog.schedule_for_teacher(target)}
        for period in periods:
            if period not in scheduled:
                raise BookingValidationError(
                    f"Period {period} is not on {target.name}'s bell schedule.",
                    rule="unknown_period",
                    details={"period": period},
                )

        unavailable = self._catalog.unavailable_periods(target)
        for period in periods:
            if period in unavailable:
                raise BookingValidationError(
                    f"Period {period} is a lunch period for this teacher.",
                    rule="lunch_period",
                    details={"period": period},
                )

        occupancy = OccupancyIndex.for_date(
            self._db,
            on_date,
            [observer.id, target.id],
            exclude_observation_id=exclude_observation_id,
        )
        for period in periods:
            if period in occupancy.observed_periods(target.id):
                raise BookingValidationError(
                    f"Period {period} already has an observer scheduled.",
                    rule="double_booking",
                    details={"period": period},
                )
        for period in periods:
            if period in occupancy.observing_periods(observer.id):
                raise BookingValidationError(
                    f"You already have an observation during period {period}.",
                    rule="observer_conflict",
                    details={"period": period},
                )
            if period in occupancy.observed_periods(observer.id):
                raise BookingValidationError(
                    f"You are being observed during period {period}.",
                    rule="observer_observed",
                    details={"period": period},
                )
        return ValidatedBooking(target=target, observation_date=on_date, periods=periods)

    # Create

    def create_booking(self, observer: Teacher, actor: Actor, request: BookingRequest, notes: str | None = None) -> BookingResult:
        if actor.role == UserRole.readonly:
            raise AuthorizationError("Read-only accounts cannot book observations")
        if not observer.is_active:
            raise AuthorizationError("Your roster entry is inactive")
        self.validate_booking(observer, request)

        emails: list[OutgoingEmail] = []
        with self._lock.hold(self._policy.lock_timeout_seconds):
            already_met = requirement_status(self._db, observer.id, self._policy).has_met_requirement
            validated = self.validate_booking(observer, request)
            target = validated.target

            observation = Observation(
                observer_id=observer.id,
                teacher_id=target.id,
                observation_date=validated.observation_date,
                periods=validated.periods,
                needs_sub=False,
                sub_status=SubStatus.not_needed,
                status=ObservationStatus.confirmed,
                notes=(notes or "").strip() or None,
                observer_name=observer.name,
                teacher_name=target.name,
                teacher_room=target.room,
                created_by=actor.email,
            )
            self._db.add(observation)
            self._db.flush()

            sub_request: SubstituteRequest | None = None
            if request.needs_sub:
                sub_request = self.substitutes.open_request(observation, observer)
                notify_roles(
                    self._db,
                    roles=[UserRole.admin],
                    title="Substitute Coverage Requested",
                    message=(
                        f"{observer.name} needs coverage on {validated.observation_date.isoformat()} "
                        f"for period {_period_label(validated.periods)}."
                    ),
                    notification_type=NotificationType.coverage,
                )
                emails.append(self._coverage_email(observer, target, observation))

            notify_emails(
                self._db,
                emails=[target.email],
                title="New Observation Scheduled",
                message=(
                    f"{observer.name} will observe your class on {validated.observation_date.isoformat()} "
                    f"during period {_period_label(validated.periods)}."
                ),
                notification_type=NotificationType.booking,
            )
            self._commit()
            observation_id = observation.id
            substitute_request_id = sub_request.id if sub_request is not None else None

        logger.info(
            "Observation %s booked by %s for %s on %s periods %s",
            observation_id,
            observer.email,
            target.email,
            observation.observation_date.isoformat(),
            observation.periods,
        )
        self._audit.append(
            "observation.create",
            actor.email,
            {
                "teacher_id": target.id,
                "date": observation.observation_date.isoformat(),
                "periods": list(observation.periods),
                "needs_sub": request.needs_sub,
                "substitute_request_id": substitute_request_id,
            },
            entity_type="observation",
            entity_id=observation_id,
        )
        if observation.status == ObservationStatus.confirmed:
            emails.append(self._scheduled_email(observer, target, observation))
            self._publish_events(observation)
        self._notifier.dispatch(emails)

        if request.needs_sub:
            message = "Observation requested. It will be confirmed once substitute coverage is approved."
        else:
            message = "Observation scheduled."
        if already_met:
            message += " You have already met this year's observation requirement; this one is a bonus."
        return BookingResult(
            observation_id=observation_id,
            status=observation.status,
            sub_status=observation.sub_status,
            substitute_request_id=substitute_request_id,
            already_met_requirement=already_met,
            message=message,
        )

    # Reschedule and admin edit

    def reschedule_booking(
        self,
        observation_id: str,
        actor: Actor,
        *,
        observation_date: date | None,
        periods: list[int] | None,
        needs_sub: bool | None,
    ) -> Observation:
        return self._update_slot(
            observation_id,
            actor,
            observation_date=observation_date,
            periods=periods,
            needs_sub=needs_sub,
            admin_edit=False,
        )

    def admin_update(
        self,
        observation_id: str,
        actor: Actor,
        *,
        observation_date: date | None,
        periods: list[int] | None,
        needs_sub: bool | None,
        notes: str | None = None,
        notes_set: bool = False,
    ) -> Observation:
        if not actor.is_admin:
            raise AuthorizationError("Only administrators can edit observations")
        return self._update_slot(
            observation_id,
            actor,
            observation_date=observation_date,
            periods=periods,
            needs_sub=needs_sub,
            admin_edit=True,
            notes=notes,
            notes_set=notes_set,
        )

    def _update_slot(
        self,
        observation_id: str,
        actor: Actor,
        *,
        observation_date: date | None,
        periods: list[int] | None,
        needs_sub: bool | None,
        admin_edit: bool,
        notes: str | None = None,
        notes_set: bool = False,
    ) -> Observation:
        observation = self._get_observation(observation_id)
        self._ensure_can_manage(observation, actor, verb="reschedule")
        self._ensure_active(observation)
        observer = self._get_teacher(observation.observer_id)

        def build_request(current: Observation) -> BookingRequest:
            return BookingRequest(
                teacher_id=current.teacher_id,
                observation_date=observation_date or current.observation_date,
                periods=list(periods) if periods else list(current.periods),
                needs_sub=current.needs_sub if needs_sub is None else needs_sub,
            )

        self.validate_booking(observer, build_request(observation), exclude_observation_id=observation.id)

        emails: list[OutgoingEmail] = []
        with self._lock.hold(self._policy.lock_timeout_seconds):
            self._db.refresh(observation)
            self._ensure_active(observation)
            request = build_request(observation)
            validated = self.validate_booking(observer, request, exclude_observation_id=observation.id)

            previous = (observation.observation_date, list(observation.periods), observation.status)
            moved = (validated.observation_date, validated.periods) != previous[:2]
            observation.observation_date = validated.observation_date
            observation.periods = validated.periods
            self._reconcile_substitute(observation, observer, actor, request.needs_sub, moved, emails)
            if admin_edit and notes_set:
                observation.notes = (notes or "").strip() or None

            now = _utc_now()
            if admin_edit:
                observation.modified_at = now
                observation.modified_by = actor.email
            else:
                observation.rescheduled_at = now
                observation.rescheduled_by = actor.email

            calendar_stale = moved or observation.status != previous[2]
            calendar_results: list[SideEffectResult] = []
            if calendar_stale:
                calendar_results = remove_observation_events(self._calendar, observation)
            if moved:
                notify_emails(
                    self._db,
                    emails=[validated.target.email],
                    title="Observation Rescheduled",
                    message=(
                        f"{observer.name} moved their observation of your class to "
                        f"{validated.observation_date.isoformat()}, period {_period_label(validated.periods)}."
                    ),
                    notification_type=NotificationType.booking,
                )
            self._commit()

        self._audit.append(
            "observation.admin_update" if admin_edit else "observation.reschedule",
            actor.email,
            {
                "from_date": previous[0].isoformat(),
                "from_periods": previous[1],
                "date": observation.observation_date.isoformat(),
                "periods": list(observation.periods),
                "needs_sub": observation.needs_sub,
                "calendar": [item.outcome.value for item in calendar_results],
            },
            entity_type="observation",
            entity_id=observation.id,
        )
        if calendar_stale and observation.status == ObservationStatus.confirmed:
            self._publish_events(observation)
        self._notifier.dispatch(emails)
        return observation

    def _reconcile_substitute(
        self,
        observation: Observation,
        observer: Teacher,
        actor: Actor,
        needs_sub: bool,
        moved: bool,
        emails: list[OutgoingEmail],
    ) -> None:
        active = self.substitutes.active_request_for(observation.id)
        if not needs_sub:
            if active is not None:
                self.substitutes.cancel_for_observation(observation, actor.email)
            observation.needs_sub = False
            observation.sub_status = SubStatus.not_needed
            observation.status = ObservationStatus.confirmed
            return

        if active is not None and not moved:
            observation.needs_sub = True
            if active.status == SubstituteRequestStatus.approved:
                observation.sub_status = SubStatus.approved
                observation.status = ObservationStatus.confirmed
            else:
                observation.sub_status = SubStatus.pending
                observation.status = ObservationStatus.pending_sub
            return

        if active is not None:
            self.substitutes.cancel_for_observation(observation, actor.email)
        self.substitutes.open_request(observation, observer)
        target = self._db.get(Teacher, observation.teacher_id)
        if target is not None:
            emails.append(self._coverage_email(observer, target, observation))

    # Cancel and delete

    def cancel_booking(self, observation_id: str, actor: Actor, reason: str | None = None) -> Observation:
        observation = self._get_observation(observation_id)
        self._ensure_can_manage(observation, actor, verb="cancel")
        self._ensure_active(observation)

        emails: list[OutgoingEmail] = []
        with self._lock.hold(self._policy.lock_timeout_seconds):
            self._db.refresh(observation)
            self._ensure_active(observation)

            canceled_request = self.substitutes.cancel_for_observation(observation, actor.email)
            calendar_results = remove_observation_events(self._calendar, observation)

            default_reason = "Canceled by administrator" if actor.is_admin and actor.teacher_id != observation.observer_id else "Canceled by observer"
            observation.status = ObservationStatus.canceled
            observation.canceled_at = _utc_now()
            observation.canceled_by = actor.email
            observation.cancel_reason = (reason or "").strip() or default_reason

            target = self._db.get(Teacher, observation.teacher_id)
            if target is not None:
                notify_emails(
                    self._db,
                    emails=[target.email],
                    title="Observation Canceled",
                    message=(
                        f"The observation of your class on {observation.observation_date.isoformat()} "
                        f"(period {_period_label(observation.periods)}) was canceled."
                    ),
                    notification_type=NotificationType.booking,
                )
                emails.append(
                    OutgoingEmail(
                        to=target.email,
                        subject="Observation canceled",
                        text_body=(
                            f"The observation by {observation.observer_name or 'a colleague'} on "
                            f"{observation.observation_date.isoformat()} (period {_period_label(observation.periods)}) "
                            "has been canceled."
                        ),
                    )
                )
            if canceled_request is not None:
                emails.append(
                    OutgoingEmail(
                        to=self._policy.coverage_coordinator_email,
                        subject="Substitute coverage no longer needed",
                        text_body=(
                            f"{canceled_request.requester_name or canceled_request.requester_email} canceled the "
                            f"observation on {canceled_request.request_date.isoformat()}; coverage for period "
                            f"{_period_label(canceled_request.periods)} is no longer needed."
                        ),
                    )
                )
            self._commit()

        logger.info("Observation %s canceled by %s", observation.id, actor.email)
        self._audit.append(
            "observation.cancel",
            actor.email,
            {
                "reason": observation.cancel_reason,
                "substitute_request_id": canceled_request.id if canceled_request is not None else None,
                "calendar": [item.outcome.value for item in calendar_results],
            },
            entity_type="observation",
            entity_id=observation.id,
        )
        self._notifier.dispatch(emails)
        return observation

    def admin_delete(self, observation_id: str, actor: Actor) -> None:
        if not actor.is_admin:
            raise AuthorizationError("Only administrators can delete observations")
        self._get_observation(observation_id)
        with self._lock.hold(self._policy.lock_timeout_seconds):
            observation = self._get_observation(observation_id)
            calendar_results = remove_observation_events(self._calendar, observation)
            snapshot = {
                "observer_id": observation.observer_id,
                "teacher_id": observation.teacher_id,
                "date": observation.observation_date.isoformat(),
                "periods": list(observation.periods),
                "status": observation.status.value,
                "calendar": [item.outcome.value for item in calendar_results],
            }
            self._db.execute(delete(SubstituteRequest).where(SubstituteRequest.observation_id == observation_id))
            self._db.delete(observation)
            self._commit()
        logger.info("Observation %s deleted by %s", observation_id, actor.email)
        self._audit.append(
            "observation.delete",
            actor.email,
            snapshot,
            entity_type="observation",
            entity_id=observation_id,
        )

    # Helpers

    def _get_observation(self, observation_id: str) -> Observation:
        observation = self._db.get(Observation, observation_id)
        if observation is None:
            raise ResourceNotFoundError("Observation", observation_id)
        return observation

    def _get_teacher(self, teacher_id: str) -> Teacher:
        teacher = self._db.get(Teacher, teacher_id)
        if teacher is None:
            raise ResourceNotFoundError("Teacher", teacher_id)
        return teacher

    @staticmethod
    def _ensure_can_manage(observation: Observation, actor: Actor, *, verb: str) -> None:
        if actor.is_admin:
            return
        if actor.teacher_id is None or actor.teacher_id != observation.observer_id:
            raise AuthorizationError(f"Only the observer or an administrator can {verb} this observation")

    @staticmethod
    def _ensure_active(observation: Observation) -> None:
        if observation.status == ObservationStatus.canceled:
            raise StateConflictError(
                "Observation is already canceled",
                details={"observation_id": observation.id},
            )

    def _commit(self) -> None:
        try:
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            raise

    def _publish_events(self, observation: Observation) -> list[SideEffectResult]:
        return publish_confirmed_events(
            self._db,
            self._calendar,
            observation,
            catalog=self._catalog,
            timezone_name=self._policy.school_timezone,
        )

    def _coverage_email(self, observer: Teacher, target: Teacher, observation: Observation) -> OutgoingEmail:
        return OutgoingEmail(
            to=self._policy.coverage_coordinator_email,
            subject="Substitute coverage requested",
            text_body=(
                f"{observer.name} ({observer.email}) requested substitute coverage for room "
                f"{observer.room or 'TBD'} on {observation.observation_date.isoformat()}, "
                f"period {_period_label(observation.periods)}, to observe {target.name}.\n\n"
                "Please approve or deny the request from the coverage dashboard."
            ),
        )

    @staticmethod
    def _scheduled_email(observer: Teacher, target: Teacher, observation: Observation) -> OutgoingEmail:
        return OutgoingEmail(
            to=target.email,
            subject="You have an upcoming observation",
            text_body=(
                f"{observer.name} will observe your class on {observation.observation_date.isoformat()} "
                f"during period {_period_label(observation.periods)}."
            ),
        )
