from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.api.deps import (
    get_booking_service,
    get_catalog,
    get_current_actor,
    get_current_teacher,
    get_db,
)
from app.core.exceptions import AuthorizationError, ResourceNotFoundError
from app.models.observation import Observation, ObservationStatus
from app.models.teacher import Teacher
from app.models.user import UserRole
from app.schemas.observation import (
    BookingResult,
    ObservationAdminUpdate,
    ObservationCancel,
    ObservationCreate,
    ObservationOut,
    ObservationReschedule,
)
from app.schemas.schedule import SlotAvailability
from app.services.actor import Actor
from app.services.availability import resolve_slots
from app.services.booking import BookingRequest, BookingService
from app.services.catalog import ScheduleCatalog

router = APIRouter()


def _can_view(observation: Observation, actor: Actor) -> bool:
    if actor.role in {UserRole.admin, UserRole.readonly}:
        return True
    return actor.teacher_id in {observation.observer_id, observation.teacher_id}


@router.get("/availability", response_model=list[SlotAvailability])
def get_availability(
    teacher_id: str = Query(max_length=36),
    on_date: date = Query(alias="date"),
    observer: Teacher = Depends(get_current_teacher),
    catalog: ScheduleCatalog = Depends(get_catalog),
    db: Session = Depends(get_db),
) -> list[SlotAvailability]:
    target = db.get(Teacher, teacher_id)
    if target is None or not target.is_active:
        raise ResourceNotFoundError("Teacher", teacher_id)
    return resolve_slots(db, catalog, observer_id=observer.id, target=target, on_date=on_date)


@router.post("", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
def create_observation(
    payload: ObservationCreate,
    actor: Actor = Depends(get_current_actor),
    observer: Teacher = Depends(get_current_teacher),
    service: BookingService = Depends(get_booking_service),
) -> BookingResult:
    request = BookingRequest(
        teacher_id=payload.teacher_id,
        observation_date=payload.observation_date,
        periods=payload.periods,
        needs_sub=payload.needs_sub,
    )
    return service.create_booking(observer, actor, request, notes=payload.notes)


@router.get("", response_model=list[ObservationOut])
def list_observations(
    scope: Literal["mine", "observed", "all"] = Query(default="mine"),
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    include_canceled: bool = Query(default=False),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> list[ObservationOut]:
    query = select(Observation).order_by(Observation.observation_date.asc(), Observation.created_at.asc())
    if scope == "all":
        if actor.role not in {UserRole.admin, UserRole.readonly}:
            raise AuthorizationError("Only administrators can list every observation")
    else:
        if actor.teacher_id is None:
            return []
        if scope == "mine":
            query = query.where(Observation.observer_id == actor.teacher_id)
        else:
            query = query.where(Observation.teacher_id == actor.teacher_id)
    if from_date is not None:
        query = query.where(Observation.observation_date >= from_date)
    if to_date is not None:
        query = query.where(Observation.observation_date <= to_date)
    if not include_canceled:
        query = query.where(Observation.status != ObservationStatus.canceled)
    return list(db.execute(query).scalars())


@router.get("/{observation_id}", response_model=ObservationOut)
def get_observation(
    observation_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> ObservationOut:
    observation = db.get(Observation, observation_id)
    if observation is None:
        raise ResourceNotFoundError("Observation", observation_id)
    if not _can_view(observation, actor):
        raise AuthorizationError("You are not part of this observation")
    return observation


@router.put("/{observation_id}/reschedule", response_model=ObservationOut)
def reschedule_observation(
    observation_id: str,
    payload: ObservationReschedule,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
) -> ObservationOut:
    return service.reschedule_booking(
        observation_id,
        actor,
        observation_date=payload.observation_date,
        periods=payload.periods,
        needs_sub=payload.needs_sub,
    )


@router.post("/{observation_id}/cancel", response_model=ObservationOut)
def cancel_observation(
    observation_id: str,
    payload: ObservationCancel | None = None,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
) -> ObservationOut:
    return service.cancel_booking(observation_id, actor, payload.reason if payload else None)


@router.put("/{observation_id}", response_model=ObservationOut)
def update_observation(
    observation_id: str,
    payload: ObservationAdminUpdate,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
) -> ObservationOut:
    return service.admin_update(
        observation_id,
        actor,
        observation_date=payload.observation_date,
        periods=payload.periods,
        needs_sub=payload.needs_sub,
        notes=payload.notes,
        notes_set="notes" in payload.model_fields_set,
    )


@router.delete("/{observation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_observation(
    observation_id: str,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
) -> Response:
    service.admin_delete(observation_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
