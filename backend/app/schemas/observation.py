from datetime import date, datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field

from app.models.observation import ObservationStatus, SubStatus


def _reject_duplicates(value: list[int]) -> list[int]:
    if len(set(value)) != len(value):
        raise ValueError("Each period may only be listed once")
    return value


# Periods in requests are taken exactly as sent; legacy cleanup only applies to stored rows.
Period = Annotated[int, Field(strict=True, ge=1, le=12)]
RequestedPeriods = Annotated[list[Period], Field(max_length=12), AfterValidator(_reject_duplicates)]


class ObservationCreate(BaseModel):
    teacher_id: str | None = Field(default=None, max_length=36)
    observation_date: date | None = None
    periods: RequestedPeriods = Field(default_factory=list)
    needs_sub: bool = False
    notes: str | None = Field(default=None, max_length=1000)


class ObservationReschedule(BaseModel):
    observation_date: date | None = None
    periods: RequestedPeriods = Field(default_factory=list)
    needs_sub: bool | None = None


class ObservationAdminUpdate(BaseModel):
    observation_date: date | None = None
    periods: RequestedPeriods | None = None
    needs_sub: bool | None = None
    notes: str | None = Field(default=None, max_length=1000)


class ObservationCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class ObservationOut(BaseModel):
    id: str
    observer_id: str
    teacher_id: str
    observation_date: date
    periods: list[int]
    needs_sub: bool
    sub_status: SubStatus
    status: ObservationStatus
    notes: str | None = None
    cancel_reason: str | None = None
    observer_name: str | None = None
    teacher_name: str | None = None
    teacher_room: str | None = None
    observer_event_id: str | None = None
    teacher_event_id: str | None = None
    created_at: datetime
    created_by: str | None = None
    canceled_at: datetime | None = None
    canceled_by: str | None = None
    rescheduled_at: datetime | None = None
    rescheduled_by: str | None = None
    modified_at: datetime | None = None
    modified_by: str | None = None

    model_config = {"from_attributes": True}


class BookingResult(BaseModel):
    success: bool = True
    observation_id: str
    status: ObservationStatus
    sub_status: SubStatus
    substitute_request_id: str | None = None
    already_met_requirement: bool
    message: str
