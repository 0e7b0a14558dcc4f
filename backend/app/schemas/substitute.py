from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from app.models.substitute_request import SubstituteRequestStatus


class SubstituteDecision(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)

    @field_validator("reason")
    @classmethod
    def normalize_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None


class SubstituteRequestOut(BaseModel):
    id: str
    observation_id: str
    requester_id: str
    requester_email: str
    requester_name: str | None = None
    request_date: date
    periods: list[int]
    status: SubstituteRequestStatus
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    denial_reason: str | None = None
    canceled_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
