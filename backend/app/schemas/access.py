from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.db.types import normalize_grades
from app.models.access_request import AccessRequestStatus
from app.models.teacher import TeacherType
from app.models.user import UserRole


class AccessRequestCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    requested_role: UserRole = UserRole.teacher
    room: str | None = Field(default=None, max_length=50)
    grades: list[str] = Field(default_factory=list)
    teacher_type: TeacherType = TeacherType.classroom

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Name cannot be empty")
        return trimmed

    @field_validator("requested_role")
    @classmethod
    def reject_admin(cls, value: UserRole) -> UserRole:
        if value == UserRole.admin:
            raise ValueError("Admin access cannot be requested")
        return value

    @field_validator("grades", mode="before")
    @classmethod
    def coerce_grades(cls, value):
        return normalize_grades(value)


class AccessRequestReview(BaseModel):
    note: str | None = Field(default=None, max_length=1000)


class AccessRequestOut(BaseModel):
    id: str
    email: str
    name: str
    requested_role: UserRole
    room: str | None = None
    grades: list[str]
    teacher_type: TeacherType
    status: AccessRequestStatus
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_note: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
