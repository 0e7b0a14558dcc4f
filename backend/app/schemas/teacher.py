from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.db.types import normalize_grades
from app.models.teacher import TeacherType
from app.schemas.observation import RequestedPeriods


class TeacherBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    room: str | None = Field(default=None, max_length=50)
    grades: list[str] = Field(default_factory=list)
    teacher_type: TeacherType = TeacherType.classroom
    unavailable_periods: RequestedPeriods = Field(default_factory=list)
    lunch_period: int | None = Field(default=None, ge=1, le=12)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Name cannot be empty")
        return trimmed

    @field_validator("grades", mode="before")
    @classmethod
    def coerce_grades(cls, value):
        return normalize_grades(value)


class TeacherCreate(TeacherBase):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class TeacherUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    room: str | None = Field(default=None, max_length=50)
    grades: list[str] | None = None
    teacher_type: TeacherType | None = None
    unavailable_periods: RequestedPeriods | None = None
    lunch_period: int | None = Field(default=None, ge=1, le=12)
    is_active: bool | None = None

    @field_validator("grades", mode="before")
    @classmethod
    def coerce_grades(cls, value):
        return None if value is None else normalize_grades(value)


class TeacherOut(TeacherBase):
    id: str
    email: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
