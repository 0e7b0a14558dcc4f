import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import GradeList, PeriodList


class TeacherType(str, Enum):
    classroom = "classroom"
    support = "support"


class Teacher(Base):
    __tablename__ = "teachers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    room: Mapped[str | None] = mapped_column(String(50), nullable=True)
    grades: Mapped[list[str]] = mapped_column(GradeList, nullable=False, default=list)
    teacher_type: Mapped[TeacherType] = mapped_column(
        SAEnum(TeacherType, name="teacher_type"),
        nullable=False,
        default=TeacherType.classroom,
    )
    unavailable_periods: Mapped[list[int]] = mapped_column(PeriodList, nullable=False, default=list)
    # Single lunch period carried over from the original roster sheet.
    lunch_period: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_support(self) -> bool:
        return self.teacher_type == TeacherType.support
