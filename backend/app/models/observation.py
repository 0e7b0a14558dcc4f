import uuid
from datetime import date, datetime
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, Enum as SAEnum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import PeriodList


class ObservationStatus(str, Enum):
    confirmed = "confirmed"
    pending_sub = "pending_sub"
    canceled = "canceled"


class SubStatus(str, Enum):
    not_needed = "not_needed"
    pending = "pending"
    approved = "approved"
    denied = "denied"


class Observation(Base):
    __tablename__ = "observations"
    __table_args__ = (
        Index("ix_observations_teacher_date", "teacher_id", "observation_date"),
        Index("ix_observations_observer_date", "observer_id", "observation_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    observer_id: Mapped[str] = mapped_column(String(36), nullable=False)
    teacher_id: Mapped[str] = mapped_column(String(36), nullable=False)
    observation_date: Mapped[date] = mapped_column(Date, nullable=False)
    periods: Mapped[list[int]] = mapped_column(PeriodList, nullable=False, default=list)
    needs_sub: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sub_status: Mapped[SubStatus] = mapped_column(
        SAEnum(SubStatus, name="observation_sub_status"),
        nullable=False,
        default=SubStatus.not_needed,
    )
    status: Mapped[ObservationStatus] = mapped_column(
        SAEnum(ObservationStatus, name="observation_status"),
        nullable=False,
        default=ObservationStatus.confirmed,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Display cache; the roster stays authoritative.
    observer_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    teacher_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    teacher_room: Mapped[str | None] = mapped_column(String(50), nullable=True)

    observer_event_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    teacher_event_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    canceled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    canceled_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rescheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rescheduled_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    modified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    modified_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status != ObservationStatus.canceled
