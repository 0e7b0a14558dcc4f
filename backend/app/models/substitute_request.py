import uuid
from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, Enum as SAEnum, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import PeriodList


class SubstituteRequestStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    denied = "denied"
    canceled = "canceled"


class SubstituteRequest(Base):
    __tablename__ = "substitute_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    observation_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    requester_id: Mapped[str] = mapped_column(String(36), nullable=False)
    requester_email: Mapped[str] = mapped_column(String(255), nullable=False)
    requester_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    periods: Mapped[list[int]] = mapped_column(PeriodList, nullable=False, default=list)
    status: Mapped[SubstituteRequestStatus] = mapped_column(
        SAEnum(SubstituteRequestStatus, name="substitute_request_status"),
        nullable=False,
        default=SubstituteRequestStatus.pending,
        index=True,
    )
    reviewed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    denial_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    canceled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
