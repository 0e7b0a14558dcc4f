import uuid

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class BellSchedulePeriod(Base):
    __tablename__ = "bell_schedule_periods"
    __table_args__ = (UniqueConstraint("cohort", "period", name="uq_bell_schedule_cohort_period"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    cohort: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    period: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)


class LunchPeriod(Base):
    __tablename__ = "lunch_periods"
    __table_args__ = (UniqueConstraint("grade", "period", name="uq_lunch_period_grade_period"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    grade: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    period: Mapped[int] = mapped_column(Integer, nullable=False)
