from pydantic import BaseModel


class BellSlotOut(BaseModel):
    period: int
    start_time: str
    end_time: str


class BellScheduleOut(BaseModel):
    grade: str
    cohort: str
    periods: list[BellSlotOut]


class LunchPeriodsOut(BaseModel):
    grade: str
    periods: list[int]


class SlotAvailability(BaseModel):
    period: int
    start_time: str
    end_time: str
    available: bool
    reason: str | None = None
