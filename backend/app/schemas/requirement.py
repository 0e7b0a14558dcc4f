from datetime import date

from pydantic import BaseModel


class RequirementStatus(BaseModel):
    count: int
    has_met_requirement: bool
    days_remaining: int
    is_past_deadline: bool
    school_year_start: date
    deadline: date


class TeacherRequirementOut(RequirementStatus):
    teacher_id: str
    teacher_name: str
    teacher_email: str
