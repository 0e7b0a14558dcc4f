from pydantic import BaseModel

from app.models.user import UserRole


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole
    is_active: bool
    teacher_id: str | None = None

    model_config = {"from_attributes": True}
