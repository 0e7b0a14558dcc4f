from __future__ import annotations

from dataclasses import dataclass

from app.models.teacher import Teacher
from app.models.user import User, UserRole


@dataclass(frozen=True)
class Actor:
    """Caller identity as seen by the services: verified email, role and roster row."""

    email: str
    role: UserRole
    teacher: Teacher | None = None

    @classmethod
    def from_user(cls, user: User, teacher: Teacher | None = None) -> "Actor":
        return cls(email=user.email.lower(), role=user.role, teacher=teacher)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    @property
    def teacher_id(self) -> str | None:
        return self.teacher.id if self.teacher is not None else None
