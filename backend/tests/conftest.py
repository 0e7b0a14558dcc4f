import os

# Settings are read on first import of the app; keep tests off the production database.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from datetime import date, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_calendar_client, get_db, get_notifier, get_policy  # noqa: E402
from app.core.policy import SchedulingPolicy  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.teacher import Teacher, TeacherType  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.services.booking import BookingService  # noqa: E402
from app.services.booking_lock import BookingLock  # noqa: E402
from app.services.calendar import CalendarError  # noqa: E402
from app.services.catalog import ScheduleCatalog, seed_reference_catalog  # noqa: E402
from app.services.email import EmailDeliveryError  # noqa: E402
from app.services.notifications import Notifier  # noqa: E402

# Monday; the fixed "today" for every test.
TODAY = date(2026, 10, 19)
COORDINATOR_EMAIL = "coverage@lincolnms.org"


def next_weekday(offset_days: int = 1) -> date:
    day = TODAY + timedelta(days=offset_days)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


class RecordingSender:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False

    def __call__(self, *, to_email: str, subject: str, text_content: str, html_content=None) -> None:
        if self.fail:
            raise EmailDeliveryError("SMTP connection failed")
        self.sent.append({"to": to_email, "subject": subject, "body": text_content})

    def recipients(self) -> list[str]:
        return [item["to"] for item in self.sent]


class FakeCalendar:
    enabled = True

    def __init__(self) -> None:
        self.events: dict[str, dict] = {}
        self.deleted: list[str] = []
        self.fail = False
        self._counter = 0

    def create_event(self, title, start, end, attendees, description) -> str:
        if self.fail:
            raise CalendarError("Calendar event creation failed (500)")
        self._counter += 1
        event_id = f"evt-{self._counter}"
        self.events[event_id] = {"title": title, "start": start, "end": end, "attendees": list(attendees)}
        return event_id

    def delete_event(self, event_id: str) -> None:
        if self.fail:
            raise CalendarError("Calendar event deletion failed (500)")
        self.deleted.append(event_id)
        self.events.pop(event_id, None)

    def default_calendar(self) -> str | None:
        return "calendar-1"


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    with TestingSessionLocal() as seed_session:
        seed_reference_catalog(seed_session)
        seed_session.commit()
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def policy() -> SchedulingPolicy:
    return SchedulingPolicy(
        lock_timeout_seconds=0.2,
        coverage_coordinator_email=COORDINATOR_EMAIL,
        fixed_today=TODAY,
    )


@pytest.fixture()
def mailer() -> RecordingSender:
    return RecordingSender()


@pytest.fixture()
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture()
def lock() -> BookingLock:
    return BookingLock()


@pytest.fixture()
def service(db, policy, mailer, calendar, lock) -> BookingService:
    return BookingService(
        db,
        catalog=ScheduleCatalog(),
        policy=policy,
        notifier=Notifier(sender=mailer),
        calendar=calendar,
        lock=lock,
    )


@pytest.fixture()
def make_teacher(db):
    def factory(
        email: str,
        name: str | None = None,
        *,
        grades=("7",),
        teacher_type: TeacherType = TeacherType.classroom,
        unavailable_periods=(),
        lunch_period: int | None = None,
        room: str | None = "101",
        role: UserRole = UserRole.teacher,
        is_active: bool = True,
    ) -> Teacher:
        teacher = Teacher(
            email=email,
            name=name or email.split("@", 1)[0].title(),
            room=room,
            grades=list(grades),
            teacher_type=teacher_type,
            unavailable_periods=list(unavailable_periods),
            lunch_period=lunch_period,
            is_active=is_active,
        )
        db.add(teacher)
        db.add(User(name=teacher.name, email=email, role=role, is_active=True))
        db.commit()
        db.refresh(teacher)
        return teacher

    return factory


@pytest.fixture()
def make_user(db):
    def factory(email: str, role: UserRole = UserRole.admin) -> User:
        user = User(name=email.split("@", 1)[0].title(), email=email, role=role, is_active=True)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return factory


def auth_headers(email: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(email)}"}


@pytest.fixture()
def client(session_factory, policy, mailer, calendar):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_policy] = lambda: policy
    app.dependency_overrides[get_notifier] = lambda: Notifier(sender=mailer)
    app.dependency_overrides[get_calendar_client] = lambda: calendar

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
