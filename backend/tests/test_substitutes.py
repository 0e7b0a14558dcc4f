import pytest
from sqlalchemy import select

from app.core.exceptions import AuthorizationError, ResourceNotFoundError, StateConflictError
from app.models.activity_log import ActivityLog
from app.models.observation import Observation, ObservationStatus, SubStatus
from app.models.substitute_request import SubstituteRequest, SubstituteRequestStatus
from app.models.user import UserRole
from app.services.actor import Actor
from app.services.booking import BookingRequest

from conftest import next_weekday


@pytest.fixture()
def booking(service, make_teacher):
    observer = make_teacher("observer@lincolnms.org", "Olivia Observer")
    target = make_teacher("target@lincolnms.org", "Terry Target")
    actor = Actor(email=observer.email, role=UserRole.teacher, teacher=observer)
    result = service.create_booking(
        observer, actor, BookingRequest(target.id, next_weekday(), [2], needs_sub=True)
    )
    return result, observer


@pytest.fixture()
def admin(make_user):
    user = make_user("principal@lincolnms.org", UserRole.admin)
    return Actor(email=user.email, role=UserRole.admin)


def test_approve_confirms_observation(db, service, booking, admin, calendar, mailer):
    result, observer = booking
    request = service.substitutes.approve(result.substitute_request_id, admin)

    assert request.status == SubstituteRequestStatus.approved
    assert request.reviewed_by == admin.email
    observation = db.get(Observation, result.observation_id)
    assert observation.status == ObservationStatus.confirmed
    assert observation.sub_status == SubStatus.approved
    assert len(calendar.events) == 2
    assert mailer.recipients()[-1] == observer.email


def test_deny_cancels_observation(db, service, booking, admin, mailer):
    result, observer = booking
    request = service.substitutes.deny(result.substitute_request_id, admin, "No substitutes available")

    assert request.status == SubstituteRequestStatus.denied
    assert request.denial_reason == "No substitutes available"
    observation = db.get(Observation, result.observation_id)
    assert observation.status == ObservationStatus.canceled
    assert observation.sub_status == SubStatus.denied
    assert observation.cancel_reason == "Substitute coverage denied"
    assert "No substitutes available" in mailer.sent[-1]["body"]


def test_decisions_are_terminal(db, service, booking, admin, mailer, calendar):
    result, _ = booking
    service.substitutes.approve(result.substitute_request_id, admin)
    sent_before = len(mailer.sent)
    events_before = dict(calendar.events)
    logs_before = len(db.execute(select(ActivityLog)).scalars().all())

    with pytest.raises(StateConflictError) as excinfo:
        service.substitutes.approve(result.substitute_request_id, admin)
    assert excinfo.value.message == "Substitute request is not pending"
    with pytest.raises(StateConflictError):
        service.substitutes.deny(result.substitute_request_id, admin, "too late")

    assert len(mailer.sent) == sent_before
    assert calendar.events == events_before
    assert len(db.execute(select(ActivityLog)).scalars().all()) == logs_before
    assert db.get(SubstituteRequest, result.substitute_request_id).status == SubstituteRequestStatus.approved


def test_denied_request_cannot_be_approved(service, booking, admin):
    result, _ = booking
    service.substitutes.deny(result.substitute_request_id, admin, None)
    with pytest.raises(StateConflictError):
        service.substitutes.approve(result.substitute_request_id, admin)


def test_only_admins_review(service, booking):
    result, observer = booking
    actor = Actor(email=observer.email, role=UserRole.teacher, teacher=observer)
    with pytest.raises(AuthorizationError):
        service.substitutes.approve(result.substitute_request_id, actor)


def test_missing_request(service, admin):
    with pytest.raises(ResourceNotFoundError):
        service.substitutes.deny("does-not-exist", admin, None)


def test_list_requests_filters_by_status(service, booking, admin):
    result, _ = booking
    assert [item.id for item in service.substitutes.list_requests(SubstituteRequestStatus.pending)] == [
        result.substitute_request_id
    ]
    service.substitutes.approve(result.substitute_request_id, admin)
    assert service.substitutes.list_requests(SubstituteRequestStatus.pending) == []
    assert len(service.substitutes.list_requests()) == 1
