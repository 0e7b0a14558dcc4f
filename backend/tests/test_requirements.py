from datetime import date

from app.core.policy import SchedulingPolicy
from app.models.observation import Observation, ObservationStatus
from app.services.requirements import requirement_dashboard, requirement_status


def _observation(db, observer, teacher, on_date, status=ObservationStatus.confirmed):
    db.add(
        Observation(
            observer_id=observer.id,
            teacher_id=teacher.id,
            observation_date=on_date,
            periods=[1],
            status=status,
        )
    )
    db.commit()


def test_school_year_window():
    policy = SchedulingPolicy()
    assert policy.school_year_window(date(2026, 10, 19)) == (date(2026, 8, 1), date(2027, 5, 31))
    assert policy.school_year_window(date(2027, 3, 2)) == (date(2026, 8, 1), date(2027, 5, 31))
    assert policy.school_year_window(date(2027, 8, 1)) == (date(2027, 8, 1), date(2028, 5, 31))


def test_configured_deadline():
    policy = SchedulingPolicy(requirement_deadline_month=6, requirement_deadline_day=15)
    assert policy.school_year_window(date(2026, 9, 1))[1] == date(2027, 6, 15)


def test_requirement_counts_only_current_year_as_observer(db, policy, make_teacher):
    observer = make_teacher("observer@lincolnms.org")
    target = make_teacher("target@lincolnms.org")

    status = requirement_status(db, observer.id, policy)
    assert status.count == 0
    assert status.has_met_requirement is False
    assert status.deadline == date(2027, 5, 31)
    assert status.days_remaining == (date(2027, 5, 31) - date(2026, 10, 19)).days

    _observation(db, observer, target, date(2026, 5, 20))
    _observation(db, observer, target, date(2026, 11, 3), status=ObservationStatus.canceled)
    _observation(db, target, observer, date(2026, 11, 4))
    assert requirement_status(db, observer.id, policy).count == 0

    _observation(db, observer, target, date(2026, 9, 14))
    status = requirement_status(db, observer.id, policy)
    assert status.count == 1
    assert status.has_met_requirement is True


def test_past_deadline(db, policy, make_teacher):
    observer = make_teacher("observer@lincolnms.org")
    status = requirement_status(db, observer.id, policy, today=date(2027, 6, 10))
    assert status.is_past_deadline is True
    assert status.days_remaining == 0


def test_dashboard_lists_active_teachers(db, policy, make_teacher):
    observer = make_teacher("amy@lincolnms.org", "Amy")
    target = make_teacher("ben@lincolnms.org", "Ben")
    make_teacher("gone@lincolnms.org", "Gone", is_active=False)
    _observation(db, observer, target, date(2026, 10, 1))

    rows = requirement_dashboard(db, policy)
    assert [row.teacher_name for row in rows] == ["Amy", "Ben"]
    assert rows[0].has_met_requirement is True
    assert rows[1].count == 0
