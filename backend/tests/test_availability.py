from app.models.observation import Observation, ObservationStatus
from app.services.availability import (
    REASON_ALREADY_OBSERVED,
    REASON_OBSERVER_BUSY,
    REASON_OBSERVER_OBSERVED,
    REASON_TEACHER_UNAVAILABLE,
    resolve_slots,
)
from app.services.catalog import ScheduleCatalog

from conftest import next_weekday


def _book(db, observer, teacher, on_date, periods, status=ObservationStatus.confirmed):
    observation = Observation(
        observer_id=observer.id,
        teacher_id=teacher.id,
        observation_date=on_date,
        periods=periods,
        status=status,
    )
    db.add(observation)
    db.commit()
    return observation


def _reasons(slots):
    return {slot.period: slot.reason for slot in slots}


def test_open_day_lists_cohort_schedule_with_lunch_blocked(db, make_teacher):
    observer = make_teacher("obs@lincolnms.org")
    target = make_teacher("target@lincolnms.org", grades=("6",))
    slots = resolve_slots(db, ScheduleCatalog(), observer_id=observer.id, target=target, on_date=next_weekday())

    assert [slot.period for slot in slots] == [1, 2, 3, 4, 5, 6, 7]
    reasons = _reasons(slots)
    assert reasons[4] == REASON_TEACHER_UNAVAILABLE
    assert all(slot.available for slot in slots if slot.period != 4)
    assert slots[0].start_time == "08:00"


def test_reason_priority(db, make_teacher):
    on_date = next_weekday()
    observer = make_teacher("obs@lincolnms.org")
    target = make_teacher("target@lincolnms.org", unavailable_periods=(1, 2))
    other = make_teacher("other@lincolnms.org")

    # Period 1: unavailable and already observed; unavailability wins.
    _book(db, other, target, on_date, [1, 3])
    # Period 3 also collides with the observer's own booking; the target's observer wins.
    _book(db, observer, other, on_date, [3, 6])
    _book(db, other, observer, on_date, [7])

    reasons = _reasons(
        resolve_slots(db, ScheduleCatalog(), observer_id=observer.id, target=target, on_date=on_date)
    )
    assert reasons[1] == REASON_TEACHER_UNAVAILABLE
    assert reasons[2] == REASON_TEACHER_UNAVAILABLE
    assert reasons[3] == REASON_ALREADY_OBSERVED
    assert reasons[6] == REASON_OBSERVER_BUSY
    assert reasons[7] == REASON_OBSERVER_OBSERVED
    assert reasons[4] is None
    assert reasons[8] is None


def test_canceled_observations_do_not_block(db, make_teacher):
    on_date = next_weekday()
    observer = make_teacher("obs@lincolnms.org")
    target = make_teacher("target@lincolnms.org")
    _book(db, observer, target, on_date, [2], status=ObservationStatus.canceled)

    reasons = _reasons(
        resolve_slots(db, ScheduleCatalog(), observer_id=observer.id, target=target, on_date=on_date)
    )
    assert reasons[2] is None


def test_other_dates_do_not_block(db, make_teacher):
    on_date = next_weekday()
    observer = make_teacher("obs@lincolnms.org")
    target = make_teacher("target@lincolnms.org")
    _book(db, observer, target, next_weekday(2), [2])

    reasons = _reasons(
        resolve_slots(db, ScheduleCatalog(), observer_id=observer.id, target=target, on_date=on_date)
    )
    assert reasons[2] is None
