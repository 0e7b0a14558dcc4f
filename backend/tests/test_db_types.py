import pytest
from sqlalchemy import text

from app.db.types import normalize_grades, normalize_periods
from app.models.teacher import Teacher


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, []),
        (4, [4]),
        (0, []),
        ("3,4", [3, 4]),
        ("4, 3, 3", [3, 4]),
        (["5", "2"], [2, 5]),
        ([3, "3", 1], [1, 3]),
        ("", []),
    ],
)
def test_normalize_periods(raw, expected):
    assert normalize_periods(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, []),
        (6, ["6"]),
        ("7/8", ["7", "8"]),
        ("Grade 6", ["6"]),
        (["8", "7", "Support"], ["7", "8", "support"]),
        ("6; 7 | 8", ["6", "7", "8"]),
    ],
)
def test_normalize_grades(raw, expected):
    assert normalize_grades(raw) == expected


def test_unsupported_period_value_is_rejected():
    with pytest.raises(ValueError):
        normalize_periods({"period": 3})


def test_legacy_rows_are_normalized_on_read(db):
    db.execute(
        text(
            "INSERT INTO teachers (id, email, name, grades, teacher_type, unavailable_periods, is_active) "
            "VALUES (:id, :email, :name, :grades, 'classroom', :periods, 1)"
        ),
        {
            "id": "legacy-1",
            "email": "legacy@lincolnms.org",
            "name": "Legacy Row",
            "grades": '"7/8"',
            "periods": '"5,3"',
        },
    )
    db.commit()

    teacher = db.get(Teacher, "legacy-1")
    assert teacher.grades == ["7", "8"]
    assert teacher.unavailable_periods == [3, 5]


def test_values_are_normalized_on_write(db, make_teacher):
    teacher = make_teacher("writer@lincolnms.org", grades=("8", "7", "7"), unavailable_periods=("4", 2, 4))
    db.expire_all()
    reloaded = db.get(Teacher, teacher.id)
    assert reloaded.grades == ["7", "8"]
    assert reloaded.unavailable_periods == [2, 4]
