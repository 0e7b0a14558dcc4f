from app.models.schedule import BellSchedulePeriod
from app.models.teacher import Teacher, TeacherType
from app.services.catalog import ScheduleCatalog, cohort_for_grade, load_catalog, seed_reference_catalog


def _teacher(**kwargs) -> Teacher:
    values = {
        "email": "t@lincolnms.org",
        "name": "T",
        "grades": ["7"],
        "teacher_type": TeacherType.classroom,
        "unavailable_periods": [],
        "lunch_period": None,
    }
    values.update(kwargs)
    return Teacher(**values)


def test_cohort_for_grade():
    assert cohort_for_grade("6") == "6"
    assert cohort_for_grade(6) == "6"
    assert cohort_for_grade("7") == "7"
    assert cohort_for_grade("8") == "7"
    assert cohort_for_grade("support") == "7"
    assert cohort_for_grade(None) == "7"


def test_bell_schedule_by_cohort():
    catalog = ScheduleCatalog()
    sixth = catalog.bell_schedule("6")
    upper = catalog.bell_schedule("8")
    assert [slot.period for slot in sixth] == [1, 2, 3, 4, 5, 6, 7]
    assert [slot.period for slot in upper] == [1, 2, 3, 4, 5, 6, 7, 8]
    assert (upper[2].start_time, upper[2].end_time) == ("09:48", "10:38")


def test_cohort_for_teacher_uses_lowest_grade():
    catalog = ScheduleCatalog()
    assert catalog.cohort_for_teacher(_teacher(grades=["6", "7"])) == "6"
    assert catalog.cohort_for_teacher(_teacher(grades=["8"])) == "7"
    assert catalog.cohort_for_teacher(_teacher(grades=["support"])) == "7"


def test_unavailable_periods_precedence():
    catalog = ScheduleCatalog()
    explicit = _teacher(unavailable_periods=[2], lunch_period=5, grades=["6"])
    legacy = _teacher(lunch_period=5, grades=["6"])
    by_grade = _teacher(grades=["6", "8"])
    assert catalog.unavailable_periods(explicit) == frozenset({2})
    assert catalog.unavailable_periods(legacy) == frozenset({5})
    assert catalog.unavailable_periods(by_grade) == frozenset({4, 6})


def test_support_teachers_have_no_restrictions():
    catalog = ScheduleCatalog()
    support = _teacher(teacher_type=TeacherType.support, unavailable_periods=[1, 2], lunch_period=5)
    assert catalog.unavailable_periods(support) == frozenset()


def test_load_catalog_reads_reference_tables(db):
    row = db.query(BellSchedulePeriod).filter_by(cohort="7", period=1).one()
    row.start_time = "07:45"
    db.commit()

    catalog = load_catalog(db)
    assert catalog.bell_schedule("7")[0].start_time == "07:45"
    assert catalog.lunch_periods("7") == frozenset({5})


def test_seed_is_idempotent(db):
    assert seed_reference_catalog(db) is False
    assert db.query(BellSchedulePeriod).count() == 15
