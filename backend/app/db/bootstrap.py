from __future__ import annotations

import logging

from sqlalchemy import func, inspect, select
from sqlalchemy.orm import Session

from app import models  # noqa: F401
from app.core.config import get_settings
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models.user import User, UserRole
from app.services.catalog import seed_reference_catalog

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "email", "role", "is_active"},
    "teachers": {"id", "email", "grades", "unavailable_periods", "lunch_period", "is_active"},
    "observations": {"id", "observer_id", "teacher_id", "observation_date", "periods", "status", "sub_status"},
    "substitute_requests": {"id", "observation_id", "status", "periods"},
    "bell_schedule_periods": {"id", "cohort", "period", "start_time", "end_time"},
    "lunch_periods": {"id", "grade", "period"},
}


def missing_schema_items(connection) -> tuple[list[str], dict[str, list[str]]]:
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables = sorted(name for name in REQUIRED_COLUMNS if name not in table_names)
    missing_columns: dict[str, list[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(required - existing)
        if missing:
            missing_columns[table_name] = missing
    return missing_tables, missing_columns


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        missing_tables, missing_columns = missing_schema_items(connection)
    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(missing_tables)}")
    if missing_columns:
        flat = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
        raise RuntimeError(f"Missing required columns: {', '.join(flat)}")


def seed_admin_users(db: Session, admin_emails: list[str]) -> int:
    created = 0
    for email in admin_emails:
        existing = db.execute(select(User).where(func.lower(User.email) == email)).scalar_one_or_none()
        if existing is not None:
            if existing.role != UserRole.admin:
                logger.info("Promoting %s to admin from configuration", email)
                existing.role = UserRole.admin
            continue
        db.add(User(name=email.split("@", 1)[0], email=email, role=UserRole.admin, is_active=True))
        created += 1
    return created


def seed_reference_data(db: Session) -> None:
    settings = get_settings()
    if seed_reference_catalog(db):
        logger.info("Seeded default bell schedules and lunch periods")
    created = seed_admin_users(db, settings.admin_emails)
    if created:
        logger.info("Created %d admin user(s) from configuration", created)
    db.commit()


def ensure_runtime_schema() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        _assert_required_columns()
        with SessionLocal() as db:
            seed_reference_data(db)
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema bootstrap failed")
        raise RuntimeError("Runtime schema bootstrap failed") from exc
