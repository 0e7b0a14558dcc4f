"""create observation scheduler tables

Revision ID: 20261001_0001
Revises: None
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261001_0001"
down_revision = None
branch_labels = None
depends_on = None


user_role_enum = sa.Enum("admin", "teacher", "readonly", name="user_role")
teacher_type_enum = sa.Enum("classroom", "support", name="teacher_type")
observation_status_enum = sa.Enum("confirmed", "pending_sub", "canceled", name="observation_status")
observation_sub_status_enum = sa.Enum("not_needed", "pending", "approved", "denied", name="observation_sub_status")
substitute_request_status_enum = sa.Enum(
    "pending", "approved", "denied", "canceled", name="substitute_request_status"
)
access_request_status_enum = sa.Enum("pending", "approved", "denied", name="access_request_status")
notification_type_enum = sa.Enum("booking", "coverage", "roster", "system", name="notification_type")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "teachers",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("room", sa.String(length=50), nullable=True),
        sa.Column("grades", sa.JSON(), nullable=False),
        sa.Column("teacher_type", teacher_type_enum, nullable=False),
        sa.Column("unavailable_periods", sa.JSON(), nullable=False),
        sa.Column("lunch_period", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_teachers_email", "teachers", ["email"], unique=True)

    op.create_table(
        "bell_schedule_periods",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("cohort", sa.String(length=10), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.UniqueConstraint("cohort", "period", name="uq_bell_schedule_cohort_period"),
    )
    op.create_index("ix_bell_schedule_periods_cohort", "bell_schedule_periods", ["cohort"])

    op.create_table(
        "lunch_periods",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("grade", sa.String(length=20), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),
        sa.UniqueConstraint("grade", "period", name="uq_lunch_period_grade_period"),
    )
    op.create_index("ix_lunch_periods_grade", "lunch_periods", ["grade"])

    op.create_table(
        "observations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("observer_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("observation_date", sa.Date(), nullable=False),
        sa.Column("periods", sa.JSON(), nullable=False),
        sa.Column("needs_sub", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("sub_status", observation_sub_status_enum, nullable=False),
        sa.Column("status", observation_status_enum, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("observer_name", sa.String(length=200), nullable=True),
        sa.Column("teacher_name", sa.String(length=200), nullable=True),
        sa.Column("teacher_room", sa.String(length=50), nullable=True),
        sa.Column("observer_event_id", sa.Text(), nullable=True),
        sa.Column("teacher_event_id", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canceled_by", sa.String(length=255), nullable=True),
        sa.Column("rescheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rescheduled_by", sa.String(length=255), nullable=True),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("modified_by", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_observations_teacher_date", "observations", ["teacher_id", "observation_date"])
    op.create_index("ix_observations_observer_date", "observations", ["observer_id", "observation_date"])
    op.create_index("ix_observations_status", "observations", ["status"])

    op.create_table(
        "substitute_requests",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("observation_id", sa.String(length=36), nullable=False),
        sa.Column("requester_id", sa.String(length=36), nullable=False),
        sa.Column("requester_email", sa.String(length=255), nullable=False),
        sa.Column("requester_name", sa.String(length=200), nullable=True),
        sa.Column("request_date", sa.Date(), nullable=False),
        sa.Column("periods", sa.JSON(), nullable=False),
        sa.Column("status", substitute_request_status_enum, nullable=False),
        sa.Column("reviewed_by", sa.String(length=255), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("denial_reason", sa.Text(), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_substitute_requests_observation_id", "substitute_requests", ["observation_id"])
    op.create_index("ix_substitute_requests_status", "substitute_requests", ["status"])

    op.create_table(
        "access_requests",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("requested_role", user_role_enum, nullable=False),
        sa.Column("room", sa.String(length=50), nullable=True),
        sa.Column("grades", sa.JSON(), nullable=False),
        sa.Column("teacher_type", teacher_type_enum, nullable=False),
        sa.Column("status", access_request_status_enum, nullable=False),
        sa.Column("reviewed_by", sa.String(length=255), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_access_requests_email", "access_requests", ["email"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("actor_email", sa.String(length=255), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_actor_email", "activity_logs", ["actor_email"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("notification_type", notification_type_enum, nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_activity_logs_actor_email", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_access_requests_email", table_name="access_requests")
    op.drop_table("access_requests")
    op.drop_index("ix_substitute_requests_status", table_name="substitute_requests")
    op.drop_index("ix_substitute_requests_observation_id", table_name="substitute_requests")
    op.drop_table("substitute_requests")
    op.drop_index("ix_observations_status", table_name="observations")
    op.drop_index("ix_observations_observer_date", table_name="observations")
    op.drop_index("ix_observations_teacher_date", table_name="observations")
    op.drop_table("observations")
    op.drop_index("ix_lunch_periods_grade", table_name="lunch_periods")
    op.drop_table("lunch_periods")
    op.drop_index("ix_bell_schedule_periods_cohort", table_name="bell_schedule_periods")
    op.drop_table("bell_schedule_periods")
    op.drop_index("ix_teachers_email", table_name="teachers")
    op.drop_table("teachers")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (
        notification_type_enum,
        access_request_status_enum,
        substitute_request_status_enum,
        observation_sub_status_enum,
        observation_status_enum,
        teacher_type_enum,
        user_role_enum,
    ):
        enum.drop(bind, checkfirst=True)
