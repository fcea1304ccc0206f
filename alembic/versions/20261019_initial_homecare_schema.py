"""Create medication plan, schedule rule, care plan, tour and audit tables.

Revision ID: 20261019_initial_homecare
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.sql import func
from sqlalchemy.dialects import postgresql


revision = "20261019_initial_homecare"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_type(bind):
    if bind.dialect.name == "postgresql":
        return postgresql.UUID(as_uuid=True)
    return sa.Uuid(as_uuid=True)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    if "medication_plans" not in tables:
        op.create_table(
            "medication_plans",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("patient_id", sa.Integer(), nullable=False, index=True),
            sa.Column("patient_name", sa.String(length=128), nullable=True),
            sa.Column("description", sa.String(length=256), nullable=False, server_default=""),
            sa.Column("plan_start_date", sa.Date(), nullable=False),
            sa.Column("plan_end_date", sa.Date(), nullable=True),
            sa.Column(
                "status",
                sa.Enum("in_progress", "archived", name="medicationplanstatus"),
                nullable=False,
                server_default="in_progress",
            ),
            *_timestamps(),
        )

    if "medications" not in tables:
        op.create_table(
            "medications",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("plan_id", _uuid_type(bind), nullable=False),
            sa.Column("medicine_name", sa.String(length=128), nullable=False),
            sa.Column("dosage", sa.String(length=64), nullable=True),
            sa.Column("date_started", sa.Date(), nullable=False),
            sa.Column("date_ended", sa.Date(), nullable=True),
            sa.Column("remarks", sa.Text(), nullable=True),
            sa.Column("prescription_id", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["plan_id"], ["medication_plans.id"], ondelete="CASCADE"),
        )

    if "schedule_rules" not in tables:
        op.create_table(
            "schedule_rules",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("medication_id", _uuid_type(bind), nullable=False),
            sa.Column("rule_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("schedule_kind", sa.String(length=16), nullable=False),
            sa.Column("dose", sa.Float(), nullable=False),
            sa.Column("dose_unit", sa.String(length=32), nullable=False, server_default="unit(s)"),
            sa.Column("valid_from", sa.Date(), nullable=True),
            sa.Column("valid_until", sa.Date(), nullable=True),
            sa.Column("parts_of_day", sa.JSON(), nullable=True),
            sa.Column("exact_times", sa.JSON(), nullable=True),
            sa.Column("weekdays", sa.JSON(), nullable=True),
            sa.Column("weekly_time", sa.String(length=5), nullable=True),
            sa.Column("days_of_month", sa.JSON(), nullable=True),
            sa.Column("monthly_time", sa.String(length=5), nullable=True),
            sa.Column("specific_datetimes", sa.JSON(), nullable=True),
            sa.Column("prn_condition", sa.Text(), nullable=True),
            sa.Column("prn_max_doses_per_day", sa.Integer(), nullable=True),
            sa.Column("prn_min_interval_hours", sa.Float(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_by", sa.String(length=64), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["medication_id"], ["medications.id"], ondelete="CASCADE"),
        )

    if "care_plan_details" not in tables:
        op.create_table(
            "care_plan_details",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("care_plan_id", sa.Integer(), nullable=False, index=True),
            sa.Column("name", sa.String(length=128), nullable=False),
            sa.Column("time_start", sa.String(length=5), nullable=False),
            sa.Column("time_end", sa.String(length=5), nullable=False),
            sa.Column("occurrences", sa.JSON(), nullable=False),
            *_timestamps(),
        )

    if "care_items" not in tables:
        op.create_table(
            "care_items",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("detail_id", _uuid_type(bind), nullable=False),
            sa.Column("code", sa.String(length=32), nullable=False),
            sa.Column("description", sa.String(length=256), nullable=True),
            sa.Column("weekly_package_minutes", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            sa.ForeignKeyConstraint(["detail_id"], ["care_plan_details.id"], ondelete="CASCADE"),
        )

    if "tours" not in tables:
        op.create_table(
            "tours",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("name", sa.String(length=128), nullable=True),
            sa.Column("employee_id", sa.Integer(), nullable=False, index=True),
            sa.Column("employee_name", sa.String(length=128), nullable=True),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("time_start", sa.String(length=5), nullable=True),
            sa.Column("time_end", sa.String(length=5), nullable=True),
            sa.Column("break_duration_minutes", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total_distance_km", sa.Float(), nullable=True),
            sa.Column("estimated_duration_minutes", sa.Integer(), nullable=True),
            sa.Column(
                "optimization_status",
                sa.Enum("pending", "optimized", "manual", name="optimizationstatus"),
                nullable=False,
                server_default="manual",
            ),
            *_timestamps(),
        )

    if "events" not in tables:
        op.create_table(
            "events",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("patient_id", sa.Integer(), nullable=False, index=True),
            sa.Column("patient_name", sa.String(length=128), nullable=True),
            sa.Column("employee_id", sa.Integer(), nullable=True),
            sa.Column("date", sa.Date(), nullable=False, index=True),
            sa.Column("time_start", sa.String(length=5), nullable=False),
            sa.Column("time_end", sa.String(length=5), nullable=False),
            sa.Column("state", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("event_type", sa.String(length=32), nullable=True),
            sa.Column("event_address", sa.String(length=256), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("tour_id", _uuid_type(bind), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["tour_id"], ["tours.id"], ondelete="SET NULL"),
        )

    if "audit_events" not in tables:
        op.create_table(
            "audit_events",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("actor", sa.String(length=64), nullable=False),
            sa.Column(
                "action",
                sa.Enum("VIEW", "CREATE", "UPDATE", "DELETE", name="auditaction"),
                nullable=False,
            ),
            sa.Column("entity_type", sa.String(length=64), nullable=False),
            sa.Column("entity_id", sa.String(length=64), nullable=False),
            sa.Column("request_id", sa.String(length=64), nullable=False, server_default=""),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    for table in (
        "audit_events",
        "events",
        "tours",
        "care_items",
        "care_plan_details",
        "schedule_rules",
        "medications",
        "medication_plans",
    ):
        if table in tables:
            op.drop_table(table)
