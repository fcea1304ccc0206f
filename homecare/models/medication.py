import enum
from sqlalchemy import Boolean, Date, Enum, Float, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import mapped_column, relationship
from .base import Base, UUIDMixin, TimestampMixin


class MedicationPlanStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    ARCHIVED = "archived"


class MedicationPlan(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "medication_plans"

    patient_id = mapped_column(Integer, nullable=False, index=True)
    patient_name = mapped_column(String(128), nullable=True)
    description = mapped_column(String(256), nullable=False, default="")
    plan_start_date = mapped_column(Date, nullable=False)
    plan_end_date = mapped_column(Date, nullable=True)
    status = mapped_column(
        Enum(MedicationPlanStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MedicationPlanStatus.IN_PROGRESS,
    )

    medications = relationship(
        "Medication", back_populates="plan", cascade="all, delete-orphan"
    )


class Medication(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "medications"

    plan_id = mapped_column(ForeignKey("medication_plans.id", ondelete="CASCADE"), nullable=False)
    medicine_name = mapped_column(String(128), nullable=False)
    dosage = mapped_column(String(64), nullable=True)
    date_started = mapped_column(Date, nullable=False)
    date_ended = mapped_column(Date, nullable=True)
    remarks = mapped_column(Text, nullable=True)
    prescription_id = mapped_column(Integer, nullable=True)

    plan = relationship("MedicationPlan", back_populates="medications")
    schedule_rules = relationship(
        "ScheduleRule",
        back_populates="medication",
        cascade="all, delete-orphan",
        order_by="ScheduleRule.rule_order",
    )


class ScheduleRule(Base, UUIDMixin, TimestampMixin):
    """Flat storage row; see services.schedule_rules for the typed form."""

    __tablename__ = "schedule_rules"

    medication_id = mapped_column(ForeignKey("medications.id", ondelete="CASCADE"), nullable=False)
    rule_order = mapped_column(Integer, nullable=False, default=0)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    schedule_kind = mapped_column(String(16), nullable=False)

    dose = mapped_column(Float, nullable=False)
    dose_unit = mapped_column(String(32), nullable=False, default="unit(s)")
    valid_from = mapped_column(Date, nullable=True)
    valid_until = mapped_column(Date, nullable=True)

    parts_of_day = mapped_column(JSON, nullable=True)
    exact_times = mapped_column(JSON, nullable=True)
    weekdays = mapped_column(JSON, nullable=True)
    weekly_time = mapped_column(String(5), nullable=True)
    days_of_month = mapped_column(JSON, nullable=True)
    monthly_time = mapped_column(String(5), nullable=True)
    specific_datetimes = mapped_column(JSON, nullable=True)
    prn_condition = mapped_column(Text, nullable=True)
    prn_max_doses_per_day = mapped_column(Integer, nullable=True)
    prn_min_interval_hours = mapped_column(Float, nullable=True)

    notes = mapped_column(Text, nullable=True)
    created_by = mapped_column(String(64), nullable=True)

    medication = relationship("Medication", back_populates="schedule_rules")
