import enum
from sqlalchemy import Date, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import mapped_column, relationship
from .base import Base, UUIDMixin, TimestampMixin


class OptimizationStatus(str, enum.Enum):
    PENDING = "pending"
    OPTIMIZED = "optimized"
    MANUAL = "manual"


class EventState(int, enum.Enum):
    WAITING = 1
    VALID = 2
    DONE = 3
    IGNORED = 4
    NOT_DONE = 5
    CANCELLED = 6


class Tour(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "tours"

    name = mapped_column(String(128), nullable=True)
    employee_id = mapped_column(Integer, nullable=False, index=True)
    employee_name = mapped_column(String(128), nullable=True)
    date = mapped_column(Date, nullable=False)
    time_start = mapped_column(String(5), nullable=True)
    time_end = mapped_column(String(5), nullable=True)
    break_duration_minutes = mapped_column(Integer, nullable=False, default=0)
    total_distance_km = mapped_column(Float, nullable=True)
    estimated_duration_minutes = mapped_column(Integer, nullable=True)
    optimization_status = mapped_column(
        Enum(OptimizationStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OptimizationStatus.MANUAL,
    )

    events = relationship("Event", back_populates="tour", order_by="Event.time_start")


class Event(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "events"

    patient_id = mapped_column(Integer, nullable=False, index=True)
    patient_name = mapped_column(String(128), nullable=True)
    employee_id = mapped_column(Integer, nullable=True)
    date = mapped_column(Date, nullable=False, index=True)
    time_start = mapped_column(String(5), nullable=False)
    time_end = mapped_column(String(5), nullable=False)
    state = mapped_column(Integer, nullable=False, default=EventState.WAITING.value)
    event_type = mapped_column(String(32), nullable=True)
    event_address = mapped_column(String(256), nullable=True)
    notes = mapped_column(Text, nullable=True)
    tour_id = mapped_column(ForeignKey("tours.id", ondelete="SET NULL"), nullable=True)

    tour = relationship("Tour", back_populates="events")
