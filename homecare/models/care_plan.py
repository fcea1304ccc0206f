from sqlalchemy import ForeignKey, Integer, JSON, String
from sqlalchemy.orm import mapped_column, relationship
from .base import Base, UUIDMixin, TimestampMixin


class CarePlanDetail(Base, UUIDMixin, TimestampMixin):
    """One recurring care session of a CNS care plan."""

    __tablename__ = "care_plan_details"

    care_plan_id = mapped_column(Integer, nullable=False, index=True)
    name = mapped_column(String(128), nullable=False)
    time_start = mapped_column(String(5), nullable=False)
    time_end = mapped_column(String(5), nullable=False)
    # [{"name": "Lundi", "value": "1"}, {"name": "Tous les jours", "value": "*"}]
    occurrences = mapped_column(JSON, nullable=False, default=list)

    care_items = relationship(
        "CareItem", back_populates="detail", cascade="all, delete-orphan"
    )


class CareItem(Base, UUIDMixin):
    __tablename__ = "care_items"

    detail_id = mapped_column(ForeignKey("care_plan_details.id", ondelete="CASCADE"), nullable=False)
    code = mapped_column(String(32), nullable=False)
    description = mapped_column(String(256), nullable=True)
    weekly_package_minutes = mapped_column(Integer, nullable=False, default=0)
    quantity = mapped_column(Integer, nullable=False, default=1)

    detail = relationship("CarePlanDetail", back_populates="care_items")
