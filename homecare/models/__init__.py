from .base import Base
from .medication import MedicationPlan, MedicationPlanStatus, Medication, ScheduleRule
from .care_plan import CarePlanDetail, CareItem
from .tour import Tour, Event, EventState, OptimizationStatus
from .audit import AuditEvent, AuditAction

__all__ = [
    "Base",
    "MedicationPlan",
    "MedicationPlanStatus",
    "Medication",
    "ScheduleRule",
    "CarePlanDetail",
    "CareItem",
    "Tour",
    "Event",
    "EventState",
    "OptimizationStatus",
    "AuditEvent",
    "AuditAction",
]
