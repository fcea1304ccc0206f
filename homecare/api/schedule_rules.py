from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.audit import AuditAction
from ..models.medication import Medication, ScheduleRule
from ..services.audit_logger import create_audit_event
from ..services.dose_schedule import describe_rule, due_doses_between
from ..services.schedule_rules import (
    PAYLOAD_FIELDS,
    build_schedule_rule,
    rule_from_row,
    rule_to_fields,
    validate_schedule_rule,
)
from .schemas import ScheduleRuleRequest

router = APIRouter(tags=["schedule-rules"])

MAX_DUE_DOSE_RANGE_DAYS = 366


def _actor(request: Request) -> str:
    return request.headers.get("X-Actor", "SYSTEM")


def _get_medication(db: Session, plan_id: UUID, medication_id: UUID) -> Medication:
    medication = db.query(Medication).filter_by(id=medication_id, plan_id=plan_id).first()
    if not medication:
        raise HTTPException(status_code=404, detail="Medication not found")
    return medication


def _get_rule(db: Session, medication: Medication, rule_id: UUID) -> ScheduleRule:
    rule = db.query(ScheduleRule).filter_by(id=rule_id, medication_id=medication.id).first()
    if not rule:
        raise HTTPException(status_code=404, detail="Schedule rule not found")
    return rule


def _serialize(row: ScheduleRule) -> dict:
    data = {
        "id": str(row.id),
        "medication_id": str(row.medication_id),
        "schedule_kind": row.schedule_kind,
        "rule_order": row.rule_order,
        "is_active": row.is_active,
        "dose": row.dose,
        "dose_unit": row.dose_unit,
        "valid_from": row.valid_from,
        "valid_until": row.valid_until,
        "notes": row.notes,
        "description": describe_rule(rule_from_row(row)),
    }
    data.update({name: getattr(row, name) for name in PAYLOAD_FIELDS})
    return data


def _validation_error(errors: dict[str, str]) -> JSONResponse:
    return JSONResponse(status_code=422, content={"errors": errors})


@router.get("/medication-plans/{plan_id}/medications/{medication_id}/schedule-rules")
def list_schedule_rules(plan_id: UUID, medication_id: UUID, db: Session = Depends(get_db)):
    medication = _get_medication(db, plan_id, medication_id)
    return [_serialize(row) for row in medication.schedule_rules]


@router.post(
    "/medication-plans/{plan_id}/medications/{medication_id}/schedule-rules",
    status_code=201,
)
def create_schedule_rule(
    plan_id: UUID,
    medication_id: UUID,
    payload: ScheduleRuleRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    medication = _get_medication(db, plan_id, medication_id)
    data = payload.model_dump(exclude_unset=True)
    errors = validate_schedule_rule(data)
    if errors:
        return _validation_error(errors)

    rule = build_schedule_rule(data)
    row = ScheduleRule(
        medication_id=medication.id, created_by=_actor(request), **rule_to_fields(rule)
    )
    db.add(row)
    db.flush()
    create_audit_event(
        db,
        actor=_actor(request),
        action=AuditAction.CREATE,
        entity_type="ScheduleRule",
        entity_id=str(row.id),
        details={"medication_id": str(medication.id), "schedule_kind": rule.kind.value},
        request=request,
        commit=False,
    )
    db.commit()
    return _serialize(row)


@router.put("/medication-plans/{plan_id}/medications/{medication_id}/schedule-rules/{rule_id}")
def update_schedule_rule(
    plan_id: UUID,
    medication_id: UUID,
    rule_id: UUID,
    payload: ScheduleRuleRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    medication = _get_medication(db, plan_id, medication_id)
    row = _get_rule(db, medication, rule_id)
    data = payload.model_dump(exclude_unset=True)
    errors = validate_schedule_rule(data)
    if errors:
        return _validation_error(errors)

    rule = build_schedule_rule(data)
    previous_kind = row.schedule_kind
    for name, value in rule_to_fields(rule).items():
        setattr(row, name, value)
    create_audit_event(
        db,
        actor=_actor(request),
        action=AuditAction.UPDATE,
        entity_type="ScheduleRule",
        entity_id=str(row.id),
        details={"previous_kind": previous_kind, "schedule_kind": rule.kind.value},
        request=request,
        commit=False,
    )
    db.commit()
    return _serialize(row)


@router.delete("/medication-plans/{plan_id}/medications/{medication_id}/schedule-rules/{rule_id}")
def delete_schedule_rule(
    plan_id: UUID,
    medication_id: UUID,
    rule_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
):
    medication = _get_medication(db, plan_id, medication_id)
    row = _get_rule(db, medication, rule_id)
    db.delete(row)
    create_audit_event(
        db,
        actor=_actor(request),
        action=AuditAction.DELETE,
        entity_type="ScheduleRule",
        entity_id=str(rule_id),
        details={"medication_id": str(medication.id)},
        request=request,
        commit=False,
    )
    db.commit()
    return {"id": str(rule_id), "deleted": True}


@router.get("/medications/{medication_id}/due-doses")
def medication_due_doses(
    medication_id: UUID,
    start: date = Query(...),
    end: date = Query(...),
    db: Session = Depends(get_db),
):
    medication = db.query(Medication).filter_by(id=medication_id).first()
    if not medication:
        raise HTTPException(status_code=404, detail="Medication not found")
    if end < start:
        raise HTTPException(status_code=422, detail="end must be on or after start")
    if (end - start).days > MAX_DUE_DOSE_RANGE_DAYS:
        raise HTTPException(status_code=422, detail="Date range too large")

    # Doses are only due while the medication itself is being taken.
    if medication.date_started and start < medication.date_started:
        start = medication.date_started
    if medication.date_ended and end > medication.date_ended:
        end = medication.date_ended

    rules = [rule_from_row(row) for row in medication.schedule_rules]
    doses = due_doses_between(rules, start, end) if start <= end else []
    return {
        "medication_id": str(medication.id),
        "medicine_name": medication.medicine_name,
        "doses": [
            {
                "rule_id": str(dose.rule_id) if dose.rule_id else None,
                "due_at": dose.due_at.isoformat(),
                "dose": dose.dose,
                "dose_unit": dose.dose_unit,
            }
            for dose in doses
        ],
    }
