from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.care_plan import CarePlanDetail
from ..services.durations import CareItemLine, Occurrence, duration_summary
from ..services.time_utils import format_duration_display, is_valid_time_format, time_format_error_message
from .schemas import DurationCheckRequest

router = APIRouter(tags=["care-plans"])


@router.post("/care-plans/duration-check")
def duration_check(payload: DurationCheckRequest, db: Session = Depends(get_db)):
    if payload.care_plan_detail_id is not None:
        detail = db.query(CarePlanDetail).filter_by(id=payload.care_plan_detail_id).first()
        if not detail:
            raise HTTPException(status_code=404, detail="Care plan detail not found")
        time_start, time_end = detail.time_start, detail.time_end
        items = [CareItemLine(i.weekly_package_minutes, i.quantity) for i in detail.care_items]
        occurrences = [Occurrence.from_mapping(o) for o in detail.occurrences or []]
    else:
        time_start, time_end = payload.time_start, payload.time_end
        items = [CareItemLine(i.weekly_package_minutes, i.quantity) for i in payload.care_items]
        occurrences = [Occurrence(o.name, o.value) for o in payload.occurrences]

    errors = {}
    for field, value in (("time_start", time_start), ("time_end", time_end)):
        if not is_valid_time_format(value):
            errors[field] = time_format_error_message(field)
    if errors:
        raise HTTPException(status_code=422, detail={"errors": errors})

    days = payload.days_per_week if payload.days_per_week is not None else occurrences
    summary = duration_summary(time_start, time_end, items, days)
    match = summary.match
    return {
        "daily_duration": round(summary.daily_duration, 2),
        "daily_duration_display": format_duration_display(summary.daily_duration),
        "days_per_week": summary.days_per_week,
        "weekly_duration": round(summary.weekly_duration, 2),
        "weekly_duration_display": format_duration_display(summary.weekly_duration),
        "session_duration": summary.session_duration,
        "matches": match.matches,
        "difference": round(match.difference, 2),
        "suggested_end_time": match.suggested_end_time,
    }
