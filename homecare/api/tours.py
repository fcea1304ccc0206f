import logging
from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.tour import Event, Tour
from ..services.audit_logger import audit_tour_change
from ..services.tour_editor import ASSIGN, TourEditor, plan_save_operations
from ..services.tour_timeline import TourEvent, TravelLookup, TravelSegment
from .schemas import TimeChangeRequest, TourSaveRequest, TourTimelineRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tours"])


def _get_tour(db: Session, tour_id: UUID) -> Tour:
    tour = db.query(Tour).filter_by(id=tour_id).first()
    if not tour:
        raise HTTPException(status_code=404, detail="Tour not found")
    return tour


def _editor_for(db: Session, tour: Tour, travel: TravelLookup | None = None) -> TourEditor:
    same_day = db.query(Event).filter(Event.date == tour.date)
    assigned = [TourEvent.from_row(e) for e in same_day.filter(Event.tour_id == tour.id)]
    available = [TourEvent.from_row(e) for e in same_day.filter(Event.tour_id.is_(None))]
    return TourEditor(
        tour.id,
        assigned,
        available,
        tour_start=tour.time_start,
        tour_end=tour.time_end,
        tour_date=tour.date,
        tour_name=tour.name,
        employee_id=tour.employee_id,
        travel=travel,
    )


def _stage_time_changes(editor: TourEditor, changes: list[TimeChangeRequest]) -> None:
    for change in changes:
        try:
            editor.adjust_time(change.event_id, change.time_start)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Event {change.event_id} is not on this tour")
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc))


def _analysis_response(editor: TourEditor) -> dict:
    analysis = editor.analysis()
    return {
        "tour_id": str(editor.tour_id),
        "time_start": editor.tour_start,
        "time_end": editor.tour_end,
        "has_pending_changes": editor.has_pending_changes,
        "has_overlaps": analysis.has_overlaps,
        "timeline": [asdict(item) for item in analysis.timeline],
        "overlaps": [asdict(overlap) for overlap in analysis.overlaps],
        "suggestions": [asdict(suggestion) for suggestion in analysis.suggestions],
        "conflicts": [
            {"event_id": event_id, "reason": "Outside tour hours"}
            for event_id in analysis.outside_tour_hours
        ],
    }


@router.get("/tours/{tour_id}")
def get_tour(tour_id: UUID, db: Session = Depends(get_db)):
    tour = _get_tour(db, tour_id)
    response = _analysis_response(_editor_for(db, tour))
    response.update(
        name=tour.name,
        employee_id=tour.employee_id,
        date=tour.date.isoformat(),
        total_distance_km=tour.total_distance_km,
        estimated_duration_minutes=tour.estimated_duration_minutes,
    )
    return response


@router.post("/tours/{tour_id}/timeline")
def tour_timeline(tour_id: UUID, payload: TourTimelineRequest, db: Session = Depends(get_db)):
    tour = _get_tour(db, tour_id)
    travel = TravelLookup(
        [
            TravelSegment(s.from_event_id, s.to_event_id, s.duration_minutes, s.distance_km)
            for s in payload.travel_segments
        ],
        payload.default_travel_minutes,
    )
    editor = _editor_for(db, tour, travel)
    _stage_time_changes(editor, payload.time_changes)
    return _analysis_response(editor)


@router.post("/tours/{tour_id}/save")
def save_tour(
    tour_id: UUID,
    payload: TourSaveRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    tour = _get_tour(db, tour_id)
    editor = _editor_for(db, tour)
    try:
        for event_id in payload.assign:
            editor.assign(event_id)
        for event_id in payload.remove:
            editor.unassign(event_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    _stage_time_changes(editor, payload.time_changes)

    operations = plan_save_operations(
        tour.id, editor.time_changes, list(editor.to_assign), list(editor.to_remove)
    )
    actor = request.headers.get("X-Actor", "SYSTEM")
    committed: list[dict] = []
    failed = None
    for index, operation in enumerate(operations):
        row = db.get(Event, operation.event_id)
        for name, value in operation.fields.items():
            setattr(row, name, value)
        if operation.action == ASSIGN:
            row.employee_id = tour.employee_id
        audit_tour_change(db, actor, tour.id, operation, request)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning(
                "Saving tour %s stopped at %s of event %s: %s",
                tour.id,
                operation.action,
                operation.event_id,
                exc,
            )
            failed = {"event_id": str(operation.event_id), "change": operation.action, "error": str(exc)}
            not_attempted = operations[index + 1:]
            break
        committed.append({"event_id": str(operation.event_id), "change": operation.action})
    else:
        not_attempted = []

    return {
        "tour_id": str(tour.id),
        "committed": committed,
        "failed": failed,
        "not_attempted": [
            {"event_id": str(op.event_id), "change": op.action} for op in not_attempted
        ],
    }
