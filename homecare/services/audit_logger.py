import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from ..config import get_settings
from ..models.audit import AuditAction, AuditEvent
from .tour_editor import SaveOperation

logger = logging.getLogger(__name__)


def create_audit_event(
    db: Session,
    actor: str,
    action: AuditAction,
    entity_type: str,
    entity_id: str,
    details: dict[str, Any] | None,
    request: Request | None,
    *,
    request_id: str | None = None,
    commit: bool = True,
) -> AuditEvent:
    settings = get_settings()
    event = AuditEvent(
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        request_id=(
            getattr(request.state, "request_id", "") if request is not None else (request_id or "")
        ),
        details=details or {},
        timestamp=datetime.now(timezone.utc),
    )
    db.add(event)
    if commit:
        db.commit()

    if settings.AUDIT_EXPORT_PATH:
        _write_audit_export(settings.AUDIT_EXPORT_PATH, event)

    logger.info("%s %s %s by %s", action.value, entity_type, entity_id, actor)
    return event


def audit_tour_change(
    db: Session,
    actor: str,
    tour_id: Any,
    operation: SaveOperation,
    request: Request | None,
    *,
    commit: bool = False,
) -> AuditEvent:
    """Record one staged tour change (time change, assignment or removal) on its event."""
    changed = {
        name: str(value) if value is not None else None for name, value in operation.fields.items()
    }
    return create_audit_event(
        db,
        actor=actor,
        action=AuditAction.UPDATE,
        entity_type="Event",
        entity_id=str(operation.event_id),
        details={"tour_id": str(tour_id), "change": operation.action, "fields": changed},
        request=request,
        commit=commit,
    )


def _write_audit_export(path: str, event: AuditEvent) -> None:
    export_path = Path(path)
    export_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "timestamp": event.timestamp.isoformat(),
        "actor": event.actor,
        "action": event.action.value,
        "entity_type": event.entity_type,
        "entity_id": event.entity_id,
        "request_id": event.request_id,
        "details": event.details,
    }
    with export_path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(payload, default=str) + "\n")
