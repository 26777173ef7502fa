# tenant_lifecycle/domain/events.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import WorkflowEvent


def emit_workflow_event(
    db: Session,
    *,
    org_id: int,
    event_type: str,
    lease_id: Optional[int] = None,
    actor_user_id: Optional[int] = None,
    payload: Optional[dict[str, Any]] = None,
) -> WorkflowEvent:
    """
    Flush-only workflow event emitter. Callers decide when to commit.
    """
    if not event_type:
        raise ValueError("event_type required")

    ev = WorkflowEvent(
        org_id=int(org_id),
        lease_id=int(lease_id) if lease_id is not None else None,
        actor_user_id=int(actor_user_id) if actor_user_id is not None else None,
        event_type=str(event_type),
        payload_json=json.dumps(payload or {}, ensure_ascii=False, default=str),
        created_at=datetime.utcnow(),
    )
    db.add(ev)
    db.flush()
    return ev


def list_workflow_events(db: Session, *, lease_id: int, limit: int = 200) -> list[WorkflowEvent]:
    q = (
        select(WorkflowEvent)
        .where(WorkflowEvent.lease_id == int(lease_id))
        .order_by(WorkflowEvent.id.desc())
        .limit(int(limit))
    )
    return list(db.scalars(q).all())
