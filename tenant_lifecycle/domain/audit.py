# tenant_lifecycle/domain/audit.py
from __future__ import annotations

import json
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..middleware.request_id import get_request_id
from ..models import AuditEvent, Lease
from .clock import utcnow


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def audit_write(
    db: Session,
    *,
    org_id: int,
    actor_user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: str,
    lease_id: Optional[int] = None,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
    commit: bool = False,
) -> AuditEvent:
    """
    Audit writer.

    - Does NOT commit by default (so saga steps and dispositions bundle the
      audit row with their own writes).
    - Stamps the current HTTP request id when there is one, so an audit row
      can be matched to its request log line. CLI runs leave it empty.
    """
    row = AuditEvent(
        org_id=org_id,
        actor_user_id=actor_user_id,
        lease_id=int(lease_id) if lease_id is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        request_id=get_request_id(),
        before_json=_dumps(before),
        after_json=_dumps(after),
        created_at=utcnow(),
    )
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    return row


def audit_lease(
    db: Session,
    lease: Lease,
    *,
    action: str,
    actor_user_id: Optional[int],
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    """Audit row for an action taken on the lease itself (offboard, balance disposition)."""
    return audit_write(
        db,
        org_id=lease.org_id,
        actor_user_id=actor_user_id,
        action=action,
        entity_type="Lease",
        entity_id=str(lease.id),
        lease_id=lease.id,
        before=before,
        after=after,
    )


def lease_audit_trail(db: Session, *, lease_id: int, limit: int = 100) -> list[AuditEvent]:
    """
    Every audit row tied to a lease, oldest first: the offboarding run,
    balance dispositions and deposit dispositions.
    """
    q = (
        select(AuditEvent)
        .where(AuditEvent.lease_id == int(lease_id))
        .order_by(AuditEvent.created_at.asc(), AuditEvent.id.asc())
        .limit(int(limit))
    )
    return list(db.scalars(q).all())
