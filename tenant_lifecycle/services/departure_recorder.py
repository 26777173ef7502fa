# tenant_lifecycle/services/departure_recorder.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain.clock import as_naive_utc, utcnow
from ..domain.errors import NotFound, store_errors
from ..domain.types import DepartureType
from ..models import Lease, TenantDeparture


def find_departure(db: Session, *, lease_id: int) -> Optional[TenantDeparture]:
    """Latest departure on file for the lease; a correction wins over the row it supersedes."""
    q = select(TenantDeparture).where(TenantDeparture.lease_id == int(lease_id)).order_by(TenantDeparture.id.desc())
    with store_errors("find departure"):
        return db.scalars(q).first()


def _original_departure(db: Session, *, lease_id: int) -> Optional[TenantDeparture]:
    q = select(TenantDeparture).where(
        TenantDeparture.lease_id == int(lease_id),
        TenantDeparture.supersedes_id.is_(None),
    )
    with store_errors("find departure"):
        return db.scalars(q).first()


def record_departure(
    db: Session,
    *,
    lease: Lease,
    landlord_id: int,
    departure_type: DepartureType | str,
    departure_date: datetime,
    notes: Optional[str] = None,
    eviction_notice_ref: Optional[str] = None,
) -> TenantDeparture:
    """
    Insert the audit fact for a departure. Never updates an existing row.

    Re-running offboarding for the same lease returns the row already on file
    instead of appending a duplicate. Two concurrent runs can both miss that
    check; the unique index on original rows lets only one insert land, and
    the loser rolls back its pending work and returns the winner's row.
    """
    existing = find_departure(db, lease_id=lease.id)
    if existing is not None:
        return existing

    lease_id = lease.id
    row = TenantDeparture(
        org_id=lease.org_id,
        lease_id=lease_id,
        tenant_id=lease.tenant_id,
        unit_id=lease.unit_id,
        landlord_id=int(landlord_id),
        departure_type=DepartureType(departure_type).value,
        departure_date=as_naive_utc(departure_date),
        notes=notes,
        eviction_notice_ref=eviction_notice_ref,
        created_at=utcnow(),
    )
    try:
        with store_errors("record departure"):
            db.add(row)
            db.flush()
    except IntegrityError:
        db.rollback()
        winner = _original_departure(db, lease_id=lease_id)
        if winner is None:
            raise
        return winner
    return row


def record_departure_correction(
    db: Session,
    *,
    departure_id: int,
    departure_type: DepartureType | str | None = None,
    departure_date: Optional[datetime] = None,
    notes: Optional[str] = None,
    eviction_notice_ref: Optional[str] = None,
) -> TenantDeparture:
    """
    Append a correction for a recorded departure. Fields left as None carry
    over from the row being corrected. Flushes only; the caller commits.
    """
    with store_errors("load departure"):
        prior = db.get(TenantDeparture, int(departure_id))
    if prior is None:
        raise NotFound("Departure not found")

    row = TenantDeparture(
        org_id=prior.org_id,
        lease_id=prior.lease_id,
        tenant_id=prior.tenant_id,
        unit_id=prior.unit_id,
        landlord_id=prior.landlord_id,
        departure_type=DepartureType(departure_type).value if departure_type is not None else prior.departure_type,
        departure_date=as_naive_utc(departure_date) if departure_date is not None else prior.departure_date,
        notes=notes if notes is not None else prior.notes,
        eviction_notice_ref=eviction_notice_ref if eviction_notice_ref is not None else prior.eviction_notice_ref,
        supersedes_id=prior.id,
        created_at=utcnow(),
    )
    with store_errors("record departure correction"):
        db.add(row)
        db.flush()
    return row
