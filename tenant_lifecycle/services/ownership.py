# tenant_lifecycle/services/ownership.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from ..domain.errors import MissingOwner, NotFound, store_errors
from ..models import Lease, Unit


def must_get_lease(db: Session, *, lease_id: int, org_id: Optional[int] = None) -> Lease:
    """
    Lease with tenant and unit -> property eagerly loaded.

    org_id scopes the lookup when called on behalf of a principal; leases in
    another org look exactly like missing ones.
    """
    q = (
        select(Lease)
        .options(joinedload(Lease.tenant), joinedload(Lease.unit).joinedload(Unit.property))
        .where(Lease.id == int(lease_id))
    )
    if org_id is not None:
        q = q.where(Lease.org_id == int(org_id))

    with store_errors("load lease"):
        row = db.scalar(q)
    if row is None:
        raise NotFound("Lease not found")
    return row


def resolve_landlord_id(lease: Lease) -> int:
    landlord_id = lease.unit.property.landlord_id if lease.unit and lease.unit.property else None
    if landlord_id is None:
        raise MissingOwner("Property has no associated landlord")
    return int(landlord_id)
