# tenant_lifecycle/services/history_archiver.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.clock import as_naive_utc, utcnow
from ..domain.errors import MissingOwner, ValidationError, store_errors
from ..domain.types import DepartureType
from ..models import DepositDisposition, Lease, TenantHistory


@dataclass(frozen=True)
class DepositSummary:
    original_amount: float
    refund_amount: float
    total_deductions: float

    @classmethod
    def from_disposition(cls, d: DepositDisposition) -> "DepositSummary":
        return cls(
            original_amount=float(d.original_amount),
            refund_amount=float(d.refund_amount),
            total_deductions=float(d.total_deductions),
        )

    def validate(self) -> None:
        if self.original_amount < 0 or self.refund_amount < 0 or self.total_deductions < 0:
            raise ValidationError("Deposit amounts cannot be negative")
        # cents tolerance for float arithmetic
        if round(self.refund_amount + self.total_deductions, 2) > round(self.original_amount, 2):
            raise ValidationError("Deposit refunded + deducted cannot exceed the original deposit")


def find_history(db: Session, *, lease_id: int) -> Optional[TenantHistory]:
    with store_errors("find tenant history"):
        return db.scalar(select(TenantHistory).where(TenantHistory.lease_id == int(lease_id)))


def create_tenant_history(
    db: Session,
    *,
    lease: Lease,
    departure_type: DepartureType | str,
    departure_date: datetime,
    deposit: Optional[DepositSummary] = None,
    lease_end_date: Optional[datetime] = None,
) -> TenantHistory:
    """
    Write-once snapshot of the tenancy, independent of the live lease row.

    lease_end_date is the scheduled end as it stood before termination
    overwrote it (defaults to lease.end_date). Month-to-month leases (no end
    date) archive the departure date as the lease end date.
    """
    landlord_id = lease.unit.property.landlord_id
    if landlord_id is None:
        raise MissingOwner("Property has no associated landlord")

    existing = find_history(db, lease_id=lease.id)
    if existing is not None:
        return existing

    if deposit is not None:
        deposit.validate()

    dtype = DepartureType(departure_type).value
    when = as_naive_utc(departure_date)
    scheduled_end = lease_end_date if lease_end_date is not None else lease.end_date

    row = TenantHistory(
        org_id=lease.org_id,
        lease_id=lease.id,
        tenant_id=lease.tenant_id,
        unit_id=lease.unit_id,
        property_id=lease.unit.property_id,
        landlord_id=int(landlord_id),
        tenant_name=lease.tenant.full_name,
        tenant_email=lease.tenant.email,
        tenant_phone=lease.tenant.phone,
        lease_start_date=lease.start_date,
        lease_end_date=scheduled_end or when,
        rent_amount=float(lease.rent_amount),
        departure_type=dtype,
        departure_date=when,
        deposit_amount=deposit.original_amount if deposit else float(lease.deposit_amount or 0.0),
        deposit_refunded=deposit.refund_amount if deposit else None,
        deposit_deducted=deposit.total_deductions if deposit else None,
        was_evicted=(dtype == DepartureType.eviction.value),
        created_at=utcnow(),
    )
    with store_errors("create tenant history"):
        db.add(row)
        db.flush()
    return row


@dataclass(frozen=True)
class HistoryPage:
    items: list[TenantHistory]
    total: int
    page: int
    limit: int


def list_tenant_history(
    db: Session,
    *,
    org_id: int,
    landlord_id: Optional[int] = None,
    unit_id: Optional[int] = None,
    property_id: Optional[int] = None,
    departure_type: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> HistoryPage:
    page = max(1, int(page))
    limit = max(1, min(int(limit), settings.tenant_history_max_page_size))

    conds = [TenantHistory.org_id == int(org_id)]
    if landlord_id is not None:
        conds.append(TenantHistory.landlord_id == int(landlord_id))
    if unit_id is not None:
        conds.append(TenantHistory.unit_id == int(unit_id))
    if property_id is not None:
        conds.append(TenantHistory.property_id == int(property_id))
    if departure_type:
        conds.append(TenantHistory.departure_type == DepartureType(departure_type).value)
    if date_from is not None:
        conds.append(TenantHistory.departure_date >= as_naive_utc(date_from))
    if date_to is not None:
        conds.append(TenantHistory.departure_date <= as_naive_utc(date_to))
    if search:
        like = f"%{search.strip().lower()}%"
        conds.append(
            or_(
                func.lower(TenantHistory.tenant_name).like(like),
                func.lower(func.coalesce(TenantHistory.tenant_email, "")).like(like),
            )
        )

    with store_errors("list tenant history"):
        total = int(db.scalar(select(func.count(TenantHistory.id)).where(*conds)) or 0)
        rows = db.scalars(
            select(TenantHistory)
            .where(*conds)
            .order_by(TenantHistory.departure_date.desc(), TenantHistory.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()

    return HistoryPage(items=list(rows), total=total, page=page, limit=limit)
