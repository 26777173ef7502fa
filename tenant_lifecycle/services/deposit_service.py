# tenant_lifecycle/services/deposit_service.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..domain.audit import audit_write
from ..domain.clock import utcnow
from ..domain.errors import NotFound, ValidationError, store_errors
from ..domain.types import REFUND_STATUS_FLOW, DeductionCategory, RefundMethod, RefundStatus
from ..models import DepositDeductionItem, DepositDisposition
from .ownership import must_get_lease, resolve_landlord_id

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeductionInput:
    category: str
    amount: float
    description: str
    evidence_urls: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RefundSplit:
    refund_amount: float
    applied_to_balance: float


def _validate_deductions(deductions: list[DeductionInput], original_amount: float) -> float:
    if original_amount < 0:
        raise ValidationError("Original deposit amount cannot be negative")

    for d in deductions:
        if not d.category or not d.amount or not (d.description or "").strip():
            raise ValidationError("Each deduction requires category, amount, and description")
        try:
            DeductionCategory(d.category)
        except ValueError as e:
            raise ValidationError(f"Unknown deduction category: {d.category}") from e
        if d.amount <= 0:
            raise ValidationError("Deduction amount must be positive")

    total = round(sum(float(d.amount) for d in deductions), 2)
    if total > round(float(original_amount), 2):
        raise ValidationError("Total deductions cannot exceed original deposit amount")
    return total


def create_deposit_disposition(
    db: Session,
    *,
    lease_id: int,
    original_amount: float,
    deductions: list[DeductionInput],
    refund_method: RefundMethod | str = RefundMethod.pending,
    notes: Optional[str] = None,
    org_id: Optional[int] = None,
    actor_user_id: Optional[int] = None,
) -> DepositDisposition:
    """
    Itemized deposit disposition. The disposition and its deduction items are
    written in one transaction; refund = original - deductions.
    """
    total_deductions = _validate_deductions(deductions, float(original_amount))
    try:
        method = RefundMethod(refund_method).value
    except ValueError as e:
        raise ValidationError(f"Unknown refund method: {refund_method}") from e

    lease = must_get_lease(db, lease_id=lease_id, org_id=org_id)
    landlord_id = resolve_landlord_id(lease)

    row = DepositDisposition(
        org_id=lease.org_id,
        lease_id=lease.id,
        tenant_id=lease.tenant_id,
        landlord_id=landlord_id,
        original_amount=float(original_amount),
        total_deductions=total_deductions,
        refund_amount=round(float(original_amount) - total_deductions, 2),
        refund_method=method,
        refund_status=RefundStatus.pending.value,
        notes=notes,
        created_at=utcnow(),
    )
    for d in deductions:
        row.deductions.append(
            DepositDeductionItem(
                category=DeductionCategory(d.category).value,
                amount=float(d.amount),
                description=d.description.strip(),
                evidence_urls_json=json.dumps(list(d.evidence_urls or [])),
                created_at=utcnow(),
            )
        )

    with store_errors("create deposit disposition"):
        db.add(row)
        db.flush()
        audit_write(
            db,
            org_id=lease.org_id,
            actor_user_id=actor_user_id,
            action="deposit_disposition.create",
            entity_type="DepositDisposition",
            entity_id=str(row.id),
            lease_id=lease.id,
            after={
                "lease_id": lease.id,
                "original_amount": row.original_amount,
                "total_deductions": row.total_deductions,
                "refund_amount": row.refund_amount,
            },
        )
        db.commit()
        db.refresh(row)
    return row


def must_get_disposition(db: Session, *, disposition_id: int, org_id: Optional[int] = None) -> DepositDisposition:
    q = (
        select(DepositDisposition)
        .options(selectinload(DepositDisposition.deductions))
        .where(DepositDisposition.id == int(disposition_id))
    )
    if org_id is not None:
        q = q.where(DepositDisposition.org_id == int(org_id))
    with store_errors("load deposit disposition"):
        row = db.scalar(q)
    if row is None:
        raise NotFound("Deposit disposition not found")
    return row


def get_dispositions_for_lease(db: Session, *, lease_id: int) -> list[DepositDisposition]:
    q = (
        select(DepositDisposition)
        .options(selectinload(DepositDisposition.deductions))
        .where(DepositDisposition.lease_id == int(lease_id))
        .order_by(DepositDisposition.created_at.desc(), DepositDisposition.id.desc())
    )
    with store_errors("list deposit dispositions"):
        return list(db.scalars(q).all())


def latest_disposition_for_lease(db: Session, *, lease_id: int) -> Optional[DepositDisposition]:
    rows = get_dispositions_for_lease(db, lease_id=lease_id)
    return rows[0] if rows else None


def update_refund_status(
    db: Session,
    *,
    disposition_id: int,
    status: RefundStatus | str,
    processed_at: Optional[datetime] = None,
    org_id: Optional[int] = None,
) -> DepositDisposition:
    try:
        new_status = RefundStatus(status).value
    except ValueError as e:
        raise ValidationError(f"Unknown refund status: {status}") from e

    row = must_get_disposition(db, disposition_id=disposition_id, org_id=org_id)
    if new_status != row.refund_status and new_status not in REFUND_STATUS_FLOW.get(row.refund_status, ()):
        raise ValidationError(f"Illegal refund status transition {row.refund_status} -> {new_status}")

    row.refund_status = new_status
    if new_status == RefundStatus.completed.value:
        row.processed_at = row.processed_at or processed_at or utcnow()

    with store_errors("update refund status"):
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def process_refund(db: Session, *, disposition_id: int, org_id: Optional[int] = None) -> DepositDisposition:
    """
    Walk the refund through processing -> completed.

    The money movement itself (check run, ACH) is done by the disbursement
    service; this only records the lifecycle on our side.
    """
    row = must_get_disposition(db, disposition_id=disposition_id, org_id=org_id)
    if row.refund_status == RefundStatus.completed.value:
        return row

    if float(row.refund_amount) <= 0:
        return update_refund_status(db, disposition_id=row.id, status=RefundStatus.completed, org_id=org_id)

    if row.refund_status == RefundStatus.pending.value:
        update_refund_status(db, disposition_id=row.id, status=RefundStatus.processing, org_id=org_id)

    log.info(
        "deposit refund handed to disbursement",
        extra={"lease_id": row.lease_id, "step": "process_refund"},
    )
    return update_refund_status(db, disposition_id=row.id, status=RefundStatus.completed, org_id=org_id)


def calculate_refund_after_balance(
    original_deposit: float,
    deductions: float,
    outstanding_balance: float,
    apply_to_balance: bool,
) -> RefundSplit:
    available = float(original_deposit) - float(deductions)

    if not apply_to_balance or outstanding_balance <= 0:
        return RefundSplit(refund_amount=available, applied_to_balance=0.0)

    applied = min(available, float(outstanding_balance))
    return RefundSplit(refund_amount=available - applied, applied_to_balance=applied)


def disposition_as_dict(row: DepositDisposition) -> dict[str, Any]:
    return {
        "id": row.id,
        "lease_id": row.lease_id,
        "tenant_id": row.tenant_id,
        "original_amount": row.original_amount,
        "total_deductions": row.total_deductions,
        "refund_amount": row.refund_amount,
        "refund_method": row.refund_method,
        "refund_status": row.refund_status,
        "processed_at": row.processed_at,
        "notes": row.notes,
        "created_at": row.created_at,
        "deductions": [
            {
                "id": d.id,
                "category": d.category,
                "amount": d.amount,
                "description": d.description,
                "evidence_urls": json.loads(d.evidence_urls_json or "[]"),
            }
            for d in row.deductions
        ],
    }
