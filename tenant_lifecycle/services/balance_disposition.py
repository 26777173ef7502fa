# tenant_lifecycle/services/balance_disposition.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..domain.audit import audit_lease
from ..domain.clock import utcnow
from ..domain.errors import ValidationError, store_errors
from ..domain.events import emit_workflow_event
from ..domain.types import BalanceDisposition, PaymentStatus
from ..models import Expense, Lease, RentPayment
from .balance_resolver import OutstandingBalance, resolve_outstanding_balance
from .ownership import must_get_lease, resolve_landlord_id

log = logging.getLogger(__name__)


@dataclass
class DispositionResult:
    lease_id: int
    disposition: str
    total_owed: float
    obligations_matched: int
    obligations_settled: int = 0
    amount_settled: float = 0.0
    deposit_applied: float = 0.0
    deposit_unapplied: float = 0.0
    expense_id: Optional[int] = None
    payment_ids: list[int] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "lease_id": self.lease_id,
            "disposition": self.disposition,
            "total_owed": self.total_owed,
            "obligations_matched": self.obligations_matched,
            "obligations_settled": self.obligations_settled,
            "amount_settled": self.amount_settled,
            "deposit_applied": self.deposit_applied,
            "deposit_unapplied": self.deposit_unapplied,
            "expense_id": self.expense_id,
            "payment_ids": list(self.payment_ids),
        }


def _merge_metadata(p: RentPayment, extra: dict[str, Any]) -> str:
    try:
        cur = json.loads(p.metadata_json) if p.metadata_json else {}
        if not isinstance(cur, dict):
            cur = {}
    except ValueError:
        cur = {}
    cur.update(extra)
    return json.dumps(cur, sort_keys=True, default=str)


@dataclass(frozen=True)
class _Ctx:
    lease: Lease
    landlord_id: int
    balance: OutstandingBalance
    deposit_to_apply: Optional[float]
    actor_user_id: Optional[int]


def _write_off(db: Session, ctx: _Ctx) -> DispositionResult:
    """
    Bad-debt expense for the full balance, then every matched obligation is
    cancelled with a write-off marker. Visible in reporting, never dropped.
    """
    lease, bal = ctx.lease, ctx.balance
    res = DispositionResult(
        lease_id=lease.id,
        disposition=BalanceDisposition.write_off.value,
        total_owed=bal.total_owed,
        obligations_matched=len(bal.obligations),
    )
    if not bal.obligations:
        return res

    now = utcnow()
    expense = Expense(
        org_id=lease.org_id,
        landlord_id=ctx.landlord_id,
        property_id=lease.unit.property_id,
        unit_id=lease.unit_id,
        lease_id=lease.id,
        category=settings.bad_debt_category,
        amount=bal.total_owed,
        description=f"Written off balance for lease {lease.id}",
        incurred_at=now,
        created_at=now,
    )
    db.add(expense)
    db.flush()

    for p in bal.obligations:
        p.status = PaymentStatus.cancelled.value
        p.metadata_json = _merge_metadata(
            p, {"written_off": True, "written_off_at": now.isoformat(), "expense_id": expense.id}
        )
        db.add(p)
        res.payment_ids.append(p.id)

    res.expense_id = expense.id
    res.obligations_settled = len(bal.obligations)
    res.amount_settled = bal.total_owed
    return res


def _apply_deposit(db: Session, ctx: _Ctx) -> DispositionResult:
    """
    Oldest due date first. An obligation is marked paid only when the
    remaining deposit covers it in full; one it cannot cover is skipped and
    the walk moves on to the next. Stops once the deposit is used up.
    """
    if ctx.deposit_to_apply is None or float(ctx.deposit_to_apply) <= 0:
        raise ValidationError("apply_deposit requires a positive deposit_to_apply")

    lease, bal = ctx.lease, ctx.balance
    remaining = round(float(ctx.deposit_to_apply), 2)
    res = DispositionResult(
        lease_id=lease.id,
        disposition=BalanceDisposition.apply_deposit.value,
        total_owed=bal.total_owed,
        obligations_matched=len(bal.obligations),
    )

    now = utcnow()
    for p in bal.obligations:
        if remaining <= 0:
            break
        amount = round(float(p.amount), 2)
        if remaining < amount:
            continue
        p.status = PaymentStatus.paid.value
        p.paid_at = now
        p.metadata_json = _merge_metadata(p, {"paid_from_deposit": True, "applied_at": now.isoformat()})
        db.add(p)
        remaining = round(remaining - amount, 2)
        res.payment_ids.append(p.id)
        res.obligations_settled += 1
        res.amount_settled = round(res.amount_settled + amount, 2)

    res.deposit_applied = res.amount_settled
    res.deposit_unapplied = remaining
    return res


def _collections(db: Session, ctx: _Ctx) -> DispositionResult:
    """
    Flag the tenant for the external collections hand-off. Obligations stay
    as they are: the money is still owed.
    """
    lease, bal = ctx.lease, ctx.balance
    tenant = lease.tenant
    tenant.sent_to_collections_at = utcnow()
    tenant.collections_balance = bal.total_owed
    db.add(tenant)

    emit_workflow_event(
        db,
        org_id=lease.org_id,
        lease_id=lease.id,
        actor_user_id=ctx.actor_user_id,
        event_type="tenant.sent_to_collections",
        payload={"tenant_id": tenant.id, "total_owed": bal.total_owed},
    )
    log.warning(
        "tenant %s marked for collections: %.2f owed",
        tenant.id,
        bal.total_owed,
        extra={"lease_id": lease.id, "disposition": BalanceDisposition.collections.value},
    )
    return DispositionResult(
        lease_id=lease.id,
        disposition=BalanceDisposition.collections.value,
        total_owed=bal.total_owed,
        obligations_matched=len(bal.obligations),
    )


_HANDLERS: dict[str, Callable[[Session, _Ctx], DispositionResult]] = {
    BalanceDisposition.write_off.value: _write_off,
    BalanceDisposition.apply_deposit.value: _apply_deposit,
    BalanceDisposition.collections.value: _collections,
}


def handle_outstanding_balance(
    db: Session,
    *,
    lease_id: int,
    disposition: BalanceDisposition | str,
    deposit_to_apply: Optional[float] = None,
    org_id: Optional[int] = None,
    actor_user_id: Optional[int] = None,
) -> DispositionResult:
    """
    Resolve a departed tenant's pending/overdue balance with the strategy an
    operator picked after reviewing total_owed. This function never picks
    the strategy itself.

    All writes of one disposition commit together or not at all.
    """
    try:
        key = BalanceDisposition(disposition).value
    except ValueError as e:
        raise ValidationError(f"Unknown disposition: {disposition}") from e

    lease = must_get_lease(db, lease_id=lease_id, org_id=org_id)
    landlord_id = resolve_landlord_id(lease)
    balance = resolve_outstanding_balance(db, lease_id=lease.id)

    ctx = _Ctx(
        lease=lease,
        landlord_id=landlord_id,
        balance=balance,
        deposit_to_apply=deposit_to_apply,
        actor_user_id=actor_user_id,
    )

    try:
        with store_errors(f"balance disposition {key}"):
            result = _HANDLERS[key](db, ctx)
            audit_lease(db, lease, action=f"lease.balance.{key}", actor_user_id=actor_user_id, after=result.as_dict())
            db.commit()
    except Exception:
        db.rollback()
        raise

    log.info(
        "balance disposition applied",
        extra={"lease_id": lease.id, "disposition": key, "org_id": lease.org_id},
    )
    return result
