from __future__ import annotations

import json
import logging
from datetime import datetime

import pytest
from sqlalchemy import func, select

from tenant_lifecycle.db import SessionLocal
from tenant_lifecycle.domain.errors import MissingOwner, NotFound, ValidationError
from tenant_lifecycle.models import Expense, RentPayment, Tenant, WorkflowEvent
from tenant_lifecycle.services.balance_disposition import handle_outstanding_balance
from tenant_lifecycle.services.balance_resolver import resolve_outstanding_balance


def _payments(lease_id: int) -> list[RentPayment]:
    db = SessionLocal()
    try:
        return list(
            db.scalars(select(RentPayment).where(RentPayment.lease_id == lease_id).order_by(RentPayment.due_date)).all()
        )
    finally:
        db.close()


def _meta(p: RentPayment) -> dict:
    return json.loads(p.metadata_json) if p.metadata_json else {}


def test_resolver_orders_oldest_first_and_skips_settled(seed_lease, db):
    s = seed_lease(
        payments=(
            (500.0, datetime(2026, 3, 1), "pending"),
            (250.0, datetime(2026, 1, 1), "overdue"),
            (999.0, datetime(2025, 12, 1), "paid"),
            (100.0, datetime(2026, 5, 1), "scheduled"),
            (75.0, datetime(2026, 2, 1), "cancelled"),
        )
    )

    bal = resolve_outstanding_balance(db, lease_id=s.lease_id)

    assert bal.total_owed == 750.0
    assert [float(p.amount) for p in bal.obligations] == [250.0, 500.0]
    assert bal.oldest_due_date == datetime(2026, 1, 1)
    assert bal.as_dict()["obligation_count"] == 2


def test_apply_deposit_covers_overdue_rent_and_reports_leftover(seed_lease, db):
    s = seed_lease(payments=((750.0, datetime(2026, 2, 1), "overdue"),))

    res = handle_outstanding_balance(db, lease_id=s.lease_id, disposition="apply_deposit", deposit_to_apply=1000.0)

    assert res.total_owed == 750.0
    assert res.obligations_settled == 1
    assert res.deposit_applied == 750.0
    assert res.deposit_unapplied == 250.0

    (p,) = _payments(s.lease_id)
    assert p.status == "paid"
    assert p.paid_at is not None
    assert _meta(p)["paid_from_deposit"] is True


def test_apply_deposit_skips_uncovered_obligation_and_keeps_going(seed_lease, db):
    s = seed_lease(
        payments=(
            (300.0, datetime(2026, 1, 1), "overdue"),
            (500.0, datetime(2026, 2, 1), "pending"),
            (100.0, datetime(2026, 3, 1), "pending"),
        )
    )

    res = handle_outstanding_balance(db, lease_id=s.lease_id, disposition="apply_deposit", deposit_to_apply=600.0)

    assert res.obligations_settled == 2
    assert res.deposit_applied == 400.0
    assert res.deposit_unapplied == 200.0
    assert [p.status for p in _payments(s.lease_id)] == ["paid", "pending", "paid"]


def test_large_old_charge_does_not_block_smaller_later_one(seed_lease, db):
    s = seed_lease(
        payments=(
            (800.0, datetime(2026, 1, 1), "overdue"),
            (200.0, datetime(2026, 2, 1), "overdue"),
        )
    )

    res = handle_outstanding_balance(db, lease_id=s.lease_id, disposition="apply_deposit", deposit_to_apply=500.0)

    assert [p.status for p in _payments(s.lease_id)] == ["overdue", "paid"]
    assert res.deposit_applied == 200.0
    assert res.deposit_unapplied == 300.0


def test_apply_deposit_stops_once_deposit_is_used_up(seed_lease, db):
    s = seed_lease(
        payments=(
            (250.0, datetime(2026, 1, 1), "overdue"),
            (250.0, datetime(2026, 2, 1), "overdue"),
            (50.0, datetime(2026, 3, 1), "pending"),
        )
    )

    res = handle_outstanding_balance(db, lease_id=s.lease_id, disposition="apply_deposit", deposit_to_apply=500.0)

    assert res.obligations_settled == 2
    assert res.deposit_unapplied == 0.0
    assert [p.status for p in _payments(s.lease_id)] == ["paid", "paid", "pending"]


@pytest.mark.parametrize("amount", [None, 0, -50.0])
def test_apply_deposit_requires_positive_amount(seed_lease, db, amount):
    s = seed_lease(payments=((750.0, datetime(2026, 2, 1), "overdue"),))

    with pytest.raises(ValidationError):
        handle_outstanding_balance(db, lease_id=s.lease_id, disposition="apply_deposit", deposit_to_apply=amount)

    assert [p.status for p in _payments(s.lease_id)] == ["overdue"]


def test_write_off_books_bad_debt_and_cancels_obligations(seed_lease, db):
    s = seed_lease(
        payments=(
            (400.0, datetime(2026, 1, 1), "overdue"),
            (350.0, datetime(2026, 2, 1), "pending"),
        )
    )

    res = handle_outstanding_balance(db, lease_id=s.lease_id, disposition="write_off")

    assert res.amount_settled == 750.0
    assert res.expense_id is not None

    check = SessionLocal()
    try:
        exp = check.get(Expense, res.expense_id)
        assert exp.category == "bad_debt"
        assert exp.amount == 750.0
        assert exp.property_id == s.property_id
        assert exp.unit_id == s.unit_id
        assert exp.landlord_id == s.landlord_id
    finally:
        check.close()

    for p in _payments(s.lease_id):
        assert p.status == "cancelled"
        meta = _meta(p)
        assert meta["written_off"] is True
        assert meta["expense_id"] == res.expense_id
        assert "written_off_at" in meta


def test_write_off_with_nothing_owed_books_no_expense(seed_lease, db):
    s = seed_lease(payments=((1500.0, datetime(2026, 1, 1), "paid"),))

    res = handle_outstanding_balance(db, lease_id=s.lease_id, disposition="write_off")

    assert res.total_owed == 0.0
    assert res.expense_id is None
    assert int(db.scalar(select(func.count(Expense.id))) or 0) == 0


def test_deposit_then_write_off_never_touches_the_same_obligation(seed_lease, db):
    s = seed_lease(
        payments=(
            (300.0, datetime(2026, 1, 1), "overdue"),
            (500.0, datetime(2026, 2, 1), "overdue"),
        )
    )

    applied = handle_outstanding_balance(db, lease_id=s.lease_id, disposition="apply_deposit", deposit_to_apply=400.0)
    written = handle_outstanding_balance(db, lease_id=s.lease_id, disposition="write_off")

    assert set(applied.payment_ids).isdisjoint(written.payment_ids)
    assert written.total_owed == 500.0

    paid, cancelled = _payments(s.lease_id)
    assert paid.status == "paid" and "written_off" not in _meta(paid)
    assert cancelled.status == "cancelled" and "paid_from_deposit" not in _meta(cancelled)


def test_collections_flags_tenant_and_leaves_obligations(seed_lease, db, caplog):
    s = seed_lease(payments=((900.0, datetime(2026, 1, 1), "overdue"),))

    with caplog.at_level(logging.WARNING, logger="tenant_lifecycle.services.balance_disposition"):
        res = handle_outstanding_balance(db, lease_id=s.lease_id, disposition="collections")

    assert res.total_owed == 900.0
    assert res.obligations_settled == 0
    assert any("collections" in r.getMessage() for r in caplog.records)

    check = SessionLocal()
    try:
        tenant = check.get(Tenant, s.tenant_id)
        assert tenant.sent_to_collections_at is not None
        assert tenant.collections_balance == 900.0
        ev = check.scalar(select(WorkflowEvent).where(WorkflowEvent.event_type == "tenant.sent_to_collections"))
        assert ev is not None and ev.lease_id == s.lease_id
    finally:
        check.close()

    assert [p.status for p in _payments(s.lease_id)] == ["overdue"]


def test_unknown_disposition_is_rejected(seed_lease, db):
    s = seed_lease()
    with pytest.raises(ValidationError):
        handle_outstanding_balance(db, lease_id=s.lease_id, disposition="forgive_and_forget")


def test_missing_lease_and_missing_owner(seed_lease, db):
    with pytest.raises(NotFound):
        handle_outstanding_balance(db, lease_id=31337, disposition="write_off")

    s = seed_lease(with_landlord=False, payments=((100.0, datetime(2026, 1, 1), "overdue"),))
    with pytest.raises(MissingOwner):
        handle_outstanding_balance(db, lease_id=s.lease_id, disposition="write_off")
