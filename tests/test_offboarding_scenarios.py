from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import func, select

from tenant_lifecycle.db import SessionLocal
from tenant_lifecycle.models import (
    AuditEvent,
    Lease,
    RentPayment,
    TenantDeparture,
    TenantHistory,
    Unit,
    UnitTurnoverChecklist,
    WorkflowEvent,
)
from tenant_lifecycle.services.deposit_service import DeductionInput, create_deposit_disposition
from tenant_lifecycle.services.offboarding import execute_offboarding, get_offboarding_status

DEPARTED = datetime(2026, 3, 31)


def _count(model, **where) -> int:
    db = SessionLocal()
    try:
        q = select(func.count(model.id))
        for k, v in where.items():
            q = q.where(getattr(model, k) == v)
        return int(db.scalar(q) or 0)
    finally:
        db.close()


def _table_counts() -> dict[str, int]:
    models = (Lease, RentPayment, TenantDeparture, TenantHistory, UnitTurnoverChecklist, AuditEvent, WorkflowEvent)
    return {m.__tablename__: _count(m) for m in models}


def test_scenario_voluntary_departure_with_pending_rent(seed_lease, db):
    s = seed_lease(
        payments=(
            (500.0, datetime(2026, 4, 1), "pending"),
            (500.0, datetime(2026, 5, 1), "pending"),
        )
    )

    res = execute_offboarding(db, lease_id=s.lease_id, departure_type="voluntary", departure_date=DEPARTED)

    assert res.success is True
    assert res.lease_terminated is True
    assert res.already_terminated is False
    assert res.departure_recorded is True
    assert res.payments_cancelled == 2
    assert res.tenant_history_id is not None
    assert res.turnover_checklist_id is not None
    assert res.outstanding_balance == 0.0
    assert res.errors == []

    check = SessionLocal()
    try:
        assert check.get(Lease, s.lease_id).status == "terminated"
        statuses = check.scalars(select(RentPayment.status).where(RentPayment.lease_id == s.lease_id)).all()
        assert sorted(statuses) == ["cancelled", "cancelled"]
    finally:
        check.close()

    assert _count(TenantDeparture, lease_id=s.lease_id) == 1
    assert _count(TenantHistory, lease_id=s.lease_id) == 1
    assert _count(UnitTurnoverChecklist, lease_id=s.lease_id) == 1


def test_scenario_rerun_on_terminated_lease_is_idempotent(seed_lease, db):
    s = seed_lease()

    first = execute_offboarding(db, lease_id=s.lease_id, departure_type="voluntary", departure_date=DEPARTED)
    second = execute_offboarding(db, lease_id=s.lease_id, departure_type="voluntary", departure_date=DEPARTED)

    assert first.success and second.success
    assert second.lease_terminated is True
    assert second.already_terminated is True
    assert second.errors == []
    assert second.departure_id == first.departure_id
    assert second.tenant_history_id == first.tenant_history_id
    assert second.turnover_checklist_id == first.turnover_checklist_id

    assert _count(TenantDeparture, lease_id=s.lease_id) == 1
    assert _count(TenantHistory, lease_id=s.lease_id) == 1
    assert _count(UnitTurnoverChecklist, lease_id=s.lease_id) == 1


def test_scenario_missing_owner_fails_without_mutation(seed_lease, db):
    s = seed_lease(with_landlord=False, payments=((500.0, datetime(2026, 4, 1), "pending"),))
    before = _table_counts()

    res = execute_offboarding(db, lease_id=s.lease_id, departure_type="voluntary", departure_date=DEPARTED)

    assert res.success is False
    assert res.lease_terminated is False
    assert len(res.errors) == 1
    assert "landlord" in res.errors[0].lower()

    assert _table_counts() == before
    check = SessionLocal()
    try:
        assert check.get(Lease, s.lease_id).status == "active"
        assert check.scalar(select(RentPayment.status).where(RentPayment.lease_id == s.lease_id)) == "pending"
    finally:
        check.close()


def test_draft_lease_is_not_offboarded(seed_lease, db):
    s = seed_lease(status="draft", payments=((500.0, datetime(2026, 4, 1), "pending"),))
    before = _table_counts()

    res = execute_offboarding(db, lease_id=s.lease_id, departure_type="voluntary", departure_date=DEPARTED)

    assert res.success is False
    assert res.lease_terminated is False
    assert res.errors == [f"Failed to terminate lease: Lease {s.lease_id} is draft; only active or expired leases can be terminated"]
    assert _table_counts() == before


def test_missing_lease_reports_not_found(db):
    res = execute_offboarding(db, lease_id=424242, departure_type="voluntary", departure_date=DEPARTED)
    assert res.success is False
    assert res.errors == ["Lease not found"]


def test_lease_in_another_org_looks_missing(seed_lease, db):
    s = seed_lease()
    res = execute_offboarding(
        db, lease_id=s.lease_id, departure_type="voluntary", departure_date=DEPARTED, org_id=s.org_id + 1
    )
    assert res.success is False
    assert res.errors == ["Lease not found"]
    assert _count(TenantDeparture) == 0


def test_unknown_departure_type_is_rejected(seed_lease, db):
    s = seed_lease()
    res = execute_offboarding(db, lease_id=s.lease_id, departure_type="teleported", departure_date=DEPARTED)
    assert res.success is False
    assert res.errors[0].startswith("Invalid offboarding request")
    assert _count(TenantDeparture) == 0


def test_overdue_rent_survives_offboarding_as_outstanding_balance(seed_lease, db):
    s = seed_lease(
        payments=(
            (750.0, datetime(2026, 2, 1), "overdue"),
            (1500.0, datetime(2026, 4, 1), "scheduled"),
        )
    )

    res = execute_offboarding(db, lease_id=s.lease_id, departure_type="voluntary", departure_date=DEPARTED)

    assert res.success is True
    assert res.payments_cancelled == 1
    assert res.outstanding_balance == 750.0


def test_history_keeps_scheduled_end_date(seed_lease, db):
    s = seed_lease(end_date=datetime(2026, 6, 30))

    res = execute_offboarding(db, lease_id=s.lease_id, departure_type="mutual_agreement", departure_date=DEPARTED)

    check = SessionLocal()
    try:
        h = check.get(TenantHistory, res.tenant_history_id)
        assert h.lease_end_date == datetime(2026, 6, 30)
        assert h.departure_date == DEPARTED
        assert h.was_evicted is False
        # the live lease now ends on the departure date
        assert check.get(Lease, s.lease_id).end_date == DEPARTED
    finally:
        check.close()


def test_month_to_month_history_ends_on_departure(seed_lease, db):
    s = seed_lease(end_date=None)

    res = execute_offboarding(db, lease_id=s.lease_id, departure_type="voluntary", departure_date=DEPARTED)

    check = SessionLocal()
    try:
        assert check.get(TenantHistory, res.tenant_history_id).lease_end_date == DEPARTED
    finally:
        check.close()


def test_eviction_is_flagged_and_notice_recorded(seed_lease, db):
    s = seed_lease()

    res = execute_offboarding(
        db,
        lease_id=s.lease_id,
        departure_type="eviction",
        departure_date=DEPARTED,
        notes="court order",
        eviction_notice_ref="CASE-2026-0042",
    )

    check = SessionLocal()
    try:
        dep = check.get(TenantDeparture, res.departure_id)
        assert dep.departure_type == "eviction"
        assert dep.eviction_notice_ref == "CASE-2026-0042"
        assert dep.notes == "court order"
        assert check.get(TenantHistory, res.tenant_history_id).was_evicted is True
    finally:
        check.close()


def test_mark_unit_available_is_opt_in(seed_lease, db):
    kept = seed_lease()
    listed = seed_lease()

    execute_offboarding(db, lease_id=kept.lease_id, departure_type="voluntary", departure_date=DEPARTED)
    res = execute_offboarding(
        db, lease_id=listed.lease_id, departure_type="voluntary", departure_date=DEPARTED, mark_unit_available=True
    )
    assert res.unit_marked_available is True

    check = SessionLocal()
    try:
        assert check.get(Unit, kept.unit_id).is_available is False
        unit = check.get(Unit, listed.unit_id)
        assert unit.is_available is True
        assert unit.available_from == DEPARTED
    finally:
        check.close()


def test_history_carries_latest_deposit_disposition(seed_lease, db):
    s = seed_lease(deposit_amount=1500.0)
    create_deposit_disposition(
        db,
        lease_id=s.lease_id,
        original_amount=1500.0,
        deductions=[DeductionInput(category="cleaning", amount=200.0, description="carpet shampoo")],
    )

    res = execute_offboarding(db, lease_id=s.lease_id, departure_type="lease_end", departure_date=DEPARTED)

    check = SessionLocal()
    try:
        h = check.get(TenantHistory, res.tenant_history_id)
        assert h.deposit_amount == 1500.0
        assert h.deposit_refunded == 1300.0
        assert h.deposit_deducted == 200.0
    finally:
        check.close()


def test_history_without_disposition_uses_lease_deposit(seed_lease, db):
    s = seed_lease(deposit_amount=900.0)

    res = execute_offboarding(db, lease_id=s.lease_id, departure_type="voluntary", departure_date=DEPARTED)

    check = SessionLocal()
    try:
        h = check.get(TenantHistory, res.tenant_history_id)
        assert h.deposit_amount == 900.0
        assert h.deposit_refunded is None
        assert h.deposit_deducted is None
    finally:
        check.close()


def test_offboarding_writes_workflow_event_and_audit(seed_lease, db):
    s = seed_lease()

    execute_offboarding(db, lease_id=s.lease_id, departure_type="voluntary", departure_date=DEPARTED, actor_user_id=None)

    check = SessionLocal()
    try:
        ev = check.scalar(select(WorkflowEvent).where(WorkflowEvent.lease_id == s.lease_id))
        assert ev.event_type == "lease.offboarded"
        payload = json.loads(ev.payload_json)
        assert payload["departure_type"] == "voluntary"
        assert payload["errors"] == []

        audit = check.scalar(select(AuditEvent).where(AuditEvent.action == "lease.offboard"))
        assert audit.entity_id == str(s.lease_id)
        assert json.loads(audit.after_json)["success"] is True
    finally:
        check.close()


def test_status_tracks_each_record(seed_lease, db):
    s = seed_lease()

    before = get_offboarding_status(db, lease_id=s.lease_id)
    assert before.as_dict() == {
        "lease_terminated": False,
        "departure_recorded": False,
        "history_created": False,
        "checklist_created": False,
        "complete": False,
    }

    execute_offboarding(db, lease_id=s.lease_id, departure_type="voluntary", departure_date=DEPARTED)

    after = get_offboarding_status(db, lease_id=s.lease_id)
    assert after.complete is True
