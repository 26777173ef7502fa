from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tenant_lifecycle.db import SessionLocal
from tenant_lifecycle.domain.errors import Conflict, NotFound, ValidationError
from tenant_lifecycle.models import Lease
from tenant_lifecycle.services.lease_terminator import terminate_lease


def _lease(lease_id: int) -> Lease:
    db = SessionLocal()
    try:
        return db.get(Lease, lease_id)
    finally:
        db.close()


def test_terminate_sets_status_reason_and_end_date(seed_lease, db):
    s = seed_lease(end_date=datetime(2026, 12, 31))
    when = datetime(2026, 3, 31)

    out = terminate_lease(db, lease_id=s.lease_id, reason="voluntary", terminated_at=when)
    assert out.already_terminated is False
    assert out.reason == "voluntary"

    lease = _lease(s.lease_id)
    assert lease.status == "terminated"
    assert lease.termination_reason == "voluntary"
    assert lease.terminated_at == when
    assert lease.end_date == when


def test_same_reason_and_date_is_a_noop(seed_lease, db):
    s = seed_lease()
    when = datetime(2026, 3, 31)

    terminate_lease(db, lease_id=s.lease_id, reason="eviction", terminated_at=when)

    # a second session, as a concurrent caller would have
    other = SessionLocal()
    try:
        again = terminate_lease(other, lease_id=s.lease_id, reason="eviction", terminated_at=when)
    finally:
        other.close()

    assert again.already_terminated is True
    assert _lease(s.lease_id).terminated_at == when


def test_aware_datetime_is_stored_as_naive_utc(seed_lease, db):
    s = seed_lease()
    aware = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)

    terminate_lease(db, lease_id=s.lease_id, reason="voluntary", terminated_at=aware)
    again = terminate_lease(db, lease_id=s.lease_id, reason="voluntary", terminated_at=datetime(2026, 3, 31, 12, 0))

    assert again.already_terminated is True
    assert _lease(s.lease_id).terminated_at == datetime(2026, 3, 31, 12, 0)


def test_different_reason_conflicts(seed_lease, db):
    s = seed_lease()
    terminate_lease(db, lease_id=s.lease_id, reason="voluntary", terminated_at=datetime(2026, 3, 31))

    with pytest.raises(Conflict):
        terminate_lease(db, lease_id=s.lease_id, reason="eviction", terminated_at=datetime(2026, 3, 31))

    with pytest.raises(Conflict):
        terminate_lease(db, lease_id=s.lease_id, reason="voluntary", terminated_at=datetime(2026, 4, 1))

    lease = _lease(s.lease_id)
    assert lease.termination_reason == "voluntary"
    assert lease.terminated_at == datetime(2026, 3, 31)


def test_missing_lease_raises_not_found(db):
    with pytest.raises(NotFound):
        terminate_lease(db, lease_id=999_999, reason="voluntary", terminated_at=datetime(2026, 3, 31))


def test_unknown_reason_is_rejected_before_any_write(seed_lease, db):
    s = seed_lease()
    with pytest.raises(ValidationError):
        terminate_lease(db, lease_id=s.lease_id, reason="moved_to_mars", terminated_at=datetime(2026, 3, 31))
    assert _lease(s.lease_id).status == "active"


def test_commit_false_leaves_transaction_to_caller(seed_lease, db):
    s = seed_lease()
    terminate_lease(db, lease_id=s.lease_id, reason="voluntary", terminated_at=datetime(2026, 3, 31), commit=False)
    db.rollback()
    assert _lease(s.lease_id).status == "active"


def test_expired_lease_in_holdover_can_be_terminated(seed_lease, db):
    s = seed_lease(status="expired")

    out = terminate_lease(db, lease_id=s.lease_id, reason="voluntary", terminated_at=datetime(2026, 7, 15))

    assert out.already_terminated is False
    assert _lease(s.lease_id).status == "terminated"


def test_draft_lease_cannot_be_terminated(seed_lease, db):
    s = seed_lease(status="draft")

    with pytest.raises(Conflict):
        terminate_lease(db, lease_id=s.lease_id, reason="voluntary", terminated_at=datetime(2026, 3, 31))

    lease = _lease(s.lease_id)
    assert lease.status == "draft"
    assert lease.terminated_at is None
