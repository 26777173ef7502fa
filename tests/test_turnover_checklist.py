from __future__ import annotations

import pytest

from tenant_lifecycle.domain.errors import NotFound, ValidationError
from tenant_lifecycle.services.turnover_checklist import (
    CHECKLIST_ITEMS,
    checklist_progress,
    create_turnover_checklist,
    update_checklist_item,
)


def _create(db, s):
    row = create_turnover_checklist(
        db, org_id=s.org_id, unit_id=s.unit_id, lease_id=s.lease_id, landlord_id=s.landlord_id
    )
    db.commit()
    return row


def test_new_checklist_starts_with_nothing_done(seed_lease, db):
    s = seed_lease()
    row = _create(db, s)

    assert all(getattr(row, k) is False for k in CHECKLIST_ITEMS)
    assert row.completed_at is None
    assert checklist_progress(row).as_dict() == {"total": 5, "done": 0, "pct_done": 0.0, "complete": False}


def test_create_is_idempotent_per_lease(seed_lease, db):
    s = seed_lease()
    assert _create(db, s).id == _create(db, s).id


def test_completing_every_item_stamps_completed_at(seed_lease, db):
    s = seed_lease()
    row = _create(db, s)

    for item in CHECKLIST_ITEMS[:-1]:
        row = update_checklist_item(db, checklist_id=row.id, item=item, completed=True)
        assert getattr(row, f"{item}_at") is not None
        assert row.completed_at is None

    row = update_checklist_item(db, checklist_id=row.id, item=CHECKLIST_ITEMS[-1], completed=True, notes="ready to list")
    assert row.completed_at is not None
    assert row.notes == "ready to list"
    assert checklist_progress(row).complete is True


def test_reopening_an_item_clears_completion(seed_lease, db):
    s = seed_lease()
    row = _create(db, s)
    for item in CHECKLIST_ITEMS:
        row = update_checklist_item(db, checklist_id=row.id, item=item, completed=True)

    row = update_checklist_item(db, checklist_id=row.id, item="repairs_completed", completed=False)

    assert row.repairs_completed is False
    assert row.repairs_completed_at is None
    assert row.completed_at is None
    assert checklist_progress(row).done == 4


def test_unknown_item_and_missing_checklist(seed_lease, db):
    s = seed_lease()
    row = _create(db, s)

    with pytest.raises(ValidationError):
        update_checklist_item(db, checklist_id=row.id, item="paint_walls", completed=True)

    with pytest.raises(NotFound):
        update_checklist_item(db, checklist_id=row.id + 1000, item="keys_collected", completed=True)

    with pytest.raises(NotFound):
        update_checklist_item(db, checklist_id=row.id, item="keys_collected", completed=True, org_id=s.org_id + 1)
