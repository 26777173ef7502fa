# tests/conftest.py
from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pytest

# Must be set before tenant_lifecycle.config is imported anywhere
_TMP_DIR = tempfile.mkdtemp(prefix="tenant_lifecycle_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ.setdefault("APP_ENV", "local")
os.environ.setdefault("AUTH_MODE", "dev")

from tenant_lifecycle.db import Base, SessionLocal, engine  # noqa: E402
from tenant_lifecycle.models import (  # noqa: E402
    AppUser,
    Lease,
    Organization,
    Property,
    RentPayment,
    Tenant,
    Unit,
)

ORG_SLUG = "acme"
LANDLORD_EMAIL = "owner@acme.local"


@pytest.fixture(autouse=True)
def _fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@dataclass(frozen=True)
class Seeded:
    org_id: int
    landlord_id: Optional[int]
    property_id: int
    unit_id: int
    tenant_id: int
    lease_id: int
    payment_ids: list[int]


def _get_or_create_org(db) -> Organization:
    org = db.query(Organization).filter(Organization.slug == ORG_SLUG).first()
    if org is None:
        org = Organization(slug=ORG_SLUG, name="Acme Rentals", created_at=datetime.utcnow())
        db.add(org)
        db.commit()
        db.refresh(org)
    return org


def _get_or_create_landlord(db) -> AppUser:
    user = db.query(AppUser).filter(AppUser.email == LANDLORD_EMAIL).first()
    if user is None:
        user = AppUser(email=LANDLORD_EMAIL, display_name="owner", created_at=datetime.utcnow())
        db.add(user)
        db.commit()
        db.refresh(user)
    return user


@pytest.fixture()
def seed_lease():
    """
    Factory: org + landlord + property/unit + tenant + active lease, plus
    optional obligations given as (amount, due_date, status) tuples.
    """

    def _seed(
        *,
        with_landlord: bool = True,
        start_date: datetime = datetime(2025, 7, 1),
        end_date: Optional[datetime] = datetime(2026, 6, 30),
        rent_amount: float = 1500.0,
        deposit_amount: float = 0.0,
        tenant_name: str = "Jane Renter",
        tenant_email: Optional[str] = "jane@example.com",
        payments: tuple = (),
        status: str = "active",
    ) -> Seeded:
        db = SessionLocal()
        try:
            org = _get_or_create_org(db)
            landlord = _get_or_create_landlord(db) if with_landlord else None

            prop = Property(
                org_id=org.id,
                landlord_id=landlord.id if landlord else None,
                name="Maple Court",
                address="12 Maple St",
                city="Detroit",
                state="MI",
                zip="48201",
                created_at=datetime.utcnow(),
            )
            db.add(prop)
            db.commit()
            db.refresh(prop)

            unit = Unit(org_id=org.id, property_id=prop.id, name="2B", is_available=False, created_at=datetime.utcnow())
            tenant = Tenant(org_id=org.id, full_name=tenant_name, email=tenant_email, phone="555-0100", created_at=datetime.utcnow())
            db.add_all([unit, tenant])
            db.commit()
            db.refresh(unit)
            db.refresh(tenant)

            lease = Lease(
                org_id=org.id,
                tenant_id=tenant.id,
                unit_id=unit.id,
                start_date=start_date,
                end_date=end_date,
                rent_amount=rent_amount,
                deposit_amount=deposit_amount,
                status=status,
                created_at=datetime.utcnow(),
                updated_at=datetime.utcnow(),
            )
            db.add(lease)
            db.commit()
            db.refresh(lease)

            rows = [
                RentPayment(org_id=org.id, lease_id=lease.id, amount=amount, due_date=due, status=st, created_at=datetime.utcnow())
                for amount, due, st in payments
            ]
            db.add_all(rows)
            db.commit()

            return Seeded(
                org_id=int(org.id),
                landlord_id=int(landlord.id) if landlord else None,
                property_id=int(prop.id),
                unit_id=int(unit.id),
                tenant_id=int(tenant.id),
                lease_id=int(lease.id),
                payment_ids=[int(r.id) for r in rows],
            )
        finally:
            db.close()

    return _seed


@pytest.fixture()
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def operator_headers() -> dict[str, str]:
    return {
        "X-Org-Slug": ORG_SLUG,
        "X-User-Email": "ops@acme.local",
        "X-User-Role": "operator",
    }
