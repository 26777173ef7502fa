# tenant_lifecycle/models.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base
from .domain.types import LeaseStatus, PaymentStatus, RefundMethod, RefundStatus


# -----------------------------
# Multitenant RBAC tables
# -----------------------------
class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String(80), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class AppUser(Base):
    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class OrgMembership(Base):
    __tablename__ = "org_memberships"
    __table_args__ = (UniqueConstraint("org_id", "user_id", name="uq_org_memberships_org_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="owner")  # owner|operator|analyst
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=False)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)
    lease_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    request_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class WorkflowEvent(Base):
    __tablename__ = "workflow_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=False)

    lease_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("leases.id"), nullable=True, index=True)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    event_type: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    payload_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Portfolio: properties / units / tenants
# -----------------------------
class Property(Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    # Billing owner. Offboarding refuses to run without one.
    landlord_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    zip: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    units: Mapped[List["Unit"]] = relationship(back_populates="property", cascade="all, delete-orphan")


class Unit(Base):
    __tablename__ = "units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )

    name: Mapped[str] = mapped_column(String(80), nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    available_from: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    property: Mapped["Property"] = relationship(back_populates="units")
    leases: Mapped[List["Lease"]] = relationship(back_populates="unit")


class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Collections flag (agency hand-off happens outside this service)
    sent_to_collections_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    collections_balance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    leases: Mapped[List["Lease"]] = relationship(back_populates="tenant")


# -----------------------------
# Leases + obligations
# -----------------------------
class Lease(Base):
    __tablename__ = "leases"
    __table_args__ = (Index("ix_leases_org_status", "org_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    unit_id: Mapped[int] = mapped_column(Integer, ForeignKey("units.id"), nullable=False, index=True)

    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)  # None = month-to-month

    rent_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    deposit_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=LeaseStatus.active.value)
    termination_reason: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    terminated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    tenant: Mapped["Tenant"] = relationship(back_populates="leases")
    unit: Mapped["Unit"] = relationship(back_populates="leases")
    payments: Mapped[List["RentPayment"]] = relationship(back_populates="lease", order_by="RentPayment.due_date")


class RentPayment(Base):
    __tablename__ = "rent_payments"
    __table_args__ = (Index("ix_rent_payments_lease_status", "lease_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    lease_id: Mapped[int] = mapped_column(Integer, ForeignKey("leases.id"), nullable=False, index=True)

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentStatus.pending.value)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # {"written_off": true, ...} | {"paid_from_deposit": true, ...}
    metadata_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    lease: Mapped["Lease"] = relationship(back_populates="payments")


class Expense(Base):
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)

    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    unit_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("units.id"), nullable=True)
    lease_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("leases.id"), nullable=True, index=True)

    category: Mapped[str] = mapped_column(String(60), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    incurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Offboarding records
# -----------------------------
class TenantDeparture(Base):
    """
    Append-only: corrections add a new row pointing at the one they supersede,
    nothing is updated in place. At most one original (non-correction) row per lease.
    """

    __tablename__ = "tenant_departures"
    __table_args__ = (
        Index(
            "uq_tenant_departures_lease_original",
            "lease_id",
            unique=True,
            sqlite_where=text("supersedes_id IS NULL"),
            postgresql_where=text("supersedes_id IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    lease_id: Mapped[int] = mapped_column(Integer, ForeignKey("leases.id"), nullable=False, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    unit_id: Mapped[int] = mapped_column(Integer, ForeignKey("units.id"), nullable=False, index=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)

    departure_type: Mapped[str] = mapped_column(String(40), nullable=False)
    departure_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    eviction_notice_ref: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    supersedes_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("tenant_departures.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class TenantHistory(Base):
    __tablename__ = "tenant_history"
    __table_args__ = (
        UniqueConstraint("lease_id", name="uq_tenant_history_lease"),
        CheckConstraint(
            "coalesce(deposit_refunded, 0) + coalesce(deposit_deducted, 0) <= coalesce(deposit_amount, 0)",
            name="ck_tenant_history_deposit_conservation",
        ),
        Index("ix_tenant_history_landlord_departure", "landlord_id", "departure_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    # Plain ints on purpose: history outlives the live lease/unit rows
    lease_id: Mapped[int] = mapped_column(Integer, nullable=False)
    tenant_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    unit_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    landlord_id: Mapped[int] = mapped_column(Integer, nullable=False)

    tenant_name: Mapped[str] = mapped_column(String(200), nullable=False)
    tenant_email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    tenant_phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    lease_start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    lease_end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    rent_amount: Mapped[float] = mapped_column(Float, nullable=False)

    departure_type: Mapped[str] = mapped_column(String(40), nullable=False)
    departure_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    deposit_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    deposit_refunded: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    deposit_deducted: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    was_evicted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class UnitTurnoverChecklist(Base):
    __tablename__ = "unit_turnover_checklists"
    __table_args__ = (UniqueConstraint("lease_id", name="uq_unit_turnover_checklists_lease"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    unit_id: Mapped[int] = mapped_column(Integer, ForeignKey("units.id"), nullable=False, index=True)
    lease_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("leases.id"), nullable=True)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False)

    deposit_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deposit_processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    keys_collected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    keys_collected_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    unit_inspected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    unit_inspected_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cleaning_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cleaning_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    repairs_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    repairs_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class DepositDisposition(Base):
    __tablename__ = "deposit_dispositions"
    __table_args__ = (
        CheckConstraint("total_deductions <= original_amount", name="ck_deposit_dispositions_deductions"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    lease_id: Mapped[int] = mapped_column(Integer, ForeignKey("leases.id"), nullable=False, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False)
    landlord_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False)

    original_amount: Mapped[float] = mapped_column(Float, nullable=False)
    total_deductions: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    refund_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    refund_method: Mapped[str] = mapped_column(String(20), nullable=False, default=RefundMethod.pending.value)
    refund_status: Mapped[str] = mapped_column(String(20), nullable=False, default=RefundStatus.pending.value)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    deductions: Mapped[List["DepositDeductionItem"]] = relationship(
        back_populates="disposition", cascade="all, delete-orphan", order_by="DepositDeductionItem.id"
    )


class DepositDeductionItem(Base):
    __tablename__ = "deposit_deduction_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    disposition_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("deposit_dispositions.id", ondelete="CASCADE"), nullable=False, index=True
    )

    category: Mapped[str] = mapped_column(String(40), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    evidence_urls_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    disposition: Mapped["DepositDisposition"] = relationship(back_populates="deductions")
