# tenant_lifecycle/schemas.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .domain.types import BalanceDisposition, ChecklistItem, DeductionCategory, DepartureType, RefundMethod


# -------------------- Offboarding --------------------

class OffboardingIn(BaseModel):
    departure_type: DepartureType
    departure_date: datetime
    notes: Optional[str] = None
    mark_unit_available: bool = False
    eviction_notice_ref: Optional[str] = None


class StepOutcomeOut(BaseModel):
    name: str
    ok: bool
    error: Optional[str] = None


class OffboardingResultOut(BaseModel):
    success: bool
    lease_terminated: bool
    already_terminated: bool = False
    departure_recorded: bool
    departure_id: Optional[int] = None
    payments_cancelled: Optional[int] = None
    tenant_history_id: Optional[int] = None
    turnover_checklist_id: Optional[int] = None
    unit_marked_available: bool = False
    outstanding_balance: Optional[float] = None
    errors: List[str] = Field(default_factory=list)
    steps: List[StepOutcomeOut] = Field(default_factory=list)


class OffboardingStatusOut(BaseModel):
    lease_terminated: bool
    departure_recorded: bool
    history_created: bool
    checklist_created: bool
    complete: bool


class WorkflowEventOut(BaseModel):
    """WorkflowEvent row with payload_json decoded into payload."""

    id: int
    event_type: str
    actor_user_id: Optional[int] = None
    payload: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("payload_json", "payload"))
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("payload", mode="before")
    @classmethod
    def _decode_payload(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return json.loads(v)
            except ValueError:
                return {}
        return v or {}


class AuditEventOut(BaseModel):
    id: int
    action: str
    entity_type: str
    entity_id: str
    actor_user_id: Optional[int] = None
    request_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# -------------------- Balance --------------------

class ObligationOut(BaseModel):
    id: int
    amount: float
    due_date: datetime
    status: str


class OutstandingBalanceOut(BaseModel):
    lease_id: int
    total_owed: float
    obligation_count: int
    oldest_due_date: Optional[datetime] = None
    obligations: List[ObligationOut] = Field(default_factory=list)


class BalanceDispositionIn(BaseModel):
    disposition: BalanceDisposition
    deposit_to_apply: Optional[float] = None


class DispositionResultOut(BaseModel):
    lease_id: int
    disposition: str
    total_owed: float
    obligations_matched: int
    obligations_settled: int
    amount_settled: float
    deposit_applied: float
    deposit_unapplied: float
    expense_id: Optional[int] = None
    payment_ids: List[int] = Field(default_factory=list)


# -------------------- Deposits --------------------

class DeductionIn(BaseModel):
    category: DeductionCategory
    amount: float = Field(gt=0)
    description: str = Field(min_length=1)
    evidence_urls: List[str] = Field(default_factory=list)


class DepositDispositionIn(BaseModel):
    original_amount: float = Field(ge=0)
    deductions: List[DeductionIn] = Field(default_factory=list)
    refund_method: RefundMethod = RefundMethod.pending
    notes: Optional[str] = None


class DeductionOut(BaseModel):
    id: int
    category: str
    amount: float
    description: str
    evidence_urls: List[str] = Field(default_factory=list)


class DepositDispositionOut(BaseModel):
    id: int
    lease_id: int
    tenant_id: int
    original_amount: float
    total_deductions: float
    refund_amount: float
    refund_method: str
    refund_status: str
    processed_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    deductions: List[DeductionOut] = Field(default_factory=list)


# -------------------- Turnover --------------------

class ChecklistItemPatch(BaseModel):
    item: ChecklistItem
    completed: bool
    notes: Optional[str] = None


class TurnoverChecklistOut(BaseModel):
    id: int
    unit_id: int
    lease_id: Optional[int] = None

    deposit_processed: bool
    deposit_processed_at: Optional[datetime] = None
    keys_collected: bool
    keys_collected_at: Optional[datetime] = None
    unit_inspected: bool
    unit_inspected_at: Optional[datetime] = None
    cleaning_completed: bool
    cleaning_completed_at: Optional[datetime] = None
    repairs_completed: bool
    repairs_completed_at: Optional[datetime] = None

    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# -------------------- Tenant history --------------------

class TenantHistoryOut(BaseModel):
    id: int
    lease_id: int
    tenant_id: int
    unit_id: int
    property_id: int
    landlord_id: int

    tenant_name: str
    tenant_email: Optional[str] = None
    tenant_phone: Optional[str] = None

    lease_start_date: datetime
    lease_end_date: datetime
    rent_amount: float

    departure_type: str
    departure_date: datetime

    deposit_amount: Optional[float] = None
    deposit_refunded: Optional[float] = None
    deposit_deducted: Optional[float] = None
    was_evicted: bool

    model_config = ConfigDict(from_attributes=True)


class TenantHistoryPageOut(BaseModel):
    items: List[TenantHistoryOut]
    total: int
    page: int
    limit: int

