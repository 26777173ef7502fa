# tenant_lifecycle/domain/types.py
from __future__ import annotations

from enum import Enum


class LeaseStatus(str, Enum):
    draft = "draft"
    active = "active"
    expired = "expired"
    terminated = "terminated"


# A tenant can only depart from a tenancy that began; expired covers holdovers
TERMINABLE_STATUSES = (LeaseStatus.active.value, LeaseStatus.expired.value)


class PaymentStatus(str, Enum):
    scheduled = "scheduled"
    pending = "pending"
    overdue = "overdue"
    paid = "paid"
    cancelled = "cancelled"


# Obligations that still represent money owed at departure
OUTSTANDING_STATUSES = (PaymentStatus.pending.value, PaymentStatus.overdue.value)

# Future billing that simply stops when the tenancy ends
CANCELLABLE_STATUSES = (PaymentStatus.pending.value, PaymentStatus.scheduled.value)


class DepartureType(str, Enum):
    voluntary = "voluntary"
    eviction = "eviction"
    lease_end = "lease_end"
    mutual_agreement = "mutual_agreement"
    abandonment = "abandonment"


class BalanceDisposition(str, Enum):
    write_off = "write_off"
    apply_deposit = "apply_deposit"
    collections = "collections"


class DeductionCategory(str, Enum):
    damages = "damages"
    unpaid_rent = "unpaid_rent"
    cleaning = "cleaning"
    repairs = "repairs"
    other = "other"


class RefundMethod(str, Enum):
    check = "check"
    ach = "ach"
    pending = "pending"


class RefundStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"


REFUND_STATUS_FLOW: dict[str, tuple[str, ...]] = {
    RefundStatus.pending.value: (RefundStatus.processing.value, RefundStatus.completed.value),
    RefundStatus.processing.value: (RefundStatus.completed.value,),
    RefundStatus.completed.value: (),
}


class ChecklistItem(str, Enum):
    deposit_processed = "deposit_processed"
    keys_collected = "keys_collected"
    unit_inspected = "unit_inspected"
    cleaning_completed = "cleaning_completed"
    repairs_completed = "repairs_completed"
