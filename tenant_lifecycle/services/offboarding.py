# tenant_lifecycle/services/offboarding.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.audit import audit_lease
from ..domain.clock import as_naive_utc
from ..domain.errors import OffboardingError, store_errors
from ..domain.events import emit_workflow_event
from ..domain.types import DepartureType, LeaseStatus
from ..models import Lease
from .balance_resolver import resolve_outstanding_balance
from .departure_recorder import find_departure, record_departure
from .deposit_service import latest_disposition_for_lease
from .history_archiver import DepositSummary, create_tenant_history, find_history
from .lease_terminator import TerminationOutcome, terminate_lease
from .ownership import must_get_lease, resolve_landlord_id
from .payment_canceller import cancel_pending_payments
from .turnover_checklist import create_turnover_checklist, find_checklist_for_lease

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Offboarding saga
# -----------------------------------------------------------------------------
# terminate lease (fatal) -> record departure -> cancel pending payments
#   -> archive tenant history -> create turnover checklist -> [mark unit available]
#
# "success" means the tenancy is legally terminated. Every later step is
# bookkeeping an operator can backfill, so its failure lands in `errors`
# and the saga keeps going. Each step commits on its own; a failed step
# rolls back only its own writes.
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class StepOutcome:
    name: str
    ok: bool
    value: Any = None
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return {"name": self.name, "ok": self.ok, "error": self.error}


@dataclass(frozen=True)
class Step:
    name: str
    label: str  # "terminate lease" -> "Failed to terminate lease: ..."
    run: Callable[[], Any]
    fatal: bool = False


@dataclass
class OffboardingResult:
    success: bool = False
    lease_terminated: bool = False
    already_terminated: bool = False
    departure_recorded: bool = False
    departure_id: Optional[int] = None
    payments_cancelled: Optional[int] = None
    tenant_history_id: Optional[int] = None
    turnover_checklist_id: Optional[int] = None
    unit_marked_available: bool = False
    outstanding_balance: Optional[float] = None
    errors: list[str] = field(default_factory=list)
    steps: list[StepOutcome] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "lease_terminated": self.lease_terminated,
            "already_terminated": self.already_terminated,
            "departure_recorded": self.departure_recorded,
            "departure_id": self.departure_id,
            "payments_cancelled": self.payments_cancelled,
            "tenant_history_id": self.tenant_history_id,
            "turnover_checklist_id": self.turnover_checklist_id,
            "unit_marked_available": self.unit_marked_available,
            "outstanding_balance": self.outstanding_balance,
            "errors": list(self.errors),
            "steps": [s.as_dict() for s in self.steps],
        }


@dataclass(frozen=True)
class OffboardingStatus:
    lease_terminated: bool
    departure_recorded: bool
    history_created: bool
    checklist_created: bool

    @property
    def complete(self) -> bool:
        return self.lease_terminated and self.departure_recorded and self.history_created and self.checklist_created

    def as_dict(self) -> dict:
        return {
            "lease_terminated": self.lease_terminated,
            "departure_recorded": self.departure_recorded,
            "history_created": self.history_created,
            "checklist_created": self.checklist_created,
            "complete": self.complete,
        }


def _error_text(e: Exception) -> str:
    if isinstance(e, OffboardingError):
        return e.message
    return str(e) or e.__class__.__name__


def run_step(db: Session, step: Step, *, lease_id: int) -> StepOutcome:
    """
    Run one saga step in its own unit of work.
    Never raises: failures come back as StepOutcome(ok=False).
    """
    try:
        with store_errors(step.label):
            value = step.run()
            db.commit()
    except Exception as e:
        db.rollback()
        msg = f"Failed to {step.label}: {_error_text(e)}"
        log.warning(
            msg,
            exc_info=not isinstance(e, OffboardingError),
            extra={"lease_id": lease_id, "step": step.name},
        )
        return StepOutcome(name=step.name, ok=False, error=msg)

    log.info("offboarding step ok", extra={"lease_id": lease_id, "step": step.name})
    return StepOutcome(name=step.name, ok=True, value=value)


def execute_offboarding(
    db: Session,
    *,
    lease_id: int,
    departure_type: DepartureType | str,
    departure_date: datetime,
    notes: Optional[str] = None,
    mark_unit_available: bool = False,
    eviction_notice_ref: Optional[str] = None,
    org_id: Optional[int] = None,
    actor_user_id: Optional[int] = None,
) -> OffboardingResult:
    result = OffboardingResult()

    try:
        dtype = DepartureType(departure_type).value
        when = as_naive_utc(departure_date)
    except (TypeError, ValueError) as e:
        result.errors.append(f"Invalid offboarding request: {e}")
        return result

    # Fail fast before any write: missing lease or no billable owner
    try:
        lease = must_get_lease(db, lease_id=lease_id, org_id=org_id)
        landlord_id = resolve_landlord_id(lease)
    except OffboardingError as e:
        result.errors.append(e.message)
        log.warning("offboarding rejected: %s", e.message, extra={"lease_id": lease_id, "step": "load"})
        return result

    # Termination overwrites end_date; the history snapshot wants the scheduled one
    scheduled_end = lease.end_date if lease.status != LeaseStatus.terminated.value else None

    def _run(step: Step) -> StepOutcome:
        out = run_step(db, step, lease_id=lease.id)
        result.steps.append(out)
        if not out.ok:
            result.errors.append(out.error)
        return out

    terminate_step = Step(
        name="terminate_lease",
        label="terminate lease",
        fatal=True,
        run=lambda: terminate_lease(db, lease_id=lease.id, reason=dtype, terminated_at=when, commit=False),
    )
    terminate = _run(terminate_step)
    if not terminate.ok and terminate_step.fatal:
        return result

    outcome: TerminationOutcome = terminate.value
    result.lease_terminated = True
    result.already_terminated = outcome.already_terminated

    def _archive_history():
        disp = latest_disposition_for_lease(db, lease_id=lease.id)
        return create_tenant_history(
            db,
            lease=lease,
            departure_type=dtype,
            departure_date=when,
            deposit=DepositSummary.from_disposition(disp) if disp is not None else None,
            lease_end_date=scheduled_end,
        )

    def _mark_unit_available():
        unit = lease.unit
        unit.is_available = True
        unit.available_from = when
        db.add(unit)
        return unit.id

    steps = [
        Step(
            name="record_departure",
            label="record departure",
            run=lambda: record_departure(
                db,
                lease=lease,
                landlord_id=landlord_id,
                departure_type=dtype,
                departure_date=when,
                notes=notes,
                eviction_notice_ref=eviction_notice_ref,
            ),
        ),
        Step(
            name="cancel_pending_payments",
            label="cancel pending payments",
            run=lambda: cancel_pending_payments(db, lease_id=lease.id),
        ),
        Step(name="archive_tenant_history", label="create tenant history", run=_archive_history),
        Step(
            name="create_turnover_checklist",
            label="create turnover checklist",
            run=lambda: create_turnover_checklist(
                db, org_id=lease.org_id, unit_id=lease.unit_id, lease_id=lease.id, landlord_id=landlord_id
            ),
        ),
    ]
    if mark_unit_available:
        steps.append(Step(name="mark_unit_available", label="mark unit available", run=_mark_unit_available))

    for step in steps:
        out = _run(step)
        if not out.ok:
            if step.fatal:
                return result
            continue

        if step.name == "record_departure":
            result.departure_recorded = True
            result.departure_id = out.value.id
        elif step.name == "cancel_pending_payments":
            result.payments_cancelled = int(out.value)
        elif step.name == "archive_tenant_history":
            result.tenant_history_id = out.value.id
        elif step.name == "create_turnover_checklist":
            result.turnover_checklist_id = out.value.id
        elif step.name == "mark_unit_available":
            result.unit_marked_available = True

    result.success = True

    def _trail():
        balance = resolve_outstanding_balance(db, lease_id=lease.id)
        emit_workflow_event(
            db,
            org_id=lease.org_id,
            lease_id=lease.id,
            actor_user_id=actor_user_id,
            event_type="lease.offboarded",
            payload={
                "departure_type": dtype,
                "departure_date": when.isoformat(),
                "already_terminated": result.already_terminated,
                "outstanding_balance": balance.total_owed,
                "errors": list(result.errors),
            },
        )
        audit_lease(db, lease, action="lease.offboard", actor_user_id=actor_user_id, after=result.as_dict())
        return balance.total_owed

    trail = _run(Step(name="record_audit_trail", label="record audit trail", run=_trail))
    if trail.ok:
        result.outstanding_balance = trail.value

    log.info(
        "offboarding finished with %d follow-up item(s)",
        len(result.errors),
        extra={"lease_id": lease.id, "org_id": lease.org_id, "step": "done"},
    )
    return result


def get_offboarding_status(db: Session, *, lease_id: int) -> OffboardingStatus:
    """
    Read-only reconciliation view: which offboarding records exist for a lease.
    """
    with store_errors("load offboarding status"):
        status = db.scalar(select(Lease.status).where(Lease.id == int(lease_id)))

    return OffboardingStatus(
        lease_terminated=(status == LeaseStatus.terminated.value),
        departure_recorded=find_departure(db, lease_id=lease_id) is not None,
        history_created=find_history(db, lease_id=lease_id) is not None,
        checklist_created=find_checklist_for_lease(db, lease_id=lease_id) is not None,
    )
