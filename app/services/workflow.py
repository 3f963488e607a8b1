"""Order workflow engine.

The transition table maps (role, action) to the statuses the action may
start from and the status it moves the order to:

    pharmacy_manager     approve / reject / request_revision
                         pending, needs_revision_pm -> approved_pm / rejected / needs_revision_ps
    barman_staff         approve / reject / request_revision
                         approved_pm, needs_revision_bs -> approved_bs / rejected / needs_revision_pm
    barman_manager       issue_invoice (alias approve) / reject / request_staff_revision
                         approved_bs, needs_revision_pa -> invoice_issued / rejected / needs_revision_bs
                         request_revision: approved_bs -> needs_revision_pm
    pharmacy_accountant  confirm_payment / reject / request_revision
                         invoice_issued, payment_rejected -> payment_uploaded / rejected / needs_revision_pa
    barman_accountant    verify_payment / reject_payment / request_receipt_revision
                         payment_uploaded -> payment_verified / payment_rejected / invoice_issued
                         complete: payment_verified -> completed

Guards run in this order, and any failure leaves the order untouched:
role allowed the action, order exists, order in a source status, required
notes present, action-specific checks. A successful transition writes the
status (compare-and-set), its side fields and exactly one approval log row
in one transaction.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.database import atomic
from app.exceptions import InvalidStateError, PermissionDeniedError, ValidationError
from app.models import Order
from app.services.approval_log import append_log
from app.services.orders import load_order, set_status
from app.services.pricing import compute_order_total
from app.services.roles import TERMINAL_STATUSES, Actor, Role, WorkflowStatus

logger = logging.getLogger(__name__)

S = WorkflowStatus


@dataclass
class TransitionPayload:
    """Data an action may need: notes/reason and payment attestation."""

    notes: Optional[str] = None
    payment_proof_ref: Optional[str] = None
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None

    @property
    def clean_notes(self) -> Optional[str]:
        if self.notes is None:
            return None
        return self.notes.strip() or None


Check = Callable[[Session, Order, TransitionPayload], None]
Effects = Callable[[Order, TransitionPayload], dict[str, Any]]


@dataclass(frozen=True)
class TransitionRule:
    """One row of the transition table."""

    role: Role
    action: str
    sources: frozenset
    target: WorkflowStatus
    requires_notes: bool = False
    records_reason: bool = False
    check: Optional[Check] = None
    effects: Optional[Effects] = field(default=None, compare=False)


def _require_invoice_total(db: Session, order: Order, payload: TransitionPayload) -> None:
    total = order.total_amount
    if total is None or Decimal(total) <= 0:
        raise InvalidStateError(
            order.workflow_status,
            "Cannot issue invoice before pricing is saved with a total above zero",
        )
    if compute_order_total(db, order.id) != Decimal(total).quantize(Decimal("0.01")):
        raise InvalidStateError(
            order.workflow_status,
            "Order total does not match its pricing lines; save pricing again",
        )


def _require_payment_proof(db: Session, order: Order, payload: TransitionPayload) -> None:
    if not (payload.payment_proof_ref or order.payment_proof_url):
        raise ValidationError(
            "Upload a payment proof before confirming payment",
            field="payment_proof_ref",
        )


def _payment_submitted(order: Order, payload: TransitionPayload) -> dict[str, Any]:
    return {
        "payment_proof_url": payload.payment_proof_ref or order.payment_proof_url,
        "payment_method": payload.payment_method or order.payment_method,
        "payment_date": payload.payment_date or datetime.utcnow(),
    }


def _payment_rejected(order: Order, payload: TransitionPayload) -> dict[str, Any]:
    return {
        "payment_rejection_reason": payload.clean_notes,
        "payment_proof_url": None,
        "payment_date": None,
    }


def _receipt_revision(order: Order, payload: TransitionPayload) -> dict[str, Any]:
    return {"payment_proof_url": None, "payment_date": None}


def _review_rules(role: Role, sources: frozenset, approve_to: S, revision_to: S) -> list[TransitionRule]:
    return [
        TransitionRule(role, "approve", sources, approve_to),
        TransitionRule(role, "reject", sources, S.REJECTED, requires_notes=True, records_reason=True),
        TransitionRule(role, "request_revision", sources, revision_to, requires_notes=True, records_reason=True),
    ]


_PM_SOURCES = frozenset({S.PENDING, S.NEEDS_REVISION_PM})
_BS_SOURCES = frozenset({S.APPROVED_PM, S.NEEDS_REVISION_BS})
_BM_SOURCES = frozenset({S.APPROVED_BS, S.NEEDS_REVISION_PA})
_PA_SOURCES = frozenset({S.INVOICE_ISSUED, S.PAYMENT_REJECTED})
_BA_SOURCES = frozenset({S.PAYMENT_UPLOADED})

_RULES: list[TransitionRule] = [
    *_review_rules(Role.PHARMACY_MANAGER, _PM_SOURCES, S.APPROVED_PM, S.NEEDS_REVISION_PS),
    *_review_rules(Role.BARMAN_STAFF, _BS_SOURCES, S.APPROVED_BS, S.NEEDS_REVISION_PM),
    TransitionRule(Role.BARMAN_MANAGER, "issue_invoice", _BM_SOURCES, S.INVOICE_ISSUED,
                   check=_require_invoice_total),
    TransitionRule(Role.BARMAN_MANAGER, "approve", _BM_SOURCES, S.INVOICE_ISSUED,
                   check=_require_invoice_total),
    TransitionRule(Role.BARMAN_MANAGER, "reject", _BM_SOURCES, S.REJECTED,
                   requires_notes=True, records_reason=True),
    TransitionRule(Role.BARMAN_MANAGER, "request_revision", frozenset({S.APPROVED_BS}), S.NEEDS_REVISION_PM,
                   requires_notes=True, records_reason=True),
    TransitionRule(Role.BARMAN_MANAGER, "request_staff_revision", _BM_SOURCES, S.NEEDS_REVISION_BS,
                   requires_notes=True, records_reason=True),
    TransitionRule(Role.PHARMACY_ACCOUNTANT, "confirm_payment", _PA_SOURCES, S.PAYMENT_UPLOADED,
                   check=_require_payment_proof, effects=_payment_submitted),
    TransitionRule(Role.PHARMACY_ACCOUNTANT, "reject", _PA_SOURCES, S.REJECTED,
                   requires_notes=True, records_reason=True),
    TransitionRule(Role.PHARMACY_ACCOUNTANT, "request_revision", _PA_SOURCES, S.NEEDS_REVISION_PA,
                   requires_notes=True, records_reason=True),
    TransitionRule(Role.BARMAN_ACCOUNTANT, "verify_payment", _BA_SOURCES, S.PAYMENT_VERIFIED,
                   requires_notes=True),
    TransitionRule(Role.BARMAN_ACCOUNTANT, "reject_payment", _BA_SOURCES, S.PAYMENT_REJECTED,
                   requires_notes=True, records_reason=True, effects=_payment_rejected),
    TransitionRule(Role.BARMAN_ACCOUNTANT, "request_receipt_revision", _BA_SOURCES, S.INVOICE_ISSUED,
                   requires_notes=True, records_reason=True, effects=_receipt_revision),
    TransitionRule(Role.BARMAN_ACCOUNTANT, "complete", frozenset({S.PAYMENT_VERIFIED}), S.COMPLETED),
]

TRANSITIONS: dict[tuple[Role, str], TransitionRule] = {
    (rule.role, rule.action): rule for rule in _RULES
}


def get_rule(role: Role, action: str) -> TransitionRule:
    """Look up the rule for (role, action) or raise PermissionDeniedError."""
    rule = TRANSITIONS.get((role, action))
    if rule is None:
        raise PermissionDeniedError(role.value, action)
    return rule


def available_actions(role: Role, status: WorkflowStatus) -> list[str]:
    """Actions ``role`` may attempt on an order in ``status``."""
    status = WorkflowStatus(status)
    return sorted(
        rule.action for rule in _RULES
        if rule.role == role and status in rule.sources
    )


def transition(
    db: Session,
    order_id: UUID,
    actor: Actor,
    action: str,
    payload: Optional[TransitionPayload] = None,
) -> Order:
    """Validate and apply one workflow action.

    Raises:
        PermissionDeniedError: the actor's role has no such action.
        NotFoundError: unknown order.
        InvalidStateError: order not in a source status for the action,
            including terminal orders and invoicing without a priced total.
        ValidationError: required notes or payment proof missing.
        ConcurrencyConflictError: another request moved the order first.
    """
    payload = payload or TransitionPayload()
    rule = get_rule(actor.role, action)

    with atomic(db):
        order = load_order(db, order_id)
        current = WorkflowStatus(order.workflow_status)

        if current in TERMINAL_STATUSES or current not in rule.sources:
            logger.warning(
                f"Rejected {actor.role.value}:{action} on order {order_id} in status {current.value}"
            )
            raise InvalidStateError(
                current.value,
                f"Cannot {action} an order in status {current.value}",
            )

        notes = payload.clean_notes
        if rule.requires_notes and not notes:
            raise ValidationError(f"A reason is required to {action}", field="notes")

        if rule.check is not None:
            rule.check(db, order, payload)

        fields = rule.effects(order, payload) if rule.effects else {}
        if rule.records_reason:
            fields["status_reason"] = notes

        set_status(db, order, current, rule.target, **fields)
        append_log(db, order.id, actor.id, current, rule.target, notes)

    logger.info(
        f"Order {order.id}: {current.value} -> {rule.target.value} "
        f"by {actor.role.value} ({action})"
    )
    return order
