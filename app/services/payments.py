"""Payment-proof attachment by the pharmacy accountant."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.database import atomic
from app.exceptions import InvalidStateError, PermissionDeniedError, ValidationError
from app.models import Order
from app.services.orders import load_order, set_status
from app.services.proof_storage import ALLOWED_CONTENT_TYPES, ProofStorage
from app.services.roles import PAYABLE_STATUSES, Actor, Role, WorkflowStatus

logger = logging.getLogger(__name__)

MAX_PROOF_BYTES = 10 * 1024 * 1024


def attach_payment_proof(
    db: Session,
    order_id: UUID,
    actor: Actor,
    storage: ProofStorage,
    content: bytes,
    filename: str,
    content_type: str,
    payment_method: Optional[str] = None,
) -> Order:
    """Store a proof file and record its reference on the order.

    Does not move the order; the accountant confirms payment with a
    separate confirm_payment transition. If the order write fails the
    stored file is deleted again.
    """
    if actor.role != Role.PHARMACY_ACCOUNTANT:
        raise PermissionDeniedError(actor.role.value, "attach_payment_proof")
    if not content:
        raise ValidationError("Payment proof file is empty", field="file")
    if len(content) > MAX_PROOF_BYTES:
        raise ValidationError("Payment proof file is larger than 10 MB", field="file")
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(
            f"Unsupported file type {content_type}. Supported: PDF, PNG, JPG, GIF, WEBP",
            field="file",
        )

    order = load_order(db, order_id)
    current = WorkflowStatus(order.workflow_status)
    if current not in PAYABLE_STATUSES:
        raise InvalidStateError(
            current.value,
            f"Payment proof can only be attached after the invoice is issued, order is {current.value}",
        )

    proof_ref = storage.store(order.id, content, filename, content_type)

    fields = {"payment_proof_url": proof_ref}
    if payment_method:
        fields["payment_method"] = payment_method
    try:
        with atomic(db):
            set_status(db, order, current, current, **fields)
    except Exception:
        logger.warning(f"Recording proof on order {order_id} failed, removing {proof_ref}")
        storage.delete(proof_ref)
        raise

    logger.info(f"Attached payment proof to order {order.id}: {proof_ref}")
    return order
