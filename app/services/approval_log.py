"""Approval log: append-only audit trail and role-scoped note visibility."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.exceptions import NotFoundError
from app.models import Order, OrderApproval
from app.services.roles import Role, WorkflowStatus, review_statuses_for

logger = logging.getLogger(__name__)


def append_log(
    db: Session,
    order_id: UUID,
    actor_id: UUID,
    from_status: str,
    to_status: str,
    notes: Optional[str] = None,
) -> OrderApproval:
    """Insert one audit row in the caller's transaction.

    Never commits: the row must land together with the status change it
    records, so the caller owns the transaction.
    """
    entry = OrderApproval(
        order_id=order_id,
        user_id=actor_id,
        from_status=WorkflowStatus(from_status).value,
        to_status=WorkflowStatus(to_status).value,
        notes=notes or None,
    )
    db.add(entry)
    db.flush()
    return entry


def list_approval_log(
    db: Session,
    order_id: UUID,
    viewer_role: Role,
    viewer_id: UUID,
) -> list[OrderApproval]:
    """Entries of an order that a role-scoped view should render.

    A viewer sees the entries they authored plus the entries whose
    to_status handed the order to their role. Admin sees everything.
    This only filters presentation; the log itself is fully retained.
    """
    if db.get(Order, order_id) is None:
        raise NotFoundError("Order", order_id)

    query = db.query(OrderApproval).filter(OrderApproval.order_id == order_id)

    if viewer_role != Role.ADMIN:
        handed_to = [status.value for status in review_statuses_for(viewer_role)]
        conditions = [OrderApproval.user_id == viewer_id]
        if handed_to:
            conditions.append(OrderApproval.to_status.in_(handed_to))
        query = query.filter(or_(*conditions))

    return query.order_by(OrderApproval.created_at).all()


def count_log_entries(db: Session, order_id: UUID) -> int:
    return db.query(OrderApproval).filter(OrderApproval.order_id == order_id).count()
