"""Order aggregate: creation, item replacement, lookups and status writes."""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.database import atomic
from app.exceptions import (
    ConcurrencyConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models import Order, OrderItem
from app.services.approval_log import append_log
from app.services.roles import (
    EDITABLE_STATUSES,
    PHARMACY_WRITE_ROLES,
    Actor,
    Role,
    WorkflowStatus,
    review_statuses_for,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemInput:
    """A requested order line."""

    product_id: str
    quantity: int


def normalize_items(items: Optional[Sequence[Any]]) -> list[ItemInput]:
    """Validate requested lines.

    Accepts ItemInput, dicts, or any object with product_id/quantity
    attributes. Raises ValidationError for an empty list, a blank product
    or a quantity that is not a positive integer.
    """
    if not items:
        raise ValidationError("An order needs at least one item", field="items")

    normalized = []
    for index, item in enumerate(items):
        if isinstance(item, dict):
            product_id = item.get("product_id")
            quantity = item.get("quantity")
        else:
            product_id = getattr(item, "product_id", None)
            quantity = getattr(item, "quantity", None)

        product_id = str(product_id).strip() if product_id is not None else ""
        if not product_id:
            raise ValidationError(f"Item {index} has no product", field="items")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(
                f"Item {index} quantity must be a positive integer, got {quantity!r}",
                field="items",
            )
        normalized.append(ItemInput(product_id=product_id, quantity=quantity))

    return normalized


def summarize_items(items: Iterable[Any]) -> list[ItemInput]:
    """Sum quantities of duplicate product lines, keeping first-seen order.

    Presentation only; stored lines are never merged.
    """
    totals: "OrderedDict[str, int]" = OrderedDict()
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return [ItemInput(product_id=pid, quantity=qty) for pid, qty in totals.items()]


def require_pharmacy_writer(actor: Actor, action: str) -> None:
    if actor.role not in PHARMACY_WRITE_ROLES:
        raise PermissionDeniedError(actor.role.value, action)


def load_order(db: Session, order_id: UUID) -> Order:
    """Fetch an order with items and pricing, or raise NotFoundError."""
    order = db.query(Order).options(
        selectinload(Order.items),
        selectinload(Order.pricing),
    ).filter(Order.id == order_id).first()

    if order is None:
        raise NotFoundError("Order", order_id)
    return order


def set_status(
    db: Session,
    order: Order,
    expected: WorkflowStatus,
    new_status: WorkflowStatus,
    **fields: Any,
) -> None:
    """Compare-and-set the order status inside the current transaction.

    The UPDATE only matches while the row still holds ``expected`` and the
    version this request read. Any other write to the order in between,
    including an item edit or pricing save that keeps the status, bumps
    the version, so no row matches and ConcurrencyConflictError is raised.
    ``fields`` are written in the same statement.
    """
    expected = WorkflowStatus(expected)
    try:
        db.flush()
    except StaleDataError:
        raise ConcurrencyConflictError(order.id, expected.value)

    read_version = order.version
    values = {
        Order.workflow_status: WorkflowStatus(new_status).value,
        Order.updated_at: datetime.utcnow(),
        Order.version: read_version + 1,
    }
    for name, value in fields.items():
        values[getattr(Order, name)] = value

    matched = db.query(Order).filter(
        Order.id == order.id,
        Order.workflow_status == expected.value,
        Order.version == read_version,
    ).update(values, synchronize_session=False)

    if matched != 1:
        logger.warning(f"Concurrent write on order {order.id}, expected {expected.value} v{read_version}")
        raise ConcurrencyConflictError(order.id, expected.value)

    db.refresh(order)


def create_order(
    db: Session,
    pharmacy_id: UUID,
    actor: Actor,
    items: Sequence[Any],
    notes: Optional[str] = None,
) -> Order:
    """Create a pending order with at least one line."""
    require_pharmacy_writer(actor, "create_order")
    lines = normalize_items(items)

    with atomic(db):
        order = Order(
            pharmacy_id=pharmacy_id,
            workflow_status=WorkflowStatus.PENDING.value,
            total_items=sum(line.quantity for line in lines),
            notes=notes or None,
            created_by=actor.id,
        )
        order.items = [
            OrderItem(product_id=line.product_id, quantity=line.quantity)
            for line in lines
        ]
        db.add(order)

    logger.info(
        f"Created order {order.id} for pharmacy {pharmacy_id} "
        f"with {len(lines)} lines ({order.total_items} units)"
    )
    return order


def replace_items(
    db: Session,
    order_id: UUID,
    actor: Actor,
    items: Sequence[Any],
    notes: Optional[str] = None,
) -> Order:
    """Replace every line of an editable order and send it back to pending.

    Delete-all-then-insert: the new list fully replaces the old one.
    """
    require_pharmacy_writer(actor, "replace_items")
    lines = normalize_items(items)

    with atomic(db):
        order = load_order(db, order_id)
        current = WorkflowStatus(order.workflow_status)
        if current not in EDITABLE_STATUSES:
            logger.warning(f"Rejected item edit on order {order_id} in status {current.value}")
            raise InvalidStateError(
                current.value,
                f"Items can only be edited while pending or needs_revision_ps, order is {current.value}",
            )

        order.items = [
            OrderItem(product_id=line.product_id, quantity=line.quantity)
            for line in lines
        ]

        fields = {"total_items": sum(line.quantity for line in lines)}
        if notes is not None:
            fields["notes"] = notes or None

        set_status(db, order, current, WorkflowStatus.PENDING, **fields)

        if current != WorkflowStatus.PENDING:
            append_log(db, order.id, actor.id, current, WorkflowStatus.PENDING, notes)

    logger.info(
        f"Replaced items on order {order.id} by {actor.role.value}: "
        f"{len(lines)} lines, {order.total_items} units"
    )
    return order


def get_order(db: Session, order_id: UUID) -> Order:
    return load_order(db, order_id)


def list_orders(
    db: Session,
    status: Optional[WorkflowStatus] = None,
    pharmacy_id: Optional[UUID] = None,
    limit: int = 50,
) -> list[Order]:
    """List orders newest first with optional filters."""
    query = db.query(Order).options(selectinload(Order.items))

    if status:
        query = query.filter(Order.workflow_status == WorkflowStatus(status).value)
    if pharmacy_id:
        query = query.filter(Order.pharmacy_id == pharmacy_id)

    return query.order_by(desc(Order.created_at)).limit(limit).all()


def list_review_queue(db: Session, role: Role, limit: int = 50) -> list[Order]:
    """Orders currently waiting on ``role``."""
    statuses = [status.value for status in review_statuses_for(role)]
    if not statuses:
        return []

    return db.query(Order).options(selectinload(Order.items)).filter(
        Order.workflow_status.in_(statuses),
    ).order_by(desc(Order.created_at)).limit(limit).all()
