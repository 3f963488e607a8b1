"""Pricing subsystem: per-product prices set by the distributor manager.

Each (order, product) pair has at most one pricing row. Saving a batch
upserts the rows and rewrites the order's total_amount in the same
transaction, so the total never diverges from the sum of its lines.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.database import atomic
from app.exceptions import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models import Order, OrderItem, OrderPricing
from app.services.orders import load_order, set_status
from app.services.roles import PRICEABLE_STATUSES, Actor, Role, WorkflowStatus

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PricingLine:
    """Requested price for one product on an order."""

    product_id: str
    unit_price: Decimal
    total_price: Decimal
    discount_percent: Optional[Decimal] = None
    notes: Optional[str] = None


def _to_money(value: Any, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field)
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be zero or more, got {value!r}", field=field)
    return amount.quantize(CENTS)


def _to_percent(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        percent = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"discount_percent must be a number, got {value!r}", field="discount_percent")
    if not percent.is_finite() or percent < 0 or percent > 100:
        raise ValidationError("discount_percent must be between 0 and 100", field="discount_percent")
    return percent


def normalize_pricing_lines(lines: Optional[Sequence[Any]]) -> list[PricingLine]:
    """Validate a pricing batch. Accepts PricingLine, dicts or attribute objects."""
    if not lines:
        raise ValidationError("At least one pricing line is required", field="lines")

    normalized = []
    for line in lines:
        get = line.get if isinstance(line, dict) else lambda key: getattr(line, key, None)
        product_id = str(get("product_id") or "").strip()
        if not product_id:
            raise ValidationError("Pricing line has no product", field="product_id")
        normalized.append(PricingLine(
            product_id=product_id,
            unit_price=_to_money(get("unit_price"), "unit_price"),
            total_price=_to_money(get("total_price"), "total_price"),
            discount_percent=_to_percent(get("discount_percent")),
            notes=get("notes") or None,
        ))
    return normalized


def upsert_pricing(
    db: Session,
    order_id: UUID,
    product_id: str,
    unit_price: Decimal,
    total_price: Decimal,
    discount_percent: Optional[Decimal] = None,
    notes: Optional[str] = None,
) -> OrderPricing:
    """Insert or overwrite the pricing row for (order, product).

    Runs in the caller's transaction and does not touch total_amount;
    callers follow up with recompute_order_total.
    """
    entry = db.query(OrderPricing).filter(
        OrderPricing.order_id == order_id,
        OrderPricing.product_id == product_id,
    ).first()

    if entry is None:
        entry = OrderPricing(order_id=order_id, product_id=product_id)
        db.add(entry)

    entry.unit_price = unit_price
    entry.total_price = total_price
    entry.discount_percent = discount_percent
    entry.notes = notes
    db.flush()
    return entry


def compute_order_total(db: Session, order_id: UUID) -> Decimal:
    """Sum of total_price over the order's pricing rows (0 when unpriced)."""
    total = db.query(func.coalesce(func.sum(OrderPricing.total_price), 0)).filter(
        OrderPricing.order_id == order_id,
    ).scalar()
    return Decimal(str(total)).quantize(CENTS)


def recompute_order_total(db: Session, order: Order) -> Decimal:
    """Write the sum of pricing rows to order.total_amount.

    The status is re-asserted in the same UPDATE, so a pricing save that
    races with a transition fails instead of repricing a moved order.
    """
    total = compute_order_total(db, order.id)
    current = WorkflowStatus(order.workflow_status)
    set_status(db, order, current, current, total_amount=total)
    return total


def save_pricing(
    db: Session,
    order_id: UUID,
    actor: Actor,
    lines: Sequence[Any],
) -> Order:
    """Upsert a batch of prices for an order and recompute its total.

    Only the distributor manager prices, and only while the order waits
    for an invoice. Every product priced must be on the order. No status
    change, so no approval log entry.
    """
    if actor.role != Role.BARMAN_MANAGER:
        raise PermissionDeniedError(actor.role.value, "save_pricing")

    pricing_lines = normalize_pricing_lines(lines)

    with atomic(db):
        order = load_order(db, order_id)
        current = WorkflowStatus(order.workflow_status)
        if current not in PRICEABLE_STATUSES:
            logger.warning(f"Rejected pricing on order {order_id} in status {current.value}")
            raise InvalidStateError(
                current.value,
                f"Pricing can only be saved before the invoice is issued, order is {current.value}",
            )

        ordered_products = {
            product_id for (product_id,) in db.query(OrderItem.product_id).filter(
                OrderItem.order_id == order.id,
            )
        }
        for line in pricing_lines:
            if line.product_id not in ordered_products:
                raise NotFoundError("Order product", line.product_id)

        for line in pricing_lines:
            upsert_pricing(
                db,
                order.id,
                line.product_id,
                line.unit_price,
                line.total_price,
                discount_percent=line.discount_percent,
                notes=line.notes,
            )

        total = recompute_order_total(db, order)

    logger.info(
        f"Saved {len(pricing_lines)} pricing lines on order {order.id}, total_amount={total}"
    )
    return order
