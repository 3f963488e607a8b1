"""Order workflow API endpoints.

Thin layer over app.services: every call passes the caller as an explicit
Actor and domain errors are turned into HTTP responses by the handler
registered in app.main.
"""
import logging
from typing import Optional
from uuid import UUID

import httpx
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_optional_actor
from app.database import get_db
from app.models import Order
from app.schemas.order import (
    ApprovalList,
    ApprovalResponse,
    ItemsReplace,
    OrderCreate,
    OrderItemResponse,
    OrderList,
    OrderResponse,
    PricingResponse,
    PricingSave,
    TransitionRequest,
)
from app.services import approval_log, orders as order_service
from app.services.catalog import UNKNOWN_CATEGORY, ProductCatalog, get_product_catalog
from app.services.payments import attach_payment_proof
from app.services.pricing import save_pricing
from app.services.proof_storage import ProofStorage, get_proof_storage
from app.services.roles import Actor, WorkflowStatus
from app.services.workflow import TransitionPayload, available_actions, transition

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def _order_response(
    order: Order,
    catalog: Optional[ProductCatalog] = None,
    actor: Optional[Actor] = None,
) -> OrderResponse:
    """Build the response, enriching items from the catalog when configured.

    A catalog outage leaves the items unenriched instead of failing the read.
    """
    products = {}
    if catalog is not None:
        try:
            products = catalog.resolve_many(item.product_id for item in order.items)
        except httpx.HTTPError as e:
            logger.error(f"Catalog lookup failed for order {order.id}, returning items unenriched: {e}")
            catalog = None

    items = []
    for item in order.items:
        info = products.get(item.product_id)
        items.append(OrderItemResponse(
            id=item.id,
            product_id=item.product_id,
            quantity=item.quantity,
            product_name=info.name if info else None,
            manufacturer=info.manufacturer if info else None,
            category=info.category if info else (UNKNOWN_CATEGORY if catalog else None),
        ))

    response = OrderResponse.model_validate(order)
    response.items = items
    response.pricing = [PricingResponse.model_validate(p) for p in order.pricing]
    if actor is not None:
        response.available_actions = available_actions(
            actor.role, WorkflowStatus(order.workflow_status)
        )
    return response


@router.post("", response_model=OrderResponse, status_code=201)
def create_order(
    data: OrderCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Create a pending order. The caller must be pharmacy-side."""
    order = order_service.create_order(
        db, data.pharmacy_id, actor, data.items, notes=data.notes,
    )
    return _order_response(order_service.get_order(db, order.id), actor=actor)


@router.get("", response_model=OrderList)
def list_orders(
    status: Optional[WorkflowStatus] = None,
    pharmacy_id: Optional[UUID] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    """List orders, newest first, with optional status and pharmacy filters."""
    orders = order_service.list_orders(db, status=status, pharmacy_id=pharmacy_id, limit=limit)
    return OrderList(orders=[_order_response(o) for o in orders], count=len(orders))


@router.get("/queue", response_model=OrderList)
def review_queue(
    limit: int = 50,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Orders currently waiting on the caller's role."""
    orders = order_service.list_review_queue(db, actor.role, limit=limit)
    return OrderList(
        orders=[_order_response(o, actor=actor) for o in orders],
        count=len(orders),
    )


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: UUID,
    actor: Optional[Actor] = Depends(get_optional_actor),
    catalog: Optional[ProductCatalog] = Depends(get_product_catalog),
    db: Session = Depends(get_db),
):
    """Get an order with items, pricing and payment fields."""
    order = order_service.get_order(db, order_id)
    return _order_response(order, catalog=catalog, actor=actor)


@router.put("/{order_id}/items", response_model=OrderResponse)
def replace_items(
    order_id: UUID,
    data: ItemsReplace,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Replace all lines of an editable order; the order returns to pending."""
    order_service.replace_items(db, order_id, actor, data.items, notes=data.notes)
    return _order_response(order_service.get_order(db, order_id), actor=actor)


@router.put("/{order_id}/pricing", response_model=OrderResponse)
def upsert_pricing(
    order_id: UUID,
    data: PricingSave,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Save prices for products on the order and recompute its total."""
    save_pricing(db, order_id, actor, data.lines)
    return _order_response(order_service.get_order(db, order_id), actor=actor)


@router.post("/{order_id}/transitions", response_model=OrderResponse)
def apply_transition(
    order_id: UUID,
    data: TransitionRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Apply a workflow action (approve, reject, issue_invoice, ...)."""
    payload = TransitionPayload(
        notes=data.notes,
        payment_proof_ref=data.payment_proof_ref,
        payment_method=data.payment_method,
        payment_date=data.payment_date,
    )
    transition(db, order_id, actor, data.action, payload)
    return _order_response(order_service.get_order(db, order_id), actor=actor)


@router.post("/{order_id}/payment-proof", response_model=OrderResponse)
async def upload_payment_proof(
    order_id: UUID,
    file: UploadFile = File(...),
    payment_method: Optional[str] = Form(None),
    actor: Actor = Depends(get_actor),
    storage: ProofStorage = Depends(get_proof_storage),
    db: Session = Depends(get_db),
):
    """Upload the payment proof (PDF or image) for an invoiced order."""
    content = await file.read()
    attach_payment_proof(
        db,
        order_id,
        actor,
        storage,
        content,
        file.filename or "proof",
        file.content_type or "",
        payment_method=payment_method,
    )
    return _order_response(order_service.get_order(db, order_id), actor=actor)


@router.get("/{order_id}/approvals", response_model=ApprovalList)
def list_approvals(
    order_id: UUID,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Approval log entries the caller's role-scoped view should show."""
    entries = approval_log.list_approval_log(db, order_id, actor.role, actor.id)
    return ApprovalList(
        entries=[ApprovalResponse.model_validate(e) for e in entries],
        count=len(entries),
    )
