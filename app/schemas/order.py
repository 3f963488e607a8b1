"""Pydantic schemas for orders, pricing, transitions and the approval log."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# Order items

class OrderItemIn(BaseModel):
    """A requested order line."""

    product_id: str = Field(min_length=1, max_length=64)
    quantity: int = Field(gt=0)


class OrderCreate(BaseModel):
    """Schema for creating an order."""

    pharmacy_id: UUID
    items: list[OrderItemIn]
    notes: Optional[str] = None


class ItemsReplace(BaseModel):
    """Full replacement of an order's lines."""

    items: list[OrderItemIn]
    notes: Optional[str] = None


class OrderItemResponse(BaseModel):
    """Order line with catalog details when the catalog knows the product."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: str
    quantity: int
    product_name: Optional[str] = None
    manufacturer: Optional[str] = None
    category: Optional[str] = None


# Pricing

class PricingLineIn(BaseModel):
    """Price for one product on the order."""

    product_id: str = Field(min_length=1, max_length=64)
    unit_price: Decimal = Field(ge=0)
    total_price: Decimal = Field(ge=0)
    discount_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None


class PricingSave(BaseModel):
    """Batch of prices saved by the distributor manager."""

    lines: list[PricingLineIn]


class PricingResponse(BaseModel):
    """Stored pricing row."""

    model_config = ConfigDict(from_attributes=True)

    product_id: str
    unit_price: Decimal
    total_price: Decimal
    discount_percent: Optional[Decimal] = None
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None


# Transitions

class TransitionRequest(BaseModel):
    """A workflow action and the data it may need."""

    action: str
    notes: Optional[str] = None
    payment_proof_ref: Optional[str] = None
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None


# Orders

class OrderResponse(BaseModel):
    """Order with items, current pricing and payment attestation."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    pharmacy_id: UUID
    workflow_status: str
    total_items: int
    total_amount: Optional[Decimal] = None
    notes: Optional[str] = None
    status_reason: Optional[str] = None
    payment_proof_url: Optional[str] = None
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    payment_rejection_reason: Optional[str] = None
    created_by: UUID
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemResponse] = []
    pricing: list[PricingResponse] = []
    available_actions: list[str] = []


class OrderList(BaseModel):
    """List of orders."""

    orders: list[OrderResponse]
    count: int


# Approval log

class ApprovalResponse(BaseModel):
    """One audit entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    user_id: UUID
    from_status: str
    to_status: str
    notes: Optional[str] = None
    created_at: datetime


class ApprovalList(BaseModel):
    """Approval log entries visible to the viewer."""

    entries: list[ApprovalResponse]
    count: int


class PrimaryRoleResponse(BaseModel):
    """Dashboard role chosen for a user holding several roles."""

    role: str
