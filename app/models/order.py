"""Order and OrderItem models."""
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Integer, Text, TIMESTAMP,
    ForeignKey, Numeric, Index, CheckConstraint
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from . import Base


class Order(Base):
    """Procurement order placed by a pharmacy with the distributor."""

    __tablename__ = "orders"
    __table_args__ = (
        Index("idx_orders_workflow_status", "workflow_status"),
        Index("idx_orders_pharmacy", "pharmacy_id", "created_at"),
        CheckConstraint(
            "workflow_status IN ('pending', 'needs_revision_ps', 'needs_revision_pm', "
            "'approved_pm', 'needs_revision_bs', 'approved_bs', 'invoice_issued', "
            "'needs_revision_pa', 'payment_uploaded', 'payment_rejected', "
            "'payment_verified', 'completed', 'rejected')",
            name="ck_orders_workflow_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    pharmacy_id = Column(UUID(as_uuid=True), nullable=False)
    workflow_status = Column(String(30), nullable=False, default="pending")
    total_items = Column(Integer, nullable=False, default=0)
    total_amount = Column(Numeric(14, 2))  # Null until priced
    notes = Column(Text)  # Free text from the creator
    status_reason = Column(Text)  # Last rejection / revision reason
    payment_proof_url = Column(String(500))
    payment_method = Column(String(50))
    payment_date = Column(TIMESTAMP)
    payment_rejection_reason = Column(Text)
    created_by = Column(UUID(as_uuid=True), nullable=False)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow)
    version = Column(Integer, nullable=False, default=1)  # Bumped on every write

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.created_at",
    )
    pricing = relationship(
        "OrderPricing",
        back_populates="order",
        cascade="all, delete-orphan",
    )
    approvals = relationship(
        "OrderApproval",
        back_populates="order",
        order_by="OrderApproval.created_at",
    )

    def __repr__(self):
        return f"<Order(workflow_status='{self.workflow_status}', total_items={self.total_items})>"


class OrderItem(Base):
    """One product line on an order. Duplicate products are allowed."""

    __tablename__ = "order_items"
    __table_args__ = (
        Index("idx_order_items_order", "order_id"),
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(64), nullable=False)  # Opaque catalog ID
    quantity = Column(Integer, nullable=False)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    order = relationship("Order", back_populates="items")

    def __repr__(self):
        return f"<OrderItem(product_id='{self.product_id}', qty={self.quantity})>"
