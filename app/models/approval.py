"""Append-only audit trail of order status transitions."""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, Text, TIMESTAMP, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from . import Base


class OrderApproval(Base):
    """One status transition: who moved the order, from where, to where.

    Rows are inserted once and never updated or deleted.
    """

    __tablename__ = "order_approvals"
    __table_args__ = (
        Index("idx_order_approvals_order", "order_id", "created_at"),
        Index("idx_order_approvals_to_status", "to_status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False)
    user_id = Column(UUID(as_uuid=True), nullable=False)
    from_status = Column(String(30), nullable=False)
    to_status = Column(String(30), nullable=False)
    notes = Column(Text)
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)

    order = relationship("Order", back_populates="approvals")

    def __repr__(self):
        return f"<OrderApproval({self.from_status} -> {self.to_status})>"
