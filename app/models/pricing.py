"""Per-product pricing attached to an order by the distributor manager."""
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Text, TIMESTAMP,
    ForeignKey, Numeric, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from . import Base


class OrderPricing(Base):
    """Priced line keyed by (order, product).

    total_price is stored independently of unit_price * quantity so a
    negotiated discount can be reflected.
    """

    __tablename__ = "order_pricing"
    __table_args__ = (
        UniqueConstraint("order_id", "product_id", name="uq_order_pricing_order_product"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(64), nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    total_price = Column(Numeric(14, 2), nullable=False)
    discount_percent = Column(Numeric(5, 2))  # Offer / discount percentage
    notes = Column(Text)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("Order", back_populates="pricing")

    def __repr__(self):
        return f"<OrderPricing(product_id='{self.product_id}', total={self.total_price})>"
