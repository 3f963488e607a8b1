"""SQLAlchemy models for the order workflow service."""
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import all models to register them with Base.metadata
from .order import Order, OrderItem
from .pricing import OrderPricing
from .approval import OrderApproval

__all__ = [
    "Base",
    "Order",
    "OrderItem",
    "OrderPricing",
    "OrderApproval",
]
