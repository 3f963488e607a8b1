"""Test fixtures and configuration."""
import uuid
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base, Order, OrderItem, OrderPricing
from app.services.roles import Actor, Role


@pytest.fixture(scope="function")
def engine():
    """Create an in-memory SQLite engine for testing."""
    # Use check_same_thread=False for compatibility with FastAPI TestClient
    # Use StaticPool to ensure all connections use the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=OFF")
        cursor.close()

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    """Create a test database session."""
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------

def make_uuid():
    return uuid.uuid4()


@pytest.fixture
def pharmacy_id():
    return make_uuid()


@pytest.fixture
def actor_factory():
    """Factory for actors; one stable id per role unless given."""
    ids: dict[Role, uuid.UUID] = {}

    def _create(role, actor_id=None):
        role = Role(role)
        if actor_id is None:
            actor_id = ids.setdefault(role, make_uuid())
        return Actor(id=actor_id, role=role)
    return _create


@pytest.fixture
def order_factory(db, pharmacy_id):
    """Insert an order directly in any status, bypassing the workflow."""
    def _create(status="pending", items=(("DRUG-A", 2), ("DRUG-B", 3)), **kwargs):
        order = Order(
            id=kwargs.pop("id", make_uuid()),
            pharmacy_id=kwargs.pop("pharmacy_id", pharmacy_id),
            workflow_status=status,
            total_items=sum(qty for _, qty in items),
            created_by=kwargs.pop("created_by", make_uuid()),
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
            **kwargs,
        )
        order.items = [OrderItem(product_id=pid, quantity=qty) for pid, qty in items]
        db.add(order)
        db.commit()
        return order
    return _create


@pytest.fixture
def pricing_factory(db):
    """Attach pricing rows to an order and set total_amount to their sum."""
    def _create(order, prices):
        total = Decimal("0")
        for product_id, unit_price, total_price in prices:
            db.add(OrderPricing(
                order_id=order.id,
                product_id=product_id,
                unit_price=Decimal(str(unit_price)),
                total_price=Decimal(str(total_price)),
            ))
            total += Decimal(str(total_price))
        order.total_amount = total
        db.commit()
        return order
    return _create
