"""Tests for app/services/pricing.py - pricing upserts and order totals."""
from decimal import Decimal

import pytest

from app.exceptions import (
    ConcurrencyConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models import Order, OrderPricing
from app.services import pricing
from app.services.pricing import (
    PricingLine,
    compute_order_total,
    save_pricing,
    upsert_pricing,
)
from app.services.roles import Role


def _pricing_rows(db, order_id):
    db.expire_all()
    return db.query(OrderPricing).filter(OrderPricing.order_id == order_id).all()


class TestSavePricing:
    def test_sets_total_amount(self, db, order_factory, actor_factory):
        order = order_factory(status="approved_bs")

        order = save_pricing(db, order.id, actor_factory(Role.BARMAN_MANAGER), [
            PricingLine("DRUG-A", Decimal("100"), Decimal("200")),
            PricingLine("DRUG-B", Decimal("50"), Decimal("135"), discount_percent=Decimal("10")),
        ])

        assert order.workflow_status == "approved_bs"
        assert order.total_amount == Decimal("335.00")
        rows = {row.product_id: row for row in _pricing_rows(db, order.id)}
        assert rows["DRUG-B"].discount_percent == Decimal("10")

    def test_upsert_is_idempotent_per_product(self, db, order_factory, actor_factory):
        order = order_factory(status="approved_bs")
        bm = actor_factory(Role.BARMAN_MANAGER)

        save_pricing(db, order.id, bm, [
            {"product_id": "DRUG-A", "unit_price": 100, "total_price": 200},
        ])
        order = save_pricing(db, order.id, bm, [
            {"product_id": "DRUG-A", "unit_price": 90, "total_price": 170, "notes": "Bulk offer"},
        ])

        rows = _pricing_rows(db, order.id)
        assert len(rows) == 1
        assert rows[0].unit_price == Decimal("90")
        assert rows[0].total_price == Decimal("170")
        assert rows[0].notes == "Bulk offer"
        assert db.get(Order, order.id).total_amount == Decimal("170")

    def test_partial_batch_keeps_other_lines(self, db, order_factory, actor_factory):
        order = order_factory(status="approved_bs")
        bm = actor_factory(Role.BARMAN_MANAGER)

        save_pricing(db, order.id, bm, [
            {"product_id": "DRUG-A", "unit_price": 100, "total_price": 200},
            {"product_id": "DRUG-B", "unit_price": 50, "total_price": 150},
        ])
        save_pricing(db, order.id, bm, [
            {"product_id": "DRUG-B", "unit_price": 40, "total_price": 120},
        ])

        assert len(_pricing_rows(db, order.id)) == 2
        assert db.get(Order, order.id).total_amount == Decimal("320")

    def test_allowed_during_invoice_revision(self, db, order_factory, actor_factory):
        order = order_factory(status="needs_revision_pa")
        order = save_pricing(db, order.id, actor_factory(Role.BARMAN_MANAGER), [
            {"product_id": "DRUG-A", "unit_price": 10, "total_price": 20},
        ])
        assert order.total_amount == Decimal("20")

    @pytest.mark.parametrize("role", [
        Role.BARMAN_STAFF, Role.PHARMACY_MANAGER, Role.BARMAN_ACCOUNTANT, Role.ADMIN,
    ])
    def test_only_barman_manager(self, db, order_factory, actor_factory, role):
        order = order_factory(status="approved_bs")
        with pytest.raises(PermissionDeniedError):
            save_pricing(db, order.id, actor_factory(role), [
                {"product_id": "DRUG-A", "unit_price": 10, "total_price": 20},
            ])
        assert _pricing_rows(db, order.id) == []

    @pytest.mark.parametrize("status", ["pending", "approved_pm", "invoice_issued", "payment_uploaded"])
    def test_locked_outside_pricing_window(self, db, order_factory, actor_factory, status):
        order = order_factory(status=status)
        with pytest.raises(InvalidStateError):
            save_pricing(db, order.id, actor_factory(Role.BARMAN_MANAGER), [
                {"product_id": "DRUG-A", "unit_price": 10, "total_price": 20},
            ])
        assert _pricing_rows(db, order.id) == []

    def test_product_must_be_on_order(self, db, order_factory, actor_factory):
        order = order_factory(status="approved_bs")
        with pytest.raises(NotFoundError):
            save_pricing(db, order.id, actor_factory(Role.BARMAN_MANAGER), [
                {"product_id": "DRUG-A", "unit_price": 10, "total_price": 20},
                {"product_id": "NOT-ORDERED", "unit_price": 10, "total_price": 20},
            ])
        assert _pricing_rows(db, order.id) == []
        assert db.get(Order, order.id).total_amount is None

    @pytest.mark.parametrize("line", [
        {"product_id": "DRUG-A", "unit_price": -1, "total_price": 20},
        {"product_id": "DRUG-A", "unit_price": 1, "total_price": "abc"},
        {"product_id": "DRUG-A", "unit_price": 1, "total_price": 2, "discount_percent": 150},
        {"product_id": "", "unit_price": 1, "total_price": 2},
    ])
    def test_invalid_lines(self, db, order_factory, actor_factory, line):
        order = order_factory(status="approved_bs")
        with pytest.raises(ValidationError):
            save_pricing(db, order.id, actor_factory(Role.BARMAN_MANAGER), [line])

    def test_empty_batch(self, db, order_factory, actor_factory):
        order = order_factory(status="approved_bs")
        with pytest.raises(ValidationError):
            save_pricing(db, order.id, actor_factory(Role.BARMAN_MANAGER), [])


class TestUpsertAndTotal:
    def test_total_is_zero_without_pricing(self, db, order_factory):
        order = order_factory(status="approved_bs")
        assert compute_order_total(db, order.id) == Decimal("0")

    def test_upsert_overwrites(self, db, order_factory):
        order = order_factory(status="approved_bs")
        upsert_pricing(db, order.id, "DRUG-A", Decimal("5"), Decimal("10"))
        entry = upsert_pricing(db, order.id, "DRUG-A", Decimal("6"), Decimal("11"), discount_percent=Decimal("2"))
        db.commit()

        rows = _pricing_rows(db, order.id)
        assert len(rows) == 1
        assert rows[0].id == entry.id
        assert compute_order_total(db, order.id) == Decimal("11")


class TestConcurrentPricing:
    def test_save_bumps_version(self, db, order_factory, actor_factory):
        order = order_factory(status="approved_bs")
        order = save_pricing(db, order.id, actor_factory(Role.BARMAN_MANAGER), [
            {"product_id": "DRUG-A", "unit_price": 10, "total_price": 20},
        ])
        assert order.version == 2

    def test_write_after_read_is_a_conflict(self, db, order_factory, actor_factory, monkeypatch):
        order = order_factory(status="approved_bs")
        real_load = pricing.load_order

        def racing_load(session, order_id):
            loaded = real_load(session, order_id)
            # Another request writes the order after we read it
            table = Order.__table__
            session.execute(
                table.update()
                .where(table.c.id == order_id)
                .values(version=table.c.version + 1)
            )
            return loaded

        monkeypatch.setattr(pricing, "load_order", racing_load)

        with pytest.raises(ConcurrencyConflictError):
            save_pricing(db, order.id, actor_factory(Role.BARMAN_MANAGER), [
                {"product_id": "DRUG-A", "unit_price": 10, "total_price": 20},
            ])

        assert _pricing_rows(db, order.id) == []
        assert db.get(Order, order.id).total_amount is None
