"""Tests for app/services/approval_log.py - audit trail visibility."""
import uuid

import pytest

from app.exceptions import NotFoundError
from app.services.approval_log import append_log, count_log_entries, list_approval_log
from app.services.pricing import save_pricing
from app.services.roles import Role
from app.services.workflow import TransitionPayload, transition


@pytest.fixture
def uploaded_order(db, order_factory, actor_factory):
    """Order walked from pending to payment_uploaded through the engine."""
    order = order_factory(status="pending")
    transition(db, order.id, actor_factory(Role.PHARMACY_MANAGER), "approve", TransitionPayload(notes="PM ok"))
    transition(db, order.id, actor_factory(Role.BARMAN_STAFF), "approve", TransitionPayload(notes="BS ok"))
    bm = actor_factory(Role.BARMAN_MANAGER)
    save_pricing(db, order.id, bm, [
        {"product_id": "DRUG-A", "unit_price": 10, "total_price": 20},
    ])
    transition(db, order.id, bm, "issue_invoice")
    transition(
        db, order.id, actor_factory(Role.PHARMACY_ACCOUNTANT), "confirm_payment",
        TransitionPayload(payment_proof_ref="gs://p/1.png", notes="Paid by transfer"),
    )
    return order


class TestAppendLog:
    def test_append_in_caller_transaction(self, db, order_factory):
        order = order_factory(status="pending")
        actor_id = uuid.uuid4()

        entry = append_log(db, order.id, actor_id, "pending", "approved_pm", "")
        assert entry.notes is None
        assert count_log_entries(db, order.id) == 1

        db.rollback()
        assert count_log_entries(db, order.id) == 0


class TestVisibility:
    def test_barman_accountant_sees_handoff_entry(self, db, uploaded_order, actor_factory):
        ba = actor_factory(Role.BARMAN_ACCOUNTANT)
        entries = list_approval_log(db, uploaded_order.id, ba.role, ba.id)

        assert [(e.from_status, e.to_status) for e in entries] == [
            ("invoice_issued", "payment_uploaded"),
        ]
        assert entries[0].notes == "Paid by transfer"

    def test_barman_staff_sees_own_and_handoff(self, db, uploaded_order, actor_factory):
        bs = actor_factory(Role.BARMAN_STAFF)
        entries = list_approval_log(db, uploaded_order.id, bs.role, bs.id)

        assert sorted(e.to_status for e in entries) == ["approved_bs", "approved_pm"]

    def test_author_always_sees_own_entries(self, db, uploaded_order, actor_factory):
        pm = actor_factory(Role.PHARMACY_MANAGER)
        entries = list_approval_log(db, uploaded_order.id, pm.role, pm.id)

        assert [e.to_status for e in entries] == ["approved_pm"]

    def test_other_user_same_role_sees_only_handoffs(self, db, uploaded_order):
        entries = list_approval_log(db, uploaded_order.id, Role.PHARMACY_MANAGER, uuid.uuid4())
        assert entries == []

    def test_admin_sees_everything(self, db, uploaded_order):
        entries = list_approval_log(db, uploaded_order.id, Role.ADMIN, uuid.uuid4())
        assert len(entries) == count_log_entries(db, uploaded_order.id) == 4

    def test_unknown_order(self, db):
        with pytest.raises(NotFoundError):
            list_approval_log(db, uuid.uuid4(), Role.ADMIN, uuid.uuid4())
