"""Tests for app/services/roles.py."""
import pytest

from app.exceptions import ValidationError
from app.services.roles import (
    Role,
    WorkflowStatus,
    parse_role,
    review_statuses_for,
    select_primary_role,
)


class TestSelectPrimaryRole:
    def test_barman_manager_beats_staff(self):
        assert select_primary_role([Role.BARMAN_STAFF, Role.BARMAN_MANAGER]) == Role.BARMAN_MANAGER

    def test_admin_wins(self):
        assert select_primary_role([Role.PHARMACY_STAFF, Role.ADMIN, Role.BARMAN_MANAGER]) == Role.ADMIN

    def test_distributor_before_pharmacy(self):
        assert select_primary_role([Role.PHARMACY_MANAGER, Role.BARMAN_STAFF]) == Role.BARMAN_STAFF

    def test_pharmacy_manager_before_accountant(self):
        roles = {Role.PHARMACY_ACCOUNTANT, Role.PHARMACY_MANAGER, Role.PHARMACY_STAFF}
        assert select_primary_role(roles) == Role.PHARMACY_MANAGER

    def test_single_role(self):
        assert select_primary_role([Role.PHARMACY_STAFF]) == Role.PHARMACY_STAFF

    def test_empty(self):
        with pytest.raises(ValidationError):
            select_primary_role([])


class TestParseRole:
    def test_known(self):
        assert parse_role("barman_accountant") == Role.BARMAN_ACCOUNTANT

    def test_unknown(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_role("superuser")
        assert exc_info.value.field == "role"


class TestReviewStatuses:
    def test_manager_reviews_new_orders(self):
        assert WorkflowStatus.PENDING in review_statuses_for(Role.PHARMACY_MANAGER)

    def test_invoice_revision_goes_to_barman_manager(self):
        assert WorkflowStatus.NEEDS_REVISION_PA in review_statuses_for(Role.BARMAN_MANAGER)

    def test_admin_has_no_queue(self):
        assert review_statuses_for(Role.ADMIN) == frozenset()
