"""Workflow statuses, actor roles and the role-scoped review policy.

Statuses and roles are plain string enums so they compare equal to the
values stored in the database and sent over the API.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable
from uuid import UUID

from app.exceptions import ValidationError


class WorkflowStatus(str, Enum):
    """Every status an order can be in."""
    PENDING = "pending"
    NEEDS_REVISION_PS = "needs_revision_ps"
    NEEDS_REVISION_PM = "needs_revision_pm"
    APPROVED_PM = "approved_pm"
    NEEDS_REVISION_BS = "needs_revision_bs"
    APPROVED_BS = "approved_bs"
    INVOICE_ISSUED = "invoice_issued"
    NEEDS_REVISION_PA = "needs_revision_pa"
    PAYMENT_UPLOADED = "payment_uploaded"
    PAYMENT_REJECTED = "payment_rejected"
    PAYMENT_VERIFIED = "payment_verified"
    COMPLETED = "completed"
    REJECTED = "rejected"


TERMINAL_STATUSES = frozenset({WorkflowStatus.COMPLETED, WorkflowStatus.REJECTED})

# Line items may only be replaced while the pharmacy side still owns the order
EDITABLE_STATUSES = frozenset({WorkflowStatus.PENDING, WorkflowStatus.NEEDS_REVISION_PS})

# Distributor manager may (re)price while the order waits for an invoice
PRICEABLE_STATUSES = frozenset({WorkflowStatus.APPROVED_BS, WorkflowStatus.NEEDS_REVISION_PA})

# Pharmacy accountant may attach a payment proof while payment is due
PAYABLE_STATUSES = frozenset({WorkflowStatus.INVOICE_ISSUED, WorkflowStatus.PAYMENT_REJECTED})


class Role(str, Enum):
    """Actor roles across the pharmacy and the distributor (Barman)."""
    PHARMACY_STAFF = "pharmacy_staff"
    PHARMACY_MANAGER = "pharmacy_manager"
    PHARMACY_ACCOUNTANT = "pharmacy_accountant"
    BARMAN_STAFF = "barman_staff"
    BARMAN_MANAGER = "barman_manager"
    BARMAN_ACCOUNTANT = "barman_accountant"
    ADMIN = "admin"


# Roles allowed to create orders and edit their items
PHARMACY_WRITE_ROLES = frozenset({
    Role.PHARMACY_STAFF,
    Role.PHARMACY_MANAGER,
    Role.PHARMACY_ACCOUNTANT,
})

# Highest first. Used to pick the dashboard for a user holding several roles.
ROLE_PRIORITY: tuple[Role, ...] = (
    Role.ADMIN,
    Role.BARMAN_MANAGER,
    Role.BARMAN_ACCOUNTANT,
    Role.BARMAN_STAFF,
    Role.PHARMACY_MANAGER,
    Role.PHARMACY_ACCOUNTANT,
    Role.PHARMACY_STAFF,
)

# Statuses that hand an order to a role as its next reviewer. A role's
# queue is the orders in these statuses; a log entry whose to_status is in
# this set is what put the order in front of that role.
REVIEW_STATUSES: dict[Role, frozenset[WorkflowStatus]] = {
    Role.PHARMACY_STAFF: frozenset({WorkflowStatus.NEEDS_REVISION_PS}),
    Role.PHARMACY_MANAGER: frozenset({
        WorkflowStatus.PENDING,
        WorkflowStatus.NEEDS_REVISION_PM,
    }),
    Role.BARMAN_STAFF: frozenset({
        WorkflowStatus.APPROVED_PM,
        WorkflowStatus.NEEDS_REVISION_BS,
    }),
    Role.BARMAN_MANAGER: frozenset({
        WorkflowStatus.APPROVED_BS,
        WorkflowStatus.NEEDS_REVISION_PA,
    }),
    Role.PHARMACY_ACCOUNTANT: frozenset({
        WorkflowStatus.INVOICE_ISSUED,
        WorkflowStatus.PAYMENT_REJECTED,
    }),
    Role.BARMAN_ACCOUNTANT: frozenset({
        WorkflowStatus.PAYMENT_UPLOADED,
        WorkflowStatus.PAYMENT_VERIFIED,
    }),
    Role.ADMIN: frozenset(),
}


@dataclass(frozen=True)
class Actor:
    """The caller of a workflow operation."""

    id: UUID
    role: Role


def parse_role(value: str) -> Role:
    """Convert a role name to a Role, raising ValidationError if unknown."""
    try:
        return Role(value)
    except ValueError:
        raise ValidationError(f"Unknown role: {value}", field="role")


def select_primary_role(roles: Iterable[Role]) -> Role:
    """Pick the highest-priority role from a set of assigned roles."""
    assigned = set(roles)
    for role in ROLE_PRIORITY:
        if role in assigned:
            return role
    raise ValidationError("At least one role is required", field="roles")


def review_statuses_for(role: Role) -> frozenset[WorkflowStatus]:
    return REVIEW_STATUSES.get(role, frozenset())
