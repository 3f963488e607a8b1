"""Typed exceptions raised by the order workflow services.

Every exception carries a machine-readable ``code`` and the structured
fields a caller needs to react (refresh, retry, show the reason), so
routers and clients never have to parse messages.

    WorkflowError
    +-- ValidationError           VALIDATION_ERROR      bad input, no mutation
    +-- PermissionDeniedError     PERMISSION_DENIED     role not allowed the action
    +-- InvalidStateError         INVALID_STATE         order not in a valid source status
    +-- ConcurrencyConflictError  CONCURRENCY_CONFLICT  order written between read and write
    +-- NotFoundError             NOT_FOUND             unknown order/product/pricing entry
"""
from typing import Optional


class WorkflowError(Exception):
    """Base exception for all order workflow errors."""

    code: str = "WORKFLOW_ERROR"
    status_code: int = 400

    def to_dict(self) -> dict:
        return {"detail": str(self), "code": self.code}


class ValidationError(WorkflowError):
    """Malformed input; rejected before any state mutation."""

    code: str = "VALIDATION_ERROR"
    status_code: int = 422

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class PermissionDeniedError(WorkflowError):
    """The actor's role may not perform the requested action."""

    code: str = "PERMISSION_DENIED"
    status_code: int = 403

    def __init__(self, role: str, action: str):
        self.role = role
        self.action = action
        super().__init__(f"Role {role} is not allowed to perform '{action}'")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(role=self.role, action=self.action)
        return data


class InvalidStateError(WorkflowError):
    """The order's current status is not a valid source for the operation."""

    code: str = "INVALID_STATE"
    status_code: int = 409

    def __init__(self, current_status: str, message: Optional[str] = None):
        self.current_status = current_status
        super().__init__(message or f"Operation not allowed while order is {current_status}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["current_status"] = self.current_status
        return data


class ConcurrencyConflictError(WorkflowError):
    """Another request wrote the order between read and write; refetch and retry."""

    code: str = "CONCURRENCY_CONFLICT"
    status_code: int = 409

    def __init__(self, order_id, expected_status: str):
        self.order_id = order_id
        self.expected_status = expected_status
        super().__init__(
            f"Order {order_id} was modified by another request "
            f"(expected status {expected_status}); refetch and retry"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(order_id=str(self.order_id), expected_status=self.expected_status)
        return data


class NotFoundError(WorkflowError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"
    status_code: int = 404

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(entity=self.entity, entity_id=str(self.entity_id))
        return data
