"""Domain-specific exceptions for the settlement services.

Every rejection carries a machine-readable ``error_code`` and the HTTP status
the API layer answers with. Rejections leave the store unchanged.
"""

from http import HTTPStatus
from typing import Any, Dict, Optional


class SettlementError(Exception):
    """Base exception for all settlement errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for client handling
        http_status: HTTP status code for API responses
        details: Additional error context
    """

    error_code = "SETTLEMENT_ERROR"
    http_status = HTTPStatus.BAD_REQUEST

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ResourceNotFoundError(SettlementError):
    """Base class for missing records."""

    error_code = "NOT_FOUND"
    http_status = HTTPStatus.NOT_FOUND

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource} {resource_id} not found",
            details={"resource": resource, "id": str(resource_id)},
        )


class SessionNotFound(ResourceNotFoundError):
    error_code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: Any):
        super().__init__("Table session", session_id)


class TableNotFound(ResourceNotFoundError):
    error_code = "TABLE_NOT_FOUND"

    def __init__(self, table_id: Any):
        super().__init__("Table", table_id)


class OrderNotFound(ResourceNotFoundError):
    error_code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: Any):
        super().__init__("Order", order_id)


class OrderItemNotFound(ResourceNotFoundError):
    error_code = "ORDER_ITEM_NOT_FOUND"

    def __init__(self, item_id: Any):
        super().__init__("Order item", item_id)


class PaymentNotFound(ResourceNotFoundError):
    error_code = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: Any):
        super().__init__("Session payment", payment_id)


class InvalidAmount(SettlementError):
    """Amount is not a finite positive number."""

    error_code = "INVALID_AMOUNT"

    def __init__(self, amount: Any):
        super().__init__(
            f"Invalid amount: {amount!r}",
            details={"amount": str(amount)},
        )


class OverpayRejected(SettlementError):
    """Amount exceeds the remaining balance beyond tolerance."""

    error_code = "OVERPAY_REJECTED"
    http_status = HTTPStatus.CONFLICT

    def __init__(self, amount: Any, remaining: Any):
        super().__init__(
            f"Amount {amount} exceeds remaining balance {remaining}",
            details={"amount": str(amount), "remaining": str(remaining)},
        )


class SessionAlreadyClosed(SettlementError):
    error_code = "SESSION_ALREADY_CLOSED"
    http_status = HTTPStatus.CONFLICT

    def __init__(self, session_id: Any):
        super().__init__(
            f"Table session {session_id} is already closed",
            details={"session_id": str(session_id)},
        )


class DestinationOccupied(SettlementError):
    error_code = "DESTINATION_OCCUPIED"
    http_status = HTTPStatus.CONFLICT

    def __init__(self, table_id: Any):
        super().__init__(
            f"Table {table_id} already has an open session",
            details={"table_id": str(table_id)},
        )


class TableAlreadyOpen(SettlementError):
    error_code = "TABLE_ALREADY_OPEN"
    http_status = HTTPStatus.CONFLICT

    def __init__(self, table_id: Any):
        super().__init__(
            f"Table {table_id} already has an open session",
            details={"table_id": str(table_id)},
        )


class ItemQuantityExceeded(SettlementError):
    """A payment itemises more of an item than is still unpaid."""

    error_code = "ITEM_QUANTITY_EXCEEDED"
    http_status = HTTPStatus.CONFLICT

    def __init__(self, item_name: str, requested: int, available: int):
        super().__init__(
            f"Cannot pay {requested}x {item_name}: only {available} left",
            details={"item": item_name, "requested": requested, "available": available},
        )


class CoverAlreadyPaid(SettlementError):
    """The cover cannot be removed once covers were paid through the ledger."""

    error_code = "COVER_ALREADY_PAID"
    http_status = HTTPStatus.CONFLICT

    def __init__(self, paid_covers: int):
        super().__init__(
            f"{paid_covers} cover(s) already paid; cover charge cannot be removed",
            details={"paid_covers": paid_covers},
        )


class TotalBelowPaid(SettlementError):
    """A total change would leave the session with more collected than owed."""

    error_code = "TOTAL_BELOW_PAID"
    http_status = HTTPStatus.CONFLICT

    def __init__(self, total: Any, paid: Any):
        super().__init__(
            f"New total {total} is below the amount already paid {paid}",
            details={"total": str(total), "paid": str(paid)},
        )


class ConcurrentModification(SettlementError):
    """Another device changed the session between read and write."""

    error_code = "CONCURRENT_MODIFICATION"
    http_status = HTTPStatus.CONFLICT

    def __init__(self, session_id: Any):
        super().__init__(
            "Table session was modified by another user. Please refresh and try again.",
            details={"session_id": str(session_id)},
        )


class EmptySessionConfirmationRequired(SettlementError):
    error_code = "EMPTY_SESSION_CONFIRMATION_REQUIRED"

    def __init__(self, session_id: Any):
        super().__init__(
            "Session total is zero; closing requires explicit confirmation",
            details={"session_id": str(session_id)},
        )


class PaymentMethodRequired(SettlementError):
    error_code = "PAYMENT_METHOD_REQUIRED"

    def __init__(self, session_id: Any):
        super().__init__(
            "A payment method is required to close a session with a balance",
            details={"session_id": str(session_id)},
        )


class EmptySelection(SettlementError):
    error_code = "EMPTY_SELECTION"

    def __init__(self):
        super().__init__("Select at least one item or cover to pay")


class InvalidSplit(SettlementError):
    error_code = "INVALID_SPLIT"

    def __init__(self, message: str):
        super().__init__(message)
