# app/core/errors.py
"""
Error taxonomy for the order core.

Every error carries:
  - message      : human-readable text, safe to show to the customer
  - code         : stable machine code for the client
  - status_code  : HTTP status used by the API exception handler
  - context      : operation / order id / order number, for logs

Lookups that miss return None instead of raising; OrderNotFoundError is
only raised when a mutation targets an order that does not exist.
"""

from __future__ import annotations

import uuid
from typing import Any


class OrderError(Exception):
    """Base error for everything raised by the order core."""

    code = "ORDER_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        order_id: uuid.UUID | str | None = None,
        order_number: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.order_id = order_id
        self.order_number = order_number

    def context(self) -> dict[str, Any]:
        ctx: dict[str, Any] = {"code": self.code}
        if self.operation:
            ctx["operation"] = self.operation
        if self.order_id is not None:
            ctx["order_id"] = str(self.order_id)
        if self.order_number:
            ctx["order_number"] = self.order_number
        return ctx


class ValidationError(OrderError):
    """Malformed or missing order fields. Raised before any write."""

    code = "VALIDATION_FAILED"
    status_code = 422


class OrderNotFoundError(OrderError):
    code = "ORDER_NOT_FOUND"
    status_code = 404


class PersistenceError(OrderError):
    """The store was unreachable or rejected the write."""

    code = "PERSISTENCE_FAILED"
    status_code = 503


class InvalidTransitionError(OrderError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current: str, requested: str, **kwargs: Any):
        super().__init__(
            f"Invalid status transition: {current} -> {requested}",
            **kwargs,
        )
        self.current = current
        self.requested = requested

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        ctx["current"] = self.current
        ctx["requested"] = self.requested
        return ctx


class GatewayUnavailableError(OrderError):
    """Payment intent could not be created; no order was persisted."""

    code = "GATEWAY_UNAVAILABLE"
    status_code = 502


class PaymentCancelledError(OrderError):
    code = "PAYMENT_CANCELLED"
    status_code = 409


class PaymentInitializationError(OrderError):
    code = "PAYMENT_INITIALIZATION_FAILED"
    status_code = 502


class ReconciliationError(OrderError):
    """
    The gateway captured the money but the order could not be marked paid.

    The order stays `pending` and must be reconciled by support; the core
    never retries this write on its own.
    """

    code = "PAYMENT_CAPTURED_CONFIRMATION_PENDING"
    status_code = 502

    def __init__(self, message: str, *, gateway_payment_ref: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.gateway_payment_ref = gateway_payment_ref

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        ctx["gateway_payment_ref"] = self.gateway_payment_ref
        return ctx
