# app/core/lifecycle.py
"""
Order lifecycle state machine.

Fulfilment is linear:

    placed -> confirmed -> preparing -> out_for_delivery -> delivered

`cancelled` is reachable from `placed` or `confirmed` only. `delivered`
and `cancelled` are terminal. The machine holds no state: the repository
owns the order row and asks `ensure_transition` before every write.
"""

import uuid
from enum import Enum

from app.core.errors import InvalidTransitionError


class OrderStatus(str, Enum):
    PLACED = "placed"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    COD = "cod"
    ONLINE = "online"


FULFILLMENT_STEPS: tuple[OrderStatus, ...] = (
    OrderStatus.PLACED,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PLACED: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ORDER_TRANSITIONS.items() if not targets
)

STATUS_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PLACED: "Order Placed",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.PREPARING: "Preparing",
    OrderStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
}


def _coerce(status: OrderStatus | str) -> OrderStatus | None:
    try:
        return OrderStatus(status)
    except ValueError:
        return None


def can_transition(current: OrderStatus | str, requested: OrderStatus | str) -> bool:
    """Pure decision: may an order move from `current` to `requested`?"""
    cur = _coerce(current)
    req = _coerce(requested)
    if cur is None or req is None:
        return False
    return req in ORDER_TRANSITIONS[cur]


def ensure_transition(
    current: OrderStatus | str,
    requested: OrderStatus | str,
    *,
    order_id: uuid.UUID | None = None,
    order_number: str | None = None,
) -> OrderStatus:
    """
    Return the requested status as an enum, or raise InvalidTransitionError.

    Self-transitions are rejected like any other edge missing from the table.
    """
    if not can_transition(current, requested):
        raise InvalidTransitionError(
            str(getattr(current, "value", current)),
            str(getattr(requested, "value", requested)),
            operation="set_order_status",
            order_id=order_id,
            order_number=order_number,
        )
    return OrderStatus(requested)


def can_cancel(status: OrderStatus | str) -> bool:
    return can_transition(status, OrderStatus.CANCELLED)


def is_terminal(status: OrderStatus | str) -> bool:
    return _coerce(status) in TERMINAL_STATUSES


def status_label(status: OrderStatus | str) -> str:
    cur = _coerce(status)
    if cur is None:
        return str(status).replace("_", " ").title()
    return STATUS_LABELS[cur]


def build_timeline(status: OrderStatus | str) -> list[dict]:
    """
    Tracking timeline derived from the fulfilment step order.

    Each step is {key, label, completed, active}. A cancelled order has
    no timeline.
    """
    cur = _coerce(status)
    if cur is None or cur is OrderStatus.CANCELLED:
        return []

    current_index = FULFILLMENT_STEPS.index(cur)
    return [
        {
            "key": step.value,
            "label": STATUS_LABELS[step],
            "completed": index <= current_index,
            "active": index == current_index,
        }
        for index, step in enumerate(FULFILLMENT_STEPS)
    ]
