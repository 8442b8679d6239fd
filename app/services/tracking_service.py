# app/services/tracking_service.py
import uuid

from app.core.lifecycle import build_timeline, can_cancel, status_label
from app.models.order import Order
from app.repositories.order_repo import OrderRepository
from app.schemas.order import OrderRead, OrderTrackingRead


def parse_order_id(token: str) -> uuid.UUID | None:
    """Return the token as a UUID if it has the shape of an order id."""
    try:
        return uuid.UUID(token)
    except ValueError:
        return None


class OrderTrackingService:
    """
    Resolve what a customer typed into the tracking box to one order.

    A token shaped like an order id is tried as an id first; anything
    else, or an id that misses, is tried as an order number. No match is
    a normal outcome (None), not an error.
    """

    def __init__(self, order_repo: OrderRepository):
        self.order_repo = order_repo

    def resolve(self, token: str) -> Order | None:
        token = (token or "").strip()
        if not token:
            return None

        order_id = parse_order_id(token)
        if order_id is not None:
            order = self.order_repo.find_by_id(order_id)
            if order is not None:
                return order

        return self.order_repo.find_by_number(token)

    def track(self, token: str) -> OrderTrackingRead | None:
        order = self.resolve(token)
        if order is None:
            return None

        base = OrderRead.model_validate(order)
        return OrderTrackingRead(
            **base.model_dump(),
            status_label=status_label(order.order_status),
            timeline=build_timeline(order.order_status),
            can_cancel=can_cancel(order.order_status),
        )
