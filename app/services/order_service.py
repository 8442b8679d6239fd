# app/services/order_service.py
import logging
import uuid

from pydantic import ValidationError as PydanticValidationError

from app.core.errors import OrderNotFoundError, ValidationError
from app.core.lifecycle import OrderStatus, PaymentMethod
from app.models.order import Order
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.schemas.order import CheckoutCreate, OrderDraft, PaymentPrefill, money

logger = logging.getLogger(__name__)

# Defaults for the delivery fee rule (overridable via Settings)
FREE_DELIVERY_THRESHOLD = 500.0
DELIVERY_FEE = 50.0


def quote_delivery_fee(
    subtotal: float,
    threshold: float = FREE_DELIVERY_THRESHOLD,
    fee: float = DELIVERY_FEE,
) -> float:
    """Free delivery from `threshold` upwards (inclusive), flat fee below."""
    return 0.0 if money(subtotal) >= threshold else money(fee)


def prefill_for(draft: OrderDraft) -> PaymentPrefill:
    """Contact fields for the gateway modal."""
    return PaymentPrefill(name=draft.name, email=draft.email, contact=draft.phone)


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Turn a checkout payload into a validated OrderDraft
        (customer snapshot, line snapshot, subtotal / delivery fee / total)
      - Place cash-on-delivery orders
      - List a customer's orders
      - Cancel a customer's own order (state machine decides)
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        free_delivery_threshold: float = FREE_DELIVERY_THRESHOLD,
        delivery_fee: float = DELIVERY_FEE,
    ):
        self.order_repo = order_repo
        self.free_delivery_threshold = free_delivery_threshold
        self.delivery_fee = delivery_fee

    # -------- Checkout --------

    def build_order_draft(
        self,
        user: User,
        payload: CheckoutCreate,
        payment_method: PaymentMethod,
    ) -> OrderDraft:
        """
        Price the cart and snapshot it, together with the customer's
        contact details, into an OrderDraft.

        Name and email fall back to the signed-in profile when the form
        leaves them blank.

        Raises:
            ValidationError: if the resulting draft is malformed.
        """
        subtotal = money(sum(line.unit_price * line.quantity for line in payload.items))
        delivery_fee = quote_delivery_fee(
            subtotal,
            self.free_delivery_threshold,
            self.delivery_fee,
        )

        try:
            return OrderDraft(
                user_id=user.id,
                name=payload.name or user.name,
                email=payload.email or user.email,
                phone=payload.phone,
                delivery_address=payload.delivery_address,
                city=payload.city,
                state=payload.state,
                pincode=payload.pincode,
                items=payload.items,
                subtotal=subtotal,
                delivery_fee=delivery_fee,
                total_amount=money(subtotal + delivery_fee),
                payment_method=payment_method,
            )
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            detail = f"{field}: {first['msg']}" if field else first["msg"]
            raise ValidationError(
                f"Invalid order: {detail}",
                operation="build_order_draft",
            ) from exc

    def place_cod_order(self, user: User, payload: CheckoutCreate) -> Order:
        """
        Cash on delivery: one write, payment stays pending until delivery.
        """
        draft = self.build_order_draft(user, payload, PaymentMethod.COD)
        return self.order_repo.create(draft)

    # -------- Customer history --------

    def list_user_orders(
        self,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Order]:
        """
        List orders for the given user, newest first.
        """
        return self.order_repo.list_by_user(user_id, skip, limit)

    def cancel_order(
        self,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> Order:
        """
        Cancel one of the user's orders.

        - OrderNotFoundError if the order does not exist or is not theirs.
        - InvalidTransitionError unless the order is placed or confirmed.
        """
        order = self.order_repo.find_by_id(order_id)
        if order is None or order.user_id != user_id:
            raise OrderNotFoundError(
                "Order not found",
                operation="cancel_order",
                order_id=order_id,
            )

        cancelled = self.order_repo.set_order_status(order.id, OrderStatus.CANCELLED)
        logger.info("Order %s cancelled by customer", cancelled.order_number)
        return cancelled
