# app/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.engine import Engine

from app.core.auth import require_user
from app.core.config import get_settings
from app.core.errors import GatewayUnavailableError, OrderNotFoundError
from app.core.lifecycle import PaymentMethod
from app.core.order_number import OrderNumberGenerator
from app.database import get_engine
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.schemas.order import (
    CheckoutCreate,
    OrderRead,
    OrderTrackingRead,
    PaymentResultCreate,
    PendingPaymentRead,
)
from app.services.order_service import OrderService, prefill_for
from app.services.payment_coordinator import PaymentCoordinator
from app.services.payment_gateway import (
    PaymentDismissed,
    PaymentFailed,
    PaymentGateway,
    PaymentOutcome,
    PaymentSucceeded,
)
from app.services.tracking_service import OrderTrackingService

settings = get_settings()

router = APIRouter(prefix="/orders", tags=["Orders"])

# One generator per process keeps numbers strictly increasing
order_numbers = OrderNumberGenerator(
    prefix=settings.ORDER_NUMBER_PREFIX,
    digits=settings.ORDER_NUMBER_DIGITS,
)


# -------- Dependencies --------


def get_order_repo(engine: Engine = Depends(get_engine)) -> OrderRepository:
    return OrderRepository(engine, number_generator=order_numbers)


def get_order_service(
    order_repo: OrderRepository = Depends(get_order_repo),
) -> OrderService:
    return OrderService(
        order_repo,
        free_delivery_threshold=settings.FREE_DELIVERY_THRESHOLD,
        delivery_fee=settings.DELIVERY_FEE,
    )


def get_payment_gateway(request: Request) -> PaymentGateway:
    """
    The gateway installed on app.state by the deployment.
    """
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        raise GatewayUnavailableError(
            "Online payment is not available right now",
            operation="create_intent",
        )
    return gateway


def get_payment_coordinator(
    order_repo: OrderRepository = Depends(get_order_repo),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentCoordinator:
    return PaymentCoordinator(order_repo, gateway, currency=settings.CURRENCY)


def get_tracking_service(
    order_repo: OrderRepository = Depends(get_order_repo),
) -> OrderTrackingService:
    return OrderTrackingService(order_repo)


def _to_outcome(payload: PaymentResultCreate) -> PaymentOutcome:
    if payload.status == "paid":
        return PaymentSucceeded(gateway_payment_ref=payload.gateway_payment_ref.strip())
    if payload.status == "dismissed":
        return PaymentDismissed()
    return PaymentFailed(reason=payload.reason or "Payment failed")


# -------- Checkout --------


@router.post(
    "/checkout",
    response_model=OrderRead,
    status_code=status.HTTP_201_CREATED,
)
def checkout_cod(
    payload: CheckoutCreate,
    current_user: User = Depends(require_user),
    service: OrderService = Depends(get_order_service),
):
    """
    Place a cash-on-delivery order from the submitted cart.
    """
    return service.place_cod_order(current_user, payload)


@router.post(
    "/checkout/online",
    response_model=PendingPaymentRead,
    status_code=status.HTTP_201_CREATED,
)
async def checkout_online(
    payload: CheckoutCreate,
    current_user: User = Depends(require_user),
    service: OrderService = Depends(get_order_service),
    coordinator: PaymentCoordinator = Depends(get_payment_coordinator),
):
    """
    Reserve a gateway payment and persist the pending order.

    The client opens the payment modal with the returned reference and
    reports the result to POST /orders/{order_id}/payment.
    """
    draft = service.build_order_draft(current_user, payload, PaymentMethod.ONLINE)
    pending = await coordinator.reserve(draft, prefill_for(draft))

    return PendingPaymentRead(
        order_id=pending.order.id,
        order_number=pending.order.order_number,
        gateway_order_ref=pending.intent.gateway_order_ref,
        amount=pending.intent.amount,
        currency=pending.intent.currency,
        key_id=settings.RAZORPAY_KEY_ID,
        name=settings.SHOP_NAME,
        description=settings.SHOP_DESCRIPTION,
        prefill=pending.prefill,
    )


@router.post(
    "/{order_id}/payment",
    response_model=OrderRead,
)
async def report_payment(
    order_id: uuid.UUID,
    payload: PaymentResultCreate,
    current_user: User = Depends(require_user),
    coordinator: PaymentCoordinator = Depends(get_payment_coordinator),
):
    """
    Reconcile the payment modal's outcome into the order.

      paid      -> 200 with the paid order
      dismissed -> 409 PAYMENT_CANCELLED (order stays pending)
      failed    -> 502 PAYMENT_INITIALIZATION_FAILED
      paid but the write failed -> 502 PAYMENT_CAPTURED_CONFIRMATION_PENDING
    """
    return await coordinator.reconcile(
        order_id,
        _to_outcome(payload),
        user_id=current_user.id,
    )


# -------- Customer history --------


@router.get(
    "/me",
    response_model=list[OrderRead],
)
def list_my_orders(
    current_user: User = Depends(require_user),
    service: OrderService = Depends(get_order_service),
    skip: int = 0,
    limit: int | None = None,
):
    """
    List the authenticated user's orders, newest first.
    """
    return service.list_user_orders(current_user.id, skip, limit)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderRead,
)
def cancel_my_order(
    order_id: uuid.UUID,
    current_user: User = Depends(require_user),
    service: OrderService = Depends(get_order_service),
):
    """
    Cancel an order that is still placed or confirmed.
    """
    return service.cancel_order(current_user.id, order_id)


# -------- Tracking (public) --------


@router.get(
    "/track/{token}",
    response_model=OrderTrackingRead,
)
def track_order(
    token: str,
    tracking: OrderTrackingService = Depends(get_tracking_service),
):
    """
    Track an order by id or by order number.
    """
    result = tracking.track(token)
    if result is None:
        raise OrderNotFoundError(
            "Order not found. Please check your order ID or number.",
            operation="track",
        )
    return result
