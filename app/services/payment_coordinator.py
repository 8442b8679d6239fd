# app/services/payment_coordinator.py
import logging
import uuid
from dataclasses import dataclass

from fastapi.concurrency import run_in_threadpool

from app.core.errors import (
    GatewayUnavailableError,
    OrderError,
    OrderNotFoundError,
    PaymentCancelledError,
    PaymentInitializationError,
    ReconciliationError,
    ValidationError,
)
from app.core.lifecycle import PaymentMethod, PaymentStatus
from app.models.order import Order
from app.repositories.order_repo import OrderRepository
from app.schemas.order import OrderDraft, PaymentPrefill, to_minor_units
from app.services.payment_gateway import (
    PaymentDismissed,
    PaymentFailed,
    PaymentGateway,
    PaymentIntent,
    PaymentOutcome,
    PaymentSucceeded,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingPayment:
    """An online order persisted as pending, tied to a gateway intent."""

    order: Order
    intent: PaymentIntent
    prefill: PaymentPrefill


class PaymentCoordinator:
    """
    Drives the online payment path.

    Steps:
      1. reserve    : create a gateway intent for total_amount
      2. persist    : create the order (online, pending) pegged to the intent
      3. hand off   : open the gateway UI, wait for exactly one outcome
      4. reconcile  : write the outcome back to the order

    The order is created once per submission and always before the
    payment UI opens, so a captured payment always has an order to land on.
    Repository calls are blocking and run in the threadpool.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        gateway: PaymentGateway,
        currency: str = "INR",
    ):
        self.order_repo = order_repo
        self.gateway = gateway
        self.currency = currency

    async def run_payment_flow(
        self,
        draft: OrderDraft,
        prefill: PaymentPrefill,
    ) -> Order:
        """
        Run all four steps and return the paid order.

        Raises:
            ValidationError, GatewayUnavailableError, PersistenceError:
                before or while the order is created.
            PaymentCancelledError, PaymentInitializationError:
                the order exists and stays pending.
            ReconciliationError: money captured, order still pending.
        """
        pending = await self.reserve(draft, prefill)
        outcome = await self.hand_off(pending)
        return await self.reconcile(pending.order.id, outcome)

    async def reserve(
        self,
        draft: OrderDraft,
        prefill: PaymentPrefill,
    ) -> PendingPayment:
        """
        Steps 1 and 2: gateway intent, then the pending order.
        """
        if draft.payment_method != PaymentMethod.ONLINE:
            raise ValidationError(
                "Only online orders go through the payment gateway",
                operation="reserve_payment",
            )

        amount = to_minor_units(draft.total_amount)
        intent = await self._create_intent(amount)

        order = await run_in_threadpool(
            self.order_repo.create,
            draft.model_copy(
                update={
                    "payment_status": PaymentStatus.PENDING,
                    "gateway_order_ref": intent.gateway_order_ref,
                }
            ),
        )
        return PendingPayment(order=order, intent=intent, prefill=prefill)

    async def hand_off(self, pending: PendingPayment) -> PaymentOutcome:
        """
        Step 3: open the gateway UI and wait for its single outcome.

        No timeout of our own: an order whose UI never reports back simply
        stays pending.
        """
        try:
            return await self.gateway.open_payment_ui(
                pending.intent.gateway_order_ref,
                pending.prefill,
            )
        except Exception as exc:
            logger.warning(
                "Payment UI failed to open for order %s: %s",
                pending.order.order_number,
                exc,
            )
            raise PaymentInitializationError(
                "Failed to initialize payment. Please try again.",
                operation="open_payment_ui",
                order_id=pending.order.id,
                order_number=pending.order.order_number,
            ) from exc

    async def reconcile(
        self,
        order_id: uuid.UUID,
        outcome: PaymentOutcome,
        user_id: uuid.UUID | None = None,
    ) -> Order:
        """
        Step 4: fold the gateway outcome into the order.

          PaymentSucceeded -> payment_status=paid + gateway_payment_ref
          PaymentDismissed -> no write, PaymentCancelledError
          PaymentFailed    -> no write, PaymentInitializationError

        Once money is captured, any failure to confirm it (lookup included)
        leaves the order pending and raises ReconciliationError. It is never
        retried here. An order that is already paid is returned unchanged.
        """
        if isinstance(outcome, PaymentSucceeded):
            return await self._confirm_paid(order_id, outcome, user_id)

        order = await run_in_threadpool(self._load_online_order, order_id, user_id)

        if isinstance(outcome, PaymentDismissed):
            logger.info("Payment dismissed for order %s", order.order_number)
            raise PaymentCancelledError(
                "Payment cancelled. Please try again.",
                operation="reconcile_payment",
                order_id=order.id,
                order_number=order.order_number,
            )

        if isinstance(outcome, PaymentFailed):
            logger.warning(
                "Payment failed for order %s: %s",
                order.order_number,
                outcome.reason,
            )
            raise PaymentInitializationError(
                "Failed to initialize payment. Please try again.",
                operation="reconcile_payment",
                order_id=order.id,
                order_number=order.order_number,
            )

        raise ValidationError(
            f"Unknown payment outcome: {outcome!r}",
            operation="reconcile_payment",
            order_id=order.id,
        )

    # ---- helpers ----

    def _load_online_order(
        self,
        order_id: uuid.UUID,
        user_id: uuid.UUID | None,
    ) -> Order:
        order = self.order_repo.find_by_id(order_id)
        if order is None or (user_id is not None and order.user_id != user_id):
            raise OrderNotFoundError(
                "Order not found",
                operation="reconcile_payment",
                order_id=order_id,
            )
        if order.payment_method != PaymentMethod.ONLINE:
            raise ValidationError(
                "Order was not placed for online payment",
                operation="reconcile_payment",
                order_id=order.id,
                order_number=order.order_number,
            )
        return order

    async def _confirm_paid(
        self,
        order_id: uuid.UUID,
        outcome: PaymentSucceeded,
        user_id: uuid.UUID | None,
    ) -> Order:
        order = None
        try:
            order = await run_in_threadpool(self._load_online_order, order_id, user_id)
            if order.payment_status == PaymentStatus.PAID:
                if order.gateway_payment_ref != outcome.gateway_payment_ref:
                    logger.warning(
                        "Order %s already paid with %s; ignoring report of %s",
                        order.order_number,
                        order.gateway_payment_ref,
                        outcome.gateway_payment_ref,
                    )
                return order
            return await run_in_threadpool(
                self.order_repo.set_payment_status,
                order.id,
                PaymentStatus.PAID,
                outcome.gateway_payment_ref,
            )
        except OrderError as exc:
            order_number = order.order_number if order is not None else None
            logger.error(
                "Payment %s captured for order %s (%s) but confirmation failed: %s",
                outcome.gateway_payment_ref,
                order_number,
                order_id,
                exc,
            )
            raise ReconciliationError(
                "Payment successful but order confirmation failed. Please contact support.",
                gateway_payment_ref=outcome.gateway_payment_ref,
                operation="reconcile_payment",
                order_id=order_id,
                order_number=order_number,
            ) from exc

    async def _create_intent(self, amount: int) -> PaymentIntent:
        try:
            intent = await self.gateway.create_intent(amount, self.currency)
        except GatewayUnavailableError:
            raise
        except Exception as exc:
            logger.warning("Payment gateway unavailable: %s", exc)
            raise GatewayUnavailableError(
                "Failed to initialize payment. Please try again.",
                operation="create_intent",
            ) from exc

        if intent.amount != amount or not intent.gateway_order_ref:
            logger.warning(
                "Gateway rejected amount %s %s (echoed %s)",
                amount,
                self.currency,
                intent.amount,
            )
            raise GatewayUnavailableError(
                "Payment gateway rejected the order amount",
                operation="create_intent",
            )
        return intent
