# app/repositories/order_repo.py
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.errors import (
    InvalidTransitionError,
    OrderNotFoundError,
    PersistenceError,
    ValidationError,
)
from app.core.lifecycle import OrderStatus, PaymentStatus, ensure_transition
from app.core.order_number import OrderNumberGenerator
from app.models.order import Order
from app.schemas.order import OrderDraft

logger = logging.getLogger(__name__)

# How many fresh numbers to try when a generated one is already taken
ORDER_NUMBER_MAX_RETRIES = 5


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderRepository:
    """
    Data access layer for orders. Sole writer of order rows.

    NOTE:
      - Every operation opens its own Session and commits before
        returning, so each write is atomic and durable on return.
      - Nothing is cached: every read goes to the store.
      - SQLAlchemy failures surface as PersistenceError with the
        operation name and order id/number attached.
    """

    def __init__(
        self,
        engine: Engine,
        number_generator: OrderNumberGenerator | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.engine = engine
        self.number_generator = number_generator or OrderNumberGenerator()
        self.clock = clock

    # ---- Writes ----

    def create(self, draft: OrderDraft) -> Order:
        """
        Insert a new order (status=placed) built from a validated draft.
        """
        now = self.clock()
        try:
            with Session(self.engine) as session:
                order = Order(
                    order_number=self._allocate_number(session),
                    user_id=draft.user_id,
                    customer_name=draft.name,
                    customer_email=draft.email,
                    customer_phone=draft.phone,
                    delivery_address=draft.delivery_address,
                    city=draft.city,
                    state=draft.state,
                    pincode=draft.pincode,
                    items=[line.model_dump() for line in draft.items],
                    subtotal=draft.subtotal,
                    delivery_fee=draft.delivery_fee,
                    total_amount=draft.total_amount,
                    payment_method=draft.payment_method.value,
                    payment_status=draft.payment_status.value,
                    order_status=OrderStatus.PLACED.value,
                    gateway_order_ref=draft.gateway_order_ref,
                    created_at=now,
                    updated_at=now,
                )
                session.add(order)
                session.commit()
                session.refresh(order)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to create order: {exc}",
                operation="create",
            ) from exc

        logger.info(
            "Created order %s (%s, %s)",
            order.order_number,
            order.id,
            order.payment_method,
        )
        return order

    def set_order_status(
        self,
        order_id: uuid.UUID,
        new_status: OrderStatus | str,
    ) -> Order:
        """
        Move an order to `new_status` if the state machine allows it.

        The row is read FOR UPDATE in the same transaction as the write,
        so two concurrent writers serialize and the second one is checked
        against the status the first one left behind.
        """
        try:
            with Session(self.engine) as session:
                stmt = select(Order).where(Order.id == order_id).with_for_update()
                order = session.exec(stmt).first()
                if order is None:
                    raise OrderNotFoundError(
                        "Order not found",
                        operation="set_order_status",
                        order_id=order_id,
                    )

                previous = order.order_status
                try:
                    target = ensure_transition(
                        previous,
                        new_status,
                        order_id=order.id,
                        order_number=order.order_number,
                    )
                except InvalidTransitionError as exc:
                    logger.warning(
                        "Order %s: rejected transition %s -> %s",
                        order.order_number,
                        exc.current,
                        exc.requested,
                    )
                    raise
                order.order_status = target.value
                order.updated_at = self.clock()
                session.add(order)
                session.commit()
                session.refresh(order)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to update order status: {exc}",
                operation="set_order_status",
                order_id=order_id,
            ) from exc

        logger.info("Order %s: %s -> %s", order.order_number, previous, order.order_status)
        return order

    def set_payment_status(
        self,
        order_id: uuid.UUID,
        new_status: PaymentStatus | str,
        gateway_payment_ref: str | None = None,
    ) -> Order:
        """
        Write payment_status; gateway_payment_ref only when one is given.
        """
        try:
            status_value = PaymentStatus(new_status).value
        except ValueError as exc:
            raise ValidationError(
                f"Unknown payment status: {new_status}",
                operation="set_payment_status",
                order_id=order_id,
            ) from exc

        try:
            with Session(self.engine) as session:
                order = session.get(Order, order_id)
                if order is None:
                    raise OrderNotFoundError(
                        "Order not found",
                        operation="set_payment_status",
                        order_id=order_id,
                    )

                order.payment_status = status_value
                if gateway_payment_ref:
                    order.gateway_payment_ref = gateway_payment_ref
                order.updated_at = self.clock()
                session.add(order)
                session.commit()
                session.refresh(order)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to update payment status: {exc}",
                operation="set_payment_status",
                order_id=order_id,
            ) from exc

        logger.info("Order %s: payment %s", order.order_number, order.payment_status)
        return order

    # ---- Reads ----

    def find_by_id(self, order_id: uuid.UUID) -> Order | None:
        try:
            with Session(self.engine) as session:
                return session.get(Order, order_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to fetch order: {exc}",
                operation="find_by_id",
                order_id=order_id,
            ) from exc

    def find_by_number(self, order_number: str) -> Order | None:
        try:
            with Session(self.engine) as session:
                stmt = select(Order).where(Order.order_number == order_number)
                return session.exec(stmt).first()
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to fetch order: {exc}",
                operation="find_by_number",
                order_number=order_number,
            ) from exc

    def list_by_user(
        self,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Order]:
        """
        All orders of a user, most recent first.
        """
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset(skip)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            with Session(self.engine) as session:
                return list(session.exec(stmt).all())
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to fetch user orders: {exc}",
                operation="list_by_user",
            ) from exc

    # ---- Helpers ----

    def _allocate_number(self, session: Session) -> str:
        """
        Generate an order number that is not in use yet.
        """
        for _ in range(ORDER_NUMBER_MAX_RETRIES):
            candidate = self.number_generator()
            stmt = select(Order.id).where(Order.order_number == candidate)
            if session.exec(stmt).first() is None:
                return candidate
            logger.warning("Order number %s already taken, regenerating", candidate)

        raise PersistenceError(
            f"Could not allocate a free order number after {ORDER_NUMBER_MAX_RETRIES} attempts",
            operation="create",
        )
