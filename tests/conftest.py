import os

# Settings are read at import time; give them something to read.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret")

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from app.core.lifecycle import PaymentMethod
from app.models import order as _order_models  # noqa: F401
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.schemas.order import OrderDraft, OrderLine, money
from app.services.order_service import quote_delivery_fee
from app.services.payment_gateway import PaymentIntent, PaymentSucceeded


class FakeClock:
    """Each call is one second later than the previous one."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class FakeGateway:
    """In-memory gateway; records every call it receives."""

    def __init__(
        self,
        outcome=None,
        echo_amount: int | None = None,
        intent_error: Exception | None = None,
        ui_error: Exception | None = None,
        on_open=None,
    ):
        self.outcome = outcome or PaymentSucceeded(gateway_payment_ref="pay_test_1")
        self.echo_amount = echo_amount
        self.intent_error = intent_error
        self.ui_error = ui_error
        self.on_open = on_open
        self.intents: list[tuple[int, str]] = []
        self.opened: list[tuple[str, object]] = []

    async def create_intent(self, amount: int, currency: str) -> PaymentIntent:
        self.intents.append((amount, currency))
        if self.intent_error is not None:
            raise self.intent_error
        return PaymentIntent(
            gateway_order_ref=f"order_test_{len(self.intents)}",
            amount=amount if self.echo_amount is None else self.echo_amount,
            currency=currency,
        )

    async def open_payment_ui(self, gateway_order_ref, prefill):
        self.opened.append((gateway_order_ref, prefill))
        if self.on_open is not None:
            self.on_open(gateway_order_ref)
        if self.ui_error is not None:
            raise self.ui_error
        return self.outcome


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database with all tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def order_repo(engine, clock) -> OrderRepository:
    return OrderRepository(engine, clock=clock)


@pytest.fixture
def customer() -> User:
    return User(
        id=uuid.uuid4(),
        email="priya@example.com",
        name="Priya",
        phone="9876543210",
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


def tomato_line(quantity: int = 3, unit_price: float = 40.0) -> OrderLine:
    return OrderLine(
        item_id="veg-tomato",
        name="Tomato",
        unit_price=unit_price,
        quantity=quantity,
        image_ref="/images/tomato.jpg",
        unit_label="kg",
    )


@pytest.fixture
def make_draft(customer):
    """Build a valid OrderDraft; keyword overrides replace fields."""

    def _make(**overrides) -> OrderDraft:
        items = overrides.pop("items", None) or [tomato_line()]
        subtotal = money(sum(line.unit_price * line.quantity for line in items))
        delivery_fee = quote_delivery_fee(subtotal)
        fields = {
            "user_id": customer.id,
            "name": customer.name,
            "email": customer.email,
            "phone": "9876543210",
            "delivery_address": "12 Car Street",
            "city": "Tirunelveli",
            "state": "Tamil Nadu",
            "pincode": "627001",
            "items": items,
            "subtotal": subtotal,
            "delivery_fee": delivery_fee,
            "total_amount": money(subtotal + delivery_fee),
            "payment_method": PaymentMethod.COD,
        }
        fields.update(overrides)
        return OrderDraft(**fields)

    return _make
