# app/models/order.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field

from app.core.lifecycle import OrderStatus, PaymentStatus


class Order(SQLModel, table=True):
    """
    Customer order.

    The customer snapshot (name, contact, address) and the line items are
    copied by value at checkout, so later profile or catalog changes never
    rewrite history.

    Invariant (checked before insert, never recomputed afterwards):
      total_amount == subtotal + delivery_fee
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_number: str = Field(
        unique=True,
        index=True,
        max_length=32,
        description="Short human-facing number, e.g. NVS482913",
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # Customer snapshot
    customer_name: str
    customer_email: str
    customer_phone: str
    delivery_address: str
    city: str
    state: str
    pincode: str

    # [{item_id, name, unit_price, quantity, image_ref, unit_label}, ...]
    items: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    subtotal: float = Field(ge=0)
    delivery_fee: float = Field(ge=0)
    total_amount: float = Field(ge=0)

    # cod | online (fixed at creation)
    payment_method: str = Field(index=True)

    # pending | paid | failed
    payment_status: str = Field(
        default=PaymentStatus.PENDING.value,
        index=True,
    )

    # placed | confirmed | preparing | out_for_delivery | delivered | cancelled
    order_status: str = Field(
        default=OrderStatus.PLACED.value,
        index=True,
        description="Order status lifecycle",
    )

    # Gateway correlation, each set once
    gateway_order_ref: str | None = Field(default=None, index=True)
    gateway_payment_ref: str | None = Field(default=None)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last mutation timestamp (UTC)",
    )
