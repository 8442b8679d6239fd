# app/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

from app.core.lifecycle import OrderStatus, PaymentMethod, PaymentStatus


def money(value: float) -> float:
    """Round an amount to paise precision."""
    return round(float(value), 2)


def to_minor_units(amount: float) -> int:
    """Major units (rupees) -> minor units (paise) for the gateway."""
    return int(round(float(amount) * 100))


class OrderLine(SQLModel):
    """
    A cart line captured by value at checkout.
    """

    model_config = ConfigDict(extra="forbid")

    item_id: str
    name: str
    unit_price: float = Field(ge=0)
    quantity: int = Field(gt=0, description="Quantity ordered (>=1)")
    image_ref: str = ""
    unit_label: str = ""

    @field_validator("item_id", "name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class CustomerDetails(SQLModel):
    """
    Contact + delivery target as typed in the checkout form.
    """

    name: str
    email: str
    phone: str
    delivery_address: str
    city: str = "Chennai"
    state: str = "Tamil Nadu"
    pincode: str

    @field_validator("name", "phone", "delivery_address", "city", "state", "pincode")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("email")
    @classmethod
    def looks_like_email(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("invalid email address")
        return v


class OrderDraft(CustomerDetails):
    """
    Everything needed to create an order, minus identity and timestamps.

    Validation here is the last gate before anything is written:
      - at least one line
      - subtotal == sum of line totals
      - total_amount == subtotal + delivery_fee
      - a COD order carries no gateway reference
    """

    model_config = ConfigDict(extra="forbid")

    user_id: uuid.UUID
    items: list[OrderLine] = Field(min_length=1)
    subtotal: float = Field(ge=0)
    delivery_fee: float = Field(ge=0)
    total_amount: float = Field(ge=0)
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    gateway_order_ref: str | None = None

    @model_validator(mode="after")
    def check_amounts(self) -> "OrderDraft":
        lines_total = money(sum(line.unit_price * line.quantity for line in self.items))
        if money(self.subtotal) != lines_total:
            raise ValueError(
                f"subtotal {self.subtotal} does not match line items ({lines_total})"
            )
        if money(self.subtotal + self.delivery_fee) != money(self.total_amount):
            raise ValueError("total_amount must equal subtotal + delivery_fee")
        if self.payment_method == PaymentMethod.COD and self.gateway_order_ref:
            raise ValueError("cash-on-delivery orders cannot carry a gateway reference")
        return self


class CheckoutCreate(SQLModel):
    """
    Payload for checkout.

    User provides:
      - phone + delivery address
      - name / email (optional, default to the signed-in profile)
      - the cart lines

    Backend derives:
      - user_id from token
      - subtotal, delivery_fee, total_amount
      - order_number, statuses, timestamps
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    email: str | None = None
    phone: str
    delivery_address: str
    city: str = "Chennai"
    state: str = "Tamil Nadu"
    pincode: str
    items: list[OrderLine] = Field(min_length=1)

    @field_validator("name", "email")
    @classmethod
    def normalize_optional(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderRead(SQLModel):
    """
    Full representation of an order.
    """

    id: uuid.UUID
    order_number: str
    user_id: uuid.UUID
    customer_name: str
    customer_email: str
    customer_phone: str
    delivery_address: str
    city: str
    state: str
    pincode: str
    items: list[OrderLine]
    subtotal: float
    delivery_fee: float
    total_amount: float
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    order_status: OrderStatus
    gateway_order_ref: str | None = None
    gateway_payment_ref: str | None = None
    created_at: datetime
    updated_at: datetime


class TimelineStepRead(SQLModel):
    key: OrderStatus
    label: str
    completed: bool
    active: bool


class OrderTrackingRead(OrderRead):
    """
    Order plus what the tracking page renders.
    """

    status_label: str
    timeline: list[TimelineStepRead]
    can_cancel: bool


class PaymentPrefill(SQLModel):
    """
    Contact fields prefilled in the gateway modal.
    """

    name: str
    email: str
    contact: str


class PendingPaymentRead(SQLModel):
    """
    What the client needs to open the gateway modal for a pending order.
    """

    order_id: uuid.UUID
    order_number: str
    gateway_order_ref: str
    amount: int = Field(description="Amount in minor units (paise)")
    currency: str
    key_id: str | None = None
    name: str
    description: str
    prefill: PaymentPrefill


class PaymentResultCreate(SQLModel):
    """
    Outcome reported by the gateway modal.

      paid      -> gateway_payment_ref required
      dismissed -> customer closed the modal
      failed    -> gateway reported an error (reason optional)
    """

    model_config = ConfigDict(extra="forbid")

    status: Literal["paid", "dismissed", "failed"]
    gateway_payment_ref: str | None = None
    reason: str | None = None

    @model_validator(mode="after")
    def require_payment_ref(self) -> "PaymentResultCreate":
        if self.status == "paid" and not (self.gateway_payment_ref or "").strip():
            raise ValueError("gateway_payment_ref is required when status is 'paid'")
        return self
