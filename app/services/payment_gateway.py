# app/services/payment_gateway.py
"""
Contract with the external payment gateway.

The gateway is a black box reached through two calls:

  create_intent(amount, currency)        -> PaymentIntent
  open_payment_ui(gateway_order_ref, ..) -> PaymentOutcome

`open_payment_ui` resolves exactly once with one of three outcomes, which
replaces the success / dismiss / error callback triple of a browser modal.
No concrete gateway ships with the service; a deployment installs one on
`app.state.payment_gateway`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Union, runtime_checkable

from app.schemas.order import PaymentPrefill


@dataclass(frozen=True)
class PaymentIntent:
    """A reserved payment at the gateway."""

    gateway_order_ref: str
    amount: int  # minor units, echoed back by the gateway
    currency: str


@dataclass(frozen=True)
class PaymentSucceeded:
    gateway_payment_ref: str


@dataclass(frozen=True)
class PaymentDismissed:
    """The customer closed the modal without paying."""


@dataclass(frozen=True)
class PaymentFailed:
    reason: str = "Payment failed"


PaymentOutcome = Union[PaymentSucceeded, PaymentDismissed, PaymentFailed]


@runtime_checkable
class PaymentGateway(Protocol):
    """Payment gateway interface."""

    async def create_intent(self, amount: int, currency: str) -> PaymentIntent:
        """Reserve a payment of `amount` minor units."""
        ...

    async def open_payment_ui(
        self,
        gateway_order_ref: str,
        prefill: PaymentPrefill,
    ) -> PaymentOutcome:
        """Run the payment UI and report how it ended."""
        ...
