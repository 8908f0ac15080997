"""Payment gateway port. Amounts here are integer minor units (paise)."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class GatewayOrder:
    id: str
    amount: int
    currency: str
    receipt: str | None = None


@dataclass(frozen=True)
class GatewayRefund:
    id: str
    payment_id: str
    amount: int
    status: str


class PaymentGatewayProtocol(Protocol):
    async def create_order(
        self, amount: int, currency: str, receipt: str, notes: dict[str, str]
    ) -> GatewayOrder: ...

    async def refund(
        self, gateway_payment_id: str, amount: int, notes: dict[str, str]
    ) -> GatewayRefund: ...
