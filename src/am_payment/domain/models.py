"""Domain models for am_payment - pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.am_common.enums import PaymentStatus


@dataclass
class Payment:
    id: str
    user_id: str
    app_id: str
    amount: Decimal
    currency: str
    gateway_order_id: str
    auction_id: str | None = None
    gateway_payment_id: str | None = None
    gateway_signature: str | None = None
    status: str = PaymentStatus.PENDING.value
    payment_method: str = "razorpay"
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    refund_amount: Decimal = Decimal("0")
    refund_reason: str | None = None
    refunded_at: datetime | None = None
    completed_at: datetime | None = None
    failure_reason: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # Joined from apps on reads; not a payments column.
    app_title: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == PaymentStatus.PENDING.value


@dataclass
class MonthlyRevenue:
    year: int
    month: int
    revenue: Decimal
    count: int


@dataclass
class PaymentStats:
    total_payments: int
    total_revenue: Decimal
    monthly_revenue: list[MonthlyRevenue]
    recent_payments: list[Payment]
