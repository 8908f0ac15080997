"""Pydantic schemas for am_payment.

The checkout client speaks camelCase (``razorpayOrderId``, ``appId``), so
every model here carries camelCase aliases and still accepts field names.
Routers dump with ``by_alias=True``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.am_common.enums import PaymentStatus
from src.am_payment.domain.models import Payment, PaymentStats


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateOrderRequest(_CamelModel):
    app_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    auction_id: str | None = None


class VerifyPaymentRequest(_CamelModel):
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class FailPaymentRequest(_CamelModel):
    razorpay_order_id: str = Field(..., min_length=1)
    reason: str = Field("Payment failed", max_length=500)


class RefundRequest(_CamelModel):
    payment_id: str = Field(..., min_length=1)
    # Bounds checked against the paid amount in the lifecycle.
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    reason: str = Field(..., min_length=1, max_length=500)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class CreateOrderResponse(_CamelModel):
    order_id: str
    amount: int = Field(..., description="Minor units (paise)")
    currency: str
    payment_id: str
    key_id: str


class PaymentSummary(_CamelModel):
    id: str
    status: str
    amount: Decimal
    app: str


class VerifyPaymentResponse(_CamelModel):
    message: str = "Payment verified successfully"
    payment: PaymentSummary
    purchase_registered: bool


class RefundResponse(_CamelModel):
    message: str = "Refund processed successfully"
    refund_id: str
    amount: Decimal


class PaymentOut(_CamelModel):
    id: str
    user_id: str
    app_id: str
    app_title: str | None
    auction_id: str | None
    amount: Decimal
    currency: str
    status: PaymentStatus
    razorpay_order_id: str
    razorpay_payment_id: str | None
    payment_method: str
    description: str | None
    metadata: dict[str, Any]
    refund_amount: Decimal
    refund_reason: str | None
    refunded_at: datetime | None
    completed_at: datetime | None
    failure_reason: str | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_domain(cls, p: Payment) -> "PaymentOut":
        return cls(
            id=p.id,
            user_id=p.user_id,
            app_id=p.app_id,
            app_title=p.app_title,
            auction_id=p.auction_id,
            amount=p.amount,
            currency=p.currency,
            status=PaymentStatus(p.status),
            razorpay_order_id=p.gateway_order_id,
            razorpay_payment_id=p.gateway_payment_id,
            payment_method=p.payment_method,
            description=p.description,
            metadata=p.metadata,
            refund_amount=p.refund_amount,
            refund_reason=p.refund_reason,
            refunded_at=p.refunded_at,
            completed_at=p.completed_at,
            failure_reason=p.failure_reason,
            created_at=p.created_at,
            updated_at=p.updated_at,
        )


class PaymentListResponse(_CamelModel):
    items: list[PaymentOut]
    next_cursor: str | None
    has_more: bool


class MonthlyRevenueOut(_CamelModel):
    year: int
    month: int
    revenue: Decimal
    count: int


class PaymentStatsResponse(_CamelModel):
    total_payments: int
    total_revenue: Decimal
    monthly_revenue: list[MonthlyRevenueOut]
    recent_payments: list[PaymentOut]

    @classmethod
    def from_domain(cls, stats: PaymentStats) -> "PaymentStatsResponse":
        return cls(
            total_payments=stats.total_payments,
            total_revenue=stats.total_revenue,
            monthly_revenue=[
                MonthlyRevenueOut(year=m.year, month=m.month, revenue=m.revenue, count=m.count)
                for m in stats.monthly_revenue
            ],
            recent_payments=[PaymentOut.from_domain(p) for p in stats.recent_payments],
        )
