"""Payment state machine.

    pending ──verify──► completed ──refund──► refunded
       │
       └──fail──► failed

Transitions validate and mutate the in-memory Payment; the repository
persists them with a status compare-and-swap.
"""

from datetime import datetime
from decimal import Decimal

from src.am_common.enums import PaymentStatus
from src.am_common.errors import (
    NotPaymentOwnerError,
    PaymentAlreadyProcessedError,
    PaymentInvalidStateError,
    ValidationFailedError,
)
from src.am_payment.domain.models import Payment


def ensure_owner(payment: Payment, caller_id: str) -> None:
    if payment.user_id != caller_id:
        raise NotPaymentOwnerError()


def mark_completed(
    payment: Payment, gateway_payment_id: str, signature: str, now: datetime
) -> None:
    if not payment.is_pending:
        raise PaymentAlreadyProcessedError(payment.status)
    payment.gateway_payment_id = gateway_payment_id
    payment.gateway_signature = signature
    payment.status = PaymentStatus.COMPLETED.value
    payment.completed_at = now


def mark_failed(payment: Payment, reason: str) -> None:
    if not payment.is_pending:
        raise PaymentAlreadyProcessedError(payment.status)
    payment.status = PaymentStatus.FAILED.value
    payment.failure_reason = reason


def ensure_refundable(payment: Payment, amount: Decimal) -> str:
    """Validate a refund request; returns the gateway payment id to refund against."""
    if payment.status != PaymentStatus.COMPLETED.value:
        raise PaymentInvalidStateError(
            f"Only completed payments can be refunded (status={payment.status})"
        )
    if payment.gateway_payment_id is None:
        raise PaymentInvalidStateError("Payment has no gateway payment id to refund")
    if amount <= 0:
        raise ValidationFailedError.single("amount", "Refund amount must be greater than zero")
    if amount > payment.amount:
        raise ValidationFailedError.single(
            "amount", f"Refund amount {amount} exceeds paid amount {payment.amount}"
        )
    return payment.gateway_payment_id


def mark_refunded(payment: Payment, amount: Decimal, reason: str, now: datetime) -> None:
    payment.status = PaymentStatus.REFUNDED.value
    payment.refund_amount = amount
    payment.refund_reason = reason
    payment.refunded_at = now
