"""Unit tests for the payment state machine."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from src.am_common.errors import (
    NotPaymentOwnerError,
    PaymentAlreadyProcessedError,
    PaymentInvalidStateError,
    ValidationFailedError,
)
from src.am_payment.domain import lifecycle
from src.am_payment.domain.models import Payment

NOW = datetime(2026, 5, 1, tzinfo=UTC)


def _make_payment(**kwargs) -> Payment:
    defaults = dict(
        id="pay-1", user_id="u1", app_id="app-1", amount=Decimal("199.00"),
        currency="INR", gateway_order_id="order_1",
    )
    defaults.update(kwargs)
    return Payment(**defaults)


class TestOwnership:
    def test_owner_passes(self) -> None:
        lifecycle.ensure_owner(_make_payment(), "u1")

    def test_other_user_rejected(self) -> None:
        with pytest.raises(NotPaymentOwnerError):
            lifecycle.ensure_owner(_make_payment(), "u2")


class TestComplete:
    def test_pending_to_completed(self) -> None:
        payment = _make_payment()
        lifecycle.mark_completed(payment, "pay_gw", "sig", NOW)
        assert payment.status == "completed"
        assert payment.gateway_payment_id == "pay_gw"
        assert payment.gateway_signature == "sig"
        assert payment.completed_at == NOW

    @pytest.mark.parametrize("status", ["completed", "failed", "refunded"])
    def test_only_from_pending(self, status: str) -> None:
        payment = _make_payment(status=status)
        with pytest.raises(PaymentAlreadyProcessedError):
            lifecycle.mark_completed(payment, "pay_gw", "sig", NOW)
        assert payment.status == status


class TestFail:
    def test_pending_to_failed(self) -> None:
        payment = _make_payment()
        lifecycle.mark_failed(payment, "card declined")
        assert payment.status == "failed"
        assert payment.failure_reason == "card declined"

    def test_completed_cannot_fail(self) -> None:
        with pytest.raises(PaymentAlreadyProcessedError):
            lifecycle.mark_failed(_make_payment(status="completed"), "late")


class TestRefund:
    def _completed(self) -> Payment:
        return _make_payment(status="completed", gateway_payment_id="pay_gw")

    def test_full_refund_allowed(self) -> None:
        assert lifecycle.ensure_refundable(self._completed(), Decimal("199.00")) == "pay_gw"

    def test_partial_refund_allowed(self) -> None:
        assert lifecycle.ensure_refundable(self._completed(), Decimal("0.01")) == "pay_gw"

    @pytest.mark.parametrize("amount", ["0", "-5", "199.01"])
    def test_out_of_bounds_rejected(self, amount: str) -> None:
        with pytest.raises(ValidationFailedError):
            lifecycle.ensure_refundable(self._completed(), Decimal(amount))

    @pytest.mark.parametrize("status", ["pending", "failed", "refunded"])
    def test_only_completed_refundable(self, status: str) -> None:
        with pytest.raises(PaymentInvalidStateError):
            lifecycle.ensure_refundable(_make_payment(status=status), Decimal("1"))

    def test_mark_refunded(self) -> None:
        payment = self._completed()
        lifecycle.mark_refunded(payment, Decimal("50.00"), "duplicate", NOW)
        assert payment.status == "refunded"
        assert payment.refund_amount == Decimal("50.00")
        assert payment.refund_reason == "duplicate"
        assert payment.refunded_at == NOW
