# tests/unit/test_payment_service.py
"""Unit tests for PaymentService with mock repository, gateway and catalog."""
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from src.am_catalog.application.service import CatalogService
from src.am_catalog.domain.models import App
from src.am_common.errors import (
    AlreadyPurchasedError,
    AppNotFoundError,
    NotPaymentOwnerError,
    PaymentAlreadyProcessedError,
    PaymentGatewayError,
    PaymentInvalidStateError,
    PaymentNotFoundError,
    SignatureInvalidError,
    ValidationFailedError,
)
from src.am_gateway.auth.permissions import Actor
from src.am_payment.application.service import PaymentService
from src.am_payment.domain.gateway import GatewayOrder, GatewayRefund
from src.am_payment.domain.models import Payment
from src.am_payment.domain.signature import compute_signature

SECRET = "unit-test-secret"


def _make_app(**kwargs) -> App:
    now = datetime.now(UTC)
    defaults = dict(
        id="app-1", developer_id="dev-1", title="Focus Timer",
        short_description="Pomodoro timer", description="A pomodoro timer with stats",
        category="Productivity", price=Decimal("199.00"), status="approved",
        downloads=10, is_featured=False, created_at=now, updated_at=now,
    )
    defaults.update(kwargs)
    return App(**defaults)


def _make_payment(**kwargs) -> Payment:
    defaults = dict(
        id="pay-1", user_id="u1", app_id="app-1", amount=Decimal("199.00"),
        currency="INR", gateway_order_id="order_1", created_at=datetime.now(UTC),
    )
    defaults.update(kwargs)
    return Payment(**defaults)


@pytest.fixture
def db():
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def mock_repo():
    return MagicMock()


@pytest.fixture
def gateway():
    return MagicMock()


@pytest.fixture
def catalog():
    return MagicMock()


@pytest.fixture
def svc(mock_repo, gateway, catalog):
    return PaymentService(repo=mock_repo, gateway=gateway, catalog=catalog, key_secret=SECRET)


class TestCreateOrder:
    @pytest.mark.asyncio
    async def test_amount_sent_in_minor_units(self, svc, db, mock_repo, gateway, catalog):
        catalog.find_by_id = AsyncMock(return_value=_make_app())
        mock_repo.has_completed = AsyncMock(return_value=False)
        gateway.create_order = AsyncMock(
            return_value=GatewayOrder(id="order_1", amount=19900, currency="INR")
        )
        mock_repo.insert = AsyncMock(side_effect=lambda session, p: _make_payment(
            id="pay-new", gateway_order_id=p.gateway_order_id
        ))

        resp = await svc.create_order(db, "u1", "app-1", Decimal("199.00"))

        args = gateway.create_order.await_args
        assert args.args[0] == 19900
        assert args.args[1] == "INR"
        assert args.kwargs["receipt"].startswith("rcpt_")
        assert args.kwargs["notes"]["appId"] == "app-1"
        assert resp.order_id == "order_1"
        assert resp.amount == 19900
        assert resp.payment_id == "pay-new"
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pending_row_carries_app_metadata(self, svc, db, mock_repo, gateway, catalog):
        catalog.find_by_id = AsyncMock(return_value=_make_app())
        mock_repo.has_completed = AsyncMock(return_value=False)
        gateway.create_order = AsyncMock(
            return_value=GatewayOrder(id="order_1", amount=19900, currency="INR")
        )
        mock_repo.insert = AsyncMock(side_effect=lambda session, p: p)

        await svc.create_order(db, "u1", "app-1", Decimal("199.00"), auction_id="auc-1")

        inserted = mock_repo.insert.await_args.args[1]
        assert inserted.status == "pending"
        assert inserted.auction_id == "auc-1"
        assert inserted.metadata["appName"] == "Focus Timer"
        assert inserted.metadata["appDeveloper"] == "dev-1"

    @pytest.mark.asyncio
    async def test_unknown_app(self, svc, db, gateway, catalog):
        catalog.find_by_id = AsyncMock(return_value=None)
        gateway.create_order = AsyncMock()

        with pytest.raises(AppNotFoundError):
            await svc.create_order(db, "u1", "nope", Decimal("10"))
        gateway.create_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_already_purchased(self, svc, db, mock_repo, gateway, catalog):
        catalog.find_by_id = AsyncMock(return_value=_make_app())
        mock_repo.has_completed = AsyncMock(return_value=True)
        gateway.create_order = AsyncMock()

        with pytest.raises(AlreadyPurchasedError):
            await svc.create_order(db, "u1", "app-1", Decimal("199.00"))
        gateway.create_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_gateway_failure_records_nothing(self, svc, db, mock_repo, gateway, catalog):
        catalog.find_by_id = AsyncMock(return_value=_make_app())
        mock_repo.has_completed = AsyncMock(return_value=False)
        gateway.create_order = AsyncMock(side_effect=PaymentGatewayError("HTTP 500"))
        mock_repo.insert = AsyncMock()

        with pytest.raises(PaymentGatewayError):
            await svc.create_order(db, "u1", "app-1", Decimal("199.00"))
        mock_repo.insert.assert_not_called()


class TestVerify:
    def _sig(self, order_id: str = "order_1", pay_id: str = "pay_gw_1") -> str:
        return compute_signature(order_id, pay_id, SECRET)

    @pytest.mark.asyncio
    async def test_happy_path(self, svc, db, mock_repo, catalog):
        mock_repo.get_by_order_id = AsyncMock(return_value=_make_payment())
        mock_repo.save_completed = AsyncMock(return_value=True)
        catalog.register_purchase = AsyncMock(return_value=True)

        resp = await svc.verify(db, "u1", "order_1", "pay_gw_1", self._sig())

        assert resp.payment.status == "completed"
        assert resp.payment.app == "app-1"
        assert resp.purchase_registered is True
        saved = mock_repo.save_completed.await_args.args[1]
        assert saved.gateway_payment_id == "pay_gw_1"
        catalog.register_purchase.assert_awaited_once_with(
            db, "u1", "app-1", "pay-1", Decimal("199.00")
        )
        assert db.commit.await_count == 2

    @pytest.mark.asyncio
    async def test_bad_signature_checked_before_lookup(self, svc, db, mock_repo):
        mock_repo.get_by_order_id = AsyncMock()

        with pytest.raises(SignatureInvalidError):
            await svc.verify(db, "u1", "order_1", "pay_gw_1", "deadbeef")
        mock_repo.get_by_order_id.assert_not_called()

    @pytest.mark.asyncio
    async def test_signature_for_other_order_rejected(self, svc, db, mock_repo):
        mock_repo.get_by_order_id = AsyncMock()

        with pytest.raises(SignatureInvalidError):
            await svc.verify(db, "u1", "order_1", "pay_gw_1", self._sig(order_id="order_2"))

    @pytest.mark.asyncio
    async def test_unknown_order(self, svc, db, mock_repo):
        mock_repo.get_by_order_id = AsyncMock(return_value=None)

        with pytest.raises(PaymentNotFoundError):
            await svc.verify(db, "u1", "order_1", "pay_gw_1", self._sig())
        db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_other_users_order(self, svc, db, mock_repo):
        mock_repo.get_by_order_id = AsyncMock(return_value=_make_payment(user_id="u2"))
        mock_repo.save_completed = AsyncMock()

        with pytest.raises(NotPaymentOwnerError):
            await svc.verify(db, "u1", "order_1", "pay_gw_1", self._sig())
        mock_repo.save_completed.assert_not_called()

    @pytest.mark.asyncio
    async def test_retry_after_success_is_rejected(self, svc, db, mock_repo, catalog):
        mock_repo.get_by_order_id = AsyncMock(
            return_value=_make_payment(status="completed", gateway_payment_id="pay_gw_1")
        )
        mock_repo.save_completed = AsyncMock()
        catalog.register_purchase = AsyncMock()

        with pytest.raises(PaymentAlreadyProcessedError):
            await svc.verify(db, "u1", "order_1", "pay_gw_1", self._sig())
        mock_repo.save_completed.assert_not_called()
        catalog.register_purchase.assert_not_called()

    @pytest.mark.asyncio
    async def test_lost_race_reports_current_status(self, svc, db, mock_repo, catalog):
        mock_repo.get_by_order_id = AsyncMock(side_effect=[
            _make_payment(), _make_payment(status="completed"),
        ])
        mock_repo.save_completed = AsyncMock(return_value=False)
        catalog.register_purchase = AsyncMock()

        with pytest.raises(PaymentAlreadyProcessedError) as exc:
            await svc.verify(db, "u1", "order_1", "pay_gw_1", self._sig())
        assert "completed" in exc.value.message
        catalog.register_purchase.assert_not_called()
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_completed_payment_for_same_app(self, svc, db, mock_repo, catalog):
        mock_repo.get_by_order_id = AsyncMock(return_value=_make_payment())
        mock_repo.save_completed = AsyncMock(
            side_effect=IntegrityError("UPDATE payments", {}, Exception("uq_payments_completed"))
        )
        catalog.register_purchase = AsyncMock()

        with pytest.raises(AlreadyPurchasedError):
            await svc.verify(db, "u1", "order_1", "pay_gw_1", self._sig())
        db.rollback.assert_awaited_once()
        catalog.register_purchase.assert_not_called()

    @pytest.mark.asyncio
    async def test_registration_failure_keeps_completion(self, svc, db, mock_repo, catalog):
        payment = _make_payment()
        mock_repo.get_by_order_id = AsyncMock(return_value=payment)
        mock_repo.save_completed = AsyncMock(return_value=True)
        catalog.register_purchase = AsyncMock(side_effect=RuntimeError("db hiccup"))

        resp = await svc.verify(db, "u1", "order_1", "pay_gw_1", self._sig())

        assert resp.payment.status == "completed"
        assert resp.purchase_registered is False
        assert payment.status == "completed"
        db.commit.assert_awaited_once()
        db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_already_registered_purchase_is_ok(self, svc, db, mock_repo, catalog):
        mock_repo.get_by_order_id = AsyncMock(return_value=_make_payment())
        mock_repo.save_completed = AsyncMock(return_value=True)
        catalog.register_purchase = AsyncMock(return_value=False)

        resp = await svc.verify(db, "u1", "order_1", "pay_gw_1", self._sig())

        assert resp.purchase_registered is True

    @pytest.mark.asyncio
    async def test_repurchase_after_refund_counts_a_download(self, db, mock_repo, gateway):
        app_repo = MagicMock()
        app_repo.increment_downloads = AsyncMock(return_value=11)
        purchase_repo = MagicMock()
        purchase_repo.register = AsyncMock(return_value=False)
        svc = PaymentService(
            repo=mock_repo,
            gateway=gateway,
            catalog=CatalogService(app_repo=app_repo, purchase_repo=purchase_repo),
            key_secret=SECRET,
        )
        mock_repo.get_by_order_id = AsyncMock(return_value=_make_payment(id="pay-2"))
        mock_repo.save_completed = AsyncMock(return_value=True)

        resp = await svc.verify(db, "u1", "order_1", "pay_gw_1", self._sig())

        assert resp.purchase_registered is True
        purchase_repo.register.assert_awaited_once_with(
            db, "u1", "app-1", "pay-2", Decimal("199.00")
        )
        app_repo.increment_downloads.assert_awaited_once_with(db, "app-1")


class TestMarkFailed:
    @pytest.mark.asyncio
    async def test_pending_to_failed(self, svc, db, mock_repo):
        mock_repo.get_by_order_id = AsyncMock(return_value=_make_payment())
        mock_repo.save_failed = AsyncMock(return_value=True)

        out = await svc.mark_failed(db, "u1", "order_1", "user closed checkout")

        assert out.status == "failed"
        assert out.failure_reason == "user closed checkout"
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_completed_cannot_fail(self, svc, db, mock_repo):
        mock_repo.get_by_order_id = AsyncMock(return_value=_make_payment(status="completed"))
        mock_repo.save_failed = AsyncMock()

        with pytest.raises(PaymentAlreadyProcessedError):
            await svc.mark_failed(db, "u1", "order_1", "late")
        mock_repo.save_failed.assert_not_called()


class TestRefund:
    def _completed(self) -> Payment:
        return _make_payment(status="completed", gateway_payment_id="pay_gw_1")

    @pytest.mark.asyncio
    async def test_refund_calls_gateway_then_persists(self, svc, db, mock_repo, gateway):
        payment = self._completed()
        mock_repo.get_by_id = AsyncMock(return_value=payment)
        mock_repo.save_refunded = AsyncMock(return_value=True)
        gateway.refund = AsyncMock(return_value=GatewayRefund(
            id="rfnd_1", payment_id="pay_gw_1", amount=5000, status="processed"
        ))

        resp = await svc.refund(db, "pay-1", Decimal("50.00"), "partial refund")

        assert resp.refund_id == "rfnd_1"
        assert resp.amount == Decimal("50.00")
        gateway.refund.assert_awaited_once_with("pay_gw_1", 5000, {"reason": "partial refund"})
        assert payment.status == "refunded"
        assert payment.refund_amount == Decimal("50.00")
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gateway_failure_leaves_payment_completed(self, svc, db, mock_repo, gateway):
        payment = self._completed()
        mock_repo.get_by_id = AsyncMock(return_value=payment)
        mock_repo.save_refunded = AsyncMock()
        gateway.refund = AsyncMock(side_effect=PaymentGatewayError("HTTP 400"))

        with pytest.raises(PaymentGatewayError):
            await svc.refund(db, "pay-1", Decimal("50.00"), "customer request")
        assert payment.status == "completed"
        mock_repo.save_refunded.assert_not_called()
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "199.01"])
    async def test_amount_bounds(self, svc, db, mock_repo, gateway, amount):
        mock_repo.get_by_id = AsyncMock(return_value=self._completed())
        gateway.refund = AsyncMock()

        with pytest.raises(ValidationFailedError):
            await svc.refund(db, "pay-1", Decimal(amount), "bad amount")
        gateway.refund.assert_not_called()

    @pytest.mark.asyncio
    async def test_pending_not_refundable(self, svc, db, mock_repo, gateway):
        mock_repo.get_by_id = AsyncMock(return_value=_make_payment())
        gateway.refund = AsyncMock()

        with pytest.raises(PaymentInvalidStateError):
            await svc.refund(db, "pay-1", Decimal("10"), "early")
        gateway.refund.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_payment(self, svc, db, mock_repo):
        mock_repo.get_by_id = AsyncMock(return_value=None)

        with pytest.raises(PaymentNotFoundError):
            await svc.refund(db, "nope", Decimal("10"), "missing")


class TestReads:
    @pytest.mark.asyncio
    async def test_owner_sees_payment(self, svc, db, mock_repo):
        mock_repo.get_by_id = AsyncMock(return_value=_make_payment())

        out = await svc.get_payment(db, Actor(user_id="u1"), "pay-1")

        assert out.razorpay_order_id == "order_1"

    @pytest.mark.asyncio
    async def test_admin_sees_any_payment(self, svc, db, mock_repo):
        mock_repo.get_by_id = AsyncMock(return_value=_make_payment())

        out = await svc.get_payment(db, Actor(user_id="ops", is_admin=True), "pay-1")

        assert out.user_id == "u1"

    @pytest.mark.asyncio
    async def test_stranger_rejected(self, svc, db, mock_repo):
        mock_repo.get_by_id = AsyncMock(return_value=_make_payment())

        with pytest.raises(NotPaymentOwnerError):
            await svc.get_payment(db, Actor(user_id="u2"), "pay-1")

    @pytest.mark.asyncio
    async def test_list_paginates(self, svc, db, mock_repo):
        payments = [_make_payment(id=f"pay-{i}") for i in range(3)]
        mock_repo.list_by_user = AsyncMock(return_value=payments)

        resp = await svc.list_user_payments(db, "u1", None, None, limit=2)

        assert [p.id for p in resp.items] == ["pay-0", "pay-1"]
        assert resp.has_more is True
        assert resp.next_cursor is not None
