"""PaymentService - order creation, verification, failure, refund.

Verification is two transactions on purpose:
  1. pending → completed, committed.
  2. purchase registration + download count, best effort.
A failure in (2) is logged and left for ``reconcile_purchases``; it never
undoes (1).
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.am_catalog.application.service import CatalogService
from src.am_common.cursor import cursor_decode, cursor_encode
from src.am_common.datetime_utils import utc_now
from src.am_common.errors import (
    AlreadyPurchasedError,
    AppNotFoundError,
    NotPaymentOwnerError,
    PaymentAlreadyProcessedError,
    PaymentInvalidStateError,
    PaymentNotFoundError,
    SignatureInvalidError,
)
from src.am_common.money import to_minor_units
from src.am_gateway.auth.permissions import Actor
from src.am_payment.application.schemas import (
    CreateOrderResponse,
    PaymentListResponse,
    PaymentOut,
    PaymentStatsResponse,
    PaymentSummary,
    RefundResponse,
    VerifyPaymentResponse,
)
from src.am_payment.domain import lifecycle
from src.am_payment.domain.gateway import PaymentGatewayProtocol
from src.am_payment.domain.models import Payment
from src.am_payment.domain.repository import AppCatalogProtocol, PaymentRepositoryProtocol
from src.am_payment.domain.signature import verify_signature
from src.am_payment.infrastructure.persistence import PaymentRepository
from src.am_payment.infrastructure.razorpay_client import RazorpayClient

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(
        self,
        repo: PaymentRepositoryProtocol | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        catalog: AppCatalogProtocol | None = None,
        key_secret: str | None = None,
    ) -> None:
        self._repo: PaymentRepositoryProtocol = repo or PaymentRepository()
        self._gateway: PaymentGatewayProtocol = gateway or RazorpayClient()
        self._catalog: AppCatalogProtocol = catalog or CatalogService()
        self._key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET

    async def create_order(
        self,
        db: AsyncSession,
        user_id: str,
        app_id: str,
        amount: Decimal,
        auction_id: str | None = None,
    ) -> CreateOrderResponse:
        app = await self._catalog.find_by_id(db, app_id)
        if app is None:
            raise AppNotFoundError(app_id)
        if await self._repo.has_completed(db, user_id, app_id):
            raise AlreadyPurchasedError(app_id)

        currency = settings.PAYMENT_CURRENCY
        order = await self._gateway.create_order(
            to_minor_units(amount),
            currency,
            receipt=f"rcpt_{uuid.uuid4().hex[:20]}",
            notes={"appId": app_id, "userId": user_id, "appName": app.title},
        )
        payment = Payment(
            id="",
            user_id=user_id,
            app_id=app_id,
            auction_id=auction_id,
            amount=amount,
            currency=currency,
            gateway_order_id=order.id,
            description=f"Purchase of {app.title}",
            metadata={
                "appName": app.title,
                "appCategory": app.category,
                "appDeveloper": app.developer_id,
            },
        )
        try:
            payment = await self._repo.insert(db, payment)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Payment %s pending: order %s, user %s, app %s, amount %s",
            payment.id, order.id, user_id, app_id, amount,
        )
        return CreateOrderResponse(
            order_id=order.id,
            amount=order.amount,
            currency=order.currency,
            payment_id=payment.id,
            key_id=settings.RAZORPAY_KEY_ID,
        )

    async def verify(
        self,
        db: AsyncSession,
        caller_id: str,
        order_id: str,
        gateway_payment_id: str,
        signature: str,
    ) -> VerifyPaymentResponse:
        if not verify_signature(order_id, gateway_payment_id, signature, self._key_secret):
            logger.warning("Signature mismatch for order %s (caller %s)", order_id, caller_id)
            raise SignatureInvalidError()

        try:
            payment = await self._repo.get_by_order_id(db, order_id)
            if payment is None:
                raise PaymentNotFoundError(order_id)
            lifecycle.ensure_owner(payment, caller_id)
            lifecycle.mark_completed(payment, gateway_payment_id, signature, utc_now())
            try:
                saved = await self._repo.save_completed(db, payment)
            except IntegrityError as e:
                raise AlreadyPurchasedError(payment.app_id) from e
            if not saved:
                current = await self._repo.get_by_order_id(db, order_id)
                raise PaymentAlreadyProcessedError(current.status if current else "unknown")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Payment %s completed (order %s)", payment.id, order_id)

        registered = await self._register_purchase(db, payment)
        return VerifyPaymentResponse(
            payment=PaymentSummary(
                id=payment.id, status=payment.status, amount=payment.amount, app=payment.app_id
            ),
            purchase_registered=registered,
        )

    async def mark_failed(
        self, db: AsyncSession, caller_id: str, order_id: str, reason: str
    ) -> PaymentOut:
        try:
            payment = await self._repo.get_by_order_id(db, order_id)
            if payment is None:
                raise PaymentNotFoundError(order_id)
            lifecycle.ensure_owner(payment, caller_id)
            lifecycle.mark_failed(payment, reason)
            if not await self._repo.save_failed(db, payment):
                current = await self._repo.get_by_order_id(db, order_id)
                raise PaymentAlreadyProcessedError(current.status if current else "unknown")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Payment %s failed: %s", payment.id, reason)
        return PaymentOut.from_domain(payment)

    async def refund(
        self, db: AsyncSession, payment_id: str, amount: Decimal, reason: str
    ) -> RefundResponse:
        """Admin refund. The gateway is called first; local state changes only after it succeeds."""
        try:
            payment = await self._repo.get_by_id(db, payment_id)
            if payment is None:
                raise PaymentNotFoundError(payment_id)
            gateway_payment_id = lifecycle.ensure_refundable(payment, amount)
            refund = await self._gateway.refund(
                gateway_payment_id, to_minor_units(amount), {"reason": reason}
            )
            lifecycle.mark_refunded(payment, amount, reason, utc_now())
            if not await self._repo.save_refunded(db, payment):
                logger.error(
                    "Gateway refund %s issued but payment %s left completed state concurrently",
                    refund.id, payment_id,
                )
                raise PaymentInvalidStateError("Payment was modified concurrently")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Payment %s refunded %s (refund %s): %s", payment_id, amount, refund.id, reason)
        return RefundResponse(refund_id=refund.id, amount=amount)

    async def list_user_payments(
        self,
        db: AsyncSession,
        user_id: str,
        status: str | None,
        cursor: str | None,
        limit: int,
    ) -> PaymentListResponse:
        cursor_ts, cursor_id = cursor_decode(cursor)
        payments = await self._repo.list_by_user(db, user_id, status, cursor_ts, cursor_id, limit + 1)
        has_more = len(payments) > limit
        page = payments[:limit]
        next_cursor = None
        if has_more and page and page[-1].created_at is not None:
            next_cursor = cursor_encode(page[-1].created_at, page[-1].id)
        return PaymentListResponse(
            items=[PaymentOut.from_domain(p) for p in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def get_payment(self, db: AsyncSession, actor: Actor, payment_id: str) -> PaymentOut:
        payment = await self._repo.get_by_id(db, payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        if payment.user_id != actor.user_id and not actor.is_admin:
            raise NotPaymentOwnerError()
        return PaymentOut.from_domain(payment)

    async def stats_overview(self, db: AsyncSession) -> PaymentStatsResponse:
        stats = await self._repo.stats_overview(db)
        return PaymentStatsResponse.from_domain(stats)

    async def _register_purchase(self, db: AsyncSession, payment: Payment) -> bool:
        """Best-effort follow-up after completion. Returns False if it did not run to the end."""
        try:
            created = await self._catalog.register_purchase(
                db, payment.user_id, payment.app_id, payment.id, payment.amount
            )
            await db.commit()
        except Exception:
            logger.exception(
                "Purchase registration failed for payment %s (user %s, app %s); "
                "left for reconciliation",
                payment.id, payment.user_id, payment.app_id,
            )
            await db.rollback()
            return False
        if not created:
            logger.info("Purchase for payment %s already registered", payment.id)
        return True
