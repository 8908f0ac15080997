"""PaymentRepository - raw text() SQL over payments.

Status transitions are compare-and-swaps on the current status, so two
concurrent verifications of one order cannot both complete it. The partial
unique index ``uq_payments_completed_user_app`` rejects a second completed
payment for the same (user, app) with an IntegrityError.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.am_payment.domain.models import MonthlyRevenue, Payment, PaymentStats

_COLUMNS = """
    p.id, p.user_id, p.app_id, p.auction_id, p.amount, p.currency,
    p.gateway_order_id, p.gateway_payment_id, p.gateway_signature,
    p.status, p.payment_method, p.description, p.metadata,
    p.refund_amount, p.refund_reason, p.refunded_at,
    p.completed_at, p.failure_reason, p.is_active,
    p.created_at, p.updated_at, a.title AS app_title
"""

_INSERT_SQL = text("""
    INSERT INTO payments (user_id, app_id, auction_id, amount, currency,
                          gateway_order_id, description, metadata)
    VALUES (:user_id, :app_id, :auction_id, :amount, :currency,
            :gateway_order_id, :description, CAST(:metadata AS JSONB))
    RETURNING id, created_at, updated_at
""")

_GET_BY_ID_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM payments p LEFT JOIN apps a ON a.id = p.app_id
    WHERE p.id = :payment_id
""")

_GET_BY_ORDER_ID_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM payments p LEFT JOIN apps a ON a.id = p.app_id
    WHERE p.gateway_order_id = :order_id
""")

_HAS_COMPLETED_SQL = text("""
    SELECT 1 FROM payments
    WHERE user_id = :user_id AND app_id = :app_id AND status = 'completed'
    LIMIT 1
""")

_SAVE_COMPLETED_SQL = text("""
    UPDATE payments
    SET status = 'completed', gateway_payment_id = :gateway_payment_id,
        gateway_signature = :gateway_signature, completed_at = :completed_at,
        updated_at = NOW()
    WHERE id = :payment_id AND status = 'pending'
    RETURNING updated_at
""")

_SAVE_FAILED_SQL = text("""
    UPDATE payments
    SET status = 'failed', failure_reason = :failure_reason, updated_at = NOW()
    WHERE id = :payment_id AND status = 'pending'
    RETURNING updated_at
""")

_SAVE_REFUNDED_SQL = text("""
    UPDATE payments
    SET status = 'refunded', refund_amount = :refund_amount,
        refund_reason = :refund_reason, refunded_at = :refunded_at,
        updated_at = NOW()
    WHERE id = :payment_id AND status = 'completed'
    RETURNING updated_at
""")

_LIST_BY_USER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM payments p LEFT JOIN apps a ON a.id = p.app_id
    WHERE p.user_id = :user_id AND p.is_active = TRUE
        AND (CAST(:status AS TEXT) IS NULL OR p.status = CAST(:status AS TEXT))
        AND (
            CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
            OR p.created_at < CAST(:cursor_ts AS TIMESTAMPTZ)
            OR (
                p.created_at = CAST(:cursor_ts AS TIMESTAMPTZ)
                AND p.id < CAST(:cursor_id AS TEXT)
            )
        )
    ORDER BY p.created_at DESC, p.id DESC
    LIMIT :limit
""")

_TOTALS_SQL = text("""
    SELECT COUNT(*) AS total_payments, COALESCE(SUM(amount), 0) AS total_revenue
    FROM payments
    WHERE status = 'completed'
""")

_MONTHLY_SQL = text("""
    SELECT EXTRACT(YEAR FROM completed_at)::INT AS year,
           EXTRACT(MONTH FROM completed_at)::INT AS month,
           SUM(amount) AS revenue,
           COUNT(*) AS payment_count
    FROM payments
    WHERE status = 'completed' AND completed_at IS NOT NULL
    GROUP BY 1, 2
    ORDER BY 1 DESC, 2 DESC
    LIMIT 12
""")

_RECENT_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM payments p LEFT JOIN apps a ON a.id = p.app_id
    WHERE p.status = 'completed'
    ORDER BY p.completed_at DESC NULLS LAST
    LIMIT 10
""")


def _row_to_payment(row: Any) -> Payment:
    metadata = row.metadata
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    return Payment(
        id=row.id,
        user_id=row.user_id,
        app_id=row.app_id,
        auction_id=row.auction_id,
        amount=row.amount,
        currency=row.currency,
        gateway_order_id=row.gateway_order_id,
        gateway_payment_id=row.gateway_payment_id,
        gateway_signature=row.gateway_signature,
        status=row.status,
        payment_method=row.payment_method,
        description=row.description,
        metadata=metadata or {},
        refund_amount=row.refund_amount,
        refund_reason=row.refund_reason,
        refunded_at=row.refunded_at,
        completed_at=row.completed_at,
        failure_reason=row.failure_reason,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
        app_title=row.app_title,
    )


class PaymentRepository:
    async def insert(self, db: AsyncSession, payment: Payment) -> Payment:
        result = await db.execute(
            _INSERT_SQL,
            {
                "user_id": payment.user_id,
                "app_id": payment.app_id,
                "auction_id": payment.auction_id,
                "amount": payment.amount,
                "currency": payment.currency,
                "gateway_order_id": payment.gateway_order_id,
                "description": payment.description,
                "metadata": json.dumps(payment.metadata),
            },
        )
        row = result.fetchone()
        payment.id = row.id
        payment.created_at = row.created_at
        payment.updated_at = row.updated_at
        return payment

    async def get_by_id(self, db: AsyncSession, payment_id: str) -> Payment | None:
        row = (await db.execute(_GET_BY_ID_SQL, {"payment_id": payment_id})).fetchone()
        return _row_to_payment(row) if row else None

    async def get_by_order_id(self, db: AsyncSession, order_id: str) -> Payment | None:
        row = (await db.execute(_GET_BY_ORDER_ID_SQL, {"order_id": order_id})).fetchone()
        return _row_to_payment(row) if row else None

    async def has_completed(self, db: AsyncSession, user_id: str, app_id: str) -> bool:
        result = await db.execute(_HAS_COMPLETED_SQL, {"user_id": user_id, "app_id": app_id})
        return result.fetchone() is not None

    async def save_completed(self, db: AsyncSession, payment: Payment) -> bool:
        return await self._cas(
            db,
            _SAVE_COMPLETED_SQL,
            payment,
            {
                "gateway_payment_id": payment.gateway_payment_id,
                "gateway_signature": payment.gateway_signature,
                "completed_at": payment.completed_at,
            },
        )

    async def save_failed(self, db: AsyncSession, payment: Payment) -> bool:
        return await self._cas(
            db, _SAVE_FAILED_SQL, payment, {"failure_reason": payment.failure_reason}
        )

    async def save_refunded(self, db: AsyncSession, payment: Payment) -> bool:
        return await self._cas(
            db,
            _SAVE_REFUNDED_SQL,
            payment,
            {
                "refund_amount": payment.refund_amount,
                "refund_reason": payment.refund_reason,
                "refunded_at": payment.refunded_at,
            },
        )

    async def list_by_user(
        self,
        db: AsyncSession,
        user_id: str,
        status: str | None,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Payment]:
        result = await db.execute(
            _LIST_BY_USER_SQL,
            {
                "user_id": user_id,
                "status": status,
                "cursor_ts": cursor_ts,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_payment(row) for row in result.fetchall()]

    async def stats_overview(self, db: AsyncSession) -> PaymentStats:
        totals = (await db.execute(_TOTALS_SQL)).fetchone()
        monthly = (await db.execute(_MONTHLY_SQL)).fetchall()
        recent = (await db.execute(_RECENT_SQL)).fetchall()
        return PaymentStats(
            total_payments=totals.total_payments if totals else 0,
            total_revenue=Decimal(totals.total_revenue) if totals else Decimal("0"),
            monthly_revenue=[
                MonthlyRevenue(year=r.year, month=r.month, revenue=r.revenue, count=r.payment_count)
                for r in monthly
            ],
            recent_payments=[_row_to_payment(r) for r in recent],
        )

    async def _cas(
        self, db: AsyncSession, sql: Any, payment: Payment, params: dict[str, Any]
    ) -> bool:
        result = await db.execute(sql, {"payment_id": payment.id, **params})
        row = result.fetchone()
        if row is None:
            return False
        payment.updated_at = row.updated_at
        return True
