"""Repository Protocols - dependency inversion for testability.

``save_*`` methods are status compare-and-swaps: False means the row was
no longer in the expected status.
"""

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.am_catalog.domain.models import App
from src.am_payment.domain.models import Payment, PaymentStats


class PaymentRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, payment: Payment) -> Payment: ...

    async def get_by_id(self, db: AsyncSession, payment_id: str) -> Payment | None: ...

    async def get_by_order_id(self, db: AsyncSession, order_id: str) -> Payment | None: ...

    async def has_completed(self, db: AsyncSession, user_id: str, app_id: str) -> bool: ...

    async def save_completed(self, db: AsyncSession, payment: Payment) -> bool: ...

    async def save_failed(self, db: AsyncSession, payment: Payment) -> bool: ...

    async def save_refunded(self, db: AsyncSession, payment: Payment) -> bool: ...

    async def list_by_user(
        self,
        db: AsyncSession,
        user_id: str,
        status: str | None,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Payment]: ...

    async def stats_overview(self, db: AsyncSession) -> PaymentStats: ...


class AppCatalogProtocol(Protocol):
    """The slice of the catalog a payment needs."""

    async def find_by_id(self, db: AsyncSession, app_id: str) -> App | None: ...

    async def register_purchase(
        self,
        db: AsyncSession,
        user_id: str,
        app_id: str,
        payment_id: str | None,
        price: Decimal,
    ) -> bool: ...
