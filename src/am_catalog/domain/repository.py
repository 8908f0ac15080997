"""Repository Protocols - dependency inversion for testability.

Unit tests inject mocks that conform to these Protocols.
"""

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.am_catalog.domain.models import App, Purchase, Review


class AppRepositoryProtocol(Protocol):
    async def find_by_id(self, db: AsyncSession, app_id: str) -> App | None: ...

    async def list_apps(
        self,
        db: AsyncSession,
        status: str | None,
        category: str | None,
        search: str | None,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[App]: ...

    async def list_featured(self, db: AsyncSession, limit: int) -> list[App]: ...

    async def create(self, db: AsyncSession, app: App) -> App: ...

    async def increment_downloads(self, db: AsyncSession, app_id: str) -> int | None: ...

    async def set_status(self, db: AsyncSession, app_id: str, status: str) -> App | None: ...

    async def set_featured(self, db: AsyncSession, app_id: str, featured: bool) -> App | None: ...

    async def list_by_developer(self, db: AsyncSession, developer_id: str) -> list[App]: ...

    async def save_fields(self, db: AsyncSession, app: App) -> App | None: ...

    async def is_referenced(self, db: AsyncSession, app_id: str) -> bool: ...

    async def delete(self, db: AsyncSession, app_id: str) -> bool: ...

    async def refresh_rating(self, db: AsyncSession, app_id: str) -> App | None: ...


class PurchaseRepositoryProtocol(Protocol):
    async def register(
        self,
        db: AsyncSession,
        user_id: str,
        app_id: str,
        payment_id: str | None,
        price: Decimal,
    ) -> bool: ...

    async def reconcile_from_payments(self, db: AsyncSession, user_id: str) -> list[str]: ...

    async def list_by_user(self, db: AsyncSession, user_id: str) -> list[Purchase]: ...

    async def has_purchased(self, db: AsyncSession, user_id: str, app_id: str) -> bool: ...


class ReviewRepositoryProtocol(Protocol):
    async def upsert(
        self, db: AsyncSession, app_id: str, user_id: str, rating: int, comment: str
    ) -> Review: ...

    async def list_by_app(self, db: AsyncSession, app_id: str, limit: int) -> list[Review]: ...


class WishlistRepositoryProtocol(Protocol):
    async def toggle(self, db: AsyncSession, user_id: str, app_id: str) -> bool: ...

    async def list_apps(self, db: AsyncSession, user_id: str) -> list[App]: ...
