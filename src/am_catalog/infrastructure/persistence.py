"""Catalog repositories - raw text() SQL over apps, purchases, reviews and wishlists.

asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.am_catalog.domain.models import App, Purchase, Review

_APP_COLUMNS = """
    id, developer_id, title, short_description, description, category,
    price, status, downloads, is_featured, created_at, updated_at,
    rating_average, rating_count
"""

_APP_COLUMNS_A = ", ".join(f"a.{c.strip()}" for c in _APP_COLUMNS.split(","))

_GET_APP_SQL = text(f"SELECT {_APP_COLUMNS} FROM apps WHERE id = :app_id")

_LIST_APPS_SQL = text(f"""
    SELECT {_APP_COLUMNS}
    FROM apps
    WHERE
        (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
        AND (CAST(:category AS TEXT) IS NULL OR category = CAST(:category AS TEXT))
        AND (
            CAST(:search AS TEXT) IS NULL
            OR title ILIKE '%' || CAST(:search AS TEXT) || '%'
            OR short_description ILIKE '%' || CAST(:search AS TEXT) || '%'
        )
        AND (
            CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
            OR created_at < CAST(:cursor_ts AS TIMESTAMPTZ)
            OR (
                created_at = CAST(:cursor_ts AS TIMESTAMPTZ)
                AND id < CAST(:cursor_id AS TEXT)
            )
        )
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_LIST_FEATURED_SQL = text(f"""
    SELECT {_APP_COLUMNS}
    FROM apps
    WHERE status = 'approved' AND is_featured = TRUE
    ORDER BY downloads DESC, created_at DESC
    LIMIT :limit
""")

_INSERT_APP_SQL = text(f"""
    INSERT INTO apps (developer_id, title, short_description, description,
                      category, price, status)
    VALUES (:developer_id, :title, :short_description, :description,
            :category, :price, :status)
    RETURNING {_APP_COLUMNS}
""")

_INCREMENT_DOWNLOADS_SQL = text("""
    UPDATE apps SET downloads = downloads + 1, updated_at = NOW()
    WHERE id = :app_id
    RETURNING downloads
""")

_SET_STATUS_SQL = text(f"""
    UPDATE apps SET status = :status, updated_at = NOW()
    WHERE id = :app_id
    RETURNING {_APP_COLUMNS}
""")

_SET_FEATURED_SQL = text(f"""
    UPDATE apps SET is_featured = :featured, updated_at = NOW()
    WHERE id = :app_id
    RETURNING {_APP_COLUMNS}
""")

_LIST_BY_DEVELOPER_SQL = text(f"""
    SELECT {_APP_COLUMNS}
    FROM apps
    WHERE developer_id = :developer_id
    ORDER BY created_at DESC, id DESC
""")

# Owner-editable fields only; developer_id and status are never written here.
_SAVE_FIELDS_SQL = text(f"""
    UPDATE apps SET
        title = :title,
        short_description = :short_description,
        description = :description,
        category = :category,
        price = :price,
        updated_at = NOW()
    WHERE id = :app_id
    RETURNING {_APP_COLUMNS}
""")

_APP_REFERENCED_SQL = text("""
    SELECT
        EXISTS (SELECT 1 FROM payments WHERE app_id = :app_id)
        OR EXISTS (SELECT 1 FROM purchases WHERE app_id = :app_id) AS referenced
""")

_DELETE_APP_SQL = text("DELETE FROM apps WHERE id = :app_id RETURNING id")

# Recomputed from app_reviews inside the review's transaction.
_REFRESH_RATING_SQL = text(f"""
    UPDATE apps SET
        rating_average = COALESCE(
            (SELECT ROUND(AVG(rating)::numeric, 2) FROM app_reviews WHERE app_id = :app_id), 0
        ),
        rating_count = (SELECT COUNT(*) FROM app_reviews WHERE app_id = :app_id),
        updated_at = NOW()
    WHERE id = :app_id
    RETURNING {_APP_COLUMNS}
""")

# Purchases: (user_id, app_id) is the primary key, so a repeated registration
# is a no-op and RETURNING yields no row.
_REGISTER_PURCHASE_SQL = text("""
    INSERT INTO purchases (user_id, app_id, payment_id, price)
    VALUES (:user_id, :app_id, :payment_id, :price)
    ON CONFLICT (user_id, app_id) DO NOTHING
    RETURNING app_id
""")

_RECONCILE_PURCHASES_SQL = text("""
    INSERT INTO purchases (user_id, app_id, payment_id, price, purchased_at)
    SELECT p.user_id, p.app_id, p.id, p.amount, COALESCE(p.completed_at, p.updated_at)
    FROM payments p
    WHERE p.user_id = :user_id
      AND p.status = 'completed'
      AND p.is_active = TRUE
    ON CONFLICT (user_id, app_id) DO NOTHING
    RETURNING app_id
""")

_LIST_PURCHASES_SQL = text("""
    SELECT pu.user_id, pu.app_id, a.title AS app_title, pu.price,
           pu.payment_id, pu.purchased_at
    FROM purchases pu
    JOIN apps a ON a.id = pu.app_id
    WHERE pu.user_id = :user_id
    ORDER BY pu.purchased_at DESC
""")

# Ownership also holds for a completed payment whose purchase row is not
# written yet (failed follow-up after verify, before reconciliation).
_HAS_PURCHASED_SQL = text("""
    SELECT
        EXISTS (
            SELECT 1 FROM purchases WHERE user_id = :user_id AND app_id = :app_id
        )
        OR EXISTS (
            SELECT 1 FROM payments
            WHERE user_id = :user_id AND app_id = :app_id
              AND status = 'completed' AND is_active = TRUE
        ) AS purchased
""")

_UPSERT_REVIEW_SQL = text("""
    INSERT INTO app_reviews (app_id, user_id, rating, comment)
    VALUES (:app_id, :user_id, :rating, :comment)
    ON CONFLICT (app_id, user_id) DO UPDATE
        SET rating = EXCLUDED.rating, comment = EXCLUDED.comment
    RETURNING app_id, user_id, rating, comment, created_at, updated_at
""")

_LIST_REVIEWS_SQL = text("""
    SELECT r.app_id, r.user_id, r.rating, r.comment, r.created_at, r.updated_at,
           u.username
    FROM app_reviews r
    LEFT JOIN users u ON u.id::text = r.user_id
    WHERE r.app_id = :app_id
    ORDER BY r.updated_at DESC
    LIMIT :limit
""")

_WISHLIST_REMOVE_SQL = text("""
    DELETE FROM wishlists WHERE user_id = :user_id AND app_id = :app_id
    RETURNING app_id
""")

_WISHLIST_ADD_SQL = text("""
    INSERT INTO wishlists (user_id, app_id)
    VALUES (:user_id, :app_id)
    ON CONFLICT (user_id, app_id) DO NOTHING
""")

_LIST_WISHLIST_SQL = text(f"""
    SELECT {_APP_COLUMNS_A}
    FROM wishlists w
    JOIN apps a ON a.id = w.app_id
    WHERE w.user_id = :user_id
    ORDER BY w.created_at DESC
""")


def _row_to_app(row: Any) -> App:
    return App(
        id=row.id,
        developer_id=row.developer_id,
        title=row.title,
        short_description=row.short_description,
        description=row.description,
        category=row.category,
        price=row.price,
        status=row.status,
        downloads=row.downloads,
        is_featured=row.is_featured,
        created_at=row.created_at,
        updated_at=row.updated_at,
        rating_average=row.rating_average,
        rating_count=row.rating_count,
    )


def _row_to_purchase(row: Any) -> Purchase:
    return Purchase(
        user_id=row.user_id,
        app_id=row.app_id,
        app_title=row.app_title,
        price=row.price,
        payment_id=row.payment_id,
        purchased_at=row.purchased_at,
    )


def _row_to_review(row: Any) -> Review:
    return Review(
        app_id=row.app_id,
        user_id=row.user_id,
        rating=row.rating,
        comment=row.comment,
        created_at=row.created_at,
        updated_at=row.updated_at,
        username=getattr(row, "username", None),
    )


class AppRepository:
    async def find_by_id(self, db: AsyncSession, app_id: str) -> App | None:
        row = (await db.execute(_GET_APP_SQL, {"app_id": app_id})).fetchone()
        return _row_to_app(row) if row else None

    async def list_apps(
        self,
        db: AsyncSession,
        status: str | None,
        category: str | None,
        search: str | None,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[App]:
        result = await db.execute(
            _LIST_APPS_SQL,
            {
                "status": status,
                "category": category,
                "search": search,
                "cursor_ts": cursor_ts,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_app(row) for row in result.fetchall()]

    async def list_featured(self, db: AsyncSession, limit: int) -> list[App]:
        result = await db.execute(_LIST_FEATURED_SQL, {"limit": limit})
        return [_row_to_app(row) for row in result.fetchall()]

    async def create(self, db: AsyncSession, app: App) -> App:
        result = await db.execute(
            _INSERT_APP_SQL,
            {
                "developer_id": app.developer_id,
                "title": app.title,
                "short_description": app.short_description,
                "description": app.description,
                "category": app.category,
                "price": app.price,
                "status": app.status,
            },
        )
        return _row_to_app(result.fetchone())

    async def increment_downloads(self, db: AsyncSession, app_id: str) -> int | None:
        """Atomic +1; returns the new count, or None if the app does not exist."""
        row = (await db.execute(_INCREMENT_DOWNLOADS_SQL, {"app_id": app_id})).fetchone()
        return row.downloads if row else None

    async def set_status(self, db: AsyncSession, app_id: str, status: str) -> App | None:
        row = (await db.execute(_SET_STATUS_SQL, {"app_id": app_id, "status": status})).fetchone()
        return _row_to_app(row) if row else None

    async def set_featured(self, db: AsyncSession, app_id: str, featured: bool) -> App | None:
        row = (
            await db.execute(_SET_FEATURED_SQL, {"app_id": app_id, "featured": featured})
        ).fetchone()
        return _row_to_app(row) if row else None

    async def list_by_developer(self, db: AsyncSession, developer_id: str) -> list[App]:
        result = await db.execute(_LIST_BY_DEVELOPER_SQL, {"developer_id": developer_id})
        return [_row_to_app(row) for row in result.fetchall()]

    async def save_fields(self, db: AsyncSession, app: App) -> App | None:
        row = (
            await db.execute(
                _SAVE_FIELDS_SQL,
                {
                    "app_id": app.id,
                    "title": app.title,
                    "short_description": app.short_description,
                    "description": app.description,
                    "category": app.category,
                    "price": app.price,
                },
            )
        ).fetchone()
        return _row_to_app(row) if row else None

    async def is_referenced(self, db: AsyncSession, app_id: str) -> bool:
        """True when payments or purchases point at the app."""
        result = await db.execute(_APP_REFERENCED_SQL, {"app_id": app_id})
        return bool(result.scalar())

    async def delete(self, db: AsyncSession, app_id: str) -> bool:
        """Hard delete; reviews and wishlist entries cascade."""
        row = (await db.execute(_DELETE_APP_SQL, {"app_id": app_id})).fetchone()
        return row is not None

    async def refresh_rating(self, db: AsyncSession, app_id: str) -> App | None:
        row = (await db.execute(_REFRESH_RATING_SQL, {"app_id": app_id})).fetchone()
        return _row_to_app(row) if row else None


class PurchaseRepository:
    async def register(
        self,
        db: AsyncSession,
        user_id: str,
        app_id: str,
        payment_id: str | None,
        price: Decimal,
    ) -> bool:
        """Insert the purchase row if absent. Returns True only when a row was created."""
        result = await db.execute(
            _REGISTER_PURCHASE_SQL,
            {"user_id": user_id, "app_id": app_id, "payment_id": payment_id, "price": price},
        )
        return result.fetchone() is not None

    async def reconcile_from_payments(self, db: AsyncSession, user_id: str) -> list[str]:
        """Backfill purchases for completed payments; returns the app ids inserted."""
        result = await db.execute(_RECONCILE_PURCHASES_SQL, {"user_id": user_id})
        return [row.app_id for row in result.fetchall()]

    async def list_by_user(self, db: AsyncSession, user_id: str) -> list[Purchase]:
        result = await db.execute(_LIST_PURCHASES_SQL, {"user_id": user_id})
        return [_row_to_purchase(row) for row in result.fetchall()]

    async def has_purchased(self, db: AsyncSession, user_id: str, app_id: str) -> bool:
        """Purchase row present, or a completed payment for the app."""
        result = await db.execute(_HAS_PURCHASED_SQL, {"user_id": user_id, "app_id": app_id})
        return bool(result.scalar())


class ReviewRepository:
    async def upsert(
        self, db: AsyncSession, app_id: str, user_id: str, rating: int, comment: str
    ) -> Review:
        """Insert or overwrite the caller's review of the app."""
        result = await db.execute(
            _UPSERT_REVIEW_SQL,
            {"app_id": app_id, "user_id": user_id, "rating": rating, "comment": comment},
        )
        return _row_to_review(result.fetchone())

    async def list_by_app(self, db: AsyncSession, app_id: str, limit: int) -> list[Review]:
        result = await db.execute(_LIST_REVIEWS_SQL, {"app_id": app_id, "limit": limit})
        return [_row_to_review(row) for row in result.fetchall()]


class WishlistRepository:
    async def toggle(self, db: AsyncSession, user_id: str, app_id: str) -> bool:
        """Remove the entry if present, otherwise add it. Returns the new membership."""
        params = {"user_id": user_id, "app_id": app_id}
        removed = (await db.execute(_WISHLIST_REMOVE_SQL, params)).fetchone()
        if removed is not None:
            return False
        await db.execute(_WISHLIST_ADD_SQL, params)
        return True

    async def list_apps(self, db: AsyncSession, user_id: str) -> list[App]:
        result = await db.execute(_LIST_WISHLIST_SQL, {"user_id": user_id})
        return [_row_to_app(row) for row in result.fetchall()]
