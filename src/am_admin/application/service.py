# src/am_admin/application/service.py
"""Admin application service."""
import logging
from typing import Any

from sqlalchemy import or_, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.am_catalog.application.schemas import AppOut
from src.am_catalog.application.service import CatalogService
from src.am_common.enums import AppStatus
from src.am_common.errors import AppNotFoundError, ValidationFailedError
from src.am_gateway.user.db_models import UserModel
from src.am_gateway.user.schemas import UserInfo
from src.am_gateway.user.service import UserService

logger = logging.getLogger(__name__)

_USER_COUNT_SQL = text("SELECT COUNT(*) FROM users")
_APP_STATUS_COUNTS_SQL = text("SELECT status, COUNT(*) AS n FROM apps GROUP BY status")
_AUCTION_STATUS_COUNTS_SQL = text("""
    SELECT status, COUNT(*) AS n FROM auctions WHERE is_active = TRUE GROUP BY status
""")
_PAYMENT_TOTALS_SQL = text("""
    SELECT COUNT(*) AS completed, COALESCE(SUM(amount), 0) AS revenue
    FROM payments WHERE status = 'completed'
""")
_CATEGORY_STATS_SQL = text("""
    SELECT category, COUNT(*) AS n FROM apps
    WHERE status = 'approved'
    GROUP BY category
    ORDER BY n DESC
""")
_RECENT_USERS_SQL = text("""
    SELECT id, username, email, created_at FROM users ORDER BY created_at DESC LIMIT 5
""")
_RECENT_APPS_SQL = text("""
    SELECT id, title, status, developer_id, created_at FROM apps ORDER BY created_at DESC LIMIT 5
""")


class AdminService:
    def __init__(
        self,
        users: UserService | None = None,
        catalog: CatalogService | None = None,
    ) -> None:
        self._users = users or UserService()
        self._catalog = catalog or CatalogService()

    async def list_users(
        self,
        db: AsyncSession,
        search: str | None,
        role: str | None,
        is_active: bool | None,
        limit: int,
    ) -> list[UserInfo]:
        stmt = select(UserModel).order_by(UserModel.created_at.desc()).limit(limit)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    UserModel.username.ilike(pattern),
                    UserModel.email.ilike(pattern),
                    UserModel.first_name.ilike(pattern),
                    UserModel.last_name.ilike(pattern),
                )
            )
        if role:
            stmt = stmt.where(UserModel.role == role)
        if is_active is not None:
            stmt = stmt.where(UserModel.is_active == is_active)
        result = await db.execute(stmt)
        return [UserInfo.from_model(u) for u in result.scalars().all()]

    async def update_user(
        self,
        db: AsyncSession,
        admin_id: str,
        user_id: str,
        role: str | None,
        is_active: bool | None,
    ) -> UserInfo:
        try:
            user = await self._users.get_user(db, user_id)
            if str(user.id) == admin_id and is_active is False:
                raise ValidationFailedError.single("is_active", "Cannot deactivate your own account")
            if role is not None:
                user.role = role
            if is_active is not None:
                user.is_active = is_active
            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Admin %s updated user %s (role=%s, is_active=%s)", admin_id, user_id, role, is_active)
        return UserInfo.from_model(user)

    async def set_app_status(self, db: AsyncSession, app_id: str, status: AppStatus) -> AppOut:
        return await self._catalog.set_app_status(db, app_id, status)

    async def toggle_featured(self, db: AsyncSession, app_id: str) -> AppOut:
        app = await self._catalog.find_by_id(db, app_id)
        if app is None:
            raise AppNotFoundError(app_id)
        return await self._catalog.set_featured(db, app_id, not app.is_featured)

    async def dashboard(self, db: AsyncSession) -> dict[str, Any]:
        total_users = (await db.execute(_USER_COUNT_SQL)).scalar_one()
        app_counts = {r.status: r.n for r in (await db.execute(_APP_STATUS_COUNTS_SQL)).fetchall()}
        auction_counts = {
            r.status: r.n for r in (await db.execute(_AUCTION_STATUS_COUNTS_SQL)).fetchall()
        }
        payments = (await db.execute(_PAYMENT_TOTALS_SQL)).fetchone()
        categories = (await db.execute(_CATEGORY_STATS_SQL)).fetchall()
        recent_users = (await db.execute(_RECENT_USERS_SQL)).fetchall()
        recent_apps = (await db.execute(_RECENT_APPS_SQL)).fetchall()
        return {
            "stats": {
                "total_users": total_users,
                "total_apps": sum(app_counts.values()),
                "pending_apps": app_counts.get(AppStatus.PENDING.value, 0),
                "approved_apps": app_counts.get(AppStatus.APPROVED.value, 0),
                "rejected_apps": app_counts.get(AppStatus.REJECTED.value, 0),
                "auctions_by_status": auction_counts,
                "completed_payments": payments.completed if payments else 0,
                "total_revenue": str(payments.revenue) if payments else "0",
            },
            "recent_activity": {
                "users": [
                    {
                        "id": str(r.id),
                        "username": r.username,
                        "email": r.email,
                        "created_at": r.created_at.isoformat(),
                    }
                    for r in recent_users
                ],
                "apps": [
                    {
                        "id": r.id,
                        "title": r.title,
                        "status": r.status,
                        "developer_id": r.developer_id,
                        "created_at": r.created_at.isoformat(),
                    }
                    for r in recent_apps
                ],
            },
            "category_stats": [{"category": r.category, "count": r.n} for r in categories],
        }
