"""CatalogService - apps, the purchase registry, reviews and wishlists.

Also serves as the catalog collaborator of the payment lifecycle:
``find_by_id``, ``increment_downloads`` and ``register_purchase``.
Mutating methods commit on success and rollback then re-raise on failure.
"""

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.am_catalog.application.schemas import (
    AppListResponse,
    AppOut,
    CreateAppRequest,
    PurchaseListResponse,
    PurchaseOut,
    PurchaseStatusResponse,
    ReviewOut,
    ReviewRequest,
    ReviewSubmitResponse,
    UpdateAppRequest,
    WishlistToggleResponse,
)
from src.am_catalog.domain.models import App
from src.am_catalog.domain.repository import (
    AppRepositoryProtocol,
    PurchaseRepositoryProtocol,
    ReviewRepositoryProtocol,
    WishlistRepositoryProtocol,
)
from src.am_catalog.infrastructure.persistence import (
    AppRepository,
    PurchaseRepository,
    ReviewRepository,
    WishlistRepository,
)
from src.am_common.cursor import cursor_decode, cursor_encode
from src.am_common.datetime_utils import utc_now
from src.am_common.enums import AppStatus
from src.am_common.errors import AppInUseError, AppNotFoundError, PurchaseRequiredError
from src.am_gateway.auth.permissions import Actor, ensure_owner_or_admin

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(
        self,
        app_repo: AppRepositoryProtocol | None = None,
        purchase_repo: PurchaseRepositoryProtocol | None = None,
        review_repo: ReviewRepositoryProtocol | None = None,
        wishlist_repo: WishlistRepositoryProtocol | None = None,
    ) -> None:
        self._apps: AppRepositoryProtocol = app_repo or AppRepository()
        self._purchases: PurchaseRepositoryProtocol = purchase_repo or PurchaseRepository()
        self._reviews: ReviewRepositoryProtocol = review_repo or ReviewRepository()
        self._wishlist: WishlistRepositoryProtocol = wishlist_repo or WishlistRepository()

    # -- collaborator interface ------------------------------------------------

    async def find_by_id(self, db: AsyncSession, app_id: str) -> App | None:
        return await self._apps.find_by_id(db, app_id)

    async def increment_downloads(self, db: AsyncSession, app_id: str) -> int | None:
        return await self._apps.increment_downloads(db, app_id)

    async def register_purchase(
        self,
        db: AsyncSession,
        user_id: str,
        app_id: str,
        payment_id: str | None,
        price: Decimal,
    ) -> bool:
        """Record (user, app) ownership if absent and count the download.

        Every verified payment is a download, including a repurchase that
        finds the row kept after a refund. Returns True when the row is new.
        Does not commit; the caller owns the transaction.
        """
        created = await self._purchases.register(db, user_id, app_id, payment_id, price)
        await self._apps.increment_downloads(db, app_id)
        return created

    # -- apps --------------------------------------------------------------------

    async def list_apps(
        self,
        db: AsyncSession,
        category: str | None,
        search: str | None,
        cursor: str | None,
        limit: int,
    ) -> AppListResponse:
        cursor_ts, cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without COUNT(*)
        apps = await self._apps.list_apps(
            db, AppStatus.APPROVED.value, category, search, cursor_ts, cursor_id, limit + 1
        )
        has_more = len(apps) > limit
        page = apps[:limit]
        next_cursor = cursor_encode(page[-1].created_at, page[-1].id) if has_more and page else None
        return AppListResponse(
            items=[AppOut.from_domain(a) for a in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def list_featured(self, db: AsyncSession, limit: int = 6) -> list[AppOut]:
        apps = await self._apps.list_featured(db, limit)
        return [AppOut.from_domain(a) for a in apps]

    async def get_app(self, db: AsyncSession, app_id: str) -> AppOut:
        app = await self._apps.find_by_id(db, app_id)
        if app is None:
            raise AppNotFoundError(app_id)
        return AppOut.from_domain(app)

    async def create_app(
        self, db: AsyncSession, actor: Actor, req: CreateAppRequest
    ) -> AppOut:
        now = utc_now()
        draft = App(
            id="",
            developer_id=actor.user_id,
            title=req.title,
            short_description=req.short_description,
            description=req.description,
            category=req.category.value,
            price=req.price,
            status=AppStatus.PENDING.value,
            downloads=0,
            is_featured=False,
            created_at=now,
            updated_at=now,
        )
        try:
            app = await self._apps.create(db, draft)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("App %s submitted for review by %s", app.id, actor.user_id)
        return AppOut.from_domain(app)

    async def set_app_status(self, db: AsyncSession, app_id: str, status: AppStatus) -> AppOut:
        try:
            app = await self._apps.set_status(db, app_id, status.value)
            if app is None:
                raise AppNotFoundError(app_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("App %s status -> %s", app_id, status.value)
        return AppOut.from_domain(app)

    async def set_featured(self, db: AsyncSession, app_id: str, featured: bool) -> AppOut:
        try:
            app = await self._apps.set_featured(db, app_id, featured)
            if app is None:
                raise AppNotFoundError(app_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return AppOut.from_domain(app)

    async def my_apps(self, db: AsyncSession, developer_id: str) -> list[AppOut]:
        """Every app the developer submitted, whatever its review status."""
        apps = await self._apps.list_by_developer(db, developer_id)
        return [AppOut.from_domain(a) for a in apps]

    async def update_app(
        self, db: AsyncSession, actor: Actor, app_id: str, req: UpdateAppRequest
    ) -> AppOut:
        changes = req.changes()
        try:
            app = await self._require_app(db, app_id)
            ensure_owner_or_admin(app.developer_id, actor)
            for key, value in changes.items():
                setattr(app, key, value)
            saved = await self._apps.save_fields(db, app)
            if saved is None:
                raise AppNotFoundError(app_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("App %s updated by %s: %s", app_id, actor.user_id, sorted(changes))
        return AppOut.from_domain(saved)

    async def delete_app(self, db: AsyncSession, actor: Actor, app_id: str) -> None:
        """Owner or admin. Refused once payments or purchases reference the app."""
        try:
            app = await self._require_app(db, app_id)
            ensure_owner_or_admin(app.developer_id, actor)
            if await self._apps.is_referenced(db, app_id):
                raise AppInUseError(app_id)
            try:
                deleted = await self._apps.delete(db, app_id)
            except IntegrityError as e:
                # A payment was created between the check and the delete.
                raise AppInUseError(app_id) from e
            if not deleted:
                raise AppNotFoundError(app_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("App %s deleted by %s", app_id, actor.user_id)

    async def _require_app(self, db: AsyncSession, app_id: str) -> App:
        app = await self._apps.find_by_id(db, app_id)
        if app is None:
            raise AppNotFoundError(app_id)
        return app

    # -- purchases ---------------------------------------------------------------

    async def reconcile_purchases(self, db: AsyncSession, user_id: str) -> list[str]:
        """Insert purchase rows missing for completed payments.

        Repairs the gap left when the follow-up after payment verification
        failed. Downloads are bumped once per recovered purchase.
        """
        try:
            app_ids = await self._purchases.reconcile_from_payments(db, user_id)
            for app_id in app_ids:
                await self._apps.increment_downloads(db, app_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if app_ids:
            logger.warning("Reconciled %d missing purchase(s) for user %s", len(app_ids), user_id)
        return app_ids

    async def list_purchases(self, db: AsyncSession, user_id: str) -> PurchaseListResponse:
        recovered = await self.reconcile_purchases(db, user_id)
        purchases = await self._purchases.list_by_user(db, user_id)
        return PurchaseListResponse(
            items=[PurchaseOut.from_domain(p) for p in purchases],
            reconciled=len(recovered),
        )

    async def purchase_status(
        self, db: AsyncSession, user_id: str, app_id: str
    ) -> PurchaseStatusResponse:
        # Also true for a completed payment whose purchase row is still missing.
        purchased = await self._purchases.has_purchased(db, user_id, app_id)
        return PurchaseStatusResponse(app_id=app_id, purchased=purchased)

    # -- reviews -----------------------------------------------------------------

    async def add_review(
        self, db: AsyncSession, actor: Actor, app_id: str, req: ReviewRequest
    ) -> ReviewSubmitResponse:
        """Create or overwrite the caller's review; only buyers of the app may review.

        The app's rating average and count are recomputed in the same
        transaction as the review write.
        """
        try:
            await self._require_app(db, app_id)
            if not await self._purchases.has_purchased(db, actor.user_id, app_id):
                raise PurchaseRequiredError()
            review = await self._reviews.upsert(db, app_id, actor.user_id, req.rating, req.comment)
            app = await self._apps.refresh_rating(db, app_id)
            if app is None:
                raise AppNotFoundError(app_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Review on app %s by %s: %d star(s), average now %s over %d",
            app_id, actor.user_id, req.rating, app.rating_average, app.rating_count,
        )
        return ReviewSubmitResponse(
            review=ReviewOut.from_domain(review),
            rating_average=app.rating_average,
            rating_count=app.rating_count,
        )

    async def list_reviews(self, db: AsyncSession, app_id: str, limit: int = 50) -> list[ReviewOut]:
        await self._require_app(db, app_id)
        reviews = await self._reviews.list_by_app(db, app_id, limit)
        return [ReviewOut.from_domain(r) for r in reviews]

    # -- wishlist ----------------------------------------------------------------

    async def toggle_wishlist(
        self, db: AsyncSession, actor: Actor, app_id: str
    ) -> WishlistToggleResponse:
        try:
            await self._require_app(db, app_id)
            in_wishlist = await self._wishlist.toggle(db, actor.user_id, app_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return WishlistToggleResponse(app_id=app_id, in_wishlist=in_wishlist)

    async def list_wishlist(self, db: AsyncSession, user_id: str) -> list[AppOut]:
        apps = await self._wishlist.list_apps(db, user_id)
        return [AppOut.from_domain(a) for a in apps]
