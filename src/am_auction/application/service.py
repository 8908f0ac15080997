"""AuctionService - loads the aggregate, runs the state machine, persists.

Each mutating method is one transaction: commit on success, rollback and
re-raise on any error. A lost version race raises
ConcurrentModificationError (409); the client may simply retry.
"""

import logging
from collections.abc import Awaitable
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.am_auction.application.schemas import (
    AuctionListResponse,
    AuctionOut,
    CreateAuctionRequest,
    MyBidItem,
    SubmitBidRequest,
    UpdateAuctionRequest,
)
from src.am_auction.domain import lifecycle
from src.am_auction.domain.models import Auction
from src.am_auction.domain.repository import AuctionRepositoryProtocol
from src.am_auction.infrastructure.persistence import AuctionRepository
from src.am_common.cursor import cursor_decode, cursor_encode
from src.am_common.datetime_utils import as_utc, utc_now
from src.am_common.errors import (
    AuctionNotFoundError,
    ConcurrentModificationError,
    ValidationFailedError,
)
from src.am_gateway.auth.permissions import Actor

logger = logging.getLogger(__name__)

FEATURED_LIMIT = 6


class AuctionService:
    def __init__(self, repo: AuctionRepositoryProtocol | None = None) -> None:
        self._repo: AuctionRepositoryProtocol = repo or AuctionRepository()

    # -- reads -------------------------------------------------------------------

    async def list_auctions(
        self,
        db: AsyncSession,
        status: str | None,
        platform: str | None,
        category: str | None,
        min_budget: Decimal | None,
        max_budget: Decimal | None,
        search: str | None,
        cursor: str | None,
        limit: int,
    ) -> AuctionListResponse:
        cursor_ts, cursor_id = cursor_decode(cursor)
        auctions = await self._repo.list_auctions(
            db, status, platform, category, min_budget, max_budget, search,
            cursor_ts, cursor_id, limit + 1,
        )
        has_more = len(auctions) > limit
        page = auctions[:limit]
        next_cursor = None
        if has_more and page and page[-1].created_at is not None:
            next_cursor = cursor_encode(page[-1].created_at, page[-1].id)
        now = utc_now()
        return AuctionListResponse(
            items=[AuctionOut.from_domain(a, now) for a in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def list_featured(self, db: AsyncSession) -> list[AuctionOut]:
        now = utc_now()
        auctions = await self._repo.list_featured(db, FEATURED_LIMIT)
        return [AuctionOut.from_domain(a, now) for a in auctions]

    async def get_auction(self, db: AsyncSession, auction_id: str) -> AuctionOut:
        """Read one auction; every read counts as a view."""
        try:
            views = await self._repo.increment_views(db, auction_id)
            if views is None:
                raise AuctionNotFoundError(auction_id)
            auction = await self._load(db, auction_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return AuctionOut.from_domain(auction)

    async def my_auctions(self, db: AsyncSession, buyer_id: str) -> list[AuctionOut]:
        now = utc_now()
        auctions = await self._repo.list_by_buyer(db, buyer_id)
        return [AuctionOut.from_domain(a, now) for a in auctions]

    async def my_bids(self, db: AsyncSession, developer_id: str) -> list[MyBidItem]:
        items: list[MyBidItem] = []
        for auction in await self._repo.list_by_bidder(db, developer_id):
            bid = auction.bid_by_developer(developer_id)
            if bid is not None:
                items.append(MyBidItem.from_domain(auction, bid))
        return items

    # -- writes ------------------------------------------------------------------

    async def create_auction(
        self, db: AsyncSession, actor: Actor, req: CreateAuctionRequest
    ) -> AuctionOut:
        now = utc_now()
        expires_at = (
            as_utc(req.expires_at)
            if req.expires_at is not None
            else now + timedelta(days=settings.AUCTION_DEFAULT_TTL_DAYS)
        )
        draft = Auction(
            id="",
            buyer_id=actor.user_id,
            title=req.title,
            description=req.description,
            platform=req.platform.value,
            category=req.category.value,
            budget_min=req.budget.min,
            budget_max=req.budget.max,
            deadline=as_utc(req.deadline),
            requirements=list(req.requirements),
            features=list(req.features),
            tags=list(req.tags),
            expires_at=expires_at,
        )
        try:
            auction = await self._repo.insert(db, draft)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Auction %s created by %s, expires %s", auction.id, actor.user_id, expires_at)
        return AuctionOut.from_domain(auction, now)

    async def update_auction(
        self, db: AsyncSession, actor: Actor, auction_id: str, req: UpdateAuctionRequest
    ) -> AuctionOut:
        changes = req.changes()
        try:
            auction = await self._load(db, auction_id)
            lifecycle.apply_update(auction, actor, changes)
            if auction.budget_min > auction.budget_max:
                raise ValidationFailedError.single("budget", "budget.min must not exceed budget.max")
            await self._save(self._repo.save_fields(db, auction), auction_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return AuctionOut.from_domain(auction)

    async def delete_auction(self, db: AsyncSession, actor: Actor, auction_id: str) -> None:
        try:
            auction = await self._load(db, auction_id)
            lifecycle.soft_delete(auction, actor)
            await self._save(self._repo.save_status(db, auction), auction_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Auction %s soft-deleted by %s", auction_id, actor.user_id)

    async def submit_bid(
        self, db: AsyncSession, bidder_id: str, auction_id: str, req: SubmitBidRequest
    ) -> AuctionOut:
        now = utc_now()
        try:
            auction = await self._load(db, auction_id)
            bid, created = lifecycle.submit_bid(
                auction, bidder_id, req.amount, req.proposal, req.timeline, now
            )
            await self._save(self._repo.save_bid(db, auction, bid), auction_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Bid %s %s on auction %s by %s (amount=%s)",
            bid.id, "placed" if created else "replaced", auction_id, bidder_id, req.amount,
        )
        return AuctionOut.from_domain(auction, now)

    async def accept_bid(
        self, db: AsyncSession, requester_id: str, auction_id: str, bid_id: str
    ) -> AuctionOut:
        try:
            auction = await self._load(db, auction_id)
            bid = lifecycle.accept_bid(auction, bid_id, requester_id)
            await self._save(self._repo.save_acceptance(db, auction, bid), auction_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Auction %s: bid %s accepted, developer %s", auction_id, bid_id, bid.developer_id
        )
        return AuctionOut.from_domain(auction)

    async def complete_auction(self, db: AsyncSession, actor: Actor, auction_id: str) -> AuctionOut:
        try:
            auction = await self._load(db, auction_id)
            lifecycle.complete(auction, actor)
            await self._save(self._repo.save_status(db, auction), auction_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Auction %s completed", auction_id)
        return AuctionOut.from_domain(auction)

    async def cancel_auction(self, db: AsyncSession, actor: Actor, auction_id: str) -> AuctionOut:
        try:
            auction = await self._load(db, auction_id)
            lifecycle.cancel(auction, actor)
            await self._save(self._repo.save_status(db, auction), auction_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Auction %s cancelled by %s", auction_id, actor.user_id)
        return AuctionOut.from_domain(auction)

    # -- helpers -----------------------------------------------------------------

    async def _load(self, db: AsyncSession, auction_id: str) -> Auction:
        auction = await self._repo.get(db, auction_id)
        if auction is None:
            raise AuctionNotFoundError(auction_id)
        return auction

    @staticmethod
    async def _save(write: Awaitable[bool], auction_id: str) -> None:
        if not await write:
            logger.warning("Version conflict on auction %s", auction_id)
            raise ConcurrentModificationError(auction_id)
