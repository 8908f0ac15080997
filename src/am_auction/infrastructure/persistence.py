"""AuctionRepository - raw text() SQL over auctions + auction_bids.

Concurrency: every state-changing write is guarded by
``WHERE id = :id AND version = :version`` and bumps the version. A write that
matches no row means another request won the race; callers turn that into
ConcurrentModificationError. View counting is a plain atomic increment and
does not touch the version.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.am_auction.domain.models import Auction, Bid

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_AUCTION_COLUMNS = """
    id, buyer_id, title, description, platform, category,
    budget_min, budget_max, deadline, requirements, features, tags,
    status, accepted_developer_id, is_active, views, expires_at, version,
    created_at, updated_at
"""

_BID_COLUMNS = """
    id, auction_id, developer_id, amount, proposal, timeline_days,
    status, submitted_at, created_at
"""

_INSERT_AUCTION_SQL = text(f"""
    INSERT INTO auctions (buyer_id, title, description, platform, category,
                          budget_min, budget_max, deadline,
                          requirements, features, tags, expires_at)
    VALUES (:buyer_id, :title, :description, :platform, :category,
            :budget_min, :budget_max, :deadline,
            :requirements, :features, :tags, :expires_at)
    RETURNING {_AUCTION_COLUMNS}
""")

_GET_AUCTION_SQL = text(f"""
    SELECT {_AUCTION_COLUMNS}
    FROM auctions
    WHERE id = :auction_id AND is_active = TRUE
""")

_GET_BIDS_SQL = text(f"""
    SELECT {_BID_COLUMNS}
    FROM auction_bids
    WHERE auction_id = ANY(:auction_ids)
    ORDER BY created_at, id
""")

_INCREMENT_VIEWS_SQL = text("""
    UPDATE auctions SET views = views + 1
    WHERE id = :auction_id AND is_active = TRUE
    RETURNING views
""")

_LIST_AUCTIONS_SQL = text(f"""
    SELECT {_AUCTION_COLUMNS}
    FROM auctions
    WHERE is_active = TRUE
        AND (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
        AND (CAST(:platform AS TEXT) IS NULL OR platform = CAST(:platform AS TEXT))
        AND (CAST(:category AS TEXT) IS NULL OR category = CAST(:category AS TEXT))
        AND (CAST(:min_budget AS NUMERIC) IS NULL OR budget_min >= CAST(:min_budget AS NUMERIC))
        AND (CAST(:max_budget AS NUMERIC) IS NULL OR budget_max <= CAST(:max_budget AS NUMERIC))
        AND (
            CAST(:search AS TEXT) IS NULL
            OR title ILIKE '%' || CAST(:search AS TEXT) || '%'
            OR description ILIKE '%' || CAST(:search AS TEXT) || '%'
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
    SELECT {_AUCTION_COLUMNS}
    FROM auctions
    WHERE is_active = TRUE AND status = 'open' AND expires_at > NOW()
    ORDER BY views DESC, created_at DESC
    LIMIT :limit
""")

_LIST_BY_BUYER_SQL = text(f"""
    SELECT {_AUCTION_COLUMNS}
    FROM auctions
    WHERE buyer_id = :buyer_id AND is_active = TRUE
    ORDER BY created_at DESC
""")

_LIST_BY_BIDDER_SQL = text(f"""
    SELECT {_AUCTION_COLUMNS}
    FROM auctions a
    WHERE a.is_active = TRUE
      AND EXISTS (
          SELECT 1 FROM auction_bids b
          WHERE b.auction_id = a.id AND b.developer_id = :developer_id
      )
    ORDER BY a.created_at DESC
""")

# --- compare-and-swap writes ------------------------------------------------

_CAS_TOUCH_OPEN_SQL = text("""
    UPDATE auctions SET version = version + 1, updated_at = NOW()
    WHERE id = :auction_id AND version = :version
      AND status = 'open' AND is_active = TRUE
    RETURNING version, updated_at
""")

_UPSERT_BID_SQL = text("""
    INSERT INTO auction_bids (id, auction_id, developer_id, amount, proposal,
                              timeline_days, status, submitted_at)
    VALUES (:id, :auction_id, :developer_id, :amount, :proposal,
            :timeline_days, 'pending', :submitted_at)
    ON CONFLICT (auction_id, developer_id) DO UPDATE
    SET amount = EXCLUDED.amount,
        proposal = EXCLUDED.proposal,
        timeline_days = EXCLUDED.timeline_days,
        submitted_at = EXCLUDED.submitted_at
""")

_CAS_ACCEPT_SQL = text("""
    UPDATE auctions
    SET status = 'in-progress', accepted_developer_id = :developer_id,
        version = version + 1, updated_at = NOW()
    WHERE id = :auction_id AND version = :version AND status = 'open'
    RETURNING version, updated_at
""")

_RESOLVE_BIDS_SQL = text("""
    UPDATE auction_bids
    SET status = CASE WHEN id = :bid_id THEN 'accepted' ELSE 'rejected' END
    WHERE auction_id = :auction_id
""")

_CAS_STATUS_SQL = text("""
    UPDATE auctions
    SET status = :status, is_active = :is_active,
        version = version + 1, updated_at = NOW()
    WHERE id = :auction_id AND version = :version
    RETURNING version, updated_at
""")

_CAS_FIELDS_SQL = text("""
    UPDATE auctions
    SET title = :title, description = :description,
        platform = :platform, category = :category,
        budget_min = :budget_min, budget_max = :budget_max,
        deadline = :deadline, requirements = :requirements,
        features = :features, tags = :tags, expires_at = :expires_at,
        version = version + 1, updated_at = NOW()
    WHERE id = :auction_id AND version = :version AND status = 'open'
    RETURNING version, updated_at
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_bid(row: Any) -> Bid:
    return Bid(
        id=row.id,
        auction_id=row.auction_id,
        developer_id=row.developer_id,
        amount=row.amount,
        proposal=row.proposal,
        timeline_days=row.timeline_days,
        status=row.status,
        submitted_at=row.submitted_at,
        created_at=row.created_at,
    )


def _row_to_auction(row: Any) -> Auction:
    return Auction(
        id=row.id,
        buyer_id=row.buyer_id,
        title=row.title,
        description=row.description,
        platform=row.platform,
        category=row.category,
        budget_min=row.budget_min,
        budget_max=row.budget_max,
        deadline=row.deadline,
        requirements=list(row.requirements or []),
        features=list(row.features or []),
        tags=list(row.tags or []),
        status=row.status,
        accepted_developer_id=row.accepted_developer_id,
        is_active=row.is_active,
        views=row.views,
        expires_at=row.expires_at,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AuctionRepository:
    async def insert(self, db: AsyncSession, auction: Auction) -> Auction:
        result = await db.execute(
            _INSERT_AUCTION_SQL,
            {
                "buyer_id": auction.buyer_id,
                "title": auction.title,
                "description": auction.description,
                "platform": auction.platform,
                "category": auction.category,
                "budget_min": auction.budget_min,
                "budget_max": auction.budget_max,
                "deadline": auction.deadline,
                "requirements": auction.requirements,
                "features": auction.features,
                "tags": auction.tags,
                "expires_at": auction.expires_at,
            },
        )
        return _row_to_auction(result.fetchone())

    async def get(self, db: AsyncSession, auction_id: str) -> Auction | None:
        row = (await db.execute(_GET_AUCTION_SQL, {"auction_id": auction_id})).fetchone()
        if row is None:
            return None
        auction = _row_to_auction(row)
        await self._attach_bids(db, [auction])
        return auction

    async def increment_views(self, db: AsyncSession, auction_id: str) -> int | None:
        row = (await db.execute(_INCREMENT_VIEWS_SQL, {"auction_id": auction_id})).fetchone()
        return row.views if row else None

    async def list_auctions(
        self,
        db: AsyncSession,
        status: str | None,
        platform: str | None,
        category: str | None,
        min_budget: Decimal | None,
        max_budget: Decimal | None,
        search: str | None,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Auction]:
        result = await db.execute(
            _LIST_AUCTIONS_SQL,
            {
                "status": status,
                "platform": platform,
                "category": category,
                "min_budget": min_budget,
                "max_budget": max_budget,
                "search": search,
                "cursor_ts": cursor_ts,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return await self._with_bids(db, result.fetchall())

    async def list_featured(self, db: AsyncSession, limit: int) -> list[Auction]:
        result = await db.execute(_LIST_FEATURED_SQL, {"limit": limit})
        return await self._with_bids(db, result.fetchall())

    async def list_by_buyer(self, db: AsyncSession, buyer_id: str) -> list[Auction]:
        result = await db.execute(_LIST_BY_BUYER_SQL, {"buyer_id": buyer_id})
        return await self._with_bids(db, result.fetchall())

    async def list_by_bidder(self, db: AsyncSession, developer_id: str) -> list[Auction]:
        result = await db.execute(_LIST_BY_BIDDER_SQL, {"developer_id": developer_id})
        return await self._with_bids(db, result.fetchall())

    async def save_bid(self, db: AsyncSession, auction: Auction, bid: Bid) -> bool:
        if not await self._cas(db, _CAS_TOUCH_OPEN_SQL, auction, {}):
            return False
        await db.execute(
            _UPSERT_BID_SQL,
            {
                "id": bid.id,
                "auction_id": auction.id,
                "developer_id": bid.developer_id,
                "amount": bid.amount,
                "proposal": bid.proposal,
                "timeline_days": bid.timeline_days,
                "submitted_at": bid.submitted_at,
            },
        )
        return True

    async def save_acceptance(self, db: AsyncSession, auction: Auction, bid: Bid) -> bool:
        if not await self._cas(db, _CAS_ACCEPT_SQL, auction, {"developer_id": bid.developer_id}):
            return False
        await db.execute(_RESOLVE_BIDS_SQL, {"auction_id": auction.id, "bid_id": bid.id})
        return True

    async def save_status(self, db: AsyncSession, auction: Auction) -> bool:
        return await self._cas(
            db,
            _CAS_STATUS_SQL,
            auction,
            {"status": auction.status, "is_active": auction.is_active},
        )

    async def save_fields(self, db: AsyncSession, auction: Auction) -> bool:
        return await self._cas(
            db,
            _CAS_FIELDS_SQL,
            auction,
            {
                "title": auction.title,
                "description": auction.description,
                "platform": auction.platform,
                "category": auction.category,
                "budget_min": auction.budget_min,
                "budget_max": auction.budget_max,
                "deadline": auction.deadline,
                "requirements": auction.requirements,
                "features": auction.features,
                "tags": auction.tags,
                "expires_at": auction.expires_at,
            },
        )

    # -- helpers -----------------------------------------------------------------

    async def _cas(
        self, db: AsyncSession, sql: Any, auction: Auction, params: dict[str, Any]
    ) -> bool:
        result = await db.execute(
            sql, {"auction_id": auction.id, "version": auction.version, **params}
        )
        row = result.fetchone()
        if row is None:
            return False
        auction.version = row.version
        auction.updated_at = row.updated_at
        return True

    async def _with_bids(self, db: AsyncSession, rows: list[Any]) -> list[Auction]:
        auctions = [_row_to_auction(row) for row in rows]
        await self._attach_bids(db, auctions)
        return auctions

    async def _attach_bids(self, db: AsyncSession, auctions: list[Auction]) -> None:
        if not auctions:
            return
        result = await db.execute(_GET_BIDS_SQL, {"auction_ids": [a.id for a in auctions]})
        by_auction: dict[str, list[Bid]] = defaultdict(list)
        for row in result.fetchall():
            by_auction[row.auction_id].append(_row_to_bid(row))
        for auction in auctions:
            auction.bids = by_auction.get(auction.id, [])
