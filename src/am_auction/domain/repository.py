"""Repository Protocol for the auction aggregate.

Every ``save_*`` method is a compare-and-swap on ``auctions.version``: it
returns False when the row moved on since the auction was loaded.
"""

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.am_auction.domain.models import Auction, Bid


class AuctionRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, auction: Auction) -> Auction: ...

    async def get(self, db: AsyncSession, auction_id: str) -> Auction | None: ...

    async def increment_views(self, db: AsyncSession, auction_id: str) -> int | None: ...

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
    ) -> list[Auction]: ...

    async def list_featured(self, db: AsyncSession, limit: int) -> list[Auction]: ...

    async def list_by_buyer(self, db: AsyncSession, buyer_id: str) -> list[Auction]: ...

    async def list_by_bidder(self, db: AsyncSession, developer_id: str) -> list[Auction]: ...

    async def save_bid(self, db: AsyncSession, auction: Auction, bid: Bid) -> bool: ...

    async def save_acceptance(self, db: AsyncSession, auction: Auction, bid: Bid) -> bool: ...

    async def save_status(self, db: AsyncSession, auction: Auction) -> bool: ...

    async def save_fields(self, db: AsyncSession, auction: Auction) -> bool: ...
