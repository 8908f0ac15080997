"""Domain models for am_auction - pure dataclasses, no SQLAlchemy dependency.

An Auction owns its bids; they are loaded and persisted together.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from src.am_common.enums import AuctionStatus, BidStatus


@dataclass
class Bid:
    id: str
    auction_id: str
    developer_id: str
    amount: Decimal
    proposal: str
    timeline_days: int
    status: str = BidStatus.PENDING.value
    submitted_at: datetime | None = None
    created_at: datetime | None = None


@dataclass
class Auction:
    id: str
    buyer_id: str
    title: str
    description: str
    platform: str
    category: str
    budget_min: Decimal
    budget_max: Decimal
    deadline: datetime
    requirements: list[str]
    features: list[str]
    tags: list[str]
    expires_at: datetime
    status: str = AuctionStatus.OPEN.value
    accepted_developer_id: str | None = None
    is_active: bool = True
    views: int = 0
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    bids: list[Bid] = field(default_factory=list)

    def find_bid(self, bid_id: str) -> Bid | None:
        return next((b for b in self.bids if b.id == bid_id), None)

    def bid_by_developer(self, developer_id: str) -> Bid | None:
        return next((b for b in self.bids if b.developer_id == developer_id), None)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_open(self, now: datetime) -> bool:
        """Open for bidding: active, status open, not yet expired."""
        return (
            self.is_active
            and self.status == AuctionStatus.OPEN.value
            and not self.is_expired(now)
        )

    def time_remaining_seconds(self, now: datetime) -> int:
        if self.status != AuctionStatus.OPEN.value:
            return 0
        return max(0, int((self.expires_at - now).total_seconds()))
