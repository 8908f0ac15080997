"""Pydantic schemas for am_auction.

Request bodies accept both snake_case and the camelCase names used by the
web client (``expiresAt``); responses are snake_case.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

from src.am_auction.domain.models import Auction, Bid
from src.am_common.datetime_utils import as_utc, utc_now
from src.am_common.enums import AuctionCategory, Platform

Requirement = Annotated[str, StringConstraints(strip_whitespace=True, min_length=5, max_length=200)]
Tag = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=20)]
Money = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]


class BudgetIn(BaseModel):
    min: Money
    max: Money

    @model_validator(mode="after")
    def min_not_above_max(self) -> "BudgetIn":
        if self.min > self.max:
            raise ValueError("budget.min must not exceed budget.max")
        return self


class CreateAuctionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=20, max_length=2000)
    platform: Platform
    category: AuctionCategory
    budget: BudgetIn
    deadline: datetime
    requirements: list[Requirement] = Field(..., min_length=1)
    features: list[Requirement] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)
    expires_at: datetime | None = Field(None, alias="expiresAt")


class UpdateAuctionRequest(BaseModel):
    """Partial update; omitted fields keep their current value."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = Field(None, min_length=5, max_length=100)
    description: str | None = Field(None, min_length=20, max_length=2000)
    platform: Platform | None = None
    category: AuctionCategory | None = None
    budget: BudgetIn | None = None
    deadline: datetime | None = None
    requirements: list[Requirement] | None = Field(None, min_length=1)
    features: list[Requirement] | None = None
    tags: list[Tag] | None = None
    expires_at: datetime | None = Field(None, alias="expiresAt")

    def changes(self) -> dict[str, object]:
        """Set fields mapped onto Auction attribute names."""
        data = self.model_dump(exclude_unset=True, exclude_none=True, exclude={"budget"})
        for key in ("platform", "category"):
            if key in data:
                data[key] = data[key].value
        for key in ("deadline", "expires_at"):
            if key in data:
                data[key] = as_utc(data[key])
        if self.budget is not None:
            data["budget_min"] = self.budget.min
            data["budget_max"] = self.budget.max
        return data


class SubmitBidRequest(BaseModel):
    amount: Money
    proposal: str = Field(..., min_length=50, max_length=2000)
    timeline: int = Field(..., ge=1, le=365, description="Delivery time in days")


class BudgetOut(BaseModel):
    min: Decimal
    max: Decimal


class BidOut(BaseModel):
    id: str
    developer_id: str
    amount: Decimal
    proposal: str
    timeline_days: int
    status: str
    submitted_at: datetime | None

    @classmethod
    def from_domain(cls, bid: Bid) -> "BidOut":
        return cls(
            id=bid.id,
            developer_id=bid.developer_id,
            amount=bid.amount,
            proposal=bid.proposal,
            timeline_days=bid.timeline_days,
            status=bid.status,
            submitted_at=bid.submitted_at,
        )


class AuctionOut(BaseModel):
    id: str
    buyer_id: str
    title: str
    description: str
    platform: str
    category: str
    budget: BudgetOut
    deadline: datetime
    requirements: list[str]
    features: list[str]
    tags: list[str]
    status: str
    accepted_developer_id: str | None
    views: int
    expires_at: datetime
    is_expired: bool
    time_remaining_seconds: int
    bid_count: int
    bids: list[BidOut]
    version: int
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_domain(cls, auction: Auction, now: datetime | None = None) -> "AuctionOut":
        now = now or utc_now()
        return cls(
            id=auction.id,
            buyer_id=auction.buyer_id,
            title=auction.title,
            description=auction.description,
            platform=auction.platform,
            category=auction.category,
            budget=BudgetOut(min=auction.budget_min, max=auction.budget_max),
            deadline=auction.deadline,
            requirements=auction.requirements,
            features=auction.features,
            tags=auction.tags,
            status=auction.status,
            accepted_developer_id=auction.accepted_developer_id,
            views=auction.views,
            expires_at=auction.expires_at,
            is_expired=auction.is_expired(now),
            time_remaining_seconds=auction.time_remaining_seconds(now),
            bid_count=len(auction.bids),
            bids=[BidOut.from_domain(b) for b in auction.bids],
            version=auction.version,
            created_at=auction.created_at,
            updated_at=auction.updated_at,
        )


class AuctionListResponse(BaseModel):
    items: list[AuctionOut]
    next_cursor: str | None
    has_more: bool


class AuctionBrief(BaseModel):
    id: str
    title: str
    status: str
    buyer_id: str
    budget: BudgetOut
    deadline: datetime
    expires_at: datetime
    created_at: datetime | None


class MyBidItem(BaseModel):
    auction: AuctionBrief
    bid: BidOut

    @classmethod
    def from_domain(cls, auction: Auction, bid: Bid) -> "MyBidItem":
        return cls(
            auction=AuctionBrief(
                id=auction.id,
                title=auction.title,
                status=auction.status,
                buyer_id=auction.buyer_id,
                budget=BudgetOut(min=auction.budget_min, max=auction.budget_max),
                deadline=auction.deadline,
                expires_at=auction.expires_at,
                created_at=auction.created_at,
            ),
            bid=BidOut.from_domain(bid),
        )
