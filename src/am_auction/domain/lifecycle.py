"""Auction state machine.

    open ──accept_bid──► in-progress ──complete──► completed
      │                      │
      └──────cancel──────────┴──────────────────► cancelled

Pure functions over the Auction aggregate. They validate, mutate the
in-memory auction and return; persistence (with the version check) is the
caller's job. Check order matters: it decides which error a caller sees
when several preconditions fail at once.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from src.am_auction.domain.models import Auction, Bid
from src.am_common.enums import AuctionStatus, BidStatus
from src.am_common.errors import (
    AuctionInvalidStateError,
    BidNotFoundError,
    BidNotPendingError,
    NotAuctionOwnerError,
    SelfBidForbiddenError,
)
from src.am_gateway.auth.permissions import Actor, ensure_owner_or_admin


def ensure_mutable(auction: Auction) -> None:
    """Edits and soft delete are allowed only while the auction is open."""
    if not auction.is_active or auction.status != AuctionStatus.OPEN.value:
        raise AuctionInvalidStateError(
            f"Cannot modify auction that is not open (status={auction.status})"
        )


def submit_bid(
    auction: Auction,
    bidder_id: str,
    amount: Decimal,
    proposal: str,
    timeline_days: int,
    now: datetime,
) -> tuple[Bid, bool]:
    """Place or replace the bidder's bid. Returns (bid, created)."""
    if not auction.is_open(now):
        raise AuctionInvalidStateError("Auction is not open for bidding")
    if bidder_id == auction.buyer_id:
        raise SelfBidForbiddenError()

    existing = auction.bid_by_developer(bidder_id)
    if existing is not None:
        # One bid per developer: replace in place, keep id and position.
        existing.amount = amount
        existing.proposal = proposal
        existing.timeline_days = timeline_days
        existing.submitted_at = now
        return existing, False

    bid = Bid(
        id=str(uuid.uuid4()),
        auction_id=auction.id,
        developer_id=bidder_id,
        amount=amount,
        proposal=proposal,
        timeline_days=timeline_days,
        status=BidStatus.PENDING.value,
        submitted_at=now,
        created_at=now,
    )
    auction.bids.append(bid)
    return bid, True


def accept_bid(auction: Auction, bid_id: str, requester_id: str) -> Bid:
    """Accept one pending bid; every other bid is rejected."""
    if requester_id != auction.buyer_id:
        raise NotAuctionOwnerError()
    if auction.status != AuctionStatus.OPEN.value:
        raise AuctionInvalidStateError("Cannot accept bids on auction that is not open")

    target = auction.find_bid(bid_id)
    if target is None:
        raise BidNotFoundError(bid_id)
    if target.status != BidStatus.PENDING.value:
        raise BidNotPendingError(bid_id, target.status)

    for bid in auction.bids:
        bid.status = BidStatus.ACCEPTED.value if bid is target else BidStatus.REJECTED.value
    auction.accepted_developer_id = target.developer_id
    auction.status = AuctionStatus.IN_PROGRESS.value
    return target


def complete(auction: Auction, actor: Actor) -> None:
    ensure_owner_or_admin(auction.buyer_id, actor)
    if auction.status != AuctionStatus.IN_PROGRESS.value:
        raise AuctionInvalidStateError(
            f"Only in-progress auctions can be completed (status={auction.status})"
        )
    auction.status = AuctionStatus.COMPLETED.value


def cancel(auction: Auction, actor: Actor) -> None:
    ensure_owner_or_admin(auction.buyer_id, actor)
    if auction.status not in (AuctionStatus.OPEN.value, AuctionStatus.IN_PROGRESS.value):
        raise AuctionInvalidStateError(
            f"Only open or in-progress auctions can be cancelled (status={auction.status})"
        )
    auction.status = AuctionStatus.CANCELLED.value


def soft_delete(auction: Auction, actor: Actor) -> None:
    ensure_owner_or_admin(auction.buyer_id, actor)
    ensure_mutable(auction)
    auction.is_active = False


def apply_update(auction: Auction, actor: Actor, changes: dict[str, object]) -> None:
    """Overwrite editable fields. Keys must be Auction attribute names."""
    ensure_owner_or_admin(auction.buyer_id, actor)
    ensure_mutable(auction)
    for name, value in changes.items():
        setattr(auction, name, value)
