# tests/unit/test_auction_service.py
"""Unit tests for AuctionService using mock repository."""
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.am_auction.application.schemas import (
    BudgetIn,
    SubmitBidRequest,
    UpdateAuctionRequest,
)
from src.am_auction.application.service import AuctionService
from src.am_auction.domain.models import Auction, Bid
from src.am_common.cursor import cursor_decode
from src.am_common.errors import (
    AuctionInvalidStateError,
    AuctionNotFoundError,
    ConcurrentModificationError,
    SelfBidForbiddenError,
    ValidationFailedError,
)
from src.am_gateway.auth.permissions import Actor

PROPOSAL = "Native Swift app with CloudKit sync, delivered in three milestones."


def _make_auction(**kwargs) -> Auction:
    now = datetime.now(UTC)
    defaults = dict(
        id="auc-1", buyer_id="buyer", title="Habit tracker",
        description="A habit tracker with streaks and reminders",
        platform="iOS", category="Productivity",
        budget_min=Decimal("1000.00"), budget_max=Decimal("5000.00"),
        deadline=now + timedelta(days=60), requirements=["Reminders"],
        features=[], tags=[], expires_at=now + timedelta(days=7),
        version=3, created_at=now, updated_at=now,
    )
    defaults.update(kwargs)
    return Auction(**defaults)


def _make_bid(bid_id: str, developer_id: str, **kwargs) -> Bid:
    defaults = dict(
        id=bid_id, auction_id="auc-1", developer_id=developer_id,
        amount=Decimal("2000.00"), proposal=PROPOSAL, timeline_days=30,
    )
    defaults.update(kwargs)
    return Bid(**defaults)


@pytest.fixture
def db():
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def mock_repo():
    return MagicMock()


class TestListAuctions:
    @pytest.mark.asyncio
    async def test_has_more_when_over_limit(self, db, mock_repo):
        auctions = [_make_auction(id=f"auc-{i}") for i in range(3)]
        mock_repo.list_auctions = AsyncMock(return_value=auctions)
        svc = AuctionService(repo=mock_repo)

        resp = await svc.list_auctions(
            db, status=None, platform=None, category=None, min_budget=None,
            max_budget=None, search=None, cursor=None, limit=2,
        )

        assert len(resp.items) == 2
        assert resp.has_more is True
        assert cursor_decode(resp.next_cursor)[1] == "auc-1"
        assert mock_repo.list_auctions.await_args.args[-1] == 3

    @pytest.mark.asyncio
    async def test_last_page(self, db, mock_repo):
        mock_repo.list_auctions = AsyncMock(return_value=[_make_auction()])
        svc = AuctionService(repo=mock_repo)

        resp = await svc.list_auctions(
            db, status="open", platform=None, category=None, min_budget=None,
            max_budget=None, search=None, cursor=None, limit=10,
        )

        assert resp.has_more is False
        assert resp.next_cursor is None


class TestGetAuction:
    @pytest.mark.asyncio
    async def test_read_counts_a_view(self, db, mock_repo):
        mock_repo.increment_views = AsyncMock(return_value=8)
        mock_repo.get = AsyncMock(return_value=_make_auction(views=8))
        svc = AuctionService(repo=mock_repo)

        out = await svc.get_auction(db, "auc-1")

        assert out.views == 8
        mock_repo.increment_views.assert_awaited_once_with(db, "auc-1")
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_raises_not_found(self, db, mock_repo):
        mock_repo.increment_views = AsyncMock(return_value=None)
        mock_repo.get = AsyncMock()
        svc = AuctionService(repo=mock_repo)

        with pytest.raises(AuctionNotFoundError):
            await svc.get_auction(db, "nope")
        mock_repo.get.assert_not_awaited()
        db.rollback.assert_awaited_once()


class TestSubmitBid:
    @pytest.mark.asyncio
    async def test_new_bid_persisted(self, db, mock_repo):
        auction = _make_auction()
        mock_repo.get = AsyncMock(return_value=auction)
        mock_repo.save_bid = AsyncMock(return_value=True)
        svc = AuctionService(repo=mock_repo)

        out = await svc.submit_bid(
            db, "dev-1", "auc-1",
            SubmitBidRequest(amount=Decimal("2500.00"), proposal=PROPOSAL, timeline=21),
        )

        assert out.bid_count == 1
        assert out.bids[0].developer_id == "dev-1"
        saved_bid = mock_repo.save_bid.await_args.args[2]
        assert saved_bid.amount == Decimal("2500.00")
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resubmission_keeps_bid_id(self, db, mock_repo):
        existing = _make_bid("bid-7", "dev-1")
        mock_repo.get = AsyncMock(return_value=_make_auction(bids=[existing]))
        mock_repo.save_bid = AsyncMock(return_value=True)
        svc = AuctionService(repo=mock_repo)

        out = await svc.submit_bid(
            db, "dev-1", "auc-1",
            SubmitBidRequest(amount=Decimal("1500.00"), proposal=PROPOSAL, timeline=14),
        )

        assert out.bid_count == 1
        assert out.bids[0].id == "bid-7"
        assert out.bids[0].amount == Decimal("1500.00")

    @pytest.mark.asyncio
    async def test_version_conflict_raises_and_rolls_back(self, db, mock_repo):
        mock_repo.get = AsyncMock(return_value=_make_auction())
        mock_repo.save_bid = AsyncMock(return_value=False)
        svc = AuctionService(repo=mock_repo)

        with pytest.raises(ConcurrentModificationError):
            await svc.submit_bid(
                db, "dev-1", "auc-1",
                SubmitBidRequest(amount=Decimal("2500.00"), proposal=PROPOSAL, timeline=21),
            )
        db.commit.assert_not_awaited()
        db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_self_bid_never_writes(self, db, mock_repo):
        mock_repo.get = AsyncMock(return_value=_make_auction())
        mock_repo.save_bid = AsyncMock(return_value=True)
        svc = AuctionService(repo=mock_repo)

        with pytest.raises(SelfBidForbiddenError):
            await svc.submit_bid(
                db, "buyer", "auc-1",
                SubmitBidRequest(amount=Decimal("2500.00"), proposal=PROPOSAL, timeline=21),
            )
        mock_repo.save_bid.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_auction(self, db, mock_repo):
        mock_repo.get = AsyncMock(return_value=None)
        svc = AuctionService(repo=mock_repo)

        with pytest.raises(AuctionNotFoundError):
            await svc.submit_bid(
                db, "dev-1", "missing",
                SubmitBidRequest(amount=Decimal("2500.00"), proposal=PROPOSAL, timeline=21),
            )


class TestAcceptBid:
    @pytest.mark.asyncio
    async def test_accept_persists_resolution(self, db, mock_repo):
        bids = [_make_bid("b1", "dev-1"), _make_bid("b2", "dev-2")]
        mock_repo.get = AsyncMock(return_value=_make_auction(bids=bids))
        mock_repo.save_acceptance = AsyncMock(return_value=True)
        svc = AuctionService(repo=mock_repo)

        out = await svc.accept_bid(db, "buyer", "auc-1", "b2")

        assert out.status == "in-progress"
        assert out.accepted_developer_id == "dev-2"
        assert [b.status for b in out.bids] == ["rejected", "accepted"]
        assert mock_repo.save_acceptance.await_args.args[2].id == "b2"

    @pytest.mark.asyncio
    async def test_lost_race_is_conflict(self, db, mock_repo):
        mock_repo.get = AsyncMock(return_value=_make_auction(bids=[_make_bid("b1", "dev-1")]))
        mock_repo.save_acceptance = AsyncMock(return_value=False)
        svc = AuctionService(repo=mock_repo)

        with pytest.raises(ConcurrentModificationError):
            await svc.accept_bid(db, "buyer", "auc-1", "b1")
        db.rollback.assert_awaited_once()


class TestUpdateAuction:
    @pytest.mark.asyncio
    async def test_partial_update(self, db, mock_repo):
        auction = _make_auction()
        mock_repo.get = AsyncMock(return_value=auction)
        mock_repo.save_fields = AsyncMock(return_value=True)
        svc = AuctionService(repo=mock_repo)

        out = await svc.update_auction(
            db, Actor(user_id="buyer"), "auc-1",
            UpdateAuctionRequest(title="Habit tracker v2", tags=["habits"]),
        )

        assert out.title == "Habit tracker v2"
        assert out.tags == ["habits"]
        assert out.description == auction.description

    @pytest.mark.asyncio
    async def test_budget_applies_as_pair(self, db, mock_repo):
        mock_repo.get = AsyncMock(return_value=_make_auction())
        mock_repo.save_fields = AsyncMock(return_value=True)
        svc = AuctionService(repo=mock_repo)

        out = await svc.update_auction(
            db, Actor(user_id="buyer"), "auc-1",
            UpdateAuctionRequest(budget=BudgetIn(min=Decimal("6000"), max=Decimal("9000"))),
        )

        assert out.budget.min == Decimal("6000")
        assert out.budget.max == Decimal("9000")

    @pytest.mark.asyncio
    async def test_not_open_rejected(self, db, mock_repo):
        mock_repo.get = AsyncMock(return_value=_make_auction(status="in-progress"))
        mock_repo.save_fields = AsyncMock(return_value=True)
        svc = AuctionService(repo=mock_repo)

        with pytest.raises(AuctionInvalidStateError):
            await svc.update_auction(
                db, Actor(user_id="buyer"), "auc-1",
                UpdateAuctionRequest(title="Too late to edit"),
            )
        mock_repo.save_fields.assert_not_called()

    @pytest.mark.asyncio
    async def test_merged_budget_checked(self, db, mock_repo):
        auction = _make_auction(budget_min=Decimal("4000"), budget_max=Decimal("5000"))
        auction.budget_max = Decimal("3000")
        mock_repo.get = AsyncMock(return_value=auction)
        mock_repo.save_fields = AsyncMock(return_value=True)
        svc = AuctionService(repo=mock_repo)

        with pytest.raises(ValidationFailedError):
            await svc.update_auction(
                db, Actor(user_id="buyer"), "auc-1",
                UpdateAuctionRequest(title="Budget mismatch"),
            )
        mock_repo.save_fields.assert_not_called()


class TestStatusTransitions:
    @pytest.mark.asyncio
    async def test_complete(self, db, mock_repo):
        mock_repo.get = AsyncMock(return_value=_make_auction(status="in-progress"))
        mock_repo.save_status = AsyncMock(return_value=True)
        svc = AuctionService(repo=mock_repo)

        out = await svc.complete_auction(db, Actor(user_id="buyer"), "auc-1")

        assert out.status == "completed"
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancel(self, db, mock_repo):
        mock_repo.get = AsyncMock(return_value=_make_auction())
        mock_repo.save_status = AsyncMock(return_value=True)
        svc = AuctionService(repo=mock_repo)

        out = await svc.cancel_auction(db, Actor(user_id="buyer"), "auc-1")

        assert out.status == "cancelled"
        assert out.time_remaining_seconds == 0

    @pytest.mark.asyncio
    async def test_delete_is_soft(self, db, mock_repo):
        auction = _make_auction()
        mock_repo.get = AsyncMock(return_value=auction)
        mock_repo.save_status = AsyncMock(return_value=True)
        svc = AuctionService(repo=mock_repo)

        await svc.delete_auction(db, Actor(user_id="buyer"), "auc-1")

        assert auction.is_active is False
        assert mock_repo.save_status.await_args.args[1] is auction


class TestMyBids:
    @pytest.mark.asyncio
    async def test_pairs_auction_with_callers_bid(self, db, mock_repo):
        auction = _make_auction(bids=[_make_bid("b1", "dev-1"), _make_bid("b2", "dev-2")])
        mock_repo.list_by_bidder = AsyncMock(return_value=[auction])
        svc = AuctionService(repo=mock_repo)

        items = await svc.my_bids(db, "dev-2")

        assert len(items) == 1
        assert items[0].auction.id == "auc-1"
        assert items[0].bid.id == "b2"


class TestCreateAuction:
    @pytest.mark.asyncio
    async def test_default_expiry(self, db, mock_repo):
        from src.am_auction.application.schemas import CreateAuctionRequest

        async def _insert(session, draft):
            draft.id = "auc-new"
            return draft

        mock_repo.insert = AsyncMock(side_effect=_insert)
        svc = AuctionService(repo=mock_repo)
        req = CreateAuctionRequest(
            title="Budget planner",
            description="Personal budget planner with bank sync",
            platform="Web",
            category="Finance",
            budget={"min": "500", "max": "1500"},
            deadline=datetime.now(UTC) + timedelta(days=45),
            requirements=["Bank sync"],
        )

        out = await svc.create_auction(db, Actor(user_id="buyer"), req)

        assert out.id == "auc-new"
        assert out.buyer_id == "buyer"
        assert out.status == "open"
        remaining = out.expires_at - datetime.now(UTC)
        assert timedelta(days=29) < remaining <= timedelta(days=30)
        db.commit.assert_awaited_once()
