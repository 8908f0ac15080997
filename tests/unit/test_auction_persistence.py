# tests/unit/test_auction_persistence.py
"""Unit tests for AuctionRepository using MagicMock AsyncSession."""
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.am_auction.domain.models import Auction, Bid
from src.am_auction.infrastructure.persistence import AuctionRepository


def _make_auction_row(**kwargs):
    """Build a mock DB row with all required fields."""
    now = datetime.now(UTC)
    row = MagicMock()
    row.id = kwargs.get("id", "auc-1")
    row.buyer_id = kwargs.get("buyer_id", "buyer")
    row.title = kwargs.get("title", "Podcast player")
    row.description = "Podcast player with offline downloads"
    row.platform = "iOS"
    row.category = "Entertainment"
    row.budget_min = Decimal("1000.00")
    row.budget_max = Decimal("4000.00")
    row.deadline = now + timedelta(days=30)
    row.requirements = kwargs.get("requirements", ["Offline downloads"])
    row.features = None
    row.tags = ["audio"]
    row.status = kwargs.get("status", "open")
    row.accepted_developer_id = None
    row.is_active = True
    row.views = 4
    row.expires_at = now + timedelta(days=7)
    row.version = kwargs.get("version", 2)
    row.created_at = now
    row.updated_at = now
    return row


def _make_bid_row(bid_id: str, auction_id: str = "auc-1", developer_id: str = "dev-1"):
    row = MagicMock()
    row.id = bid_id
    row.auction_id = auction_id
    row.developer_id = developer_id
    row.amount = Decimal("2500.00")
    row.proposal = "p" * 60
    row.timeline_days = 14
    row.status = "pending"
    row.submitted_at = datetime.now(UTC)
    row.created_at = datetime.now(UTC)
    return row


def _result(one=None, many=None):
    result = MagicMock()
    result.fetchone.return_value = one
    result.fetchall.return_value = many or []
    return result


def _auction(version: int = 2) -> Auction:
    now = datetime.now(UTC)
    return Auction(
        id="auc-1", buyer_id="buyer", title="t" * 10, description="d" * 30,
        platform="iOS", category="Other", budget_min=Decimal("1"), budget_max=Decimal("2"),
        deadline=now, requirements=["Reqs here"], features=[], tags=[],
        expires_at=now + timedelta(days=1), version=version,
    )


@pytest.fixture
def db():
    return MagicMock()


class TestGet:
    @pytest.mark.asyncio
    async def test_returns_auction_with_bids(self, db):
        db.execute = AsyncMock(side_effect=[
            _result(one=_make_auction_row()),
            _result(many=[_make_bid_row("b1"), _make_bid_row("b2", developer_id="dev-2")]),
        ])

        auction = await AuctionRepository().get(db, "auc-1")

        assert auction is not None
        assert auction.version == 2
        assert auction.features == []
        assert [b.id for b in auction.bids] == ["b1", "b2"]

    @pytest.mark.asyncio
    async def test_returns_none_when_missing(self, db):
        db.execute = AsyncMock(return_value=_result(one=None))

        assert await AuctionRepository().get(db, "nope") is None
        assert db.execute.await_count == 1


class TestListAuctions:
    @pytest.mark.asyncio
    async def test_bids_loaded_in_one_query(self, db):
        rows = [_make_auction_row(id="a1"), _make_auction_row(id="a2")]
        db.execute = AsyncMock(side_effect=[
            _result(many=rows),
            _result(many=[_make_bid_row("b1", auction_id="a2")]),
        ])

        auctions = await AuctionRepository().list_auctions(
            db, None, None, None, None, None, None, None, None, 11
        )

        assert [a.id for a in auctions] == ["a1", "a2"]
        assert auctions[0].bids == []
        assert auctions[1].bids[0].id == "b1"
        params = db.execute.await_args_list[1].args[1]
        assert params == {"auction_ids": ["a1", "a2"]}

    @pytest.mark.asyncio
    async def test_empty_page_skips_bid_query(self, db):
        db.execute = AsyncMock(return_value=_result(many=[]))

        assert await AuctionRepository().list_auctions(
            db, "open", None, None, None, None, None, None, None, 11
        ) == []
        assert db.execute.await_count == 1


class TestIncrementViews:
    @pytest.mark.asyncio
    async def test_returns_new_count(self, db):
        row = MagicMock()
        row.views = 12
        db.execute = AsyncMock(return_value=_result(one=row))

        assert await AuctionRepository().increment_views(db, "auc-1") == 12

    @pytest.mark.asyncio
    async def test_missing_returns_none(self, db):
        db.execute = AsyncMock(return_value=_result(one=None))

        assert await AuctionRepository().increment_views(db, "auc-1") is None


class TestCompareAndSwap:
    @pytest.mark.asyncio
    async def test_save_bid_bumps_version_then_upserts(self, db):
        cas_row = MagicMock()
        cas_row.version = 3
        cas_row.updated_at = datetime.now(UTC)
        db.execute = AsyncMock(side_effect=[_result(one=cas_row), _result()])
        auction = _auction(version=2)
        bid = Bid(
            id="b1", auction_id="auc-1", developer_id="dev-1",
            amount=Decimal("10"), proposal="p" * 50, timeline_days=3,
        )

        assert await AuctionRepository().save_bid(db, auction, bid) is True
        assert auction.version == 3
        cas_params = db.execute.await_args_list[0].args[1]
        assert cas_params == {"auction_id": "auc-1", "version": 2}
        upsert_params = db.execute.await_args_list[1].args[1]
        assert upsert_params["developer_id"] == "dev-1"

    @pytest.mark.asyncio
    async def test_stale_version_writes_nothing_else(self, db):
        db.execute = AsyncMock(return_value=_result(one=None))
        auction = _auction(version=2)
        bid = Bid(
            id="b1", auction_id="auc-1", developer_id="dev-1",
            amount=Decimal("10"), proposal="p" * 50, timeline_days=3,
        )

        assert await AuctionRepository().save_bid(db, auction, bid) is False
        assert auction.version == 2
        assert db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_acceptance_resolves_bids_after_cas(self, db):
        cas_row = MagicMock()
        cas_row.version = 5
        cas_row.updated_at = datetime.now(UTC)
        db.execute = AsyncMock(side_effect=[_result(one=cas_row), _result()])
        auction = _auction(version=4)
        bid = Bid(
            id="b9", auction_id="auc-1", developer_id="dev-9",
            amount=Decimal("10"), proposal="p" * 50, timeline_days=3,
        )

        assert await AuctionRepository().save_acceptance(db, auction, bid) is True
        assert db.execute.await_args_list[0].args[1]["developer_id"] == "dev-9"
        assert db.execute.await_args_list[1].args[1] == {"auction_id": "auc-1", "bid_id": "b9"}

    @pytest.mark.asyncio
    async def test_lost_acceptance_race(self, db):
        db.execute = AsyncMock(return_value=_result(one=None))
        bid = Bid(
            id="b9", auction_id="auc-1", developer_id="dev-9",
            amount=Decimal("10"), proposal="p" * 50, timeline_days=3,
        )

        assert await AuctionRepository().save_acceptance(db, _auction(), bid) is False
        assert db.execute.await_count == 1
