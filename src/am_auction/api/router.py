"""am_auction REST endpoints.

POST   /auctions                                - create (authenticated buyer)
GET    /auctions                                - list with filters + cursor
GET    /auctions/featured                       - most viewed open auctions
GET    /auctions/user/my-auctions               - caller's auctions
GET    /auctions/user/my-bids                   - auctions the caller bid on
GET    /auctions/{auction_id}                   - detail (counts a view)
PUT    /auctions/{auction_id}                   - update (owner/admin, open only)
DELETE /auctions/{auction_id}                   - soft delete (owner/admin, open only)
POST   /auctions/{auction_id}/bid               - place or replace own bid
PUT    /auctions/{auction_id}/bid/{bid_id}/accept - buyer accepts a bid
POST   /auctions/{auction_id}/complete          - in-progress → completed
POST   /auctions/{auction_id}/cancel            - open/in-progress → cancelled
"""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.am_auction.application.schemas import (
    CreateAuctionRequest,
    SubmitBidRequest,
    UpdateAuctionRequest,
)
from src.am_auction.application.service import AuctionService
from src.am_common.database import get_db_session
from src.am_common.enums import AuctionCategory, AuctionStatus, Platform
from src.am_common.response import ApiResponse, respond
from src.am_gateway.auth.dependencies import get_current_user
from src.am_gateway.auth.permissions import actor_from_user
from src.am_gateway.user.db_models import UserModel

router = APIRouter(prefix="/auctions", tags=["auctions"])

_service = AuctionService()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_auction(
    request: Request,
    body: CreateAuctionRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.create_auction(db, actor_from_user(current_user), body)
    return respond(request, result.model_dump(mode="json"), "Auction created")


@router.get("")
async def list_auctions(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    status: AuctionStatus | None = Query(None),
    platform: Platform | None = Query(None),
    category: AuctionCategory | None = Query(None),
    min_budget: Decimal | None = Query(None, ge=0, alias="minBudget"),
    max_budget: Decimal | None = Query(None, ge=0, alias="maxBudget"),
    search: str | None = Query(None, max_length=100),
    limit: int = Query(10, ge=1, le=100),
    cursor: str | None = Query(None),
) -> ApiResponse:
    result = await _service.list_auctions(
        db,
        status.value if status else None,
        platform.value if platform else None,
        category.value if category else None,
        min_budget,
        max_budget,
        search,
        cursor,
        limit,
    )
    return respond(request, result.model_dump(mode="json"))


@router.get("/featured")
async def list_featured(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.list_featured(db)
    return respond(request, [a.model_dump(mode="json") for a in result])


@router.get("/user/my-auctions")
async def my_auctions(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.my_auctions(db, str(current_user.id))
    return respond(request, [a.model_dump(mode="json") for a in result])


@router.get("/user/my-bids")
async def my_bids(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.my_bids(db, str(current_user.id))
    return respond(request, [item.model_dump(mode="json") for item in result])


@router.get("/{auction_id}")
async def get_auction(
    auction_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_auction(db, auction_id)
    return respond(request, result.model_dump(mode="json"))


@router.put("/{auction_id}")
async def update_auction(
    auction_id: str,
    request: Request,
    body: UpdateAuctionRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.update_auction(db, actor_from_user(current_user), auction_id, body)
    return respond(request, result.model_dump(mode="json"), "Auction updated")


@router.delete("/{auction_id}")
async def delete_auction(
    auction_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    await _service.delete_auction(db, actor_from_user(current_user), auction_id)
    return respond(request, {"auction_id": auction_id}, "Auction removed")


@router.post("/{auction_id}/bid")
async def submit_bid(
    auction_id: str,
    request: Request,
    body: SubmitBidRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.submit_bid(db, str(current_user.id), auction_id, body)
    return respond(request, result.model_dump(mode="json"), "Bid submitted")


@router.put("/{auction_id}/bid/{bid_id}/accept")
async def accept_bid(
    auction_id: str,
    bid_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.accept_bid(db, str(current_user.id), auction_id, bid_id)
    return respond(request, result.model_dump(mode="json"), "Bid accepted")


@router.post("/{auction_id}/complete")
async def complete_auction(
    auction_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.complete_auction(db, actor_from_user(current_user), auction_id)
    return respond(request, result.model_dump(mode="json"), "Auction completed")


@router.post("/{auction_id}/cancel")
async def cancel_auction(
    auction_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.cancel_auction(db, actor_from_user(current_user), auction_id)
    return respond(request, result.model_dump(mode="json"), "Auction cancelled")
