"""Catalog REST endpoints.

GET    /apps                          - approved apps, cursor pagination
GET    /apps/featured                 - approved featured apps
GET    /apps/user/my-apps             - caller's own apps, any review status
POST   /apps                          - submit an app for review
GET    /apps/{app_id}                 - app detail
PUT    /apps/{app_id}                 - edit listing (owner/admin)
DELETE /apps/{app_id}                 - delete listing (owner/admin, no payments)
POST   /apps/{app_id}/review          - rate and review (purchasers only)
GET    /apps/{app_id}/reviews         - latest reviews
POST   /apps/{app_id}/wishlist        - add or remove from the caller's wishlist
GET    /users/me/purchases            - own purchases (reconciled first)
GET    /users/me/purchases/{app_id}   - has the caller bought this app
GET    /users/me/wishlist             - own wishlist
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.am_catalog.application.schemas import CreateAppRequest, ReviewRequest, UpdateAppRequest
from src.am_catalog.application.service import CatalogService
from src.am_common.database import get_db_session
from src.am_common.enums import AppCategory
from src.am_common.response import ApiResponse, respond
from src.am_gateway.auth.dependencies import get_current_user
from src.am_gateway.auth.permissions import actor_from_user
from src.am_gateway.user.db_models import UserModel

router = APIRouter(prefix="/apps", tags=["apps"])
purchases_router = APIRouter(prefix="/users/me/purchases", tags=["purchases"])
wishlist_router = APIRouter(prefix="/users/me/wishlist", tags=["wishlist"])

_service = CatalogService()


@router.get("")
async def list_apps(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    category: AppCategory | None = Query(None),
    search: str | None = Query(None, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    cursor: str | None = Query(None),
) -> ApiResponse:
    result = await _service.list_apps(
        db, category.value if category else None, search, cursor, limit
    )
    return respond(request, result.model_dump(mode="json"))


@router.get("/featured")
async def list_featured(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.list_featured(db)
    return respond(request, [a.model_dump(mode="json") for a in result])


@router.get("/user/my-apps")
async def my_apps(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.my_apps(db, str(current_user.id))
    return respond(request, [a.model_dump(mode="json") for a in result])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_app(
    request: Request,
    body: CreateAppRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.create_app(db, actor_from_user(current_user), body)
    return respond(request, result.model_dump(mode="json"), "App submitted for review")


@router.get("/{app_id}")
async def get_app(
    app_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_app(db, app_id)
    return respond(request, result.model_dump(mode="json"))


@router.put("/{app_id}")
async def update_app(
    app_id: str,
    request: Request,
    body: UpdateAppRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.update_app(db, actor_from_user(current_user), app_id, body)
    return respond(request, result.model_dump(mode="json"), "App updated")


@router.delete("/{app_id}")
async def delete_app(
    app_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    await _service.delete_app(db, actor_from_user(current_user), app_id)
    return respond(request, {"app_id": app_id}, "App deleted successfully")


@router.post("/{app_id}/review")
async def add_review(
    app_id: str,
    request: Request,
    body: ReviewRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.add_review(db, actor_from_user(current_user), app_id, body)
    return respond(request, result.model_dump(mode="json"), "Review saved")


@router.get("/{app_id}/reviews")
async def list_reviews(
    app_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    limit: int = Query(50, ge=1, le=100),
) -> ApiResponse:
    result = await _service.list_reviews(db, app_id, limit)
    return respond(request, [r.model_dump(mode="json") for r in result])


@router.post("/{app_id}/wishlist")
async def toggle_wishlist(
    app_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.toggle_wishlist(db, actor_from_user(current_user), app_id)
    message = "Added to wishlist" if result.in_wishlist else "Removed from wishlist"
    return respond(request, result.model_dump(), message)


@purchases_router.get("")
async def list_purchases(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.list_purchases(db, str(current_user.id))
    return respond(request, result.model_dump(mode="json"))


@purchases_router.get("/{app_id}")
async def purchase_status(
    app_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.purchase_status(db, str(current_user.id), app_id)
    return respond(request, result.model_dump())


@wishlist_router.get("")
async def list_wishlist(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.list_wishlist(db, str(current_user.id))
    return respond(request, [a.model_dump(mode="json") for a in result])
