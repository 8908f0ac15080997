"""Auth + profile API: register, login, refresh, me.

All endpoints return ApiResponse. request_id is read from request.state
(injected by RequestLogMiddleware).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.am_common.database import get_db_session
from src.am_common.response import ApiResponse, respond
from src.am_gateway.auth.dependencies import get_current_user
from src.am_gateway.user.db_models import UserModel
from src.am_gateway.user.schemas import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    UpdateProfileRequest,
    UserInfo,
)
from src.am_gateway.user.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])
users_router = APIRouter(prefix="/users", tags=["users"])
_service = UserService()


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse,
    summary="User registration",
)
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse:
    async with db.begin():
        user = await _service.register(
            body.username, body.email, body.password, db,
            first_name=body.first_name, last_name=body.last_name,
        )
    return respond(request, UserInfo.from_model(user).model_dump(), "User registered successfully")


@router.post("/login", response_model=ApiResponse, summary="User login")
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse:
    user, access_token, refresh_token = await _service.login(body.username, body.password, db)

    data = LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.JWT_EXPIRE_MINUTES * 60,
        user=UserInfo.from_model(user),
    )
    return respond(request, data.model_dump(), "Login successful")


@router.post("/refresh", response_model=ApiResponse, summary="Refresh access token")
async def refresh_token(
    request: Request,
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse:
    new_access_token = await _service.refresh(body.refresh_token, db)
    data = RefreshResponse(
        access_token=new_access_token,
        expires_in=settings.JWT_EXPIRE_MINUTES * 60,
    )
    return respond(request, data.model_dump(), "Token refreshed")


@users_router.get("/me", response_model=ApiResponse)
async def get_me(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
) -> ApiResponse:
    return respond(request, UserInfo.from_model(current_user).model_dump())


@users_router.put("/me", response_model=ApiResponse)
async def update_me(
    request: Request,
    body: UpdateProfileRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user = await _service.update_profile(current_user, body.first_name, body.last_name, db)
    await db.commit()
    return respond(request, UserInfo.from_model(user).model_dump(), "Profile updated")
