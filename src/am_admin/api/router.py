# src/am_admin/api/router.py
"""Admin REST API. Every route requires role=admin."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.am_admin.application.service import AdminService
from src.am_common.database import get_db_session
from src.am_common.enums import AppStatus, UserRole
from src.am_common.response import ApiResponse, respond
from src.am_gateway.auth.dependencies import require_admin
from src.am_gateway.user.db_models import UserModel

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: UserRole | None = None
    is_active: bool | None = Field(None, alias="isActive")


class AppStatusRequest(BaseModel):
    status: AppStatus


@router.get("/users")
async def list_users(
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    search: str | None = Query(None, max_length=100),
    role: UserRole | None = Query(None),
    is_active: bool | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    users = await _service.list_users(
        db, search, role.value if role else None, is_active, limit
    )
    return respond(request, [u.model_dump() for u in users])


@router.put("/users/{user_id}")
async def update_user(
    user_id: str,
    body: UpdateUserRequest,
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.update_user(
        db,
        str(admin.id),
        user_id,
        body.role.value if body.role else None,
        body.is_active,
    )
    return respond(request, result.model_dump(), "User updated")


@router.put("/apps/{app_id}/status")
async def set_app_status(
    app_id: str,
    body: AppStatusRequest,
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.set_app_status(db, app_id, body.status)
    return respond(request, result.model_dump(mode="json"), "App status updated")


@router.put("/apps/{app_id}/featured")
async def toggle_featured(
    app_id: str,
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.toggle_featured(db, app_id)
    return respond(request, result.model_dump(mode="json"))


@router.get("/dashboard")
async def dashboard(
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return respond(request, await _service.dashboard(db))
