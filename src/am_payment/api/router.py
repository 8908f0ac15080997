"""am_payment REST endpoints.

POST /payments/create-order     - gateway order + pending payment
POST /payments/verify           - checkout callback, signature checked
POST /payments/fail             - client reports a failed checkout
POST /payments/refund           - admin only
GET  /payments/user/payments    - caller's payment history
GET  /payments/stats/overview   - admin only
GET  /payments/{payment_id}     - owner or admin
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.am_common.database import get_db_session
from src.am_common.enums import PaymentStatus
from src.am_common.response import ApiResponse, respond
from src.am_gateway.auth.dependencies import get_current_user, require_admin
from src.am_gateway.auth.permissions import actor_from_user
from src.am_gateway.user.db_models import UserModel
from src.am_payment.application.schemas import (
    CreateOrderRequest,
    FailPaymentRequest,
    RefundRequest,
    VerifyPaymentRequest,
)
from src.am_payment.application.service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])

_service = PaymentService()


@router.post("/create-order")
async def create_order(
    request: Request,
    body: CreateOrderRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.create_order(
        db, str(current_user.id), body.app_id, body.amount, body.auction_id
    )
    return respond(request, result.model_dump(mode="json", by_alias=True), "Order created")


@router.post("/verify")
async def verify_payment(
    request: Request,
    body: VerifyPaymentRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.verify(
        db,
        str(current_user.id),
        body.razorpay_order_id,
        body.razorpay_payment_id,
        body.razorpay_signature,
    )
    return respond(request, result.model_dump(mode="json", by_alias=True), result.message)


@router.post("/fail")
async def fail_payment(
    request: Request,
    body: FailPaymentRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.mark_failed(
        db, str(current_user.id), body.razorpay_order_id, body.reason
    )
    return respond(request, result.model_dump(mode="json", by_alias=True), "Payment marked failed")


@router.post("/refund")
async def refund_payment(
    request: Request,
    body: RefundRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.refund(db, body.payment_id, body.amount, body.reason)
    return respond(request, result.model_dump(mode="json", by_alias=True), result.message)


@router.get("/user/payments")
async def list_user_payments(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    status: PaymentStatus | None = Query(None),
    limit: int = Query(10, ge=1, le=100),
    cursor: str | None = Query(None),
) -> ApiResponse:
    result = await _service.list_user_payments(
        db, str(current_user.id), status.value if status else None, cursor, limit
    )
    return respond(request, result.model_dump(mode="json", by_alias=True))


@router.get("/stats/overview")
async def stats_overview(
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.stats_overview(db)
    return respond(request, result.model_dump(mode="json", by_alias=True))


@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_payment(db, actor_from_user(current_user), payment_id)
    return respond(request, result.model_dump(mode="json", by_alias=True))
