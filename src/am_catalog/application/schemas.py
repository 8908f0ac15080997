"""Pydantic schemas for the app catalog and purchases.

Prices are Decimal major units; ``price_display`` is the formatted string
shown next to them (e.g. "INR 199.00").
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from config.settings import settings
from src.am_catalog.domain.models import App, Purchase, Review
from src.am_common.enums import AppCategory
from src.am_common.money import format_amount


class CreateAppRequest(BaseModel):
    title: str = Field(..., min_length=3, max_length=100)
    short_description: str = Field(..., min_length=10, max_length=200)
    description: str = Field(..., min_length=20, max_length=5000)
    category: AppCategory
    price: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)


class UpdateAppRequest(BaseModel):
    """Partial update; developer and review status are not editable here."""

    title: str | None = Field(None, min_length=3, max_length=100)
    short_description: str | None = Field(None, min_length=10, max_length=200)
    description: str | None = Field(None, min_length=20, max_length=5000)
    category: AppCategory | None = None
    price: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)

    def changes(self) -> dict[str, object]:
        data = self.model_dump(exclude_unset=True, exclude_none=True)
        if "category" in data:
            data["category"] = data["category"].value
        return data


class AppOut(BaseModel):
    id: str
    developer_id: str
    title: str
    short_description: str
    description: str
    category: str
    price: Decimal
    price_display: str
    is_free: bool
    status: str
    downloads: int
    is_featured: bool
    created_at: datetime
    updated_at: datetime
    rating_average: Decimal
    rating_count: int

    @classmethod
    def from_domain(cls, app: App) -> "AppOut":
        return cls(
            id=app.id,
            developer_id=app.developer_id,
            title=app.title,
            short_description=app.short_description,
            description=app.description,
            category=app.category,
            price=app.price,
            price_display=format_amount(app.price, settings.PAYMENT_CURRENCY),
            is_free=app.is_free,
            status=app.status,
            downloads=app.downloads,
            is_featured=app.is_featured,
            created_at=app.created_at,
            updated_at=app.updated_at,
            rating_average=app.rating_average,
            rating_count=app.rating_count,
        )


class AppListResponse(BaseModel):
    items: list[AppOut]
    next_cursor: str | None
    has_more: bool


class PurchaseOut(BaseModel):
    app_id: str
    app_title: str
    price: Decimal
    payment_id: str | None
    purchased_at: datetime

    @classmethod
    def from_domain(cls, purchase: Purchase) -> "PurchaseOut":
        return cls(
            app_id=purchase.app_id,
            app_title=purchase.app_title,
            price=purchase.price,
            payment_id=purchase.payment_id,
            purchased_at=purchase.purchased_at,
        )


class PurchaseListResponse(BaseModel):
    items: list[PurchaseOut]
    reconciled: int = 0


class PurchaseStatusResponse(BaseModel):
    app_id: str
    purchased: bool


class ReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field("", max_length=500)


class ReviewOut(BaseModel):
    user_id: str
    username: str | None
    rating: int
    comment: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, review: Review) -> "ReviewOut":
        return cls(
            user_id=review.user_id,
            username=review.username,
            rating=review.rating,
            comment=review.comment,
            created_at=review.created_at,
            updated_at=review.updated_at,
        )


class ReviewSubmitResponse(BaseModel):
    review: ReviewOut
    rating_average: Decimal
    rating_count: int


class WishlistToggleResponse(BaseModel):
    app_id: str
    in_wishlist: bool
