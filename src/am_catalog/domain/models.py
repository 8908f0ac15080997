"""Domain models for am_catalog - pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass
class App:
    id: str
    developer_id: str
    title: str
    short_description: str
    description: str
    category: str
    price: Decimal
    status: str
    downloads: int
    is_featured: bool
    created_at: datetime
    updated_at: datetime
    rating_average: Decimal = Decimal("0")
    rating_count: int = 0

    @property
    def is_free(self) -> bool:
        return self.price == 0


@dataclass
class Purchase:
    user_id: str
    app_id: str
    app_title: str
    price: Decimal
    payment_id: str | None
    purchased_at: datetime


@dataclass
class Review:
    app_id: str
    user_id: str
    rating: int
    comment: str
    created_at: datetime
    updated_at: datetime
    # Joined from users on reads.
    username: str | None = None
