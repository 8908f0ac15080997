"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Catalog (apps, purchases)
  3xxx: Auction
  4xxx: Payment
  9xxx: System
"""

from typing import Any


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409)


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid username or password", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "User account is deactivated", 403)


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Refresh token is invalid or expired", 401)


class ForbiddenError(AppError):
    def __init__(self, detail: str = "You can only modify your own resources") -> None:
        super().__init__(1006, detail, 403)


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1007, "Admin role required", 403)


class UserNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1008, f"User not found: {user_id}", 404)


# --- 2xxx: Catalog ---

class AppNotFoundError(AppError):
    def __init__(self, app_id: str) -> None:
        super().__init__(2001, f"App not found: {app_id}", 404)


class AlreadyPurchasedError(AppError):
    def __init__(self, app_id: str) -> None:
        super().__init__(2002, f"App already purchased: {app_id}", 409)


class PurchaseRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(2003, "You must purchase this app to access this feature", 403)


class AppInUseError(AppError):
    def __init__(self, app_id: str) -> None:
        super().__init__(2004, f"App {app_id} has payments and cannot be deleted", 409)


# --- 3xxx: Auction ---

class AuctionNotFoundError(AppError):
    def __init__(self, auction_id: str) -> None:
        super().__init__(3001, f"Auction not found: {auction_id}", 404)


class AuctionInvalidStateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3002, detail, 400)


class SelfBidForbiddenError(AppError):
    def __init__(self) -> None:
        super().__init__(3003, "Cannot bid on your own auction", 400)


class NotAuctionOwnerError(AppError):
    def __init__(self) -> None:
        super().__init__(3004, "Not authorized to accept bids on this auction", 403)


class BidNotFoundError(AppError):
    def __init__(self, bid_id: str) -> None:
        super().__init__(3005, f"Bid not found: {bid_id}", 404)


class BidNotPendingError(AppError):
    def __init__(self, bid_id: str, status: str) -> None:
        super().__init__(3006, f"Bid {bid_id} is not pending (status={status})", 400)


class ConcurrentModificationError(AppError):
    def __init__(self, auction_id: str) -> None:
        super().__init__(3007, f"Auction {auction_id} was modified concurrently, retry", 409)


# --- 4xxx: Payment ---

class PaymentNotFoundError(AppError):
    def __init__(self, ref: str) -> None:
        super().__init__(4001, f"Payment record not found: {ref}", 404)


class PaymentAlreadyProcessedError(AppError):
    def __init__(self, status: str) -> None:
        super().__init__(4002, f"Payment has already been processed (status={status})", 400)


class SignatureInvalidError(AppError):
    def __init__(self) -> None:
        super().__init__(4003, "Invalid payment signature", 400)


class PaymentInvalidStateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4004, detail, 400)


class NotPaymentOwnerError(AppError):
    def __init__(self) -> None:
        super().__init__(4005, "Not authorized to access this payment", 403)


class PaymentGatewayError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4006, f"Payment gateway error: {detail}", 502)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ValidationFailedError(AppError):
    """Malformed input, reported per field in ``errors``."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        super().__init__(9003, "Validation failed", 400)

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationFailedError":
        return cls([{"field": field, "message": message}])
