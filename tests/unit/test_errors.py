"""Tests for am_common.errors and am_common.response."""

from src.am_common.errors import (
    AlreadyPurchasedError,
    AppError,
    AuctionNotFoundError,
    BidNotPendingError,
    ConcurrentModificationError,
    PaymentAlreadyProcessedError,
    PaymentGatewayError,
    SelfBidForbiddenError,
    ValidationFailedError,
)
from src.am_common.response import ApiResponse, error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_custom_http_status(self) -> None:
        err = AppError(code=1001, message="Username taken", http_status=409)
        assert err.http_status == 409

    def test_is_exception(self) -> None:
        err = AppError(code=1001, message="test")
        assert isinstance(err, Exception)


class TestSpecificErrors:
    def test_auction_not_found(self) -> None:
        err = AuctionNotFoundError("auc-1")
        assert err.code == 3001
        assert err.http_status == 404
        assert "auc-1" in err.message

    def test_self_bid(self) -> None:
        err = SelfBidForbiddenError()
        assert err.code == 3003
        assert err.http_status == 400

    def test_bid_not_pending_mentions_status(self) -> None:
        err = BidNotPendingError("bid-1", "rejected")
        assert err.code == 3006
        assert "rejected" in err.message

    def test_concurrent_modification_is_conflict(self) -> None:
        err = ConcurrentModificationError("auc-1")
        assert err.code == 3007
        assert err.http_status == 409

    def test_already_purchased_is_conflict(self) -> None:
        err = AlreadyPurchasedError("app-1")
        assert err.code == 2002
        assert err.http_status == 409

    def test_payment_already_processed(self) -> None:
        err = PaymentAlreadyProcessedError("completed")
        assert err.code == 4002
        assert err.http_status == 400
        assert "completed" in err.message

    def test_gateway_error_is_bad_gateway(self) -> None:
        err = PaymentGatewayError("timeout")
        assert err.code == 4006
        assert err.http_status == 502

    def test_validation_failed_single(self) -> None:
        err = ValidationFailedError.single("amount", "must be positive")
        assert err.code == 9003
        assert err.http_status == 400
        assert err.errors == [{"field": "amount", "message": "must be positive"}]


class TestApiResponse:
    def test_success(self) -> None:
        resp = success_response({"id": "abc"})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": "abc"}

    def test_error(self) -> None:
        resp = error_response(3001, "Auction not found")
        assert resp.code == 3001
        assert resp.message == "Auction not found"
        assert resp.data is None

    def test_serialization(self) -> None:
        resp = success_response({"price": "199.00"})
        d = resp.model_dump()
        assert set(d) == {"code", "message", "data", "timestamp", "request_id"}

    def test_request_id_prefix(self) -> None:
        assert ApiResponse().request_id.startswith("req_")
