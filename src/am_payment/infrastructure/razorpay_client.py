"""Razorpay REST client (orders + refunds) over httpx.

Authenticates with HTTP Basic (key_id, key_secret). Any transport failure,
non-2xx status or unparseable body surfaces as PaymentGatewayError (502) so
callers never mutate local state on a failed gateway call.
"""

import logging
from typing import Any

import httpx

from config.settings import settings
from src.am_common.errors import PaymentGatewayError
from src.am_payment.domain.gateway import GatewayOrder, GatewayRefund

logger = logging.getLogger(__name__)


def _error_description(response: httpx.Response) -> str:
    """Razorpay errors look like {"error": {"code": ..., "description": ...}}."""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return f"HTTP {response.status_code}: {error['description']}"
    return f"HTTP {response.status_code}"


class RazorpayClient:
    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self._key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self._base_url = base_url or settings.RAZORPAY_BASE_URL
        self._timeout = timeout if timeout is not None else settings.RAZORPAY_TIMEOUT_SECONDS
        self._transport = transport

    async def create_order(
        self, amount: int, currency: str, receipt: str, notes: dict[str, str]
    ) -> GatewayOrder:
        data = await self._post(
            "/orders",
            {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes},
        )
        try:
            order = GatewayOrder(
                id=str(data["id"]),
                amount=int(data["amount"]),
                currency=str(data["currency"]),
                receipt=data.get("receipt"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise PaymentGatewayError(f"unexpected order response: {e}") from e
        logger.info("Gateway order %s created (%d %s)", order.id, order.amount, order.currency)
        return order

    async def refund(
        self, gateway_payment_id: str, amount: int, notes: dict[str, str]
    ) -> GatewayRefund:
        data = await self._post(
            f"/payments/{gateway_payment_id}/refund",
            {"amount": amount, "notes": notes},
        )
        try:
            refund = GatewayRefund(
                id=str(data["id"]),
                payment_id=str(data.get("payment_id", gateway_payment_id)),
                amount=int(data["amount"]),
                status=str(data.get("status", "processed")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise PaymentGatewayError(f"unexpected refund response: {e}") from e
        logger.info("Gateway refund %s for payment %s (%d)", refund.id, gateway_payment_id, amount)
        return refund

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                auth=(self._key_id, self._key_secret),
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=payload)
        except httpx.HTTPError as e:
            logger.error("Gateway request %s failed: %s", path, e)
            raise PaymentGatewayError(type(e).__name__) from e

        if response.is_error:
            detail = _error_description(response)
            logger.error("Gateway request %s rejected: %s", path, detail)
            raise PaymentGatewayError(detail)

        try:
            body = response.json()
        except ValueError as e:
            raise PaymentGatewayError("malformed response body") from e
        if not isinstance(body, dict):
            raise PaymentGatewayError("malformed response body")
        return body
