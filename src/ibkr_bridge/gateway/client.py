from __future__ import annotations

from typing import Any, Optional, Union

import httpx

from ibkr_bridge.config import DEFAULT_BASE_URL
from ibkr_bridge.core.logger import get_logger, log_order_event
from ibkr_bridge.core.timeutils import iso, utcnow
from ibkr_bridge.gateway.models import (
    HealthStatus,
    OrderRequest,
    OrderResult,
    PositionsResult,
)

log = get_logger("gateway")


class GatewayResponseError(Exception):
    """Raised when the gateway answers with a body that is not JSON."""
    pass


def error_message(error: BaseException) -> str:
    """Message of an exception, falling back to its type name."""
    return str(error) or type(error).__name__


class GatewayClient:
    """REST client for a locally running brokerage gateway.

    Every call is a single request; timeouts and TLS verification are
    owned by the underlying httpx client and nothing is retried.

    Endpoints used:
    - GET  /iserver/auth/status - Health / authentication check
    - GET  /portfolio/{accountId}/positions - Account positions
    - GET  /iserver/secdef/search - Instrument search
    - POST /iserver/account/{accountId}/orders - Order submission

    Usage:
        with GatewayClient("http://localhost:4001/v1/api") as client:
            print(client.check_health().to_dict())
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        verify: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            timeout=timeout,
            verify=verify,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()
        log.debug("Gateway client closed")

    def __enter__(self) -> "GatewayClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _decode(self, response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise GatewayResponseError(
                f"Invalid JSON from {response.request.url.path}: {response.text[:100]}"
            ) from e

    def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET a gateway path and return the decoded JSON body.

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx status
        """
        r = self.client.get(self._url(path), params=params)
        r.raise_for_status()
        return self._decode(r)

    def post(self, path: str, body: dict[str, Any]) -> Any:
        """POST a JSON body to a gateway path and return the decoded JSON body."""
        r = self.client.post(self._url(path), json=body)
        r.raise_for_status()
        return self._decode(r)

    def check_health(self) -> HealthStatus:
        """Check gateway reachability and authentication.

        Never raises: any failure is reported as an unhealthy status.
        """
        url = self._url("/iserver/auth/status")
        try:
            r = self.client.get(url)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            log.warning(f"Gateway health check failed: {e.response.status_code}")
            return HealthStatus(
                status="unhealthy",
                authenticated=False,
                timestamp=iso(utcnow()),
                status_code=e.response.status_code,
                error=error_message(e),
            )
        except Exception as e:
            log.warning(f"Gateway health check failed: {e}")
            return HealthStatus(
                status="unhealthy",
                authenticated=False,
                timestamp=iso(utcnow()),
                error=error_message(e),
            )

        ok = r.status_code == 200
        log.debug(f"Gateway health: {r.status_code}")
        return HealthStatus(
            status="healthy" if ok else "unhealthy",
            authenticated=ok,
            timestamp=iso(utcnow()),
            status_code=r.status_code,
        )

    def list_positions(self, account_id: str) -> Union[PositionsResult, Any]:
        """Get the account's positions.

        Returns:
            PositionsResult when the gateway answers with a list, otherwise
            the gateway's response unchanged

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx status
        """
        data = self.get(f"/portfolio/{account_id}/positions")
        if isinstance(data, list):
            log.info(f"Fetched {len(data)} positions for {account_id}")
            return PositionsResult(positions=data)
        return data

    def search_contracts(self, symbol: str) -> Any:
        """Search stock contract definitions matching a symbol."""
        return self.get(
            "/iserver/secdef/search",
            params={"symbol": symbol, "name": "true", "secType": "STK"},
        )

    def submit_order(self, order: OrderRequest) -> OrderResult:
        """Submit a single order.

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx status
        """
        data = self.post(
            f"/iserver/account/{order.account_id}/orders",
            {"orders": [order.to_payload()]},
        )
        result = normalize_order_response(order, data)
        log_order_event(
            log,
            "order_submitted",
            order.symbol,
            side=order.side.value,
            quantity=order.quantity,
            order_type=order.order_type.value,
            order_id=result.order_id,
            status=result.status,
        )
        return result


def normalize_order_response(order: OrderRequest, data: Any) -> OrderResult:
    """Turn a submission response into an OrderResult.

    The gateway answers with either an object or a list of reply objects;
    the first object is used. When the list holds more than one reply, or
    its first entry is not an object, the whole list is kept under
    ``replies``. ``id``/``status`` win over the snake_case
    ``order_id``/``order_status``; status falls back to "submitted".
    """
    replies = None
    if isinstance(data, list):
        if len(data) > 1 or (data and not isinstance(data[0], dict)):
            replies = list(data)
        data = data[0] if data and isinstance(data[0], dict) else {}
    if not isinstance(data, dict):
        data = {}

    order_id = data.get("id") or data.get("orderId") or data.get("order_id")
    status = data.get("status") or data.get("order_status") or "submitted"
    return OrderResult(
        order_id=str(order_id) if order_id is not None else None,
        status=str(status),
        order=order,
        raw=dict(data) if replies is None else {**data, "replies": replies},
    )
