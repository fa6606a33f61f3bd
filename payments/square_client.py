"""
Square API client

Thin wrapper around the Square REST endpoints the gateway needs:
- Listing merchant locations
- Creating payments
- Creating orders
- Retrieving an order to price a payment

The gateway only depends on ``SquareClient``, so tests can swap in a fake.
"""

from abc import ABC, abstractmethod
from typing import Any

from urllib.parse import quote

import requests
import structlog
import tenacity

from core.metrics import square_request_latency
from core.settings import Settings
from payments.errors import (
    SquareApiError,
    SquareError,
    SquareErrorDetail,
    SquareTransportError,
)

log = structlog.get_logger(__name__)


class SquareClient(ABC):
    """Capabilities the gateway needs from the payment platform."""

    @abstractmethod
    def list_locations(self) -> list[dict[str, Any]]:
        """Return the merchant's locations (possibly empty)."""

    @abstractmethod
    def create_payment(self, body: dict[str, Any]) -> dict[str, Any]:
        """Create a payment and return the ``payment`` object."""

    @abstractmethod
    def create_order(self, body: dict[str, Any]) -> dict[str, Any]:
        """Create an order and return the ``order`` object."""

    @abstractmethod
    def retrieve_order(self, order_id: str) -> dict[str, Any]:
        """Fetch an existing order by id."""

    def test_connection(self) -> bool:
        """Test the Square API connection."""
        try:
            self.list_locations()
            return True
        except SquareError:
            return False


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, SquareTransportError):
        return True
    return isinstance(exc, SquareApiError) and exc.retryable


def _parse_errors(response: requests.Response) -> list[SquareErrorDetail]:
    try:
        payload = response.json()
    except ValueError:
        return []
    if not isinstance(payload, dict):
        return []
    return [
        SquareErrorDetail.from_dict(e)
        for e in payload.get("errors") or []
        if isinstance(e, dict)
    ]


class SquareHttpClient(SquareClient):
    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self.base = settings.square_base_url
        self.timeout = settings.SQUARE_REQUEST_TIMEOUT
        self.max_retries = max(1, settings.SQUARE_MAX_RETRIES)
        self.retry_wait = tenacity.wait_exponential(multiplier=0.5, min=0.5, max=8)
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {settings.SQUARE_ACCESS_TOKEN}",
                "Square-Version": settings.SQUARE_API_VERSION,
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    def _send(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        endpoint: str | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base}{path}"
        try:
            with square_request_latency.labels(endpoint=endpoint or path).time():
                response = self.session.request(
                    method, url, json=body, timeout=self.timeout
                )
        except requests.RequestException as e:
            log.warning(
                "square.transport_error", method=method, path=path, error=str(e)
            )
            raise SquareTransportError(str(e)) from e

        if response.status_code not in (200, 201):
            errors = _parse_errors(response)
            log.warning(
                "square.api_error",
                method=method,
                path=path,
                status_code=response.status_code,
                errors=[e.to_dict() for e in errors],
            )
            message = errors[0].detail if errors and errors[0].detail else ""
            raise SquareApiError(response.status_code, errors, message)

        try:
            return response.json()
        except ValueError as e:
            log.warning(
                "square.invalid_body",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise SquareApiError(
                response.status_code, [], "Invalid JSON from Square"
            ) from e

    def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        endpoint: str | None = None,
    ) -> dict[str, Any]:
        # The body is built once by the caller, so every attempt resends the
        # same idempotency key.
        retrying = tenacity.Retrying(
            stop=tenacity.stop_after_attempt(self.max_retries),
            wait=self.retry_wait,
            retry=tenacity.retry_if_exception(_is_retryable),
            reraise=True,
        )
        return retrying(self._send, method, path, body, endpoint)

    def list_locations(self) -> list[dict[str, Any]]:
        return self._request("GET", "/v2/locations").get("locations") or []

    def create_payment(self, body: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/v2/payments", body).get("payment") or {}

    def create_order(self, body: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/v2/orders", body).get("order") or {}

    def retrieve_order(self, order_id: str) -> dict[str, Any]:
        path = f"/v2/orders/{quote(order_id, safe='')}"
        response = self._request("GET", path, endpoint="/v2/orders/{order_id}")
        return response.get("order") or {}
