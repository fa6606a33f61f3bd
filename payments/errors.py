"""
Error taxonomy for the payment gateway.

Client-level errors (``SquareApiError``, ``SquareTransportError``) describe what
went wrong talking to Square. Gateway-level errors are what the HTTP layer
sees; each carries the status code it should be rendered with.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SquareErrorDetail:
    """One entry of the ``errors`` list returned by the Square API."""

    category: str | None = None
    code: str | None = None
    detail: str | None = None
    field: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SquareErrorDetail":
        return cls(
            category=data.get("category"),
            code=data.get("code"),
            detail=data.get("detail"),
            field=data.get("field"),
        )

    def to_dict(self) -> dict[str, str | None]:
        return {
            "category": self.category,
            "code": self.code,
            "detail": self.detail,
            "field": self.field,
        }


class SquareError(Exception):
    """Base class for failures talking to Square."""


class SquareTransportError(SquareError):
    """The request never produced an HTTP response (timeout, DNS, reset...)."""


class SquareApiError(SquareError):
    """Square answered with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        errors: list[SquareErrorDetail] | None = None,
        message: str = "",
    ):
        self.status_code = status_code
        self.errors = errors or []
        super().__init__(message or f"Square API returned HTTP {status_code}")

    @property
    def retryable(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500


class GatewayError(Exception):
    """Error raised by the gateway adapter and rendered by the HTTP layer."""

    status_code = 500

    def __init__(
        self,
        message: str,
        upstream_status: int | None = None,
        errors: list[SquareErrorDetail] | None = None,
    ):
        self.message = message
        self.upstream_status = upstream_status
        self.errors = errors or []
        super().__init__(message)

    def to_body(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "status_code": self.upstream_status,
            "errors": [e.to_dict() for e in self.errors],
        }


class UpstreamError(GatewayError):
    """Square or the network between us failed."""

    @classmethod
    def from_square(cls, message: str, exc: SquareError) -> "UpstreamError":
        if isinstance(exc, SquareApiError):
            return cls(message, upstream_status=exc.status_code, errors=exc.errors)
        return cls(message)


class NotFoundError(GatewayError):
    status_code = 404


class WebhookSignatureError(GatewayError):
    status_code = 403
