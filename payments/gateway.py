"""
Square Payment Gateway Adapter

Maps the storefront's requests onto Square API calls:
- Location lookup
- Payment creation against an order
- Order creation with per-call idempotency keys
- Webhook ingestion and signature verification
"""

import base64
import hashlib
import hmac
import json
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from api.schemas import LineItem, OrderRequest, PaymentRequest, WebhookPayload
from core.logging import BusinessEvents
from core.metrics import orders_total, payments_total, webhooks_total
from core.settings import Settings
from payments.errors import (
    NotFoundError,
    SquareApiError,
    SquareError,
    UpstreamError,
    WebhookSignatureError,
)
from payments.square_client import SquareClient

log = structlog.get_logger(__name__)

SIGNATURE_HEADER = "x-square-hmacsha256-signature"


def new_idempotency_key() -> str:
    return str(uuid.uuid4())


def compute_signature(signature_key: str, notification_url: str, body: bytes) -> str:
    """Square's webhook signature: base64(HMAC-SHA256(key, url + body))."""
    digest = hmac.new(
        signature_key.encode("utf-8"),
        notification_url.encode("utf-8") + body,
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(
    signature_key: str, notification_url: str, body: bytes, signature: str | None
) -> bool:
    if not signature:
        return False
    expected = compute_signature(signature_key, notification_url, body)
    return hmac.compare_digest(expected, signature)


def _error_fields(exc: SquareError) -> dict[str, Any]:
    if isinstance(exc, SquareApiError):
        return {
            "status_code": exc.status_code,
            "error": str(exc),
            "errors": [e.to_dict() for e in exc.errors],
        }
    return {"status_code": None, "error": str(exc), "errors": []}


@dataclass(frozen=True)
class PaymentResult:
    payment_id: Optional[str]
    status: Optional[str]


@dataclass(frozen=True)
class OrderResult:
    order_id: Optional[str]
    idempotency_key: str


class PaymentGateway:
    def __init__(
        self,
        client: SquareClient,
        settings: Settings,
        key_factory: Callable[[], str] = new_idempotency_key,
    ):
        self.client = client
        self.settings = settings
        self.key_factory = key_factory

    async def get_location_id(self) -> str:
        try:
            locations = await run_in_threadpool(self.client.list_locations)
        except SquareError as e:
            log.error(BusinessEvents.LOCATION_FAILURE, **_error_fields(e))
            raise UpstreamError.from_square("Location lookup failed.", e) from e

        if not locations:
            log.warning(BusinessEvents.LOCATION_LOOKUP, found=0)
            raise NotFoundError("No locations found.")

        location_id = locations[0].get("id")
        log.info(
            BusinessEvents.LOCATION_LOOKUP,
            found=len(locations),
            location_id=location_id,
        )
        return location_id

    def build_payment_body(
        self,
        req: PaymentRequest,
        idempotency_key: str,
        amount_money: Optional[dict[str, Any]] = None,
    ) -> dict:
        if amount_money is None:
            amount_money = {
                "amount": req.amount,
                "currency": req.currency or self.settings.DEFAULT_CURRENCY,
            }
        return {
            "source_id": req.nonce,
            "idempotency_key": idempotency_key,
            "reference_id": req.reference_id or str(int(time.time() * 1000)),
            "order_id": req.order_id,
            "amount_money": amount_money,
        }

    async def resolve_amount_money(self, req: PaymentRequest) -> dict[str, Any]:
        """Money to charge: the request's amount, else the order's total."""
        if req.amount is not None:
            return {
                "amount": req.amount,
                "currency": req.currency or self.settings.DEFAULT_CURRENCY,
            }

        order = await run_in_threadpool(self.client.retrieve_order, req.order_id)
        total = order.get("total_money") or {}
        if total.get("amount") is None:
            raise SquareApiError(
                404, [], f"Order {req.order_id} has no total to charge"
            )
        return {
            "amount": total["amount"],
            "currency": total.get("currency") or self.settings.DEFAULT_CURRENCY,
        }

    async def process_payment(self, req: PaymentRequest) -> PaymentResult:
        try:
            amount_money = await self.resolve_amount_money(req)
            body = self.build_payment_body(req, self.key_factory(), amount_money)
            log.info(
                BusinessEvents.PAYMENT_ATTEMPT,
                order_id=req.order_id,
                amount=amount_money["amount"],
                currency=amount_money["currency"],
                amount_source="request" if req.amount is not None else "order",
                reference_id=body["reference_id"],
                provider="square",
            )
            payment = await run_in_threadpool(self.client.create_payment, body)
        except SquareError as e:
            payments_total.labels(outcome="failure").inc()
            log.error(
                BusinessEvents.PAYMENT_FAILURE,
                order_id=req.order_id,
                provider="square",
                **_error_fields(e),
            )
            raise UpstreamError.from_square("Payment processing failed.", e) from e

        payments_total.labels(outcome="success").inc()
        log.info(
            BusinessEvents.PAYMENT_SUCCESS,
            order_id=req.order_id,
            provider="square",
            payment_id=payment.get("id"),
            status=payment.get("status"),
        )
        return PaymentResult(payment_id=payment.get("id"), status=payment.get("status"))

    @staticmethod
    def to_square_line_item(item: LineItem) -> dict[str, Any]:
        return {
            "name": item.name,
            "quantity": str(item.quantity),
            "base_price_money": {"amount": item.amount, "currency": item.currency},
        }

    def build_order_body(self, req: OrderRequest, idempotency_key: str) -> dict:
        return {
            "idempotency_key": idempotency_key,
            "order": {
                "location_id": req.location_id,
                "line_items": [self.to_square_line_item(i) for i in req.line_items],
            },
        }

    async def create_order(self, req: OrderRequest) -> OrderResult:
        idempotency_key = self.key_factory()
        body = self.build_order_body(req, idempotency_key)
        log.info(
            BusinessEvents.ORDER_ATTEMPT,
            location_id=req.location_id,
            line_items=len(req.line_items),
            idempotency_key=idempotency_key,
        )

        try:
            order = await run_in_threadpool(self.client.create_order, body)
        except SquareError as e:
            orders_total.labels(outcome="failure").inc()
            log.error(
                BusinessEvents.ORDER_FAILURE,
                location_id=req.location_id,
                idempotency_key=idempotency_key,
                **_error_fields(e),
            )
            raise UpstreamError.from_square("Order creation failed.", e) from e

        orders_total.labels(outcome="success").inc()
        log.info(
            BusinessEvents.ORDER_CREATED,
            order_id=order.get("id"),
            location_id=req.location_id,
            idempotency_key=idempotency_key,
        )
        return OrderResult(order_id=order.get("id"), idempotency_key=idempotency_key)

    def verify_webhook(self, body: bytes, signature: str | None, url: str) -> None:
        key = self.settings.SQUARE_WEBHOOK_SIGNATURE_KEY
        if not key:
            log.warning(BusinessEvents.WEBHOOK_UNVERIFIED, reason="no signature key")
            return

        notification_url = self.settings.SQUARE_WEBHOOK_NOTIFICATION_URL or url
        if not verify_signature(key, notification_url, body, signature):
            webhooks_total.labels(outcome="rejected").inc()
            log.warning(
                BusinessEvents.WEBHOOK_REJECTED,
                notification_url=notification_url,
                signature_present=bool(signature),
            )
            raise WebhookSignatureError("Invalid webhook signature.")

    async def receive_webhook(
        self, body: bytes, signature: str | None = None, url: str = ""
    ) -> Optional[WebhookPayload]:
        """Verify, parse and log a webhook. Returns None if the body is unparseable."""
        self.verify_webhook(body, signature, url)

        try:
            payload = WebhookPayload.model_validate(json.loads(body))
        except (ValueError, ValidationError) as e:
            webhooks_total.labels(outcome="unparsed").inc()
            log.warning(BusinessEvents.WEBHOOK_UNPARSED, error=str(e), size=len(body))
            return None

        webhooks_total.labels(outcome="accepted").inc()
        data = payload.data
        log.info(
            BusinessEvents.WEBHOOK_RECEIVED,
            merchant_id=payload.merchant_id,
            type=payload.type,
            event_id=payload.event_id,
            created_at=payload.created_at,
            object_type=data.type if data else None,
            object_id=data.id if data else None,
        )
        return payload
