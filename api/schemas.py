"""
API Schemas Module

This module defines Pydantic models for request/response validation.
Inbound request bodies use the camelCase names the storefront sends;
webhook payloads follow Square's snake_case wire format.
"""

from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
    model_validator,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LineItem(CamelModel):
    """One order line, priced in minor currency units."""

    name: str = Field(min_length=1)
    amount: int = Field(ge=0)
    currency: str = Field(min_length=3, max_length=3)
    quantity: int = Field(gt=0)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class OrderRequest(CamelModel):
    location_id: str = Field(alias="locationId", min_length=1)
    line_items: list[LineItem] = Field(alias="lineItems", min_length=1)


class PaymentRequest(CamelModel):
    """Charge a card nonce against an order.

    Without ``amount`` the order's ``total_money`` is charged.
    """

    nonce: str = Field(min_length=1)
    order_id: str = Field(alias="orderId", min_length=1)
    amount: Optional[int] = Field(default=None, gt=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    reference_id: Optional[str] = Field(default=None, alias="referenceId")

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class LocationIdResponse(CamelModel):
    location_id: str = Field(serialization_alias="locationId")


class PaymentAck(CamelModel):
    message: str = "Payment request submitted."
    payment_id: Optional[str] = Field(default=None, serialization_alias="paymentId")
    status: Optional[str] = None


class OrderAck(CamelModel):
    message: str = "Order creation initiated."
    order_id: Optional[str] = Field(default=None, serialization_alias="orderId")
    idempotency_key: str = Field(serialization_alias="idempotencyKey")


class WebhookAck(BaseModel):
    message: str = "Webhook processed successfully"


class ErrorDetail(BaseModel):
    category: Optional[str] = None
    code: Optional[str] = None
    detail: Optional[str] = None
    field: Optional[str] = None


class ErrorResponse(BaseModel):
    """Body returned for every gateway failure."""

    detail: str
    status_code: Optional[int] = None
    errors: list[ErrorDetail] = []


class WebhookData(BaseModel):
    type: Optional[str] = None
    id: Optional[str] = None
    object: Optional[dict[str, Any]] = None

    model_config = ConfigDict(extra="allow")


# Envelope fields also accepted in camelCase.
_CAMEL_NAMES = {
    "merchant_id": "merchantId",
    "event_id": "eventId",
    "created_at": "createdAt",
}


class WebhookPayload(BaseModel):
    """Square event notification envelope.

    ``data.object`` is the polymorphic event body (e.g. ``order_created``) and
    is kept as raw JSON. Unknown top-level fields survive a decode/encode
    round trip, and so does the spelling (snake or camel) of each envelope
    field.
    """

    merchant_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("merchant_id", "merchantId")
    )
    type: Optional[str] = None
    event_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("event_id", "eventId")
    )
    created_at: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )
    data: Optional[WebhookData] = None

    model_config = ConfigDict(extra="allow")

    _input_names: dict[str, str] = PrivateAttr(default_factory=dict)

    @model_validator(mode="wrap")
    @classmethod
    def remember_spelling(cls, data: Any, handler):
        payload = handler(data)
        if isinstance(data, dict):
            payload._input_names = {
                field: camel
                for field, camel in _CAMEL_NAMES.items()
                if camel in data and field not in data
            }
        return payload

    def to_json_dict(self) -> dict[str, Any]:
        dumped = self.model_dump(mode="json", exclude_unset=True)
        return {self._input_names.get(k, k): v for k, v in dumped.items()}
