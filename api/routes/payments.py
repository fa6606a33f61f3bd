"""
Payment Routes

Storefront-facing endpoints: location lookup, order creation and payment
creation. Each handler delegates to the gateway adapter; failures surface as
``GatewayError`` and are rendered by the application's exception handler.
"""

from fastapi import APIRouter, Depends

from api.schemas import (
    ErrorResponse,
    LocationIdResponse,
    OrderAck,
    OrderRequest,
    PaymentAck,
    PaymentRequest,
)
from core.dependencies import get_gateway
from payments.gateway import PaymentGateway

router = APIRouter(tags=["Payments"])


@router.get(
    "/get-location-id",
    response_model=LocationIdResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_location_id(gateway: PaymentGateway = Depends(get_gateway)):
    """Return the id of the merchant's first Square location."""
    location_id = await gateway.get_location_id()
    return LocationIdResponse(location_id=location_id)


@router.post(
    "/process-payment",
    response_model=PaymentAck,
    responses={500: {"model": ErrorResponse}},
)
async def process_payment(
    payment_request: PaymentRequest, gateway: PaymentGateway = Depends(get_gateway)
):
    result = await gateway.process_payment(payment_request)
    return PaymentAck(payment_id=result.payment_id, status=result.status)


@router.post(
    "/create-order",
    response_model=OrderAck,
    responses={500: {"model": ErrorResponse}},
)
async def create_order(
    order_request: OrderRequest, gateway: PaymentGateway = Depends(get_gateway)
):
    result = await gateway.create_order(order_request)
    return OrderAck(order_id=result.order_id, idempotency_key=result.idempotency_key)
