"""
Webhook handlers for payment providers
"""

from fastapi import APIRouter, Depends, Request

from api.schemas import ErrorResponse, WebhookAck
from core.dependencies import get_gateway
from payments.gateway import SIGNATURE_HEADER, PaymentGateway

router = APIRouter(tags=["Webhooks"])


@router.post(
    "/payment-webhook",
    response_model=WebhookAck,
    responses={403: {"model": ErrorResponse}},
)
async def square_webhook(
    request: Request, gateway: PaymentGateway = Depends(get_gateway)
):
    # Raw body is needed for signature verification
    payload = await request.body()
    await gateway.receive_webhook(
        payload,
        signature=request.headers.get(SIGNATURE_HEADER),
        url=str(request.url),
    )
    # Acknowledged even when the body could not be parsed
    return WebhookAck()
