import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from pozhi.core.dependencies import (
    enforce_payment_rate_limit,
    get_current_active_user,
    get_payment_coordinator,
    get_payment_gateway,
    get_webhook_dispatcher,
)
from pozhi.core.errors import SignatureInvalid
from pozhi.models.user import User
from pozhi.schemas.payment import PaymentIntentCreateRequest, PaymentIntentCreateResponse, WebhookAck
from pozhi.services.payment_coordinator import PaymentCoordinator
from pozhi.services.payment_gateway import PaymentGateway
from pozhi.services.webhook_dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/create-intent",
    response_model=PaymentIntentCreateResponse,
    dependencies=[Depends(enforce_payment_rate_limit)],
)
def create_payment_intent_endpoint(
    payload: PaymentIntentCreateRequest,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    coordinator: PaymentCoordinator = Depends(get_payment_coordinator),
):
    """
    Return a client secret for paying one of the caller's orders.
    The amount is always the order's stored total; the body only names the order.
    """
    request_ip = request.client.host if request.client else None
    client_secret = coordinator.begin_payment(current_user.id, payload.orderId, request_ip=request_ip)
    return PaymentIntentCreateResponse(success=True, clientSecret=client_secret)


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
):
    """
    Processor callback. Trust comes from the signature over the raw body, not from a session.
    """
    payload = await request.body()

    if not stripe_signature:
        logger.warning("Webhook received without a signature header")
        return PlainTextResponse("Webhook Error: No signature", status_code=400)

    try:
        event = gateway.construct_event(payload, stripe_signature)
    except SignatureInvalid as e:
        return PlainTextResponse(f"Webhook Error: {e.message}", status_code=400)

    try:
        await run_in_threadpool(dispatcher.dispatch, event)
    except Exception:
        # Acknowledge anyway: a non-2xx answer makes the processor redeliver and eventually disable the endpoint
        logger.exception(f"Webhook event {event.get('id')} ({event.get('type')}) failed during handling")

    return WebhookAck(received=True)
