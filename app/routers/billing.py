from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request, status

from app.config import logger
from app.core import billing
from app.core.security import log_security_event
from app.schemas import WebhookResponse

router = APIRouter(prefix="/api/billing", tags=["Billing"])


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
) -> WebhookResponse:
    """Record subscription changes pushed by Stripe."""
    payload = await request.body()
    try:
        event = billing.construct_event(payload, stripe_signature)
    except billing.BillingWebhookError as e:
        log_security_event("stripe_webhook_rejected", request=request, details={"error": str(e)})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        outcome = billing.handle_event(event)
    except billing.BillingError as e:
        logger.error("Stripe event %s could not be applied: %s", event.get("id"), e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to apply billing event")

    if outcome is None:
        return WebhookResponse()
    uid, state = outcome
    return WebhookResponse(user_id=uid, tier=state.tier.value)
