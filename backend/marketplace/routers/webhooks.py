"""Webhook endpoints for Clerk identity events and Stripe payment events."""
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from marketplace.dependencies import (
    get_clerk_verifier,
    get_identity_sync_handler,
    get_reconciliation_engine,
    get_stripe_verifier,
)
from marketplace.exceptions import VerificationError, WebhookError
from marketplace.schemas.webhooks import PaymentWebhookAck
from marketplace.services.identity_sync import IdentitySyncHandler, build_identity_dispatcher
from marketplace.services.reconciliation import ReconciliationEngine, build_payment_dispatcher
from marketplace.services.signature import ClerkSignatureVerifier, StripeSignatureVerifier

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/identity-webhook")
@router.post("/clerk", include_in_schema=False)
async def clerk_webhook(
    request: Request,
    verifier: ClerkSignatureVerifier = Depends(get_clerk_verifier),
    handler: IdentitySyncHandler = Depends(get_identity_sync_handler),
):
    """
    Handle Clerk user events.

    - Verifies the Svix signature over the raw body
    - Mirrors user.created / user.updated / user.deleted locally
    - Always answers 200; failures are reported as {"success": false, "message": ...}
    """
    payload = await request.body()
    try:
        event = verifier.verify(payload, request.headers)
        await build_identity_dispatcher(handler).dispatch(event)
    except WebhookError as e:
        logger.warning(f"Clerk webhook not applied: {e.message}")
        return {"success": False, "message": e.message}

    return {}


@router.post("/payment-webhook", response_model=PaymentWebhookAck)
@router.post("/stripe", response_model=PaymentWebhookAck, include_in_schema=False)
async def stripe_webhook(
    request: Request,
    verifier: StripeSignatureVerifier = Depends(get_stripe_verifier),
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
):
    """
    Handle Stripe payment events.

    - Verifies the stripe-signature header over the raw body
    - payment_intent.succeeded completes the purchase and enrolls the buyer
    - payment_intent.payment_failed marks the purchase failed
    - Other event types are acknowledged without changes

    Error status codes are what make Stripe redeliver, so every domain error
    maps to its own code instead of a blanket 200.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    try:
        event = verifier.verify(payload, sig_header)
    except VerificationError as e:
        logger.error(f"Webhook signature verification failed: {e.message}")
        return PlainTextResponse(
            f"Webhook Error: {e.message}",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    logger.info(f"Received webhook event: {event.type}")

    try:
        outcome = await build_payment_dispatcher(engine).dispatch(event)
    except WebhookError as e:
        if e.status_code >= 500:
            logger.error(f"Error processing webhook {event.id}: {e.message}")
            return JSONResponse(
                status_code=e.status_code,
                content={"error": "Internal server error" if e.status_code == 500 else e.message},
            )
        logger.warning(
            "Webhook %s (%s) rejected with %s: %s",
            event.id, event.type, e.status_code, e.message,
        )
        return JSONResponse(status_code=e.status_code, content={"error": e.message})

    if outcome is not None:
        logger.info(f"Webhook {event.id} reconciled: {outcome.value}")
    return PaymentWebhookAck(received=True)
