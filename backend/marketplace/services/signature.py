"""
Webhook signature verification.

Both verifiers work on the raw request body. Signatures are computed over
the exact bytes the sender transmitted, so the body must never be parsed and
re-serialised before it reaches `verify`.
"""
import json
import logging
from typing import Mapping, Optional

import stripe
from pydantic import ValidationError
from svix.webhooks import Webhook, WebhookVerificationError

from marketplace.exceptions import VerificationError
from marketplace.schemas.webhooks import VerifiedEvent

logger = logging.getLogger(__name__)

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


def _to_event(body: object) -> VerifiedEvent:
    if not isinstance(body, dict):
        raise VerificationError("Event payload is not a JSON object")
    try:
        return VerifiedEvent.model_validate(body)
    except ValidationError as e:
        raise VerificationError(f"Malformed event: {e.errors()[0]['msg']}") from e


class StripeSignatureVerifier:
    """Checks the `stripe-signature` header (t=<timestamp>,v1=<hmac>)."""

    def __init__(self, secret: str, tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE):
        self.secret = secret
        self.tolerance = tolerance

    def verify(self, raw_body: bytes, signature_header: Optional[str]) -> VerifiedEvent:
        if not signature_header:
            raise VerificationError("Missing stripe-signature header")

        try:
            payload = raw_body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise VerificationError("Payload is not valid UTF-8") from e

        try:
            stripe.WebhookSignature.verify_header(
                payload, signature_header, self.secret, self.tolerance
            )
        except stripe.SignatureVerificationError as e:
            raise VerificationError(str(e)) from e

        try:
            body = json.loads(payload)
        except ValueError as e:
            raise VerificationError("Invalid payload") from e

        return _to_event(body)


class ClerkSignatureVerifier:
    """Checks Clerk deliveries, which are signed by Svix."""

    def __init__(self, secret: str):
        self.secret = secret

    def _webhook(self) -> Webhook:
        # Svix decodes the secret eagerly; an empty or non-base64 value fails here.
        try:
            return Webhook(self.secret)
        except (RuntimeError, ValueError) as e:
            logger.error(f"Clerk webhook secret is unusable: {e}")
            raise VerificationError("Webhook secret is not configured correctly") from e

    def verify(self, raw_body: bytes, headers: Mapping[str, str]) -> VerifiedEvent:
        lowered = {k.lower(): v for k, v in headers.items()}
        missing = [name for name in SVIX_HEADERS if not lowered.get(name)]
        if missing:
            raise VerificationError(f"Missing {', '.join(missing)} header")

        webhook = self._webhook()
        try:
            # Only the exception matters; newer svix releases return None.
            webhook.verify(raw_body, {name: lowered[name] for name in SVIX_HEADERS})
        except WebhookVerificationError as e:
            raise VerificationError(str(e) or "Invalid signature") from e
        except ValueError as e:
            raise VerificationError("Invalid payload") from e

        try:
            body = json.loads(raw_body)
        except ValueError as e:
            raise VerificationError("Invalid payload") from e

        return _to_event(body)
