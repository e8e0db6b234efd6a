"""Stripe checkout session lookups used by payment reconciliation."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import stripe

from marketplace.exceptions import PaymentProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    """The parts of a Stripe Checkout Session reconciliation needs."""

    id: str
    payment_intent: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


class PaymentProvider(Protocol):
    async def list_checkout_sessions(self, payment_intent_id: str) -> List[CheckoutSession]: ...


def _plain_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return dict(to_dict())
    return dict(obj)


class StripeCheckoutProvider:
    """
    Resolves payment intents to the checkout sessions that created them.

    The API key is passed per call instead of being set on the `stripe`
    module, so several providers (and test fakes) can coexist.
    """

    def __init__(self, api_key: str):
        self.api_key = api_key

    async def list_checkout_sessions(self, payment_intent_id: str) -> List[CheckoutSession]:
        try:
            page = await asyncio.to_thread(
                stripe.checkout.Session.list,
                payment_intent=payment_intent_id,
                limit=1,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error("Stripe session lookup failed for %s: %s", payment_intent_id, e)
            raise PaymentProviderError(
                f"Failed to list checkout sessions: {e}",
                details={"payment_intent": payment_intent_id},
            ) from e

        sessions = []
        for session in page.data:
            sessions.append(
                CheckoutSession(
                    id=session.id,
                    payment_intent=getattr(session, "payment_intent", None),
                    metadata={str(k): str(v) for k, v in _plain_dict(getattr(session, "metadata", None)).items()},
                )
            )
        return sessions
