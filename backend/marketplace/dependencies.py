"""FastAPI dependencies that build webhook collaborators per request."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.config import settings
from marketplace.database import get_db
from marketplace.services.identity_sync import IdentitySyncHandler
from marketplace.services.payment_provider import PaymentProvider, StripeCheckoutProvider
from marketplace.services.reconciliation import ReconciliationEngine
from marketplace.services.signature import ClerkSignatureVerifier, StripeSignatureVerifier
from marketplace.services.store import SQLAlchemyStore


def get_store(db: AsyncSession = Depends(get_db)) -> SQLAlchemyStore:
    return SQLAlchemyStore(db)


def get_payment_provider() -> PaymentProvider:
    return StripeCheckoutProvider(settings.STRIPE_SECRET_KEY)


def get_stripe_verifier() -> StripeSignatureVerifier:
    return StripeSignatureVerifier(
        settings.STRIPE_WEBHOOK_SECRET,
        tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
    )


def get_clerk_verifier() -> ClerkSignatureVerifier:
    return ClerkSignatureVerifier(settings.CLERK_WEBHOOK_SECRET)


def get_reconciliation_engine(
    store: SQLAlchemyStore = Depends(get_store),
    payments: PaymentProvider = Depends(get_payment_provider),
) -> ReconciliationEngine:
    """
    Engine wired to this request's DB session.

    Tests override get_payment_provider (and get_db) to run it against fakes.
    """
    return ReconciliationEngine(
        store,
        payments,
        purchase_metadata_key=settings.CHECKOUT_PURCHASE_METADATA_KEY,
    )


def get_identity_sync_handler(store: SQLAlchemyStore = Depends(get_store)) -> IdentitySyncHandler:
    return IdentitySyncHandler(store)
