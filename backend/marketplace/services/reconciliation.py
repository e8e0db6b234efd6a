"""
Payment reconciliation: applies Stripe payment outcomes to purchases.

A purchase is created "pending" when its checkout session is opened. Stripe
later reports the payment intent as succeeded or failed, and this module
resolves that intent back to the purchase through the checkout session
metadata, then moves the purchase to its terminal state:

    pending --succeeded--> completed   (user enrolled in the course)
    pending --failed-----> failed
    completed / failed --any--> unchanged

Stripe delivers at least once and in no particular order, so every step is
safe to replay. Enrollment is skipped when the user is already enrolled, and
terminal purchases are never touched again.
"""
import enum
import logging
from typing import Optional

from marketplace.exceptions import (
    CourseNotFoundError,
    MalformedEventError,
    MissingMetadataError,
    PurchaseNotFoundError,
    SessionNotFoundError,
    UserNotFoundError,
)
from marketplace.models.purchase import PurchaseStatus
from marketplace.schemas.webhooks import PaymentEventType, VerifiedEvent
from marketplace.services.dispatcher import EventDispatcher
from marketplace.services.payment_provider import CheckoutSession, PaymentProvider
from marketplace.services.store import PersistenceGateway

logger = logging.getLogger(__name__)

DEFAULT_PURCHASE_METADATA_KEY = "purchaseId"


class ReconciliationOutcome(str, enum.Enum):
    COMPLETED = "completed"
    ALREADY_COMPLETED = "already_completed"
    FAILED = "failed"
    ALREADY_TERMINAL = "already_terminal"
    SKIPPED = "skipped"


class ReconciliationEngine:
    """Resolves payment events to purchases and applies state transitions."""

    def __init__(
        self,
        store: PersistenceGateway,
        payments: PaymentProvider,
        purchase_metadata_key: str = DEFAULT_PURCHASE_METADATA_KEY,
    ):
        self.store = store
        self.payments = payments
        self.purchase_metadata_key = purchase_metadata_key

    @staticmethod
    def payment_intent_id(event: VerifiedEvent) -> str:
        payment_intent_id = event.data_object.get("id")
        if not payment_intent_id or not isinstance(payment_intent_id, str):
            raise MalformedEventError(
                f"{event.type} event has no payment intent id",
                details={"event_id": event.id},
            )
        return payment_intent_id

    async def find_session(self, payment_intent_id: str) -> Optional[CheckoutSession]:
        sessions = await self.payments.list_checkout_sessions(payment_intent_id)
        return sessions[0] if sessions else None

    def purchase_id_from(self, session: CheckoutSession) -> Optional[str]:
        return session.metadata.get(self.purchase_metadata_key) or None

    async def handle_payment_succeeded(self, event: VerifiedEvent) -> ReconciliationOutcome:
        """
        Complete the purchase paid by this payment intent and enroll the buyer.

        Raises:
            MalformedEventError: the event carries no payment intent id
            SessionNotFoundError: Stripe has no checkout session for the intent yet
            MissingMetadataError: the session was created without a purchase id
            PurchaseNotFoundError, UserNotFoundError, CourseNotFoundError:
                the purchase or one of its references does not exist
        """
        payment_intent_id = self.payment_intent_id(event)
        logger.info(f"Processing successful payment {payment_intent_id}")

        session = await self.find_session(payment_intent_id)
        if session is None:
            logger.error(f"No checkout session found for payment intent {payment_intent_id}")
            raise SessionNotFoundError(
                "No session found",
                details={"payment_intent": payment_intent_id},
            )

        purchase_id = self.purchase_id_from(session)
        if purchase_id is None:
            logger.error(
                "Checkout session %s has no %s in metadata",
                session.id, self.purchase_metadata_key,
            )
            raise MissingMetadataError(
                f"No {self.purchase_metadata_key} in metadata",
                details={"session_id": session.id},
            )
        logger.info(f"Purchase {purchase_id} resolved from session {session.id}")

        async with self.store.transaction():
            purchase = await self.store.find_purchase_by_id(purchase_id, for_update=True)
            if purchase is None:
                logger.error(f"Purchase not found: {purchase_id}")
                raise PurchaseNotFoundError("Purchase not found", details={"purchase_id": purchase_id})

            if purchase.status == PurchaseStatus.COMPLETED.value:
                logger.info(f"Purchase {purchase_id} already completed, nothing to do")
                return ReconciliationOutcome.ALREADY_COMPLETED
            if purchase.is_terminal:
                logger.warning(
                    "Payment %s succeeded but purchase %s is %s; left unchanged for manual review",
                    payment_intent_id, purchase_id, purchase.status,
                )
                return ReconciliationOutcome.ALREADY_TERMINAL

            user = await self.store.find_user_by_id(purchase.user_id) if purchase.user_id else None
            if user is None:
                logger.error(f"User not found: {purchase.user_id}")
                raise UserNotFoundError("User not found", details={"user_id": purchase.user_id})

            course = await self.store.find_course_by_id(purchase.course_id) if purchase.course_id else None
            if course is None:
                logger.error(f"Course not found: {purchase.course_id}")
                raise CourseNotFoundError("Course not found", details={"course_id": purchase.course_id})

            if await self.store.is_enrolled(user.id, course.id):
                logger.info(f"User {user.id} already enrolled in course {course.id}")
            else:
                # One enrollments row backs both User.enrolled_courses and
                # Course.enrolled_students.
                await self.store.enroll(user.id, course.id)
                logger.info(f"User {user.id} enrolled in course {course.id}")

            purchase.status = PurchaseStatus.COMPLETED.value
            await self.store.save_purchase(purchase)

        logger.info(f"Purchase {purchase_id} status updated to completed")
        return ReconciliationOutcome.COMPLETED

    async def handle_payment_failed(self, event: VerifiedEvent) -> ReconciliationOutcome:
        """
        Mark the purchase behind a failed payment intent as failed.

        Missing linkage (no session, no purchase id, no purchase) leaves
        nothing to compensate, so it is logged and acknowledged.
        """
        payment_intent_id = self.payment_intent_id(event)
        logger.info(f"Processing failed payment {payment_intent_id}")

        session = await self.find_session(payment_intent_id)
        if session is None:
            logger.warning(f"No checkout session for failed payment {payment_intent_id}")
            return ReconciliationOutcome.SKIPPED

        purchase_id = self.purchase_id_from(session)
        if purchase_id is None:
            logger.warning(f"Checkout session {session.id} has no purchase id, failure ignored")
            return ReconciliationOutcome.SKIPPED

        async with self.store.transaction():
            purchase = await self.store.find_purchase_by_id(purchase_id, for_update=True)
            if purchase is None:
                logger.warning(f"Purchase {purchase_id} not found, failure ignored")
                return ReconciliationOutcome.SKIPPED

            if purchase.is_terminal:
                if purchase.status == PurchaseStatus.COMPLETED.value:
                    logger.warning(
                        "Late failure for payment %s ignored; purchase %s is already completed",
                        payment_intent_id, purchase_id,
                    )
                return ReconciliationOutcome.ALREADY_TERMINAL

            purchase.status = PurchaseStatus.FAILED.value
            await self.store.save_purchase(purchase)

        logger.info(f"Purchase {purchase_id} status updated to failed")
        return ReconciliationOutcome.FAILED


def build_payment_dispatcher(engine: ReconciliationEngine) -> EventDispatcher:
    dispatcher = EventDispatcher(PaymentEventType)
    dispatcher.register(PaymentEventType.PAYMENT_SUCCEEDED, engine.handle_payment_succeeded)
    dispatcher.register(PaymentEventType.PAYMENT_FAILED, engine.handle_payment_failed)
    return dispatcher
