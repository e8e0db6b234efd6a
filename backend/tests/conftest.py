"""Pytest configuration and fixtures."""
import hashlib
import hmac
import json
import time
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from svix.webhooks import Webhook

from main import app
from marketplace.database import Base, get_db
from marketplace.dependencies import get_clerk_verifier, get_payment_provider, get_stripe_verifier
from marketplace.models import Course, Purchase, User, enrollments
from marketplace.services.payment_provider import CheckoutSession
from marketplace.services.signature import ClerkSignatureVerifier, StripeSignatureVerifier
from marketplace.services.store import SQLAlchemyStore


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
STRIPE_TEST_SECRET = "whsec_stripe_test_secret"
CLERK_TEST_SECRET = "whsec_MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw"


class FakePaymentProvider:
    """In-memory stand-in for StripeCheckoutProvider."""

    def __init__(self):
        self.sessions = {}
        self.calls = []
        self.error = None

    def link(self, payment_intent_id, purchase_id=None, session_id="cs_test_1", metadata=None):
        if metadata is None:
            metadata = {"purchaseId": purchase_id} if purchase_id else {}
        self.sessions.setdefault(payment_intent_id, []).append(
            CheckoutSession(id=session_id, payment_intent=payment_intent_id, metadata=metadata)
        )

    async def list_checkout_sessions(self, payment_intent_id):
        self.calls.append(payment_intent_id)
        if self.error is not None:
            raise self.error
        return list(self.sessions.get(payment_intent_id, []))


def stripe_signature(payload: bytes, secret: str = STRIPE_TEST_SECRET, timestamp: int = None) -> str:
    """Build a stripe-signature header the way Stripe signs deliveries."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed_payload = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def svix_headers(payload: bytes, secret: str = CLERK_TEST_SECRET, msg_id: str = "msg_test_1") -> dict:
    """Build svix-* headers for a Clerk delivery."""
    now = datetime.now(tz=timezone.utc)
    signature = Webhook(secret).sign(msg_id, now, payload.decode("utf-8"))
    return {
        "svix-id": msg_id,
        "svix-timestamp": str(int(now.timestamp())),
        "svix-signature": signature,
    }


def payment_event(event_type: str, payment_intent_id: str = "pi_test123", event_id: str = "evt_test_1") -> dict:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": int(time.time()),
        "data": {"object": {"id": payment_intent_id, "object": "payment_intent"}},
    }


def encode(event: dict) -> bytes:
    return json.dumps(event).encode("utf-8")


async def count_enrollments(db) -> int:
    result = await db.execute(select(func.count()).select_from(enrollments))
    return result.scalar_one()


async def enrollment_pairs(db) -> list:
    """(user_id, course_id) rows read straight from the enrollments table."""
    result = await db.execute(
        select(enrollments.c.user_id, enrollments.c.course_id).order_by(enrollments.c.user_id)
    )
    return [tuple(row) for row in result.all()]


@pytest.fixture
async def test_db():
    """Create test database."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    AsyncSessionLocal = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with AsyncSessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def store(test_db):
    return SQLAlchemyStore(test_db)


@pytest.fixture
def payments():
    return FakePaymentProvider()


@pytest.fixture
async def purchase(test_db):
    """Pending purchase p1 of course c1 by user u1, nobody enrolled yet."""
    user = User(id="u1", email="student@example.com", name="Test Student")
    course = Course(id="c1", title="Intro to Python", price=49.99)
    purchase = Purchase(id="p1", user_id="u1", course_id="c1", amount=49.99, status="pending")
    test_db.add_all([user, course, purchase])
    await test_db.commit()
    return purchase


@pytest.fixture
async def client(test_db, payments):
    """HTTP client bound to the test database, fake Stripe and test secrets."""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_provider] = lambda: payments
    app.dependency_overrides[get_stripe_verifier] = lambda: StripeSignatureVerifier(STRIPE_TEST_SECRET)
    app.dependency_overrides[get_clerk_verifier] = lambda: ClerkSignatureVerifier(CLERK_TEST_SECRET)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
