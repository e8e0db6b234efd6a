"""Tests for the Stripe payment webhook endpoint."""
import pytest
from sqlalchemy import insert

from conftest import count_enrollments, encode, enrollment_pairs, payment_event, stripe_signature
from marketplace.exceptions import PaymentProviderError
from marketplace.models import enrollments
from marketplace.services.store import SQLAlchemyStore


async def post_event(client, event, path="/payment-webhook", signature=None):
    payload = encode(event)
    headers = {"stripe-signature": signature if signature is not None else stripe_signature(payload)}
    return await client.post(path, content=payload, headers=headers)


@pytest.mark.asyncio
async def test_webhook_payment_succeeded(client, test_db, payments, purchase):
    """Test end-to-end enrollment through the payment webhook."""
    payments.link("pi_test123", "p1")

    response = await post_event(client, payment_event("payment_intent.succeeded"))

    assert response.status_code == 200
    assert response.json() == {"received": True}

    assert await enrollment_pairs(test_db) == [("u1", "c1")]
    store = SQLAlchemyStore(test_db)
    assert (await store.find_purchase_by_id("p1")).status == "completed"


@pytest.mark.asyncio
async def test_webhook_payment_succeeded_for_enrolled_user(client, test_db, payments, purchase):
    """Test a pending purchase completes when the enrollment already exists."""
    await test_db.execute(insert(enrollments).values(user_id="u1", course_id="c1"))
    await test_db.commit()
    payments.link("pi_test123", "p1")

    first = await post_event(client, payment_event("payment_intent.succeeded"))
    second = await post_event(client, payment_event("payment_intent.succeeded"))

    assert first.status_code == 200
    assert first.json() == {"received": True}
    assert second.status_code == 200
    assert await enrollment_pairs(test_db) == [("u1", "c1")]
    store = SQLAlchemyStore(test_db)
    assert (await store.find_purchase_by_id("p1")).status == "completed"


@pytest.mark.asyncio
async def test_webhook_replay_is_idempotent(client, test_db, payments, purchase):
    """Test duplicate delivery of the same success event."""
    payments.link("pi_test123", "p1")
    event = payment_event("payment_intent.succeeded")

    first = await post_event(client, event)
    second = await post_event(client, event)

    assert first.status_code == 200
    assert second.status_code == 200
    assert await count_enrollments(test_db) == 1


@pytest.mark.asyncio
async def test_webhook_legacy_stripe_path(client, payments, purchase):
    """Test the /stripe alias routes to the same handler."""
    payments.link("pi_test123", "p1")

    response = await post_event(client, payment_event("payment_intent.succeeded"), path="/stripe")

    assert response.status_code == 200
    assert response.json() == {"received": True}


@pytest.mark.asyncio
async def test_webhook_invalid_signature(client, test_db, payments, purchase):
    """Test a bad signature is rejected before reaching the engine."""
    response = await post_event(
        client, payment_event("payment_intent.succeeded"), signature="t=1,v1=deadbeef"
    )

    assert response.status_code == 400
    assert response.text.startswith("Webhook Error:")
    assert payments.calls == []
    assert await count_enrollments(test_db) == 0


@pytest.mark.asyncio
async def test_webhook_missing_signature(client, payments):
    """Test a request without stripe-signature header."""
    response = await client.post("/payment-webhook", content=encode(payment_event("payment_intent.succeeded")))

    assert response.status_code == 400
    assert "stripe-signature" in response.text
    assert payments.calls == []


@pytest.mark.asyncio
async def test_webhook_unknown_event_type(client, test_db, payments, purchase):
    """Test unhandled event types are acknowledged without changes."""
    response = await post_event(client, payment_event("customer.subscription.created"))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert payments.calls == []
    store = SQLAlchemyStore(test_db)
    assert (await store.find_purchase_by_id("p1")).status == "pending"


@pytest.mark.asyncio
async def test_webhook_missing_session(client, test_db, payments, purchase):
    """Test no checkout session yields a retriable error and no enrollment."""
    response = await post_event(client, payment_event("payment_intent.succeeded"))

    assert response.status_code == 409
    assert response.json() == {"error": "No session found"}
    assert await count_enrollments(test_db) == 0
    store = SQLAlchemyStore(test_db)
    assert (await store.find_purchase_by_id("p1")).status == "pending"


@pytest.mark.asyncio
async def test_webhook_missing_metadata(client, payments, purchase):
    """Test a session without purchaseId metadata."""
    payments.link("pi_test123", metadata={})

    response = await post_event(client, payment_event("payment_intent.succeeded"))

    assert response.status_code == 400
    assert response.json() == {"error": "No purchaseId in metadata"}


@pytest.mark.asyncio
async def test_webhook_purchase_not_found(client, payments, purchase):
    payments.link("pi_test123", "p404")

    response = await post_event(client, payment_event("payment_intent.succeeded"))

    assert response.status_code == 409
    assert response.json() == {"error": "Purchase not found"}


@pytest.mark.asyncio
async def test_webhook_malformed_event(client, payments):
    """Test a signed event without a payment intent id."""
    event = payment_event("payment_intent.succeeded")
    event["data"] = {"object": {}}

    response = await post_event(client, event)

    assert response.status_code == 400
    assert "payment intent id" in response.json()["error"]


@pytest.mark.asyncio
async def test_webhook_payment_failed(client, test_db, payments, purchase):
    """Test a failed payment marks the purchase failed."""
    payments.link("pi_test123", "p1")

    response = await post_event(client, payment_event("payment_intent.payment_failed"))

    assert response.status_code == 200
    store = SQLAlchemyStore(test_db)
    assert (await store.find_purchase_by_id("p1")).status == "failed"


@pytest.mark.asyncio
async def test_webhook_payment_failed_without_session(client, payments, purchase):
    """Test a failed payment with no linkage is acknowledged."""
    response = await post_event(client, payment_event("payment_intent.payment_failed"))

    assert response.status_code == 200
    assert response.json() == {"received": True}


@pytest.mark.asyncio
async def test_webhook_stripe_unavailable(client, payments, purchase):
    """Test a Stripe API failure answers 503 so Stripe redelivers."""
    payments.error = PaymentProviderError("Failed to list checkout sessions: timeout")

    response = await post_event(client, payment_event("payment_intent.succeeded"))

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_webhook_unexpected_error(client, payments, purchase):
    """Test an unanticipated failure answers 500."""
    payments.error = RuntimeError("connection reset")

    response = await post_event(client, payment_event("payment_intent.succeeded"))

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
