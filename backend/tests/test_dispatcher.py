"""Tests for the webhook event dispatcher."""
import pytest

from marketplace.exceptions import HandlerError, SessionNotFoundError
from marketplace.schemas.webhooks import IdentityEventType, PaymentEventType, VerifiedEvent
from marketplace.services.dispatcher import EventDispatcher


def make_event(event_type):
    return VerifiedEvent(id="evt_1", type=event_type, data={"object": {"id": "pi_1"}})


@pytest.mark.asyncio
async def test_dispatch_calls_registered_handler():
    dispatcher = EventDispatcher(PaymentEventType)
    seen = []

    @dispatcher.register(PaymentEventType.PAYMENT_SUCCEEDED)
    async def on_success(event):
        seen.append(event.id)
        return "done"

    result = await dispatcher.dispatch(make_event("payment_intent.succeeded"))

    assert result == "done"
    assert seen == ["evt_1"]


@pytest.mark.asyncio
async def test_unknown_and_unregistered_types_are_acknowledged():
    """Types outside the enum and enum members without a handler both return None."""
    dispatcher = EventDispatcher(PaymentEventType)

    async def on_success(event):
        raise AssertionError("should not be called")

    dispatcher.register(PaymentEventType.PAYMENT_SUCCEEDED, on_success)

    assert await dispatcher.dispatch(make_event("customer.created")) is None
    assert await dispatcher.dispatch(make_event("payment_intent.payment_failed")) is None


@pytest.mark.asyncio
async def test_domain_errors_propagate_unchanged():
    dispatcher = EventDispatcher(PaymentEventType)

    async def on_success(event):
        raise SessionNotFoundError("No session found")

    dispatcher.register(PaymentEventType.PAYMENT_SUCCEEDED, on_success)

    with pytest.raises(SessionNotFoundError):
        await dispatcher.dispatch(make_event("payment_intent.succeeded"))


@pytest.mark.asyncio
async def test_unexpected_errors_become_handler_errors():
    dispatcher = EventDispatcher(PaymentEventType)

    async def on_failure(event):
        raise KeyError("metadata")

    dispatcher.register(PaymentEventType.PAYMENT_FAILED, on_failure)

    with pytest.raises(HandlerError) as exc_info:
        await dispatcher.dispatch(make_event("payment_intent.payment_failed"))

    assert exc_info.value.status_code == 500
    assert isinstance(exc_info.value.__cause__, KeyError)


def test_register_rejects_foreign_event_types():
    dispatcher = EventDispatcher(PaymentEventType)

    async def handler(event):
        return None

    with pytest.raises(TypeError):
        dispatcher.register(IdentityEventType.USER_CREATED, handler)
