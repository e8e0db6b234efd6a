"""
Routing of verified webhook events to their handlers.

Unregistered event types are acknowledged and ignored. Senders retry any
non-2xx answer, and events this service does not care about must not end up
in their retry queue.
"""
import enum
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from marketplace.exceptions import HandlerError, WebhookError
from marketplace.schemas.webhooks import VerifiedEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[VerifiedEvent], Awaitable[Any]]


class EventDispatcher:
    """Enum-keyed registry of async event handlers."""

    def __init__(self, event_types: type[enum.Enum]):
        self.event_types = event_types
        self.handlers: Dict[enum.Enum, EventHandler] = {}

    def register(self, event_type: enum.Enum, handler: Optional[EventHandler] = None):
        """
        Register `handler` for `event_type`.

        Usable directly or as a decorator:

            @dispatcher.register(PaymentEventType.PAYMENT_SUCCEEDED)
            async def on_success(event): ...
        """
        if not isinstance(event_type, self.event_types):
            raise TypeError(f"{event_type!r} is not a {self.event_types.__name__}")

        def decorator(func: EventHandler) -> EventHandler:
            self.handlers[event_type] = func
            logger.debug("Registered webhook handler for %s", event_type.value)
            return func

        if handler is not None:
            return decorator(handler)
        return decorator

    def resolve(self, type_tag: Union[str, enum.Enum]) -> Optional[EventHandler]:
        try:
            event_type = self.event_types(type_tag)
        except ValueError:
            return None
        return self.handlers.get(event_type)

    async def dispatch(self, event: VerifiedEvent) -> Any:
        """
        Run the handler registered for `event.type`.

        Returns the handler's result, or None for unhandled types. Domain
        errors propagate unchanged; anything else is wrapped in HandlerError.
        """
        handler = self.resolve(event.type)
        if handler is None:
            logger.info(f"Unhandled event type: {event.type}")
            return None

        logger.info(f"Dispatching {event.type} (event {event.id})")
        try:
            return await handler(event)
        except WebhookError:
            raise
        except Exception as e:
            logger.exception("Handler for %s failed", event.type)
            raise HandlerError(
                f"Error processing {event.type}: {type(e).__name__}",
                details={"event_id": event.id},
            ) from e
