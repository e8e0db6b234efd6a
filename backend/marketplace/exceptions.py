"""
Error taxonomy for webhook processing.

Every webhook error knows the HTTP status the route should answer with and
whether the sender is expected to succeed on a later delivery. Payment
webhook status codes drive Stripe's retry schedule, so they are never
swallowed.

Hierarchy:
    WebhookError
    ├── VerificationError        400  untrusted or unreadable payload
    ├── HandlerError             500  unanticipated failure inside a handler
    ├── IdentitySyncError        400  identity payload cannot be mirrored
    └── ReconciliationError
        ├── MalformedEventError      400
        ├── MissingMetadataError     400
        ├── SessionNotFoundError     409  retriable
        ├── PurchaseNotFoundError    409  retriable
        ├── UserNotFoundError        400
        ├── CourseNotFoundError      400
        ├── ConcurrentUpdateError    409  retriable
        └── PaymentProviderError     503  retriable
"""
from typing import Optional


class ConfigurationError(RuntimeError):
    """Required configuration is missing at startup."""


class WebhookError(Exception):
    """Base class for errors raised while handling a webhook delivery."""

    status_code: int = 500
    retriable: bool = False

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class VerificationError(WebhookError):
    """Signature missing, invalid or expired, or the body is not an event."""

    status_code = 400


class HandlerError(WebhookError):
    """A handler failed for a reason outside the domain taxonomy."""

    status_code = 500
    retriable = True


class IdentitySyncError(WebhookError):
    status_code = 400


class ReconciliationError(WebhookError):
    """Base class for payment reconciliation failures."""


class MalformedEventError(ReconciliationError):
    status_code = 400


class MissingMetadataError(ReconciliationError):
    status_code = 400


class SessionNotFoundError(ReconciliationError):
    # Checkout sessions can lag behind the payment event on the provider side.
    status_code = 409
    retriable = True


class PurchaseNotFoundError(ReconciliationError):
    status_code = 409
    retriable = True


class UserNotFoundError(ReconciliationError):
    status_code = 400


class CourseNotFoundError(ReconciliationError):
    status_code = 400


class ConcurrentUpdateError(ReconciliationError):
    """Another delivery changed the same records first."""

    status_code = 409
    retriable = True


class PaymentProviderError(ReconciliationError):
    status_code = 503
    retriable = True
