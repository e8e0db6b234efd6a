"""Schemas for inbound webhook events and webhook responses."""
import enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class PaymentEventType(str, enum.Enum):
    """Stripe event types the reconciliation engine acts on."""

    PAYMENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_FAILED = "payment_intent.payment_failed"


class IdentityEventType(str, enum.Enum):
    """Clerk user lifecycle events mirrored into the local users table."""

    USER_CREATED = "user.created"
    USER_UPDATED = "user.updated"
    USER_DELETED = "user.deleted"


class VerifiedEvent(BaseModel):
    """An event whose signature has been checked against the shared secret."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(None, description="Provider event id")
    type: str = Field(..., description="Event type tag")
    data: Dict[str, Any] = Field(default_factory=dict, description="Opaque event payload")
    created: Optional[int] = Field(None, description="Unix timestamp of the event")

    @property
    def data_object(self) -> Dict[str, Any]:
        """Stripe wraps the affected resource in data.object."""
        obj = self.data.get("object")
        return obj if isinstance(obj, dict) else {}


class ClerkEmailAddress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    email_address: str


class ClerkUserData(BaseModel):
    """The `data` block of a Clerk user.created / user.updated event."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email_addresses: List[ClerkEmailAddress] = Field(default_factory=list)
    primary_email_address_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def primary_email(self) -> Optional[str]:
        """Primary address if flagged, otherwise the first one listed."""
        for address in self.email_addresses:
            if self.primary_email_address_id and address.id == self.primary_email_address_id:
                return address.email_address
        if self.email_addresses:
            return self.email_addresses[0].email_address
        return None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class ClerkDeletedUserData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    deleted: bool = True


class PaymentWebhookAck(BaseModel):
    """Acknowledgement returned to Stripe for a processed delivery."""

    received: bool = True


class WebhookErrorResponse(BaseModel):
    error: str = Field(..., description="Reason the delivery was not applied")


class IdentityWebhookFailure(BaseModel):
    success: bool = False
    message: str
