"""Mirror Clerk user lifecycle events into the local users table."""
import logging

from pydantic import ValidationError

from marketplace.exceptions import IdentitySyncError
from marketplace.schemas.webhooks import (
    ClerkDeletedUserData,
    ClerkUserData,
    IdentityEventType,
    VerifiedEvent,
)
from marketplace.services.dispatcher import EventDispatcher
from marketplace.services.store import PersistenceGateway

logger = logging.getLogger(__name__)


def _parse(model, event: VerifiedEvent):
    try:
        return model.model_validate(event.data)
    except ValidationError as e:
        raise IdentitySyncError(f"Invalid {event.type} payload: {e.errors()[0]['msg']}") from e


class IdentitySyncHandler:
    """
    Upserts and deletes local users.

    Clerk is the source of truth: updates and deletes for users that do not
    exist locally are accepted silently.
    """

    def __init__(self, store: PersistenceGateway):
        self.store = store

    async def user_created(self, event: VerifiedEvent) -> None:
        data = _parse(ClerkUserData, event)
        email = data.primary_email
        if not email:
            raise IdentitySyncError(f"User {data.id} has no email address")

        async with self.store.transaction():
            existing = await self.store.find_user_by_id(data.id)
            if existing is not None:
                # Redelivered user.created
                await self.store.update_user(
                    data.id, email=email, name=data.full_name, image_url=data.image_url
                )
                logger.info(f"User {data.id} already exists, profile refreshed")
                return
            await self.store.create_user(
                id=data.id,
                email=email,
                name=data.full_name,
                image_url=data.image_url,
                resume="",
            )
        logger.info(f"User {data.id} created")

    async def user_updated(self, event: VerifiedEvent) -> None:
        data = _parse(ClerkUserData, event)
        fields = {"name": data.full_name, "image_url": data.image_url}
        if data.primary_email:
            fields["email"] = data.primary_email

        async with self.store.transaction():
            user = await self.store.update_user(data.id, **fields)
        if user is None:
            logger.info(f"User {data.id} not found locally, update ignored")
        else:
            logger.info(f"User {data.id} updated")

    async def user_deleted(self, event: VerifiedEvent) -> None:
        data = _parse(ClerkDeletedUserData, event)
        async with self.store.transaction():
            deleted = await self.store.delete_user(data.id)
        if deleted:
            logger.info(f"User {data.id} deleted")
        else:
            logger.info(f"User {data.id} not found locally, delete ignored")


def build_identity_dispatcher(handler: IdentitySyncHandler) -> EventDispatcher:
    dispatcher = EventDispatcher(IdentityEventType)
    dispatcher.register(IdentityEventType.USER_CREATED, handler.user_created)
    dispatcher.register(IdentityEventType.USER_UPDATED, handler.user_updated)
    dispatcher.register(IdentityEventType.USER_DELETED, handler.user_deleted)
    return dispatcher
