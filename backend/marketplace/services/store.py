"""
Persistence gateway for users, courses and purchases.

The reconciliation engine and the identity sync handler only talk to the
`PersistenceGateway` protocol, so tests and alternative stores can stand in
for `SQLAlchemyStore`.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Protocol, runtime_checkable

from sqlalchemy import exists, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from marketplace.exceptions import ConcurrentUpdateError
from marketplace.models.course import Course
from marketplace.models.enrollment import enrollments
from marketplace.models.purchase import Purchase
from marketplace.models.user import User

logger = logging.getLogger(__name__)


@runtime_checkable
class PersistenceGateway(Protocol):
    """Storage operations needed by webhook handlers."""

    def transaction(self) -> Any:
        """Async context manager; commits on success, rolls back on error."""
        ...

    async def create_user(self, **fields: Any) -> User: ...

    async def update_user(self, user_id: str, **fields: Any) -> Optional[User]: ...

    async def delete_user(self, user_id: str) -> bool: ...

    async def find_user_by_id(self, user_id: str) -> Optional[User]: ...

    async def find_course_by_id(self, course_id: str) -> Optional[Course]: ...

    async def find_purchase_by_id(self, purchase_id: str, for_update: bool = False) -> Optional[Purchase]: ...

    async def is_enrolled(self, user_id: str, course_id: str) -> bool: ...

    async def enroll(self, user_id: str, course_id: str) -> None: ...

    async def save_user(self, user: User) -> User: ...

    async def save_course(self, course: Course) -> Course: ...

    async def save_purchase(self, purchase: Purchase) -> Purchase: ...


class SQLAlchemyStore:
    """PersistenceGateway backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Group the enclosed writes into one commit.

        Optimistic version conflicts on purchases and duplicate enrollment
        rows both mean a concurrent delivery got there first; they surface as
        ConcurrentUpdateError so the sender retries into the idempotent path.
        """
        try:
            yield
            await self.db.commit()
        except StaleDataError as e:
            await self.db.rollback()
            raise ConcurrentUpdateError(
                "Purchase was modified by a concurrent delivery",
                details={"error": str(e)},
            ) from e
        except IntegrityError as e:
            await self.db.rollback()
            raise ConcurrentUpdateError(
                "Conflicting write while saving webhook changes",
                details={"error": str(e.orig)},
            ) from e
        except BaseException:
            await self.db.rollback()
            raise

    async def create_user(self, **fields: Any) -> User:
        user = User(**fields)
        self.db.add(user)
        await self.db.flush()
        return user

    async def update_user(self, user_id: str, **fields: Any) -> Optional[User]:
        """Apply a partial update. Returns None if the user does not exist."""
        user = await self.find_user_by_id(user_id)
        if user is None:
            return None
        for name, value in fields.items():
            setattr(user, name, value)
        await self.db.flush()
        return user

    async def delete_user(self, user_id: str) -> bool:
        user = await self.find_user_by_id(user_id)
        if user is None:
            return False
        await self.db.delete(user)
        await self.db.flush()
        return True

    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.enrolled_courses))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_course_by_id(self, course_id: str) -> Optional[Course]:
        result = await self.db.execute(
            select(Course)
            .where(Course.id == course_id)
            .options(selectinload(Course.enrolled_students))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_purchase_by_id(self, purchase_id: str, for_update: bool = False) -> Optional[Purchase]:
        """Load a purchase, optionally with a row lock (ignored by SQLite)."""
        query = select(Purchase).where(Purchase.id == purchase_id).execution_options(populate_existing=True)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def is_enrolled(self, user_id: str, course_id: str) -> bool:
        """Check the enrollments table directly, without touching loaded collections."""
        result = await self.db.execute(
            select(
                exists().where(
                    enrollments.c.user_id == user_id,
                    enrollments.c.course_id == course_id,
                )
            )
        )
        return bool(result.scalar())

    async def enroll(self, user_id: str, course_id: str) -> None:
        """
        Insert the enrollments row shared by both sides of the relationship.

        Collections already loaded in the session are not refreshed; the
        find_* methods reload them with populate_existing. A duplicate row
        raises IntegrityError, which transaction() reports as a conflict.
        """
        await self.db.execute(
            insert(enrollments).values(user_id=user_id, course_id=course_id)
        )

    async def save_user(self, user: User) -> User:
        self.db.add(user)
        await self.db.flush()
        return user

    async def save_course(self, course: Course) -> Course:
        self.db.add(course)
        await self.db.flush()
        return course

    async def save_purchase(self, purchase: Purchase) -> Purchase:
        self.db.add(purchase)
        await self.db.flush()
        return purchase
