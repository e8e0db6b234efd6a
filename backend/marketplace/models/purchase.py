"""Purchase model for course checkouts."""
import enum
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Float, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from marketplace.database import Base


class PurchaseStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({PurchaseStatus.COMPLETED.value, PurchaseStatus.FAILED.value})


class Purchase(Base):
    """
    Purchase of a course by a user.

    Created as "pending" when the checkout session is opened and moved to
    "completed" or "failed" only by payment reconciliation. Completed and
    failed are terminal.
    """

    __tablename__ = "purchases"

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Purchase info
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PurchaseStatus.PENDING.value)

    # Optimistic concurrency token, bumped by SQLAlchemy on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Foreign keys
    user_id: Mapped[str | None] = mapped_column(String(255), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    course_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    # Indexes
    __table_args__ = (
        Index("idx_purchase_user_id", "user_id"),
        Index("idx_purchase_course_id", "course_id"),
        Index("idx_purchase_status", "status"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<Purchase(id={self.id}, user_id={self.user_id}, course_id={self.course_id}, status={self.status})>"
