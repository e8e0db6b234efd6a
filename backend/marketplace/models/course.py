"""Course model for the marketplace."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Text, Float, Integer, Boolean, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from marketplace.database import Base
from marketplace.models.enrollment import enrollments


class Course(Base):
    """Course model. Authoring happens elsewhere; enrollment is written by reconciliation."""

    __tablename__ = "courses"

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Course info
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    discount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # percent
    is_published: Mapped[bool] = mapped_column(Boolean, default=True)

    # Author, an identity-provider user id
    educator_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    enrolled_students: Mapped[list["User"]] = relationship(
        "User",
        secondary=enrollments,
        back_populates="enrolled_courses",
    )

    # Indexes
    __table_args__ = (
        Index("idx_course_educator_id", "educator_id"),
    )

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, title={self.title})>"
