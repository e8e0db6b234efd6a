"""User model mirrored from the identity provider."""
from datetime import datetime
from sqlalchemy import String, Text, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from marketplace.database import Base
from marketplace.models.enrollment import enrollments


class User(Base):
    """Local copy of an identity-provider user plus course enrollments."""

    __tablename__ = "users"

    # Primary key is the identity provider's user id (e.g. "user_2abc...")
    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    # Profile
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    resume: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    enrolled_courses: Mapped[list["Course"]] = relationship(
        "Course",
        secondary=enrollments,
        back_populates="enrolled_students",
    )

    # Indexes
    __table_args__ = (
        Index("idx_user_email", "email"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, name={self.name})>"
