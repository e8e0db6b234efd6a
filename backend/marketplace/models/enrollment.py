"""Association table linking users to the courses they are enrolled in."""
from datetime import datetime
from sqlalchemy import Table, Column, String, DateTime, ForeignKey
from marketplace.database import Base


# One row backs both User.enrolled_courses and Course.enrolled_students.
# The composite primary key rejects duplicate enrollments.
enrollments = Table(
    "enrollments",
    Base.metadata,
    Column("user_id", String(255), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("course_id", String(36), ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("enrolled_at", DateTime, default=datetime.utcnow),
)
