"""Database models for the course marketplace."""
from marketplace.models.enrollment import enrollments
from marketplace.models.user import User
from marketplace.models.course import Course
from marketplace.models.purchase import Purchase, PurchaseStatus

__all__ = [
    "enrollments",
    "User",
    "Course",
    "Purchase",
    "PurchaseStatus",
]
