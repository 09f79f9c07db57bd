"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from addiscare.db.models.user import UserRow
from addiscare.db.models.notification import NotificationRecipientRow, NotificationRow

__all__ = [
    "UserRow",
    "NotificationRow",
    "NotificationRecipientRow",
]
