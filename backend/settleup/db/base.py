# noqa: F401 to ensure models are imported for metadata
from settleup.models.audit import AuthLog
from settleup.models.client import Client
from settleup.models.notification import Notification
from settleup.models.payment import PaymentSchedule
from settleup.models.reminder import ReminderTask
from settleup.models.user import User, UserClientLink

__all__ = [
    "AuthLog",
    "Client",
    "Notification",
    "PaymentSchedule",
    "ReminderTask",
    "User",
    "UserClientLink",
]
