from settleup.services.audit import AuditService
from settleup.services.auth import AuthService
from settleup.services.client import ClientService
from settleup.services.notification import NotificationDispatcher, NotificationService
from settleup.services.payment import PaymentScheduleService

__all__ = [
    "AuditService",
    "AuthService",
    "ClientService",
    "NotificationDispatcher",
    "NotificationService",
    "PaymentScheduleService",
]
