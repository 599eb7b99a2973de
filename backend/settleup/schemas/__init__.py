from settleup.schemas import auth, client, common, notification, payment, user

__all__ = [
    "auth",
    "client",
    "common",
    "notification",
    "payment",
    "user",
]
