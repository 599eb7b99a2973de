from . import admin, auth, clients, health, notifications, payments, realtime

__all__ = [
    "admin",
    "auth",
    "clients",
    "health",
    "notifications",
    "payments",
    "realtime",
]
