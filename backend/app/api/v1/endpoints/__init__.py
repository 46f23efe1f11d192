# API endpoints
from . import (
    account,
    audit,
    auth,
    devices,
    email,
    health,
    password_expiry,
    pin,
    recovery,
    sync,
    two_factor,
    users,
    verification,
)

__all__ = [
    "account",
    "audit",
    "auth",
    "devices",
    "email",
    "health",
    "password_expiry",
    "pin",
    "recovery",
    "sync",
    "two_factor",
    "users",
    "verification",
]
