from fastapi import APIRouter
from app.api.v1.endpoints import (
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
from app.api.v1.endpoints.recovery import build_recovery_router
from app.core.config import settings
from app.models.recovery_session import RecoveryChannel

api_router = APIRouter()

# Deep health check endpoints
api_router.include_router(health.router)


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint for load balancer"""
    return {"status": "healthy", "service": "credportal-backend", "environment": settings.ENVIRONMENT}


api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(account.router, prefix="/account", tags=["Account"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])

# Recovery wizard: channel routes plus the generic /recovery/{channel} form
api_router.include_router(build_recovery_router(RecoveryChannel.EMAIL), prefix="/email", tags=["Recovery: Email"])
api_router.include_router(build_recovery_router(RecoveryChannel.PIN), prefix="/pin", tags=["Recovery: PIN"])
api_router.include_router(build_recovery_router(RecoveryChannel.TOTP), prefix="/2fa", tags=["Recovery: 2FA"])
api_router.include_router(recovery.router, prefix="/recovery", tags=["Recovery"])

api_router.include_router(email.router, prefix="/email", tags=["Email"])
api_router.include_router(pin.router, prefix="/pin", tags=["PIN"])
api_router.include_router(two_factor.router, prefix="/2fa", tags=["Two-Factor"])
api_router.include_router(devices.router, prefix="/devices", tags=["Devices"])
api_router.include_router(verification.router, prefix="/verify", tags=["Verification"])
api_router.include_router(sync.router, prefix="/sync", tags=["Directory Sync"])
api_router.include_router(password_expiry.router, prefix="/password-expiry", tags=["Password Expiry"])
api_router.include_router(audit.router, prefix="/audit-logs", tags=["Audit"])
