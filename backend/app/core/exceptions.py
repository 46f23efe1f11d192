"""
Custom Exceptions for the Credentials Portal
============================================

Use these instead of generic Exception to:
1. Make errors more specific and debuggable
2. Map every failure to one HTTP status at the API layer
3. Provide meaningful error messages to users

Usage:
    from app.core.exceptions import UserNotFoundError, PartialSyncError

    if not user:
        raise UserNotFoundError(identifier)

    try:
        await sync_service.sync_password(db, user, new_password)
    except PartialSyncError as e:
        logger.warning(f"Directory write pending: {e}")
"""

from typing import Optional, Any, Dict, List


class PortalError(Exception):
    """Base exception for all portal errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(PortalError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class InvalidCredentialsError(AuthenticationError):
    """Username or password rejected"""

    def __init__(self):
        super().__init__("Incorrect username or password")
        self.code = "INVALID_CREDENTIALS"


class AuthorizationError(PortalError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(PortalError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class UserNotFoundError(ResourceNotFoundError):
    """User not found locally or in the directory"""

    def __init__(self, identifier: str):
        super().__init__("User", identifier)


class DeviceNotFoundError(ResourceNotFoundError):
    """Device not found"""

    def __init__(self, device_id: str):
        super().__init__("Device", device_id)


class RecoverySessionNotFoundError(ResourceNotFoundError):
    """Recovery session unknown or expired"""

    def __init__(self, session_id: str):
        super().__init__("Recovery session", session_id)
        self.code = "RECOVERY_SESSION_NOT_FOUND"


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(PortalError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidMacAddressError(ValidationError):
    """MAC address cannot be normalized"""

    def __init__(self, mac: str):
        super().__init__(f"Invalid MAC address: '{mac}'", field="mac")
        self.code = "INVALID_MAC"


class PasswordPolicyError(ValidationError):
    """Password does not satisfy the password policy"""

    def __init__(self, violations: List[str]):
        super().__init__("Password does not meet the password policy", field="new_password")
        self.code = "PASSWORD_POLICY"
        self.details["violations"] = violations


class InvalidPinError(ValidationError):
    """PIN format or value rejected"""

    def __init__(self, message: str = "Incorrect PIN"):
        super().__init__(message, field="pin")
        self.code = "INVALID_PIN"


class PinNotConfiguredError(ValidationError):
    """User has no recovery PIN"""

    def __init__(self, username: str):
        super().__init__("No PIN is configured for this user")
        self.code = "PIN_NOT_CONFIGURED"
        self.details["username"] = username


class TwoFactorNotConfiguredError(ValidationError):
    """User has no usable TOTP secret"""

    def __init__(self, username: str):
        super().__init__("Two-factor authentication is not configured for this user")
        self.code = "TWO_FACTOR_NOT_CONFIGURED"
        self.details["username"] = username


class InvalidVerificationCodeError(ValidationError):
    """Email or TOTP code wrong, expired, or already used"""

    def __init__(self, message: str = "Verification code is invalid or expired"):
        super().__init__(message, field="code")
        self.code = "INVALID_CODE"


class WizardStateError(ValidationError):
    """Recovery wizard step requested out of order"""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot run '{requested}' while recovery is in state '{current}'")
        self.code = "INVALID_RECOVERY_STATE"
        self.details = {"current_state": current, "requested_step": requested}


class DeviceLimitError(ValidationError):
    """User already has the maximum number of devices"""

    def __init__(self, limit: int):
        super().__init__(f"Device limit reached. Maximum {limit} devices per user.")
        self.code = "DEVICE_LIMIT"
        self.details["limit"] = limit


# ============================================
# Conflict Errors (409-type)
# ============================================

class ConflictError(PortalError):
    """Resource already exists"""

    status_code = 409

    def __init__(self, message: str, code: str = "CONFLICT"):
        super().__init__(message, code=code)


# ============================================
# Directory (LDAP) Errors
# ============================================

class DirectoryError(PortalError):
    """Directory operation failed"""

    status_code = 502

    def __init__(self, message: str, ldap_code: Optional[int] = None):
        super().__init__(message, code="DIRECTORY_ERROR")
        if ldap_code is not None:
            self.details["ldap_code"] = ldap_code


class DirectoryUnavailableError(DirectoryError):
    """Directory could not be reached or bound"""

    def __init__(self, message: str = "Directory service unavailable"):
        super().__init__(message)
        self.code = "DIRECTORY_UNAVAILABLE"


class PartialSyncError(PortalError):
    """Local password write succeeded but the directory write did not"""

    status_code = 502

    def __init__(self, username: str, reason: str = ""):
        super().__init__(
            "Password saved locally but the directory update is pending",
            code="PARTIAL_SYNC",
            details={"username": username, "reason": reason}
        )


# ============================================
# Email Errors
# ============================================

class EmailDeliveryError(PortalError):
    """Email could not be sent"""

    status_code = 502

    def __init__(self, message: str = "Email delivery failed"):
        super().__init__(message, code="EMAIL_DELIVERY_FAILED")


class EmailQuotaExceededError(EmailDeliveryError):
    """Daily email limit reached"""

    status_code = 503

    def __init__(self, limit: int):
        super().__init__(f"Daily email limit of {limit} reached. Try again tomorrow.")
        self.code = "EMAIL_QUOTA_EXCEEDED"
        self.details["daily_limit"] = limit


# ============================================
# Third-party Errors
# ============================================

class UpstreamServiceError(PortalError):
    """Third-party HTTP service failed"""

    status_code = 502

    def __init__(self, service: str, message: str = "Upstream service failed"):
        super().__init__(message, code="UPSTREAM_ERROR", details={"service": service})


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: PortalError, include_details: bool = True) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    body = error.to_dict()
    if not include_details:
        body["details"] = {}
    return {
        "success": False,
        "error": body
    }
