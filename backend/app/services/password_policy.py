"""
Password policy shared by activation, password change and recovery.
Mirrors the directory's complexity rules so most rejections happen before
the LDAP round trip.
"""

import string
from typing import List, Optional

from app.core.exceptions import PasswordPolicyError

MIN_LENGTH = 8


def check_password(password: str, username: Optional[str] = None) -> List[str]:
    """Return every violated rule (empty list when the password is acceptable)"""
    violations: List[str] = []

    if len(password) < MIN_LENGTH:
        violations.append(f"Must be at least {MIN_LENGTH} characters long")
    if not any(c.islower() for c in password):
        violations.append("Must contain a lowercase letter")
    if not any(c.isupper() for c in password):
        violations.append("Must contain an uppercase letter")
    if not any(c.isdigit() for c in password):
        violations.append("Must contain a digit")
    if not any(c in string.punctuation or (not c.isalnum() and not c.isspace()) for c in password):
        violations.append("Must contain a symbol")
    if username and len(username) >= 3 and username.lower() in password.lower():
        violations.append("Must not contain the username")
    # unicodePwd is UTF-16; astral characters break some directory clients
    if any(ord(c) > 0xFFFF for c in password):
        violations.append("Must not contain emoji or other unsupported characters")

    return violations


def validate_password(password: str, username: Optional[str] = None) -> None:
    """Raise PasswordPolicyError listing all violations"""
    violations = check_password(password, username)
    if violations:
        raise PasswordPolicyError(violations)
