"""
Directory Service - institutional LDAP / Active Directory access.

All ldap3 calls are blocking; every public coroutine pushes its work to the
default thread executor so request handlers never stall the event loop.

Usage:
    from app.services.directory import get_directory

    directory = get_directory()
    entry = await directory.find_user("jperez")
    await directory.change_password("jperez", "N3w-Passw0rd!")
"""

import asyncio
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, List, Optional

from ldap3 import Server, Connection, SUBTREE, MODIFY_REPLACE, NONE
from ldap3.core.exceptions import (
    LDAPException,
    LDAPBindError,
    LDAPSocketOpenError,
    LDAPSocketReceiveError,
    LDAPSessionTerminatedByServerError,
    LDAPStartTLSError,
)
from ldap3.utils.conv import escape_filter_chars

from app.core.config import settings
from app.core.exceptions import DirectoryError, DirectoryUnavailableError
from app.core.logging_config import logger


USER_ATTRIBUTES = [
    "sAMAccountName",
    "distinguishedName",
    "displayName",
    "employeeID",
    "title",
    "mail",
    "memberOf",
]

# LDAP result codes worth translating for the user
LDAP_INVALID_CREDENTIALS = 49
LDAP_CONSTRAINT_VIOLATION = 19
LDAP_INSUFFICIENT_ACCESS = 50
LDAP_UNWILLING_TO_PERFORM = 53

_CONNECTIVITY_ERRORS = (
    LDAPSocketOpenError,
    LDAPSocketReceiveError,
    LDAPSessionTerminatedByServerError,
    LDAPStartTLSError,
)


@dataclass
class DirectoryEntry:
    """A user account as read from the directory"""
    username: str
    dn: str
    display_name: Optional[str] = None
    employee_id: Optional[str] = None
    title: Optional[str] = None
    mail: Optional[str] = None
    groups: List[str] = field(default_factory=list)


def _first(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return str(value[0]) if value else None
    text = str(value)
    return text or None


def _group_name(dn: str) -> str:
    """CN=internet_prof,OU=Groups,DC=... -> internet_prof"""
    head = dn.split(",", 1)[0]
    return head[3:] if head.upper().startswith("CN=") else head


def describe_ldap_error(code: Optional[int]) -> str:
    if code == LDAP_UNWILLING_TO_PERFORM:
        return "The directory refused the password (complexity or encryption requirements)"
    if code == LDAP_CONSTRAINT_VIOLATION:
        return "The directory rejected the password (history or minimum age policy)"
    if code == LDAP_INSUFFICIENT_ACCESS:
        return "The service account is not allowed to change passwords"
    if code == LDAP_INVALID_CREDENTIALS:
        return "Invalid directory credentials"
    return "Directory operation failed"


class DirectoryService:
    """Async facade over the institutional directory"""

    def __init__(
        self,
        url: str = None,
        bind_dn: str = None,
        bind_password: str = None,
        search_base: str = None,
        use_ssl: bool = None,
        connect_timeout: int = None,
    ):
        self.url = url or settings.LDAP_URL
        self.bind_dn = bind_dn if bind_dn is not None else settings.LDAP_BIND_DN
        self.bind_password = bind_password if bind_password is not None else settings.LDAP_BIND_PASSWORD
        self.search_base = search_base or settings.LDAP_SEARCH_BASE
        self.use_ssl = settings.LDAP_USE_SSL if use_ssl is None else use_ssl
        self.connect_timeout = connect_timeout or settings.LDAP_CONNECT_TIMEOUT

    # ------------------------------------------------------------------
    # Connection helpers (blocking, run inside the executor)
    # ------------------------------------------------------------------

    def _server(self) -> Server:
        return Server(
            self.url,
            use_ssl=self.use_ssl,
            connect_timeout=self.connect_timeout,
            get_info=NONE,
        )

    def _connect(self, user: str = None, password: str = None) -> Connection:
        """Bound connection; the service account unless user/password given"""
        try:
            return Connection(
                self._server(),
                user=user or self.bind_dn,
                password=password if user else self.bind_password,
                auto_bind=True,
                receive_timeout=self.connect_timeout,
                raise_exceptions=False,
            )
        except _CONNECTIVITY_ERRORS as e:
            raise DirectoryUnavailableError(f"Cannot reach directory: {e}")
        except LDAPBindError as e:
            if user:
                # Caller decides what a rejected user bind means
                raise
            raise DirectoryUnavailableError(f"Service account bind failed: {e}")

    async def _run(self, fn: Callable, *args) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(fn, *args))
        except DirectoryError:
            raise
        except _CONNECTIVITY_ERRORS as e:
            raise DirectoryUnavailableError(f"Directory connection lost: {e}")
        except LDAPException as e:
            raise DirectoryError(f"Directory error: {e}")
        except (asyncio.TimeoutError, OSError) as e:
            raise DirectoryUnavailableError(f"Directory call failed: {type(e).__name__}: {e}")
        except UnicodeError as e:
            raise DirectoryError(f"Value could not be encoded for the directory: {e}")

    def _search(self, conn: Connection, ldap_filter: str) -> Optional[DirectoryEntry]:
        conn.search(
            search_base=self.search_base,
            search_filter=ldap_filter,
            search_scope=SUBTREE,
            attributes=USER_ATTRIBUTES,
            size_limit=1,
        )
        if not conn.entries:
            return None

        attrs = conn.response[0].get("attributes", {})
        groups = attrs.get("memberOf") or []
        return DirectoryEntry(
            username=_first(attrs.get("sAMAccountName")) or "",
            dn=conn.response[0].get("dn") or _first(attrs.get("distinguishedName")) or "",
            display_name=_first(attrs.get("displayName")),
            employee_id=_first(attrs.get("employeeID")),
            title=_first(attrs.get("title")),
            mail=_first(attrs.get("mail")),
            groups=[_group_name(g) for g in groups],
        )

    def _find_sync(self, attribute: str, value: str) -> Optional[DirectoryEntry]:
        ldap_filter = f"(&(objectClass=user)({attribute}={escape_filter_chars(value)}))"
        conn = self._connect()
        try:
            return self._search(conn, ldap_filter)
        finally:
            conn.unbind()

    def _authenticate_sync(self, username: str, password: str) -> Optional[DirectoryEntry]:
        entry = self._find_sync("sAMAccountName", username)
        if entry is None:
            return None
        try:
            conn = self._connect(user=entry.dn, password=password)
        except LDAPBindError:
            return None
        conn.unbind()
        return entry

    def _change_password_sync(self, username: str, new_password: str) -> None:
        conn = self._connect()
        try:
            entry = self._search(
                conn, f"(&(objectClass=user)(sAMAccountName={escape_filter_chars(username)}))"
            )
            if entry is None:
                raise DirectoryError(f"Account '{username}' not found in directory")

            # Active Directory expects the quoted password encoded as UTF-16LE
            encoded = f'"{new_password}"'.encode("utf-16-le")
            conn.modify(entry.dn, {"unicodePwd": [(MODIFY_REPLACE, [encoded])]})

            code = conn.result.get("result") if conn.result else None
            if code not in (0, None):
                raise DirectoryError(describe_ldap_error(code), ldap_code=code)
        finally:
            conn.unbind()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def _ping_sync(self) -> None:
        self._connect().unbind()

    async def ping(self) -> None:
        """Bind with the service account; raises DirectoryUnavailableError"""
        await self._run(self._ping_sync)

    async def find_user(self, username: str) -> Optional[DirectoryEntry]:
        return await self._run(self._find_sync, "sAMAccountName", username)

    async def find_by_employee_id(self, employee_id: str) -> Optional[DirectoryEntry]:
        return await self._run(self._find_sync, "employeeID", employee_id)

    async def find_by_email(self, email: str) -> Optional[DirectoryEntry]:
        return await self._run(self._find_sync, "mail", email)

    async def authenticate(self, username: str, password: str) -> Optional[DirectoryEntry]:
        """
        Bind as the user.

        Returns the entry on success, None when the credentials are rejected.
        Raises DirectoryUnavailableError when the directory cannot be reached.
        """
        return await self._run(self._authenticate_sync, username, password)

    async def change_password(self, username: str, new_password: str) -> None:
        """Replace the account password. Raises DirectoryError on any failure."""
        await self._run(self._change_password_sync, username, new_password)
        logger.info(f"[Directory] Password replaced for {username}")


directory_service = DirectoryService()


def get_directory() -> DirectoryService:
    """FastAPI dependency; tests override it with an in-memory directory"""
    return directory_service
