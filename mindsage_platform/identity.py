"""
Identity client interface and a file-backed implementation.

The Session Manager only talks to the abstract ``IdentityClient``.  Every
concrete implementation must provide:

1. **is_authenticated** whether a usable credential is persisted.
2. **get_identity** the persisted ``Credential``.
3. **login** run the provider's login flow and report a tagged ``LoginOutcome``.
4. **logout** invalidate the persisted credential.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Awaitable, Callable, Literal, Optional

from .config import DEFAULT_IDENTITY_PROVIDER, MAX_TIME_TO_LIVE
from .errors import IdentityError, LoginCancelled
from .user_config import clear_stored_identity, load_stored_identity, save_stored_identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    """Verifiable identity handle bound to a principal."""

    principal_id: str
    token: str = field(repr=False)
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        if self.expires_at is not None and self.expires_at.tzinfo is None:
            object.__setattr__(self, "expires_at", self.expires_at.replace(tzinfo=timezone.utc))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "principal_id": self.principal_id,
            "token": self.token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Credential":
        principal_id = str(data.get("principal_id") or "").strip()
        token = str(data.get("token") or "").strip()
        if not principal_id or not token:
            raise IdentityError("Stored identity is missing principal_id or token")

        expires_at = data.get("expires_at")
        if isinstance(expires_at, str):
            expires_at = datetime.fromisoformat(expires_at)
        return cls(principal_id=principal_id, token=token, expires_at=expires_at or None)


@dataclass(frozen=True)
class IdentityClientOptions:
    store_path: Optional[Path] = None
    authorizer: Optional["Authorizer"] = None


@dataclass(frozen=True)
class LoginOptions:
    """Options for one login attempt.

    ``credential`` carries a delegation obtained out of band (e.g. by a
    browser talking to the identity provider); when present no interactive
    flow is run.
    """

    identity_provider: str = DEFAULT_IDENTITY_PROVIDER
    max_time_to_live: timedelta = MAX_TIME_TO_LIVE
    credential: Optional[Credential] = None


@dataclass(frozen=True)
class LoginOutcome:
    status: Literal["logged_in", "cancelled", "failed"]
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "logged_in"

    @classmethod
    def logged_in(cls) -> "LoginOutcome":
        return cls("logged_in")

    @classmethod
    def cancelled(cls, reason: str = "") -> "LoginOutcome":
        return cls("cancelled", reason)

    @classmethod
    def failed(cls, reason: str) -> "LoginOutcome":
        return cls("failed", reason)


Authorizer = Callable[[LoginOptions], Awaitable[Credential]]


class IdentityClient(ABC):
    """Provider-agnostic async identity client."""

    @classmethod
    @abstractmethod
    async def create(cls, options: Optional[IdentityClientOptions] = None) -> "IdentityClient":
        """Construct a ready client (restoring any persisted session)."""

    @abstractmethod
    async def is_authenticated(self) -> bool:
        """Return True when a usable credential is available."""

    @abstractmethod
    async def get_identity(self) -> Credential:
        """Return the current credential; raise ``IdentityError`` if there is none."""

    @abstractmethod
    async def login(self, options: LoginOptions) -> LoginOutcome:
        """Run the login flow.  Must not raise for cancellation or provider errors."""

    @abstractmethod
    async def logout(self) -> None:
        """Invalidate the current credential."""


class FileIdentityClient(IdentityClient):
    """IdentityClient that persists the credential to a JSON file.

    The interactive part of login is delegated to an ``authorizer`` coroutine
    function; it should raise ``LoginCancelled`` when the user backs out.
    """

    def __init__(self, *, store_path: Optional[Path] = None, authorizer: Optional[Authorizer] = None):
        self.store_path = store_path
        self._authorizer = authorizer

    @classmethod
    async def create(cls, options: Optional[IdentityClientOptions] = None) -> "FileIdentityClient":
        options = options or IdentityClientOptions()
        return cls(store_path=options.store_path, authorizer=options.authorizer)

    def _load(self) -> Optional[Credential]:
        data = load_stored_identity(self.store_path)
        if data is None:
            return None
        try:
            return Credential.from_dict(data)
        except (IdentityError, ValueError) as e:
            logger.warning("Discarding invalid stored identity: %s", e)
            return None

    async def is_authenticated(self) -> bool:
        credential = self._load()
        return credential is not None and not credential.is_expired()

    async def get_identity(self) -> Credential:
        credential = self._load()
        if credential is None:
            raise IdentityError("No stored identity")
        if credential.is_expired():
            raise IdentityError(f"Stored identity for {credential.principal_id} has expired")
        return credential

    async def login(self, options: LoginOptions) -> LoginOutcome:
        try:
            if options.credential is not None:
                credential = options.credential
            elif self._authorizer is not None:
                credential = await self._authorizer(options)
            else:
                return LoginOutcome.failed("No credential supplied and no interactive authorizer configured")
        except LoginCancelled as e:
            logger.info("Login cancelled: %s", e)
            return LoginOutcome.cancelled(str(e))
        except Exception as e:
            logger.error("Login error: %s", e)
            return LoginOutcome.failed(str(e) or e.__class__.__name__)

        credential = _cap_lifetime(credential, options.max_time_to_live)
        if credential.is_expired():
            return LoginOutcome.failed("Credential has already expired")

        try:
            save_stored_identity(credential.to_dict(), self.store_path)
        except OSError as e:
            logger.error("Could not persist identity: %s", e)
            return LoginOutcome.failed(f"Could not persist identity: {e}")
        logger.info("Logged in as %s", credential.principal_id)
        return LoginOutcome.logged_in()

    async def logout(self) -> None:
        clear_stored_identity(self.store_path)


def _cap_lifetime(credential: Credential, max_time_to_live: timedelta) -> Credential:
    latest = datetime.now(timezone.utc) + max_time_to_live
    if credential.expires_at is not None and credential.expires_at <= latest:
        return credential
    return Credential(
        principal_id=credential.principal_id,
        token=credential.token,
        expires_at=latest,
    )
