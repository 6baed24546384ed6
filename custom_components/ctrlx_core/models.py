"""Data models for the ctrlX CORE integration."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

from .const import TOKEN_RENEWAL_SKEW


class SessionStatus(StrEnum):
    """Authentication state of a device session."""

    LOGGED_OUT = "logged_out"
    AUTHENTICATING = "authenticating"
    LOGGED_IN = "logged_in"


class DatalayerOperation(StrEnum):
    """Verbs supported on a ctrlX Data Layer node."""

    READ = "read"
    WRITE = "write"
    CREATE = "create"
    DELETE = "delete"


class ReadKind(StrEnum):
    """What a read request returns for a node."""

    DATA = "data"
    METADATA = "metadata"
    BROWSE = "browse"


@dataclass(frozen=True)
class TokenClaims:
    """Issued-at and expiry claims of a decoded session token."""

    issued_at: datetime
    expires_at: datetime
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def lifetime(self) -> timedelta:
        """Validity period granted by the device."""
        return self.expires_at - self.issued_at


@dataclass(frozen=True)
class Credential:
    """Token material attached to a single request."""

    token_type: str
    token: str

    @property
    def authorization(self) -> str:
        """Value of the Authorization header."""
        return f"{self.token_type} {self.token}"


@dataclass
class SessionState:
    """Authentication state of one device connection.

    The token fields are either all set (LOGGED_IN) or all cleared. They
    only change through the transition methods below.

    Attributes:
        status: Current authentication state.
        token: Opaque bearer credential issued by the device.
        token_type: Scheme label sent along with the token, e.g. "Bearer".
        claims: Decoded issued-at and expiry claims of the token.
        expire_at: Instant after which the token is renewed before use.
        auto_reconnect: Re-login and retry once on an authorization failure.
        timeout: Request timeout in milliseconds, -1 for the client default.

    """

    status: SessionStatus = SessionStatus.LOGGED_OUT
    token: str | None = None
    token_type: str | None = None
    claims: TokenClaims | None = None
    expire_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    auto_reconnect: bool = False
    timeout: int = -1

    @property
    def is_logged_in(self) -> bool:
        return self.status is SessionStatus.LOGGED_IN

    @property
    def credential(self) -> Credential | None:
        if self.token is None or self.token_type is None:
            return None
        return Credential(token_type=self.token_type, token=self.token)

    def begin_authentication(self) -> None:
        self.status = SessionStatus.AUTHENTICATING

    def set_logged_in(
        self,
        token: str,
        token_type: str,
        claims: TokenClaims,
        now: datetime,
    ) -> datetime:
        """Store the token material and compute the renewal watermark.

        Args:
            token: Access token returned by the device.
            token_type: Scheme label of the token.
            claims: Decoded claims of the token.
            now: Local time the token was received.

        Returns:
            The instant after which the token has to be renewed.

        """
        self.token = token
        self.token_type = token_type
        self.claims = claims
        self.expire_at = now + claims.lifetime - TOKEN_RENEWAL_SKEW
        self.status = SessionStatus.LOGGED_IN
        return self.expire_at

    def reset(self) -> None:
        """Drop the token material and return to LOGGED_OUT."""
        self.token = None
        self.token_type = None
        self.claims = None
        self.status = SessionStatus.LOGGED_OUT

    def confirm_logged_in(self) -> None:
        """Re-assert LOGGED_IN after a reconnect, if a token is held."""
        if self.credential is not None and self.claims is not None:
            self.status = SessionStatus.LOGGED_IN

    def is_expired(self, now: datetime) -> bool:
        return now > self.expire_at
