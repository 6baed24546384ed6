"""Session and token lifecycle of a ctrlX CORE connection."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from . import api
from .models import (
    Credential,
    DatalayerOperation,
    ReadKind,
    SessionState,
    SessionStatus,
)

if TYPE_CHECKING:
    import httpx

_LOGGER = logging.getLogger(__name__)


class CtrlxSessionManager:
    """Manage the authenticated session with one ctrlX CORE device.

    The manager caches the session token, renews it shortly before it
    expires and, if auto reconnect is enabled, logs in again once when the
    device rejects a request as unauthorized.

    Example:
        manager = CtrlxSessionManager(session, "192.168.1.1", "user", "pass")
        await manager.async_login()
        try:
            data = await manager.async_read("framework/metrics/system/cpu-utilisation-percent")
        finally:
            await manager.async_logout()

    """

    def __init__(
        self,
        session: httpx.AsyncClient,
        hostname: str,
        username: str,
        password: str,
        *,
        timeout: int = -1,
        auto_reconnect: bool = False,
    ) -> None:
        """Initialize the session manager.

        Args:
            session: HTTP client used for every request.
            hostname: Hostname, IPv4 or bracketed IPv6 address of the device.
            username: User to authenticate.
            password: Password of the user.
            timeout: Request timeout in milliseconds, -1 for the client default.
            auto_reconnect: Re-login and retry once on an authorization failure.

        """
        self._session = session
        self._hostname = hostname
        self._username = username
        self._password = password
        self._state = SessionState(timeout=timeout, auto_reconnect=auto_reconnect)
        self._login_task: asyncio.Task[dict[str, Any]] | None = None

    @property
    def hostname(self) -> str:
        return self._hostname

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def is_logged_in(self) -> bool:
        return self._state.is_logged_in

    @property
    def expire_at(self) -> datetime:
        """Instant after which the token is renewed before the next request."""
        return self._state.expire_at

    @property
    def timeout(self) -> int:
        """Request timeout in milliseconds, -1 for the client default."""
        return self._state.timeout

    @timeout.setter
    def timeout(self, value: int) -> None:
        self._state.timeout = value

    @property
    def auto_reconnect(self) -> bool:
        """Whether an authorization failure triggers one re-login and retry."""
        return self._state.auto_reconnect

    @auto_reconnect.setter
    def auto_reconnect(self, value: bool) -> None:
        self._state.auto_reconnect = value

    async def async_login(self) -> dict[str, Any]:
        """Log in to the device and create a new session.

        Concurrent callers share a single login. A session that is already
        established is logged out first.

        Returns:
            The token response, with the decoded claims under "token_decoded"
            and the renewal instant under "token_expire_at".

        Raises:
            CtrlxProblemError: If the device rejects the credentials.
            CtrlxTransportError: If the device cannot be reached.
            CtrlxProtocolError: If the token response cannot be used.

        """
        if self._login_task is None or self._login_task.done():
            self._login_task = asyncio.create_task(self._async_login())
        return await asyncio.shield(self._login_task)

    async def async_logout(self) -> None:
        """Log out from the device and delete the session token.

        The local session is cleared even if the device could not be
        reached. The error of the remote call is raised afterwards.
        """
        await self._async_wait_for_login()
        await self._async_logout()

    async def async_invoke(
        self,
        operation: DatalayerOperation,
        path: str,
        payload: Any = None,
        kind: ReadKind = ReadKind.DATA,
    ) -> Any:
        """Run a Data Layer request within the current session.

        Args:
            operation: Verb to run on the node.
            path: Data Layer path of the node.
            payload: Data to send, if the verb takes any.
            kind: What to read, only used by READ.

        Returns:
            The response of the device, unchanged.

        Raises:
            CtrlxNotAuthenticatedError: If there is no session, call
                async_login() first.

        """
        return await self._async_invoke(operation, path, payload, kind, renewed=False)

    async def async_read(self, path: str, payload: Any = None) -> Any:
        return await self.async_invoke(DatalayerOperation.READ, path, payload)

    async def async_read_metadata(self, path: str) -> Any:
        return await self.async_invoke(
            DatalayerOperation.READ, path, kind=ReadKind.METADATA
        )

    async def async_browse(self, path: str) -> Any:
        return await self.async_invoke(
            DatalayerOperation.READ, path, kind=ReadKind.BROWSE
        )

    async def async_write(self, path: str, payload: Any) -> Any:
        return await self.async_invoke(DatalayerOperation.WRITE, path, payload)

    async def async_create(self, path: str, payload: Any) -> Any:
        return await self.async_invoke(DatalayerOperation.CREATE, path, payload)

    async def async_delete(self, path: str) -> None:
        await self.async_invoke(DatalayerOperation.DELETE, path)

    async def _async_login(self) -> dict[str, Any]:
        _LOGGER.debug("Logging in to %s", self._hostname)

        if self._state.status is not SessionStatus.LOGGED_OUT:
            try:
                await self._async_logout()
            except api.CtrlxError as err:
                _LOGGER.debug("Ignoring logout failure before login: %s", err)

        self._state.begin_authentication()
        try:
            return await self._async_authenticate()
        finally:
            if not self._state.is_logged_in:
                self._state.reset()

    async def _async_authenticate(self) -> dict[str, Any]:
        data = await api.async_authenticate(
            self._session,
            self._hostname,
            self._username,
            self._password,
            self._state.timeout,
        )

        token = data.get("access_token")
        token_type = data.get("token_type")
        if not token or not token_type:
            error_msg = "Did not receive expected data as authentication response"
            raise api.CtrlxProtocolError(error_msg)

        claims = api.extract_token_claims(token)
        expire_at = self._state.set_logged_in(
            token, token_type, claims, datetime.now(UTC)
        )
        _LOGGER.debug(
            "Logged in to %s, token will be renewed after %s",
            self._hostname,
            expire_at.isoformat(),
        )
        return {**data, "token_decoded": claims.raw, "token_expire_at": expire_at}

    async def _async_logout(self) -> None:
        credential = self._state.credential
        if credential is None:
            self._state.reset()
            return

        _LOGGER.debug("Logging out from %s", self._hostname)
        try:
            await api.async_revoke_token(
                self._session,
                self._hostname,
                credential,
                self._state.timeout,
            )
        except api.CtrlxError as err:
            _LOGGER.debug("Failed to delete token on %s: %s", self._hostname, err)
            raise
        finally:
            self._state.reset()

    async def _async_wait_for_login(self) -> None:
        """Let a login that is in progress finish before continuing."""
        task = self._login_task
        if task is None or task.done():
            return
        try:
            await asyncio.shield(task)
        except api.CtrlxError as err:
            _LOGGER.debug("Pending login to %s failed: %s", self._hostname, err)

    async def _async_invoke(
        self,
        operation: DatalayerOperation,
        path: str,
        payload: Any,
        kind: ReadKind,
        *,
        renewed: bool,
    ) -> Any:
        await self._async_wait_for_login()

        if not self._state.is_logged_in:
            error_msg = (
                f"Failed to {operation} {path}: not authenticated, "
                "please login first"
            )
            raise api.CtrlxNotAuthenticatedError(error_msg)

        if self._state.is_expired(datetime.now(UTC)):
            if renewed:
                error_msg = (
                    "Token expired right after it was renewed, "
                    f"check the clock of {self._hostname}"
                )
                raise api.CtrlxProtocolError(error_msg)
            _LOGGER.debug("Token expired, renewing before %s of %s", operation, path)
            await self.async_login()
            return await self._async_invoke(
                operation, path, payload, kind, renewed=True
            )

        try:
            return await self._async_request(operation, path, payload, kind)
        except api.CtrlxProblemError as err:
            if not (err.is_auth_error and self._state.auto_reconnect):
                raise
            _LOGGER.debug("%s of %s unauthorized, reconnecting", operation, path)

        try:
            await self.async_login()
            return await self._async_request(operation, path, payload, kind)
        finally:
            self._state.confirm_logged_in()

    async def _async_request(
        self,
        operation: DatalayerOperation,
        path: str,
        payload: Any,
        kind: ReadKind,
    ) -> Any:
        credential = self._state.credential
        if credential is None:
            error_msg = f"Failed to {operation} {path}: not authenticated"
            raise api.CtrlxNotAuthenticatedError(error_msg)
        return await self._async_call_transport(
            credential, operation, path, payload, kind
        )

    async def _async_call_transport(
        self,
        credential: Credential,
        operation: DatalayerOperation,
        path: str,
        payload: Any,
        kind: ReadKind,
    ) -> Any:
        timeout = self._state.timeout
        match operation:
            case DatalayerOperation.READ:
                return await api.async_datalayer_read(
                    self._session,
                    self._hostname,
                    credential,
                    path,
                    payload,
                    kind,
                    timeout,
                )
            case DatalayerOperation.WRITE:
                return await api.async_datalayer_write(
                    self._session, self._hostname, credential, path, payload, timeout
                )
            case DatalayerOperation.CREATE:
                return await api.async_datalayer_create(
                    self._session, self._hostname, credential, path, payload, timeout
                )
            case DatalayerOperation.DELETE:
                return await api.async_datalayer_delete(
                    self._session, self._hostname, credential, path, timeout
                )
        error_msg = f"Unsupported operation: {operation}"
        raise ValueError(error_msg)
