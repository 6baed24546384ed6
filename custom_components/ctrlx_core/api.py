"""API client for ctrlX CORE devices.

This module provides functions to interact with the ctrlX CORE REST API,
including authentication, token revocation and ctrlX Data Layer requests,
together with the error taxonomy shared by the whole integration.
"""

import base64
import binascii
import json
import logging
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from urllib.parse import quote

import httpx
from homeassistant.core import HomeAssistant
from homeassistant.helpers.httpx_client import create_async_httpx_client
from httpx_retries import Retry, RetryTransport

from .const import AUTH_TOKEN_PATH, DATALAYER_NODES_PATH, DEFAULT_CLIENT_TIMEOUT
from .models import Credential, ReadKind, TokenClaims

_LOGGER = logging.getLogger(__name__)

# HTTP status codes
HTTP_OK = 200
HTTP_CREATED = 201
HTTP_NO_CONTENT = 204
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401

RETRY_ON_EXCEPTIONS = (httpx.NetworkError, httpx.RemoteProtocolError)

READ_TYPES = {
    ReadKind.DATA: "read",
    ReadKind.METADATA: "metadata",
    ReadKind.BROWSE: "browse",
}


class ErrorKind(StrEnum):
    """Classification of every error raised by the integration."""

    TRANSPORT = "transport"
    DEVICE_PROBLEM = "device_problem"
    PROTOCOL_VIOLATION = "protocol_violation"
    USAGE = "usage"


class CtrlxError(Exception):
    """Base exception for ctrlX CORE errors."""

    kind: ErrorKind


class CtrlxTransportError(CtrlxError):
    """Exception raised when the device could not be reached."""

    kind = ErrorKind.TRANSPORT


class CtrlxTimeoutError(CtrlxTransportError):
    """Exception raised when a request ran into its timeout."""


class CtrlxProblemError(CtrlxError):
    """Exception raised when the device answered with a problem response.

    Attributes:
        status: HTTP status code of the response.
        title: Short summary of the problem.
        detail: Explanation specific to this occurrence.
        type: URI reference identifying the problem type.
        instance: URI reference identifying this occurrence.
        main_diagnosis_code: ctrlX main diagnosis code.
        detailed_diagnosis_code: ctrlX detailed diagnosis code.
        dynamic_description: Additional device supplied description.
        severity: Severity reported by the device.

    """

    kind = ErrorKind.DEVICE_PROBLEM

    def __init__(
        self,
        status: int,
        title: str,
        detail: str | None = None,
        *,
        type: str | None = None,  # noqa: A002
        instance: str | None = None,
        main_diagnosis_code: str | None = None,
        detailed_diagnosis_code: str | None = None,
        dynamic_description: str | None = None,
        severity: str | None = None,
    ) -> None:
        message = f"{title} ({status})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.status = status
        self.title = title
        self.detail = detail
        self.type = type
        self.instance = instance
        self.main_diagnosis_code = main_diagnosis_code
        self.detailed_diagnosis_code = detailed_diagnosis_code
        self.dynamic_description = dynamic_description
        self.severity = severity

    @property
    def is_auth_error(self) -> bool:
        """Return True if the device rejected the authorization."""
        return is_auth_error(self.status)

    @classmethod
    def from_response(cls, response: httpx.Response) -> "CtrlxProblemError":
        """Build the error from a problem response of the device.

        Args:
            response: HTTP response with an error status.

        The status is always the HTTP status of the response, the status
        field of the body is ignored.

        Returns:
            Error carrying the status and the problem details, if any.

        """
        problem: dict[str, Any] = {}
        if response.content:
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                problem = body

        return cls(
            response.status_code,
            problem.get("title") or response.reason_phrase or "Request failed",
            problem.get("detail"),
            type=problem.get("type"),
            instance=problem.get("instance"),
            main_diagnosis_code=problem.get("mainDiagnosisCode"),
            detailed_diagnosis_code=problem.get("detailedDiagnosisCode"),
            dynamic_description=problem.get("dynamicDescription"),
            severity=problem.get("severity"),
        )


class CtrlxProtocolError(CtrlxError):
    """Exception raised when a response does not have the expected shape."""

    kind = ErrorKind.PROTOCOL_VIOLATION


class CtrlxTokenDecodeError(CtrlxProtocolError):
    """Exception raised when a session token cannot be decoded."""


class CtrlxNotAuthenticatedError(CtrlxError):
    """Exception raised when a request is made without a session."""

    kind = ErrorKind.USAGE


def create_headers(credential: Credential | None = None) -> dict[str, str]:
    """Create HTTP headers for ctrlX CORE requests.

    Args:
        credential: Optional token to authorize the request with.

    Returns:
        Dictionary containing HTTP headers for API requests.

    """
    headers = {
        "accept": "application/json",
        "content-type": "application/json",
    }
    if credential:
        headers["Authorization"] = credential.authorization
    return headers


def build_url(hostname: str, path: str) -> str:
    """Build the HTTPS URL of a REST resource on the device."""
    return f"https://{hostname}{path}"


def build_node_url(hostname: str, node: str) -> str:
    """Build the URL of a ctrlX Data Layer node."""
    return build_url(hostname, f"{DATALAYER_NODES_PATH}/{quote(node.strip('/'))}")


def request_timeout(timeout_ms: int) -> Any:
    """Translate a millisecond timeout into an httpx request timeout.

    Args:
        timeout_ms: Timeout in milliseconds, negative for the client default.

    """
    if timeout_ms < 0:
        return httpx.USE_CLIENT_DEFAULT
    return timeout_ms / 1000


def is_http_error(status: int) -> bool:
    """Check if HTTP status code indicates an error."""
    return status >= HTTP_BAD_REQUEST


def is_auth_error(status: int) -> bool:
    """Check if HTTP status code indicates an authorization error."""
    return status == HTTP_UNAUTHORIZED


def validate_response(
    response: httpx.Response,
    expected: tuple[int, ...] = (HTTP_OK,),
) -> Any:
    """Validate HTTP response and return the parsed JSON body.

    Args:
        response: HTTP response object to validate.
        expected: Status codes that count as success.

    Returns:
        Parsed JSON body, or None if the response has no body.

    Raises:
        CtrlxProblemError: If the device answered with an error status.
        CtrlxProtocolError: If the status or body is not what was expected.

    """
    if is_http_error(response.status_code):
        raise CtrlxProblemError.from_response(response)

    if response.status_code not in expected:
        error_msg = f"Unexpected response status: {response.status_code}"
        raise CtrlxProtocolError(error_msg)

    if not response.content:
        return None

    try:
        return response.json()
    except ValueError as err:
        error_msg = f"Response is not valid JSON: {err}"
        raise CtrlxProtocolError(error_msg) from err


def decode_jwt(token: str) -> dict[str, Any]:
    """Decode the payload of a JSON Web Token without verifying it.

    Args:
        token: JWT token string.

    Returns:
        The claims of the token.

    Raises:
        CtrlxTokenDecodeError: If the token is malformed.

    """
    jwt_parts_count = 3
    base64_padding_mod = 4

    parts = token.split(".")
    if len(parts) != jwt_parts_count:
        error_msg = "Invalid JWT format: expected 3 parts"
        raise CtrlxTokenDecodeError(error_msg)

    payload_encoded = parts[1]
    padding = len(payload_encoded) % base64_padding_mod
    if padding:
        payload_encoded += "=" * (base64_padding_mod - padding)

    try:
        payload_bytes = base64.urlsafe_b64decode(payload_encoded)
        payload = json.loads(payload_bytes.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as err:
        error_msg = f"Failed to decode JWT payload: {err}"
        raise CtrlxTokenDecodeError(error_msg) from err

    if not isinstance(payload, dict):
        error_msg = "JWT payload is not a JSON object"
        raise CtrlxTokenDecodeError(error_msg)

    return payload


def extract_token_claims(token: str) -> TokenClaims:
    """Extract the issued-at and expiry claims of a session token.

    Raises:
        CtrlxTokenDecodeError: If the token is malformed or a claim is missing
            or out of range.

    """
    payload = decode_jwt(token)
    issued_at = payload.get("iat")
    expires_at = payload.get("exp")
    for name, value in (("iat", issued_at), ("exp", expires_at)):
        if not isinstance(value, int | float) or isinstance(value, bool):
            error_msg = f"JWT token missing '{name}' claim"
            raise CtrlxTokenDecodeError(error_msg)

    try:
        return TokenClaims(
            issued_at=datetime.fromtimestamp(issued_at, tz=UTC),
            expires_at=datetime.fromtimestamp(expires_at, tz=UTC),
            raw=payload,
        )
    except (OverflowError, OSError, ValueError) as err:
        error_msg = f"JWT token has out of range time claims: {err}"
        raise CtrlxTokenDecodeError(error_msg) from err


def create_session_client(
    hass: HomeAssistant,
    verify_ssl: bool = False,
) -> httpx.AsyncClient:
    """Create HTTP client with retry logic for ctrlX CORE devices.

    Args:
        hass: Home Assistant instance.
        verify_ssl: Whether to validate the device certificate. Devices ship
            with self-signed certificates, so this is off by default.

    Returns:
        Configured httpx AsyncClient with retry transport.

    """
    base_client = create_async_httpx_client(
        hass,
        verify_ssl=verify_ssl,
        timeout=DEFAULT_CLIENT_TIMEOUT,
    )
    # Timeouts are not retried so timeout_ms stays the deadline of a request.
    retry = Retry(
        total=3,
        backoff_factor=0.5,
        retry_on_exceptions=RETRY_ON_EXCEPTIONS,
    )
    base_client._transport = RetryTransport(  # noqa: SLF001
        transport=base_client._transport,  # noqa: SLF001
        retry=retry,
    )
    return base_client


async def _async_request(
    session: httpx.AsyncClient,
    method: str,
    url: str,
    timeout_ms: int,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request and map connection failures onto CtrlxTransportError."""
    try:
        return await session.request(
            method,
            url,
            timeout=request_timeout(timeout_ms),
            **kwargs,
        )
    except httpx.TimeoutException as err:
        error_msg = f"Request to {url} timed out"
        raise CtrlxTimeoutError(error_msg) from err
    except httpx.RequestError as err:
        error_msg = f"Request to {url} failed: {err}"
        raise CtrlxTransportError(error_msg) from err


async def async_authenticate(
    session: httpx.AsyncClient,
    hostname: str,
    username: str,
    password: str,
    timeout_ms: int = -1,
) -> dict[str, Any]:
    """Authenticate against a ctrlX CORE and request a session token.

    Args:
        session: HTTP client session.
        hostname: Hostname or IP address of the device.
        username: User to authenticate.
        password: Password of the user.
        timeout_ms: Request timeout in milliseconds, -1 for the default.

    Returns:
        Token response of the device, usually containing "access_token" and
        "token_type".

    Raises:
        CtrlxProblemError: If the device rejects the request.
        CtrlxTransportError: If the device cannot be reached.
        CtrlxProtocolError: If the response is not a JSON object.

    """
    url = build_url(hostname, AUTH_TOKEN_PATH)
    payload = {"name": username, "password": password}

    _LOGGER.debug("Authenticating with ctrlX CORE %s", hostname)
    response = await _async_request(
        session,
        "POST",
        url,
        timeout_ms,
        headers=create_headers(),
        json=payload,
    )
    data = validate_response(response, (HTTP_CREATED,))
    if not isinstance(data, dict):
        error_msg = "Did not receive expected data as authentication response"
        raise CtrlxProtocolError(error_msg)
    _LOGGER.debug("Successfully authenticated with ctrlX CORE %s", hostname)
    return data


async def async_revoke_token(
    session: httpx.AsyncClient,
    hostname: str,
    credential: Credential,
    timeout_ms: int = -1,
) -> None:
    """Delete the session token on the device, which logs the user out.

    Raises:
        CtrlxProblemError: If the device rejects the request.
        CtrlxTransportError: If the device cannot be reached.

    """
    url = build_url(hostname, AUTH_TOKEN_PATH)

    _LOGGER.debug("Revoking session token on ctrlX CORE %s", hostname)
    response = await _async_request(
        session,
        "DELETE",
        url,
        timeout_ms,
        headers=create_headers(credential),
    )
    validate_response(response, (HTTP_NO_CONTENT, HTTP_OK))
    _LOGGER.debug("Session token revoked on ctrlX CORE %s", hostname)


async def async_datalayer_read(
    session: httpx.AsyncClient,
    hostname: str,
    credential: Credential,
    path: str,
    payload: Any = None,
    kind: ReadKind = ReadKind.DATA,
    timeout_ms: int = -1,
) -> Any:
    """Read a node of the ctrlX Data Layer.

    Args:
        session: HTTP client session.
        hostname: Hostname or IP address of the device.
        credential: Token to authorize the request with.
        path: Data Layer path of the node.
        payload: Optional input data for a read with arguments.
        kind: Whether to read the value, the metadata or the children.
        timeout_ms: Request timeout in milliseconds, -1 for the default.

    Returns:
        The response of the device, e.g. {"value": 5, "type": "int32"}.

    """
    url = build_node_url(hostname, path)
    kwargs: dict[str, Any] = {"params": {"type": READ_TYPES[kind]}}
    if payload is not None:
        kwargs["json"] = payload

    _LOGGER.debug("Reading %s of node %s", kind, path)
    response = await _async_request(
        session,
        "GET",
        url,
        timeout_ms,
        headers=create_headers(credential),
        **kwargs,
    )
    return validate_response(response)


async def async_datalayer_write(
    session: httpx.AsyncClient,
    hostname: str,
    credential: Credential,
    path: str,
    payload: Any,
    timeout_ms: int = -1,
) -> Any:
    """Write a value to a node of the ctrlX Data Layer.

    Returns:
        The value written, as confirmed by the device.

    """
    url = build_node_url(hostname, path)

    _LOGGER.debug("Writing node %s", path)
    response = await _async_request(
        session,
        "PUT",
        url,
        timeout_ms,
        headers=create_headers(credential),
        json=payload,
    )
    return validate_response(response)


async def async_datalayer_create(
    session: httpx.AsyncClient,
    hostname: str,
    credential: Credential,
    path: str,
    payload: Any,
    timeout_ms: int = -1,
) -> Any:
    """Call create on a node of the ctrlX Data Layer, e.g. to add an axis."""
    url = build_node_url(hostname, path)

    _LOGGER.debug("Creating on node %s", path)
    response = await _async_request(
        session,
        "POST",
        url,
        timeout_ms,
        headers=create_headers(credential),
        json=payload,
    )
    return validate_response(response, (HTTP_OK, HTTP_CREATED))


async def async_datalayer_delete(
    session: httpx.AsyncClient,
    hostname: str,
    credential: Credential,
    path: str,
    timeout_ms: int = -1,
) -> None:
    """Call delete on a node of the ctrlX Data Layer."""
    url = build_node_url(hostname, path)

    _LOGGER.debug("Deleting node %s", path)
    response = await _async_request(
        session,
        "DELETE",
        url,
        timeout_ms,
        headers=create_headers(credential),
    )
    validate_response(response, (HTTP_OK, HTTP_NO_CONTENT))
