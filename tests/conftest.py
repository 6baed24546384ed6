"""Pytest configuration and fixtures for ctrlX CORE tests."""

import base64
import json
from datetime import UTC, datetime
from typing import Any

import pytest

TEST_HOST = "192.168.1.1"
TEST_USERNAME = "boschrexroth"
TEST_PASSWORD = "boschrexroth"
TOKEN_LIFETIME = 3600


def create_test_jwt(
    issued_at: int | None = None,
    expires_at: int | None = None,
    **claims: Any,
) -> str:
    """Create a test JWT token with issued-at and expiry claims.

    Args:
        issued_at: Optional issued-at timestamp. Defaults to now.
        expires_at: Optional expiry timestamp. Defaults to one hour after
            issued_at.
        **claims: Additional claims to put into the payload.

    Returns:
        A JWT token string with header, payload, and signature.

    """
    if issued_at is None:
        issued_at = int(datetime.now(UTC).timestamp())
    if expires_at is None:
        expires_at = issued_at + TOKEN_LIFETIME

    header = {"alg": "RS256", "typ": "JWT"}
    payload = {"iat": issued_at, "exp": expires_at, "name": TEST_USERNAME, **claims}

    header_encoded = (
        base64.urlsafe_b64encode(json.dumps(header).encode()).decode().rstrip("=")
    )
    payload_encoded = (
        base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")
    )

    return f"{header_encoded}.{payload_encoded}.signature"


@pytest.fixture
def sample_token() -> str:
    """Fixture providing a token valid for one hour."""
    return create_test_jwt()


@pytest.fixture
def sample_token_response(sample_token: str) -> dict[str, Any]:
    """Fixture providing a sample authentication response.

    Args:
        sample_token: Token fixture.

    Returns:
        A dictionary representing the token response of the device.

    """
    return {"access_token": sample_token, "token_type": "Bearer"}


@pytest.fixture
def sample_read_response() -> dict[str, Any]:
    """Fixture providing a sample Data Layer read response."""
    return {"value": 5, "type": "int32"}


@pytest.fixture
def sample_problem_response() -> dict[str, Any]:
    """Fixture providing a sample problem response of the device.

    Returns:
        A dictionary representing an RFC 7807 problem with ctrlX fields.

    """
    return {
        "type": "about:blank",
        "title": "Unauthorized",
        "status": 401,
        "detail": "token expired",
        "instance": "/automation/api/v2/nodes/a/b/c",
        "mainDiagnosisCode": "080F0100",
        "detailedDiagnosisCode": "080F0101",
        "dynamicDescription": "session invalid",
        "severity": "ERROR",
    }
