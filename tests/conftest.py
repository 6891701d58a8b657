"""Fixtures for Grohe Smarthome tests."""

from __future__ import annotations

import base64
import json
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock

from homeassistant.const import CONF_EMAIL, CONF_PASSWORD
import pytest

from custom_components.grohe_smarthome.const import CONF_REFRESH_TOKEN
from custom_components.grohe_smarthome.session import HttpResponse

if TYPE_CHECKING:
    from collections.abc import Generator

pytest_plugins = "pytest_homeassistant_custom_component"

# ---------------------------------------------------------------------------
# Common test data
# ---------------------------------------------------------------------------

TEST_EMAIL = "User@Example.com"
TEST_PASSWORD = "correct horse"
TEST_ISSUER = "https://idp2-apigw.cloud.grohe.com/v1/sso/auth/realms/idp2-apigw"
TEST_TOKEN_URL = f"{TEST_ISSUER}/protocol/openid-connect/token"

TEST_AUTH_URL = (
    "https://idp2-apigw.cloud.grohe.com/v1/sso/auth/realms/idp2-apigw"
    "/protocol/openid-connect/auth?client_id=iot&response_type=code"
)
TEST_FORM_ACTION = (
    "/v1/sso/auth/realms/idp2-apigw/login-actions/authenticate"
    "?session_code=abc&amp;execution=e1&amp;client_id=iot&amp;tab_id=t1"
)
TEST_ONDUS_LOCATION = (
    "ondus://idp2-apigw.cloud.grohe.com/v3/iot/oidc/token"
    "?state=st-1&session_state=ss-1&code=code-1"
)

SENSE_ID = "sense-0001"
GUARD_ID = "guard-0001"
BLUE_ID = "blue-0001"


def make_jwt(claims: dict[str, Any]) -> str:
    """Build an unsigned JWT carrying the given claims."""

    def _segment(data: dict[str, Any]) -> str:
        raw = json.dumps(data).encode()
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")

    return f"{_segment({'alg': 'HS256', 'typ': 'JWT'})}.{_segment(claims)}.signature"


TEST_REFRESH_TOKEN = make_jwt({"iss": TEST_ISSUER, "azp": "iot", "typ": "Refresh"})

LOGIN_PAGE_HTML = f"""
<!DOCTYPE html>
<html>
<head><title>Sign in to Grohe</title></head>
<body>
  <form id="kc-form-login" action="{TEST_FORM_ACTION}" method="post">
    <input id="username" name="username" type="text" value="">
    <input id="password" name="password" type="password">
    <input type="hidden" name="rememberMe" value="on">
    <input type="submit" value="Sign in">
  </form>
</body>
</html>
"""

SAMPLE_SENSE = {
    "appliance_id": SENSE_ID,
    "appliance_type": "SENSE",
    "name": "Bathroom Sense",
    "online": True,
    "data_latest": {
        "temperature": 21.5,
        "humidity": 48,
        "leak_detected": False,
        "battery_level": 87,
    },
}

SAMPLE_SENSE_GUARD = {
    "appliance_id": GUARD_ID,
    "appliance_type": "SENSE_GUARD",
    "name": "Main Guard",
    "online": True,
    "data_latest": {
        "flow_rate": 3.2,
        "pressure": 4.1,
        "leak_detected": False,
        "valve_open": True,
    },
}

SAMPLE_BLUE_HOME = {
    "appliance_id": BLUE_ID,
    "appliance_type": "BLUE_HOME",
    "name": "Kitchen Blue",
    "online": False,
    "data_latest": {
        "co2_level": 64,
        "filter_remaining": 72,
        "temperature": 7.5,
    },
}

SAMPLE_DEVICES = [SAMPLE_SENSE, SAMPLE_SENSE_GUARD, SAMPLE_BLUE_HOME]


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def json_response(body: Any, status: int = 200) -> HttpResponse:
    """Return a JSON HttpResponse."""
    return HttpResponse(
        status=status,
        headers={"Content-Type": "application/json"},
        text=json.dumps(body),
    )


def token_response(
    access_token: str = "access-1",
    refresh_token: str | None = TEST_REFRESH_TOKEN,
    expires_in: int = 1800,
) -> HttpResponse:
    """Return an OIDC token response."""
    body: dict[str, Any] = {
        "access_token": access_token,
        "expires_in": expires_in,
        "token_type": "Bearer",
    }
    if refresh_token is not None:
        body["refresh_token"] = refresh_token
    return json_response(body)


def html_response(body: str, status: int = 200) -> HttpResponse:
    """Return an HTML HttpResponse."""
    return HttpResponse(
        status=status,
        headers={"Content-Type": "text/html;charset=utf-8"},
        text=body,
    )


def redirect_response(location: str, status: int = 302) -> HttpResponse:
    """Return a redirect HttpResponse."""
    return HttpResponse(status=status, headers={"Location": location})


def mock_http_session(
    *, get: Any = None, post: Any = None, request: Any = None
) -> MagicMock:
    """Return a GroheHttpSession stand-in with scripted responses."""
    session = MagicMock()
    session.get = AsyncMock(side_effect=get)
    session.post = AsyncMock(side_effect=post)
    session.request = AsyncMock(side_effect=request)
    session.close = AsyncMock()
    return session


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(
    enable_custom_integrations: Generator,
) -> Generator:
    """Enable custom integrations for all tests."""
    return


@pytest.fixture
def mock_config_entry_data() -> dict:
    """Return standard config entry data."""
    return {
        CONF_EMAIL: TEST_EMAIL,
        CONF_PASSWORD: TEST_PASSWORD,
        CONF_REFRESH_TOKEN: TEST_REFRESH_TOKEN,
    }
