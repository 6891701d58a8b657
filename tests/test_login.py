"""Tests for the Grohe HTML login flow."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from custom_components.grohe_smarthome.const import LOGIN_START_URL
from custom_components.grohe_smarthome.exceptions import AuthErrorKind, GroheAuthError
from custom_components.grohe_smarthome.login import (
    GroheLoginFlow,
    LoginState,
    detect_known_html_error,
    parse_login_form,
    parse_ondus_location,
)
from custom_components.grohe_smarthome.session import HttpResponse

from .conftest import (
    LOGIN_PAGE_HTML,
    TEST_AUTH_URL,
    TEST_EMAIL,
    TEST_ONDUS_LOCATION,
    TEST_PASSWORD,
    TEST_REFRESH_TOKEN,
    html_response,
    mock_http_session,
    redirect_response,
    token_response,
)

CALLBACK_URL = "https://idp2-apigw.cloud.grohe.com/v1/sso/auth/realms/idp2-apigw/hop"

# ---------------------------------------------------------------------------
# parse_ondus_location
# ---------------------------------------------------------------------------


def test_parse_ondus_location_keeps_host_path_and_query() -> None:
    """Test that only the scheme is replaced."""
    redirect = parse_ondus_location(TEST_ONDUS_LOCATION)

    assert redirect.https_url == (
        "https://idp2-apigw.cloud.grohe.com/v3/iot/oidc/token"
        "?state=st-1&session_state=ss-1&code=code-1"
    )
    assert redirect.code == "code-1"
    assert redirect.state == "st-1"
    assert redirect.params["session_state"] == "ss-1"


def test_parse_ondus_location_keeps_encoded_query() -> None:
    """Test that percent-encoded query values are not re-encoded."""
    location = "ondus://host.example/path?code=a%2Fb&state=x%20y"

    redirect = parse_ondus_location(location)

    assert redirect.https_url == "https://host.example/path?code=a%2Fb&state=x%20y"
    assert redirect.code == "a/b"
    assert redirect.state == "x y"


def test_parse_ondus_location_without_code() -> None:
    """Test that a redirect without code is rejected."""
    with pytest.raises(GroheAuthError) as exc_info:
        parse_ondus_location("ondus://host.example/path?state=x")

    assert exc_info.value.kind is AuthErrorKind.REDIRECT_INVALID


# ---------------------------------------------------------------------------
# parse_login_form
# ---------------------------------------------------------------------------


def test_parse_login_form_resolves_action_and_fields() -> None:
    """Test action resolution, entity decoding and field detection."""
    form = parse_login_form(TEST_AUTH_URL, LOGIN_PAGE_HTML)

    assert form.action_url == (
        "https://idp2-apigw.cloud.grohe.com/v1/sso/auth/realms/idp2-apigw"
        "/login-actions/authenticate"
        "?session_code=abc&execution=e1&client_id=iot&tab_id=t1"
    )
    assert form.user_field == "username"
    assert form.pass_field == "password"
    assert form.fields["rememberMe"] == "on"


def test_login_payload_injects_credentials_and_credential_id() -> None:
    """Test that credentials and an empty credentialId are submitted."""
    form = parse_login_form(TEST_AUTH_URL, LOGIN_PAGE_HTML)

    payload = form.build_payload(TEST_EMAIL, TEST_PASSWORD)

    assert payload["username"] == TEST_EMAIL
    assert payload["password"] == TEST_PASSWORD
    assert payload["credentialId"] == ""
    assert payload["rememberMe"] == "on"


def test_parse_login_form_keeps_existing_credential_id() -> None:
    """Test that a credentialId served by the page is kept."""
    html = """
    <form action="https://idp.example/login">
      <input name="email" type="email">
      <input name="pwd" type="password">
      <input name="credentialId" type="hidden" value="cred-7">
    </form>
    """

    form = parse_login_form("https://idp.example/auth", html)
    payload = form.build_payload("a@b.c", "pw")

    assert form.user_field == "email"
    assert form.pass_field == "pwd"
    assert payload == {"email": "a@b.c", "pwd": "pw", "credentialId": "cred-7"}


def test_parse_login_form_falls_back_to_first_text_input() -> None:
    """Test username detection without a well-known field name."""
    html = """
    <form action="/login">
      <input name="login_name" type="text">
      <input name="secret" type="password">
    </form>
    """

    form = parse_login_form("https://idp.example/auth", html)

    assert form.user_field == "login_name"
    assert form.action_url == "https://idp.example/login"


@pytest.mark.parametrize(
    "html",
    [
        "<html><body>No form here</body></html>",
        '<form method="post"><input name="username"></form>',
    ],
)
def test_parse_login_form_without_action(html: str) -> None:
    """Test that a page without a form action is rejected."""
    with pytest.raises(GroheAuthError) as exc_info:
        parse_login_form(TEST_AUTH_URL, html)

    assert exc_info.value.kind is AuthErrorKind.LOGIN_FORM_INVALID


# ---------------------------------------------------------------------------
# detect_known_html_error
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("html", "expected"),
    [
        ("<p>Restart login cookie not found.</p>", AuthErrorKind.RESTART_COOKIE_NOT_FOUND),
        ("<h1>We're sorry...</h1>", AuthErrorKind.KEYCLOAK_SORRY_PAGE),
        ("<span>Invalid username or password.</span>", AuthErrorKind.INVALID_CREDENTIALS),
        ('<input id="otp" name="otp" autocomplete="off">', AuthErrorKind.MFA_REQUIRED),
        ("<div>Two-factor authentication</div>", AuthErrorKind.MFA_REQUIRED),
        ("<p>Carbon footprint of your water usage</p>", None),
        (LOGIN_PAGE_HTML, None),
        ("", None),
    ],
)
def test_detect_known_html_error(html: str, expected: AuthErrorKind | None) -> None:
    """Test detection of known identity provider pages."""
    assert detect_known_html_error(html) is expected


# ---------------------------------------------------------------------------
# GroheLoginFlow
# ---------------------------------------------------------------------------


def _login_session(
    after_form: HttpResponse,
    chain: list[HttpResponse] | None = None,
    exchange: HttpResponse | None = None,
) -> MagicMock:
    """Script one login attempt up to the token exchange."""
    gets: list[HttpResponse] = [
        redirect_response(TEST_AUTH_URL),
        html_response(LOGIN_PAGE_HTML),
        *(chain or []),
    ]
    if exchange is not None:
        gets.append(exchange)
    return mock_http_session(get=gets, post=[after_form])


def _factory(*sessions: MagicMock) -> MagicMock:
    return MagicMock(side_effect=list(sessions))


async def test_login_success() -> None:
    """Test a full login through one intermediate redirect."""
    session = _login_session(
        after_form=redirect_response(CALLBACK_URL),
        chain=[redirect_response(TEST_ONDUS_LOCATION)],
        exchange=token_response("access-1", TEST_REFRESH_TOKEN),
    )
    factory = _factory(session)
    flow = GroheLoginFlow(factory)

    tokens = await flow.async_login(TEST_EMAIL, TEST_PASSWORD)

    assert tokens.access_token == "access-1"
    assert tokens.refresh_token == TEST_REFRESH_TOKEN
    assert flow.state is LoginState.TOKEN_REDIRECT
    factory.assert_called_once()
    session.close.assert_awaited_once()

    assert session.get.call_args_list[0].args[0] == LOGIN_START_URL
    assert session.get.call_args_list[1].args[0] == TEST_AUTH_URL
    assert session.get.call_args_list[2].args[0] == CALLBACK_URL
    # get_callback_url strategy fetches the converted ondus redirect
    assert session.get.call_args_list[3].args[0].startswith(
        "https://idp2-apigw.cloud.grohe.com/v3/iot/oidc/token?"
    )

    post = session.post.call_args
    assert post.kwargs["data"]["username"] == TEST_EMAIL
    assert post.kwargs["data"]["password"] == TEST_PASSWORD
    assert post.kwargs["data"]["credentialId"] == ""
    assert post.kwargs["headers"]["Referer"] == TEST_AUTH_URL
    assert (
        post.kwargs["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
    )


async def test_login_invalid_credentials_is_not_retried() -> None:
    """Test that a wrong password fails on the first attempt."""
    session = _login_session(
        after_form=html_response(
            '<span id="input-error">Invalid username or password.</span>'
        )
    )
    factory = _factory(session)
    flow = GroheLoginFlow(factory)

    with pytest.raises(GroheAuthError) as exc_info:
        await flow.async_login(TEST_EMAIL, "wrong")

    assert exc_info.value.kind is AuthErrorKind.INVALID_CREDENTIALS
    assert exc_info.value.is_fatal
    assert flow.state is LoginState.HTML_ERROR
    factory.assert_called_once()
    session.close.assert_awaited_once()


async def test_login_mfa_page() -> None:
    """Test that an OTP page reports MFA_REQUIRED."""
    session = _login_session(
        after_form=html_response('<form><input id="otp" name="otp"></form>')
    )
    flow = GroheLoginFlow(_factory(session))

    with pytest.raises(GroheAuthError) as exc_info:
        await flow.async_login(TEST_EMAIL, TEST_PASSWORD)

    assert exc_info.value.kind is AuthErrorKind.MFA_REQUIRED


async def test_login_restart_cookie_uses_fresh_session_per_attempt() -> None:
    """Test that each retry starts over with a new, empty session."""
    restart_page = html_response("<p>Restart login cookie not found.</p>")
    sessions = [_login_session(after_form=restart_page) for _ in range(3)]
    factory = _factory(*sessions)
    flow = GroheLoginFlow(factory)

    with pytest.raises(GroheAuthError) as exc_info:
        await flow.async_login(TEST_EMAIL, TEST_PASSWORD)

    assert exc_info.value.kind is AuthErrorKind.LOGIN_ATTEMPTS_EXHAUSTED
    assert factory.call_count == 3
    assert len({id(session) for session in sessions}) == 3
    for session in sessions:
        session.close.assert_awaited_once()
        assert session.get.call_args_list[0].args[0] == LOGIN_START_URL


async def test_login_restart_cookie_then_success() -> None:
    """Test that a lost restart cookie is recovered by a new attempt."""
    first = _login_session(
        after_form=html_response("<p>Restart login cookie not found.</p>")
    )
    second = _login_session(
        after_form=redirect_response(TEST_ONDUS_LOCATION),
        exchange=token_response("access-2"),
    )
    factory = _factory(first, second)

    tokens = await GroheLoginFlow(factory).async_login(TEST_EMAIL, TEST_PASSWORD)

    assert tokens.access_token == "access-2"
    assert factory.call_count == 2
    first.close.assert_awaited_once()
    second.close.assert_awaited_once()


async def test_login_follows_exactly_twenty_redirects() -> None:
    """Test that the token redirect may arrive on the 20th hop."""
    chain = [redirect_response(CALLBACK_URL) for _ in range(19)]
    chain.append(redirect_response(TEST_ONDUS_LOCATION))
    session = _login_session(
        after_form=redirect_response(CALLBACK_URL),
        chain=chain,
        exchange=token_response(),
    )

    tokens = await GroheLoginFlow(_factory(session)).async_login(
        TEST_EMAIL, TEST_PASSWORD
    )

    assert tokens.access_token == "access-1"
    # start + auth page + 20 hops + token exchange
    assert session.get.call_count == 23


async def test_login_stops_after_twenty_redirects() -> None:
    """Test that a 21st redirect fails the login."""
    calls: list[str] = []

    async def _get(url: str, **kwargs: Any) -> HttpResponse:
        calls.append(url)
        if len(calls) == 1:
            return redirect_response(TEST_AUTH_URL)
        if len(calls) == 2:
            return html_response(LOGIN_PAGE_HTML)
        return redirect_response(CALLBACK_URL)

    session = mock_http_session(
        get=_get, post=[redirect_response(CALLBACK_URL)]
    )

    with pytest.raises(GroheAuthError) as exc_info:
        await GroheLoginFlow(_factory(session)).async_login(TEST_EMAIL, TEST_PASSWORD)

    assert exc_info.value.kind is AuthErrorKind.UNEXPECTED_FLOW_STATE
    # start + auth page + 20 hops
    assert len(calls) == 22
    session.close.assert_awaited_once()


async def test_login_relative_redirect_is_resolved() -> None:
    """Test that relative Location headers resolve against the current URL."""
    session = _login_session(
        after_form=redirect_response("/v1/sso/next"),
        chain=[redirect_response(TEST_ONDUS_LOCATION)],
        exchange=token_response(),
    )

    await GroheLoginFlow(_factory(session)).async_login(TEST_EMAIL, TEST_PASSWORD)

    assert (
        session.get.call_args_list[2].args[0]
        == "https://idp2-apigw.cloud.grohe.com/v1/sso/next"
    )


async def test_login_unexpected_start_response() -> None:
    """Test that the start URL must redirect."""
    session = mock_http_session(get=[html_response("<html></html>")])

    with pytest.raises(GroheAuthError) as exc_info:
        await GroheLoginFlow(_factory(session)).async_login(TEST_EMAIL, TEST_PASSWORD)

    assert exc_info.value.kind is AuthErrorKind.UNEXPECTED_START_RESPONSE
    session.close.assert_awaited_once()


async def test_login_sorry_page_instead_of_form() -> None:
    """Test that an error page served as the login page is detected."""
    session = mock_http_session(
        get=[
            redirect_response(TEST_AUTH_URL),
            html_response("<h1>We're sorry...</h1><p>Unexpected error</p>"),
        ]
    )

    with pytest.raises(GroheAuthError) as exc_info:
        await GroheLoginFlow(_factory(session)).async_login(TEST_EMAIL, TEST_PASSWORD)

    assert exc_info.value.kind is AuthErrorKind.KEYCLOAK_SORRY_PAGE
    session.post.assert_not_awaited()


async def test_login_unknown_html_after_form() -> None:
    """Test that an unrecognised page after the form fails the flow."""
    session = _login_session(after_form=html_response("<p>Please wait</p>"))

    with pytest.raises(GroheAuthError) as exc_info:
        await GroheLoginFlow(_factory(session)).async_login(TEST_EMAIL, TEST_PASSWORD)

    assert exc_info.value.kind is AuthErrorKind.UNEXPECTED_FLOW_STATE


@pytest.mark.parametrize(("email", "password"), [("", "pw"), ("a@b.c", "")])
async def test_login_missing_credentials(email: str, password: str) -> None:
    """Test that no session is created without credentials."""
    factory = MagicMock()

    with pytest.raises(GroheAuthError) as exc_info:
        await GroheLoginFlow(factory).async_login(email, password)

    assert exc_info.value.kind is AuthErrorKind.MISSING_CREDENTIALS
    factory.assert_not_called()
