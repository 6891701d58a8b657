"""Browser-less login against the Grohe Keycloak identity provider.

The identity provider only offers an interactive authorization code
flow whose final redirect uses the app scheme ``ondus://``. The flow is
driven by hand: fetch the login page, submit its form, then follow the
redirect chain until the ondus:// redirect appears.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
import logging
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urljoin, urlsplit

from bs4 import BeautifulSoup

from .const import (
    DEFAULT_TOKEN_EXCHANGE_STRATEGIES,
    HTML_ACCEPT,
    LOGIN_START_URL,
    MAX_LOGIN_ATTEMPTS,
    MAX_REDIRECTS,
    ONDUS_SCHEME,
)
from .exceptions import AuthErrorKind, GroheAuthError
from .token_exchange import async_exchange_tokens
from .util import safe_host_path

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import TokenPair
    from .session import GroheHttpSession, HttpResponse

_LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[], "GroheHttpSession"]

# Checked in order against the lower-cased page.
KNOWN_HTML_ERRORS: tuple[tuple[str, AuthErrorKind], ...] = (
    ("restart login cookie not found", AuthErrorKind.RESTART_COOKIE_NOT_FOUND),
    ("we're sorry", AuthErrorKind.KEYCLOAK_SORRY_PAGE),
    ("invalid username or password", AuthErrorKind.INVALID_CREDENTIALS),
    ('name="otp"', AuthErrorKind.MFA_REQUIRED),
    ('id="otp"', AuthErrorKind.MFA_REQUIRED),
    ("kc-otp", AuthErrorKind.MFA_REQUIRED),
    ("totp", AuthErrorKind.MFA_REQUIRED),
    ("two-factor", AuthErrorKind.MFA_REQUIRED),
)

USERNAME_FIELD_CANDIDATES = ("username", "email", "usernameOrEmail")

_HTML_HEADERS = {"Accept": HTML_ACCEPT}


class LoginState(StrEnum):
    """States of the login flow driver."""

    START = "start"
    AUTH_PAGE = "auth_page"
    FORM_SUBMITTED = "form_submitted"
    REDIRECT_CHAIN = "redirect_chain"
    TOKEN_REDIRECT = "token_redirect"
    HTML_ERROR = "html_error"


@dataclass
class LoginForm:
    """Login form parsed from the identity provider page."""

    action_url: str
    fields: dict[str, str] = field(default_factory=dict)
    user_field: str = "username"
    pass_field: str = "password"

    def build_payload(self, username: str, password: str) -> dict[str, str]:
        """Return the form fields with the credentials filled in."""
        return {
            **self.fields,
            self.user_field: username,
            self.pass_field: password,
        }


@dataclass(frozen=True)
class OndusRedirect:
    """Terminal ondus:// redirect converted for reuse over https."""

    https_url: str
    params: dict[str, str]

    @property
    def code(self) -> str:
        """Return the authorization code."""
        return self.params["code"]

    @property
    def state(self) -> str | None:
        """Return the OAuth state, if present."""
        return self.params.get("state")


def detect_known_html_error(html: str | None) -> AuthErrorKind | None:
    """Return the error kind of a known identity provider error page."""
    if not html:
        return None
    lowered = html.lower()
    for marker, kind in KNOWN_HTML_ERRORS:
        if marker in lowered:
            return kind
    return None


def parse_ondus_location(location: str) -> OndusRedirect:
    """Convert an ondus:// Location into an https URL and its parameters.

    Only the scheme is replaced; host, path and the query string are kept
    byte for byte.

    Raises:
        GroheAuthError: REDIRECT_INVALID if the redirect carries no code

    """
    if not location.startswith(ONDUS_SCHEME):
        raise GroheAuthError(
            AuthErrorKind.REDIRECT_INVALID, f"not an ondus redirect: {location[:40]}"
        )
    https_url = "https://" + location[len(ONDUS_SCHEME) :]
    params = dict(parse_qsl(urlsplit(https_url).query, keep_blank_values=True))
    if not params.get("code"):
        raise GroheAuthError(
            AuthErrorKind.REDIRECT_INVALID,
            f"ondus redirect without code (params: {', '.join(sorted(params))})",
        )
    return OndusRedirect(https_url=https_url, params=params)


def parse_login_form(page_url: str, html: str) -> LoginForm:
    """Parse the first form of the login page.

    Raises:
        GroheAuthError: LOGIN_FORM_INVALID if there is no form action

    """
    soup = BeautifulSoup(html, "html.parser")
    form = soup.find("form")
    if form is None or not form.get("action"):
        raise GroheAuthError(
            AuthErrorKind.LOGIN_FORM_INVALID, "login form action not found"
        )

    # BeautifulSoup already decodes entities such as &amp; in attributes.
    action_url = urljoin(page_url, form["action"])

    fields: dict[str, str] = {}
    pass_field: str | None = None
    first_text_field: str | None = None
    for element in form.find_all("input"):
        name = element.get("name")
        if not name:
            continue
        fields[name] = element.get("value") or ""
        input_type = (element.get("type") or "").lower()
        if pass_field is None and input_type == "password":
            pass_field = name
        if first_text_field is None and input_type in ("text", "email"):
            first_text_field = name

    user_field = next(
        (cand for cand in USERNAME_FIELD_CANDIDATES if cand in fields),
        first_text_field or "username",
    )
    # Required by the identity provider even when unused.
    fields.setdefault("credentialId", "")

    return LoginForm(
        action_url=action_url,
        fields=fields,
        user_field=user_field,
        pass_field=pass_field or "password",
    )


class _RestartLogin(Exception):
    """Internal signal: the identity provider lost its restart cookie."""


class GroheLoginFlow:
    """Drive the HTML login and return the resulting token pair."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        strategies: Sequence[str] = DEFAULT_TOKEN_EXCHANGE_STRATEGIES,
        max_attempts: int = MAX_LOGIN_ATTEMPTS,
        max_redirects: int = MAX_REDIRECTS,
    ) -> None:
        """Initialize the login flow.

        Args:
            session_factory: Creates a session with an empty cookie jar;
                called once per attempt
            strategies: Token exchange strategy names, tried in order
            max_attempts: Attempts when the restart cookie is lost
            max_redirects: Redirects followed after the form submission

        """
        self._session_factory = session_factory
        self._strategies = list(strategies)
        self._max_attempts = max_attempts
        self._max_redirects = max_redirects
        self.state = LoginState.START

    async def async_login(self, username: str, password: str) -> TokenPair:
        """Log in with username and password.

        Raises:
            GroheAuthError: If the login fails; see AuthErrorKind

        """
        if not username or not password:
            raise GroheAuthError(
                AuthErrorKind.MISSING_CREDENTIALS, "email or password missing"
            )

        for attempt in range(1, self._max_attempts + 1):
            _LOGGER.debug("Login attempt %s/%s", attempt, self._max_attempts)
            session = self._session_factory()
            try:
                return await self._async_attempt(session, username, password)
            except _RestartLogin:
                _LOGGER.debug("Restart login cookie not found, retrying login")
            finally:
                await session.close()

        raise GroheAuthError(
            AuthErrorKind.LOGIN_ATTEMPTS_EXHAUSTED,
            f"restart login cookie not found after {self._max_attempts} attempts",
        )

    async def _async_attempt(
        self, session: GroheHttpSession, username: str, password: str
    ) -> TokenPair:
        """Run one pass from the start URL to the token redirect."""
        self.state = LoginState.START
        auth_url, auth_html = await self._async_get_auth_page(session)

        form = parse_login_form(auth_url, auth_html)
        _LOGGER.debug(
            "Login form action=%s fields=%s userField=%s passField=%s",
            safe_host_path(form.action_url),
            len(form.fields),
            form.user_field,
            form.pass_field,
        )

        self.state = LoginState.FORM_SUBMITTED
        _LOGGER.debug(
            "POST authenticate %s referer=%s",
            safe_host_path(form.action_url),
            safe_host_path(auth_url),
        )
        response = await session.post(
            form.action_url,
            data=form.build_payload(username, password),
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Referer": auth_url,
                **_HTML_HEADERS,
            },
        )

        redirect = await self._async_follow_redirects(
            session, response, form.action_url
        )
        return await async_exchange_tokens(session, redirect, self._strategies)

    async def _async_get_auth_page(
        self, session: GroheHttpSession
    ) -> tuple[str, str]:
        """Fetch the login start URL and the identity provider page."""
        _LOGGER.debug("GET start %s", safe_host_path(LOGIN_START_URL))
        start = await session.get(LOGIN_START_URL, headers=_HTML_HEADERS)
        if start.status != 302 or not start.location:
            raise GroheAuthError(
                AuthErrorKind.UNEXPECTED_START_RESPONSE,
                f"expected redirect, got HTTP {start.status}",
            )

        self.state = LoginState.AUTH_PAGE
        auth_url = urljoin(LOGIN_START_URL, start.location)
        _LOGGER.debug("GET auth %s (query hidden)", safe_host_path(auth_url))
        auth = await session.get(auth_url, headers=_HTML_HEADERS)
        if auth.status != 200 or not auth.is_html:
            raise GroheAuthError(
                AuthErrorKind.AUTH_PAGE_UNEXPECTED,
                f"login page returned HTTP {auth.status}",
            )

        if (kind := detect_known_html_error(auth.text)) is not None:
            self.state = LoginState.HTML_ERROR
            raise GroheAuthError(kind, "error page served instead of login form")

        return auth_url, auth.text

    async def _async_follow_redirects(
        self,
        session: GroheHttpSession,
        response: HttpResponse,
        base_url: str,
    ) -> OndusRedirect:
        """Follow redirects until the ondus:// token redirect appears."""
        self.state = LoginState.REDIRECT_CHAIN
        current_url = base_url
        redirects = 0

        while True:
            location = response.location
            _LOGGER.debug(
                "Step status=%s next=%s",
                response.status,
                safe_host_path(location) if location else "(none)",
            )

            if location and location.startswith(ONDUS_SCHEME):
                redirect = parse_ondus_location(location)
                self.state = LoginState.TOKEN_REDIRECT
                _LOGGER.debug(
                    "Token redirect %s (query hidden)",
                    safe_host_path(redirect.https_url),
                )
                return redirect

            if location and response.status in (302, 303):
                if redirects >= self._max_redirects:
                    raise GroheAuthError(
                        AuthErrorKind.UNEXPECTED_FLOW_STATE,
                        f"more than {self._max_redirects} redirects",
                    )
                redirects += 1
                current_url = urljoin(current_url, location)
                response = await session.get(current_url, headers=_HTML_HEADERS)
                continue

            if response.status == 200 and response.is_html:
                self.state = LoginState.HTML_ERROR
                kind = detect_known_html_error(response.text)
                if kind is AuthErrorKind.RESTART_COOKIE_NOT_FOUND:
                    raise _RestartLogin
                if kind is not None:
                    raise GroheAuthError(kind, "identity provider error page")
                raise GroheAuthError(
                    AuthErrorKind.UNEXPECTED_FLOW_STATE,
                    "identity provider returned HTML instead of a redirect",
                )

            raise GroheAuthError(
                AuthErrorKind.UNEXPECTED_FLOW_STATE,
                f"unexpected response HTTP {response.status}",
            )
