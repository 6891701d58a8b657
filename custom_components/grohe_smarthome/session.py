"""HTTP session client shared by the login flow and the API client."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from typing import TYPE_CHECKING, Any

import aiohttp
from homeassistant.helpers.aiohttp_client import (
    async_create_clientsession,
    async_get_clientsession,
)

from .const import API_TIMEOUT, BROWSER_HEADERS, LOGIN_TIMEOUT
from .exceptions import GroheApiConnectionError, GroheApiHttpError
from .util import safe_host_path

if TYPE_CHECKING:
    from collections.abc import Mapping

    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    """Status, headers and body of a response that was not an HTTP error."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    text: str = ""
    url: str = ""

    def header(self, name: str) -> str | None:
        """Return a header value, matching the name case-insensitively."""
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None

    @property
    def location(self) -> str | None:
        """Return the Location header, if any."""
        return self.header("Location")

    @property
    def is_html(self) -> bool:
        """Return True if the body looks like an HTML document."""
        content_type = (self.header("Content-Type") or "").lower()
        if "html" in content_type:
            return True
        return bool(self.text) and self.text.lstrip().startswith("<")

    def json(self) -> Any:
        """Return the decoded JSON body, or None if it is not JSON."""
        try:
            return json.loads(self.text)
        except ValueError:
            return None


class GroheHttpSession:
    """HTTP client that never follows redirects.

    Responses with a status in [200, 400) are returned as HttpResponse;
    4xx/5xx raise GroheApiHttpError. Cookies live in the wrapped
    aiohttp session's cookie jar.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        timeout: float,
        headers: Mapping[str, str] | None = None,
        owns_session: bool = False,
    ) -> None:
        """Initialize the session client.

        Args:
            session: aiohttp session that performs the requests
            timeout: Total timeout per request in seconds
            headers: Base headers merged into every request
            owns_session: Release the aiohttp session on close()

        """
        self._session = session
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._owns_session = owns_session

    @property
    def cookie_jar(self) -> aiohttp.abc.AbstractCookieJar:
        """Return the cookie jar of the wrapped session."""
        return self._session.cookie_jar

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        data: Any = None,
        json_data: Any = None,
    ) -> HttpResponse:
        """Perform a request without following redirects.

        Raises:
            GroheApiHttpError: If the response status is 400 or above
            GroheApiConnectionError: On timeout or connection failure

        """
        request_kwargs: dict[str, Any] = {
            "headers": {**self._headers, **(headers or {})},
            "allow_redirects": False,
            "timeout": aiohttp.ClientTimeout(total=self._timeout),
        }
        if params:
            request_kwargs["params"] = params
        if data is not None:
            request_kwargs["data"] = data
        if json_data is not None:
            request_kwargs["json"] = json_data

        try:
            async with self._session.request(
                method, url, **request_kwargs
            ) as response:
                text = await response.text(errors="replace")
                result = HttpResponse(
                    status=response.status,
                    headers=dict(response.headers),
                    text=text,
                    url=str(response.url),
                )
        except TimeoutError as err:
            raise GroheApiConnectionError(
                f"Timeout after {self._timeout}s: {method} {safe_host_path(url)}"
            ) from err
        except aiohttp.ClientError as err:
            raise GroheApiConnectionError(
                f"Connection error: {method} {safe_host_path(url)}: {err}"
            ) from err

        if result.status >= 400:
            _LOGGER.debug(
                "%s %s returned HTTP %s", method, safe_host_path(url), result.status
            )
            raise GroheApiHttpError(result.status, result.text)
        return result

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """Perform a GET request."""
        return await self.request("GET", url, headers=headers, params=params)

    async def post(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        data: Any = None,
        json_data: Any = None,
    ) -> HttpResponse:
        """Perform a POST request with a form (data) or JSON body."""
        return await self.request(
            "POST", url, headers=headers, data=data, json_data=json_data
        )

    async def close(self) -> None:
        """Release the wrapped session if this client created it.

        Owned sessions come from async_create_clientsession with
        auto_cleanup=False and share Home Assistant's connector; they
        are detached, never closed.
        """
        if self._owns_session and not self._session.closed:
            self._session.detach()


def create_login_session(hass: HomeAssistant) -> GroheHttpSession:
    """Create a session with a fresh cookie jar for one login attempt."""
    session = async_create_clientsession(
        hass,
        auto_cleanup=False,
        cookie_jar=aiohttp.CookieJar(),
    )
    return GroheHttpSession(
        session,
        timeout=LOGIN_TIMEOUT,
        headers=BROWSER_HEADERS,
        owns_session=True,
    )


def create_api_session(hass: HomeAssistant) -> GroheHttpSession:
    """Create a client on top of Home Assistant's shared aiohttp session."""
    return GroheHttpSession(async_get_clientsession(hass), timeout=API_TIMEOUT)
