"""API client for the Grohe ONDUS cloud."""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
import datetime as dt
import json
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from .const import (
    API_BASE_URL,
    API_DEVICES,
    API_DISPENSE_ACTION,
    API_VALVE_ACTION,
    CONF_REFRESH_TOKEN,
    DEFAULT_CLIENT_ID,
    OIDC_TOKEN_PATH,
    REFRESH_MODE_CLAIMS,
    REFRESH_MODE_STATIC,
    STATIC_REFRESH_URL,
    TOKEN_EXPIRY_BUFFER,
)
from .exceptions import (
    AuthErrorKind,
    GroheApiConnectionError,
    GroheApiError,
    GroheApiHttpError,
    GroheAuthError,
)
from .models import TokenPair, normalize_token
from .session import create_api_session
from .util import clip, safe_host_path

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .session import GroheHttpSession, HttpResponse

_LOGGER = logging.getLogger(__name__)


def decode_jwt_claims(token: str | None) -> dict[str, Any] | None:
    """Decode the payload of a JWT without verifying its signature.

    The claims are only used to build the refresh URL; no key is
    available to verify them and none is needed for that.

    Returns:
        The claims dictionary, or None if the token is not a JWT

    """
    parts = (token or "").split(".")
    if len(parts) < 2 or not parts[1]:
        return None
    # base64url padding: length must be a multiple of 4
    padded = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(padded))
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


@dataclass(frozen=True)
class RefreshEndpoint:
    """Where and as whom a refresh token grant is sent."""

    url: str
    client_id: str
    mode: str


def resolve_refresh_endpoint(
    refresh_token: str, mode: str = REFRESH_MODE_CLAIMS, client_id: str | None = None
) -> RefreshEndpoint:
    """Resolve the refresh endpoint for a refresh token.

    In claims mode the Keycloak token endpoint is built from the token's
    issuer and the client id taken from its authorized party (azp). In
    static mode the fixed ONDUS refresh URL is used.

    Args:
        refresh_token: Normalized refresh token
        mode: REFRESH_MODE_CLAIMS or REFRESH_MODE_STATIC
        client_id: Overrides the client id from the claims

    Raises:
        GroheAuthError: TOKEN_FORMAT_INVALID or NO_ISSUER in claims mode

    """
    if mode == REFRESH_MODE_STATIC:
        return RefreshEndpoint(
            STATIC_REFRESH_URL, client_id or DEFAULT_CLIENT_ID, REFRESH_MODE_STATIC
        )

    claims = decode_jwt_claims(refresh_token)
    if claims is None:
        raise GroheAuthError(
            AuthErrorKind.TOKEN_FORMAT_INVALID, "refresh token is not a JWT"
        )
    issuer = claims.get("iss")
    if not isinstance(issuer, str) or not issuer:
        raise GroheAuthError(AuthErrorKind.NO_ISSUER, "iss claim missing")

    azp = claims.get("azp")
    return RefreshEndpoint(
        url=f"{issuer.rstrip('/')}{OIDC_TOKEN_PATH}",
        client_id=client_id or (azp if isinstance(azp, str) and azp else None)
        or DEFAULT_CLIENT_ID,
        mode=REFRESH_MODE_CLAIMS,
    )


class GroheApiClient:
    """Grohe ONDUS API client holding the token pair."""

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry | None = None,
        *,
        http: GroheHttpSession | None = None,
        refresh_token: str | None = None,
        refresh_mode: str = REFRESH_MODE_CLAIMS,
        client_id: str | None = None,
        api_url: str = API_BASE_URL,
    ) -> None:
        """Initialize the API client.

        Args:
            hass: Home Assistant instance
            config_entry: Config entry for storing rotated refresh tokens
            http: Session client; defaults to Home Assistant's shared session
            refresh_token: Stored refresh token, if any
            refresh_mode: How the refresh endpoint is resolved
            client_id: Client id override for the refresh grant
            api_url: Base URL of the device API

        """
        self._hass = hass
        self._config_entry = config_entry
        self._http = http if http is not None else create_api_session(hass)
        self._refresh_mode = refresh_mode
        self._client_id = client_id
        self._api_url = api_url.rstrip("/")
        self._access_token: str | None = None
        self._refresh_token: str | None = None
        self._token_expires_at: dt.datetime | None = None
        self._refresh_endpoint: RefreshEndpoint | None = None
        self._token_refresh_lock = asyncio.Lock()
        if refresh_token:
            self.set_refresh_token(refresh_token)

    @property
    def access_token(self) -> str | None:
        """Get current access token."""
        return self._access_token

    @property
    def refresh_token(self) -> str | None:
        """Get current refresh token."""
        return self._refresh_token

    @property
    def token_expires_at(self) -> dt.datetime | None:
        """Get access token expiration time, if the server reported one."""
        return self._token_expires_at

    @property
    def refresh_endpoint(self) -> RefreshEndpoint | None:
        """Get the refresh endpoint derived from the current refresh token."""
        return self._refresh_endpoint

    def set_refresh_token(self, token: str | None) -> None:
        """Store a refresh token and derive its refresh endpoint.

        Derivation failures are not raised here; async_refresh() reports
        them with the proper error kind.
        """
        self._refresh_token = normalize_token(token) or None
        self._refresh_endpoint = None
        if not self._refresh_token:
            return
        try:
            self._refresh_endpoint = resolve_refresh_endpoint(
                self._refresh_token, self._refresh_mode, self._client_id
            )
        except GroheAuthError as err:
            _LOGGER.debug("Could not derive refresh endpoint: %s", err)

    async def async_set_tokens(self, tokens: TokenPair) -> None:
        """Replace the token pair, e.g. after a full login."""
        self._apply_tokens(tokens)
        await self.async_persist_refresh_token()

    def _apply_tokens(self, tokens: TokenPair) -> None:
        """Replace the held token pair as a whole."""
        self._access_token = tokens.access_token
        self._token_expires_at = (
            dt.datetime.now(dt.UTC) + dt.timedelta(seconds=tokens.expires_in)
            if tokens.expires_in
            else None
        )
        if tokens.refresh_token != self._refresh_token:
            self.set_refresh_token(tokens.refresh_token)

    async def async_persist_refresh_token(self) -> None:
        """Store the refresh token in the config entry if it changed."""
        if self._config_entry is None or not self._refresh_token:
            return
        if self._config_entry.data.get(CONF_REFRESH_TOKEN) == self._refresh_token:
            return
        self._hass.config_entries.async_update_entry(
            self._config_entry,
            data={**self._config_entry.data, CONF_REFRESH_TOKEN: self._refresh_token},
        )
        _LOGGER.debug("Config entry updated with rotated refresh token")

    def _token_needs_refresh(self) -> bool:
        if not self._access_token:
            return True
        if self._token_expires_at is None:
            return False
        buffer = dt.timedelta(seconds=TOKEN_EXPIRY_BUFFER)
        return dt.datetime.now(dt.UTC) >= self._token_expires_at - buffer

    async def _ensure_valid_token(self) -> None:
        """Refresh the access token if it is missing or about to expire."""
        if not self._token_needs_refresh():
            return
        async with self._token_refresh_lock:
            # Another caller may have refreshed while we waited.
            if self._token_needs_refresh():
                _LOGGER.debug("Access token missing or expiring, refreshing")
                await self.async_refresh()

    async def _async_refresh_rejected(self, rejected_token: str | None) -> None:
        """Refresh after rejection unless another caller already did."""
        async with self._token_refresh_lock:
            if self._access_token == rejected_token:
                await self.async_refresh()

    async def async_refresh(self) -> TokenPair:
        """Refresh the access token using the refresh token grant.

        On success the token pair is replaced; a refresh token missing in
        the response keeps the previous one.

        Raises:
            GroheAuthError: NO_REFRESH_TOKEN, TOKEN_FORMAT_INVALID,
                NO_ISSUER, INVALID_REFRESH_TOKEN (HTTP 400/401),
                TOKEN_RESPONSE_INVALID or TOKEN_REFRESH_FAILED

        """
        if not self._refresh_token:
            raise GroheAuthError(
                AuthErrorKind.NO_REFRESH_TOKEN, "no refresh token stored"
            )

        refresh_token = self._refresh_token
        endpoint = resolve_refresh_endpoint(
            refresh_token, self._refresh_mode, self._client_id
        )
        self._refresh_endpoint = endpoint

        _LOGGER.debug(
            "Refreshing access token at %s (client_id=%s)",
            safe_host_path(endpoint.url),
            endpoint.client_id,
        )

        try:
            if endpoint.mode == REFRESH_MODE_STATIC:
                response = await self._http.post(
                    endpoint.url,
                    json_data={"refresh_token": refresh_token},
                    headers={"Accept": "application/json"},
                )
            else:
                response = await self._http.post(
                    endpoint.url,
                    data={
                        "grant_type": "refresh_token",
                        "refresh_token": refresh_token,
                        "client_id": endpoint.client_id,
                    },
                    headers={
                        "Accept": "application/json",
                        "Content-Type": "application/x-www-form-urlencoded",
                    },
                )
        except GroheApiHttpError as err:
            _LOGGER.warning(
                "Token refresh failed (%s): %s", err.status, clip(err.body)
            )
            if err.status in (400, 401):
                raise GroheAuthError(
                    AuthErrorKind.INVALID_REFRESH_TOKEN,
                    f"refresh token invalid/expired or wrong client_id "
                    f"(HTTP {err.status})",
                ) from err
            raise GroheAuthError(
                AuthErrorKind.TOKEN_REFRESH_FAILED, f"HTTP {err.status}"
            ) from err
        except GroheApiConnectionError as err:
            _LOGGER.warning("Token refresh failed (no-status): %s", err)
            raise GroheAuthError(AuthErrorKind.TOKEN_REFRESH_FAILED, str(err)) from err

        body = response.json()
        if not isinstance(body, dict) or not body.get("access_token"):
            raise GroheAuthError(
                AuthErrorKind.TOKEN_RESPONSE_INVALID,
                f"no access_token in response: {clip(response.text)}",
            )

        tokens = TokenPair.from_response(body, fallback_refresh_token=refresh_token)
        self._apply_tokens(tokens)
        await self.async_persist_refresh_token()
        _LOGGER.debug(
            "Access token refreshed, expires in %s seconds, refresh token %s",
            tokens.expires_in,
            "rotated" if tokens.refresh_token != refresh_token else "kept",
        )
        return tokens

    async def async_request(
        self,
        method: str,
        path: str,
        *,
        json_data: dict[str, Any] | None = None,
        retry: bool = True,
    ) -> HttpResponse:
        """Make an authenticated API request with one retry after refresh.

        Args:
            method: HTTP method
            path: API path (relative to the API URL) or absolute URL
            json_data: JSON body
            retry: Refresh and retry once on HTTP 401

        Raises:
            GroheApiError: If the request fails

        """
        await self._ensure_valid_token()

        url = path if path.startswith(("http://", "https://")) else self._api_url + path
        token = self._access_token
        try:
            return await self._http.request(
                method,
                url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
                json_data=json_data,
            )
        except GroheApiHttpError as err:
            if err.status != 401 or not retry:
                raise
            _LOGGER.debug(
                "HTTP 401 on %s %s, refreshing token and retrying",
                method,
                safe_host_path(url),
            )
            await self._async_refresh_rejected(token)
            return await self.async_request(
                method, url, json_data=json_data, retry=False
            )

    async def async_get_devices(self) -> list[dict[str, Any]]:
        """Fetch all appliances of the account.

        Returns:
            List of raw device records

        Raises:
            GroheApiError: If the request fails or the body is not JSON

        """
        response = await self.async_request("GET", API_DEVICES)
        body = response.json()
        if isinstance(body, dict):
            body = body.get("devices", [])
        if not isinstance(body, list):
            raise GroheApiError(f"Unexpected devices response: {clip(response.text)}")
        _LOGGER.debug("Fetched %d devices", len(body))
        return [device for device in body if isinstance(device, dict)]

    async def async_set_valve(self, appliance_id: str, *, open_valve: bool) -> None:
        """Open or close the valve of a Sense Guard."""
        await self.async_request(
            "POST",
            API_VALVE_ACTION.format(appliance_id=quote(appliance_id, safe="")),
            json_data={"open": open_valve},
        )

    async def async_dispense(
        self, appliance_id: str, water_type: int, amount_ml: int
    ) -> None:
        """Dispense water from a Grohe Blue."""
        await self.async_request(
            "POST",
            API_DISPENSE_ACTION.format(appliance_id=quote(appliance_id, safe="")),
            json_data={"type": water_type, "amountMl": amount_ml},
        )
