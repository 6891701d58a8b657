"""Session orchestration: stored refresh token first, full login second."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from homeassistant.const import CONF_EMAIL, CONF_PASSWORD

from .const import CONF_REFRESH_TOKEN, CONF_STORE_PASSWORD
from .exceptions import AuthErrorKind, GroheAuthError

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .api import GroheApiClient
    from .login import GroheLoginFlow

_LOGGER = logging.getLogger(__name__)


class GroheSessionManager:
    """Establish and re-establish the session of one config entry.

    Not safe for concurrent use; the config entry setup and the
    coordinator are its only callers and never run it in parallel.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        api_client: GroheApiClient,
        login_flow: GroheLoginFlow,
    ) -> None:
        """Initialize the session manager."""
        self._hass = hass
        self._config_entry = config_entry
        self._api_client = api_client
        self._login_flow = login_flow
        self.session_valid = False
        self.last_error: GroheAuthError | None = None

    @property
    def can_relogin(self) -> bool:
        """Return True if credentials for a full login are stored."""
        data = self._config_entry.data
        return bool(data.get(CONF_EMAIL) and data.get(CONF_PASSWORD))

    async def async_start(self) -> None:
        """Establish a session for the config entry.

        Tries the stored refresh token first; on failure or without one,
        logs in with the stored credentials.

        Raises:
            GroheAuthError: If no session could be established

        """
        self.session_valid = False
        stored_token = self._config_entry.data.get(CONF_REFRESH_TOKEN)

        if stored_token:
            self._api_client.set_refresh_token(stored_token)
            try:
                await self._api_client.async_refresh()
            except GroheAuthError as err:
                self.last_error = err
                if not self.can_relogin:
                    raise
                _LOGGER.warning(
                    "Stored refresh token not usable (%s), falling back to login",
                    err.kind,
                )
            else:
                await self._api_client.async_persist_refresh_token()
                self._mark_valid()
                _LOGGER.info("Session restored from stored refresh token")
                return

        await self.async_login()

    async def async_login(self) -> None:
        """Run the full HTML login and seed the API client.

        Raises:
            GroheAuthError: If credentials are missing or the login fails

        """
        self.session_valid = False
        data = self._config_entry.data
        email = data.get(CONF_EMAIL)
        password = data.get(CONF_PASSWORD)
        if not email or not password:
            self.last_error = GroheAuthError(
                AuthErrorKind.MISSING_CREDENTIALS,
                "no usable refresh token and no stored password",
            )
            raise self.last_error

        try:
            tokens = await self._login_flow.async_login(email, password)
        except GroheAuthError as err:
            self.last_error = err
            raise

        await self._api_client.async_set_tokens(tokens)
        self._clear_password_if_not_stored()
        self._mark_valid()
        _LOGGER.info("Logged in to Grohe cloud as %s", email)

    async def async_relogin(self, reason: GroheAuthError) -> None:
        """Log in again after the refresh token was rejected while polling.

        Raises:
            GroheAuthError: ``reason`` itself if no credentials are stored,
                otherwise whatever the login raises

        """
        if not self.can_relogin:
            self.session_valid = False
            self.last_error = reason
            raise reason
        _LOGGER.warning("Grohe session lost (%s), logging in again", reason.kind)
        await self.async_login()

    def _mark_valid(self) -> None:
        self.session_valid = True
        self.last_error = None

    def _clear_password_if_not_stored(self) -> None:
        """Drop the plaintext password once a refresh token is stored."""
        if self._config_entry.options.get(CONF_STORE_PASSWORD, True):
            return
        if CONF_PASSWORD not in self._config_entry.data:
            return
        data = {
            key: value
            for key, value in self._config_entry.data.items()
            if key != CONF_PASSWORD
        }
        self._hass.config_entries.async_update_entry(self._config_entry, data=data)
        _LOGGER.debug("Stored password cleared after successful login")
