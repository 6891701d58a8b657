"""Config flow for Grohe Smarthome integration."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.config_entries import (
    ConfigEntry,
    ConfigFlow,
    ConfigFlowResult,
    OptionsFlow,
)
from homeassistant.const import CONF_EMAIL, CONF_PASSWORD
import homeassistant.helpers.config_validation as cv
from homeassistant.helpers.selector import (
    SelectSelector,
    SelectSelectorConfig,
    SelectSelectorMode,
)
import voluptuous as vol

from .api import GroheApiClient
from .const import (
    ALL_TOKEN_EXCHANGE_STRATEGIES,
    CONF_REFRESH_MODE,
    CONF_REFRESH_TOKEN,
    CONF_SCAN_INTERVAL,
    CONF_STORE_PASSWORD,
    CONF_TOKEN_EXCHANGE_STRATEGIES,
    DEFAULT_SCAN_INTERVAL,
    DEFAULT_TOKEN_EXCHANGE_STRATEGIES,
    DOMAIN,
    MAX_SCAN_INTERVAL,
    MIN_SCAN_INTERVAL,
    REFRESH_MODE_CLAIMS,
    REFRESH_MODE_STATIC,
)
from .exceptions import AuthErrorKind, GroheApiError, GroheAuthError
from .login import GroheLoginFlow
from .models import TokenPair, normalize_token
from .session import create_login_session

_LOGGER = logging.getLogger(__name__)

# Error kinds caused by what the user typed
_USER_INPUT_ERRORS = frozenset(
    {
        AuthErrorKind.INVALID_CREDENTIALS,
        AuthErrorKind.MISSING_CREDENTIALS,
        AuthErrorKind.INVALID_REFRESH_TOKEN,
        AuthErrorKind.NO_REFRESH_TOKEN,
        AuthErrorKind.TOKEN_FORMAT_INVALID,
        AuthErrorKind.NO_ISSUER,
    }
)


def _error_key(err: GroheAuthError) -> str:
    """Map an authentication error to a form error key."""
    if err.kind == AuthErrorKind.MFA_REQUIRED:
        return "mfa_required"
    if not err.is_fatal:
        return "cannot_connect"
    if err.kind in _USER_INPUT_ERRORS:
        return "invalid_auth"
    return "login_failed"


class GroheConfigFlow(ConfigFlow, domain=DOMAIN):  # type: ignore[call-arg,misc]
    """Handle a config flow for Grohe Smarthome."""

    VERSION = 1
    MINOR_VERSION = 1

    @staticmethod
    def async_get_options_flow(
        config_entry: ConfigEntry,
    ) -> OptionsFlow:
        """Get the options flow for this handler."""
        return GroheOptionsFlowHandler()

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Let the user pick how to sign in."""
        return self.async_show_menu(
            step_id="user",
            menu_options=["credentials", "refresh_token"],
        )

    async def async_step_credentials(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Sign in with email and password."""
        errors: dict[str, str] = {}

        if user_input is not None:
            email = user_input[CONF_EMAIL].strip()
            password = user_input[CONF_PASSWORD]

            await self.async_set_unique_id(email.lower())
            self._abort_if_unique_id_configured()

            try:
                tokens = await self._async_login(email, password)
            except GroheAuthError as err:
                _LOGGER.warning("Grohe login failed: %s", err)
                errors["base"] = _error_key(err)
            except GroheApiError:
                _LOGGER.exception("Connection error during login")
                errors["base"] = "cannot_connect"
            except Exception:  # pylint: disable=broad-except
                _LOGGER.exception("Unexpected exception during login")
                errors["base"] = "unknown"
            else:
                return self.async_create_entry(
                    title=email,
                    data={
                        CONF_EMAIL: email,
                        CONF_PASSWORD: password,
                        CONF_REFRESH_TOKEN: tokens.refresh_token,
                    },
                )

        data_schema = vol.Schema(
            {
                vol.Required(CONF_EMAIL): cv.string,
                vol.Required(CONF_PASSWORD): cv.string,
            }
        )

        return self.async_show_form(
            step_id="credentials",
            data_schema=data_schema,
            errors=errors,
        )

    async def async_step_refresh_token(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Sign in with a refresh token obtained elsewhere."""
        errors: dict[str, str] = {}

        if user_input is not None:
            email = user_input[CONF_EMAIL].strip()

            await self.async_set_unique_id(email.lower())
            self._abort_if_unique_id_configured()

            try:
                tokens = await self._async_validate_refresh_token(
                    user_input[CONF_REFRESH_TOKEN]
                )
            except GroheAuthError as err:
                _LOGGER.warning("Refresh token rejected: %s", err)
                errors["base"] = _error_key(err)
            except GroheApiError:
                errors["base"] = "cannot_connect"
            except Exception:  # pylint: disable=broad-except
                _LOGGER.exception("Unexpected exception during token validation")
                errors["base"] = "unknown"
            else:
                return self.async_create_entry(
                    title=email,
                    data={
                        CONF_EMAIL: email,
                        CONF_REFRESH_TOKEN: tokens.refresh_token,
                    },
                )

        data_schema = vol.Schema(
            {
                vol.Required(CONF_EMAIL): cv.string,
                vol.Required(CONF_REFRESH_TOKEN): cv.string,
            }
        )

        return self.async_show_form(
            step_id="refresh_token",
            data_schema=data_schema,
            errors=errors,
        )

    async def async_step_reauth(
        self, entry_data: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle reauth upon authentication failure."""
        return await self.async_step_reauth_confirm()

    async def async_step_reauth_confirm(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Ask for the password again and log in.

        Args:
            user_input: User input from the form

        Returns:
            ConfigFlowResult to update entry or show form again

        """
        errors: dict[str, str] = {}
        reauth_entry = self._get_reauth_entry()
        email = reauth_entry.data.get(CONF_EMAIL, "")

        if user_input is not None:
            password = user_input[CONF_PASSWORD]
            try:
                tokens = await self._async_login(email, password)
            except GroheAuthError as err:
                _LOGGER.warning("Grohe login failed during reauth: %s", err)
                errors["base"] = _error_key(err)
            except GroheApiError:
                errors["base"] = "cannot_connect"
            except Exception:  # pylint: disable=broad-except
                _LOGGER.exception("Unexpected exception during reauth")
                errors["base"] = "unknown"
            else:
                return self.async_update_reload_and_abort(
                    reauth_entry,
                    data_updates={
                        CONF_PASSWORD: password,
                        CONF_REFRESH_TOKEN: tokens.refresh_token,
                    },
                )

        return self.async_show_form(
            step_id="reauth_confirm",
            data_schema=vol.Schema({vol.Required(CONF_PASSWORD): cv.string}),
            errors=errors,
            description_placeholders={"email": email},
        )

    async def _async_login(self, email: str, password: str) -> TokenPair:
        """Run the full HTML login once."""
        login_flow = GroheLoginFlow(lambda: create_login_session(self.hass))
        return await login_flow.async_login(email, password)

    async def _async_validate_refresh_token(self, refresh_token: str) -> TokenPair:
        """Prove a pasted refresh token works by refreshing with it."""
        client = GroheApiClient(self.hass, refresh_token=normalize_token(refresh_token))
        return await client.async_refresh()


class GroheOptionsFlowHandler(OptionsFlow):  # type: ignore[misc]
    """Handle options flow for Grohe Smarthome."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Manage polling and login options."""
        errors: dict[str, str] = {}
        options = self.config_entry.options

        if user_input is not None:
            selected = set(user_input[CONF_TOKEN_EXCHANGE_STRATEGIES])
            if not selected:
                errors[CONF_TOKEN_EXCHANGE_STRATEGIES] = "no_strategies"
            else:
                return self.async_create_entry(
                    title="",
                    data={
                        **options,
                        CONF_SCAN_INTERVAL: user_input[CONF_SCAN_INTERVAL],
                        CONF_STORE_PASSWORD: user_input[CONF_STORE_PASSWORD],
                        CONF_REFRESH_MODE: user_input[CONF_REFRESH_MODE],
                        CONF_TOKEN_EXCHANGE_STRATEGIES: [
                            strategy
                            for strategy in ALL_TOKEN_EXCHANGE_STRATEGIES
                            if strategy in selected
                        ],
                    },
                )

        data_schema = vol.Schema(
            {
                vol.Required(
                    CONF_SCAN_INTERVAL,
                    default=options.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL),
                ): vol.All(
                    vol.Coerce(int),
                    vol.Range(min=MIN_SCAN_INTERVAL, max=MAX_SCAN_INTERVAL),
                ),
                vol.Required(
                    CONF_STORE_PASSWORD,
                    default=options.get(CONF_STORE_PASSWORD, True),
                ): cv.boolean,
                vol.Required(
                    CONF_REFRESH_MODE,
                    default=options.get(CONF_REFRESH_MODE, REFRESH_MODE_CLAIMS),
                ): SelectSelector(
                    SelectSelectorConfig(
                        options=[REFRESH_MODE_CLAIMS, REFRESH_MODE_STATIC],
                        mode=SelectSelectorMode.DROPDOWN,
                        translation_key=CONF_REFRESH_MODE,
                    )
                ),
                vol.Required(
                    CONF_TOKEN_EXCHANGE_STRATEGIES,
                    default=options.get(
                        CONF_TOKEN_EXCHANGE_STRATEGIES,
                        DEFAULT_TOKEN_EXCHANGE_STRATEGIES,
                    ),
                ): SelectSelector(
                    SelectSelectorConfig(
                        options=ALL_TOKEN_EXCHANGE_STRATEGIES,
                        multiple=True,
                        mode=SelectSelectorMode.LIST,
                        translation_key=CONF_TOKEN_EXCHANGE_STRATEGIES,
                    )
                ),
            }
        )

        return self.async_show_form(
            step_id="init",
            data_schema=data_schema,
            errors=errors,
        )
