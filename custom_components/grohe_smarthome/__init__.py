"""The Grohe Smarthome integration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homeassistant.config_entries import ConfigEntryState
from homeassistant.const import Platform
from homeassistant.exceptions import (
    ConfigEntryAuthFailed,
    ConfigEntryNotReady,
    HomeAssistantError,
    ServiceValidationError,
)
from homeassistant.helpers import config_validation as cv, issue_registry as ir
import voluptuous as vol

from .api import GroheApiClient
from .auth import GroheSessionManager
from .const import (
    ATTR_AMOUNT_ML,
    ATTR_APPLIANCE_ID,
    ATTR_WATER_TYPE,
    CONF_REFRESH_MODE,
    CONF_SCAN_INTERVAL,
    CONF_TOKEN_EXCHANGE_STRATEGIES,
    DEFAULT_SCAN_INTERVAL,
    DEFAULT_TOKEN_EXCHANGE_STRATEGIES,
    DOMAIN,
    ISSUE_MFA_REQUIRED,
    REFRESH_MODE_CLAIMS,
    SERVICE_DISPENSE_WATER,
    SESSION_DATA_KEYS,
)
from .coordinator import GroheDeviceCoordinator
from .devices import BLUE_APPLIANCE_TYPES
from .exceptions import AuthErrorKind, GroheApiError, GroheAuthError
from .login import GroheLoginFlow
from .session import create_login_session
from .types import GroheRuntimeData

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant, ServiceCall
    from homeassistant.helpers.typing import ConfigType

    from .types import GroheConfigEntry

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [
    Platform.SENSOR,
    Platform.BINARY_SENSOR,
    Platform.SWITCH,
]

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)

DISPENSE_WATER_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_APPLIANCE_ID): cv.string,
        vol.Required(ATTR_WATER_TYPE): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=3)
        ),
        vol.Required(ATTR_AMOUNT_ML): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=2000)
        ),
    }
)


async def async_setup(hass: HomeAssistant, config: ConfigType) -> bool:
    """Set up the Grohe Smarthome component.

    Only config entries are supported; the dispense service is registered
    here so it exists even before an entry is loaded.
    """

    async def async_dispense_water(call: ServiceCall) -> None:
        """Dispense water from a Grohe Blue appliance."""
        appliance_id: str = call.data[ATTR_APPLIANCE_ID]
        coordinator = _find_coordinator(hass, appliance_id)
        if coordinator is None:
            raise ServiceValidationError(
                translation_domain=DOMAIN,
                translation_key="appliance_not_found",
                translation_placeholders={"appliance_id": appliance_id},
            )
        if coordinator.data[appliance_id]["appliance_type"] not in BLUE_APPLIANCE_TYPES:
            raise ServiceValidationError(
                translation_domain=DOMAIN,
                translation_key="dispense_not_supported",
                translation_placeholders={"appliance_id": appliance_id},
            )

        try:
            await coordinator.api_client.async_dispense(
                appliance_id, call.data[ATTR_WATER_TYPE], call.data[ATTR_AMOUNT_ML]
            )
        except GroheApiError as err:
            raise HomeAssistantError(
                f"Failed to dispense water on {appliance_id}: {err}"
            ) from err
        _LOGGER.debug(
            "Dispensed %s ml (type %s) on %s",
            call.data[ATTR_AMOUNT_ML],
            call.data[ATTR_WATER_TYPE],
            appliance_id,
        )

    hass.services.async_register(
        DOMAIN,
        SERVICE_DISPENSE_WATER,
        async_dispense_water,
        schema=DISPENSE_WATER_SCHEMA,
    )
    return True


def _find_coordinator(
    hass: HomeAssistant, appliance_id: str
) -> GroheDeviceCoordinator | None:
    """Return the coordinator of the loaded entry that owns an appliance."""
    for entry in hass.config_entries.async_entries(DOMAIN):
        if entry.state is not ConfigEntryState.LOADED:
            continue
        coordinator = entry.runtime_data.coordinator
        if coordinator.data and appliance_id in coordinator.data:
            return coordinator
    return None


async def async_setup_entry(hass: HomeAssistant, entry: GroheConfigEntry) -> bool:
    """Set up Grohe Smarthome from a config entry.

    Args:
        hass: Home Assistant instance
        entry: Config entry for this integration

    Returns:
        True if setup was successful

    Raises:
        ConfigEntryAuthFailed: If no session can be established
        ConfigEntryNotReady: If the Grohe cloud is temporarily unavailable

    """
    _LOGGER.debug("Setting up Grohe Smarthome integration")

    api_client = GroheApiClient(
        hass,
        config_entry=entry,
        refresh_mode=entry.options.get(CONF_REFRESH_MODE, REFRESH_MODE_CLAIMS),
    )
    login_flow = GroheLoginFlow(
        lambda: create_login_session(hass),
        strategies=entry.options.get(
            CONF_TOKEN_EXCHANGE_STRATEGIES, DEFAULT_TOKEN_EXCHANGE_STRATEGIES
        ),
    )
    session_manager = GroheSessionManager(hass, entry, api_client, login_flow)

    try:
        await session_manager.async_start()
    except GroheAuthError as err:
        if not err.is_fatal:
            raise ConfigEntryNotReady(
                f"Unable to refresh Grohe session: {err}. Will retry."
            ) from err
        _LOGGER.error("Authentication failed during setup: %s", err)
        if err.kind == AuthErrorKind.MFA_REQUIRED:
            ir.async_create_issue(
                hass,
                DOMAIN,
                ISSUE_MFA_REQUIRED,
                is_fixable=False,
                issue_domain=DOMAIN,
                severity=ir.IssueSeverity.ERROR,
                translation_key=ISSUE_MFA_REQUIRED,
            )
        raise ConfigEntryAuthFailed(
            "Authentication failed. Please re-authenticate."
        ) from err
    except GroheApiError as err:
        raise ConfigEntryNotReady(
            "Unable to connect to the Grohe cloud. Will retry."
        ) from err

    ir.async_delete_issue(hass, DOMAIN, ISSUE_MFA_REQUIRED)

    coordinator = GroheDeviceCoordinator(
        hass,
        api_client,
        session_manager,
        scan_interval=entry.options.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL),
    )
    await coordinator.async_config_entry_first_refresh()
    _LOGGER.info(
        "Initialized Grohe coordinator with %d appliances", len(coordinator.data)
    )

    entry.runtime_data = GroheRuntimeData(
        api_client=api_client,
        session_manager=session_manager,
        coordinator=coordinator,
        prev_data=dict(entry.data),
        prev_options=dict(entry.options),
    )

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    # Skips reload on token-only changes
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    return True


async def async_unload_entry(hass: HomeAssistant, entry: GroheConfigEntry) -> bool:
    """Unload a config entry."""
    _LOGGER.debug("Unloading Grohe Smarthome integration")
    unload_ok: bool = await hass.config_entries.async_unload_platforms(
        entry, PLATFORMS
    )
    return unload_ok


async def async_reload_entry(hass: HomeAssistant, entry: GroheConfigEntry) -> None:
    """Reload config entry when it's updated.

    The API client rotates the refresh token and the session manager may
    drop the stored password; neither requires a reload.

    Args:
        hass: Home Assistant instance
        entry: Config entry that was updated

    """
    runtime_data: GroheRuntimeData | None = getattr(entry, "runtime_data", None)
    current_data: dict[str, Any] = dict(entry.data)
    current_options: dict[str, Any] = dict(entry.options)

    if runtime_data is not None and current_options == runtime_data.prev_options:
        previous_data = runtime_data.prev_data
        changed_keys = {
            key
            for key in current_data.keys() | previous_data.keys()
            if current_data.get(key) != previous_data.get(key)
        }
        if changed_keys <= SESSION_DATA_KEYS:
            _LOGGER.debug("Skipping reload, only session credentials changed")
            runtime_data.prev_data = current_data
            return

    if runtime_data is not None:
        runtime_data.prev_data = current_data
        runtime_data.prev_options = current_options

    await hass.config_entries.async_reload(entry.entry_id)
