"""DataUpdateCoordinator for Grohe Smarthome."""

from __future__ import annotations

from datetime import timedelta
import logging
from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import ConfigEntryAuthFailed
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .const import DEFAULT_SCAN_INTERVAL, DOMAIN
from .devices import process_device
from .exceptions import GroheApiError, GroheAuthError

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .api import GroheApiClient
    from .auth import GroheSessionManager

_LOGGER = logging.getLogger(__name__)


class GroheDeviceCoordinator(DataUpdateCoordinator[dict[str, dict[str, Any]]]):
    """Coordinator to poll all appliances of a Grohe account."""

    def __init__(
        self,
        hass: HomeAssistant,
        api_client: GroheApiClient,
        session_manager: GroheSessionManager,
        scan_interval: int = DEFAULT_SCAN_INTERVAL,
    ) -> None:
        """Initialize the coordinator.

        Args:
            hass: Home Assistant instance
            api_client: Grohe API client
            session_manager: Used to log in again if the refresh token dies
            scan_interval: Update interval in seconds

        """
        super().__init__(
            hass,
            _LOGGER,
            name=f"{DOMAIN}_devices",
            update_interval=timedelta(seconds=scan_interval),
        )
        self.api_client = api_client
        self.session_manager = session_manager

    async def _async_update_data(self) -> dict[str, dict[str, Any]]:
        """Fetch appliances from the Grohe cloud.

        Returns:
            Processed devices keyed by appliance id

        Raises:
            ConfigEntryAuthFailed: If the session cannot be re-established
            UpdateFailed: If the update fails

        """
        try:
            devices_raw = await self.api_client.async_get_devices()
        except GroheAuthError as err:
            if not err.is_fatal:
                raise UpdateFailed(f"Token refresh failed: {err}") from err
            devices_raw = await self._async_relogin_and_fetch(err)
        except GroheApiError as err:
            raise UpdateFailed(f"Error fetching Grohe devices: {err}") from err

        devices: dict[str, dict[str, Any]] = {}
        for device in devices_raw:
            processed = process_device(device)
            if processed is not None:
                devices[processed["appliance_id"]] = processed

        _LOGGER.debug("Fetched %d supported Grohe appliances", len(devices))
        return devices

    async def _async_relogin_and_fetch(
        self, auth_error: GroheAuthError
    ) -> list[dict[str, Any]]:
        """Log in again after a fatal token error and fetch once more."""
        try:
            await self.session_manager.async_relogin(auth_error)
            return await self.api_client.async_get_devices()
        except GroheAuthError as err:
            if err.is_fatal:
                raise ConfigEntryAuthFailed(
                    f"Grohe session lost ({err.kind}). Please re-authenticate."
                ) from err
            raise UpdateFailed(f"Grohe login failed: {err}") from err
        except GroheApiError as err:
            raise UpdateFailed(f"Error fetching Grohe devices: {err}") from err
