"""Switch platform for Grohe Smarthome integration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homeassistant.components.switch import SwitchDeviceClass, SwitchEntity
from homeassistant.exceptions import HomeAssistantError

from .const import APPLIANCE_SENSE_GUARD, ICON_VALVE
from .entity import GroheEntity
from .exceptions import GroheApiError

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .coordinator import GroheDeviceCoordinator
    from .types import GroheConfigEntry

_LOGGER = logging.getLogger(__name__)

PARALLEL_UPDATES = 1


async def async_setup_entry(
    hass: HomeAssistant,
    entry: GroheConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Grohe valve switches from a config entry."""
    coordinator = entry.runtime_data.coordinator

    async_add_entities(
        GroheValveSwitch(coordinator, appliance_id)
        for appliance_id, device in coordinator.data.items()
        if device["appliance_type"] == APPLIANCE_SENSE_GUARD
    )


class GroheValveSwitch(GroheEntity, SwitchEntity):  # type: ignore[misc]
    """Main water valve of a Sense Guard."""

    _attr_translation_key = "valve"
    _attr_name = "Valve"
    _attr_icon = ICON_VALVE
    _attr_device_class = SwitchDeviceClass.SWITCH

    def __init__(self, coordinator: GroheDeviceCoordinator, appliance_id: str) -> None:
        """Initialize the valve switch."""
        super().__init__(coordinator, appliance_id, "valve")

    @property
    def is_on(self) -> bool | None:
        """Return True if the valve is open."""
        device = self.device_data
        if device is None or device.get("valve_open") is None:
            return None
        return bool(device["valve_open"])

    async def async_turn_on(self, **kwargs: Any) -> None:
        """Open the valve."""
        await self._async_set_valve(open_valve=True)

    async def async_turn_off(self, **kwargs: Any) -> None:
        """Close the valve."""
        await self._async_set_valve(open_valve=False)

    async def _async_set_valve(self, *, open_valve: bool) -> None:
        action = "open" if open_valve else "close"
        try:
            await self.coordinator.api_client.async_set_valve(
                self._appliance_id, open_valve=open_valve
            )
        except GroheApiError as err:
            raise HomeAssistantError(
                f"Failed to {action} valve of {self._appliance_id}: {err}"
            ) from err
        _LOGGER.debug("Valve of %s set to %s", self._appliance_id, action)
        await self.coordinator.async_request_refresh()
