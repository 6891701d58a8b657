"""Base entity for the Grohe Smarthome integration."""

from __future__ import annotations

from typing import Any

from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN
from .coordinator import GroheDeviceCoordinator


class GroheEntity(CoordinatorEntity[GroheDeviceCoordinator]):  # type: ignore[misc]
    """Base entity for a single Grohe appliance."""

    _attr_has_entity_name = True

    def __init__(
        self, coordinator: GroheDeviceCoordinator, appliance_id: str, key: str
    ) -> None:
        """Initialize the entity and link it to its appliance device."""
        super().__init__(coordinator)
        self._appliance_id = appliance_id
        self._attr_unique_id = f"{appliance_id}_{key}"

        device = coordinator.data.get(appliance_id, {})
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, appliance_id)},
            name=device.get("name", appliance_id),
            manufacturer="Grohe",
            model=device.get("model"),
        )

    @property
    def device_data(self) -> dict[str, Any] | None:
        """Return the processed data of this appliance."""
        if not self.coordinator.data:
            return None
        return self.coordinator.data.get(self._appliance_id)

    @property
    def available(self) -> bool:
        """Return if entity is available."""
        return super().available and self.device_data is not None
