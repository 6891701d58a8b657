"""Binary sensor platform for Grohe Smarthome integration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
    BinarySensorEntityDescription,
)
from homeassistant.helpers.entity import EntityCategory  # type: ignore[attr-defined]

from .const import APPLIANCE_SENSE, APPLIANCE_SENSE_GUARD, ICON_CLOUD
from .devices import SUPPORTED_APPLIANCE_TYPES
from .entity import GroheEntity

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .coordinator import GroheDeviceCoordinator
    from .types import GroheConfigEntry

PARALLEL_UPDATES = 0


@dataclass(frozen=True, kw_only=True)
class GroheBinarySensorEntityDescription(BinarySensorEntityDescription):  # type: ignore[misc]
    """Describes Grohe binary sensor entity."""

    appliance_types: frozenset[str]
    value_fn: Callable[[dict[str, Any]], bool | None]


def _flag(key: str) -> Callable[[dict[str, Any]], bool | None]:
    def _value(device: dict[str, Any]) -> bool | None:
        value = device.get(key)
        return None if value is None else bool(value)

    return _value


BINARY_SENSORS: tuple[GroheBinarySensorEntityDescription, ...] = (
    GroheBinarySensorEntityDescription(
        key="leak",
        translation_key="leak",
        name="Leak",
        device_class=BinarySensorDeviceClass.MOISTURE,
        appliance_types=frozenset({APPLIANCE_SENSE, APPLIANCE_SENSE_GUARD}),
        value_fn=_flag("leak_detected"),
    ),
    GroheBinarySensorEntityDescription(
        key="online",
        translation_key="online",
        name="Online",
        device_class=BinarySensorDeviceClass.CONNECTIVITY,
        entity_category=EntityCategory.DIAGNOSTIC,
        appliance_types=SUPPORTED_APPLIANCE_TYPES,
        value_fn=_flag("online"),
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: GroheConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Grohe binary sensors from a config entry."""
    coordinator = entry.runtime_data.coordinator

    entities: list[BinarySensorEntity] = [
        GroheBinarySensor(coordinator, description, appliance_id)
        for appliance_id, device in coordinator.data.items()
        for description in BINARY_SENSORS
        if device["appliance_type"] in description.appliance_types
    ]
    entities.append(GroheCloudConnectionSensor(coordinator, entry.entry_id))

    async_add_entities(entities)


class GroheBinarySensor(GroheEntity, BinarySensorEntity):  # type: ignore[misc]
    """Representation of a Grohe appliance binary sensor."""

    entity_description: GroheBinarySensorEntityDescription

    def __init__(
        self,
        coordinator: GroheDeviceCoordinator,
        description: GroheBinarySensorEntityDescription,
        appliance_id: str,
    ) -> None:
        """Initialize the binary sensor."""
        super().__init__(coordinator, appliance_id, description.key)
        self.entity_description = description

    @property
    def is_on(self) -> bool | None:
        """Return the state of the binary sensor."""
        device = self.device_data
        if device is None:
            return None
        return self.entity_description.value_fn(device)


class GroheCloudConnectionSensor(BinarySensorEntity):  # type: ignore[misc]
    """On while the last poll of the Grohe cloud succeeded.

    Not a coordinator entity, so it stays available when polling fails
    and reports the failure as off instead.
    """

    _attr_has_entity_name = True
    _attr_translation_key = "cloud_connection"
    _attr_name = "Cloud connection"
    _attr_icon = ICON_CLOUD
    _attr_device_class = BinarySensorDeviceClass.CONNECTIVITY
    _attr_entity_category = EntityCategory.DIAGNOSTIC
    _attr_should_poll = False

    def __init__(self, coordinator: GroheDeviceCoordinator, entry_id: str) -> None:
        """Initialize the connection sensor."""
        self.coordinator = coordinator
        self._attr_unique_id = f"{entry_id}_cloud_connection"

    @property
    def is_on(self) -> bool:
        """Return True if the cloud answered the last poll."""
        return bool(self.coordinator.last_update_success)

    async def async_added_to_hass(self) -> None:
        """Follow coordinator updates, including failed ones."""
        await super().async_added_to_hass()
        self.async_on_remove(
            self.coordinator.async_add_listener(self.async_write_ha_state)
        )
