"""Sensor platform for Grohe Smarthome integration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.const import (
    PERCENTAGE,
    UnitOfPressure,
    UnitOfTemperature,
    UnitOfVolumeFlowRate,
)

from .const import (
    APPLIANCE_SENSE,
    APPLIANCE_SENSE_GUARD,
    ICON_CO2,
    ICON_FILTER,
    ICON_FLOW,
    ICON_PRESSURE,
)
from .devices import BLUE_APPLIANCE_TYPES
from .entity import GroheEntity

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback
    from homeassistant.helpers.typing import StateType

    from .coordinator import GroheDeviceCoordinator
    from .types import GroheConfigEntry

PARALLEL_UPDATES = 0


@dataclass(frozen=True, kw_only=True)
class GroheSensorEntityDescription(SensorEntityDescription):  # type: ignore[misc]
    """Describes Grohe sensor entity."""

    appliance_types: frozenset[str]
    value_fn: Callable[[dict[str, Any]], StateType]


def _value(key: str) -> Callable[[dict[str, Any]], StateType]:
    return lambda device: device.get(key)


SENSORS: tuple[GroheSensorEntityDescription, ...] = (
    GroheSensorEntityDescription(
        key="temperature",
        translation_key="temperature",
        name="Temperature",
        device_class=SensorDeviceClass.TEMPERATURE,
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
        state_class=SensorStateClass.MEASUREMENT,
        appliance_types=frozenset({APPLIANCE_SENSE}),
        value_fn=_value("temperature"),
    ),
    GroheSensorEntityDescription(
        key="humidity",
        translation_key="humidity",
        name="Humidity",
        device_class=SensorDeviceClass.HUMIDITY,
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        appliance_types=frozenset({APPLIANCE_SENSE}),
        value_fn=_value("humidity"),
    ),
    GroheSensorEntityDescription(
        key="battery",
        translation_key="battery",
        name="Battery",
        device_class=SensorDeviceClass.BATTERY,
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        appliance_types=frozenset({APPLIANCE_SENSE}),
        value_fn=_value("battery"),
    ),
    GroheSensorEntityDescription(
        key="flow_rate",
        translation_key="flow_rate",
        name="Flow rate",
        icon=ICON_FLOW,
        native_unit_of_measurement=UnitOfVolumeFlowRate.LITERS_PER_MINUTE,
        state_class=SensorStateClass.MEASUREMENT,
        appliance_types=frozenset({APPLIANCE_SENSE_GUARD}),
        value_fn=_value("flow_rate"),
    ),
    GroheSensorEntityDescription(
        key="pressure",
        translation_key="pressure",
        name="Pressure",
        icon=ICON_PRESSURE,
        device_class=SensorDeviceClass.PRESSURE,
        native_unit_of_measurement=UnitOfPressure.BAR,
        state_class=SensorStateClass.MEASUREMENT,
        appliance_types=frozenset({APPLIANCE_SENSE_GUARD}),
        value_fn=_value("pressure"),
    ),
    GroheSensorEntityDescription(
        key="co2_level",
        translation_key="co2_level",
        name="CO2 level",
        icon=ICON_CO2,
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        appliance_types=BLUE_APPLIANCE_TYPES,
        value_fn=_value("co2_level"),
    ),
    GroheSensorEntityDescription(
        key="filter_remaining",
        translation_key="filter_remaining",
        name="Filter remaining",
        icon=ICON_FILTER,
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        appliance_types=BLUE_APPLIANCE_TYPES,
        value_fn=_value("filter_remaining"),
    ),
    GroheSensorEntityDescription(
        key="water_temperature",
        translation_key="water_temperature",
        name="Water temperature",
        device_class=SensorDeviceClass.TEMPERATURE,
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
        state_class=SensorStateClass.MEASUREMENT,
        appliance_types=BLUE_APPLIANCE_TYPES,
        value_fn=_value("water_temperature"),
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: GroheConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Grohe sensors from a config entry."""
    coordinator = entry.runtime_data.coordinator

    async_add_entities(
        GroheSensor(coordinator, description, appliance_id)
        for appliance_id, device in coordinator.data.items()
        for description in SENSORS
        if device["appliance_type"] in description.appliance_types
    )


class GroheSensor(GroheEntity, SensorEntity):  # type: ignore[misc]
    """Representation of a Grohe appliance measurement."""

    entity_description: GroheSensorEntityDescription

    def __init__(
        self,
        coordinator: GroheDeviceCoordinator,
        description: GroheSensorEntityDescription,
        appliance_id: str,
    ) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator, appliance_id, description.key)
        self.entity_description = description

    @property
    def native_value(self) -> StateType:
        """Return the state of the sensor."""
        device = self.device_data
        if device is None:
            return None
        return self.entity_description.value_fn(device)
