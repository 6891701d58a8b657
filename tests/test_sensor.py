"""Tests for Grohe sensor entities."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock

from custom_components.grohe_smarthome.coordinator import GroheDeviceCoordinator
from custom_components.grohe_smarthome.devices import process_device
from custom_components.grohe_smarthome.sensor import (
    SENSORS,
    GroheSensor,
    async_setup_entry,
)

from .conftest import (
    BLUE_ID,
    GUARD_ID,
    SAMPLE_BLUE_HOME,
    SAMPLE_DEVICES,
    SAMPLE_SENSE,
    SAMPLE_SENSE_GUARD,
    SENSE_ID,
)

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant


def _build_coordinator(
    hass: HomeAssistant, raw_devices: list[dict]
) -> GroheDeviceCoordinator:
    """Create a coordinator holding processed devices."""
    coordinator = GroheDeviceCoordinator(hass, MagicMock(), MagicMock())
    coordinator.data = {
        device["appliance_id"]: process_device(device) for device in raw_devices
    }
    return coordinator


def _create_sensor(
    hass: HomeAssistant, raw_device: dict, description_key: str
) -> GroheSensor:
    coordinator = _build_coordinator(hass, [raw_device])
    description = next(d for d in SENSORS if d.key == description_key)
    return GroheSensor(coordinator, description, raw_device["appliance_id"])


async def test_sense_temperature(hass: HomeAssistant) -> None:
    """Test the Sense temperature sensor."""
    sensor = _create_sensor(hass, SAMPLE_SENSE, "temperature")

    assert sensor.native_value == 21.5
    assert sensor.unique_id == f"{SENSE_ID}_temperature"
    assert sensor.device_info["name"] == "Bathroom Sense"
    assert sensor.device_info["model"] == "Grohe Sense"


async def test_sense_battery(hass: HomeAssistant) -> None:
    """Test the Sense battery level."""
    sensor = _create_sensor(hass, SAMPLE_SENSE, "battery")

    assert sensor.native_value == 87


async def test_guard_flow_and_pressure(hass: HomeAssistant) -> None:
    """Test Sense Guard measurements."""
    assert _create_sensor(hass, SAMPLE_SENSE_GUARD, "flow_rate").native_value == 3.2
    assert _create_sensor(hass, SAMPLE_SENSE_GUARD, "pressure").native_value == 4.1


async def test_blue_sensors(hass: HomeAssistant) -> None:
    """Test Blue measurements."""
    assert _create_sensor(hass, SAMPLE_BLUE_HOME, "co2_level").native_value == 64
    assert (
        _create_sensor(hass, SAMPLE_BLUE_HOME, "filter_remaining").native_value == 72
    )
    assert (
        _create_sensor(hass, SAMPLE_BLUE_HOME, "water_temperature").native_value
        == 7.5
    )


async def test_sensor_unavailable_when_appliance_disappears(
    hass: HomeAssistant,
) -> None:
    """Test that a sensor goes unavailable when its appliance is gone."""
    sensor = _create_sensor(hass, SAMPLE_SENSE, "humidity")
    sensor.coordinator.data = {}

    assert sensor.native_value is None
    assert not sensor.available


async def test_setup_entry_creates_sensors_per_type(hass: HomeAssistant) -> None:
    """Test that only the sensors of each appliance type are created."""
    entry = MagicMock()
    entry.runtime_data.coordinator = _build_coordinator(hass, SAMPLE_DEVICES)
    added: list[GroheSensor] = []

    await async_setup_entry(hass, entry, lambda entities: added.extend(entities))

    keys = {sensor.unique_id for sensor in added}
    assert keys == {
        f"{SENSE_ID}_temperature",
        f"{SENSE_ID}_humidity",
        f"{SENSE_ID}_battery",
        f"{GUARD_ID}_flow_rate",
        f"{GUARD_ID}_pressure",
        f"{BLUE_ID}_co2_level",
        f"{BLUE_ID}_filter_remaining",
        f"{BLUE_ID}_water_temperature",
    }
