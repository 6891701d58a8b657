"""Device helpers for the Grohe Smarthome integration."""

from __future__ import annotations

import logging
from typing import Any

from .const import (
    APPLIANCE_BLUE_HOME,
    APPLIANCE_BLUE_PRO,
    APPLIANCE_MODELS,
    APPLIANCE_SENSE,
    APPLIANCE_SENSE_GUARD,
)

_LOGGER = logging.getLogger(__name__)

# data_latest field -> normalized key, per appliance type
_MEASUREMENTS: dict[str, dict[str, str]] = {
    APPLIANCE_SENSE: {
        "temperature": "temperature",
        "humidity": "humidity",
        "leak_detected": "leak_detected",
        "battery_level": "battery",
    },
    APPLIANCE_SENSE_GUARD: {
        "flow_rate": "flow_rate",
        "pressure": "pressure",
        "leak_detected": "leak_detected",
        "valve_open": "valve_open",
    },
    APPLIANCE_BLUE_HOME: {
        "co2_level": "co2_level",
        "filter_remaining": "filter_remaining",
        "temperature": "water_temperature",
    },
}
_MEASUREMENTS[APPLIANCE_BLUE_PRO] = _MEASUREMENTS[APPLIANCE_BLUE_HOME]

SUPPORTED_APPLIANCE_TYPES = frozenset(_MEASUREMENTS)
BLUE_APPLIANCE_TYPES = frozenset({APPLIANCE_BLUE_HOME, APPLIANCE_BLUE_PRO})


def process_device(device: dict[str, Any]) -> dict[str, Any] | None:
    """Normalize a raw device record for entity consumption.

    Args:
        device: Record from GET /v1/devices

    Returns:
        Normalized device dictionary, or None for unsupported records

    """
    appliance_id = device.get("appliance_id")
    appliance_type = device.get("appliance_type")
    if not appliance_id:
        return None
    if appliance_type not in SUPPORTED_APPLIANCE_TYPES:
        _LOGGER.warning(
            "Unknown appliance type %s for appliance %s", appliance_type, appliance_id
        )
        return None

    latest = device.get("data_latest") or {}
    processed: dict[str, Any] = {
        "appliance_id": str(appliance_id),
        "appliance_type": appliance_type,
        "name": device.get("name") or str(appliance_id),
        "model": APPLIANCE_MODELS[appliance_type],
        "online": device.get("online"),
    }
    for source_key, target_key in _MEASUREMENTS[appliance_type].items():
        processed[target_key] = latest.get(source_key)
    return processed
