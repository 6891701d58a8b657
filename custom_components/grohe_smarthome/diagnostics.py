"""Diagnostics support for the Grohe Smarthome integration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.components.diagnostics import async_redact_data
from homeassistant.const import CONF_EMAIL, CONF_PASSWORD

from .const import CONF_REFRESH_TOKEN
from .util import safe_host_path

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .types import GroheConfigEntry, GroheRuntimeData

TO_REDACT = [
    CONF_EMAIL,
    CONF_PASSWORD,
    CONF_REFRESH_TOKEN,
]

# Appliance ids identify hardware
TO_REDACT_DATA = ["appliance_id", "name"]


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: GroheConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    rd: GroheRuntimeData | None = getattr(entry, "runtime_data", None)

    session_summary: dict[str, Any] = {}
    coordinator_summary: dict[str, Any] = {}
    if rd is not None:
        api_client = rd.api_client
        endpoint = api_client.refresh_endpoint
        expires_at = api_client.token_expires_at
        last_error = rd.session_manager.last_error
        session_summary = {
            "session_valid": rd.session_manager.session_valid,
            "can_relogin": rd.session_manager.can_relogin,
            "has_access_token": api_client.access_token is not None,
            "has_refresh_token": api_client.refresh_token is not None,
            "token_expires_at": expires_at.isoformat() if expires_at else None,
            "refresh_endpoint": safe_host_path(endpoint.url) if endpoint else None,
            "refresh_mode": endpoint.mode if endpoint else None,
            "last_error": str(last_error.kind) if last_error else None,
        }

        data = rd.coordinator.data or {}
        coordinator_summary = {
            "last_update_success": rd.coordinator.last_update_success,
            "appliance_count": len(data),
            "appliance_types": _count_appliance_types(data),
            "appliances": [
                async_redact_data(device, TO_REDACT_DATA) for device in data.values()
            ],
        }

    return {
        "entry_data": async_redact_data(dict(entry.data), TO_REDACT),
        "entry_options": dict(entry.options),
        "session": session_summary,
        "coordinator": coordinator_summary,
    }


def _count_appliance_types(devices: dict[str, dict[str, Any]]) -> dict[str, int]:
    """Count appliances by type."""
    counts: dict[str, int] = {}
    for device in devices.values():
        appliance_type = device.get("appliance_type", "unknown")
        counts[appliance_type] = counts.get(appliance_type, 0) + 1
    return counts
