"""Type definitions for the Grohe Smarthome integration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias

from homeassistant.config_entries import ConfigEntry

if TYPE_CHECKING:
    from .api import GroheApiClient
    from .auth import GroheSessionManager
    from .coordinator import GroheDeviceCoordinator


@dataclass
class GroheRuntimeData:
    """Runtime data for the Grohe Smarthome integration."""

    api_client: GroheApiClient
    session_manager: GroheSessionManager
    coordinator: GroheDeviceCoordinator
    prev_data: dict[str, Any] = field(default_factory=dict)
    prev_options: dict[str, Any] = field(default_factory=dict)


GroheConfigEntry: TypeAlias = ConfigEntry[GroheRuntimeData]
