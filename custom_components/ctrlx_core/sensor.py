"""Sensor entities for ctrlX Data Layer nodes.

Each configured Data Layer path is exposed as one sensor that is refreshed
by the integration's coordinator.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homeassistant.components.sensor import SensorEntity
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import ATTR_PATH, ATTR_TYPE, DOMAIN
from .coordinator import CtrlxDatalayerCoordinator

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up sensors for the configured Data Layer paths."""
    coordinator: CtrlxDatalayerCoordinator = hass.data[DOMAIN][entry.entry_id][
        "coordinator"
    ]
    entities = [
        CtrlxDatalayerSensor(coordinator, entry.entry_id, path)
        for path in coordinator.paths
    ]
    _LOGGER.debug("Adding %d Data Layer sensors", len(entities))
    async_add_entities(entities)


class CtrlxDatalayerSensor(CoordinatorEntity[CtrlxDatalayerCoordinator], SensorEntity):
    """Sensor showing the value of one ctrlX Data Layer node."""

    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: CtrlxDatalayerCoordinator,
        entry_id: str,
        path: str,
    ) -> None:
        super().__init__(coordinator)
        self._path = path
        self._attr_unique_id = f"{entry_id}_{path}"
        self._attr_name = path

    @property
    def _node(self) -> dict[str, Any] | None:
        node = (self.coordinator.data or {}).get(self._path)
        return node if isinstance(node, dict) else None

    @property
    def available(self) -> bool:
        return super().available and self._node is not None

    @property
    def native_value(self) -> str | int | float | None:
        """Scalar value of the node; lists and objects are not shown as state."""
        node = self._node
        if node is None:
            return None
        value = node.get("value")
        if isinstance(value, bool):
            return str(value).lower()
        if isinstance(value, str | int | float):
            return value
        return None

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        attributes: dict[str, Any] = {ATTR_PATH: self._path}
        node = self._node
        if node is None:
            return attributes
        attributes[ATTR_TYPE] = node.get("type")
        value = node.get("value")
        if isinstance(value, list | dict):
            attributes["value"] = value
        return attributes
