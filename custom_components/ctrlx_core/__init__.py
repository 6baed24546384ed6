from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import (
    CONF_HOST,
    CONF_PASSWORD,
    CONF_TIMEOUT,
    CONF_USERNAME,
    CONF_VERIFY_SSL,
    Platform,
)
from homeassistant.core import HomeAssistant

from . import api
from .api import create_session_client
from .const import (
    CONF_AUTO_RECONNECT,
    CONF_PATHS,
    DEFAULT_AUTO_RECONNECT,
    DEFAULT_TIMEOUT,
    DEFAULT_VERIFY_SSL,
    DOMAIN,
)
from .coordinator import CtrlxDatalayerCoordinator
from .services import async_register_services, async_unregister_services
from .session import CtrlxSessionManager

_LOGGER = logging.getLogger(__name__)

PLATFORMS = [Platform.SENSOR]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Setting up ctrlX CORE integration for entry %s", entry.entry_id)

    required = (CONF_HOST, CONF_USERNAME, CONF_PASSWORD)
    if any(key not in entry.data for key in required):
        _LOGGER.error("Missing host or credentials for entry %s", entry.entry_id)
        return False

    session = create_session_client(
        hass, entry.data.get(CONF_VERIFY_SSL, DEFAULT_VERIFY_SSL)
    )
    manager = CtrlxSessionManager(
        session,
        entry.data[CONF_HOST],
        entry.data[CONF_USERNAME],
        entry.data[CONF_PASSWORD],
        timeout=entry.data.get(CONF_TIMEOUT, DEFAULT_TIMEOUT),
        auto_reconnect=entry.data.get(CONF_AUTO_RECONNECT, DEFAULT_AUTO_RECONNECT),
    )

    try:
        _LOGGER.debug("Logging in to ctrlX CORE %s", manager.hostname)
        await manager.async_login()
        _LOGGER.info("Successfully logged in to ctrlX CORE %s", manager.hostname)
    except api.CtrlxProblemError as err:
        _LOGGER.warning(
            "Device rejected login for entry %s: %s", entry.entry_id, str(err)
        )
        return False
    except api.CtrlxTimeoutError as err:
        _LOGGER.error("Timeout error for entry %s: %s", entry.entry_id, str(err))
        return False
    except api.CtrlxTransportError as err:
        _LOGGER.error("Connection error for entry %s: %s", entry.entry_id, str(err))
        return False
    except api.CtrlxProtocolError as err:
        _LOGGER.error("Invalid response for entry %s: %s", entry.entry_id, str(err))
        return False
    except Exception as err:
        _LOGGER.exception(
            "Unexpected error during setup for entry %s: %s", entry.entry_id, err
        )
        return False

    coordinator = CtrlxDatalayerCoordinator(
        hass, manager, list(entry.data.get(CONF_PATHS, []))
    )
    await coordinator.async_refresh()

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        "session": session,
        "manager": manager,
        "coordinator": coordinator,
    }
    _LOGGER.debug(
        "Stored data for entry %s: %d paths", entry.entry_id, len(coordinator.paths)
    )
    async_register_services(hass)

    try:
        await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
        _LOGGER.info(
            "Successfully setup ctrlX CORE integration for entry %s", entry.entry_id
        )
        return True
    except Exception as err:
        _LOGGER.error("Failed to setup platforms for entry %s: %s", entry.entry_id, err)
        return False


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Unloading ctrlX CORE integration for entry %s", entry.entry_id)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if not unload_ok:
        _LOGGER.warning("Failed to unload some platforms for entry %s", entry.entry_id)
        return False

    entry_data = hass.data.get(DOMAIN, {}).pop(entry.entry_id, None)
    if entry_data is not None:
        manager: CtrlxSessionManager = entry_data["manager"]
        try:
            await manager.async_logout()
        except api.CtrlxError as err:
            _LOGGER.warning(
                "Failed to log out from %s, session dropped locally: %s",
                manager.hostname,
                err,
            )
        _LOGGER.debug("Cleaned up data for entry %s", entry.entry_id)

    async_unregister_services(hass)
    _LOGGER.info(
        "Successfully unloaded ctrlX CORE integration for entry %s", entry.entry_id
    )
    return True
