"""Services for the ctrlX CORE integration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import voluptuous as vol
from homeassistant.core import ServiceCall, ServiceResponse, SupportsResponse
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from homeassistant.helpers import config_validation as cv

from . import api
from .const import (
    ATTR_CONFIG_ENTRY_ID,
    ATTR_METHOD,
    ATTR_PATH,
    ATTR_PAYLOAD,
    DOMAIN,
    METHOD_BROWSE,
    METHOD_CREATE,
    METHOD_DELETE,
    METHOD_METADATA,
    METHOD_READ,
    METHOD_READ_WITH_ARG,
    METHOD_WRITE,
    REQUEST_METHODS,
    SERVICE_DATALAYER_REQUEST,
)

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .session import CtrlxSessionManager

_LOGGER = logging.getLogger(__name__)

DATALAYER_REQUEST_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_CONFIG_ENTRY_ID): cv.string,
        vol.Optional(ATTR_METHOD, default=METHOD_READ): vol.In(REQUEST_METHODS),
        vol.Required(ATTR_PATH): cv.string,
        vol.Optional(ATTR_PAYLOAD): object,
    }
)


def async_register_services(hass: HomeAssistant) -> None:
    """Register the integration services once."""
    if hass.services.has_service(DOMAIN, SERVICE_DATALAYER_REQUEST):
        return

    async def _async_handle(call: ServiceCall) -> ServiceResponse:
        return await async_handle_datalayer_request(hass, call)

    hass.services.async_register(
        DOMAIN,
        SERVICE_DATALAYER_REQUEST,
        _async_handle,
        schema=DATALAYER_REQUEST_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )


def async_unregister_services(hass: HomeAssistant) -> None:
    """Remove the integration services once no entry is left."""
    if hass.data.get(DOMAIN):
        return
    hass.services.async_remove(DOMAIN, SERVICE_DATALAYER_REQUEST)


async def async_handle_datalayer_request(
    hass: HomeAssistant, call: ServiceCall
) -> ServiceResponse:
    """Run a Data Layer request and return the device response.

    Raises:
        ServiceValidationError: If the config entry is unknown or the method
            needs a payload that was not given.
        HomeAssistantError: If the request fails.

    """
    entry_id = call.data[ATTR_CONFIG_ENTRY_ID]
    method = call.data[ATTR_METHOD]
    path = call.data[ATTR_PATH]
    payload = call.data.get(ATTR_PAYLOAD)

    entry_data = hass.data.get(DOMAIN, {}).get(entry_id)
    if entry_data is None:
        error_msg = f"Unknown ctrlX CORE config entry: {entry_id}"
        raise ServiceValidationError(error_msg)

    manager: CtrlxSessionManager = entry_data["manager"]
    _LOGGER.debug("Service request %s on %s", method, path)

    try:
        result = await _async_dispatch(manager, method, path, payload)
    except api.CtrlxError as err:
        error_msg = f"ctrlX Data Layer {method} of {path} failed ({err.kind}): {err}"
        raise HomeAssistantError(error_msg) from err

    return {ATTR_PATH: path, ATTR_METHOD: method, ATTR_PAYLOAD: result}


async def _async_dispatch(
    manager: CtrlxSessionManager, method: str, path: str, payload: Any
) -> Any:
    if method in (METHOD_READ_WITH_ARG, METHOD_WRITE, METHOD_CREATE) and (
        payload is None
    ):
        error_msg = f"Method {method} requires a payload"
        raise ServiceValidationError(error_msg)

    if method == METHOD_READ:
        return await manager.async_read(path)
    if method == METHOD_READ_WITH_ARG:
        return await manager.async_read(path, payload)
    if method == METHOD_WRITE:
        return await manager.async_write(path, payload)
    if method == METHOD_CREATE:
        return await manager.async_create(path, payload)
    if method == METHOD_DELETE:
        await manager.async_delete(path)
        return None
    if method == METHOD_METADATA:
        return await manager.async_read_metadata(path)
    if method == METHOD_BROWSE:
        return await manager.async_browse(path)
    error_msg = f"Unsupported method: {method}"
    raise ServiceValidationError(error_msg)
