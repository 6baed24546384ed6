"""
Configuration flow for the ctrlX CORE integration.

This module handles the setup of a ctrlX CORE device through Home
Assistant's config flow system and validates the credentials by logging in.
"""

import logging
import re
from typing import Any

import voluptuous as vol
from homeassistant.config_entries import ConfigFlow, ConfigFlowResult
from homeassistant.const import (
    CONF_HOST,
    CONF_PASSWORD,
    CONF_TIMEOUT,
    CONF_USERNAME,
    CONF_VERIFY_SSL,
)
from homeassistant.helpers.httpx_client import get_async_client

from . import api
from .const import (
    CONF_AUTO_RECONNECT,
    CONF_PATHS,
    DEFAULT_AUTO_RECONNECT,
    DEFAULT_TIMEOUT,
    DEFAULT_VERIFY_SSL,
    DOMAIN,
    ERROR_API_ERROR,
    ERROR_CANNOT_CONNECT,
    ERROR_INVALID_AUTH,
    ERROR_INVALID_RESPONSE,
    ERROR_TIMEOUT,
    ERROR_UNKNOWN,
)
from .session import CtrlxSessionManager

_LOGGER = logging.getLogger(__name__)

DATA_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_HOST): str,
        vol.Required(CONF_USERNAME): str,
        vol.Required(CONF_PASSWORD): str,
        vol.Optional(CONF_VERIFY_SSL, default=DEFAULT_VERIFY_SSL): bool,
        vol.Optional(CONF_TIMEOUT, default=DEFAULT_TIMEOUT): vol.All(
            vol.Coerce(int), vol.Range(min=-1)
        ),
        vol.Optional(CONF_AUTO_RECONNECT, default=DEFAULT_AUTO_RECONNECT): bool,
        vol.Optional(CONF_PATHS, default=""): str,
    }
)


def parse_paths(value: str) -> list[str]:
    """Split a comma or newline separated list of Data Layer paths."""
    paths = (path.strip().strip("/") for path in re.split(r"[,\n]", value))
    return list(dict.fromkeys(path for path in paths if path))


class CtrlxCoreConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle configuration flow for the ctrlX CORE integration."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """
        Handle the initial step of the config flow.

        Args:
            user_input: User input data containing host and credentials.

        Returns:
            ConfigFlowResult indicating the next step or errors.

        """
        errors: dict[str, str] = {}

        if user_input is not None:
            host = user_input[CONF_HOST].strip()
            username = user_input[CONF_USERNAME]

            try:
                await self._async_validate_login(user_input)

            except api.CtrlxProblemError as err:
                if err.is_auth_error:
                    _LOGGER.warning(
                        "Authentication failed (%s): %s", ERROR_INVALID_AUTH, err
                    )
                    errors["base"] = ERROR_INVALID_AUTH
                else:
                    _LOGGER.warning("Device error (%s): %s", ERROR_API_ERROR, err)
                    errors["base"] = ERROR_API_ERROR
            except api.CtrlxTimeoutError:
                _LOGGER.exception("Timeout error (%s)", ERROR_TIMEOUT)
                errors["base"] = ERROR_TIMEOUT
            except api.CtrlxTransportError:
                _LOGGER.exception("Connection error (%s)", ERROR_CANNOT_CONNECT)
                errors["base"] = ERROR_CANNOT_CONNECT
            except api.CtrlxProtocolError:
                _LOGGER.exception("Invalid response (%s)", ERROR_INVALID_RESPONSE)
                errors["base"] = ERROR_INVALID_RESPONSE
            except Exception:
                _LOGGER.exception(
                    "Unexpected error during authentication (%s)",
                    ERROR_UNKNOWN,
                )
                errors["base"] = ERROR_UNKNOWN

            else:
                await self.async_set_unique_id(f"{username}@{host}".lower())
                self._abort_if_unique_id_configured()

                return self.async_create_entry(
                    title=f"ctrlX CORE ({host})",
                    data={
                        **user_input,
                        CONF_HOST: host,
                        CONF_PATHS: parse_paths(user_input.get(CONF_PATHS, "")),
                    },
                )

        return self.async_show_form(
            step_id="user",
            data_schema=DATA_SCHEMA,
            errors=errors,
        )

    async def _async_validate_login(self, user_input: dict[str, Any]) -> None:
        """Log in with the given credentials and log out again."""
        session = get_async_client(
            self.hass,
            verify_ssl=user_input.get(CONF_VERIFY_SSL, DEFAULT_VERIFY_SSL),
        )
        manager = CtrlxSessionManager(
            session,
            user_input[CONF_HOST].strip(),
            user_input[CONF_USERNAME],
            user_input[CONF_PASSWORD],
            timeout=user_input.get(CONF_TIMEOUT, DEFAULT_TIMEOUT),
        )
        await manager.async_login()
        _LOGGER.info("Successfully authenticated with ctrlX CORE")

        try:
            await manager.async_logout()
        except api.CtrlxError as err:
            _LOGGER.warning("Logout after validation failed: %s", err)
