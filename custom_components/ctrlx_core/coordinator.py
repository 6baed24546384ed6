"""Coordinator for the ctrlX CORE integration."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from . import api
from .const import DEFAULT_POLL_INTERVAL, DOMAIN

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .session import CtrlxSessionManager

_LOGGER = logging.getLogger(__name__)


class CtrlxDatalayerCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """Coordinator that polls the configured ctrlX Data Layer nodes."""

    def __init__(
        self,
        hass: HomeAssistant,
        manager: CtrlxSessionManager,
        paths: list[str],
    ) -> None:
        """Initialize the coordinator."""
        super().__init__(
            hass,
            _LOGGER,
            name=f"{DOMAIN}_{manager.hostname}",
            update_interval=timedelta(seconds=DEFAULT_POLL_INTERVAL),
        )
        self.manager = manager
        self.paths = paths
        self.data = {}

    async def _async_update_data(self) -> dict[str, Any]:
        if not self.paths:
            _LOGGER.debug("No ctrlX Data Layer paths registered for polling")
            return {}

        if not self.manager.is_logged_in:
            await self._async_relogin()

        values: dict[str, Any] = {}
        try:
            for path in self.paths:
                try:
                    values[path] = await self.manager.async_read(path)
                except api.CtrlxProblemError as err:
                    if err.is_auth_error:
                        raise
                    _LOGGER.warning("Failed to read %s: %s", path, err)
        except api.CtrlxProblemError as err:
            raise UpdateFailed(f"Authorization error while polling: {err}") from err
        except api.CtrlxNotAuthenticatedError as err:
            raise UpdateFailed(f"Session lost while polling: {err}") from err
        except api.CtrlxTransportError as err:
            raise UpdateFailed(f"Connection error while polling: {err}") from err
        except api.CtrlxProtocolError as err:
            raise UpdateFailed(f"Unexpected response while polling: {err}") from err

        _LOGGER.debug("Polled %d of %d nodes", len(values), len(self.paths))
        return values

    async def _async_relogin(self) -> None:
        """Log in again after the session was lost.

        Raises:
            UpdateFailed: If the login fails.

        """
        _LOGGER.info("Session with %s lost, logging in again", self.manager.hostname)
        try:
            await self.manager.async_login()
        except api.CtrlxProblemError as err:
            error_msg = f"Re-authentication rejected by device: {err}"
            _LOGGER.warning(error_msg)
            raise UpdateFailed(error_msg) from err
        except api.CtrlxTransportError as err:
            error_msg = f"Connection error during re-authentication: {err}"
            raise UpdateFailed(error_msg) from err
        except api.CtrlxProtocolError as err:
            error_msg = f"Unexpected response during re-authentication: {err}"
            _LOGGER.exception("Unexpected response during re-authentication")
            raise UpdateFailed(error_msg) from err
