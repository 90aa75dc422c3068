"""Push notifications for threshold crossings (ntfy-compatible HTTP POST).

Delivery is best effort: the sampling loop hands a message to
AlertDispatcher.dispatch() and moves on; a failed POST is logged and dropped.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Set

import requests

from adc_lib.errors import AlertDeliveryError, ConfigurationError

logger = logging.getLogger(__name__)

ENV_URL = "NTFY_URL"
ENV_USER = "NTFY_USER"
ENV_PASSWORD = "NTFY_PASSWORD"
ENV_TIMEOUT = "NTFY_TIMEOUT_S"


@dataclass(frozen=True)
class AlertSettings:
    """Credentials and endpoint of the push service.

    Attributes:
        url: Topic URL to POST to (e.g. https://ntfy.example.com/adc).
        user: Basic-auth user.
        password: Basic-auth password.
        timeout_s: HTTP timeout per request.
    """

    url: str
    user: str
    password: str
    timeout_s: float = 10.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AlertSettings":
        """Read settings from environment variables.

        Raises:
            ConfigurationError: If any of NTFY_URL, NTFY_USER, NTFY_PASSWORD is unset
        """
        env = os.environ if environ is None else environ
        missing = [name for name in (ENV_URL, ENV_USER, ENV_PASSWORD) if not env.get(name)]
        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

        try:
            timeout_s = float(env.get(ENV_TIMEOUT, "10.0"))
        except ValueError as e:
            raise ConfigurationError(f"{ENV_TIMEOUT} must be a number: {e}") from e

        return cls(
            url=env[ENV_URL],
            user=env[ENV_USER],
            password=env[ENV_PASSWORD],
            timeout_s=timeout_s,
        )


class Notifier(Protocol):
    """Anything that can deliver a plain-text message synchronously."""

    def send(self, message: str) -> int:
        ...


class NtfyClient:
    """Blocking HTTP client for the push service."""

    def __init__(self, settings: AlertSettings, session: Optional[requests.Session] = None) -> None:
        self._settings = settings
        self._session = session or requests.Session()
        self._session.auth = (settings.user, settings.password)

    def send(self, message: str) -> int:
        """POST message as text/plain.

        Returns:
            HTTP status code

        Raises:
            AlertDeliveryError: On network failure or non-2xx response
        """
        try:
            response = self._session.post(
                self._settings.url,
                data=message.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
                timeout=self._settings.timeout_s,
            )
        except requests.RequestException as e:
            raise AlertDeliveryError(f"Failed to reach {self._settings.url}: {e}") from e

        logger.debug(f"Notification response status: {response.status_code}")
        if not response.ok:
            raise AlertDeliveryError(
                f"Push service rejected notification: HTTP {response.status_code}"
            )
        return response.status_code

    def close(self) -> None:
        self._session.close()


class AlertDispatcher:
    """Fire-and-forget wrapper that runs deliveries off the event loop."""

    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier
        self._pending: Set[asyncio.Task] = set()
        self.sent = 0
        self.failed = 0

    def dispatch(self, message: str) -> asyncio.Task:
        """Schedule delivery of message and return immediately.

        Must be called from a running event loop.
        """
        task = asyncio.get_running_loop().create_task(self._deliver(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, message: str) -> None:
        try:
            await asyncio.to_thread(self._notifier.send, message)
        except AlertDeliveryError as e:
            self.failed += 1
            logger.warning(f"Alert not delivered: {e}")
        except Exception as e:
            self.failed += 1
            logger.error(f"Unexpected error delivering alert: {e}", exc_info=True)
        else:
            self.sent += 1
            logger.info(f"Alert delivered: {message}")

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def in_flight(self) -> int:
        return len(self._pending)
