"""ntfy push channel — publishes to an ntfy server topic over HTTP.

Only used if a topic is configured. Future triggers are kept in-process so
they can be cancelled by handle.
"""

import logging

import httpx

from sipsense.notifications.models import PushPriority
from sipsense.push.base import LocalScheduledChannel, PushError, PushTimeoutError

logger = logging.getLogger(__name__)


class NtfyPushChannel(LocalScheduledChannel):
    """Push notifications via ntfy's JSON publish endpoint."""

    name = "ntfy"

    def __init__(
        self,
        server: str,
        topic: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self._server = server.rstrip("/")
        self._topic = topic
        self._timeout = timeout
        self._transport = transport

    @property
    def available(self) -> bool:
        return bool(self._topic)

    async def send(
        self,
        title: str,
        body: str,
        priority: PushPriority = PushPriority.DEFAULT,
        payload: dict | None = None,
    ) -> None:
        """Publish one message to the topic.

        Raises:
            PushError: On HTTP or network errors.
            PushTimeoutError: When the request exceeds push_timeout.
        """
        if not self._topic:
            raise PushError(self.name, "ntfy topic not configured")

        message = {
            "topic": self._topic,
            "title": title,
            "message": body,
            "priority": int(priority),
        }
        if payload and payload.get("type"):
            message["tags"] = [str(payload["type"])]

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport,
            ) as client:
                response = await client.post(self._server, json=message)
        except httpx.TimeoutException as e:
            raise PushTimeoutError(self.name, self._timeout) from e
        except httpx.HTTPError as e:
            raise PushError(self.name, f"Publish failed: {e}") from e

        if response.status_code != 200:
            raise PushError(
                self.name,
                f"API error {response.status_code}: {response.text}",
            )
        logger.debug("ntfy: published %r to %s", title, self._topic)
