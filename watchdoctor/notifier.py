"""Down notifications delivered to the alert receiver over HTTP."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog


logger = structlog.get_logger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


@dataclass(frozen=True)
class Notification:
    server: str
    time_checked: datetime
    type: str = "Down"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "server": self.server,
            "timeChecked": self.time_checked.isoformat(),
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def notification_url(endpoint: str) -> str:
    s = (endpoint or "").strip()
    if "://" not in s:
        return f"http://{s}"
    return s


class DownNotifier:
    """Posts down notifications, best-effort.

    Delivery is attempted once. Failures are logged and reported through the
    return value, never raised, so a broken receiver cannot stall a watcher.
    """

    def __init__(self, endpoint: str, timeout: float, client: httpx.AsyncClient | None = None):
        self.endpoint = endpoint
        self.url = notification_url(endpoint)
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient()

    async def notify_down(self, target: str, time_checked: datetime | None = None) -> bool:
        """Send a Down notification for ``target``.

        Returns True when the receiver answered, whatever the status code.
        """
        logger.error("Backend server down", server=target)
        message = Notification(server=target, time_checked=time_checked or datetime.now(timezone.utc))

        try:
            body = message.to_json()
        except (TypeError, ValueError) as e:
            logger.error("Cannot serialize notification", server=target, error=str(e))
            return False

        if self.client.is_closed:
            logger.error("Notification client closed, dropping notification", server=target, endpoint=self.url)
            return False

        try:
            resp = await self.client.post(self.url, content=body, headers=JSON_HEADERS, timeout=self.timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(
                "Error occurred during sending notification",
                server=target,
                endpoint=self.url,
                error=f"{type(e).__name__}: {e}",
            )
            return False

        logger.debug("Notification delivered", server=target, status_code=resp.status_code)
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
