"""Host integration: lifecycle hooks and request pass-through."""

from __future__ import annotations

from typing import Any, Optional

import structlog

from .config import WatchDoctorConfig
from .supervisor import Supervisor


class WatchDoctor:
    """Binds the watch engine to a host's provision/validate/cleanup lifecycle."""

    def __init__(self, config: WatchDoctorConfig, **supervisor_kwargs: Any):
        self.config = config
        self.supervisor_kwargs = supervisor_kwargs
        self.supervisor: Optional[Supervisor] = None
        self.logger = structlog.get_logger(__name__)

    def provision(self) -> None:
        self.logger = structlog.get_logger(__name__).bind(directive=self.config.directive_name)
        self.supervisor = Supervisor(self.config, **self.supervisor_kwargs)
        self.logger.info(
            "Provisioned watch engine",
            interval=self.config.interval,
            timeout=self.config.timeout,
            notification_server=self.config.notification_server,
            monitored_servers=list(self.config.monitored_servers),
        )

    async def validate(self) -> None:
        """Pre-flight the notification server and start watching."""
        if self.supervisor is None:
            self.provision()
        await self.supervisor.start()

    def cleanup(self) -> None:
        if self.supervisor is None:
            return
        self.supervisor.stop()

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        if self.supervisor is None:
            return
        self.cleanup()
        await self.supervisor.aclose(timeout if timeout is not None else self.config.interval + self.config.timeout)
        self.logger.info("Watch engine shut down")


class WatchDoctorMiddleware:
    """ASGI middleware that forwards every request unchanged.

    Probing runs on its own tasks and never inspects proxied traffic.
    """

    def __init__(self, app: Any):
        self.app = app

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        await self.app(scope, receive, send)
