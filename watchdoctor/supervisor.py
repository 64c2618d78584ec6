"""Supervisor owning one watch task per monitored target."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import structlog

from .config import ConfigurationError, WatchDoctorConfig, notification_address
from .notifier import DownNotifier
from .prober import probe
from .watcher import Notifier, Prober, WatchHandle, Watcher


logger = structlog.get_logger(__name__)


class Supervisor:
    """Starts and stops the watchers for a validated configuration."""

    def __init__(
        self,
        config: WatchDoctorConfig,
        *,
        prober: Prober = probe,
        notifier: Optional[Notifier] = None,
    ):
        self.config = config
        self.prober = prober
        self.notifier = notifier
        self.handles: Dict[str, WatchHandle] = {}
        self.running = False
        self._starting = False
        self._owned_notifier: Optional[DownNotifier] = None

    @property
    def targets(self) -> List[str]:
        return list(self.handles)

    async def start(self) -> None:
        """Check the notification server, then spawn one watcher per target.

        Raises:
            ConfigurationError: If the notification server is missing or unreachable.
            RuntimeError: If the supervisor was already started.
        """
        if self._starting or self.running or self.handles:
            raise RuntimeError("Supervisor already started")
        self._starting = True
        try:
            await self._validate_notification_server()
            self._setup_watchers()
            self.running = True
        finally:
            self._starting = False

    async def _validate_notification_server(self) -> None:
        endpoint = self.config.notification_server
        if not endpoint:
            logger.error("No notification server given!")
            raise ConfigurationError("No notification server given!")

        result = await self.prober(notification_address(endpoint), self.config.timeout)
        if not result.ok:
            logger.error("Notification server unreachable", endpoint=endpoint, error=result.error)
            raise ConfigurationError(f"Notification server unreachable at {endpoint}")

    def _setup_watchers(self) -> None:
        logger.debug("Setting up watchers for backend servers", count=len(self.config.monitored_servers))
        if self.notifier is None:
            self._owned_notifier = DownNotifier(self.config.notification_server, self.config.timeout)
            self.notifier = self._owned_notifier

        for target in self.config.monitored_servers:
            if target in self.handles:
                logger.warning("Duplicate target ignored", target=target)
                continue

            handle = WatchHandle(target=target, stop_signal=asyncio.Event())
            handle.watcher = Watcher(
                target,
                handle.stop_signal,
                interval=self.config.interval,
                timeout=self.config.timeout,
                prober=self.prober,
                notifier=self.notifier,
            )
            self.handles[target] = handle
            handle.task = asyncio.create_task(handle.watcher.run(), name=f"watch:{target}")

        logger.info("Watchers started", targets=self.targets)

    def stop(self) -> None:
        """Signal every watcher to stop. Does not wait for them to exit."""
        for handle in self.handles.values():
            handle.signal_stop()
        if self.running:
            logger.info("Watchers signalled to stop", count=len(self.handles))
        self.running = False

    async def wait_stopped(self, timeout: Optional[float] = None) -> bool:
        """Wait for every watcher task to finish. Returns False on timeout."""
        tasks = [h.task for h in self.handles.values() if h.task is not None]
        if not tasks:
            return True
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning("Watchers still running after stop", count=len(pending))
            return False
        return True

    async def aclose(self, timeout: Optional[float] = None) -> None:
        """Stop, wait for the watchers, and release the HTTP client.

        Watchers still mid-cycle after ``timeout`` are cancelled and awaited
        before the client is closed.
        """
        self.stop()
        if not await self.wait_stopped(timeout):
            pending = [h.task for h in self.handles.values() if h.task is not None and not h.task.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("Cancelled watchers still running at shutdown", count=len(pending))
        if self._owned_notifier is not None:
            await self._owned_notifier.aclose()
            self._owned_notifier = None
            self.notifier = None
        self.handles.clear()

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "notification_server": self.config.notification_server,
            "target_count": len(self.handles),
            "watchers": [h.watcher.to_dict() for h in self.handles.values() if h.watcher is not None],
        }
